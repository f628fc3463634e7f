"""BHOLO football social network: feed synchronization and trending topics."""

__version__ = "0.1.0"
