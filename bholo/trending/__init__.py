"""Trending topics package.

This package contains modules for:
- Keyword extraction from post text (keywords.py)
- Topic mention storage (topic_store.py)
- Windowed ranking (aggregator.py)
- Generative providers and prompts (llm_provider.py, prompts.py)
- Headline synthesis (headlines.py)
- End-to-end trending and bot flows (pipeline.py)
"""

from .keywords import extract_keywords, STOP_WORDS
from .topic_store import TopicStore
from .aggregator import TrendingAggregator, rank_topics, format_post_count
from .llm_provider import (
    LLMProvider,
    LLMProviderError,
    LLMUnavailableError,
    DummyLLMProvider,
    NoLLMProvider,
    OpenAIChatProvider,
    LLMProviderFactory
)
from .headlines import HeadlineSynthesizer
from .models import RankedTopic, TrendingKeyword, TrendingTopic

__all__ = [
    # Keywords
    'extract_keywords',
    'STOP_WORDS',

    # Aggregation
    'TopicStore',
    'TrendingAggregator',
    'rank_topics',
    'format_post_count',

    # Providers
    'LLMProvider',
    'LLMProviderError',
    'LLMUnavailableError',
    'DummyLLMProvider',
    'NoLLMProvider',
    'OpenAIChatProvider',
    'LLMProviderFactory',

    # Synthesis
    'HeadlineSynthesizer',
    'RankedTopic',
    'TrendingKeyword',
    'TrendingTopic',
]
