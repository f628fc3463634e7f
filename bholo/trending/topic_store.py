"""Append-only store of topic mentions."""

from datetime import datetime
from typing import Iterable, List

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from bholo.core import repositories
from bholo.core.logging import get_logger

logger = get_logger(__name__)


class TopicStore:
    """Writes one record per keyword and reads them back by time window."""

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def record(self, topics: Iterable[str]) -> int:
        """Append a batch of topics; returns how many were written (0 on failure)."""
        topics = sorted(set(topics))
        if not topics:
            return 0
        try:
            async with self.session_factory() as session:
                return await repositories.insert_topics(session, topics)
        except SQLAlchemyError as e:
            logger.error(f"Failed to write topics: {e}")
            return 0

    async def since(self, start: datetime) -> List[str]:
        """Every topic string recorded at or after ``start``."""
        try:
            async with self.session_factory() as session:
                return await repositories.get_topics_since(session, start)
        except SQLAlchemyError as e:
            logger.error(f"Failed to load topics since {start.isoformat()}: {e}")
            return []
