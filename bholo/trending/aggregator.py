"""Trending aggregation.

Counts topic mentions over a trailing window, suppresses anything below the
popularity floor, and ranks the rest by count. Output is recomputed from
scratch on every call.
"""

import time
from collections import Counter
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from bholo.core.logging import get_logger
from bholo.core.settings import Settings, get_settings
from bholo.core.time import window_start
from bholo.trending.models import RankedTopic, TrendingKeyword
from bholo.trending.topic_store import TopicStore

logger = get_logger(__name__)


def count_topics(topics: Iterable[str]) -> Dict[str, int]:
    """Occurrences per distinct topic string."""
    return dict(Counter(topics))


def format_post_count(count: int) -> str:
    """``1 post``, ``2 posts``, ``1,234 posts``."""
    return f"{count:,} {'post' if count == 1 else 'posts'}"


def title_case(topic: str) -> str:
    """Capitalize the first letter of each word, leaving the rest untouched."""
    return ' '.join(word[:1].upper() + word[1:] for word in topic.split(' '))


def rank_topics(
    counts: Dict[str, int],
    min_count: int = 3,
    limit: int = 5,
    category: str = "Football · Trending"
) -> List[RankedTopic]:
    """
    Filter by the floor, sort by count descending and keep the top ``limit``.

    Ties keep the enumeration order of ``counts``.
    """
    popular = [(topic, count) for topic, count in counts.items() if count >= min_count]
    popular.sort(key=lambda pair: pair[1], reverse=True)

    return [
        RankedTopic(
            topic=topic,
            display_topic=title_case(topic),
            count=count,
            post_count=format_post_count(count),
            category=category,
        )
        for topic, count in popular[:limit]
    ]


class TrendingAggregator:
    """Ranks the topics recorded in the trailing window."""

    def __init__(self, topic_store: TopicStore, settings: Optional[Settings] = None):
        settings = settings or get_settings()
        self.topic_store = topic_store
        self.window_hours = settings.trending_window_hours
        self.min_count = settings.trending_min_count
        self.default_limit = settings.trending_limit
        self.category = settings.trending_category

    async def rank(self, limit: Optional[int] = None, now: Optional[datetime] = None) -> List[RankedTopic]:
        start_time = time.time()
        limit = limit or self.default_limit

        topics = await self.topic_store.since(window_start(self.window_hours, now))
        if not topics:
            logger.info(f"No topics recorded in the last {self.window_hours}h")
            return []

        ranked = rank_topics(count_topics(topics), self.min_count, limit, self.category)

        logger.info(
            f"Ranked {len(ranked)} trending topics from {len(topics)} mentions "
            f"in {time.time() - start_time:.3f}s"
        )
        return ranked

    async def trending_keywords(self, limit: Optional[int] = None) -> List[TrendingKeyword]:
        """Shortlist for display without any generative step."""
        return [
            TrendingKeyword(topic=ranked.display_topic, category=ranked.category, post_count=ranked.post_count)
            for ranked in await self.rank(limit)
        ]
