"""
Server-side trending and bot flows.

Each function runs one end-to-end action: rank then synthesize headlines,
generate hashtags, or have the bot author publish a post.
"""

import random
import time
from typing import List, Optional

from bholo.core.logging import get_logger
from bholo.core.settings import Settings, get_settings
from bholo.feed.store import PostStore
from .aggregator import TrendingAggregator
from .headlines import HeadlineSynthesizer
from .keywords import extract_keywords
from .llm_provider import LLMProvider
from .models import BotPostResult, TrendingTopic
from .prompts import bot_post_request, trending_hashtags_request
from .topic_store import TopicStore

logger = get_logger(__name__)


class BotPostError(Exception):
    """A generated bot post could not be written."""


async def get_trending_topics(
    aggregator: TrendingAggregator,
    synthesizer: HeadlineSynthesizer,
    limit: Optional[int] = None
) -> List[TrendingTopic]:
    """Rank the window, then headline the shortlist. Nothing trending means no model call."""
    start_time = time.time()

    ranked = await aggregator.rank(limit)
    if not ranked:
        logger.info("Nothing trending, skipping headline synthesis")
        return []

    topics = await synthesizer.synthesize(ranked)
    logger.info(f"Trending topics ready in {time.time() - start_time:.2f}s")
    return topics


async def generate_trending_hashtags(provider: LLMProvider, count: int = 5) -> List[str]:
    response = await provider.run(trending_hashtags_request(count))
    return response.hashtags[:count]


async def generate_bot_post(
    provider: LLMProvider,
    store: PostStore,
    topic_store: Optional[TopicStore] = None,
    settings: Optional[Settings] = None
) -> BotPostResult:
    """
    Generate a post with the provider and publish it as the bot author.

    Raises:
        LLMProviderError: if generation fails
        BotPostError: if the generated post could not be saved
    """
    settings = settings or get_settings()
    response = await provider.run(bot_post_request())

    document = {
        'author_id': settings.bot_author_id,
        'author_name': settings.bot_author_name,
        'author_handle': settings.bot_author_handle,
        'author_avatar': settings.bot_author_avatar,
        'content': response.content,
        'media': [],
        'poll': None,
        'likes': random.randint(0, 499),
        'reposts': 0,
        'comments': 0,
        'views': random.randint(0, 4999),
    }

    post_id = await store.create(document)
    if post_id is None:
        raise BotPostError(f"Bot post about '{response.topic}' could not be saved")

    if topic_store is not None:
        await topic_store.record(extract_keywords(response.content))

    logger.info(f"Bot published post {post_id} about '{response.topic}'")
    return BotPostResult(post_id=post_id, content=response.content)
