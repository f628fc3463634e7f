"""Live "new post" notifications.

Confirmed posts are published on a Redis pub/sub channel so every session
watching the feed hears about them. When Redis is not configured or cannot
be reached, notifications fan out in-process instead.
"""

import asyncio
from typing import AsyncIterator, List, Optional

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from bholo.core.logging import get_logger
from bholo.core.settings import get_settings
from bholo.feed.models import Post

logger = get_logger(__name__)


class PostNotifier:
    """Publishes confirmed posts and hands out subscription streams."""

    def __init__(
        self,
        redis_url: Optional[str] = None,
        channel: Optional[str] = None,
        queue_size: Optional[int] = None
    ):
        settings = get_settings()
        self.redis_url = redis_url
        self.channel = channel or settings.notify_channel
        self.queue_size = queue_size or settings.notify_queue_size
        self.redis = None
        self._queues: List[asyncio.Queue] = []

    async def connect(self) -> None:
        """Connect to Redis if a URL was given; otherwise stay in-process."""
        if not self.redis_url:
            logger.info("No Redis URL configured, using in-process post notifications")
            return

        client = None
        try:
            client = aioredis.from_url(self.redis_url, decode_responses=True)
            await client.ping()
            self.redis = client
            logger.info(f"Connected to Redis for post notifications on '{self.channel}'")
        except (RedisError, OSError) as e:
            logger.warning(f"Redis not available, using in-process post notifications: {e}")
            self.redis = None
            if client is not None:
                await client.aclose()

    async def close(self) -> None:
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None

    @property
    def subscriber_count(self) -> int:
        """In-process subscribers currently iterating."""
        return len(self._queues)

    async def publish(self, post: Post) -> None:
        """Announce a newly confirmed post to every subscriber."""
        if self.redis is not None:
            try:
                await self.redis.publish(self.channel, post.model_dump_json())
            except RedisError as e:
                logger.error(f"Failed to publish post {post.id}: {e}")
            return

        for queue in list(self._queues):
            try:
                queue.put_nowait(post)
            except asyncio.QueueFull:
                logger.warning(f"Subscriber is {queue.qsize()} posts behind, dropping post {post.id}")

    async def subscribe(self) -> AsyncIterator[Post]:
        """
        Stream confirmed posts.

        The subscription starts when iteration starts and ends when the
        iterator is closed; posts published before the first ``__anext__``
        are not delivered. In-process subscribers that fall more than
        ``queue_size`` posts behind miss the overflow.
        """
        if self.redis is not None:
            pubsub = self.redis.pubsub()
            await pubsub.subscribe(self.channel)
            try:
                async for message in pubsub.listen():
                    if message.get('type') != 'message':
                        continue
                    try:
                        yield Post.model_validate_json(message['data'])
                    except ValueError as e:
                        logger.warning(f"Skipping malformed post notification: {e}")
            finally:
                await pubsub.unsubscribe(self.channel)
                await pubsub.aclose()
            return

        queue: asyncio.Queue = asyncio.Queue(maxsize=self.queue_size)
        self._queues.append(queue)
        try:
            while True:
                yield await queue.get()
        finally:
            self._queues.remove(queue)


async def poll_latest(store, interval: Optional[float] = None) -> AsyncIterator[Post]:
    """
    Stream the newest post whenever it changes.

    Polls ``store.get_page(limit=1)``; the first observed post is yielded too,
    matching a snapshot listener's initial "added" event. Empty pages (no
    posts or a failed read) are skipped.
    """
    interval = get_settings().poll_interval_seconds if interval is None else interval
    last_seen_id = None
    while True:
        page = await store.get_page(limit=1)
        if page and page[0].id != last_seen_id:
            last_seen_id = page[0].id
            logger.debug(f"Newest post changed to {last_seen_id}")
            yield page[0]
        await asyncio.sleep(interval)
