"""Live-update watcher.

Buffers posts that other users created since the feed was loaded into a
separate pending list. Nothing reaches the main feed until the viewer asks
for it with ``reveal_pending``.
"""

from datetime import datetime, timedelta
from typing import AsyncIterator, Callable, List, Optional

from bholo.core.logging import get_logger
from bholo.core.settings import get_settings
from bholo.core.time import is_recent, utcnow
from bholo.feed.cache import FeedCache
from bholo.feed.models import Post

logger = get_logger(__name__)


class LiveUpdateWatcher:
    """Filters "newest post" notifications into a pending list."""

    def __init__(
        self,
        cache: FeedCache,
        viewer_id: Optional[str] = None,
        recency_window: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utcnow
    ):
        self.cache = cache
        self.viewer_id = viewer_id or cache.viewer.user_id
        self.recency_window = recency_window or timedelta(minutes=get_settings().recency_window_minutes)
        self.clock = clock
        self._pending: List[Post] = []

    @property
    def pending(self) -> List[Post]:
        return list(self._pending)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def handle_notification(self, post: Post) -> bool:
        """
        Consider one notified post.

        Returns:
            True if the post was added to the pending list
        """
        if post.author_id == self.viewer_id:
            return False
        if not is_recent(post.created_at, self.recency_window, now=self.clock()):
            return False
        if post.id in self.cache or any(p.id == post.id for p in self._pending):
            return False

        self._pending.insert(0, post)
        logger.debug(f"Post {post.id} by {post.author_id} is pending ({len(self._pending)} waiting)")
        return True

    def reveal_pending(self) -> List[Post]:
        """Move every pending post to the front of the feed and clear the list."""
        revealed, self._pending = self._pending, []
        if revealed:
            self.cache.prepend(revealed)
            logger.info(f"Revealed {len(revealed)} new posts")
        return revealed

    async def run(self, stream: AsyncIterator[Post]) -> None:
        """Consume a notification stream until it ends or the task is cancelled."""
        async for post in stream:
            self.handle_notification(post)
