"""Optimistic feed cache.

Holds the ordered list of posts a session shows and hides the latency of
store writes and media uploads:

- ``add_post`` inserts a provisional post immediately and confirms it in the
  background (upload media, write the document, patch the entry in place).
- ``fetch_page`` keeps a one-page-ahead prefetch buffer.
- Mutations (comments included) apply locally first and roll back when the
  store rejects them. Like, repost and comment counters are projections of
  the last confirmed value plus the deltas still in flight, so concurrent
  toggles never drift.

Everything here runs on a single event loop; no locks are needed.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Set

from bholo.core.logging import get_logger
from bholo.core.settings import get_settings
from bholo.core.storage import MediaStorage, StorageError
from bholo.core.time import utcnow
from bholo.feed.models import (
    Author, Comment, CommentDraft, MediaUpload, PendingMedia, Poll, Post, PostDraft, PostStatus, UploadedMedia
)
from bholo.feed.store import PostStore, post_to_document
from bholo.trending.keywords import extract_keywords

logger = get_logger(__name__)


class CounterProjection:
    """
    Displayed counter = last confirmed server value + pending local deltas.

    Tokens are handed out in click order. A server value is adopted only when
    it answers a later click than the one the current base came from, so a
    slow reply to an older toggle cannot overwrite a newer count.
    """

    def __init__(self, confirmed: int):
        self.confirmed = confirmed
        self._pending: Dict[int, int] = {}
        self._next_token = 0
        self._confirmed_token = -1

    @property
    def value(self) -> int:
        return max(0, self.confirmed + sum(self._pending.values()))

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    def push(self, delta: int) -> int:
        """Register a local delta; returns the token that resolves it."""
        token = self._next_token
        self._next_token += 1
        self._pending[token] = delta
        return token

    def resolve(self, token: int, authoritative: Optional[int] = None) -> None:
        """Drop a pending delta; adopt the server value unless a newer one is already in."""
        self._pending.pop(token, None)
        if authoritative is not None and token > self._confirmed_token:
            self.confirmed = authoritative
            self._confirmed_token = token

    def absorb(self, value: int) -> None:
        """
        Take a freshly read server value as the base.

        Ignored while deltas are in flight: the page may have been read before
        or after they landed, and their replies will carry the count anyway.
        """
        if self._pending:
            return
        self.confirmed = value
        self._confirmed_token = self._next_token - 1


@dataclass
class _Prefetch:
    cursor: str
    limit: int
    task: asyncio.Task


class FeedCache:
    """Per-session feed state. Pass the instance to whatever needs it."""

    def __init__(
        self,
        store: PostStore,
        viewer: Author,
        storage: Optional[MediaStorage] = None,
        topic_store=None,
        page_size: Optional[int] = None
    ):
        self.store = store
        self.viewer = viewer
        self.storage = storage
        self.topic_store = topic_store
        self.page_size = page_size or get_settings().feed_page_size
        self.bookmarked_ids: Set[str] = set()
        self.comments: Dict[str, List[Comment]] = {}
        self.loading = False

        self._posts: List[Post] = []
        self._counters: Dict[str, Dict[str, CounterProjection]] = {}
        self._discarded_ids: Set[str] = set()
        self._prefetch: Optional[_Prefetch] = None
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Reading state
    # ------------------------------------------------------------------

    @property
    def posts(self) -> List[Post]:
        return list(self._posts)

    def __len__(self) -> int:
        return len(self._posts)

    def __contains__(self, post_id: str) -> bool:
        return self._index(post_id) is not None

    def get(self, post_id: str) -> Optional[Post]:
        index = self._index(post_id)
        return self._posts[index] if index is not None else None

    def _index(self, post_id: str) -> Optional[int]:
        for index, post in enumerate(self._posts):
            if post.id == post_id:
                return index
        return None

    def _patch(self, post_id: str, **updates) -> bool:
        """Replace fields of an entry without moving it."""
        index = self._index(post_id)
        if index is None:
            return False
        self._posts[index] = self._posts[index].model_copy(update=updates)
        return True

    def prepend(self, posts: List[Post]) -> None:
        """Put ``posts`` in front of the feed in one update, skipping known ids."""
        known = {post.id for post in self._posts}
        fresh = [post for post in posts if post.id not in known]
        self._posts = fresh + self._posts

    # ------------------------------------------------------------------
    # Background work
    # ------------------------------------------------------------------

    def _spawn(self, coro: Awaitable) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def wait_for_background(self) -> None:
        """Wait until every scheduled upload, write and prefetch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # ------------------------------------------------------------------
    # Creating posts
    # ------------------------------------------------------------------

    def add_post(self, draft: PostDraft) -> Post:
        """
        Insert a provisional post and confirm it in the background.

        Must be called from a running event loop. The returned post already
        carries its final id.
        """
        if not draft.content and not draft.media and not draft.poll:
            raise ValueError("A post needs text, media or a poll")

        post_id = self.store.allocate_id()
        media = [
            UploadedMedia(url=upload.remote_url, type=upload.type, width=upload.width, height=upload.height)
            if upload.is_remote
            else PendingMedia(local_url=upload.preview_url, type=upload.type)
            for upload in draft.media
        ]
        provisional = Post(
            id=post_id,
            author_id=self.viewer.user_id,
            author_name=self.viewer.name,
            author_handle=self.viewer.handle,
            author_avatar=self.viewer.avatar,
            content=draft.content,
            created_at=utcnow(),
            media=media,
            poll=draft.poll,
            tribe_id=draft.tribe_id,
            community_id=draft.community_id,
            location=draft.location,
            status=PostStatus.PROVISIONAL,
        )

        self._posts.insert(0, provisional)
        self._spawn(self._confirm(provisional, draft))
        return provisional

    async def _confirm(self, provisional: Post, draft: PostDraft) -> None:
        post_id = provisional.id
        media = await self._upload_media(draft.media)

        if post_id in self._discarded_ids:
            # deleted by the user before anything was written
            self._discarded_ids.discard(post_id)
            logger.info(f"Post {post_id} was deleted before confirmation, not writing it")
            return

        document = post_to_document(provisional.model_copy(update={'media': media}))
        if await self.store.create(document, post_id) is None:
            logger.error(f"Failed to create post {post_id}, removing it from the feed")
            self._discarded_ids.discard(post_id)
            self._remove(post_id)
            return

        if post_id in self._discarded_ids:
            # deleted while the write was in flight
            self._discarded_ids.discard(post_id)
            await self.store.delete(post_id)
            return

        updates = {'media': media, 'status': PostStatus.CONFIRMED}
        stored = await self.store.get_by_id(post_id)
        if stored is not None:
            updates['created_at'] = stored.created_at
        self._patch(post_id, **updates)
        logger.info(f"Confirmed post {post_id} with {len(media)}/{len(draft.media)} media")

        if draft.content and self.topic_store is not None:
            await self.topic_store.record(extract_keywords(draft.content))

    async def _upload_media(self, uploads: List[MediaUpload], prefix: str = 'posts') -> List[UploadedMedia]:
        """Upload every item concurrently; failed items are dropped."""

        async def upload_one(upload: MediaUpload) -> Optional[UploadedMedia]:
            if upload.is_remote:
                return UploadedMedia(url=upload.remote_url, type=upload.type, width=upload.width, height=upload.height)
            if self.storage is None or upload.data is None:
                logger.error(f"No storage or data for media '{upload.filename}', skipping it")
                return None
            key = MediaStorage.build_key(prefix, self.viewer.user_id, upload.filename)
            try:
                url = await self.storage.upload(key, upload.data, upload.content_type)
            except StorageError as e:
                logger.error(f"Media upload failed for '{upload.filename}': {e}")
                return None
            return UploadedMedia(url=url, type=upload.type, width=upload.width, height=upload.height)

        results = await asyncio.gather(*[upload_one(upload) for upload in uploads])
        return [item for item in results if item is not None]

    # ------------------------------------------------------------------
    # Pagination
    # ------------------------------------------------------------------

    async def fetch_page(self, limit: Optional[int] = None, cursor: Optional[str] = None) -> List[Post]:
        """
        Get the page after ``cursor`` (or the first page).

        Served from the prefetch buffer when it holds exactly this page,
        otherwise from the store. A first page replaces the confirmed feed,
        later pages are appended. Either way the next page is prefetched.
        """
        limit = limit or self.page_size
        self.loading = True
        try:
            page = await self._take_prefetched(cursor, limit)
            if page is None:
                page = await self.store.get_page(cursor=cursor, limit=limit)
        finally:
            self.loading = False

        self._merge(page, replace=cursor is None)

        if page:
            self._start_prefetch(page[-1].id, limit)
        return page

    async def _take_prefetched(self, cursor: Optional[str], limit: int) -> Optional[List[Post]]:
        prefetch, self._prefetch = self._prefetch, None
        if prefetch is None:
            return None
        if prefetch.cursor != cursor or prefetch.limit != limit:
            logger.debug(f"Discarding prefetched page for cursor {prefetch.cursor}")
            return None
        if prefetch.task.done():
            return prefetch.task.result()
        return await asyncio.shield(prefetch.task)

    def _start_prefetch(self, cursor: str, limit: int) -> None:
        task = self._spawn(self.store.get_page(cursor=cursor, limit=limit))
        self._prefetch = _Prefetch(cursor=cursor, limit=limit, task=task)

    def _merge(self, page: List[Post], replace: bool) -> None:
        for post in page:
            self._absorb_counters(post)
        page = [self._project(post) for post in page]

        if replace:
            page_ids = {post.id for post in page}
            provisional = [
                post for post in self._posts
                if post.status == PostStatus.PROVISIONAL and post.id not in page_ids
            ]
            self._posts = provisional + page
        else:
            known = {post.id for post in self._posts}
            self._posts.extend(post for post in page if post.id not in known)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def edit_post(self, post_id: str, content: str) -> bool:
        post = self.get(post_id)
        previous = post.content if post else None
        self._patch(post_id, content=content)

        ok = await self.store.update_content(post_id, content)
        if not ok and previous is not None:
            logger.warning(f"Edit of post {post_id} failed, restoring previous content")
            self._patch(post_id, content=previous)
        return ok

    async def delete_post(self, post_id: str) -> bool:
        index = self._index(post_id)
        removed = self._posts.pop(index) if index is not None else None

        if removed is not None and removed.status == PostStatus.PROVISIONAL:
            self._discarded_ids.add(post_id)
            return True

        ok = await self.store.delete(post_id)
        if ok:
            self._counters.pop(post_id, None)
            self.comments.pop(post_id, None)
        elif removed is not None:
            logger.warning(f"Delete of post {post_id} failed, restoring it")
            self._posts.insert(min(index, len(self._posts)), removed)
        return ok

    def _remove(self, post_id: str) -> None:
        self._posts = [post for post in self._posts if post.id != post_id]
        self._counters.pop(post_id, None)
        self.comments.pop(post_id, None)

    async def add_vote(self, post_id: str, choice_index: int) -> bool:
        post = self.get(post_id)
        voted = post is not None and post.poll is not None and 0 <= choice_index < len(post.poll.choices)
        if voted:
            self._patch(post_id, poll=_with_vote(post.poll, choice_index, 1))

        poll = await self.store.add_vote(post_id, choice_index)
        if poll is not None:
            self._patch(post_id, poll=poll)
            return True

        current = self.get(post_id)
        if voted and current is not None and current.poll is not None:
            self._patch(post_id, poll=_with_vote(current.poll, choice_index, -1))
        return False

    async def like_post(self, post_id: str, is_liked: bool) -> bool:
        """Toggle the viewer's like; ``is_liked`` is the state before the click."""
        return await self._mutate_counter(
            post_id, 'likes', -1 if is_liked else 1,
            lambda: self.store.toggle_like(post_id, self.viewer.user_id, is_liked)
        )

    async def repost_post(self, post_id: str, is_reposted: bool) -> bool:
        return await self._mutate_counter(
            post_id, 'reposts', -1 if is_reposted else 1,
            lambda: self.store.toggle_repost(post_id, is_reposted)
        )

    async def bookmark_post(self, post_id: str, is_bookmarked: bool) -> bool:
        if is_bookmarked:
            self.bookmarked_ids.discard(post_id)
        else:
            self.bookmarked_ids.add(post_id)

        ok = await self.store.set_bookmark(self.viewer.user_id, post_id, not is_bookmarked)
        if not ok:
            if is_bookmarked:
                self.bookmarked_ids.add(post_id)
            else:
                self.bookmarked_ids.discard(post_id)
        return ok

    async def load_bookmarks(self) -> Set[str]:
        self.bookmarked_ids = set(await self.store.list_bookmarks(self.viewer.user_id))
        return self.bookmarked_ids

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    async def load_comments(self, post_id: str) -> List[Comment]:
        self.comments[post_id] = await self.store.get_comments(post_id)
        return list(self.comments[post_id])

    async def add_comment(self, post_id: str, draft: CommentDraft) -> Optional[Comment]:
        """
        Reply to a post as the viewer.

        The post's comment counter moves at once and falls back if the write
        fails. Returns the stored comment, or None on failure.
        """
        if not draft.content and not draft.media:
            raise ValueError("A comment needs text or media")

        stored: List[Comment] = []

        async def write() -> Optional[int]:
            media = await self._upload_media(draft.media, prefix=f"comments/{post_id}")
            result = await self.store.add_comment(post_id, {
                'author_id': self.viewer.user_id,
                'author_name': self.viewer.name,
                'author_handle': self.viewer.handle,
                'author_avatar': self.viewer.avatar,
                'content': draft.content,
                'media': [item.model_dump(include={'url', 'type', 'width', 'height'}, mode='json') for item in media],
            })
            if result is None:
                return None
            comment, count = result
            stored.append(comment)
            return count

        await self._mutate_counter(post_id, 'comments', 1, write)
        if not stored:
            return None
        if post_id in self.comments:
            self.comments[post_id].append(stored[0])
        return stored[0]

    async def like_comment(self, post_id: str, comment_id: str, is_liked: bool) -> bool:
        """Toggle a like on a comment loaded with ``load_comments``."""
        previous = self._find_comment(post_id, comment_id)
        if previous is not None:
            self._replace_comment(post_id, comment_id, likes=max(0, previous.likes + (-1 if is_liked else 1)))

        likes = await self.store.like_comment(post_id, comment_id, is_liked)
        if likes is None:
            logger.warning(f"Updating likes on comment {comment_id} failed, dropped local change")
            if previous is not None:
                self._replace_comment(post_id, comment_id, likes=previous.likes)
            return False

        self._replace_comment(post_id, comment_id, likes=likes)
        return True

    def _find_comment(self, post_id: str, comment_id: str) -> Optional[Comment]:
        for comment in self.comments.get(post_id, []):
            if comment.id == comment_id:
                return comment
        return None

    def _replace_comment(self, post_id: str, comment_id: str, **updates) -> None:
        if post_id not in self.comments:
            return
        self.comments[post_id] = [
            comment.model_copy(update=updates) if comment.id == comment_id else comment
            for comment in self.comments[post_id]
        ]

    # ------------------------------------------------------------------
    # Counter projections
    # ------------------------------------------------------------------

    async def _mutate_counter(
        self,
        post_id: str,
        field: str,
        delta: int,
        call: Callable[[], Awaitable[Optional[int]]]
    ) -> bool:
        post = self.get(post_id)
        if post is None:
            return await call() is not None

        projection = self._counters.setdefault(post_id, {}).setdefault(
            field, CounterProjection(getattr(post, field))
        )
        token = projection.push(delta)
        self._patch(post_id, **{field: projection.value})

        authoritative = None
        try:
            authoritative = await call()
        finally:
            projection.resolve(token, authoritative)
            self._patch(post_id, **{field: projection.value})

        if authoritative is None:
            logger.warning(f"Updating {field} on post {post_id} failed, dropped local change")
        return authoritative is not None

    def _absorb_counters(self, post: Post) -> None:
        """Fresh server data becomes the confirmed base of existing projections."""
        for field, projection in self._counters.get(post.id, {}).items():
            projection.absorb(getattr(post, field))

    def _project(self, post: Post) -> Post:
        counters = self._counters.get(post.id)
        if not counters:
            return post
        return post.model_copy(update={field: p.value for field, p in counters.items()})


def _with_vote(poll: Poll, choice_index: int, delta: int) -> Poll:
    choices = [
        choice.model_copy(update={'votes': max(0, choice.votes + delta)}) if index == choice_index else choice
        for index, choice in enumerate(poll.choices)
    ]
    return poll.model_copy(update={'choices': choices})
