"""Post store adapter.

Wraps the ``posts`` collection and its comments behind create, read and
paginate operations. Every database error is caught here, logged and turned
into an empty result, so an empty page can mean either "no more posts" or
"the read failed".
"""

import uuid
from typing import Any, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from bholo.core import repositories
from bholo.core.logging import get_logger
from bholo.core.models import CommentRecord, PostRecord
from bholo.core.time import normalize_timezone
from bholo.feed.models import Comment, Poll, Post, PostStatus, UploadedMedia

logger = get_logger(__name__)

# Underlying pages scanned when collecting video posts
MAX_VIDEO_SCAN_PAGES = 5


def record_to_post(record: PostRecord) -> Post:
    """Convert a stored row into a confirmed Post."""
    return Post(
        id=record.id,
        author_id=record.author_id,
        author_name=record.author_name,
        author_handle=record.author_handle,
        author_avatar=record.author_avatar,
        content=record.content or "",
        created_at=normalize_timezone(record.created_at),
        media=[UploadedMedia(**item) for item in (record.media or [])],
        poll=Poll(**record.poll) if record.poll else None,
        likes=record.likes,
        reposts=record.reposts,
        comments=record.comments,
        views=record.views,
        tribe_id=record.tribe_id,
        community_id=record.community_id,
        location=record.location,
        status=PostStatus.CONFIRMED,
    )


def record_to_comment(record: CommentRecord) -> Comment:
    return Comment(
        id=record.id,
        post_id=record.post_id,
        author_id=record.author_id,
        author_name=record.author_name,
        author_handle=record.author_handle,
        author_avatar=record.author_avatar,
        content=record.content or "",
        media=[UploadedMedia(**item) for item in (record.media or [])],
        created_at=normalize_timezone(record.created_at),
        likes=record.likes,
    )


def post_to_document(post: Post) -> Dict[str, Any]:
    """
    Build the document stored for ``post``.

    Only uploaded media are persisted; pending local previews never leave
    the session that created them.
    """
    media = [
        item.model_dump(include={'url', 'type', 'width', 'height'}, mode='json')
        for item in post.media
        if isinstance(item, UploadedMedia)
    ]
    return {
        'author_id': post.author_id,
        'author_name': post.author_name,
        'author_handle': post.author_handle,
        'author_avatar': post.author_avatar,
        'content': post.content,
        'media': media,
        'poll': post.poll.model_dump() if post.poll else None,
        'likes': post.likes,
        'reposts': post.reposts,
        'comments': post.comments,
        'views': post.views,
        'tribe_id': post.tribe_id,
        'community_id': post.community_id,
        'location': post.location,
    }


class PostStore:
    """Async adapter over the posts collection."""

    def __init__(
        self,
        session_factory: async_sessionmaker,
        notifier=None,
        exclude_author_ids: Sequence[str] = ()
    ):
        self.session_factory = session_factory
        self.notifier = notifier
        self.exclude_author_ids = tuple(exclude_author_ids)

    def allocate_id(self) -> str:
        """Pre-allocate a globally unique post id."""
        return uuid.uuid4().hex

    async def create(self, document: Dict[str, Any], post_id: Optional[str] = None) -> Optional[str]:
        """
        Write a post document.

        Returns:
            The post id, or None if the write failed
        """
        post_id = post_id or self.allocate_id()
        try:
            async with self.session_factory() as session:
                record = await repositories.insert_post(session, post_id, document)
                post = record_to_post(record)
        except SQLAlchemyError as e:
            logger.error(f"Failed to create post {post_id}: {e}")
            return None

        logger.info(f"Created post {post_id} by {post.author_id}")
        if self.notifier is not None:
            await self.notifier.publish(post)
        return post_id

    async def get_by_id(self, post_id: str) -> Optional[Post]:
        try:
            async with self.session_factory() as session:
                record = await repositories.get_post(session, post_id)
                return record_to_post(record) if record else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to fetch post {post_id}: {e}")
            return None

    async def get_page(self, cursor: Optional[str] = None, limit: int = 20) -> List[Post]:
        """Posts strictly older than ``cursor``, newest first."""
        try:
            async with self.session_factory() as session:
                records = await repositories.get_posts_page(
                    session, cursor=cursor, limit=limit, exclude_author_ids=self.exclude_author_ids
                )
                return [record_to_post(record) for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching recent posts (cursor={cursor}): {e}")
            return []

    async def get_following_page(self, user_id: str, cursor: Optional[str] = None, limit: int = 50) -> List[Post]:
        """Posts by the users ``user_id`` follows and by ``user_id`` itself, newest first."""
        try:
            async with self.session_factory() as session:
                author_ids = await repositories.list_followed_ids(session, user_id)
                if user_id not in author_ids:
                    author_ids.append(user_id)
                records = await repositories.get_posts_page(
                    session, cursor=cursor, limit=limit, author_ids=author_ids
                )
                return [record_to_post(record) for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching following feed for {user_id}: {e}")
            return []

    async def set_follow(self, user_id: str, followed_id: str, following: bool) -> bool:
        try:
            async with self.session_factory() as session:
                await repositories.set_follow(session, user_id, followed_id, following)
                return True
        except SQLAlchemyError as e:
            logger.error(f"Error updating follow of {followed_id} by {user_id}: {e}")
            return False

    async def get_video_page(self, cursor: Optional[str] = None, limit: int = 10) -> List[Post]:
        """
        Posts carrying at least one video, newest first.

        Media type is not indexed, so recent pages are scanned and filtered
        until ``limit`` videos are found or the scan budget runs out.
        """
        videos: List[Post] = []
        for _ in range(MAX_VIDEO_SCAN_PAGES):
            page = await self.get_page(cursor=cursor, limit=limit)
            if not page:
                break
            videos.extend(post for post in page if post.has_video)
            if len(videos) >= limit:
                break
            cursor = page[-1].id
        return videos[:limit]

    async def update_content(self, post_id: str, content: str) -> bool:
        try:
            async with self.session_factory() as session:
                return await repositories.update_post_content(session, post_id, content)
        except SQLAlchemyError as e:
            logger.error(f"Failed to edit post {post_id}: {e}")
            return False

    async def delete(self, post_id: str) -> bool:
        try:
            async with self.session_factory() as session:
                return await repositories.delete_post(session, post_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete post {post_id}: {e}")
            return False

    async def add_vote(self, post_id: str, choice_index: int) -> Optional[Poll]:
        """Record a poll vote; returns the authoritative poll."""
        try:
            async with self.session_factory() as session:
                poll = await repositories.add_poll_vote(session, post_id, choice_index)
                return Poll(**poll) if poll else None
        except SQLAlchemyError as e:
            logger.error(f"Failed to update vote on post {post_id}: {e}")
            return None

    async def toggle_like(self, post_id: str, user_id: str, is_liked: bool) -> Optional[int]:
        """Like/unlike; returns the authoritative like count."""
        try:
            async with self.session_factory() as session:
                return await repositories.toggle_post_like(session, post_id, user_id, is_liked)
        except SQLAlchemyError as e:
            logger.error(f"Error updating likes on post {post_id}: {e}")
            return None

    async def toggle_repost(self, post_id: str, is_reposted: bool) -> Optional[int]:
        """Repost/un-repost; returns the authoritative repost count."""
        try:
            async with self.session_factory() as session:
                return await repositories.toggle_post_repost(session, post_id, is_reposted)
        except SQLAlchemyError as e:
            logger.error(f"Error updating reposts on post {post_id}: {e}")
            return None

    async def add_comment(self, post_id: str, document: Dict[str, Any]) -> Optional[Tuple[Comment, int]]:
        """
        Write a comment under ``post_id``.

        Returns:
            The stored comment and the post's new comment count, or None if
            the post is missing or the write failed
        """
        comment_id = self.allocate_id()
        try:
            async with self.session_factory() as session:
                result = await repositories.insert_comment(session, comment_id, post_id, document)
        except SQLAlchemyError as e:
            logger.error(f"Failed to comment on post {post_id}: {e}")
            return None

        if result is None:
            logger.warning(f"Cannot comment on missing post {post_id}")
            return None
        record, count = result
        return record_to_comment(record), count

    async def get_comments(self, post_id: str, limit: int = 50) -> List[Comment]:
        try:
            async with self.session_factory() as session:
                records = await repositories.list_comments(session, post_id, limit=limit)
                return [record_to_comment(record) for record in records]
        except SQLAlchemyError as e:
            logger.error(f"Error fetching comments of post {post_id}: {e}")
            return []

    async def like_comment(self, post_id: str, comment_id: str, is_liked: bool) -> Optional[int]:
        """Like/unlike a comment; returns its authoritative like count."""
        try:
            async with self.session_factory() as session:
                return await repositories.toggle_comment_like(session, post_id, comment_id, is_liked)
        except SQLAlchemyError as e:
            logger.error(f"Error updating likes on comment {comment_id}: {e}")
            return None

    async def set_bookmark(self, user_id: str, post_id: str, bookmarked: bool) -> bool:
        try:
            async with self.session_factory() as session:
                await repositories.set_bookmark(session, user_id, post_id, bookmarked)
                return True
        except SQLAlchemyError as e:
            logger.error(f"Error updating bookmark on post {post_id}: {e}")
            return False

    async def list_bookmarks(self, user_id: str) -> List[str]:
        try:
            async with self.session_factory() as session:
                return await repositories.list_bookmarked_post_ids(session, user_id)
        except SQLAlchemyError as e:
            logger.error(f"Failed to list bookmarks for {user_id}: {e}")
            return []
