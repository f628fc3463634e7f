"""Repository layer for database operations.

Async CRUD over posts, comments, follows, topic mentions, likes and
bookmarks. Counter updates run inside a single transaction so concurrent
writers serialize on the row. Functions raise on failure; callers decide
how errors surface.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any, Iterable, Sequence, Tuple

from sqlalchemy import select, delete, and_, or_, desc
from sqlalchemy.ext.asyncio import AsyncSession

from bholo.core.models import PostRecord, TopicRecord, PostLike, Bookmark, CommentRecord, Follow
from bholo.core.logging import get_logger
from bholo.core.time import utcnow

logger = get_logger(__name__)

POST_FIELDS = (
    'author_id', 'author_name', 'author_handle', 'author_avatar', 'content',
    'media', 'poll', 'likes', 'reposts', 'comments', 'views',
    'tribe_id', 'community_id', 'location',
)

COMMENT_FIELDS = ('author_id', 'author_name', 'author_handle', 'author_avatar', 'content', 'media')


async def insert_post(session: AsyncSession, post_id: str, document: Dict[str, Any]) -> PostRecord:
    """
    Insert a post document under a pre-allocated id.

    ``created_at`` is always assigned here, never taken from the document.
    """
    data = {field: document[field] for field in POST_FIELDS if field in document}
    data.setdefault('content', '')
    data.setdefault('media', [])

    record = PostRecord(id=post_id, created_at=utcnow(), **data)
    session.add(record)
    await session.commit()
    await session.refresh(record)

    logger.debug(f"Inserted post {post_id} by {record.author_id}")
    return record


async def get_post(session: AsyncSession, post_id: str) -> Optional[PostRecord]:
    """Get a single post by id."""
    return await session.get(PostRecord, post_id)


async def get_posts_page(
    session: AsyncSession,
    cursor: Optional[str] = None,
    limit: int = 20,
    exclude_author_ids: Sequence[str] = (),
    author_ids: Optional[Sequence[str]] = None
) -> List[PostRecord]:
    """
    Get a page of posts, newest first.

    Args:
        session: Database session
        cursor: Id of the last post already seen; only strictly older posts
            are returned. An unknown cursor starts from the newest post.
        limit: Maximum number of posts
        exclude_author_ids: Authors filtered out of the page
        author_ids: When given, only posts by these authors

    Returns:
        List of PostRecord ordered by (created_at, id) descending
    """
    stmt = select(PostRecord)

    if cursor:
        anchor = await session.get(PostRecord, cursor)
        if anchor is None:
            logger.warning(f"Cursor {cursor} does not exist, fetching from start")
        else:
            stmt = stmt.where(
                or_(
                    PostRecord.created_at < anchor.created_at,
                    and_(PostRecord.created_at == anchor.created_at, PostRecord.id < anchor.id)
                )
            )

    if exclude_author_ids:
        stmt = stmt.where(PostRecord.author_id.notin_(list(exclude_author_ids)))
    if author_ids is not None:
        stmt = stmt.where(PostRecord.author_id.in_(list(author_ids)))

    stmt = stmt.order_by(desc(PostRecord.created_at), desc(PostRecord.id)).limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def update_post_content(session: AsyncSession, post_id: str, content: str) -> bool:
    """Replace a post's text. Returns False when the post does not exist."""
    async with session.begin():
        record = await session.get(PostRecord, post_id)
        if record is None:
            return False
        record.content = content
    return True


async def delete_post(session: AsyncSession, post_id: str) -> bool:
    """Delete a post with its likes and comments. Returns False when nothing was deleted."""
    async with session.begin():
        await session.execute(delete(PostLike).where(PostLike.post_id == post_id))
        await session.execute(delete(CommentRecord).where(CommentRecord.post_id == post_id))
        result = await session.execute(delete(PostRecord).where(PostRecord.id == post_id))
    return result.rowcount > 0


async def _locked_post(session: AsyncSession, post_id: str) -> Optional[PostRecord]:
    stmt = select(PostRecord).where(PostRecord.id == post_id).with_for_update()
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def add_poll_vote(session: AsyncSession, post_id: str, choice_index: int) -> Optional[Dict[str, Any]]:
    """
    Increment one poll choice in a transaction.

    Returns:
        The updated poll document, or None if the post or choice is missing
    """
    async with session.begin():
        record = await _locked_post(session, post_id)
        if record is None or not record.poll:
            return None

        choices = list(record.poll.get('choices', []))
        if not 0 <= choice_index < len(choices):
            return None

        choices[choice_index] = {**choices[choice_index], 'votes': choices[choice_index].get('votes', 0) + 1}
        # reassign so the JSON column is flagged dirty
        record.poll = {**record.poll, 'choices': choices}
        poll = record.poll

    return poll


async def toggle_post_like(session: AsyncSession, post_id: str, user_id: str, is_liked: bool) -> Optional[int]:
    """
    Like or unlike a post in one transaction.

    Args:
        is_liked: Whether the user currently likes the post (True unlikes)

    Returns:
        The authoritative like count, or None if the post is missing
    """
    async with session.begin():
        record = await _locked_post(session, post_id)
        if record is None:
            return None

        existing = await session.get(PostLike, (user_id, post_id))
        if is_liked:
            if existing is not None:
                await session.delete(existing)
            record.likes = max(0, record.likes - 1)
        else:
            if existing is None:
                session.add(PostLike(user_id=user_id, post_id=post_id, created_at=utcnow()))
            record.likes = record.likes + 1
        likes = record.likes

    return likes


async def toggle_post_repost(session: AsyncSession, post_id: str, is_reposted: bool) -> Optional[int]:
    """Adjust the repost counter in one transaction; returns the new count."""
    async with session.begin():
        record = await _locked_post(session, post_id)
        if record is None:
            return None
        record.reposts = max(0, record.reposts + (-1 if is_reposted else 1))
        reposts = record.reposts

    return reposts


async def insert_comment(
    session: AsyncSession,
    comment_id: str,
    post_id: str,
    document: Dict[str, Any]
) -> Optional[Tuple[CommentRecord, int]]:
    """
    Add a comment and bump the post's comment counter in one transaction.

    Returns:
        The stored comment and the post's new comment count, or None if the
        post is missing
    """
    async with session.begin():
        post = await _locked_post(session, post_id)
        if post is None:
            return None

        data = {field: document[field] for field in COMMENT_FIELDS if field in document}
        data.setdefault('content', '')
        data.setdefault('media', [])
        comment = CommentRecord(id=comment_id, post_id=post_id, created_at=utcnow(), likes=0, **data)
        session.add(comment)
        post.comments = post.comments + 1
        comments = post.comments

    logger.debug(f"Inserted comment {comment_id} on post {post_id}")
    return comment, comments


async def list_comments(session: AsyncSession, post_id: str, limit: int = 50) -> List[CommentRecord]:
    """Comments on a post, oldest first."""
    stmt = (
        select(CommentRecord)
        .where(CommentRecord.post_id == post_id)
        .order_by(CommentRecord.created_at, CommentRecord.id)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def toggle_comment_like(session: AsyncSession, post_id: str, comment_id: str, is_liked: bool) -> Optional[int]:
    """Adjust a comment's like counter (floor 0); returns the new count."""
    async with session.begin():
        stmt = (
            select(CommentRecord)
            .where(CommentRecord.id == comment_id, CommentRecord.post_id == post_id)
            .with_for_update()
        )
        record = (await session.execute(stmt)).scalar_one_or_none()
        if record is None:
            return None
        record.likes = max(0, record.likes + (-1 if is_liked else 1))
        likes = record.likes

    return likes


async def set_follow(session: AsyncSession, user_id: str, followed_id: str, following: bool) -> None:
    """Follow or unfollow; idempotent in both directions."""
    async with session.begin():
        existing = await session.get(Follow, (user_id, followed_id))
        if following and existing is None:
            session.add(Follow(user_id=user_id, followed_id=followed_id, created_at=utcnow()))
        elif not following and existing is not None:
            await session.delete(existing)


async def list_followed_ids(session: AsyncSession, user_id: str) -> List[str]:
    """Ids of the users ``user_id`` follows."""
    result = await session.execute(select(Follow.followed_id).where(Follow.user_id == user_id))
    return list(result.scalars().all())


async def set_bookmark(session: AsyncSession, user_id: str, post_id: str, bookmarked: bool) -> None:
    """Add or remove a bookmark; idempotent in both directions."""
    async with session.begin():
        existing = await session.get(Bookmark, (user_id, post_id))
        if bookmarked and existing is None:
            session.add(Bookmark(user_id=user_id, post_id=post_id, created_at=utcnow()))
        elif not bookmarked and existing is not None:
            await session.delete(existing)


async def list_bookmarked_post_ids(session: AsyncSession, user_id: str) -> List[str]:
    """Ids of posts bookmarked by ``user_id``, most recent first."""
    stmt = (
        select(Bookmark.post_id)
        .where(Bookmark.user_id == user_id)
        .order_by(desc(Bookmark.created_at))
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def insert_topics(session: AsyncSession, topics: Iterable[str], created_at: Optional[datetime] = None) -> int:
    """
    Append one topic record per keyword in a single batch.

    Returns:
        Number of records written
    """
    created_at = created_at or utcnow()
    records = [TopicRecord(topic=topic, created_at=created_at) for topic in topics]
    if not records:
        return 0

    session.add_all(records)
    await session.commit()

    logger.debug(f"Recorded {len(records)} topic mentions")
    return len(records)


async def get_topics_since(session: AsyncSession, since: datetime) -> List[str]:
    """Topic strings of every record created at or after ``since``."""
    stmt = select(TopicRecord.topic).where(TopicRecord.created_at >= since)
    result = await session.execute(stmt)
    return list(result.scalars().all())
