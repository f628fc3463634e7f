"""Database models for BHOLO."""
from sqlalchemy import (
    String, DateTime, Text, Integer, ForeignKey, JSON, Index
)
from sqlalchemy.orm import mapped_column

from .db import Base

class PostRecord(Base):
    """Posts table. Author fields are a snapshot taken at creation time."""
    __tablename__ = "posts"

    id = mapped_column(String(64), primary_key=True)
    author_id = mapped_column(String(128), nullable=False, index=True)
    author_name = mapped_column(String(200), nullable=False)
    author_handle = mapped_column(String(100), nullable=False)
    author_avatar = mapped_column(String(1000), nullable=True)
    content = mapped_column(Text, nullable=False, default="")
    created_at = mapped_column(DateTime(timezone=True), nullable=False, index=True)  # UTC, store assigned
    media = mapped_column(JSON, nullable=False, default=list)  # [{url, type, width, height}]
    poll = mapped_column(JSON, nullable=True)  # {choices: [{text, votes}]}
    likes = mapped_column(Integer, default=0, nullable=False)
    reposts = mapped_column(Integer, default=0, nullable=False)
    comments = mapped_column(Integer, default=0, nullable=False)
    views = mapped_column(Integer, default=0, nullable=False)
    tribe_id = mapped_column(String(64), nullable=True, index=True)
    community_id = mapped_column(String(64), nullable=True, index=True)
    location = mapped_column(String(200), nullable=True)

class TopicRecord(Base):
    """Append-only keyword mentions, one per distinct keyword per post."""
    __tablename__ = "topics"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    topic = mapped_column(String(200), nullable=False, index=True)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, index=True)

class PostLike(Base):
    """Which users liked which posts."""
    __tablename__ = "post_likes"

    user_id = mapped_column(String(128), primary_key=True)
    post_id = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)

class Bookmark(Base):
    """Per-user bookmarked posts."""
    __tablename__ = "bookmarks"

    user_id = mapped_column(String(128), primary_key=True)
    post_id = mapped_column(String(64), primary_key=True)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)


class CommentRecord(Base):
    """Replies to a post. Author fields are a snapshot, like on posts."""
    __tablename__ = "comments"

    id = mapped_column(String(64), primary_key=True)
    post_id = mapped_column(ForeignKey("posts.id", ondelete="CASCADE"), nullable=False)
    author_id = mapped_column(String(128), nullable=False)
    author_name = mapped_column(String(200), nullable=False)
    author_handle = mapped_column(String(100), nullable=False)
    author_avatar = mapped_column(String(1000), nullable=True)
    content = mapped_column(Text, nullable=False, default="")
    media = mapped_column(JSON, nullable=False, default=list)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)
    likes = mapped_column(Integer, default=0, nullable=False)  # not tracked per user

class Follow(Base):
    """Who follows whom."""
    __tablename__ = "follows"

    user_id = mapped_column(String(128), primary_key=True)
    followed_id = mapped_column(String(128), primary_key=True)
    created_at = mapped_column(DateTime(timezone=True), nullable=False)

Index('idx_posts_created_id_desc', PostRecord.created_at.desc(), PostRecord.id.desc())
Index('idx_topics_created_topic', TopicRecord.created_at, TopicRecord.topic)
Index('idx_comments_post_created', CommentRecord.post_id, CommentRecord.created_at)
