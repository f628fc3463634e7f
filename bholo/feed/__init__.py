"""Feed synchronization package.

This package contains modules for:
- Post, comment, media and poll models (models.py)
- Post store adapter over the database (store.py)
- Session feed cache with optimistic updates and prefetch (cache.py)
- New post notifications (notifier.py)
- Live "new posts" watcher (watcher.py)
"""

from .models import (
    Author, Comment, CommentDraft, MediaType, MediaUpload, PendingMedia, Poll, PollChoice, Post, PostDraft,
    PostStatus, UploadedMedia
)
from .store import PostStore
from .cache import CounterProjection, FeedCache
from .notifier import PostNotifier, poll_latest
from .watcher import LiveUpdateWatcher

__all__ = [
    # Models
    'Author',
    'Comment',
    'CommentDraft',
    'MediaType',
    'MediaUpload',
    'PendingMedia',
    'Poll',
    'PollChoice',
    'Post',
    'PostDraft',
    'PostStatus',
    'UploadedMedia',

    # Store and cache
    'PostStore',
    'CounterProjection',
    'FeedCache',

    # Live updates
    'PostNotifier',
    'poll_latest',
    'LiveUpdateWatcher',
]
