"""
Pydantic models for posts as the feed sees them.

Media items are a tagged union: a ``PendingMedia`` still points at a local
preview, an ``UploadedMedia`` carries the durable remote URL. Consumers must
handle both states explicitly.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator


class MediaType(str, Enum):
    """Kinds of media a post can carry."""
    IMAGE = "image"
    VIDEO = "video"
    GIF = "gif"
    STICKER = "sticker"


class PendingMedia(BaseModel):
    """Media still uploading; only a local preview URL exists."""
    state: Literal["pending"] = "pending"
    local_url: str
    type: MediaType


class UploadedMedia(BaseModel):
    """Media stored remotely."""
    state: Literal["uploaded"] = "uploaded"
    url: str
    type: MediaType
    width: Optional[int] = None
    height: Optional[int] = None


MediaItem = Annotated[Union[PendingMedia, UploadedMedia], Field(discriminator="state")]


class PollChoice(BaseModel):
    text: str
    votes: int = Field(default=0, ge=0)


class Poll(BaseModel):
    choices: List[PollChoice] = Field(default_factory=list)


class PostStatus(str, Enum):
    """Cache entry lifecycle: provisional until the store confirms it."""
    PROVISIONAL = "provisional"
    CONFIRMED = "confirmed"


class Author(BaseModel):
    """Author snapshot copied onto every post."""
    user_id: str
    name: str = "Anonymous User"
    handle: str = "user"
    avatar: str = "https://placehold.co/40x40.png"


class Post(BaseModel):
    """A unit of user content."""
    id: str
    author_id: str
    author_name: str
    author_handle: str
    author_avatar: Optional[str] = None
    content: str = ""
    created_at: datetime
    media: List[MediaItem] = Field(default_factory=list)
    poll: Optional[Poll] = None
    likes: int = Field(default=0, ge=0)
    reposts: int = Field(default=0, ge=0)
    comments: int = Field(default=0, ge=0)
    views: int = Field(default=0, ge=0)
    tribe_id: Optional[str] = None
    community_id: Optional[str] = None
    location: Optional[str] = None
    status: PostStatus = PostStatus.CONFIRMED

    @property
    def has_video(self) -> bool:
        return any(item.type == MediaType.VIDEO for item in self.media)


class MediaUpload(BaseModel):
    """
    One media attachment on a draft.

    ``data`` holds the bytes to upload. Items that are already hosted remotely
    (externally-hosted GIFs and stickers) set ``remote_url`` instead and are
    never re-uploaded.
    """
    type: MediaType
    preview_url: str = ""
    filename: str = "upload"
    content_type: str = "application/octet-stream"
    data: Optional[bytes] = None
    remote_url: Optional[str] = None
    width: Optional[int] = None
    height: Optional[int] = None

    @property
    def is_remote(self) -> bool:
        return self.remote_url is not None


class PostDraft(BaseModel):
    """What a user submits when creating a post."""
    content: str = ""
    media: List[MediaUpload] = Field(default_factory=list)
    poll: Optional[Poll] = None
    location: Optional[str] = None
    tribe_id: Optional[str] = None
    community_id: Optional[str] = None

    @field_validator('content')
    @classmethod
    def strip_content(cls, v):
        return v.strip()


class Comment(BaseModel):
    """A reply under a post."""
    id: str
    post_id: str
    author_id: str
    author_name: str
    author_handle: str
    author_avatar: Optional[str] = None
    content: str = ""
    media: List[UploadedMedia] = Field(default_factory=list)
    created_at: datetime
    likes: int = Field(default=0, ge=0)


class CommentDraft(BaseModel):
    content: str = ""
    media: List[MediaUpload] = Field(default_factory=list)

    @field_validator('content')
    @classmethod
    def strip_content(cls, v):
        return v.strip()
