"""BHOLO feed and trending FastAPI application."""

from functools import lru_cache
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from bholo.core.db import create_all, get_session_factory
from bholo.core.logging import get_logger, setup_logging
from bholo.core.settings import get_settings
from bholo.core.time import format_timestamp
from bholo.feed.models import Comment, Poll, Post, UploadedMedia
from bholo.feed.notifier import PostNotifier
from bholo.feed.store import PostStore
from bholo.trending.aggregator import TrendingAggregator
from bholo.trending.headlines import HeadlineSynthesizer
from bholo.trending.keywords import extract_keywords
from bholo.trending.llm_provider import LLMProvider, LLMProviderError, LLMProviderFactory
from bholo.trending.models import BotPostResult, TrendingKeyword, TrendingTopic
from bholo.trending.pipeline import BotPostError, generate_bot_post, generate_trending_hashtags, get_trending_topics
from bholo.trending.topic_store import TopicStore

# Setup logging
setup_logging("api")
logger = get_logger(__name__)

app = FastAPI(title=f"{get_settings().app_name} API", version="0.1.0", description="Football feed and trending topics API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PostOut(Post):
    """Post with its relative display timestamp."""
    timestamp: str

    @classmethod
    def from_post(cls, post: Post) -> "PostOut":
        return cls(**post.model_dump(), timestamp=format_timestamp(post.created_at))


class PostPage(BaseModel):
    posts: List[PostOut]
    next_cursor: Optional[str] = Field(None, description="Id of the last post, to request the next page")


class CreatePostRequest(BaseModel):
    """A post whose media are already uploaded."""
    author_id: str
    author_name: str = "Anonymous User"
    author_handle: str = "user"
    author_avatar: Optional[str] = None
    content: str = ""
    media: List[UploadedMedia] = Field(default_factory=list)
    poll: Optional[Poll] = None
    location: Optional[str] = None
    tribe_id: Optional[str] = None
    community_id: Optional[str] = None


class CreateCommentRequest(BaseModel):
    author_id: str
    author_name: str = "Anonymous User"
    author_handle: str = "user"
    author_avatar: Optional[str] = None
    content: str = ""
    media: List[UploadedMedia] = Field(default_factory=list)


class CommentList(BaseModel):
    comments: List[Comment]


class CommentLikeRequest(BaseModel):
    is_liked: bool = Field(..., description="Whether the comment is liked before this toggle")


class CommentLikes(BaseModel):
    likes: int


class TrendingKeywordsResponse(BaseModel):
    keywords: List[TrendingKeyword]


class TrendingTopicsOut(BaseModel):
    topics: List[TrendingTopic]


class HashtagsOut(BaseModel):
    hashtags: List[str]


@lru_cache()
def get_notifier() -> PostNotifier:
    return PostNotifier(redis_url=get_settings().redis_url)


def get_post_store() -> PostStore:
    settings = get_settings()
    return PostStore(
        get_session_factory(),
        notifier=get_notifier(),
        exclude_author_ids=settings.excluded_author_ids,
    )


def get_topic_store() -> TopicStore:
    return TopicStore(get_session_factory())


@lru_cache()
def get_llm_provider() -> LLMProvider:
    settings = get_settings()
    return LLMProviderFactory.create_provider(settings.llm_provider, settings=settings)


def _page(posts: List[Post]) -> PostPage:
    return PostPage(
        posts=[PostOut.from_post(post) for post in posts],
        next_cursor=posts[-1].id if posts else None,
    )


@app.get("/healthz")
async def health_check(provider: LLMProvider = Depends(get_llm_provider)):
    """Health check endpoint."""
    return {"status": "ok", "service": "api", "llm": await provider.health_check()}


@app.get("/posts", response_model=PostPage)
async def list_posts(
    limit: int = Query(20, ge=1, le=100),
    cursor: Optional[str] = None,
    store: PostStore = Depends(get_post_store)
):
    """Recent posts, newest first. An empty page can also mean the read failed."""
    return _page(await store.get_page(cursor=cursor, limit=limit))


@app.get("/posts/videos", response_model=PostPage)
async def list_video_posts(
    limit: int = Query(10, ge=1, le=50),
    cursor: Optional[str] = None,
    store: PostStore = Depends(get_post_store)
):
    return _page(await store.get_video_page(cursor=cursor, limit=limit))


@app.get("/posts/{post_id}", response_model=PostOut)
async def get_post(post_id: str, store: PostStore = Depends(get_post_store)):
    post = await store.get_by_id(post_id)
    if post is None:
        raise HTTPException(status_code=404, detail=f"Post {post_id} not found")
    return PostOut.from_post(post)


@app.post("/posts", response_model=PostOut, status_code=201)
async def create_post(
    request: CreatePostRequest,
    store: PostStore = Depends(get_post_store),
    topic_store: TopicStore = Depends(get_topic_store)
):
    """Save a post and record the topics it mentions."""
    content = request.content.strip()
    if not content and not request.media and request.poll is None:
        raise HTTPException(status_code=422, detail="A post needs text, media or a poll")

    document = request.model_dump(mode="json", exclude={"media"})
    document.update(
        content=content,
        media=[item.model_dump(mode="json", exclude={"state"}) for item in request.media],
        likes=0, reposts=0, comments=0, views=0,
    )

    post_id = await store.create(document)
    post = await store.get_by_id(post_id) if post_id else None
    if post is None:
        raise HTTPException(status_code=500, detail="Post could not be saved")

    if content:
        await topic_store.record(extract_keywords(content))
    return PostOut.from_post(post)


@app.get("/posts/{post_id}/comments", response_model=CommentList)
async def list_comments(
    post_id: str,
    limit: int = Query(50, ge=1, le=200),
    store: PostStore = Depends(get_post_store)
):
    """Comments on a post, oldest first."""
    return CommentList(comments=await store.get_comments(post_id, limit=limit))


@app.post("/posts/{post_id}/comments", response_model=Comment, status_code=201)
async def create_comment(
    post_id: str,
    request: CreateCommentRequest,
    store: PostStore = Depends(get_post_store)
):
    content = request.content.strip()
    if not content and not request.media:
        raise HTTPException(status_code=422, detail="A comment needs text or media")
    if await store.get_by_id(post_id) is None:
        raise HTTPException(status_code=404, detail=f"Post {post_id} not found")

    document = request.model_dump(mode="json", exclude={"media"})
    document.update(
        content=content,
        media=[item.model_dump(mode="json", exclude={"state"}) for item in request.media],
    )
    result = await store.add_comment(post_id, document)
    if result is None:
        raise HTTPException(status_code=500, detail="Comment could not be saved")
    return result[0]


@app.post("/posts/{post_id}/comments/{comment_id}/like", response_model=CommentLikes)
async def like_comment(
    post_id: str,
    comment_id: str,
    request: CommentLikeRequest,
    store: PostStore = Depends(get_post_store)
):
    likes = await store.like_comment(post_id, comment_id, request.is_liked)
    if likes is None:
        raise HTTPException(status_code=404, detail=f"Comment {comment_id} not found")
    return CommentLikes(likes=likes)


@app.get("/users/{user_id}/following/posts", response_model=PostPage)
async def list_following_posts(
    user_id: str,
    limit: int = Query(50, ge=1, le=100),
    cursor: Optional[str] = None,
    store: PostStore = Depends(get_post_store)
):
    """Posts by followed users and by the user itself, newest first."""
    return _page(await store.get_following_page(user_id, cursor=cursor, limit=limit))


@app.put("/users/{user_id}/following/{followed_id}", status_code=204)
async def follow_user(user_id: str, followed_id: str, store: PostStore = Depends(get_post_store)):
    if not await store.set_follow(user_id, followed_id, True):
        raise HTTPException(status_code=500, detail="Follow could not be saved")


@app.delete("/users/{user_id}/following/{followed_id}", status_code=204)
async def unfollow_user(user_id: str, followed_id: str, store: PostStore = Depends(get_post_store)):
    if not await store.set_follow(user_id, followed_id, False):
        raise HTTPException(status_code=500, detail="Unfollow could not be saved")


@app.get("/trending/keywords", response_model=TrendingKeywordsResponse)
async def trending_keywords(
    limit: Optional[int] = Query(None, ge=1, le=50),
    topic_store: TopicStore = Depends(get_topic_store)
):
    """Ranked trending keywords without any generative step."""
    aggregator = TrendingAggregator(topic_store)
    return TrendingKeywordsResponse(keywords=await aggregator.trending_keywords(limit))


@app.get("/trending/topics", response_model=TrendingTopicsOut)
async def trending_topics(
    limit: Optional[int] = Query(None, ge=1, le=50),
    topic_store: TopicStore = Depends(get_topic_store),
    provider: LLMProvider = Depends(get_llm_provider)
):
    """Headline-style trending topics."""
    aggregator = TrendingAggregator(topic_store)
    synthesizer = HeadlineSynthesizer(provider)
    try:
        topics = await get_trending_topics(aggregator, synthesizer, limit)
    except LLMProviderError as e:
        logger.error(f"Trending topic synthesis failed: {e}")
        raise HTTPException(status_code=503, detail="Trending topics are unavailable right now")
    return TrendingTopicsOut(topics=topics)


@app.get("/trending/hashtags", response_model=HashtagsOut)
async def trending_hashtags(
    limit: int = Query(5, ge=1, le=20),
    provider: LLMProvider = Depends(get_llm_provider)
):
    try:
        hashtags = await generate_trending_hashtags(provider, limit)
    except LLMProviderError as e:
        logger.error(f"Hashtag generation failed: {e}")
        raise HTTPException(status_code=503, detail="Trending hashtags are unavailable right now")
    return HashtagsOut(hashtags=hashtags)


@app.post("/bot/posts", response_model=BotPostResult, status_code=201)
async def create_bot_post(
    store: PostStore = Depends(get_post_store),
    topic_store: TopicStore = Depends(get_topic_store),
    provider: LLMProvider = Depends(get_llm_provider)
):
    """Have the bot author generate and publish a post."""
    try:
        return await generate_bot_post(provider, store, topic_store)
    except LLMProviderError as e:
        logger.error(f"Bot post generation failed: {e}")
        raise HTTPException(status_code=503, detail="Bot post generation is unavailable right now")
    except BotPostError as e:
        logger.error(str(e))
        raise HTTPException(status_code=500, detail="Bot post could not be saved")


@app.on_event("startup")
async def startup_event():
    settings = get_settings()
    await create_all()
    await get_notifier().connect()
    logger.info(
        "Starting BHOLO API",
        extra={"environment": settings.environment, "llm_provider": settings.llm_provider}
    )


@app.on_event("shutdown")
async def shutdown_event():
    await get_notifier().close()
    logger.info("Shutting down BHOLO API")


if __name__ == "__main__":
    settings = get_settings()
    logger.info("Starting BHOLO API via uvicorn")
    uvicorn.run(
        "bholo.api.app:app",
        host=settings.service_host,
        port=settings.service_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
