"""Shared fixtures: a throwaway SQLite database per test and seeded posts."""

from datetime import datetime, timedelta
from typing import List, Optional

import pytest
import pytest_asyncio

from bholo.core.db import create_all, create_engine_for, create_session_factory
from bholo.core.models import PostRecord
from bholo.core.time import utcnow
from bholo.feed.models import Author, MediaType
from bholo.feed.store import PostStore
from bholo.trending.topic_store import TopicStore


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'bholo.db'}")
    await create_all(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def store(session_factory):
    return PostStore(session_factory)


@pytest.fixture
def topic_store(session_factory):
    return TopicStore(session_factory)


@pytest.fixture
def viewer():
    return Author(user_id="user-viewer", name="Sipho Ndlovu", handle="sipho")


@pytest.fixture
def seed_posts(session_factory):
    """Insert posts with explicit timestamps; index 0 is the newest."""

    async def _seed(
        count: int,
        prefix: str = "post",
        author_id: str = "user-author",
        start: Optional[datetime] = None,
        video_every: int = 0
    ) -> List[str]:
        start = start or utcnow()
        ids = []
        async with session_factory() as session:
            for i in range(count):
                post_id = f"{prefix}-{i:03d}"
                media = []
                if video_every and i % video_every == 0:
                    media = [{"url": f"https://cdn.example.com/{post_id}.mp4", "type": MediaType.VIDEO.value}]
                session.add(PostRecord(
                    id=post_id,
                    author_id=author_id,
                    author_name="Author",
                    author_handle="author",
                    content=f"Post number {i}",
                    created_at=start - timedelta(minutes=i),
                    media=media,
                    likes=0,
                    reposts=0,
                    comments=0,
                    views=0,
                ))
                ids.append(post_id)
            await session.commit()
        return ids

    return _seed
