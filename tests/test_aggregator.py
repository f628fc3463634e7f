"""Tests for trending aggregation."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from bholo.core import repositories
from bholo.core.time import utcnow
from bholo.trending.aggregator import TrendingAggregator, count_topics, format_post_count, rank_topics, title_case


def test_floor_suppresses_unpopular_topics():
    ranked = rank_topics({"messi": 2, "ronaldo": 5}, min_count=3)

    assert [topic.topic for topic in ranked] == ["ronaldo"]
    assert ranked[0].count == 5


def test_post_count_formatting():
    assert format_post_count(1) == "1 post"
    assert format_post_count(2) == "2 posts"
    assert format_post_count(12) == "12 posts"
    assert format_post_count(1234) == "1,234 posts"


def test_ranked_topic_display_fields():
    ranked = rank_topics({"inter miami": 12}, min_count=3)

    assert ranked[0].display_topic == "Inter Miami"
    assert ranked[0].post_count == "12 posts"
    assert ranked[0].category == "Football · Trending"
    assert ranked[0].as_prompt_line() == "inter miami (12 posts)"


def test_ranking_orders_by_count_and_limits():
    counts = {"a1": 3, "b2": 9, "c3": 4, "d4": 7, "e5": 5, "f6": 8, "g7": 6}

    ranked = rank_topics(counts, min_count=3, limit=5)

    assert [topic.count for topic in ranked] == [9, 8, 7, 6, 5]


def test_title_case_keeps_rest_of_word():
    assert title_case("var drama") == "Var Drama"
    assert title_case("mcTominay") == "McTominay"


def test_count_topics():
    assert count_topics(["goal", "goal", "var"]) == {"goal": 2, "var": 1}


@pytest.mark.asyncio
async def test_aggregator_only_counts_the_window(session_factory, topic_store):
    async with session_factory() as session:
        await repositories.insert_topics(session, ["old news"] * 4, created_at=utcnow() - timedelta(hours=80))
    for _ in range(3):
        await topic_store.record(["ronaldo", "messi"])
    await topic_store.record(["messi"])

    ranked = await TrendingAggregator(topic_store).rank()

    assert [(topic.topic, topic.count) for topic in ranked] == [("messi", 4), ("ronaldo", 3)]


@pytest.mark.asyncio
async def test_aggregator_with_no_topics():
    topic_store = MagicMock()
    topic_store.since = AsyncMock(return_value=[])

    assert await TrendingAggregator(topic_store).rank() == []


@pytest.mark.asyncio
async def test_trending_keywords_use_display_topic():
    topic_store = MagicMock()
    topic_store.since = AsyncMock(return_value=["inter miami"] * 3 + ["goal"] * 2)

    keywords = await TrendingAggregator(topic_store).trending_keywords()

    assert len(keywords) == 1
    assert keywords[0].topic == "Inter Miami"
    assert keywords[0].post_count == "3 posts"
