"""Tests for headline synthesis and the trending flows."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from bholo.trending.aggregator import TrendingAggregator, rank_topics
from bholo.trending.headlines import HeadlineSynthesizer
from bholo.trending.llm_provider import DummyLLMProvider, LLMUnavailableError, NoLLMProvider
from bholo.trending.pipeline import BotPostError, generate_bot_post, generate_trending_hashtags, get_trending_topics


@pytest.fixture
def ranked():
    return rank_topics({"inter miami": 12, "var": 4, "messi": 2}, min_count=3)


@pytest.mark.asyncio
async def test_empty_input_never_calls_provider():
    provider = AsyncMock()
    synthesizer = HeadlineSynthesizer(provider, "Football · Trending")

    assert await synthesizer.synthesize([]) == []

    provider.run.assert_not_called()
    provider.generate.assert_not_called()


@pytest.mark.asyncio
async def test_one_headline_per_topic_with_real_counts(ranked):
    synthesizer = HeadlineSynthesizer(DummyLLMProvider(), "Football · Trending")

    topics = await synthesizer.synthesize(ranked)

    assert [topic.post_count for topic in topics] == ["12 posts", "4 posts"]
    assert all(topic.category == "Football · Trending" for topic in topics)
    assert all(topic.image_hint for topic in topics)


def headline(raw_topic, topic, post_count, image_hint="fans"):
    return {
        "category": "Football · Trending",
        "raw_topic": raw_topic,
        "topic": topic,
        "post_count": post_count,
        "image_hint": image_hint,
    }


@pytest.mark.asyncio
async def test_invented_counts_are_replaced(ranked):
    provider = DummyLLMProvider()
    provider.generate = AsyncMock(return_value={"topics": [
        headline("inter miami", "Miami mania", "9,999 posts"),
        headline("var", "VAR again", "4 posts", "referee"),
    ]})

    topics = await HeadlineSynthesizer(provider, "Football · Trending").synthesize(ranked)

    assert [topic.post_count for topic in topics] == ["12 posts", "4 posts"]
    assert topics[0].topic == "Miami mania"


@pytest.mark.asyncio
async def test_reordered_headlines_keep_their_own_counts(ranked):
    provider = DummyLLMProvider()
    provider.generate = AsyncMock(return_value={"topics": [
        headline("var", "VAR again", "4 posts", "referee"),
        headline("Inter Miami (12 posts)", "Miami mania", "12 posts"),
    ]})

    topics = await HeadlineSynthesizer(provider, "Football · Trending").synthesize(ranked)

    assert [(topic.topic, topic.post_count) for topic in topics] == [
        ("Miami mania", "12 posts"),
        ("VAR again", "4 posts"),
    ]
    assert topics[1].image_hint == "referee"


@pytest.mark.asyncio
async def test_extra_and_duplicate_headlines_are_dropped(ranked):
    provider = DummyLLMProvider()
    provider.generate = AsyncMock(return_value={"topics": [
        headline("var", "VAR again", "4 posts"),
        headline("invented", "Invented", "999 posts"),
        headline("var", "VAR twice", "4 posts"),
        headline("inter miami", "Miami mania", "12 posts"),
    ]})

    topics = await HeadlineSynthesizer(provider, "Football · Trending").synthesize(ranked)

    assert [(topic.topic, topic.post_count) for topic in topics] == [
        ("Miami mania", "12 posts"),
        ("VAR again", "4 posts"),
    ]


@pytest.mark.asyncio
async def test_topic_without_headline_is_skipped(ranked):
    provider = DummyLLMProvider()
    provider.generate = AsyncMock(return_value={"topics": [
        headline("var", "VAR again", "4 posts"),
    ]})

    topics = await HeadlineSynthesizer(provider, "Other category").synthesize(ranked)

    assert [topic.topic for topic in topics] == ["VAR again"]
    assert topics[0].category == "Other category"


@pytest.mark.asyncio
async def test_prompt_lists_topics_with_counts(ranked):
    provider = DummyLLMProvider()
    provider.generate = AsyncMock(return_value={"topics": []})

    await HeadlineSynthesizer(provider, "Football · Trending").synthesize(ranked)

    request = provider.generate.await_args.args[0]
    assert request.variables["topics"] == ["inter miami (12 posts)", "var (4 posts)"]


@pytest.mark.asyncio
async def test_provider_errors_propagate(ranked):
    with pytest.raises(LLMUnavailableError):
        await HeadlineSynthesizer(NoLLMProvider(), "Football · Trending").synthesize(ranked)


@pytest.mark.asyncio
async def test_nothing_trending_skips_synthesis():
    topic_store = MagicMock()
    topic_store.since = AsyncMock(return_value=["messi", "messi"])
    synthesizer = MagicMock()
    synthesizer.synthesize = AsyncMock()

    topics = await get_trending_topics(TrendingAggregator(topic_store), synthesizer)

    assert topics == []
    synthesizer.synthesize.assert_not_called()


@pytest.mark.asyncio
async def test_trending_topics_end_to_end(topic_store):
    for _ in range(3):
        await topic_store.record(["soweto derby", "goal"])

    topics = await get_trending_topics(
        TrendingAggregator(topic_store),
        HeadlineSynthesizer(DummyLLMProvider(), "Football · Trending"),
    )

    assert len(topics) == 2
    assert all(topic.post_count == "3 posts" for topic in topics)


@pytest.mark.asyncio
async def test_hashtags_are_limited():
    hashtags = await generate_trending_hashtags(DummyLLMProvider(), 3)

    assert hashtags == ["#MatchDay", "#Football", "#TransferNews"]


@pytest.mark.asyncio
async def test_bot_post_is_saved_as_bot(store, topic_store):
    result = await generate_bot_post(DummyLLMProvider(), store, topic_store)

    post = await store.get_by_id(result.post_id)
    assert post.author_id == "bholo-bot"
    assert post.content == result.content
    assert 0 <= post.likes < 500
    assert 0 <= post.views < 5000

    topics = await topic_store.since(post.created_at)
    assert "premierleague" in topics


@pytest.mark.asyncio
async def test_bot_post_save_failure():
    store = MagicMock()
    store.create = AsyncMock(return_value=None)

    with pytest.raises(BotPostError):
        await generate_bot_post(DummyLLMProvider(), store)
