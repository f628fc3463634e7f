"""Tests for the generative providers."""

import json
from unittest.mock import AsyncMock, MagicMock, Mock

import httpx
import pytest

from bholo.core.settings import Settings
from bholo.trending.llm_provider import (
    DummyLLMProvider,
    LLMProviderError,
    LLMProviderFactory,
    LLMUnavailableError,
    NoLLMProvider,
    OpenAIChatProvider,
)
from bholo.trending.models import TrendingHashtagsResponse, TrendingTopicsResponse
from bholo.trending.prompts import PromptRequest, trending_hashtags_request, trending_topics_request


def completion(payload):
    response = Mock()
    response.status_code = 200
    response.json = Mock(return_value={"choices": [{"message": {"content": json.dumps(payload)}}]})
    response.raise_for_status = Mock()
    return response


def error_response(status_code):
    response = Mock()
    response.status_code = status_code
    response.raise_for_status = Mock(side_effect=httpx.HTTPStatusError(
        f"{status_code}", request=Mock(), response=Mock(status_code=status_code)
    ))
    return response


@pytest.fixture
def settings():
    return Settings(llm_api_key="test-key", llm_model="gpt-test")


def test_prompt_renders_topics_as_bullets():
    request = trending_topics_request(["messi (4 posts)", "var (3 posts)"], "Football · Trending")

    rendered = request.render()

    assert "- messi (4 posts)\n- var (3 posts)" in rendered
    assert 'Use the category "Football · Trending"' in rendered


@pytest.mark.asyncio
async def test_dummy_echoes_counts():
    provider = DummyLLMProvider()
    request = trending_topics_request(["inter miami (12 posts)"], "Football · Trending")

    response = await provider.run(request)

    assert isinstance(response, TrendingTopicsResponse)
    assert response.topics[0].post_count == "12 posts"
    assert response.topics[0].category == "Football · Trending"
    assert provider.call_count == 1


@pytest.mark.asyncio
async def test_dummy_hashtags_are_normalized():
    response = await DummyLLMProvider().run(trending_hashtags_request(7))

    assert len(response.hashtags) == 7
    assert all(tag.startswith("#") for tag in response.hashtags)
    assert "#SowetoDerby" in response.hashtags


@pytest.mark.asyncio
async def test_dummy_rejects_unknown_prompt():
    request = PromptRequest(name="unknown", template="", output_model=TrendingHashtagsResponse)

    with pytest.raises(LLMProviderError):
        await DummyLLMProvider().generate(request)


@pytest.mark.asyncio
async def test_no_provider_is_unavailable():
    provider = NoLLMProvider()

    with pytest.raises(LLMUnavailableError):
        await provider.run(trending_hashtags_request(3))

    health = await provider.health_check()
    assert health["status"] == "unavailable"


@pytest.mark.asyncio
async def test_invalid_output_raises_provider_error():
    provider = DummyLLMProvider()
    provider.generate = AsyncMock(return_value={"topics": [{"topic": "no category"}]})

    with pytest.raises(LLMProviderError):
        await provider.run(trending_topics_request(["goal (3 posts)"], "Football · Trending"))


@pytest.mark.asyncio
async def test_openai_provider_requests_structured_output(settings):
    client = MagicMock()
    client.post = AsyncMock(return_value=completion({"hashtags": ["#UCL", "MatchDay"]}))
    provider = OpenAIChatProvider(settings=settings, client=client)

    response = await provider.run(trending_hashtags_request(2))

    assert response.hashtags == ["#UCL", "#MatchDay"]
    call_kwargs = client.post.call_args[1]
    assert call_kwargs["headers"]["Authorization"] == "Bearer test-key"
    assert call_kwargs["json"]["model"] == "gpt-test"
    assert call_kwargs["json"]["response_format"]["json_schema"]["name"] == "trending_hashtags"
    assert "Generate 2 trending" in call_kwargs["json"]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_openai_provider_retries_server_errors(settings):
    client = MagicMock()
    client.post = AsyncMock(side_effect=[error_response(503), completion({"hashtags": ["#UCL"]})])
    provider = OpenAIChatProvider(settings=settings, client=client)

    data = await provider.generate(trending_hashtags_request(1))

    assert data == {"hashtags": ["#UCL"]}
    assert client.post.await_count == 2


@pytest.mark.asyncio
async def test_openai_provider_client_error_is_not_retried(settings):
    client = MagicMock()
    client.post = AsyncMock(return_value=error_response(400))
    provider = OpenAIChatProvider(settings=settings, client=client)

    with pytest.raises(LLMProviderError):
        await provider.generate(trending_hashtags_request(1))

    assert client.post.await_count == 1


@pytest.mark.asyncio
async def test_openai_provider_unparseable_content(settings):
    response = completion({})
    response.json = Mock(return_value={"choices": []})
    client = MagicMock()
    client.post = AsyncMock(return_value=response)
    provider = OpenAIChatProvider(settings=settings, client=client)

    with pytest.raises(LLMProviderError):
        await provider.generate(trending_hashtags_request(1))


def test_factory_falls_back_to_dummy():
    assert isinstance(LLMProviderFactory.create_provider("dummy"), DummyLLMProvider)
    assert isinstance(LLMProviderFactory.create_provider("nollm"), NoLLMProvider)
    assert isinstance(LLMProviderFactory.create_provider("does-not-exist"), DummyLLMProvider)
    assert set(LLMProviderFactory.list_providers()) >= {"dummy", "nollm", "openai"}


def test_factory_creates_configured_openai_provider(settings):
    provider = LLMProviderFactory.create_provider("openai", settings=settings)

    assert isinstance(provider, OpenAIChatProvider)
    assert provider.provider_name == "OpenAIChat(gpt-test)"


def test_factory_registers_new_providers():
    class EchoProvider(DummyLLMProvider):
        @property
        def provider_name(self) -> str:
            return "Echo"

    LLMProviderFactory.register_provider("echo", EchoProvider)
    try:
        assert LLMProviderFactory.create_provider("echo").provider_name == "Echo"
    finally:
        LLMProviderFactory._providers.pop("echo")
