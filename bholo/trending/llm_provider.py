"""
LLM provider interface and implementations for the generative features.

Provides abstraction over text completion services with structured output.
Includes a dummy provider that answers without any external API, for
development and tests.
"""

import json
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ValidationError
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from bholo.core.logging import get_logger
from bholo.core.settings import Settings, get_settings
from .prompts import PromptRequest

logger = get_logger(__name__)


class LLMProviderError(Exception):
    """The completion service failed or returned unusable output."""


class LLMUnavailableError(LLMProviderError):
    """No completion service is configured."""


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def generate(self, request: PromptRequest) -> Dict[str, Any]:
        """
        Run a prompt and return its parsed JSON output.

        Raises:
            LLMProviderError: on any failure
        """

    @abstractmethod
    async def health_check(self) -> Dict[str, Any]:
        """Check provider health and availability."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identification name."""

    async def run(self, request: PromptRequest) -> BaseModel:
        """Run a prompt and validate its output against the request's model."""
        data = await self.generate(request)
        try:
            return request.output_model.model_validate(data)
        except ValidationError as e:
            raise LLMProviderError(f"{self.provider_name} returned invalid '{request.name}' output: {e}") from e


class DummyLLMProvider(LLMProvider):
    """
    Dummy LLM provider for testing and fallback.

    Builds plausible responses straight from the prompt inputs.
    """

    HEADLINE_HINTS = ["stadium lights", "player celebrating", "manager sideline", "fans cheering"]
    HASHTAGS = ["#MatchDay", "#Football", "#TransferNews", "#DStvPrem", "#UCL", "#Soweto Derby", "#GoalOfTheWeek"]

    def __init__(self):
        self.call_count = 0
        self.total_processing_time = 0.0

    @property
    def provider_name(self) -> str:
        return "DummyLLM"

    async def health_check(self) -> Dict[str, Any]:
        """Always healthy for dummy provider."""
        return {
            "status": "healthy",
            "provider": self.provider_name,
            "calls_made": self.call_count,
            "avg_response_time": self.total_processing_time / max(self.call_count, 1),
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def generate(self, request: PromptRequest) -> Dict[str, Any]:
        start_time = time.time()
        self.call_count += 1

        if request.name == "trending_topics":
            result = self._trending_topics(request.variables['topics'], request.variables['category'])
        elif request.name == "trending_hashtags":
            count = request.variables['count']
            result = {"hashtags": [self.HASHTAGS[i % len(self.HASHTAGS)] for i in range(count)]}
        elif request.name == "bot_post":
            result = {
                "topic": "Premier League title race",
                "content": "Title race going down to the wire again! Who is lifting the trophy this season? #PremierLeague #TitleRace",
            }
        else:
            raise LLMProviderError(f"Dummy provider has no answer for prompt '{request.name}'")

        self.total_processing_time += time.time() - start_time
        return result

    def _trending_topics(self, raw_topics: List[str], category: str) -> Dict[str, Any]:
        topics = []
        for index, raw in enumerate(raw_topics):
            topic, _, count = raw.rpartition(' (')
            if not topic:
                topic, count = raw, ''
            headline = ' '.join(word.capitalize() for word in topic.split())
            topics.append({
                "category": category,
                "raw_topic": topic,
                "topic": f"{headline} has everyone talking",
                "post_count": count.rstrip(')'),
                "image_hint": self.HEADLINE_HINTS[index % len(self.HEADLINE_HINTS)],
            })
        return {"topics": topics}


class NoLLMProvider(LLMProvider):
    """
    Provider that refuses every request.

    Used when no LLM service is available or configured.
    """

    @property
    def provider_name(self) -> str:
        return "NoLLM"

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "unavailable",
            "provider": self.provider_name,
            "message": "No LLM provider configured",
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    async def generate(self, request: PromptRequest) -> Dict[str, Any]:
        raise LLMUnavailableError(f"No LLM provider available for '{request.name}'")


class OpenAIChatProvider(LLMProvider):
    """
    OpenAI-compatible chat completions with JSON-schema structured output.

    Transient HTTP failures are retried with exponential backoff before the
    error is raised as ``LLMProviderError``.
    """

    RETRYABLE_STATUS = (429, 500, 502, 503, 504)

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        settings = settings or get_settings()
        self.api_url = settings.llm_api_url
        self.api_key = settings.llm_api_key
        self.model = settings.llm_model
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(settings.llm_timeout))

    @property
    def provider_name(self) -> str:
        return f"OpenAIChat({self.model})"

    async def aclose(self) -> None:
        await self.client.aclose()

    async def health_check(self) -> Dict[str, Any]:
        return {
            "status": "configured" if self.api_key else "missing_api_key",
            "provider": self.provider_name,
            "timestamp": datetime.now(timezone.utc).isoformat()
        }

    def _build_payload(self, request: PromptRequest) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": request.render()}],
            "response_format": {
                "type": "json_schema",
                "json_schema": {
                    "name": request.name,
                    "schema": request.output_model.model_json_schema(),
                },
            },
        }

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1.0, min=1.0, max=4.0),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TimeoutException, httpx.NetworkError)),
        reraise=True
    )
    async def _post_with_retry(self, payload: Dict[str, Any]) -> httpx.Response:
        response = await self.client.post(
            self.api_url,
            json=payload,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        if response.status_code in self.RETRYABLE_STATUS:
            logger.warning(f"Completion service returned {response.status_code}, will retry")
            response.raise_for_status()
        return response

    async def generate(self, request: PromptRequest) -> Dict[str, Any]:
        start_time = time.time()
        try:
            response = await self._post_with_retry(self._build_payload(request))
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Completion request '{request.name}' failed: {e}")
            raise LLMProviderError(f"Completion request '{request.name}' failed: {e}") from e

        try:
            content = response.json()["choices"][0]["message"]["content"]
            data = json.loads(content)
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise LLMProviderError(f"Unparseable completion for '{request.name}': {e}") from e

        logger.info(f"Completion '{request.name}' finished in {time.time() - start_time:.2f}s")
        return data


class LLMProviderFactory:
    """Factory for creating LLM provider instances."""

    _providers = {
        "dummy": DummyLLMProvider,
        "nollm": NoLLMProvider,
        "openai": OpenAIChatProvider,
    }

    @classmethod
    def create_provider(cls, provider_type: str = "dummy", settings: Optional[Settings] = None) -> LLMProvider:
        """
        Create LLM provider instance.

        Args:
            provider_type: Type of provider ("dummy", "nollm", "openai")
            settings: Settings for providers that need configuration

        Returns:
            LLMProvider instance
        """
        if provider_type not in cls._providers:
            logger.warning(f"Unknown provider type: {provider_type}, falling back to dummy")
            provider_type = "dummy"

        provider_class = cls._providers[provider_type]
        if provider_class is OpenAIChatProvider:
            return provider_class(settings=settings)
        return provider_class()

    @classmethod
    def register_provider(cls, name: str, provider_class):
        """Register a new provider type."""
        cls._providers[name] = provider_class

    @classmethod
    def list_providers(cls) -> List[str]:
        """List available provider types."""
        return list(cls._providers.keys())
