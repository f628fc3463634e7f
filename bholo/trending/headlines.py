"""Turns the ranked shortlist into headline-style trending topics."""

import time
from typing import Dict, List, Optional

from bholo.core.logging import get_logger
from bholo.core.settings import get_settings
from .llm_provider import LLMProvider
from .models import HeadlineDraft, RankedTopic, TrendingTopic
from .prompts import trending_topics_request

logger = get_logger(__name__)


def _match_key(raw_topic: str) -> str:
    """Lowercase, collapse spaces and drop a trailing ``" (N posts)"`` if the model kept it."""
    key = ' '.join(raw_topic.lower().split())
    head, sep, tail = key.rpartition(' (')
    if sep and tail.endswith(')'):
        key = head
    return key


class HeadlineSynthesizer:
    """
    Asks the generative provider for one headline per ranked topic.

    The provider sees each topic as ``"<topic> (<post_count>)"`` and echoes
    the raw topic next to its headline. Headlines are joined back to the
    ranked topics on that echo, so the model's ordering does not matter.
    Each ranked topic gets at most one headline, always with its own count;
    headlines for topics that were never asked about are dropped.
    """

    def __init__(self, provider: LLMProvider, category: Optional[str] = None):
        self.provider = provider
        self.category = category or get_settings().trending_category

    async def synthesize(self, ranked: List[RankedTopic]) -> List[TrendingTopic]:
        if not ranked:
            return []

        start_time = time.time()
        request = trending_topics_request([topic.as_prompt_line() for topic in ranked], self.category)
        response = await self.provider.run(request)

        drafts: Dict[str, HeadlineDraft] = {}
        for draft in response.topics:
            key = _match_key(draft.raw_topic)
            if key in drafts:
                logger.warning(f"Duplicate headline for '{draft.raw_topic}', keeping the first")
                continue
            drafts[key] = draft

        topics = []
        for source in ranked:
            draft = drafts.pop(source.topic, None)
            if draft is None:
                logger.warning(f"No headline came back for '{source.topic}'")
                continue
            if draft.post_count != source.post_count:
                logger.warning(
                    f"Headline '{draft.topic}' came back with '{draft.post_count}', "
                    f"using '{source.post_count}'"
                )
            topics.append(TrendingTopic(
                category=self.category,
                topic=draft.topic,
                post_count=source.post_count,
                image_hint=draft.image_hint,
            ))

        for key in drafts:
            logger.warning(f"Dropping headline for unknown topic '{key}'")

        logger.info(
            f"Synthesized {len(topics)} headlines from {len(ranked)} topics "
            f"with {self.provider.provider_name} in {time.time() - start_time:.2f}s"
        )
        return topics
