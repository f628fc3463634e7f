"""Pydantic models for trending outputs and generative responses."""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class RankedTopic(BaseModel):
    """A topic that cleared the popularity floor, with its display fields."""
    topic: str = Field(..., description="Normalized lowercase topic")
    display_topic: str = Field(..., description="Title-cased topic for display")
    count: int = Field(..., ge=1)
    post_count: str = Field(..., description='Formatted count, e.g. "12 posts"')
    category: str

    def as_prompt_line(self) -> str:
        return f"{self.topic} ({self.post_count})"


class TrendingKeyword(BaseModel):
    """LLM-free trending entry."""
    topic: str
    category: str
    post_count: str


class TrendingTopic(BaseModel):
    """Synthesized headline for one trending topic."""
    category: str
    topic: str = Field(..., description="Short headline")
    post_count: str
    image_hint: Optional[str] = Field(None, description="One or two words for a background image")


class HeadlineDraft(TrendingTopic):
    """One headline as the model returns it, tied to the raw topic it answers."""
    raw_topic: str = Field(..., description="The raw topic this headline is for, copied from the input")


class TrendingTopicsResponse(BaseModel):
    """Structured output contract of the headline prompt."""
    topics: List[HeadlineDraft] = Field(default_factory=list)


class TrendingHashtagsResponse(BaseModel):
    hashtags: List[str] = Field(default_factory=list)

    @field_validator('hashtags')
    @classmethod
    def ensure_hash_prefix(cls, v):
        tags = []
        for tag in v:
            tag = tag.strip().replace(' ', '')
            if not tag or tag == '#':
                continue
            tags.append(tag if tag.startswith('#') else f"#{tag}")
        return tags


class BotPostResponse(BaseModel):
    topic: str
    content: str = Field(..., min_length=1, max_length=280)


class BotPostResult(BaseModel):
    post_id: str
    content: str
