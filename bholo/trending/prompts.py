"""Prompt templates for the generative features.

Templates are rendered with ``str.format``; list inputs are joined into
bullet lines before rendering.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Type

from pydantic import BaseModel

from .models import BotPostResponse, TrendingHashtagsResponse, TrendingTopicsResponse

TRENDING_TOPICS_TEMPLATE = """You are a social media expert for a football-focused platform. You are given a list of raw trending topics, each with its real post count.

Your task is to process this list into engaging, headline-style conversations. You must generate a headline for each raw topic provided.

For each topic, you must:
- Use the category "{category}".
- Create a short, engaging topic headline based on the raw topic. For example, for "messi retirement", a good headline is "Messi's shock retirement". For "haaland man utd", a good headline would be "Haaland to Manchester United?".
- Use the post count given in parentheses exactly as written. For example, if the input is "ronaldo hat-trick (123 posts)", the post_count MUST be "123 posts". Never invent a different count.
- Copy the raw topic, without the count in parentheses, into "raw_topic" exactly as written. For "ronaldo hat-trick (123 posts)" the raw_topic is "ronaldo hat-trick".
- Provide a concise one or two word image hint for a relevant background image. Examples: "player celebrating", "stadium lights", "manager sideline".

Raw Topics:
{topics}
"""

TRENDING_HASHTAGS_TEMPLATE = """You are a social media manager for a football-focused platform.

Generate {count} trending and relevant hashtags about current football news, matches, or discussions. Each hashtag must start with a #.
"""

BOT_POST_TEMPLATE = """You are an AI bot for a football social media platform called BHOLO. Your personality is enthusiastic and knowledgeable.

Generate a new, random, and engaging post about football. It can be about a recent match, a player debate, a transfer rumor, or a general football topic.

Create a topic and then write a short post (under 280 characters) with relevant hashtags.
"""


@dataclass
class PromptRequest:
    """A named prompt, its inputs and the model its output must satisfy."""
    name: str
    template: str
    output_model: Type[BaseModel]
    variables: Dict[str, Any] = field(default_factory=dict)

    def render(self) -> str:
        rendered = {
            key: '\n'.join(f"- {item}" for item in value) if isinstance(value, list) else value
            for key, value in self.variables.items()
        }
        return self.template.format(**rendered)


def trending_topics_request(raw_topics: List[str], category: str) -> PromptRequest:
    return PromptRequest(
        name="trending_topics",
        template=TRENDING_TOPICS_TEMPLATE,
        output_model=TrendingTopicsResponse,
        variables={'topics': list(raw_topics), 'category': category},
    )


def trending_hashtags_request(count: int) -> PromptRequest:
    return PromptRequest(
        name="trending_hashtags",
        template=TRENDING_HASHTAGS_TEMPLATE,
        output_model=TrendingHashtagsResponse,
        variables={'count': count},
    )


def bot_post_request() -> PromptRequest:
    return PromptRequest(
        name="bot_post",
        template=BOT_POST_TEMPLATE,
        output_model=BotPostResponse,
    )
