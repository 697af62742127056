"""LLM chains and prompt templates for optional icebreaker refinement.

Chains use the LLM client factory (llm_client.py), which implements the
Perplexity-first, OpenAI-fallback strategy. Callers must treat every chain
failure as advisory and keep their deterministic output.
"""

from __future__ import annotations

from pydantic import BaseModel, Field
from langchain_core.output_parsers import JsonOutputParser
from langchain_core.prompts import ChatPromptTemplate

from discovery.models import Profile
from discovery.utils.logging_config import logger

MAX_ICEBREAKER_LENGTH = 200


class IcebreakerRefinement(BaseModel):
    """Output schema for icebreaker refinement."""

    icebreaker: str = Field(..., description="One friendly opening message")


def get_icebreaker_chain(llm):
    """Chain that rewrites a conversation starter for a specific candidate."""

    prompt = ChatPromptTemplate.from_template(
        """You help people on a dating app send a good first message.

Their interests: {user_interests}

Match:
Name: {name}
City: {city}
Bio: {bio}
Interests: {interests}

Draft opener: "{draft}"

Rewrite the draft into one warm, specific opening question for this match.
Keep it under 200 characters, no emojis, no pickup lines.

Respond in JSON format with a single "icebreaker" field."""
    )

    parser = JsonOutputParser(pydantic_object=IcebreakerRefinement)
    return prompt | llm | parser


def icebreaker_inputs(requester: Profile, candidate: Profile, draft: str) -> dict:
    """Prompt variables for ``get_icebreaker_chain``; no contact details."""

    return {
        "user_interests": ", ".join(requester.interests) or "unknown",
        "name": candidate.name or "unknown",
        "city": candidate.city or "unknown",
        "bio": (candidate.bio or "")[:500],
        "interests": ", ".join(candidate.interests) or "unknown",
        "draft": draft,
    }


def parse_refined_icebreaker(result: object) -> str | None:
    """Accept the chain output only if it is a usable single opener."""

    if not isinstance(result, dict):
        return None
    text = str(result.get("icebreaker") or "").strip()
    if not text or len(text) > MAX_ICEBREAKER_LENGTH:
        return None
    return text


def log_llm_error(context: str, exc: Exception) -> None:
    """Log LLM errors with context for easier debugging."""

    logger.warning("LLM error in %s: %s", context, str(exc))
