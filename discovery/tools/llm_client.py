"""
LLM client factory with Perplexity-first, OpenAI-fallback strategy.

Only the optional icebreaker refinement talks to an LLM; discovery itself
(filtering, scoring, ranking) is fully deterministic.

Usage:
    from discovery.tools.llm_client import get_llm

    llm = get_llm(temperature=0.8, timeout=10)
"""

from __future__ import annotations

from typing import Literal

from langchain_openai import ChatOpenAI

from discovery.config import config
from discovery.utils.logging_config import logger

PERPLEXITY_BASE_URL = "https://api.perplexity.ai"


def get_llm(
    provider: Literal["auto", "perplexity", "openai"] = "auto",
    temperature: float = 0.7,
    timeout: int = 30,
) -> ChatOpenAI:
    """
    Get an LLM client with automatic provider fallback.

    Args:
        provider: "auto" (Perplexity if configured, else OpenAI), or an
                 explicit "perplexity" / "openai".
        temperature: LLM temperature.
        timeout: Request timeout in seconds.

    Returns:
        ChatOpenAI: Configured client (both providers speak the OpenAI API).

    Raises:
        ValueError: If no provider is configured, or the requested one is not.
    """

    if provider == "auto":
        if config.PERPLEXITY_API_KEY:
            logger.debug("Using Perplexity as LLM provider (primary)")
            return _create_perplexity_client(temperature=temperature, timeout=timeout)
        if config.OPENAI_API_KEY:
            logger.warning(
                "Perplexity API key not set; falling back to OpenAI for icebreakers"
            )
            return _create_openai_client(temperature=temperature, timeout=timeout)
        raise ValueError(
            "No LLM provider configured. "
            "Set either PERPLEXITY_API_KEY or OPENAI_API_KEY in .env"
        )

    if provider == "perplexity":
        logger.debug("Using Perplexity as LLM provider (explicit)")
        return _create_perplexity_client(temperature=temperature, timeout=timeout)

    if provider == "openai":
        logger.debug("Using OpenAI as LLM provider (explicit)")
        return _create_openai_client(temperature=temperature, timeout=timeout)

    raise ValueError(f"Unknown provider: {provider}. Use 'auto', 'perplexity', or 'openai'")


def _create_perplexity_client(temperature: float = 0.7, timeout: int = 30) -> ChatOpenAI:
    """Perplexity exposes an OpenAI-compatible endpoint, so reuse ChatOpenAI."""

    if not config.PERPLEXITY_API_KEY:
        raise ValueError("PERPLEXITY_API_KEY must be set to use Perplexity provider")

    return ChatOpenAI(
        api_key=config.PERPLEXITY_API_KEY,
        model=config.PERPLEXITY_MODEL,
        base_url=PERPLEXITY_BASE_URL,
        temperature=temperature,
        timeout=timeout,
    )


def _create_openai_client(temperature: float = 0.7, timeout: int = 30) -> ChatOpenAI:
    if not config.OPENAI_API_KEY:
        raise ValueError("OPENAI_API_KEY must be set to use OpenAI provider")

    return ChatOpenAI(
        api_key=config.OPENAI_API_KEY,
        model=config.OPENAI_MODEL,
        temperature=temperature,
        timeout=timeout,
    )


def llm_available() -> bool:
    """True when icebreaker refinement is enabled and a provider is configured."""

    return config.ICEBREAKERS_LLM_ENABLED and bool(
        config.PERPLEXITY_API_KEY or config.OPENAI_API_KEY
    )


def get_llm_provider_info() -> dict:
    """Which provider ``get_llm()`` would pick; reported by /health."""

    perplexity_available = bool(config.PERPLEXITY_API_KEY)
    openai_available = bool(config.OPENAI_API_KEY)

    if perplexity_available:
        primary = "perplexity"
    elif openai_available:
        primary = "openai"
    else:
        primary = "none"

    return {
        "icebreakers_llm_enabled": config.ICEBREAKERS_LLM_ENABLED,
        "perplexity_available": perplexity_available,
        "perplexity_model": config.PERPLEXITY_MODEL if perplexity_available else None,
        "openai_available": openai_available,
        "openai_model": config.OPENAI_MODEL if openai_available else None,
        "primary_provider": primary,
    }
