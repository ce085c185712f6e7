"""
ChatMimic Sync Worker — LLM Provider Abstraction.

Single public function `complete()` that routes to the configured provider.
Provider is selected at startup via the LLM_PROVIDER env var.
Supports: groq (default), openai, anthropic, gemini.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

# Type alias for provider implementations
_ProviderFn = Callable[[str, str, str, str, int, float], Awaitable[str]]

GROQ_BASE_URL = "https://api.groq.com/openai/v1"

# ---------------------------------------------------------------------------
# Provider implementations
# ---------------------------------------------------------------------------


async def _complete_openai_compatible(
    api_key: str,
    model: str,
    system: str,
    user_message: str,
    max_tokens: int,
    temperature: float,
    base_url: str | None = None,
) -> str:
    from openai import AsyncOpenAI

    client = AsyncOpenAI(api_key=api_key, base_url=base_url)
    response = await client.chat.completions.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        messages=[
            {"role": "system", "content": system},
            {"role": "user", "content": user_message},
        ],
    )
    return response.choices[0].message.content or ""


async def _complete_groq(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int, temperature: float,
) -> str:
    return await _complete_openai_compatible(
        api_key, model, system, user_message, max_tokens, temperature, base_url=GROQ_BASE_URL,
    )


async def _complete_openai(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int, temperature: float,
) -> str:
    return await _complete_openai_compatible(
        api_key, model, system, user_message, max_tokens, temperature,
    )


async def _complete_anthropic(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int, temperature: float,
) -> str:
    import anthropic

    client = anthropic.AsyncAnthropic(api_key=api_key)
    response = await client.messages.create(
        model=model,
        max_tokens=max_tokens,
        temperature=temperature,
        system=system,
        messages=[{"role": "user", "content": user_message}],
    )
    return response.content[0].text


async def _complete_gemini(
    api_key: str, model: str, system: str, user_message: str, max_tokens: int, temperature: float,
) -> str:
    import google.generativeai as genai

    genai.configure(api_key=api_key)
    gm = genai.GenerativeModel(
        model_name=model,
        system_instruction=system,
    )
    response = await gm.generate_content_async(
        user_message,
        generation_config=genai.types.GenerationConfig(
            max_output_tokens=max_tokens,
            temperature=temperature,
        ),
    )
    return response.text


# ---------------------------------------------------------------------------
# Provider selection (runs once at first call)
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, tuple[_ProviderFn, str]] = {
    "groq":      (_complete_groq,      "llama-3.3-70b-versatile"),
    "openai":    (_complete_openai,    "gpt-4o-mini"),
    "anthropic": (_complete_anthropic, "claude-haiku-4-5-20251001"),
    "gemini":    (_complete_gemini,    "gemini-2.0-flash"),
}


def _select_provider() -> tuple[_ProviderFn, str, str]:
    """Read settings and return (provider_fn, model, api_key)."""
    from chatmimic.config import settings

    provider_name = settings.LLM_PROVIDER.lower()
    if provider_name not in _PROVIDERS:
        raise ValueError(
            f"Unknown LLM_PROVIDER={provider_name!r}. "
            f"Supported: {', '.join(_PROVIDERS)}"
        )

    fn, default_model = _PROVIDERS[provider_name]
    model = settings.LLM_MODEL or default_model
    api_key = settings.LLM_API_KEY

    logger.info("LLM provider: %s, model: %s", provider_name, model)
    return fn, model, api_key


# Lazy singleton, populated on first call to complete()
_provider_fn: _ProviderFn | None = None
_model: str = ""
_api_key: str = ""


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def complete(
    system: str,
    user_message: str,
    max_tokens: int = 1024,
    temperature: float = 0.0,
) -> str:
    """Send a prompt to the configured LLM provider and return the response text.

    Raises on API errors — callers should handle exceptions.
    """
    global _provider_fn, _model, _api_key

    if _provider_fn is None:
        _provider_fn, _model, _api_key = _select_provider()

    return await _provider_fn(_api_key, _model, system, user_message, max_tokens, temperature)
