"""
Provider SDK calls.

One coroutine per provider, all on the SDKs' async clients so a cancelled
request cancels the in-flight API call instead of leaving it running in a
worker thread. Every SDK failure is re-raised as TextGenerationError naming
the provider; the router decides what the caller sees.
"""

import logging
import os
from typing import Dict, Optional, Tuple

import anthropic
import google.generativeai as genai
import openai
from google.api_core import exceptions as google_exceptions

from ..types.providers import (
    AnthropicConfig,
    GeminiConfig,
    GenerationOptions,
    GroqConfig,
    LLMProvider,
    OpenAIConfig,
    ProviderType,
)

logger = logging.getLogger(__name__)

# Seconds before a provider call is abandoned
LLM_API_TIMEOUT = int(os.environ.get("LLM_API_TIMEOUT", "60"))

_CONFIG_TYPES = {
    "anthropic": AnthropicConfig,
    "groq": GroqConfig,
    "openai": OpenAIConfig,
    "gemini": GeminiConfig,
}

# Most specific first; the first match names the failure
_OPENAI_FAILURES = (
    (openai.APITimeoutError, "request timed out"),
    (openai.AuthenticationError, "authentication failed"),
    (openai.RateLimitError, "rate limit exceeded"),
    (openai.APIConnectionError, "connection error"),
    (openai.APIStatusError, "API error"),
)
_ANTHROPIC_FAILURES = (
    (anthropic.APITimeoutError, "request timed out"),
    (anthropic.AuthenticationError, "authentication failed"),
    (anthropic.RateLimitError, "rate limit exceeded"),
    (anthropic.APIConnectionError, "connection error"),
    (anthropic.APIStatusError, "API error"),
)
_GEMINI_FAILURES = (
    (google_exceptions.DeadlineExceeded, "request timed out"),
    (google_exceptions.Unauthenticated, "authentication failed"),
    (google_exceptions.ResourceExhausted, "rate limit exceeded"),
)

_openai_clients: Dict[Tuple[str, Optional[str]], openai.AsyncOpenAI] = {}
_anthropic_clients: Dict[str, anthropic.AsyncAnthropic] = {}


class TextGenerationError(Exception):
    """A provider call failed or returned no text."""

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


def _failure(provider: str, exc: Exception, table) -> TextGenerationError:
    reason = next((label for kind, label in table if isinstance(exc, kind)), "error")
    status = getattr(exc, "status_code", None)
    if status is not None:
        reason = f"{reason} (status {status})"
    return TextGenerationError(f"{provider} {reason}: {exc}", provider=provider)


def _openai_client(api_key: str, base_url: Optional[str] = None) -> openai.AsyncOpenAI:
    key = (api_key, base_url)
    if key not in _openai_clients:
        _openai_clients[key] = openai.AsyncOpenAI(
            api_key=api_key, base_url=base_url, timeout=LLM_API_TIMEOUT
        )
    return _openai_clients[key]


def _anthropic_client(api_key: str) -> anthropic.AsyncAnthropic:
    if api_key not in _anthropic_clients:
        _anthropic_clients[api_key] = anthropic.AsyncAnthropic(api_key=api_key, timeout=LLM_API_TIMEOUT)
    return _anthropic_clients[api_key]


async def close_llm_clients() -> None:
    """Close the cached SDK clients; called when the service shuts down."""
    clients = list(_openai_clients.values()) + list(_anthropic_clients.values())
    _openai_clients.clear()
    _anthropic_clients.clear()
    for client in clients:
        try:
            await client.close()
        except (openai.OpenAIError, anthropic.AnthropicError, OSError) as e:
            logger.warning("Failed to close %s: %s", type(client).__name__, e)


async def _chat_completion(
    prompt: str,
    config: OpenAIConfig,
    options: GenerationOptions,
    service: str,
    base_url: Optional[str] = None,
) -> str:
    """OpenAI-compatible chat completion, shared by OpenAI and Groq."""
    try:
        response = await _openai_client(config.api_key, base_url).chat.completions.create(
            model=config.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=options.temperature,
            max_tokens=options.max_tokens,
            top_p=options.top_p,
            frequency_penalty=options.frequency_penalty,
            presence_penalty=options.presence_penalty,
        )
    except openai.OpenAIError as e:
        raise _failure(service, e, _OPENAI_FAILURES) from e

    if not response.choices or not response.choices[0].message.content:
        raise TextGenerationError(f"{service} returned no content", provider=service)
    return response.choices[0].message.content


async def generate_with_openai(prompt: str, config: OpenAIConfig, options: GenerationOptions) -> str:
    return await _chat_completion(prompt, config, options, service="openai")


async def generate_with_groq(prompt: str, config: GroqConfig, options: GenerationOptions) -> str:
    return await _chat_completion(prompt, config, options, service="groq", base_url=config.base_url)


async def generate_with_anthropic(
    prompt: str, config: AnthropicConfig, options: GenerationOptions
) -> str:
    try:
        response = await _anthropic_client(config.api_key).messages.create(
            model=config.model,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.AnthropicError as e:
        raise _failure("anthropic", e, _ANTHROPIC_FAILURES) from e

    text = getattr(response.content[0], "text", None) if response.content else None
    if not text:
        raise TextGenerationError("anthropic returned no content", provider="anthropic")
    return text


async def generate_with_gemini(prompt: str, config: GeminiConfig, options: GenerationOptions) -> str:
    genai.configure(api_key=config.api_key)
    model = genai.GenerativeModel(
        config.model,
        generation_config={
            "temperature": options.temperature,
            "top_p": options.top_p,
            "max_output_tokens": options.max_tokens,
        },
    )
    try:
        response = await model.generate_content_async(
            prompt, request_options={"timeout": LLM_API_TIMEOUT}
        )
        # Raises ValueError when the response was blocked by safety filters
        text = response.text
    except ValueError as e:
        raise TextGenerationError(f"gemini blocked the response: {e}", provider="gemini") from e
    except google_exceptions.GoogleAPIError as e:
        raise _failure("gemini", e, _GEMINI_FAILURES) from e

    if not text:
        raise TextGenerationError("gemini returned no content", provider="gemini")
    return text


_GENERATORS = {
    "anthropic": generate_with_anthropic,
    "groq": generate_with_groq,
    "openai": generate_with_openai,
    "gemini": generate_with_gemini,
}


async def generate_text_async(
    prompt: str,
    provider: LLMProvider,
    options: Optional[GenerationOptions] = None,
) -> str:
    """
    Generate text with ``provider``.

    Raises:
        TextGenerationError: the provider failed or returned nothing.
    """
    generator = _GENERATORS.get(provider.type)
    if generator is None:
        raise TextGenerationError(f"Unsupported provider: {provider.type}")
    return await generator(prompt, provider.config, options or GenerationOptions())


def create_provider(
    provider_type: ProviderType,
    api_key: str,
    model: Optional[str] = None,
) -> LLMProvider:
    """Build an LLMProvider for a configured API key, on the default model unless given one."""
    config_type = _CONFIG_TYPES.get(provider_type)
    if config_type is None:
        raise TextGenerationError(f"Unsupported provider type: {provider_type}")
    config = config_type(api_key=api_key, model=model) if model else config_type(api_key=api_key)
    return LLMProvider(type=provider_type, config=config)
