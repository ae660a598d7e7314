"""
AI provider routing.

Chooses which configured provider handles a request and fans the per-platform
generation calls out concurrently. A requested provider that is not available
is an error; the router never silently substitutes another one.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from ..exceptions import (
    ContentGenerationError,
    ErrorCode,
    ProviderUnavailableError,
    ServiceUnavailableError,
)
from ..types.providers import PROVIDER_TYPES, GenerationOptions, LLMProvider
from ..types.repurpose import GeneratedVariant, GenerationRequest, GenerationResult
from .core import TextGenerationError, create_provider, generate_text_async
from .prompts import build_repurpose_prompt, extract_hashtags

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER_PRIORITY = ("anthropic", "groq", "openai", "gemini")

Generator = Callable[[str, LLMProvider, Optional[GenerationOptions]], Awaitable[str]]


class ProviderRouter:
    """
    Routes generation to one of the configured providers.

    Args:
        providers: Configured providers keyed by type.
        priority: Order in which providers are preferred when no hint is given.
        generator: Coroutine performing a single generation call.
    """

    def __init__(
        self,
        providers: Dict[str, LLMProvider],
        priority: Sequence[str] = DEFAULT_PROVIDER_PRIORITY,
        generator: Generator = generate_text_async,
        options: Optional[GenerationOptions] = None,
    ):
        self._providers = dict(providers)
        ordered = [name for name in priority if name in self._providers]
        ordered += [name for name in self._providers if name not in ordered]
        self._order: List[str] = ordered
        self._generate = generator
        self._options = options or GenerationOptions()

    @classmethod
    def from_settings(cls, llm_settings) -> "ProviderRouter":
        """Build from LLMSettings, registering every provider with an API key."""
        providers: Dict[str, LLMProvider] = {}
        for name in PROVIDER_TYPES:
            key = getattr(llm_settings, f"{name}_api_key", None)
            if key is None:
                continue
            secret = key.get_secret_value()
            if not secret:
                continue
            providers[name] = create_provider(name, secret, getattr(llm_settings, f"{name}_model", None))
        return cls(providers, priority=llm_settings.priority_list)

    def available_providers(self) -> List[str]:
        return list(self._order)

    @staticmethod
    def _normalize(name: Optional[str]) -> str:
        return (name or "").strip().lower()

    def is_available(self, name: Optional[str]) -> bool:
        """Whether ``name`` is a configured provider, ignoring case and padding."""
        return self._normalize(name) in self._providers

    def default_provider(self) -> Optional[str]:
        return self._order[0] if self._order else None

    def resolve(self, provider_hint: Optional[str] = None) -> LLMProvider:
        """
        Pick the provider for a request.

        Raises:
            ServiceUnavailableError: If no provider is configured at all.
            ProviderUnavailableError: If the hinted provider is not configured.
        """
        if not self._order:
            raise ServiceUnavailableError(
                message="AI service is not available. Please try again later.",
                service_name="ai",
                error_code=ErrorCode.AI_SERVICE_UNAVAILABLE,
                details={"availableProviders": []},
            )

        if provider_hint:
            if not self.is_available(provider_hint):
                raise ProviderUnavailableError(
                    message=f"AI provider '{provider_hint}' is not available",
                    provider=provider_hint,
                    available_providers=self.available_providers(),
                )
            return self._providers[self._normalize(provider_hint)]

        return self._providers[self._order[0]]

    async def dispatch(
        self,
        request: GenerationRequest,
        provider_hint: Optional[str] = None,
        model: Optional[str] = None,
    ) -> GenerationResult:
        """
        Generate one variant per platform using a single provider.

        All platforms run concurrently. If any platform fails the whole
        dispatch fails, so a partial result is never consumed or saved.
        """
        provider = self.resolve(provider_hint).with_model(model)

        tasks = [self._generate_variant(request, platform, provider) for platform in request.platforms]
        results = await asyncio.gather(*tasks, return_exceptions=True)

        variants: List[GeneratedVariant] = []
        for platform, result in zip(request.platforms, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.error(
                    "Generation failed for %s via %s: %s",
                    platform,
                    provider.type,
                    result,
                )
                raise ContentGenerationError(
                    message=f"Failed to generate content for {platform}",
                    platform=platform,
                    provider=provider.type,
                    internal_message=str(result),
                ) from result
            variants.append(result)

        return GenerationResult(variants=variants, provider=provider.type, model=provider.model)

    async def _generate_variant(
        self, request: GenerationRequest, platform: str, provider: LLMProvider
    ) -> GeneratedVariant:
        prompt = build_repurpose_prompt(
            platform=platform,
            title=request.title,
            content=request.content,
            content_type=request.content_type,
            brand_voice=request.brand_voice,
            tone=request.tone,
            additional_instructions=request.additional_instructions,
        )
        text = await self._generate(prompt, provider, self._options)
        if not text or not text.strip():
            raise TextGenerationError(f"Empty response for {platform}", provider=provider.type)
        text = text.strip()
        return GeneratedVariant(
            platform=platform,
            content=text,
            character_count=len(text),
            hashtags=extract_hashtags(text),
        )
