"""
Tests for AI provider routing and concurrent variant generation.
"""

import pytest

from conftest import FakeGenerator, make_router
from repurposer.config import LLMSettings
from repurposer.exceptions import (
    ContentGenerationError,
    ErrorCode,
    ProviderUnavailableError,
    ServiceUnavailableError,
)
from repurposer.text_generation.router import ProviderRouter
from repurposer.types.repurpose import GenerationRequest


def _request(platforms=("twitter", "instagram")):
    return GenerationRequest(
        title="Launch day",
        content="We shipped the new editor today.",
        content_type="blog",
        platforms=list(platforms),
        brand_voice="friendly",
    )


class TestResolve:
    """Tests for ProviderRouter.resolve."""

    def test_default_follows_priority(self):
        router = ProviderRouter(
            {},
            priority=("anthropic", "openai"),
        )
        assert router.available_providers() == []
        assert router.default_provider() is None

        router = make_router(FakeGenerator(), providers=("openai", "anthropic"))
        assert router.default_provider() == "anthropic"
        assert router.resolve().type == "anthropic"

    def test_hint_selects_provider(self):
        router = make_router(FakeGenerator(), providers=("openai", "groq"))
        assert router.resolve("groq").type == "groq"
        assert router.resolve(" OpenAI ").type == "openai"

    def test_unconfigured_hint_is_rejected(self):
        router = make_router(FakeGenerator(), providers=("openai",))
        with pytest.raises(ProviderUnavailableError) as exc_info:
            router.resolve("gemini")

        error = exc_info.value
        assert error.status_code == 403
        assert error.details["availableProviders"] == ["openai"]

    def test_no_providers_is_service_unavailable(self):
        router = ProviderRouter({})
        with pytest.raises(ServiceUnavailableError) as exc_info:
            router.resolve()
        assert exc_info.value.status_code == 503
        assert exc_info.value.error_code == ErrorCode.AI_SERVICE_UNAVAILABLE

    def test_from_settings_registers_configured_keys(self):
        settings = LLMSettings(
            anthropic_api_key=None,
            groq_api_key="gsk_test",
            openai_api_key="sk-test",
            gemini_api_key=None,
            llm_provider_priority="openai,groq",
        )
        router = ProviderRouter.from_settings(settings)
        assert router.available_providers() == ["openai", "groq"]
        assert router.resolve().model == settings.openai_model


class TestIsAvailable:
    def setup_method(self):
        self.router = make_router(FakeGenerator(), providers=("openai", "groq"))

    def test_configured_name(self):
        assert self.router.is_available("groq") is True

    def test_case_and_padding_ignored(self):
        assert self.router.is_available(" OpenAI ") is True
        assert self.router.resolve(" OpenAI ").type == "openai"

    def test_unconfigured_name(self):
        assert self.router.is_available("gemini") is False

    def test_missing_name(self):
        assert self.router.is_available(None) is False
        assert self.router.is_available("") is False

class TestDispatch:
    """Tests for ProviderRouter.dispatch."""

    @pytest.mark.asyncio
    async def test_one_variant_per_platform(self):
        generator = FakeGenerator(text="  Fresh take #launch #editor #launch  ")
        router = make_router(generator)

        result = await router.dispatch(_request())

        assert [v.platform for v in result.variants] == ["twitter", "instagram"]
        assert generator.call_count == 2
        variant = result.variants[0]
        assert variant.content == "Fresh take #launch #editor #launch"
        assert variant.character_count == len(variant.content)
        assert variant.hashtags == ["#launch", "#editor"]
        assert result.provider == "openai"

    @pytest.mark.asyncio
    async def test_prompts_carry_platform_and_voice(self):
        generator = FakeGenerator()
        router = make_router(generator)

        await router.dispatch(_request(platforms=("twitter",)))

        prompt = generator.prompts[0]
        assert "Twitter" in prompt
        assert "Launch day" in prompt
        assert "warm, approachable" in prompt

    @pytest.mark.asyncio
    async def test_model_override(self):
        router = make_router(FakeGenerator())
        result = await router.dispatch(_request(), model="gpt-4o")
        assert result.model == "gpt-4o"

    @pytest.mark.asyncio
    async def test_any_platform_failure_fails_dispatch(self):
        router = make_router(FakeGenerator(error=RuntimeError("upstream 500")))
        with pytest.raises(ContentGenerationError) as exc_info:
            await router.dispatch(_request())
        assert exc_info.value.details["provider"] == "openai"

    @pytest.mark.asyncio
    async def test_empty_output_is_a_failure(self):
        router = make_router(FakeGenerator(text="   "))
        with pytest.raises(ContentGenerationError):
            await router.dispatch(_request())
