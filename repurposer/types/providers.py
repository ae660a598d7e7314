"""
Type definitions for LLM providers.
"""
from typing import Literal, Optional, Union


GROQ_BASE_URL = "https://api.groq.com/openai/v1"


class ProviderConfig:
    """Base configuration for LLM providers."""
    api_key: str
    model: str

    def __init__(self, api_key: str, model: str):
        self.api_key = api_key
        self.model = model

    def with_model(self, model: Optional[str]) -> "ProviderConfig":
        """Copy of this config targeting another model of the same provider."""
        if not model or model == self.model:
            return self
        clone = self.__class__.__new__(self.__class__)
        clone.__dict__.update(self.__dict__)
        clone.model = model
        return clone


class AnthropicConfig(ProviderConfig):
    """Configuration for Anthropic provider."""

    def __init__(self, api_key: str, model: str = "claude-3-5-sonnet-latest"):
        super().__init__(api_key, model)


class GroqConfig(ProviderConfig):
    """Configuration for Groq, served through its OpenAI-compatible API."""
    base_url: str

    def __init__(
        self,
        api_key: str,
        model: str = "llama-3.3-70b-versatile",
        base_url: str = GROQ_BASE_URL,
    ):
        super().__init__(api_key, model)
        self.base_url = base_url


class OpenAIConfig(ProviderConfig):
    """Configuration for OpenAI provider."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        super().__init__(api_key, model)


class GeminiConfig(ProviderConfig):
    """Configuration for Google's Gemini provider."""

    def __init__(self, api_key: str, model: str = "gemini-1.5-flash-latest"):
        super().__init__(api_key, model)


ProviderType = Literal["anthropic", "groq", "openai", "gemini"]

PROVIDER_TYPES = ("anthropic", "groq", "openai", "gemini")

AnyProviderConfig = Union[AnthropicConfig, GroqConfig, OpenAIConfig, GeminiConfig]


class LLMProvider:
    """LLM provider configuration."""
    type: ProviderType
    config: AnyProviderConfig

    def __init__(self, type: ProviderType, config: AnyProviderConfig):
        self.type = type
        self.config = config

    @property
    def model(self) -> str:
        return self.config.model

    def with_model(self, model: Optional[str]) -> "LLMProvider":
        config = self.config.with_model(model)
        if config is self.config:
            return self
        return LLMProvider(type=self.type, config=config)


class GenerationOptions:
    """Options for text generation."""
    temperature: float
    max_tokens: int
    top_p: float
    frequency_penalty: float
    presence_penalty: float

    def __init__(
        self,
        temperature: float = 0.7,
        max_tokens: int = 2000,
        top_p: float = 0.9,
        frequency_penalty: float = 0.0,
        presence_penalty: float = 0.0
    ):
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.top_p = top_p
        self.frequency_penalty = frequency_penalty
        self.presence_penalty = presence_penalty
