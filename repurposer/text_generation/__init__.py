"""
Text generation: provider SDK calls, prompt templates and provider routing.
"""

from .core import TextGenerationError, close_llm_clients, generate_text_async
from .router import DEFAULT_PROVIDER_PRIORITY, ProviderRouter

__all__ = [
    "DEFAULT_PROVIDER_PRIORITY",
    "ProviderRouter",
    "TextGenerationError",
    "close_llm_clients",
    "generate_text_async",
]
