"""Authentication components for the content repurposer API."""

from .api_key import (
    API_KEY_HEADER,
    APIKeyStore,
    get_api_key_store,
    require_cron_secret,
    verify_api_key,
)

__all__ = [
    "APIKeyStore",
    "API_KEY_HEADER",
    "get_api_key_store",
    "require_cron_secret",
    "verify_api_key",
]
