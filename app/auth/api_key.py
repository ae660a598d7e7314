"""
API key authentication and storage.

Every API key maps to exactly one account. The verified account ID is the
only identity the repurpose pipeline trusts.
"""

import hashlib
import json
import logging
import secrets
from pathlib import Path
from typing import Dict, Optional

from fastapi import Depends, Request
from fastapi.security import APIKeyHeader, HTTPAuthorizationCredentials, HTTPBearer

from repurposer.container import DEV_ACCOUNT_ID
from repurposer.exceptions import AuthenticationError, ErrorCode
from repurposer.utils.logging import set_request_context

logger = logging.getLogger(__name__)

API_KEY_HEADER = APIKeyHeader(name="X-API-Key", auto_error=False)
CRON_BEARER = HTTPBearer(auto_error=False)


class APIKeyStore:
    """
    File-based API key storage with secure hashing.

    API keys are stored as SHA-256 hashes. The plain-text key is only
    returned once when created and cannot be retrieved later.
    """

    def __init__(self, storage_path: str = "./data/api_keys.json"):
        self.storage_path = Path(storage_path)
        self._cache: Dict[str, str] = {}  # account_id -> hashed_key
        self._load()
        logger.info(f"API key storage initialized at: {self.storage_path}")

    def _hash_key(self, api_key: str) -> str:
        return hashlib.sha256(api_key.encode()).hexdigest()

    def _load(self) -> None:
        if self.storage_path.exists():
            try:
                with open(self.storage_path, "r") as f:
                    self._cache = json.load(f)
                logger.info(f"Loaded {len(self._cache)} API keys from storage")
            except (json.JSONDecodeError, IOError) as e:
                logger.error(f"Error loading API keys: {e}")
                self._cache = {}
        else:
            self._cache = {}

    def _save(self) -> None:
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.storage_path, "w") as f:
                json.dump(self._cache, f, indent=2)
        except IOError as e:
            logger.error(f"Error saving API keys: {e}")

    def create_key(self, account_id: str) -> str:
        """
        Create a new API key for an account, replacing any previous one.

        Returns:
            The plain-text key (only returned once).
        """
        plain_key = secrets.token_urlsafe(32)
        self._cache[account_id] = self._hash_key(plain_key)
        self._save()
        logger.info(f"Created new API key for account: {account_id}")
        return plain_key

    def verify_key(self, api_key: str) -> Optional[str]:
        """
        Return the account ID owning ``api_key``, or None.

        Uses constant-time comparison to prevent timing attacks.
        """
        hashed_input = self._hash_key(api_key)
        for account_id, stored_hash in self._cache.items():
            if secrets.compare_digest(stored_hash, hashed_input):
                return account_id
        return None


def get_api_key_store(request: Request) -> APIKeyStore:
    return request.app.state.api_key_store


async def verify_api_key(
    request: Request,
    api_key: Optional[str] = Depends(API_KEY_HEADER),
) -> str:
    """
    Resolve the caller's account ID from the X-API-Key header.

    With DEV_MODE enabled a request without a key is treated as the
    development account.

    Raises:
        AuthenticationError: If the key is missing or unknown.
    """
    settings = request.app.state.container.settings

    if not api_key:
        if settings.is_dev_mode:
            account_id = DEV_ACCOUNT_ID
        else:
            raise AuthenticationError(message="Missing API key")
    else:
        account_id = get_api_key_store(request).verify_key(api_key)
        if account_id is None:
            raise AuthenticationError(
                message="Invalid API key",
                error_code=ErrorCode.INVALID_API_KEY,
            )

    request.state.account_id = account_id
    set_request_context(account_id=account_id)
    return account_id


async def require_cron_secret(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(CRON_BEARER),
) -> None:
    """
    Guard scheduled-job endpoints with the CRON_SECRET bearer token.

    An unset secret rejects every call.
    """
    expected = request.app.state.container.settings.security.cron_secret
    if expected is None or not expected.get_secret_value():
        logger.error("Scheduled job called but no cron secret is configured")
        raise AuthenticationError(message="Unauthorized")

    supplied = credentials.credentials if credentials else ""
    if not secrets.compare_digest(supplied.encode(), expected.get_secret_value().encode()):
        raise AuthenticationError(message="Unauthorized")
