"""
Errors raised by the content repurposer.

Each class fixes an HTTP status and a default ``ErrorCode``; the API layer
turns any ``RepurposerException`` into the standard error body without
knowing which component raised it. Rejections carry camelCase ``details``
(limit, usage, allowed platforms, correct endpoint and so on) so a client
can fix the request on its own.

    RepurposerException                    500
        ValidationError                    400
            NoPlatformsAvailableError
        AuthenticationError                401
        PaymentRequiredError               402
            SubscriptionRequiredError
            QuotaExceededError
        AuthorizationError                 403
            TierMismatchError
            ProviderUnavailableError
        ResourceNotFoundError              404
        ServiceUnavailableError            503
            StorageNotReadyError
        DatabaseError                      500
        ContentGenerationError             500

``PersistenceDegraded`` is a warning, not an error response.
"""

from enum import Enum
from typing import Any, Dict, Iterable, Optional


class ErrorCode(str, Enum):
    """Machine-readable codes returned as ``error_code``."""

    INTERNAL_ERROR = "INTERNAL_ERROR"

    # 400
    VALIDATION_ERROR = "VALIDATION_ERROR"
    VALUE_OUT_OF_RANGE = "VALUE_OUT_OF_RANGE"
    NO_PLATFORMS_AVAILABLE = "NO_PLATFORMS_AVAILABLE"

    # 401
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    INVALID_API_KEY = "INVALID_API_KEY"

    # 402
    SUBSCRIPTION_REQUIRED = "SUBSCRIPTION_REQUIRED"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"

    # 403
    PERMISSION_DENIED = "PERMISSION_DENIED"
    TIER_MISMATCH = "TIER_MISMATCH"
    PROVIDER_UNAVAILABLE = "PROVIDER_UNAVAILABLE"

    # 404
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    CONTENT_NOT_FOUND = "CONTENT_NOT_FOUND"

    # 502 / 503
    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"
    AI_SERVICE_UNAVAILABLE = "AI_SERVICE_UNAVAILABLE"
    STORAGE_NOT_READY = "STORAGE_NOT_READY"

    # 500
    DATABASE_ERROR = "DATABASE_ERROR"
    CONTENT_GENERATION_FAILED = "CONTENT_GENERATION_FAILED"


def _with(details: Optional[Dict[str, Any]], **fields: Any) -> Dict[str, Any]:
    """Merge the non-None ``fields`` into a copy of ``details``."""
    merged = dict(details or {})
    merged.update({key: value for key, value in fields.items() if value is not None})
    return merged


def _listed(values: Optional[Iterable[str]]) -> list:
    return list(values or [])


class RepurposerException(Exception):
    """
    Base class for every error the API reports.

    ``message`` is shown to the client; ``internal_message`` only reaches
    the logs.
    """

    status_code: int = 500
    default_error_code: ErrorCode = ErrorCode.INTERNAL_ERROR
    default_message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        self.message = message or self.default_message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        self.internal_message = internal_message
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.error_code.value}, status={self.status_code})"


class ValidationError(RepurposerException):
    """Malformed input, or a title or body longer than the tier allows."""

    status_code = 400
    default_error_code = ErrorCode.VALIDATION_ERROR
    default_message = "Invalid request data"

    def __init__(
        self,
        message: Optional[str] = None,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        # Never echo more than a snippet of user content
        snippet = None if value is None else str(value)[:100]
        super().__init__(
            message,
            error_code,
            _with(details, field=field, value=snippet),
            internal_message,
        )


class NoPlatformsAvailableError(ValidationError):
    default_error_code = ErrorCode.NO_PLATFORMS_AVAILABLE
    default_message = "No valid platforms available for your subscription tier"

    def __init__(
        self,
        message: Optional[str] = None,
        allowed_platforms: Optional[Iterable[str]] = None,
        preferred_platforms: Optional[Iterable[str]] = None,
        requested_platforms: Optional[Iterable[str]] = None,
        plan: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        details = _with(
            None,
            allowedPlatforms=_listed(allowed_platforms),
            preferredPlatforms=_listed(preferred_platforms),
            requestedPlatforms=None if requested_platforms is None else list(requested_platforms),
            plan=plan,
        )
        super().__init__(message, details=details, internal_message=internal_message)


class AuthenticationError(RepurposerException):
    """No verified identity: missing or unknown API key, or a bad cron secret."""

    status_code = 401
    default_error_code = ErrorCode.AUTHENTICATION_REQUIRED
    default_message = "Authentication required"


class PaymentRequiredError(RepurposerException):
    status_code = 402
    default_error_code = ErrorCode.SUBSCRIPTION_REQUIRED
    default_message = "Payment required"


class SubscriptionRequiredError(PaymentRequiredError):
    """A paid tier whose subscription is neither active nor trialing."""

    default_message = "An active subscription is required for this plan"

    def __init__(
        self,
        message: Optional[str] = None,
        plan: Optional[str] = None,
        subscription_status: Optional[str] = None,
        upgrade_url: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        details = _with(
            None,
            plan=plan,
            subscriptionStatus=subscription_status or None,
            upgradeUrl=upgrade_url,
        )
        super().__init__(message, details=details, internal_message=internal_message)


class QuotaExceededError(PaymentRequiredError):
    """
    The monthly or daily allowance is spent and no overage consent applies.
    Raised before generation, and again if a concurrent request took the
    last unit first.
    """

    default_error_code = ErrorCode.QUOTA_EXCEEDED
    default_message = "Usage limit reached"

    def __init__(
        self,
        message: Optional[str] = None,
        limit_type: Optional[str] = None,
        limit: Optional[int] = None,
        current_usage: Optional[int] = None,
        plan: Optional[str] = None,
        has_overage_consent: Optional[bool] = None,
        overage_enabled: Optional[bool] = None,
        overage_rate: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = _with(
            details,
            limitType=limit_type,
            limit=limit,
            currentUsage=current_usage,
            plan=plan,
            hasOverageConsent=has_overage_consent,
            overageEnabled=overage_enabled,
            overageRate=overage_rate,
        )
        super().__init__(message, details=details, internal_message=internal_message)


class AuthorizationError(RepurposerException):
    status_code = 403
    default_error_code = ErrorCode.PERMISSION_DENIED
    default_message = "Permission denied"


class TierMismatchError(AuthorizationError):
    """A tier-scoped endpoint called by an account on a different tier."""

    default_error_code = ErrorCode.TIER_MISMATCH
    default_message = "This endpoint is not available for your subscription tier"

    def __init__(
        self,
        message: Optional[str] = None,
        endpoint_tier: Optional[str] = None,
        current_tier: Optional[str] = None,
        correct_endpoint: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        details = _with(
            None,
            requiredTier=endpoint_tier,
            currentTier=current_tier,
            correctEndpoint=correct_endpoint,
        )
        super().__init__(message, details=details, internal_message=internal_message)


class ProviderUnavailableError(AuthorizationError):
    """The request named an AI provider that is not configured."""

    default_error_code = ErrorCode.PROVIDER_UNAVAILABLE
    default_message = "The requested AI provider is not available"

    def __init__(
        self,
        message: Optional[str] = None,
        provider: Optional[str] = None,
        available_providers: Optional[Iterable[str]] = None,
        internal_message: Optional[str] = None,
    ):
        details = _with(
            None,
            availableProviders=_listed(available_providers),
            requestedProvider=provider,
        )
        super().__init__(message, details=details, internal_message=internal_message)


class ResourceNotFoundError(RepurposerException):
    """
    Missing, or owned by another account. Both produce the same response so
    ownership is never revealed.
    """

    status_code = 404
    default_error_code = ErrorCode.RESOURCE_NOT_FOUND
    default_message = "Resource not found"

    def __init__(
        self,
        message: Optional[str] = None,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        details = _with(
            details,
            resource_type=resource_type,
            resource_id=resource_id[:36] if resource_id else None,
        )
        super().__init__(message, error_code, details, internal_message)


class ServiceUnavailableError(RepurposerException):
    status_code = 503
    default_error_code = ErrorCode.SERVICE_UNAVAILABLE
    default_message = "Service temporarily unavailable"

    def __init__(
        self,
        message: Optional[str] = None,
        service_name: Optional[str] = None,
        error_code: Optional[ErrorCode] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        super().__init__(message, error_code, _with(details, service=service_name), internal_message)


class StorageNotReadyError(ServiceUnavailableError):
    """Account or usage storage could not be read, or the schema is not ready."""

    default_error_code = ErrorCode.STORAGE_NOT_READY
    default_message = "Storage is not ready. Please try again shortly."

    def __init__(
        self,
        message: Optional[str] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error
        if internal_message is None and original_error is not None:
            internal_message = getattr(original_error, "internal_message", None) or str(original_error)
        super().__init__(message, service_name="storage", internal_message=internal_message)


class DatabaseError(RepurposerException):
    """A storage operation failed. The client only ever sees the generic message."""

    default_error_code = ErrorCode.DATABASE_ERROR
    default_message = "A database error occurred"

    def __init__(
        self,
        message: Optional[str] = None,
        operation: Optional[str] = None,
        internal_message: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.operation = operation
        self.original_error = original_error
        if internal_message is None and original_error is not None:
            internal_message = f"{operation or 'database'} failed: {original_error}"
        super().__init__(message, internal_message=internal_message)


class ContentGenerationError(RepurposerException):
    """The AI backend failed for one of the requested platforms."""

    default_error_code = ErrorCode.CONTENT_GENERATION_FAILED
    default_message = "Failed to generate content"

    def __init__(
        self,
        message: Optional[str] = None,
        platform: Optional[str] = None,
        provider: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        internal_message: Optional[str] = None,
    ):
        super().__init__(
            message,
            details=_with(details, platform=platform, provider=provider),
            internal_message=internal_message,
        )


class PersistenceDegraded(Warning):
    """
    Generated variants could not be saved.

    The orchestrator turns this into the ``warning`` of a successful
    response; it never becomes an error body.
    """

    default_message = (
        "Content was generated successfully but could not be saved. "
        "Please copy your content now."
    )

    def __init__(self, message: Optional[str] = None, original_error: Optional[Exception] = None):
        self.message = message or self.default_message
        self.original_error = original_error
        super().__init__(self.message)
