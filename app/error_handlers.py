"""
Exception handlers for the content repurposer API.

Every failure leaves the API in one shape:

    {"success": false, "error": "...", "error_code": "...", "details": {...}}

Rejections raised by the pipeline (quota, subscription, tier, platform and
provider errors) carry the structured details a client needs to correct the
request, so their detail keys are allow-listed rather than dropped. Messages
are scrubbed of secrets, paths and addresses before they leave the process.
Server-side failures are reported to Sentry with a short reference.
"""

import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional

import sentry_sdk
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from repurposer.config import get_settings
from repurposer.exceptions import ErrorCode, RepurposerException

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "An error occurred while processing your request"
MAX_MESSAGE_LENGTH = 500
MAX_FIELD_ERRORS = 10

# A message matching any of these is replaced wholesale
_SECRET_MARKERS = re.compile(
    "|".join([
        r"api[_-]key",
        r"secret",
        r"password",
        r"token",
        r"\bauth(?:orization)?\b\s*[:=]",
        r"credential",
        r"bearer",
        r"cookie",
        r"postgres(?:ql)?://",
        r"rediss?://",
        r"sk-[\w-]{8,}",
        r"gsk_\w+",
        r"AIza[\w-]{20,}",
        r"/home/",
        r"/Users/",
        r"/var/",
        r"/etc/",
        r"\$\{\w+\}",
    ]),
    re.IGNORECASE,
)

# Masked in place; the rest of the message survives
_MASKS = [
    (re.compile(r"[/\\][\w./\\-]+\.\w+"), "[path]"),
    (re.compile(r"\b\d{1,3}(?:\.\d{1,3}){3}\b"), "[ip]"),
    (re.compile(r"\b[0-9a-f]{8}(?:-[0-9a-f]{4}){3}-[0-9a-f]{12}\b", re.IGNORECASE), "[id]"),
]

SAFE_DETAIL_KEYS = frozenset({
    # validation
    "field", "value", "maxLength", "errors",
    # quota and subscription
    "plan", "limit", "limitType", "currentUsage", "hasOverageConsent",
    "overageEnabled", "overageRate", "subscriptionStatus", "upgradeUrl",
    # tier routing
    "requiredTier", "currentTier", "correctEndpoint",
    # providers and platforms
    "provider", "requestedProvider", "availableProviders", "service",
    "allowedPlatforms", "preferredPlatforms", "requestedPlatforms", "platform",
    # lookups and server errors
    "resource_type", "resource_id", "error_reference", "sentry_event_id",
})

# Expected outcomes of a repurpose request, not faults
_REJECTION_CODES = frozenset({
    ErrorCode.QUOTA_EXCEEDED,
    ErrorCode.SUBSCRIPTION_REQUIRED,
    ErrorCode.TIER_MISMATCH,
    ErrorCode.NO_PLATFORMS_AVAILABLE,
})

_HTTP_ERROR_CODES = {
    400: ErrorCode.VALIDATION_ERROR,
    401: ErrorCode.AUTHENTICATION_REQUIRED,
    402: ErrorCode.SUBSCRIPTION_REQUIRED,
    403: ErrorCode.PERMISSION_DENIED,
    404: ErrorCode.RESOURCE_NOT_FOUND,
    405: ErrorCode.VALIDATION_ERROR,
    422: ErrorCode.VALIDATION_ERROR,
    502: ErrorCode.EXTERNAL_SERVICE_ERROR,
    503: ErrorCode.SERVICE_UNAVAILABLE,
}

_FIELD_MESSAGES = {
    "missing": "Field '{field}' is required",
    "string_type": "Field '{field}' must be a string",
    "string_too_short": "Field '{field}' must not be empty",
    "string_too_long": "Field '{field}' is too long",
    "bool_type": "Field '{field}' must be a boolean",
    "list_type": "Field '{field}' must be a list",
    "enum": "Field '{field}' has an unsupported value",
}


def sanitize_error_message(message: str) -> str:
    """Return a message that is safe to show to API clients."""
    if not message:
        return message
    if _SECRET_MARKERS.search(message):
        return GENERIC_ERROR_MESSAGE

    for pattern, replacement in _MASKS:
        message = pattern.sub(replacement, message)

    if len(message) > MAX_MESSAGE_LENGTH:
        message = message[:MAX_MESSAGE_LENGTH] + "..."
    return message


def _primitive(value: Any) -> bool:
    return value is None or isinstance(value, (str, int, float, bool))


def _sanitize_value(value: Any) -> Any:
    if isinstance(value, str):
        return sanitize_error_message(value)
    if _primitive(value):
        return value
    if isinstance(value, list):
        cleaned = []
        for item in value[:20]:
            if isinstance(item, dict):
                cleaned.append({k: _sanitize_value(v) for k, v in item.items() if _primitive(v)})
            elif _primitive(item):
                cleaned.append(_sanitize_value(item))
        return cleaned
    return str(value)


def sanitize_details(details: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    """Keep allow-listed detail keys, with their values scrubbed."""
    if not details:
        return {}
    return {key: _sanitize_value(value) for key, value in details.items() if key in SAFE_DETAIL_KEYS}


def format_pydantic_errors(errors: Iterable[Dict[str, Any]]) -> List[Dict[str, str]]:
    """Collapse pydantic errors to at most ten ``{field, message}`` entries."""
    formatted = []
    for error in errors:
        parts = [str(p) for p in error.get("loc", ()) if p != "body"]
        field = ".".join(parts) or "request"
        template = _FIELD_MESSAGES.get(error.get("type", ""))
        if template:
            message = template.format(field=field)
        else:
            message = sanitize_error_message(error.get("msg", "Invalid value"))
        formatted.append({"field": field, "message": message})
        if len(formatted) == MAX_FIELD_ERRORS:
            break
    return formatted


def create_error_response(
    request: Request,
    status_code: int,
    error: str,
    error_code: str,
    details: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> JSONResponse:
    # Read by the request logging middleware
    request.state.error_code = error_code

    content: Dict[str, Any] = {
        "success": False,
        "error": sanitize_error_message(error),
        "error_code": error_code,
    }
    safe_details = sanitize_details(details)
    if safe_details:
        content["details"] = safe_details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def report_to_sentry(
    exc: Exception,
    request: Optional[Request] = None,
    extra_context: Optional[Dict[str, Any]] = None,
) -> Optional[str]:
    """Capture ``exc`` with the account and request id; None when Sentry is off."""
    try:
        if not sentry_sdk.get_client().is_active():
            return None

        with sentry_sdk.new_scope() as scope:
            if request is not None:
                scope.set_context("request", {"method": request.method, "path": request.url.path})
                account_id = getattr(request.state, "account_id", None)
                if account_id:
                    scope.set_user({"id": account_id})
                request_id = getattr(request.state, "request_id", None)
                if request_id:
                    scope.set_tag("request_id", request_id)
            if extra_context:
                scope.set_context("extra", extra_context)
            return sentry_sdk.capture_exception(exc)

    except Exception as e:
        logger.warning("Failed to report exception to Sentry: %s", e)
        return None


async def repurposer_exception_handler(request: Request, exc: RepurposerException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s on %s: %s",
            type(exc).__name__,
            request.url.path,
            exc.internal_message or exc.message,
        )
        report_to_sentry(exc, request)
    elif exc.error_code in _REJECTION_CODES:
        logger.info(
            "Repurpose rejected: %s",
            exc.error_code.value,
            extra={k: v for k, v in exc.details.items() if k in ("plan", "limitType", "requiredTier")},
        )
    else:
        logger.warning("%s: %s", type(exc).__name__, exc.internal_message or exc.message)

    return create_error_response(
        request, exc.status_code, exc.message, exc.error_code.value, details=exc.details
    )


async def validation_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Malformed request bodies and models become a 400 with one entry per field."""
    errors = format_pydantic_errors(exc.errors())
    logger.warning(
        "Validation failed on %s %s: %d error(s)", request.method, request.url.path, len(errors)
    )
    message = errors[0]["message"] if len(errors) == 1 else f"Validation failed with {len(errors)} error(s)"
    return create_error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        message,
        ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    error_code = _HTTP_ERROR_CODES.get(exc.status_code, ErrorCode.INTERNAL_ERROR)
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(level, "HTTP %d on %s: %s", exc.status_code, request.url.path, detail)

    headers = None
    if exc.headers:
        headers = {
            k: v for k, v in exc.headers.items() if k in ("Retry-After", "WWW-Authenticate")
        } or None

    return create_error_response(request, exc.status_code, detail, error_code.value, headers=headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last resort for anything the pipeline did not turn into a RepurposerException.

    The traceback stays in the logs; the client gets a generic message and a
    short reference to quote to support.
    """
    reference = uuid.uuid4().hex[:8]
    logger.error(
        "Unhandled exception [ref:%s] on %s %s: %s",
        reference,
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    event_id = report_to_sentry(exc, request, extra_context={"error_reference": reference})

    details: Dict[str, Any] = {"error_reference": reference}
    if get_settings().is_production:
        error = "An unexpected error occurred. Please try again later."
    else:
        error = f"Internal server error: {type(exc).__name__}"
        if event_id:
            details["sentry_event_id"] = event_id

    return create_error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        error,
        ErrorCode.INTERNAL_ERROR.value,
        details=details,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RepurposerException, repurposer_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
