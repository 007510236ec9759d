"""Error code registry for the text-to-query service.

Each code maps to an HTTP status, a short title and a remediation hint.
Codes are grouped into categories:
- request: the caller supplied missing or inconsistent conversation data
- validation: the generated statement could not be made read-only
- upstream: the language model or context store failed
- access: authentication and rate limiting at the transport layer
"""

from dataclasses import dataclass
from enum import Enum


class ErrorCategory(str, Enum):
    """Categories for error codes."""

    REQUEST = "request"
    VALIDATION = "validation"
    UPSTREAM = "upstream"
    ACCESS = "access"
    SYSTEM = "system"


@dataclass
class ErrorCode:
    """Definition of an error code with metadata.

    Attributes:
        code: Stable machine-readable code (e.g. SCHEMA_MISMATCH).
        category: Error category for grouping.
        http_status: Status the transport layer responds with.
        title: Short title for display.
        remediation: Action the caller should take to resolve.
        is_retryable: Whether the request can be retried unchanged.
    """

    code: str
    category: ErrorCategory
    http_status: int
    title: str
    remediation: str
    is_retryable: bool = False


ERROR_REGISTRY: dict[str, ErrorCode] = {
    "INVALID_REQUEST": ErrorCode(
        code="INVALID_REQUEST",
        category=ErrorCategory.REQUEST,
        http_status=400,
        title="Invalid Request",
        remediation="Check the request body against the API schema.",
    ),
    "SCHEMA_REQUIRED": ErrorCode(
        code="SCHEMA_REQUIRED",
        category=ErrorCategory.REQUEST,
        http_status=400,
        title="Schema Required",
        remediation="Provide schema.tables when starting a new conversation.",
    ),
    "DATABASE_REQUIRED": ErrorCode(
        code="DATABASE_REQUIRED",
        category=ErrorCategory.REQUEST,
        http_status=400,
        title="Database Required",
        remediation="Provide database.type when starting a new conversation.",
    ),
    "SCHEMA_MISMATCH": ErrorCode(
        code="SCHEMA_MISMATCH",
        category=ErrorCategory.REQUEST,
        http_status=400,
        title="Schema Mismatch",
        remediation="Omit the schema to reuse the stored one, or start a new conversation.",
    ),
    "DATABASE_MISMATCH": ErrorCode(
        code="DATABASE_MISMATCH",
        category=ErrorCategory.REQUEST,
        http_status=400,
        title="Database Mismatch",
        remediation="Omit the database to reuse the stored one, or start a new conversation.",
    ),
    "CONVERSATION_NOT_FOUND": ErrorCode(
        code="CONVERSATION_NOT_FOUND",
        category=ErrorCategory.REQUEST,
        http_status=404,
        title="Conversation Not Found",
        remediation="The conversation expired or never existed. Start a new one.",
    ),
    "SQL_VALIDATION_FAILED": ErrorCode(
        code="SQL_VALIDATION_FAILED",
        category=ErrorCategory.VALIDATION,
        http_status=400,
        title="Statement Validation Failed",
        remediation="Rephrase the question; only read-only queries can be generated.",
        is_retryable=True,
    ),
    "LLM_ERROR": ErrorCode(
        code="LLM_ERROR",
        category=ErrorCategory.UPSTREAM,
        http_status=500,
        title="Language Model Error",
        remediation="The model backend failed or timed out. Retry later.",
        is_retryable=True,
    ),
    "CONTEXT_LOOKUP_FAILED": ErrorCode(
        code="CONTEXT_LOOKUP_FAILED",
        category=ErrorCategory.UPSTREAM,
        http_status=500,
        title="Conversation Lookup Failed",
        remediation="The conversation store is unavailable. Retry later.",
        is_retryable=True,
    ),
    "CONTEXT_STORE_TIMEOUT": ErrorCode(
        code="CONTEXT_STORE_TIMEOUT",
        category=ErrorCategory.UPSTREAM,
        http_status=504,
        title="Conversation Store Timeout",
        remediation="The conversation store did not answer in time. Retry later.",
        is_retryable=True,
    ),
    "UNAUTHORIZED": ErrorCode(
        code="UNAUTHORIZED",
        category=ErrorCategory.ACCESS,
        http_status=401,
        title="Unauthorized",
        remediation="Send a valid key in the Authorization or X-API-Key header.",
    ),
    "RATE_LIMIT": ErrorCode(
        code="RATE_LIMIT",
        category=ErrorCategory.ACCESS,
        http_status=429,
        title="Rate Limit Exceeded",
        remediation="Too many requests. Wait a minute and retry.",
        is_retryable=True,
    ),
    "INTERNAL": ErrorCode(
        code="INTERNAL",
        category=ErrorCategory.SYSTEM,
        http_status=500,
        title="Internal Error",
        remediation="Retry the request. Contact the operator if the issue persists.",
    ),
}


def get_error(code: str) -> ErrorCode | None:
    """Get error definition by code.

    Args:
        code: Registered error code.

    Returns:
        ErrorCode if found, None otherwise.
    """
    return ERROR_REGISTRY.get(code)


def get_errors_by_category(category: ErrorCategory) -> list[ErrorCode]:
    """Get all errors in a category.

    Args:
        category: The error category to filter by.

    Returns:
        List of ErrorCode objects in the specified category.
    """
    return [e for e in ERROR_REGISTRY.values() if e.category == category]


def http_status_for(code: str) -> int:
    """Return the HTTP status for a code, 500 for unknown codes."""
    error = get_error(code)
    return error.http_status if error else 500
