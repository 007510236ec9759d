"""Error handling framework for the text-to-query service.

This package provides:
- Typed domain exceptions carrying stable error codes
- An error code registry mapping codes to HTTP status and remediation
"""

from src.errors.domain import (
    ContextLookupError,
    ContextStoreTimeout,
    ConversationNotFoundError,
    DatabaseMismatchError,
    DatabaseRequiredError,
    DomainError,
    LLMError,
    SchemaMismatchError,
    SchemaRequiredError,
    SQLValidationError,
    Text2SQLError,
)
from src.errors.registry import (
    ERROR_REGISTRY,
    ErrorCategory,
    ErrorCode,
    get_error,
    get_errors_by_category,
    http_status_for,
)

__all__ = [
    # Registry
    "ErrorCode",
    "ErrorCategory",
    "ERROR_REGISTRY",
    "get_error",
    "get_errors_by_category",
    "http_status_for",
    # Domain errors
    "DomainError",
    "Text2SQLError",
    "SchemaRequiredError",
    "DatabaseRequiredError",
    "SchemaMismatchError",
    "DatabaseMismatchError",
    "ConversationNotFoundError",
    "SQLValidationError",
    "LLMError",
    "ContextLookupError",
    "ContextStoreTimeout",
]
