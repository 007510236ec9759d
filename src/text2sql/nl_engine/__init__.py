"""Natural language engine for read-only query generation.

This module provides dialect-aware prompt construction, model output
parsing, read-only validation, conversation resolution and the
generation service that ties them together.
"""

# Import the leaf modules first; the resolver and service depend on them
from src.text2sql.nl_engine.dialects import (
    DIALECTS,
    REDIS_READ_COMMANDS,
    REDIS_WRITE_COMMANDS,
    DialectRules,
    build_correction_prompt,
    build_system_prompt,
    build_user_content,
    get_dialect,
)
from src.text2sql.nl_engine.output_parser import (
    extract_explanation,
    parse_key_value_output,
    parse_model_output,
    parse_relational_output,
)
from src.text2sql.nl_engine.sql_validator import (
    EmptyStatementError,
    NotReadOnlyError,
    SQLSyntaxError,
    SQLValidator,
    StackedStatementsError,
    StatementValidationError,
    UnsupportedBackendError,
    UnsupportedCommandError,
)
from src.text2sql.nl_engine.context_resolver import ContextResolver, ResolvedContext
from src.text2sql.nl_engine.generation_service import GenerationService

__all__ = [
    # Dialects
    "DIALECTS",
    "DialectRules",
    "REDIS_READ_COMMANDS",
    "REDIS_WRITE_COMMANDS",
    "get_dialect",
    "build_system_prompt",
    "build_user_content",
    "build_correction_prompt",
    # Parser
    "parse_relational_output",
    "parse_key_value_output",
    "parse_model_output",
    "extract_explanation",
    # Validator
    "SQLValidator",
    "StatementValidationError",
    "EmptyStatementError",
    "UnsupportedBackendError",
    "StackedStatementsError",
    "NotReadOnlyError",
    "SQLSyntaxError",
    "UnsupportedCommandError",
    # Resolution and generation
    "ContextResolver",
    "ResolvedContext",
    "GenerationService",
]
