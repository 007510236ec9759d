"""Read-only validation of generated statements.

Relational statements are parsed with sqlglot and classified on the
syntax tree: only plain SELECTs, set operations over SELECTs and
parenthesized SELECTs (optionally wrapped in a WITH) are accepted, and no
node anywhere in the tree may be a data-modifying or DDL node. Key-value
command blocks are classified line by line against fixed command sets.

Every rejection raises a StatementValidationError subclass whose message is
fed back to the model on the next attempt.
"""

import logging
import re

import sqlglot
from sqlglot import exp
from sqlglot.errors import ParseError, TokenError
from sqlglot.tokens import TokenType

from src.text2sql.models.schema import DatabaseFamily, DatabaseType, normalize_database_type
from src.text2sql.nl_engine.dialects import (
    REDIS_READ_COMMAND_SET,
    REDIS_WRITE_COMMANDS,
    DialectRules,
    get_dialect,
)

logger = logging.getLogger(__name__)

__all__ = [
    "SQLValidator",
    "StatementValidationError",
    "EmptyStatementError",
    "UnsupportedBackendError",
    "StackedStatementsError",
    "NotReadOnlyError",
    "SQLSyntaxError",
    "UnsupportedCommandError",
]


class StatementValidationError(Exception):
    """Base class for validator rejections."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class EmptyStatementError(StatementValidationError):
    """Statement is empty or whitespace."""

    def __init__(self) -> None:
        super().__init__("statement is empty")


class UnsupportedBackendError(StatementValidationError):
    """Backend identifier is not one of the supported families."""

    def __init__(self, db_type: object) -> None:
        super().__init__(f"unsupported backend: {db_type}")
        self.db_type = db_type


class StackedStatementsError(StatementValidationError):
    """More than one statement was supplied."""

    def __init__(self) -> None:
        super().__init__("multiple statements are not allowed; return a single SELECT query")


class NotReadOnlyError(StatementValidationError):
    """Statement or command could modify data."""


class SQLSyntaxError(StatementValidationError):
    """Statement could not be parsed for the target dialect."""


class UnsupportedCommandError(StatementValidationError):
    """Key-value command is not in the read allow-list."""


# Root node types accepted as a read-only query
_READ_ROOT_TYPES = (exp.Select, exp.Union, exp.Intersect, exp.Except, exp.Subquery)


def _expression_types(*names: str) -> tuple[type, ...]:
    # Node class names differ between sqlglot releases (Alter vs AlterTable)
    return tuple(
        getattr(exp, name) for name in names if isinstance(getattr(exp, name, None), type)
    )


# Nodes that must not appear anywhere in an accepted tree
_FORBIDDEN_NODE_TYPES = _expression_types(
    "Insert",
    "Update",
    "Delete",
    "Merge",
    "Create",
    "Drop",
    "Alter",
    "AlterTable",
    "TruncateTable",
    "Command",
    "Into",
    # SELECT ... FOR UPDATE / FOR SHARE take row locks
    "Lock",
    "LoadData",
    "Copy",
    "Pragma",
    "Transaction",
    "Commit",
    "Rollback",
)

# Token types that make a heuristically accepted statement unsafe
_WRITE_TOKEN_TYPES = frozenset({
    TokenType.INSERT,
    TokenType.UPDATE,
    TokenType.DELETE,
    TokenType.DROP,
    TokenType.CREATE,
    TokenType.ALTER,
    TokenType.MERGE,
})

_SELECT_FROM_PATTERN = re.compile(r"\bSELECT\b.*\bFROM\b", re.IGNORECASE | re.DOTALL)


def has_multiple_statements(sql: str) -> bool:
    """Return True when ``sql`` holds more than one statement.

    A single trailing terminator is tolerated.
    """
    trimmed = sql.strip()
    if ";" not in trimmed:
        return False
    if trimmed.endswith(";") and trimmed.count(";") == 1:
        return False
    return True


def _node_label(node: exp.Expression) -> str:
    return node.key.upper()


class SQLValidator:
    """Classify candidate statements as read-only or reject them.

    Stateless; one instance can be shared across requests.

    Example:
        >>> validator = SQLValidator()
        >>> validator.validate("SELECT * FROM users;", "mysql")
        >>> validator.validate("GET user:1", "redis")
    """

    def validate(
        self,
        statement: str,
        db_type: DatabaseType | str | None,
        version: str | None = None,
    ) -> None:
        """Validate a statement for a backend.

        Args:
            statement: Candidate statement or newline-separated commands.
            db_type: Target backend.
            version: Backend version; accepted for interface symmetry.

        Raises:
            StatementValidationError: If the statement is rejected.
        """
        if not statement or not statement.strip():
            raise EmptyStatementError()

        rules = self._resolve_rules(db_type)
        if rules.family is DatabaseFamily.KEY_VALUE:
            self._validate_key_value(statement)
        else:
            self._validate_relational(statement.strip(), rules)

    def _resolve_rules(self, db_type: DatabaseType | str | None) -> DialectRules:
        if db_type is None:
            raise UnsupportedBackendError(db_type)
        if isinstance(db_type, str) and not isinstance(db_type, DatabaseType):
            db_type = normalize_database_type(db_type)
        try:
            return get_dialect(db_type)
        except KeyError as e:
            raise UnsupportedBackendError(db_type) from e

    def _validate_relational(self, sql: str, rules: DialectRules) -> None:
        try:
            parsed = sqlglot.parse(sql, read=rules.sqlglot_dialect)
        except (ParseError, TokenError) as e:
            self._heuristic_fallback(sql, rules, e)
            return

        statements = [node for node in parsed if node is not None]
        if not statements:
            raise EmptyStatementError()
        if len(statements) > 1:
            raise StackedStatementsError()

        self._ensure_read_only(statements[0])

    def _ensure_read_only(self, root: exp.Expression) -> None:
        if not isinstance(root, _READ_ROOT_TYPES):
            raise NotReadOnlyError(
                f"only read-only SELECT queries are allowed, got {_node_label(root)}"
            )
        for node in root.walk():
            # walk() yields bare nodes on current sqlglot, tuples on older releases
            if isinstance(node, tuple):
                node = node[0]
            if isinstance(node, _FORBIDDEN_NODE_TYPES):
                raise NotReadOnlyError(
                    f"only read-only queries are allowed, found {_node_label(node)}"
                )

    def _heuristic_fallback(self, sql: str, rules: DialectRules, cause: Exception) -> None:
        if not rules.allow_heuristic_fallback:
            raise SQLSyntaxError(f"{rules.display_name} syntax error: {cause}") from cause

        logger.debug(
            "sqlglot could not parse %s statement, using heuristic check: %s",
            rules.display_name,
            cause,
        )
        if has_multiple_statements(sql):
            raise StackedStatementsError()
        if not sql.upper().startswith("SELECT") or not _SELECT_FROM_PATTERN.search(sql):
            raise SQLSyntaxError(
                f"{rules.display_name} syntax may be invalid: {cause}"
            ) from cause
        self._ensure_no_write_tokens(sql, rules)

    def _ensure_no_write_tokens(self, sql: str, rules: DialectRules) -> None:
        try:
            tokens = sqlglot.tokenize(sql, read=rules.sqlglot_dialect)
        except TokenError as e:
            raise SQLSyntaxError(f"{rules.display_name} syntax error: {e}") from e
        for token in tokens:
            if token.token_type in _WRITE_TOKEN_TYPES:
                raise NotReadOnlyError(
                    f"only read-only queries are allowed, found {token.text.upper()}"
                )

    def _validate_key_value(self, commands: str) -> None:
        for line in commands.splitlines():
            parts = line.split()
            if not parts:
                continue
            command = parts[0].upper()
            if command in REDIS_WRITE_COMMANDS:
                raise NotReadOnlyError(f"write command not allowed: {command}")
            if command not in REDIS_READ_COMMAND_SET:
                raise UnsupportedCommandError(
                    f"unsupported or non-read-only command: {command} "
                    "(only read commands such as GET, HGET, LRANGE, SCAN are allowed)"
                )
