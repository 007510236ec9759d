"""Dialect policy: prompt templates and validation rules per backend.

Everything here is a pure function of the target DatabaseType. The
generation service asks this module for the system instruction, the user
content block and the corrective re-prompt; the validator and the output
parser ask it for the sqlglot read dialect and the key-value command sets.
"""

import json
from dataclasses import dataclass

from src.text2sql.models.schema import (
    DatabaseDescriptor,
    DatabaseFamily,
    DatabaseType,
    Schema,
)

# Key-value commands that only read data. Order is kept for the prompt.
REDIS_READ_COMMANDS: tuple[str, ...] = (
    "GET", "MGET", "HGET", "HGETALL", "HMGET",
    "LRANGE", "LINDEX", "LLEN",
    "SMEMBERS", "SISMEMBER", "SCARD",
    "ZRANGE", "ZREVRANGE", "ZRANGEBYSCORE", "ZREVRANGEBYSCORE",
    "ZRANK", "ZREVRANK", "ZSCORE", "ZCARD",
    "KEYS", "SCAN", "HSCAN", "SSCAN", "ZSCAN",
    "EXISTS", "TYPE", "TTL", "PTTL", "STRLEN", "HLEN",
)

# Key-value commands that mutate or destroy data.
REDIS_WRITE_COMMANDS: frozenset[str] = frozenset({
    "FLUSHALL", "FLUSHDB", "DEL", "UNLINK",
    "SET", "SETEX", "SETNX", "MSET",
    "HSET", "HSETNX", "HMSET", "HDEL",
    "LPUSH", "RPUSH", "LPOP", "RPOP", "LREM", "LSET", "LTRIM",
    "SADD", "SREM", "SPOP",
    "ZADD", "ZREM", "ZINCRBY",
    "INCR", "INCRBY", "DECR", "DECRBY",
    "EXPIRE", "PEXPIRE", "PERSIST",
    "RENAME", "RENAMENX",
})

REDIS_READ_COMMAND_SET: frozenset[str] = frozenset(REDIS_READ_COMMANDS)

EXPLANATION_PREFIX = "Explanation:"


@dataclass(frozen=True)
class DialectRules:
    """Static policy for one backend.

    Attributes:
        db_type: The backend this policy applies to.
        family: Relational or key-value.
        display_name: Name used in prompts.
        sqlglot_dialect: sqlglot read dialect, None for key-value backends.
        allow_heuristic_fallback: Accept heuristically when sqlglot cannot
            parse the statement.
        fence_tags: Code-fence tags the output parser recognizes.
    """

    db_type: DatabaseType
    family: DatabaseFamily
    display_name: str
    sqlglot_dialect: str | None
    allow_heuristic_fallback: bool
    fence_tags: tuple[str, ...]


DIALECTS: dict[DatabaseType, DialectRules] = {
    DatabaseType.mysql: DialectRules(
        db_type=DatabaseType.mysql,
        family=DatabaseFamily.RELATIONAL,
        display_name="MySQL",
        sqlglot_dialect="mysql",
        allow_heuristic_fallback=False,
        fence_tags=("sql", "mysql"),
    ),
    DatabaseType.postgresql: DialectRules(
        db_type=DatabaseType.postgresql,
        family=DatabaseFamily.RELATIONAL,
        display_name="PostgreSQL",
        sqlglot_dialect="postgres",
        allow_heuristic_fallback=True,
        fence_tags=("sql", "postgresql", "postgres", "pgsql"),
    ),
    DatabaseType.sqlite: DialectRules(
        db_type=DatabaseType.sqlite,
        family=DatabaseFamily.RELATIONAL,
        display_name="SQLite",
        sqlglot_dialect="sqlite",
        allow_heuristic_fallback=True,
        fence_tags=("sql", "sqlite"),
    ),
    DatabaseType.redis: DialectRules(
        db_type=DatabaseType.redis,
        family=DatabaseFamily.KEY_VALUE,
        display_name="Redis",
        sqlglot_dialect=None,
        allow_heuristic_fallback=False,
        fence_tags=("redis",),
    ),
}


def get_dialect(db_type: DatabaseType | str) -> DialectRules:
    """Look up the policy for a backend.

    Raises:
        KeyError: If the backend is not supported.
    """
    if not isinstance(db_type, DatabaseType):
        try:
            db_type = DatabaseType(db_type)
        except ValueError as e:
            raise KeyError(f"Unsupported backend: {db_type}") from e
    return DIALECTS[db_type]


def _version_suffix(version: str) -> str:
    return f" (version {version})" if version else ""


def _relational_system_prompt(rules: DialectRules, version: str, modify: bool) -> str:
    name = f"{rules.display_name}{_version_suffix(version)}"
    if modify:
        return f"""You are an expert SQL engineer. The user provides an existing SQL query and a new requirement; revise the existing query to satisfy it.

Rules:
1. Understand the intent of the existing query
2. Add or change conditions on top of the existing query to meet the new requirement
3. Keep the query complete and correct
4. Generate only SELECT queries; never INSERT, UPDATE, DELETE, DROP or any other statement that modifies data or structure
5. The query must be valid {name} syntax
6. Use the table and column names given in the schema
7. Output format: the complete revised SQL statement first, then optionally one line starting with "{EXPLANATION_PREFIX}" giving a short explanation"""

    return f"""You are an expert SQL engineer. Given a database schema and a natural-language question, write the matching {name} SQL query.

Rules:
1. Generate only SELECT queries; never INSERT, UPDATE, DELETE, DROP or any other statement that modifies data or structure
2. The query must be valid {rules.display_name} syntax
3. Use the table and column names given in the schema
4. Output format: the SQL statement first, then optionally one line starting with "{EXPLANATION_PREFIX}" giving a short explanation"""


def _key_value_system_prompt(rules: DialectRules, version: str, modify: bool) -> str:
    suffix = _version_suffix(version)
    allowed = ", ".join(REDIS_READ_COMMANDS)
    if modify:
        return f"""You are a {rules.display_name} expert. The user provides existing {rules.display_name} commands and a new requirement; revise or extend the existing commands to satisfy it.{suffix}

Rules:
1. Understand the intent of the existing commands
2. Add or change commands to meet the new requirement, using only read commands: {allowed}
3. Never emit a write command (SET, HSET, DEL, FLUSHALL or any other command that modifies data)
4. Output format: the complete revised commands first, one per line, then optionally one line starting with "{EXPLANATION_PREFIX}" giving a short explanation"""

    return f"""You are a {rules.display_name} expert. The schema describes key patterns (table names) and hash fields (columns). Given the schema and a natural-language question, write the matching read-only {rules.display_name} commands.{suffix}

Rules:
1. Only use read commands: {allowed}
2. Never emit FLUSHALL, DEL, SET, HSET, LPUSH, SADD, ZADD or any other command that modifies data
3. On large keyspaces prefer iterating commands such as SCAN and HSCAN over KEYS
4. Build key names and field names from the key patterns and fields in the schema
5. Output format: the commands first, one per line (several commands are allowed), then optionally a blank line and one line starting with "{EXPLANATION_PREFIX}" giving a short explanation"""


def build_system_prompt(database: DatabaseDescriptor, modify: bool = False) -> str:
    """Build the system instruction for a backend.

    Args:
        database: Target backend and version.
        modify: Ask the model to amend a previous statement instead of
            writing one from scratch.

    Returns:
        The system instruction text.
    """
    rules = get_dialect(database.type)
    if rules.family is DatabaseFamily.KEY_VALUE:
        return _key_value_system_prompt(rules, database.version, modify)
    return _relational_system_prompt(rules, database.version, modify)


def serialize_schema(schema: Schema) -> str:
    """Render the schema as indented JSON for the prompt."""
    return json.dumps(
        schema.model_dump(mode="json"),
        indent=2,
        ensure_ascii=False,
    )


def build_user_content(
    query: str,
    schema: Schema,
    previous_statement: str | None = None,
) -> str:
    """Build the user message embedding schema, question and, in
    modify-mode, the statement to amend."""
    schema_json = serialize_schema(schema)
    if previous_statement:
        return (
            f"Existing statement:\n{previous_statement}\n\n"
            f"Schema:\n{schema_json}\n\n"
            f"New requirement: {query}\n\n"
            "Revise the existing statement to meet the new requirement."
        )
    return f"Schema:\n{schema_json}\n\nQuestion: {query}"


def build_correction_prompt(database: DatabaseDescriptor, error: str) -> str:
    """Build the corrective user turn sent after a rejected attempt."""
    rules = get_dialect(database.type)
    if rules.family is DatabaseFamily.KEY_VALUE:
        subject = f"The generated {rules.display_name} commands"
    else:
        subject = "The generated SQL"
    return f"{subject} failed validation: {error}\nPlease fix it and generate it again."


def format_turn_for_replay(statement: str, explanation: str) -> str:
    """Assistant message used when replaying a prior turn."""
    return f"Statement: {statement}\n{EXPLANATION_PREFIX} {explanation}"
