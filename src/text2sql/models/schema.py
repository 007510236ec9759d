"""Schema and database descriptor models.

A conversation is pinned to one declared schema and one target database.
These models describe both, plus the structural comparison rules the
context resolver uses when a later turn resupplies them.
"""

from enum import Enum

from pydantic import BaseModel, Field, field_validator


class DatabaseFamily(str, Enum):
    """Query language class that drives prompt and validation rules."""

    RELATIONAL = "relational"
    KEY_VALUE = "key_value"


class DatabaseType(str, Enum):
    """Supported target backends."""

    mysql = "mysql"
    postgresql = "postgresql"
    sqlite = "sqlite"
    redis = "redis"

    @property
    def family(self) -> DatabaseFamily:
        if self is DatabaseType.redis:
            return DatabaseFamily.KEY_VALUE
        return DatabaseFamily.RELATIONAL


# Accepted spellings that normalize to a canonical DatabaseType value
DATABASE_TYPE_ALIASES: dict[str, str] = {
    "postgres": "postgresql",
    "pg": "postgresql",
}


def normalize_database_type(value: str) -> str:
    """Lowercase a backend identifier and resolve known aliases."""
    lowered = value.strip().lower()
    return DATABASE_TYPE_ALIASES.get(lowered, lowered)


class Column(BaseModel):
    """A column in a declared table.

    Attributes:
        name: Column name as used in generated statements.
        type: Free-text type (e.g. 'int', 'varchar(100)', 'hash field').
        comment: Optional human description to help the model.
    """

    name: str = Field(..., min_length=1, description="Column name")
    type: str = Field(default="", description="Declared column type")
    comment: str = Field(default="", description="Optional column description")


class Table(BaseModel):
    """A declared table (or, for key-value stores, a key pattern)."""

    name: str = Field(..., min_length=1, description="Table name or key pattern")
    columns: list[Column] = Field(default_factory=list)


class Schema(BaseModel):
    """Ordered list of declared tables."""

    tables: list[Table] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.tables


class DatabaseDescriptor(BaseModel):
    """Target backend family and optional version.

    Used only to select dialect policy; no connection is ever made.
    ``type`` may be omitted in a request, which the resolver treats the
    same as not sending a descriptor at all.
    """

    type: DatabaseType | None = Field(default=None, description="Backend identifier")
    version: str = Field(default="", description="Free-text backend version")

    @field_validator("type", mode="before")
    @classmethod
    def _normalize_type(cls, value: object) -> object:
        if isinstance(value, str):
            normalized = normalize_database_type(value)
            return normalized or None
        return value

    @field_validator("version", mode="before")
    @classmethod
    def _none_version(cls, value: object) -> object:
        return "" if value is None else value

    @property
    def is_empty(self) -> bool:
        return self.type is None


def schemas_match(stored: Schema, supplied: Schema) -> bool:
    """Compare two schemas structurally.

    The comparison is shallow: same number of tables, same table names in
    the same order, same column count per table. Column names and types
    are not compared.
    """
    if len(stored.tables) != len(supplied.tables):
        return False
    for stored_table, supplied_table in zip(stored.tables, supplied.tables):
        if stored_table.name != supplied_table.name:
            return False
        if len(stored_table.columns) != len(supplied_table.columns):
            return False
    return True


def databases_match(stored: DatabaseDescriptor, supplied: DatabaseDescriptor) -> bool:
    """Return True when family and version string are identical."""
    return stored.type == supplied.type and stored.version == supplied.version
