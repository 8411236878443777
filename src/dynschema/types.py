"""Core type definitions for dynschema."""

from enum import Enum
from typing import TypeAlias

TableName: TypeAlias = str
ColumnName: TypeAlias = str

__all__ = [
    "TableName",
    "ColumnName",
    "ChangeType",
    "ColumnType",
    "IdentifierKind",
    "ReferentialAction",
]


class ColumnType(Enum):
    """Abstract column types a caller may declare."""

    STRING = "string"
    DATETIME = "datetime"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    UUID = "uuid"
    JSON = "json"


class ReferentialAction(Enum):
    """ON DELETE / ON UPDATE actions for foreign keys."""

    CASCADE = "CASCADE"
    SET_NULL = "SET NULL"
    SET_DEFAULT = "SET DEFAULT"
    RESTRICT = "RESTRICT"
    NO_ACTION = "NO ACTION"


class IdentifierKind(Enum):
    """What a user-supplied identifier names."""

    TABLE = "table"
    COLUMN = "column"


class ChangeType(Enum):
    """Types of schema changes that can be requested and applied."""

    CREATE_TABLE = "create_table"
    DROP_TABLE = "drop_table"
    ADD_COLUMNS = "add_columns"
    DROP_COLUMNS = "drop_columns"
    RENAME_COLUMNS = "rename_columns"
    UPDATE_COLUMNS = "update_columns"
    ADD_FOREIGN_KEY_COLUMNS = "add_fkey_columns"
    DROP_FOREIGN_KEY_COLUMNS = "drop_fkey_columns"
    RENAME_TABLE = "rename_table"
