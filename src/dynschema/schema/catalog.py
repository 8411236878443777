"""Column type catalog: abstract ColumnType <-> PostgreSQL storage types."""

import json
import re
from dataclasses import dataclass, field
from typing import Any, Optional

from dynschema.exceptions import ValidationError
from dynschema.schema.identifiers import SQL_FUNCTION_DEFAULTS, render_default
from dynschema.types import ColumnType

__all__ = [
    "COLUMN_TYPES",
    "ColumnTypeInfo",
    "TypeValidation",
    "column_type_from_storage",
    "normalize_storage_type",
    "parse_column_type",
    "resolve",
    "storage_types_match",
    "validate_default",
]


@dataclass(frozen=True)
class TypeValidation:
    """Semantic checks applied to user-supplied values of a type."""

    min: Optional[float] = None
    max: Optional[float] = None
    pattern: Optional[str] = None


@dataclass(frozen=True)
class ColumnTypeInfo:
    type: ColumnType
    storage_type: str
    default_expression: Optional[str]
    description: str
    validation: TypeValidation = field(default_factory=TypeValidation)


COLUMN_TYPES: dict[ColumnType, ColumnTypeInfo] = {
    ColumnType.STRING: ColumnTypeInfo(
        type=ColumnType.STRING,
        storage_type="TEXT",
        default_expression=None,
        description="Text of any length",
    ),
    ColumnType.DATETIME: ColumnTypeInfo(
        type=ColumnType.DATETIME,
        storage_type="TIMESTAMPTZ",
        default_expression="CURRENT_TIMESTAMP",
        description="Date and time with timezone",
    ),
    ColumnType.INTEGER: ColumnTypeInfo(
        type=ColumnType.INTEGER,
        storage_type="INTEGER",
        default_expression=None,
        description="Whole numbers",
        validation=TypeValidation(
            min=-2147483648, max=2147483647, pattern=r"^[+-]?\d+$"
        ),
    ),
    ColumnType.FLOAT: ColumnTypeInfo(
        type=ColumnType.FLOAT,
        storage_type="DOUBLE PRECISION",
        default_expression=None,
        description="Decimal numbers with double precision",
        validation=TypeValidation(
            pattern=r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$"
        ),
    ),
    ColumnType.BOOLEAN: ColumnTypeInfo(
        type=ColumnType.BOOLEAN,
        storage_type="BOOLEAN",
        default_expression="false",
        description="True/false values",
        validation=TypeValidation(pattern=r"^(?i:true|false)$"),
    ),
    ColumnType.UUID: ColumnTypeInfo(
        type=ColumnType.UUID,
        storage_type="UUID",
        default_expression="gen_random_uuid()",
        description="Unique identifier (auto-generated)",
        validation=TypeValidation(
            pattern=r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
        ),
    ),
    ColumnType.JSON: ColumnTypeInfo(
        type=ColumnType.JSON,
        storage_type="JSONB",
        default_expression=None,
        description="Structured JSON data with indexing support",
    ),
}

# information_schema.columns.data_type and pg_type spellings.
_STORAGE_ALIASES: dict[str, str] = {
    "text": "TEXT",
    "varchar": "TEXT",
    "character varying": "TEXT",
    "char": "TEXT",
    "character": "TEXT",
    "bpchar": "TEXT",
    "timestamptz": "TIMESTAMPTZ",
    "timestamp with time zone": "TIMESTAMPTZ",
    "integer": "INTEGER",
    "int": "INTEGER",
    "int4": "INTEGER",
    "serial": "INTEGER",
    "serial4": "INTEGER",
    "double precision": "DOUBLE PRECISION",
    "float8": "DOUBLE PRECISION",
    "boolean": "BOOLEAN",
    "bool": "BOOLEAN",
    "uuid": "UUID",
    "jsonb": "JSONB",
}

# Storage types that map to a ColumnType without being its exact storage type.
_LOOSE_MAPPINGS: dict[str, ColumnType] = {
    "date": ColumnType.DATETIME,
    "timestamp": ColumnType.DATETIME,
    "timestamp without time zone": ColumnType.DATETIME,
    "bigint": ColumnType.INTEGER,
    "int8": ColumnType.INTEGER,
    "smallint": ColumnType.INTEGER,
    "int2": ColumnType.INTEGER,
    "bigserial": ColumnType.INTEGER,
    "serial8": ColumnType.INTEGER,
    "smallserial": ColumnType.INTEGER,
    "serial2": ColumnType.INTEGER,
    "real": ColumnType.FLOAT,
    "float4": ColumnType.FLOAT,
    "float": ColumnType.FLOAT,
    "numeric": ColumnType.FLOAT,
    "decimal": ColumnType.FLOAT,
    "json": ColumnType.JSON,
    "array": ColumnType.JSON,
}

_BY_STORAGE: dict[str, ColumnType] = {
    info.storage_type: t for t, info in COLUMN_TYPES.items()
}


def resolve(column_type: ColumnType) -> ColumnTypeInfo:
    """Return the catalog entry for a ColumnType.

    Raises:
        TypeError: If ``column_type`` is not a ColumnType member. Callers must
            parse wire values with ``parse_column_type`` first.
    """
    if not isinstance(column_type, ColumnType):
        raise TypeError(f"Expected ColumnType, got {column_type!r}")
    return COLUMN_TYPES[column_type]


def parse_column_type(value: Any, column: Optional[str] = None) -> ColumnType:
    """Parse a wire value such as ``"string"`` into a ColumnType."""
    if isinstance(value, ColumnType):
        return value
    if isinstance(value, str):
        try:
            return ColumnType(value.strip().lower())
        except ValueError:
            pass
    valid = ", ".join(t.value for t in ColumnType)
    raise ValidationError(
        f"Unknown column type {value!r}" + (f" for column '{column}'" if column else ""),
        field=column,
        hint=f"Column type must be one of: {valid}",
    )


def normalize_storage_type(storage_type: str) -> str:
    """Collapse PostgreSQL spellings of a storage type to the catalog spelling."""
    key = storage_type.strip().lower()
    return _STORAGE_ALIASES.get(key, storage_type.strip().upper())


def column_type_from_storage(storage_type: str) -> ColumnType:
    """Map a storage type read back from the database to a ColumnType.

    Types with no direct mapping (created outside the engine) fall back to
    STRING.
    """
    normalized = normalize_storage_type(storage_type)
    if normalized in _BY_STORAGE:
        return _BY_STORAGE[normalized]
    return _LOOSE_MAPPINGS.get(storage_type.strip().lower(), ColumnType.STRING)


def storage_types_match(left: str, right: str) -> bool:
    """Return True if two storage type spellings denote the same type."""
    return normalize_storage_type(left) == normalize_storage_type(right)


def validate_default(column_type: ColumnType, value: Any, column: str) -> None:
    """Check a user-supplied default against the type's validation rules.

    Raises:
        ValidationError: If the value cannot be stored in the column.
    """
    info = resolve(column_type)
    text = render_default(value)
    if text.lower() in SQL_FUNCTION_DEFAULTS:
        return

    def fail(reason: str) -> None:
        raise ValidationError(
            f"Invalid default value {text!r} for {column_type.value} column "
            f"'{column}': {reason}",
            field=column,
            hint=f"Provide a default that is a valid {column_type.value} value",
        )

    if column_type is ColumnType.JSON:
        try:
            json.loads(text)
        except ValueError:
            fail("not valid JSON")
        return

    rules = info.validation
    if rules.pattern and not re.match(rules.pattern, text):
        fail("does not match the expected format")
    if rules.min is not None or rules.max is not None:
        number = float(text)
        if rules.min is not None and number < rules.min:
            fail(f"below minimum {rules.min:g}")
        if rules.max is not None and number > rules.max:
            fail(f"above maximum {rules.max:g}")
