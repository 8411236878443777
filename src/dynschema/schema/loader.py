"""Parse schema-change requests from wire dictionaries and YAML files."""

from pathlib import Path
from typing import Any

import yaml

from dynschema.exceptions import ValidationError
from dynschema.schema.catalog import parse_column_type
from dynschema.schema.models import ColumnDefinition, ForeignKey
from dynschema.schema.requests import (
    AddColumns,
    AddForeignKeyColumns,
    AlterChange,
    AlterTable,
    CreateTable,
    DropColumns,
    DropForeignKeyColumns,
    RenameColumns,
    RenameTable,
    UpdateColumns,
)
from dynschema.types import ReferentialAction

__all__ = [
    "load_request_file",
    "parse_alter_table",
    "parse_column",
    "parse_create_table",
    "parse_foreign_key",
]

VALID_CREATE_FIELDS = {"table_name", "columns", "rls_decl"}

VALID_ALTER_FIELDS = {
    "add_columns",
    "drop_columns",
    "rename_columns",
    "update_columns",
    "add_fkey_columns",
    "drop_fkey_columns",
    "rename_table",
}

VALID_COLUMN_FIELDS = {
    "name",
    "type",
    "nullable",
    "is_unique",
    "default_value",
    "primary_key",
    "persist_default",
    "foreign_key",
}

VALID_FOREIGN_KEY_FIELDS = {"table", "column", "on_delete", "on_update"}

VALID_UPDATE_COLUMN_FIELDS = {"name", "default_value"}


def load_request_file(path: Path) -> dict[str, Any]:
    """Read a request body from a YAML (or JSON) file."""
    if not path.is_file():
        raise ValidationError(f"Request file does not exist: {path}")
    with open(path) as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValidationError(f"Invalid YAML in {path}: {e}") from e
    if data is None:
        raise ValidationError(f"Empty request file: {path}")
    if not isinstance(data, dict):
        raise ValidationError(f"Request file {path} must contain a mapping")
    return data


def _check_fields(data: Any, valid: set[str], what: str) -> dict:
    if not isinstance(data, dict):
        raise ValidationError(f"{what} must be a mapping, got {type(data).__name__}")
    unknown_fields = set(data.keys()) - valid
    if unknown_fields:
        raise ValidationError(
            f"Unknown field(s) in {what}: {', '.join(sorted(map(str, unknown_fields)))}",
            hint=f"Valid fields: {', '.join(sorted(valid))}",
        )
    return data


def _bool(data: dict, key: str, default: bool, where: str) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValidationError(
            f"'{key}' in {where} must be true or false, got {value!r}", field=key
        )
    return value


def _list(data: dict, key: str) -> list:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ValidationError(f"'{key}' must be a list", field=key)
    return value


def _action(value: Any, key: str) -> ReferentialAction:
    if value is None:
        return ReferentialAction.RESTRICT
    if isinstance(value, str):
        try:
            return ReferentialAction(value.strip().upper().replace("_", " "))
        except ValueError:
            pass
    valid = ", ".join(a.value for a in ReferentialAction)
    raise ValidationError(
        f"Invalid {key} action {value!r}", field=key, hint=f"Use one of: {valid}"
    )


def parse_create_table(data: dict) -> CreateTable:
    """Parse a create-table body: ``{table_name, columns, rls_decl?}``."""
    _check_fields(data, VALID_CREATE_FIELDS, "create table request")

    name = data.get("table_name")
    if not name:
        raise ValidationError("Request missing 'table_name' field", field="table_name")

    columns = [parse_column(col) for col in _list(data, "columns")]
    if not columns:
        raise ValidationError(
            f"Table '{name}' must declare at least one column", field="columns"
        )

    rls = data.get("rls_decl")
    if rls is not None and not isinstance(rls, bool):
        raise ValidationError("'rls_decl' must be true or false", field="rls_decl")

    return CreateTable(table_name=name, columns=columns, rls=rls)


def parse_alter_table(table_name: str, data: dict) -> AlterTable:
    """Parse an alter-table body into one composite request.

    ``drop_columns`` and ``drop_fkey_columns`` accept plain names or
    ``{name: ...}`` mappings; ``rename_columns`` maps old names to new ones.
    ``update_columns`` entries set or (with a null ``default_value``) drop a
    column default, and ``rename_table`` is a name or ``{new_table_name}``.
    """
    _check_fields(data, VALID_ALTER_FIELDS, "alter table request")

    changes: list[AlterChange] = []
    if add := _list(data, "add_columns"):
        changes.append(AddColumns([parse_column(col) for col in add]))
    if drop := _list(data, "drop_columns"):
        changes.append(DropColumns([_column_name(item, "drop_columns") for item in drop]))
    if renames := data.get("rename_columns"):
        if not isinstance(renames, dict):
            raise ValidationError(
                "'rename_columns' must map old column names to new ones",
                field="rename_columns",
            )
        changes.append(RenameColumns({str(k): v for k, v in renames.items()}))
    if update := _list(data, "update_columns"):
        updates = [_column_update(item) for item in update]
        defaults = dict(updates)
        if len(defaults) != len(updates):
            raise ValidationError(
                "A column appears more than once in 'update_columns'", field="update_columns"
            )
        changes.append(UpdateColumns(defaults))
    if add_fkey := _list(data, "add_fkey_columns"):
        changes.append(AddForeignKeyColumns([parse_column(col) for col in add_fkey]))
    if drop_fkey := _list(data, "drop_fkey_columns"):
        changes.append(
            DropForeignKeyColumns(
                [_column_name(item, "drop_fkey_columns") for item in drop_fkey]
            )
        )
    if (rename_table := data.get("rename_table")) is not None:
        if isinstance(rename_table, dict):
            _check_fields(rename_table, {"new_table_name"}, "rename_table")
            rename_table = rename_table.get("new_table_name")
        if not rename_table or not isinstance(rename_table, str):
            raise ValidationError(
                "'rename_table' needs a new table name", field="rename_table"
            )
        changes.append(RenameTable(rename_table))

    return AlterTable(table_name=table_name, changes=changes)


def _column_update(item: Any) -> tuple[str, Any]:
    """``{name, default_value}``; a null default_value drops the default."""
    _check_fields(item, VALID_UPDATE_COLUMN_FIELDS, "update_columns entry")
    name = item.get("name")
    if not name:
        raise ValidationError(
            "Entry in 'update_columns' is missing a column name", field="update_columns"
        )
    if "default_value" not in item:
        raise ValidationError(
            f"Update of column '{name}' must set 'default_value' (null drops the default)",
            field=name,
        )
    return name, item["default_value"]


def _column_name(item: Any, key: str) -> str:
    if isinstance(item, dict):
        _check_fields(item, {"name"}, f"{key} entry")
        item = item.get("name")
    if not item:
        raise ValidationError(f"Entry in '{key}' is missing a column name", field=key)
    return item


def parse_column(data: dict) -> ColumnDefinition:
    """Parse a column definition from a dictionary."""
    _check_fields(data, VALID_COLUMN_FIELDS, "column definition")

    name = data.get("name")
    if not name:
        raise ValidationError("Column definition missing 'name' field", field="name")

    if data.get("type") is None:
        raise ValidationError(f"Column '{name}' missing 'type' field", field=name)
    col_type = parse_column_type(data["type"], column=name)

    where = f"column '{name}'"
    foreign_key = None
    if (fk_data := data.get("foreign_key")) is not None:
        foreign_key = parse_foreign_key(fk_data, name)

    return ColumnDefinition(
        name=name,
        type=col_type,
        nullable=_bool(data, "nullable", True, where),
        is_unique=_bool(data, "is_unique", False, where),
        default_value=data.get("default_value"),
        primary_key=_bool(data, "primary_key", False, where),
        foreign_key=foreign_key,
        persist_default=_bool(data, "persist_default", True, where),
    )


def parse_foreign_key(data: dict, column: str) -> ForeignKey:
    _check_fields(data, VALID_FOREIGN_KEY_FIELDS, f"foreign key of column '{column}'")
    table = data.get("table")
    ref_column = data.get("column")
    if not table or not ref_column:
        raise ValidationError(
            f"Foreign key of column '{column}' needs both 'table' and 'column'",
            field=column,
        )
    return ForeignKey(
        table=table,
        column=ref_column,
        on_delete=_action(data.get("on_delete"), "on_delete"),
        on_update=_action(data.get("on_update"), "on_update"),
    )
