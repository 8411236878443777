"""Export cached table metadata to dictionaries and YAML."""

from typing import Any

import yaml

from dynschema.schema.models import ColumnMetadata, MetadataDocument, TableMetadata


def table_to_dict(table: TableMetadata) -> dict[str, Any]:
    """Convert a TableMetadata to a dictionary suitable for YAML/JSON output."""
    data: dict[str, Any] = {"table_name": table.name}

    data["columns"] = [_column_to_dict(col) for col in table.columns]

    if table.primary_key:
        data["primary_key"] = table.primary_key

    if table.referenced_by:
        data["referenced_by"] = [
            {
                "table": fk.table,
                "column": fk.column,
                "constraint_name": fk.constraint_name,
            }
            for fk in table.referenced_by
        ]

    data["record_count"] = table.record_count
    if table.rls_enabled:
        data["rls_enabled"] = True

    if table.created_at is not None:
        data["created_at"] = table.created_at.isoformat()
    if table.updated_at is not None:
        data["updated_at"] = table.updated_at.isoformat()

    return data


def _column_to_dict(col: ColumnMetadata) -> dict[str, Any]:
    data: dict[str, Any] = {
        "name": col.name,
        "type": col.type.value,
        "storage_type": col.storage_type,
    }

    if not col.nullable:
        data["nullable"] = False

    if col.is_unique:
        data["is_unique"] = True

    if col.default_value is not None:
        data["default_value"] = col.default_value

    if col.foreign_key is not None:
        data["foreign_key"] = {
            "table": col.foreign_key.reference_table,
            "column": col.foreign_key.reference_column,
            "on_delete": col.foreign_key.on_delete.value,
            "on_update": col.foreign_key.on_update.value,
        }

    return data


def document_to_dict(document: MetadataDocument) -> dict[str, Any]:
    """Convert a whole metadata document, tables sorted by name."""
    return {
        "version": document.version,
        "tables": [table_to_dict(document.tables[name]) for name in sorted(document.tables)],
    }


def _dump(data: dict[str, Any]) -> str:
    return yaml.dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)


def export_table_yaml(table: TableMetadata) -> str:
    """Export a single table to YAML string."""
    return _dump(table_to_dict(table))


def export_document_yaml(document: MetadataDocument) -> str:
    return _dump(document_to_dict(document))
