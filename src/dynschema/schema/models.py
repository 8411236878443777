"""Schema representation classes."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional

from dynschema.types import ColumnType, ReferentialAction


@dataclass(frozen=True)
class ForeignKey:
    """Foreign key reference declared on a column."""

    table: str
    column: str
    on_delete: ReferentialAction = ReferentialAction.RESTRICT
    on_update: ReferentialAction = ReferentialAction.RESTRICT


@dataclass
class ColumnDefinition:
    """Column as declared by a caller.

    ``persist_default=False`` means ``default_value`` is only used to backfill
    existing rows when the column is added and is dropped afterwards.
    """

    name: str
    type: ColumnType
    nullable: bool = True
    is_unique: bool = False
    default_value: Optional[Any] = None
    primary_key: bool = False
    foreign_key: Optional[ForeignKey] = None
    persist_default: bool = True

    @property
    def has_default(self) -> bool:
        return self.default_value is not None


@dataclass(frozen=True)
class ForeignKeyInfo:
    """Foreign key constraint as read from the catalog."""

    constraint_name: str
    table: str
    column: str
    reference_table: str
    reference_column: str
    on_delete: ReferentialAction = ReferentialAction.NO_ACTION
    on_update: ReferentialAction = ReferentialAction.NO_ACTION


@dataclass(frozen=True)
class ColumnMetadata:
    """Column as it exists in the database."""

    name: str
    type: ColumnType
    storage_type: str
    nullable: bool
    primary_key: bool = False
    is_unique: bool = False
    default_value: Optional[str] = None
    foreign_key: Optional[ForeignKeyInfo] = None


@dataclass(frozen=True)
class TableMetadata:
    """Table as it exists in the database.

    ``referenced_by`` lists foreign keys in any table that point at this one.
    ``created_at``/``updated_at`` record when the synchronizer first and last
    observed the table; PostgreSQL keeps no such timestamps.
    """

    name: str
    columns: tuple[ColumnMetadata, ...]
    foreign_keys: tuple[ForeignKeyInfo, ...] = ()
    referenced_by: tuple[ForeignKeyInfo, ...] = ()
    record_count: int = 0
    rls_enabled: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def get_column(self, name: str) -> Optional[ColumnMetadata]:
        """Get a column by name."""
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def column_names(self) -> list[str]:
        return [col.name for col in self.columns]

    @property
    def primary_key(self) -> list[str]:
        return [col.name for col in self.columns if col.primary_key]


@dataclass(frozen=True)
class MetadataDocument:
    """Snapshot of every user table's metadata.

    Instances are never mutated; the synchronizer replaces the whole document
    on each refresh and bumps ``version``.
    """

    tables: dict[str, TableMetadata] = field(default_factory=dict)
    version: int = 0
    refreshed_at: Optional[datetime] = None

    def get_table(self, name: str) -> Optional[TableMetadata]:
        """Get a table by name."""
        return self.tables.get(name)

    def table_names(self) -> set[str]:
        """Get all table names."""
        return set(self.tables.keys())
