"""Schema-change requests.

Each request variant carries only the fields its operation needs. A PATCH on a
table becomes one ``AlterTable`` holding an ordered list of alter variants.
"""

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from dynschema.schema.models import ColumnDefinition
from dynschema.types import ChangeType


@dataclass
class CreateTable:
    table_name: str
    columns: list[ColumnDefinition]
    rls: Optional[bool] = None

    change_type: ClassVar[ChangeType] = ChangeType.CREATE_TABLE


@dataclass
class DropTable:
    table_name: str

    change_type: ClassVar[ChangeType] = ChangeType.DROP_TABLE


@dataclass
class AddColumns:
    columns: list[ColumnDefinition]

    change_type: ClassVar[ChangeType] = ChangeType.ADD_COLUMNS


@dataclass
class DropColumns:
    names: list[str]

    change_type: ClassVar[ChangeType] = ChangeType.DROP_COLUMNS


@dataclass
class RenameColumns:
    """Old name -> new name, applied in insertion order."""

    renames: dict[str, str]

    change_type: ClassVar[ChangeType] = ChangeType.RENAME_COLUMNS


@dataclass
class AddForeignKeyColumns:
    columns: list[ColumnDefinition]

    change_type: ClassVar[ChangeType] = ChangeType.ADD_FOREIGN_KEY_COLUMNS


@dataclass
class DropForeignKeyColumns:
    names: list[str]

    change_type: ClassVar[ChangeType] = ChangeType.DROP_FOREIGN_KEY_COLUMNS


@dataclass
class UpdateColumns:
    """Column name -> new default. ``None`` drops the column's default.

    Names refer to columns as they are after the request's drops and renames.
    """

    defaults: dict[str, Optional[Any]]

    change_type: ClassVar[ChangeType] = ChangeType.UPDATE_COLUMNS


@dataclass
class RenameTable:
    new_name: str

    change_type: ClassVar[ChangeType] = ChangeType.RENAME_TABLE


AlterChange = Union[
    AddColumns,
    DropColumns,
    RenameColumns,
    UpdateColumns,
    AddForeignKeyColumns,
    DropForeignKeyColumns,
    RenameTable,
]

# Dependency-safe execution order for a composite alter.
ALTER_ORDER: tuple[ChangeType, ...] = (
    ChangeType.DROP_FOREIGN_KEY_COLUMNS,
    ChangeType.DROP_COLUMNS,
    ChangeType.RENAME_COLUMNS,
    ChangeType.UPDATE_COLUMNS,
    ChangeType.ADD_COLUMNS,
    ChangeType.ADD_FOREIGN_KEY_COLUMNS,
    ChangeType.RENAME_TABLE,
)


@dataclass
class AlterTable:
    """Composite alter request against one table."""

    table_name: str
    changes: list[AlterChange] = field(default_factory=list)

    def ordered_changes(self) -> list[AlterChange]:
        """Return changes sorted into ALTER_ORDER, stable within a type."""
        return sorted(self.changes, key=lambda c: ALTER_ORDER.index(c.change_type))

    def added_columns(self) -> list[ColumnDefinition]:
        cols: list[ColumnDefinition] = []
        for change in self.ordered_changes():
            if isinstance(change, (AddColumns, AddForeignKeyColumns)):
                cols.extend(change.columns)
        return cols

    def dropped_columns(self) -> list[str]:
        names: list[str] = []
        for change in self.ordered_changes():
            if isinstance(change, (DropColumns, DropForeignKeyColumns)):
                names.extend(change.names)
        return names

    def renames(self) -> dict[str, str]:
        """All column renames, old name -> new name."""
        result: dict[str, str] = {}
        for change in self.changes:
            if isinstance(change, RenameColumns):
                result.update(change.renames)
        return result

    def new_table_name(self) -> Optional[str]:
        """The name the table ends up with, if the request renames it."""
        for change in self.changes:
            if isinstance(change, RenameTable):
                return change.new_name
        return None


SchemaChangeRequest = Union[CreateTable, DropTable, AlterTable]
