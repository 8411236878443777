"""Generate DDL statement plans from schema-change requests."""

import dataclasses
from dataclasses import dataclass, field
from typing import Optional

from dynschema.exceptions import ConstraintViolation, NotFoundError, ValidationError
from dynschema.schema import catalog
from dynschema.schema.identifiers import (
    DEFAULT_SYSTEM_PREFIX,
    quote_default,
    quote_identifier,
    validate_identifier,
    validate_table_name,
)
from dynschema.schema.models import ColumnDefinition, ColumnMetadata, ForeignKey, TableMetadata
from dynschema.schema.requests import (
    AddColumns,
    AddForeignKeyColumns,
    AlterTable,
    CreateTable,
    DropColumns,
    DropForeignKeyColumns,
    DropTable,
    RenameColumns,
    RenameTable,
    SchemaChangeRequest,
    UpdateColumns,
)
from dynschema.types import ChangeType, ColumnType, IdentifierKind, ReferentialAction

__all__ = [
    "AUTO_FIELDS",
    "RESERVED_COLUMNS",
    "DDLGenerator",
    "PlanContext",
    "Statement",
    "StatementPlan",
]

RESERVED_COLUMNS: dict[str, ColumnType] = {
    "id": ColumnType.UUID,
    "created_at": ColumnType.DATETIME,
    "updated_at": ColumnType.DATETIME,
}

AUTO_FIELDS = ["id", "created_at", "updated_at"]

_SCHEMA_READ_HINT = "Re-check the current table definition with get_table_schema()"


@dataclass(frozen=True)
class Statement:
    """One DDL statement. ``operation`` is the summary shown to callers."""

    sql: str
    operation: Optional[str] = None


@dataclass
class StatementPlan:
    """Ordered statements for one request, executed in a single transaction."""

    table_name: str
    statements: list[Statement] = field(default_factory=list)
    auto_fields: list[str] = field(default_factory=list)
    affected_tables: list[str] = field(default_factory=list)
    columns: list[ColumnDefinition] = field(default_factory=list)

    @property
    def operations(self) -> list[str]:
        """Distinct operation summaries in execution order."""
        seen: list[str] = []
        for stmt in self.statements:
            if stmt.operation and stmt.operation not in seen:
                seen.append(stmt.operation)
        return seen

    def sql(self) -> str:
        return ";\n".join(s.sql for s in self.statements) + ";"


@dataclass
class PlanContext:
    """Live catalog state the generator needs.

    Read from the database right before planning, never from the metadata
    cache.
    """

    target: Optional[TableMetadata] = None
    referenced: dict[str, TableMetadata] = field(default_factory=dict)
    has_rows: bool = False


class DDLGenerator:
    """Turn schema-change requests into statement plans."""

    def __init__(
        self,
        schema: str = "public",
        system_prefix: str = DEFAULT_SYSTEM_PREFIX,
        notify_channel: Optional[str] = None,
        updated_at_trigger: Optional[str] = None,
        rls_default: bool = False,
    ):
        self.schema = schema
        self.system_prefix = system_prefix
        self.notify_channel = notify_channel
        self.updated_at_trigger = updated_at_trigger
        self.rls_default = rls_default

    # -- validation -------------------------------------------------------

    def check(self, request: SchemaChangeRequest) -> SchemaChangeRequest:
        """Validate a request without touching the database.

        Returns the request with reserved columns of matching type removed.

        Raises:
            ValidationError: On any unsafe or inconsistent input.
        """
        if isinstance(request, CreateTable):
            return self._check_create(request)
        if isinstance(request, AlterTable):
            return self._check_alter(request)
        if isinstance(request, DropTable):
            self._table(request.table_name)
            return request
        raise TypeError(f"Unsupported request type: {type(request).__name__}")

    def _table(self, name: str) -> str:
        return validate_table_name(name, self.system_prefix)

    def _check_create(self, request: CreateTable) -> CreateTable:
        self._table(request.table_name)
        columns = self._check_columns(request.columns)
        if not columns:
            raise ValidationError(
                "Table must have at least one user-defined column",
                hint=(
                    "Please add at least one custom column "
                    "(not id, created_at, or updated_at) to the table."
                ),
            )
        self._check_unique([c.name for c in columns], "column")
        self._check_fk_cycles(request.table_name, columns)
        return dataclasses.replace(request, columns=columns)

    def _check_alter(self, request: AlterTable) -> AlterTable:
        table = self._table(request.table_name)
        if not request.changes:
            raise ValidationError(
                f"No changes requested for table '{table}'",
                hint="Provide at least one of add_columns, drop_columns, rename_columns, "
                "update_columns, add_fkey_columns, drop_fkey_columns or rename_table",
            )

        changes = []
        for change in request.changes:
            if isinstance(change, (AddColumns, AddForeignKeyColumns)):
                if isinstance(change, AddForeignKeyColumns):
                    for col in change.columns:
                        if col.foreign_key is None:
                            raise ValidationError(
                                f"Column '{col.name}' in add_fkey_columns has no foreign_key",
                                field=col.name,
                            )
                change = dataclasses.replace(
                    change, columns=self._check_columns(change.columns)
                )
            elif isinstance(change, (DropColumns, DropForeignKeyColumns)):
                for name in change.names:
                    self._check_not_reserved(name, "drop")
            elif isinstance(change, RenameColumns):
                for old, new in change.renames.items():
                    self._check_not_reserved(old, "rename")
                    self._check_not_reserved(new, "rename to")
            elif isinstance(change, UpdateColumns):
                for name in change.defaults:
                    self._check_not_reserved(name, "update")
            elif isinstance(change, RenameTable):
                self._check_rename_table(table, change.new_name)
            changes.append(change)

        checked = dataclasses.replace(request, changes=changes)
        added = [c.name for c in checked.added_columns()]
        dropped = checked.dropped_columns()
        renames = checked.renames()
        updated = [
            name
            for change in checked.changes
            if isinstance(change, UpdateColumns)
            for name in change.defaults
        ]

        self._check_unique(added, "added column")
        self._check_unique(dropped, "dropped column")
        self._check_unique(list(renames.values()) + added, "column")
        self._check_unique(updated, "updated column")
        if sum(isinstance(c, RenameTable) for c in checked.changes) > 1:
            raise ValidationError(
                f"Table '{table}' can only be renamed once per request", field="rename_table"
            )
        for name in renames:
            if name in dropped:
                raise ValidationError(
                    f"Column '{name}' cannot be both dropped and renamed",
                    field=name,
                )
        for name in updated:
            if name in dropped:
                raise ValidationError(
                    f"Column '{name}' cannot be both dropped and updated",
                    field=name,
                )
        self._check_fk_cycles(table, checked.added_columns())
        return checked

    def _check_rename_table(self, table: str, new_name: str) -> None:
        try:
            self._table(new_name)
        except ValidationError as exc:
            raise ValidationError(
                f"Cannot rename table '{table}' to '{new_name}': {exc}",
                field="rename_table",
                hint=exc.hint,
            ) from exc
        if new_name == table:
            raise ValidationError(
                f"Table '{table}' already has that name", field="rename_table"
            )

    def _check_columns(self, columns: list[ColumnDefinition]) -> list[ColumnDefinition]:
        """Validate column definitions and strip matching reserved columns."""
        kept = []
        for index, col in enumerate(columns):
            try:
                validate_identifier(col.name, IdentifierKind.COLUMN)
            except ValidationError as exc:
                raise ValidationError(
                    f"Invalid column name at index {index}: {exc}",
                    field=exc.field,
                    hint=exc.hint,
                ) from exc
            catalog.resolve(col.type)

            reserved_type = RESERVED_COLUMNS.get(col.name)
            if reserved_type is not None:
                if col.type is not reserved_type:
                    raise ValidationError(
                        f"Column '{col.name}' is a reserved field that requires type "
                        f"'{reserved_type.value}', but got '{col.type.value}'",
                        field=col.name,
                        hint="id, created_at and updated_at are managed automatically",
                    )
                if col.primary_key and col.name != "id":
                    raise ValidationError(
                        f"Column '{col.name}' cannot be a primary key; "
                        "the primary key is the auto-managed 'id' column",
                        field=col.name,
                    )
                # Managed columns keep their generated definition.
                continue

            if col.primary_key:
                raise ValidationError(
                    f"Column '{col.name}' cannot be a primary key; "
                    "the primary key is the auto-managed 'id' column",
                    field=col.name,
                    hint="Declare the column with is_unique instead",
                )
            if col.has_default:
                catalog.validate_default(col.type, col.default_value, col.name)
            if col.foreign_key is not None:
                self._check_foreign_key(col)
            kept.append(col)
        return kept

    def _check_foreign_key(self, col: ColumnDefinition) -> None:
        fk = col.foreign_key
        validate_table_name(fk.table, self.system_prefix)
        validate_identifier(fk.column, IdentifierKind.COLUMN)
        for action in (fk.on_delete, fk.on_update):
            if not isinstance(action, ReferentialAction):
                raise TypeError(f"Expected ReferentialAction, got {action!r}")
        if not col.nullable and ReferentialAction.SET_NULL in (fk.on_delete, fk.on_update):
            raise ValidationError(
                f"Foreign key on non-nullable column '{col.name}' cannot use SET NULL",
                field=col.name,
                hint="Make the column nullable or choose another referential action",
            )

    def _check_not_reserved(self, name: str, verb: str) -> None:
        validate_identifier(name, IdentifierKind.COLUMN)
        if name in RESERVED_COLUMNS:
            raise ValidationError(
                f"Cannot {verb} system column '{name}'",
                field=name,
                hint="id, created_at and updated_at are managed automatically",
            )

    @staticmethod
    def _check_unique(names: list[str], what: str) -> None:
        seen: set[str] = set()
        for name in names:
            if name in seen:
                raise ValidationError(f"Duplicate {what} name '{name}'", field=name)
            seen.add(name)

    @staticmethod
    def _check_fk_cycles(table: str, columns: list[ColumnDefinition]) -> None:
        """Reject foreign keys between columns declared in the same request
        that reference each other in a loop."""
        names = {c.name for c in columns}
        edges = {
            c.name: c.foreign_key.column
            for c in columns
            if c.foreign_key is not None
            and c.foreign_key.table == table
            and c.foreign_key.column in names
        }
        for start in edges:
            node, visited = start, set()
            while node in edges:
                if node in visited:
                    raise ValidationError(
                        f"Foreign key on column '{start}' creates a reference cycle "
                        f"within table '{table}'",
                        field=start,
                        hint="Self-references must target an existing key such as 'id'",
                    )
                visited.add(node)
                node = edges[node]

    # -- planning ----------------------------------------------------------

    def referenced_tables(self, request: SchemaChangeRequest) -> set[str]:
        """Other tables whose live definitions are needed to plan the request."""
        if isinstance(request, CreateTable):
            columns = request.columns
        elif isinstance(request, AlterTable):
            columns = request.added_columns()
        else:
            return set()
        return {
            c.foreign_key.table
            for c in columns
            if c.foreign_key is not None and c.foreign_key.table != request.table_name
        }

    def generate(
        self, request: SchemaChangeRequest, context: Optional[PlanContext] = None
    ) -> StatementPlan:
        """Produce the statement plan for a request.

        Raises:
            ValidationError: Invalid input or conflicting foreign-key types.
            NotFoundError: Target or referenced table/column does not exist.
            ConstraintViolation: A drop is blocked by a dependent constraint.
        """
        request = self.check(request)
        context = context or PlanContext()

        generators = {
            ChangeType.CREATE_TABLE: self._gen_create_table,
            ChangeType.DROP_TABLE: self._gen_drop_table,
        }
        if isinstance(request, AlterTable):
            plan = self._gen_alter_table(request, context)
        else:
            plan = generators[request.change_type](request, context)

        if self.notify_channel:
            plan.statements.append(
                Statement(f"NOTIFY {quote_identifier(self.notify_channel)}, 'reload schema'")
            )
        return plan

    def _fqn(self, table_name: str) -> str:
        """Schema-qualified, quoted table name."""
        return f"{quote_identifier(self.schema)}.{quote_identifier(table_name)}"

    def _gen_create_table(self, request: CreateTable, context: PlanContext) -> StatementPlan:
        table = request.table_name
        fqn = self._fqn(table)
        self._check_fk_targets(table, request.columns, {}, context)

        col_defs = ['    "id" UUID PRIMARY KEY DEFAULT gen_random_uuid()']
        for col in request.columns:
            default = None
            if col.has_default and col.persist_default:
                default = quote_default(col.default_value)
            elif not col.nullable:
                default = self._type_default(col.type)
            col_defs.append("    " + self._column_sql(col, default))
        col_defs.append('    "created_at" TIMESTAMPTZ DEFAULT now()')
        col_defs.append('    "updated_at" TIMESTAMPTZ DEFAULT now()')

        columns_sql = ",\n".join(col_defs)
        statements = [
            Statement(f"CREATE TABLE {fqn} (\n{columns_sql}\n)", f"Created table: {table}")
        ]
        statements.extend(self._constraint_statements(table, request.columns))

        rls = self.rls_default if request.rls is None else request.rls
        if rls:
            statements.append(
                Statement(
                    f"ALTER TABLE {fqn} ENABLE ROW LEVEL SECURITY",
                    f"Enabled row level security on table: {table}",
                )
            )
        if self.updated_at_trigger:
            trigger = quote_identifier(f"{table}_update_timestamp")
            statements.append(
                Statement(
                    f"CREATE TRIGGER {trigger} BEFORE UPDATE ON {fqn} "
                    f"FOR EACH ROW EXECUTE FUNCTION "
                    f"{quote_identifier(self.updated_at_trigger)}()",
                    f"Created updated_at trigger on table: {table}",
                )
            )

        return StatementPlan(
            table_name=table,
            statements=statements,
            auto_fields=list(AUTO_FIELDS),
            affected_tables=[table, *sorted(self.referenced_tables(request))],
            columns=list(request.columns),
        )

    def _gen_drop_table(self, request: DropTable, context: PlanContext) -> StatementPlan:
        table = request.table_name
        if context.target is None:
            raise NotFoundError(
                f"Table '{table}' not found",
                name=table,
                hint="Check the table name, or create it with create_table()",
            )
        target = context.target
        linked = {fk.table for fk in target.referenced_by} | {
            fk.reference_table for fk in target.foreign_keys
        }
        return StatementPlan(
            table_name=table,
            statements=[
                Statement(f"DROP TABLE {self._fqn(table)} CASCADE", f"Dropped table: {table}")
            ],
            affected_tables=[table, *sorted(linked - {table})],
        )

    def _gen_alter_table(self, request: AlterTable, context: PlanContext) -> StatementPlan:
        table = request.table_name
        target = context.target
        if target is None:
            raise NotFoundError(
                f"Table '{table}' not found",
                name=table,
                hint="Check the table name, or create it with create_table()",
            )
        dropped = set(request.dropped_columns())
        for name in request.dropped_columns():
            self._check_droppable(target, name, dropped)

        remaining = self._remaining_columns(target, request)
        user_columns = [name for name in remaining if name not in RESERVED_COLUMNS]
        if not user_columns and not request.added_columns():
            raise ValidationError(
                f"Table '{table}' must have at least one user-defined column after update",
                hint="Add a new column in the same request or drop fewer columns",
            )
        self._check_fk_targets(table, request.added_columns(), remaining, context)

        generators = {
            ChangeType.ADD_COLUMNS: self._gen_add_columns,
            ChangeType.DROP_COLUMNS: self._gen_drop_columns,
            ChangeType.RENAME_COLUMNS: self._gen_rename_columns,
            ChangeType.ADD_FOREIGN_KEY_COLUMNS: self._gen_add_columns,
            ChangeType.DROP_FOREIGN_KEY_COLUMNS: self._gen_drop_fkey_columns,
        }
        statements: list[Statement] = []
        for change in request.ordered_changes():
            if isinstance(change, UpdateColumns):
                statements.extend(self._gen_update_columns(table, change, remaining))
            elif not isinstance(change, RenameTable):
                statements.extend(generators[change.change_type](table, change, context))
        statements.extend(self._constraint_statements(table, request.added_columns()))

        final_name = request.new_table_name() or table
        if final_name != table:
            statements.append(
                Statement(
                    f"ALTER TABLE {self._fqn(table)} RENAME TO {quote_identifier(final_name)}",
                    f"Renamed table: {table} -> {final_name}",
                )
            )

        # Tables on either end of a foreign key embed this table's column names.
        affected = (
            {fk.reference_table for fk in target.foreign_keys}
            | {fk.table for fk in target.referenced_by}
            | self.referenced_tables(request)
        )
        return StatementPlan(
            table_name=final_name,
            statements=statements,
            affected_tables=list(
                dict.fromkeys([table, final_name, *sorted(affected - {table, final_name})])
            ),
            columns=request.added_columns(),
        )

    @staticmethod
    def _remaining_columns(
        target: TableMetadata, request: AlterTable
    ) -> dict[str, ColumnMetadata]:
        """Existing columns as they will be named once drops and renames apply."""
        dropped = set(request.dropped_columns())
        renames = request.renames()
        return {
            renames.get(col.name, col.name): col
            for col in target.columns
            if col.name not in dropped
        }

    def _gen_add_columns(
        self, table: str, change: AddColumns | AddForeignKeyColumns, context: PlanContext
    ) -> list[Statement]:
        fqn = self._fqn(table)
        statements = []
        for col in change.columns:
            default, keep = self._add_time_default(table, col, context.has_rows)
            operation = f"Added column: {col.name}"
            statements.append(
                Statement(f"ALTER TABLE {fqn} ADD COLUMN {self._column_sql(col, default)}", operation)
            )
            if default is not None and not keep:
                statements.append(
                    Statement(
                        f"ALTER TABLE {fqn} ALTER COLUMN {quote_identifier(col.name)} DROP DEFAULT",
                        operation,
                    )
                )
        return statements

    def _gen_drop_columns(
        self, table: str, change: DropColumns, context: PlanContext
    ) -> list[Statement]:
        fqn = self._fqn(table)
        return [
            Statement(
                f"ALTER TABLE {fqn} DROP COLUMN {quote_identifier(name)}",
                f"Dropped column: {name}",
            )
            for name in change.names
        ]

    def _gen_rename_columns(
        self, table: str, change: RenameColumns, context: PlanContext
    ) -> list[Statement]:
        fqn = self._fqn(table)
        return [
            Statement(
                f"ALTER TABLE {fqn} RENAME COLUMN {quote_identifier(old)} TO {quote_identifier(new)}",
                f"Renamed column: {old} -> {new}",
            )
            for old, new in change.renames.items()
        ]

    def _gen_update_columns(
        self, table: str, change: UpdateColumns, remaining: dict[str, ColumnMetadata]
    ) -> list[Statement]:
        fqn = self._fqn(table)
        statements = []
        for name, value in change.defaults.items():
            col = remaining.get(name)
            if col is None:
                raise NotFoundError(
                    f"Column '{name}' not found on table '{table}'",
                    name=name,
                    hint=_SCHEMA_READ_HINT,
                )
            if value is None:
                action = "DROP DEFAULT"
            else:
                catalog.validate_default(col.type, value, name)
                action = f"SET DEFAULT {quote_default(value)}"
            statements.append(
                Statement(
                    f"ALTER TABLE {fqn} ALTER COLUMN {quote_identifier(name)} {action}",
                    f"Updated column: {name}",
                )
            )
        return statements

    def _gen_drop_fkey_columns(
        self, table: str, change: DropForeignKeyColumns, context: PlanContext
    ) -> list[Statement]:
        fqn = self._fqn(table)
        by_column = {fk.column: fk for fk in context.target.foreign_keys}
        statements = []
        for name in change.names:
            fk = by_column.get(name)
            if fk is None:
                raise NotFoundError(
                    f"Column '{name}' on table '{table}' has no foreign key constraint",
                    name=name,
                    hint=_SCHEMA_READ_HINT,
                )
            statements.append(
                Statement(
                    f"ALTER TABLE {fqn} DROP CONSTRAINT {quote_identifier(fk.constraint_name)}",
                    f"Dropped foreign key constraint on column: {name}",
                )
            )
            statements.append(
                Statement(
                    f"ALTER TABLE {fqn} DROP COLUMN {quote_identifier(name)}",
                    f"Dropped column: {name}",
                )
            )
        return statements

    # -- helpers -----------------------------------------------------------

    @staticmethod
    def _type_default(column_type: ColumnType) -> Optional[str]:
        expression = catalog.resolve(column_type).default_expression
        return quote_default(expression) if expression else None

    def _add_time_default(
        self, table: str, col: ColumnDefinition, has_rows: bool
    ) -> tuple[Optional[str], bool]:
        """Return (default expression, keep it after the add) for ADD COLUMN.

        NOT NULL columns are backfilled with the caller's default or the type
        default. Without either, the add is rejected if the table has rows.
        """
        if col.has_default:
            return quote_default(col.default_value), col.persist_default
        if col.nullable:
            return None, True
        type_default = self._type_default(col.type)
        if type_default is not None:
            return type_default, True
        if has_rows:
            raise ValidationError(
                f"Cannot add non-nullable column '{col.name}' without a default "
                f"to table '{table}', which already contains rows",
                field=col.name,
                hint="Provide a default_value (set persist_default to false to use it "
                "only for existing rows) or make the column nullable",
            )
        return None, True

    @staticmethod
    def _column_sql(col: ColumnDefinition, default: Optional[str]) -> str:
        parts = [quote_identifier(col.name), catalog.resolve(col.type).storage_type]
        if not col.nullable:
            parts.append("NOT NULL")
        if default is not None:
            parts.append(f"DEFAULT {default}")
        return " ".join(parts)

    def _constraint_statements(
        self, table: str, columns: list[ColumnDefinition]
    ) -> list[Statement]:
        """UNIQUE constraints for every column first, then foreign keys.

        A foreign key may target a unique column declared in the same request.
        """
        fqn = self._fqn(table)
        statements = []
        for col in columns:
            if col.is_unique:
                name = quote_identifier(f"{table}_{col.name}_key")
                statements.append(
                    Statement(
                        f"ALTER TABLE {fqn} ADD CONSTRAINT {name} UNIQUE ({quote_identifier(col.name)})",
                        f"Added unique constraint on column: {col.name}",
                    )
                )
        for col in columns:
            if col.foreign_key is not None:
                statements.append(
                    Statement(
                        f"ALTER TABLE {fqn} ADD {self._fkey_constraint_sql(col.name, col.foreign_key)}",
                        f"Added foreign key constraint on column: {col.name}",
                    )
                )
        return statements

    def _fkey_constraint_sql(self, column: str, fk: ForeignKey) -> str:
        name = quote_identifier(f"fk_{column}_{fk.table}_{fk.column}")
        return (
            f"CONSTRAINT {name} FOREIGN KEY ({quote_identifier(column)}) "
            f"REFERENCES {self._fqn(fk.table)} ({quote_identifier(fk.column)}) "
            f"ON DELETE {fk.on_delete.value} ON UPDATE {fk.on_update.value}"
        )

    def _check_fk_targets(
        self,
        table: str,
        columns: list[ColumnDefinition],
        own_columns: dict[str, ColumnMetadata],
        context: PlanContext,
    ) -> None:
        """Every foreign key must point at an existing column of the same storage type.

        ``own_columns`` are the table's existing columns as they will be named
        after the request's drops and renames; self-references resolve there.
        """
        declared = {c.name: c for c in columns}
        for col in columns:
            fk = col.foreign_key
            if fk is None:
                continue
            if fk.table == table and fk.column in declared:
                ref_storage = catalog.resolve(declared[fk.column].type).storage_type
            elif fk.table == table and fk.column in RESERVED_COLUMNS:
                ref_storage = catalog.resolve(RESERVED_COLUMNS[fk.column]).storage_type
            elif fk.table == table:
                ref_col = own_columns.get(fk.column)
                if ref_col is None:
                    raise NotFoundError(
                        f"Referenced column '{fk.table}.{fk.column}' not found",
                        name=fk.column,
                        hint="A foreign key cannot reference a column that is missing, "
                        "or dropped or renamed in the same request",
                    )
                ref_storage = ref_col.storage_type
            else:
                ref_table = context.referenced.get(fk.table)
                if ref_table is None:
                    raise NotFoundError(
                        f"Referenced table '{fk.table}' not found",
                        name=fk.table,
                        hint=_SCHEMA_READ_HINT,
                    )
                ref_col = ref_table.get_column(fk.column)
                if ref_col is None:
                    raise NotFoundError(
                        f"Referenced column '{fk.table}.{fk.column}' not found",
                        name=fk.column,
                        hint=_SCHEMA_READ_HINT,
                    )
                ref_storage = ref_col.storage_type

            own_storage = catalog.resolve(col.type).storage_type
            if not catalog.storage_types_match(own_storage, ref_storage):
                raise ValidationError(
                    f"Foreign key column '{col.name}' has type {own_storage} but "
                    f"'{fk.table}.{fk.column}' has type {catalog.normalize_storage_type(ref_storage)}",
                    field=col.name,
                    hint="Declare the column with the same type as the referenced column",
                )

    def _check_droppable(self, target: TableMetadata, name: str, dropped: set[str]) -> None:
        if name in target.primary_key:
            raise ConstraintViolation(
                f"Cannot drop primary key column '{name}' of table '{target.name}'",
                field=name,
                hint="The primary key column cannot be dropped",
            )
        for fk in target.referenced_by:
            if fk.reference_column != name:
                continue
            if fk.table == target.name and fk.column in dropped:
                continue
            raise ConstraintViolation(
                f"Cannot drop column '{name}': it is referenced by foreign key "
                f"'{fk.constraint_name}' on '{fk.table}.{fk.column}'",
                constraint_name=fk.constraint_name,
                field=name,
                hint=f"Drop the foreign key on '{fk.table}.{fk.column}' first",
            )
