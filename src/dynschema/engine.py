"""Schema engine: validate, plan, execute and resynchronize."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from dynschema.config import Config
from dynschema.exceptions import NotFoundError
from dynschema.executor import SchemaExecutor
from dynschema.metadata import MetadataSynchronizer
from dynschema.postgres.client import PostgresClient, create_client
from dynschema.schema import catalog
from dynschema.schema.codegen import DDLGenerator, PlanContext, StatementPlan
from dynschema.schema.identifiers import validate_table_name
from dynschema.schema.introspect import SchemaIntrospector
from dynschema.schema.models import ColumnDefinition, ForeignKey, MetadataDocument, TableMetadata
from dynschema.schema.requests import (
    AlterTable,
    CreateTable,
    DropTable,
    SchemaChangeRequest,
)
from dynschema.types import ColumnType

__all__ = [
    "AlterTableResult",
    "CreateTableResult",
    "DropTableResult",
    "ResolvedColumn",
    "SchemaEngine",
]

logger = logging.getLogger(__name__)

CREATE_NEXT_ACTION = "You can now insert and query rows in table '{table}'"
DROP_NEXT_ACTION = "Table '{table}' was dropped; you can create a new table with create_table()"
ALTER_NEXT_ACTION = "Read the updated definition with get_table_schema('{table}')"


@dataclass(frozen=True)
class ResolvedColumn:
    """A declared column together with the storage type it was created with."""

    name: str
    type: ColumnType
    storage_type: str
    nullable: bool
    is_unique: bool
    default_value: Optional[Any] = None
    foreign_key: Optional[ForeignKey] = None

    @classmethod
    def from_definition(cls, col: ColumnDefinition) -> "ResolvedColumn":
        return cls(
            name=col.name,
            type=col.type,
            storage_type=catalog.resolve(col.type).storage_type,
            nullable=col.nullable,
            is_unique=col.is_unique,
            default_value=col.default_value,
            foreign_key=col.foreign_key,
        )


@dataclass
class CreateTableResult:
    table_name: str
    columns: list[ResolvedColumn]
    auto_fields: list[str]
    operations: list[str]
    next_action: str


@dataclass
class AlterTableResult:
    table_name: str
    operations: list[str]
    columns: list[ResolvedColumn] = field(default_factory=list)
    next_action: str = ""


@dataclass
class DropTableResult:
    table_name: str
    operations: list[str]
    next_action: str


class SchemaEngine:
    """Apply schema-change requests against one PostgreSQL schema.

    Every change is planned against a live read of the catalogs, executed in
    a single transaction, and followed by a refresh of the metadata entries
    it touched. Reads are served from the metadata cache.
    """

    def __init__(
        self,
        client: PostgresClient,
        generator: Optional[DDLGenerator] = None,
        introspector: Optional[SchemaIntrospector] = None,
        synchronizer: Optional[MetadataSynchronizer] = None,
        executor: Optional[SchemaExecutor] = None,
    ):
        self.client = client
        self.generator = generator or DDLGenerator()
        self.introspector = introspector or SchemaIntrospector(
            client,
            schema=self.generator.schema,
            system_prefix=self.generator.system_prefix,
        )
        self.synchronizer = synchronizer or MetadataSynchronizer(self.introspector)
        self.executor = executor or SchemaExecutor(client)

    @classmethod
    def from_config(cls, config: Config) -> "SchemaEngine":
        """Build an engine for the configured backend. Call connect() before use."""
        config.validate_for_db_ops()
        generator = DDLGenerator(
            schema=config.schema,
            system_prefix=config.system_prefix,
            notify_channel=config.notify_channel,
            updated_at_trigger=config.updated_at_trigger,
            rls_default=config.rls_default,
        )
        return cls(create_client(config), generator=generator)

    def connect(self) -> None:
        self.client.connect()

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "SchemaEngine":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -- changes -------------------------------------------------------------

    def create_table(self, request: CreateTable) -> CreateTableResult:
        plan = self._apply(request)
        return CreateTableResult(
            table_name=plan.table_name,
            columns=[ResolvedColumn.from_definition(c) for c in plan.columns],
            auto_fields=plan.auto_fields,
            operations=plan.operations,
            next_action=CREATE_NEXT_ACTION.format(table=plan.table_name),
        )

    def alter_table(self, request: AlterTable) -> AlterTableResult:
        plan = self._apply(request)
        return AlterTableResult(
            table_name=plan.table_name,
            operations=plan.operations,
            columns=[ResolvedColumn.from_definition(c) for c in plan.columns],
            next_action=ALTER_NEXT_ACTION.format(table=plan.table_name),
        )

    def drop_table(self, table_name: str) -> DropTableResult:
        plan = self._apply(DropTable(table_name))
        return DropTableResult(
            table_name=plan.table_name,
            operations=plan.operations,
            next_action=DROP_NEXT_ACTION.format(table=plan.table_name),
        )

    def plan(self, request: SchemaChangeRequest) -> StatementPlan:
        """Validate and plan a request without executing it."""
        request = self.generator.check(request)
        context = self._load_context(request)
        plan = self.generator.generate(request, context)
        logger.info(
            f"Planned {len(plan.statements)} statement(s) for '{plan.table_name}': "
            + ", ".join(plan.operations)
        )
        return plan

    def _apply(self, request: SchemaChangeRequest) -> StatementPlan:
        plan = self.plan(request)
        self.executor.execute(plan)
        self.synchronizer.refresh_tables(plan.affected_tables)
        return plan

    def _load_context(self, request: SchemaChangeRequest) -> PlanContext:
        """Read the live catalog state the generator needs for ``request``."""
        context = PlanContext()
        if not isinstance(request, CreateTable):
            context.target = self.introspector.introspect_table(request.table_name)
        referenced = self.generator.referenced_tables(request)
        if referenced:
            context.referenced = self.introspector.introspect_tables(sorted(referenced))
        if isinstance(request, AlterTable) and context.target is not None:
            needs_backfill = any(
                not c.nullable and not c.has_default for c in request.added_columns()
            )
            if needs_backfill:
                context.has_rows = self.introspector.has_rows(request.table_name)
        return context

    # -- reads ---------------------------------------------------------------

    def get_table_schema(self, table_name: str) -> TableMetadata:
        """Cached definition of one table.

        Raises:
            ValidationError: If the name is not a valid user table name.
            NotFoundError: If the table does not exist.
        """
        validate_table_name(table_name, self.generator.system_prefix)
        table = self.synchronizer.get(table_name)
        if table is None:
            raise NotFoundError(
                f"Table '{table_name}' not found",
                name=table_name,
                hint="List the existing tables with get_metadata()",
            )
        return table

    def get_metadata(self) -> MetadataDocument:
        return self.synchronizer.snapshot()

    def refresh_metadata(self, table_name: Optional[str] = None) -> MetadataDocument:
        """Re-read the catalogs after out-of-band DDL."""
        if table_name is not None:
            validate_table_name(table_name, self.generator.system_prefix)
        return self.synchronizer.refresh(table_name)
