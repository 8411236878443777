"""Schema requests, DDL generation and catalog introspection."""

from dynschema.schema.codegen import DDLGenerator, PlanContext, Statement, StatementPlan
from dynschema.schema.introspect import SchemaIntrospector
from dynschema.schema.models import (
    ColumnDefinition,
    ColumnMetadata,
    ForeignKey,
    ForeignKeyInfo,
    MetadataDocument,
    TableMetadata,
)
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
    UpdateColumns,
)

__all__ = [
    "AddColumns",
    "AddForeignKeyColumns",
    "AlterTable",
    "ColumnDefinition",
    "ColumnMetadata",
    "CreateTable",
    "DDLGenerator",
    "DropColumns",
    "DropForeignKeyColumns",
    "DropTable",
    "ForeignKey",
    "ForeignKeyInfo",
    "MetadataDocument",
    "PlanContext",
    "RenameColumns",
    "RenameTable",
    "SchemaIntrospector",
    "Statement",
    "StatementPlan",
    "TableMetadata",
    "UpdateColumns",
]
