"""Schema introspection from the PostgreSQL catalogs."""

import logging
import re
from typing import Any, Iterable, Optional, Protocol, Sequence

import psycopg2

from dynschema.exceptions import IntrospectionError
from dynschema.schema.catalog import column_type_from_storage
from dynschema.schema.identifiers import DEFAULT_SYSTEM_PREFIX, quote_identifier
from dynschema.schema.models import ColumnMetadata, ForeignKeyInfo, TableMetadata
from dynschema.types import ReferentialAction

logger = logging.getLogger(__name__)


class SQLClient(Protocol):
    """Protocol for the read side of a SQL client."""

    def fetchall(
        self, sql: str, params: Optional[Sequence[Any]] = None
    ) -> list[dict[str, Any]]: ...


_TABLES_SQL = """
    SELECT table_name
    FROM information_schema.tables
    WHERE table_schema = %s
      AND table_type = 'BASE TABLE'
    ORDER BY table_name
"""

_COLUMNS_SQL = """
    SELECT column_name, data_type, udt_name, is_nullable, column_default
    FROM information_schema.columns
    WHERE table_schema = %s
      AND table_name = %s
    ORDER BY ordinal_position
"""

_KEYS_SQL = """
    SELECT tc.constraint_name, tc.constraint_type, kcu.column_name
    FROM information_schema.table_constraints tc
    JOIN information_schema.key_column_usage kcu
      ON tc.constraint_name = kcu.constraint_name
     AND tc.table_schema = kcu.table_schema
     AND tc.table_name = kcu.table_name
    WHERE tc.table_schema = %s
      AND tc.table_name = %s
      AND tc.constraint_type IN ('PRIMARY KEY', 'UNIQUE')
"""

_FOREIGN_KEYS_SQL = """
    SELECT
      con.conname AS constraint_name,
      src.relname AS table_name,
      src_att.attname AS column_name,
      ref.relname AS reference_table,
      ref_att.attname AS reference_column,
      con.confdeltype AS on_delete,
      con.confupdtype AS on_update
    FROM pg_catalog.pg_constraint con
    JOIN pg_catalog.pg_class src ON src.oid = con.conrelid
    JOIN pg_catalog.pg_namespace n ON n.oid = src.relnamespace
    JOIN pg_catalog.pg_class ref ON ref.oid = con.confrelid
    CROSS JOIN LATERAL unnest(con.conkey, con.confkey)
      WITH ORDINALITY AS k(attnum, ref_attnum, position)
    JOIN pg_catalog.pg_attribute src_att
      ON src_att.attrelid = con.conrelid AND src_att.attnum = k.attnum
    JOIN pg_catalog.pg_attribute ref_att
      ON ref_att.attrelid = con.confrelid AND ref_att.attnum = k.ref_attnum
    WHERE con.contype = 'f'
      AND n.nspname = %s
    ORDER BY src.relname, con.conname, k.position
"""

_STATS_SQL = """
    SELECT c.reltuples::bigint AS estimate, c.relrowsecurity AS rls_enabled
    FROM pg_catalog.pg_class c
    JOIN pg_catalog.pg_namespace n ON n.oid = c.relnamespace
    WHERE n.nspname = %s
      AND c.relname = %s
      AND c.relkind IN ('r', 'p')
"""

_STRING_DEFAULT_RE = re.compile(r"^'((?:[^']|'')*)'::[\w\s]+$")
_CAST_DEFAULT_RE = re.compile(r"^(.+?)::[\w\s]+$")


def parse_default(column_default: Optional[str]) -> Optional[str]:
    """Strip PostgreSQL's type cast from a catalog default.

    ``'abc'::text`` becomes ``abc`` and ``123::integer`` becomes ``123``.
    """
    if not column_default:
        return None
    match = _STRING_DEFAULT_RE.match(column_default)
    if match:
        return match.group(1).replace("''", "'")
    match = _CAST_DEFAULT_RE.match(column_default)
    if match:
        return match.group(1)
    return column_default


# pg_constraint.confdeltype / confupdtype codes
_ACTION_CODES = {
    "a": ReferentialAction.NO_ACTION,
    "r": ReferentialAction.RESTRICT,
    "c": ReferentialAction.CASCADE,
    "n": ReferentialAction.SET_NULL,
    "d": ReferentialAction.SET_DEFAULT,
}


def _action(code: Optional[str]) -> ReferentialAction:
    return _ACTION_CODES.get(code or "a", ReferentialAction.NO_ACTION)


class SchemaIntrospector:
    """Read table definitions from information_schema and pg_catalog."""

    def __init__(
        self,
        client: SQLClient,
        schema: str = "public",
        system_prefix: str = DEFAULT_SYSTEM_PREFIX,
    ) -> None:
        self._client = client
        self._schema = schema
        self._system_prefix = system_prefix

    def _fetch(self, sql: str, params: Sequence[Any]) -> list[dict[str, Any]]:
        try:
            return self._client.fetchall(sql, params)
        except psycopg2.Error as exc:
            raise IntrospectionError(f"Catalog query failed: {exc}") from exc

    def list_tables(self) -> list[str]:
        """User table names, excluding system-prefixed tables."""
        rows = self._fetch(_TABLES_SQL, (self._schema,))
        return [
            row["table_name"]
            for row in rows
            if not (self._system_prefix and row["table_name"].startswith(self._system_prefix))
        ]

    def introspect_table(self, table_name: str) -> TableMetadata | None:
        """Introspect a single table. Returns None if it does not exist."""
        return self.introspect_tables([table_name]).get(table_name)

    def introspect_tables(self, table_names: Iterable[str]) -> dict[str, TableMetadata]:
        """Introspect several tables, sharing one foreign-key query.

        Tables that do not exist are absent from the result.
        """
        names = list(dict.fromkeys(table_names))
        if not names:
            return {}
        foreign_keys = self._fetch_foreign_keys()
        tables = {}
        for name in names:
            table = self._build_table(name, foreign_keys)
            if table is not None:
                tables[name] = table
        return tables

    def introspect_all(self) -> dict[str, TableMetadata]:
        """Introspect every user table in the schema."""
        return self.introspect_tables(self.list_tables())

    def has_rows(self, table_name: str) -> bool:
        """Return True if the table contains at least one row."""
        sql = f"SELECT EXISTS (SELECT 1 FROM {self._fqn(table_name)}) AS has_rows"
        rows = self._fetch(sql, ())
        return bool(rows and rows[0]["has_rows"])

    def _fqn(self, table_name: str) -> str:
        return f"{quote_identifier(self._schema)}.{quote_identifier(table_name)}"

    def _build_table(
        self, table_name: str, foreign_keys: list[ForeignKeyInfo]
    ) -> TableMetadata | None:
        column_rows = self._fetch(_COLUMNS_SQL, (self._schema, table_name))
        if not column_rows:
            return None

        primary_key, unique = self._fetch_keys(table_name)
        outbound = tuple(fk for fk in foreign_keys if fk.table == table_name)
        inbound = tuple(fk for fk in foreign_keys if fk.reference_table == table_name)
        fk_by_column = {fk.column: fk for fk in outbound}

        columns = []
        for row in column_rows:
            name = row["column_name"]
            storage_type = row["data_type"]
            if storage_type == "USER-DEFINED":
                storage_type = row.get("udt_name") or storage_type
            columns.append(
                ColumnMetadata(
                    name=name,
                    type=column_type_from_storage(storage_type),
                    storage_type=storage_type,
                    nullable=row["is_nullable"] == "YES",
                    primary_key=name in primary_key,
                    is_unique=name in primary_key or name in unique,
                    default_value=parse_default(row.get("column_default")),
                    foreign_key=fk_by_column.get(name),
                )
            )

        record_count, rls_enabled = self._fetch_stats(table_name)
        return TableMetadata(
            name=table_name,
            columns=tuple(columns),
            foreign_keys=outbound,
            referenced_by=inbound,
            record_count=record_count,
            rls_enabled=rls_enabled,
        )

    def _fetch_keys(self, table_name: str) -> tuple[set[str], set[str]]:
        """Return (primary key columns, single-column unique columns)."""
        rows = self._fetch(_KEYS_SQL, (self._schema, table_name))
        primary_key: set[str] = set()
        unique_constraints: dict[str, list[str]] = {}
        for row in rows:
            if row["constraint_type"] == "PRIMARY KEY":
                primary_key.add(row["column_name"])
            else:
                unique_constraints.setdefault(row["constraint_name"], []).append(
                    row["column_name"]
                )
        unique = {cols[0] for cols in unique_constraints.values() if len(cols) == 1}
        return primary_key, unique

    def _fetch_foreign_keys(self) -> list[ForeignKeyInfo]:
        rows = self._fetch(_FOREIGN_KEYS_SQL, (self._schema,))
        return [
            ForeignKeyInfo(
                constraint_name=row["constraint_name"],
                table=row["table_name"],
                column=row["column_name"],
                reference_table=row["reference_table"],
                reference_column=row["reference_column"],
                on_delete=_action(row.get("on_delete")),
                on_update=_action(row.get("on_update")),
            )
            for row in rows
        ]

    def _fetch_stats(self, table_name: str) -> tuple[int, bool]:
        """Approximate row count and RLS flag.

        Falls back to COUNT(*) when the planner has no estimate yet.
        """
        rows = self._fetch(_STATS_SQL, (self._schema, table_name))
        estimate, rls_enabled = -1, False
        if rows:
            estimate = rows[0].get("estimate")
            estimate = -1 if estimate is None else int(estimate)
            rls_enabled = bool(rows[0].get("rls_enabled"))
        if estimate <= 0:
            count_rows = self._fetch(
                f"SELECT COUNT(*) AS row_count FROM {self._fqn(table_name)}", ()
            )
            estimate = int(count_rows[0]["row_count"]) if count_rows else 0
        return estimate, rls_enabled
