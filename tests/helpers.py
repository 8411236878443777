"""Shared test helpers for dynschema tests."""

from contextlib import contextmanager
from typing import Callable, Optional
from unittest.mock import MagicMock

from dynschema.config import Config

STORAGE_TYPES = {
    "TEXT": ("text", "text"),
    "TIMESTAMPTZ": ("timestamp with time zone", "timestamptz"),
    "INTEGER": ("integer", "int4"),
    "DOUBLE PRECISION": ("double precision", "float8"),
    "BOOLEAN": ("boolean", "bool"),
    "UUID": ("uuid", "uuid"),
    "JSONB": ("jsonb", "jsonb"),
}

ACTION_CODES = {
    "NO ACTION": "a",
    "RESTRICT": "r",
    "CASCADE": "c",
    "SET NULL": "n",
    "SET DEFAULT": "d",
}


def make_test_config(**overrides) -> Config:
    """Create a Config for tests with sensible defaults."""
    values = {"dbname": "test_db", "user": "tester", "host": "localhost"}
    values.update(overrides)
    return Config(**values)


def column_row(
    name: str,
    storage_type: str = "TEXT",
    nullable: bool = True,
    default: Optional[str] = None,
) -> dict:
    """A row as returned by the information_schema.columns query."""
    data_type, udt_name = STORAGE_TYPES.get(storage_type, (storage_type.lower(),) * 2)
    return {
        "column_name": name,
        "data_type": data_type,
        "udt_name": udt_name,
        "is_nullable": "YES" if nullable else "NO",
        "column_default": default,
    }


def managed_columns(*user_columns: dict) -> list[dict]:
    """id, the given columns, then created_at/updated_at, as the engine creates them."""
    return [
        column_row("id", "UUID", nullable=False, default="gen_random_uuid()"),
        *user_columns,
        column_row("created_at", "TIMESTAMPTZ", default="now()"),
        column_row("updated_at", "TIMESTAMPTZ", default="now()"),
    ]


class FakeDatabase:
    """In-memory stand-in for PostgresClient.

    ``fetchall`` answers the introspector's catalog queries from the tables
    registered with ``add_table``/``add_foreign_key``. ``transaction`` yields a
    cursor that records statements; a statement containing a key of
    ``fail_on`` raises the mapped psycopg2 error. ``on_commit`` runs once when
    a transaction commits, so tests can mirror the effect of the DDL.
    """

    def __init__(self, schema: str = "public"):
        self.schema = schema
        self.columns: dict[str, list[dict]] = {}
        self.keys: dict[str, list[dict]] = {}
        self.foreign_keys: list[dict] = []
        self.row_counts: dict[str, int] = {}
        self.rls: dict[str, bool] = {}
        self.fail_on: dict[str, Exception] = {}
        self.on_commit: Optional[Callable[[], None]] = None
        self.executed: list[str] = []
        self.committed: list[list[str]] = []
        self.rolled_back = 0
        self.fetchall = MagicMock(side_effect=self._fetchall)
        self.connect = MagicMock()
        self.close = MagicMock()

    # -- state ------------------------------------------------------------

    def add_table(
        self,
        name: str,
        columns: list[dict],
        unique: tuple[str, ...] = (),
        rows: int = 0,
        rls: bool = False,
    ) -> None:
        self.columns[name] = list(columns)
        keys = []
        if any(c["column_name"] == "id" for c in columns):
            keys.append(
                {"constraint_name": f"{name}_pkey", "constraint_type": "PRIMARY KEY", "column_name": "id"}
            )
        for col in unique:
            keys.append(
                {"constraint_name": f"{name}_{col}_key", "constraint_type": "UNIQUE", "column_name": col}
            )
        self.keys[name] = keys
        self.row_counts[name] = rows
        self.rls[name] = rls

    def add_foreign_key(
        self,
        table: str,
        column: str,
        reference_table: str,
        reference_column: str = "id",
        constraint_name: Optional[str] = None,
        on_delete: str = "NO ACTION",
        on_update: str = "NO ACTION",
    ) -> None:
        self.foreign_keys.append(
            {
                "constraint_name": constraint_name
                or f"fk_{column}_{reference_table}_{reference_column}",
                "table_name": table,
                "column_name": column,
                "reference_table": reference_table,
                "reference_column": reference_column,
                "on_delete": ACTION_CODES[on_delete],
                "on_update": ACTION_CODES[on_update],
            }
        )

    def remove_table(self, name: str) -> None:
        self.columns.pop(name, None)
        self.keys.pop(name, None)
        self.foreign_keys = [
            fk
            for fk in self.foreign_keys
            if fk["table_name"] != name and fk["reference_table"] != name
        ]

    # -- SQLClient ----------------------------------------------------------

    def _table_in_sql(self, sql: str) -> Optional[str]:
        for name in self.columns:
            if f'"{self.schema}"."{name}"' in sql:
                return name
        return None

    def _fetchall(self, sql: str, params=None) -> list[dict]:
        sql_lower = sql.lower()
        params = tuple(params or ())
        table = params[1] if len(params) > 1 else None

        if "information_schema.tables" in sql_lower:
            return [{"table_name": name} for name in sorted(self.columns)]
        if "information_schema.columns" in sql_lower:
            return [dict(c) for c in self.columns.get(table, [])]
        if "contype = 'f'" in sql_lower:
            return [dict(fk) for fk in self.foreign_keys]
        if "'primary key', 'unique'" in sql_lower:
            return [dict(k) for k in self.keys.get(table, [])]
        if "pg_class" in sql_lower:
            if table not in self.columns:
                return []
            return [{"estimate": self.row_counts.get(table, 0), "rls_enabled": self.rls.get(table, False)}]
        if "select exists" in sql_lower:
            name = self._table_in_sql(sql)
            return [{"has_rows": bool(self.row_counts.get(name, 0))}]
        if "count(*)" in sql_lower:
            name = self._table_in_sql(sql)
            return [{"row_count": self.row_counts.get(name, 0)}]
        return []

    @contextmanager
    def transaction(self):
        statements: list[str] = []
        cursor = MagicMock()

        def execute(sql, params=None):
            self.executed.append(sql)
            for needle, error in self.fail_on.items():
                if needle in sql:
                    raise error
            statements.append(sql)

        cursor.execute.side_effect = execute
        try:
            yield cursor
        except BaseException:
            self.rolled_back += 1
            raise
        self.committed.append(statements)
        if self.on_commit is not None:
            on_commit, self.on_commit = self.on_commit, None
            on_commit()
