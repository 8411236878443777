"""Transactional execution of statement plans."""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from typing import Any, Protocol

import psycopg2
from psycopg2 import errors

from dynschema.exceptions import (
    ConstraintViolation,
    ExecutionError,
    NotFoundError,
)
from dynschema.schema.codegen import Statement, StatementPlan

__all__ = ["SchemaExecutor", "TransactionalClient", "translate_error"]

logger = logging.getLogger(__name__)

_NOT_FOUND = (errors.UndefinedTable, errors.UndefinedColumn, errors.UndefinedObject)
_CONSTRAINT = (psycopg2.IntegrityError, errors.DependentObjectsStillExist)


class TransactionalClient(Protocol):
    def transaction(self) -> AbstractContextManager[Any]: ...


def _diag(exc: psycopg2.Error, attr: str) -> str | None:
    diag = getattr(exc, "diag", None)
    return getattr(diag, attr, None) if diag is not None else None


def translate_error(
    exc: psycopg2.Error, index: int, statement: Statement
) -> ConstraintViolation | NotFoundError | ExecutionError:
    """Map a database error raised by statement ``index`` to the error taxonomy.

    The database message is kept verbatim in ``cause``.
    """
    cause = (_diag(exc, "message_primary") or str(exc)).strip()
    location = dict(
        failed_index=index,
        statement=statement.sql,
        operation=statement.operation,
        cause=cause,
    )
    where = f"statement {index}" + (f" ({statement.operation})" if statement.operation else "")

    if isinstance(exc, _NOT_FOUND):
        return NotFoundError(
            f"{where} failed: {cause}",
            name=_diag(exc, "table_name") or _diag(exc, "column_name"),
            hint="Re-check the table definition with get_table_schema()",
            **location,
        )
    if isinstance(exc, _CONSTRAINT):
        constraint = _diag(exc, "constraint_name")
        column = _diag(exc, "column_name")
        return ConstraintViolation(
            f"{where} failed: {cause}",
            constraint_name=constraint,
            field=column,
            hint=_constraint_hint(exc, constraint, column),
            **location,
        )
    return ExecutionError(f"{where} failed: {cause}", **location)


def _constraint_hint(exc: psycopg2.Error, constraint: str | None, column: str | None) -> str:
    if column:
        subject = f"column '{column}'"
    elif constraint:
        subject = f"constraint '{constraint}'"
    else:
        subject = "the change"

    if isinstance(exc, errors.UniqueViolation):
        return f"Existing rows contain duplicate values for {subject}; deduplicate them first"
    if isinstance(exc, errors.ForeignKeyViolation):
        return f"Existing rows violate {subject}; fix or remove rows with dangling references"
    if isinstance(exc, errors.NotNullViolation):
        return f"Existing rows contain NULL for {subject}; provide a default_value"
    if isinstance(exc, errors.DependentObjectsStillExist):
        return "Other objects depend on this one; drop the dependent foreign keys first"
    return f"Existing data conflicts with {subject}"


class SchemaExecutor:
    """Apply a statement plan in a single transaction.

    Any failing statement rolls back the whole plan. DDL is never retried.
    """

    def __init__(self, client: TransactionalClient) -> None:
        self._client = client

    def execute(self, plan: StatementPlan) -> int:
        """Run every statement of ``plan``.

        Returns:
            Number of statements applied.

        Raises:
            ConstraintViolation, NotFoundError, ExecutionError: If a statement
                fails. Nothing from the plan is committed.
        """
        applied = 0
        with self._client.transaction() as cursor:
            for index, statement in enumerate(plan.statements):
                logger.debug(f"[{plan.table_name}] {index}: {statement.sql}")
                try:
                    cursor.execute(statement.sql)
                except psycopg2.Error as exc:
                    error = translate_error(exc, index, statement)
                    logger.error(
                        f"Rolled back changes to '{plan.table_name}': {error}"
                    )
                    raise error from exc
                applied += 1
        logger.info(f"Applied {applied} statement(s) to '{plan.table_name}'")
        return applied
