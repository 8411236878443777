"""Exception classes for dynschema."""

from typing import Optional

__all__ = [
    "DynSchemaError",
    "ValidationError",
    "ConstraintViolation",
    "NotFoundError",
    "ExecutionError",
    "IntrospectionError",
    "ConfigError",
]


class DynSchemaError(Exception):
    """Base exception for dynschema.

    ``hint`` is a human-readable next action for the caller.
    """

    def __init__(self, message: str, hint: Optional[str] = None):
        self.hint = hint
        super().__init__(message)


class ValidationError(DynSchemaError):
    """Request rejected before any statement reached the database."""

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        hint: Optional[str] = None,
    ):
        self.field = field
        super().__init__(message, hint)


class _StatementFailure(DynSchemaError):
    """Carries the position of the statement that failed, when there was one."""

    def __init__(
        self,
        message: str,
        hint: Optional[str] = None,
        failed_index: Optional[int] = None,
        statement: Optional[str] = None,
        operation: Optional[str] = None,
        cause: Optional[str] = None,
    ):
        self.failed_index = failed_index
        self.statement = statement
        self.operation = operation
        self.cause = cause
        super().__init__(message, hint)


class ConstraintViolation(_StatementFailure):
    """Unique or foreign-key conflict, or a constraint blocking a drop."""

    def __init__(
        self,
        message: str,
        constraint_name: Optional[str] = None,
        field: Optional[str] = None,
        **kwargs,
    ):
        self.constraint_name = constraint_name
        self.field = field
        super().__init__(message, **kwargs)


class NotFoundError(_StatementFailure):
    """Referenced table, column or constraint does not exist."""

    def __init__(self, message: str, name: Optional[str] = None, **kwargs):
        self.name = name
        super().__init__(message, **kwargs)


class ExecutionError(_StatementFailure):
    """Any other database-reported DDL failure. The transaction was rolled back."""

    def __init__(self, message: str, failed_index: int, **kwargs):
        super().__init__(message, failed_index=failed_index, **kwargs)


class IntrospectionError(DynSchemaError):
    """Error reading the database catalogs."""


class ConfigError(DynSchemaError):
    """Error in configuration."""
