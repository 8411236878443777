"""Identifier validation and quoting.

Every table or column name supplied by a caller passes through
``validate_identifier`` before it is interpolated into a statement, and every
interpolation goes through ``quote_identifier`` or ``quote_default``. No other
module escapes SQL.
"""

import json
import re
from typing import Any

from dynschema.exceptions import ValidationError
from dynschema.types import IdentifierKind

__all__ = [
    "DEFAULT_SYSTEM_PREFIX",
    "MAX_IDENTIFIER_BYTES",
    "SQL_FUNCTION_DEFAULTS",
    "is_valid_identifier",
    "quote_default",
    "quote_identifier",
    "render_default",
    "validate_identifier",
    "validate_table_name",
]

DEFAULT_SYSTEM_PREFIX = "_"

# PostgreSQL's NAMEDATALEN - 1; longer names are silently truncated.
MAX_IDENTIFIER_BYTES = 63

# Defaults that are emitted as SQL expressions rather than literals.
SQL_FUNCTION_DEFAULTS = frozenset(
    {"now()", "gen_random_uuid()", "current_timestamp"}
)

_UNSAFE_CHARS_RE = re.compile(r'["\x00-\x1f\x7f]')


def _check(identifier: Any, kind: IdentifierKind, system_prefix: str) -> str | None:
    """Return the reason the identifier is unsafe, or None."""
    if not isinstance(identifier, str) or not identifier.strip():
        return f"Invalid {kind.value} name: cannot be empty"
    if _UNSAFE_CHARS_RE.search(identifier):
        return (
            f"Invalid {kind.value} name {identifier!r}: "
            "cannot contain quotes or control characters"
        )
    if len(identifier.encode("utf-8")) > MAX_IDENTIFIER_BYTES:
        return (
            f"Invalid {kind.value} name {identifier!r}: "
            f"longer than {MAX_IDENTIFIER_BYTES} bytes"
        )
    if (
        kind is IdentifierKind.TABLE
        and system_prefix
        and identifier.startswith(system_prefix)
    ):
        return (
            f"Invalid table name {identifier!r}: names starting with "
            f"{system_prefix!r} are reserved for system tables"
        )
    return None


def validate_identifier(
    identifier: Any,
    kind: IdentifierKind = IdentifierKind.COLUMN,
    system_prefix: str = DEFAULT_SYSTEM_PREFIX,
) -> str:
    """Validate a table or column name.

    Args:
        identifier: The caller-supplied name.
        kind: Whether the name is a table or a column. Table names must not
            start with the reserved system prefix.
        system_prefix: Prefix reserved for system tables.

    Returns:
        The identifier, unchanged.

    Raises:
        ValidationError: If the identifier is empty, contains a double quote
            or control character, is too long, or is a reserved table name.
    """
    reason = _check(identifier, kind, system_prefix)
    if reason is not None:
        raise ValidationError(
            reason,
            field=identifier if isinstance(identifier, str) else None,
            hint=(
                f"Please provide a valid {kind.value} name without double quotes "
                "or control characters (tabs, newlines, etc.)"
            ),
        )
    return identifier


def validate_table_name(
    name: Any, system_prefix: str = DEFAULT_SYSTEM_PREFIX
) -> str:
    """Validate a table name, including the system prefix rule."""
    return validate_identifier(name, IdentifierKind.TABLE, system_prefix)


def is_valid_identifier(
    identifier: Any,
    kind: IdentifierKind = IdentifierKind.COLUMN,
    system_prefix: str = DEFAULT_SYSTEM_PREFIX,
) -> bool:
    """Non-throwing form of ``validate_identifier``."""
    return _check(identifier, kind, system_prefix) is None


def quote_identifier(identifier: str) -> str:
    """Quote a validated identifier for interpolation into DDL."""
    return '"' + identifier.replace('"', '""') + '"'


def _dollar_quote(value: str) -> str:
    tag = "val"
    while f"${tag}$" in value:
        tag += "_"
    return f"${tag}${value}${tag}$"


def render_default(value: Any) -> str:
    """Render a raw default value as the text that will be stored.

    Booleans become ``true``/``false`` and containers become JSON.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value).strip()


def quote_default(value: Any) -> str:
    """Return the SQL expression for a default value.

    Known functions pass through lowercased; everything else becomes a
    dollar-quoted literal whose tag cannot collide with the value.
    """
    text = render_default(value)
    if text.lower() in SQL_FUNCTION_DEFAULTS:
        return text.lower()
    return _dollar_quote(text)
