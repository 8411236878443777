"""PostgreSQL connectivity."""

from dynschema.postgres.client import (
    BACKENDS,
    PostgresClient,
    VerifyOnlyClient,
    create_client,
)

__all__ = ["BACKENDS", "PostgresClient", "VerifyOnlyClient", "create_client"]
