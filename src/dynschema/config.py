"""Configuration management for dynschema."""

import configparser
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

from dynschema.exceptions import ConfigError, ValidationError
from dynschema.schema.identifiers import DEFAULT_SYSTEM_PREFIX, validate_identifier


def load_pg_service(service: str, path: Optional[Path] = None) -> dict[str, str]:
    """Load connection settings for a service from ~/.pg_service.conf.

    Args:
        service: Service (section) name to load.
        path: File to read; defaults to $PGSERVICEFILE or ~/.pg_service.conf.

    Returns:
        Dict with any of host, port, dbname, user, password. Empty if the
        file does not exist.

    Raises:
        ConfigError: If the file exists but the service is not defined.
    """
    if path is None:
        path = Path(os.environ.get("PGSERVICEFILE", Path.home() / ".pg_service.conf"))
    if not path.exists():
        return {}

    config = configparser.ConfigParser(interpolation=None)
    config.read(path)

    if service not in config:
        available = config.sections() or ["(none)"]
        raise ConfigError(
            f"Service '{service}' not found in {path}. "
            f"Available services: {', '.join(available)}"
        )

    section = config[service]
    return {
        key: section[key].strip()
        for key in ("host", "port", "dbname", "user", "password")
        if key in section
    }


@dataclass
class Config:
    """Configuration for dynschema."""

    dsn: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    dbname: Optional[str] = None
    user: Optional[str] = None
    password: Optional[str] = None
    schema: str = "public"
    system_prefix: str = DEFAULT_SYSTEM_PREFIX
    backend: str = "postgres"
    min_connections: int = 1
    max_connections: int = 10
    connect_timeout: int = 10
    notify_channel: Optional[str] = None
    updated_at_trigger: Optional[str] = None
    rls_default: bool = False

    @classmethod
    def from_env(
        cls,
        *,
        dsn: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
        dbname: Optional[str] = None,
        user: Optional[str] = None,
        password: Optional[str] = None,
        schema: Optional[str] = None,
        backend: Optional[str] = None,
        service: Optional[str] = None,
    ) -> "Config":
        """Load configuration from ~/.pg_service.conf, env vars, with CLI overrides.

        Priority (highest to lowest):
        1. Explicit parameters (CLI args)
        2. Environment variables (DYNSCHEMA_*, then libpq's PG*)
        3. ~/.pg_service.conf service named by ``service`` or $PGSERVICE
        """
        service_cfg: dict[str, str] = {}
        service_name = service or os.environ.get("PGSERVICE")
        if service_name:
            service_cfg = load_pg_service(service_name)

        def resolve(explicit, env_keys, cfg_key=None):
            if explicit is not None:
                return explicit
            for env_key in env_keys:
                env_val = os.environ.get(env_key)
                if env_val is not None:
                    return env_val
            if cfg_key and cfg_key in service_cfg:
                return service_cfg[cfg_key]
            return None

        def env_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError:
                raise ConfigError(f"{key} must be an integer, got {value!r}") from None

        port_value = resolve(port, ["DYNSCHEMA_PORT", "PGPORT"], "port")
        try:
            resolved_port = int(port_value) if port_value is not None else None
        except ValueError:
            raise ConfigError(f"Port must be an integer, got {port_value!r}") from None

        return cls(
            dsn=resolve(dsn, ["DYNSCHEMA_DSN", "DATABASE_URL"]),
            host=resolve(host, ["DYNSCHEMA_HOST", "PGHOST"], "host"),
            port=resolved_port,
            dbname=resolve(dbname, ["DYNSCHEMA_DBNAME", "PGDATABASE"], "dbname"),
            user=resolve(user, ["DYNSCHEMA_USER", "PGUSER"], "user"),
            password=resolve(password, ["DYNSCHEMA_PASSWORD", "PGPASSWORD"], "password"),
            schema=resolve(schema, ["DYNSCHEMA_SCHEMA"]) or "public",
            system_prefix=os.environ.get("DYNSCHEMA_SYSTEM_PREFIX", DEFAULT_SYSTEM_PREFIX),
            backend=resolve(backend, ["DYNSCHEMA_BACKEND"]) or "postgres",
            min_connections=env_int("DYNSCHEMA_MIN_CONNECTIONS", 1),
            max_connections=env_int("DYNSCHEMA_MAX_CONNECTIONS", 10),
            connect_timeout=env_int("DYNSCHEMA_CONNECT_TIMEOUT", 10),
            notify_channel=os.environ.get("DYNSCHEMA_NOTIFY_CHANNEL") or None,
            updated_at_trigger=os.environ.get("DYNSCHEMA_UPDATED_AT_TRIGGER") or None,
            rls_default=os.environ.get("DYNSCHEMA_RLS_DEFAULT", "").lower()
            in ("1", "true", "yes"),
        )

    def connect_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for psycopg2.connect, without unset values."""
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }
        return {k: v for k, v in kwargs.items() if v is not None}

    def validate_for_db_ops(self) -> None:
        """Validate that everything needed to talk to the database is present.

        Raises:
            ConfigError: If connection info is missing or a setting is invalid.
        """
        missing = []
        if not self.dsn:
            if not self.dbname:
                missing.append("dbname (use --dbname, DYNSCHEMA_DBNAME or PGDATABASE)")
            if not self.user:
                missing.append("user (use --user, DYNSCHEMA_USER or PGUSER)")

        if missing:
            raise ConfigError(
                "Missing required configuration:\n  - " + "\n  - ".join(missing)
            )

        if self.min_connections < 1 or self.max_connections < self.min_connections:
            raise ConfigError(
                f"Invalid pool size {self.min_connections}-{self.max_connections}"
            )
        for label, value in (
            ("schema", self.schema),
            ("notify_channel", self.notify_channel),
            ("updated_at_trigger", self.updated_at_trigger),
        ):
            if value is None:
                continue
            try:
                validate_identifier(value)
            except ValidationError as exc:
                raise ConfigError(f"Invalid {label}: {exc}") from exc
