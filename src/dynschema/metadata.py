"""Process-local metadata cache kept in sync with the database catalogs."""

import dataclasses
import logging
import threading
from datetime import datetime, timezone
from typing import Iterable, Optional

from dynschema.schema.introspect import SchemaIntrospector
from dynschema.schema.models import MetadataDocument, TableMetadata

__all__ = ["MetadataSynchronizer"]

logger = logging.getLogger(__name__)


class MetadataSynchronizer:
    """Owns the MetadataDocument.

    Synchronization is one-directional: catalog -> cache. The document is
    built lazily on first read and each refresh swaps in a new document, so a
    reader sees either the previous version or the next, never a mix.

    Refreshes read the catalogs without holding the lock and only take it to
    merge and swap. The first build runs under the lock so concurrent first
    readers share it. Reads never take the lock once the document exists.
    """

    def __init__(self, introspector: SchemaIntrospector) -> None:
        self._introspector = introspector
        self._document: Optional[MetadataDocument] = None
        self._lock = threading.Lock()
        self._version = 0

    def snapshot(self) -> MetadataDocument:
        """Current document, building it on first use."""
        document = self._document
        if document is not None:
            return document
        with self._lock:
            if self._document is None:
                self._replace_all_locked(self._introspector.introspect_all())
            return self._document

    def get(self, table_name: str) -> Optional[TableMetadata]:
        """Cached metadata for one table, or None if it does not exist."""
        return self.snapshot().get_table(table_name)

    def refresh(self, table_name: Optional[str] = None) -> MetadataDocument:
        """Re-read the catalogs.

        With no table name the whole document is rebuilt (process start,
        operator-triggered reconciliation after out-of-band DDL). Otherwise
        only that table's entry is replaced, or removed if the table is gone.
        """
        if table_name is None:
            fresh = self._introspector.introspect_all()
            with self._lock:
                return self._replace_all_locked(fresh)
        return self.refresh_tables([table_name])

    def refresh_tables(self, table_names: Iterable[str]) -> MetadataDocument:
        """Replace the entries for several tables in one swap."""
        names = list(dict.fromkeys(table_names))
        if self._document is not None:
            fresh = self._introspector.introspect_tables(names)
            with self._lock:
                if self._document is not None:
                    return self._merge_locked(names, fresh)
        return self.refresh()

    def invalidate(self) -> None:
        """Drop the document; the next read rebuilds it."""
        with self._lock:
            self._document = None

    def _merge_locked(
        self, names: list[str], fresh: dict[str, TableMetadata]
    ) -> MetadataDocument:
        base = self._document
        now = datetime.now(timezone.utc)
        tables = dict(base.tables)
        for name in names:
            if name in fresh:
                tables[name] = self._stamp(fresh[name], base.get_table(name), now)
            else:
                tables.pop(name, None)
        self._document = MetadataDocument(
            tables=tables, version=self._next_version(), refreshed_at=now
        )
        logger.debug(
            f"Refreshed metadata for {', '.join(names)} (version {self._document.version})"
        )
        return self._document

    def _replace_all_locked(self, fresh: dict[str, TableMetadata]) -> MetadataDocument:
        previous = self._document
        now = datetime.now(timezone.utc)
        tables = {
            name: self._stamp(table, previous.get_table(name) if previous else None, now)
            for name, table in fresh.items()
        }
        self._document = MetadataDocument(
            tables=tables,
            version=self._next_version(),
            refreshed_at=now,
        )
        logger.info(
            f"Rebuilt metadata: {len(tables)} table(s) (version {self._document.version})"
        )
        return self._document

    def _next_version(self) -> int:
        self._version += 1
        return self._version

    @staticmethod
    def _stamp(
        table: TableMetadata, previous: Optional[TableMetadata], now: datetime
    ) -> TableMetadata:
        created_at = previous.created_at if previous is not None else now
        return dataclasses.replace(table, created_at=created_at, updated_at=now)
