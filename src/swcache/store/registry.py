"""Named, persistent stores of cached responses backed by :mod:`diskcache`.

Every store is its own :class:`diskcache.Cache` directory, so deleting a
store is a single ``rmtree`` and never a partial trim. A
:class:`diskcache.Index` records which stores exist, in the order they were
created; cross-store lookups walk that order.

Records are stored as plain dicts (``ResponseRecord.model_dump()``) keyed by
the string form of their :class:`~swcache.models.RequestKey`, e.g.
``"GET https://home.example.com/api/accounts"``. A ``set`` replaces the
whole value, so readers never observe a half-written record and concurrent
writers of the same key need no coordination: the last write wins. The
registry itself may be called from worker threads; a lock guards its table
of open handles.

A second :class:`diskcache.Index` in ``meta/`` holds activation markers:
the names of precache stores whose generation finished activating.
"""

from __future__ import annotations

import hashlib
import logging
import shutil
import sqlite3
import threading
from pathlib import Path
from typing import Any, Iterable, Optional

import diskcache

from swcache.exceptions import StoreWriteError
from swcache.models import RequestKey, ResponseRecord

logger = logging.getLogger(__name__)

_STORAGE_ERRORS = (OSError, sqlite3.Error, diskcache.Timeout)


class CacheStore:
    """A single named store mapping request keys to response records.

    Obtain instances through :meth:`StoreRegistry.open`; do not construct
    them directly.
    """

    def __init__(self, name: str, cache: diskcache.Cache) -> None:
        self._name = name
        self._cache = cache

    @property
    def name(self) -> str:
        return self._name

    def match(self, key: RequestKey) -> Optional[ResponseRecord]:
        """Return the record stored for *key*, or ``None``."""
        data = self._cache.get(str(key))
        if data is None:
            return None
        return ResponseRecord.model_validate(data)

    def put(self, key: RequestKey, record: ResponseRecord) -> None:
        """Store *record* under *key*, replacing any previous record.

        Raises:
            StoreWriteError: If the underlying storage rejects the write.
        """
        try:
            self._cache.set(str(key), record.model_dump())
        except _STORAGE_ERRORS as exc:
            raise StoreWriteError(f"Cannot write {key} into '{self._name}': {exc}") from exc

    def put_all(self, items: Iterable[tuple[RequestKey, ResponseRecord]]) -> None:
        """Store several records in one transaction: all of them or none.

        Raises:
            StoreWriteError: If the transaction fails.
        """
        try:
            with self._cache.transact():
                for key, record in items:
                    self._cache.set(str(key), record.model_dump())
        except _STORAGE_ERRORS as exc:
            raise StoreWriteError(f"Cannot populate '{self._name}': {exc}") from exc

    def keys(self) -> list[str]:
        """Return the string form of every key in the store."""
        return list(self._cache)

    def close(self) -> None:
        self._cache.close()

    def __contains__(self, key: object) -> bool:
        return str(key) in self._cache

    def __len__(self) -> int:
        return len(self._cache)


class StoreRegistry:
    """Opens, reads, writes and deletes whole named stores.

    Args:
        directory: Root directory. The store index lives in ``index/``,
            activation markers in ``meta/`` and each store's data in
            ``data/<digest>/``.

    Example::

        registry = StoreRegistry(tmp_path / "stores")
        registry.put("holy-home-runtime", key, record)
        hit = registry.match(key)          # searches every store
        registry.delete("holy-home-v1")
    """

    def __init__(self, directory: str | Path) -> None:
        self._root = Path(directory)
        self._index = diskcache.Index(str(self._root / "index"))
        self._activated = diskcache.Index(str(self._root / "meta"))
        self._open: dict[str, CacheStore] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> StoreRegistry:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Store operations
    # ------------------------------------------------------------------ #

    @property
    def directory(self) -> Path:
        return self._root

    def open(self, name: str) -> CacheStore:
        """Open the store called *name*, creating it if absent.

        Idempotent: repeated calls return the same handle while the store
        exists.
        """
        with self._lock:
            dirname = self._index.get(name)
            store = self._open.get(name)
            if store is not None and dirname is not None:
                return store
            if store is not None:
                # Deleted by another registry sharing the directory.
                store.close()

            created = dirname is None
            if dirname is None:
                dirname = hashlib.sha256(name.encode()).hexdigest()[:16]
            store = CacheStore(name, diskcache.Cache(str(self._data_path(dirname))))
            if created:
                self._index[name] = dirname
            self._open[name] = store
            return store

    def has(self, name: str) -> bool:
        return name in self._index

    def keys(self) -> list[str]:
        """Names of all existing stores, oldest first."""
        return list(self._index)

    def match(self, key: RequestKey, store_name: Optional[str] = None) -> Optional[ResponseRecord]:
        """Look *key* up in one named store, or in every store.

        Args:
            key: The request key to look up.
            store_name: Restrict the lookup to this store. ``None`` searches
                all stores in creation order and returns the first hit.

        Returns:
            The matching record, or ``None`` on a miss. A lookup in a store
            that does not exist is a miss and does not create it.
        """
        names = [store_name] if store_name is not None else self.keys()
        for name in names:
            if not self.has(name):
                continue
            record = self.open(name).match(key)
            if record is not None:
                return record
        return None

    def put(self, store_name: str, key: RequestKey, record: ResponseRecord) -> bool:
        """Write *record* into *store_name*, overwriting unconditionally.

        Caching is best-effort: storage failures are logged and dropped.

        Returns:
            ``True`` if the record was stored, ``False`` if the write failed.
        """
        try:
            self.open(store_name).put(key, record)
        except (StoreWriteError, *_STORAGE_ERRORS) as exc:
            logger.warning("Dropped write of %s into '%s': %s", key, store_name, exc)
            return False
        return True

    def delete(self, name: str) -> bool:
        """Delete the store *name* and every record in it.

        Returns:
            ``True`` if the store existed.
        """
        with self._lock:
            store = self._open.pop(name, None)
            if store is not None:
                store.close()
            self._activated.pop(name, None)
            dirname = self._index.pop(name, None)
            if dirname is None:
                return False
            path = self._data_path(dirname)
            if path.exists():
                shutil.rmtree(path)
        logger.debug("Deleted store '%s'", name)
        return True

    def mark_activated(self, name: str) -> None:
        """Record that the generation owning store *name* finished activating."""
        self._activated[name] = True

    def is_activated(self, name: str) -> bool:
        """Whether *name* exists and carries an activation marker."""
        return self.has(name) and name in self._activated

    def clear_all(self) -> list[str]:
        """Delete every store regardless of name or generation.

        Returns:
            The names of the deleted stores.
        """
        names = self.keys()
        for name in names:
            self.delete(name)
        return names

    def describe(self) -> list[dict[str, Any]]:
        """Summaries of every store (name, entry count, directory)."""
        rows = []
        for name in self.keys():
            store = self.open(name)
            rows.append(
                {
                    "name": name,
                    "entries": len(store),
                    "directory": str(self._data_path(self._index[name])),
                }
            )
        return rows

    def close(self) -> None:
        """Close every open store handle and both indexes."""
        with self._lock:
            for store in self._open.values():
                store.close()
            self._open.clear()
        self._index.cache.close()
        self._activated.cache.close()

    def _data_path(self, dirname: str) -> Path:
        return self._root / "data" / dirname
