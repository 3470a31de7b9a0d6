"""Persistent response stores for swcache.

This package provides :class:`StoreRegistry`, which manages named stores
of :class:`~swcache.models.ResponseRecord` snapshots on disk using
:mod:`diskcache`, and :class:`CacheStore`, the handle for one such store.

Two stores are live per generation: the version-tagged precache store and
the fixed-name runtime store (see :class:`~swcache.models.WorkerConfig`).
Stores are only ever deleted whole, never trimmed.
"""

from swcache.store.registry import CacheStore, StoreRegistry

__all__ = ["CacheStore", "StoreRegistry"]
