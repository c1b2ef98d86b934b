# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.eviction",
#   "purpose": "Bounded, sliding-TTL registry of cached catalogs with background deletion",
#   "sections": [
#     {"id": "evictioncache", "name": "EvictionCache", "anchor": "class-evictioncache", "kind": "class"},
#     {"id": "deletionworker", "name": "DeletionWorker", "anchor": "class-deletionworker", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Disk-space bounding for cached catalogs.

Responsibilities
----------------
- Track which catalogs currently have a subtree on disk, in recency order,
  with a sliding expiry refreshed on every access.
- Drop the oldest entry once capacity is exceeded and drop entries whose
  expiry has passed, reporting each removal to an eviction callback.
- Perform the resulting recursive deletions on a background thread so that
  request paths never wait on ``rmtree``.

Design Notes
------------
- The cache is process-local and is not a freshness mechanism; it only
  bounds disk usage.
- Expired entries are swept whenever any key is touched and on explicit
  :meth:`EvictionCache.purge_expired` calls.  Touching an expired key evicts
  it first and re-inserts it, so the next negotiation refetches from scratch.
- The deletion worker moves a catalog directory into ``{cache_root}/.trash``
  under the catalog's refresh lock, then removes it outside the lock on a
  separate executor.  The move waits for the lock without a timeout, so an
  evicted subtree is never left behind by a slow refresh.
"""

from __future__ import annotations

import logging
import os
import threading
import time
import uuid
from collections import OrderedDict
from concurrent import futures
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Optional, Set, Tuple

from .io_utils import remove_tree
from .locks import CatalogLocks

LOGGER = logging.getLogger(__name__)

TRASH_DIR_NAME = ".trash"
DEFAULT_CAPACITY = 100
DEFAULT_TTL_S = 24 * 60 * 60

EvictCallback = Callable[[str, Path], object]


@dataclass
class _Entry:
    path: Path
    expires_at: float


class EvictionCache:
    """Thread-safe LRU registry with a sliding TTL and an eviction callback.

    Examples:
        >>> evicted = []
        >>> cache = EvictionCache(capacity=1, on_evict=lambda k, p: evicted.append(k))
        >>> cache.touch("clustercatalogs/a", Path("/tmp/a"))
        True
        >>> cache.touch("clustercatalogs/b", Path("/tmp/b"))
        True
        >>> evicted
        ['clustercatalogs/a']
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        ttl_s: float = DEFAULT_TTL_S,
        on_evict: Optional[EvictCallback] = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")
        if ttl_s <= 0:
            raise ValueError(f"ttl_s must be > 0, got {ttl_s}")
        self.capacity = capacity
        self.ttl_s = ttl_s
        self._on_evict = on_evict
        self._clock = clock
        self._entries: "OrderedDict[str, _Entry]" = OrderedDict()
        self._lock = threading.RLock()

    def touch(self, key: str, path: Path) -> bool:
        """Insert ``key`` or refresh its recency and expiry.

        Returns:
            ``True`` when the key was not tracked (or had expired) before.
        """
        with self._lock:
            now = self._clock()
            evicted = self._pop_expired(now)
            inserted = key not in self._entries
            self._entries[key] = _Entry(path=path, expires_at=now + self.ttl_s)
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                old_key, old_entry = self._entries.popitem(last=False)
                LOGGER.info("catalog-evicted key=%s reason=capacity", old_key)
                evicted.append((old_key, old_entry))
        self._notify(evicted)
        return inserted

    def purge_expired(self) -> List[str]:
        """Evict every entry whose expiry has passed; return their keys."""
        with self._lock:
            evicted = self._pop_expired(self._clock())
        self._notify(evicted)
        return [key for key, _ in evicted]

    def discard(self, key: str) -> bool:
        """Evict ``key`` immediately if tracked."""
        with self._lock:
            entry = self._entries.pop(key, None)
        if entry is None:
            return False
        LOGGER.info("catalog-evicted key=%s reason=discard", key)
        self._notify([(key, entry)])
        return True

    def get(self, key: str) -> Optional[Path]:
        """Return the tracked path for ``key`` without refreshing it."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expires_at <= self._clock():
                return None
            return entry.path

    def keys(self) -> List[str]:
        """Tracked keys from oldest to most recently touched."""
        with self._lock:
            return list(self._entries)

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _pop_expired(self, now: float) -> List[Tuple[str, _Entry]]:
        expired = [key for key, entry in self._entries.items() if entry.expires_at <= now]
        popped = []
        for key in expired:
            popped.append((key, self._entries.pop(key)))
            LOGGER.info("catalog-evicted key=%s reason=ttl", key)
        return popped

    def _notify(self, evicted: List[Tuple[str, _Entry]]) -> None:
        if self._on_evict is None:
            return
        for key, entry in evicted:
            self._on_evict(key, entry.path)


class DeletionWorker:
    """Background executors that remove evicted catalog subtrees.

    Deletion happens in two steps. The catalog directory is first renamed
    into ``.trash`` while holding the catalog's refresh lock; a request for
    that catalog waits only for this step. The renamed tree is then removed
    by a separate single-thread executor that no request waits on.
    """

    def __init__(
        self,
        cache_root: Path,
        locks: Optional[CatalogLocks] = None,
        *,
        move_workers: int = 4,
    ) -> None:
        self.cache_root = Path(cache_root)
        self.trash_dir = self.cache_root / TRASH_DIR_NAME
        self._locks = locks
        self._movers = futures.ThreadPoolExecutor(
            max_workers=move_workers, thread_name_prefix="catalog-evict"
        )
        self._remover = futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="catalog-rmtree"
        )
        self._pending: Dict[Path, futures.Future] = {}
        self._inflight: Set[futures.Future] = set()
        self._guard = threading.Lock()

    def submit(self, key: str, path: Path) -> futures.Future:
        """Queue deletion of ``path``; usable directly as an eviction callback.

        Returns:
            Future of the move step. It resolves to the path inside ``.trash``,
            or ``None`` when there was nothing to move.
        """
        target = Path(path)
        with self._guard:
            future = self._movers.submit(self._move, key, target)
            self._pending[target] = future
            self._inflight.add(future)
        future.add_done_callback(lambda done: self._forget(target, done))
        return future

    def wait_pending(self, path: Path, timeout: Optional[float] = None) -> None:
        """Block until a queued move of ``path`` (if any) has happened.

        Recursive removal of the moved tree is not awaited.
        """
        with self._guard:
            future = self._pending.get(Path(path))
        if future is not None:
            futures.wait([future], timeout=timeout)

    def drain(self, timeout: Optional[float] = None) -> None:
        """Wait for every queued move and removal."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            with self._guard:
                inflight = list(self._inflight)
            if not inflight:
                return
            remaining = None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return
            futures.wait(inflight, timeout=remaining)

    def close(self, wait: bool = True) -> None:
        self._movers.shutdown(wait=wait)
        self._remover.shutdown(wait=wait)

    def _forget(self, path: Path, done: futures.Future) -> None:
        with self._guard:
            if self._pending.get(path) is done:
                del self._pending[path]
            self._inflight.discard(done)

    def _settle(self, done: futures.Future) -> None:
        with self._guard:
            self._inflight.discard(done)

    def _move(self, key: str, path: Path) -> Optional[Path]:
        try:
            doomed = self._move_to_trash(key, path)
        except OSError:
            LOGGER.exception("catalog-delete-failed key=%s path=%s", key, path)
            return None
        if doomed is None:
            return None
        with self._guard:
            removal = self._remover.submit(self._remove, key, path, doomed)
            self._inflight.add(removal)
        removal.add_done_callback(self._settle)
        return doomed

    def _remove(self, key: str, path: Path, doomed: Path) -> bool:
        try:
            remove_tree(doomed)
        except OSError:
            LOGGER.exception("catalog-delete-failed key=%s path=%s", key, doomed)
            return False
        LOGGER.info("catalog-deleted key=%s path=%s", key, path)
        return True

    def _move_to_trash(self, key: str, path: Path) -> Optional[Path]:
        if self._locks is None:
            return self._rename_away(path)
        # Off the request path: wait for a slow refresh rather than leak the tree.
        with self._locks.hold(key, timeout=-1):
            return self._rename_away(path)

    def _rename_away(self, path: Path) -> Optional[Path]:
        if not os.path.lexists(path):
            return None
        self.trash_dir.mkdir(parents=True, exist_ok=True)
        doomed = self.trash_dir / f"{path.name}-{uuid.uuid4().hex[:12]}"
        os.rename(path, doomed)
        return doomed


__all__ = [
    "TRASH_DIR_NAME",
    "DEFAULT_CAPACITY",
    "DEFAULT_TTL_S",
    "EvictionCache",
    "DeletionWorker",
]
