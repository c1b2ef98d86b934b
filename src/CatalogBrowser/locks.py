# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.locks",
#   "purpose": "Per-catalog file locks serialising refreshes and deletions",
#   "sections": [
#     {"id": "cataloglocks", "name": "CatalogLocks", "anchor": "class-cataloglocks", "kind": "class"},
#     {"id": "lock-metrics-snapshot", "name": "CatalogLocks.metrics_snapshot", "anchor": "function-metrics-snapshot", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""File-based locking for catalog refreshes.

Responsibilities
----------------
- Map each catalog cache key to a well-known lock file under
  ``{cache_root}/.locks`` so refreshes of the same catalog are serialised
  across threads and processes (single-flight).
- Let the eviction worker take the same lock before moving a catalog tree
  away, so a deletion never races a publish.
- Capture acquisition/hold timing to troubleshoot contention.

Design Notes
------------
- Locks are implemented with :mod:`filelock`; lock files live outside the
  catalog subtrees so eviction never deletes a held lock.
- A fresh :class:`filelock.FileLock` is created per acquisition with
  ``thread_local=False`` so concurrent threads contend on the OS lock.
"""

from __future__ import annotations

import contextlib
import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional, Union

from filelock import FileLock, Timeout

from .errors import CatalogLockTimeout

__all__ = ["LOCK_DIR_NAME", "CatalogLocks"]

LOGGER = logging.getLogger(__name__)
logging.getLogger("filelock").setLevel(logging.INFO)

LOCK_DIR_NAME = ".locks"
_DEFAULT_POLL_INTERVAL = 0.05  # seconds


@dataclass
class _LockMetrics:
    acquire_total: int = 0
    timeout_total: int = 0
    wait_ms_sum: float = 0.0
    hold_ms_sum: float = 0.0


class CatalogLocks:
    """Factory for per-catalog lock contexts rooted at one directory."""

    def __init__(
        self,
        lock_dir: Path,
        *,
        timeout: float = 30.0,
        poll_interval: float = _DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.lock_dir = Path(lock_dir)
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._metrics_guard = threading.Lock()
        self._metrics: _LockMetrics = _LockMetrics()

    def lock_file_for(self, key: str) -> Path:
        """Return the lock file guarding cache key ``key``."""
        readable = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in key)[:64]
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:16]
        return self.lock_dir / f"{readable}.{digest}.lock"

    @contextlib.contextmanager
    def hold(self, key: str, *, timeout: Optional[float] = None) -> Iterator[None]:
        """Hold the lock for ``key`` for the duration of the ``with`` block.

        Args:
            key: Catalog cache key.
            timeout: Override for the default acquisition timeout; a negative
                value waits until the lock is free.

        Raises:
            CatalogLockTimeout: If the lock is not acquired in time.
        """
        self.lock_dir.mkdir(parents=True, exist_ok=True)
        lock_file = self.lock_file_for(key)
        lock_timeout = self.timeout if timeout is None else timeout
        lock = FileLock(str(lock_file), timeout=lock_timeout, thread_local=False)
        start = time.monotonic()
        try:
            lock.acquire(timeout=lock_timeout, poll_interval=self.poll_interval)
        except Timeout as exc:
            wait_ms = (time.monotonic() - start) * 1000.0
            LOGGER.info("lock-timeout key=%s wait_ms=%.3f lock_file=%s", key, wait_ms, lock_file)
            with self._metrics_guard:
                self._metrics.timeout_total += 1
                self._metrics.wait_ms_sum += wait_ms
            raise CatalogLockTimeout(f"timed out waiting for refresh lock on {key}") from exc

        acquired_at = time.monotonic()
        wait_ms = (acquired_at - start) * 1000.0
        LOGGER.debug("lock-acquired key=%s wait_ms=%.3f", key, wait_ms)
        try:
            yield None
        finally:
            lock.release()
            hold_ms = (time.monotonic() - acquired_at) * 1000.0
            with self._metrics_guard:
                self._metrics.acquire_total += 1
                self._metrics.wait_ms_sum += wait_ms
                self._metrics.hold_ms_sum += hold_ms
            LOGGER.debug("lock-release key=%s hold_ms=%.3f", key, hold_ms)

    def metrics_snapshot(self, *, reset: bool = False) -> Dict[str, Union[int, float]]:
        """Return collected lock metrics, optionally clearing them."""
        with self._metrics_guard:
            snapshot: Dict[str, Union[int, float]] = {
                "acquire_total": self._metrics.acquire_total,
                "timeout_total": self._metrics.timeout_total,
                "wait_ms_sum": self._metrics.wait_ms_sum,
                "hold_ms_sum": self._metrics.hold_ms_sum,
            }
            if reset:
                self._metrics = _LockMetrics()
            return snapshot
