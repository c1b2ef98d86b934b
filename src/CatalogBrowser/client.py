# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.client",
#   "purpose": "Freshness negotiation: conditional fetch, snapshot publish, stale fallback",
#   "sections": [
#     {"id": "constants", "name": "Constants", "anchor": "CONST", "kind": "constants"},
#     {"id": "cachingcatalogclient", "name": "CachingCatalogClient", "anchor": "class-cachingcatalogclient", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Caching client that keeps local catalog snapshots fresh.

Responsibilities
----------------
- Resolve a catalog reference into a read-only view of its current snapshot.
- Negotiate freshness with the catalog server using ``If-Modified-Since``.
- Publish a new snapshot on ``200`` and reuse the active one on ``304``.
- Serve the last good snapshot when a refresh fails (stale-but-available).

Design Notes
------------
- Every call touches the eviction registry before anything else.
- Negotiation for one catalog runs under its refresh lock, so concurrent
  callers for the same catalog refresh one at a time; the second caller
  usually receives ``304``.
- There is no internal retry loop; callers retry by issuing a new request.
"""

from __future__ import annotations

import contextlib
import logging
import os
import stat
from pathlib import Path
from typing import ContextManager, Optional
from urllib.parse import quote

import httpx

from .cancellation import CancellationToken
from .conditional import build_conditional_headers, parse_last_modified, validator_from_mtime
from .core import CatalogRef
from .errors import (
    CatalogLockTimeout,
    CatalogStorageError,
    DecodeError,
    FetchError,
    NotFoundError,
    OperationCancelled,
    UnexpectedStatusError,
)
from .eviction import DeletionWorker, EvictionCache
from .http import request_timeout
from .io_utils import ACTIVE_LINK
from .locks import CatalogLocks
from .publisher import SnapshotPublisher
from .records import iter_meta_records
from .view import CatalogFS

LOGGER = logging.getLogger(__name__)

# --- Constants -------------------------------------------------------------------

CATALOG_PATH_TEMPLATE = "/catalogs/{name}/all.json"
READ_CHUNK_SIZE = 1 << 20

_REFRESH_ERRORS = (
    FetchError,
    DecodeError,
    CatalogStorageError,
    CatalogLockTimeout,
    OperationCancelled,
)


class CachingCatalogClient:
    """Freshness negotiator over a disk-backed catalog cache."""

    def __init__(
        self,
        base_url: str,
        cache_root: Path,
        http_client: httpx.Client,
        *,
        eviction: Optional[EvictionCache] = None,
        locks: Optional[CatalogLocks] = None,
        deleter: Optional[DeletionWorker] = None,
        publisher: Optional[SnapshotPublisher] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.cache_root = Path(cache_root)
        self._http = http_client
        self._eviction = eviction
        self._locks = locks
        self._deleter = deleter
        self._publisher = publisher or SnapshotPublisher()

    def catalog_dir(self, ref: CatalogRef) -> Path:
        """Return ``{cache_root}/{kind}/{name}``."""
        return self.cache_root / ref.kind / ref.name

    def catalog_url(self, ref: CatalogRef) -> str:
        """Return the well-known URL serving the full catalog."""
        return self.base_url + CATALOG_PATH_TEMPLATE.format(name=quote(ref.name, safe=""))

    def get_catalog_view(
        self, ref: CatalogRef, token: Optional[CancellationToken] = None
    ) -> CatalogFS:
        """Return a view over the catalog's current snapshot, refreshing it first.

        Args:
            ref: Catalog to resolve.
            token: Optional cancellation token/deadline for the fetch and publish.

        Returns:
            A :class:`CatalogFS` rooted at the active snapshot.

        Raises:
            FetchError: Transport failure or unexpected status with no prior snapshot.
            DecodeError: Malformed catalog stream with no prior snapshot.
            CatalogStorageError: Filesystem failure with no prior snapshot.
            NotFoundError: The server answered ``304`` but nothing is cached.
            OperationCancelled: ``token`` fired with no prior snapshot.
        """
        catalog_dir = self.catalog_dir(ref)
        if self._eviction is not None:
            self._eviction.touch(ref.key, catalog_dir)
        if self._deleter is not None:
            # Only the rename into .trash is awaited, never the rmtree.
            self._deleter.wait_pending(catalog_dir)

        active = catalog_dir / ACTIVE_LINK
        try:
            with self._refresh_lock(ref):
                return self._negotiate(ref, catalog_dir, active, token)
        except _REFRESH_ERRORS as exc:
            fallback = self._fallback_view(active)
            if fallback is None:
                raise
            LOGGER.warning(
                "catalog-refresh-failed catalog=%s error=%s; serving snapshot %s",
                ref,
                exc,
                fallback.snapshot,
                extra={"catalog": ref.key, "stage": "negotiate"},
            )
            return fallback

    def _refresh_lock(self, ref: CatalogRef) -> ContextManager[None]:
        if self._locks is None:
            return contextlib.nullcontext()
        return self._locks.hold(ref.key)

    def _active_mtime(self, active: Path) -> Optional[float]:
        try:
            info = os.stat(active)
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise CatalogStorageError(f"cannot stat {active}: {exc}") from exc
        if not stat.S_ISDIR(info.st_mode):
            return None
        return info.st_mtime

    def _negotiate(
        self,
        ref: CatalogRef,
        catalog_dir: Path,
        active: Path,
        token: Optional[CancellationToken],
    ) -> CatalogFS:
        validator = validator_from_mtime(self._active_mtime(active))
        headers = build_conditional_headers(validator)
        url = self.catalog_url(ref)
        if token is not None:
            token.raise_if_cancelled("fetch")
        timeout = request_timeout(self._http, token.remaining() if token is not None else None)

        try:
            with self._http.stream("GET", url, headers=headers, timeout=timeout) as response:
                if response.status_code == httpx.codes.NOT_MODIFIED:
                    LOGGER.info(
                        "catalog-not-modified catalog=%s since=%s",
                        ref,
                        validator.last_modified,
                        extra={"catalog": ref.key, "stage": "negotiate"},
                    )
                    return CatalogFS.from_pointer(active)
                if response.status_code != httpx.codes.OK:
                    raise UnexpectedStatusError(url, response.status_code)
                modified_at = parse_last_modified(response.headers, url=url)
                records = iter_meta_records(response.iter_bytes(READ_CHUNK_SIZE))
                self._publisher.publish(catalog_dir, modified_at, records, token)
        except httpx.HTTPError as exc:
            raise FetchError(f"fetching {url} failed: {exc}", url=url) from exc
        except OSError as exc:
            raise CatalogStorageError(f"publishing {ref} failed: {exc}") from exc
        return CatalogFS.from_pointer(active)

    def _fallback_view(self, active: Path) -> Optional[CatalogFS]:
        try:
            return CatalogFS.from_pointer(active)
        except (NotFoundError, CatalogStorageError):
            return None


__all__ = ["CATALOG_PATH_TEMPLATE", "CachingCatalogClient"]
