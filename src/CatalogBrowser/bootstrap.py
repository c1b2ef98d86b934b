# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.bootstrap",
#   "purpose": "Wire settings, HTTP client, eviction cache, and query layer into one service object",
#   "sections": [
#     {"id": "catalogservice", "name": "CatalogService", "anchor": "class-catalogservice", "kind": "class"},
#     {"id": "build-service", "name": "build_service", "anchor": "function-build-service", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Service construction for the catalog browser.

One :class:`CatalogService` is built per process at startup and passed by
reference to request handlers; nothing in the package keeps module-level
state.  The service owns the HTTP client and the background deletion worker
and releases both on :meth:`CatalogService.close`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

import httpx

from .client import CachingCatalogClient
from .eviction import DeletionWorker, EvictionCache
from .http import build_http_client
from .locks import LOCK_DIR_NAME, CatalogLocks
from .query import CatalogQueryService
from .readiness import AlwaysReadyStatusSource, CatalogStatusSource
from .settings import CatalogSettings

LOGGER = logging.getLogger(__name__)


@dataclass
class CatalogService:
    """Process-wide bundle of the cache components."""

    settings: CatalogSettings
    http_client: httpx.Client
    locks: CatalogLocks
    deleter: DeletionWorker
    eviction: EvictionCache
    client: CachingCatalogClient
    query: CatalogQueryService

    def close(self) -> None:
        """Wait for pending deletions, then release the worker and HTTP client."""
        self.deleter.close(wait=True)
        self.http_client.close()

    def __enter__(self) -> "CatalogService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def build_service(
    settings: CatalogSettings,
    status_source: Optional[CatalogStatusSource] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
    clock: Callable[[], float] = time.monotonic,
) -> CatalogService:
    """Build the catalog service from settings.

    Args:
        settings: Validated settings.
        status_source: Readiness collaborator; defaults to treating every
            catalog as unpacked.
        transport: Optional HTTPX transport override (tests, custom tunnels).
        clock: Monotonic clock for the eviction registry.
    """
    cache_root = settings.cache_root
    cache_root.mkdir(parents=True, exist_ok=True)

    http_client = build_http_client(settings.http_config(), transport=transport)
    locks = CatalogLocks(cache_root / LOCK_DIR_NAME, timeout=settings.lock_timeout_s)
    deleter = DeletionWorker(cache_root, locks)
    eviction = EvictionCache(
        capacity=settings.cache_capacity,
        ttl_s=settings.cache_ttl_s,
        on_evict=deleter.submit,
        clock=clock,
    )
    client = CachingCatalogClient(
        settings.base_url,
        cache_root,
        http_client,
        eviction=eviction,
        locks=locks,
        deleter=deleter,
    )
    query = CatalogQueryService(client, status_source or AlwaysReadyStatusSource())
    LOGGER.debug(
        "catalog service ready cache_root=%s base_url=%s capacity=%d ttl_s=%s",
        cache_root,
        settings.base_url,
        settings.cache_capacity,
        settings.cache_ttl_s,
    )
    return CatalogService(
        settings=settings,
        http_client=http_client,
        locks=locks,
        deleter=deleter,
        eviction=eviction,
        client=client,
        query=query,
    )


__all__ = ["CatalogService", "build_service"]
