# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.errors",
#   "purpose": "Exception hierarchy shared by fetching, decomposition, caching, and queries",
#   "sections": [
#     {"id": "base", "name": "Base Exceptions", "anchor": "BAS", "kind": "api"},
#     {"id": "fetch", "name": "Fetch & Decode Errors", "anchor": "FET", "kind": "api"},
#     {"id": "query", "name": "Query Errors", "anchor": "QRY", "kind": "api"},
#     {"id": "storage", "name": "Storage & Concurrency Errors", "anchor": "STO", "kind": "api"}
#   ]
# }
# === /NAVMAP ===

"""Exception hierarchy shared across catalog fetching, caching, and queries.

The catalog browser spans HTTP retrieval through a tunnel, stream decoding,
snapshot publication on local disk, and read-only queries.  Failures are
grouped so callers at the query boundary can map each category onto exactly
one caller-visible outcome:

- :class:`NotFoundError` → "not found"
- :class:`NotReadyError` → "unavailable"
- everything else → "internal error"
"""

from __future__ import annotations

from typing import Optional

__all__ = [
    "CatalogBrowserError",
    "ConfigurationError",
    "FetchError",
    "UnexpectedStatusError",
    "DecodeError",
    "NotFoundError",
    "NotReadyError",
    "MalformedObjectError",
    "CatalogStorageError",
    "CatalogLockTimeout",
    "OperationCancelled",
]


class CatalogBrowserError(RuntimeError):
    """Base exception for catalog fetching, caching, and query failures."""


class ConfigurationError(CatalogBrowserError):
    """Raised when settings or CLI inputs are invalid."""


class FetchError(CatalogBrowserError):
    """Raised when the remote catalog server cannot be reached or misbehaves."""

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class UnexpectedStatusError(FetchError):
    """Raised when the catalog server answers with neither 200 nor 304."""

    def __init__(self, url: str, status_code: int) -> None:
        super().__init__(
            f"unexpected status {status_code} fetching {url}",
            url=url,
            status_code=status_code,
        )


class DecodeError(CatalogBrowserError):
    """Raised when the catalog record stream is malformed."""

    def __init__(self, message: str, *, offset: Optional[int] = None) -> None:
        if offset is not None:
            message = f"{message} (at offset {offset})"
        super().__init__(message)
        self.offset = offset


class NotFoundError(CatalogBrowserError):
    """Raised when a package, schema, object, or icon does not exist."""


class NotReadyError(CatalogBrowserError):
    """Raised when the owning catalog resource has not finished unpacking."""

    def __init__(self, ref: object, phase: Optional[str]) -> None:
        super().__init__(f"catalog {ref} not unpacked (phase={phase or 'unknown'})")
        self.ref = ref
        self.phase = phase


class MalformedObjectError(CatalogBrowserError):
    """Raised when a cached object cannot be parsed into the expected shape."""


class CatalogStorageError(CatalogBrowserError):
    """Raised when reading or writing the on-disk cache fails."""


class CatalogLockTimeout(CatalogBrowserError):
    """Raised when the per-catalog refresh lock cannot be acquired in time."""


class OperationCancelled(CatalogBrowserError):
    """Raised when a cancellation token fires or its deadline passes."""
