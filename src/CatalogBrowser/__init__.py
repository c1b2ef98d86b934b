"""Disk-backed, conditionally refreshed cache for browsing catalog content.

The public surface is small: build a :class:`CatalogService` with
:func:`build_service` and use its ``query`` attribute to list packages,
schemas, and objects, fetch raw objects, or fetch package icons.
"""

from __future__ import annotations

from .bootstrap import CatalogService, build_service
from .cancellation import CancellationToken
from .client import CachingCatalogClient
from .core import CatalogRef, PackageIcon
from .errors import (
    CatalogBrowserError,
    CatalogLockTimeout,
    CatalogStorageError,
    ConfigurationError,
    DecodeError,
    FetchError,
    MalformedObjectError,
    NotFoundError,
    NotReadyError,
    OperationCancelled,
    UnexpectedStatusError,
)
from .query import CatalogQueryService
from .readiness import (
    PHASE_UNPACKED,
    AlwaysReadyStatusSource,
    CallableStatusSource,
    CatalogStatusSource,
    StaticStatusSource,
)
from .settings import CatalogSettings, load_settings

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "CatalogService",
    "build_service",
    "CancellationToken",
    "CachingCatalogClient",
    "CatalogRef",
    "PackageIcon",
    "CatalogQueryService",
    "CatalogSettings",
    "load_settings",
    "PHASE_UNPACKED",
    "CatalogStatusSource",
    "StaticStatusSource",
    "AlwaysReadyStatusSource",
    "CallableStatusSource",
    "CatalogBrowserError",
    "CatalogLockTimeout",
    "CatalogStorageError",
    "ConfigurationError",
    "DecodeError",
    "FetchError",
    "MalformedObjectError",
    "NotFoundError",
    "NotReadyError",
    "OperationCancelled",
    "UnexpectedStatusError",
]
