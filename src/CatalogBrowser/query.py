# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.query",
#   "purpose": "Read-only catalog queries over the active snapshot behind the readiness gate",
#   "sections": [
#     {"id": "models", "name": "Package descriptor models", "anchor": "MOD", "kind": "models"},
#     {"id": "catalogqueryservice", "name": "CatalogQueryService", "anchor": "class-catalogqueryservice", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Read-only query operations over cached catalogs.

Every operation first requires the catalog resource to be unpacked, then asks
the caching client for a fresh view and reads from it.  Nothing here writes
to disk.

Operations
----------
- :meth:`CatalogQueryService.list_packages`
- :meth:`CatalogQueryService.list_schemas`
- :meth:`CatalogQueryService.list_objects`
- :meth:`CatalogQueryService.get_object`
- :meth:`CatalogQueryService.get_package_icon`
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from .cancellation import CancellationToken
from .client import CachingCatalogClient
from .core import CatalogRef, PackageIcon
from .decompose import OBJECT_SUFFIX
from .errors import MalformedObjectError, NotFoundError
from .readiness import CatalogStatusSource, require_ready
from .records import SCHEMA_PACKAGE
from .view import CatalogFS

LOGGER = logging.getLogger(__name__)


class IconModel(BaseModel):
    """``icon`` stanza of an ``olm.package`` record."""

    model_config = ConfigDict(extra="ignore")

    base64data: str = ""
    mediatype: str = ""


class PackageDescriptor(BaseModel):
    """The subset of an ``olm.package`` record the query layer reads."""

    model_config = ConfigDict(extra="ignore")

    name: str
    defaultChannel: Optional[str] = None
    description: Optional[str] = None
    icon: Optional[IconModel] = None


class CatalogQueryService:
    """Query facade combining the readiness gate and the caching client."""

    def __init__(self, client: CachingCatalogClient, status_source: CatalogStatusSource) -> None:
        self.client = client
        self.status_source = status_source

    def _view(self, ref: CatalogRef, token: Optional[CancellationToken]) -> CatalogFS:
        require_ready(self.status_source, ref)
        return self.client.get_catalog_view(ref, token)

    def list_packages(
        self, ref: CatalogRef, token: Optional[CancellationToken] = None
    ) -> List[str]:
        """Return package names in the catalog, sorted."""
        return self._view(ref, token).list_dirs()

    def list_schemas(
        self, ref: CatalogRef, package: str, token: Optional[CancellationToken] = None
    ) -> List[str]:
        """Return schema names present for ``package``, sorted."""
        return self._view(ref, token).list_dirs(package)

    def list_objects(
        self,
        ref: CatalogRef,
        package: str,
        schema: str,
        token: Optional[CancellationToken] = None,
    ) -> List[str]:
        """Return object names for ``package``/``schema`` without the file suffix, sorted."""
        names = self._view(ref, token).list_files(package, schema)
        return sorted(
            name[: -len(OBJECT_SUFFIX)] if name.endswith(OBJECT_SUFFIX) else name
            for name in names
        )

    def get_object(
        self,
        ref: CatalogRef,
        package: str,
        schema: str,
        name: str,
        token: Optional[CancellationToken] = None,
    ) -> bytes:
        """Return the raw JSON bytes of one object."""
        return self._view(ref, token).read_bytes(package, schema, name + OBJECT_SUFFIX)

    def get_package_icon(
        self, ref: CatalogRef, package: str, token: Optional[CancellationToken] = None
    ) -> PackageIcon:
        """Return the icon declared by ``package``'s descriptor.

        Raises:
            NotFoundError: The descriptor does not exist or declares no icon.
            MalformedObjectError: The descriptor is not a valid package record.
        """
        view = self._view(ref, token)
        try:
            raw = view.read_bytes(package, SCHEMA_PACKAGE, package + OBJECT_SUFFIX)
        except NotFoundError as exc:
            raise NotFoundError(f"package {package!r} not found in {ref}") from exc

        try:
            descriptor = PackageDescriptor.model_validate_json(raw)
        except ValidationError as exc:
            raise MalformedObjectError(f"invalid package descriptor for {package!r}: {exc}") from exc
        if descriptor.icon is None:
            raise NotFoundError(f"package {package!r} has no icon")
        try:
            data = base64.b64decode(descriptor.icon.base64data, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise MalformedObjectError(f"invalid icon data for {package!r}: {exc}") from exc
        return PackageIcon(media_type=descriptor.icon.mediatype, data=data)


__all__ = ["IconModel", "PackageDescriptor", "CatalogQueryService"]
