"""Core value types shared by the catalog client and query layer."""

from __future__ import annotations

from dataclasses import dataclass

from .settings import DEFAULT_CATALOG_KIND

__all__ = ["CatalogRef", "PackageIcon"]


@dataclass(frozen=True)
class CatalogRef:
    """Logical identity of a catalog: ``(kind, name)``.

    Examples:
        >>> CatalogRef("operatorhubio").key
        'clustercatalogs/operatorhubio'
    """

    name: str
    kind: str = DEFAULT_CATALOG_KIND

    def __post_init__(self) -> None:
        for label, value in (("name", self.name), ("kind", self.kind)):
            if not value or value in (".", "..") or "/" in value or "\\" in value:
                raise ValueError(f"invalid catalog {label}: {value!r}")

    @property
    def key(self) -> str:
        """Cache key used by the eviction registry and refresh locks."""
        return f"{self.kind}/{self.name}"

    def __str__(self) -> str:
        return self.key


@dataclass(frozen=True)
class PackageIcon:
    """Icon declared by a package descriptor."""

    media_type: str
    data: bytes
