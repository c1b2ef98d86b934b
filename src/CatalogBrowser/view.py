"""Read-only filesystem view over one published catalog snapshot."""

from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Tuple

from .errors import CatalogStorageError, NotFoundError

__all__ = ["CatalogFS"]


def _check_component(part: str) -> str:
    if not part or part in (".", "..") or "/" in part or "\\" in part or "\x00" in part:
        raise NotFoundError(f"invalid path component {part!r}")
    return part


class CatalogFS:
    """Filesystem view rooted at a concrete snapshot directory.

    The ``active`` pointer is resolved once when the view is created, so all
    reads through one view hit the same snapshot even if a concurrent publish
    swaps the pointer in the meantime.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    @classmethod
    def from_pointer(cls, pointer: Path) -> "CatalogFS":
        """Resolve ``pointer`` (normally ``.../active``) into a view."""
        try:
            root = Path(os.path.realpath(pointer))
            if not root.is_dir():
                raise NotFoundError(f"no published snapshot at {pointer}")
        except OSError as exc:
            raise CatalogStorageError(f"cannot resolve {pointer}: {exc}") from exc
        return cls(root)

    @property
    def snapshot(self) -> str:
        """Snapshot directory name (``YYYYMMDD_HHMMSS``)."""
        return self.root.name

    def modified_at(self) -> datetime:
        """Freshness time the snapshot was stamped with."""
        try:
            return datetime.fromtimestamp(self.root.stat().st_mtime, tz=timezone.utc)
        except OSError as exc:
            raise CatalogStorageError(f"cannot stat {self.root}: {exc}") from exc

    def path(self, *parts: str) -> Path:
        return self.root.joinpath(*(_check_component(part) for part in parts))

    def read_dir(self, *parts: str) -> List[Tuple[str, bool]]:
        """Return ``(name, is_dir)`` pairs for a directory, unsorted."""
        target = self.path(*parts)
        try:
            with os.scandir(target) as entries:
                return [(entry.name, entry.is_dir()) for entry in entries]
        except (FileNotFoundError, NotADirectoryError) as exc:
            raise NotFoundError(f"{'/'.join(parts) or '.'} not found") from exc
        except OSError as exc:
            raise CatalogStorageError(f"cannot list {target}: {exc}") from exc

    def list_dirs(self, *parts: str) -> List[str]:
        return sorted(name for name, is_dir in self.read_dir(*parts) if is_dir)

    def list_files(self, *parts: str) -> List[str]:
        return sorted(name for name, is_dir in self.read_dir(*parts) if not is_dir)

    def read_bytes(self, *parts: str) -> bytes:
        """Return the contents of a file inside the snapshot."""
        target = self.path(*parts)
        try:
            return target.read_bytes()
        except (FileNotFoundError, NotADirectoryError, IsADirectoryError) as exc:
            raise NotFoundError(f"{'/'.join(parts)} not found") from exc
        except OSError as exc:
            raise CatalogStorageError(f"cannot read {target}: {exc}") from exc

    def __repr__(self) -> str:
        return f"CatalogFS(root={str(self.root)!r})"
