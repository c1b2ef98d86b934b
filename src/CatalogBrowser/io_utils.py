# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.io_utils",
#   "purpose": "Filesystem primitives for snapshot naming, pointer swaps, and durable renames",
#   "sections": [
#     {
#       "id": "snapshot-name",
#       "name": "snapshot_name",
#       "anchor": "function-snapshot-name",
#       "kind": "function"
#     },
#     {
#       "id": "set-snapshot-times",
#       "name": "set_snapshot_times",
#       "anchor": "function-set-snapshot-times",
#       "kind": "function"
#     },
#     {
#       "id": "swap-pointer",
#       "name": "swap_pointer",
#       "anchor": "function-swap-pointer",
#       "kind": "function"
#     },
#     {
#       "id": "fsync-dir",
#       "name": "fsync_dir",
#       "anchor": "function-fsync-dir",
#       "kind": "function"
#     },
#     {
#       "id": "remove-tree",
#       "name": "remove_tree",
#       "anchor": "function-remove-tree",
#       "kind": "function"
#     }
#   ]
# }
# === /NAVMAP ===

"""Atomic filesystem utilities for snapshot publication.

**Purpose**
-----------
Provides the low-level primitives the snapshot publisher relies on so that a
catalog's ``active`` pointer always resolves to a complete snapshot.

**Key Functions**
-----------------

:func:`snapshot_name`
  Sortable, second-resolution directory name derived from ``Last-Modified``.

:func:`set_snapshot_times`
  Stamp a snapshot directory with the server's modification time so the next
  conditional request round-trips it as ``If-Modified-Since``.

:func:`swap_pointer`
  Create a temporary ``next`` symlink and ``os.replace`` it over ``active``.
  Readers observe either the old or the new target, never a missing link.

**Safety & Reliability**
------------------------
- **Atomic swap**: ``os.replace`` of a symlink is a single rename(2).
- **Directory fsync**: Ensures the swap is durable on crashes.
- **Stale link recovery**: A ``next`` link left by a crashed publish is
  removed before a new one is created.
"""

from __future__ import annotations

import logging
import os
import shutil
from datetime import datetime, timezone
from pathlib import Path

__all__ = [
    "ACTIVE_LINK",
    "NEXT_LINK",
    "SNAPSHOT_FORMAT",
    "snapshot_name",
    "set_snapshot_times",
    "swap_pointer",
    "fsync_dir",
    "remove_tree",
]

LOGGER = logging.getLogger(__name__)

ACTIVE_LINK = "active"
NEXT_LINK = "next"
SNAPSHOT_FORMAT = "%Y%m%d_%H%M%S"


def snapshot_name(modified_at: datetime) -> str:
    """Return the snapshot directory name for ``modified_at`` (in UTC).

    Examples:
        >>> snapshot_name(datetime(2024, 5, 1, 12, 30, 5, tzinfo=timezone.utc))
        '20240501_123005'
    """
    if modified_at.tzinfo is None:
        modified_at = modified_at.replace(tzinfo=timezone.utc)
    return modified_at.astimezone(timezone.utc).strftime(SNAPSHOT_FORMAT)


def set_snapshot_times(path: Path, modified_at: datetime) -> None:
    """Set atime and mtime of ``path`` to ``modified_at``."""
    if modified_at.tzinfo is None:
        modified_at = modified_at.replace(tzinfo=timezone.utc)
    stamp = modified_at.timestamp()
    os.utime(path, (stamp, stamp))


def fsync_dir(path: Path) -> None:
    """Fsync a directory so renames inside it are durable."""
    dir_fd = os.open(path, os.O_DIRECTORY)
    try:
        os.fsync(dir_fd)
    finally:
        os.close(dir_fd)


def swap_pointer(catalog_dir: Path, target_name: str) -> Path:
    """Atomically point ``catalog_dir/active`` at ``catalog_dir/target_name``.

    Args:
        catalog_dir: Directory holding the snapshots and pointers.
        target_name: Snapshot directory name, stored as a relative link target
            so the cache tree can be relocated.

    Returns:
        Path of the ``active`` pointer.

    Raises:
        OSError: If the link cannot be created or renamed. The previous
            ``active`` pointer is left untouched in that case.
    """
    next_path = catalog_dir / NEXT_LINK
    active_path = catalog_dir / ACTIVE_LINK
    try:
        os.unlink(next_path)
    except FileNotFoundError:
        pass
    else:
        LOGGER.debug("removed stale pointer %s", next_path)
    os.symlink(target_name, next_path)
    try:
        os.replace(next_path, active_path)
    except OSError:
        try:
            os.unlink(next_path)
        except FileNotFoundError:
            pass
        raise
    fsync_dir(catalog_dir)
    return active_path


def remove_tree(path: Path) -> bool:
    """Recursively remove ``path`` if present.

    Returns:
        ``True`` when something was removed.

    Raises:
        OSError: If removal fails for reasons other than absence.
    """
    if path.is_symlink() or path.is_file():
        path.unlink(missing_ok=True)
        return True
    if not path.exists():
        return False
    shutil.rmtree(path)
    return True
