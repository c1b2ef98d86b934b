# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.gc",
#   "purpose": "Manual cleanup of snapshots no longer referenced by an active pointer",
#   "sections": [
#     {"id": "prunestats", "name": "PruneStats", "anchor": "class-prunestats", "kind": "class"},
#     {"id": "prune-snapshots", "name": "prune_snapshots", "anchor": "function-prune-snapshots", "kind": "function"},
#     {"id": "prune-cache", "name": "prune_cache", "anchor": "function-prune-cache", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Prune unreferenced catalog snapshots.

Responsibilities:
- Remove snapshot directories that ``active`` no longer points at
- Remove staging directories and ``next`` links abandoned by failed publishes
- Empty the eviction trash directory
- Report what was removed and how many bytes were freed

The core never calls this module on its own; pruning is an explicit,
operator-triggered action (``catalog-browser prune``).
"""

from __future__ import annotations

import contextlib
import logging
import os
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .eviction import TRASH_DIR_NAME
from .io_utils import ACTIVE_LINK, NEXT_LINK
from .locks import LOCK_DIR_NAME, CatalogLocks

LOGGER = logging.getLogger(__name__)

_RESERVED_DIRS = {LOCK_DIR_NAME, TRASH_DIR_NAME}


@dataclass
class PruneStats:
    """Summary of a prune run."""

    removed: List[Path] = field(default_factory=list)
    kept: List[Path] = field(default_factory=list)
    bytes_freed: int = 0

    def merge(self, other: "PruneStats") -> None:
        self.removed.extend(other.removed)
        self.kept.extend(other.kept)
        self.bytes_freed += other.bytes_freed


def _tree_size(path: Path) -> int:
    total = 0
    for root, _dirs, files in os.walk(path):
        for name in files:
            try:
                total += os.lstat(os.path.join(root, name)).st_size
            except FileNotFoundError:
                continue
    return total


def _active_target(catalog_dir: Path) -> Optional[str]:
    active = catalog_dir / ACTIVE_LINK
    if not active.is_symlink():
        return None
    return os.path.basename(os.readlink(active))


def prune_snapshots(catalog_dir: Path, *, dry_run: bool = False) -> PruneStats:
    """Remove everything in ``catalog_dir`` not reachable through ``active``.

    Callers must hold the catalog's refresh lock, otherwise an in-progress
    publish could lose its staging directory.

    Args:
        catalog_dir: ``{cache_root}/{kind}/{name}``.
        dry_run: Report what would be removed without deleting.
    """
    stats = PruneStats()
    if not catalog_dir.is_dir():
        return stats
    keep = _active_target(catalog_dir)
    with os.scandir(catalog_dir) as entries:
        candidates = sorted(entries, key=lambda entry: entry.name)
    for entry in candidates:
        path = Path(entry.path)
        if entry.name == ACTIVE_LINK or entry.name == keep:
            stats.kept.append(path)
            continue
        if entry.name == NEXT_LINK and entry.is_symlink():
            if not dry_run:
                path.unlink(missing_ok=True)
            stats.removed.append(path)
            continue
        if not entry.is_dir(follow_symlinks=False):
            stats.kept.append(path)
            continue
        size = _tree_size(path)
        if not dry_run:
            shutil.rmtree(path)
        stats.removed.append(path)
        stats.bytes_freed += size
        LOGGER.info("snapshot-pruned path=%s bytes=%d dry_run=%s", path, size, dry_run)
    return stats


def prune_cache(
    cache_root: Path,
    *,
    locks: Optional[CatalogLocks] = None,
    dry_run: bool = False,
) -> PruneStats:
    """Prune every catalog under ``cache_root`` and empty the trash.

    Each catalog is pruned while holding its refresh lock when ``locks`` is
    provided.
    """
    stats = PruneStats()
    cache_root = Path(cache_root)
    if not cache_root.is_dir():
        return stats

    for kind_dir in sorted(p for p in cache_root.iterdir() if p.is_dir()):
        if kind_dir.name in _RESERVED_DIRS:
            continue
        for catalog_dir in sorted(p for p in kind_dir.iterdir() if p.is_dir()):
            key = f"{kind_dir.name}/{catalog_dir.name}"
            guard = locks.hold(key) if locks is not None else contextlib.nullcontext()
            with guard:
                stats.merge(prune_snapshots(catalog_dir, dry_run=dry_run))

    trash = cache_root / TRASH_DIR_NAME
    if trash.is_dir():
        for leftover in sorted(trash.iterdir()):
            size = _tree_size(leftover) if leftover.is_dir() else leftover.lstat().st_size
            if not dry_run:
                if leftover.is_dir() and not leftover.is_symlink():
                    shutil.rmtree(leftover)
                else:
                    leftover.unlink(missing_ok=True)
            stats.removed.append(leftover)
            stats.bytes_freed += size
    return stats


__all__ = ["PruneStats", "prune_snapshots", "prune_cache"]
