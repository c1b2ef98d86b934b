# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.publisher",
#   "purpose": "Stage, decompose, stamp, and atomically publish catalog snapshots",
#   "sections": [
#     {"id": "publishedsnapshot", "name": "PublishedSnapshot", "anchor": "class-publishedsnapshot", "kind": "class"},
#     {"id": "snapshotpublisher", "name": "SnapshotPublisher", "anchor": "class-snapshotpublisher", "kind": "class"}
#   ]
# }
# === /NAVMAP ===

"""Snapshot publication for cached catalogs.

Responsibilities
----------------
- Create a private staging directory next to the catalog's snapshots.
- Drive the decomposer into it.
- Promote it to ``{catalog_dir}/{YYYYMMDD_HHMMSS}`` and stamp its times with
  the server's ``Last-Modified``.
- Swap the ``active`` pointer to the new snapshot in a single rename.

Design Notes
------------
- Only complete trees ever receive a timestamp name, so an existing snapshot
  directory with the same name is reused rather than rewritten.
- Failures before the swap leave ``active`` untouched; the staging directory
  is removed best-effort.
"""

from __future__ import annotations

import errno
import logging
import os
import shutil
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterable, Optional

from .cancellation import CancellationToken
from .decompose import write_catalog
from .io_utils import set_snapshot_times, snapshot_name, swap_pointer
from .records import MetaRecord

LOGGER = logging.getLogger(__name__)

STAGING_PREFIX = ".staging-"
_SNAPSHOT_MODE = 0o755


@dataclass(frozen=True)
class PublishedSnapshot:
    """Outcome of a successful publish."""

    path: Path
    modified_at: datetime
    record_count: int
    reused: bool = False


class SnapshotPublisher:
    """Sole writer of new snapshots for a catalog directory."""

    def publish(
        self,
        catalog_dir: Path,
        modified_at: datetime,
        records: Iterable[MetaRecord],
        token: Optional[CancellationToken] = None,
    ) -> PublishedSnapshot:
        """Decompose ``records`` into a new snapshot and make it active.

        Args:
            catalog_dir: ``{cache_root}/{kind}/{name}``.
            modified_at: Server freshness time; names and stamps the snapshot.
            records: Decoded record stream.
            token: Optional cancellation token.

        Returns:
            Description of the published snapshot.

        Raises:
            DecodeError: If the record stream is malformed.
            OperationCancelled: If ``token`` fires before the swap.
            OSError: On filesystem failures.
        """
        catalog_dir.mkdir(parents=True, exist_ok=True)
        name = snapshot_name(modified_at)
        final_path = catalog_dir / name
        staging = Path(tempfile.mkdtemp(prefix=STAGING_PREFIX, dir=catalog_dir))
        reused = False
        try:
            os.chmod(staging, _SNAPSHOT_MODE)
            count = write_catalog(staging, records, token)
            if token is not None:
                token.raise_if_cancelled("publish")
            try:
                os.rename(staging, final_path)
            except OSError as exc:
                if exc.errno not in (errno.EEXIST, errno.ENOTEMPTY) or not final_path.is_dir():
                    raise
                LOGGER.info("snapshot %s already present; reusing it", final_path)
                shutil.rmtree(staging)
                reused = True
            set_snapshot_times(final_path, modified_at)
            swap_pointer(catalog_dir, name)
        except Exception:
            shutil.rmtree(staging, ignore_errors=True)
            raise

        LOGGER.info(
            "catalog-published snapshot=%s records=%d reused=%s",
            final_path,
            count,
            reused,
            extra={"stage": "publish"},
        )
        return PublishedSnapshot(
            path=final_path, modified_at=modified_at, record_count=count, reused=reused
        )


__all__ = ["STAGING_PREFIX", "PublishedSnapshot", "SnapshotPublisher"]
