# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.decompose",
#   "purpose": "File catalog records into a per-object directory tree",
#   "sections": [
#     {"id": "filing-path", "name": "filing_path", "anchor": "function-filing-path", "kind": "function"},
#     {"id": "write-catalog", "name": "write_catalog", "anchor": "function-write-catalog", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Decompose a catalog record stream into an addressable file tree.

Each record lands at ``{snapshot}/{package}/{schema}/{name}.json`` where
package descriptors are filed under their own name and records without a
package go to the ``__global`` bucket.  The decomposer is a pure filer: it
performs no deduplication or schema validation, and it never touches the
``active`` pointer, so partially written trees stay invisible to readers.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterable, Optional

from .cancellation import CancellationToken
from .errors import DecodeError
from .records import SCHEMA_PACKAGE, MetaRecord

LOGGER = logging.getLogger(__name__)

GLOBAL_PACKAGE = "__global"
OBJECT_SUFFIX = ".json"

_DIR_MODE = 0o755


def _safe_component(value: str, field: str) -> str:
    if not value or value in (".", "..") or "/" in value or "\\" in value or "\x00" in value:
        raise DecodeError(f"record {field} {value!r} cannot be used as a path component")
    return value


def filing_path(record: MetaRecord) -> Path:
    """Return the path of ``record`` relative to a snapshot root.

    Examples:
        >>> filing_path(MetaRecord("olm.package", "", "foo", b"{}")).as_posix()
        'foo/olm.package/foo.json'
        >>> filing_path(MetaRecord("olm.bundle", "foo", "foo.v1", b"{}")).as_posix()
        'foo/olm.bundle/foo.v1.json'
        >>> filing_path(MetaRecord("custom.schema", "", "x", b"{}")).as_posix()
        '__global/custom.schema/x.json'
    """
    package = record.package
    if record.schema == SCHEMA_PACKAGE:
        package = record.name
    if not package:
        package = GLOBAL_PACKAGE
    return Path(
        _safe_component(package, "package"),
        _safe_component(record.schema, "schema"),
        _safe_component(record.name, "name") + OBJECT_SUFFIX,
    )


def write_catalog(
    catalog_dir: Path,
    records: Iterable[MetaRecord],
    token: Optional[CancellationToken] = None,
) -> int:
    """File every record from ``records`` under ``catalog_dir``.

    Args:
        catalog_dir: Target snapshot (staging) directory.
        records: Decoded records; decode errors raised by the iterable abort
            the decomposition.
        token: Optional cancellation token checked between records.

    Returns:
        Number of records written.

    Raises:
        DecodeError: If the stream is malformed or a coordinate is unsafe.
        OperationCancelled: If ``token`` fires.
        OSError: If a directory or file cannot be written.
    """
    count = 0
    created: set[Path] = set()
    for record in records:
        if token is not None:
            token.raise_if_cancelled("decomposition")
        target = catalog_dir / filing_path(record)
        parent = target.parent
        if parent not in created:
            os.makedirs(parent, mode=_DIR_MODE, exist_ok=True)
            created.add(parent)
        target.write_bytes(record.blob)
        count += 1
    LOGGER.debug("decomposed %d records into %s", count, catalog_dir)
    return count


__all__ = ["GLOBAL_PACKAGE", "OBJECT_SUFFIX", "filing_path", "write_catalog"]
