# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.records",
#   "purpose": "Decode the catalog record stream into MetaRecord values",
#   "sections": [
#     {"id": "constants", "name": "Schema constants", "anchor": "CONST", "kind": "constants"},
#     {"id": "metarecord", "name": "MetaRecord", "anchor": "class-metarecord", "kind": "class"},
#     {"id": "iter-meta-records", "name": "iter_meta_records", "anchor": "function-iter-meta-records", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Streaming decoder for the catalog ``all.json`` record format.

Responsibilities
----------------
- Split a byte stream of concatenated JSON objects into individual records
  without loading the whole catalog into memory.
- Extract the ``schema``/``package``/``name`` coordinates used for filing.
- Preserve each record's exact JSON text as its content blob.

Design Notes
------------
- Records are separated by arbitrary whitespace; each must be a JSON object
  with a non-empty string ``schema``.
- Errors surface as :class:`~CatalogBrowser.errors.DecodeError` with the
  character offset into the decoded stream, and abort the remaining stream.
"""

from __future__ import annotations

import codecs
import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Iterator

from .errors import DecodeError

LOGGER = logging.getLogger(__name__)

# --- Schema constants ------------------------------------------------------------

SCHEMA_PACKAGE = "olm.package"

_WHITESPACE = " \t\n\r"
# Longest token that can be cut short at a chunk boundary without the
# decoder reporting it as an unterminated string (a surrogate-pair escape).
_TRUNCATION_WINDOW = 16


@dataclass(frozen=True)
class MetaRecord:
    """One decoded catalog record.

    Attributes:
        schema: Record schema, e.g. ``olm.bundle``.
        package: Owning package; empty for package descriptors and global records.
        name: Record name, unique within ``(package, schema)``.
        blob: Exact UTF-8 JSON text of the record.
    """

    schema: str
    package: str
    name: str
    blob: bytes


def _string_field(value: dict[str, Any], key: str, offset: int) -> str:
    field = value.get(key, "")
    if field is None:
        return ""
    if not isinstance(field, str):
        raise DecodeError(f"record field {key!r} must be a string", offset=offset)
    return field


def _to_record(value: Any, raw: str, offset: int) -> MetaRecord:
    if not isinstance(value, dict):
        raise DecodeError("catalog records must be JSON objects", offset=offset)
    schema = _string_field(value, "schema", offset)
    if not schema:
        raise DecodeError("record is missing a schema", offset=offset)
    return MetaRecord(
        schema=schema,
        package=_string_field(value, "package", offset),
        name=_string_field(value, "name", offset),
        blob=raw.encode("utf-8"),
    )


def _is_truncated(exc: json.JSONDecodeError, length: int) -> bool:
    """Whether ``exc`` can be explained by the buffer ending mid-record."""
    if exc.msg.startswith("Unterminated string"):
        return True
    return length - exc.pos <= _TRUNCATION_WINDOW


def iter_meta_records(chunks: Iterable[bytes]) -> Iterator[MetaRecord]:
    """Yield :class:`MetaRecord` values decoded from a byte stream.

    Args:
        chunks: Iterable of byte chunks, for example
            ``httpx.Response.iter_bytes()``. Chunk boundaries may fall anywhere,
            including inside a multi-byte UTF-8 sequence.

    Yields:
        Records in stream order.

    Raises:
        DecodeError: On invalid UTF-8, invalid JSON, a non-object value, or a
            record without a schema.

    Examples:
        >>> stream = [b'{"schema":"olm.package","name":"foo"}\\n{"sche', b'ma":"olm.bundle",',
        ...           b'"package":"foo","name":"foo.v1"}']
        >>> [(r.schema, r.package, r.name) for r in iter_meta_records(stream)]
        [('olm.package', '', 'foo'), ('olm.bundle', 'foo', 'foo.v1')]
    """
    decoder = json.JSONDecoder()
    text_decoder = codecs.getincrementaldecoder("utf-8")()
    buffer = ""
    base = 0  # stream offset of buffer[0]

    def drain(final: bool) -> Iterator[MetaRecord]:
        nonlocal buffer, base
        pos = 0
        length = len(buffer)
        while True:
            while pos < length and buffer[pos] in _WHITESPACE:
                pos += 1
            if pos >= length:
                base += length
                buffer = ""
                return
            if buffer[pos] != "{":
                raise DecodeError("catalog records must be JSON objects", offset=base + pos)
            try:
                value, end = decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError as exc:
                if final or not _is_truncated(exc, length):
                    raise DecodeError(exc.msg, offset=base + exc.pos) from exc
                # Incomplete object; wait for more input.
                base += pos
                buffer = buffer[pos:]
                return
            yield _to_record(value, buffer[pos:end], base + pos)
            pos = end

    try:
        for chunk in chunks:
            if not chunk:
                continue
            buffer += text_decoder.decode(chunk)
            yield from drain(final=False)
        buffer += text_decoder.decode(b"", final=True)
    except UnicodeDecodeError as exc:
        raise DecodeError(f"catalog stream is not valid UTF-8: {exc.reason}", offset=base) from exc
    yield from drain(final=True)


__all__ = [
    "SCHEMA_PACKAGE",
    "MetaRecord",
    "iter_meta_records",
]
