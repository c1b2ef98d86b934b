"""Fake catalog server and sample catalogs shared by the catalog browser tests."""

from __future__ import annotations

import base64
import json
import threading
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx

BASE_URL = "http://catalogd.test"

ICON_BYTES = b'<svg xmlns="http://www.w3.org/2000/svg"/>'

FIRST_MODIFIED = datetime(2024, 5, 1, 12, 30, 5, tzinfo=timezone.utc)
SECOND_MODIFIED = datetime(2024, 6, 2, 8, 0, 0, tzinfo=timezone.utc)

SAMPLE_RECORDS: List[Dict[str, Any]] = [
    {
        "schema": "olm.package",
        "name": "foo",
        "defaultChannel": "stable",
        "icon": {
            "base64data": base64.b64encode(ICON_BYTES).decode("ascii"),
            "mediatype": "image/svg+xml",
        },
    },
    {
        "schema": "olm.channel",
        "package": "foo",
        "name": "stable",
        "entries": [{"name": "foo.v0.1.0"}, {"name": "foo.v0.2.0", "replaces": "foo.v0.1.0"}],
    },
    {"schema": "olm.bundle", "package": "foo", "name": "foo.v0.2.0", "image": "quay.io/foo:0.2.0"},
    {"schema": "olm.bundle", "package": "foo", "name": "foo.v0.1.0", "image": "quay.io/foo:0.1.0"},
    {"schema": "olm.package", "name": "bar", "defaultChannel": "alpha"},
    {"schema": "olm.bundle", "package": "bar", "name": "bar.v1.0.0", "image": "quay.io/bar:1.0.0"},
    {"schema": "custom.note", "name": "readme", "text": "héllo"},
]


def encode_records(records: Sequence[Dict[str, Any]]) -> bytes:
    """Serialise records the way the catalog server streams them."""
    return "".join(json.dumps(record, ensure_ascii=False) + "\n" for record in records).encode(
        "utf-8"
    )


def http_date(moment: datetime) -> str:
    return format_datetime(moment, usegmt=True)


class FakeCatalogServer:
    """In-memory catalog server honouring ``If-Modified-Since``.

    Attributes:
        requests: Every request received, in order.
        status_override: When set, answer every request with this status.
        error: When set, raise it from the transport instead of answering.
    """

    def __init__(self) -> None:
        self.catalogs: Dict[str, Tuple[bytes, Optional[datetime]]] = {}
        self.requests: List[httpx.Request] = []
        self.status_override: Optional[int] = None
        self.error: Optional[Exception] = None
        self._lock = threading.Lock()

    def serve(
        self,
        name: str,
        body: bytes,
        last_modified: Optional[datetime] = FIRST_MODIFIED,
    ) -> None:
        self.catalogs[name] = (body, last_modified)

    def serve_records(
        self,
        name: str,
        records: Sequence[Dict[str, Any]] = SAMPLE_RECORDS,
        last_modified: Optional[datetime] = FIRST_MODIFIED,
    ) -> None:
        self.serve(name, encode_records(records), last_modified)

    def handler(self, request: httpx.Request) -> httpx.Response:
        with self._lock:
            self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.status_override is not None:
            return httpx.Response(self.status_override)

        parts = request.url.path.strip("/").split("/")
        if len(parts) != 3 or parts[0] != "catalogs" or parts[2] != "all.json":
            return httpx.Response(404)
        entry = self.catalogs.get(parts[1])
        if entry is None:
            return httpx.Response(404)
        body, last_modified = entry

        since = request.headers.get("If-Modified-Since")
        if since and last_modified is not None:
            if parsedate_to_datetime(since) >= last_modified:
                return httpx.Response(304)

        headers = {"Content-Type": "application/jsonl"}
        if last_modified is not None:
            headers["Last-Modified"] = http_date(last_modified)
        return httpx.Response(200, content=body, headers=headers)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def conditional_headers(self) -> List[Optional[str]]:
        """``If-Modified-Since`` values of the received requests, in order."""
        return [request.headers.get("If-Modified-Since") for request in self.requests]
