"""RFC 7232 Last-Modified handling for catalog freshness negotiation.

Responsibilities
----------------
- Turn a cached snapshot's modification time into an ``If-Modified-Since``
  validator.
- Parse ``Last-Modified`` from ``200`` responses into the timestamp that
  names and stamps the next snapshot.

Design Notes
------------
- Immutable dataclass for validators.
- The server's ``Last-Modified``, never wall-clock time, is the snapshot
  identity, so the value round-trips through the filesystem mtime across
  process restarts.
- HTTP dates have one-second resolution; sub-second parts are dropped.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime
from typing import Mapping, Optional

from .errors import FetchError

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class FreshnessValidator:
    """Cache validator derived from a snapshot's modification time.

    Attributes:
        last_modified: Last-Modified timestamp as HTTP date string
        last_modified_dt: Parsed UTC datetime for last_modified
    """

    last_modified: Optional[str] = None
    last_modified_dt: Optional[datetime] = None


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def validator_from_mtime(mtime: Optional[float]) -> FreshnessValidator:
    """Build a validator from a POSIX mtime, or an empty one for ``None``.

    Examples:
        >>> validator_from_mtime(1714566896.7).last_modified
        'Wed, 01 May 2024 12:34:56 GMT'
        >>> validator_from_mtime(None)
        FreshnessValidator(last_modified=None, last_modified_dt=None)
    """
    if mtime is None:
        return FreshnessValidator()
    moment = datetime.fromtimestamp(int(mtime), tz=timezone.utc)
    return FreshnessValidator(
        last_modified=format_datetime(moment, usegmt=True),
        last_modified_dt=moment,
    )


def build_conditional_headers(validator: FreshnessValidator) -> dict[str, str]:
    """Return ``If-Modified-Since`` when the validator carries a time.

    Examples:
        >>> build_conditional_headers(FreshnessValidator())
        {}
    """
    headers: dict[str, str] = {}
    if validator.last_modified:
        headers["If-Modified-Since"] = validator.last_modified
    return headers


def parse_last_modified(headers: Mapping[str, str], *, url: Optional[str] = None) -> datetime:
    """Extract the ``Last-Modified`` header as an aware UTC datetime.

    Args:
        headers: Response headers; lookup is case-insensitive.
        url: Request URL, used in error messages.

    Raises:
        FetchError: If the header is missing or not a valid HTTP date.
    """
    raw: Optional[str] = None
    for key, value in headers.items():
        if key.lower() == "last-modified":
            raw = value.strip()
            break
    if not raw:
        raise FetchError("response is missing a Last-Modified header", url=url, status_code=200)
    try:
        parsed = parsedate_to_datetime(raw)
    except (TypeError, ValueError) as exc:
        raise FetchError(
            f"invalid Last-Modified header {raw!r}", url=url, status_code=200
        ) from exc
    return _to_utc(parsed).replace(microsecond=0)


__all__ = [
    "FreshnessValidator",
    "validator_from_mtime",
    "build_conditional_headers",
    "parse_last_modified",
]
