"""
Logging setup for the catalog browser.

Every module logs through ``logging.getLogger(__name__)`` under the
``CatalogBrowser`` tree. :func:`setup_logging` attaches a console handler
and, optionally, a rotating JSONL file handler. Records may carry
``catalog`` and ``stage`` attributes (pass them through ``extra=``); the
JSON formatter lifts them into top-level fields so refresh outcomes can be
filtered per catalog.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

ROOT_LOGGER_NAME = "CatalogBrowser"
MASK = "***masked***"

_MANAGED_ATTR = "_catalog_browser_managed"
_SENSITIVE_KEYS = frozenset(
    {"authorization", "proxy-authorization", "cookie", "set-cookie", "token", "password"}
)
_CONTEXT_FIELDS = ("catalog", "stage")


def mask_sensitive_data(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a copy of ``payload`` with credential-bearing values masked.

    Nested mappings (such as request headers) are masked recursively.

    Examples:
        >>> mask_sensitive_data({"headers": {"Authorization": "Bearer x"}, "status": 304})
        {'headers': {'Authorization': '***masked***'}, 'status': 304}
    """
    cleaned: Dict[str, Any] = {}
    for key, value in payload.items():
        if key.lower() in _SENSITIVE_KEYS:
            cleaned[key] = MASK
        elif isinstance(value, Mapping):
            cleaned[key] = mask_sensitive_data(value)
        else:
            cleaned[key] = value
    return cleaned


class JSONFormatter(logging.Formatter):
    """Render records as single-line JSON objects.

    Examples:
        >>> line = JSONFormatter().format(logging.makeLogRecord({"msg": "hi", "catalog": "k/a"}))
        >>> json.loads(line)["catalog"]
        'k/a'
    """

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        payload: Dict[str, Any] = {
            "timestamp": created.isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for name in _CONTEXT_FIELDS:
            payload[name] = getattr(record, name, None)
        extra = getattr(record, "extra_fields", None)
        if isinstance(extra, Mapping):
            payload.update(extra)
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(mask_sensitive_data(payload), default=str)


def _managed(handler: logging.Handler) -> logging.Handler:
    setattr(handler, _MANAGED_ATTR, True)
    return handler


def setup_logging(
    level: str = "INFO",
    fmt: str = "console",
    log_dir: Optional[Path] = None,
    *,
    max_log_size_mb: float = 10.0,
) -> logging.Logger:
    """Configure handlers for the ``CatalogBrowser`` logger tree.

    Handlers installed by an earlier call are replaced; handlers added by
    anything else (pytest's ``caplog``, an embedding application) are left
    alone.

    Args:
        level: Logging level name.
        fmt: ``"console"`` for plain text on stderr or ``"json"`` for JSON lines.
        log_dir: When given, JSON lines are also written to
            ``catalog-browser-YYYYMMDD.jsonl`` there, rotated by size.
        max_log_size_mb: Rotation threshold for the file handler.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))

    stale = [h for h in logger.handlers if getattr(h, _MANAGED_ATTR, False)]
    for handler in stale:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    if fmt == "json":
        console.setFormatter(JSONFormatter())
    else:
        console.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    logger.addHandler(_managed(console))

    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d")
        rotating = RotatingFileHandler(
            log_dir / f"catalog-browser-{stamp}.jsonl",
            maxBytes=int(max_log_size_mb * 1024 * 1024),
            backupCount=5,
            encoding="utf-8",
        )
        rotating.setFormatter(JSONFormatter())
        logger.addHandler(_managed(rotating))

    return logger


__all__ = ["ROOT_LOGGER_NAME", "MASK", "JSONFormatter", "mask_sensitive_data", "setup_logging"]
