"""Structured logging setup."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from CatalogBrowser.logging_config import (
    ROOT_LOGGER_NAME,
    JSONFormatter,
    mask_sensitive_data,
    setup_logging,
)


def test_json_formatter_includes_catalog_context() -> None:
    record = logging.makeLogRecord(
        {
            "name": "CatalogBrowser.client",
            "levelname": "WARNING",
            "msg": "catalog-refresh-failed catalog=%s",
            "args": ("clustercatalogs/a",),
            "catalog": "clustercatalogs/a",
            "stage": "negotiate",
        }
    )
    payload = json.loads(JSONFormatter().format(record))

    assert payload["message"] == "catalog-refresh-failed catalog=clustercatalogs/a"
    assert payload["catalog"] == "clustercatalogs/a"
    assert payload["stage"] == "negotiate"
    assert payload["timestamp"].endswith("Z")


def test_secrets_are_masked() -> None:
    masked = mask_sensitive_data({"Authorization": "Bearer abc", "catalog": "a"})
    assert masked == {"Authorization": "***masked***", "catalog": "a"}


def test_setup_logging_replaces_its_own_handlers(tmp_path: Path) -> None:
    logger = setup_logging("DEBUG", "json", tmp_path / "logs")
    assert logger.name == ROOT_LOGGER_NAME
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) >= 2

    count = len(logger.handlers)
    setup_logging("WARNING", "console")

    assert len(logger.handlers) == count - 1
    assert logger.level == logging.WARNING
    assert list((tmp_path / "logs").glob("catalog-browser-*.jsonl"))
