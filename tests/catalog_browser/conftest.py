"""Shared fixtures for the catalog browser test suite."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, List

import pytest

from CatalogBrowser.bootstrap import CatalogService, build_service
from CatalogBrowser.logging_config import ROOT_LOGGER_NAME
from CatalogBrowser.readiness import CatalogStatusSource
from CatalogBrowser.settings import load_settings
from tests.catalog_browser.helpers import BASE_URL, FakeCatalogServer


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _restore_package_logger() -> Iterator[None]:
    """Drop handlers installed by ``setup_logging`` (CLI runs) after each test."""
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    handlers, level = list(logger.handlers), logger.level
    yield
    for handler in list(logger.handlers):
        if handler not in handlers:
            logger.removeHandler(handler)
            handler.close()
    logger.setLevel(level)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def catalog_server() -> FakeCatalogServer:
    server = FakeCatalogServer()
    server.serve_records("operatorhubio")
    return server


@pytest.fixture
def cache_root(tmp_path: Path) -> Path:
    root = tmp_path / "cache"
    root.mkdir()
    return root


@pytest.fixture
def make_service(
    cache_root: Path, catalog_server: FakeCatalogServer, clock: FakeClock
) -> Iterator[Callable[..., CatalogService]]:
    """Factory building services wired to the fake server; closed on teardown."""
    built: List[CatalogService] = []

    def _make(status_source: CatalogStatusSource | None = None, **overrides) -> CatalogService:
        settings = load_settings(
            cache_root=cache_root, base_url=BASE_URL, lock_timeout_s=5.0, **overrides
        )
        service = build_service(
            settings, status_source, transport=catalog_server.transport(), clock=clock
        )
        built.append(service)
        return service

    yield _make
    for service in built:
        service.close()
