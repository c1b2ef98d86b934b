"""Freshness negotiation, stale-but-available fallback, and eviction refetch."""

from __future__ import annotations

import logging
import os
import threading
import time
from pathlib import Path

import httpx
import pytest

from CatalogBrowser import eviction
from CatalogBrowser.cancellation import CancellationToken
from CatalogBrowser.core import CatalogRef
from CatalogBrowser.errors import (
    DecodeError,
    FetchError,
    NotFoundError,
    OperationCancelled,
    UnexpectedStatusError,
)
from CatalogBrowser.eviction import TRASH_DIR_NAME
from CatalogBrowser.io_utils import ACTIVE_LINK
from tests.catalog_browser.helpers import (
    FIRST_MODIFIED,
    SAMPLE_RECORDS,
    SECOND_MODIFIED,
    http_date,
)

REF = CatalogRef("operatorhubio")


def _snapshots(catalog_dir: Path) -> list[str]:
    return sorted(p.name for p in catalog_dir.iterdir() if p.name != ACTIVE_LINK)


def test_catalog_url_and_dir(make_service, cache_root: Path) -> None:
    client = make_service().client

    assert client.catalog_url(REF) == "http://catalogd.test/catalogs/operatorhubio/all.json"
    assert client.catalog_dir(REF) == cache_root.resolve() / "clustercatalogs" / "operatorhubio"


def test_first_fetch_is_unconditional_and_publishes(make_service, catalog_server) -> None:
    client = make_service().client

    view = client.get_catalog_view(REF)

    assert catalog_server.conditional_headers() == [None]
    assert view.snapshot == "20240501_123005"
    assert view.modified_at() == FIRST_MODIFIED
    assert view.list_dirs() == ["__global", "bar", "foo"]


def test_second_fetch_sends_if_modified_since_and_writes_nothing(
    make_service, catalog_server
) -> None:
    client = make_service().client
    client.get_catalog_view(REF)
    catalog_dir = client.catalog_dir(REF)
    before = _snapshots(catalog_dir)

    view = client.get_catalog_view(REF)

    assert catalog_server.conditional_headers() == [None, http_date(FIRST_MODIFIED)]
    assert view.snapshot == "20240501_123005"
    assert _snapshots(catalog_dir) == before


def test_validator_survives_process_restart(make_service, catalog_server) -> None:
    make_service().client.get_catalog_view(REF)

    fresh_client = make_service().client
    fresh_client.get_catalog_view(REF)

    assert catalog_server.conditional_headers()[-1] == http_date(FIRST_MODIFIED)


def test_updated_catalog_publishes_new_snapshot(make_service, catalog_server) -> None:
    client = make_service().client
    client.get_catalog_view(REF)
    catalog_server.serve_records("operatorhubio", SAMPLE_RECORDS[:2], SECOND_MODIFIED)

    view = client.get_catalog_view(REF)

    assert view.snapshot == "20240602_080000"
    assert view.list_dirs() == ["foo"]
    assert _snapshots(client.catalog_dir(REF)) == ["20240501_123005", "20240602_080000"]


def test_view_keeps_reading_its_snapshot_after_swap(make_service, catalog_server) -> None:
    client = make_service().client
    old_view = client.get_catalog_view(REF)
    catalog_server.serve_records("operatorhubio", SAMPLE_RECORDS[:2], SECOND_MODIFIED)
    client.get_catalog_view(REF)

    assert old_view.list_dirs() == ["__global", "bar", "foo"]


def test_decode_error_serves_previous_snapshot(make_service, catalog_server, caplog) -> None:
    client = make_service().client
    client.get_catalog_view(REF)
    catalog_server.serve("operatorhubio", b'{"schema":"olm.package","name":"foo"}\n{oops', SECOND_MODIFIED)

    with caplog.at_level(logging.WARNING, logger="CatalogBrowser"):
        view = client.get_catalog_view(REF)

    assert view.snapshot == "20240501_123005"
    assert any("catalog-refresh-failed" in record.getMessage() for record in caplog.records)
    assert _snapshots(client.catalog_dir(REF)) == ["20240501_123005"]


def test_decode_error_without_snapshot_raises(make_service, catalog_server) -> None:
    catalog_server.serve("operatorhubio", b"[1, 2, 3]")
    client = make_service().client

    with pytest.raises(DecodeError):
        client.get_catalog_view(REF)
    assert not os.path.lexists(client.catalog_dir(REF) / ACTIVE_LINK)


def test_unexpected_status_without_snapshot_raises(make_service, catalog_server) -> None:
    catalog_server.status_override = 500
    client = make_service().client

    with pytest.raises(UnexpectedStatusError) as excinfo:
        client.get_catalog_view(REF)
    assert excinfo.value.status_code == 500


def test_unknown_catalog_is_an_unexpected_status(make_service) -> None:
    with pytest.raises(UnexpectedStatusError) as excinfo:
        make_service().client.get_catalog_view(CatalogRef("missing"))
    assert excinfo.value.status_code == 404


def test_unexpected_status_serves_previous_snapshot(make_service, catalog_server) -> None:
    client = make_service().client
    client.get_catalog_view(REF)
    catalog_server.status_override = 503

    assert client.get_catalog_view(REF).snapshot == "20240501_123005"


def test_transport_error_serves_previous_snapshot(make_service, catalog_server) -> None:
    client = make_service().client
    client.get_catalog_view(REF)
    catalog_server.error = httpx.ConnectError("tunnel down")

    assert client.get_catalog_view(REF).snapshot == "20240501_123005"


def test_transport_error_without_snapshot_raises_fetch_error(make_service, catalog_server) -> None:
    catalog_server.error = httpx.ConnectError("tunnel down")

    with pytest.raises(FetchError):
        make_service().client.get_catalog_view(REF)


def test_missing_last_modified_is_a_fetch_error(make_service, catalog_server) -> None:
    catalog_server.serve_records("operatorhubio", last_modified=None)

    with pytest.raises(FetchError):
        make_service().client.get_catalog_view(REF)


def test_not_modified_with_nothing_cached_is_not_found(make_service, catalog_server) -> None:
    catalog_server.status_override = 304

    with pytest.raises(NotFoundError):
        make_service().client.get_catalog_view(REF)


def test_cancelled_token_skips_the_request(make_service, catalog_server) -> None:
    token = CancellationToken()
    token.cancel()

    with pytest.raises(OperationCancelled):
        make_service().client.get_catalog_view(REF, token)
    assert catalog_server.requests == []


def test_cancelled_token_with_snapshot_serves_it(make_service, catalog_server) -> None:
    client = make_service().client
    client.get_catalog_view(REF)
    token = CancellationToken()
    token.cancel()

    assert client.get_catalog_view(REF, token).snapshot == "20240501_123005"
    assert len(catalog_server.requests) == 1


def test_evicted_catalog_is_refetched_unconditionally(make_service, catalog_server) -> None:
    catalog_server.serve_records("community")
    service = make_service(cache_capacity=1)
    other = CatalogRef("community")

    service.client.get_catalog_view(REF)
    service.client.get_catalog_view(other)
    service.deleter.drain(timeout=10)
    assert not service.client.catalog_dir(REF).exists()

    view = service.client.get_catalog_view(REF)

    assert catalog_server.conditional_headers() == [None, None, None]
    assert view.list_dirs() == ["__global", "bar", "foo"]


def test_expired_catalog_is_refetched_unconditionally(
    make_service, catalog_server, clock
) -> None:
    service = make_service(cache_ttl_s=60)
    service.client.get_catalog_view(REF)
    clock.advance(61)

    view = service.client.get_catalog_view(REF)

    assert catalog_server.conditional_headers() == [None, None]
    assert view.snapshot == "20240501_123005"


def test_concurrent_refreshes_fetch_the_body_once(make_service, catalog_server) -> None:
    client = make_service().client
    barrier = threading.Barrier(4)
    snapshots: list[str] = []
    errors: list[Exception] = []

    def worker() -> None:
        barrier.wait()
        try:
            snapshots.append(client.get_catalog_view(REF).snapshot)
        except Exception as exc:
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert errors == []
    assert snapshots == ["20240501_123005"] * 4
    assert catalog_server.conditional_headers().count(None) == 1


def test_expired_catalog_refetch_does_not_wait_for_tree_removal(
    make_service, catalog_server, clock, monkeypatch
) -> None:
    release = threading.Event()
    real_remove_tree = eviction.remove_tree

    def slow_remove_tree(path: Path) -> bool:
        release.wait(10)
        return real_remove_tree(path)

    monkeypatch.setattr(eviction, "remove_tree", slow_remove_tree)
    service = make_service(cache_ttl_s=60)
    service.client.get_catalog_view(REF)
    clock.advance(61)

    try:
        started = time.monotonic()
        view = service.client.get_catalog_view(REF)
        elapsed = time.monotonic() - started

        assert elapsed < 5
        assert not release.is_set()
        assert view.list_dirs() == ["__global", "bar", "foo"]
    finally:
        release.set()
        service.deleter.drain(timeout=10)
    assert list((service.client.cache_root / TRASH_DIR_NAME).iterdir()) == []
