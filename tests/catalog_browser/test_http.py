"""HTTP client construction and deadline clamping."""

from __future__ import annotations

import httpx

from CatalogBrowser.http import HttpConfig, build_http_client, request_timeout


def _echo(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"ua": request.headers["User-Agent"]})


def test_client_sends_configured_user_agent() -> None:
    config = HttpConfig(user_agent="catalog-tests/1.0")
    with build_http_client(config, transport=httpx.MockTransport(_echo)) as client:
        assert client.get("http://catalogd.test/x").json() == {"ua": "catalog-tests/1.0"}


def test_request_timeout_clamps_to_deadline() -> None:
    config = HttpConfig(timeout_connect_s=10, timeout_read_s=60)
    with build_http_client(config, transport=httpx.MockTransport(_echo)) as client:
        assert request_timeout(client, None) == client.timeout
        clamped = request_timeout(client, 3.0)

    assert clamped.connect == 3.0
    assert clamped.read == 3.0
    assert clamped.pool == 3.0
