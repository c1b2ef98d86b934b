# === NAVMAP v1 ===
# {
#   "module": "CatalogBrowser.http",
#   "purpose": "HTTPX client factory for the catalog server plus deadline-aware timeouts",
#   "sections": [
#     {"id": "httpconfig", "name": "HttpConfig", "anchor": "class-httpconfig", "kind": "class"},
#     {"id": "build-http-client", "name": "build_http_client", "anchor": "function-build-http-client", "kind": "function"},
#     {"id": "request-timeout", "name": "request_timeout", "anchor": "function-request-timeout", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""HTTP client factory for talking to the catalog server through the tunnel.

**Purpose**
-----------
The catalog server is one local endpoint (a port-forward), so the client
keeps a small connection pool, sends a fixed User-Agent, and exposes a TLS
verification switch because tunnels usually terminate on ``localhost`` with
a certificate issued for the in-cluster name.

**Ownership**
-------------
:func:`CatalogBrowser.bootstrap.build_service` creates the client once and
closes it in :meth:`CatalogService.close`; nothing here is a singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class HttpConfig:
    """Transport settings derived from :class:`CatalogSettings`.

    Attributes:
        user_agent: Sent with every catalog request.
        timeout_connect_s: Connect timeout, seconds.
        timeout_read_s: Read timeout, seconds; also bounds write and pool waits.
        pool_connections: Keep-alive connections retained.
        pool_maxsize: Upper bound on open connections.
        verify_tls: Verify the server certificate.
    """

    user_agent: str = "CatalogBrowser/0.1"
    timeout_connect_s: float = 10.0
    timeout_read_s: float = 60.0
    pool_connections: int = 4
    pool_maxsize: int = 8
    verify_tls: bool = True

    def timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.timeout_read_s, connect=self.timeout_connect_s)

    def limits(self) -> httpx.Limits:
        return httpx.Limits(
            max_connections=self.pool_maxsize,
            max_keepalive_connections=self.pool_connections,
        )


def build_http_client(
    config: Optional[HttpConfig] = None,
    *,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    Create the HTTP client used for catalog fetches.

    **Parameters**

        config : HttpConfig, optional
            Timeouts, User-Agent and TLS switch; defaults apply when omitted.
        transport : httpx.BaseTransport, optional
            Replacement transport. Tests pass :class:`httpx.MockTransport`.

    **Returns**

        httpx.Client
            Pooled client. The caller owns it and must close it.
    """
    cfg = config or HttpConfig()
    client = httpx.Client(
        timeout=cfg.timeout(),
        verify=cfg.verify_tls,
        headers={"User-Agent": cfg.user_agent},
        limits=cfg.limits(),
        transport=transport,
    )
    LOGGER.debug(
        "http-client-ready ua=%s connect_s=%s read_s=%s pool=%d/%d verify_tls=%s",
        cfg.user_agent,
        cfg.timeout_connect_s,
        cfg.timeout_read_s,
        cfg.pool_connections,
        cfg.pool_maxsize,
        cfg.verify_tls,
    )
    return client


def request_timeout(client: httpx.Client, remaining_s: Optional[float]) -> httpx.Timeout:
    """Clamp the client's default timeout to the caller's remaining deadline.

    Examples:
        >>> with build_http_client() as client:
        ...     request_timeout(client, 2.5).read
        2.5
    """
    base = client.timeout
    if remaining_s is None:
        return base

    def _clamp(value: Optional[float]) -> float:
        return remaining_s if value is None else min(value, remaining_s)

    return httpx.Timeout(
        connect=_clamp(base.connect),
        read=_clamp(base.read),
        write=_clamp(base.write),
        pool=_clamp(base.pool),
    )


__all__ = ["HttpConfig", "build_http_client", "request_timeout"]
