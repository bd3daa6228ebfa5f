"""Outbound HTTP client configuration shared by the upload components."""

from dataclasses import dataclass
from typing import Optional

import httpx

import config


@dataclass(frozen=True)
class ClientConfig:
    """
    Per-call timeouts and pool limits for outbound requests.

    Passed explicitly to every component instead of mutating client-wide
    defaults, so a short size probe and a long chunk transfer can share one
    connection pool.
    """

    probe_timeout: float = config.TIMEOUT_SIZE_PROBE
    chunk_fetch_timeout: float = config.TIMEOUT_CHUNK_FETCH
    transfer_timeout: float = config.TIMEOUT_TRANSFER
    control_timeout: float = config.TIMEOUT_CONTROL
    poll_timeout: float = config.TIMEOUT_POLL
    max_connections: int = config.HTTP_MAX_CONNECTIONS
    max_keepalive_connections: int = config.HTTP_MAX_KEEPALIVE
    keepalive_expiry: float = 30.0


def create_http_client(
    client_config: ClientConfig,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the pooled async client used for source and platform calls.

    Args:
        client_config: Pool limits; the client-level timeout is the control
            timeout, components override it per request
        transport: Optional transport override (tests use httpx.MockTransport)

    Returns:
        A new httpx.AsyncClient; the caller owns it and must aclose() it
    """
    limits = httpx.Limits(
        max_connections=client_config.max_connections,
        max_keepalive_connections=client_config.max_keepalive_connections,
        keepalive_expiry=client_config.keepalive_expiry,
    )
    return httpx.AsyncClient(
        timeout=client_config.control_timeout,
        limits=limits,
        follow_redirects=True,
        transport=transport,
    )
