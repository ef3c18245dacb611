from __future__ import annotations

import logging
import threading

import httpx

logger = logging.getLogger("requester.transports")

MAX_KEEPALIVE_CONNECTIONS = 10

_default_client: httpx.Client | None = None
_default_lock = threading.Lock()


def new_default_http_client() -> httpx.Client:
    """Build a new transport configured like the shared default one.

    No timeout is applied at the transport level; requests and clients set
    their own.
    """
    return httpx.Client(
        timeout=None,
        limits=httpx.Limits(max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS),
    )


def new_default_async_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=None,
        limits=httpx.Limits(max_keepalive_connections=MAX_KEEPALIVE_CONNECTIONS),
    )


def default_http_client() -> httpx.Client:
    """Return the process-wide transport used when a client has none.

    Created on first use.  ``httpx.Client`` is safe to share between threads,
    so every in-flight send may use it concurrently.
    """
    global _default_client

    if _default_client is None:
        with _default_lock:
            if _default_client is None:
                _default_client = new_default_http_client()
                logger.debug("requester: default HTTP client created")
    return _default_client


def set_default_http_client(client: httpx.Client | None) -> None:
    """Replace the shared transport.  ``None`` resets it to be rebuilt lazily.

    The previous transport is not closed; it may still be in use.
    """
    global _default_client

    with _default_lock:
        _default_client = client
