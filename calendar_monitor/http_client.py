"""Shared HTTP client for calendar_monitor.

One ``httpx.AsyncClient`` per client id is reused across refresh cycles so
that periodic ICS fetches and remote calendar calls share a connection pool.
"""

import asyncio
import logging
from typing import Optional

import httpx

logger = logging.getLogger(__name__)

_shared_clients: dict[str, httpx.AsyncClient] = {}
_client_lock = asyncio.Lock()

DEFAULT_LIMITS = httpx.Limits(max_connections=8, max_keepalive_connections=4)

DEFAULT_TIMEOUT = httpx.Timeout(
    connect=10.0,
    read=30.0,
    write=10.0,
    pool=30.0,
)

DEFAULT_HEADERS = {
    "User-Agent": "calendar-monitor/0.1 (+https://github.com/calendar-monitor)",
    "Accept": "text/calendar, text/plain;q=0.9, */*;q=0.8",
}


def create_client(
    limits: Optional[httpx.Limits] = None,
    timeout: Optional[httpx.Timeout] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build an AsyncClient with the package defaults."""
    return httpx.AsyncClient(
        limits=limits or DEFAULT_LIMITS,
        timeout=timeout or DEFAULT_TIMEOUT,
        follow_redirects=True,
        headers=DEFAULT_HEADERS,
        transport=transport,
    )


async def get_shared_client(client_id: str = "default") -> httpx.AsyncClient:
    """Get or create the shared client registered under ``client_id``."""
    async with _client_lock:
        client = _shared_clients.get(client_id)
        if client is None or client.is_closed:
            logger.debug(
                "Creating shared HTTP client '%s' (max_connections=%d)",
                client_id,
                DEFAULT_LIMITS.max_connections,
            )
            client = create_client()
            _shared_clients[client_id] = client
        return client


async def close_all_clients() -> None:
    """Close every shared client; call on shutdown."""
    async with _client_lock:
        for client_id, client in _shared_clients.items():
            if not client.is_closed:
                await client.aclose()
                logger.debug("Closed shared HTTP client '%s'", client_id)
        _shared_clients.clear()
