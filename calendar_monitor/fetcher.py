"""Calendar source fetching for calendar_monitor.

Locators are resolved once into ``LocalSource`` / ``RemoteSource`` values;
fetching dispatches on that tag. Failures raise ``SourceNotFound`` or
``SourceUnavailable`` and are scoped to the one source being read.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Optional, Union
from urllib.parse import urlparse

import httpx

from .exceptions import SourceNotFound, SourceUnavailable
from .http_client import get_shared_client
from .models import LocalSource, RemoteSource

logger = logging.getLogger(__name__)

DEFAULT_FETCH_TIMEOUT = 30.0

REMOTE_PREFIXES = ("http://", "https://")


def resolve_source(
    locator: str, timeout: float = DEFAULT_FETCH_TIMEOUT
) -> Union[LocalSource, RemoteSource]:
    """Resolve a locator string into a tagged source.

    Args:
        locator: URL (``http://``/``https://``) or filesystem path
        timeout: Fetch timeout applied to remote sources

    Returns:
        RemoteSource for URLs, LocalSource otherwise
    """
    locator = locator.strip()
    if locator.startswith(REMOTE_PREFIXES):
        return RemoteSource(url=locator, timeout=timeout)
    return LocalSource(path=locator)


def resolve_sources(
    locators: list[str], timeout: float = DEFAULT_FETCH_TIMEOUT
) -> list[Union[LocalSource, RemoteSource]]:
    """Resolve locators, dropping blanks and duplicates while keeping order."""
    seen: set[str] = set()
    sources = []
    for locator in locators:
        locator = locator.strip()
        if not locator or locator in seen:
            continue
        seen.add(locator)
        sources.append(resolve_source(locator, timeout))
    return sources


class SourceFetcher:
    """Reads raw ICS text from local files or HTTP(S) URLs."""

    def __init__(self, http_client: Optional[httpx.AsyncClient] = None) -> None:
        """Initialize fetcher.

        Args:
            http_client: Client used for remote sources; the shared client is
                used when omitted
        """
        self.http_client = http_client

    async def fetch(self, source: Union[LocalSource, RemoteSource]) -> str:
        """Return the raw calendar text of ``source``.

        Raises:
            SourceNotFound: Local path does not exist
            SourceUnavailable: Read, network, timeout or HTTP status failure
        """
        if isinstance(source, RemoteSource):
            return await self._fetch_remote(source)
        return await self._fetch_local(source)

    async def _fetch_local(self, source: LocalSource) -> str:
        path = Path(source.path).expanduser()
        if not path.exists():
            raise SourceNotFound(f"ICS file not found: {source.path}", source.path)

        try:
            content = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailable(f"Failed to read ICS file: {e}", source.path) from e

        logger.debug("Read %d bytes from %s", len(content), source.path)
        return content

    def _validate_url(self, url: str) -> bool:
        """Basic URL sanity check: HTTP(S) scheme and a hostname."""
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https"):
            logger.debug("Blocked non-HTTP(S) URL: %s", url)
            return False
        if not parsed.hostname:
            logger.debug("Blocked URL with missing hostname: %s", url)
            return False
        return True

    async def _get_client(self) -> httpx.AsyncClient:
        if self.http_client is None:
            self.http_client = await get_shared_client("fetcher")
        return self.http_client

    async def _fetch_remote(self, source: RemoteSource) -> str:
        if not self._validate_url(source.url):
            raise SourceUnavailable(f"Invalid ICS URL: {source.url}", source.url)

        client = await self._get_client()
        logger.info("Downloading ICS from URL: %s", source.url)

        try:
            response = await client.get(source.url, timeout=source.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            raise SourceUnavailable(
                f"HTTP error {status} when downloading ICS from {source.url}",
                source.url,
                status_code=status,
            ) from e
        except httpx.TimeoutException as e:
            raise SourceUnavailable(
                f"Request timeout after {source.timeout}s for {source.url}", source.url
            ) from e
        except httpx.HTTPError as e:
            raise SourceUnavailable(
                f"Failed to download ICS from URL {source.url}: {e}", source.url
            ) from e

        self._check_response(response)
        return response.text

    def _check_response(self, response: Any) -> None:
        """Log content that does not look like a calendar; parsing decides the rest."""
        content_type = response.headers.get("content-type", "").lower()
        if content_type and not any(ct in content_type for ct in ("text/calendar", "text/plain")):
            logger.warning("Unexpected content type: %s", content_type)
        if "BEGIN:VCALENDAR" not in response.text:
            logger.warning("Content does not appear to be valid ICS format")
        logger.debug("Fetched ICS content (%d bytes)", len(response.content))
