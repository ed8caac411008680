"""
External Shell Fetcher Service.

Downloads AAS environments hosted elsewhere, registers their shells as
hidden (addressable but unlisted) and remembers which shells a URL yielded.
"""

import asyncio
import logging

import httpx
from basyx.aas import model

from aas_lookup.config import get_settings
from aas_lookup.exceptions import FetchError
from aas_lookup.services.codec import AssetFormat
from aas_lookup.services.store import AssetStore

logger = logging.getLogger(__name__)


class ExternalShellFetcher:
    """
    Service for loading environments from external URLs.

    Features:
    - Follows redirects, HTTP(S) only
    - Auto-detects JSON, XML and AASX documents
    - Caches the URL -> shell ids mapping, so a URL is downloaded once
    - Downloads of different URLs do not wait on each other
    """

    def __init__(
        self,
        store: AssetStore,
        timeout_seconds: float | None = None,
        max_download_size_mb: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.store = store
        self.timeout_seconds = timeout_seconds or settings.fetch_timeout_seconds
        self.max_download_size_mb = max_download_size_mb or settings.max_download_size_mb
        self._transport = transport

        # URL -> ids of the shells it contained
        self._url_cache: dict[str, list[str]] = {}
        # URL -> lock serializing downloads of that URL
        self._url_locks: dict[str, asyncio.Lock] = {}

    @property
    def headers(self) -> dict[str, str]:
        """Get HTTP headers for download requests."""
        return {
            "Accept": "application/json, application/xml, application/asset-administration-shell-package, */*",
            "User-Agent": "AAS-Lookup-Service/1.0",
        }

    def cached_shell_ids(self, url: str) -> list[str] | None:
        return self._url_cache.get(url)

    async def fetch_shells(self, url: str) -> list[model.AssetAdministrationShell]:
        """
        Fetch an external environment and return its shells.

        Args:
            url: Location of a JSON, XML or AASX document

        Returns:
            The shells contained in the document; empty if it has none

        Raises:
            ValueError: If the URL is not a valid http(s) URL
            FetchError: If the download fails or is too large
            DecodeError: If the document is no AAS environment
        """
        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise ValueError(f"Invalid URL: {url}") from exc
        if parsed.scheme not in ("http", "https") or not parsed.host:
            raise ValueError(f"Invalid URL: {url}")

        async with self._url_locks.setdefault(url, asyncio.Lock()):
            ids = self._url_cache.get(url)
            if ids is None:
                ids = await self._download_and_register(url)
                if ids:
                    self._url_cache[url] = ids
            else:
                logger.debug(f"Returning cached shells for {url}")

        shells = (self.store.shell(shell_id) for shell_id in ids)
        return [shell for shell in shells if shell is not None]

    async def _download_and_register(self, url: str) -> list[str]:
        logger.info(f"Fetching external environment from {url}")

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                follow_redirects=True,
                transport=self._transport,
            ) as client:
                response = await client.get(url, headers=self.headers)
        except httpx.HTTPError as exc:
            raise FetchError(url, None, f"Fetching {url} failed: {exc}") from exc

        if response.status_code != 200:
            raise FetchError(url, response.status_code)

        content = response.content
        max_size = self.max_download_size_mb * 1024 * 1024
        if len(content) > max_size:
            raise FetchError(
                url,
                response.status_code,
                f"Document too large. Maximum size is {self.max_download_size_mb}MB",
            )

        ids = self.store.load(content, AssetFormat.AUTO, hidden=True)
        logger.info(f"Registered {len(ids)} shells from {url}")
        return ids

    def clear_cache(self) -> int:
        """
        Forget which shells were fetched from which URL.

        The shells themselves stay registered.

        Returns:
            Number of URLs forgotten.
        """
        count = len(self._url_cache)
        self._url_cache.clear()
        logger.info(f"Cleared {count} cached URLs")
        return count
