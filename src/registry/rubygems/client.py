"""RubyGems registry client: fetch gem version metadata from the compact index."""
from __future__ import annotations

import asyncio
import logging
import urllib.parse
from typing import Dict, List, Optional

import aiohttp

from constants import Constants
from common.logging_utils import extra_context, is_debug_enabled, safe_url, Timer

from ..base import GemVersion, PackageNotFound, RegistryClient, RegistryUnavailable
from .compact_index import parse_info

logger = logging.getLogger(__name__)


class RubyGemsClient(RegistryClient):
    """Compact-index client backed by a shared aiohttp session."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[int] = None,
        max_concurrency: Optional[int] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the client.

        Args:
            base_url: Registry root; defaults to Constants.REGISTRY_URL_RUBYGEMS.
            timeout: Total request timeout in seconds.
            max_concurrency: Upper bound on in-flight requests.
            session: Optional pre-built session (tests, connection reuse).
        """
        self._base_url = (base_url or Constants.REGISTRY_URL_RUBYGEMS).rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout or Constants.REQUEST_TIMEOUT)
        self._max_concurrency = max_concurrency or Constants.REGISTRY_MAX_CONCURRENCY
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._session = session
        self._owns_session = session is None

    @property
    def base_url(self) -> str:
        return self._base_url

    def info_url(self, name: str) -> str:
        """Compact index URL for ``name``."""
        return f"{self._base_url}{Constants.COMPACT_INDEX_INFO_PATH}{urllib.parse.quote(name, safe='')}"

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=self._timeout,
                headers=self._headers(),
            )
            self._owns_session = True

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "RubyGemsClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _headers(self) -> Dict[str, str]:
        return {"User-Agent": Constants.USER_AGENT, "Accept": "text/plain"}

    async def fetch_versions(self, name: str) -> List[GemVersion]:
        """Fetch and decode every published variant of ``name``, newest first."""
        text = await self._get_info(name)
        versions = parse_info(text, name)
        if is_debug_enabled(logger):
            logger.debug(
                "Decoded compact index",
                extra=extra_context(
                    event="parse",
                    component="rubygems_client",
                    action="fetch_versions",
                    package=name,
                    count=len(versions),
                ),
            )
        return versions

    async def _get_info(self, name: str) -> str:
        """GET the info document with bounded retries on transient failures."""
        if self._session is None:
            await self.start()
        assert self._session is not None
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self._max_concurrency)

        url = self.info_url(name)
        safe_target = safe_url(url)
        last_error = "unknown error"

        for attempt in range(Constants.HTTP_RETRY_MAX):
            if attempt:
                await asyncio.sleep(Constants.HTTP_RETRY_BASE_DELAY_SEC * (2 ** (attempt - 1)))
            with Timer() as t:
                try:
                    if is_debug_enabled(logger):
                        logger.debug(
                            "HTTP request",
                            extra=extra_context(
                                event="http_request",
                                component="rubygems_client",
                                action="GET",
                                target=safe_target,
                                attempt=attempt + 1,
                            ),
                        )
                    async with self._semaphore:
                        async with self._session.get(url, headers=self._headers()) as response:
                            status = response.status
                            if status == 404:
                                raise PackageNotFound(name)
                            if status == 200:
                                text = await response.text()
                                if is_debug_enabled(logger):
                                    logger.debug(
                                        "HTTP response ok",
                                        extra=extra_context(
                                            event="http_response",
                                            component="rubygems_client",
                                            action="GET",
                                            outcome="success",
                                            status_code=status,
                                            duration_ms=t.duration_ms(),
                                            target=safe_target,
                                        ),
                                    )
                                return text
                            last_error = f"HTTP {status}"
                            if status < 500 and status != 429:
                                break
                except asyncio.TimeoutError:
                    last_error = "timeout"
                except aiohttp.ClientError as exc:
                    last_error = str(exc) or type(exc).__name__
            logger.debug(
                "HTTP attempt failed",
                extra=extra_context(
                    event="http_exception",
                    component="rubygems_client",
                    action="GET",
                    outcome=last_error,
                    attempt=attempt + 1,
                    target=safe_target,
                ),
            )

        logger.warning("Fetching %s failed: %s", safe_target, last_error)
        raise RegistryUnavailable(name, last_error)
