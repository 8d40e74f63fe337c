"""Per-resolution fetch cache that coalesces concurrent requests per gem name."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, Iterable, List, Optional

from common.logging_utils import extra_context, is_debug_enabled
from registry.base import GemVersion, RegistryClient, RegistryUnavailable

logger = logging.getLogger(__name__)


class CoalescingFetcher:
    """Issues at most one ``fetch_versions`` call per name.

    Each name maps to a single task; every caller awaiting that name shares
    the task's result or exception. Fetches for different names run
    concurrently. Owned by one resolution run and discarded with it.
    """

    def __init__(self, client: RegistryClient):
        self._client = client
        self._tasks: Dict[str, "asyncio.Task[List[GemVersion]]"] = {}
        self.network_calls = 0

    def _ensure(self, name: str) -> "asyncio.Task[List[GemVersion]]":
        task = self._tasks.get(name)
        if task is None:
            task = asyncio.ensure_future(self._run(name))
            self._tasks[name] = task
        return task

    async def _run(self, name: str) -> List[GemVersion]:
        self.network_calls += 1
        if is_debug_enabled(logger):
            logger.debug(
                "Fetching versions",
                extra=extra_context(event="fetch_start", component="fetcher", package=name),
            )
        try:
            return await self._client.fetch_versions(name)
        except asyncio.TimeoutError as exc:
            raise RegistryUnavailable(name, "timeout") from exc

    def prefetch(self, names: Iterable[str]) -> None:
        """Start fetches for ``names`` without waiting for them."""
        for name in names:
            self._ensure(name)

    async def get(self, name: str) -> List[GemVersion]:
        """Versions of ``name``, awaiting the shared in-flight fetch if any.

        Raises:
            PackageNotFound: the registry has no such gem.
            RegistryUnavailable: transient failure, timeout or cancelled fetch.
        """
        task = self._ensure(name)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            if task.cancelled():
                raise RegistryUnavailable(name, "fetch cancelled") from None
            raise

    def cached(self, name: str) -> Optional[List[GemVersion]]:
        """Completed successful result for ``name``, else None."""
        task = self._tasks.get(name)
        if task is None or not task.done() or task.cancelled() or task.exception() is not None:
            return None
        return task.result()

    def __contains__(self, name: object) -> bool:
        return name in self._tasks

    async def close(self) -> None:
        """Cancel unfinished fetches and collect every outcome."""
        pending = list(self._tasks.values())
        for task in pending:
            if not task.done():
                task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
