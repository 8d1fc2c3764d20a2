"""Initial build and periodic background rebuilds of the graph."""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from .graph import GraphService

logger = logging.getLogger(__name__)


class RefreshScheduler:
    """Rebuilds the graph every ``interval_seconds`` until stopped."""

    def __init__(self, service: GraphService, interval_seconds: float) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.service = service
        self.interval_seconds = interval_seconds
        self._shutdown_event: asyncio.Event = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def bootstrap(self) -> bool:
        """Attempt the initial build; on failure keep serving the empty graph."""
        logger.info("Building initial graph")
        try:
            await self.service.rebuild()
        except Exception as exc:
            logger.error(
                "Failed to build initial graph; use graph_refresh to retry",
                extra={"error": str(exc)},
            )
            return False
        return True

    async def refresh_once(self) -> bool:
        try:
            await self.service.rebuild()
        except Exception as exc:
            logger.error("Graph refresh failed", extra={"error": str(exc)})
            return False
        logger.info("Graph refreshed")
        return True

    async def _run(self) -> None:
        while not self._shutdown_event.is_set():
            try:
                await asyncio.wait_for(
                    self._shutdown_event.wait(), timeout=self.interval_seconds
                )
                break
            except asyncio.TimeoutError:
                await self.refresh_once()

    def start(self) -> None:
        if self.running:
            return
        self._shutdown_event.clear()
        logger.info(
            "Auto-refresh scheduled",
            extra={"interval_seconds": self.interval_seconds},
        )
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        self._shutdown_event.set()
        if self._task is not None:
            await self._task
            self._task = None


class GraphRuntime:
    """
    Process-wide owner of the graph service, its scheduler and its source.

    ``start()`` may be called once per MCP session; only the first call
    bootstraps and schedules. The content source is closed by
    ``shutdown()`` alone, when the process stops serving.
    """

    def __init__(self, service: GraphService, interval_seconds: float) -> None:
        self.service = service
        self.scheduler = RefreshScheduler(service, interval_seconds)
        self._lock = asyncio.Lock()
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        async with self._lock:
            if self._started:
                return
            await self.scheduler.bootstrap()
            self.scheduler.start()
            self._started = True

    async def shutdown(self) -> None:
        async with self._lock:
            await self.scheduler.stop()
            await self.service.source.aclose()
            self._started = False
            logger.info("Graph runtime stopped")


__all__ = ["RefreshScheduler", "GraphRuntime"]
