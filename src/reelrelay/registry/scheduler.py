"""Periodic reconciliation of the endpoint registry."""

from __future__ import annotations

import asyncio
import contextlib

from reelrelay.observability.logging import get_logger
from reelrelay.registry.reconcile import EndpointReconciler, ReconcileResult

logger = get_logger(__name__)

__all__ = ["RefreshScheduler"]


class RefreshScheduler:
    """Runs one reconciliation pass at start, then one every ``interval_seconds``.

    No jitter, backoff, or skip-if-running guard: passes are additive and
    serialised by the reconciler itself. ``stop()`` cancels the background task.
    """

    def __init__(
        self,
        reconciler: EndpointReconciler,
        *,
        interval_seconds: float = 60.0,
        periodic: bool = True,
    ) -> None:
        self.reconciler = reconciler
        self.interval_seconds = float(interval_seconds)
        self.periodic = periodic
        self._task: asyncio.Task[None] | None = None
        self.passes = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> ReconcileResult | None:
        """Run a single pass; errors are logged and never escape."""
        try:
            result = await self.reconciler.reconcile()
        except Exception:
            logger.exception("registry_refresh_failed")
            return None
        finally:
            self.passes += 1
        return result

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            logger.info("registry_refresh_tick", interval_s=self.interval_seconds)
            await self.run_once()

    async def start(self) -> ReconcileResult | None:
        result = await self.run_once()
        if self.periodic and not self.running:
            self._task = asyncio.create_task(self._loop(), name="registry-refresh")
            logger.info("registry_refresh_scheduled", interval_s=self.interval_seconds)
        return result

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        logger.info("registry_refresh_stopped", passes=self.passes)
