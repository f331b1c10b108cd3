"""Expiry sweeper - background expiry and cleanup of proposed actions."""

import asyncio
import logging

from pydantic import BaseModel, Field

from farm_guardrail.manager.lifecycle import ActionLifecycleController

logger = logging.getLogger(__name__)

ERROR_BACKOFF_SECONDS = 5.0


class SweepReport(BaseModel):
    """What a single sweep changed."""

    expired: list[str] = Field(default_factory=list)
    purged: int = 0


class ExpirySweeper:
    """Periodically expires stale pending actions and purges old ones.

    Runs as an asyncio task next to the approval traffic; it only touches
    actions the controller itself finds eligible.
    """

    def __init__(
        self,
        controller: ActionLifecycleController,
        interval: float = 60.0,
        purge: bool = True,
    ) -> None:
        """Initialize the sweeper.

        Args:
            controller: Controller owning the actions
            interval: Seconds between sweeps
            purge: Also drop actions older than the configured retention
        """
        self._controller = controller
        self._interval = interval
        self._purge = purge
        self._task: asyncio.Task | None = None
        self.sweeps_run = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def sweep_once(self) -> SweepReport:
        """Run one expiry (and optional purge) pass."""
        expired = self._controller.expire_pending()
        purged = self._controller.purge_older_than() if self._purge else 0
        self.sweeps_run += 1

        report = SweepReport(expired=[a.id for a in expired], purged=purged)
        if report.expired or report.purged:
            logger.info(
                f"Sweep complete: {len(report.expired)} expired, {report.purged} purged"
            )
        return report

    def start(self) -> None:
        """Start the background loop. No-op if already running."""
        if self.running:
            return
        logger.info(f"Expiry sweeper started: every {self._interval}s")
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the background loop and wait for it to finish."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Expiry sweeper stopped")

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.sleep(self._interval)
                self.sweep_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Expiry sweep error: {e}")
                await asyncio.sleep(ERROR_BACKOFF_SECONDS)
