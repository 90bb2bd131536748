import asyncio
from typing import Optional

from backoffice_jobs.core.logger import debug, info, warning
from backoffice_jobs.core.setup_logger import worker_logger
from backoffice_jobs.db.dialects import utcnow
from backoffice_jobs.repositories.health_repository import HealthRepository


class Heartbeat:
    """Keeps ``system_health.worker_last_seen_at`` fresh while the worker runs"""

    def __init__(self, repo: HealthRepository, interval: float = 30.0, clock=utcnow):
        self.repo = repo
        self.interval = interval
        self.clock = clock
        self._task: Optional[asyncio.Task] = None
        self._stop_event: Optional[asyncio.Event] = None

    async def beat(self) -> bool:
        """Write one heartbeat. Failures are logged, never raised."""
        try:
            await self.repo.touch(self.clock())
            debug(worker_logger, "Worker heartbeat written")
            return True
        except Exception as e:
            warning(worker_logger, "Failed to write worker heartbeat", context={"error": str(e)})
            return False

    async def start(self) -> None:
        """Beat immediately, then every ``interval`` seconds in the background"""
        if self._task is not None and not self._task.done():
            return
        await self.beat()
        self._stop_event = asyncio.Event()
        self._task = asyncio.create_task(self._loop(), name="worker-heartbeat")
        info(worker_logger, "Worker heartbeat started", context={"interval": self.interval})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        await self._task
        self._task = None
        info(worker_logger, "Worker heartbeat stopped")

    async def _loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                await self.beat()
