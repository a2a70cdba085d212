"""asyncio worker-pool scheduler.

A bounded ``asyncio.Queue`` feeds ``workers`` long-lived tasks started in the
FastAPI lifespan.  Submissions are declined (``submit`` returns ``False``)
when the pool is not running or the queue is full; the ingestion service
then processes the job synchronously instead.

Delivery is best effort: jobs still queued at shutdown are dropped and stay
``pending`` in the record store.
"""

from __future__ import annotations

import asyncio

import structlog

from mindweave.interfaces.scheduler import IScheduler, JobRunner

logger = structlog.get_logger(logger_name=__name__)


class BackgroundScheduler(IScheduler):
    """Runs submitted jobs on a fixed pool of asyncio worker tasks."""

    def __init__(self, workers: int = 4, queue_size: int = 100) -> None:
        if workers < 1:
            raise ValueError("workers must be at least 1")
        self._worker_count = workers
        self._queue: asyncio.Queue[tuple[str, JobRunner]] = asyncio.Queue(maxsize=queue_size)
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def running(self) -> bool:
        return bool(self._tasks)

    async def start(self) -> None:
        if self._tasks:
            return
        self._tasks = [
            asyncio.create_task(self._worker(i), name=f"mindweave-worker-{i}")
            for i in range(self._worker_count)
        ]
        logger.info("scheduler_started", workers=self._worker_count)

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("scheduler_stopped", dropped=self._queue.qsize())

    def submit(self, job_id: str, runner: JobRunner) -> bool:
        if not self._tasks:
            return False
        try:
            self._queue.put_nowait((job_id, runner))
        except asyncio.QueueFull:
            logger.warning("scheduler_queue_full", job_id=job_id)
            return False
        logger.debug("job_queued", job_id=job_id, queued=self._queue.qsize())
        return True

    async def join(self) -> None:
        """Wait until every queued job has been processed."""
        await self._queue.join()

    def get_scheduler_name(self) -> str:
        return "background"

    async def _worker(self, worker_id: int) -> None:
        while True:
            job_id, runner = await self._queue.get()
            try:
                await runner(job_id)
            except Exception as exc:  # noqa: BLE001
                # The runner has already recorded the failure on the job.
                logger.warning(
                    "background_job_failed",
                    worker=worker_id,
                    job_id=job_id,
                    error=str(exc),
                )
            finally:
                self._queue.task_done()
