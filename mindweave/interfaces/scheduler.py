"""Abstract base class for background job scheduling.

Two implementations exist and one is chosen at startup from settings:

* ``InlineScheduler`` never accepts work, so callers always run it in the
  request that created it.
* ``BackgroundScheduler`` queues work for an asyncio worker pool and
  declines when its queue is full or it is not running.

Callers treat a declined submission as "run it yourself now".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

JobRunner = Callable[[str], Awaitable[None]]


class IScheduler(ABC):
    """Contract for best-effort background execution of jobs by id."""

    async def start(self) -> None:
        """Start workers.  Optional."""

    async def stop(self) -> None:
        """Stop workers, abandoning queued jobs.  Optional."""

    @abstractmethod
    def submit(self, job_id: str, runner: JobRunner) -> bool:
        """Queue ``runner(job_id)``.

        Returns
        -------
        bool
            ``True`` if the job was accepted for background execution,
            ``False`` if the caller must run it synchronously.
        """

    @abstractmethod
    def get_scheduler_name(self) -> str:
        """Return an identifier for logs and /health."""
