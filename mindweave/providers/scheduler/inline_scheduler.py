"""Scheduler that never runs anything in the background."""

from __future__ import annotations

from mindweave.interfaces.scheduler import IScheduler, JobRunner


class InlineScheduler(IScheduler):
    """Declines every submission so the caller processes the job itself."""

    def submit(self, job_id: str, runner: JobRunner) -> bool:
        return False

    def get_scheduler_name(self) -> str:
        return "inline"
