"""Result aggregation across a batch."""

from typing import Iterable, Set

from loguru import logger

from ..models.job import BatchResult, JobState, MigrationJob


class ResultAggregator:
    """Counts job outcomes; the resulting BatchResult decides the exit code."""

    def __init__(self):
        self.result = BatchResult()
        self._consumed: Set[int] = set()
        self.logger = logger.bind(component='ResultAggregator')

    def consume(self, job: MigrationJob) -> None:
        """Record the outcome of one job.

        Raises:
            ValueError: If the job was already consumed
        """
        if id(job) in self._consumed:
            raise ValueError(f'Job for {job.target_id} was already aggregated')
        self._consumed.add(id(job))

        if job.state == JobState.SUCCEEDED:
            self.result.succeeded += 1
            self.logger.info(f'✓ {job.target_id} succeeded')
            return

        self.result.failed += 1
        if job.state == JobState.FAILED:
            reason = job.failure_reason or 'failed'
        else:
            # Anything not terminal here was never queued or never waited on
            reason = job.failure_reason or f'ended in state {job.state.value}'
        self.logger.error(f'✗ {job.target_id} failed: {reason}')

    def consume_all(self, jobs: Iterable[MigrationJob]) -> BatchResult:
        for job in jobs:
            self.consume(job)
        return self.result


def aggregate(jobs: Iterable[MigrationJob]) -> BatchResult:
    """Aggregate a finished batch in one call."""
    return ResultAggregator().consume_all(jobs)
