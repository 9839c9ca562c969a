"""Tests for result aggregation."""

import pytest

from gh_batch_migrate.migration.aggregator import ResultAggregator, aggregate
from gh_batch_migrate.models.job import BatchResult, JobState, MigrationJob
from gh_batch_migrate.models.repository import Repository


def job_in(state, name='repo', reason=None):
    job = MigrationJob(repository=Repository(source_key=name), target_id=name)
    job.state = state
    job.failure_reason = reason
    return job


class TestResultAggregator:
    """Test outcome counting."""

    def test_counts(self):
        result = aggregate(
            [
                job_in(JobState.SUCCEEDED, 'a'),
                job_in(JobState.FAILED, 'b', 'Timed out waiting for migration'),
                job_in(JobState.SUCCEEDED, 'c'),
            ]
        )

        assert result.succeeded == 2
        assert result.failed == 1
        assert result.total == 3
        assert result.exit_code == 1

    def test_never_queued_counts_as_failed(self):
        result = aggregate([job_in(JobState.NOT_QUEUED, 'a', 'Failed to queue')])

        assert result.failed == 1
        assert result.success is False

    def test_non_terminal_counts_as_failed(self):
        """Every job ends up in exactly one bucket."""
        jobs = [job_in(state, state.value) for state in JobState]

        result = aggregate(jobs)

        assert result.total == len(jobs)
        assert result.succeeded == 1

    def test_double_consume_rejected(self):
        aggregator = ResultAggregator()
        job = job_in(JobState.SUCCEEDED)
        aggregator.consume(job)

        with pytest.raises(ValueError):
            aggregator.consume(job)

        assert aggregator.result.succeeded == 1

    def test_empty_batch_succeeds(self):
        assert aggregate([]) == BatchResult()
        assert BatchResult().exit_code == 0
