"""Migration job supervisor: submits migrations and polls them to completion."""

import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional
from urllib.parse import quote

from loguru import logger

from ..api.rate_limiter import PollingBackoff
from ..config.config import BatchConfig, PollingConfig
from ..config.credentials import Credentials
from ..models.job import JobState, MigrationJob, MigrationStatus
from ..models.plan import ExecutionPlan, MigrationOptions, StepKind
from ..models.repository import SourceKind

DEFAULT_ADO_URL = 'https://dev.azure.com'
GITHUB_URL = 'https://github.com'


def source_repository_url(options: MigrationOptions, job: MigrationJob) -> str:
    """URL the migration service clones the source repository from."""
    repository = job.repository
    if options.source_kind == SourceKind.ADO:
        base = (options.ado_server_url or DEFAULT_ADO_URL).rstrip('/')
        return (
            f'{base}/{quote(options.source_org)}/'
            f'{quote(repository.group_key or "")}/_git/{quote(repository.source_key)}'
        )
    return f'{GITHUB_URL}/{options.source_org}/{repository.source_key}'


class MigrationJobSupervisor:
    """Owns every MigrationJob of a run and performs all submission I/O.

    Per-job failures are recorded on the job and never raised, so one bad
    repository cannot stop the rest of the batch. Cancellation propagates.
    """

    def __init__(
        self,
        client,
        options: MigrationOptions,
        credentials: Credentials,
        polling: Optional[PollingConfig] = None,
        batch: Optional[BatchConfig] = None,
    ):
        """Initialize supervisor.

        Args:
            client: Target migration API client (GithubClient)
            options: Batch migration options
            credentials: Resolved tokens
            polling: Status polling settings
            batch: Batch execution settings
        """
        self.client = client
        self.options = options
        self.credentials = credentials
        self.polling = polling or PollingConfig()
        self.batch = batch or BatchConfig()
        self.logger = logger.bind(component='MigrationJobSupervisor')

        self._org_id: Optional[str] = None
        self._migration_source_id: Optional[str] = None
        self._setup_lock: Optional[asyncio.Lock] = None

    async def execute(self, plan: ExecutionPlan) -> List[MigrationJob]:
        """Run every step of a plan in order.

        Consecutive Queue steps are submitted concurrently; Wait and
        DownloadLogs steps run one at a time in plan order.

        Returns:
            Jobs in enumeration order
        """
        pending: List[MigrationJob] = []

        for step in plan.steps:
            if step.kind == StepKind.QUEUE:
                pending.append(step.job)
                continue

            if pending:
                await self.queue_all(pending)
                pending = []

            if step.kind == StepKind.WAIT:
                await self.wait(step.job)
            elif step.kind == StepKind.DOWNLOAD_LOGS:
                await self.download_logs(step.job)

        if pending:
            await self.queue_all(pending)

        return plan.jobs

    async def queue_all(self, jobs: List[MigrationJob]) -> None:
        """Submit jobs with bounded concurrency."""
        if len(jobs) == 1:
            await self.queue(jobs[0])
            return

        self.logger.info(f'Queuing {len(jobs)} repository migrations')
        semaphore = asyncio.Semaphore(self.batch.max_concurrent_queue)

        async def submit(job: MigrationJob) -> None:
            async with semaphore:
                await self.queue(job)

        await asyncio.gather(*(submit(job) for job in jobs))

    async def queue(self, job: MigrationJob) -> MigrationJob:
        """Start the migration of one repository."""
        try:
            org_id, source_id = await self._ensure_migration_source()
            migration_id = await self.client.start_repository_migration(
                migration_source_id=source_id,
                org_id=org_id,
                source_repository_url=source_repository_url(self.options, job),
                repository_name=job.target_id,
                source_token=self._source_token(),
                target_token=self.credentials.target_pat,
                target_repo_visibility=job.repository.visibility.value,
                skip_releases=self.options.skip_releases,
                lock_source=self.options.lock_source_repo,
            )
        except Exception as e:
            job.state = JobState.NOT_QUEUED
            job.failure_reason = f'Failed to queue migration: {e}'
            self.logger.error(f'Failed to queue migration for {job.target_id}: {e}')
            return job

        job.external_id = migration_id
        job.state = JobState.QUEUED
        job.queued_at = datetime.now()
        self.logger.info(
            f'Migration for {job.repository.source_key} -> '
            f'{self.options.target_org}/{job.target_id} queued (ID: {migration_id})'
        )
        return job

    async def wait(self, job: MigrationJob) -> MigrationJob:
        """Poll one migration until it reaches a terminal state.

        A job without a migration id fails immediately without polling.
        """
        if not job.was_queued:
            job.mark_failed(job.failure_reason or 'Migration was never queued')
            self.logger.warning(
                f'Skipping wait for {job.target_id}: migration was not queued'
            )
            return job

        job.state = JobState.POLLING
        status = await self.poll_until_terminal(job.external_id, label=job.target_id)

        if status is None:
            job.mark_failed('Timed out waiting for migration', timed_out=True)
        elif isinstance(status, Exception):
            job.mark_failed(f'Status polling failed: {status}')
        elif status.succeeded:
            job.state = JobState.SUCCEEDED
        else:
            job.mark_failed(status.failure_reason or f'Migration {status.state}')

        return job

    async def poll_until_terminal(self, migration_id: str, label: Optional[str] = None):
        """Poll a migration id until terminal.

        Returns:
            The terminal MigrationStatus, None on timeout, or the last
            exception once consecutive transport errors exceed the limit
        """
        label = label or migration_id
        backoff = PollingBackoff(
            interval=self.polling.interval_seconds,
            max_interval=self.polling.max_interval_seconds,
            factor=self.polling.backoff_factor,
        )
        max_wait = self.polling.max_wait_seconds
        started = time.monotonic()
        errors = 0

        while True:
            try:
                status: MigrationStatus = await self.client.get_migration_state(
                    migration_id
                )
            except Exception as e:
                errors += 1
                if errors >= self.polling.max_consecutive_errors:
                    self.logger.error(
                        f'Giving up on migration {migration_id} ({label}) after '
                        f'{errors} failed status requests: {e}'
                    )
                    return e
                self.logger.warning(
                    f'Status request for migration {migration_id} ({label}) failed '
                    f'({errors}/{self.polling.max_consecutive_errors}): {e}'
                )
            else:
                errors = 0
                if status.succeeded:
                    self._log_success(migration_id, label, status)
                    return status
                if status.failed:
                    self.logger.error(
                        f'Migration {migration_id} ({label}) failed: '
                        f'{status.failure_reason or status.state}'
                    )
                    return status
                self.logger.info(
                    f'Migration {migration_id} ({label}) is {status.state}, '
                    'waiting...'
                )

            if max_wait is not None and time.monotonic() - started >= max_wait:
                self.logger.error(
                    f'Timed out after {max_wait}s waiting for migration '
                    f'{migration_id} ({label})'
                )
                return None

            await asyncio.sleep(backoff.next_delay())

    def _log_success(self, migration_id: str, label: str, status: MigrationStatus):
        message = f'Migration {migration_id} ({label}) succeeded'
        if status.warnings_count:
            message += f' with {status.warnings_count} warning(s)'
            self.logger.warning(message)
        else:
            self.logger.info(message)

    async def download_logs(self, job: MigrationJob) -> Optional[Path]:
        """Download the migration log of a job; failures are only logged."""
        if not job.was_queued:
            self.logger.warning(
                f'No migration log for {job.target_id}: migration was not queued'
            )
            return None

        try:
            url = await self._wait_for_log_url(job.external_id)
            if not url:
                self.logger.warning(
                    f'Migration log for {job.target_id} is not available'
                )
                return None

            destination = Path(self.batch.log_dir) / (
                f'migration-log-{self.options.target_org}-{job.target_id}-'
                f'{job.external_id}.log'
            )
            await self.client.download_file(url, destination)
        except Exception as e:
            self.logger.warning(
                f'Failed to download migration log for {job.target_id}: {e}'
            )
            return None

        job.log_path = str(destination)
        self.logger.info(f'Downloaded migration log for {job.target_id} to {destination}')
        return destination

    async def _wait_for_log_url(self, migration_id: str) -> Optional[str]:
        # The service publishes the log URL shortly after the migration ends
        for attempt in range(self.polling.log_url_attempts):
            url = await self.client.get_migration_log_url(migration_id)
            if url:
                return url
            if attempt + 1 < self.polling.log_url_attempts:
                await asyncio.sleep(self.polling.interval_seconds)
        return None

    async def _ensure_migration_source(self):
        if self._setup_lock is None:
            self._setup_lock = asyncio.Lock()

        async with self._setup_lock:
            if self._migration_source_id is None:
                self._org_id = await self.client.get_organization_id(
                    self.options.target_org
                )
                self._migration_source_id = await self.client.create_migration_source(
                    self._org_id, self.options.source_kind
                )
                self.logger.debug(
                    f'Using migration source {self._migration_source_id} '
                    f'for {self.options.target_org}'
                )

        return self._org_id, self._migration_source_id

    def _source_token(self) -> Optional[str]:
        if self.options.source_kind == SourceKind.ADO:
            return self.credentials.ado_pat
        return self.credentials.source_pat
