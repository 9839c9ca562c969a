"""Batch orchestrator: enumerate, plan, execute, aggregate, render."""

from typing import List, Optional

from loguru import logger

from ..config.config import Config
from ..config.credentials import Credentials
from ..exceptions import ConfigurationError
from ..models.job import BatchResult, MigrationJob, MigrationStatus
from ..models.plan import ExecutionPlan, MigrationOptions
from ..models.repository import Repository, RepositoryGroup, SourceKind, Visibility
from ..render.script import ScriptRenderer, write_artifact
from .aggregator import ResultAggregator
from .enumerator import RepositoryEnumerator, count_repositories
from .planner import ExecutionPlanner
from .supervisor import MigrationJobSupervisor

GHES_DIRECT_MESSAGE = (
    'Migrating from GitHub Enterprise Server requires generating and uploading '
    'migration archives, which this command does not do. Use generate-script and '
    'run the generated script instead.'
)


class BatchOrchestrator:
    """Coordinates one command invocation end to end.

    Clients are injected; the orchestrator never builds them itself, so any
    client that is not needed by the chosen source may be left unset.
    """

    def __init__(
        self,
        config: Config,
        credentials: Credentials,
        github_source_client=None,
        ado_client=None,
        target_client=None,
        version: str = '0.1.0',
        verbose: bool = False,
    ):
        self.config = config
        self.credentials = credentials
        self.github_source_client = github_source_client
        self.ado_client = ado_client
        self.target_client = target_client
        self.version = version
        self.verbose = verbose

        self.enumerator = RepositoryEnumerator(
            github_client=github_source_client, ado_client=ado_client
        )
        self.planner = ExecutionPlanner()
        self.logger = logger.bind(component='BatchOrchestrator')

    # Planning

    def enumerate(
        self, options: MigrationOptions, ado_team_project: Optional[str] = None
    ) -> List[RepositoryGroup]:
        if options.source_kind == SourceKind.ADO:
            groups = self.enumerator.enumerate_ado(options.source_org, ado_team_project)
        else:
            groups = self.enumerator.enumerate_github(options.source_org)

        self.logger.info(
            f'Found {count_repositories(groups)} migratable repositories in '
            f'{options.source_org}'
        )
        return groups

    def plan(
        self,
        options: MigrationOptions,
        sequential: bool = False,
        ado_team_project: Optional[str] = None,
    ) -> ExecutionPlan:
        """Enumerate and plan.

        Raises:
            NoMigratableReposError: If nothing can be migrated
        """
        groups = self.enumerate(options, ado_team_project)
        return self.planner.build(groups, options, sequential=sequential)

    # Script generation

    def generate_script(
        self,
        options: MigrationOptions,
        output: Optional[str],
        sequential: bool = False,
        ado_team_project: Optional[str] = None,
    ) -> str:
        """Render the migration script and write it to ``output``.

        Raises:
            NoMigratableReposError: Before anything is written
        """
        self.logger.info('Generating Script...')
        plan = self.plan(options, sequential, ado_team_project)

        script = self._renderer(options).render(plan)
        if output:
            write_artifact(output, script)
            self.logger.info(f'Script written to {output}')
        return script

    def _renderer(self, options: MigrationOptions) -> ScriptRenderer:
        blob_required = False
        if options.source_kind == SourceKind.GITHUB and options.ghes_api_url:
            blob_required = self.github_source_client.are_blob_credentials_required(
                options.ghes_api_url
            )
        return ScriptRenderer(
            self.version, blob_credentials_required=blob_required, verbose=self.verbose
        )

    # Direct execution

    def _supervisor(self, options: MigrationOptions) -> MigrationJobSupervisor:
        if options.ghes_api_url:
            raise ConfigurationError(GHES_DIRECT_MESSAGE)
        if self.target_client is None:
            raise ConfigurationError('A target GitHub client is required')
        return MigrationJobSupervisor(
            self.target_client,
            options,
            self.credentials,
            polling=self.config.polling,
            batch=self.config.batch,
        )

    async def run(
        self,
        options: MigrationOptions,
        sequential: bool = False,
        ado_team_project: Optional[str] = None,
        report_path: Optional[str] = None,
    ) -> BatchResult:
        """Migrate every enumerated repository and report the aggregate.

        Per-repository failures only show up in the returned counts.
        """
        supervisor = self._supervisor(options)
        plan = self.plan(options, sequential, ado_team_project)

        self.logger.info(
            f'Migrating {len(plan.jobs)} repositories to {options.target_org} '
            f'({"sequential" if sequential else "parallel"})'
        )
        jobs = await supervisor.execute(plan)
        result = ResultAggregator().consume_all(jobs)

        self.logger.info(
            f'Migration batch finished: {result.succeeded} succeeded, '
            f'{result.failed} failed'
        )

        if report_path:
            report = ScriptRenderer(self.version, verbose=self.verbose).render(
                plan, result
            )
            write_artifact(report_path, report)
            self.logger.info(f'Run report written to {report_path}')

        return result

    async def migrate_repo(
        self,
        options: MigrationOptions,
        source_repo: str,
        target_repo: Optional[str] = None,
        ado_team_project: Optional[str] = None,
        visibility: Optional[str] = None,
        wait: bool = True,
    ) -> MigrationJob:
        """Migrate a single repository, optionally waiting for it."""
        supervisor = self._supervisor(options)
        job = MigrationJob(
            repository=Repository(
                source_key=source_repo,
                group_key=ado_team_project,
                visibility=Visibility.parse(visibility),
            ),
            target_id=target_repo or source_repo,
        )

        await supervisor.queue(job)
        if not job.was_queued:
            job.mark_failed(job.failure_reason or 'Migration was never queued')
            return job

        if wait:
            await supervisor.wait(job)
        else:
            self.logger.info(
                f'Migration queued with ID {job.external_id}; use '
                'wait-for-migration to follow it'
            )
        return job

    async def migrate_org(
        self,
        source_org: str,
        target_org: str,
        target_enterprise: str,
        wait: bool = True,
    ) -> MigrationStatus:
        """Start an organization migration, optionally waiting for it."""
        if self.target_client is None:
            raise ConfigurationError('A target GitHub client is required')

        enterprise_id = await self.target_client.get_enterprise_id(target_enterprise)
        migration_id = await self.target_client.start_organization_migration(
            source_org_url=f'https://github.com/{source_org}',
            target_org=target_org,
            enterprise_id=enterprise_id,
            source_token=self.credentials.source_pat,
        )
        self.logger.info(
            f'Organization migration {source_org} -> {target_org} queued '
            f'(ID: {migration_id})'
        )

        if not wait:
            return MigrationStatus(migration_id=migration_id, state='QUEUED')
        return await self.wait_for_migration(migration_id)

    async def wait_for_migration(self, migration_id: str) -> MigrationStatus:
        """Poll any repository or organization migration to completion."""
        if self.target_client is None:
            raise ConfigurationError('A target GitHub client is required')

        supervisor = MigrationJobSupervisor(
            self.target_client,
            MigrationOptions(
                source_kind=SourceKind.GITHUB, source_org='', target_org=''
            ),
            self.credentials,
            polling=self.config.polling,
            batch=self.config.batch,
        )
        outcome = await supervisor.poll_until_terminal(migration_id)

        if isinstance(outcome, MigrationStatus):
            return outcome
        if outcome is None:
            return MigrationStatus(
                migration_id=migration_id,
                state='FAILED',
                failure_reason='Timed out waiting for migration',
            )
        return MigrationStatus(
            migration_id=migration_id,
            state='FAILED',
            failure_reason=f'Status polling failed: {outcome}',
        )

