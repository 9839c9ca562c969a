"""Execution planning: turns enumerated repositories into ordered steps."""

from typing import List, Set

from loguru import logger

from ..exceptions import NoMigratableReposError
from ..models.job import MigrationJob
from ..models.plan import ExecutionPlan, MigrationOptions, Step, StepKind
from ..models.repository import RepositoryGroup, SourceKind
from .naming import resolve_target_id, unique_target_id

NO_REPOS_MESSAGE = 'no migratable repos were found'
ADO_NO_REPOS_HINT = 'Disabled and TFVC repos are not migrated.'


class ExecutionPlanner:
    """Builds sequential or fan-out/fan-in plans without any I/O."""

    def __init__(self):
        self.logger = logger.bind(component='ExecutionPlanner')

    def build(
        self,
        groups: List[RepositoryGroup],
        options: MigrationOptions,
        sequential: bool = False,
    ) -> ExecutionPlan:
        """Build an execution plan.

        Args:
            groups: Repository groups in enumeration order
            options: Batch migration options
            sequential: Wait for each migration before queuing the next

        Returns:
            Execution plan with one job per repository

        Raises:
            NoMigratableReposError: If the groups hold no repositories
        """
        jobs = self._create_jobs(groups, options.source_kind)
        if not jobs:
            message = f'A migration plan could not be built because {NO_REPOS_MESSAGE}.'
            if options.source_kind == SourceKind.ADO:
                message = f'{message} {ADO_NO_REPOS_HINT}'
            raise NoMigratableReposError(message)

        steps = (
            self._sequential_steps(jobs, options)
            if sequential
            else self._parallel_steps(jobs, options)
        )

        self.logger.debug(
            f'Planned {len(jobs)} migrations '
            f'({"sequential" if sequential else "parallel"}, {len(steps)} steps)'
        )

        return ExecutionPlan(
            options=options, sequential=sequential, groups=list(groups), steps=steps
        )

    @staticmethod
    def _create_jobs(
        groups: List[RepositoryGroup], source_kind: SourceKind
    ) -> List[MigrationJob]:
        # Sanitized names can collide; later repositories get a numeric suffix
        issued: Set[str] = set()
        return [
            MigrationJob(
                repository=repository,
                target_id=unique_target_id(
                    resolve_target_id(repository, source_kind), issued
                ),
            )
            for group in groups
            for repository in group.repositories
        ]

    @staticmethod
    def _sequential_steps(
        jobs: List[MigrationJob], options: MigrationOptions
    ) -> List[Step]:
        steps = []
        for job in jobs:
            steps.append(Step(StepKind.QUEUE, job))
            steps.append(Step(StepKind.WAIT, job))
            if options.download_migration_logs:
                steps.append(Step(StepKind.DOWNLOAD_LOGS, job))
        return steps

    @staticmethod
    def _parallel_steps(
        jobs: List[MigrationJob], options: MigrationOptions
    ) -> List[Step]:
        steps = [Step(StepKind.QUEUE, job) for job in jobs]
        for job in jobs:
            steps.append(Step(StepKind.WAIT, job))
            if options.download_migration_logs:
                steps.append(Step(StepKind.DOWNLOAD_LOGS, job))
        return steps
