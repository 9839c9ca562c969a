"""Data models for repositories, jobs and plans."""

from .repository import Repository, RepositoryGroup, SourceKind, Visibility
from .job import BatchResult, JobState, MigrationJob, MigrationStatus
from .plan import ExecutionPlan, MigrationOptions, Step, StepKind

__all__ = [
    'Repository',
    'RepositoryGroup',
    'SourceKind',
    'Visibility',
    'BatchResult',
    'JobState',
    'MigrationJob',
    'MigrationStatus',
    'ExecutionPlan',
    'MigrationOptions',
    'Step',
    'StepKind',
]
