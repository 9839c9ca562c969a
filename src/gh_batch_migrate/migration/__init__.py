"""Batch migration components."""

from .aggregator import ResultAggregator, aggregate
from .enumerator import RepositoryEnumerator, count_repositories
from .naming import (
    ado_target_name,
    replace_invalid_characters,
    resolve_target_id,
    unique_target_id,
)
from .orchestrator import GHES_DIRECT_MESSAGE, BatchOrchestrator
from .planner import ExecutionPlanner
from .supervisor import MigrationJobSupervisor, source_repository_url

__all__ = [
    'ResultAggregator',
    'aggregate',
    'RepositoryEnumerator',
    'count_repositories',
    'ado_target_name',
    'replace_invalid_characters',
    'resolve_target_id',
    'unique_target_id',
    'GHES_DIRECT_MESSAGE',
    'BatchOrchestrator',
    'ExecutionPlanner',
    'MigrationJobSupervisor',
    'source_repository_url',
]
