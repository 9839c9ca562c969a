"""Execution plan models shared by the script renderer and the supervisor."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from .job import MigrationJob
from .repository import RepositoryGroup, SourceKind


class StepKind(str, Enum):
    """Kind of a plan step."""

    QUEUE = 'queue'
    WAIT = 'wait'
    DOWNLOAD_LOGS = 'download_logs'


class MigrationOptions(BaseModel):
    """Source, target and per-repository migration options of a batch."""

    source_kind: SourceKind = Field(..., description='ADO or GitHub source')
    source_org: str = Field(..., description='Source organization or ADO collection')
    target_org: str = Field(..., description='Target GitHub organization')

    ado_server_url: Optional[str] = Field(
        default=None, description='ADO Server URL (unset for ADO Services)'
    )
    ghes_api_url: Optional[str] = Field(
        default=None, description='GHES API URL when the source is GHES'
    )
    aws_bucket_name: Optional[str] = Field(default=None)
    aws_region: Optional[str] = Field(default=None)
    no_ssl_verify: bool = Field(default=False)
    keep_archive: bool = Field(default=False)

    skip_releases: bool = Field(default=False)
    lock_source_repo: bool = Field(default=False)
    download_migration_logs: bool = Field(default=False)

    @property
    def uses_aws(self) -> bool:
        return bool(self.aws_bucket_name or self.aws_region)


@dataclass(frozen=True)
class Step:
    """A single Queue, Wait or DownloadLogs action on a job."""

    kind: StepKind
    job: MigrationJob


@dataclass
class ExecutionPlan:
    """Ordered steps for one batch.

    Parallel plans hold every Queue step before every Wait step; sequential
    plans interleave Queue, Wait and DownloadLogs per repository.
    """

    options: MigrationOptions
    sequential: bool
    groups: List[RepositoryGroup] = field(default_factory=list)
    steps: List[Step] = field(default_factory=list)

    @property
    def jobs(self) -> List[MigrationJob]:
        """Jobs in enumeration order, one per repository."""
        return [step.job for step in self.steps if step.kind == StepKind.QUEUE]

    def steps_for_group(self, key: Optional[str]) -> List[Step]:
        return [s for s in self.steps if s.job.repository.group_key == key]

    def __len__(self) -> int:
        return len(self.steps)
