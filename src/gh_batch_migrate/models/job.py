"""Migration job state and batch results."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .repository import Repository


class JobState(str, Enum):
    """Lifecycle of a migration job within one run."""

    NOT_QUEUED = 'not_queued'
    QUEUED = 'queued'
    POLLING = 'polling'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.SUCCEEDED, JobState.FAILED)


# States reported by the migration service
REMOTE_SUCCEEDED_STATES = frozenset({'SUCCEEDED'})
REMOTE_FAILED_STATES = frozenset({'FAILED', 'FAILED_VALIDATION'})


class MigrationStatus(BaseModel):
    """Status reply for a single remote migration."""

    migration_id: str = Field(..., description='Opaque migration identifier')
    state: str = Field(..., description='Remote state, e.g. QUEUED or SUCCEEDED')
    failure_reason: Optional[str] = Field(default=None)
    warnings_count: int = Field(default=0)
    migration_log_url: Optional[str] = Field(default=None)
    repository_name: Optional[str] = Field(default=None)

    @property
    def succeeded(self) -> bool:
        return self.state.upper() in REMOTE_SUCCEEDED_STATES

    @property
    def failed(self) -> bool:
        return self.state.upper() in REMOTE_FAILED_STATES

    @property
    def is_terminal(self) -> bool:
        return self.succeeded or self.failed


@dataclass(eq=False)
class MigrationJob:
    """One repository's migration, owned by the supervisor for a run.

    Identity matters: plan steps hold references to the same job object.
    """

    repository: Repository
    target_id: str
    external_id: Optional[str] = None
    state: JobState = JobState.NOT_QUEUED
    queued_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    timed_out: bool = False
    log_path: Optional[str] = None

    @property
    def was_queued(self) -> bool:
        return self.external_id is not None

    def mark_failed(self, reason: str, timed_out: bool = False) -> None:
        self.state = JobState.FAILED
        self.failure_reason = reason
        self.timed_out = timed_out


class BatchResult(BaseModel):
    """Aggregate outcome of a batch."""

    succeeded: int = Field(default=0, description='Jobs that ended Succeeded')
    failed: int = Field(default=0, description='Jobs that failed or never queued')

    @property
    def total(self) -> int:
        return self.succeeded + self.failed

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def exit_code(self) -> int:
        return 0 if self.success else 1
