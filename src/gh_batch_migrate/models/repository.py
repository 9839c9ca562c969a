"""Source repository models."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class SourceKind(str, Enum):
    """Platform a batch migrates from."""

    ADO = 'ado'
    GITHUB = 'github'


class Visibility(str, Enum):
    """Target repository visibility."""

    PUBLIC = 'public'
    PRIVATE = 'private'
    INTERNAL = 'internal'

    @classmethod
    def parse(cls, value: Optional[str]) -> 'Visibility':
        """Map an API visibility value, defaulting to private."""
        if not value:
            return cls.PRIVATE
        try:
            return cls(value.lower())
        except ValueError:
            return cls.PRIVATE


class Repository(BaseModel):
    """A migratable source repository."""

    source_key: str = Field(..., description='Repository name on the source')
    group_key: Optional[str] = Field(
        default=None, description='ADO team project; unset for GitHub sources'
    )
    visibility: Visibility = Field(
        default=Visibility.PRIVATE, description='Visibility to create the target with'
    )

    class Config:
        """Pydantic configuration."""

        frozen = True


class RepositoryGroup(BaseModel):
    """Repositories of one organizational unit, in enumeration order."""

    key: Optional[str] = Field(default=None, description='Team project name')
    repositories: List[Repository] = Field(default_factory=list)

    class Config:
        """Pydantic configuration."""

        frozen = True
