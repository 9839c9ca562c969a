"""Personal access token resolution.

Every token is resolved exactly once, before planning, from an ordered list of
candidates: command-line option, configuration file, environment variable and,
for the GitHub source, the already-resolved target token.
"""

import os
from typing import Mapping, Optional

from pydantic import BaseModel, Field

from .config import Config


class Credentials(BaseModel):
    """Resolved tokens for one command invocation."""

    target_pat: Optional[str] = Field(default=None, description='Target GitHub PAT')
    source_pat: Optional[str] = Field(default=None, description='Source GitHub PAT')
    ado_pat: Optional[str] = Field(default=None, description='Azure DevOps PAT')

    def __repr__(self) -> str:
        # Never leak tokens into logs or tracebacks
        def mask(value: Optional[str]) -> str:
            return '***' if value else 'None'

        return (
            f'Credentials(target_pat={mask(self.target_pat)}, '
            f'source_pat={mask(self.source_pat)}, ado_pat={mask(self.ado_pat)})'
        )

    __str__ = __repr__


def resolve_first(*candidates: Optional[str]) -> Optional[str]:
    """Return the first candidate that is set and not blank."""
    for candidate in candidates:
        if candidate and candidate.strip():
            return candidate
    return None


def resolve_credentials(
    config: Config,
    github_target_pat: Optional[str] = None,
    github_source_pat: Optional[str] = None,
    ado_pat: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Credentials:
    """Resolve all tokens for a command.

    Args:
        config: Loaded configuration
        github_target_pat: ``--github-target-pat`` value
        github_source_pat: ``--github-source-pat`` value
        ado_pat: ``--ado-pat`` value
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Resolved credentials
    """
    env = os.environ if environ is None else environ

    target_pat = resolve_first(github_target_pat, config.target.token, env.get('GH_PAT'))
    source_pat = resolve_first(
        github_source_pat,
        config.github_source.token,
        env.get('GH_SOURCE_PAT'),
        target_pat,
    )
    resolved_ado_pat = resolve_first(ado_pat, config.ado.token, env.get('ADO_PAT'))

    return Credentials(
        target_pat=target_pat, source_pat=source_pat, ado_pat=resolved_ado_pat
    )
