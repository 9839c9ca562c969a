"""Target repository naming."""

import re
from typing import Set

from ..models.repository import Repository, SourceKind

# GitHub repository names allow word characters, dots and dashes
_INVALID_CHARACTERS = re.compile(r'[^\w.-]+')


def replace_invalid_characters(value: str) -> str:
    """Replace every run of disallowed characters with a single dash."""
    return _INVALID_CHARACTERS.sub('-', value)


def ado_target_name(team_project: str, repo: str) -> str:
    return replace_invalid_characters(f'{team_project}-{repo}')


def resolve_target_id(repository: Repository, source_kind: SourceKind) -> str:
    """Return the target repository name for a source repository.

    ADO repositories are prefixed with their team project so names stay unique
    across team projects; GitHub repositories keep their name.
    """
    if source_kind == SourceKind.ADO:
        return ado_target_name(repository.group_key or '', repository.source_key)
    return repository.source_key


def unique_target_id(name: str, issued: Set[str]) -> str:
    """Return ``name``, or ``name-2``, ``name-3``... if already issued.

    GitHub repository names are case-insensitive, so ``issued`` holds
    lowercased names. The chosen name is added to it.
    """
    candidate = name
    suffix = 2
    while candidate.lower() in issued:
        candidate = f'{name}-{suffix}'
        suffix += 1
    issued.add(candidate.lower())
    return candidate
