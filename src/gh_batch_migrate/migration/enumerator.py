"""Repository enumeration for ADO and GitHub sources."""

from typing import Any, Dict, List, Optional

from loguru import logger

from ..models.repository import Repository, RepositoryGroup, Visibility


class RepositoryEnumerator:
    """Lists migratable repositories grouped by organizational unit.

    Source clients are injected so the same enumerator serves script
    generation and direct execution. Only the client for the selected
    source needs to be provided.
    """

    def __init__(self, github_client=None, ado_client=None):
        self.github_client = github_client
        self.ado_client = ado_client
        self.logger = logger.bind(component='RepositoryEnumerator')

    def enumerate_github(self, org: str) -> List[RepositoryGroup]:
        """Return a single group with every repository of a GitHub org."""
        if not org or not org.strip() or self.github_client is None:
            raise ValueError('A GitHub organization and client are required')

        self.logger.info(f'GITHUB ORG: {org}')
        repositories = []
        for name, visibility in self.github_client.get_repos(org):
            self.logger.info(f'    Repo: {name}')
            repositories.append(
                Repository(source_key=name, visibility=Visibility.parse(visibility))
            )

        return [RepositoryGroup(key=None, repositories=repositories)]

    def enumerate_ado(
        self, org: str, team_project: Optional[str] = None
    ) -> List[RepositoryGroup]:
        """Return one group per team project with its enabled Git repositories.

        A team project filter is matched case-insensitively; no match yields
        an empty list rather than an error.
        """
        if not org or not org.strip() or self.ado_client is None:
            raise ValueError('An ADO organization and client are required')

        team_projects = self.ado_client.get_team_projects(org)
        if team_project:
            wanted = team_project.lower()
            team_projects = [tp for tp in team_projects if tp.lower() == wanted]
            if not team_projects:
                self.logger.warning(
                    f'Team project "{team_project}" was not found in {org}'
                )

        groups = []
        for name in team_projects:
            self.logger.info(f'Team Project: {name}')
            repositories = []
            for repo in self.ado_client.get_repos(org, name):
                if not _is_migratable_ado_repo(repo):
                    self.logger.debug(f'  Skipping repo: {repo.get("name")}')
                    continue
                self.logger.info(f'  Repo: {repo["name"]}')
                repositories.append(
                    Repository(
                        source_key=repo['name'],
                        group_key=name,
                        visibility=Visibility.PRIVATE,
                    )
                )
            groups.append(RepositoryGroup(key=name, repositories=repositories))

        return groups


def _is_migratable_ado_repo(repo: Dict[str, Any]) -> bool:
    """Enabled Git repositories only; TFVC and disabled repos are skipped."""
    disabled = repo.get('isDisabled', False)
    if isinstance(disabled, str):
        disabled = disabled.lower() == 'true'
    if disabled:
        return False

    # The git endpoint omits the type; TFVC records carry type "tfvc"
    kind = str(repo.get('type', 'git')).lower()
    return kind == 'git' and bool(repo.get('name'))


def count_repositories(groups: List[RepositoryGroup]) -> int:
    return sum(len(group.repositories) for group in groups)
