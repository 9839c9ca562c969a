"""Source and target API client implementations."""

import base64
import json
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import quote, urljoin

import aiohttp
import requests
from loguru import logger
from pydantic import BaseModel

from ..config.config import AdoInstanceConfig, GithubInstanceConfig
from ..models.job import MigrationStatus
from ..models.repository import SourceKind
from .exceptions import (
    AuthenticationError,
    GraphQLError,
    MigrationAPIError,
    NotFoundError,
    RateLimitError,
)
from .rate_limiter import RateLimiter

USER_AGENT = 'gh-batch-migrate/0.1.0'

# GHES releases before this one need caller-provided blob storage
GHES_BLOB_STORAGE_CUTOFF = (3, 8, 0)


class APIResponse(BaseModel):
    """Standard API response wrapper."""

    status_code: int
    data: Any
    headers: Dict[str, str]
    success: bool


def _retry_after(headers: Dict[str, str], default: int = 60) -> int:
    """Seconds to wait from a Retry-After header (delay or HTTP date)."""
    value = next(
        (v for k, v in headers.items() if k.lower() == 'retry-after'), None
    )
    if value is None:
        return default

    try:
        return max(0, int(value))
    except ValueError:
        pass

    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return default
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=timezone.utc)
    return max(0, int((retry_at - datetime.now(timezone.utc)).total_seconds()))


def _raise_for_status(status: int, headers: Dict[str, str], body: Any) -> None:
    if status == 429:
        retry_after = _retry_after(headers)
        raise RateLimitError(
            f'Rate limit exceeded. Retry after {retry_after} seconds',
            retry_after=retry_after,
        )

    if status == 401:
        raise AuthenticationError('Authentication failed', status_code=status)

    if status == 404:
        raise NotFoundError('Resource not found', status_code=status)

    if status >= 400:
        if isinstance(body, dict):
            message = body.get('message', f'HTTP {status}')
        else:
            message = f'HTTP {status}: {body}'
        raise MigrationAPIError(
            f'API request failed: {message}',
            status_code=status,
            response_data=body if isinstance(body, dict) else None,
        )


class BaseAPIClient:
    """HTTP client with a sync session for listing and async calls for jobs."""

    def __init__(
        self,
        base_url: str,
        auth_headers: Dict[str, str],
        timeout: int = 30,
        verify_ssl: bool = True,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """Initialize client.

        Args:
            base_url: API base URL
            auth_headers: Authentication headers sent with every request
            timeout: Request timeout in seconds
            verify_ssl: Verify TLS certificates
            rate_limiter: Optional limiter applied to async requests
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.rate_limiter = rate_limiter
        self._headers = {
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
            **auth_headers,
        }

        self.session = requests.Session()
        self.session.headers.update(self._headers)
        self.session.verify = verify_ssl

    def _build_url(self, endpoint: str) -> str:
        """Build full API URL from endpoint."""
        if endpoint.startswith(('http://', 'https://')):
            return endpoint
        return urljoin(self.base_url + '/', endpoint.lstrip('/'))

    def _handle_response(self, response: requests.Response) -> APIResponse:
        """Handle API response and convert to standard format.

        Raises:
            MigrationAPIError: For various API errors
        """
        headers = dict(response.headers)

        try:
            data = response.json() if response.content else None
        except ValueError:
            data = response.text

        _raise_for_status(response.status_code, headers, data)

        return APIResponse(
            status_code=response.status_code,
            data=data,
            headers=headers,
            success=200 <= response.status_code < 300,
        )

    def get(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None, **kwargs
    ) -> APIResponse:
        """Make GET request."""
        url = self._build_url(endpoint)

        try:
            response = self.session.get(
                url, params=params, timeout=self.timeout, **kwargs
            )
        except requests.RequestException as e:
            logger.error(f'Network error during GET request: {e}')
            raise MigrationAPIError(f'Network error: {e}')
        return self._handle_response(response)

    async def _make_request_async(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> APIResponse:
        """Make asynchronous API request."""
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        url = self._build_url(endpoint)
        timeout = aiohttp.ClientTimeout(total=self.timeout)

        async with aiohttp.ClientSession(
            headers=self._headers, timeout=timeout
        ) as session:
            try:
                async with session.request(
                    method=method,
                    url=url,
                    params=params,
                    json=data,
                    ssl=self.verify_ssl,
                ) as response:
                    response_headers = dict(response.headers)
                    response_text = await response.text()
                    try:
                        response_data = (
                            json.loads(response_text) if response_text else None
                        )
                    except ValueError:
                        response_data = response_text

                    _raise_for_status(response.status, response_headers, response_data)

                    return APIResponse(
                        status_code=response.status,
                        data=response_data,
                        headers=response_headers,
                        success=200 <= response.status < 300,
                    )

            except aiohttp.ClientError as e:
                logger.error(f'Network error during API request: {e}')
                raise MigrationAPIError(f'Network error: {e}')

    async def get_async(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous GET request."""
        return await self._make_request_async('GET', endpoint, params=params)

    async def post_async(
        self, endpoint: str, data: Optional[Dict[str, Any]] = None
    ) -> APIResponse:
        """Make asynchronous POST request."""
        return await self._make_request_async('POST', endpoint, data=data)

    def close(self):
        """Close the client session."""
        self.session.close()
        logger.debug(f'Client session for {self.base_url} closed')

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class GithubClient(BaseAPIClient):
    """GitHub REST client for sources and GraphQL client for migrations."""

    def __init__(
        self,
        config: GithubInstanceConfig,
        rate_limiter: Optional[RateLimiter] = None,
    ):
        """Initialize GitHub client.

        Args:
            config: GitHub instance configuration with a resolved token
            rate_limiter: Optional limiter for async calls
        """
        if not config.token:
            raise AuthenticationError('No GitHub personal access token provided')

        super().__init__(
            config.api_url,
            {'Authorization': f'Bearer {config.token}'},
            timeout=config.timeout,
            verify_ssl=not config.no_ssl_verify,
            rate_limiter=rate_limiter,
        )
        self.config = config
        self.graphql_url = self._graphql_url(self.base_url)

        logger.info(f'Initialized GitHub client for {config.api_url}')

    @staticmethod
    def _graphql_url(api_url: str) -> str:
        # GHES serves REST under /api/v3 and GraphQL under /api/graphql
        if api_url.endswith('/api/v3'):
            return api_url[: -len('/v3')] + '/graphql'
        return api_url + '/graphql'

    # Source side

    def get_paginated(
        self,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        per_page: int = 100,
    ) -> List[Dict[str, Any]]:
        """Get all pages of a paginated REST endpoint."""
        all_items: List[Dict[str, Any]] = []
        page = 1
        params = dict(params or {})
        params['per_page'] = per_page

        while True:
            params['page'] = page
            response = self.get(endpoint, params=params)

            items = response.data
            if not items:
                break

            all_items.extend(items)

            if len(items) < per_page:
                break

            page += 1

        logger.debug(f'Retrieved {len(all_items)} items from {endpoint}')
        return all_items

    def get_repos(self, org: str) -> List[Tuple[str, str]]:
        """List ``(name, visibility)`` for every repository of an organization."""
        repos = self.get_paginated(f'/orgs/{quote(org)}/repos')
        return [
            (repo['name'], repo.get('visibility') or 'private') for repo in repos
        ]

    def get_enterprise_server_version(self) -> Optional[str]:
        """Return the installed GHES version, if the instance reports one."""
        try:
            response = self.get('/meta')
        except MigrationAPIError as e:
            logger.warning(f'Could not retrieve GHES version: {e}')
            return None

        if isinstance(response.data, dict):
            return response.data.get('installed_version')
        return None

    def are_blob_credentials_required(self, ghes_api_url: Optional[str]) -> bool:
        """Whether a GHES source needs caller-provided blob storage."""
        if not ghes_api_url:
            return False

        version = self.get_enterprise_server_version()
        if not version:
            return True

        parsed = _parse_version(version)
        if parsed is None:
            logger.warning(f'Unrecognized GHES version "{version}"')
            return True

        logger.debug(f'GHES version: {version}')
        return parsed < GHES_BLOB_STORAGE_CUTOFF

    # Target side (GraphQL migration API)

    async def graphql(
        self, query: str, variables: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Run a GraphQL query and return its ``data`` payload.

        Raises:
            GraphQLError: If the response carries errors
        """
        response = await self.post_async(
            self.graphql_url, data={'query': query, 'variables': variables or {}}
        )
        payload = response.data or {}

        errors = payload.get('errors') if isinstance(payload, dict) else None
        if errors:
            message = '; '.join(e.get('message', str(e)) for e in errors)
            raise GraphQLError(f'GraphQL request failed: {message}', errors=errors)

        return payload.get('data') or {}

    async def get_organization_id(self, org: str) -> str:
        data = await self.graphql(
            'query($login: String!) { organization(login: $login) { login id } }',
            {'login': org},
        )
        organization = data.get('organization')
        if not organization:
            raise NotFoundError(f'Organization "{org}" not found')
        return organization['id']

    async def get_enterprise_id(self, enterprise: str) -> str:
        data = await self.graphql(
            'query($slug: String!) { enterprise(slug: $slug) { slug id } }',
            {'slug': enterprise},
        )
        result = data.get('enterprise')
        if not result:
            raise NotFoundError(f'Enterprise "{enterprise}" not found')
        return result['id']

    async def create_migration_source(self, org_id: str, source_kind: SourceKind) -> str:
        """Create the migration source all repository migrations reference."""
        if source_kind == SourceKind.ADO:
            name, url, source_type = (
                'Azure DevOps Source',
                'https://dev.azure.com',
                'AZURE_DEVOPS',
            )
        else:
            name, url, source_type = (
                'GHEC Source',
                'https://github.com',
                'GITHUB_ARCHIVE',
            )

        data = await self.graphql(
            'mutation createMigrationSource($name: String!, $url: String!, '
            '$ownerId: ID!, $type: MigrationSourceType!) { '
            'createMigrationSource(input: {name: $name, url: $url, '
            'ownerId: $ownerId, type: $type}) { migrationSource { id } } }',
            {'name': name, 'url': url, 'ownerId': org_id, 'type': source_type},
        )
        return data['createMigrationSource']['migrationSource']['id']

    async def start_repository_migration(
        self,
        migration_source_id: str,
        org_id: str,
        source_repository_url: str,
        repository_name: str,
        source_token: Optional[str],
        target_token: Optional[str],
        target_repo_visibility: Optional[str] = None,
        skip_releases: bool = False,
        lock_source: bool = False,
    ) -> str:
        """Start a repository migration and return its migration id."""
        variables = {
            'sourceId': migration_source_id,
            'ownerId': org_id,
            'sourceRepositoryUrl': source_repository_url,
            'repositoryName': repository_name,
            'continueOnError': True,
            'accessToken': source_token,
            'githubPat': target_token,
            'skipReleases': skip_releases,
            'targetRepoVisibility': target_repo_visibility,
            'lockSource': lock_source,
        }
        data = await self.graphql(
            'mutation startRepositoryMigration($sourceId: ID!, $ownerId: ID!, '
            '$sourceRepositoryUrl: URI!, $repositoryName: String!, '
            '$continueOnError: Boolean!, $accessToken: String!, $githubPat: String, '
            '$skipReleases: Boolean, $targetRepoVisibility: String, '
            '$lockSource: Boolean) { startRepositoryMigration(input: { '
            'sourceId: $sourceId, ownerId: $ownerId, '
            'sourceRepositoryUrl: $sourceRepositoryUrl, '
            'repositoryName: $repositoryName, continueOnError: $continueOnError, '
            'accessToken: $accessToken, githubPat: $githubPat, '
            'skipReleases: $skipReleases, targetRepoVisibility: $targetRepoVisibility, '
            'lockSource: $lockSource}) { repositoryMigration { id } } }',
            variables,
        )
        return data['startRepositoryMigration']['repositoryMigration']['id']

    async def start_organization_migration(
        self,
        source_org_url: str,
        target_org: str,
        enterprise_id: str,
        source_token: Optional[str],
    ) -> str:
        """Start an organization migration and return its migration id."""
        data = await self.graphql(
            'mutation startOrganizationMigration($sourceOrgUrl: URI!, '
            '$targetOrgName: String!, $targetEnterpriseId: ID!, '
            '$sourceAccessToken: String!) { startOrganizationMigration(input: { '
            'sourceOrgUrl: $sourceOrgUrl, targetOrgName: $targetOrgName, '
            'targetEnterpriseId: $targetEnterpriseId, '
            'sourceAccessToken: $sourceAccessToken}) { orgMigration { id } } }',
            {
                'sourceOrgUrl': source_org_url,
                'targetOrgName': target_org,
                'targetEnterpriseId': enterprise_id,
                'sourceAccessToken': source_token,
            },
        )
        return data['startOrganizationMigration']['orgMigration']['id']

    async def get_migration_state(self, migration_id: str) -> MigrationStatus:
        """Query the status of a repository or organization migration."""
        data = await self.graphql(
            'query($id: ID!) { node(id: $id) { '
            '... on Migration { id state failureReason warningsCount '
            'migrationLogUrl repositoryName } '
            '... on OrganizationMigration { id state failureReason } } }',
            {'id': migration_id},
        )
        node = data.get('node')
        if not node:
            raise NotFoundError(f'Migration "{migration_id}" not found')

        return MigrationStatus(
            migration_id=migration_id,
            state=node.get('state') or 'UNKNOWN',
            failure_reason=node.get('failureReason'),
            warnings_count=node.get('warningsCount') or 0,
            migration_log_url=node.get('migrationLogUrl') or None,
            repository_name=node.get('repositoryName'),
        )

    async def get_migration_log_url(self, migration_id: str) -> Optional[str]:
        """Return the log URL of a migration, or None if not published yet."""
        status = await self.get_migration_state(migration_id)
        return status.migration_log_url

    async def download_file(self, url: str, destination: Path) -> Path:
        """Download a pre-signed URL (no auth headers) to ``destination``."""
        if self.rate_limiter is not None:
            await self.rate_limiter.acquire()

        timeout = aiohttp.ClientTimeout(total=self.timeout)
        async with aiohttp.ClientSession(timeout=timeout) as session:
            try:
                async with session.get(url) as response:
                    if response.status >= 400:
                        raise MigrationAPIError(
                            f'Download failed: HTTP {response.status}',
                            status_code=response.status,
                        )
                    content = await response.read()
            except aiohttp.ClientError as e:
                raise MigrationAPIError(f'Network error: {e}')

        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_bytes(content)
        return destination


class AdoClient(BaseAPIClient):
    """Azure DevOps REST client for team projects and Git repositories."""

    API_VERSION = '6.0'

    def __init__(self, config: AdoInstanceConfig):
        """Initialize ADO client.

        Args:
            config: ADO host configuration with a resolved token
        """
        if not config.token:
            raise AuthenticationError('No Azure DevOps personal access token provided')

        basic = base64.b64encode(f':{config.token}'.encode()).decode()
        super().__init__(
            config.server_url,
            {'Authorization': f'Basic {basic}'},
            timeout=config.timeout,
        )
        self.config = config

        logger.info(f'Initialized Azure DevOps client for {config.server_url}')

    def get_with_continuation(
        self, endpoint: str, params: Optional[Dict[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Collect ``value`` items across continuation-token pages."""
        items: List[Dict[str, Any]] = []
        params = dict(params or {})
        params['api-version'] = self.API_VERSION

        while True:
            response = self.get(endpoint, params=params)
            data = response.data or {}
            items.extend(data.get('value', []))

            headers = {k.lower(): v for k, v in response.headers.items()}
            token = headers.get('x-ms-continuationtoken')
            if not token:
                break
            params['continuationToken'] = token

        return items

    def get_team_projects(self, org: str) -> List[str]:
        projects = self.get_with_continuation(f'/{quote(org)}/_apis/projects')
        return [project['name'] for project in projects]

    def get_repos(self, org: str, team_project: str) -> List[Dict[str, Any]]:
        """List raw Git repository records of a team project."""
        return self.get_with_continuation(
            f'/{quote(org)}/{quote(team_project)}/_apis/git/repositories'
        )


def _parse_version(version: str) -> Optional[Tuple[int, int, int]]:
    parts = version.strip().split('.')
    try:
        numbers = [int(p) for p in parts[:3]]
    except ValueError:
        return None
    while len(numbers) < 3:
        numbers.append(0)
    return numbers[0], numbers[1], numbers[2]


class ClientFactory:
    """Factory for creating source and target API clients."""

    @staticmethod
    def create_target_client(
        config: GithubInstanceConfig,
        token: Optional[str],
        rate_limiter: Optional[RateLimiter] = None,
    ) -> GithubClient:
        """Create the target GitHub client.

        Raises:
            AuthenticationError: If no token was resolved
        """
        if not token:
            raise AuthenticationError(
                'A target GitHub personal access token is required '
                '(--github-target-pat or GH_PAT)'
            )
        return GithubClient(config.copy(update={'token': token}), rate_limiter)

    @staticmethod
    def create_github_source_client(
        config: GithubInstanceConfig,
        token: Optional[str],
        ghes_api_url: Optional[str] = None,
        no_ssl_verify: bool = False,
    ) -> GithubClient:
        """Create a GitHub or GHES source client."""
        if not token:
            raise AuthenticationError(
                'A source GitHub personal access token is required '
                '(--github-source-pat, GH_SOURCE_PAT or GH_PAT)'
            )
        update: Dict[str, Any] = {'token': token}
        if ghes_api_url:
            update['api_url'] = ghes_api_url.rstrip('/')
            update['no_ssl_verify'] = no_ssl_verify
        return GithubClient(config.copy(update=update))

    @staticmethod
    def create_ado_client(
        config: AdoInstanceConfig,
        token: Optional[str],
        server_url: Optional[str] = None,
    ) -> AdoClient:
        """Create an Azure DevOps client."""
        if not token:
            raise AuthenticationError(
                'An Azure DevOps personal access token is required (--ado-pat or ADO_PAT)'
            )
        update: Dict[str, Any] = {'token': token}
        if server_url:
            update['server_url'] = server_url.rstrip('/')
        return AdoClient(config.copy(update=update))
