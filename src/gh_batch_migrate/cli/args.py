"""Command argument validation.

Every rule here runs before any client is built or any remote call is made.
"""

from typing import Optional

from loguru import logger

from ..exceptions import ConfigurationError
from ..models.plan import MigrationOptions
from ..models.repository import SourceKind

REPO_MIGRATION_ID_PREFIX = 'RM_'
ORG_MIGRATION_ID_PREFIX = 'OM_'


def _blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def validate_source(
    github_source_org: Optional[str], ado_source_org: Optional[str]
) -> SourceKind:
    """Pick the source kind from the source organization options.

    Raises:
        ConfigurationError: If neither or both source organizations are given
    """
    if _blank(github_source_org) and _blank(ado_source_org):
        raise ConfigurationError(
            'Either --github-source-org or --ado-source-org must be specified'
        )
    if not _blank(github_source_org) and not _blank(ado_source_org):
        raise ConfigurationError(
            'Only one of --github-source-org and --ado-source-org may be specified'
        )
    return SourceKind.ADO if not _blank(ado_source_org) else SourceKind.GITHUB


def validate_ghes_options(
    ghes_api_url: Optional[str],
    aws_bucket_name: Optional[str] = None,
    aws_region: Optional[str] = None,
    no_ssl_verify: bool = False,
    keep_archive: bool = False,
) -> None:
    """GHES archive options are meaningless without a GHES API URL."""
    if not _blank(ghes_api_url):
        return

    if not _blank(aws_bucket_name):
        raise ConfigurationError(
            '--ghes-api-url must be specified when --aws-bucket-name is specified.'
        )
    if not _blank(aws_region):
        raise ConfigurationError(
            '--ghes-api-url must be specified when --aws-region is specified.'
        )
    if no_ssl_verify:
        raise ConfigurationError(
            '--ghes-api-url must be specified when --no-ssl-verify is specified.'
        )
    if keep_archive:
        raise ConfigurationError(
            '--ghes-api-url must be specified when --keep-archive is specified.'
        )


def build_options(
    github_source_org: Optional[str],
    ado_source_org: Optional[str],
    github_target_org: Optional[str],
    ado_server_url: Optional[str] = None,
    ghes_api_url: Optional[str] = None,
    aws_bucket_name: Optional[str] = None,
    aws_region: Optional[str] = None,
    no_ssl_verify: bool = False,
    keep_archive: bool = False,
    skip_releases: bool = False,
    lock_source_repo: bool = False,
    download_migration_logs: bool = False,
) -> MigrationOptions:
    """Validate batch arguments and build the migration options.

    Raises:
        ConfigurationError: On missing or conflicting arguments
    """
    source_kind = validate_source(github_source_org, ado_source_org)

    if _blank(github_target_org):
        raise ConfigurationError('--github-target-org must be specified')
    if not _blank(ado_server_url) and source_kind != SourceKind.ADO:
        raise ConfigurationError(
            '--ado-server-url can only be used together with --ado-source-org'
        )
    if source_kind == SourceKind.ADO and not _blank(ghes_api_url):
        raise ConfigurationError(
            '--ghes-api-url can only be used together with --github-source-org'
        )
    validate_ghes_options(
        ghes_api_url, aws_bucket_name, aws_region, no_ssl_verify, keep_archive
    )

    return MigrationOptions(
        source_kind=source_kind,
        source_org=ado_source_org if source_kind == SourceKind.ADO else github_source_org,
        target_org=github_target_org,
        ado_server_url=ado_server_url or None,
        ghes_api_url=ghes_api_url or None,
        aws_bucket_name=aws_bucket_name or None,
        aws_region=aws_region or None,
        no_ssl_verify=no_ssl_verify,
        keep_archive=keep_archive,
        skip_releases=skip_releases,
        lock_source_repo=lock_source_repo,
        download_migration_logs=download_migration_logs,
    )


def validate_migrate_repo(
    options: MigrationOptions,
    source_repo: Optional[str],
    ado_team_project: Optional[str],
) -> None:
    """Single repository rules on top of the batch ones."""
    if _blank(source_repo):
        raise ConfigurationError('--source-repo must be specified')
    if options.source_kind == SourceKind.ADO and _blank(ado_team_project):
        raise ConfigurationError(
            '--ado-team-project must be specified when migrating from Azure DevOps'
        )


def resolve_wait(wait: bool, queue_only: bool) -> bool:
    """Decide whether migrate-repo blocks until the migration finishes.

    Raises:
        ConfigurationError: If both ``--wait`` and ``--queue-only`` are given
    """
    if wait and queue_only:
        raise ConfigurationError(
            'You can\'t specify both --wait and --queue-only. Please remove one.'
        )
    if wait:
        logger.warning(
            '--wait flag is obsolete and will be removed in a future version. '
            'The default behavior is now to wait.'
        )
    elif not queue_only:
        logger.warning(
            'The default behavior has changed from only queueing the migration, '
            'to waiting for the migration to finish. Pass --queue-only to only '
            'queue the migration.'
        )
    return not queue_only


def validate_migrate_org(
    github_source_org: Optional[str],
    github_target_org: Optional[str],
    github_target_enterprise: Optional[str],
) -> None:
    """Organization migration requires source, target and enterprise."""
    if _blank(github_source_org):
        raise ConfigurationError('--github-source-org must be specified')
    if _blank(github_target_org):
        raise ConfigurationError('--github-target-org must be specified')
    if _blank(github_target_enterprise):
        raise ConfigurationError('--github-target-enterprise must be specified')


def validate_migration_id(migration_id: Optional[str]) -> str:
    """Accept repository (``RM_``) and organization (``OM_``) migration ids."""
    if _blank(migration_id):
        raise ConfigurationError('--migration-id must be specified')
    migration_id = migration_id.strip()
    if not migration_id.startswith(
        (REPO_MIGRATION_ID_PREFIX, ORG_MIGRATION_ID_PREFIX)
    ):
        raise ConfigurationError(
            f'Invalid migration id: {migration_id}. Repository migration ids start '
            f'with {REPO_MIGRATION_ID_PREFIX} and organization migration ids start '
            f'with {ORG_MIGRATION_ID_PREFIX}.'
        )
    return migration_id
