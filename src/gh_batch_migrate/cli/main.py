"""Main CLI entry point for the batch migration tool."""

import sys
import asyncio
from typing import List, Optional
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..api.client import ClientFactory
from ..api.rate_limiter import RateLimiter
from ..config.config import BatchConfig, Config, PollingConfig
from ..config.credentials import Credentials, resolve_credentials
from ..exceptions import ConfigurationError
from ..migration.orchestrator import BatchOrchestrator
from ..models.job import BatchResult, JobState, MigrationJob, MigrationStatus
from ..models.plan import MigrationOptions
from ..models.repository import SourceKind
from ..utils.logging import setup_logging
from . import args

console = Console()

DEFAULT_CONFIG_PATHS = ['config.yaml', 'config.yml', '.gh-batch-migrate.yaml']
DEFAULT_SCRIPT_PATH = './migrate.ps1'


def source_options(func):
    """Source, target and per-repository options shared by batch commands."""
    decorators = [
        click.option('--github-source-org', help='Source GitHub organization'),
        click.option('--ado-source-org', help='Source Azure DevOps organization'),
        click.option('--github-target-org', help='Target GitHub organization'),
        click.option(
            '--ado-team-project',
            help='Only migrate repositories of this Azure DevOps team project',
        ),
        click.option('--ado-server-url', help='Azure DevOps Server URL'),
        click.option(
            '--ghes-api-url', help='API URL of the source GitHub Enterprise Server'
        ),
        click.option('--aws-bucket-name', help='S3 bucket for GHES archives'),
        click.option('--aws-region', help='AWS region of the S3 bucket'),
        click.option(
            '--no-ssl-verify', is_flag=True, help='Skip GHES SSL verification'
        ),
        click.option(
            '--keep-archive', is_flag=True, help='Keep GHES archives after upload'
        ),
        click.option(
            '--skip-releases', is_flag=True, help='Do not migrate GitHub releases'
        ),
        click.option(
            '--lock-source-repo', is_flag=True, help='Lock source repositories'
        ),
        click.option(
            '--download-migration-logs',
            is_flag=True,
            help='Download the migration log of every repository',
        ),
        click.option(
            '--github-source-pat', help='Source GitHub PAT (overrides GH_SOURCE_PAT)'
        ),
        click.option('--ado-pat', help='Azure DevOps PAT (overrides ADO_PAT)'),
    ]
    for decorator in reversed(decorators):
        func = decorator(func)
    return func


def polling_options(func):
    """Polling overrides for commands that wait on migrations."""
    func = click.option(
        '--max-wait',
        type=float,
        help='Give up on a migration after this many seconds',
    )(func)
    func = click.option(
        '--poll-interval',
        type=float,
        help='Seconds between migration status polls',
    )(func)
    return func


@click.group()
@click.version_option(version=__version__, prog_name='gh-batch-migrate')
@click.option(
    '--config',
    '-c',
    type=click.Path(exists=True),
    help='Path to configuration file',
)
@click.option(
    '--verbose',
    '-v',
    is_flag=True,
    help='Enable verbose logging and verbose gh gei commands',
)
@click.pass_context
def cli(ctx: click.Context, config: Optional[str], verbose: bool) -> None:
    """Batch migrate repositories from Azure DevOps or GitHub to GitHub."""
    ctx.ensure_object(dict)

    if config:
        ctx.obj['config_path'] = config
    ctx.obj['verbose'] = verbose

    setup_logging('DEBUG' if verbose else 'INFO')


@cli.command()
@click.option(
    '--output',
    '-o',
    default='config.yaml',
    help='Output configuration file path',
)
@click.pass_context
def init(ctx: click.Context, output: str) -> None:
    """Initialize a new configuration file."""
    console.print(
        Panel.fit(
            '[bold green]GitHub Batch Migration[/bold green]\n'
            'Initializing configuration...',
            border_style='green',
        )
    )

    try:
        Config.create_template(output)

        console.print(f'[green]✓[/green] Configuration template created at: {output}')
        console.print(
            f'[yellow]Please edit {output} with your source and target details[/yellow]'
        )

    except Exception as e:
        console.print(f'[red]✗[/red] Failed to create configuration: {e}')
        sys.exit(1)


@cli.command(name='generate-script')
@source_options
@click.option(
    '--output',
    '-o',
    default=DEFAULT_SCRIPT_PATH,
    show_default=True,
    help='Path of the generated PowerShell script',
)
@click.option(
    '--sequential',
    is_flag=True,
    help='Wait for each migration before queuing the next one',
)
@click.pass_context
def generate_script(ctx: click.Context, output: str, sequential: bool, **kwargs) -> None:
    """Generate a PowerShell script that migrates every repository."""
    console.print(
        Panel.fit(
            '[bold blue]GitHub Batch Migration[/bold blue]\nGenerating script...',
            border_style='blue',
        )
    )

    clients = []
    try:
        options = _build_options(kwargs)
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)
        credentials = resolve_credentials(
            config,
            github_source_pat=kwargs['github_source_pat'],
            ado_pat=kwargs['ado_pat'],
        )

        orchestrator = _create_orchestrator(ctx, config, credentials, options, clients)
        orchestrator.generate_script(
            options,
            output,
            sequential=sequential,
            ado_team_project=kwargs['ado_team_project'],
        )

        console.print(f'[green]✓[/green] Migration script written to: {output}')

    except Exception as e:
        _fail(ctx, 'Script generation failed', e)
    finally:
        _close_clients(clients)


@cli.command()
@source_options
@polling_options
@click.option('--github-target-pat', help='Target GitHub PAT (overrides GH_PAT)')
@click.option(
    '--sequential',
    is_flag=True,
    help='Wait for each migration before queuing the next one',
)
@click.option(
    '--max-concurrent',
    type=int,
    help='Concurrent start-migration requests',
)
@click.option(
    '--report',
    type=click.Path(dir_okay=False),
    help='Write the script annotated with the observed results to this path',
)
@click.pass_context
def migrate(
    ctx: click.Context,
    github_target_pat: Optional[str],
    sequential: bool,
    max_concurrent: Optional[int],
    report: Optional[str],
    poll_interval: Optional[float],
    max_wait: Optional[float],
    **kwargs,
) -> None:
    """Migrate every repository of the source organization directly."""
    console.print(
        Panel.fit(
            '[bold blue]GitHub Batch Migration[/bold blue]\n'
            'Starting migration batch...',
            border_style='blue',
        )
    )

    clients = []
    try:
        options = _build_options(kwargs)
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)
        _apply_overrides(config, poll_interval, max_wait, max_concurrent)
        credentials = resolve_credentials(
            config,
            github_target_pat=github_target_pat,
            github_source_pat=kwargs['github_source_pat'],
            ado_pat=kwargs['ado_pat'],
        )

        orchestrator = _create_orchestrator(
            ctx, config, credentials, options, clients, with_target=True
        )
        result = asyncio.run(
            orchestrator.run(
                options,
                sequential=sequential,
                ado_team_project=kwargs['ado_team_project'],
                report_path=report,
            )
        )

    except Exception as e:
        _fail(ctx, 'Migration failed', e)
    finally:
        _close_clients(clients)

    _display_batch_summary(result)
    sys.exit(result.exit_code)


@cli.command(name='migrate-repo')
@click.option('--github-source-org', help='Source GitHub organization')
@click.option('--ado-source-org', help='Source Azure DevOps organization')
@click.option('--ado-team-project', help='Azure DevOps team project of the repo')
@click.option('--ado-server-url', help='Azure DevOps Server URL')
@click.option('--source-repo', help='Source repository name')
@click.option('--github-target-org', help='Target GitHub organization')
@click.option('--target-repo', help='Target repository name (defaults to source)')
@click.option('--ghes-api-url', help='API URL of the source GitHub Enterprise Server')
@click.option('--aws-bucket-name', help='S3 bucket for GHES archives')
@click.option('--aws-region', help='AWS region of the S3 bucket')
@click.option('--no-ssl-verify', is_flag=True, help='Skip GHES SSL verification')
@click.option('--keep-archive', is_flag=True, help='Keep GHES archives after upload')
@click.option('--skip-releases', is_flag=True, help='Do not migrate GitHub releases')
@click.option('--lock-source-repo', is_flag=True, help='Lock the source repository')
@click.option(
    '--target-repo-visibility',
    type=click.Choice(['public', 'private', 'internal']),
    help='Visibility of the target repository',
)
@click.option('--wait', is_flag=True, help='Wait for the migration (the default)')
@click.option('--queue-only', is_flag=True, help='Only queue the migration')
@click.option('--github-source-pat', help='Source GitHub PAT (overrides GH_SOURCE_PAT)')
@click.option('--github-target-pat', help='Target GitHub PAT (overrides GH_PAT)')
@click.option('--ado-pat', help='Azure DevOps PAT (overrides ADO_PAT)')
@polling_options
@click.pass_context
def migrate_repo(
    ctx: click.Context,
    source_repo: Optional[str],
    target_repo: Optional[str],
    target_repo_visibility: Optional[str],
    wait: bool,
    queue_only: bool,
    github_target_pat: Optional[str],
    poll_interval: Optional[float],
    max_wait: Optional[float],
    **kwargs,
) -> None:
    """Migrate a single repository."""
    clients = []
    try:
        github_source_pat = kwargs.pop('github_source_pat')
        ado_pat = kwargs.pop('ado_pat')
        ado_team_project = kwargs.pop('ado_team_project')
        options = _build_options(kwargs)
        args.validate_migrate_repo(options, source_repo, ado_team_project)
        should_wait = args.resolve_wait(wait, queue_only)

        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)
        _apply_overrides(config, poll_interval, max_wait)
        credentials = resolve_credentials(
            config,
            github_target_pat=github_target_pat,
            github_source_pat=github_source_pat,
            ado_pat=ado_pat,
        )
        _require_source_token(options, credentials)

        orchestrator = _create_orchestrator(
            ctx, config, credentials, options, clients, with_target=True, with_source=False
        )
        job = asyncio.run(
            orchestrator.migrate_repo(
                options,
                source_repo,
                target_repo=target_repo,
                ado_team_project=ado_team_project,
                visibility=target_repo_visibility,
                wait=should_wait,
            )
        )

    except Exception as e:
        _fail(ctx, 'Repository migration failed', e)
    finally:
        _close_clients(clients)

    _display_jobs([job])
    if not job.was_queued or (should_wait and job.state != JobState.SUCCEEDED):
        sys.exit(1)


@cli.command(name='migrate-org')
@click.option('--github-source-org', help='Source GitHub organization')
@click.option('--github-target-org', help='Target GitHub organization')
@click.option('--github-target-enterprise', help='Target GitHub enterprise slug')
@click.option('--queue-only', is_flag=True, help='Only queue the migration')
@click.option('--github-source-pat', help='Source GitHub PAT (overrides GH_SOURCE_PAT)')
@click.option('--github-target-pat', help='Target GitHub PAT (overrides GH_PAT)')
@polling_options
@click.pass_context
def migrate_org(
    ctx: click.Context,
    github_source_org: Optional[str],
    github_target_org: Optional[str],
    github_target_enterprise: Optional[str],
    queue_only: bool,
    github_source_pat: Optional[str],
    github_target_pat: Optional[str],
    poll_interval: Optional[float],
    max_wait: Optional[float],
) -> None:
    """Migrate a whole organization into a target enterprise."""
    clients = []
    try:
        args.validate_migrate_org(
            github_source_org, github_target_org, github_target_enterprise
        )
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)
        _apply_overrides(config, poll_interval, max_wait)
        credentials = resolve_credentials(
            config,
            github_target_pat=github_target_pat,
            github_source_pat=github_source_pat,
        )

        orchestrator = _create_target_orchestrator(ctx, config, credentials, clients)
        status = asyncio.run(
            orchestrator.migrate_org(
                github_source_org,
                github_target_org,
                github_target_enterprise,
                wait=not queue_only,
            )
        )

    except Exception as e:
        _fail(ctx, 'Organization migration failed', e)
    finally:
        _close_clients(clients)

    _display_status(status)
    if status.failed or (not queue_only and not status.succeeded):
        sys.exit(1)


@cli.command(name='wait-for-migration')
@click.option('--migration-id', help='Repository (RM_) or organization (OM_) id')
@click.option(
    '--github-target-pat',
    '--github-pat',
    'github_target_pat',
    help='Target GitHub PAT (overrides GH_PAT)',
)
@polling_options
@click.pass_context
def wait_for_migration(
    ctx: click.Context,
    migration_id: Optional[str],
    github_target_pat: Optional[str],
    poll_interval: Optional[float],
    max_wait: Optional[float],
) -> None:
    """Wait for a repository or organization migration to finish."""
    clients = []
    try:
        migration_id = args.validate_migration_id(migration_id)
        config = _load_config(ctx)
        _setup_logging_with_config(ctx, config)
        _apply_overrides(config, poll_interval, max_wait)
        credentials = resolve_credentials(config, github_target_pat=github_target_pat)

        orchestrator = _create_target_orchestrator(ctx, config, credentials, clients)
        status = asyncio.run(orchestrator.wait_for_migration(migration_id))

    except Exception as e:
        _fail(ctx, 'Waiting for migration failed', e)
    finally:
        _close_clients(clients)

    _display_status(status)
    if not status.succeeded:
        sys.exit(1)


def _build_options(kwargs) -> MigrationOptions:
    return args.build_options(
        github_source_org=kwargs['github_source_org'],
        ado_source_org=kwargs['ado_source_org'],
        github_target_org=kwargs['github_target_org'],
        ado_server_url=kwargs['ado_server_url'],
        ghes_api_url=kwargs['ghes_api_url'],
        aws_bucket_name=kwargs['aws_bucket_name'],
        aws_region=kwargs['aws_region'],
        no_ssl_verify=kwargs['no_ssl_verify'],
        keep_archive=kwargs['keep_archive'],
        skip_releases=kwargs['skip_releases'],
        lock_source_repo=kwargs['lock_source_repo'],
        download_migration_logs=kwargs.get('download_migration_logs', False),
    )


def _load_config(ctx: click.Context) -> Config:
    """Load configuration from file or environment."""
    config_path = ctx.obj.get('config_path')

    if config_path:
        if not Path(config_path).exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')
        return Config.from_file(config_path)

    for path in DEFAULT_CONFIG_PATHS:
        if Path(path).exists():
            return Config.from_file(path)

    return Config.from_env()


def _setup_logging_with_config(ctx: click.Context, config: Config) -> None:
    """Setup logging with configuration from config file."""
    verbose = ctx.obj.get('verbose', False)

    # --verbose overrides the configured level
    log_level = 'DEBUG' if verbose else config.logging.level
    setup_logging(
        level=log_level, log_file=config.logging.file, log_format=config.logging.format
    )


def _apply_overrides(
    config: Config,
    poll_interval: Optional[float] = None,
    max_wait: Optional[float] = None,
    max_concurrent: Optional[int] = None,
) -> None:
    polling = {}
    if poll_interval is not None:
        polling['interval_seconds'] = poll_interval
    if max_wait is not None:
        polling['max_wait_seconds'] = max_wait
    if polling:
        config.polling = PollingConfig(**{**config.polling.dict(), **polling})
    if max_concurrent is not None:
        config.batch = BatchConfig(
            **{**config.batch.dict(), 'max_concurrent_queue': max_concurrent}
        )


def _require_source_token(options: MigrationOptions, credentials: Credentials) -> None:
    if options.source_kind == SourceKind.ADO and not credentials.ado_pat:
        raise ConfigurationError(
            'An Azure DevOps personal access token is required (--ado-pat or ADO_PAT)'
        )


def _create_orchestrator(
    ctx: click.Context,
    config: Config,
    credentials: Credentials,
    options: MigrationOptions,
    clients: List,
    with_target: bool = False,
    with_source: bool = True,
) -> BatchOrchestrator:
    github_source_client = None
    ado_client = None
    target_client = None

    if with_source:
        if options.source_kind == SourceKind.ADO:
            ado_client = ClientFactory.create_ado_client(
                config.ado, credentials.ado_pat, server_url=options.ado_server_url
            )
            clients.append(ado_client)
        else:
            github_source_client = ClientFactory.create_github_source_client(
                config.github_source,
                credentials.source_pat,
                ghes_api_url=options.ghes_api_url,
                no_ssl_verify=options.no_ssl_verify,
            )
            clients.append(github_source_client)

    if with_target:
        target_client = ClientFactory.create_target_client(
            config.target,
            credentials.target_pat,
            rate_limiter=RateLimiter(config.batch.requests_per_second),
        )
        clients.append(target_client)

    return BatchOrchestrator(
        config,
        credentials,
        github_source_client=github_source_client,
        ado_client=ado_client,
        target_client=target_client,
        version=__version__,
        verbose=ctx.obj.get('verbose', False),
    )


def _create_target_orchestrator(
    ctx: click.Context, config: Config, credentials: Credentials, clients: List
) -> BatchOrchestrator:
    target_client = ClientFactory.create_target_client(
        config.target,
        credentials.target_pat,
        rate_limiter=RateLimiter(config.batch.requests_per_second),
    )
    clients.append(target_client)
    return BatchOrchestrator(
        config,
        credentials,
        target_client=target_client,
        version=__version__,
        verbose=ctx.obj.get('verbose', False),
    )


def _close_clients(clients: List) -> None:
    for client in clients:
        client.close()


def _fail(ctx: click.Context, message: str, error: Exception) -> None:
    console.print(f'[red]✗[/red] {message}: {error}', soft_wrap=True)
    if ctx.obj.get('verbose'):
        console.print_exception()
    sys.exit(1)


def _display_batch_summary(result: BatchResult) -> None:
    """Display the aggregated outcome of a batch."""
    table = Table(title='Migration Summary')
    table.add_column('Total', style='blue')
    table.add_column('Succeeded', style='green')
    table.add_column('Failed', style='red')
    table.add_row(str(result.total), str(result.succeeded), str(result.failed))

    console.print(table)

    if result.success:
        console.print('[green]✓[/green] All migrations succeeded')
    else:
        console.print(f'[red]✗[/red] {result.failed} migration(s) failed')


def _display_jobs(jobs: List[MigrationJob]) -> None:
    table = Table(title='Repository Migrations')
    table.add_column('Repository', style='cyan')
    table.add_column('Migration ID', style='blue')
    table.add_column('State')
    table.add_column('Detail', style='yellow')

    for job in jobs:
        style = {
            JobState.SUCCEEDED: 'green',
            JobState.FAILED: 'red',
            JobState.NOT_QUEUED: 'red',
        }.get(job.state, 'white')
        table.add_row(
            job.target_id,
            job.external_id or '-',
            f'[{style}]{job.state.value}[/{style}]',
            job.failure_reason or '',
        )

    console.print(table)


def _display_status(status: MigrationStatus) -> None:
    if status.succeeded:
        message = f'[green]✓[/green] Migration {status.migration_id} succeeded'
        if status.warnings_count:
            message += f' with {status.warnings_count} warning(s)'
    elif status.failed:
        message = (
            f'[red]✗[/red] Migration {status.migration_id} failed: '
            f'{status.failure_reason or status.state}'
        )
    else:
        message = f'[yellow]Migration {status.migration_id} is {status.state}[/yellow]'
    console.print(message)
    if status.migration_log_url:
        console.print(f'Migration log: {status.migration_log_url}')


def main() -> None:
    """Main entry point for the CLI application."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print('\n[red]Migration interrupted by user[/red]')
        sys.exit(1)


if __name__ == '__main__':
    main()
