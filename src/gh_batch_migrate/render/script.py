"""PowerShell migration script rendering.

Rendering is a pure function of an ExecutionPlan (and, for run reports, the
observed BatchResult). The only I/O is ``write_artifact``.
"""

from pathlib import Path
from typing import List, Optional

from ..models.job import BatchResult, MigrationJob
from ..models.plan import ExecutionPlan, MigrationOptions, Step, StepKind
from ..models.repository import SourceKind

PWSH_SHEBANG = '#!/usr/bin/env pwsh'

EXEC_FUNCTION_BLOCK = '''
function Exec {
    param (
        [scriptblock]$ScriptBlock
    )
    & @ScriptBlock
    if ($lastexitcode -ne 0) {
        exit $lastexitcode
    }
}'''

EXEC_AND_GET_MIGRATION_ID_FUNCTION_BLOCK = '''
function ExecAndGetMigrationID {
    param (
        [scriptblock]$ScriptBlock
    )
    $MigrationID = & @ScriptBlock | ForEach-Object {
        Write-Host $_
        $_
    } | Select-String -Pattern "\\(ID: (.+)\\)" | ForEach-Object { $_.matches.groups[1] }
    return $MigrationID
}'''


def _validate_env(name: str, requirement: str, usage: str) -> str:
    return f'''
if (-not $env:{name}) {{
    Write-Error "{name} environment variable must be set to {requirement}"
    exit 1
}} else {{
    Write-Host "{name} environment variable is set and will be used {usage}"
}}'''


VALIDATE_GH_PAT = _validate_env(
    'GH_PAT',
    'a valid GitHub Personal Access Token with the appropriate scopes.',
    'to authenticate to GitHub.',
)
VALIDATE_ADO_PAT = _validate_env(
    'ADO_PAT',
    'a valid Azure DevOps Personal Access Token with the appropriate scopes.',
    'to authenticate to Azure DevOps.',
)
VALIDATE_AZURE_STORAGE_CONNECTION_STRING = _validate_env(
    'AZURE_STORAGE_CONNECTION_STRING',
    'a valid Azure Storage Connection String that will be used to upload the '
    'migration archive to Azure Blob Storage.',
    'to upload the migration archive to Azure Blob Storage.',
)
VALIDATE_AWS_ACCESS_KEY_ID = _validate_env(
    'AWS_ACCESS_KEY_ID',
    'a valid AWS Access Key ID that will be used to upload the migration '
    'archive to AWS S3.',
    'to upload the migration archive to AWS S3.',
)
VALIDATE_AWS_SECRET_ACCESS_KEY = _validate_env(
    'AWS_SECRET_ACCESS_KEY',
    'a valid AWS Secret Access Key that will be used to upload the migration '
    'archive to AWS S3.',
    'to upload the migration archive to AWS S3.',
)

SUMMARY_BLOCK = '''Write-Host =============== Summary ===============
Write-Host Total number of successful migrations: $Succeeded
Write-Host Total number of failed migrations: $Failed

if ($Failed -ne 0) {
    exit 1
}'''


def _quote(value: str) -> str:
    # Backtick escapes the characters PowerShell expands inside double quotes
    escaped = value.replace('`', '``').replace('"', '`"').replace('$', '`$')
    return f'"{escaped}"'


class ScriptRenderer:
    """Renders execution plans as PowerShell scripts driving ``gh gei``."""

    def __init__(
        self,
        version: str,
        blob_credentials_required: bool = False,
        verbose: bool = False,
    ):
        """Initialize renderer.

        Args:
            version: Tool version written into the version comment
            blob_credentials_required: GHES source needs blob storage secrets
            verbose: Pass ``--verbose`` to every generated command
        """
        self.version = version
        self.blob_credentials_required = blob_credentials_required
        self.verbose = verbose

    def render(
        self,
        plan: ExecutionPlan,
        result: Optional[BatchResult] = None,
    ) -> str:
        """Render a plan, optionally annotated with the outcome of a live run."""
        lines: List[str] = [
            PWSH_SHEBANG,
            '',
            f'# =========== Created with CLI version {self.version} ===========',
            EXEC_FUNCTION_BLOCK
            if plan.sequential
            else EXEC_AND_GET_MIGRATION_ID_FUNCTION_BLOCK,
        ]
        lines.extend(self._preamble(plan.options))

        if plan.sequential:
            lines.extend(self._sequential_body(plan, result is not None))
        else:
            lines.extend(self._parallel_body(plan, result is not None))

        if result is not None:
            lines.extend(self._observed_summary(result))

        return '\n'.join(lines) + '\n'

    # Sections

    def _preamble(self, options: MigrationOptions) -> List[str]:
        lines = [VALIDATE_GH_PAT]
        if options.source_kind == SourceKind.ADO:
            lines.append(VALIDATE_ADO_PAT)
        elif self.blob_credentials_required:
            if options.uses_aws:
                lines.append(VALIDATE_AWS_ACCESS_KEY_ID)
                lines.append(VALIDATE_AWS_SECRET_ACCESS_KEY)
            else:
                lines.append(VALIDATE_AZURE_STORAGE_CONNECTION_STRING)
        return lines

    def _sequential_body(self, plan: ExecutionPlan, annotate: bool) -> List[str]:
        options = plan.options
        lines = [f'# =========== Organization: {options.source_org} ===========']

        for group in plan.groups:
            if options.source_kind == SourceKind.ADO:
                lines.append('')
                lines.append(
                    f'# === Team Project: {options.source_org}/{group.key} ==='
                )
                if not group.repositories:
                    lines.append(
                        '# Skipping this Team Project because it has no git repos'
                    )
                    continue

            for step in plan.steps_for_group(group.key):
                lines.extend(self._sequential_step(step, options, annotate))

        return lines

    def _sequential_step(
        self, step: Step, options: MigrationOptions, annotate: bool
    ) -> List[str]:
        job = step.job
        if step.kind == StepKind.QUEUE:
            # A blocking migrate-repo queues and waits; Exec checks its exit code
            return [self._exec(self.migrate_repo_command(options, job, wait=True))]
        if step.kind == StepKind.WAIT:
            return [self._outcome_comment(job)] if annotate else []
        return [self._exec(self.download_logs_command(options, job))]

    def _parallel_body(self, plan: ExecutionPlan, annotate: bool) -> List[str]:
        options = plan.options
        is_ado = options.source_kind == SourceKind.ADO
        lines = [
            '',
            '$Succeeded = 0',
            '$Failed = 0',
            '$RepoMigrations = [ordered]@{}',
            '',
            f'# =========== Organization: {options.source_org} ===========',
        ]

        if not is_ado:
            lines.append('')
            lines.append('# === Queuing repo migrations ===')

        for group in plan.groups:
            if is_ado:
                lines.append('')
                lines.append(
                    '# === Queuing repo migrations for Team Project: '
                    f'{options.source_org}/{group.key} ==='
                )
                if not group.repositories:
                    lines.append(
                        '# Skipping this Team Project because it has no git repos'
                    )
                    continue

            for step in plan.steps_for_group(group.key):
                if step.kind == StepKind.QUEUE:
                    lines.extend(self._parallel_queue(step.job, options))

        lines.append('')
        lines.append(
            '# =========== Waiting for all migrations to finish for '
            f'Organization: {options.source_org} ==========='
        )
        if not is_ado:
            lines.append('')

        for group in plan.groups:
            if is_ado and group.repositories:
                lines.append('')
                lines.append(
                    '# === Migration status for Team Project: '
                    f'{options.source_org}/{group.key} ==='
                )

            for step in plan.steps_for_group(group.key):
                if step.kind == StepKind.WAIT:
                    lines.extend(self._parallel_wait(step.job, annotate))
                    if not options.download_migration_logs:
                        lines.append('')
                elif step.kind == StepKind.DOWNLOAD_LOGS:
                    lines.append(self.download_logs_command(options, step.job))
                    lines.append('')

        lines.append('')
        lines.append(SUMMARY_BLOCK)
        lines.append('')
        return lines

    def _parallel_queue(self, job: MigrationJob, options: MigrationOptions) -> List[str]:
        command = self.migrate_repo_command(options, job, wait=False)
        return [
            f'$MigrationID = ExecAndGetMigrationID {{ {command} }}',
            f'$RepoMigrations["{job.target_id}"] = $MigrationID',
            '',
        ]

    def _parallel_wait(self, job: MigrationJob, annotate: bool) -> List[str]:
        key = f'$RepoMigrations["{job.target_id}"]'
        lines = [
            f'if ({key}) {{ gh gei wait-for-migration --migration-id {key} }}',
            f'if ({key} -and $lastexitcode -eq 0) {{ $Succeeded++ }} '
            'else { $Failed++ }',
        ]
        if annotate:
            lines.append(self._outcome_comment(job))
        return lines

    @staticmethod
    def _outcome_comment(job: MigrationJob) -> str:
        outcome = job.state.value
        if job.timed_out:
            outcome += ' (timed out)'
        elif job.failure_reason:
            outcome += f' ({job.failure_reason})'
        migration_id = job.external_id or 'not queued'
        return f'# Result for {job.target_id}: {outcome} [migration ID: {migration_id}]'

    @staticmethod
    def _observed_summary(result: BatchResult) -> List[str]:
        return [
            '',
            '# =========== Observed run summary ===========',
            f'# Succeeded: {result.succeeded}',
            f'# Failed: {result.failed}',
            f'# Exit code: {result.exit_code}',
        ]

    # Commands

    def migrate_repo_command(
        self, options: MigrationOptions, job: MigrationJob, wait: bool
    ) -> str:
        repository = job.repository
        parts = ['gh gei migrate-repo']

        if options.source_kind == SourceKind.ADO:
            if options.ado_server_url:
                parts.append(f'--ado-server-url {_quote(options.ado_server_url)}')
            parts.append(f'--ado-source-org {_quote(options.source_org)}')
            parts.append(f'--ado-team-project {_quote(repository.group_key or "")}')
            parts.append(f'--source-repo {_quote(repository.source_key)}')
            parts.append(f'--github-target-org {_quote(options.target_org)}')
            parts.append(f'--target-repo {_quote(job.target_id)}')
        else:
            parts.append(f'--github-source-org {_quote(options.source_org)}')
            parts.append(f'--source-repo {_quote(repository.source_key)}')
            parts.append(f'--github-target-org {_quote(options.target_org)}')
            parts.append(f'--target-repo {_quote(job.target_id)}')
            if options.ghes_api_url:
                parts.append(self._ghes_options(options))

        if self.verbose:
            parts.append('--verbose')
        if not wait:
            parts.append('--queue-only')

        if options.source_kind == SourceKind.GITHUB:
            if options.skip_releases:
                parts.append('--skip-releases')
            if options.lock_source_repo:
                parts.append('--lock-source-repo')
            parts.append(f'--target-repo-visibility {repository.visibility.value}')

        return ' '.join(parts)

    @staticmethod
    def _ghes_options(options: MigrationOptions) -> str:
        parts = [f'--ghes-api-url {_quote(options.ghes_api_url)}']
        if options.aws_bucket_name:
            parts.append(f'--aws-bucket-name {_quote(options.aws_bucket_name)}')
        if options.aws_region:
            parts.append(f'--aws-region {_quote(options.aws_region)}')
        if options.no_ssl_verify:
            parts.append('--no-ssl-verify')
        if options.keep_archive:
            parts.append('--keep-archive')
        return ' '.join(parts)

    @staticmethod
    def download_logs_command(options: MigrationOptions, job: MigrationJob) -> str:
        return (
            f'gh gei download-logs --github-target-org {_quote(options.target_org)} '
            f'--target-repo {_quote(job.target_id)}'
        )

    @staticmethod
    def _exec(command: str) -> str:
        return f'Exec {{ {command} }}'


def write_artifact(path, content: str) -> Path:
    """Write rendered text to the caller-supplied destination."""
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    destination.write_text(content, encoding='utf-8')
    return destination
