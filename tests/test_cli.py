"""Tests for CLI interface."""

import os

import pytest
from unittest.mock import AsyncMock, Mock, patch
from click.testing import CliRunner
from loguru import logger

from gh_batch_migrate.cli.main import cli, init
from gh_batch_migrate.models.job import MigrationStatus

FACTORY = 'gh_batch_migrate.cli.main.ClientFactory'
ENV = {'GH_PAT': 'target-token', 'ADO_PAT': 'ado-token'}


def github_source(*names):
    client = Mock()
    client.get_repos.return_value = [(name, 'private') for name in names]
    return client


def target_client(states=None):
    states = states or {}
    client = Mock()
    client.get_organization_id = AsyncMock(return_value='O_1')
    client.get_enterprise_id = AsyncMock(return_value='E_1')
    client.create_migration_source = AsyncMock(return_value='MS_1')
    client.start_repository_migration = AsyncMock(
        side_effect=lambda **kwargs: f'RM_{kwargs["repository_name"]}'
    )
    client.start_organization_migration = AsyncMock(return_value='OM_1')
    client.get_migration_state = AsyncMock(
        side_effect=lambda migration_id: MigrationStatus(
            migration_id=migration_id,
            state=states.get(migration_id, 'SUCCEEDED'),
        )
    )
    return client


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def teardown_method(self):
        # Handlers added during a run point at the runner's captured streams
        logger.remove()

    def invoke(self, arguments):
        with self.runner.isolated_filesystem():
            return self.runner.invoke(cli, arguments, env=ENV)

    def test_cli_help(self):
        """Test CLI help command."""
        result = self.runner.invoke(cli, ['--help'])

        assert result.exit_code == 0
        for command in (
            'init',
            'generate-script',
            'migrate',
            'migrate-repo',
            'migrate-org',
            'wait-for-migration',
        ):
            assert command in result.output

    def test_cli_version(self):
        """Test CLI version command."""
        result = self.runner.invoke(cli, ['--version'])

        assert result.exit_code == 0
        assert '0.1.0' in result.output

    def test_init_command(self):
        """Test init command."""
        with self.runner.isolated_filesystem():
            result = self.runner.invoke(init, ['--output', 'settings.yaml'])

            assert result.exit_code == 0
            assert 'Configuration template created' in result.output
            with open('settings.yaml', 'r') as f:
                content = f.read()
            assert 'target:' in content
            assert 'polling:' in content

    @patch(FACTORY)
    def test_generate_script_default_output(self, mock_factory):
        """The script lands in ./migrate.ps1 by default."""
        mock_factory.create_github_source_client.return_value = github_source('a', 'b')

        with self.runner.isolated_filesystem():
            result = self.runner.invoke(
                cli,
                [
                    'generate-script',
                    '--github-source-org',
                    'acme',
                    '--github-target-org',
                    'acme-new',
                    '--sequential',
                ],
                env=ENV,
            )

            assert result.exit_code == 0, result.output
            assert os.path.exists('migrate.ps1')
            with open('migrate.ps1', 'r', encoding='utf-8') as f:
                script = f.read()

        assert script.startswith('#!/usr/bin/env pwsh')
        assert script.count('Exec { gh gei migrate-repo') == 2
        kwargs = mock_factory.create_github_source_client.call_args
        assert kwargs.args[1] == 'target-token'

    @patch(FACTORY)
    def test_generate_script_no_repos(self, mock_factory):
        """Nothing is written when there is nothing to migrate."""
        mock_factory.create_github_source_client.return_value = github_source()

        with self.runner.isolated_filesystem():
            result = self.runner.invoke(
                cli,
                [
                    'generate-script',
                    '--github-source-org',
                    'acme',
                    '--github-target-org',
                    'acme-new',
                ],
                env=ENV,
            )

            assert result.exit_code == 1
            assert not os.path.exists('migrate.ps1')
        assert 'no migratable repos' in result.output

    @patch(FACTORY)
    def test_generate_script_requires_source(self, mock_factory):
        result = self.invoke(['generate-script', '--github-target-org', 'acme-new'])

        assert result.exit_code == 1
        assert 'ado-source-org' in result.output
        mock_factory.create_github_source_client.assert_not_called()

    @patch(FACTORY)
    def test_generate_script_ghes_only_option(self, mock_factory):
        result = self.invoke(
            [
                'generate-script',
                '--github-source-org',
                'acme',
                '--github-target-org',
                'acme-new',
                '--aws-bucket-name',
                'bucket',
            ]
        )

        assert result.exit_code == 1
        assert 'aws-bucket-name' in result.output
        mock_factory.create_github_source_client.assert_not_called()

    @patch(FACTORY)
    def test_migrate_success(self, mock_factory):
        mock_factory.create_github_source_client.return_value = github_source('a', 'b')
        mock_factory.create_target_client.return_value = target_client()

        result = self.invoke(
            ['migrate', '--github-source-org', 'acme', '--github-target-org', 'new']
        )

        assert result.exit_code == 0, result.output
        assert 'Migration Summary' in result.output

    @patch(FACTORY)
    def test_migrate_partial_failure_exits_non_zero(self, mock_factory):
        mock_factory.create_github_source_client.return_value = github_source('a', 'b')
        mock_factory.create_target_client.return_value = target_client(
            {'RM_b': 'FAILED'}
        )

        result = self.invoke(
            ['migrate', '--github-source-org', 'acme', '--github-target-org', 'new']
        )

        assert result.exit_code == 1
        assert 'failed' in result.output

    @patch(FACTORY)
    def test_migrate_ghes_rejected(self, mock_factory):
        mock_factory.create_github_source_client.return_value = github_source('a')
        target = target_client()
        mock_factory.create_target_client.return_value = target

        result = self.invoke(
            [
                'migrate',
                '--github-source-org',
                'acme',
                '--github-target-org',
                'new',
                '--ghes-api-url',
                'https://ghes.example.com/api/v3',
            ]
        )

        assert result.exit_code == 1
        assert 'generate-script' in result.output
        target.start_repository_migration.assert_not_awaited()

    def test_migrate_repo_wait_and_queue_only(self):
        result = self.invoke(
            [
                'migrate-repo',
                '--github-source-org',
                'acme',
                '--source-repo',
                'api',
                '--github-target-org',
                'new',
                '--wait',
                '--queue-only',
            ]
        )

        assert result.exit_code == 1
        assert '--queue-only' in result.output

    def test_migrate_repo_ado_requires_team_project(self):
        result = self.invoke(
            [
                'migrate-repo',
                '--ado-source-org',
                'contoso',
                '--source-repo',
                'repo',
                '--github-target-org',
                'new',
            ]
        )

        assert result.exit_code == 1
        assert 'ado-team-project' in result.output

    @patch(FACTORY)
    def test_migrate_repo_queue_only(self, mock_factory):
        target = target_client()
        mock_factory.create_target_client.return_value = target

        result = self.invoke(
            [
                'migrate-repo',
                '--github-source-org',
                'acme',
                '--source-repo',
                'api',
                '--github-target-org',
                'new',
                '--queue-only',
            ]
        )

        assert result.exit_code == 0, result.output
        assert 'RM_api' in result.output
        target.get_migration_state.assert_not_awaited()
        mock_factory.create_github_source_client.assert_not_called()

    @patch(FACTORY)
    def test_migrate_repo_failure(self, mock_factory):
        mock_factory.create_target_client.return_value = target_client(
            {'RM_api': 'FAILED'}
        )

        result = self.invoke(
            [
                'migrate-repo',
                '--github-source-org',
                'acme',
                '--source-repo',
                'api',
                '--github-target-org',
                'new',
            ]
        )

        assert result.exit_code == 1

    def test_migrate_org_requires_enterprise(self):
        result = self.invoke(
            ['migrate-org', '--github-source-org', 'acme', '--github-target-org', 'new']
        )

        assert result.exit_code == 1
        assert 'github-target-enterprise' in result.output

    @patch(FACTORY)
    def test_migrate_org(self, mock_factory):
        mock_factory.create_target_client.return_value = target_client()

        result = self.invoke(
            [
                'migrate-org',
                '--github-source-org',
                'acme',
                '--github-target-org',
                'new',
                '--github-target-enterprise',
                'ent',
            ]
        )

        assert result.exit_code == 0, result.output
        assert 'OM_1' in result.output

    def test_wait_for_migration_invalid_id(self):
        result = self.invoke(['wait-for-migration', '--migration-id', 'abc'])

        assert result.exit_code == 1
        assert 'Invalid migration id' in result.output

    @pytest.mark.parametrize('state, exit_code', [('SUCCEEDED', 0), ('FAILED', 1)])
    @patch(FACTORY)
    def test_wait_for_migration(self, mock_factory, state, exit_code):
        mock_factory.create_target_client.return_value = target_client({'RM_1': state})

        result = self.invoke(
            ['wait-for-migration', '--migration-id', 'RM_1', '--github-pat', 'cli-pat']
        )

        assert result.exit_code == exit_code, result.output
        assert mock_factory.create_target_client.call_args.args[1] == 'cli-pat'
