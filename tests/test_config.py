"""Tests for configuration management and credential resolution."""

import pytest
import tempfile
import os
from unittest.mock import patch

import yaml

from gh_batch_migrate.config.config import (
    Config,
    GithubInstanceConfig,
    PollingConfig,
    BatchConfig,
    LoggingConfig,
)
from gh_batch_migrate.config.credentials import (
    Credentials,
    resolve_credentials,
    resolve_first,
)


class TestGithubInstanceConfig:
    """Test GitHub instance configuration."""

    def test_defaults(self):
        """Test default configuration."""
        config = GithubInstanceConfig()

        assert config.api_url == 'https://api.github.com'
        assert config.token is None
        assert config.timeout == 30
        assert config.no_ssl_verify is False

    def test_url_validation(self):
        """Test URL validation."""
        config = GithubInstanceConfig(api_url='https://ghes.example.com/api/v3/')
        assert config.api_url == 'https://ghes.example.com/api/v3'

        with pytest.raises(ValueError):
            GithubInstanceConfig(api_url='ghes.example.com')

    def test_timeout_validation(self):
        with pytest.raises(ValueError):
            GithubInstanceConfig(timeout=0)


class TestPollingConfig:
    """Test polling configuration."""

    def test_defaults(self):
        """Polling defaults to a fixed interval with no maximum wait."""
        config = PollingConfig()

        assert config.interval_seconds == 10
        assert config.backoff_factor == 1.0
        assert config.max_wait_seconds is None
        assert config.max_consecutive_errors == 3

    def test_invalid_values(self):
        with pytest.raises(ValueError):
            PollingConfig(backoff_factor=0.5)
        with pytest.raises(ValueError):
            PollingConfig(interval_seconds=-1)
        with pytest.raises(ValueError):
            PollingConfig(max_wait_seconds=-5)
        with pytest.raises(ValueError):
            PollingConfig(max_consecutive_errors=0)


class TestBatchConfig:
    """Test batch configuration."""

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            BatchConfig(max_concurrent_queue=0)

    def test_log_level_normalized(self):
        assert LoggingConfig(level='debug').level == 'DEBUG'
        with pytest.raises(ValueError):
            LoggingConfig(level='LOUD')


class TestConfig:
    """Test main configuration class."""

    def test_config_defaults(self):
        """An empty configuration is valid."""
        config = Config()

        assert config.target.api_url == 'https://api.github.com'
        assert config.ado.server_url == 'https://dev.azure.com'
        assert config.batch.max_concurrent_queue == 5

    def test_config_from_dict(self):
        """Test configuration creation from dictionary."""
        config = Config(
            **{
                'target': {'token': 'target-token'},
                'polling': {'interval_seconds': 2, 'max_wait_seconds': 600},
                'batch': {'max_concurrent_queue': 10},
            }
        )

        assert config.target.token == 'target-token'
        assert config.polling.interval_seconds == 2
        assert config.polling.max_wait_seconds == 600
        assert config.batch.max_concurrent_queue == 10

    def test_unknown_section_rejected(self):
        """Unknown top-level keys are configuration mistakes."""
        with pytest.raises(ValueError):
            Config(**{'destination': {'url': 'https://git.example.com'}})

    def test_config_from_file(self):
        """Test configuration loading from YAML file."""
        config_content = """
target:
  token: target-token

ado:
  server_url: https://ado.contoso.com
  token: ado-token

polling:
  interval_seconds: 5
"""

        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(config_content)
            f.flush()

        try:
            config = Config.from_file(f.name)
            assert config.target.token == 'target-token'
            assert config.ado.server_url == 'https://ado.contoso.com'
            assert config.polling.interval_seconds == 5
        finally:
            os.unlink(f.name)

    def test_empty_config_file(self):
        """An empty file gives the default configuration."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write('')

        try:
            assert Config.from_file(f.name) == Config()
        finally:
            os.unlink(f.name)

    @patch('gh_batch_migrate.config.config.load_dotenv')
    def test_config_from_env(self, mock_load_dotenv):
        """Test configuration loading from environment variables."""
        env_vars = {
            'GH_PAT': 'target-token',
            'GH_SOURCE_PAT': 'source-token',
            'ADO_PAT': 'ado-token',
            'ADO_SERVER_URL': 'https://ado.contoso.com',
            'MIGRATION_POLL_INTERVAL_SECONDS': '3',
            'MIGRATION_MAX_WAIT_SECONDS': '120',
            'MIGRATION_MAX_CONCURRENT': '8',
        }

        with patch.dict(os.environ, env_vars, clear=True):
            config = Config.from_env()

        mock_load_dotenv.assert_called_once()
        assert config.target.token == 'target-token'
        assert config.target.api_url == 'https://api.github.com'
        assert config.github_source.token == 'source-token'
        assert config.ado.token == 'ado-token'
        assert config.ado.server_url == 'https://ado.contoso.com'
        assert config.polling.interval_seconds == 3
        assert config.polling.max_wait_seconds == 120
        assert config.batch.max_concurrent_queue == 8

    @patch('gh_batch_migrate.config.config.load_dotenv')
    def test_config_from_empty_env(self, mock_load_dotenv):
        """Unset variables fall back to defaults."""
        with patch.dict(os.environ, {}, clear=True):
            config = Config.from_env()

        assert config.target.token is None
        assert config.polling.max_wait_seconds is None
        assert config.batch.log_dir == '.'

    def test_to_file_round_trip(self):
        """A saved configuration loads back unchanged."""
        config = Config(**{'target': {'token': 'target-token'}})

        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'nested', 'config.yaml')
            config.to_file(path)

            assert Config.from_file(path) == config

    def test_create_template(self):
        """The template is a loadable configuration."""
        with tempfile.TemporaryDirectory() as temp_dir:
            path = os.path.join(temp_dir, 'config.yaml')
            Config.create_template(path)

            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)

            assert set(data) == {
                'target',
                'github_source',
                'ado',
                'polling',
                'batch',
                'logging',
            }
            assert Config.from_file(path).polling.max_wait_seconds is None

    def test_invalid_config_file(self):
        """Test handling of invalid configuration file."""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write('invalid: yaml: content:')

        try:
            with pytest.raises(Exception):
                Config.from_file(f.name)
        finally:
            os.unlink(f.name)

    def test_missing_config_file(self):
        """Test handling of missing configuration file."""
        with pytest.raises(FileNotFoundError):
            Config.from_file('/nonexistent/config.yaml')


class TestCredentials:
    """Test credential resolution order."""

    def test_resolve_first(self):
        assert resolve_first(None, '', '  ', 'token', 'other') == 'token'
        assert resolve_first(None, '') is None

    def test_cli_values_win(self):
        """Command-line tokens override configuration and environment."""
        config = Config(**{'target': {'token': 'config-target'}})

        credentials = resolve_credentials(
            config,
            github_target_pat='cli-target',
            github_source_pat='cli-source',
            ado_pat='cli-ado',
            environ={'GH_PAT': 'env-target', 'ADO_PAT': 'env-ado'},
        )

        assert credentials.target_pat == 'cli-target'
        assert credentials.source_pat == 'cli-source'
        assert credentials.ado_pat == 'cli-ado'

    def test_config_before_environment(self):
        config = Config(
            **{'target': {'token': 'config-target'}, 'ado': {'token': 'config-ado'}}
        )

        credentials = resolve_credentials(
            config, environ={'GH_PAT': 'env-target', 'ADO_PAT': 'env-ado'}
        )

        assert credentials.target_pat == 'config-target'
        assert credentials.ado_pat == 'config-ado'

    def test_source_falls_back_to_target(self):
        """Without a source token the target token is used for the source."""
        credentials = resolve_credentials(Config(), environ={'GH_PAT': 'env-target'})

        assert credentials.target_pat == 'env-target'
        assert credentials.source_pat == 'env-target'
        assert credentials.ado_pat is None

    def test_source_environment_before_target(self):
        credentials = resolve_credentials(
            Config(),
            github_target_pat='cli-target',
            environ={'GH_SOURCE_PAT': 'env-source'},
        )

        assert credentials.source_pat == 'env-source'

    def test_repr_masks_tokens(self):
        """Tokens never show up in string representations."""
        credentials = Credentials(target_pat='secret-target', ado_pat='secret-ado')

        text = repr(credentials)
        assert 'secret' not in text
        assert 'source_pat=None' in text
        assert 'secret' not in str(credentials)
