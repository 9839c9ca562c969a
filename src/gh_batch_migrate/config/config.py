"""Configuration management for the batch migration tool."""

from typing import Optional, Dict, Any
from pathlib import Path
import os

from pydantic import BaseModel, Field, validator
import yaml
from dotenv import load_dotenv


DEFAULT_GITHUB_API_URL = 'https://api.github.com'
DEFAULT_ADO_SERVER_URL = 'https://dev.azure.com'


class GithubInstanceConfig(BaseModel):
    """Configuration for a GitHub or GHES instance."""

    api_url: str = Field(
        default=DEFAULT_GITHUB_API_URL, description='GitHub REST API base URL'
    )
    token: Optional[str] = Field(default=None, description='Personal access token')
    timeout: int = Field(default=30, description='Request timeout in seconds')
    no_ssl_verify: bool = Field(
        default=False, description='Disable SSL verification (GHES only)'
    )

    @validator('api_url')
    def validate_api_url(cls, v):
        """Validate API URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')

    @validator('timeout')
    def validate_timeout(cls, v):
        """Validate timeout is positive."""
        if v <= 0:
            raise ValueError('Timeout must be positive')
        return v


class AdoInstanceConfig(BaseModel):
    """Configuration for an Azure DevOps organization host."""

    server_url: str = Field(
        default=DEFAULT_ADO_SERVER_URL,
        description='Azure DevOps Services or Server URL',
    )
    token: Optional[str] = Field(default=None, description='Personal access token')
    timeout: int = Field(default=30, description='Request timeout in seconds')

    @validator('server_url')
    def validate_server_url(cls, v):
        """Validate server URL format."""
        if not v.startswith(('http://', 'https://')):
            raise ValueError('URL must start with http:// or https://')
        return v.rstrip('/')


class PollingConfig(BaseModel):
    """Migration status polling settings."""

    interval_seconds: float = Field(
        default=10.0, description='Delay between the first status polls'
    )
    max_interval_seconds: float = Field(
        default=60.0, description='Upper bound for the polling delay'
    )
    backoff_factor: float = Field(
        default=1.0, description='Delay multiplier per poll (1.0 = fixed interval)'
    )
    max_wait_seconds: Optional[float] = Field(
        default=None,
        description='Give up on a migration after this long (unbounded if unset)',
    )
    max_consecutive_errors: int = Field(
        default=3, description='Transport errors tolerated in a row per migration'
    )
    log_url_attempts: int = Field(
        default=5, description='Attempts to fetch a migration log URL'
    )

    @validator('interval_seconds', 'max_interval_seconds')
    def validate_interval(cls, v):
        """Validate polling intervals are not negative."""
        if v < 0:
            raise ValueError('Polling intervals must not be negative')
        return v

    @validator('backoff_factor')
    def validate_backoff_factor(cls, v):
        """Validate backoff factor."""
        if v < 1.0:
            raise ValueError('Backoff factor must be at least 1.0')
        return v

    @validator('max_wait_seconds')
    def validate_max_wait(cls, v):
        """Validate max wait is not negative."""
        if v is not None and v < 0:
            raise ValueError('max_wait_seconds must not be negative')
        return v

    @validator('max_consecutive_errors', 'log_url_attempts')
    def validate_counts(cls, v):
        """Validate retry counts are positive."""
        if v <= 0:
            raise ValueError('Retry counts must be positive')
        return v


class BatchConfig(BaseModel):
    """Batch execution settings."""

    max_concurrent_queue: int = Field(
        default=5, description='Concurrent start-migration requests'
    )
    requests_per_second: float = Field(
        default=5.0, description='Target API requests per second limit'
    )
    log_dir: str = Field(
        default='.', description='Directory for downloaded migration logs'
    )

    @validator('max_concurrent_queue')
    def validate_max_concurrent_queue(cls, v):
        """Validate queue concurrency is positive."""
        if v <= 0:
            raise ValueError('max_concurrent_queue must be positive')
        return v

    @validator('requests_per_second')
    def validate_rate_limit(cls, v):
        """Validate rate limit is positive."""
        if v <= 0:
            raise ValueError('Rate limit must be positive')
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default='INFO', description='Log level')
    file: Optional[str] = Field(default=None, description='Log file path')
    format: Optional[str] = Field(default=None, description='Console log format')

    @validator('level')
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'Log level must be one of: {valid_levels}')
        return v.upper()


class Config(BaseModel):
    """Main configuration class for the batch migration tool."""

    target: GithubInstanceConfig = Field(
        default_factory=GithubInstanceConfig, description='Target GitHub instance'
    )
    github_source: GithubInstanceConfig = Field(
        default_factory=GithubInstanceConfig, description='Source GitHub instance'
    )
    ado: AdoInstanceConfig = Field(
        default_factory=AdoInstanceConfig, description='Source Azure DevOps host'
    )
    polling: PollingConfig = Field(
        default_factory=PollingConfig, description='Status polling settings'
    )
    batch: BatchConfig = Field(
        default_factory=BatchConfig, description='Batch execution settings'
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description='Logging settings'
    )

    class Config:
        """Pydantic configuration."""

        extra = 'forbid'

    @classmethod
    def from_file(cls, config_path: str) -> 'Config':
        """Load configuration from YAML file."""
        config_file = Path(config_path)

        if not config_file.exists():
            raise FileNotFoundError(f'Configuration file not found: {config_path}')

        with open(config_file, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f) or {}

        return cls(**config_data)

    @classmethod
    def from_env(cls) -> 'Config':
        """Load configuration from environment variables."""
        load_dotenv()

        max_wait = os.getenv('MIGRATION_MAX_WAIT_SECONDS')

        config_data = {
            'target': {
                'api_url': os.getenv('GITHUB_API_URL'),
                'token': os.getenv('GH_PAT'),
            },
            'github_source': {
                'token': os.getenv('GH_SOURCE_PAT'),
            },
            'ado': {
                'server_url': os.getenv('ADO_SERVER_URL'),
                'token': os.getenv('ADO_PAT'),
            },
            'polling': {
                'interval_seconds': float(
                    os.getenv('MIGRATION_POLL_INTERVAL_SECONDS', 10)
                ),
                'max_wait_seconds': float(max_wait) if max_wait else None,
            },
            'batch': {
                'max_concurrent_queue': int(os.getenv('MIGRATION_MAX_CONCURRENT', 5)),
                'log_dir': os.getenv('MIGRATION_LOG_DIR'),
            },
            'logging': {
                'level': os.getenv('LOG_LEVEL', 'INFO'),
                'file': os.getenv('LOG_FILE'),
            },
        }

        config_data = cls._remove_none_values(config_data)

        return cls(**config_data)

    @staticmethod
    def _remove_none_values(data: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively remove None values from dictionary."""
        if isinstance(data, dict):
            return {
                k: Config._remove_none_values(v)
                for k, v in data.items()
                if v is not None
            }
        return data

    def to_file(self, config_path: str) -> None:
        """Save configuration to YAML file."""
        config_file = Path(config_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                self.dict(), f, default_flow_style=False, indent=2, sort_keys=False
            )

    @staticmethod
    def create_template(output_path: str) -> None:
        """Create a configuration template file."""
        template_config = {
            'target': {
                'api_url': DEFAULT_GITHUB_API_URL,
                'token': 'your-target-personal-access-token',
                'timeout': 30,
            },
            'github_source': {
                'api_url': DEFAULT_GITHUB_API_URL,
                'token': 'your-source-personal-access-token',
            },
            'ado': {
                'server_url': DEFAULT_ADO_SERVER_URL,
                'token': 'your-ado-personal-access-token',
            },
            'polling': {
                'interval_seconds': 10,
                'max_interval_seconds': 60,
                'backoff_factor': 1.0,
                'max_wait_seconds': None,
                'max_consecutive_errors': 3,
                'log_url_attempts': 5,
            },
            'batch': {
                'max_concurrent_queue': 5,
                'requests_per_second': 5.0,
                'log_dir': '.',
            },
            'logging': {
                'level': 'INFO',
                'file': 'migration.log',
            },
        }

        config_file = Path(output_path)
        config_file.parent.mkdir(parents=True, exist_ok=True)

        with open(config_file, 'w', encoding='utf-8') as f:
            yaml.dump(
                template_config, f, default_flow_style=False, indent=2, sort_keys=False
            )
