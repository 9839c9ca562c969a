"""Configuration and credential resolution."""

from .config import (
    AdoInstanceConfig,
    BatchConfig,
    Config,
    GithubInstanceConfig,
    LoggingConfig,
    PollingConfig,
)
from .credentials import Credentials, resolve_credentials, resolve_first

__all__ = [
    'AdoInstanceConfig',
    'BatchConfig',
    'Config',
    'GithubInstanceConfig',
    'LoggingConfig',
    'PollingConfig',
    'Credentials',
    'resolve_credentials',
    'resolve_first',
]
