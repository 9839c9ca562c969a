"""GitHub Batch Migration

Plans, scripts and runs batch repository migrations from Azure DevOps or
GitHub organizations into a GitHub organization using the GitHub migration
API.
"""

__version__ = '0.1.0'

from .cli import main

__all__ = ['main']
