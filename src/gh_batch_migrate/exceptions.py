"""Orchestration exceptions surfaced to the command line."""


class BatchMigrationError(Exception):
    """Base class for errors that abort a command before or during planning."""


class ConfigurationError(BatchMigrationError):
    """Invalid or conflicting arguments; raised before any remote call."""


class NoMigratableReposError(BatchMigrationError):
    """Enumeration found nothing to migrate."""
