"""
Runtime configuration for jimjam.

Connection pragmas, lock wait and the transient-error retry policy.
Provides a unified configuration that flows from the CLI into every
Database it opens.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field


DEFAULT_TRANSIENT_MARKERS = (
    "disk i/o error",
    "database schema has changed",
    "unable to open database file",
)


@dataclass
class DatabaseConfig:
    """
    Configuration for opening a jimjam database.

    Attributes:
        journal_mode: SQLite journal mode (WAL, DELETE, MEMORY, ...)
        synchronous: SQLite synchronous level (OFF, NORMAL, FULL)
        busy_timeout: Seconds to wait on a locked database before failing
        transient_retries: Reconnect-and-retry attempts for transient DDL errors
        transient_markers: Lowercase message fragments marking an error transient
        read_only: Open the file read-only; nothing is created or written
        verbose: Log debug information
    """

    journal_mode: str = "WAL"
    synchronous: str = "NORMAL"
    busy_timeout: float = 5.0

    # Retry policy
    transient_retries: int = 1
    transient_markers: tuple[str, ...] = field(
        default_factory=lambda: DEFAULT_TRANSIENT_MARKERS
    )

    # Inspection
    read_only: bool = False

    # Debug
    verbose: bool = False

    def __post_init__(self):
        """Normalize pragma values."""
        self.journal_mode = self.journal_mode.upper()
        self.synchronous = self.synchronous.upper()
        if self.transient_retries < 0:
            self.transient_retries = 0


def get_database_config(
    journal_mode: str | None = None,
    busy_timeout: float | None = None,
    transient_retries: int | None = None,
    verbose: bool = False,
) -> DatabaseConfig:
    """
    Create a database configuration with sensible defaults.

    Explicit arguments win over the JIMJAM_JOURNAL_MODE and
    JIMJAM_BUSY_TIMEOUT environment variables.

    Args:
        journal_mode: Override journal mode
        busy_timeout: Override lock wait in seconds
        transient_retries: Override retry attempts
        verbose: Enable verbose output

    Returns:
        Configured DatabaseConfig instance
    """
    config = DatabaseConfig(verbose=verbose)

    env_journal_mode = os.environ.get("JIMJAM_JOURNAL_MODE")
    if env_journal_mode:
        config.journal_mode = env_journal_mode.upper()

    env_busy_timeout = os.environ.get("JIMJAM_BUSY_TIMEOUT")
    if env_busy_timeout:
        config.busy_timeout = float(env_busy_timeout)

    if journal_mode:
        config.journal_mode = journal_mode.upper()
    if busy_timeout is not None:
        config.busy_timeout = busy_timeout
    if transient_retries is not None:
        config.transient_retries = max(0, transient_retries)

    return config


# Global config instance (can be set by the CLI)
_global_config: DatabaseConfig | None = None


def set_global_config(config: DatabaseConfig) -> None:
    """Set the global database configuration."""
    global _global_config
    _global_config = config


def get_global_config() -> DatabaseConfig:
    """Get the global database configuration, creating default if needed."""
    global _global_config
    if _global_config is None:
        _global_config = DatabaseConfig()
    return _global_config
