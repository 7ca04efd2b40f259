"""
Helper package for the PostgreSQL message queue.
Configuration, connection handling, durations, errors and logging.
"""

from .error import (
    StoreError,
)

from .duration import (
    DurationLike,
    format_duration,
    parse_duration,
    to_timedelta,
)

from .database import (
    Database,
    DatabaseConfiguration,
    new_database,
    new_database_from_env,
    new_database_with_connection,
)

from .logging import (
    StoreLogger,
    ColorFormatter,
    get_logger,
    setup_logging,
)

from .sql import (
    run_ddl,
    is_duplicate_definition,
)

__all__ = [
    # Error handling
    "StoreError",
    # Durations
    "DurationLike",
    "format_duration",
    "parse_duration",
    "to_timedelta",
    # Database utilities
    "Database",
    "DatabaseConfiguration",
    "new_database",
    "new_database_from_env",
    "new_database_with_connection",
    # Logging utilities
    "StoreLogger",
    "ColorFormatter",
    "get_logger",
    "setup_logging",
    # DDL
    "run_ddl",
    "is_duplicate_definition",
]
