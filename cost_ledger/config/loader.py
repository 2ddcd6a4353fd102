"""
Configuration management and loading.

Handles application settings from a YAML file and environment variables.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

DB_PATH_ENV_VAR = "COST_LEDGER_DB_PATH"

LOG_LEVELS = ("debug", "info", "warning", "error")


@dataclass(frozen=True)
class DatabaseConfig:
    """Record store location and lock timeout."""
    path: str = "cost_ledger.db"
    timeout: float = 5.0

    def __post_init__(self):
        """Validate database settings."""
        if not self.path:
            raise ValueError("database path must not be empty")
        if self.timeout <= 0:
            raise ValueError("database timeout must be > 0")


@dataclass(frozen=True)
class PaginationConfig:
    """Page size defaults and bounds."""
    default_limit: int = 50
    max_limit: int = 1000

    def __post_init__(self):
        """Validate page sizes are positive and consistent."""
        if self.default_limit < 1:
            raise ValueError("default_limit must be >= 1")
        if self.max_limit < self.default_limit:
            raise ValueError("max_limit must be >= default_limit")


@dataclass(frozen=True)
class LoggingConfig:
    """Log level and optional log file."""
    level: str = "info"
    file: Optional[str] = None

    def __post_init__(self):
        """Validate log level name."""
        if self.level not in LOG_LEVELS:
            raise ValueError(f"logging level must be one of: {list(LOG_LEVELS)}")


@dataclass(frozen=True)
class LedgerConfig:
    """Complete application configuration."""
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    pagination: PaginationConfig = field(default_factory=PaginationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def load_config(path: Optional[str] = None, environ: Optional[Dict[str, str]] = None) -> LedgerConfig:
    """Load and validate configuration.

    Every section is optional; missing values take their defaults. The
    ``COST_LEDGER_DB_PATH`` environment variable overrides ``database.path``.

    Args:
        path: Path to YAML configuration file, or None for defaults
        environ: Environment mapping (defaults to ``os.environ``)

    Returns:
        Validated LedgerConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    environ = os.environ if environ is None else environ

    raw_config: Dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            try:
                raw_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

        if not isinstance(raw_config, dict):
            raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'database', 'pagination', 'logging'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    database_data = _section(raw_config, 'database', {'path', 'timeout'})
    if environ.get(DB_PATH_ENV_VAR):
        database_data['path'] = environ[DB_PATH_ENV_VAR]
    database = DatabaseConfig(
        path=str(database_data.get('path', DatabaseConfig.path)),
        timeout=_number(database_data.get('timeout', DatabaseConfig.timeout), 'database.timeout'),
    )

    pagination_data = _section(raw_config, 'pagination', {'default_limit', 'max_limit'})
    pagination = PaginationConfig(
        default_limit=_integer(
            pagination_data.get('default_limit', PaginationConfig.default_limit),
            'pagination.default_limit',
        ),
        max_limit=_integer(
            pagination_data.get('max_limit', PaginationConfig.max_limit),
            'pagination.max_limit',
        ),
    )

    logging_data = _section(raw_config, 'logging', {'level', 'file'})
    level = logging_data.get('level', LoggingConfig.level)
    if not isinstance(level, str):
        raise ValueError("'logging.level' must be a string")
    log_file = logging_data.get('file')
    if log_file is not None and not isinstance(log_file, str):
        raise ValueError("'logging.file' must be a string")

    return LedgerConfig(
        database=database,
        pagination=pagination,
        logging=LoggingConfig(level=level.lower(), file=log_file),
    )


def _section(raw_config: Dict[str, Any], name: str, allowed_keys: set) -> Dict[str, Any]:
    """Fetch an optional section and reject unknown keys.

    Raises:
        ValueError: If the section is not a mapping or has unknown keys
    """
    data = raw_config.get(name)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"'{name}' must be a dictionary")

    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown {name} keys: {unknown_keys}")
    return dict(data)


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{path}' must be a number")
    return float(value)


def _integer(value: Any, path: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{path}' must be an integer")
    return value
