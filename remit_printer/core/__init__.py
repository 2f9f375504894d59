"""
Core utilities for Remit Printer.

This package groups non-Flask helpers used across the app:
- config: paths, JSON load/save, defaults
- logging: Request ID aware logging filters/formatters and root logger config
- db: SQLite-backed print job store

Exports are explicit to keep static analyzers (e.g., Pyright) happy.
"""

from .config import (
    DEFAULTS,
    default_config_path,
    default_data_path,
    effective_config,
    ensure_dir,
    get_config_path,
    get_db_path,
    load_config,
    save_config,
)
from .logging import (
    JsonFormatter,
    RequestIdFilter,
    configure_logging,
)

__all__ = [
    # config
    "DEFAULTS",
    "default_config_path",
    "default_data_path",
    "effective_config",
    "ensure_dir",
    "get_config_path",
    "get_db_path",
    "load_config",
    "save_config",
    # logging
    "configure_logging",
    "RequestIdFilter",
    "JsonFormatter",
]
