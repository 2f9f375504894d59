"""
Config utilities for Remit Printer.

Responsibilities:
- Resolve config/data paths with environment and XDG support
- Provide JSON load/save helpers for the printer config
- Overlay the saved config on built-in defaults
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

DEFAULTS: Dict[str, Any] = {
    "printer_type": "simulated",
    "printer_model": "EPSON TM-T20III ESC/POS Thermal Printer",
    "printer_profile": None,
    "usb_vendor_id": "0x04b8",
    "usb_product_id": "0x0e28",
    "network_ip": "",
    "network_port": 9100,
    "serial_port": "",
    "serial_baudrate": 19200,
    "poll_interval_seconds": 30,
    "poll_timeout_seconds": 5,
    "write_timeout_seconds": 10,
    "low_paper_threshold": 20,
    "paper_width": "80mm",
    "auto_cut": True,
    "cash_drawer": True,
    "header_title": "RJB TRANZ",
    "currency_symbol": "$",
    "job_store": "memory",
    "jobs_display_limit": 10,
}


def default_config_path() -> str:
    """
    Resolve the default config path using:
    1) $XDG_CONFIG_HOME/remitprinter/config.json
    2) ~/.config/remitprinter/config.json
    """
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return str(Path(xdg) / "remitprinter" / "config.json")
    return str(Path.home() / ".config" / "remitprinter" / "config.json")


def default_data_path() -> str:
    """
    Resolve the default data directory using:
    1) $XDG_DATA_HOME/remitprinter
    2) ~/.local/share/remitprinter
    """
    xdg = os.environ.get("XDG_DATA_HOME")
    if xdg:
        return str(Path(xdg) / "remitprinter")
    return str(Path.home() / ".local" / "share" / "remitprinter")


def get_config_path() -> str:
    """
    Return the config path honoring REMITPRINTER_CONFIG_PATH override.
    """
    return os.environ.get("REMITPRINTER_CONFIG_PATH", default_config_path())


def get_db_path() -> str:
    """
    Return the job database path honoring REMITPRINTER_DB_PATH override.
    """
    if "REMITPRINTER_DB_PATH" in os.environ:
        return os.environ["REMITPRINTER_DB_PATH"]
    return str(Path(default_data_path()) / "jobs.db")


def ensure_dir(path: str) -> str:
    """
    Ensure a directory exists and return the path.
    """
    Path(path).mkdir(parents=True, exist_ok=True)
    return path


def load_config(path: Optional[str] = None) -> Optional[dict[str, Any]]:
    """
    Load the JSON config if it exists; return None if missing.

    Raises:
        json.JSONDecodeError if the file exists but contains invalid JSON.
        OSError for I/O errors other than missing file.
    """
    cfg_path = Path(path or get_config_path())
    if not cfg_path.exists():
        return None
    with cfg_path.open("r", encoding="utf-8") as f:
        return json.load(f)


def save_config(data: dict[str, Any], path: Optional[str] = None) -> None:
    """
    Save the JSON config, creating parent directories as needed.

    Writes atomically by using a temporary file and os.replace().
    Raises OSError on I/O failures.
    """
    cfg_path = Path(path or get_config_path())
    cfg_path.parent.mkdir(parents=True, exist_ok=True)

    tmp_path = cfg_path.with_suffix(cfg_path.suffix + ".tmp")
    with tmp_path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2)
        f.flush()
        os.fsync(f.fileno())
    os.replace(tmp_path, cfg_path)


def effective_config(overrides: Optional[dict[str, Any]] = None, path: Optional[str] = None) -> dict[str, Any]:
    """
    DEFAULTS, overlaid with the saved config (if any), overlaid with `overrides`.
    """
    cfg = dict(DEFAULTS)
    saved = load_config(path)
    if saved:
        cfg.update(saved)
    if overrides:
        cfg.update(overrides)
    return cfg


__all__ = [
    "DEFAULTS",
    "default_config_path",
    "default_data_path",
    "effective_config",
    "ensure_dir",
    "get_config_path",
    "get_db_path",
    "load_config",
    "save_config",
]
