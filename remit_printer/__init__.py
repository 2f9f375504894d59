"""
Remit Printer package

Receipt printing for the remittance CRM: ESC/POS encoding, a print queue with
a strict job state machine, and printer status monitoring, exposed over a
small JSON API.

This module provides an application factory with minimal wiring:
- Configures logging via remit_printer.core.logging
- Builds the PrintService from the saved printer config
- Registers the API and health blueprints
- Optionally starts the printer monitor thread
"""

from __future__ import annotations

import importlib
import logging
import uuid
from collections.abc import Mapping, Sequence
from typing import Any, Optional

from flask import Flask, g

from remit_printer.core.config import effective_config
from remit_printer.core.logging import configure_logging
from remit_printer.printing.service import PrintService

logger = logging.getLogger(__name__)

DEFAULT_BLUEPRINTS = [
    ("remit_printer.web.api", "api_bp"),  # versioned JSON API
    ("remit_printer.web.health", "health_bp"),  # health endpoint
]


def _register_blueprint(app: Flask, import_path: str, attr: str) -> None:
    mod = importlib.import_module(import_path)
    app.register_blueprint(getattr(mod, attr))
    app.logger.debug(f"Registered blueprint: {import_path}.{attr}")


def _set_request_id() -> None:
    """
    Assign a request ID for logging if not set elsewhere.
    """
    g.request_id = getattr(g, "request_id", uuid.uuid4().hex)


def create_app(
    config_overrides: Optional[dict] = None,
    printer_config: Optional[Mapping[str, Any]] = None,
    blueprints: Optional[Sequence[tuple[str, str]]] = None,
    service: Optional[PrintService] = None,
    start_monitor: bool = True,
    configure_logs: bool = True,
) -> Flask:
    """
    Application factory.

    Parameters:
    - config_overrides: values to inject into app.config after defaults
    - printer_config: printer/queue settings overlaid on the saved config
    - blueprints: optional list of (import_path, attribute) tuples to register
    - service: a prebuilt PrintService (tests inject fakes here)
    - start_monitor: if True, starts the background printer monitor
    - configure_logs: if True, installs the root logging handler

    Returns:
    - Flask app instance
    """
    if configure_logs:
        configure_logging()

    app = Flask("remit_printer")
    app.url_map.strict_slashes = False

    if service is None:
        cfg = effective_config(dict(printer_config) if printer_config else None)
        service = PrintService.from_config(cfg)
    app.extensions["remit_printer"] = service
    app.logger.info("Remit Printer app created (printer=%s)", service.printer_type)

    @app.before_request
    def _before_request():
        _set_request_id()

    for import_path, attr in blueprints or DEFAULT_BLUEPRINTS:
        _register_blueprint(app, import_path, attr)

    if start_monitor:
        service.start()
        app.logger.info("Printer monitor ensured")

    if config_overrides:
        app.config.update(config_overrides)

    return app


__all__ = ["create_app"]
