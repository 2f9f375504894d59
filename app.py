#!/usr/bin/env python3
"""
Remit Printer - receipt printing service for the remittance CRM.

Serves the print queue / printer status JSON API and keeps the printer
monitor polling in the background.

Usage:
    python app.py [--host 0.0.0.0] [--port 5000]
"""

import argparse
import os

from remit_printer import create_app


def main() -> None:
    parser = argparse.ArgumentParser(description="Remit Printer API server")
    parser.add_argument("--host", default=os.environ.get("REMITPRINTER_HOST", "127.0.0.1"))
    parser.add_argument("--port", type=int, default=int(os.environ.get("REMITPRINTER_PORT", "5000")))
    args = parser.parse_args()

    app = create_app()
    app.logger.info("Starting Remit Printer on http://%s:%d", args.host, args.port)
    app.logger.info("Press Ctrl+C to stop the server")
    app.run(host=args.host, port=args.port, debug=False)


if __name__ == "__main__":
    main()
