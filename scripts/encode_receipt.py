#!/usr/bin/env python3
"""
Encode a transaction receipt to ESC/POS bytes without a printer.

Reads a transaction JSON document (camelCase, as the CRM stores it) and writes
the raw byte stream to a file, or a hex dump to stdout. Handy for checking a
receipt layout against a printer emulator.

Usage:
  python scripts/encode_receipt.py transaction.json
  python scripts/encode_receipt.py transaction.json --out receipt.bin
  python scripts/encode_receipt.py transaction.json --paper-width 58mm --no-cash-drawer
  python scripts/encode_receipt.py --test

Exit code:
  0  on success
  1  if the transaction cannot be encoded
"""

from __future__ import annotations

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add the project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from remit_printer.printing.encoder import ReceiptOptions, build_test_transaction, encode_receipt
from remit_printer.printing.errors import EncodingError
from remit_printer.printing.models import Transaction


def _hexdump(data: bytes, width: int = 16) -> str:
    lines = []
    for off in range(0, len(data), width):
        chunk = data[off : off + width]
        hexes = " ".join(f"{b:02x}" for b in chunk)
        text = "".join(chr(b) if 32 <= b < 127 else "." for b in chunk)
        lines.append(f"{off:08x}  {hexes:<{width * 3}} {text}")
    return "\n".join(lines)


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Encode a transaction receipt as ESC/POS bytes")
    ap.add_argument("transaction", nargs="?", help="Path to transaction JSON")
    ap.add_argument("--test", action="store_true", help="Encode the built-in test transaction")
    ap.add_argument("--out", help="Write raw bytes to this file instead of a hex dump")
    ap.add_argument("--paper-width", choices=["58mm", "80mm"], default="80mm")
    ap.add_argument("--no-cut", action="store_true", help="Feed instead of cutting")
    ap.add_argument("--no-cash-drawer", action="store_true", help="Omit the cash drawer pulse")
    args = ap.parse_args(argv)

    now = datetime.now(timezone.utc)
    if args.test:
        tx = build_test_transaction(now)
    elif args.transaction:
        with open(args.transaction, "r", encoding="utf-8") as f:
            tx = Transaction.from_dict(json.load(f))
    else:
        ap.error("a transaction file or --test is required")

    opts = ReceiptOptions(
        paper_width=args.paper_width,
        auto_cut=not args.no_cut,
        cash_drawer=not args.no_cash_drawer,
    )
    try:
        data = encode_receipt(tx, now, opts)
    except EncodingError as e:
        print(f"[error] {e}", file=sys.stderr)
        return 1

    if args.out:
        Path(args.out).write_bytes(data)
        print(f"[ok] wrote {len(data)} bytes to {args.out}")
    else:
        print(_hexdump(data))
    return 0


if __name__ == "__main__":
    sys.exit(main())
