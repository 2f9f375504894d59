"""
Printer handles: the capability the monitor and queue processor talk to.

A handle needs two operations:
- query_status() -> mapping with connected, paper_level, model, temperature, errors
- write_bytes(data) -> True on success (False or an exception on failure)

Two implementations ship here:
- EscposPrinterHandle: real USB/Network/Serial printers through python-escpos
- SimulatedPrinterHandle: in-process stand-in with random connectivity, used by
  default and in tests
"""

from __future__ import annotations

import logging
import random
import threading
import time
from collections.abc import Mapping
from typing import Any, Dict, List, Optional, Protocol, Tuple, runtime_checkable

from .models import DEFAULT_MODEL

logger = logging.getLogger(__name__)

RawPrinterStatus = Dict[str, Any]


@runtime_checkable
class PrinterHandle(Protocol):
    def query_status(self) -> Mapping[str, Any]: ...

    def write_bytes(self, data: bytes) -> bool: ...


def _connect_printer(config: Mapping[str, Any]):
    """
    Create and return an ESC/POS printer instance based on the provided config.
    Supports USB, Network, and Serial with optional 'printer_profile'.
    """
    profile = config.get("printer_profile") or None
    ptype = str(config.get("printer_type", "usb")).lower()

    if ptype == "usb":
        from escpos.printer import Usb

        vendor = int(str(config.get("usb_vendor_id", "0x04b8")), 16)
        product = int(str(config.get("usb_product_id", "0x0e28")), 16)
        if profile:
            return Usb(vendor, product, profile=profile)
        return Usb(vendor, product)
    if ptype == "network":
        from escpos.printer import Network

        ip = str(config.get("network_ip", ""))
        port = int(str(config.get("network_port", "9100")))
        timeout = float(config.get("poll_timeout_seconds", 5))
        if profile:
            return Network(ip, port, timeout=timeout, profile=profile)
        return Network(ip, port, timeout=timeout)
    if ptype == "serial":
        from escpos.printer import Serial

        port = str(config.get("serial_port", ""))
        baud = int(str(config.get("serial_baudrate", "19200")))
        if profile:
            return Serial(port, baudrate=baud, profile=profile)
        return Serial(port, baudrate=baud)
    raise RuntimeError(f"Unsupported printer type: {ptype}")


# python-escpos paper_status(): 2 = adequate, 1 = near end, 0 = out
_PAPER_LEVELS = {2: 100, 1: 10, 0: 0}


class EscposPrinterHandle:
    """
    Handle over a python-escpos printer. The device is opened on first use and
    dropped after any error so the next call reconnects.
    """

    def __init__(self, config: Mapping[str, Any]):
        self.config = dict(config)
        self.model = str(self.config.get("printer_model") or DEFAULT_MODEL)
        self._printer = None
        self._lock = threading.Lock()

    def _device(self):
        if self._printer is None:
            logger.info("Connecting to %s printer", self.config.get("printer_type", "usb"))
            self._printer = _connect_printer(self.config)
        return self._printer

    def _reset(self) -> None:
        p, self._printer = self._printer, None
        if p is not None:
            try:
                p.close()
            except Exception as e:
                logger.debug("Printer close failed: %s", e)

    def query_status(self) -> RawPrinterStatus:
        with self._lock:
            try:
                p = self._device()
                online = bool(p.is_online())
                paper = _PAPER_LEVELS.get(p.paper_status(), 0) if online else 0
            except Exception:
                self._reset()
                raise
        errors: List[str] = []
        if not online:
            errors.append("Printer offline")
        elif paper == 0:
            errors.append("Out of paper")
        return {
            "connected": online,
            "paper_level": paper,
            "model": self.model,
            # ESC/POS real-time status does not report head temperature
            "temperature": 0,
            "errors": errors,
        }

    def write_bytes(self, data: bytes) -> bool:
        with self._lock:
            try:
                self._device()._raw(data)
            except Exception:
                self._reset()
                raise
        return True

    def close(self) -> None:
        with self._lock:
            self._reset()


class SimulatedPrinterHandle:
    """
    Stand-in printer with randomized connectivity and a paper roll that
    depletes as receipts are written. All state lives on the instance.
    """

    def __init__(
        self,
        *,
        model: str = DEFAULT_MODEL,
        connect_probability: float = 0.9,
        paper_level: Optional[int] = None,
        paper_per_print: int = 2,
        query_delay: float = 0.0,
        write_delay: float = 0.0,
        seed: Optional[int] = None,
    ):
        self.model = model
        self.connect_probability = connect_probability
        self.paper_per_print = paper_per_print
        self.query_delay = query_delay
        self.write_delay = write_delay
        self._rng = random.Random(seed)
        self._lock = threading.Lock()
        self._paper_level = paper_level if paper_level is not None else 75 + self._rng.randint(0, 24)
        self._connected = False
        self.written: List[bytes] = []

    @property
    def paper_level(self) -> int:
        with self._lock:
            return self._paper_level

    def refill(self, level: int = 100) -> None:
        with self._lock:
            self._paper_level = max(0, min(100, int(level)))

    def _sleep(self, seconds: float) -> None:
        if seconds > 0:
            time.sleep(seconds)

    def query_status(self) -> RawPrinterStatus:
        self._sleep(self.query_delay)
        with self._lock:
            self._connected = self._rng.random() < self.connect_probability
            temperature = 38 + self._rng.randint(0, 11)
            errors: List[str] = []
            if not self._connected:
                errors = ["USB connection timeout", "Check cable connection"]
            elif self._paper_level <= 0:
                errors = ["Out of paper"]
            return {
                "connected": self._connected,
                "paper_level": self._paper_level,
                "model": self.model,
                "temperature": temperature,
                "errors": errors,
            }

    def write_bytes(self, data: bytes) -> bool:
        self._sleep(self.write_delay)
        with self._lock:
            if self._paper_level <= 0:
                return False
            self.written.append(bytes(data))
            self._paper_level = max(0, self._paper_level - self.paper_per_print)
            return True

    def close(self) -> None:
        return None


def create_handle(config: Mapping[str, Any]) -> Tuple[str, PrinterHandle]:
    """
    Build the handle for the configured printer_type. Returns (kind, handle).
    """
    ptype = str(config.get("printer_type", "simulated")).lower()
    model = str(config.get("printer_model") or DEFAULT_MODEL)
    if ptype == "simulated":
        seed = config.get("simulated_seed")
        return ptype, SimulatedPrinterHandle(
            model=model,
            connect_probability=float(config.get("simulated_connect_probability", 0.9)),
            query_delay=float(config.get("simulated_query_delay", 0.0)),
            write_delay=float(config.get("simulated_write_delay", 0.0)),
            seed=int(seed) if seed is not None else None,
        )
    if ptype in ("usb", "network", "serial"):
        return ptype, EscposPrinterHandle(config)
    raise RuntimeError(f"Unsupported printer type: {ptype}")


__all__ = [
    "EscposPrinterHandle",
    "PrinterHandle",
    "RawPrinterStatus",
    "SimulatedPrinterHandle",
    "create_handle",
]
