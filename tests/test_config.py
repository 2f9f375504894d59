import json
import logging

import pytest

from remit_printer.core import config as cfg
from remit_printer.core.logging import JsonFormatter, RequestIdFilter, configure_logging


def test_config_path_env_override(monkeypatch, tmp_path):
    target = tmp_path / "custom.json"
    monkeypatch.setenv("REMITPRINTER_CONFIG_PATH", str(target))
    assert cfg.get_config_path() == str(target)


def test_default_paths_follow_xdg(monkeypatch, tmp_path):
    monkeypatch.delenv("REMITPRINTER_CONFIG_PATH", raising=False)
    monkeypatch.delenv("REMITPRINTER_DB_PATH", raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "cfg"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    assert cfg.get_config_path() == str(tmp_path / "cfg" / "remitprinter" / "config.json")
    assert cfg.get_db_path() == str(tmp_path / "data" / "remitprinter" / "jobs.db")


def test_load_missing_config_returns_none(tmp_path):
    assert cfg.load_config(str(tmp_path / "nope.json")) is None


def test_save_then_load(tmp_path):
    path = str(tmp_path / "nested" / "config.json")
    cfg.save_config({"printer_type": "network", "network_ip": "10.0.0.5"}, path)
    assert cfg.load_config(path) == {"printer_type": "network", "network_ip": "10.0.0.5"}
    assert not (tmp_path / "nested" / "config.json.tmp").exists()


def test_invalid_json_raises(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(json.JSONDecodeError):
        cfg.load_config(str(path))


def test_effective_config_layers(tmp_path):
    path = str(tmp_path / "config.json")
    cfg.save_config({"printer_type": "usb", "paper_width": "58mm"}, path)
    eff = cfg.effective_config({"paper_width": "80mm"}, path=path)
    assert eff["printer_type"] == "usb"
    assert eff["paper_width"] == "80mm"
    assert eff["low_paper_threshold"] == cfg.DEFAULTS["low_paper_threshold"]
    assert eff["poll_interval_seconds"] == 30


def test_effective_config_defaults_without_file(tmp_path):
    eff = cfg.effective_config(path=str(tmp_path / "missing.json"))
    assert eff == cfg.DEFAULTS
    assert eff is not cfg.DEFAULTS


def test_json_formatter_includes_request_id():
    record = logging.LogRecord("remit_printer.test", logging.WARNING, __file__, 1, "paper %d%%", (12,), None)
    RequestIdFilter().filter(record)
    out = json.loads(JsonFormatter().format(record))
    assert out["level"] == "WARNING"
    assert out["logger"] == "remit_printer.test"
    assert out["msg"] == "paper 12%"
    assert out["request_id"] == "-"
    assert "job_id" not in out
    assert out["thread"]


def test_json_formatter_includes_job_id():
    record = logging.LogRecord("remit_printer.printing.processor", logging.INFO, __file__, 1, "printed", (), None)
    record.job_id = "PRINT-ABC"
    RequestIdFilter().filter(record)
    out = json.loads(JsonFormatter().format(record))
    assert out["job_id"] == "PRINT-ABC"


def test_configure_logging_installs_single_handler(monkeypatch):
    monkeypatch.setenv("REMITPRINTER_JSON_LOGS", "true")
    root = logging.getLogger()
    saved = (root.level, list(root.handlers))
    device = logging.getLogger("escpos")
    device_level = device.level
    try:
        configure_logging("DEBUG")
        configure_logging("DEBUG")
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert any(isinstance(f, RequestIdFilter) for f in root.handlers[0].filters)
        assert device.level == logging.WARNING
    finally:
        device.setLevel(device_level)
        root.setLevel(saved[0])
        root.handlers = saved[1]
