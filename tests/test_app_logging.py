from __future__ import annotations

import json
import logging
from pathlib import Path

from voicetrans.app import config as app_config
from voicetrans.app.logging_setup import ConsoleFormatter, JsonLineFormatter, setup_app_logger


def test_setup_app_logger_writes_json_line(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    logger, log_dir, log_path = setup_app_logger("voicetrans_test_logging")

    logger.info("segment_ready", extra={"segment_id": "segment_0_1", "duration_ms": 1500.0})
    logger.debug("energy_tick", extra={"energy": 12.5})
    for h in logger.handlers:
        h.flush()

    assert log_dir == tmp_path / "logs"
    assert log_path.name == "voicetrans.log"
    lines = [ln for ln in log_path.read_text(encoding="utf-8").splitlines() if ln.strip()]
    assert len(lines) == 1
    payload = json.loads(lines[-1])
    assert payload["message"] == "segment_ready"
    assert payload["segment_id"] == "segment_0_1"
    assert payload["duration_ms"] == 1500.0
    assert payload["level"] == "INFO"

    for h in logger.handlers:
        h.close()
    logging.getLogger("voicetrans_test_logging").handlers.clear()


def test_setup_app_logger_debug_level_and_exc_info(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(app_config, "user_config_dir", lambda appname, appauthor=None: str(tmp_path))
    logger, _, log_path = setup_app_logger("voicetrans_test_logging_debug", level=logging.DEBUG)

    logger.debug("energy_tick", extra={"energy": 12.5})
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        logger.exception("worker_crash")
    for h in logger.handlers:
        h.flush()

    lines = [json.loads(ln) for ln in log_path.read_text(encoding="utf-8").splitlines() if ln.strip()]
    assert [ln["message"] for ln in lines] == ["energy_tick", "worker_crash"]
    assert "RuntimeError: boom" in lines[1]["exc_info"]

    for h in logger.handlers:
        h.close()
    logging.getLogger("voicetrans_test_logging_debug").handlers.clear()


def test_console_formatter_renders_extra_fields() -> None:
    record = logging.LogRecord("voicetrans", logging.WARNING, __file__, 1, "drain_timeout", (), None)
    record.active = 2
    record.dropped_transcriptions = 1
    assert ConsoleFormatter().format(record) == "warning: drain_timeout active=2 dropped_transcriptions=1"


def test_json_formatter_stringifies_odd_values() -> None:
    record = logging.LogRecord("voicetrans", logging.INFO, __file__, 1, "worker_stop", (), None)
    record.spool = Path("/tmp/spool")
    payload = json.loads(JsonLineFormatter().format(record))
    assert payload["spool"] == str(Path("/tmp/spool"))
    assert payload["thread"] == record.threadName
