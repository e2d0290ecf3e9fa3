from __future__ import annotations

import json
from pathlib import Path

from voicetrans.app.config import resolve_args


def _write(tmp_path: Path, payload: dict) -> Path:
    cfg_path = tmp_path / "app.json"
    cfg_path.write_text(json.dumps(payload), encoding="utf-8")
    return cfg_path


def test_app_resolve_args_cli_overrides_config(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"translator": "stub", "sr": 16000, "poll_ms": 60})
    args = resolve_args(["--config", str(cfg_path), "--translator", "argos", "--poll-ms", "30"])
    assert args.translator == "argos"
    assert args.sr == 16000
    assert args.poll_ms == 30


def test_app_resolve_args_segmenter_thresholds(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"silence_threshold": 45, "pause_detection_ms": 500})
    args = resolve_args(
        [
            "--config",
            str(cfg_path),
            "--min-segment-ms",
            "700",
            "--consecutive-silence-frames",
            "4",
        ]
    )
    assert args.silence_threshold == 45
    assert args.pause_detection_ms == 500
    assert args.min_segment_ms == 700.0
    assert args.max_segment_ms == 30000.0
    assert args.consecutive_silence_frames == 4


def test_app_resolve_args_languages_and_pipeline(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"source_language": "auto", "target_language": "zh"})
    args = resolve_args(
        [
            "--config",
            str(cfg_path),
            "--source-language",
            "en",
            "--target-language",
            "ja",
            "--max-concurrent-jobs",
            "1",
            "--spool-dir",
            str(tmp_path / "spool"),
        ]
    )
    assert args.source_language == "en"
    assert args.target_language == "ja"
    assert args.max_concurrent_jobs == 1
    assert args.spool_dir == str(tmp_path / "spool")


def test_app_resolve_args_console_toggle(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"print_console": True})
    args = resolve_args(["--config", str(cfg_path), "--no-print-console"])
    assert args.print_console is False


def test_app_resolve_args_flags_from_config(tmp_path: Path) -> None:
    cfg_path = _write(tmp_path, {"debug": True, "list_devices": True})
    args = resolve_args(["--config", str(cfg_path)])
    assert args.debug is True
    assert args.list_devices is True
