from __future__ import annotations

import argparse
import copy
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from platformdirs import user_config_dir

DEFAULTS: dict[str, Any] = {
    "list_devices": False,
    "device": None,
    "sr": 16000,
    "channels": 1,
    "chunk_sec": 0.1,
    "silence_threshold": 30.0,
    "pause_detection_ms": 800.0,
    "min_segment_ms": 1000.0,
    "max_segment_ms": 30000.0,
    "consecutive_silence_frames": 8,
    "max_concurrent_jobs": 3,
    "poll_ms": 100,
    "model": "tiny",
    "source_language": "auto",
    "target_language": "zh",
    "translator": "argos",
    "spool_dir": None,
    "drain_timeout_sec": 30.0,
    "print_console": True,
    "debug": False,
}
CONFIG_KEYS: tuple[str, ...] = tuple(DEFAULTS.keys())


@dataclass(frozen=True)
class AppPaths:
    config_dir: Path
    config_path: Path


def app_paths() -> AppPaths:
    config_dir = Path(user_config_dir("VoiceTrans", "VoiceTrans"))
    return AppPaths(config_dir=config_dir, config_path=config_dir / "config.json")


def _load_json_dict(path: Path) -> dict[str, Any]:
    # Accept UTF-8 with or without BOM for Windows-edited config files.
    with path.open("r", encoding="utf-8-sig") as f:
        loaded = json.load(f)
    if not isinstance(loaded, dict):
        raise ValueError(f"config must be a JSON object: {path}")
    return loaded


def _write_json_dict(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
        f.write("\n")


def _known_only(payload: dict[str, Any]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for key in CONFIG_KEYS:
        if key in payload:
            out[key] = payload[key]
    return out


def load_default_config() -> dict[str, Any]:
    return copy.deepcopy(DEFAULTS)


def load_user_config(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    defaults = load_default_config()
    if config_path:
        chosen = Path(config_path)
        if not chosen.exists():
            raise SystemExit(f"Config file not found: {chosen}")
    else:
        chosen = ensure_user_config_exists(defaults)
    loaded = _known_only(_load_json_dict(chosen))
    merged = dict(defaults)
    merged.update(loaded)
    return merged, chosen


def ensure_user_config_exists(defaults: dict[str, Any] | None = None) -> Path:
    paths = app_paths()
    if paths.config_path.exists():
        return paths.config_path
    _write_json_dict(paths.config_path, defaults or load_default_config())
    return paths.config_path


def resolve_defaults(config_path: str | None = None) -> tuple[dict[str, Any], Path]:
    return load_user_config(config_path=config_path)


def parser_with_defaults(defaults: dict[str, Any]) -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="voicetrans")
    p.add_argument("--config", default=None, help="JSON config path (CLI flags override config)")
    p.add_argument("--list-devices", action="store_true", help="print audio devices and exit")
    p.add_argument("--device", type=int, default=defaults["device"], help="sounddevice input device id")
    p.add_argument("--sr", type=int, default=defaults["sr"], help="sample rate (Hz)")
    p.add_argument("--channels", type=int, default=defaults["channels"], help="input channels")
    p.add_argument(
        "--chunk-sec",
        type=float,
        default=defaults["chunk_sec"],
        help="mic chunk size in seconds (one energy sample per chunk)",
    )
    p.add_argument(
        "--silence-threshold",
        type=float,
        default=defaults["silence_threshold"],
        help="energy level (0-255) above which a tick counts as voice",
    )
    p.add_argument(
        "--pause-detection-ms",
        type=float,
        default=defaults["pause_detection_ms"],
        help="close a segment after this long without voice",
    )
    p.add_argument(
        "--min-segment-ms",
        type=float,
        default=defaults["min_segment_ms"],
        help="discard segments shorter than this",
    )
    p.add_argument(
        "--max-segment-ms",
        type=float,
        default=defaults["max_segment_ms"],
        help="force close a segment at this length while speaking",
    )
    p.add_argument(
        "--consecutive-silence-frames",
        type=int,
        default=defaults["consecutive_silence_frames"],
        help="silent ticks needed before voice counts as stopped",
    )
    p.add_argument(
        "--max-concurrent-jobs",
        type=int,
        default=defaults["max_concurrent_jobs"],
        help="concurrent jobs per pipeline stage",
    )
    p.add_argument("--poll-ms", type=int, default=defaults["poll_ms"], help="safety-net dispatch interval (ms)")
    p.add_argument("--model", default=defaults["model"], help="faster-whisper model size")
    p.add_argument(
        "--source-language",
        default=defaults["source_language"],
        help="source language hint for ASR ('auto' to detect)",
    )
    p.add_argument(
        "--target-language",
        default=defaults["target_language"],
        help="translation target language ('' to only transcribe)",
    )
    p.add_argument("--translator", default=defaults["translator"], help="argos|stub")
    p.add_argument(
        "--spool-dir",
        default=defaults["spool_dir"],
        help="write each segment to a WAV file here before transcription",
    )
    p.add_argument(
        "--drain-timeout-sec",
        type=float,
        default=defaults["drain_timeout_sec"],
        help="how long to wait for in-flight segments on shutdown",
    )
    p.add_argument(
        "--print-console",
        action=argparse.BooleanOptionalAction,
        default=defaults["print_console"],
        help="print transcribed/translated segments to console",
    )
    p.add_argument("--debug", action="store_true", help="log per-tick energy levels")
    return p


def resolve_args(argv: list[str] | None = None) -> argparse.Namespace:
    pre = argparse.ArgumentParser(add_help=False)
    pre.add_argument("--config", default=None)
    pre_args, _ = pre.parse_known_args(argv)
    defaults, _ = resolve_defaults(config_path=pre_args.config)
    parser = parser_with_defaults(defaults)
    args = parser.parse_args(argv)
    if defaults.get("list_devices"):
        args.list_devices = True
    if defaults.get("debug"):
        args.debug = True
    return args
