from __future__ import annotations

_NOISE_PREFIXES = (
    "File ",
    "^",
    "~",
    "Traceback ",
    "During handling of the above exception",
    "The above exception was the direct cause",
)

_HINTS: tuple[tuple[tuple[str, ...], str], ...] = (
    (("no module named",), "A required package is missing in this virtualenv. Reinstall dependencies and retry."),
    (("config file not found",), "Configured JSON file is missing. Update the config path or restore the file."),
    (
        ("microphone", "portaudio", "sounddevice"),
        "Microphone init failed. Run with --list-devices and pick an input with --device.",
    ),
    (
        ("argos", "language pair"),
        "Translation package unavailable. Check network access for the first Argos install.",
    ),
    (
        ("ctranslate2", "faster-whisper", "whisper"),
        "ASR model failed to load. Check the --model name and free disk space for the download.",
    ),
    (("must be",), "A config value is out of range. Fix it in config.json or on the command line."),
)


def summarize_exception(detail: str, *, max_len: int = 220) -> str:
    """Pick the final exception line out of a formatted traceback."""
    lines = [ln.strip() for ln in str(detail or "").splitlines() if ln.strip()]
    if not lines:
        return "Unknown runtime error."
    meaningful = [ln for ln in lines if not ln.startswith(_NOISE_PREFIXES)]
    out = meaningful[-1] if meaningful else lines[-1]
    if len(out) > max_len:
        return out[: max_len - 3].rstrip() + "..."
    return out


def hint_for_exception(summary: str) -> str:
    s = str(summary or "").lower()
    for needles, hint in _HINTS:
        if any(n in s for n in needles):
            return hint
    return "Check logs for full traceback."
