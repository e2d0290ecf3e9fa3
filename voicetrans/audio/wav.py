from __future__ import annotations

import os
import tempfile
import wave
from pathlib import Path

from voicetrans.contracts import AudioPayload


def write_pcm16_wav(path: str, pcm16: bytes, sample_rate: int, channels: int) -> None:
    with wave.open(path, "wb") as wf:
        wf.setnchannels(channels)
        wf.setsampwidth(2)
        wf.setframerate(sample_rate)
        wf.writeframes(pcm16)


def spool_to_wav(payload: AudioPayload, directory: str | os.PathLike[str], stem: str) -> AudioPayload:
    """
    Write an in-memory payload to `<directory>/<stem>_*.wav` and return an owned
    file payload; the pipeline deletes the file once transcription is done.
    File payloads are returned unchanged.
    """
    if payload.pcm16 is None:
        return payload
    out_dir = Path(directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    fd, path = tempfile.mkstemp(suffix=".wav", prefix=f"{stem}_", dir=str(out_dir))
    os.close(fd)
    try:
        write_pcm16_wav(path, payload.pcm16, payload.sample_rate, payload.channels)
    except Exception:
        os.remove(path)
        raise
    return AudioPayload(
        path=path,
        sample_rate=payload.sample_rate,
        channels=payload.channels,
        owned=True,
    )
