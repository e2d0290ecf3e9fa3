from __future__ import annotations

import contextlib
import logging
import threading
from typing import Any, Iterator, Optional

from voicetrans.contracts import AudioChunk


class MicError(RuntimeError):
    pass


def _require_sounddevice():
    try:
        import sounddevice as sd
    except ImportError as e:
        raise MicError(
            "sounddevice is not installed. Install with: python -m pip install sounddevice"
        ) from e
    return sd


def format_input_devices(devices: Any, default_input: Optional[int] = None) -> str:
    """Render capture-capable devices as `id: name (channels, rate)`; `*` marks the default."""
    lines = []
    for idx, dev in enumerate(devices):
        channels = int(dev.get("max_input_channels", 0))
        if channels <= 0:
            continue
        mark = "*" if idx == default_input else " "
        rate = float(dev.get("default_samplerate", 0.0))
        lines.append(f"{mark}{idx:3d}: {dev.get('name', '?')} ({channels} ch, {rate:.0f} Hz)")
    return "\n".join(lines) if lines else "no input devices found"


class SoundDeviceMicSource:
    """
    Live microphone source using the `sounddevice` package (PortAudio).

    Yields PCM16 chunks of chunk_seconds each; one chunk is one segmenter tick.
    Chunk times come from the number of frames read, not the wall clock, so an
    overflow shows up in `overflows` rather than as a gap in the timeline.
    """

    def __init__(
        self,
        *,
        chunk_seconds: float = 0.1,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if chunk_seconds <= 0:
            raise ValueError("chunk_seconds must be > 0")
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels not in (1, 2):
            raise ValueError("channels must be 1 or 2")

        self.chunk_seconds = float(chunk_seconds)
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.device = device
        self.logger = logger
        self.overflows = 0
        self.frames_read = 0

    @property
    def frames_per_chunk(self) -> int:
        return max(1, int(round(self.chunk_seconds * self.sample_rate)))

    @staticmethod
    def list_devices() -> str:
        sd = _require_sounddevice()
        default_input = sd.default.device[0]
        return format_input_devices(sd.query_devices(), default_input)

    @contextlib.contextmanager
    def _open_stream(self):
        sd = _require_sounddevice()
        try:
            stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                device=self.device,
                blocksize=self.frames_per_chunk,
            )
        except Exception as e:
            raise MicError(
                "Failed to open microphone stream. "
                "Try --list-devices and select a device id with --device."
            ) from e

        with stream:
            yield stream

    def _note_overflow(self) -> None:
        self.overflows += 1
        if self.logger is not None:
            self.logger.warning(
                "mic_overflow",
                extra={"overflows": self.overflows, "t": round(self.frames_read / self.sample_rate, 3)},
            )

    def chunks(self, stop_event: threading.Event | None = None) -> Iterator[AudioChunk]:
        frames = self.frames_per_chunk
        duration = frames / self.sample_rate
        self.frames_read = 0

        with self._open_stream() as stream:
            while stop_event is None or not stop_event.is_set():
                data, overflowed = stream.read(frames)
                if overflowed:
                    self._note_overflow()

                start_time = self.frames_read / self.sample_rate
                self.frames_read += frames
                yield AudioChunk(
                    pcm16=bytes(data),
                    sample_rate=self.sample_rate,
                    channels=self.channels,
                    start_time=start_time,
                    duration=duration,
                )
