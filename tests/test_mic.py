from __future__ import annotations

import contextlib
import logging
import threading

import pytest

from voicetrans.audio.mic import SoundDeviceMicSource, format_input_devices


class _FakeStream:
    def __init__(self, overflow_on: set[int]) -> None:
        self.reads = 0
        self.overflow_on = overflow_on

    def read(self, frames: int):
        self.reads += 1
        return b"\x00\x00" * frames, self.reads in self.overflow_on


def _with_stream(mic: SoundDeviceMicSource, stream: _FakeStream, monkeypatch) -> None:
    @contextlib.contextmanager
    def _open():
        yield stream

    monkeypatch.setattr(mic, "_open_stream", _open)


def test_chunks_follow_frame_timeline_and_count_overflows(monkeypatch, caplog) -> None:
    mic = SoundDeviceMicSource(chunk_seconds=0.1, sample_rate=16000, logger=logging.getLogger("mic_test"))
    _with_stream(mic, _FakeStream(overflow_on={2}), monkeypatch)

    with caplog.at_level(logging.WARNING, logger="mic_test"):
        gen = mic.chunks()
        chunks = [next(gen) for _ in range(3)]
        gen.close()

    assert [c.start_time for c in chunks] == [0.0, 0.1, 0.2]
    assert all(len(c.pcm16) == 1600 * 2 for c in chunks)
    assert all(c.duration == 0.1 for c in chunks)
    assert mic.overflows == 1
    assert any(r.getMessage() == "mic_overflow" for r in caplog.records)


def test_chunks_stop_when_event_set(monkeypatch) -> None:
    mic = SoundDeviceMicSource()
    stream = _FakeStream(overflow_on=set())
    _with_stream(mic, stream, monkeypatch)
    stop = threading.Event()

    seen = 0
    for _ in mic.chunks(stop):
        seen += 1
        if seen == 4:
            stop.set()
    assert seen == 4
    assert stream.reads == 4


def test_format_input_devices_skips_outputs_and_marks_default() -> None:
    devices = [
        {"name": "Speakers", "max_input_channels": 0, "default_samplerate": 48000.0},
        {"name": "USB Mic", "max_input_channels": 1, "default_samplerate": 16000.0},
        {"name": "Line In", "max_input_channels": 2, "default_samplerate": 44100.0},
    ]
    out = format_input_devices(devices, default_input=2)
    assert out.splitlines() == [
        "   1: USB Mic (1 ch, 16000 Hz)",
        "*  2: Line In (2 ch, 44100 Hz)",
    ]
    assert format_input_devices(devices[:1]) == "no input devices found"


@pytest.mark.parametrize(
    "kwargs",
    [{"chunk_seconds": 0}, {"sample_rate": -1}, {"channels": 3}],
)
def test_rejects_bad_settings(kwargs) -> None:
    with pytest.raises(ValueError):
        SoundDeviceMicSource(**kwargs)
