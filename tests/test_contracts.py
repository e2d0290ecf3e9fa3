from __future__ import annotations

import wave
from pathlib import Path

import pytest

from voicetrans.audio.wav import spool_to_wav
from voicetrans.contracts import AudioPayload, Segment, TranslationTask


def test_payload_needs_exactly_one_source() -> None:
    with pytest.raises(ValueError):
        AudioPayload()
    with pytest.raises(ValueError):
        AudioPayload(pcm16=b"", path="x.wav")
    assert AudioPayload(pcm16=b"\x00\x00" * 16000).duration_sec == pytest.approx(1.0)


def test_release_only_deletes_owned_files(tmp_path: Path) -> None:
    kept = tmp_path / "kept.wav"
    kept.write_bytes(b"RIFF")
    AudioPayload(path=str(kept)).release()
    assert kept.exists()

    owned = AudioPayload(path=str(kept), owned=True)
    owned.release()
    assert not kept.exists()
    owned.release()


def test_spool_to_wav_writes_readable_file(tmp_path: Path) -> None:
    payload = AudioPayload(pcm16=b"\x01\x00" * 320, sample_rate=16000, channels=1)
    spooled = spool_to_wav(payload, tmp_path / "out", "s1_segment_0_1")
    assert spooled.owned
    with wave.open(spooled.path, "rb") as wf:
        assert wf.getnframes() == 320
        assert wf.getsampwidth() == 2
    assert spool_to_wav(spooled, tmp_path, "again") is spooled


def test_translation_task_for_segment() -> None:
    seg = Segment(
        segment_id="segment_100_2",
        session_id="s1",
        payload=AudioPayload(pcm16=b""),
        target_language="zh",
    )
    task = TranslationTask.for_segment(seg, "hello", "en", created_at=3.0)
    assert task.task_id == "segment_100_2_translation"
    assert task.detected_source_language == "en"
    assert task.target_language == "zh"
    assert task.created_at == 3.0
