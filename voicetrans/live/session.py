from __future__ import annotations

import logging
import os
import re
import time
from typing import Any, Callable, Optional

from voicetrans.asr.languages import normalize_language_hint
from voicetrans.audio.energy import analyser_level
from voicetrans.audio.segmenter import SegmenterConfig, VoiceActivitySegmenter
from voicetrans.audio.wav import spool_to_wav
from voicetrans.contracts import AudioChunk, AudioPayload, Segment, SegmentEnd, SegmentStart
from voicetrans.live.events import EventBus
from voicetrans.live.pipeline import SegmentPipeline
from voicetrans.live.tracker import SegmentTracker

_UNSAFE_FILENAME = re.compile(r"[^A-Za-z0-9_.-]+")


def _log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


class LiveSegmentSession:
    """
    One recording session: audio chunks -> energy level -> segmenter -> pipeline.

    Chunk stream time drives the segmenter clock, so a session replays the same way
    from recorded chunks as from a live microphone. stop() halts segmentation and
    flushes the open segment; jobs already handed to the pipeline keep running.
    """

    def __init__(
        self,
        *,
        session_id: str,
        pipeline: SegmentPipeline,
        bus: EventBus,
        segmenter_config: SegmenterConfig | None = None,
        sample_rate: int = 16000,
        channels: int = 1,
        target_language: Optional[str] = "zh",
        source_language: Optional[str] = None,
        tracker: SegmentTracker | None = None,
        spool_dir: str | os.PathLike[str] | None = None,
        fft_size: int = 256,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self.session_id = session_id
        self.pipeline = pipeline
        self.bus = bus
        self.tracker = tracker
        self.target_language = (target_language or "").strip().lower() or None
        self.source_language = normalize_language_hint(source_language)
        self.spool_dir = spool_dir
        self.fft_size = int(fft_size)
        self.clock = clock
        self.logger = logger
        self.segments_submitted = 0
        self._last_now_ms = 0.0

        self.segmenter = VoiceActivitySegmenter(
            segmenter_config,
            sample_rate=sample_rate,
            channels=channels,
            on_segment_start=self._on_segment_start,
            on_segment_ready=self._on_segment_ready,
            on_segment_end=self._on_segment_end,
            logger=logger,
        )

    @property
    def is_active(self) -> bool:
        return self.segmenter.is_active

    def start(self, now_ms: float = 0.0) -> None:
        if self.segmenter.is_active:
            return
        if self.tracker is not None:
            self.tracker.open_session(self.session_id)
        self._last_now_ms = float(now_ms)
        self.segmenter.start(now_ms)
        _log_event(
            self.logger,
            logging.INFO,
            "session_start",
            session_id=self.session_id,
            target_language=self.target_language,
            source_language=self.source_language,
        )

    def feed(self, chunk: AudioChunk) -> float:
        level = analyser_level(chunk.pcm16, channels=chunk.channels, fft_size=self.fft_size)
        self.feed_level(level, chunk.start_time * 1000.0, chunk.pcm16)
        return level

    def feed_level(self, level: float, now_ms: float, audio: bytes = b"") -> None:
        self._last_now_ms = float(now_ms)
        self.segmenter.on_energy_sample(level, now_ms, audio)

    def stop(self, now_ms: float | None = None) -> None:
        if not self.segmenter.is_active:
            return
        now = self._last_now_ms if now_ms is None else float(now_ms)
        self.segmenter.stop(now)
        if self.tracker is not None:
            self.tracker.close_session(self.session_id)
        _log_event(
            self.logger,
            logging.INFO,
            "session_stop",
            session_id=self.session_id,
            segments_submitted=self.segments_submitted,
        )

    def _on_segment_start(self, segment_id: str) -> None:
        if self.tracker is not None:
            self.tracker.segment_started(self.session_id, segment_id)
        self.bus.emit(SegmentStart(segment_id=segment_id))

    def _on_segment_ready(self, payload: AudioPayload, segment_id: str, duration_ms: float) -> None:
        if self.spool_dir is not None:
            stem = _UNSAFE_FILENAME.sub("_", f"{self.session_id}_{segment_id}")
            try:
                payload = spool_to_wav(payload, self.spool_dir, stem)
            except OSError as e:
                # keep the in-memory buffer; the segment is still transcribed
                _log_event(
                    self.logger,
                    logging.WARNING,
                    "segment_spool_failed",
                    session_id=self.session_id,
                    segment_id=segment_id,
                    spool_dir=str(self.spool_dir),
                    err=f"{type(e).__name__}: {e}",
                )
        segment = Segment(
            segment_id=segment_id,
            session_id=self.session_id,
            payload=payload,
            target_language=self.target_language,
            source_language_hint=self.source_language,
            created_at=self.clock(),
            duration_ms=float(duration_ms),
        )
        if self.tracker is not None:
            self.tracker.segment_queued(segment)
        self.pipeline.submit(segment)
        self.segments_submitted += 1

    def _on_segment_end(self, segment_id: str, duration_ms: float) -> None:
        if self.tracker is not None:
            self.tracker.segment_ended(self.session_id, segment_id, duration_ms)
        self.bus.emit(SegmentEnd(segment_id=segment_id, duration_ms=float(duration_ms)))
