from __future__ import annotations

import logging
import math
from dataclasses import dataclass, fields as dataclass_fields
from enum import Enum
from typing import Any, Callable, Optional

from voicetrans.contracts import AudioPayload

REASON_PAUSE = "pause"
REASON_MAX_DURATION = "max_duration"
REASON_STOP = "stop"


class SegmenterPhase(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"


@dataclass(frozen=True)
class SegmenterConfig:
    silence_threshold: float = 30.0      # energy units, 0..255 analyser scale
    pause_detection_ms: float = 800.0
    min_segment_ms: float = 1000.0
    max_segment_ms: float = 30000.0
    consecutive_silence_frames: int = 8

    def __post_init__(self) -> None:
        for f in dataclass_fields(self):
            value = getattr(self, f.name)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValueError(f"{f.name} must be a number")
            if math.isnan(value) or value <= 0:
                raise ValueError(f"{f.name} must be > 0")
        if int(self.consecutive_silence_frames) != self.consecutive_silence_frames:
            raise ValueError("consecutive_silence_frames must be a whole number")
        if self.max_segment_ms < self.min_segment_ms:
            raise ValueError("max_segment_ms must be >= min_segment_ms")


@dataclass
class SegmenterState:
    is_voice_active: bool = False
    silence_frame_count: int = 0
    current_segment_started_at: Optional[float] = None
    last_voice_at: Optional[float] = None
    segment_counter: int = 0
    segment_id: Optional[str] = None


def _log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


class VoiceActivitySegmenter:
    """
    Energy-driven utterance segmenter for one recording session.

    Feed one energy sample per tick via on_energy_sample(). A segment opens on the
    first voiced tick and closes either after a pause (silence established, minimum
    length reached, no voice for pause_detection_ms) or at the max_segment_ms ceiling.
    Closed segments shorter than min_segment_ms are dropped without on_segment_ready.
    on_voice_detected / on_silence_detected fire only when voice activity flips.

    Not thread-safe: drive it from a single loop.
    """

    def __init__(
        self,
        cfg: SegmenterConfig | None = None,
        *,
        sample_rate: int = 16000,
        channels: int = 1,
        on_segment_start: Callable[[str], None] | None = None,
        on_segment_ready: Callable[[AudioPayload, str, float], None] | None = None,
        on_segment_end: Callable[[str, float], None] | None = None,
        on_voice_detected: Callable[[float], None] | None = None,
        on_silence_detected: Callable[[float], None] | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if channels <= 0:
            raise ValueError("channels must be > 0")
        self.cfg = cfg or SegmenterConfig()
        self.sample_rate = int(sample_rate)
        self.channels = int(channels)
        self.on_segment_start = on_segment_start
        self.on_segment_ready = on_segment_ready
        self.on_segment_end = on_segment_end
        self.on_voice_detected = on_voice_detected
        self.on_silence_detected = on_silence_detected
        self.logger = logger

        self.state = SegmenterState()
        self._active = False
        self._parts: list[bytes] = []

    @property
    def is_active(self) -> bool:
        return self._active

    @property
    def phase(self) -> SegmenterPhase:
        if self.state.current_segment_started_at is None:
            return SegmenterPhase.IDLE
        return SegmenterPhase.RECORDING

    def start(self, now_ms: float = 0.0) -> None:
        if self._active:
            return
        self.state = SegmenterState()
        self._parts = []
        self._active = True
        _log_event(self.logger, logging.INFO, "segmenter_start", now_ms=float(now_ms))

    def stop(self, now_ms: float) -> None:
        if not self._active:
            return
        if self.state.current_segment_started_at is not None:
            self._close_segment(float(now_ms), REASON_STOP)
        self._active = False
        self.state.is_voice_active = False
        self.state.silence_frame_count = 0
        _log_event(
            self.logger,
            logging.INFO,
            "segmenter_stop",
            now_ms=float(now_ms),
            segments=self.state.segment_counter,
        )

    def on_energy_sample(self, sample: float, now_ms: float, audio: bytes = b"") -> None:
        if not self._active:
            return
        now = float(now_ms)
        st = self.state

        voice_started = silence_started = False
        if float(sample) > self.cfg.silence_threshold:
            st.silence_frame_count = 0
            if st.current_segment_started_at is None:
                self._open_segment(now)
            voice_started = not st.is_voice_active
            st.is_voice_active = True
            st.last_voice_at = now
        else:
            st.silence_frame_count += 1
            if st.is_voice_active and st.silence_frame_count >= self.cfg.consecutive_silence_frames:
                st.is_voice_active = False
                silence_started = True

        if st.current_segment_started_at is not None:
            if audio:
                self._parts.append(bytes(audio))
            if now - st.current_segment_started_at >= self.cfg.max_segment_ms:
                self._close_segment(now, REASON_MAX_DURATION)
            elif not st.is_voice_active and self._pause_reached(now):
                self._close_segment(now, REASON_PAUSE)

        # Fired after any close so listeners see the segment state of this tick.
        if voice_started and self.on_voice_detected is not None:
            self.on_voice_detected(now)
        if silence_started and self.on_silence_detected is not None:
            self.on_silence_detected(now)

    def status(self, now_ms: float | None = None) -> dict[str, Any]:
        st = self.state
        duration = 0.0
        if now_ms is not None and st.current_segment_started_at is not None:
            duration = max(0.0, float(now_ms) - st.current_segment_started_at)
        return {
            "is_active": self._active,
            "phase": self.phase.value,
            "current_segment_id": st.segment_id,
            "segment_duration_ms": duration,
            "segment_counter": st.segment_counter,
            "is_voice_active": st.is_voice_active,
            "silence_frame_count": st.silence_frame_count,
        }

    def _pause_reached(self, now: float) -> bool:
        st = self.state
        if st.current_segment_started_at is None or st.last_voice_at is None:
            return False
        return (
            now - st.current_segment_started_at >= self.cfg.min_segment_ms
            and now - st.last_voice_at >= self.cfg.pause_detection_ms
        )

    def _open_segment(self, now: float) -> None:
        st = self.state
        st.segment_counter += 1
        st.segment_id = f"segment_{int(now)}_{st.segment_counter}"
        st.current_segment_started_at = now
        st.last_voice_at = now
        self._parts = []
        _log_event(self.logger, logging.DEBUG, "segment_opened", segment_id=st.segment_id, now_ms=now)
        if self.on_segment_start is not None:
            self.on_segment_start(st.segment_id)

    def _reset_segment(self) -> None:
        st = self.state
        st.segment_id = None
        st.current_segment_started_at = None
        st.last_voice_at = None
        st.is_voice_active = False
        st.silence_frame_count = 0
        self._parts = []

    def _close_segment(self, now: float, reason: str) -> None:
        st = self.state
        if st.segment_id is None or st.current_segment_started_at is None:
            return
        segment_id = st.segment_id
        # A late tick or a late stop() must not stretch a segment past the ceiling.
        duration_ms = min(now - st.current_segment_started_at, self.cfg.max_segment_ms)
        pcm16 = b"".join(self._parts)
        voice_continues = reason == REASON_MAX_DURATION and st.is_voice_active
        self._reset_segment()

        if duration_ms < self.cfg.min_segment_ms:
            _log_event(
                self.logger,
                logging.DEBUG,
                "segment_discarded",
                segment_id=segment_id,
                reason=reason,
                duration_ms=duration_ms,
            )
        else:
            payload = AudioPayload(
                pcm16=pcm16,
                sample_rate=self.sample_rate,
                channels=self.channels,
            )
            _log_event(
                self.logger,
                logging.INFO,
                "segment_ready",
                segment_id=segment_id,
                reason=reason,
                duration_ms=duration_ms,
                bytes=len(pcm16),
            )
            if self.on_segment_ready is not None:
                self.on_segment_ready(payload, segment_id, duration_ms)

        if self.on_segment_end is not None:
            self.on_segment_end(segment_id, duration_ms)

        if voice_continues:
            self._open_segment(now)
            self.state.is_voice_active = True
