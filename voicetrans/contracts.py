from __future__ import annotations

import os
from dataclasses import dataclass
from typing import ClassVar, Optional

STAGE_TRANSCRIPTION = "transcription"
STAGE_TRANSLATION = "translation"


@dataclass(frozen=True)
class AudioChunk:
    """
    Raw PCM16 audio chunk captured from a live source (e.g., microphone).
    pcm16: little-endian signed 16-bit PCM bytes (interleaved if channels > 1).
    """
    pcm16: bytes
    sample_rate: int
    channels: int
    start_time: float  # seconds since stream start
    duration: float    # seconds


@dataclass(frozen=True)
class AudioPayload:
    """
    Audio for one segment: either an in-memory PCM16 buffer or a file on disk.
    Exactly one of `pcm16` / `path` is set. An `owned` file is deleted on release().
    """
    pcm16: Optional[bytes] = None
    path: Optional[str] = None
    sample_rate: int = 16000
    channels: int = 1
    owned: bool = False

    def __post_init__(self) -> None:
        if (self.pcm16 is None) == (self.path is None):
            raise ValueError("exactly one of pcm16 or path must be set")
        if self.sample_rate <= 0:
            raise ValueError("sample_rate must be > 0")
        if self.channels <= 0:
            raise ValueError("channels must be > 0")

    @property
    def is_file(self) -> bool:
        return self.path is not None

    @property
    def duration_sec(self) -> float:
        if self.pcm16 is None:
            return 0.0
        bytes_per_second = self.sample_rate * self.channels * 2
        return len(self.pcm16) / float(bytes_per_second)

    def release(self) -> None:
        if self.path is None or not self.owned:
            return
        try:
            os.remove(self.path)
        except FileNotFoundError:
            pass


@dataclass(frozen=True)
class Segment:
    segment_id: str
    session_id: str
    payload: AudioPayload
    target_language: Optional[str] = None
    source_language_hint: Optional[str] = None
    created_at: float = 0.0
    duration_ms: float = 0.0


@dataclass(frozen=True)
class TranslationTask:
    task_id: str
    session_id: str
    segment_id: str
    text: str
    detected_source_language: Optional[str]
    target_language: str
    created_at: float = 0.0

    @classmethod
    def for_segment(
        cls,
        segment: Segment,
        text: str,
        detected_language: Optional[str],
        created_at: float,
    ) -> "TranslationTask":
        return cls(
            task_id=f"{segment.segment_id}_translation",
            session_id=segment.session_id,
            segment_id=segment.segment_id,
            text=text,
            detected_source_language=detected_language,
            target_language=str(segment.target_language),
            created_at=created_at,
        )


@dataclass(frozen=True)
class TranscriptionResult:
    text: str
    language: Optional[str] = None


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_lang: Optional[str] = None  # None = let the provider pick its default
    target_lang: str = "zh"


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    translated_text: str
    provider: str


# --- lifecycle events ---

@dataclass(frozen=True)
class SegmentStart:
    name: ClassVar[str] = "segment_start"
    segment_id: str


@dataclass(frozen=True)
class SegmentEnd:
    name: ClassVar[str] = "segment_end"
    segment_id: str
    duration_ms: float


@dataclass(frozen=True)
class SegmentTranscribed:
    name: ClassVar[str] = "segment_transcribed"
    session_id: str
    segment_id: str
    original_text: str
    detected_language: Optional[str]
    timestamp: float


@dataclass(frozen=True)
class SegmentTranslated:
    name: ClassVar[str] = "segment_translated"
    session_id: str
    segment_id: str
    original_text: str
    translated_text: str
    source_language: Optional[str]
    target_language: str
    timestamp: float


@dataclass(frozen=True)
class SegmentError:
    name: ClassVar[str] = "segment_error"
    session_id: str
    segment_id: str
    error: str
    stage: str  # STAGE_TRANSCRIPTION | STAGE_TRANSLATION


EVENT_NAMES: tuple[str, ...] = (
    SegmentStart.name,
    SegmentEnd.name,
    SegmentTranscribed.name,
    SegmentTranslated.name,
    SegmentError.name,
)
