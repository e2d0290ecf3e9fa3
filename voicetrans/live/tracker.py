from __future__ import annotations

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

from voicetrans.contracts import (
    Segment,
    SegmentError,
    SegmentTranscribed,
    SegmentTranslated,
)
from voicetrans.live.events import EventBus


class SessionState(str, Enum):
    ACTIVE = "active"
    STOPPED = "stopped"


class SegmentState(str, Enum):
    RECORDING = "recording"
    QUEUED = "queued"
    TRANSCRIBED = "transcribed"
    COMPLETED = "completed"
    DISCARDED = "discarded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({SegmentState.COMPLETED, SegmentState.DISCARDED, SegmentState.FAILED})


@dataclass(frozen=True)
class SegmentRecord:
    session_id: str
    segment_id: str
    state: SegmentState
    counter: int
    target_language: Optional[str] = None
    duration_ms: float = 0.0
    original_text: str = ""
    translated_text: str = ""
    detected_language: Optional[str] = None
    error: Optional[str] = None
    error_stage: Optional[str] = None
    updated_at: float = 0.0

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


class SegmentTracker:
    """
    In-memory registry of sessions and their segments' lifecycle state.

    Fed by the live session (start/queue/end) and by pipeline events. Results for a
    stopped session are still recorded; use is_session_active() to ignore them.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._lock = threading.Lock()
        self._sessions: dict[str, SessionState] = {}
        self._segments: dict[tuple[str, str], SegmentRecord] = {}
        self._counters: dict[str, int] = {}
        self.clock = clock

    # --- sessions ---

    def open_session(self, session_id: str) -> None:
        with self._lock:
            self._sessions[session_id] = SessionState.ACTIVE
            self._counters.setdefault(session_id, 0)

    def close_session(self, session_id: str) -> None:
        with self._lock:
            if session_id in self._sessions:
                self._sessions[session_id] = SessionState.STOPPED

    def is_session_active(self, session_id: str) -> bool:
        with self._lock:
            return self._sessions.get(session_id) == SessionState.ACTIVE

    def session_state(self, session_id: str) -> Optional[SessionState]:
        with self._lock:
            return self._sessions.get(session_id)

    def forget_session(self, session_id: str) -> int:
        with self._lock:
            self._sessions.pop(session_id, None)
            self._counters.pop(session_id, None)
            keys = [k for k in self._segments if k[0] == session_id]
            for k in keys:
                del self._segments[k]
            return len(keys)

    # --- segments ---

    def segment_started(self, session_id: str, segment_id: str) -> SegmentRecord:
        with self._lock:
            counter = self._counters.get(session_id, 0) + 1
            self._counters[session_id] = counter
            record = SegmentRecord(
                session_id=session_id,
                segment_id=segment_id,
                state=SegmentState.RECORDING,
                counter=counter,
                updated_at=self.clock(),
            )
            self._segments[(session_id, segment_id)] = record
            return record

    def segment_queued(self, segment: Segment) -> SegmentRecord:
        return self._update(
            segment.session_id,
            segment.segment_id,
            state=SegmentState.QUEUED,
            target_language=segment.target_language,
            duration_ms=segment.duration_ms,
        )

    def segment_ended(self, session_id: str, segment_id: str, duration_ms: float) -> SegmentRecord:
        with self._lock:
            record = self._get_or_create_locked(session_id, segment_id)
            changes: dict[str, Any] = {"duration_ms": float(duration_ms), "updated_at": self.clock()}
            # Still RECORDING at the end means it never reached the pipeline.
            if record.state == SegmentState.RECORDING:
                changes["state"] = SegmentState.DISCARDED
            record = replace(record, **changes)
            self._segments[(session_id, segment_id)] = record
            return record

    def handle_event(self, event: Any) -> Optional[SegmentRecord]:
        if isinstance(event, SegmentTranscribed):
            with self._lock:
                record = self._get_or_create_locked(event.session_id, event.segment_id)
            ends_here = not event.original_text.strip() or not record.target_language
            return self._update(
                event.session_id,
                event.segment_id,
                state=SegmentState.COMPLETED if ends_here else SegmentState.TRANSCRIBED,
                original_text=event.original_text,
                detected_language=event.detected_language,
            )
        if isinstance(event, SegmentTranslated):
            return self._update(
                event.session_id,
                event.segment_id,
                state=SegmentState.COMPLETED,
                original_text=event.original_text,
                translated_text=event.translated_text,
            )
        if isinstance(event, SegmentError):
            return self._update(
                event.session_id,
                event.segment_id,
                state=SegmentState.FAILED,
                error=event.error,
                error_stage=event.stage,
            )
        return None

    def attach(self, bus: EventBus) -> Callable[[], None]:
        detachers = [
            bus.subscribe(SegmentTranscribed.name, self.handle_event),
            bus.subscribe(SegmentTranslated.name, self.handle_event),
            bus.subscribe(SegmentError.name, self.handle_event),
        ]

        def _detach() -> None:
            for fn in detachers:
                fn()

        return _detach

    # --- queries ---

    def get(self, session_id: str, segment_id: str) -> Optional[SegmentRecord]:
        with self._lock:
            return self._segments.get((session_id, segment_id))

    def segments(self, session_id: str) -> list[SegmentRecord]:
        with self._lock:
            out = [r for (sid, _), r in self._segments.items() if sid == session_id]
        return sorted(out, key=lambda r: r.counter)

    def counts(self, session_id: str) -> dict[str, int]:
        out = {state.value: 0 for state in SegmentState}
        for record in self.segments(session_id):
            out[record.state.value] += 1
        return out

    # --- internals ---

    def _get_or_create_locked(self, session_id: str, segment_id: str) -> SegmentRecord:
        record = self._segments.get((session_id, segment_id))
        if record is None:
            # Segments submitted outside a live session (e.g. text-only tasks).
            counter = self._counters.get(session_id, 0) + 1
            self._counters[session_id] = counter
            record = SegmentRecord(
                session_id=session_id,
                segment_id=segment_id,
                state=SegmentState.QUEUED,
                counter=counter,
            )
            self._segments[(session_id, segment_id)] = record
        return record

    def _update(self, session_id: str, segment_id: str, **changes: Any) -> SegmentRecord:
        with self._lock:
            record = self._get_or_create_locked(session_id, segment_id)
            record = replace(record, updated_at=self.clock(), **changes)
            self._segments[(session_id, segment_id)] = record
            return record
