from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Deque, Generic, Optional, TypeVar

from voicetrans.asr.base import Transcriber
from voicetrans.contracts import (
    STAGE_TRANSCRIPTION,
    STAGE_TRANSLATION,
    Segment,
    SegmentError,
    SegmentTranscribed,
    SegmentTranslated,
    TranslationRequest,
    TranslationTask,
)
from voicetrans.live.events import EventBus
from voicetrans.nlp.translator.base import Translator

T = TypeVar("T")


@dataclass(frozen=True)
class QueueStatus:
    pending_transcription: int
    pending_translation: int
    active_transcriptions: int
    active_translations: int

    @property
    def total_active(self) -> int:
        return self.active_transcriptions + self.active_translations


class PipelineQueue(Generic[T]):
    """
    FIFO of pending items plus the set of in-flight ones, capped at max_concurrent_jobs.

    Not locked on its own: the owning pipeline serializes every call under one lock.
    In-flight entries are keyed by a job number, so a re-submitted id gets its own slot.
    """

    def __init__(self, stage: str, max_concurrent_jobs: int) -> None:
        if int(max_concurrent_jobs) <= 0:
            raise ValueError("max_concurrent_jobs must be > 0")
        self.stage = stage
        self.max_concurrent_jobs = int(max_concurrent_jobs)
        self._pending: Deque[T] = deque()
        self._in_flight: dict[int, T] = {}
        self._next_job = 0

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    @property
    def active_count(self) -> int:
        return len(self._in_flight)

    @property
    def is_idle(self) -> bool:
        return not self._pending and not self._in_flight

    def push(self, item: T) -> None:
        self._pending.append(item)

    def take_ready(self) -> list[tuple[int, T]]:
        started: list[tuple[int, T]] = []
        while self._pending and len(self._in_flight) < self.max_concurrent_jobs:
            item = self._pending.popleft()
            self._next_job += 1
            self._in_flight[self._next_job] = item
            started.append((self._next_job, item))
        return started

    def finish(self, job_no: int) -> Optional[T]:
        return self._in_flight.pop(job_no, None)

    def clear_pending(self) -> list[T]:
        dropped = list(self._pending)
        self._pending.clear()
        return dropped


def _log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


def _error_text(exc: BaseException) -> str:
    return str(exc).strip() or exc.__class__.__name__


class SegmentPipeline:
    """
    Two-stage segment pipeline: transcription, then translation.

    Each stage owns a PipelineQueue; up to max_concurrent_jobs jobs per stage run at
    once on their own worker threads, so external calls can reach twice that number.
    Dispatch happens on every enqueue and every job completion; start() adds a
    periodic safety-net dispatcher. Every capability failure is turned into a
    SegmentError event at the job boundary and never reaches the dispatcher.

    Completion order is only guaranteed to match submission order when
    max_concurrent_jobs == 1. Correlate results by (session_id, segment_id).
    """

    def __init__(
        self,
        *,
        transcriber: Transcriber,
        translator: Translator,
        bus: EventBus,
        max_concurrent_jobs: int = 3,
        poll_interval: float = 0.1,
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        if poll_interval <= 0:
            raise ValueError("poll_interval must be > 0")
        self.transcriber = transcriber
        self.translator = translator
        self.bus = bus
        self.max_concurrent_jobs = int(max_concurrent_jobs)
        self.poll_interval = float(poll_interval)
        self.clock = clock
        self.logger = logger

        self._cond = threading.Condition()
        self._transcriptions: PipelineQueue[Segment] = PipelineQueue(
            STAGE_TRANSCRIPTION, self.max_concurrent_jobs
        )
        self._translations: PipelineQueue[TranslationTask] = PipelineQueue(
            STAGE_TRANSLATION, self.max_concurrent_jobs
        )
        self._ticker: threading.Thread | None = None
        self._ticker_stop = threading.Event()

    # --- lifecycle ---

    def start(self) -> None:
        with self._cond:
            if self._ticker is not None:
                return
            self._ticker_stop.clear()
            self._ticker = threading.Thread(
                target=self._tick_loop,
                name="voicetrans-dispatch",
                daemon=True,
            )
            self._ticker.start()

    def close(self, timeout: float | None = None) -> None:
        """Stop the safety-net dispatcher. Jobs already running finish on their own."""
        self._ticker_stop.set()
        with self._cond:
            ticker = self._ticker
            self._ticker = None
        if ticker is not None:
            ticker.join(timeout)

    def __enter__(self) -> "SegmentPipeline":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.close()

    def _tick_loop(self) -> None:
        while not self._ticker_stop.wait(self.poll_interval):
            self._dispatch()

    # --- submission ---

    def submit(self, segment: Segment) -> None:
        with self._cond:
            self._transcriptions.push(segment)
            depth = self._transcriptions.pending_count
        _log_event(
            self.logger,
            logging.INFO,
            "segment_enqueued",
            session_id=segment.session_id,
            segment_id=segment.segment_id,
            queue_depth=depth,
        )
        self._dispatch()

    def submit_translation(self, task: TranslationTask) -> None:
        with self._cond:
            self._translations.push(task)
            depth = self._translations.pending_count
        _log_event(
            self.logger,
            logging.INFO,
            "translation_enqueued",
            session_id=task.session_id,
            segment_id=task.segment_id,
            task_id=task.task_id,
            queue_depth=depth,
        )
        self._dispatch()

    # --- observability ---

    def get_queue_status(self) -> QueueStatus:
        with self._cond:
            return QueueStatus(
                pending_transcription=self._transcriptions.pending_count,
                pending_translation=self._translations.pending_count,
                active_transcriptions=self._transcriptions.active_count,
                active_translations=self._translations.active_count,
            )

    def _idle_locked(self) -> bool:
        return self._transcriptions.is_idle and self._translations.is_idle

    def drain(self, timeout: float | None = None) -> bool:
        """Block until nothing is pending or in flight. Returns False on timeout."""
        with self._cond:
            return self._cond.wait_for(self._idle_locked, timeout=timeout)

    def clear_queues(self) -> tuple[int, int]:
        """Drop pending work in both stages. In-flight jobs are left to finish."""
        with self._cond:
            dropped_segments = self._transcriptions.clear_pending()
            dropped_tasks = self._translations.clear_pending()
            self._cond.notify_all()
        for segment in dropped_segments:
            segment.payload.release()
        _log_event(
            self.logger,
            logging.WARNING,
            "queue_cleared",
            dropped_transcriptions=len(dropped_segments),
            dropped_translations=len(dropped_tasks),
        )
        return len(dropped_segments), len(dropped_tasks)

    # --- dispatch ---

    def _dispatch(self) -> None:
        with self._cond:
            transcriptions = self._transcriptions.take_ready()
            translations = self._translations.take_ready()
        for job_no, segment in transcriptions:
            self._spawn(self._run_transcription, STAGE_TRANSCRIPTION, job_no, segment)
        for job_no, task in translations:
            self._spawn(self._run_translation, STAGE_TRANSLATION, job_no, task)

    def _spawn(self, target: Callable[[int, Any], None], stage: str, job_no: int, item: Any) -> None:
        threading.Thread(
            target=target,
            args=(job_no, item),
            name=f"voicetrans-{stage}-{job_no}",
            daemon=True,
        ).start()

    def _finish(self, queue: PipelineQueue[Any], job_no: int) -> None:
        with self._cond:
            queue.finish(job_no)
            self._cond.notify_all()
        self._dispatch()

    def _fail(self, session_id: str, segment_id: str, stage: str, exc: BaseException, ms: float) -> None:
        if self.logger is not None:
            self.logger.warning(
                "job_failed",
                exc_info=exc,
                extra={
                    "session_id": session_id,
                    "segment_id": segment_id,
                    "stage": stage,
                    "ms": round(ms, 2),
                },
            )
        self.bus.emit(
            SegmentError(
                session_id=session_id,
                segment_id=segment_id,
                error=_error_text(exc),
                stage=stage,
            )
        )

    # --- jobs ---

    def _run_transcription(self, job_no: int, segment: Segment) -> None:
        t0 = time.perf_counter()
        _log_event(
            self.logger,
            logging.INFO,
            "job_started",
            stage=STAGE_TRANSCRIPTION,
            session_id=segment.session_id,
            segment_id=segment.segment_id,
        )
        try:
            try:
                try:
                    result = self.transcriber.transcribe(segment.payload, segment.source_language_hint)
                finally:
                    segment.payload.release()
            except Exception as e:
                self._fail(
                    segment.session_id,
                    segment.segment_id,
                    STAGE_TRANSCRIPTION,
                    e,
                    (time.perf_counter() - t0) * 1000.0,
                )
                return

            text = (result.text or "").strip()
            _log_event(
                self.logger,
                logging.INFO,
                "job_done",
                stage=STAGE_TRANSCRIPTION,
                session_id=segment.session_id,
                segment_id=segment.segment_id,
                chars=len(text),
                language=result.language,
                ms=round((time.perf_counter() - t0) * 1000.0, 2),
            )
            self.bus.emit(
                SegmentTranscribed(
                    session_id=segment.session_id,
                    segment_id=segment.segment_id,
                    original_text=text,
                    detected_language=result.language,
                    timestamp=segment.created_at,
                )
            )
            if text and segment.target_language:
                self.submit_translation(
                    TranslationTask.for_segment(segment, text, result.language, self.clock())
                )
        finally:
            self._finish(self._transcriptions, job_no)

    def _run_translation(self, job_no: int, task: TranslationTask) -> None:
        t0 = time.perf_counter()
        _log_event(
            self.logger,
            logging.INFO,
            "job_started",
            stage=STAGE_TRANSLATION,
            session_id=task.session_id,
            segment_id=task.segment_id,
        )
        try:
            try:
                res = self.translator.translate(
                    TranslationRequest(
                        text=task.text,
                        source_lang=task.detected_source_language,
                        target_lang=task.target_language,
                    )
                )
                translated = str(getattr(res, "translated_text", None) or "")
            except Exception as e:
                self._fail(
                    task.session_id,
                    task.segment_id,
                    STAGE_TRANSLATION,
                    e,
                    (time.perf_counter() - t0) * 1000.0,
                )
                return

            _log_event(
                self.logger,
                logging.INFO,
                "job_done",
                stage=STAGE_TRANSLATION,
                session_id=task.session_id,
                segment_id=task.segment_id,
                chars=len(translated),
                ms=round((time.perf_counter() - t0) * 1000.0, 2),
            )
            self.bus.emit(
                SegmentTranslated(
                    session_id=task.session_id,
                    segment_id=task.segment_id,
                    original_text=task.text,
                    translated_text=translated,
                    source_language=task.detected_source_language,
                    target_language=task.target_language,
                    timestamp=task.created_at,
                )
            )
        finally:
            self._finish(self._translations, job_no)
