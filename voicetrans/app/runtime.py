from __future__ import annotations

import logging
import threading
import time
from typing import Any, Optional

from voicetrans.app.services import LiveServices, build_live_services
from voicetrans.contracts import (
    SegmentEnd,
    SegmentError,
    SegmentStart,
    SegmentTranscribed,
    SegmentTranslated,
)
from voicetrans.live.events import EventBus
from voicetrans.live.pipeline import SegmentPipeline
from voicetrans.live.session import LiveSegmentSession
from voicetrans.live.tracker import SegmentTracker


def _log_event(logger: logging.Logger | None, level: int, event: str, **fields: Any) -> None:
    if logger is None:
        return
    logger.log(level, event, extra=fields)


def format_event_line(event: Any) -> Optional[str]:
    if isinstance(event, SegmentTranscribed):
        if not event.original_text:
            return None
        lang = event.detected_language or "?"
        return f"[{event.segment_id}] {lang.upper()}: {event.original_text}"
    if isinstance(event, SegmentTranslated):
        return f"[{event.segment_id}] {event.target_language.upper()}: {event.translated_text}"
    if isinstance(event, SegmentError):
        return f"[{event.segment_id}] {event.stage} failed: {event.error}"
    return None


def _new_session_id() -> str:
    return f"session_{int(time.time() * 1000)}"


def _run_worker(
    args: Any,
    stop_event: threading.Event,
    logger: logging.Logger | None = None,
    services: LiveServices | None = None,
    session_id: str | None = None,
) -> dict[str, int | float]:
    services = services or build_live_services(args, logger=logger)
    bus = EventBus(logger)
    tracker = SegmentTracker()
    tracker.attach(bus)

    metrics_lock = threading.Lock()
    metrics: dict[str, int | float] = {
        "ticks": 0,
        "segments_started": 0,
        "segments_ended": 0,
        "transcribed": 0,
        "empty_transcripts": 0,
        "translated": 0,
        "errors": 0,
    }

    def _on_event(event: Any) -> None:
        key = None
        if isinstance(event, SegmentStart):
            key = "segments_started"
        elif isinstance(event, SegmentEnd):
            key = "segments_ended"
        elif isinstance(event, SegmentTranscribed):
            key = "transcribed" if event.original_text else "empty_transcripts"
        elif isinstance(event, SegmentTranslated):
            key = "translated"
        elif isinstance(event, SegmentError):
            key = "errors"
        if key is not None:
            with metrics_lock:
                metrics[key] = int(metrics[key]) + 1
        if args.print_console:
            line = format_event_line(event)
            if line:
                print(line)

    bus.subscribe_all(_on_event)

    pipeline = SegmentPipeline(
        transcriber=services.transcriber,
        translator=services.translator,
        bus=bus,
        max_concurrent_jobs=int(args.max_concurrent_jobs),
        poll_interval=max(10, int(args.poll_ms)) / 1000.0,
        logger=logger,
    )
    session = LiveSegmentSession(
        session_id=session_id or _new_session_id(),
        pipeline=pipeline,
        bus=bus,
        segmenter_config=services.segmenter_config,
        sample_rate=int(args.sr),
        channels=int(args.channels),
        target_language=args.target_language,
        source_language=args.source_language,
        tracker=tracker,
        spool_dir=args.spool_dir,
        logger=logger,
    )

    _log_event(
        logger,
        logging.INFO,
        "worker_start",
        session_id=session.session_id,
        translator=services.translator.name,
        transcriber=services.transcriber.name,
        model=str(args.model),
        sr=int(args.sr),
        chunk_sec=float(args.chunk_sec),
        max_concurrent_jobs=int(args.max_concurrent_jobs),
    )

    pipeline.start()
    session.start(0.0)
    chunks = services.mic.chunks(stop_event)
    try:
        for chunk in chunks:
            if stop_event.is_set():
                break
            level = session.feed(chunk)
            metrics["ticks"] = int(metrics["ticks"]) + 1
            if args.debug:
                _log_event(logger, logging.DEBUG, "energy_tick", t=round(chunk.start_time, 3), energy=round(level, 1))
    except KeyboardInterrupt:
        _log_event(logger, logging.INFO, "worker_keyboard_interrupt")
    finally:
        close_chunks = getattr(chunks, "close", None)
        if close_chunks is not None:
            close_chunks()
        session.stop()
        drained = pipeline.drain(float(args.drain_timeout_sec))
        if not drained:
            status = pipeline.get_queue_status()
            dropped_segments, dropped_tasks = pipeline.clear_queues()
            _log_event(
                logger,
                logging.WARNING,
                "drain_timeout",
                active=status.total_active,
                dropped_transcriptions=dropped_segments,
                dropped_translations=dropped_tasks,
            )
        pipeline.close()
        stop_event.set()
        with metrics_lock:
            snapshot = dict(metrics)
        _log_event(
            logger,
            logging.INFO,
            "worker_stop",
            session_id=session.session_id,
            drained=drained,
            states=tracker.counts(session.session_id),
            **snapshot,
        )
    return snapshot
