from __future__ import annotations

import logging
import threading
import traceback

from voicetrans.app.config import resolve_args
from voicetrans.app.diagnostics import hint_for_exception, summarize_exception
from voicetrans.app.logging_setup import setup_app_logger
from voicetrans.app.runtime import _run_worker
from voicetrans.audio.mic import SoundDeviceMicSource


def main(argv: list[str] | None = None) -> int:
    args = resolve_args(argv)
    logger, _log_dir, log_path = setup_app_logger(level=logging.DEBUG if args.debug else logging.INFO)
    logger.info("app_start", extra={"config_path": str(getattr(args, "config", "")), "argv": argv or []})

    if args.list_devices:
        print(SoundDeviceMicSource.list_devices())
        return 0

    stop_event = threading.Event()
    errors: list[str] = []

    def _worker_entry() -> None:
        try:
            _run_worker(args, stop_event, logger=logger)
        except Exception:
            errors.append(traceback.format_exc())
            logger.exception("worker_crash")

    worker = threading.Thread(target=_worker_entry, name="voicetrans-live-worker", daemon=True)
    print("VoiceTrans listening. Press Ctrl+C to stop.")
    print(f"Logs: {log_path}")
    worker.start()
    try:
        while worker.is_alive():
            worker.join(0.2)
    except KeyboardInterrupt:
        logger.info("app_interrupt")
        print("Stopping, finishing queued segments...")
        stop_event.set()
        # Second Ctrl+C abandons the drain.
        try:
            worker.join(float(args.drain_timeout_sec) + 5.0)
        except KeyboardInterrupt:
            logger.warning("app_abandon_drain")

    if errors:
        summary = summarize_exception(errors[-1])
        print(f"Live worker crashed: {summary}")
        print(f"Hint: {hint_for_exception(summary)}")
        print(f"Logs: {log_path}")
        return 1
    logger.info("app_quit")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
