"""
In-process scheduler for the recurring task engine.

The scheduler is an ordinary object owned by the application (see
`regnskapdb.main`); nothing here is a module-level singleton. One daemon
thread wakes every `interval_seconds` and runs a tick. Manual triggers
from the admin routes share the same tick lock, so ticks never overlap
inside one process.
"""

from __future__ import annotations

import logging
import os
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Sequence

from sqlalchemy.orm import Session

from . import services

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = int(os.getenv("TASK_SCHEDULER_INTERVAL_SECONDS", "60"))


def scheduler_enabled() -> bool:
    return os.getenv("TASK_SCHEDULER_ENABLED", "true").strip().lower() not in {"0", "false", "no", "off"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecurringTaskScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        interval_seconds: int = DEFAULT_INTERVAL_SECONDS,
        clock: Callable[[], datetime] = _utcnow,
        on_generated: Optional[Callable[[Session, Sequence[services.GeneratedTask]], object]] = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._session_factory = session_factory
        self._interval = interval_seconds
        self._clock = clock
        self._on_generated = on_generated

        self._tick_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._last_run_at: Optional[datetime] = None
        self._next_check_at: Optional[datetime] = None
        self._last_result: Optional[dict] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        thread = self._thread
        return thread is not None and thread.is_alive() and not self._stop_event.is_set()

    def start(self) -> bool:
        """Start the background loop. Returns False when already running."""
        with self._state_lock:
            if self.is_running:
                return False
            self._stop_event = threading.Event()
            self._thread = threading.Thread(
                target=self._run_loop,
                args=(self._stop_event,),
                name="recurring-task-scheduler",
                daemon=True,
            )
            self._thread.start()
        logger.info("Recurring task scheduler started", extra={"interval_seconds": self._interval})
        return True

    def stop(self, timeout: Optional[float] = None) -> bool:
        """
        Cancel the pending wait. A tick already in flight runs to completion;
        `timeout` bounds how long to wait for it.
        """
        with self._state_lock:
            thread = self._thread
            if thread is None:
                return False
            self._stop_event.set()
            self._next_check_at = None
        if thread is not threading.current_thread():
            thread.join(timeout)
        with self._state_lock:
            if self._thread is thread and not thread.is_alive():
                self._thread = None
        logger.info("Recurring task scheduler stopped")
        return True

    def status(self) -> dict:
        with self._state_lock:
            return {
                "is_running": self.is_running,
                "interval_seconds": self._interval,
                "next_check_at": self._next_check_at,
                "last_run_at": self._last_run_at,
                "last_result": self._last_result,
            }

    # ------------------------------------------------------------------
    # Ticks
    # ------------------------------------------------------------------

    def trigger_now(self) -> services.TickResult:
        """Run one tick synchronously in the caller's thread. Errors propagate."""
        return self._tick()

    def _tick(self) -> services.TickResult:
        with self._tick_lock:
            now = self._clock()
            db = self._session_factory()
            try:
                result = services.process_recurring_tasks(db, now=now)
                if result.generated and self._on_generated is not None:
                    try:
                        self._on_generated(db, result.generated)
                    except Exception:
                        db.rollback()
                        logger.warning(
                            "Generated-task callback failed",
                            extra={"generated": len(result.generated)},
                            exc_info=True,
                        )
            finally:
                db.close()

            with self._state_lock:
                self._last_run_at = now
                self._last_result = result.to_dict()
            return result

    def _run_loop(self, stop_event: threading.Event) -> None:
        try:
            while not stop_event.is_set():
                try:
                    self._tick()
                except Exception:
                    logger.exception("Recurring task tick failed")
                if stop_event.is_set():
                    break
                with self._state_lock:
                    self._next_check_at = self._clock() + timedelta(seconds=self._interval)
                stop_event.wait(self._interval)
        finally:
            with self._state_lock:
                self._next_check_at = None
