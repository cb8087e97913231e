"""Background thread that drives the countdown of the active test."""

from __future__ import annotations

import logging
from threading import Event, Thread

from review_app.constants.test_constants import TICK_INTERVAL_SECONDS
from review_app.core.study_manager import StudyManager

logger = logging.getLogger(__name__)


class SessionTicker:
    """Calls ``StudyManager.advance_clock`` at a fixed interval until stopped."""

    def __init__(self, manager: StudyManager, interval_seconds: float = TICK_INTERVAL_SECONDS) -> None:
        if interval_seconds <= 0:
            raise ValueError("Tick interval must be positive.")
        self._manager = manager
        self._interval = interval_seconds
        self._stop = Event()
        self._thread: Thread | None = None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="SessionTicker", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            review = self._manager.advance_clock()
            if review is not None:
                logger.info(
                    "Time ran out; test %s submitted with score %d/%d",
                    review.result.id,
                    review.result.score,
                    review.result.total_questions,
                )
