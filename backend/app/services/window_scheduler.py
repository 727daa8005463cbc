"""Daily automatic window opening."""

from __future__ import annotations

import threading
from collections.abc import Sequence
from datetime import datetime, time, timedelta, timezone
from typing import Callable

from loguru import logger

from .window_arbiter import WindowArbiter, utcnow


def _parse_times(entries: Sequence[str]) -> list[time]:
    parsed: list[time] = []
    for entry in entries:
        hours, minutes = entry.split(":", 1)
        parsed.append(time(int(hours), int(minutes), tzinfo=timezone.utc))
    return sorted(set(parsed))


def next_run_after(now: datetime, schedule: Sequence[time]) -> datetime | None:
    """Return the first scheduled UTC instant strictly after ``now``."""

    if not schedule:
        return None
    now = now.astimezone(timezone.utc)
    for day_offset in (0, 1):
        day = (now + timedelta(days=day_offset)).date()
        for slot in schedule:
            candidate = datetime.combine(day, slot)
            if candidate > now:
                return candidate
    return None


class WindowScheduler:
    """Background thread that opens a window at each configured time of day."""

    def __init__(
        self,
        arbiter: WindowArbiter,
        *,
        times: Sequence[str],
        window_seconds: int,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._arbiter = arbiter
        self._schedule = _parse_times(times)
        self._window_seconds = window_seconds
        self._clock = clock
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def schedule(self) -> list[time]:
        return list(self._schedule)

    def next_run(self) -> datetime | None:
        return next_run_after(self._clock(), self._schedule)

    def fire(self) -> None:
        self._arbiter.open_window(self._window_seconds)
        logger.info("Auto-opened window for {}s", self._window_seconds)

    def start(self) -> None:
        if not self._schedule:
            logger.warning("Window scheduler has no configured times; not starting")
            return
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="window-scheduler", daemon=True)
        self._thread.start()
        logger.info(
            "Window scheduler started for {} UTC",
            ", ".join(slot.strftime("%H:%M") for slot in self._schedule),
        )

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None

    def _run(self) -> None:
        after = self._clock()
        while not self._stop.is_set():
            # Anchor on the previous slot so an early wake-up cannot fire it twice.
            target = next_run_after(max(after, self._clock()), self._schedule)
            if target is None:
                return
            after = target
            delay = max(0.0, (target - self._clock()).total_seconds())
            logger.debug("Next scheduled window at {}", target.isoformat())
            if self._stop.wait(delay):
                return
            try:
                self.fire()
            except Exception:
                logger.exception("Scheduled window opening failed")


__all__ = ["WindowScheduler", "next_run_after"]
