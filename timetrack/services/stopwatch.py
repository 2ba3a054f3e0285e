"""
Stopwatch bound to one selected client.

States: IDLE (nothing accumulated), PAUSED (idle with elapsed > 0), RUNNING.
While running, a ticker thread adds one second per interval. Leaving the
`with Stopwatch(...)` block, or calling close(), cancels the ticker.
"""

import threading
import weakref
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from loguru import logger

from timetrack.config import TICK_INTERVAL_SECONDS
from timetrack.errors import ValidationError
from timetrack.services.tracker_store import Notifier, log_notify
from timetrack.utils.duration import format_hms, seconds_to_hours


class StopwatchState(str, Enum):
    IDLE = "idle"
    PAUSED = "paused"
    RUNNING = "running"


@dataclass(frozen=True)
class LastSession:
    client_id: str
    hours: float


class _Ticker(threading.Thread):
    """
    Holds its stopwatch weakly: a stopwatch dropped without close(), e.g. with an
    expired browser session, is collected and its ticker exits on the next wake.
    """

    def __init__(self, interval: float, on_tick: Callable[["_Ticker"], None]):
        super().__init__(daemon=True, name="timetrack-stopwatch")
        self._interval = interval
        self._on_tick = weakref.WeakMethod(on_tick)
        self._stopped = threading.Event()

    def run(self) -> None:
        while not self._stopped.wait(self._interval):
            if not self._fire():
                return

    def _fire(self) -> bool:
        on_tick = self._on_tick()
        if on_tick is None:
            return False
        on_tick(self)
        return True

    def cancel(self) -> None:
        self._stopped.set()


class Stopwatch:
    def __init__(
        self,
        on_save: Callable[[str, float, str], object],
        notify: Optional[Notifier] = None,
        interval: float = TICK_INTERVAL_SECONDS,
    ):
        """
        Args:
            on_save: called as on_save(client_id, hours, description) when a run is saved,
                typically TrackerStore.add_time_session
            notify: user-facing reporter, notify(level, title, message)
            interval: seconds between ticks
        """
        self._on_save = on_save
        self._notify = notify or log_notify
        self._interval = interval
        self._lock = threading.RLock()
        self._seconds = 0
        self._ticker: Optional[_Ticker] = None
        self._tick_listeners: list[Callable[[int], None]] = []
        self.client_id: Optional[str] = None
        self.last_session: Optional[LastSession] = None

    def __enter__(self) -> "Stopwatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # -----------------------------
    # Observation
    # -----------------------------
    @property
    def state(self) -> StopwatchState:
        if self._ticker is not None:
            return StopwatchState.RUNNING
        if self._seconds > 0:
            return StopwatchState.PAUSED
        return StopwatchState.IDLE

    @property
    def running(self) -> bool:
        return self._ticker is not None

    @property
    def elapsed(self) -> int:
        return self._seconds

    @property
    def display(self) -> str:
        return format_hms(self._seconds)

    def on_tick(self, listener: Callable[[int], None]) -> None:
        """`listener(elapsed_seconds)` runs on every tick and on reset."""
        self._tick_listeners.append(listener)

    def _emit(self) -> None:
        for listener in list(self._tick_listeners):
            listener(self._seconds)

    # -----------------------------
    # Transitions
    # -----------------------------
    def select_client(self, client_id: Optional[str]) -> None:
        self.client_id = client_id or None

    def tick(self) -> None:
        with self._lock:
            self._seconds += 1
            self._emit()

    def _on_timer(self, ticker: _Ticker) -> None:
        with self._lock:
            # a tick racing a pause/reset belongs to a cancelled ticker
            if ticker is not self._ticker:
                return
            self.tick()

    def _cancel_ticker(self) -> None:
        if self._ticker is not None:
            self._ticker.cancel()
            self._ticker = None

    def start(self) -> None:
        if not self.client_id:
            raise ValidationError("Select a client before starting the timer")
        with self._lock:
            if self._ticker is not None:
                return
            self._ticker = _Ticker(self._interval, self._on_timer)
            self._ticker.start()
        logger.debug(f"Stopwatch started for client {self.client_id}")

    def pause(self) -> None:
        with self._lock:
            if self._ticker is None:
                return
            self._cancel_ticker()
            self._emit()
        logger.debug(f"Stopwatch paused at {self.display}")

    def reset(self) -> None:
        with self._lock:
            self._cancel_ticker()
            self._seconds = 0
            self._emit()
        logger.debug("Stopwatch reset")

    def save(self, description: str = "") -> Optional[float]:
        """
        Hand the accumulated time to on_save, then reset and clear the client
        selection whatever the outcome. Returns the saved hours, or None if
        nothing was saved.
        """
        with self._lock:
            self._cancel_ticker()
            client_id, seconds = self.client_id, self._seconds

        saved = None
        if client_id and seconds > 0:
            hours = seconds_to_hours(seconds)
            try:
                self._on_save(client_id, hours, description)
            except Exception as e:
                logger.exception(f"Error saving {hours}h for client {client_id}: {e}")
                self._notify("error", "Could not save time", "The time was not saved, try again")
            else:
                saved = hours
                self.last_session = LastSession(client_id=client_id, hours=hours)
                self._notify("info", "Time saved", f"{format_hms(seconds)} added to the client")
                logger.info(f"Stopwatch saved {hours}h for client {client_id}")

        self.reset()
        self.client_id = None
        return saved

    def restart_last(self) -> bool:
        """Reselect the last saved client and start from zero."""
        if self.last_session is None:
            return False
        self.client_id = self.last_session.client_id
        self.reset()
        self.start()
        self._notify("info", "Timer restarted", "Started a new timer for the last client")
        return True

    def close(self) -> None:
        with self._lock:
            self._cancel_ticker()
