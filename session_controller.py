"""
Session lifecycle for a Power Hour run.

    SHOW_WARNING -> BEFORE_START -> STARTED -> ENDED -> STARTED ...

The controller owns the single Session record. A periodic tick (about once a
second) drives on_tick(); each time the elapsed minute changes it fires a cue
(sound + notification + badge) and publishes the new state to subscribers.
"""
from __future__ import annotations
import dataclasses
import datetime
import enum
import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from pacing_clock import PacingClock, TOTAL_UNITS, as_aware, format_total_time, local_now

logger = logging.getLogger(__name__)

NOTIFICATION_DELAY_SECONDS = 1


class SessionState(enum.Enum):
    SHOW_WARNING = "show_warning"
    BEFORE_START = "before_start"
    STARTED = "started"
    ENDED = "ended"


@dataclass
class Session:
    state: SessionState = SessionState.SHOW_WARNING
    start_time: Optional[datetime.datetime] = None
    total_units: int = TOTAL_UNITS
    last_observed_minute: int = -1


@dataclass
class Readout:
    """Values the window shows for the current second."""
    state: SessionState
    total_time: str = "0:00"
    seconds_to_next: int = 60
    units_remaining: int = TOTAL_UNITS


class SessionController:

    def __init__(self, store, notifier, sound,
                 clock: Optional[PacingClock] = None,
                 now: Callable[[], datetime.datetime] = local_now):
        self.store = store
        self.notifier = notifier
        self.sound = sound
        self.clock = clock or PacingClock()
        self._now = now
        self._session = Session(total_units=self.clock.total_units)
        self._lock = threading.RLock()
        self._subscribers: list[Callable[["SessionController"], None]] = []
        self.pulse = 0
        self.cue_count = 0

    # ━━━ Published state ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    @property
    def session(self) -> Session:
        with self._lock:
            return dataclasses.replace(self._session)

    @property
    def state(self) -> SessionState:
        return self._session.state

    def subscribe(self, callback: Callable[["SessionController"], None]) -> Callable[[], None]:
        """Register callback(controller); returns a function that unregisters it."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def _publish(self) -> None:
        for cb in list(self._subscribers):
            try:
                cb(self)
            except Exception:
                logger.exception("Subscriber %r failed", cb)

    def readout(self, now: Optional[datetime.datetime] = None) -> Readout:
        with self._lock:
            s = self._session
            if s.state is SessionState.ENDED:
                return Readout(state=s.state, units_remaining=0)
            if s.state is not SessionState.STARTED:
                return Readout(state=s.state, units_remaining=s.total_units)
            minutes, seconds = self.clock.elapsed(now or self._now(), s.start_time)
            return Readout(
                state=s.state,
                total_time=format_total_time(minutes, seconds),
                seconds_to_next=self.clock.seconds_to_next_unit(seconds),
                units_remaining=self.clock.units_remaining(minutes),
            )

    # ━━━ Transitions ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def acknowledge_warning(self) -> None:
        with self._lock:
            if self._session.state is not SessionState.SHOW_WARNING:
                logger.debug("acknowledge_warning ignored in %s", self._session.state.name)
                return
            try:
                self.notifier.request_permission(self._on_permission)
            except Exception:
                logger.exception("Notification permission request failed")

            saved = self.store.get_start_time()
            if saved is None:
                self._session = Session(state=SessionState.BEFORE_START,
                                        total_units=self.clock.total_units)
                self._publish()
                return
            logger.info("Resuming run started at %s", saved.isoformat(timespec="seconds"))
            self._session = Session(state=SessionState.STARTED, start_time=saved,
                                    total_units=self.clock.total_units)
            self._publish()
            self.on_tick()

    def start(self, at: Optional[datetime.datetime] = None) -> None:
        with self._lock:
            if self._session.state not in (SessionState.BEFORE_START, SessionState.ENDED):
                logger.debug("start ignored in %s", self._session.state.name)
                return
            at = as_aware(at or self._now())
            self.store.set_start_time(at)
            self._session = Session(state=SessionState.STARTED, start_time=at,
                                    total_units=self.clock.total_units)
            logger.info("Run started at %s", at.isoformat(timespec="seconds"))
            self._publish()
            self.on_tick(at)

    def restart(self, at: Optional[datetime.datetime] = None) -> None:
        with self._lock:
            if self._session.state is not SessionState.ENDED:
                logger.debug("restart ignored in %s", self._session.state.name)
                return
            self.start(at)

    def on_tick(self, now: Optional[datetime.datetime] = None) -> None:
        with self._lock:
            self.pulse += 1
            s = self._session
            if s.state is not SessionState.STARTED:
                self._publish()
                return

            minutes, _ = self.clock.elapsed(now or self._now(), s.start_time)

            if self.clock.is_ended(minutes):
                self.store.set_start_time(None)
                self._fire_cue(0)
                self._set_badge(0)
                self._session = dataclasses.replace(s, state=SessionState.ENDED)
                logger.info("Run finished after %d minutes", minutes)
            elif minutes > s.last_observed_minute:
                # never step back a minute, even if the clock does
                remaining = self.clock.units_remaining(minutes)
                self._fire_cue(remaining)
                self._set_badge(remaining)
                self._session = dataclasses.replace(s, last_observed_minute=minutes)
            self._publish()

    # ━━━ Side effects ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━

    def _fire_cue(self, remaining: int) -> None:
        self.cue_count += 1
        try:
            self.sound.play_cue()
        except Exception:
            logger.exception("Sound cue failed")
        try:
            self.notifier.schedule_notification(str(remaining), remaining,
                                                NOTIFICATION_DELAY_SECONDS)
        except Exception:
            logger.exception("Scheduling notification failed")

    def _set_badge(self, count: int) -> None:
        try:
            self.notifier.set_badge_count(count)
        except Exception:
            logger.exception("Setting badge count failed")

    @staticmethod
    def _on_permission(granted: bool) -> None:
        if granted:
            logger.info("Notifications enabled")
        else:
            logger.warning("Notifications are disabled; cues will be sound only")
