"""Client-side view of a room's timer.

A :class:`Reconciler` holds the last known session of one room, merges
server events into it by sequence number, and ticks a local clock through the
shared calculator so the display keeps moving between messages. A
:class:`SyncContext` owns one reconciler per room, so a single process can
follow several rooms without them seeing each other's state.
"""
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Any, Callable, Dict, List, Optional

from stagesync.timing import SessionSnapshot, Status, TimerConfig, compute_state, now_ms
from .ticker import Ticker

logger = logging.getLogger(__name__)

TIMER_STARTED = 'timer-started'
TIMER_PAUSED = 'timer-paused'
TIMER_RESET = 'timer-reset'
TIMER_UPDATED = 'timer-updated'
TIMER_PAUSE_FAST = 'timer-pause-fast'

AUTHORITATIVE_EVENTS = (TIMER_STARTED, TIMER_PAUSED, TIMER_RESET, TIMER_UPDATED)
SESSION_EVENTS = AUTHORITATIVE_EVENTS + (TIMER_PAUSE_FAST,)


@dataclass(frozen=True)
class TimerView:
    timer_id: Optional[int] = None
    is_running: bool = False
    kickoff: Optional[int] = None
    deadline: Optional[int] = None
    last_stop: Optional[int] = None
    status: str = Status.STOPPED
    # Display value reported by a pausing controller, used while paused
    # until an authoritative snapshot arrives
    pinned_time: Optional[int] = None
    seq: int = 0
    last_updated: float = 0.0

    def snapshot(self) -> Optional[SessionSnapshot]:
        if self.timer_id is None:
            return None
        return SessionSnapshot(
            timer_id=self.timer_id,
            kickoff=self.kickoff,
            deadline=self.deadline,
            last_stop=self.last_stop,
            status=self.status,
            seq=self.seq,
        )


Subscriber = Callable[[TimerView, Optional[int]], None]


class Reconciler:
    def __init__(
        self,
        scope_id=None,
        tick_ms: Optional[int] = 100,
        clock: Callable[[], int] = now_ms,
        self_id: Optional[str] = None,
    ):
        self.scope_id = scope_id
        self.self_id = self_id
        self._clock = clock
        self._lock = threading.RLock()
        self._view = TimerView()
        self._configs: Dict[int, TimerConfig] = {}
        self._subscribers: List[Subscriber] = []
        self._ticker = Ticker(tick_ms, self._tick) if tick_ms else None

    # ---- read side ----

    @property
    def view(self) -> TimerView:
        return self._view

    @property
    def ticking(self) -> bool:
        return self._ticker is not None and self._ticker.active

    def config(self, timer_id) -> Optional[TimerConfig]:
        return self._configs.get(timer_id)

    def is_timer_active(self, timer_id) -> bool:
        return self._view.timer_id == timer_id

    def is_timer_running(self, timer_id) -> bool:
        view = self._view
        return view.timer_id == timer_id and view.is_running

    def display_time(self, now: Optional[int] = None) -> Optional[int]:
        """What the active timer shows right now, or ``None`` if unknown."""
        view = self._view
        if view.timer_id is None:
            return None
        if not view.is_running and view.pinned_time is not None:
            return view.pinned_time
        config = self._configs.get(view.timer_id)
        if config is None:
            return view.pinned_time
        return compute_state(config, view.snapshot(), self._clock() if now is None else now).current_time

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe():
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)
        return unsubscribe

    # ---- write side ----

    def register_timer(self, config: TimerConfig) -> None:
        with self._lock:
            self._configs[config.id] = config

    def apply_event(self, event: str, payload: Dict[str, Any]) -> bool:
        """Merge one server event; returns whether it changed the view."""
        if event == TIMER_PAUSE_FAST:
            return self.apply_fast_pause(payload)
        if event in AUTHORITATIVE_EVENTS:
            timer = (payload or {}).get('timer')
            if timer:
                self.register_timer(TimerConfig.from_dict(timer))
            return self.apply_timeset(payload['timeset'], seq=payload.get('seq'))
        return False

    def apply_timeset(self, timeset: Dict[str, Any], seq: Optional[int] = None) -> bool:
        """Overwrite the view with an authoritative session."""
        snapshot = SessionSnapshot.from_timeset(timeset)
        if seq is None:
            seq = timeset.get('seq')
        with self._lock:
            if self._is_stale(seq):
                return False
            self._set_view(TimerView(
                timer_id=snapshot.timer_id,
                is_running=snapshot.status == Status.RUNNING,
                kickoff=snapshot.kickoff,
                deadline=snapshot.deadline,
                last_stop=snapshot.last_stop,
                status=snapshot.status,
                seq=self._view.seq if seq is None else int(seq),
            ))
        return True

    def apply_fast_pause(self, payload: Dict[str, Any]) -> bool:
        seq = payload.get('seq')
        with self._lock:
            if self._is_stale(seq):
                return False
            if self.self_id is not None and payload.get('senderId') == self.self_id:
                # Own echo: already applied locally, only the clock advances
                if seq is not None:
                    self._view = replace(self._view, seq=int(seq))
                return False
            if payload.get('timerId') is None or payload.get('currentTime') is None:
                return False
            self._set_view(replace(
                self._view,
                timer_id=int(payload['timerId']),
                is_running=False,
                status=Status.PAUSED,
                pinned_time=int(payload['currentTime']),
                seq=self._view.seq if seq is None else int(seq),
            ))
        return True

    def initialize_from_session(self, rendered: Dict[str, Any]) -> bool:
        """Resynchronize from a ``GET`` session response, e.g. after reconnect.

        The fetched state is authoritative, so it replaces the view even when
        its ``seq`` is behind what this client last saw.
        """
        timer = rendered.get('timer')
        if timer:
            self.register_timer(TimerConfig.from_dict(timer))
        with self._lock:
            self._view = replace(self._view, seq=0)
        return self.apply_timeset(rendered['timeset'])

    def optimistic_pause(self, timer_id, current_time: Optional[int] = None) -> Optional[int]:
        """Freeze the local display before the server confirms.

        Returns the value the display was frozen at.
        """
        with self._lock:
            if current_time is None:
                current_time = self.display_time()
            self._set_view(replace(
                self._view,
                timer_id=timer_id,
                is_running=False,
                status=Status.PAUSED,
                pinned_time=current_time,
            ))
        return current_time

    def restore(self, view: TimerView) -> None:
        """Put back a view captured before an optimistic change the server refused.

        The ``seq`` floor never moves backwards.
        """
        with self._lock:
            self._set_view(replace(view, seq=max(view.seq, self._view.seq)))

    def optimistic_reset(self, timer_id) -> None:
        with self._lock:
            self._set_view(replace(
                self._view,
                timer_id=timer_id,
                is_running=False,
                status=Status.STOPPED,
                kickoff=None,
                deadline=None,
                last_stop=None,
                pinned_time=None,
            ))

    def close(self) -> None:
        if self._ticker is not None:
            self._ticker.stop()

    # ---- internals ----

    def _is_stale(self, seq) -> bool:
        if seq is None:
            return False
        if int(seq) < self._view.seq:
            logger.debug(f"Discarding stale message seq={seq} < {self._view.seq} in scope {self.scope_id}")
            return True
        return False

    def _set_view(self, view: TimerView) -> None:
        self._view = replace(view, last_updated=time.time())
        self._sync_ticker()
        self._notify()

    def _sync_ticker(self) -> None:
        if self._ticker is None:
            return
        if self._view.is_running:
            self._ticker.start()
        else:
            self._ticker.stop()

    def _tick(self) -> None:
        if not self._view.is_running:
            return
        self._notify()

    def _notify(self) -> None:
        view = self._view
        shown = self.display_time()
        for callback in list(self._subscribers):
            callback(view, shown)


class SyncContext:
    """Reconcilers keyed by room, passed explicitly to whoever needs them."""

    def __init__(self, tick_ms: Optional[int] = 100, clock: Callable[[], int] = now_ms):
        self._tick_ms = tick_ms
        self._clock = clock
        self._self_id: Optional[str] = None
        self._lock = threading.Lock()
        self._scopes: Dict[Any, Reconciler] = {}

    @property
    def self_id(self) -> Optional[str]:
        return self._self_id

    @self_id.setter
    def self_id(self, value: Optional[str]) -> None:
        with self._lock:
            self._self_id = value
            for reconciler in self._scopes.values():
                reconciler.self_id = value

    def for_scope(self, scope_id) -> Reconciler:
        with self._lock:
            reconciler = self._scopes.get(scope_id)
            if reconciler is None:
                reconciler = self._scopes[scope_id] = Reconciler(
                    scope_id, tick_ms=self._tick_ms, clock=self._clock, self_id=self._self_id,
                )
            return reconciler

    def scopes(self):
        with self._lock:
            return list(self._scopes)

    def route(self, event: str, payload: Dict[str, Any]) -> bool:
        """Hand an event to the reconciler of the room it names."""
        scope_id = (payload or {}).get('roomId')
        if scope_id is None:
            logger.warning(f"Dropping {event} without roomId")
            return False
        return self.for_scope(scope_id).apply_event(event, payload)

    def drop(self, scope_id) -> None:
        with self._lock:
            reconciler = self._scopes.pop(scope_id, None)
        if reconciler is not None:
            reconciler.close()

    def close(self) -> None:
        with self._lock:
            scopes, self._scopes = list(self._scopes.values()), {}
        for reconciler in scopes:
            reconciler.close()
