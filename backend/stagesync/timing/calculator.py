import time
from dataclasses import dataclass, replace
from typing import Any, Dict, Optional


def now_ms() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class Appearance:
    COUNTDOWN = 'COUNTDOWN'
    COUNTUP = 'COUNTUP'
    TIME_OF_DAY = 'TOD'
    HIDDEN = 'HIDDEN'

    ALL = (COUNTDOWN, COUNTUP, TIME_OF_DAY, HIDDEN)


class Status:
    RUNNING = 'running'
    PAUSED = 'paused'
    STOPPED = 'stopped'

    ALL = (RUNNING, PAUSED, STOPPED)


@dataclass(frozen=True)
class TimerConfig:
    """Static attributes of a timer; owned by the room/timer CRUD layer."""

    id: int
    duration_ms: int
    appearance: str = Appearance.COUNTDOWN
    yellow_warning_ms: Optional[int] = 60000
    red_warning_ms: Optional[int] = 30000
    room_id: Optional[int] = None
    name: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'roomId': self.room_id,
            'name': self.name,
            'durationMs': self.duration_ms,
            'appearance': self.appearance,
            'yellowWarningMs': self.yellow_warning_ms,
            'redWarningMs': self.red_warning_ms,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TimerConfig':
        return cls(
            id=int(data['id']),
            duration_ms=int(data['durationMs']),
            appearance=data.get('appearance') or Appearance.COUNTDOWN,
            yellow_warning_ms=data.get('yellowWarningMs'),
            red_warning_ms=data.get('redWarningMs'),
            room_id=data.get('roomId'),
            name=data.get('name') or '',
        )


@dataclass(frozen=True)
class SessionSnapshot:
    """One immutable version of a scope's timer session.

    ``seq`` is the per-scope logical clock: it doubles as the row version the
    store compares on write and as the ordering key clients reconcile by.
    """

    timer_id: int
    kickoff: Optional[int] = None
    deadline: Optional[int] = None
    last_stop: Optional[int] = None
    status: str = Status.STOPPED
    seq: int = 0

    @property
    def is_running(self) -> bool:
        return self.status == Status.RUNNING

    def evolve(self, **changes) -> 'SessionSnapshot':
        return replace(self, **changes)

    @classmethod
    def from_timeset(cls, timeset: Dict[str, Any]) -> 'SessionSnapshot':
        status = timeset.get('status')
        if status is None:
            if timeset.get('running'):
                status = Status.RUNNING
            elif timeset.get('lastStop') is not None:
                status = Status.PAUSED
            else:
                status = Status.STOPPED
        return cls(
            timer_id=int(timeset['timerId']),
            kickoff=timeset.get('kickoff'),
            deadline=timeset.get('deadline'),
            last_stop=timeset.get('lastStop'),
            status=status,
            seq=int(timeset.get('seq') or 0),
        )


@dataclass(frozen=True)
class TimerState:
    current_time: int
    is_running: bool
    elapsed_ms: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'currentTime': self.current_time,
            'isRunning': self.is_running,
            'elapsedMs': self.elapsed_ms,
        }


def carried_ms(config: TimerConfig, session: SessionSnapshot) -> int:
    # Active time accumulated before the current kickoff. Zero after a fresh
    # start; positive after a resume; shifted by every deadline adjustment.
    if session.deadline is None:
        return 0
    return config.duration_ms - (session.deadline - session.kickoff)


def elapsed_ms(config: TimerConfig, session: Optional[SessionSnapshot], now: int) -> int:
    if session is None or session.kickoff is None:
        return 0
    if session.status == Status.RUNNING:
        span = now - session.kickoff
    elif session.last_stop is not None:
        span = session.last_stop - session.kickoff
    else:
        return 0
    return max(0, carried_ms(config, session) + span)


def compute_state(
    config: TimerConfig,
    session: Optional[SessionSnapshot],
    now: Optional[int] = None,
) -> TimerState:
    """Map a timer config and session onto what the timer shows at ``now``.

    Pure: the same inputs give the same output on the server and on every
    client, which is what lets displays tick locally between messages.
    """
    if now is None:
        now = now_ms()

    if session is None or session.kickoff is None:
        if config.appearance == Appearance.TIME_OF_DAY:
            current = now
        elif config.appearance == Appearance.HIDDEN:
            current = 0
        else:
            current = config.duration_ms
        return TimerState(current_time=current, is_running=False, elapsed_ms=0)

    elapsed = elapsed_ms(config, session, now)

    if config.appearance == Appearance.COUNTUP:
        current = elapsed
    elif config.appearance == Appearance.TIME_OF_DAY:
        current = now
    elif config.appearance == Appearance.HIDDEN:
        current = 0
    else:
        current = max(0, config.duration_ms - elapsed)

    return TimerState(
        current_time=current,
        is_running=session.status == Status.RUNNING,
        elapsed_ms=elapsed,
    )


def is_expired(config: TimerConfig, session: Optional[SessionSnapshot], now: Optional[int] = None) -> bool:
    if session is None or session.deadline is None or config.appearance != Appearance.COUNTDOWN:
        return False
    if now is None:
        now = now_ms()
    if session.status != Status.RUNNING:
        return compute_state(config, session, now).current_time == 0
    return now >= session.deadline


def time_remaining(config: TimerConfig, session: Optional[SessionSnapshot], now: Optional[int] = None) -> int:
    if session is None or session.deadline is None or config.appearance != Appearance.COUNTDOWN:
        return config.duration_ms
    if now is None:
        now = now_ms()
    if session.status != Status.RUNNING:
        return compute_state(config, session, now).current_time
    return max(0, session.deadline - now)


def warning_level(config: TimerConfig, state: TimerState) -> str:
    """Colour band of a countdown: ``red``, ``yellow`` or ``none``."""
    if config.appearance != Appearance.COUNTDOWN:
        return 'none'
    if config.red_warning_ms is not None and state.current_time <= config.red_warning_ms:
        return 'red'
    if config.yellow_warning_ms is not None and state.current_time <= config.yellow_warning_ms:
        return 'yellow'
    return 'none'


def render_timeset(config: TimerConfig, session: Optional[SessionSnapshot]) -> Dict[str, Any]:
    """Compact wire projection of a session."""
    if session is None:
        return {
            'timerId': config.id,
            'running': False,
            'kickoff': None,
            'deadline': None,
            'lastStop': None,
            'status': Status.STOPPED,
            'seq': 0,
        }
    return {
        'timerId': config.id,
        'running': session.status == Status.RUNNING,
        'kickoff': session.kickoff,
        'deadline': session.deadline,
        'lastStop': session.last_stop,
        'status': session.status,
        'seq': session.seq,
    }


def render_session(
    config: TimerConfig,
    session: Optional[SessionSnapshot],
    now: Optional[int] = None,
) -> Dict[str, Any]:
    """Full session view: the timeset plus the timer with its derived values."""
    if now is None:
        now = now_ms()
    state = compute_state(config, session, now)
    timer = config.to_dict()
    timer.update({
        'currentTime': state.current_time,
        'elapsedTime': state.elapsed_ms,
        'isExpired': is_expired(config, session, now),
        'timeRemaining': time_remaining(config, session, now),
        'warning': warning_level(config, state),
    })
    return {'timeset': render_timeset(config, session), 'timer': timer}
