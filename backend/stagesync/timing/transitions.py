"""Pure session transitions.

Each function takes the current snapshot and returns the next one. ``seq`` is
carried through untouched; the store advances it when the snapshot is written.
"""
from typing import NamedTuple, Optional

from .calculator import Appearance, SessionSnapshot, Status, TimerConfig, carried_ms


def start_session(config: TimerConfig, now: int, seq: int = 0) -> SessionSnapshot:
    """A fresh running session for ``config`` anchored at ``now``."""
    return SessionSnapshot(
        timer_id=config.id,
        kickoff=now,
        deadline=now + config.duration_ms,
        last_stop=None,
        status=Status.RUNNING,
        seq=seq,
    )


def resume_session(config: TimerConfig, session: SessionSnapshot, now: int) -> SessionSnapshot:
    """Continue a paused session from where it stopped.

    The remaining time is ``deadline - lastStop``: for a first pause that is
    ``durationMs - (lastStop - kickoff)``, and it keeps any earlier resume or
    adjustment intact across further pause cycles.
    """
    if session.kickoff is None or session.last_stop is None or session.deadline is None:
        return start_session(config, now, seq=session.seq)

    remaining = max(0, session.deadline - session.last_stop)
    return session.evolve(
        kickoff=now,
        deadline=now + remaining,
        last_stop=None,
        status=Status.RUNNING,
    )


def client_elapsed_ms(config: TimerConfig, session: SessionSnapshot, current_time: int) -> Optional[int]:
    """Convert a client-observed display value into elapsed-since-kickoff.

    Returns ``None`` for appearances whose display carries no elapsed time.
    """
    if session.kickoff is None:
        return None
    if config.appearance == Appearance.COUNTDOWN:
        if session.deadline is None:
            return None
        return (session.deadline - session.kickoff) - current_time
    if config.appearance == Appearance.COUNTUP:
        return current_time - carried_ms(config, session)
    return None


PAUSE_FROM_CLIENT = 'client'
PAUSE_FROM_TIMESTAMP = 'timestamp'
PAUSE_FROM_SERVER = 'server'


class PauseReading(NamedTuple):
    """Elapsed time a pause lands on and where it came from.

    ``skew_ms`` is how far a discarded client value was from the one it would
    have replaced; ``None`` when nothing the client sent was discarded.
    """
    elapsed: int
    source: str
    skew_ms: Optional[int] = None


def pause_reading(
    config: TimerConfig,
    session: SessionSnapshot,
    now: int,
    timestamp: Optional[int] = None,
    current_time: Optional[int] = None,
    tolerance_ms: Optional[int] = None,
) -> PauseReading:
    """Pick the elapsed time to pause at.

    ``timestamp`` and ``current_time`` come from the pausing client. Either is
    used only while it stays within ``tolerance_ms`` of the value it would
    replace; ``None`` disables the check. ``current_time`` is compared with
    the accepted ``timestamp`` when there is one.
    """
    def within(delta):
        return tolerance_ms is None or abs(delta) <= tolerance_ms

    elapsed, source, skew = now - session.kickoff, PAUSE_FROM_SERVER, None
    if timestamp is not None:
        if within(timestamp - now):
            elapsed, source = timestamp - session.kickoff, PAUSE_FROM_TIMESTAMP
        else:
            skew = timestamp - now

    if current_time is not None:
        observed = client_elapsed_ms(config, session, current_time)
        if observed is not None:
            if within(observed - elapsed):
                elapsed, source = observed, PAUSE_FROM_CLIENT
            else:
                skew = observed - elapsed

    return PauseReading(max(0, elapsed), source, skew)


def freeze_session(session: SessionSnapshot, elapsed: int) -> SessionSnapshot:
    return session.evolve(
        last_stop=session.kickoff + max(0, elapsed),
        status=Status.PAUSED,
    )


def pause_session(
    config: TimerConfig,
    session: SessionSnapshot,
    now: int,
    timestamp: Optional[int] = None,
    current_time: Optional[int] = None,
    tolerance_ms: Optional[int] = None,
) -> SessionSnapshot:
    """Freeze a running session at the time :func:`pause_reading` picks."""
    reading = pause_reading(config, session, now, timestamp, current_time, tolerance_ms)
    return freeze_session(session, reading.elapsed)


def reset_session(timer_id: int, seq: int = 0) -> SessionSnapshot:
    return SessionSnapshot(timer_id=timer_id, seq=seq)


def adjust_session(session: SessionSnapshot, delta_ms: int) -> SessionSnapshot:
    """Shift the deadline; sessions without one are returned unchanged."""
    if session.deadline is None:
        return session
    return session.evolve(deadline=session.deadline + delta_ms)
