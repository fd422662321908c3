"""Session transition engine.

Each operation loads the timer, locks its room row, reads the room's session,
applies a pure transition and persists it with a ``seq`` check. The commit
releases the row; the broadcast that follows carries the new ``seq``, which is
what clients order by.
"""
from typing import NamedTuple, Optional

from flask import current_app

from stagesync.errors import NotActive, NotRunning
from stagesync.timing import (
    SessionSnapshot,
    Status,
    TimerConfig,
    adjust_session,
    freeze_session,
    now_ms,
    pause_reading,
    render_session,
    reset_session,
    resume_session,
    start_session,
)
from . import broadcast, store


class SessionResult(NamedTuple):
    config: TimerConfig
    session: Optional[SessionSnapshot]
    changed: bool


def _active_session(config: TimerConfig, room_id: int) -> SessionSnapshot:
    current = store.load_session(room_id)
    if current is None:
        raise NotActive(f'No active timer session in room {room_id}')
    if current.timer_id != config.id:
        raise NotActive(f'Timer {config.id} is not currently active')
    return current


def get_session(timer_id: int, now: Optional[int] = None) -> dict:
    """Rendered session of a timer; an idle view when another timer is active."""
    config = store.load_timer(timer_id).to_config()
    current = store.load_session(config.room_id)
    if current is not None and current.timer_id != config.id:
        current = None
    return render_session(config, current, now)


def get_room_session(room_id: int, now: Optional[int] = None) -> Optional[dict]:
    """Rendered session of whichever timer is active in the room, if any."""
    store.load_room(room_id)
    current = store.load_session(room_id)
    if current is None:
        return None
    config = store.load_timer(current.timer_id).to_config()
    return render_session(config, current, now)


def start(timer_id: int, now: Optional[int] = None, skip_sid: Optional[str] = None) -> SessionResult:
    config = store.load_timer(timer_id).to_config()
    room_id = config.room_id
    with store.room_lock(room_id):
        now = now_ms() if now is None else now
        current = store.load_session(room_id)

        if current is not None and current.timer_id == config.id and current.status == Status.PAUSED:
            nxt = resume_session(config, current, now)
            tag = 'timer-resume'
        else:
            nxt = start_session(config, now, seq=current.seq if current else 0)
            tag = 'timer-start'

        saved = store.save_session(room_id, nxt, expected_seq=current.seq if current else None)
        current_app.logger.info(
            f"[{tag}] room={room_id} timer={config.id} kickoff={saved.kickoff} deadline={saved.deadline} seq={saved.seq}"
        )
        broadcast.emit_transition(broadcast.TIMER_STARTED, room_id, config, saved, skip_sid=skip_sid)
        return SessionResult(config, saved, True)


def pause(
    timer_id: int,
    timestamp: Optional[int] = None,
    current_time: Optional[int] = None,
    now: Optional[int] = None,
    skip_sid: Optional[str] = None,
) -> SessionResult:
    config = store.load_timer(timer_id).to_config()
    room_id = config.room_id
    with store.room_lock(room_id):
        now = now_ms() if now is None else now
        current = _active_session(config, room_id)
        if current.status != Status.RUNNING:
            raise NotRunning(f'Timer {config.id} is not currently running')

        reading = pause_reading(
            config, current, now,
            timestamp=timestamp,
            current_time=current_time,
            tolerance_ms=current_app.config.get('PAUSE_SKEW_TOLERANCE_MS', 5000),
        )
        if reading.skew_ms is not None:
            current_app.logger.warning(
                f"[timer-pause] room={room_id} timer={config.id} discarded client value "
                f"{reading.skew_ms}ms off, paused from {reading.source}"
            )
        saved = store.save_session(room_id, freeze_session(current, reading.elapsed), expected_seq=current.seq)
        current_app.logger.info(
            f"[timer-pause] room={room_id} timer={config.id} lastStop={saved.last_stop} "
            f"source={reading.source} seq={saved.seq}"
        )
        broadcast.emit_transition(broadcast.TIMER_PAUSED, room_id, config, saved, skip_sid=skip_sid)
        return SessionResult(config, saved, True)


def reset(timer_id: int, now: Optional[int] = None, skip_sid: Optional[str] = None) -> SessionResult:
    config = store.load_timer(timer_id).to_config()
    room_id = config.room_id
    with store.room_lock(room_id):
        current = store.load_session(room_id)
        if current is not None and current.timer_id == config.id and current.status == Status.STOPPED:
            saved, changed = current, False
        else:
            nxt = reset_session(config.id, seq=current.seq if current else 0)
            saved = store.save_session(room_id, nxt, expected_seq=current.seq if current else None)
            changed = True
        current_app.logger.info(f"[timer-reset] room={room_id} timer={config.id} changed={changed} seq={saved.seq}")
        broadcast.emit_transition(broadcast.TIMER_RESET, room_id, config, saved, skip_sid=skip_sid)
        return SessionResult(config, saved, changed)


def adjust(timer_id: int, delta_ms: int, skip_sid: Optional[str] = None) -> SessionResult:
    config = store.load_timer(timer_id).to_config()
    room_id = config.room_id
    with store.room_lock(room_id):
        current = _active_session(config, room_id)
        nxt = adjust_session(current, delta_ms)
        if nxt == current:
            saved, changed = current, False
        else:
            saved = store.save_session(room_id, nxt, expected_seq=current.seq)
            changed = True
        current_app.logger.info(
            f"[timer-adjust] room={room_id} timer={config.id} delta={delta_ms} deadline={saved.deadline} changed={changed}"
        )
        broadcast.emit_transition(broadcast.TIMER_UPDATED, room_id, config, saved, skip_sid=skip_sid)
        return SessionResult(config, saved, changed)


def relay_fast_pause(room_id: int, timer_id: int, current_time, sender_id: Optional[str]) -> dict:
    """Fast path: stamp the next room ``seq`` on a client pause and relay it.

    Only a pause of the room's running timer is relayed. Nothing but the
    sequence is persisted; the controller's durable pause request follows
    separately and lands with a higher ``seq``.
    """
    config = store.load_timer(timer_id).to_config()
    if config.room_id != room_id:
        raise NotActive(f'Timer {config.id} does not belong to room {room_id}')
    with store.room_lock(room_id):
        current = _active_session(config, room_id)
        if current.status != Status.RUNNING:
            raise NotRunning(f'Timer {config.id} is not currently running')
        seq = store.bump_sequence(room_id)
        current_app.logger.info(
            f"[timer-pause-fast] room={room_id} timer={timer_id} currentTime={current_time} sender={sender_id} seq={seq}"
        )
        return broadcast.emit_fast_pause(room_id, timer_id, current_time, sender_id, seq)
