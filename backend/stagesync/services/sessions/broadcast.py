from typing import List, Optional

from flask import current_app

from stagesync import socketio
from stagesync.timing import SessionSnapshot, TimerConfig, now_ms, render_timeset

TIMER_STARTED = 'timer-started'
TIMER_PAUSED = 'timer-paused'
TIMER_RESET = 'timer-reset'
TIMER_UPDATED = 'timer-updated'
TIMER_PAUSE_FAST = 'timer-pause-fast'

_ACTIONS = {
    TIMER_STARTED: 'start',
    TIMER_PAUSED: 'pause',
    TIMER_RESET: 'reset',
    TIMER_UPDATED: 'update',
}


def room_channel(room_id) -> str:
    return f"room:{room_id}"


def _namespaces() -> List[str]:
    # Handlers are mirrored on '/' when testing; rooms joined there hear the same events
    namespace = current_app.config.get('SOCKETIO_NAMESPACE', '/ws')
    if current_app.config.get('TESTING') and namespace != '/':
        return [namespace, '/']
    return [namespace]


def _emit(event: str, payload: dict, room_id, skip_sid: Optional[str] = None) -> None:
    # Delivery is best effort: a failed emit never undoes the committed transition
    for namespace in _namespaces():
        try:
            socketio.emit(event, payload, to=room_channel(room_id), namespace=namespace, skip_sid=skip_sid)
        except Exception as exc:
            current_app.logger.error(f"[emit-failed] event={event} room={room_id} ns={namespace}: {exc}")
            continue
        current_app.logger.info(f"[emit] event={event} room={room_id} ns={namespace} seq={payload.get('seq')}")


def transition_payload(event: str, room_id, config: TimerConfig, session: Optional[SessionSnapshot]) -> dict:
    return {
        'roomId': room_id,
        'timerId': config.id,
        'action': _ACTIONS.get(event, event),
        'timeset': render_timeset(config, session),
        'timer': config.to_dict(),
        'seq': session.seq if session else 0,
        'timestamp': now_ms(),
    }


def emit_transition(
    event: str,
    room_id,
    config: TimerConfig,
    session: Optional[SessionSnapshot],
    skip_sid: Optional[str] = None,
) -> dict:
    """Fan an accepted transition out to everyone in the room.

    ``skip_sid`` leaves out an originator that already applied the change.
    """
    payload = transition_payload(event, room_id, config, session)
    _emit(event, payload, room_id, skip_sid=skip_sid)
    return payload


def emit_fast_pause(room_id, timer_id, current_time, sender_id, seq: Optional[int]) -> dict:
    """Relay a controller's locally computed pause to the whole room, sender included."""
    payload = {
        'roomId': room_id,
        'timerId': timer_id,
        'currentTime': current_time,
        'senderId': sender_id,
        'seq': seq,
        'timestamp': now_ms(),
    }
    _emit(TIMER_PAUSE_FAST, payload, room_id)
    return payload
