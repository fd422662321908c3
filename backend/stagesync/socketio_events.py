from flask_socketio import join_room, leave_room, emit
from flask import current_app, request
from stagesync import socketio
from stagesync.errors import TimerSyncError
from stagesync.services.sessions import broadcast, engine
from stagesync.timing import now_ms
from typing import Dict, Optional, Set

# Events only the server may originate; clients cannot relay these
_PROTECTED_EVENTS = {
    broadcast.TIMER_STARTED,
    broadcast.TIMER_PAUSED,
    broadcast.TIMER_RESET,
    broadcast.TIMER_UPDATED,
    broadcast.TIMER_PAUSE_FAST,
}

_sid_to_rooms: Dict[str, Set[int]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _as_int(value) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _room_id(data) -> Optional[int]:
    if isinstance(data, dict):
        data = data.get('roomId', data.get('room_id'))
    return _as_int(data)


def handle_connect():
    emit('connected', {'message': 'Connected to /ws', 'sid': _get_sid()})


def handle_disconnect(*args):
    sid = _get_sid()
    for room_id in _sid_to_rooms.pop(sid, set()):
        socketio.emit(
            'user-left',
            {'socketId': sid, 'timestamp': now_ms()},
            to=broadcast.room_channel(room_id),
            namespace=request.namespace,
            skip_sid=sid,
        )
    current_app.logger.info(f"[disconnect] sid={sid}")


def handle_join_room(data):
    room_id = _room_id(data)
    if room_id is None:
        emit('error', {'message': 'roomId is required'})
        return
    sid = _get_sid()
    channel = broadcast.room_channel(room_id)
    join_room(channel)
    _sid_to_rooms.setdefault(sid, set()).add(room_id)
    emit('user-joined', {'socketId': sid, 'timestamp': now_ms()}, to=channel, include_self=False)
    emit('room-joined', {'roomId': room_id, 'room': channel, 'sid': sid, 'timestamp': now_ms()})
    current_app.logger.info(f"[join] sid={sid} room={room_id}")


def handle_leave_room(data):
    room_id = _room_id(data)
    if room_id is None:
        emit('error', {'message': 'roomId is required'})
        return
    sid = _get_sid()
    channel = broadcast.room_channel(room_id)
    leave_room(channel)
    _sid_to_rooms.get(sid, set()).discard(room_id)
    emit('user-left', {'socketId': sid, 'timestamp': now_ms()}, to=channel, include_self=False)
    emit('room-left', {'roomId': room_id, 'room': channel})


def handle_timer_pause(data):
    """Fast-path pause: relay the controller's own reading to the whole room.

    A pause of anything but the room's running timer is answered with
    ``error`` to the sender and relayed to nobody.
    """
    data = data or {}
    room_id = _room_id(data)
    timer_id = _as_int(data.get('timerId'))
    current_time = data.get('currentTime')
    if room_id is None or timer_id is None or not isinstance(current_time, (int, float)):
        emit('error', {'message': 'roomId, timerId and currentTime are required'})
        return
    try:
        engine.relay_fast_pause(room_id, timer_id, int(current_time), _get_sid())
    except TimerSyncError as err:
        current_app.logger.info(f"[timer-pause-fast] rejected room={room_id} timer={timer_id}: {err.kind}")
        emit('error', err.to_dict())


def handle_broadcast_to_room(data):
    data = data or {}
    room_id = _room_id(data)
    event_name = data.get('eventName')
    if room_id is None or not event_name:
        emit('error', {'message': 'roomId and eventName are required'})
        return
    if event_name in _PROTECTED_EVENTS:
        emit('error', {'message': f'{event_name} cannot be relayed by clients'})
        return
    payload = dict(data.get('eventData') or {})
    payload['senderId'] = _get_sid()
    emit(event_name, payload, to=broadcast.room_channel(room_id))


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(namespace: str = '/ws', testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on ``namespace``. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [namespace]
    if testing and namespace != '/':
        namespaces.append('/')
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('disconnect', handle_disconnect, namespace=ns)
        socketio.on_event('join-room', handle_join_room, namespace=ns)
        socketio.on_event('leave-room', handle_leave_room, namespace=ns)
        socketio.on_event('timer-pause', handle_timer_pause, namespace=ns)
        socketio.on_event('broadcast-to-room', handle_broadcast_to_room, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
