import logging
from functools import partial
from typing import Optional, Set

import socketio

from stagesync.errors import TimerSyncError
from .api import SessionApi
from .reconciler import SESSION_EVENTS, SyncContext

logger = logging.getLogger(__name__)


class LiveChannel:
    """Feeds a :class:`SyncContext` from the server's Socket.IO channel.

    Rooms joined here are re-joined and resynchronized over REST after every
    reconnect, since events sent while disconnected are lost.
    """

    def __init__(
        self,
        context: SyncContext,
        api: Optional[SessionApi] = None,
        sio: Optional[socketio.Client] = None,
        namespace: str = '/ws',
    ):
        self.context = context
        self.api = api
        self.sio = sio or socketio.Client(reconnection=True)
        self.namespace = namespace
        self.rooms: Set[int] = set()
        self.connected = False

        self.sio.on('connect', self._on_connect, namespace=namespace)
        self.sio.on('disconnect', self._on_disconnect, namespace=namespace)
        self.sio.on('room-joined', self._on_room_joined, namespace=namespace)
        self.sio.on('error', self._on_error, namespace=namespace)
        for event in SESSION_EVENTS:
            self.sio.on(event, partial(self._on_session_event, event), namespace=namespace)

    def connect(self, url: str, **kwargs) -> None:
        self.sio.connect(url, namespaces=[self.namespace], **kwargs)

    def disconnect(self) -> None:
        self.sio.disconnect()

    def join(self, room_id: int) -> None:
        self.rooms.add(room_id)
        self.context.for_scope(room_id)
        if self.connected:
            self.sio.emit('join-room', {'roomId': room_id}, namespace=self.namespace)

    def leave(self, room_id: int) -> None:
        self.rooms.discard(room_id)
        if self.connected:
            self.sio.emit('leave-room', {'roomId': room_id}, namespace=self.namespace)
        self.context.drop(room_id)

    def pause_fast(self, room_id: int, timer_id: int, current_time: int) -> None:
        """Relay a local pause reading to the room ahead of the durable request."""
        self.sio.emit(
            'timer-pause',
            {'roomId': room_id, 'timerId': timer_id, 'currentTime': current_time},
            namespace=self.namespace,
        )

    def resync(self, room_id: int) -> bool:
        if self.api is None:
            return False
        try:
            rendered = self.api.get_room_session(room_id)
        except TimerSyncError as exc:
            logger.warning(f"Resync of room {room_id} failed: {exc}")
            return False
        if rendered is None:
            return False
        return self.context.for_scope(room_id).initialize_from_session(rendered)

    def _on_connect(self, *args):
        self.connected = True
        self.context.self_id = self.sio.get_sid(namespace=self.namespace)
        if self.api is not None:
            self.api.socket_id = self.context.self_id
        logger.info(f"Connected to {self.namespace} as {self.context.self_id}")
        for room_id in sorted(self.rooms):
            self.sio.emit('join-room', {'roomId': room_id}, namespace=self.namespace)
            self.resync(room_id)

    def _on_disconnect(self, *args):
        self.connected = False
        logger.info(f"Disconnected from {self.namespace}")

    def _on_room_joined(self, data):
        sid = (data or {}).get('sid')
        if sid:
            self.context.self_id = sid
            if self.api is not None:
                self.api.socket_id = sid

    def _on_error(self, data):
        logger.warning(f"Server rejected a channel message: {data}")

    def _on_session_event(self, event, data):
        self.context.route(event, data or {})
