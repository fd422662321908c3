import logging
from typing import Optional

from stagesync.config import Config
from stagesync.errors import TimerSyncError
from stagesync.timing import TimerConfig
from .api import SessionApi
from .live import LiveChannel
from .reconciler import SyncContext

logger = logging.getLogger(__name__)


class Controller:
    """Drives a room's timer and keeps the local view ahead of the server.

    Every REST response carries the new ``seq``, so applying it here is safe
    even when the matching broadcast arrives earlier or later.
    """

    def __init__(self, room_id: int, api: SessionApi, context: SyncContext, live: Optional[LiveChannel] = None):
        self.room_id = room_id
        self.api = api
        self.context = context
        self.live = live

    @property
    def reconciler(self):
        return self.context.for_scope(self.room_id)

    def load(self, timer_id: int) -> dict:
        rendered = self.api.get_session(timer_id)
        self.reconciler.register_timer(TimerConfig.from_dict(rendered['timer']))
        if rendered['timeset'].get('running') or rendered['timeset'].get('kickoff') is not None:
            self.reconciler.initialize_from_session(rendered)
        return rendered

    def start(self, timer_id: int) -> dict:
        timeset = self.api.start(timer_id)
        self.reconciler.apply_timeset(timeset)
        return timeset

    def pause(self, timer_id: int) -> dict:
        """Freeze locally, relay over the fast path, then persist.

        If the server refuses the pause the local view is put right before
        the error is raised.
        """
        before = self.reconciler.view
        shown = self.reconciler.optimistic_pause(timer_id)
        try:
            if self.live is not None and shown is not None:
                self.live.pause_fast(self.room_id, timer_id, shown)
            timeset = self.api.pause(timer_id, current_time=shown)
        except TimerSyncError:
            self._recover(before)
            raise
        self.reconciler.apply_timeset(timeset)
        return timeset

    def reset(self, timer_id: int) -> dict:
        before = self.reconciler.view
        self.reconciler.optimistic_reset(timer_id)
        try:
            timeset = self.api.reset(timer_id)
        except TimerSyncError:
            self._recover(before)
            raise
        self.reconciler.apply_timeset(timeset)
        return timeset

    def adjust(self, timer_id: int, delta_ms: int) -> dict:
        rendered = self.api.adjust(timer_id, delta_ms)
        self.reconciler.apply_timeset(rendered['timeset'])
        return rendered

    def _recover(self, before) -> None:
        # Prefer the server's current session; fall back to the view we replaced
        try:
            rendered = self.api.get_room_session(self.room_id)
        except TimerSyncError as exc:
            logger.warning(f"Resync of room {self.room_id} after a refused change failed: {exc}")
            rendered = None
        if rendered is not None:
            self.reconciler.initialize_from_session(rendered)
        else:
            self.reconciler.restore(before)


def build_controller(base_url: str, room_id: int, config=None, sio=None) -> Controller:
    """Wire a controller for one room using the client settings of ``config``."""
    config = config or Config
    api = SessionApi(base_url, timeout=config.CLIENT_REQUEST_TIMEOUT_SEC)
    context = SyncContext(tick_ms=config.CLIENT_TICK_MS)
    live = LiveChannel(context, api=api, sio=sio, namespace=config.SOCKETIO_NAMESPACE)
    live.join(room_id)
    return Controller(room_id, api, context, live=live)
