import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class Ticker:
    """Cooperative repeating callback on a background thread.

    ``stop()`` returns promptly; the callback is never invoked after it.
    """

    def __init__(self, interval_ms: int, callback: Callable[[], None], name: str = 'stagesync-ticker'):
        self.interval = max(1, int(interval_ms)) / 1000.0
        self._callback = callback
        self._name = name
        self._stop = threading.Event()
        self._thread = None

    @property
    def active(self) -> bool:
        return self._thread is not None and self._thread.is_alive() and not self._stop.is_set()

    def start(self) -> None:
        if self.active:
            return
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, args=(self._stop,), name=self._name, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self.interval * 2, 1.0))

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval):
            try:
                self._callback()
            except Exception:
                # keep ticking for the remaining subscribers
                logger.exception("Tick callback failed")
