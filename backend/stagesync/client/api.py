import logging
import time
from typing import Any, Dict, Optional

import requests

from stagesync.errors import StoreUnavailable, TimerSyncError, error_from_payload

logger = logging.getLogger(__name__)


class SessionApi:
    """Thin client for the ``/api/timer-sessions`` routes.

    Rejections are raised as the matching :mod:`stagesync.errors` class.
    ``StoreUnavailable`` (and transport failures, which surface as it) are
    retried up to ``retries`` times with exponential backoff; every other
    rejection is final.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        retries: int = 2,
        backoff: float = 0.25,
        http: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.retries = retries
        self.backoff = backoff
        self.http = http or requests.Session()
        self.socket_id: Optional[str] = None

    def _url(self, path: str) -> str:
        return f"{self.base_url}/api/timer-sessions{path}"

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                 optimistic: bool = False) -> Dict[str, Any]:
        headers = {}
        if optimistic and self.socket_id:
            headers['X-Socket-Id'] = self.socket_id
        attempt = 0
        while True:
            try:
                return self._send(method, path, body, headers)
            except StoreUnavailable:
                if attempt >= self.retries:
                    raise
                delay = self.backoff * (2 ** attempt)
                attempt += 1
                logger.warning(f"{method} {path} hit an unavailable store, retry {attempt}/{self.retries} in {delay:.2f}s")
                time.sleep(delay)

    def _send(self, method: str, path: str, body, headers) -> Dict[str, Any]:
        try:
            response = self.http.request(method, self._url(path), json=body, headers=headers, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StoreUnavailable(f'{method} {path} failed: {exc}') from exc
        try:
            payload = response.json()
        except ValueError:
            payload = None
        if response.status_code >= 400:
            raise error_from_payload(payload, response.status_code)
        if payload is None:
            raise TimerSyncError(f'{method} {path} returned no JSON body')
        return payload

    def get_session(self, timer_id: int) -> Dict[str, Any]:
        return self._request('GET', f'/{timer_id}')

    def get_room_session(self, room_id: int) -> Optional[Dict[str, Any]]:
        return self._request('GET', f'/rooms/{room_id}').get('session')

    def start(self, timer_id: int) -> Dict[str, Any]:
        return self._request('POST', f'/{timer_id}/start')

    def pause(self, timer_id: int, current_time: Optional[int] = None, timestamp: Optional[int] = None) -> Dict[str, Any]:
        body = {}
        if current_time is not None:
            body['currentTime'] = current_time
        if timestamp is not None:
            body['timestamp'] = timestamp
        return self._request('POST', f'/{timer_id}/pause', body, optimistic=True)

    def reset(self, timer_id: int) -> Dict[str, Any]:
        return self._request('POST', f'/{timer_id}/reset', optimistic=True)

    def adjust(self, timer_id: int, delta_ms: int) -> Dict[str, Any]:
        return self._request('POST', f'/{timer_id}/adjust', {'deltaMs': delta_ms})
