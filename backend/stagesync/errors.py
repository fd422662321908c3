"""
Timer synchronization errors.

Every rejected operation raises one of these; the HTTP layer renders them
uniformly as ``{"error": message, "kind": kind}`` with the matching status,
and the Python client raises the same class back from that payload.
"""


class TimerSyncError(Exception):
    """Base class for all rejected timer operations."""
    kind = 'TimerSyncError'
    status_code = 500
    retryable = False

    def __init__(self, message=None):
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self):
        return {'error': self.message, 'kind': self.kind}


class NotFound(TimerSyncError):
    """Unknown timer or room."""
    kind = 'NotFound'
    status_code = 404


class NotActive(TimerSyncError):
    """The timer is not the one currently active in its room."""
    kind = 'NotActive'
    status_code = 409


class NotRunning(TimerSyncError):
    kind = 'NotRunning'
    status_code = 409


class Conflict(TimerSyncError):
    """Another writer changed the room's session first."""
    kind = 'Conflict'
    status_code = 409


class StoreUnavailable(TimerSyncError):
    """The durable store failed; the only kind worth retrying."""
    kind = 'StoreUnavailable'
    status_code = 503
    retryable = True


class InvalidRequest(TimerSyncError):
    kind = 'InvalidRequest'
    status_code = 400


_KINDS = {cls.kind: cls for cls in (NotFound, NotActive, NotRunning, Conflict, StoreUnavailable, InvalidRequest)}


def error_from_payload(payload, status_code=None):
    """Rebuild the exception a server response describes."""
    payload = payload or {}
    cls = _KINDS.get(payload.get('kind'))
    message = payload.get('error')
    if cls is None:
        err = TimerSyncError(message or f'Request failed with status {status_code}')
        if status_code is not None:
            err.status_code = status_code
        return err
    return cls(message)
