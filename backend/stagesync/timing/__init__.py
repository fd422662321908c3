"""Timer math shared by the server and every client.

Nothing in this package touches Flask, the database or the network, so the
same functions render a session on the server and tick it on a display.
"""

from .calculator import (
    Appearance,
    SessionSnapshot,
    Status,
    TimerConfig,
    TimerState,
    compute_state,
    is_expired,
    now_ms,
    render_session,
    render_timeset,
    time_remaining,
    warning_level,
)
from .transitions import (
    PauseReading,
    adjust_session,
    freeze_session,
    pause_reading,
    pause_session,
    reset_session,
    resume_session,
    start_session,
)

__all__ = [
    'Appearance',
    'PauseReading',
    'SessionSnapshot',
    'Status',
    'TimerConfig',
    'TimerState',
    'adjust_session',
    'compute_state',
    'freeze_session',
    'is_expired',
    'now_ms',
    'pause_reading',
    'pause_session',
    'render_session',
    'render_timeset',
    'reset_session',
    'resume_session',
    'start_session',
    'time_remaining',
    'warning_level',
]
