"""Python client for displays and controllers.

``SessionApi`` talks to the REST routes, ``LiveChannel`` follows the Socket.IO
channel, and both feed the per-room ``Reconciler`` held by a ``SyncContext``.
"""

from .api import SessionApi
from .controller import Controller, build_controller
from .live import LiveChannel
from .reconciler import Reconciler, SyncContext, TimerView
from .ticker import Ticker

__all__ = ['Controller', 'build_controller', 'LiveChannel', 'Reconciler', 'SessionApi', 'SyncContext', 'Ticker', 'TimerView']
