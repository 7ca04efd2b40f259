"""
Core components of the listen loop.
"""

from .dispatcher import Dispatcher, DispatcherState, IMMEDIATE_THRESHOLD
from .retryer import Retryer, call_handler

__all__ = [
    'Dispatcher',
    'DispatcherState',
    'IMMEDIATE_THRESHOLD',
    'Retryer',
    'call_handler',
]
