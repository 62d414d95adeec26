"""
Domain models for the session lifecycle.
"""

from .events import StatusEvent, make_topic
from .state import (
    ConnectionState, ConnectionStatus, Effect, LifecycleEvent,
    LifecycleEventType, ReconnectPolicy, transition
)

__all__ = [
    "StatusEvent",
    "make_topic",
    "ConnectionState",
    "ConnectionStatus",
    "Effect",
    "LifecycleEvent",
    "LifecycleEventType",
    "ReconnectPolicy",
    "transition",
]
