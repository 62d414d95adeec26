"""
Core services shared by the session components.
"""

from .status_emitter import StatusEmitter, StatusSubscription

__all__ = [
    "StatusEmitter",
    "StatusSubscription",
]
