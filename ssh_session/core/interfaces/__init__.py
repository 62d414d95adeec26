"""
Core interfaces defining the contracts of the session components.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable
from .messaging import IStatusEmitter
from .connection import ISSHConnection, OutputTester

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IStatusEmitter",
    "ISSHConnection",
    "OutputTester",
]
