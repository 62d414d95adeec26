"""
Core layer: interfaces, domain state and shared services.
"""

from .exceptions import (
    SSHException, SSHConfigurationError, SSHConnectionError,
    SSHNotConnectedError, SSHTimeoutError
)

__all__ = [
    "SSHException",
    "SSHConfigurationError",
    "SSHConnectionError",
    "SSHNotConnectedError",
    "SSHTimeoutError",
]
