"""
OpenSSH session client.

This module provides a connection handle driving the external ssh client,
along with its configuration shapes and status vocabulary.
"""

from .config import (
    ASKPASS_ENV_VAR, DEFAULT_OPTIONS, Channel, ConnectionConfig, Status, TunnelConfig
)
from .connection import OpenSSHConnection

__all__ = [
    "ASKPASS_ENV_VAR",
    "DEFAULT_OPTIONS",
    "Channel",
    "ConnectionConfig",
    "Status",
    "TunnelConfig",
    "OpenSSHConnection",
]
