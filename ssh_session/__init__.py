"""
ssh-session - manage one SSH session through the OpenSSH client.

This package drives the external ``ssh`` process for a single logical
session: connect, run commands over its standard streams, disconnect,
reconnect on failure and optionally open a SOCKS tunnel. Status changes
are announced on channel and channel:status topics.
"""

__version__ = "0.1.0"

from .core.domain.state import ConnectionStatus
from .core.exceptions import (
    SSHException, SSHConfigurationError, SSHConnectionError,
    SSHNotConnectedError, SSHTimeoutError
)
from .core.interfaces.connection import ISSHConnection
from .core.services.status_emitter import StatusEmitter
from .infrastructure.clients.ssh import (
    Channel, ConnectionConfig, OpenSSHConnection, Status, TunnelConfig
)

__all__ = [
    "ConnectionStatus",
    "SSHException",
    "SSHConfigurationError",
    "SSHConnectionError",
    "SSHNotConnectedError",
    "SSHTimeoutError",
    "ISSHConnection",
    "StatusEmitter",
    "Channel",
    "ConnectionConfig",
    "OpenSSHConnection",
    "Status",
    "TunnelConfig",
]
