"""
Client implementations.
"""

from .ssh import OpenSSHConnection, ConnectionConfig, TunnelConfig

__all__ = [
    "OpenSSHConnection",
    "ConnectionConfig",
    "TunnelConfig",
]
