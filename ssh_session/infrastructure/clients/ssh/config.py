"""
SSH session configuration and constants.

This module defines the connection and tunnel configuration shapes, the
default option values and the fixed vocabulary of channels and statuses a
connection announces.
"""

from dataclasses import MISSING, Field, dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Union

from ....core.exceptions import SSHConfigurationError


class Channel:
    """Event channels."""
    SSH = "ssh"
    TUNNEL = "tunnel"
    X11 = "x11"


class Status:
    """Statuses announced on a channel."""
    BEFORECONNECT = "beforeconnect"
    CONNECT = "connect"
    BEFOREDISCONNECT = "beforedisconnect"
    DISCONNECT = "disconnect"


DEFAULT_OPTIONS: Dict[str, Any] = {
    'reconnect': False,
    'port': 22,
    'reconnect_tries': 3,
    'reconnect_delay': 5000,
}

ASKPASS_ENV_VAR = "SSH_ASKPASS"

# Keys accepted by from_dict besides the field names themselves.
_KEY_ALIASES = {
    'uniqueId': 'unique_id',
    'reconnectTries': 'reconnect_tries',
    'reconnectDelay': 'reconnect_delay',
    'localPort': 'local_port',
    'remoteAddr': 'remote_addr',
    'remotePort': 'remote_port',
    'remoteSocketPath': 'remote_socket_path',
    'sshBinary': 'ssh_binary',
    'extraArgs': 'extra_args',
}


def _normalize_keys(cls: type, data: Dict[str, Any]) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    result = {}
    for key, value in data.items():
        key = _KEY_ALIASES.get(key, key)
        if key not in names:
            raise SSHConfigurationError(f"Unknown {cls.__name__} option: {key}")
        result[key] = value
    return result


def _field_default(f: Field) -> Any:
    if f.default is not MISSING:
        return f.default
    if f.default_factory is not MISSING:
        return f.default_factory()
    return None


@dataclass
class ConnectionConfig:
    """SSH connection configuration."""

    host: Optional[str] = None
    username: Optional[str] = None
    port: Optional[int] = DEFAULT_OPTIONS['port']
    unique_id: Optional[str] = None
    identity: Optional[str] = None
    sock: Optional[str] = None

    # Reconnect behaviour
    reconnect: bool = DEFAULT_OPTIONS['reconnect']
    reconnect_tries: int = DEFAULT_OPTIONS['reconnect_tries']
    reconnect_delay: int = DEFAULT_OPTIONS['reconnect_delay']  # milliseconds

    # Process settings
    ssh_binary: Optional[str] = None
    extra_args: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.port is not None and not (1 <= int(self.port) <= 65535):
            raise SSHConfigurationError(f"SSH port must be between 1 and 65535, got {self.port}")

        if self.reconnect_tries < 0:
            raise SSHConfigurationError("Reconnect tries cannot be negative")

        if self.reconnect_delay < 0:
            raise SSHConfigurationError("Reconnect delay cannot be negative")

        if not self.unique_id:
            self.unique_id = f"{self.username}@{self.host}"

    @property
    def is_valid(self) -> bool:
        """Whether a connection can be attempted with this configuration."""
        return bool((self.host or self.sock) and self.username)

    def validate(self) -> None:
        """Raise SSHConfigurationError when a connection cannot be attempted."""
        if not self.is_valid:
            raise SSHConfigurationError(
                "Invalid SSH connection configuration host/username can't be empty")

    def merge(self, overrides: Union["ConnectionConfig", Dict[str, Any], None]) -> "ConnectionConfig":
        """
        Return a copy with override values applied.

        Args:
            overrides: Another config or a mapping of options. ``None``
                values never replace stored ones; for a config object only
                the fields that differ from their defaults are applied.

        Returns:
            New merged configuration
        """
        if overrides is None:
            return replace(self)

        if isinstance(overrides, ConnectionConfig):
            changes = {
                f.name: getattr(overrides, f.name)
                for f in fields(overrides)
                if getattr(overrides, f.name) != _field_default(f)
            }
            # A derived unique id must not shadow the stored one.
            if overrides.unique_id == f"{overrides.username}@{overrides.host}":
                changes.pop('unique_id', None)
        else:
            changes = _normalize_keys(ConnectionConfig, overrides)

        changes = {k: v for k, v in changes.items() if v is not None}
        merged = replace(self, **changes)
        if 'unique_id' not in changes and self.unique_id == f"{self.username}@{self.host}":
            merged.unique_id = f"{merged.username}@{merged.host}"
        return merged

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary, leaving out a derived unique id."""
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        if self.unique_id == f"{self.username}@{self.host}":
            result["unique_id"] = None
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionConfig":
        """Create configuration from a dictionary, accepting camelCase keys."""
        return cls(**_normalize_keys(cls, data or {}))


@dataclass
class TunnelConfig:
    """
    SOCKS or local-forward tunnel description.

    Only used to build ssh arguments. ``local_port`` left unset binds an
    OS-assigned free port when the process is spawned.
    """
    local_port: Optional[int] = None
    remote_addr: Optional[str] = None
    remote_port: Optional[int] = None
    remote_socket_path: Optional[str] = None
    socks: bool = True
    name: Optional[str] = None

    @property
    def has_remote_target(self) -> bool:
        return bool(self.remote_socket_path or (self.remote_addr and self.remote_port))

    @property
    def is_dynamic(self) -> bool:
        """Whether the tunnel is a SOCKS (``-D``) tunnel."""
        return self.socks or not self.has_remote_target

    def to_ssh_args(self, local_port: int) -> List[str]:
        """Build the bind arguments for the given local port."""
        if self.is_dynamic:
            return ['-D', str(local_port)]

        if self.remote_socket_path:
            return ['-L', f"{local_port}:{self.remote_socket_path}"]
        return ['-L', f"{local_port}:{self.remote_addr}:{self.remote_port}"]

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TunnelConfig":
        return cls(**_normalize_keys(cls, data or {}))
