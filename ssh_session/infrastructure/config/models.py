"""
Application configuration models.

This module defines the configuration read by the command-line entry
point: which host to connect to, the optional tunnel and logging settings.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ..clients.ssh.config import ConnectionConfig, TunnelConfig


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    tunnel: Optional[TunnelConfig] = None
    askpass: Optional[str] = None
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if self.tunnel is not None and self.tunnel.local_port is not None:
            if not (1 <= self.tunnel.local_port <= 65535):
                raise ValueError(
                    f"Tunnel local port must be between 1 and 65535, got {self.tunnel.local_port}")

        if self.logging.level.upper() not in ("TRACE", "DEBUG", "INFO", "SUCCESS",
                                              "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {self.logging.level}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            'connection': self.connection.to_dict(),
            'tunnel': self.tunnel.to_dict() if self.tunnel else None,
            'askpass': self.askpass,
            'logging': dict(self.logging.__dict__),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        tunnel_data = data.get('tunnel')
        return cls(
            connection=ConnectionConfig.from_dict(data.get('connection') or {}),
            tunnel=TunnelConfig.from_dict(tunnel_data) if tunnel_data else None,
            askpass=data.get('askpass'),
            logging=LoggingConfig(**(data.get('logging') or {})),
            config_file_path=data.get('config_file_path'),
        )
