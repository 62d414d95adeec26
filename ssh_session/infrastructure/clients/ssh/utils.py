import os
import socket
from typing import Dict, Mapping, Optional

from .config import ASKPASS_ENV_VAR


def ssh_executable(override: Optional[str] = None) -> str:
    """Name of the OpenSSH client binary for this platform."""
    if override:
        return override
    return 'ssh.exe' if os.name == 'nt' else 'ssh'


def find_free_port(host: str = '127.0.0.1') -> int:
    """Ask the OS for an unused TCP port on ``host``."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind((host, 0))
        return sock.getsockname()[1]


def build_environment(askpass: Optional[str] = None,
                      base: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Environment for the ssh process.

    The base mapping (the current environment when omitted) is copied, so
    the process-wide environment is never touched.
    """
    env = dict(os.environ if base is None else base)
    env[ASKPASS_ENV_VAR] = askpass or ''
    return env
