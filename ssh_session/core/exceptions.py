from typing import Optional


class SSHException(Exception):
    """Base exception for all SSH session errors"""
    pass


class SSHConfigurationError(SSHException, ValueError):
    """Raised when a connection configuration cannot be used"""
    pass


class SSHConnectionError(SSHException):
    """Raised when the ssh process fails to start or exits abnormally"""

    def __init__(self, message: str, exit_code: Optional[int] = None, signal: Optional[int] = None):
        self.exit_code = exit_code
        self.signal = signal
        super().__init__(message)

    @classmethod
    def from_exit(cls, exit_code: Optional[int], signal: Optional[int]) -> "SSHConnectionError":
        return cls(
            f"SSH connection failed with code {exit_code} and signal {signal}",
            exit_code=exit_code,
            signal=signal
        )


class SSHNotConnectedError(SSHException):
    """Raised when an operation needs a running ssh process and there is none"""
    pass


class SSHTimeoutError(SSHException):
    """Raised when a command does not produce accepted output in time"""

    def __init__(self, message: str, command: Optional[str] = None, stdout: str = "", stderr: str = ""):
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(message)
