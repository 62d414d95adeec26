"""
Connection interfaces for SSH session handles.
"""

from abc import abstractmethod
from typing import Any, Callable, Dict, List, Optional

from .lifecycle import IStartable, IStoppable, IHealthCheckable

OutputTester = Callable[[str, str], bool]
"""Predicate receiving the accumulated (stdout, stderr) of a command."""


class ISSHConnection(IStartable, IStoppable, IHealthCheckable):
    """Interface for a single logical SSH session."""

    @abstractmethod
    async def connect(self, config: Optional[Any] = None) -> "ISSHConnection":
        """
        Establish the session, reusing an attempt already in flight.

        Args:
            config: Optional configuration overrides merged into the
                stored configuration before connecting

        Returns:
            The connected handle itself
        """
        pass

    @abstractmethod
    async def exec(
        self,
        command: str,
        tester: OutputTester,
        params: Optional[List[str]] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, str]:
        """
        Write a command to the session and wait until ``tester`` accepts
        the accumulated output.

        Returns:
            Dict with ``stdout`` and ``stderr`` keys
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Tear the session down without waiting for the process to exit."""
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        """Check if the session is connected."""
        pass
