"""
Lifecycle interfaces for components that own external resources.

A connection handle owns a child process, so it exposes the same
start/stop/health contract as any other long-lived component.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class IStartable(ABC):
    """Interface for components that can be started."""

    @abstractmethod
    async def start(self) -> None:
        """
        Start the component.

        Raises:
            Exception: If the component fails to start.
        """
        pass


class IStoppable(ABC):
    """Interface for components that can be stopped."""

    @abstractmethod
    async def stop(self) -> None:
        """
        Stop the component and release whatever it holds.

        Implementations must not raise when the component is already stopped.
        """
        pass


class IHealthCheckable(ABC):
    """Interface for components that can report their health status."""

    @abstractmethod
    async def check_health(self) -> Dict[str, Any]:
        """
        Check the health status of the component.

        Returns:
            Dict containing at least:
            - 'healthy': bool indicating if component is healthy
            - 'status': str describing current status
            - 'details': Dict with additional health details

        Example:
            {
                'healthy': True,
                'status': 'connected',
                'details': {
                    'unique_id': 'deploy@example.com',
                    'retries': 0,
                    'last_error': None
                }
            }
        """
        pass
