"""
Status messaging interfaces.

Status changes of a connection are published on a coarse channel and on a
composite ``"channel:status"`` topic so that listeners can subscribe either
broadly or to one specific transition.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable


class IStatusEmitter(ABC):
    """Interface for channel/status publish-subscribe."""

    @abstractmethod
    def subscribe(self, topic: str, handler: Callable[..., Any]) -> str:
        """
        Subscribe a handler to a topic.

        Args:
            topic: Either a channel name (``"ssh"``) or a composite
                ``"channel:status"`` key (``"ssh:connect"``)
            handler: Callable invoked on every matching emission

        Returns:
            Subscription ID usable with ``unsubscribe``
        """
        pass

    @abstractmethod
    def unsubscribe(self, subscription_id: str) -> bool:
        """Remove a subscription. Returns False if it was not found."""
        pass

    @abstractmethod
    def emit(self, channel: str, status: str, source: Any, payload: Any = None) -> int:
        """
        Publish a status on both the channel and the composite topic.

        Channel subscribers receive ``(source, status, payload)``, composite
        subscribers receive ``(source, payload)``.

        Returns:
            Number of handlers that were invoked
        """
        pass
