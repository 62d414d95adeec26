"""
Status event records.

Every status a connection announces is captured as an immutable
``StatusEvent`` so that emitters can keep a short history for health
reporting.
"""

import time
from dataclasses import dataclass, field
from typing import Any

TOPIC_SEPARATOR = ":"


def make_topic(channel: str, status: str) -> str:
    """Build the composite ``channel:status`` topic."""
    return f"{channel}{TOPIC_SEPARATOR}{status}"


@dataclass(frozen=True)
class StatusEvent:
    """A status announced on a channel."""

    channel: str
    """Channel name, e.g. ``ssh``."""

    status: str
    """Status name, e.g. ``connect``."""

    payload: Any = None
    """Optional payload passed to subscribers."""

    timestamp: float = field(default_factory=time.time)
    """Unix timestamp of the emission."""

    def __post_init__(self) -> None:
        if not self.channel:
            raise ValueError("Event channel cannot be empty")
        if not self.status:
            raise ValueError("Event status cannot be empty")

    @property
    def topic(self) -> str:
        """Composite subscription key for this event."""
        return make_topic(self.channel, self.status)

    def to_dict(self) -> dict:
        return {
            'channel': self.channel,
            'status': self.status,
            'topic': self.topic,
            'timestamp': self.timestamp,
        }
