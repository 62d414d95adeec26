"""
Status emitter implementation for channel/status publish-subscribe.

Every emission notifies two independent subscriber lists: the ones
registered on the coarse channel and the ones registered on the composite
``channel:status`` topic.
"""

import asyncio
import inspect
import logging
import time
import uuid
from collections import defaultdict, deque
from typing import Any, Callable, Deque, Dict, List, Optional

from ..domain.events import StatusEvent
from ..interfaces.messaging import IStatusEmitter

logger = logging.getLogger(__name__)


class StatusSubscription:
    """Represents a status subscription."""

    def __init__(self, subscription_id: str, topic: str,
                 handler: Callable[..., Any], once: bool = False):
        self.subscription_id = subscription_id
        self.topic = topic
        self.handler = handler
        self.once = once
        self.created_at = time.time()
        self.call_count = 0
        self.last_called: Optional[float] = None
        self.error_count = 0


class StatusEmitter(IStatusEmitter):
    """
    Synchronous two-key status emitter.

    Handlers run inline in subscription order. Coroutine handlers are
    scheduled on the running loop. A failing handler is logged and never
    stops the remaining handlers or the emitting component.
    """

    def __init__(self, history_size: int = 100):
        self._subscriptions: Dict[str, List[StatusSubscription]] = defaultdict(list)
        self._history: Deque[StatusEvent] = deque(maxlen=history_size)
        self._pending_tasks: "set[asyncio.Task[Any]]" = set()

        self._metrics: Dict[str, int] = {
            'events_emitted': 0,
            'handlers_called': 0,
            'handlers_failed': 0,
        }

    def subscribe(self, topic: str, handler: Callable[..., Any]) -> str:
        """Subscribe a handler to a channel or a ``channel:status`` topic."""
        return self._add(topic, handler, once=False)

    def subscribe_once(self, topic: str, handler: Callable[..., Any]) -> str:
        """Subscribe a handler that is removed after its first call."""
        return self._add(topic, handler, once=True)

    def unsubscribe(self, subscription_id: str) -> bool:
        """Unsubscribe using subscription ID."""
        for topic, subscriptions in self._subscriptions.items():
            for i, subscription in enumerate(subscriptions):
                if subscription.subscription_id == subscription_id:
                    subscriptions.pop(i)
                    logger.debug(f"Removed subscription {subscription_id} for '{topic}'")
                    return True
        return False

    def unsubscribe_handler(self, topic: str, handler: Callable[..., Any]) -> int:
        """Remove every subscription of ``handler`` on ``topic``."""
        subscriptions = self._subscriptions.get(topic, [])
        kept = [s for s in subscriptions if s.handler != handler]
        removed = len(subscriptions) - len(kept)
        if removed:
            self._subscriptions[topic] = kept
        return removed

    def emit(self, channel: str, status: str, source: Any, payload: Any = None) -> int:
        """Publish ``status`` on ``channel`` and on ``channel:status``."""
        event = StatusEvent(channel=channel, status=status, payload=payload)
        self._history.append(event)
        self._metrics['events_emitted'] += 1

        logger.debug(f"Emitting {event.topic}")

        called = self._dispatch(channel, (source, status, payload))
        called += self._dispatch(event.topic, (source, payload))
        return called

    def listener_count(self, topic: str) -> int:
        """Number of subscriptions registered on ``topic``."""
        return len(self._subscriptions.get(topic, []))

    @property
    def history(self) -> List[StatusEvent]:
        """Most recent emissions, oldest first."""
        return list(self._history)

    @property
    def last_event(self) -> Optional[StatusEvent]:
        return self._history[-1] if self._history else None

    def get_metrics(self) -> Dict[str, Any]:
        return {
            **self._metrics,
            'subscriptions_count': sum(len(s) for s in self._subscriptions.values()),
        }

    def _add(self, topic: str, handler: Callable[..., Any], once: bool) -> str:
        if not topic:
            raise ValueError("Subscription topic cannot be empty")

        subscription_id = str(uuid.uuid4())
        self._subscriptions[topic].append(
            StatusSubscription(subscription_id, topic, handler, once=once))

        logger.debug(f"Added subscription for '{topic}' (ID: {subscription_id})")
        return subscription_id

    def _dispatch(self, topic: str, args: tuple) -> int:
        subscriptions = self._subscriptions.get(topic)
        if not subscriptions:
            return 0

        called = 0
        # Copy so handlers may unsubscribe while being called.
        for subscription in list(subscriptions):
            if subscription.once:
                self.unsubscribe(subscription.subscription_id)
            try:
                result = subscription.handler(*args)
                if inspect.isawaitable(result):
                    self._schedule(result, topic)
                subscription.call_count += 1
                subscription.last_called = time.time()
            except Exception as e:
                subscription.error_count += 1
                self._metrics['handlers_failed'] += 1
                logger.error(f"Handler error for {topic}: {e}")
            called += 1

        self._metrics['handlers_called'] += called
        return called

    def _schedule(self, awaitable: Any, topic: str) -> None:
        task = asyncio.ensure_future(awaitable)
        self._pending_tasks.add(task)

        def _done(finished: "asyncio.Task[Any]") -> None:
            self._pending_tasks.discard(finished)
            if not finished.cancelled() and finished.exception() is not None:
                self._metrics['handlers_failed'] += 1
                logger.error(f"Async handler error for {topic}: {finished.exception()}")

        task.add_done_callback(_done)
