"""
Connection lifecycle state machine.

The connection handle never mutates its lifecycle state directly. Every
process notification and caller request is turned into a ``LifecycleEvent``
and fed through ``transition``, which returns the next state together with
the side effects the handle has to carry out. Keeping the function pure
lets the retry rules be tested without spawning anything or waiting on
timers.
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional, Tuple


class ConnectionStatus(Enum):
    """Connection lifecycle status."""
    NOT_CONNECTED = "not_connected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    WAITING = "waiting"
    DISCONNECTED = "disconnected"
    FAILED = "failed"


# An attempt exists in these states, so new connect requests join it.
ACTIVE_STATUSES = frozenset({
    ConnectionStatus.CONNECTING,
    ConnectionStatus.CONNECTED,
    ConnectionStatus.WAITING,
})


class LifecycleEventType(Enum):
    """Things that can happen to a connection."""
    CONNECT_REQUESTED = "connect_requested"
    CONFIG_REJECTED = "config_rejected"
    RETRY_FIRED = "retry_fired"
    SPAWNED = "spawned"
    SPAWN_FAILED = "spawn_failed"
    EXITED = "exited"
    DISCONNECT_REQUESTED = "disconnect_requested"


class Effect(Enum):
    """Side effects requested by a transition, executed in order."""
    EMIT_BEFORECONNECT = "emit_beforeconnect"
    SPAWN = "spawn"
    EMIT_CONNECT = "emit_connect"
    RESOLVE = "resolve"
    EMIT_DISCONNECT = "emit_disconnect"
    SCHEDULE_RETRY = "schedule_retry"
    REJECT = "reject"
    EMIT_BEFOREDISCONNECT = "emit_beforedisconnect"
    KILL = "kill"


@dataclass(frozen=True)
class LifecycleEvent:
    """A single lifecycle notification."""
    type: LifecycleEventType
    exit_code: Optional[int] = None
    signal: Optional[int] = None
    error: Optional[Any] = None

    @property
    def abnormal(self) -> bool:
        """Whether this event represents a failure of the process."""
        if self.type in (LifecycleEventType.SPAWN_FAILED, LifecycleEventType.CONFIG_REJECTED):
            return True
        if self.type == LifecycleEventType.EXITED:
            return self.exit_code != 0 or self.signal is not None
        return False


@dataclass(frozen=True)
class ReconnectPolicy:
    """Reconnect settings the transition function consults."""
    enabled: bool = False
    max_tries: int = 3
    delay_ms: int = 5000

    @property
    def delay(self) -> float:
        """Delay in seconds."""
        return self.delay_ms / 1000.0


@dataclass(frozen=True)
class ConnectionState:
    """Immutable snapshot of a connection's lifecycle."""
    status: ConnectionStatus = ConnectionStatus.NOT_CONNECTED
    retries: int = 0
    last_error: Optional[Any] = None

    @property
    def has_attempt(self) -> bool:
        """Whether an attempt is in flight or established."""
        return self.status in ACTIVE_STATUSES


Transition = Tuple[ConnectionState, Tuple[Effect, ...]]


def transition(state: ConnectionState, event: LifecycleEvent,
               policy: ReconnectPolicy) -> Transition:
    """
    Compute the next state and the effects for ``event``.

    Args:
        state: Current state
        event: Event that happened
        policy: Reconnect policy in force

    Returns:
        Tuple of (next state, effects to execute in order)
    """
    kind = event.type

    if kind == LifecycleEventType.CONNECT_REQUESTED:
        if state.status == ConnectionStatus.CONNECTED:
            return state, ()
        # Requests joining a pending attempt still count against the budget.
        retries = state.retries + 1
        if state.has_attempt:
            return replace(state, retries=retries), ()
        return (
            replace(state, status=ConnectionStatus.CONNECTING, retries=retries),
            (Effect.EMIT_BEFORECONNECT, Effect.SPAWN),
        )

    if kind == LifecycleEventType.RETRY_FIRED:
        if state.status != ConnectionStatus.WAITING:
            return state, ()
        return (
            replace(state, status=ConnectionStatus.CONNECTING, retries=state.retries + 1),
            (Effect.EMIT_BEFORECONNECT, Effect.SPAWN),
        )

    if kind == LifecycleEventType.CONFIG_REJECTED:
        return (
            replace(state, status=ConnectionStatus.FAILED, last_error=event.error),
            (Effect.REJECT,),
        )

    if kind == LifecycleEventType.SPAWNED:
        return (
            ConnectionState(status=ConnectionStatus.CONNECTED, retries=0, last_error=None),
            (Effect.EMIT_CONNECT, Effect.RESOLVE),
        )

    if kind in (LifecycleEventType.EXITED, LifecycleEventType.SPAWN_FAILED):
        if state.status not in (ConnectionStatus.CONNECTING, ConnectionStatus.CONNECTED):
            # The attempt was abandoned before the process reported back.
            return state, ()
        last_error = event.error if event.abnormal else state.last_error
        if policy.enabled and state.retries < policy.max_tries:
            return (
                replace(state, status=ConnectionStatus.WAITING, last_error=last_error),
                (Effect.EMIT_DISCONNECT, Effect.SCHEDULE_RETRY),
            )
        status = ConnectionStatus.FAILED if last_error is not None else ConnectionStatus.DISCONNECTED
        return (
            replace(state, status=status, last_error=last_error),
            (Effect.EMIT_DISCONNECT, Effect.REJECT),
        )

    if kind == LifecycleEventType.DISCONNECT_REQUESTED:
        return (
            replace(state, status=ConnectionStatus.DISCONNECTED),
            (Effect.EMIT_BEFOREDISCONNECT, Effect.KILL, Effect.REJECT),
        )

    raise ValueError(f"Unknown lifecycle event: {kind}")
