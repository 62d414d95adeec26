"""
OpenSSH connection handle.

This module drives the external OpenSSH client as a child process and
exposes it as a single logical session with connect, exec and disconnect
operations, an optional SOCKS tunnel and reconnect on abnormal exit.
"""

import asyncio
import codecs
import logging
import os
from dataclasses import replace
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from ....core.domain.state import (
    ConnectionState, ConnectionStatus, Effect, LifecycleEvent,
    LifecycleEventType, ReconnectPolicy, transition
)
from ....core.exceptions import (
    SSHConfigurationError, SSHConnectionError, SSHNotConnectedError, SSHTimeoutError
)
from ....core.interfaces.connection import ISSHConnection, OutputTester
from ....core.services.status_emitter import StatusEmitter
from .config import Channel, ConnectionConfig, Status, TunnelConfig
from .utils import build_environment, find_free_port, ssh_executable

logger = logging.getLogger(__name__)

STREAMS = ('stdout', 'stderr')
READ_CHUNK_SIZE = 4096


def _consume_exception(future: "asyncio.Future[Any]") -> None:
    # Rejections nobody awaits must not be reported as unretrieved.
    if not future.cancelled():
        future.exception()


class OpenSSHConnection(ISSHConnection):
    """
    One SSH session backed by an ``ssh`` child process.

    Status changes are announced on the ``ssh`` channel and on the
    ``ssh:<status>`` topic of the attached emitter. Only one command should
    be in flight per handle; output listeners of concurrent ``exec`` calls
    see each other's data.
    """

    def __init__(
        self,
        config: Union[ConnectionConfig, Dict[str, Any]],
        tunnel_config: Optional[TunnelConfig] = None,
        askpass: Optional[str] = None,
        emitter: Optional[StatusEmitter] = None,
        environment: Optional[Mapping[str, str]] = None,
    ):
        """
        Initialize the connection handle.

        Args:
            config: Connection configuration or a mapping of options
            tunnel_config: Optional tunnel to open alongside the session
            askpass: Path of the askpass helper exported as SSH_ASKPASS
            emitter: Status emitter, a private one is created if omitted
            environment: Base environment for the process instead of the
                current one
        """
        if isinstance(config, dict):
            config = ConnectionConfig.from_dict(config)
        self.config = replace(config)
        self.tunnel_config = tunnel_config
        self.askpass = askpass
        self.tunnel_port: Optional[int] = None

        self._emitter = emitter or StatusEmitter()
        self._environment = environment
        self._state = ConnectionState()
        self._pending: Optional["asyncio.Future[OpenSSHConnection]"] = None
        self._process: Optional[asyncio.subprocess.Process] = None
        self._retry_handle: Optional[asyncio.TimerHandle] = None
        self._tasks: "set[asyncio.Task[Any]]" = set()
        self._stream_listeners: Dict[str, List[Callable[[str], None]]] = {
            name: [] for name in STREAMS
        }
        self._spawn_count = 0

        self._effects: Dict[Effect, Callable[[], None]] = {
            Effect.EMIT_BEFORECONNECT: lambda: self.emit(Channel.SSH, Status.BEFORECONNECT),
            Effect.SPAWN: self._start_attempt,
            Effect.EMIT_CONNECT: lambda: self.emit(Channel.SSH, Status.CONNECT),
            Effect.RESOLVE: self._resolve_pending,
            Effect.EMIT_DISCONNECT: lambda: self.emit(Channel.SSH, Status.DISCONNECT),
            Effect.SCHEDULE_RETRY: self._schedule_retry,
            Effect.REJECT: self._reject_pending,
            Effect.EMIT_BEFOREDISCONNECT: lambda: self.emit(Channel.SSH, Status.BEFOREDISCONNECT),
            Effect.KILL: self._kill,
        }

    @property
    def name(self) -> str:
        """Get the unique id of this session."""
        return self.config.unique_id or "ssh"

    @property
    def emitter(self) -> StatusEmitter:
        return self._emitter

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    @property
    def retries(self) -> int:
        return self._state.retries

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._state.last_error

    @property
    def spawn_count(self) -> int:
        """Number of ssh processes started by this handle."""
        return self._spawn_count

    @property
    def process(self) -> Optional[asyncio.subprocess.Process]:
        return self._process

    def is_connected(self) -> bool:
        return self._state.status == ConnectionStatus.CONNECTED and self._process is not None

    # Events

    def emit(self, channel: str, status: str, payload: Any = None) -> int:
        """Announce ``status`` on ``channel`` and on ``channel:status``."""
        return self._emitter.emit(channel, status, self, payload)

    def on(self, topic: str, handler: Callable[..., Any]) -> str:
        """Subscribe to a channel or a ``channel:status`` topic."""
        return self._emitter.subscribe(topic, handler)

    def once(self, topic: str, handler: Callable[..., Any]) -> str:
        return self._emitter.subscribe_once(topic, handler)

    def off(self, subscription_id: str) -> bool:
        return self._emitter.unsubscribe(subscription_id)

    # Public API

    async def connect(self, config: Union[ConnectionConfig, Dict[str, Any], None] = None) -> "OpenSSHConnection":
        """
        Connect the session.

        Overlapping calls share the attempt already in flight, so at most
        one ssh process is spawned per handle.

        Args:
            config: Overrides merged into the stored configuration

        Returns:
            This handle once the ssh process has started

        Raises:
            SSHConfigurationError: If host/socket or username is missing
            SSHConnectionError: If the process exits abnormally and no
                reconnect attempt remains
        """
        if config is not None:
            self.config = self.config.merge(config)

        pending = self._pending
        self._dispatch(LifecycleEvent(LifecycleEventType.CONNECT_REQUESTED))
        # A rejected configuration leaves no pending attempt behind.
        if self._pending is None:
            if isinstance(self._state.last_error, BaseException):
                raise self._state.last_error
            raise SSHConnectionError("SSH connection failed")

        if pending is self._pending:
            logger.debug(f"Joining pending connection attempt for {self.name}")
        return await asyncio.shield(self._pending)

    async def exec(
        self,
        command: str,
        tester: OutputTester,
        params: Optional[List[str]] = None,
        timeout: Optional[float] = None
    ) -> Dict[str, str]:
        """
        Run a command in the session.

        The command and its params are written to the process input
        followed by a newline. ``tester`` is called with the accumulated
        stdout and stderr after every chunk on either stream; the first
        call returning True completes the command.

        Args:
            command: Command line to write
            tester: Completion predicate over (stdout, stderr)
            params: Extra arguments appended space-separated
            timeout: Seconds to wait for ``tester``; waits forever if None

        Returns:
            Dict with the accumulated ``stdout`` and ``stderr``

        Raises:
            SSHNotConnectedError: If no process is running after connecting
            SSHTimeoutError: If ``timeout`` elapses first
        """
        if params:
            command = f"{command} {' '.join(params)}"

        await self.connect()

        process = self._process
        if process is None or process.stdin is None:
            raise SSHNotConnectedError(f"SSH process for {self.name} is not running")

        done: "asyncio.Future[Dict[str, str]]" = asyncio.get_running_loop().create_future()
        output = {name: '' for name in STREAMS}

        def make_listener(stream: str) -> Callable[[str], None]:
            def listener(text: str) -> None:
                output[stream] += text
                if done.done():
                    return
                try:
                    if tester(output['stdout'], output['stderr']):
                        done.set_result(dict(output))
                except Exception as e:
                    done.set_exception(e)
            return listener

        listeners = {stream: make_listener(stream) for stream in STREAMS}
        for stream, listener in listeners.items():
            self._stream_listeners[stream].append(listener)

        try:
            logger.debug(f"Executing on {self.name}: {command}")
            process.stdin.write(f"{command}\n".encode())
            await process.stdin.drain()

            if timeout is None:
                return await done
            try:
                return await asyncio.wait_for(done, timeout=timeout)
            except asyncio.TimeoutError:
                raise SSHTimeoutError(
                    f"Command timed out after {timeout} seconds",
                    command=command,
                    stdout=output['stdout'],
                    stderr=output['stderr']
                ) from None
        finally:
            for stream, listener in listeners.items():
                if listener in self._stream_listeners[stream]:
                    self._stream_listeners[stream].remove(listener)

    async def disconnect(self) -> None:
        """
        Disconnect the session.

        The process is terminated but its exit is not awaited. Never raises.
        """
        self._dispatch(LifecycleEvent(LifecycleEventType.DISCONNECT_REQUESTED))

    # Lifecycle

    async def start(self) -> None:
        """Start the component by connecting."""
        await self.connect()

    async def stop(self) -> None:
        """Disconnect and cancel every background task."""
        await self.disconnect()

        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks.clear()

    async def check_health(self) -> Dict[str, Any]:
        """Check connection health."""
        last_event = self._emitter.last_event
        return {
            'healthy': self.is_connected(),
            'status': self._state.status.value,
            'details': {
                'unique_id': self.name,
                'pid': self._process.pid if self._process else None,
                'retries': self._state.retries,
                'spawn_count': self._spawn_count,
                'tunnel_port': self.tunnel_port,
                'last_error': str(self._state.last_error) if self._state.last_error else None,
                'last_event': last_event.to_dict() if last_event else None,
            }
        }

    async def __aenter__(self) -> "OpenSSHConnection":
        return await self.connect()

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    # Process arguments

    def get_ssh_args(self) -> List[str]:
        """
        Build the ssh argument list from the current configuration.

        Returns:
            Arguments without the executable itself
        """
        args = ['-v', '-T']

        if self.tunnel_config is not None:
            if self.tunnel_port is None:
                self.tunnel_port = self.tunnel_config.local_port or find_free_port()
            args.extend(self.tunnel_config.to_ssh_args(self.tunnel_port))

        if self.config.identity:
            args.extend(['-i', str(self.config.identity)])

        if self.config.port:
            args.extend(['-p', str(self.config.port)])

        if self.config.sock:
            args.extend(['-S', str(self.config.sock)])

        args.extend(self.config.extra_args)

        host = self.config.host or 'localhost'
        if self.config.username:
            args.append(f"{self.config.username}@{host}")
        else:
            args.append(host)

        return args

    # State machine plumbing

    @property
    def _policy(self) -> ReconnectPolicy:
        return ReconnectPolicy(
            enabled=self.config.reconnect,
            max_tries=self.config.reconnect_tries,
            delay_ms=self.config.reconnect_delay
        )

    def _dispatch(self, event: LifecycleEvent) -> None:
        previous = self._state.status
        self._state, effects = transition(self._state, event, self._policy)

        if previous != self._state.status:
            logger.debug(
                f"Connection {self.name} status changed: {previous.value} -> {self._state.status.value}")

        for effect in effects:
            self._effects[effect]()

    def _start_attempt(self) -> None:
        if self._pending is None or self._pending.done():
            self._pending = asyncio.get_running_loop().create_future()
            self._pending.add_done_callback(_consume_exception)

        try:
            self.config.validate()
        except SSHConfigurationError as e:
            logger.error(f"Cannot connect {self.name}: {e}")
            self._dispatch(LifecycleEvent(LifecycleEventType.CONFIG_REJECTED, error=e))
            return

        if self.config.identity:
            identity = os.path.expanduser(str(self.config.identity))
            if os.path.exists(identity):
                self.config.identity = identity
            else:
                logger.debug(f"Identity file {identity} not found, ignoring it")
                self.config.identity = None

        self._track(self._spawn(self.get_ssh_args()))

    async def _spawn(self, args: List[str]) -> None:
        executable = ssh_executable(self.config.ssh_binary)
        logger.info(f"Starting {executable} for {self.name}")
        logger.debug(f"ssh arguments: {args}")

        try:
            process = await asyncio.create_subprocess_exec(
                executable, *args,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=build_environment(self.askpass, self._environment)
            )
        except OSError as e:
            logger.error(f"Failed to start {executable}: {e}")
            if self._state.status != ConnectionStatus.CONNECTING:
                return
            error = SSHConnectionError(f"Failed to start {executable}: {e}")
            self._dispatch(LifecycleEvent(LifecycleEventType.SPAWN_FAILED, error=error))
            return

        self._spawn_count += 1

        if self._state.status != ConnectionStatus.CONNECTING:
            # Disconnected while the process was starting.
            self._terminate(process)
            return

        self._process = process
        for stream in STREAMS:
            reader = getattr(process, stream)
            if reader is not None:
                self._track(self._read_stream(stream, reader))
        self._track(self._watch(process))

        if process.returncode is not None:
            # Already gone, the watcher reports the exit.
            return

        self._dispatch(LifecycleEvent(LifecycleEventType.SPAWNED))
        logger.info(f"SSH process for {self.name} started (pid {process.pid})")

    async def _read_stream(self, stream: str, reader: asyncio.StreamReader) -> None:
        decoder = codecs.getincrementaldecoder('utf-8')(errors='replace')
        while True:
            chunk = await reader.read(READ_CHUNK_SIZE)
            if not chunk:
                break
            text = decoder.decode(chunk)
            if not text:
                continue
            logger.debug(f"{stream}: {text.rstrip()}")
            for listener in list(self._stream_listeners[stream]):
                listener(text)

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if returncode is not None and returncode < 0:
            exit_code, signal = None, -returncode
        else:
            exit_code, signal = returncode, None

        logger.info(f"ssh process exited with code {exit_code} and signal {signal}")

        if process is not self._process:
            # Exit of a process this handle already let go of.
            self.emit(Channel.SSH, Status.DISCONNECT)
            return

        self._process = None
        abnormal = exit_code != 0 or signal is not None
        error = SSHConnectionError.from_exit(exit_code, signal) if abnormal else None
        self._dispatch(LifecycleEvent(
            LifecycleEventType.EXITED, exit_code=exit_code, signal=signal, error=error))

    def _schedule_retry(self) -> None:
        if self._pending is None or self._pending.done():
            self._pending = asyncio.get_running_loop().create_future()
            self._pending.add_done_callback(_consume_exception)

        if self._retry_handle is not None:
            self._retry_handle.cancel()

        policy = self._policy
        logger.info(
            f"Reconnecting {self.name} in {policy.delay:.1f}s "
            f"(attempt {self._state.retries + 1}/{policy.max_tries})")
        self._retry_handle = asyncio.get_running_loop().call_later(policy.delay, self._fire_retry)

    def _fire_retry(self) -> None:
        self._retry_handle = None
        self._dispatch(LifecycleEvent(LifecycleEventType.RETRY_FIRED))

    def _resolve_pending(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(self)

    def _reject_pending(self) -> None:
        pending, self._pending = self._pending, None
        if pending is None or pending.done():
            return

        error = self._state.last_error
        if not isinstance(error, BaseException):
            error = SSHConnectionError("SSH connection failed")
        pending.set_exception(error)

    def _kill(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

        process, self._process = self._process, None
        if process is not None:
            logger.info(f"Terminating ssh process for {self.name} (pid {process.pid})")
            self._terminate(process)

    @staticmethod
    def _terminate(process: asyncio.subprocess.Process) -> None:
        try:
            process.terminate()
        except ProcessLookupError:
            pass

    def _track(self, coro: Any) -> "asyncio.Task[Any]":
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
