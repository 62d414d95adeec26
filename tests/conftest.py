"""
Shared fixtures for the ssh-session tests.

The ssh child process is replaced by ``FakeProcess``, which exposes the
same surface ``asyncio.create_subprocess_exec`` returns: piped streams,
``wait()``, ``returncode`` and ``terminate()``.
"""

import asyncio
from typing import Any, Callable, List, Optional
from unittest.mock import AsyncMock

import pytest


class FakeStdin:
    """Records what is written to the process input."""

    def __init__(self, responder: Optional[Callable[[bytes], None]] = None):
        self.written: List[bytes] = []
        self.responder = responder

    def write(self, data: bytes) -> None:
        self.written.append(data)
        if self.responder:
            self.responder(data)

    async def drain(self) -> None:
        pass


class FakeProcess:
    """Stand-in for ``asyncio.subprocess.Process``."""

    def __init__(self, returncode: Optional[int] = None, pid: int = 4242):
        self.pid = pid
        self.returncode: Optional[int] = None
        self.stdin = FakeStdin()
        self.stdout = asyncio.StreamReader()
        self.stderr = asyncio.StreamReader()
        self.terminated = False
        self._exited = asyncio.Event()
        if returncode is not None:
            self.exit(returncode)

    def exit(self, returncode: int) -> None:
        if self.returncode is not None:
            return
        self.returncode = returncode
        self.stdout.feed_eof()
        self.stderr.feed_eof()
        self._exited.set()

    def terminate(self) -> None:
        self.terminated = True
        self.exit(-15)

    def kill(self) -> None:
        self.exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        return self.returncode  # type: ignore[return-value]


class ProcessFactory:
    """Hands out queued fake processes, or fresh ones when the queue is empty."""

    def __init__(self) -> None:
        self.queue: List[Any] = []
        self.spawned: List[FakeProcess] = []

    def __call__(self, *args: Any, **kwargs: Any) -> FakeProcess:
        item = self.queue.pop(0) if self.queue else None
        if isinstance(item, BaseException):
            raise item
        process = item if item is not None else FakeProcess()
        self.spawned.append(process)
        return process


@pytest.fixture
def process_factory() -> ProcessFactory:
    return ProcessFactory()


@pytest.fixture
def spawn_mock(monkeypatch: pytest.MonkeyPatch, process_factory: ProcessFactory) -> AsyncMock:
    """Replace process creation with a spy returning fake processes."""
    mock = AsyncMock(side_effect=process_factory)
    monkeypatch.setattr(asyncio, "create_subprocess_exec", mock)
    return mock


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    """Poll ``predicate`` on the event loop until it holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)
