"""Pytest configuration helpers."""
import asyncio
import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
root_str = str(PROJECT_ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)

from db.database import Database
from session.errors import ProbeError, StreamConnectionError
from session.events import EventBus


class FakeClock:
    def __init__(self, now_ms: int = 1_000_000):
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int):
        self.now_ms += ms


class FakeStream:
    """TranscriptStream controlado desde el test via push()/finish()."""

    def __init__(self, fail_connect: bool = False):
        self.fail_connect = fail_connect
        self.connected = False
        self.closed = False
        self.sent: list[bytes] = []
        self._queue: asyncio.Queue = asyncio.Queue()

    async def connect(self):
        if self.fail_connect:
            raise StreamConnectionError("conexion rechazada")
        self.connected = True

    async def send(self, chunk: bytes):
        self.sent.append(chunk)

    def push(self, event):
        self._queue.put_nowait(event)

    def fail(self, message: str = "socket cerrado"):
        self._queue.put_nowait(StreamConnectionError(message))

    def finish(self):
        self._queue.put_nowait(None)

    async def events(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def close(self):
        self.closed = True


class FakeProbe:
    """Cada tick consume la siguiente respuesta; una Exception se lanza."""

    def __init__(self, windows=None, processes=None):
        self.windows = list(windows or [])
        self.processes = list(processes or [])

    async def list_windows(self):
        result = self.windows.pop(0) if self.windows else []
        if isinstance(result, Exception):
            raise result
        return result

    async def list_processes(self):
        result = self.processes.pop(0) if self.processes else []
        if isinstance(result, Exception):
            raise result
        return result


class FakeBackend:
    def __init__(self, response: str = "## Overview\nResumen", error: Exception | None = None):
        self.response = response
        self.error = error
        self.prompts: list[str] = []
        self.systems: list[str | None] = []

    def complete(self, prompt: str, max_tokens: int = 2048, system: str | None = None) -> str:
        self.prompts.append(prompt)
        self.systems.append(system)
        if self.error is not None:
            raise self.error
        return self.response


async def settle(times: int = 5):
    """Deja correr las tareas pendientes del event loop."""
    for _ in range(times):
        await asyncio.sleep(0)


@pytest.fixture
def db(tmp_path: Path) -> Database:
    database = Database(tmp_path / "meetscribe.db")
    yield database
    database.close()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recorded(bus: EventBus) -> list:
    events = []
    bus.subscribe_all(events.append)
    return events


def probe_error(message: str = "sin permisos") -> ProbeError:
    return ProbeError(message)
