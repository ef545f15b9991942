"""Pytest bootstrap configuration.

Environment must be set before any module that reads application
settings is imported.
"""
import asyncio
import os
from typing import Any, Callable, List, Optional

os.environ["DATABASE__URL"] = "sqlite+aiosqlite:///:memory:"
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("LOG_REQUEST_BODY_ENABLE_BY_DEFAULT", "false")

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker

from application.ports.realtime import ChangeEvent
from infrastructure.database import build_engine, create_tables
from infrastructure.unit_of_work import make_uow_factory


IMAGE = "https://images.example.com/cover.png"


class FakeTransport:
    """Server-side socket double: records what the hub writes."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: List[dict] = []
        self.closed: Optional[int] = None
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed = code

    def types(self) -> List[str]:
        return [m["type"] for m in self.sent]

    def of_type(self, mtype: str) -> List[dict]:
        return [m for m in self.sent if m["type"] == mtype]


class RecordingPublisher:
    def __init__(self) -> None:
        self.events: List[ChangeEvent] = []

    def publish(self, event: ChangeEvent) -> bool:
        self.events.append(event)
        return True

    def kinds(self) -> List[str]:
        return [e.kind.value for e in self.events]


async def wait_until(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
async def engine():
    eng = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(bind=eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def uow_factory(engine):
    return make_uow_factory(async_sessionmaker(bind=engine, expire_on_commit=False))


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()
