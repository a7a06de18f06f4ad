"""Shared fixtures for the background host tests."""

import socket
from typing import List, Optional, Union

import pytest

from events import EventBus, EventTypes
from handshake import ConnectStateRepository, HandshakePollResult, PollStatus
from handshake.exceptions import HandshakeError
from storage import MemoryStateStore

VALID_TOKEN = "dtok_" + "a1b2c3d4" * 5


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


async def no_sleep(_seconds: float) -> None:
    return None


class ScriptedPoller:
    """Returns pending a fixed number of times, then the scripted final answer"""

    def __init__(self, pending_count: int,
                 final: Optional[Union[HandshakePollResult, HandshakeError]] = None,
                 on_poll=None):
        self.pending_count = pending_count
        self.final = final
        self.on_poll = on_poll
        self.calls: List[str] = []
        self.revoked: List[str] = []

    async def poll(self, session_id: str) -> HandshakePollResult:
        self.calls.append(session_id)
        if self.on_poll is not None:
            await self.on_poll(len(self.calls))
        if len(self.calls) <= self.pending_count or self.final is None:
            return HandshakePollResult(PollStatus.PENDING)
        if isinstance(self.final, HandshakeError):
            raise self.final
        return self.final

    async def revoke(self, device_token: str) -> None:
        self.revoked.append(device_token)


def ready_result(token: str = VALID_TOKEN, expiration="2099-01-01T00:00:00Z") -> HandshakePollResult:
    return HandshakePollResult(PollStatus.READY, device_token=token, expiration=expiration)


@pytest.fixture
def store() -> MemoryStateStore:
    return MemoryStateStore()


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


@pytest.fixture
def broadcasts(bus) -> list:
    """Payloads of every connect status broadcast, in order"""
    received = []
    bus.on(EventTypes.GITHUB_CONNECT_STATUS, lambda event: received.append(event.data))
    return received


@pytest.fixture
def repository(store, bus) -> ConnectStateRepository:
    return ConnectStateRepository(store, bus)
