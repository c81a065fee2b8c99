from __future__ import annotations

import asyncio
import json
from typing import Any, List, Optional

import pytest
from starlette.websockets import WebSocketState

from backend import RelayBackend
from handlers import MessageRouter


class FakeWebSocket:
    """Stands in for a starlette WebSocket; records every frame sent to it."""

    def __init__(self, fail: bool = False, stall: bool = False) -> None:
        self.sent: List[dict] = []
        self.fail = fail
        self.stall = stall
        self.closed_with: Optional[int] = None
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, text: str) -> None:
        if self.fail:
            raise RuntimeError("connection reset by peer")
        if self.stall:
            # a peer whose receive window is full: the write never drains
            await asyncio.get_running_loop().create_future()
        self.sent.append(json.loads(text))

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code
        self.application_state = WebSocketState.DISCONNECTED

    def types(self) -> List[str]:
        return [frame["type"] for frame in self.sent]

    def of_type(self, message_type: str) -> List[dict]:
        return [frame for frame in self.sent if frame["type"] == message_type]


@pytest.fixture
def relay() -> RelayBackend:
    return RelayBackend()


@pytest.fixture
def router(relay: RelayBackend) -> MessageRouter:
    return MessageRouter(relay)


@pytest.fixture
def make_socket():
    def _make(**kwargs: Any) -> FakeWebSocket:
        return FakeWebSocket(**kwargs)

    return _make


def frame(message_type: str, **fields: Any) -> str:
    return json.dumps({"type": message_type, **fields})


@pytest.fixture
def send(router: MessageRouter):
    """Dispatch a frame built from keyword fields on behalf of a connection."""

    async def _send(connection, message_type: str, **fields: Any) -> None:
        await router.dispatch(connection, frame(message_type, **fields))

    return _send
