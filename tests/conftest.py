"""
Shared pytest fixtures for SpeechRelay tests.

This module provides common fixtures including:
- FakeLeg: In-memory leg recording sends and closes
- FakeWebSocket: Starlette-like browser socket driven by a queue
- FakeUpstream / FakeConnector: Scripted provider connections
"""

import asyncio
import os
import sys
from typing import Any, List, Optional, Tuple

import pytest
from starlette.websockets import WebSocketState

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from speechrelay.config.provider import APIConfig, UpstreamConfig


async def settle(rounds: int = 20) -> None:
    """Let pending tasks on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# =============================================================================
# Leg Fakes
# =============================================================================


class FakeLeg:
    """Leg that records everything sent to it."""

    def __init__(self, is_open: bool = True, state_name: str = "OPEN"):
        self._open = is_open
        self.state_name = state_name
        self.sent: List[Any] = []
        self.close_calls: List[Tuple[int, str]] = []

    @property
    def is_open(self) -> bool:
        return self._open

    async def send(self, payload) -> None:
        self.sent.append(payload)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self._open = False
        self.close_calls.append((code, reason))


class FakeWebSocket:
    """
    Browser socket with the Starlette surface ClientLeg relies on.

    Closing from the server side echoes a disconnect, like a real browser.
    """

    def __init__(self):
        self.client_state = WebSocketState.CONNECTING
        self.application_state = WebSocketState.CONNECTING
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[Any] = []
        self.close_calls: List[Tuple[int, Optional[str]]] = []
        self.accepted = False

    async def accept(self) -> None:
        self.accepted = True
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED

    async def receive(self) -> dict:
        message = await self.incoming.get()
        if message["type"] == "websocket.disconnect":
            self.client_state = WebSocketState.DISCONNECTED
        return message

    async def send_text(self, data: str) -> None:
        self.sent.append(data)

    async def send_bytes(self, data: bytes) -> None:
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: Optional[str] = None) -> None:
        self.application_state = WebSocketState.DISCONNECTED
        self.close_calls.append((code, reason))
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})

    # Test helpers

    def push_bytes(self, data: bytes) -> None:
        self.incoming.put_nowait({"type": "websocket.receive", "bytes": data})

    def push_text(self, data: str) -> None:
        self.incoming.put_nowait({"type": "websocket.receive", "text": data})

    def disconnect(self, code: int = 1000) -> None:
        self.incoming.put_nowait({"type": "websocket.disconnect", "code": code})


_CLOSED = object()


class FakeUpstream(FakeLeg):
    """Provider leg whose inbound messages are fed by the test."""

    def __init__(self, script: Optional[List[Any]] = None):
        super().__init__()
        self.close_code = 1006
        self.close_reason = ""
        self._inbox: asyncio.Queue = asyncio.Queue()
        for item in script or []:
            if isinstance(item, tuple):
                self.remote_close(*item)
            else:
                self.push(item)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self._open:
            self.close_code = code
            self.close_reason = reason
            self._inbox.put_nowait(_CLOSED)
        await super().close(code, reason)

    def push(self, message) -> None:
        self._inbox.put_nowait(message)

    def remote_close(self, code: int, reason: str = "") -> None:
        self._open = False
        self.close_code = code
        self.close_reason = reason
        self._inbox.put_nowait(_CLOSED)

    def fail(self, error: BaseException) -> None:
        self._inbox.put_nowait(error)

    async def frames(self):
        while True:
            item = await self._inbox.get()
            if item is _CLOSED:
                return
            if isinstance(item, BaseException):
                self._open = False
                raise item
            yield item


class FakeConnector:
    """Connector producing FakeUpstream legs, optionally gated or failing."""

    def __init__(
        self,
        script: Optional[List[Any]] = None,
        gate: Optional[asyncio.Event] = None,
        error: Optional[BaseException] = None,
    ):
        self.script = script
        self.gate = gate
        self.error = error
        self.connect_count = 0
        self.legs: List[FakeUpstream] = []

    async def connect(self) -> FakeUpstream:
        self.connect_count += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        leg = FakeUpstream(self.script)
        self.legs.append(leg)
        return leg


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def client_leg():
    return FakeLeg()


@pytest.fixture
def upstream_leg():
    return FakeLeg()


@pytest.fixture
def upstream_config():
    return UpstreamConfig(api_key="dg-test-key-1234567890")


@pytest.fixture
def api_config():
    return APIConfig(
        port=10000,
        host="127.0.0.1",
        ws_path="/ws",
        static_dir=None,
        log_level="INFO",
        debug=False,
    )


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the config provider reads."""
    for name in [
        "DEEPGRAM_API_KEY",
        "DEEPGRAM_URL",
        "DEEPGRAM_MODEL",
        "DEEPGRAM_LANGUAGE",
        "DEEPGRAM_SMART_FORMAT",
        "DEEPGRAM_INTERIM_RESULTS",
        "DEEPGRAM_ENCODING",
        "DEEPGRAM_SAMPLE_RATE",
        "DEEPGRAM_CHANNELS",
        "DEEPGRAM_OPEN_TIMEOUT",
        "PORT",
        "HOST",
        "RELAY_WS_PATH",
        "STATIC_DIR",
        "LOG_LEVEL",
        "DEBUG",
        "RELAY_FORWARD_MALFORMED",
    ]:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: Tests running the full FastAPI app in-process"
    )
