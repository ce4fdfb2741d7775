"""
Connection adapters for the two legs of a relay session.

Both adapters expose the same small surface (``is_open``, ``send``,
``close``, ``frames``) so the relay pump never touches a transport
library directly.
"""

import logging
from typing import AsyncIterator, Optional, Protocol, Union

from starlette.websockets import WebSocket, WebSocketDisconnect, WebSocketState
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

logger = logging.getLogger(__name__)

Payload = Union[bytes, str]

# Close code reported when a connection drops without a close frame
ABNORMAL_CLOSURE = 1006


class Leg(Protocol):
    """One side of a relay session."""

    @property
    def is_open(self) -> bool:
        ...

    async def send(self, payload: Payload) -> None:
        ...

    async def close(self, code: int = 1000, reason: str = "") -> None:
        ...


class ClientLeg:
    """Inbound leg: the browser's WebSocket as seen by Starlette."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.close_code: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def send(self, payload: Payload) -> None:
        try:
            if isinstance(payload, bytes):
                await self.websocket.send_bytes(payload)
            else:
                await self.websocket.send_text(payload)
        except (WebSocketDisconnect, RuntimeError) as e:
            # Lost a race with the browser closing; the reader sees the disconnect
            logger.debug(f"Dropped send to closed browser socket: {e}")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        if self.websocket.application_state == WebSocketState.DISCONNECTED:
            return
        try:
            await self.websocket.close(code=code, reason=reason)
        except (WebSocketDisconnect, RuntimeError) as e:
            logger.debug(f"Browser socket already closed: {e}")

    async def frames(self) -> AsyncIterator[Payload]:
        """Yield browser frames until the browser disconnects."""
        while True:
            message = await self.websocket.receive()
            if message["type"] == "websocket.disconnect":
                self.close_code = message.get("code", 1000)
                return
            if message.get("bytes") is not None:
                yield message["bytes"]
            elif message.get("text") is not None:
                yield message["text"]


class UpstreamLeg:
    """Outbound leg: a ``websockets`` client connection to the provider."""

    def __init__(self, connection: ClientConnection):
        self.connection = connection

    @property
    def is_open(self) -> bool:
        return self.connection.state is State.OPEN

    @property
    def state_name(self) -> str:
        return self.connection.state.name

    @property
    def close_code(self) -> int:
        code = self.connection.protocol.close_code
        return code if code is not None else ABNORMAL_CLOSURE

    @property
    def close_reason(self) -> str:
        return self.connection.protocol.close_reason or ""

    async def send(self, payload: Payload) -> None:
        try:
            await self.connection.send(payload)
        except ConnectionClosed as e:
            logger.debug(f"Dropped send to closed provider socket: {e}")

    async def close(self, code: int = 1000, reason: str = "") -> None:
        await self.connection.close(code, reason)

    async def frames(self) -> AsyncIterator[Payload]:
        """Yield provider messages until the connection closes.

        Both clean and unclean closes end the iteration; the close code
        and reason are read afterwards from ``close_code``/``close_reason``.
        """
        try:
            async for message in self.connection:
                yield message
        except ConnectionClosed:
            pass
        await self.connection.wait_closed()
