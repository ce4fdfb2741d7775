import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from .legs import ABNORMAL_CLOSURE, Leg, Payload

logger = logging.getLogger(__name__)

# Close codes
NORMAL_CLOSURE = 1000
PROTOCOL_ERROR = 1002
NO_STATUS_RECEIVED = 1005
INTERNAL_ERROR = 1011

UPSTREAM_ERROR_REASON = "Deepgram connection error"
DEFAULT_CLOSE_REASON = "No reason provided"

# Close frame payload is capped at 125 bytes, two of which carry the code
MAX_REASON_BYTES = 123

CLOSE_DIAGNOSTICS = {
    PROTOCOL_ERROR: "Protocol error - check API key/params",
    NO_STATUS_RECEIVED: "No status received - auth issue?",
    ABNORMAL_CLOSURE: "Abnormal closure - network dropped",
}


class UpstreamState(str, Enum):
    """Lifecycle of the outbound leg."""

    CONNECTING = "connecting"
    OPEN = "open"
    CLOSED = "closed"


@dataclass
class RelayStats:
    """Per-session traffic counters."""

    frames_forwarded: int = 0
    frames_dropped: int = 0
    messages_forwarded: int = 0
    decode_failures: int = 0


def sendable_close_code(code: int) -> int:
    """
    Map a received close code to one that may be sent in a close frame.

    1005, 1006 and 1015 are reserved for local reporting and must never
    appear on the wire, nor may unassigned codes.
    """
    if 1000 <= code <= 1003 or 1007 <= code <= 1014 or 3000 <= code <= 4999:
        return code
    return INTERNAL_ERROR


def truncate_reason(reason: str) -> str:
    encoded = reason.encode("utf-8")
    if len(encoded) <= MAX_REASON_BYTES:
        return reason
    return encoded[:MAX_REASON_BYTES].decode("utf-8", errors="ignore")


def extract_transcript(event: Any) -> Optional[str]:
    """Best transcript of a ``Results`` event, or None."""
    if not isinstance(event, dict):
        return None
    channel = event.get("channel")
    if not isinstance(channel, dict):
        return None
    alternatives = channel.get("alternatives")
    if not isinstance(alternatives, list) or not alternatives:
        return None
    first = alternatives[0]
    if not isinstance(first, dict):
        return None
    return first.get("transcript") or None


class RelayPump:
    """
    Bidirectional forwarding between a browser leg and a provider leg.

    The pump is driven entirely by events (``on_*`` coroutines). All of
    them run on one event loop, so the two legs behave as one sequential
    state machine and no locking is needed.

    Audio that arrives before the provider leg is open is dropped, not
    buffered. Once closed, the pump never forwards again.
    """

    def __init__(
        self,
        client: Leg,
        session_id: str = "",
        forward_malformed: bool = False,
    ):
        """
        Args:
            client: Inbound (browser) leg, already accepted
            session_id: Identifier used in log lines
            forward_malformed: Relay provider payloads that fail to decode
        """
        self.client = client
        self.upstream: Optional[Leg] = None
        self.session_id = session_id
        self.forward_malformed = forward_malformed
        self.state = UpstreamState.CONNECTING
        self.is_upstream_connected = False
        self.stats = RelayStats()

    @property
    def closed(self) -> bool:
        return self.state is UpstreamState.CLOSED

    def _log_prefix(self) -> str:
        return f"[{self.session_id}] " if self.session_id else ""

    # Provider leg events

    async def on_upstream_open(self, upstream: Leg) -> None:
        """Provider connection established."""
        if self.closed:
            # Browser left while the handshake was in flight
            logger.info(f"{self._log_prefix()}Deepgram connected after session ended, closing it")
            await upstream.close(NORMAL_CLOSURE)
            return

        self.upstream = upstream
        self.state = UpstreamState.OPEN
        self.is_upstream_connected = True
        logger.info(f"{self._log_prefix()}Connected to Deepgram")

    async def on_upstream_error(self, error: BaseException) -> None:
        """Provider connection failed; fail the whole session."""
        logger.error(f"{self._log_prefix()}Deepgram error: {error}")
        self.state = UpstreamState.CLOSED

        if self.client.is_open:
            await self.client.close(INTERNAL_ERROR, UPSTREAM_ERROR_REASON)
        if self.upstream is not None and self.upstream.is_open:
            await self.upstream.close(NORMAL_CLOSURE)

    async def on_upstream_close(self, code: int, reason: str = "") -> None:
        """Provider closed; close the browser with the same code and reason."""
        reason_str = reason or DEFAULT_CLOSE_REASON
        logger.info(f"{self._log_prefix()}Deepgram connection closed: {code} - {reason_str}")

        diagnostic = CLOSE_DIAGNOSTICS.get(code)
        if diagnostic:
            logger.error(f"{self._log_prefix()}{diagnostic}")

        self.state = UpstreamState.CLOSED

        if self.client.is_open:
            wire_code = sendable_close_code(code)
            if wire_code != code:
                logger.debug(f"{self._log_prefix()}Close code {code} is not sendable, using {wire_code}")
            await self.client.close(wire_code, truncate_reason(reason_str))

    async def on_upstream_message(self, data: Payload) -> None:
        """Transcript event from the provider; relay it to the browser."""
        if self.closed:
            return

        text = data
        try:
            if isinstance(data, bytes):
                text = data.decode("utf-8")
            event = json.loads(text)
        except (UnicodeDecodeError, ValueError, RecursionError) as e:
            self.stats.decode_failures += 1
            logger.error(f"{self._log_prefix()}Error processing Deepgram message: {e}")
            if self.forward_malformed and self.client.is_open:
                await self.client.send(data)
                self.stats.messages_forwarded += 1
            return

        event_type = event.get("type") if isinstance(event, dict) else None
        if event_type == "Metadata":
            logger.info(f"{self._log_prefix()}Deepgram metadata: {event}")
        elif event_type == "Results":
            transcript = extract_transcript(event)
            if transcript:
                logger.info(f"{self._log_prefix()}Transcript: {transcript}")

        if self.client.is_open:
            await self.client.send(text)
            self.stats.messages_forwarded += 1

    # Browser leg events

    async def on_client_message(self, data: Payload) -> None:
        """Audio frame from the browser; relay it to the provider."""
        if not self.is_upstream_connected:
            self.stats.frames_dropped += 1
            logger.warning(f"{self._log_prefix()}Deepgram not connected yet, dropping audio frame")
            return

        upstream = self.upstream
        if self.closed or upstream is None or not upstream.is_open:
            self.stats.frames_dropped += 1
            state = getattr(upstream, "state_name", self.state.value)
            logger.warning(f"{self._log_prefix()}Deepgram connection not open, state: {state}")
            return

        await upstream.send(data)
        self.stats.frames_forwarded += 1

    async def on_client_close(self, code: Optional[int] = None) -> None:
        """Browser left; close the provider leg if it is open."""
        logger.info(f"{self._log_prefix()}Browser disconnected (code {code})")
        self.state = UpstreamState.CLOSED

        if self.upstream is not None and self.upstream.is_open:
            await self.upstream.close(NORMAL_CLOSURE)

    async def on_client_error(self, error: BaseException) -> None:
        logger.error(f"{self._log_prefix()}Client WebSocket error: {error}")
