import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Dict, List, Optional

from starlette.websockets import WebSocket

from speechrelay.config.provider import RelayConfig
from speechrelay.errors import UpstreamConnectError
from speechrelay.modules.relay import ClientLeg, RelayPump, RelayStats, UpstreamState
from speechrelay.modules.upstream import UpstreamConnector

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """One browser connection paired with its one provider connection."""

    session_id: str
    pump: RelayPump
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    upstream_attempts: int = 0

    @property
    def state(self) -> UpstreamState:
        return self.pump.state

    @property
    def stats(self) -> RelayStats:
        return self.pump.stats


class SessionManager:
    def __init__(self, connector: UpstreamConnector, relay_config: Optional[RelayConfig] = None):
        """
        Initialize session manager.

        Args:
            connector: Opens the outbound leg for each session
            relay_config: Relay behaviour shared by all sessions
        """
        self.connector = connector
        self.relay_config = relay_config or RelayConfig()
        self._sessions: Dict[str, Session] = {}
        self.sessions_created = 0
        self.totals = RelayStats()

    async def accept_session(self, websocket: WebSocket) -> Session:
        """
        Run one relay session for an inbound browser connection.

        Returns once both legs are closed.

        Logic:
        1. Accept the browser socket and register the session
        2. Start the provider connection in the background
        3. Pump browser frames into the relay until the browser leaves
        4. Stop a provider handshake that is still in flight
        5. Wait for the provider leg to wind down and unregister
        """
        await websocket.accept()

        client = ClientLeg(websocket)
        session_id = str(uuid.uuid4())
        pump = RelayPump(
            client,
            session_id=session_id,
            forward_malformed=self.relay_config.forward_malformed,
        )
        session = Session(session_id=session_id, pump=pump)

        self._sessions[session_id] = session
        self.sessions_created += 1
        logger.info(f"Browser connected to proxy (session {session_id})")

        upstream_task = asyncio.create_task(self._run_upstream(session))
        try:
            await self._run_client(session, client)
        finally:
            if not pump.is_upstream_connected:
                # Handshake still in flight; nothing to forward to any more
                upstream_task.cancel()
            await asyncio.gather(upstream_task, return_exceptions=True)
            self._release(session)

        return session

    async def _run_upstream(self, session: Session) -> None:
        """Open the provider leg once and pump its messages into the relay."""
        pump = session.pump

        # Exactly one outbound connection per session, never re-dialed
        session.upstream_attempts += 1
        try:
            upstream = await self.connector.connect()
        except UpstreamConnectError as e:
            await pump.on_upstream_error(e)
            return

        await pump.on_upstream_open(upstream)
        if pump.state is not UpstreamState.OPEN:
            return

        try:
            async for message in upstream.frames():
                try:
                    await pump.on_upstream_message(message)
                except Exception as e:
                    # A bad message is not a transport failure
                    logger.exception(f"[{session.session_id}] Error processing Deepgram message: {e}")
        except Exception as e:
            await pump.on_upstream_error(e)
            return

        await pump.on_upstream_close(upstream.close_code, upstream.close_reason)

    async def _run_client(self, session: Session, client: ClientLeg) -> None:
        pump = session.pump
        try:
            async for frame in client.frames():
                await pump.on_client_message(frame)
        except Exception as e:
            await pump.on_client_error(e)
        await pump.on_client_close(client.close_code)

    def _release(self, session: Session) -> None:
        self._sessions.pop(session.session_id, None)
        stats = session.stats
        self.totals.frames_forwarded += stats.frames_forwarded
        self.totals.frames_dropped += stats.frames_dropped
        self.totals.messages_forwarded += stats.messages_forwarded
        self.totals.decode_failures += stats.decode_failures
        logger.info(
            f"Session {session.session_id} ended: "
            f"{stats.frames_forwarded} frames forwarded, {stats.frames_dropped} dropped, "
            f"{stats.messages_forwarded} transcript events"
        )

    def get_session(self, session_id: str) -> Optional[Session]:
        return self._sessions.get(session_id)

    def get_active_sessions(self) -> List[Session]:
        return list(self._sessions.values())

    @property
    def active_count(self) -> int:
        return len(self._sessions)
