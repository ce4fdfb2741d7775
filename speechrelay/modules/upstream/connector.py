import logging
from typing import Any, Callable, Optional, Protocol

from websockets.asyncio.client import connect
from websockets.exceptions import InvalidHandshake, InvalidStatus, InvalidURI

from speechrelay.config.provider import UpstreamConfig
from speechrelay.errors import UpstreamConnectError
from speechrelay.modules.relay.legs import UpstreamLeg

logger = logging.getLogger(__name__)


class UpstreamConnector(Protocol):
    """Opens one outbound leg per call."""

    async def connect(self) -> Any:
        ...


class DeepgramConnector:
    """Opens streaming connections to the Deepgram listen endpoint."""

    def __init__(self, config: UpstreamConfig, connect_fn: Optional[Callable[..., Any]] = None):
        """
        Initialize connector.

        Args:
            config: Provider URL, options and credential
            connect_fn: ``websockets`` connect function (overridable for tests)
        """
        self.config = config
        self._connect = connect_fn or connect

    async def connect(self) -> UpstreamLeg:
        """
        Open the outbound leg.

        Returns:
            UpstreamLeg wrapping the open connection

        Raises:
            UpstreamConnectError: Handshake rejected or network failure
        """
        url = self.config.build_url()
        logger.info(f"Connecting to Deepgram at {self.config.host}...")

        try:
            connection = await self._connect(
                url,
                additional_headers=self.config.auth_headers(),
                open_timeout=self.config.open_timeout,
                # Transcript events are small, but never refuse one for size
                max_size=None,
            )
        except InvalidStatus as e:
            status = e.response.status_code
            raise UpstreamConnectError(
                f"Deepgram rejected the connection with HTTP {status}", status_code=status
            ) from e
        except (InvalidHandshake, InvalidURI, OSError, TimeoutError) as e:
            raise UpstreamConnectError(f"Could not connect to Deepgram: {e}") from e

        return UpstreamLeg(connection)
