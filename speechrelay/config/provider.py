"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol
from urllib.parse import urlencode, urlparse

from dotenv import find_dotenv, load_dotenv

from speechrelay.errors import ConfigurationError

DEFAULT_UPSTREAM_URL = "wss://api.deepgram.com/v1/listen"

# Query parameters sent to the provider, keyed by option name.
# Values are strings because they go straight into the URL.
DEFAULT_UPSTREAM_OPTIONS: Dict[str, str] = {
    "model": "nova-2",
    "language": "en-US",
    "smart_format": "true",
    "interim_results": "false",
    "encoding": "linear16",
    "sample_rate": "16000",
    "channels": "1",
}


@dataclass
class UpstreamConfig:
    """Outbound transcription provider configuration."""
    api_key: str
    url: str = DEFAULT_UPSTREAM_URL
    options: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_UPSTREAM_OPTIONS))
    open_timeout: Optional[float] = None

    def build_url(self) -> str:
        """Provider URL with the streaming options as query parameters."""
        if not self.options:
            return self.url
        separator = "&" if "?" in self.url else "?"
        return f"{self.url}{separator}{urlencode(self.options)}"

    def auth_headers(self) -> Dict[str, str]:
        """Headers carrying the provider credential."""
        return {"Authorization": f"Token {self.api_key}"}

    def masked_key(self) -> str:
        """First eight characters of the key, safe for logs."""
        return f"{self.api_key[:8]}..."

    @property
    def host(self) -> str:
        return urlparse(self.url).netloc


@dataclass
class APIConfig:
    """API configuration."""
    port: int
    host: str
    ws_path: str
    static_dir: Optional[str]
    log_level: str
    debug: bool


@dataclass
class RelayConfig:
    """Per-session relay behaviour."""
    forward_malformed: bool = False


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_upstream_config(self) -> UpstreamConfig:
        """Get outbound provider configuration."""
        ...

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...

    def get_relay_config(self) -> RelayConfig:
        """Get relay configuration."""
        ...


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


class EnvConfigProvider:
    """Environment-based configuration provider.

    A ``.env`` file in the working directory is loaded first; variables
    already present in the environment win.
    """

    def __init__(self, use_dotenv: bool = True):
        if use_dotenv:
            load_dotenv(find_dotenv(usecwd=True))

    def get_upstream_config(self) -> UpstreamConfig:
        """Get provider configuration from environment variables."""
        # The API key is required - the relay is useless without it
        api_key = os.getenv("DEEPGRAM_API_KEY", "").strip()
        if not api_key:
            raise ConfigurationError(
                "DEEPGRAM_API_KEY environment variable is required. "
                "Set it in the environment or in a .env file."
            )

        options = {
            name: os.getenv(f"DEEPGRAM_{name.upper()}", default)
            for name, default in DEFAULT_UPSTREAM_OPTIONS.items()
        }

        open_timeout_env = os.getenv("DEEPGRAM_OPEN_TIMEOUT")
        try:
            open_timeout = float(open_timeout_env) if open_timeout_env else None
        except ValueError:
            raise ConfigurationError(
                f"DEEPGRAM_OPEN_TIMEOUT must be a number of seconds, got {open_timeout_env!r}"
            )

        return UpstreamConfig(
            api_key=api_key,
            url=os.getenv("DEEPGRAM_URL", DEFAULT_UPSTREAM_URL),
            options=options,
            open_timeout=open_timeout,
        )

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        port_env = os.getenv("PORT", "10000")
        try:
            port = int(port_env)
        except ValueError:
            raise ConfigurationError(f"PORT must be an integer, got {port_env!r}")

        return APIConfig(
            port=port,
            host=os.getenv("HOST", "0.0.0.0"),
            ws_path=os.getenv("RELAY_WS_PATH", "/ws"),
            static_dir=os.getenv("STATIC_DIR", "public") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            debug=_env_flag("DEBUG"),
        )

    def get_relay_config(self) -> RelayConfig:
        """Get relay configuration from environment variables."""
        return RelayConfig(forward_malformed=_env_flag("RELAY_FORWARD_MALFORMED"))
