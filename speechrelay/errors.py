"""Exception types raised by SpeechRelay modules."""

from typing import Optional


class RelayError(Exception):
    """Base class for all SpeechRelay errors."""


class ConfigurationError(RelayError):
    """Raised when required process configuration is missing or invalid."""


class UpstreamConnectError(RelayError):
    """Raised when the outbound connection to the provider cannot be opened."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
