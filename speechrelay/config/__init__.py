from .provider import (
    DEFAULT_UPSTREAM_OPTIONS,
    DEFAULT_UPSTREAM_URL,
    APIConfig,
    ConfigProvider,
    EnvConfigProvider,
    RelayConfig,
    UpstreamConfig,
)

__all__ = [
    "DEFAULT_UPSTREAM_OPTIONS",
    "DEFAULT_UPSTREAM_URL",
    "APIConfig",
    "ConfigProvider",
    "EnvConfigProvider",
    "RelayConfig",
    "UpstreamConfig",
]
