#!/usr/bin/env python3
"""
SpeechRelay - Main Entry Point

This is the thin orchestration layer that:
1. Loads configuration
2. Initializes modules
3. Runs the API server (WebSocket relay, health, static frontend)

All relay logic is in the modules.
"""

import logging
import os
import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.responses import Response
from fastapi.staticfiles import StaticFiles

from speechrelay import __version__
from speechrelay.config.provider import (
    APIConfig,
    ConfigProvider,
    EnvConfigProvider,
    RelayConfig,
    UpstreamConfig,
)
from speechrelay.errors import ConfigurationError
from speechrelay.logging_config import configure_logging, get_logging_config
from speechrelay.modules.api import HealthResponse, SessionListResponse, SessionSummary
from speechrelay.modules.session import SessionManager
from speechrelay.modules.upstream import DeepgramConnector, UpstreamConnector

logger = logging.getLogger(__name__)


def create_app(
    upstream_config: UpstreamConfig,
    api_config: APIConfig,
    relay_config: Optional[RelayConfig] = None,
    connector: Optional[UpstreamConnector] = None,
) -> FastAPI:
    """
    Build the relay application.

    Args:
        upstream_config: Provider endpoint, options and credential
        api_config: Listening and routing settings
        relay_config: Per-session relay behaviour
        connector: Outbound connector (defaults to Deepgram)
    """
    session_manager = SessionManager(
        connector or DeepgramConnector(upstream_config),
        relay_config or RelayConfig(),
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Secure Deepgram proxy running on ws://{api_config.host}:{api_config.port}{api_config.ws_path}")
        if app.state.static_dir:
            logger.info(f"Serving static files from {app.state.static_dir}")
        logger.info(f"API Key loaded: {upstream_config.masked_key()}")

        yield

        active = session_manager.active_count
        if active:
            logger.info(f"Shutting down with {active} active session(s)")
        logger.info("SpeechRelay shutdown complete")

    app = FastAPI(
        title="SpeechRelay",
        description="SpeechRelay - Browser to Deepgram streaming proxy",
        version=__version__,
        lifespan=lifespan,
        debug=api_config.debug,
    )
    app.state.session_manager = session_manager
    app.state.static_dir = None

    @app.websocket(api_config.ws_path)
    async def relay_endpoint(websocket: WebSocket):
        """Relay browser audio to Deepgram and transcripts back."""
        await session_manager.accept_session(websocket)

    # Health/Monitoring Endpoints

    @app.get("/healthz")
    async def healthz():
        """
        Minimal health check endpoint for readiness/liveness probes.

        Returns:
            200: Service is running
        """
        return {"status": "ok"}

    @app.get("/health", response_model=HealthResponse)
    async def health_check():
        """Health check with active session count."""
        return HealthResponse(
            status="healthy",
            active_sessions=session_manager.active_count,
            upstream=upstream_config.host,
            version=__version__,
        )

    @app.get("/sessions", response_model=SessionListResponse)
    async def list_sessions():
        """List active relay sessions."""
        sessions = [
            SessionSummary(
                session_id=session.session_id,
                state=session.state.value,
                created_at=session.created_at,
                frames_forwarded=session.stats.frames_forwarded,
                frames_dropped=session.stats.frames_dropped,
                messages_forwarded=session.stats.messages_forwarded,
            )
            for session in session_manager.get_active_sessions()
        ]
        return SessionListResponse(sessions=sessions, total=len(sessions))

    @app.get("/metrics")
    async def metrics():
        """
        Prometheus-compatible metrics endpoint.

        Totals cover finished sessions only.
        """
        totals = session_manager.totals
        metrics_text = f"""# HELP speechrelay_active_sessions Number of active relay sessions
# TYPE speechrelay_active_sessions gauge
speechrelay_active_sessions {session_manager.active_count}
# HELP speechrelay_sessions_total Relay sessions accepted
# TYPE speechrelay_sessions_total counter
speechrelay_sessions_total {session_manager.sessions_created}
# HELP speechrelay_audio_frames_forwarded_total Audio frames relayed to the provider
# TYPE speechrelay_audio_frames_forwarded_total counter
speechrelay_audio_frames_forwarded_total {totals.frames_forwarded}
# HELP speechrelay_audio_frames_dropped_total Audio frames dropped before the provider was ready
# TYPE speechrelay_audio_frames_dropped_total counter
speechrelay_audio_frames_dropped_total {totals.frames_dropped}
# HELP speechrelay_transcript_events_total Provider events relayed to browsers
# TYPE speechrelay_transcript_events_total counter
speechrelay_transcript_events_total {totals.messages_forwarded}
# HELP speechrelay_decode_failures_total Provider payloads that were not valid JSON
# TYPE speechrelay_decode_failures_total counter
speechrelay_decode_failures_total {totals.decode_failures}
"""
        return Response(content=metrics_text, media_type="text/plain")

    # Static frontend last so API and WebSocket routes take precedence
    if api_config.static_dir and os.path.isdir(api_config.static_dir):
        app.mount("/", StaticFiles(directory=api_config.static_dir, html=True), name="static")
        app.state.static_dir = api_config.static_dir

    return app


def main(config_provider: Optional[ConfigProvider] = None) -> None:
    """Load configuration and serve until terminated."""
    provider = config_provider or EnvConfigProvider()

    try:
        api_config = provider.get_api_config()
        configure_logging(api_config.log_level)
        upstream_config = provider.get_upstream_config()
        relay_config = provider.get_relay_config()
    except ConfigurationError as e:
        configure_logging()
        logger.error(f"Startup aborted: {e}")
        sys.exit(1)

    app = create_app(upstream_config, api_config, relay_config)

    # Use dict config for logging, not file path
    uvicorn.run(
        app,
        host=api_config.host,
        port=api_config.port,
        log_level=api_config.log_level.lower(),
        log_config=get_logging_config(api_config.log_level),
    )


if __name__ == "__main__":
    main()
