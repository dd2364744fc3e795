"""
uvicorn server with ordered relay shutdown.

uvicorn's own shutdown closes client connections before the application
lifespan ends. RelayServer stops the relay first, so sessions are drained
and closed by the relay before uvicorn tears the connections down.
"""

import asyncio
import math

import structlog
import uvicorn

from ..config.defaults import RelayConfig
from ..service import RelayService
from .app import create_app

logger = structlog.get_logger(__name__)


class RelayServer(uvicorn.Server):
    """uvicorn.Server that stops the relay service before closing connections."""

    def __init__(self, config: uvicorn.Config, service: RelayService) -> None:
        super().__init__(config)
        self.service = service

    async def shutdown(self, sockets=None) -> None:
        await self.service.stop()
        await super().shutdown(sockets=sockets)


def build_server(config: RelayConfig, service: RelayService = None) -> RelayServer:
    """Create the relay service, its application and the server hosting them."""
    service = service or RelayService(config)
    app = create_app(service)

    server_config = uvicorn.Config(
        app,
        host=config.gateway.host,
        port=config.gateway.port,
        log_config=None,
        log_level=config.logging.level.lower(),
        timeout_graceful_shutdown=max(1, math.ceil(config.shutdown.grace_seconds)),
    )
    return RelayServer(server_config, service)


def run(config: RelayConfig) -> None:
    """Serve the relay until interrupted."""
    server = build_server(config)
    logger.info(
        "Starting relay",
        host=config.gateway.host,
        port=config.gateway.port,
        ws_path=config.gateway.ws_path,
        upstream=server.service.link.endpoint
    )
    asyncio.run(server.serve())
