"""
FastAPI application exposing the relay to browser clients.

Routes:
    GET  /market-data   current snapshot (upstream state in X-Upstream-State)
    POST /command       forward a trading command upstream
    GET  /health        relay status
    WS   <ws_path>      streaming session (market_data pushes, commands, history)
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from .. import __version__
from ..errors import InvalidCommandError, UpstreamUnavailableError
from ..models.codec import encode_message, snapshot_to_dict
from ..service import RelayService
from .schemas import CommandRequest, CommandResponse
from .stream import serve_session

logger = structlog.get_logger(__name__)


def create_app(service: RelayService) -> FastAPI:
    """
    Build the gateway application around a relay service.

    The service is started and stopped with the application lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await service.start()
        try:
            yield
        finally:
            await service.stop()

    app = FastAPI(title="Market Data Relay", version=__version__, lifespan=lifespan)
    app.state.service = service

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(service.config.gateway.cors_origins),
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/market-data")
    async def market_data() -> Response:
        snapshot = service.store.current()
        return Response(
            content=encode_message(snapshot_to_dict(snapshot)),
            media_type="application/json",
            headers={"X-Upstream-State": service.link.state.value},
        )

    @app.post("/command", response_model=CommandResponse)
    async def submit_command(request: CommandRequest):
        try:
            ack = await service.submit_command(request.command, request.params)
        except InvalidCommandError as e:
            return JSONResponse(
                status_code=400,
                content=CommandResponse(success=False, message=str(e), reason=e.reason).model_dump(),
            )
        except UpstreamUnavailableError as e:
            return JSONResponse(
                status_code=503,
                content=CommandResponse(success=False, message=str(e), reason=e.reason).model_dump(),
            )

        return CommandResponse(success=True, message=ack.message)

    @app.get("/health")
    async def health() -> dict:
        return service.health()

    @app.websocket(service.config.gateway.ws_path)
    async def stream(websocket: WebSocket) -> None:
        await serve_session(service, websocket)

    logger.info(
        "Gateway application created",
        ws_path=service.config.gateway.ws_path,
        cors_origins=list(service.config.gateway.cors_origins)
    )
    return app
