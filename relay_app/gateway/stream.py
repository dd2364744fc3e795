"""
WebSocket session handling.

Each connection runs two tasks: a reader that handles client messages and
a writer that drains the session's outbound queue to the socket. Whichever
ends first ends the session; the session is then closed through the
registry before the socket is closed.
"""

import asyncio
import contextlib
from typing import Any

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ..errors import CommandError, MalformedMessageError
from ..models.codec import COMMAND_RESULT, ERROR, decode_message
from ..service import RelayService
from ..sessions.session import ClientSession

logger = structlog.get_logger(__name__)

# Close code sent to clients that connect during shutdown ("try again later")
TRY_AGAIN_LATER = 1013


async def serve_session(service: RelayService, websocket: WebSocket) -> None:
    """Run one client session from handshake to close."""
    if not service.accepting:
        # close codes only reach the client after a completed handshake
        await websocket.accept()
        await websocket.close(code=TRY_AGAIN_LATER)
        logger.info("Refused client during shutdown", client=str(websocket.client))
        return

    await websocket.accept()
    session = service.open_session()
    log = logger.bind(session_id=session.session_id)
    log.info("Client connected", client=str(websocket.client))

    reader = asyncio.create_task(_read_loop(service, session, websocket))
    writer = asyncio.create_task(_write_loop(session, websocket))
    reason = "client_disconnected"

    try:
        done, pending = await asyncio.wait({reader, writer}, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect):
                await task

        for task in done:
            error = task.exception()
            if error is None:
                if task is writer:
                    reason = session.close_reason or "closed_by_relay"
            elif not isinstance(error, WebSocketDisconnect):
                reason = "transport_error"
                log.warning(
                    "Client transport error",
                    error=str(error),
                    error_type=type(error).__name__
                )
    finally:
        service.close_session(session.session_id, reason=reason)
        if (websocket.application_state is WebSocketState.CONNECTED
                and websocket.client_state is WebSocketState.CONNECTED):
            with contextlib.suppress(RuntimeError):
                await websocket.close()

    log.info("Client disconnected", reason=reason, **session.stats())


async def _read_loop(service: RelayService, session: ClientSession, websocket: WebSocket) -> None:
    while True:
        text = await websocket.receive_text()
        await handle_client_message(service, session, text)


async def _write_loop(session: ClientSession, websocket: WebSocket) -> None:
    while True:
        text = await session.next_message()
        if text is None:
            return
        await websocket.send_text(text)


async def handle_client_message(service: RelayService, session: ClientSession, text: str) -> None:
    """
    Handle one message from a client.

    ``command`` messages are routed upstream and answered with a
    ``command_result``; ``get_history`` is answered with ``history_data``
    only. Anything else gets an ``error`` reply.
    """
    session_id = session.session_id

    try:
        message = decode_message(text)
    except MalformedMessageError as e:
        logger.warning("Invalid client message", session_id=session_id, error=str(e))
        _reply(service, session_id, {"type": ERROR, "message": "Invalid JSON message"})
        return

    msg_type = message.get("type")

    if msg_type == "command":
        await _handle_command(service, session_id, message)
    elif msg_type == "get_history":
        await _handle_history(service, session_id, message)
    else:
        logger.debug("Unknown client message type", session_id=session_id, msg_type=msg_type)
        _reply(service, session_id, {"type": ERROR, "message": f"Unknown message type: {msg_type!r}"})


async def _handle_command(service: RelayService, session_id: str, message: dict[str, Any]) -> None:
    try:
        ack = await service.submit_command(
            message.get("command"),
            message.get("params"),
            session_id=session_id,
        )
    except CommandError as e:
        _reply(service, session_id, {
            "type": COMMAND_RESULT,
            "command": message.get("command"),
            "success": False,
            "message": str(e),
            "reason": e.reason,
        })
        return

    _reply(service, session_id, {
        "type": COMMAND_RESULT,
        "command": ack.command,
        "success": True,
        "message": ack.message,
    })


async def _handle_history(service: RelayService, session_id: str, message: dict[str, Any]) -> None:
    symbol = message.get("symbol")
    try:
        records = await service.fetch_history(symbol if isinstance(symbol, str) else None)
    except Exception as e:
        logger.error(
            "History lookup failed",
            session_id=session_id,
            error=str(e),
            error_type=type(e).__name__
        )
        _reply(service, session_id, {"type": ERROR, "message": "History unavailable"})
        return

    service.broadcaster.respond_history(session_id, records)


def _reply(service: RelayService, session_id: str, message: dict[str, Any]) -> None:
    service.broadcaster.send(session_id, message)
