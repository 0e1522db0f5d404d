from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from typing import Optional
import asyncio
import logging

from pageflow.core.auth import resolve_identity
from pageflow.core.errors import AuthenticationFailure, MalformedEvent, TransportLoss
from pageflow.core.security import extract_token_from_header
from pageflow.domains.collaboration.entities import SessionHandle
from pageflow.domains.collaboration.schemas import decode_message, encode_message

logger = logging.getLogger(__name__)

router = APIRouter()


async def _receive(websocket: WebSocket, timeout: float) -> dict:
    try:
        message = await asyncio.wait_for(websocket.receive(), timeout=timeout)
    except asyncio.TimeoutError:
        raise TransportLoss(f"No traffic for {timeout} seconds")
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    return message


def _frame_text(message: dict) -> str:
    """Text of a received frame; binary frames are not part of the protocol"""
    text = message.get("text")
    if text is None:
        raise MalformedEvent("Binary frame")
    return text


@router.websocket("/ws")
async def sync_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    """Realtime co-editing channel"""
    state = websocket.app.state
    raw_token = token or extract_token_from_header(websocket.headers.get("authorization"))

    async with state.session_factory() as db:
        try:
            identity = await resolve_identity(raw_token, db)
        except AuthenticationFailure as e:
            logger.info(f"Rejecting websocket handshake: {e}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return

    await websocket.accept()

    session = SessionHandle(identity, queue_size=state.settings.ws_outbound_queue_size)
    broadcaster = state.broadcaster
    broadcaster.connect(session)

    async def send(message):
        await websocket.send_text(encode_message(message))

    writer = asyncio.create_task(session.run_writer(send))

    try:
        while True:
            message = await _receive(websocket, state.settings.ws_heartbeat_timeout)
            try:
                event_type, data = decode_message(_frame_text(message))
                broadcaster.dispatch(session, event_type, data)
            except MalformedEvent as e:
                logger.warning(f"Dropping malformed event from session {session.id}: {e}")

    except WebSocketDisconnect:
        logger.info(f"Session {session.id} closed by client")

    except TransportLoss as e:
        logger.info(f"Session {session.id} lost: {e}")
        await websocket.close(code=status.WS_1001_GOING_AWAY)

    finally:
        broadcaster.disconnect(session)
        await writer
