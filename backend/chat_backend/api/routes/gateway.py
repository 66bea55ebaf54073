"""
WebSocket endpoint for the real-time gateway.

Frames are JSON objects `{"event": ..., "data": ...}` in both directions.
The session token is presented at handshake time; connections that fail
authentication are closed before they are accepted.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status
from pydantic import ValidationError

from chat_backend.core.config import settings
from chat_backend.core.deps import get_gateway
from chat_backend.core.exceptions import InvalidTokenError
from chat_backend.schemas.chat import GatewayFrame
from chat_backend.services.gateway import ERROR, ConnectionGateway

logger = logging.getLogger(__name__)

router = APIRouter(tags=["gateway"])

MALFORMED_FRAME_MESSAGE = "Malformed frame."


def extract_handshake_token(websocket: WebSocket) -> Optional[str]:
    """Token from the `token` query parameter, the Authorization header or the session cookie."""
    token = websocket.query_params.get("token")
    if token:
        return token

    authorization = websocket.headers.get("authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()

    return websocket.cookies.get(settings.AUTH_COOKIE_NAME)


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    gateway: ConnectionGateway = Depends(get_gateway),
):
    try:
        identity = gateway.authenticate(extract_handshake_token(websocket))
    except InvalidTokenError as e:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=e.message)
        return

    await websocket.accept()
    connection = gateway.open(identity, websocket)
    try:
        while True:
            text = await websocket.receive_text()
            try:
                frame = GatewayFrame.model_validate(json.loads(text))
            except (json.JSONDecodeError, ValidationError):
                await websocket.send_json({"event": ERROR, "data": MALFORMED_FRAME_MESSAGE})
                continue
            await gateway.dispatch(connection, frame.event, frame.data)
    except WebSocketDisconnect:
        pass
    finally:
        gateway.disconnect(connection)
