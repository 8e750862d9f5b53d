"""
WebSocket push of newly created notifications.

Clients connect to /ws/notifications?token=<access token> and receive a
`connection.ready` envelope, then one `notification.created` envelope per
notification created for them. Sending the text `ping` is answered with `pong`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from supplychain_api.core.deps import authenticate_token
from supplychain_api.core.errors import ApiError
from supplychain_api.db.session import get_session_maker
from supplychain_api.schemas.realtime import WsEnvelope
from supplychain_api.services.realtime import BroadcastManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["WebSocket"])

# Application close codes mirroring HTTP 401 / 403
WS_UNAUTHORIZED = 4401
WS_FORBIDDEN = 4403


# PUBLIC_INTERFACE
@router.websocket("/ws/notifications")
async def ws_notifications(websocket: WebSocket) -> None:
    await websocket.accept()
    try:
        async with get_session_maker()() as session:
            user = await authenticate_token(websocket.query_params.get("token"), session)
    except ApiError as exc:
        logger.info("WebSocket rejected: %s", exc.message)
        await websocket.close(code=WS_UNAUTHORIZED)
        return
    if not user.is_active:
        await websocket.close(code=WS_FORBIDDEN)
        return

    broadcasts: BroadcastManager = websocket.app.state.broadcasts
    topic = broadcasts.notifications_topic(user.id)
    await broadcasts.connect(topic, websocket)
    try:
        ready = WsEnvelope(type="connection.ready", payload={"topic": topic}, user_id=user.id)
        await websocket.send_json(ready.model_dump(mode="json"))
        while True:
            text = await websocket.receive_text()
            if text.strip().lower() == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        await broadcasts.disconnect(topic, websocket)
