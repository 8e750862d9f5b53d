from __future__ import annotations

import asyncio
import logging
from collections import defaultdict
from typing import DefaultDict, List, Set
from uuid import UUID

from starlette.websockets import WebSocket, WebSocketState

from supplychain_api.schemas.notifications import NotificationRead
from supplychain_api.schemas.realtime import WsEnvelope

logger = logging.getLogger(__name__)


def _is_open(ws: WebSocket) -> bool:
    return WebSocketState.DISCONNECTED not in (ws.application_state, ws.client_state)


class BroadcastManager:
    """
    In-process pub-sub of JSON messages to WebSocket subscribers.

    Each user listens on `notifications:{user_id}`. Delivery is best effort:
    sockets that are closed or fail a send are unsubscribed and nothing is retried.
    One instance lives on app.state.
    """

    def __init__(self) -> None:
        self._topics: DefaultDict[str, Set[WebSocket]] = defaultdict(set)
        self._lock = asyncio.Lock()

    # PUBLIC_INTERFACE
    def notifications_topic(self, user_id: UUID | str) -> str:
        return f"notifications:{user_id}"

    # PUBLIC_INTERFACE
    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))

    # PUBLIC_INTERFACE
    async def connect(self, topic: str, websocket: WebSocket) -> None:
        """Subscribe an already accepted websocket to topic."""
        async with self._lock:
            self._topics[topic].add(websocket)
            count = len(self._topics[topic])
        logger.info("WebSocket subscribed to %s (%d open)", topic, count)

    # PUBLIC_INTERFACE
    async def disconnect(self, topic: str, websocket: WebSocket) -> None:
        async with self._lock:
            self._drop(topic, [websocket])
        logger.info("WebSocket unsubscribed from %s", topic)

    def _drop(self, topic: str, sockets: List[WebSocket]) -> None:
        subscribers = self._topics.get(topic)
        if subscribers is None:
            return
        subscribers.difference_update(sockets)
        if not subscribers:
            del self._topics[topic]

    # PUBLIC_INTERFACE
    async def broadcast(self, topic: str, message: dict) -> int:
        """
        Send message to every open subscriber of topic.

        Returns:
            Number of sockets the message was delivered to.
        """
        async with self._lock:
            sockets = list(self._topics.get(topic, ()))

        dead: List[WebSocket] = []
        delivered = 0
        for ws in sockets:
            if not _is_open(ws):
                dead.append(ws)
                continue
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Dropping WebSocket on %s after failed send", topic, exc_info=True)
                dead.append(ws)

        if dead:
            async with self._lock:
                self._drop(topic, dead)
        return delivered

    # PUBLIC_INTERFACE
    async def publish_notification(self, notification: NotificationRead) -> int:
        """Push a `notification.created` envelope to the owner's topic."""
        envelope = WsEnvelope(
            type="notification.created",
            payload=notification.model_dump(mode="json"),
            user_id=notification.user_id,
        )
        return await self.broadcast(self.notifications_topic(notification.user_id), envelope.model_dump(mode="json"))
