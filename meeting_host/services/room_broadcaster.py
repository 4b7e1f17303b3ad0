"""
meeting_host.services.room_broadcaster
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间指令广播器 —— 维护每个房间的房间服务器订阅连接，并推送 ``RoomIntent``。
"""
from __future__ import annotations

import asyncio

from fastapi import WebSocket

from meeting_host.core.logging import get_logger
from meeting_host.schemas.room_events import RoomIntent

logger = get_logger(__name__)


class RoomBroadcaster:
    """按房间划分的 WebSocket 订阅者集合。

    Attributes:
        subscribers: room_id → 当前订阅该房间指令的 WebSocket 连接。
    """

    def __init__(self) -> None:
        self.subscribers: dict[str, set[WebSocket]] = {}

    async def connect(self, room_id: str, websocket: WebSocket) -> None:
        """接受新连接并加入该房间的订阅集合。"""
        await websocket.accept()
        self.subscribers.setdefault(room_id, set()).add(websocket)

    def disconnect(self, room_id: str, websocket: WebSocket) -> None:
        """从订阅集合移除断开的连接。"""
        sockets = self.subscribers.get(room_id)
        if sockets is None:
            return
        sockets.discard(websocket)
        if not sockets:
            del self.subscribers[room_id]

    async def publish(self, intent: RoomIntent) -> int:
        """向订阅了该房间的所有连接推送一条指令。

        Returns:
            成功送达的连接数。
        """
        sockets = list(self.subscribers.get(intent.room, ()))
        if not sockets:
            logger.debug("无订阅者，指令未推送 | type=%s", intent.type)
            return 0
        message = intent.model_dump_json()
        results = await asyncio.gather(
            *(ws.send_text(message) for ws in sockets), return_exceptions=True,
        )
        delivered = 0
        for ws, result in zip(sockets, results):
            if isinstance(result, Exception):
                logger.warning("指令推送失败，移除断开的连接 | room=%s", intent.room)
                self.disconnect(intent.room, ws)
            else:
                delivered += 1
        return delivered

    def subscriber_count(self, room_id: str) -> int:
        return len(self.subscribers.get(room_id, ()))
