"""
meeting_host.api.room_stream_ws
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间指令推送接口 —— 房间服务器通过 ``/ws/rooms/{room_id}`` 订阅某个房间的指令。

每条消息是一个 ``RoomIntent`` 的 JSON:
  - ``system_message``: 向 ``to`` 发送系统消息（``data`` 为消息载荷）
  - ``affiliation``: 修改参与者权限与角色
  - ``lobby_enable`` / ``lobby_disable``: 开启 / 关闭大厅
  - ``host_arrived``: 主持人已到场
  - ``destroy``: 销毁房间（``data.reason``）
"""
from __future__ import annotations

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from meeting_host.api.deps import get_room_server
from meeting_host.core.logging import get_logger, room_id_ctx_var
from meeting_host.services.room_server import InMemoryRoomServer

logger = get_logger(__name__)

router: APIRouter = APIRouter()


@router.websocket("/ws/rooms/{room_id}")
async def room_intent_stream(
    websocket: WebSocket,
    room_id: str,
    server: InMemoryRoomServer = Depends(get_room_server),
) -> None:
    """订阅指定房间的指令流。客户端发来的消息会被忽略，仅用于保持连接。"""
    token = room_id_ctx_var.set(room_id)
    try:
        await server.broadcaster.connect(room_id, websocket)
        logger.info("房间服务器已订阅 | 订阅数: %d", server.broadcaster.subscriber_count(room_id))
        try:
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass  # 正常断开
        finally:
            server.broadcaster.disconnect(room_id, websocket)
            logger.info("房间服务器已取消订阅 | 订阅数: %d", server.broadcaster.subscriber_count(room_id))
    finally:
        room_id_ctx_var.reset(token)
