"""
meeting_host.services.room_server
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间服务器协作接口。

``RoomServer`` 描述了选举逻辑对外部房间服务器的全部依赖：
房间与会话查找、权限修改、大厅开关、销毁房间、发送系统消息。

``InMemoryRoomServer`` 是默认实现：根据 HTTP 事件在内存中镜像房间状态，
并把所有需要房间服务器执行的动作作为 ``RoomIntent`` 通过 WebSocket 推送出去。
"""
from __future__ import annotations

from typing import Protocol

from meeting_host.core.logging import get_logger
from meeting_host.schemas.room_events import RoomIntent, SystemChatPayload
from meeting_host.services.conference_room import Affiliation, ConferenceRoom, Occupant
from meeting_host.services.room_broadcaster import RoomBroadcaster
from meeting_host.services.session import Session

logger = get_logger(__name__)


class RoomServer(Protocol):
    """外部房间服务器需要提供的能力。"""

    # ── 房间镜像（由事件驱动） ────────────────────────────────────────

    def get_room(self, room_id: str) -> ConferenceRoom | None: ...

    def open_room(self, room_id: str) -> ConferenceRoom: ...

    def list_rooms(self) -> list[ConferenceRoom]: ...

    def forget_if_empty(self, room_id: str) -> None: ...

    def add_occupant(self, room_id: str, occupant: Occupant) -> Occupant: ...

    def remove_occupant(self, room_id: str, occupant: Occupant) -> Occupant: ...

    # ── 会话 ──────────────────────────────────────────────────────────

    def upsert_session(self, session: Session) -> Session: ...

    def drop_session(self, session_id: str) -> Session | None: ...

    def resolve_session(self, occupant: Occupant) -> Session | None: ...

    # ── 指令 ──────────────────────────────────────────────────────────

    async def set_affiliation(
        self, room: ConferenceRoom, occupant: Occupant, affiliation: Affiliation,
    ) -> None: ...

    async def enable_lobby(self, room: ConferenceRoom, reason: str) -> None: ...

    async def disable_lobby(self, room: ConferenceRoom, message: str) -> None: ...

    async def host_arrived(self, room: ConferenceRoom, session: Session | None) -> None: ...

    async def destroy_room(self, room: ConferenceRoom, reason: str) -> None: ...

    async def send_message(
        self, room: ConferenceRoom, occupant: Occupant, payload: SystemChatPayload,
    ) -> bool: ...


class InMemoryRoomServer:
    """内存镜像 + WebSocket 指令推送的房间服务器适配器。

    Attributes:
        broadcaster: 房间指令广播器。
    """

    def __init__(self, broadcaster: RoomBroadcaster | None = None) -> None:
        self.broadcaster: RoomBroadcaster = broadcaster or RoomBroadcaster()
        self._rooms: dict[str, ConferenceRoom] = {}
        self._sessions: dict[str, Session] = {}

    # ── 房间镜像 ──────────────────────────────────────────────────────

    def get_room(self, room_id: str) -> ConferenceRoom | None:
        return self._rooms.get(room_id)

    def open_room(self, room_id: str) -> ConferenceRoom:
        """获取房间，不存在则创建（房间在首个 pre-join 时诞生）。"""
        room = self._rooms.get(room_id)
        if room is None:
            room = self._rooms[room_id] = ConferenceRoom(room_id)
            logger.info("房间已创建 | room_id=%s", room_id)
        return room

    def list_rooms(self) -> list[ConferenceRoom]:
        return list(self._rooms.values())

    def forget_if_empty(self, room_id: str) -> None:
        room = self._rooms.get(room_id)
        if room is not None and room.occupant_count == 0:
            del self._rooms[room_id]
            logger.info("空房间已移除 | room_id=%s", room_id)

    def add_occupant(self, room_id: str, occupant: Occupant) -> Occupant:
        room = self.open_room(room_id)
        existing = room.get_occupant(occupant.nick)
        if existing is not None:
            existing.role = occupant.role
            return existing
        # 保留已授予的权限对应的角色
        affiliation = room.get_affiliation(occupant.bare_jid)
        if affiliation in ("owner", "admin"):
            occupant.role = room.get_default_role(affiliation)
        room.add_occupant(occupant)
        return occupant

    def remove_occupant(self, room_id: str, occupant: Occupant) -> Occupant:
        """移除参与者，返回镜像中保存的那个对象（没有则原样返回入参）。"""
        room = self._rooms.get(room_id)
        if room is None:
            return occupant
        return room.remove_occupant(occupant.nick) or occupant

    # ── 会话 ──────────────────────────────────────────────────────────

    def upsert_session(self, session: Session) -> Session:
        """登记或刷新会话；已校验通过的缓存标记会被保留。"""
        existing = self._sessions.get(session.session_id)
        if existing is None:
            self._sessions[session.session_id] = session
            return session
        existing.subscription_status = session.subscription_status
        existing.display_name = session.display_name or existing.display_name
        return existing

    def drop_session(self, session_id: str) -> Session | None:
        return self._sessions.pop(session_id, None)

    def resolve_session(self, occupant: Occupant) -> Session | None:
        """找到参与者对应的在线会话。

        优先匹配参与者自己的连接（resource 区分大小写），否则取该用户的任意一条在线会话。
        """
        resource = occupant.resource
        fallback: Session | None = None
        for session in self._sessions.values():
            if session.bare_jid != occupant.bare_jid:
                continue
            if resource is not None and session.resource == resource:
                return session
            if fallback is None:
                fallback = session
        return fallback

    # ── 指令 ──────────────────────────────────────────────────────────

    async def set_affiliation(
        self, room: ConferenceRoom, occupant: Occupant, affiliation: Affiliation,
    ) -> None:
        room.set_affiliation(occupant.bare_jid, affiliation)
        occupant.role = room.get_default_role(affiliation)
        await self.broadcaster.publish(RoomIntent(
            type="affiliation",
            room=room.jid,
            to=occupant.nick,
            data={"jid": occupant.bare_jid, "affiliation": affiliation, "role": occupant.role},
        ))

    async def enable_lobby(self, room: ConferenceRoom, reason: str) -> None:
        room.set_members_only(True)
        await self.broadcaster.publish(RoomIntent(
            type="lobby_enable",
            room=room.jid,
            data={"reason": reason, "skip_display_name_check": True},
        ))

    async def disable_lobby(self, room: ConferenceRoom, message: str) -> None:
        room.set_members_only(False)
        await self.broadcaster.publish(RoomIntent(
            type="lobby_disable",
            room=room.jid,
            data={"message": message, "persist_lobby": False},
        ))

    async def host_arrived(self, room: ConferenceRoom, session: Session | None) -> None:
        await self.broadcaster.publish(RoomIntent(
            type="host_arrived",
            room=room.jid,
            to=session.full_jid if session else None,
        ))

    async def destroy_room(self, room: ConferenceRoom, reason: str) -> None:
        await self.broadcaster.publish(RoomIntent(
            type="destroy", room=room.jid, data={"reason": reason},
        ))
        self._rooms.pop(room.jid, None)
        logger.info("房间已销毁 | room_id=%s | reason=%s", room.jid, reason)

    async def send_message(
        self, room: ConferenceRoom, occupant: Occupant, payload: SystemChatPayload,
    ) -> bool:
        target = occupant.jid or self._full_jid_for(occupant)
        if target is None:
            logger.warning("找不到参与者的连接地址，系统消息未发送 | nick=%s", occupant.nick)
            return False
        delivered = await self.broadcaster.publish(RoomIntent(
            type="system_message",
            room=room.jid,
            to=target,
            data=payload.model_dump(by_alias=True),
        ))
        return delivered > 0

    def _full_jid_for(self, occupant: Occupant) -> str | None:
        session = self.resolve_session(occupant)
        return session.full_jid if session else None
