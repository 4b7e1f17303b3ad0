"""
tests.test_room_server
~~~~~~~~~~~~~~~~~~~~~~

内存房间服务器测试：参与者到会话的解析、系统消息的投递目标。
"""
from __future__ import annotations

import pytest

from meeting_host.schemas.room_events import SystemChatPayload
from meeting_host.services.conference_room import Occupant
from meeting_host.services.room_server import InMemoryRoomServer
from meeting_host.services.session import Session
from support import DOMAIN, ROOM, People, RecordingSocket


def _session(session_id: str, resource: str) -> Session:
    return Session(session_id=session_id, bare_jid=f"alice@{DOMAIN}", resource=resource)


class TestResolveSession:

    def setup_method(self) -> None:
        self.server = InMemoryRoomServer()
        self.phone = self.server.upsert_session(_session("sess-phone", "phone"))
        self.laptop = self.server.upsert_session(_session("sess-laptop", "Laptop-7F"))

    def test_matches_own_connection_by_resource(self) -> None:
        occupant = Occupant(nick=f"{ROOM}/alice", bare_jid=f"Alice@{DOMAIN}", jid=f"Alice@{DOMAIN}/Laptop-7F")
        assert self.server.resolve_session(occupant) is self.laptop

    def test_resource_is_case_sensitive(self) -> None:
        occupant = Occupant(nick=f"{ROOM}/alice", bare_jid=f"alice@{DOMAIN}", jid=f"alice@{DOMAIN}/laptop-7f")
        # 没有完全匹配的连接时退回该用户的任意会话
        assert self.server.resolve_session(occupant) is self.phone

    def test_unknown_connection_falls_back_to_any_session(self) -> None:
        occupant = Occupant(nick=f"{ROOM}/alice", bare_jid=f"alice@{DOMAIN}")
        assert self.server.resolve_session(occupant) is self.phone

    def test_other_user_has_no_session(self, people: People) -> None:
        assert self.server.resolve_session(people.occupant("bob")) is None


class TestSendMessage:

    @pytest.mark.asyncio
    async def test_message_without_full_jid_goes_to_resolved_session(self) -> None:
        server = InMemoryRoomServer()
        socket = RecordingSocket()
        server.broadcaster.subscribers[ROOM] = {socket}
        room = server.open_room(ROOM)
        server.upsert_session(_session("sess-laptop", "Laptop-7F"))
        occupant = Occupant(nick=f"{ROOM}/alice", bare_jid=f"alice@{DOMAIN}")

        delivered = await server.send_message(room, occupant, SystemChatPayload(display_name="System", message="hi"))

        assert delivered is True
        assert socket.intents("system_message")[0]["to"] == f"alice@{DOMAIN}/Laptop-7F"
        assert socket.intents("system_message")[0]["data"]["displayName"] == "System"

    @pytest.mark.asyncio
    async def test_message_to_unknown_connection_is_dropped(self) -> None:
        server = InMemoryRoomServer()
        room = server.open_room(ROOM)
        occupant = Occupant(nick=f"{ROOM}/ghost", bare_jid=f"ghost@{DOMAIN}")

        delivered = await server.send_message(
            room, occupant, SystemChatPayload(display_name="System", message="hi"),
        )
        assert delivered is False
