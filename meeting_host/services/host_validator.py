"""
meeting_host.services.host_validator
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

主持人候选校验。

``check()`` 立即返回，不阻塞房间事件流：
  1. 系统身份、健康检查房间、已有主持人的房间：直接跳过；
  2. 找不到在线会话：跳过（断开的用户不能成为主持人）；
  3. 会话已缓存为有效主持人：回调立即排入房间事件流；
  4. 否则在后台调用资格校验，通过后再把回调排入房间事件流。

同一房间的多次并发校验不会在这里合并，由选举控制器在回调执行时重新检查。
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

from meeting_host.core.identity import IdentityRules
from meeting_host.core.logging import get_logger
from meeting_host.services.conference_room import ConferenceRoom, Occupant, RoomEvent
from meeting_host.services.event_stream import BackgroundTasks, Handler
from meeting_host.services.host_state import HostStateRegistry
from meeting_host.services.oracle import ValidationOracleClient
from meeting_host.services.room_server import RoomServer
from meeting_host.services.session import Session

logger = get_logger(__name__)

SuccessCallback = Callable[[RoomEvent], Awaitable[Any]]
Dispatch = Callable[[str, Handler], None]


class HostValidator:
    """判断参与者能否成为主持人，成功时通过房间事件流回调。"""

    def __init__(
        self,
        server: RoomServer,
        states: HostStateRegistry,
        oracle_client: ValidationOracleClient,
        rules: IdentityRules,
        dispatch: Dispatch,
        tasks: BackgroundTasks,
    ) -> None:
        self.server = server
        self.states = states
        self.oracle_client = oracle_client
        self.rules = rules
        self._dispatch = dispatch
        self._tasks = tasks

    def check(
        self, occupant: Occupant, room: ConferenceRoom, on_success: SuccessCallback,
    ) -> asyncio.Task[None] | None:
        """发起一次主持人资格检查。

        Args:
            occupant: 候选参与者。
            room: 所在房间。
            on_success: 校验通过后在房间事件流中执行的回调，参数为 ``RoomEvent``。

        Returns:
            需要调用资格服务时返回后台任务，否则返回 None。
        """
        if self.rules.is_system_occupant(occupant):
            return None
        if self.rules.is_healthcheck_room(room.jid):
            return None
        if self.states.has_host(room.jid):
            # 已有主持人，无需再调用资格服务
            return None

        session = self.server.resolve_session(occupant)
        if session is None:
            logger.info("找不到在线会话，跳过主持人检查 | nick=%s", occupant.nick)
            return None

        event = RoomEvent(room=room, occupant=occupant, session=session)
        if session.is_valid_host:
            self._dispatch(room.jid, lambda: on_success(event))
            return None

        return self._tasks.spawn(
            self._validate(event, session, on_success),
            name=f"host-check:{room.jid}:{occupant.nick}",
        )

    async def _validate(
        self, event: RoomEvent, session: Session, on_success: SuccessCallback,
    ) -> None:
        if not await self.oracle_client.validate(session):
            return
        self._dispatch(event.room.jid, lambda: on_success(event))
