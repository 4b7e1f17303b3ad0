"""
meeting_host.services.hosting_system
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

主持人系统 —— 组装各组件，并把房间服务器事件送入对应房间的事件流。

每类事件都有一条固定顺序的处理流水线（不使用数值优先级）:

- pre-join: ``CreationGate`` → ``ElectionController.on_pre_join``（任一步返回拒绝原因即终止）
- joined:   ``ElectionController.on_joined``
- left:     ``ElectionController.on_left``

在 FastAPI lifespan 中初始化并挂载于 ``app.state.hosting_system``。
"""
from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

from meeting_host.core.config import Settings, get_settings
from meeting_host.core.identity import IdentityRules
from meeting_host.core.logging import get_logger
from meeting_host.schemas.room_events import AdmissionData, RoomHostInfoData
from meeting_host.services.conference_room import Occupant, RoomEvent
from meeting_host.services.creation_gate import CreationGate
from meeting_host.services.destruction import DestructionScheduler
from meeting_host.services.election import ElectionController
from meeting_host.services.event_stream import BackgroundTasks, RoomEventStreams
from meeting_host.services.host_state import HostStateRegistry
from meeting_host.services.host_validator import HostValidator
from meeting_host.services.notifier import Notifier
from meeting_host.services.oracle import EntitlementOracle, SubscriptionStatusOracle, ValidationOracleClient
from meeting_host.services.room_server import RoomServer
from meeting_host.services.session import Session

logger = get_logger(__name__)

PreJoinStep = Callable[[RoomEvent], Awaitable[str | None]]
EventStep = Callable[[RoomEvent], Awaitable[None]]


class HostingSystem:
    """主持人系统（每个进程一个实例）。

    Attributes:
        server: 房间服务器适配器。
        states: 房间主持人状态表。
        streams: 房间事件流。
        validator / scheduler / controller / gate / notifier: 各业务组件。
    """

    def __init__(
        self,
        server: RoomServer,
        oracle: EntitlementOracle | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings: Settings = settings or get_settings()
        self.server = server
        self.rules = IdentityRules.from_settings(self.settings)
        self.states = HostStateRegistry()
        self.streams = RoomEventStreams()

        # 资格校验、通知投递与计时器分开跟踪：前两者可等待完成，计时器可能长时间休眠
        self._checks = BackgroundTasks("host-checks")
        self._notices = BackgroundTasks("notifications")
        self._timers = BackgroundTasks("timers")

        self.oracle_client = ValidationOracleClient(
            oracle or SubscriptionStatusOracle(self.settings.ELIGIBLE_SUBSCRIPTION_STATUSES),
            timeout=self.settings.ENTITLEMENT_TIMEOUT_SECONDS,
        )
        self.notifier = Notifier(server, self.settings, self.rules, self._notices)
        self.validator = HostValidator(
            server, self.states, self.oracle_client, self.rules, self.streams.post, self._checks,
        )
        self.scheduler = DestructionScheduler(
            server, self.states, self.notifier, self.rules,
            self.streams.post, self._timers, self.settings, clock=clock,
        )
        self.controller = ElectionController(
            server, self.states, self.validator, self.scheduler, self.notifier,
            self.rules, self.streams.post, self._timers, self.settings,
        )
        self.gate = CreationGate(self.states, self.rules, self.settings)

        self._pre_join_steps: tuple[PreJoinStep, ...] = (
            self.gate.on_pre_join,
            self.controller.on_pre_join,
        )
        self._joined_steps: tuple[EventStep, ...] = (self.controller.on_joined,)
        self._left_steps: tuple[EventStep, ...] = (self.controller.on_left,)

    # ── 房间服务器事件 ────────────────────────────────────────────────

    async def pre_join(
        self, room_id: str, occupant: Occupant, session: Session | None = None,
    ) -> AdmissionData:
        """参与者即将进入房间，返回准入结果。"""

        async def _handle() -> AdmissionData:
            tracked = self.server.upsert_session(session) if session else None
            room = self.server.open_room(room_id)
            event = RoomEvent(room=room, occupant=occupant, session=tracked)
            for step in self._pre_join_steps:
                reason = await step(event)
                if reason is not None:
                    logger.info("拒绝入场 | nick=%s | reason=%s", occupant.nick, reason)
                    self.server.forget_if_empty(room_id)
                    return AdmissionData(admitted=False, reason=reason)
            return AdmissionData(admitted=True)

        return await self.streams.submit(room_id, _handle)

    async def joined(
        self, room_id: str, occupant: Occupant, session: Session | None = None,
    ) -> None:
        async def _handle() -> None:
            tracked = self.server.upsert_session(session) if session else None
            stored = self.server.add_occupant(room_id, occupant)
            room = self.server.open_room(room_id)
            event = RoomEvent(room=room, occupant=stored, session=tracked)
            for step in self._joined_steps:
                await step(event)

        await self.streams.submit(room_id, _handle)

    async def left(
        self, room_id: str, occupant: Occupant, session: Session | None = None,
    ) -> None:
        async def _handle() -> None:
            room = self.server.get_room(room_id)
            if room is None:
                return
            stored = self.server.remove_occupant(room_id, occupant)
            tracked = session or self.server.resolve_session(stored)
            event = RoomEvent(room=room, occupant=stored, session=tracked)
            for step in self._left_steps:
                await step(event)
            if room.occupant_count == 0 and not self.scheduler.is_armed(room_id):
                self.server.forget_if_empty(room_id)
                self.states.discard(room_id)

        await self.streams.submit(room_id, _handle)

    # ── 会话 ──────────────────────────────────────────────────────────

    def register_session(self, session: Session) -> Session:
        return self.server.upsert_session(session)

    def drop_session(self, session_id: str) -> Session | None:
        return self.server.drop_session(session_id)

    # ── 查询 ──────────────────────────────────────────────────────────

    def room_info(self, room_id: str) -> RoomHostInfoData | None:
        room = self.server.get_room(room_id)
        if room is None:
            return None
        state = self.states.peek(room_id)
        return RoomHostInfoData(
            room_id=room_id,
            has_host=bool(state and state.has_host),
            host=state.host_nick if state else None,
            destroy_at=state.destroy_at if state else None,
            members_only=room.get_members_only(),
            occupant_count=room.occupant_count,
        )

    # ── 生命周期 ──────────────────────────────────────────────────────

    async def settle(self) -> None:
        """等待所有进行中的资格校验、通知投递与房间事件处理完成（不等待计时器）。"""
        while not (self._checks.idle and self._notices.idle and self.streams.idle):
            await self._checks.wait_idle()
            await self.streams.wait_idle()
            await self._notices.wait_idle()

    async def shutdown(self) -> None:
        await self._timers.cancel_all()
        await self._checks.cancel_all()
        await self._notices.cancel_all()
        await self.streams.close()
        logger.info("主持人系统已关闭")
