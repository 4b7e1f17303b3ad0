"""
meeting_host.services.election
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

主持人选举控制器 —— 房间级主持人状态机（NO_HOST / HAS_HOST）。

- pre-join: 房间无主持人时校验候选人；会议尚未开始则开启大厅，等待主持人。
- joined:   清除“待入场”标记。
- promote:  资格校验通过后的回调，执行时重新检查前置条件再授予主持人；
            授予给入场途中的候选人时限时确认其入场，超时未到则撤销。
- left:     主持人离开后尝试从剩余参与者中重新选举，宽限期后仍无主持人则安排销毁。

所有处理函数都在房间事件流中串行执行；异步回调执行时读取的是最新的房间状态。
"""
from __future__ import annotations

import asyncio
from collections.abc import Callable

from meeting_host.core.config import Settings
from meeting_host.core.identity import IdentityRules
from meeting_host.core.logging import get_logger
from meeting_host.services.conference_room import ConferenceRoom, Occupant, RoomEvent
from meeting_host.services.destruction import DestructionScheduler
from meeting_host.services.event_stream import BackgroundTasks, Handler
from meeting_host.services.host_state import HostStateRegistry
from meeting_host.services.host_validator import HostValidator
from meeting_host.services.notifier import DESTRUCTION_CANCELLED, Notifier
from meeting_host.services.room_server import RoomServer

logger = get_logger(__name__)

LOBBY_REASON: str = "waiting-for-host"
HOST_ARRIVED_MESSAGE: str = "Host arrived."


class ElectionController:
    """主持人选举与交接。"""

    def __init__(
        self,
        server: RoomServer,
        states: HostStateRegistry,
        validator: HostValidator,
        scheduler: DestructionScheduler,
        notifier: Notifier,
        rules: IdentityRules,
        dispatch: Callable[[str, Handler], None],
        timers: BackgroundTasks,
        settings: Settings,
    ) -> None:
        self.server = server
        self.states = states
        self.validator = validator
        self.scheduler = scheduler
        self.notifier = notifier
        self.rules = rules
        self._dispatch = dispatch
        self._timers = timers
        self.grace: float = settings.HOST_GRACE_SECONDS
        self.arrival_timeout: float = settings.PENDING_HOST_TIMEOUT_SECONDS
        self.welcome_message: str = settings.HOST_WELCOME_MESSAGE

    def _ignored(self, event: RoomEvent) -> bool:
        return (
            self.rules.is_healthcheck_room(event.room.jid)
            or self.rules.is_system_occupant(event.occupant)
        )

    # ── 房间服务器事件 ────────────────────────────────────────────────

    async def on_pre_join(self, event: RoomEvent) -> str | None:
        """参与者即将入场。本步骤从不拒绝入场，返回值恒为 None。"""
        room, occupant = event.room, event.occupant
        if self._ignored(event):
            return None

        state = self.states.get(room.jid)
        if state.has_host:
            return None

        # 会议已经开始（已有非系统参与者）时不再改动大厅设置
        meeting_started = self.rules.has_participants(room)

        state.pending.add(occupant.nick)
        self.validator.check(occupant, room, self.promote)

        if not meeting_started and not room.get_members_only():
            logger.info("房间无主持人，开启大厅等待 | nick=%s", occupant.nick)
            await self.server.enable_lobby(room, reason=LOBBY_REASON)
        return None

    async def on_joined(self, event: RoomEvent) -> None:
        if self._ignored(event):
            return
        state = self.states.peek(event.room.jid)
        if state is not None:
            state.pending.discard(event.occupant.nick)

    async def on_left(self, event: RoomEvent) -> None:
        """参与者已离开（已从房间中移除）。"""
        room, occupant = event.room, event.occupant
        if self._ignored(event):
            return

        state = self.states.peek(room.jid)
        if state is None:
            return
        state.pending.discard(occupant.nick)

        if not state.has_host or state.host_nick != occupant.nick:
            return

        # 收回离开者的 owner 权限，避免其重新入场后出现第二个主持人
        await self.server.set_affiliation(room, occupant, "member")

        successor = self.rules.find_host(room, exclude=occupant.nick)
        if successor is not None:
            state.host_nick = successor.nick
            logger.info("主持人离开，由现有 owner 接任 | host=%s", successor.nick)
            return

        state.has_host = False
        state.host_nick = None
        logger.info("主持人离开，房间进入无主持人状态 | left=%s", occupant.nick)
        self._reelect(room)

    # ── 选举 ──────────────────────────────────────────────────────────

    async def promote(self, event: RoomEvent) -> bool:
        """资格校验通过后的回调：授予主持人。

        回调可能在校验发起很久之后才执行，因此在这里重新检查：
        房间仍存在、房间仍无主持人、候选人仍在房间内（或仍在入场途中）。

        Returns:
            是否真正完成了授予。
        """
        room_id = event.room.jid
        room = self.server.get_room(room_id)
        if room is None:
            logger.info("房间已不存在，放弃授予主持人 | nick=%s", event.occupant.nick)
            return False

        state = self.states.get(room_id)
        if state.has_host:
            logger.info("房间已有主持人，丢弃过期的校验结果 | nick=%s", event.occupant.nick)
            return False

        nick = event.occupant.nick
        occupant = room.get_occupant(nick)
        if occupant is None and nick not in state.pending:
            logger.info("候选人已离开，放弃授予主持人 | nick=%s", nick)
            return False

        arriving = occupant is None
        occupant = occupant or event.occupant

        state.has_host = True
        state.host_nick = nick
        state.pending.discard(nick)
        await self.server.set_affiliation(room, occupant, "owner")
        logger.info("主持人已确定 | host=%s", nick)

        if arriving:
            self._timers.spawn(
                self._await_arrival(room_id, occupant), name=f"host-arrival:{room_id}:{nick}",
            )

        self.notifier.notify(room, occupant, self.welcome_message)

        if self.scheduler.cancel(room_id):
            self.notifier.broadcast(room, DESTRUCTION_CANCELLED)

        if room.get_members_only():
            # 大厅只用于等待主持人：主持人到场后放所有等待者进入
            await self.server.disable_lobby(room, message=HOST_ARRIVED_MESSAGE)
            await self.server.host_arrived(room, event.session)
        return True

    async def _await_arrival(self, room_id: str, occupant: Occupant) -> None:
        await asyncio.sleep(self.arrival_timeout)
        self._dispatch(room_id, lambda: self._confirm_arrival(room_id, occupant))

    async def _confirm_arrival(self, room_id: str, occupant: Occupant) -> None:
        """主持人在入场途中被授予后，确认其已真正入场。

        房间服务器可能在 pre-join 之后拒绝或丢弃该参与者，此时既没有 joined
        也没有 left 事件；超时仍未入场就撤销授予，按主持人离开的流程处理。
        """
        room = self.server.get_room(room_id)
        state = self.states.peek(room_id)
        if room is None or state is None:
            return
        if not state.has_host or state.host_nick != occupant.nick:
            return
        if room.get_occupant(occupant.nick) is not None:
            return

        state.pending.discard(occupant.nick)
        await self.server.set_affiliation(room, occupant, "member")
        logger.info("主持人未能入场，撤销授予 | nick=%s", occupant.nick)

        successor = self.rules.find_host(room, exclude=occupant.nick)
        if successor is not None:
            state.host_nick = successor.nick
            logger.info("由现有 owner 接任 | host=%s", successor.nick)
            return

        state.has_host = False
        state.host_nick = None
        if room.occupant_count == 0:
            self.server.forget_if_empty(room_id)
            self.states.discard(room_id)
            return
        self._reelect(room)

    def _reelect(self, room: ConferenceRoom) -> None:
        """重新校验剩余参与者；宽限期后仍无主持人则安排销毁。"""
        remaining = self.rules.participants(room)
        if not remaining:
            return
        for candidate in remaining:
            self.validator.check(candidate, room, self.promote)
        self._timers.spawn(self._grace_then_arm(room.jid), name=f"host-grace:{room.jid}")

    async def _grace_then_arm(self, room_id: str) -> None:
        await asyncio.sleep(self.grace)
        self._dispatch(room_id, lambda: self._arm_if_hostless(room_id))

    async def _arm_if_hostless(self, room_id: str) -> None:
        room = self.server.get_room(room_id)
        if room is None or self.states.has_host(room_id):
            return
        await self.scheduler.arm(room_id)
