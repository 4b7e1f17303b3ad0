"""
meeting_host.services.destruction
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

无主持人房间的定时销毁。

“安排”与“执行时复查”分离：计时器醒来后重新查找房间、重新读取计划，
若期间已有主持人回归则取消销毁；若计时器比预定时间早醒（时钟漂移 / 计时精度），
则稍后再查一次而不是提前销毁。取消只是清除计划，计时器醒来发现计划已不存在即放弃。
"""
from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from meeting_host.core.config import Settings
from meeting_host.core.identity import IdentityRules
from meeting_host.core.logging import get_logger
from meeting_host.services.event_stream import BackgroundTasks, Handler
from meeting_host.services.host_state import DestructionSchedule, HostState, HostStateRegistry
from meeting_host.services.notifier import DESTRUCTION_CANCELLED, DESTRUCTION_WARNING, Notifier, format_seconds
from meeting_host.services.room_server import RoomServer

logger = get_logger(__name__)

DESTROY_REASON: str = "no-moderator-present"


class DestructionScheduler:
    """安排、取消与执行房间销毁。

    Attributes:
        delay: 默认销毁延迟秒数。
        recheck: 计时器提前醒来时的复查间隔秒数。
    """

    def __init__(
        self,
        server: RoomServer,
        states: HostStateRegistry,
        notifier: Notifier,
        rules: IdentityRules,
        dispatch: Callable[[str, Handler], None],
        timers: BackgroundTasks,
        settings: Settings,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.server = server
        self.states = states
        self.notifier = notifier
        self.rules = rules
        self._dispatch = dispatch
        self._timers = timers
        self._clock = clock
        self.delay: float = settings.DESTROY_DELAY_SECONDS
        self.recheck: float = settings.DESTROY_RECHECK_SECONDS

    async def arm(self, room_id: str, delay: float | None = None) -> bool:
        """为房间安排一次销毁。已有计划时不重复安排。

        Args:
            room_id: 房间 ID。
            delay: 延迟秒数，默认使用配置值。

        Returns:
            是否新安排了销毁计划。
        """
        room = self.server.get_room(room_id)
        if room is None or self.rules.is_healthcheck_room(room_id):
            return False

        state = self.states.get(room_id)
        if state.schedule is not None:
            logger.debug("销毁计划已存在，忽略 | fire_at=%.3f", state.schedule.fire_at)
            return False

        delay = self.delay if delay is None else delay
        schedule = DestructionSchedule(room_id=room_id, fire_at=self._clock() + delay)
        state.schedule = schedule
        logger.info("已安排房间销毁 | room_id=%s | delay=%.1fs", room_id, delay)

        self.notifier.broadcast(
            room, DESTRUCTION_WARNING.format(countdown=format_seconds(delay)),
        )
        self._start_timer(room_id, schedule.token, delay)
        return True

    def cancel(self, room_id: str) -> bool:
        """取消房间的销毁计划（幂等）。

        Returns:
            取消前是否存在计划。
        """
        state = self.states.peek(room_id)
        if state is None or state.schedule is None:
            return False
        self._clear(state)
        logger.info("已取消房间销毁 | room_id=%s", room_id)
        return True

    def is_armed(self, room_id: str) -> bool:
        state = self.states.peek(room_id)
        return state is not None and state.destroy_at is not None

    async def fire(self, room_id: str, token: int | None = None) -> None:
        """计时器到点后在房间事件流中执行：复查条件后销毁房间。

        Args:
            room_id: 房间 ID。
            token: 计时器所属计划的 token；为 None 时作用于当前计划。
        """
        room = self.server.get_room(room_id)
        if room is None:
            logger.debug("房间已不存在，放弃销毁 | room_id=%s", room_id)
            return

        state = self.states.peek(room_id)
        schedule = state.schedule if state else None
        if state is None or schedule is None or not schedule.armed:
            return
        if token is not None and schedule.token != token:
            # 旧计划的计时器
            return

        now = self._clock()
        if now < schedule.fire_at:
            logger.debug("计时器提前触发，%.1fs 后复查 | remaining=%.3f", self.recheck, schedule.fire_at - now)
            self._start_timer(room_id, schedule.token, self.recheck)
            return

        if state.has_host or self.rules.find_host(room) is not None:
            self._clear(state)
            self.notifier.broadcast(room, DESTRUCTION_CANCELLED)
            return

        logger.info("房间无主持人，执行销毁 | room_id=%s", room_id)
        try:
            await self.server.destroy_room(room, reason=DESTROY_REASON)
        finally:
            self._clear(state)
            self.states.discard(room_id)

    def _clear(self, state: HostState) -> None:
        if state.schedule is not None:
            state.schedule.armed = False
        state.schedule = None

    def _start_timer(self, room_id: str, token: int, delay: float) -> None:
        async def _wait() -> None:
            await asyncio.sleep(delay)
            self._dispatch(room_id, lambda: self.fire(room_id, token))

        self._timers.spawn(_wait(), name=f"destroy:{room_id}:{token}")
