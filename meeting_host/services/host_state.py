"""
meeting_host.services.host_state
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

选举控制器自有的房间级状态表（room_id → ``HostState``）。

不把辅助状态挂到外部房间对象上，每次事件都按房间 ID 重新查找。
"""
from __future__ import annotations

import itertools
from dataclasses import dataclass, field

_schedule_tokens = itertools.count(1)


@dataclass
class DestructionSchedule:
    """一次待执行的房间销毁。

    ``token`` 用于区分同一房间先后出现的不同计划：
    旧计划的计时器醒来时发现 token 不匹配即放弃。
    """

    room_id: str
    fire_at: float
    armed: bool = True
    token: int = field(default_factory=lambda: next(_schedule_tokens))


@dataclass
class HostState:
    """单个房间的主持人状态。"""

    room_id: str
    has_host: bool = False
    host_nick: str | None = None
    schedule: DestructionSchedule | None = None
    pending: set[str] = field(default_factory=set)
    creator: str | None = None

    @property
    def destroy_at(self) -> float | None:
        if self.schedule is None or not self.schedule.armed:
            return None
        return self.schedule.fire_at


class HostStateRegistry:
    """所有房间的 ``HostState``，按需创建。"""

    def __init__(self) -> None:
        self._states: dict[str, HostState] = {}

    def get(self, room_id: str) -> HostState:
        state = self._states.get(room_id)
        if state is None:
            state = self._states[room_id] = HostState(room_id=room_id)
        return state

    def peek(self, room_id: str) -> HostState | None:
        """只读查询，不创建新状态。"""
        return self._states.get(room_id)

    def has_host(self, room_id: str) -> bool:
        state = self._states.get(room_id)
        return state is not None and state.has_host

    def discard(self, room_id: str) -> None:
        self._states.pop(room_id, None)

    def __len__(self) -> int:
        return len(self._states)
