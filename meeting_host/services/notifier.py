"""
meeting_host.services.notifier
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

系统消息通知 —— 主持人变更、即将销毁等提示。

投递是尽力而为、发出即忘的：在后台任务中执行，失败或超时只记日志，
绝不阻塞主持人切换或房间销毁。
"""
from __future__ import annotations

import asyncio

from meeting_host.core.config import Settings
from meeting_host.core.identity import IdentityRules
from meeting_host.core.logging import get_logger
from meeting_host.schemas.room_events import SystemChatPayload
from meeting_host.services.conference_room import ConferenceRoom, Occupant
from meeting_host.services.event_stream import BackgroundTasks
from meeting_host.services.room_server import RoomServer

logger = get_logger(__name__)

DESTRUCTION_WARNING: str = (
    "⚠️ This meeting will end in {countdown} due to no Host being present. "
    "Host can rejoin to prevent this from happening."
)
DESTRUCTION_CANCELLED: str = (
    "✅ The meeting has a new Host. The automatic room close has been cancelled."
)


def format_seconds(num_seconds: float) -> str:
    """把秒数格式化为可读的倒计时，例如 ``2 minutes`` / ``1 minute and 5 seconds``。"""
    total = max(0, int(round(num_seconds)))
    minutes, seconds = divmod(total, 60)

    def _unit(value: int, name: str) -> str:
        return f"{value} {name}{'' if value == 1 else 's'}"

    if minutes > 0 and seconds > 0:
        return f"{_unit(minutes, 'minute')} and {_unit(seconds, 'second')}"
    if minutes > 0:
        return _unit(minutes, "minute")
    return _unit(seconds, "second")


class Notifier:
    """向房间参与者发送系统消息。

    ``broadcast()`` / ``notify()`` 只负责把投递任务交给后台任务组，立即返回，
    因此慢速的房间服务器连接不会拖住房间事件流。

    Attributes:
        server: 房间服务器（负责实际投递）。
        display_name: 默认的系统消息显示名称。
        timeout: 单条消息投递超时秒数。
    """

    def __init__(
        self,
        server: RoomServer,
        settings: Settings,
        rules: IdentityRules,
        tasks: BackgroundTasks,
    ) -> None:
        self.server = server
        self.rules = rules
        self._tasks = tasks
        self.display_name: str = settings.SYSTEM_DISPLAY_NAME
        self.timeout: float = settings.NOTIFY_TIMEOUT_SECONDS

    def broadcast(
        self, room: ConferenceRoom, text: str, display_name: str | None = None,
    ) -> int:
        """向房间内所有非系统参与者发送消息（不等待投递结果）。

        Returns:
            已安排投递的人数。
        """
        payload = self._payload(text, display_name)
        recipients = self.rules.participants(room)
        for occupant in recipients:
            self._spawn(room, occupant, payload)
        logger.debug("系统广播 | recipients=%d | message=%s", len(recipients), text[:80])
        return len(recipients)

    def notify(
        self,
        room: ConferenceRoom,
        occupant: Occupant,
        text: str,
        display_name: str | None = None,
    ) -> asyncio.Task[bool]:
        """向单个参与者发送私信，返回投递任务（调用方无需等待）。"""
        return self._spawn(room, occupant, self._payload(text, display_name))

    def _payload(self, text: str, display_name: str | None) -> SystemChatPayload:
        return SystemChatPayload(display_name=display_name or self.display_name, message=text)

    def _spawn(
        self, room: ConferenceRoom, occupant: Occupant, payload: SystemChatPayload,
    ) -> asyncio.Task[bool]:
        return self._tasks.spawn(
            self._deliver(room, occupant, payload), name=f"notify:{room.jid}:{occupant.nick}",
        )

    async def _deliver(
        self, room: ConferenceRoom, occupant: Occupant, payload: SystemChatPayload,
    ) -> bool:
        try:
            return await asyncio.wait_for(
                self.server.send_message(room, occupant, payload), timeout=self.timeout,
            )
        except Exception as e:
            # 通知丢失不影响选举与销毁流程
            logger.warning("系统消息投递失败: %s | to=%s", e, occupant.nick)
            return False
