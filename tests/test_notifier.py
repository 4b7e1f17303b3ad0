"""
tests.test_notifier
~~~~~~~~~~~~~~~~~~~

系统消息通知测试：倒计时格式、消息载荷、后台投递与失败不外抛。
"""
from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from meeting_host.core.identity import IdentityRules
from meeting_host.schemas.room_events import SystemChatPayload
from meeting_host.services.conference_room import ConferenceRoom
from meeting_host.services.event_stream import BackgroundTasks
from meeting_host.services.notifier import Notifier, format_seconds
from support import ROOM, People, make_settings


class TestFormatSeconds:

    @pytest.mark.parametrize(
        ("seconds", "expected"),
        [
            (120, "2 minutes"),
            (60, "1 minute"),
            (65, "1 minute and 5 seconds"),
            (121, "2 minutes and 1 second"),
            (1, "1 second"),
            (0, "0 seconds"),
            (0.4, "0 seconds"),
        ],
    )
    def test_format(self, seconds: float, expected: str) -> None:
        assert format_seconds(seconds) == expected


def test_payload_uses_camel_case_display_name() -> None:
    payload = SystemChatPayload(display_name="System", message="hi")
    assert payload.model_dump(by_alias=True) == {
        "displayName": "System",
        "type": "system_chat_message",
        "message": "hi",
    }


class TestNotifier:

    def setup_method(self) -> None:
        self.settings = make_settings(NOTIFY_TIMEOUT_SECONDS=0.05)
        self.rules = IdentityRules.from_settings(self.settings)
        self.server = MagicMock()
        self.server.send_message = AsyncMock(return_value=True)
        self.tasks = BackgroundTasks("notifications")
        self.notifier = Notifier(self.server, self.settings, self.rules, self.tasks)

        people = People()
        self.alice, self.bob = people.occupant("alice"), people.occupant("bob")
        self.room = ConferenceRoom(ROOM)
        self.room.add_occupant(people.focus())
        self.room.add_occupant(self.alice)
        self.room.add_occupant(self.bob)

    @pytest.mark.asyncio
    async def test_broadcast_skips_system_occupants(self) -> None:
        scheduled = self.notifier.broadcast(self.room, "hello everyone")
        await self.tasks.wait_idle()

        assert scheduled == 2
        recipients = {call.args[1].nick for call in self.server.send_message.await_args_list}
        assert recipients == {self.alice.nick, self.bob.nick}

    @pytest.mark.asyncio
    async def test_notify_uses_default_display_name(self) -> None:
        assert await self.notifier.notify(self.room, self.alice, "you are the host")

        payload = self.server.send_message.await_args.args[2]
        assert payload.display_name == "System"
        assert payload.message == "you are the host"

    @pytest.mark.asyncio
    async def test_custom_display_name(self) -> None:
        await self.notifier.notify(self.room, self.alice, "hi", display_name="Moderator Bot")
        assert self.server.send_message.await_args.args[2].display_name == "Moderator Bot"

    @pytest.mark.asyncio
    async def test_delivery_failure_is_swallowed(self) -> None:
        self.server.send_message = AsyncMock(side_effect=RuntimeError("gone"))

        assert await self.notifier.notify(self.room, self.alice, "hello") is False

    @pytest.mark.asyncio
    async def test_one_failed_recipient_does_not_stop_others(self) -> None:
        self.server.send_message = AsyncMock(side_effect=[RuntimeError("gone"), True])

        self.notifier.broadcast(self.room, "hello")
        await self.tasks.wait_idle()

        assert self.server.send_message.await_count == 2

    @pytest.mark.asyncio
    async def test_slow_delivery_times_out(self) -> None:
        async def _slow(*args) -> bool:
            await asyncio.sleep(1)
            return True

        self.server.send_message = _slow

        assert await self.notifier.notify(self.room, self.alice, "hello") is False

    @pytest.mark.asyncio
    async def test_broadcast_returns_before_delivery_finishes(self) -> None:
        release = asyncio.Event()

        async def _blocked(*args) -> bool:
            await release.wait()
            return True

        self.server.send_message = AsyncMock(side_effect=_blocked)
        self.notifier.timeout = 5

        assert self.notifier.broadcast(self.room, "hello") == 2
        await asyncio.sleep(0)
        assert len(self.tasks) == 2

        release.set()
        await self.tasks.wait_idle()
        assert self.tasks.idle
