"""
tests.test_event_stream
~~~~~~~~~~~~~~~~~~~~~~~

房间事件流与后台任务集合测试。
"""
from __future__ import annotations

import asyncio

import pytest

from meeting_host.core.logging import room_id_ctx_var
from meeting_host.services.event_stream import BackgroundTasks, RoomEventStreams


class TestRoomEventStreams:

    @pytest.mark.asyncio
    async def test_handlers_run_in_arrival_order(self) -> None:
        streams = RoomEventStreams()
        order: list[int] = []

        def make(i: int):
            async def _handler() -> None:
                await asyncio.sleep(0.005 * (3 - i))
                order.append(i)
            return _handler

        for i in range(3):
            streams.post("room-a", make(i))
        await streams.wait_idle()

        assert order == [0, 1, 2]
        assert streams.idle

    @pytest.mark.asyncio
    async def test_submit_returns_handler_result(self) -> None:
        streams = RoomEventStreams()

        async def _handler() -> str:
            return "done"

        assert await streams.submit("room-a", _handler) == "done"

    @pytest.mark.asyncio
    async def test_failing_handler_does_not_stop_stream(self) -> None:
        streams = RoomEventStreams()
        ran: list[str] = []

        async def _boom() -> None:
            raise ValueError("boom")

        async def _after() -> None:
            ran.append("after")

        failing = streams.submit("room-a", _boom)
        streams.post("room-a", _after)

        with pytest.raises(ValueError):
            await failing
        await streams.wait_idle()
        assert ran == ["after"]

    @pytest.mark.asyncio
    async def test_rooms_do_not_block_each_other(self) -> None:
        streams = RoomEventStreams()
        gate = asyncio.Event()

        async def _blocked() -> None:
            await gate.wait()

        async def _quick() -> str:
            return "b"

        blocked = streams.submit("room-a", _blocked)
        assert await asyncio.wait_for(streams.submit("room-b", _quick), timeout=1) == "b"
        assert not blocked.done()

        gate.set()
        await blocked

    @pytest.mark.asyncio
    async def test_room_id_is_visible_to_handlers(self) -> None:
        streams = RoomEventStreams()

        async def _read() -> str:
            return room_id_ctx_var.get()

        assert await streams.submit("room-a", _read) == "room-a"
        assert room_id_ctx_var.get() == "-"

    @pytest.mark.asyncio
    async def test_close_cancels_pending_submissions(self) -> None:
        streams = RoomEventStreams()
        gate = asyncio.Event()

        async def _blocked() -> None:
            await gate.wait()

        async def _never() -> None:
            raise AssertionError("should not run")

        streams.post("room-a", _blocked)
        queued = streams.submit("room-a", _never)
        await asyncio.sleep(0)

        await streams.close()
        assert queued.cancelled()
        assert streams.idle


class TestBackgroundTasks:

    @pytest.mark.asyncio
    async def test_finished_tasks_are_forgotten(self) -> None:
        tasks = BackgroundTasks("test")

        async def _ok() -> None:
            await asyncio.sleep(0)

        async def _fail() -> None:
            raise RuntimeError("background failure")

        tasks.spawn(_ok(), name="ok")
        tasks.spawn(_fail(), name="fail")
        assert len(tasks) == 2

        await tasks.wait_idle()
        await asyncio.sleep(0)
        assert tasks.idle

    @pytest.mark.asyncio
    async def test_cancel_all(self) -> None:
        tasks = BackgroundTasks("timers")
        task = tasks.spawn(asyncio.sleep(10), name="long-sleep")

        await tasks.cancel_all()
        assert task.cancelled()
