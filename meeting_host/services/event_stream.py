"""
meeting_host.services.event_stream
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间事件流 —— 每个房间一条串行的逻辑事件流。

同一房间的所有处理函数（房间服务器事件、资格校验回调、计时器回调）
都投递到该房间的队列里，由一个 worker 协程按到达顺序逐个执行，
因此房间状态永远不会被并行修改；不同房间之间互不阻塞。

后台任务（资格校验、宽限期、销毁计时器）只通过 ``post()`` 重新进入事件流，
从不阻塞等待。
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Coroutine
from typing import Any

from meeting_host.core.logging import get_logger, room_id_ctx_var

logger = get_logger(__name__)

Handler = Callable[[], Awaitable[Any]]
_Item = tuple[Handler, "asyncio.Future[Any] | None"]


class RoomEventStreams:
    """按房间划分的串行执行器。

    worker 在队列为空时自动退出，下次投递时再按需创建。
    """

    def __init__(self) -> None:
        self._queues: dict[str, asyncio.Queue[_Item]] = {}
        self._workers: dict[str, asyncio.Task[None]] = {}

    def post(self, room_id: str, handler: Handler) -> None:
        """投递一个处理函数，不等待其结果（用于后台回调重新进入事件流）。"""
        self._enqueue(room_id, handler, None)

    def submit(self, room_id: str, handler: Handler) -> asyncio.Future[Any]:
        """投递一个处理函数，返回可等待其结果的 Future。"""
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._enqueue(room_id, handler, future)
        return future

    def _enqueue(
        self, room_id: str, handler: Handler, future: asyncio.Future[Any] | None,
    ) -> None:
        queue = self._queues.get(room_id)
        if queue is None:
            queue = self._queues[room_id] = asyncio.Queue()
        queue.put_nowait((handler, future))

        worker = self._workers.get(room_id)
        if worker is None or worker.done():
            self._workers[room_id] = asyncio.create_task(
                self._drain(room_id, queue), name=f"room-stream:{room_id}",
            )

    async def _drain(self, room_id: str, queue: asyncio.Queue[_Item]) -> None:
        token = room_id_ctx_var.set(room_id)
        try:
            while not queue.empty():
                handler, future = queue.get_nowait()
                try:
                    result = await handler()
                except asyncio.CancelledError:
                    if future is not None:
                        future.cancel()
                    raise
                except Exception as e:
                    # 单个处理函数失败不能让整条事件流停下
                    logger.error("房间事件处理异常: %s", e, exc_info=True)
                    if future is not None and not future.done():
                        future.set_exception(e)
                else:
                    if future is not None and not future.done():
                        future.set_result(result)
        finally:
            # 队列检查与清理之间没有 await，不会漏掉新投递的事件
            self._workers.pop(room_id, None)
            self._queues.pop(room_id, None)
            room_id_ctx_var.reset(token)

    @property
    def idle(self) -> bool:
        return not self._workers

    async def wait_idle(self) -> None:
        """等待所有房间的队列清空。"""
        while self._workers:
            await asyncio.gather(*list(self._workers.values()), return_exceptions=True)

    async def close(self) -> None:
        """取消所有 worker，未执行的事件随之丢弃。"""
        # worker 退出时会移除自己的队列，先取快照
        queues = list(self._queues.values())
        workers = list(self._workers.values())
        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        for queue in queues:
            while not queue.empty():
                _, future = queue.get_nowait()
                if future is not None and not future.done():
                    future.cancel()
        self._queues.clear()
        self._workers.clear()


class BackgroundTasks:
    """后台任务集合：跟踪、等待与统一取消。"""

    def __init__(self, name: str) -> None:
        self.name = name
        self._tasks: set[asyncio.Task[Any]] = set()

    def spawn(self, coro: Coroutine[Any, Any, Any], name: str | None = None) -> asyncio.Task[Any]:
        task = asyncio.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._on_done)
        return task

    def _on_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("后台任务异常 | group=%s | task=%s: %s", self.name, task.get_name(), exc, exc_info=exc)

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def idle(self) -> bool:
        return not self._tasks

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def cancel_all(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
