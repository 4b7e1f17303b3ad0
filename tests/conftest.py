"""
tests.conftest
~~~~~~~~~~~~~~

共享 pytest fixtures —— 用内存房间服务器 + 记录型 WebSocket 替代真实的房间服务器，
使单元测试可在无网络环境下快速运行。
"""
from __future__ import annotations

import os
from collections.abc import Callable
from typing import Any

import pytest

# ── 在所有测试导入前设置环境变量 ─────────────────────────────────────
os.environ.setdefault("MUC_DOMAIN_BASE", "meet.example.com")
os.environ.setdefault("ENVIRONMENT", "test")  # 激活 .env.test 配置

from meeting_host.core.config import Settings  # noqa: E402
from meeting_host.services.hosting_system import HostingSystem  # noqa: E402
from meeting_host.services.room_server import InMemoryRoomServer  # noqa: E402
from support import ROOM, FakeClock, People, RecordingSocket, make_settings  # noqa: E402


@pytest.fixture()
def test_settings() -> Settings:
    return make_settings()


@pytest.fixture()
def people() -> People:
    return People()


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def intent_socket() -> RecordingSocket:
    return RecordingSocket()


@pytest.fixture()
def room_server(intent_socket: RecordingSocket) -> InMemoryRoomServer:
    """内存房间服务器，``intent_socket`` 已订阅测试房间的指令。"""
    server = InMemoryRoomServer()
    server.broadcaster.subscribers.setdefault(ROOM, set()).add(intent_socket)
    return server


@pytest.fixture()
def make_system(
    room_server: InMemoryRoomServer, test_settings: Settings,
) -> Callable[..., HostingSystem]:
    """构造 ``HostingSystem`` 的工厂，可替换资格服务、配置与时钟。"""

    def _make(oracle: Any = None, settings: Settings | None = None, **kwargs: Any) -> HostingSystem:
        return HostingSystem(room_server, oracle=oracle, settings=settings or test_settings, **kwargs)

    return _make
