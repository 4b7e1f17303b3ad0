"""
tests.support
~~~~~~~~~~~~~

测试辅助对象：假时钟、记录型 WebSocket、可控的资格服务与参与者工厂。
"""
from __future__ import annotations

import asyncio
import json
from collections.abc import Callable
from typing import Any

from meeting_host.core.config import Settings
from meeting_host.services.conference_room import Occupant
from meeting_host.services.session import Session

DOMAIN: str = "meet.example.com"
ROOM: str = f"standup@conference.{DOMAIN}"
HEALTHCHECK_ROOM: str = f"__jicofo-health-check-1f2e@conference.{DOMAIN}"


def make_settings(**overrides: Any) -> Settings:
    """测试用配置：极短的宽限期与销毁延迟，不读取 .env 文件。"""
    values: dict[str, Any] = {
        "MUC_DOMAIN_BASE": DOMAIN,
        "ENVIRONMENT": "test",
        "DESTROY_DELAY_SECONDS": 0.05,
        "HOST_GRACE_SECONDS": 0.01,
        "DESTROY_RECHECK_SECONDS": 0.01,
        "ENTITLEMENT_TIMEOUT_SECONDS": 0.5,
        "NOTIFY_TIMEOUT_SECONDS": 0.5,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


class RecordingSocket:
    """模拟房间服务器的订阅连接，记录收到的所有指令。

    ``delay`` 大于 0 时，每条系统消息都要等待这么多秒才算送达（模拟慢速连接）。
    """

    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.accepted = False
        self.sent: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_text(self, data: str) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        intent = json.loads(data)
        if self.delay and intent["type"] == "system_message":
            await asyncio.sleep(self.delay)
        self.sent.append(intent)

    def intents(self, type_: str | None = None) -> list[dict[str, Any]]:
        return [i for i in self.sent if type_ is None or i["type"] == type_]

    def messages(self, to: str | None = None) -> list[str]:
        """系统消息正文，可按接收者过滤。"""
        return [
            i["data"]["message"]
            for i in self.intents("system_message")
            if to is None or i["to"] == to
        ]


class FakeClock:
    """可手动推进的时钟。"""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class GatedOracle:
    """资格服务替身：所有校验都挂起，直到测试调用 ``release()``。"""

    def __init__(self, eligible: set[str] | None = None) -> None:
        self.eligible: set[str] = eligible or set()
        self.calls: list[str] = []
        self._gate = asyncio.Event()

    async def check_eligibility(self, session: Session) -> bool:
        self.calls.append(session.bare_jid)
        await self._gate.wait()
        return session.bare_jid in self.eligible

    def release(self) -> None:
        self._gate.set()


class People:
    """按名字生成参与者与会话，例如 ``people.occupant("alice")``。"""

    def jid(self, name: str) -> str:
        return f"{name}@{DOMAIN}"

    def full_jid(self, name: str) -> str:
        return f"{name}@{DOMAIN}/res-{name}"

    def occupant(self, name: str, room: str = ROOM) -> Occupant:
        return Occupant(nick=f"{room}/{name}", bare_jid=self.jid(name), jid=self.full_jid(name))

    def session(self, name: str, status: str | None = "active") -> Session:
        return Session(
            session_id=f"sess-{name}",
            bare_jid=self.jid(name),
            resource=f"res-{name}",
            subscription_status=status,
        )

    def focus(self, room: str = ROOM) -> Occupant:
        return Occupant(
            nick=f"{room}/focus",
            bare_jid=f"focus@auth.{DOMAIN}",
            jid=f"focus@auth.{DOMAIN}/focus",
        )


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """轮询直到条件成立，超时则测试失败。"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.005)
