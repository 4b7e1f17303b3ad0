"""
meeting_host.services.oracle
~~~~~~~~~~~~~~~~~~~~~~~~~~~~

主持人资格校验客户端。

``EntitlementOracle`` 是外部资格服务的抽象，可能需要一次网络往返；
``ValidationOracleClient`` 在其之上按会话缓存正向结果：同一会话第二次校验直接返回，
负向结果从不缓存（用户随时可能完成购买而变得有资格）。

校验失败（异常 / 超时）一律视为“暂时没有资格”，不会向上抛出。
"""
from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import Protocol

import httpx

from meeting_host.core.logging import get_logger
from meeting_host.services.session import Session

logger = get_logger(__name__)


class EntitlementOracle(Protocol):
    """外部资格校验服务。"""

    async def check_eligibility(self, session: Session) -> bool: ...


class SubscriptionStatusOracle:
    """根据会话携带的订阅状态判断资格（``active`` / ``trialing`` 视为有效）。"""

    def __init__(self, eligible_statuses: Iterable[str]) -> None:
        self.eligible_statuses: frozenset[str] = frozenset(eligible_statuses)

    async def check_eligibility(self, session: Session) -> bool:
        return session.has_subscription(self.eligible_statuses)


class HttpEntitlementOracle:
    """通过 HTTP 调用外部资格服务。

    请求: ``POST {url}``，JSON 体 ``{"session_id": ..., "user": ...}``；
    响应: ``{"eligible": true | false}``。

    Attributes:
        url: 资格服务地址。
    """

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client: httpx.AsyncClient = client or httpx.AsyncClient()
        self._owns_client = client is None

    async def check_eligibility(self, session: Session) -> bool:
        response = await self._client.post(
            self.url,
            json={"session_id": session.session_id, "user": session.bare_jid},
        )
        response.raise_for_status()
        return bool(response.json().get("eligible", False))

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()


class ValidationOracleClient:
    """带会话级缓存的资格校验客户端。

    Attributes:
        oracle: 实际执行校验的外部服务。
        timeout: 单次校验超时秒数。
    """

    def __init__(self, oracle: EntitlementOracle, timeout: float = 5.0) -> None:
        self.oracle = oracle
        self.timeout = timeout

    async def validate(self, session: Session) -> bool:
        """校验会话是否有资格成为主持人。

        Args:
            session: 待校验的在线会话。

        Returns:
            有资格返回 True；无资格、超时或校验服务出错均返回 False。
        """
        if session.is_valid_host:
            return True

        try:
            eligible = await asyncio.wait_for(
                self.oracle.check_eligibility(session), timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("资格校验超时 | user=%s | timeout=%.1fs", session.bare_jid, self.timeout)
            return False
        except Exception as e:
            logger.warning("资格校验失败: %s | user=%s", e, session.bare_jid, exc_info=True)
            return False

        if eligible:
            session.mark_valid_host()
            logger.info("资格校验通过 | user=%s", session.bare_jid)
        else:
            logger.info("资格校验未通过 | user=%s", session.bare_jid)
        return bool(eligible)
