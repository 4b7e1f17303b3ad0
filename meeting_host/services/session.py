"""
meeting_host.services.session
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

用户会话领域模型 —— 一条在线连接。

会话的生命周期跟随连接，比任何一次房间成员身份都长。
``is_valid_host`` 缓存了一次成功的资格校验结果：只会由 False 升级为 True，
不会回退，因此并发读取方不会看到不一致的值。
"""
from __future__ import annotations

from collections.abc import Iterable


class Session:
    """一条在线连接的会话。

    Attributes:
        session_id: 会话唯一标识。
        bare_jid: 用户的 bare jid（小写）。
        resource: 连接的 resource。
        subscription_status: 订阅状态（``active`` / ``trialing`` / ...），未知时为 None。
        display_name: 用户显示名称。
        is_valid_host: 是否已通过主持人资格校验（仅缓存正向结果）。
    """

    def __init__(
        self,
        session_id: str,
        bare_jid: str,
        resource: str,
        subscription_status: str | None = None,
        display_name: str | None = None,
    ) -> None:
        self.session_id = session_id
        self.bare_jid = bare_jid.lower()
        self.resource = resource
        self.subscription_status = subscription_status
        self.display_name = display_name
        self.is_valid_host: bool = False

    @property
    def full_jid(self) -> str:
        return f"{self.bare_jid}/{self.resource}"

    def has_subscription(self, eligible_statuses: Iterable[str]) -> bool:
        """订阅状态是否属于有效状态集合。"""
        return self.subscription_status in set(eligible_statuses)

    def mark_valid_host(self) -> None:
        """记录一次成功的资格校验。"""
        self.is_valid_host = True

    def __repr__(self) -> str:
        return f"Session({self.full_jid!r}, status={self.subscription_status!r})"
