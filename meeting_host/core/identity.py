"""
meeting_host.core.identity
~~~~~~~~~~~~~~~~~~~~~~~~~~

JID 解析与系统身份识别。

系统身份（focus / jvb 等管理员、以及昵称为 ``focus`` 的会议焦点）
既不能成为主持人，也不计入“房间里有人”的判断；健康检查房间完全跳过选举。
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING

from meeting_host.core.config import Settings

if TYPE_CHECKING:
    from meeting_host.services.conference_room import ConferenceRoom, Occupant

FOCUS_NICK: str = "focus"


def split_jid(jid: str) -> tuple[str | None, str, str | None]:
    """把 ``node@host/resource`` 拆成 ``(node, host, resource)``。"""
    bare, _, resource = jid.partition("/")
    node, sep, host = bare.partition("@")
    if not sep:
        # 没有 node 部分，例如 ``conference.example.com``
        return None, node, resource or None
    return node, host, resource or None


def bare_jid(jid: str) -> str:
    """去掉 resource 部分，返回小写的 bare jid。"""
    return jid.partition("/")[0].lower()


def jid_node(jid: str) -> str | None:
    return split_jid(jid)[0]


def jid_resource(jid: str) -> str | None:
    return split_jid(jid)[2]


class IdentityRules:
    """根据配置判断系统身份与健康检查房间。

    Attributes:
        admin_jids: 管理员 bare jid 集合（小写）。
        healthcheck_prefix: 健康检查房间名前缀。
    """

    def __init__(self, admin_jids: Iterable[str], healthcheck_prefix: str) -> None:
        self.admin_jids: frozenset[str] = frozenset(j.lower() for j in admin_jids)
        self.healthcheck_prefix = healthcheck_prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> IdentityRules:
        return cls(settings.admin_jids, settings.HEALTHCHECK_ROOM_PREFIX)

    def is_admin(self, jid: str) -> bool:
        return bare_jid(jid) in self.admin_jids

    def is_focus_occupant(self, occupant: Occupant) -> bool:
        return jid_resource(occupant.nick) == FOCUS_NICK

    def is_system_occupant(self, occupant: Occupant) -> bool:
        """管理员或会议焦点，均不参与选举。"""
        return self.is_admin(occupant.bare_jid) or self.is_focus_occupant(occupant)

    def is_healthcheck_room(self, room_jid: str) -> bool:
        node = jid_node(room_jid) or room_jid
        return node.startswith(self.healthcheck_prefix)

    # ── 房间级辅助 ────────────────────────────────────────────────────

    def participants(self, room: ConferenceRoom) -> list[Occupant]:
        """房间内所有非系统参与者。"""
        return [o for o in room.each_occupant() if not self.is_system_occupant(o)]

    def has_participants(self, room: ConferenceRoom) -> bool:
        return any(not self.is_system_occupant(o) for o in room.each_occupant())

    def find_host(self, room: ConferenceRoom, exclude: str | None = None) -> Occupant | None:
        """返回房间内第一个拥有 owner 权限的非系统参与者。

        Args:
            room: 目标房间。
            exclude: 需要排除的参与者昵称（例如刚离开的人）。
        """
        for occupant in self.participants(room):
            if occupant.nick == exclude:
                continue
            if room.get_affiliation(occupant.bare_jid) == "owner":
                return occupant
        return None
