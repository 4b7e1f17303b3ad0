"""
meeting_host.services.conference_room
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

会议房间领域模型 —— 房间服务器侧状态在本服务中的镜像。

房间与参与者由外部房间服务器拥有，本模块只描述选举逻辑需要读写的部分：
参与者列表、权限（affiliation）、角色（role）以及大厅（members-only）开关。
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

from meeting_host.core.identity import bare_jid, jid_resource
from meeting_host.services.session import Session

Affiliation = Literal["owner", "admin", "member", "none", "outcast"]
Role = Literal["moderator", "participant", "visitor", "none"]

_DEFAULT_ROLES: dict[str, Role] = {
    "owner": "moderator",
    "admin": "moderator",
    "member": "participant",
    "none": "participant",
}


class Occupant:
    """房间内的一个参与者（按连接区分，而非按用户）。

    Attributes:
        nick: 房间内昵称 JID，形如 ``room@conference.example.com/abcd``。
        bare_jid: 真实用户的 bare jid。
        jid: 真实连接的 full jid，未知时为 None。
        role: 当前角色。
    """

    def __init__(
        self,
        nick: str,
        bare_jid: str,
        jid: str | None = None,
        role: Role = "participant",
    ) -> None:
        self.nick = nick
        self.bare_jid = bare_jid.lower()
        self.jid = jid
        self.role: Role = role

    @property
    def resource(self) -> str | None:
        return jid_resource(self.jid) if self.jid else None

    def __repr__(self) -> str:
        return f"Occupant({self.nick!r}, {self.bare_jid!r}, role={self.role!r})"


class ConferenceRoom:
    """一个会议房间。

    Attributes:
        jid: 房间唯一标识（房间地址）。
    """

    def __init__(self, jid: str) -> None:
        self.jid = jid
        self._occupants: dict[str, Occupant] = {}
        self._affiliations: dict[str, Affiliation] = {}
        self._members_only: bool = False

    # ── 参与者 ────────────────────────────────────────────────────────

    def each_occupant(self) -> Iterator[Occupant]:
        # 复制一份，允许遍历期间增删
        return iter(list(self._occupants.values()))

    def get_occupant(self, nick: str) -> Occupant | None:
        return self._occupants.get(nick)

    def add_occupant(self, occupant: Occupant) -> None:
        self._occupants[occupant.nick] = occupant

    def remove_occupant(self, nick: str) -> Occupant | None:
        return self._occupants.pop(nick, None)

    @property
    def occupant_count(self) -> int:
        return len(self._occupants)

    # ── 权限 / 角色 ───────────────────────────────────────────────────

    def get_affiliation(self, jid: str) -> Affiliation:
        return self._affiliations.get(bare_jid(jid), "none")

    def set_affiliation(self, jid: str, affiliation: Affiliation) -> None:
        key = bare_jid(jid)
        if affiliation == "none":
            self._affiliations.pop(key, None)
        else:
            self._affiliations[key] = affiliation

    @staticmethod
    def get_default_role(affiliation: Affiliation) -> Role:
        return _DEFAULT_ROLES.get(affiliation, "participant")

    # ── 大厅 ──────────────────────────────────────────────────────────

    def get_members_only(self) -> bool:
        return self._members_only

    def set_members_only(self, enabled: bool) -> None:
        self._members_only = enabled

    def __repr__(self) -> str:
        return f"ConferenceRoom({self.jid!r}, occupants={self.occupant_count})"


@dataclass
class RoomEvent:
    """房间事件 / 资格校验回调的参数：``{room, occupant, session}``。"""

    room: ConferenceRoom
    occupant: Occupant
    session: Session | None = None
