"""
meeting_host.schemas.room_events
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间服务器与本服务之间交换的 Pydantic 模型：
入站的参与者事件、会话信息，以及出站的房间指令（intent）与系统消息。
"""
from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from meeting_host.services.conference_room import Occupant, Role
from meeting_host.services.session import Session

IntentType = Literal[
    "system_message",
    "affiliation",
    "lobby_enable",
    "lobby_disable",
    "host_arrived",
    "destroy",
]


# ── 入站 ──────────────────────────────────────────────────────────────

class SessionData(BaseModel):
    """一条在线连接的会话信息。"""

    session_id: str = Field(..., min_length=1, description="会话唯一标识")
    bare_jid: str = Field(..., min_length=3, description="用户 bare jid")
    resource: str = Field(..., min_length=1, description="连接 resource")
    subscription_status: str | None = Field(default=None, description="订阅状态")
    display_name: str | None = Field(default=None, description="用户显示名称")

    def to_session(self) -> Session:
        return Session(
            session_id=self.session_id,
            bare_jid=self.bare_jid,
            resource=self.resource,
            subscription_status=self.subscription_status,
            display_name=self.display_name,
        )


class OccupantData(BaseModel):
    """房间内一个参与者。"""

    nick: str = Field(..., min_length=1, description="房间内昵称 JID（room@muc/nick）")
    bare_jid: str = Field(..., min_length=3, description="真实用户 bare jid")
    jid: str | None = Field(default=None, description="真实连接 full jid")
    role: Role = Field(default="participant", description="当前角色")

    def to_occupant(self) -> Occupant:
        return Occupant(nick=self.nick, bare_jid=self.bare_jid, jid=self.jid, role=self.role)


class OccupantEventRequest(BaseModel):
    """pre-join / joined / left 事件请求体。"""

    occupant: OccupantData
    session: SessionData | None = Field(default=None, description="发起事件的连接会话")


# ── 出站 ──────────────────────────────────────────────────────────────

class AdmissionData(BaseModel):
    """pre-join 的准入结果。"""

    admitted: bool = Field(..., description="是否允许进入房间")
    reason: str | None = Field(default=None, description="拒绝原因，例如 subscription-required")


class RoomHostInfoData(BaseModel):
    """房间主持人状态摘要。"""

    room_id: str = Field(..., description="房间 ID")
    has_host: bool = Field(..., description="当前是否有主持人")
    host: str | None = Field(default=None, description="主持人昵称 JID")
    destroy_at: float | None = Field(default=None, description="计划销毁的时间戳")
    members_only: bool = Field(..., description="大厅是否开启")
    occupant_count: int = Field(..., description="房间内参与者数量（含系统身份）")


class SystemChatPayload(BaseModel):
    """发送给参与者的系统消息 JSON 载荷。"""

    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(..., alias="displayName")
    type: Literal["system_chat_message"] = "system_chat_message"
    message: str


class RoomIntent(BaseModel):
    """推送给房间服务器执行的一条指令。"""

    type: IntentType
    room: str = Field(..., description="目标房间 ID")
    to: str | None = Field(default=None, description="目标参与者 JID（私信等场景）")
    data: dict[str, Any] = Field(default_factory=dict)
