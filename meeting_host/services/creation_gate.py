"""
meeting_host.services.creation_gate
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

房间创建门槛：首位非系统参与者（即创建房间的人）必须持有有效订阅。
"""
from __future__ import annotations

from meeting_host.core.config import Settings
from meeting_host.core.identity import IdentityRules
from meeting_host.core.logging import get_logger
from meeting_host.services.conference_room import RoomEvent
from meeting_host.services.host_state import HostStateRegistry

logger = get_logger(__name__)

SUBSCRIPTION_REQUIRED: str = "subscription-required"


class CreationGate:
    """pre-join 流水线的第一步，可拒绝入场。"""

    def __init__(self, states: HostStateRegistry, rules: IdentityRules, settings: Settings) -> None:
        self.states = states
        self.rules = rules
        self.enabled: bool = settings.REQUIRE_SUBSCRIPTION_FOR_CREATION
        self.eligible_statuses: tuple[str, ...] = tuple(settings.ELIGIBLE_SUBSCRIPTION_STATUSES)

    async def on_pre_join(self, event: RoomEvent) -> str | None:
        """返回拒绝原因，允许入场时返回 None。"""
        room, occupant, session = event.room, event.occupant, event.session
        if not self.enabled:
            return None
        if self.rules.is_healthcheck_room(room.jid) or self.rules.is_system_occupant(occupant):
            return None

        existing = self.states.peek(room.jid)
        pending = existing.pending - {occupant.nick} if existing else set()
        if pending or any(o.nick != occupant.nick for o in self.rules.participants(room)):
            logger.debug("房间已有参与者，跳过创建门槛 | nick=%s", occupant.nick)
            return None

        status = session.subscription_status if session else None
        logger.info("校验房间创建者订阅 | user=%s | status=%s", occupant.bare_jid, status)
        if session is None or not session.has_subscription(self.eligible_statuses):
            return SUBSCRIPTION_REQUIRED

        state = self.states.get(room.jid)
        state.creator = state.creator or occupant.bare_jid
        return None
