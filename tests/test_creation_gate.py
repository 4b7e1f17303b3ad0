"""
tests.test_creation_gate
~~~~~~~~~~~~~~~~~~~~~~~~

房间创建门槛测试：只有首位非系统参与者需要有效订阅。
"""
from __future__ import annotations

import pytest

from meeting_host.core.identity import IdentityRules
from meeting_host.services.conference_room import ConferenceRoom, RoomEvent
from meeting_host.services.creation_gate import SUBSCRIPTION_REQUIRED, CreationGate
from meeting_host.services.host_state import HostStateRegistry
from support import HEALTHCHECK_ROOM, ROOM, People, make_settings


class TestCreationGate:

    def setup_method(self) -> None:
        self.people = People()
        self.states = HostStateRegistry()
        settings = make_settings()
        self.gate = CreationGate(self.states, IdentityRules.from_settings(settings), settings)
        self.room = ConferenceRoom(ROOM)

    def event(self, name: str, status: str | None = "active", with_session: bool = True) -> RoomEvent:
        return RoomEvent(
            room=self.room,
            occupant=self.people.occupant(name),
            session=self.people.session(name, status) if with_session else None,
        )

    @pytest.mark.asyncio
    async def test_creator_with_subscription_is_admitted(self) -> None:
        assert await self.gate.on_pre_join(self.event("alice", "trialing")) is None
        assert self.states.peek(ROOM).creator == self.people.jid("alice")

    @pytest.mark.asyncio
    async def test_creator_without_subscription_is_rejected(self) -> None:
        assert await self.gate.on_pre_join(self.event("bob", "canceled")) == SUBSCRIPTION_REQUIRED
        assert self.states.peek(ROOM) is None

    @pytest.mark.asyncio
    async def test_creator_without_session_is_rejected(self) -> None:
        assert await self.gate.on_pre_join(self.event("bob", with_session=False)) == SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_later_participants_are_not_gated(self) -> None:
        self.room.add_occupant(self.people.occupant("alice"))
        assert await self.gate.on_pre_join(self.event("bob", None)) is None

    @pytest.mark.asyncio
    async def test_pending_participant_counts_as_present(self) -> None:
        self.states.get(ROOM).pending.add(f"{ROOM}/alice")
        assert await self.gate.on_pre_join(self.event("bob", None)) is None

    @pytest.mark.asyncio
    async def test_focus_in_room_does_not_count(self) -> None:
        self.room.add_occupant(self.people.focus())
        assert await self.gate.on_pre_join(self.event("bob", None)) == SUBSCRIPTION_REQUIRED

    @pytest.mark.asyncio
    async def test_system_and_healthcheck_are_skipped(self) -> None:
        assert await self.gate.on_pre_join(RoomEvent(room=self.room, occupant=self.people.focus())) is None

        room = ConferenceRoom(HEALTHCHECK_ROOM)
        occupant = self.people.occupant("bob", room=HEALTHCHECK_ROOM)
        assert await self.gate.on_pre_join(RoomEvent(room=room, occupant=occupant)) is None

    @pytest.mark.asyncio
    async def test_disabled_gate_admits_everyone(self) -> None:
        settings = make_settings(REQUIRE_SUBSCRIPTION_FOR_CREATION=False)
        gate = CreationGate(self.states, IdentityRules.from_settings(settings), settings)
        assert await gate.on_pre_join(self.event("bob", None)) is None
