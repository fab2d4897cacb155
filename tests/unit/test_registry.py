"""Unit tests for server/registry.py - room lifecycle."""
import asyncio
import random
from unittest.mock import AsyncMock

import pytest

from game.config_loader import GameSettings
from server.errors import CapacityExceeded, InvalidPhase, RoomNotFound
from server.events import GameEvent, GameEventType
from server.protocol import RoomPhase
from server.registry import ROOM_CODE_ALPHABET, SessionRegistry
from server.timers import TimerManager


class TestCreateAndJoin:
    """Tests for creating and joining rooms."""

    def test_create_room(self, registry):
        room, host = registry.create_room("Ann", {"up": "w"}, "#123456")

        assert room.code in registry
        assert len(room.code) == 6
        assert set(room.code) <= set(ROOM_CODE_ALPHABET)
        assert room.phase == RoomPhase.LOBBY
        assert room.host_id == host.player_id
        assert host.controls.up == "w"
        assert host.color == "#123456"

    def test_codes_are_unique(self, registry):
        codes = {registry.create_room(f"P{i}")[0].code for i in range(50)}
        assert len(codes) == 50
        assert registry.active_rooms == 50

    def test_max_rooms(self, settings):
        settings.max_rooms = 1
        registry = SessionRegistry(settings)
        registry.create_room("A")

        with pytest.raises(CapacityExceeded):
            registry.create_room("B")

    def test_join_room(self, registry):
        room, _ = registry.create_room("Ann")
        joined, player = registry.join_room(room.code, "Bo")

        assert joined is room
        assert player.index == 2
        assert len(room.players) == 2

    def test_join_unknown_room(self, registry):
        with pytest.raises(RoomNotFound):
            registry.join_room("NOPE00", "Bo")


class TestLeave:
    """Tests for leaving rooms."""

    def test_leave_hands_off_host(self, registry):
        room, host = registry.create_room("A")
        _, b = registry.join_room(room.code, "B")

        result = registry.leave_room(room.code, host.player_id)

        assert result.new_host == b.player_id
        assert not result.room_emptied
        assert room.code in registry

    def test_last_leave_removes_room_without_timers(self, registry):
        room, host = registry.create_room("A")

        result = registry.leave_room(room.code, host.player_id)

        assert result.room_emptied
        assert room.code not in registry

    def test_leave_during_countdown_returns_to_lobby(self, registry):
        room, a = registry.create_room("A")
        _, b = registry.join_room(room.code, "B")
        room.set_ready(a.player_id, True)
        room.set_ready(b.player_id, True)
        room.begin_countdown()

        result = registry.leave_room(room.code, b.player_id)

        assert result.countdown_cancelled
        assert room.phase == RoomPhase.LOBBY


class TestExpiry:
    """Tests for timed room removal."""

    @pytest.mark.asyncio
    async def test_empty_room_removed_after_grace(self, settings):
        """Test the last player leaving removes the room after the grace period."""
        registry = None

        async def on_event(event: GameEvent):
            assert event.type == GameEventType.ROOM_EXPIRED
            registry.expire_room(event.data["roomCode"])

        registry = SessionRegistry(settings, TimerManager(on_event), random.Random(1))
        room, host = registry.create_room("A")
        registry.leave_room(room.code, host.player_id)

        assert room.code in registry
        await asyncio.sleep(settings.room_grace_seconds + 0.1)
        assert room.code not in registry

    @pytest.mark.asyncio
    async def test_rejoin_cancels_removal(self, settings):
        events = []

        async def on_event(event: GameEvent):
            events.append(event)

        timers = TimerManager(on_event)
        registry = SessionRegistry(settings, timers, random.Random(1))
        room, host = registry.create_room("A")
        registry.leave_room(room.code, host.player_id)
        assert timers.is_active(registry.expiry_timer_id(room.code))

        registry.join_room(room.code, "B")

        assert not timers.is_active(registry.expiry_timer_id(room.code))
        await asyncio.sleep(settings.room_grace_seconds + 0.1)
        assert events == []
        assert room.code in registry

    @pytest.mark.asyncio
    async def test_room_emptied_mid_game_cannot_be_rejoined(self, settings):
        timers = TimerManager(AsyncMock())
        registry = SessionRegistry(settings, timers, random.Random(1))
        room, host = registry.create_room("A")
        room.phase = RoomPhase.PLAYING
        registry.leave_room(room.code, host.player_id)

        with pytest.raises(InvalidPhase):
            registry.join_room(room.code, "B")

        assert timers.is_active(registry.expiry_timer_id(room.code))
        timers.cancel_all()

    def test_expire_keeps_active_room(self, registry):
        room, _ = registry.create_room("A")
        assert registry.expire_room(room.code) is False
        assert room.code in registry

    def test_expire_finished_room(self, registry):
        room, _ = registry.create_room("A")
        room.phase = RoomPhase.FINISHED
        assert registry.expire_room(room.code) is True
        assert registry.find_room(room.code) is None
