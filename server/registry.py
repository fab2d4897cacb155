"""
Session registry for active rooms.

Manages the lifecycle of rooms, including:
- Creating rooms with unique shareable codes
- Joining and leaving
- Removing empty rooms after a grace period
- Removing finished rooms after a retention period
"""

import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

from game.config_loader import GameSettings
from game.player import Player
from server.errors import CapacityExceeded, RoomNotFound
from server.events import GameEventType
from server.protocol import RoomPhase
from server.room import Room
from server.timers import TimerManager


logger = logging.getLogger(__name__)

# No 0/O or 1/I so codes can be read aloud
ROOM_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
MAX_CODE_ATTEMPTS = 100


@dataclass
class LeaveResult:
    """What happened when a player left a room."""
    room: Room
    player: Player
    new_host: Optional[str] = None
    room_emptied: bool = False
    countdown_cancelled: bool = False


class SessionRegistry:
    """Process-scoped store of all active rooms, keyed by room code."""

    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        timers: Optional[TimerManager] = None,
        rng: Optional[random.Random] = None,
    ):
        self.settings = settings or GameSettings()
        self.timers = timers
        self._rng = rng or random
        self._rooms: Dict[str, Room] = {}

    def __contains__(self, room_code: str) -> bool:
        return room_code in self._rooms

    @property
    def active_rooms(self) -> int:
        """Get count of active rooms."""
        return len(self._rooms)

    @staticmethod
    def expiry_timer_id(room_code: str) -> str:
        return f"expire:{room_code}"

    def create_room(
        self,
        host_name: str,
        controls: Optional[Dict[str, Any]] = None,
        color: Optional[str] = None,
    ) -> Tuple[Room, Player]:
        """Create a room in the lobby phase with the host as its first player."""
        if self.settings.max_rooms is not None and len(self._rooms) >= self.settings.max_rooms:
            raise CapacityExceeded(f"Room limit of {self.settings.max_rooms} reached")

        code = self._generate_code()
        room = Room(code, self.settings, rng=self._rng)
        host = room.add_player(host_name, controls, color)
        self._rooms[code] = room

        logger.info("Room %s created by %s", code, host.name)
        return room, host

    def join_room(
        self,
        room_code: str,
        name: str,
        controls: Optional[Dict[str, Any]] = None,
        color: Optional[str] = None,
    ) -> Tuple[Room, Player]:
        """Add a player to an existing lobby."""
        room = self.get_room(room_code)
        player = room.add_player(name, controls, color)
        self._cancel_removal(room_code)

        logger.info("%s joined room %s (%d players)", player.name, room_code, len(room.players))
        return room, player

    def get_room(self, room_code: str) -> Room:
        room = self._rooms.get(room_code)
        if room is None:
            raise RoomNotFound(room_code)
        return room

    def find_room(self, room_code: str) -> Optional[Room]:
        return self._rooms.get(room_code)

    def leave_room(self, room_code: str, player_id: str) -> LeaveResult:
        """Remove a player, reassign host, and schedule cleanup of an empty room."""
        room = self.get_room(room_code)
        player = room.get_player(player_id)

        new_host = room.remove_player(player_id)
        countdown_cancelled = room.abort_countdown_if_short()
        result = LeaveResult(
            room=room,
            player=player,
            new_host=new_host,
            room_emptied=room.is_empty,
            countdown_cancelled=countdown_cancelled,
        )

        logger.info("%s left room %s", player.name, room_code)
        if result.room_emptied:
            self.schedule_removal(room_code, self.settings.room_grace_seconds)
        return result

    def schedule_removal(self, room_code: str, delay_seconds: float) -> None:
        """Remove a room after ``delay_seconds`` unless it is rejoined first."""
        # Only lobby rooms accept joins, so a room emptied mid-game just waits out the delay.
        if self.timers is None:
            self.remove_room(room_code)
            return
        self.timers.start_timer(
            self.expiry_timer_id(room_code),
            delay_seconds,
            GameEventType.ROOM_EXPIRED,
            {"roomCode": room_code},
        )

    def _cancel_removal(self, room_code: str) -> None:
        if self.timers is not None:
            self.timers.cancel_timer(self.expiry_timer_id(room_code))

    def expire_room(self, room_code: str) -> bool:
        """Handle a removal timer. Only empty or finished rooms are removed."""
        room = self._rooms.get(room_code)
        if room is None:
            return False
        if room.is_empty or room.phase == RoomPhase.FINISHED:
            return self.remove_room(room_code)
        return False

    def remove_room(self, room_code: str) -> bool:
        """Drop a room from the registry."""
        self._cancel_removal(room_code)
        if self._rooms.pop(room_code, None) is None:
            return False
        logger.info("Room %s removed", room_code)
        return True

    def _generate_code(self) -> str:
        length = self.settings.room_code_length
        for _ in range(MAX_CODE_ATTEMPTS):
            code = "".join(self._rng.choice(ROOM_CODE_ALPHABET) for _ in range(length))
            if code not in self._rooms:
                return code
        raise CapacityExceeded("Could not allocate a unique room code")
