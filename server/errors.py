"""Validation errors raised by the relay server.

All of these are reported to the originating client only, as an ``error``
message carrying ``code`` and ``message``.
"""
from game.errors import GameError


class RoomNotFound(GameError):
    code = "ROOM_NOT_FOUND"

    def __init__(self, room_code: str):
        super().__init__(f"Room {room_code} not found")
        self.room_code = room_code


class RoomFull(GameError):
    code = "ROOM_FULL"

    def __init__(self, room_code: str, max_players: int):
        super().__init__(f"Room {room_code} is full ({max_players} players)")
        self.room_code = room_code


class InvalidPhase(GameError):
    code = "INVALID_PHASE"


class CapacityExceeded(GameError):
    code = "CAPACITY_EXCEEDED"


class PlayerNotFound(GameError):
    code = "PLAYER_NOT_FOUND"


class NotHost(GameError):
    code = "NOT_HOST"


class NotInRoom(GameError):
    code = "NOT_IN_ROOM"


class InvalidMessage(GameError):
    code = "INVALID_MESSAGE"
