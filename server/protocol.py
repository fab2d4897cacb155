"""WebSocket message protocol definitions for Shaka multiplayer."""
from enum import Enum
from dataclasses import dataclass, field
from typing import Dict, List, Any, Optional
import json

from server.errors import InvalidMessage


class ServerMessageType(Enum):
    """Message types sent from server to client."""
    # Room membership
    ROOM_CREATED = "room_created"
    ROOM_JOINED = "room_joined"
    ROOM_LEFT = "room_left"
    PLAYER_JOINED = "player_joined"
    PLAYER_LEFT = "player_left"
    PLAYER_UPDATE = "player_update"
    HOST_CHANGED = "host_changed"

    # Game flow
    GAME_COUNTDOWN_START = "game_countdown_start"
    GAME_START = "game_start"
    GAME_UPDATE = "game_update"
    GAME_OVER = "game_over"

    ERROR = "error"


class ClientMessageType(Enum):
    """Message types sent from client to server."""
    CREATE_ROOM = "create_room"
    JOIN_ROOM = "join_room"
    LEAVE_ROOM = "leave_room"
    PLAYER_READY = "player_ready"
    START_GAME = "start_game"
    PLAYER_MOVE = "player_move"
    PLAYER_CONFIRM = "player_confirm"


class RoomPhase(Enum):
    """Room lifecycle phases."""
    LOBBY = "lobby"
    COUNTDOWN = "countdown"
    PLAYING = "playing"
    FINISHED = "finished"


class MoveType(Enum):
    """Kinds of ``lastMove`` delta attached to game updates."""
    MOVE = "move"
    CONFIRM = "confirm"


@dataclass
class Message:
    """Base message class for WebSocket communication."""
    type: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_json(self) -> str:
        """Serialize message to JSON string."""
        return json.dumps({
            "type": self.type,
            "data": self.data
        })

    @classmethod
    def from_json(cls, json_str: str) -> 'Message':
        """Deserialize message from JSON string.

        Raises InvalidMessage for text that is not a JSON object with a
        string ``type`` and an object ``data``.
        """
        try:
            obj = json.loads(json_str)
        except (TypeError, ValueError) as e:
            raise InvalidMessage(f"Invalid JSON message: {e}")
        if not isinstance(obj, dict):
            raise InvalidMessage("Message must be a JSON object")
        msg_type = obj.get("type", "")
        data = obj.get("data") or {}
        if not isinstance(msg_type, str) or not isinstance(data, dict):
            raise InvalidMessage("Message needs a string type and an object data")
        return cls(type=msg_type, data=data)


# Server -> Client message builders
def error_message(code: str, message: str) -> Message:
    """Build error message."""
    return Message(
        type=ServerMessageType.ERROR.value,
        data={
            "code": code,
            "message": message
        }
    )


def room_created_message(room_code: str, player_id: str, room: Dict[str, Any]) -> Message:
    """Build room created message for the host."""
    return Message(
        type=ServerMessageType.ROOM_CREATED.value,
        data={
            "roomCode": room_code,
            "playerId": player_id,
            "room": room
        }
    )


def room_joined_message(room_code: str, player_id: str, room: Dict[str, Any]) -> Message:
    """Build room joined message for the joining player."""
    return Message(
        type=ServerMessageType.ROOM_JOINED.value,
        data={
            "roomCode": room_code,
            "playerId": player_id,
            "room": room
        }
    )


def room_left_message(room_code: str) -> Message:
    """Build room left acknowledgement for the leaving player."""
    return Message(
        type=ServerMessageType.ROOM_LEFT.value,
        data={"roomCode": room_code}
    )


def player_joined_message(room: Dict[str, Any], player_id: str) -> Message:
    """Build player joined message."""
    return Message(
        type=ServerMessageType.PLAYER_JOINED.value,
        data={"room": room, "playerId": player_id}
    )


def player_left_message(room: Dict[str, Any], player_id: str) -> Message:
    """Build player left message."""
    return Message(
        type=ServerMessageType.PLAYER_LEFT.value,
        data={"room": room, "playerId": player_id}
    )


def player_update_message(room: Dict[str, Any]) -> Message:
    """Build player update message (ready status and similar)."""
    return Message(
        type=ServerMessageType.PLAYER_UPDATE.value,
        data={"room": room}
    )


def host_changed_message(room: Dict[str, Any], new_host: str) -> Message:
    """Build host changed message."""
    return Message(
        type=ServerMessageType.HOST_CHANGED.value,
        data={"room": room, "newHost": new_host}
    )


def countdown_start_message(room: Dict[str, Any], countdown: List[Any], interval: float) -> Message:
    """Build game countdown start message."""
    return Message(
        type=ServerMessageType.GAME_COUNTDOWN_START.value,
        data={
            "room": room,
            "countdown": countdown,
            "interval": interval
        }
    )


def game_start_message(room: Dict[str, Any]) -> Message:
    """Build game start message."""
    return Message(
        type=ServerMessageType.GAME_START.value,
        data={"room": room}
    )


def game_update_message(room: Dict[str, Any], last_move: Optional[Dict[str, Any]]) -> Message:
    """Build game update message carrying the move that caused it."""
    return Message(
        type=ServerMessageType.GAME_UPDATE.value,
        data={
            "room": room,
            "lastMove": last_move
        }
    )


def game_over_message(room: Dict[str, Any], winner: Optional[str], reason: str) -> Message:
    """Build game over message."""
    return Message(
        type=ServerMessageType.GAME_OVER.value,
        data={
            "room": room,
            "winner": winner,
            "reason": reason
        }
    )


def move_delta(player_id: str, direction: int, position: int, seq: int) -> Dict[str, Any]:
    """Build a ``lastMove`` record for a movement. Never carries targetFound."""
    return {
        "type": MoveType.MOVE.value,
        "playerId": player_id,
        "direction": direction,
        "position": position,
        "seq": seq,
        "targetFound": False
    }


def confirm_delta(
    player_id: str,
    target_found: bool,
    outcome: str,
    position: int,
    label: int,
    seq: int,
    stolen_position: Optional[int] = None
) -> Dict[str, Any]:
    """Build a ``lastMove`` record for a confirm press."""
    return {
        "type": MoveType.CONFIRM.value,
        "playerId": player_id,
        "targetFound": target_found,
        "outcome": outcome,
        "position": position,
        "label": label,
        "seq": seq,
        "stolenPosition": stolen_position
    }


# Client -> Server message parsers
def _require_str(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidMessage(f"Missing or invalid '{key}'")
    return value.strip()


def _optional_int(data: Dict[str, Any], key: str) -> Optional[int]:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMessage(f"'{key}' must be an integer")
    return value


def _player_config(data: Dict[str, Any], name_key: str) -> Dict[str, Any]:
    controls = data.get("controls")
    if controls is not None and not isinstance(controls, dict):
        raise InvalidMessage("'controls' must be an object")
    color = data.get("color")
    if color is not None and not isinstance(color, str):
        raise InvalidMessage("'color' must be a string")
    name = data.get(name_key)
    if name is not None and not isinstance(name, str):
        raise InvalidMessage(f"'{name_key}' must be a string")
    return {
        "name": (name or "").strip()[:32],
        "controls": controls,
        "color": color
    }


def parse_create_room_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse create_room message data."""
    return _player_config(data, "hostName")


def parse_join_room_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse join_room message data."""
    parsed = _player_config(data, "name")
    parsed["room_code"] = _require_str(data, "roomCode").upper()
    return parsed


def parse_room_action_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse the common ``{roomCode, playerId}`` part of in-room messages."""
    player_id = data.get("playerId")
    if player_id is not None and not isinstance(player_id, str):
        raise InvalidMessage("'playerId' must be a string")
    return {
        "room_code": _require_str(data, "roomCode").upper(),
        "player_id": player_id
    }


def parse_ready_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse player_ready message data."""
    parsed = parse_room_action_message(data)
    is_ready = data.get("isReady", True)
    if not isinstance(is_ready, bool):
        raise InvalidMessage("'isReady' must be a boolean")
    parsed["is_ready"] = is_ready
    return parsed


def parse_move_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse player_move message data.

    ``direction`` is the intent. ``position`` is the client's prediction and
    is never trusted.
    """
    parsed = parse_room_action_message(data)
    if "direction" not in data:
        raise InvalidMessage("Missing 'direction'")
    parsed["direction"] = data["direction"]
    parsed["position"] = _optional_int(data, "position")
    parsed["seq"] = _optional_int(data, "seq")
    return parsed


def parse_confirm_message(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse player_confirm message data."""
    parsed = parse_room_action_message(data)
    parsed["position"] = _optional_int(data, "position")
    parsed["seq"] = _optional_int(data, "seq")
    return parsed
