# server/events.py
"""Event types for the relay dispatcher."""

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, Optional


class GameEventType(Enum):
    """All events the relay handles."""

    # Client intents
    CREATE_ROOM = auto()
    JOIN_ROOM = auto()
    LEAVE_ROOM = auto()
    PLAYER_READY = auto()
    START_GAME = auto()
    PLAYER_MOVE = auto()
    PLAYER_CONFIRM = auto()

    # Connection lifecycle
    DISCONNECT = auto()

    # Timers
    COUNTDOWN_COMPLETE = auto()
    ROOM_EXPIRED = auto()


@dataclass
class GameEvent:
    """An event that triggers a state transition.

    ``client_id`` identifies the originating connection; timer events have none.
    """

    type: GameEventType
    data: Dict[str, Any] = field(default_factory=dict)
    client_id: Optional[str] = None
