"""Client-side game state management."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set

from game.player import Player
from game.state import GameState
from server.protocol import Message, MoveType, RoomPhase


class ConnectionStatus(Enum):
    """Transport status shown to the user."""
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


class ClientPhase(Enum):
    """Client UI phases."""
    MAIN_MENU = "main_menu"
    LOBBY = "lobby"
    COUNTDOWN = "countdown"
    PLAYING = "playing"
    GAME_OVER = "game_over"


ROOM_PHASES = {
    RoomPhase.LOBBY.value: ClientPhase.LOBBY,
    RoomPhase.COUNTDOWN.value: ClientPhase.COUNTDOWN,
    RoomPhase.PLAYING.value: ClientPhase.PLAYING,
    RoomPhase.FINISHED.value: ClientPhase.GAME_OVER,
}


@dataclass
class PendingIntent:
    """A move or confirm the server has not acknowledged yet."""
    seq: int
    kind: MoveType
    message: Message
    sent_at: float
    direction: Optional[int] = None
    attempts: int = 1


@dataclass
class ClientState:
    """Local view of one room, reconciled against server snapshots."""

    # Connection state
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED

    # UI phase
    phase: ClientPhase = ClientPhase.MAIN_MENU

    # Room membership
    room_code: Optional[str] = None
    player_id: Optional[str] = None
    host_id: Optional[str] = None

    # Highest snapshot version applied; -1 before the first snapshot
    version: int = -1
    players: Dict[str, Player] = field(default_factory=dict)
    game_state: Optional[GameState] = None
    settings: Dict[str, Any] = field(default_factory=dict)

    # Countdown
    countdown: List[Any] = field(default_factory=list)
    countdown_interval: float = 1.0

    # Game over
    winner: Optional[str] = None
    end_reason: Optional[str] = None

    last_error: Optional[Dict[str, Any]] = None

    # Intent tracking
    next_seq: int = 1
    pending: List[PendingIntent] = field(default_factory=list)
    found_labels: Set[int] = field(default_factory=set)

    @property
    def in_room(self) -> bool:
        return self.room_code is not None

    @property
    def local_player(self) -> Optional[Player]:
        if self.player_id is None:
            return None
        return self.players.get(self.player_id)

    @property
    def is_host(self) -> bool:
        return self.player_id is not None and self.player_id == self.host_id

    @property
    def current_target(self) -> Optional[int]:
        if self.game_state is None:
            return None
        return self.game_state.current_target

    def get_player(self, player_id: str) -> Optional[Player]:
        """Get player by ID."""
        return self.players.get(player_id)

    def get_standings(self) -> List[Player]:
        """Get players sorted by score, join order breaking ties."""
        return sorted(self.players.values(), key=lambda p: (-p.score, p.index))

    def take_seq(self) -> int:
        seq = self.next_seq
        self.next_seq += 1
        return seq

    def reset_room(self):
        """Forget everything about the current room."""
        self.phase = ClientPhase.MAIN_MENU
        self.room_code = None
        self.player_id = None
        self.host_id = None
        self.version = -1
        self.players.clear()
        self.game_state = None
        self.settings = {}
        self.countdown = []
        self.winner = None
        self.end_reason = None
        self.next_seq = 1
        self.pending.clear()
        self.found_labels.clear()
