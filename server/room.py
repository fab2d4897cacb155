"""A multiplayer room: roster, phase, and the one authoritative game state."""

import logging
import random
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from game.config_loader import GameSettings
from game.movement import parse_direction
from game.player import Controls, Player
from game.rules import (
    check_game_over, confirm, increment_power, pick_opponent, GameOverReason
)
from game.state import GameState
from server.errors import InvalidPhase, PlayerNotFound, RoomFull
from server.protocol import RoomPhase, confirm_delta, move_delta


logger = logging.getLogger(__name__)


class Room:
    """One game session, keyed by a shareable code.

    Every mutating method bumps ``version`` so clients can tell newer
    snapshots from stale ones.
    """

    def __init__(
        self,
        code: str,
        settings: Optional[GameSettings] = None,
        state: Optional[GameState] = None,
        rng: Optional[random.Random] = None,
    ):
        self.code = code
        self.settings = settings or GameSettings()
        self._rng = rng or random

        # Insertion order is join order
        self.players: Dict[str, Player] = {}
        self.host_id: Optional[str] = None

        self.game_state = state or GameState.new(self._rng)
        self.phase = RoomPhase.LOBBY
        self.version = 0

        self.winner_id: Optional[str] = None
        self.end_reason: Optional[GameOverReason] = None
        self.created_at = datetime.now(timezone.utc)
        self.finished_at: Optional[datetime] = None

        self._next_index = 1

    @property
    def player_list(self) -> List[Player]:
        return list(self.players.values())

    @property
    def is_empty(self) -> bool:
        return not self.players

    def _touch(self) -> None:
        self.version += 1

    def _require_phase(self, phase: RoomPhase, action: str) -> None:
        if self.phase != phase:
            raise InvalidPhase(f"Cannot {action} while room {self.code} is {self.phase.value}")

    # --- Roster ---

    def get_player(self, player_id: str) -> Player:
        player = self.players.get(player_id)
        if player is None:
            raise PlayerNotFound(f"Player {player_id} is not in room {self.code}")
        return player

    def add_player(
        self,
        name: str,
        controls: Optional[Dict[str, Any]] = None,
        color: Optional[str] = None,
        player_id: Optional[str] = None,
    ) -> Player:
        """Add a player to the lobby. The first player becomes host."""
        self._require_phase(RoomPhase.LOBBY, "join")
        if len(self.players) >= self.settings.max_players:
            raise RoomFull(self.code, self.settings.max_players)

        player = Player(
            player_id=player_id or str(uuid.uuid4()),
            name=name,
            index=self._next_index,
            color=color or "",
            controls=Controls.from_dict(controls),
            position=self.settings.start_position,
        )
        self._next_index += 1
        self.players[player.player_id] = player

        if self.host_id is None:
            self._set_host(player.player_id)

        self._touch()
        return player

    def remove_player(self, player_id: str) -> Optional[str]:
        """Remove a player. Returns the new host id if the host changed."""
        self.get_player(player_id)
        del self.players[player_id]

        new_host = None
        if self.host_id == player_id:
            self.host_id = None
            if self.players:
                new_host = next(iter(self.players))
                self._set_host(new_host)

        self._touch()
        return new_host

    def _set_host(self, player_id: str) -> None:
        for pid, player in self.players.items():
            player.is_host = pid == player_id
        self.host_id = player_id

    # --- Lobby and countdown ---

    def set_ready(self, player_id: str, is_ready: bool) -> None:
        self._require_phase(RoomPhase.LOBBY, "change ready status")
        self.get_player(player_id).set_ready(is_ready)
        self._touch()

    def all_ready(self) -> bool:
        return bool(self.players) and all(p.is_ready for p in self.players.values())

    def can_start(self) -> bool:
        return (
            self.phase == RoomPhase.LOBBY
            and len(self.players) >= self.settings.min_players
            and self.all_ready()
        )

    def begin_countdown(self) -> None:
        self._require_phase(RoomPhase.LOBBY, "start the countdown")
        if len(self.players) < self.settings.min_players:
            raise InvalidPhase(f"At least {self.settings.min_players} players are needed")
        if not self.all_ready():
            raise InvalidPhase("Not all players are ready")
        self.phase = RoomPhase.COUNTDOWN
        self._touch()

    def abort_countdown_if_short(self) -> bool:
        """Return to the lobby if a countdown lost too many players."""
        if self.phase == RoomPhase.COUNTDOWN and len(self.players) < self.settings.min_players:
            self.phase = RoomPhase.LOBBY
            self._touch()
            return True
        return False

    def start_playing(self) -> None:
        self._require_phase(RoomPhase.COUNTDOWN, "start the game")
        self.phase = RoomPhase.PLAYING
        self._touch()

    # --- Play ---

    @staticmethod
    def _is_duplicate(player: Player, seq: Optional[int]) -> bool:
        return seq is not None and seq <= player.last_seq

    @staticmethod
    def _record_seq(player: Player, seq: Optional[int]) -> None:
        if seq is not None:
            player.last_seq = seq

    def apply_move(self, player_id: str, direction, seq: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Move a player one step from their authoritative position.

        Returns the move delta, or None if ``seq`` was already applied.
        """
        self._require_phase(RoomPhase.PLAYING, "move")
        direction = parse_direction(direction)
        player = self.get_player(player_id)
        if self._is_duplicate(player, seq):
            return None

        player.move(direction)
        self._record_seq(player, seq)
        self._touch()
        return move_delta(player.player_id, int(direction), player.position, player.last_seq)

    def apply_confirm(self, player_id: str, seq: Optional[int] = None) -> Optional[Dict[str, Any]]:
        """Confirm the cell under a player. Returns the confirm delta, or None for a duplicate."""
        self._require_phase(RoomPhase.PLAYING, "confirm")
        player = self.get_player(player_id)
        if self._is_duplicate(player, seq):
            return None

        result = confirm(player, self.game_state)

        stolen_position = None
        if result.target_found and self.settings.power_enabled:
            stolen_position = self._apply_power(player)

        self._record_seq(player, seq)
        self._touch()
        self._check_finished()

        return confirm_delta(
            player_id=player.player_id,
            target_found=result.target_found,
            outcome=result.outcome.value,
            position=result.position,
            label=result.label,
            seq=player.last_seq,
            stolen_position=stolen_position,
        )

    def _apply_power(self, finder: Player) -> Optional[int]:
        opponent = pick_opponent(finder, self.player_list, self.game_state)
        if opponent is None:
            return None
        for player in self.player_list:
            if player is not finder and player is not opponent:
                player.power_counter = 0
        stolen = increment_power(
            finder, opponent, self.game_state, self._rng, self.settings.power_threshold
        )
        if stolen is not None:
            logger.debug("Room %s: %s stole cell %d from %s", self.code, finder.name, stolen, opponent.name)
        return stolen

    def _check_finished(self) -> None:
        result = check_game_over(self.game_state, self.player_list, self.settings.win_score)
        if result is None:
            return
        reason, winner = result
        self.phase = RoomPhase.FINISHED
        self.end_reason = reason
        self.winner_id = winner.player_id if winner else None
        self.finished_at = datetime.now(timezone.utc)

    # --- Serialization ---

    def to_snapshot(self) -> Dict[str, Any]:
        """Full public room state, safe to send to every member."""
        return {
            "code": self.code,
            "host": self.host_id,
            "phase": self.phase.value,
            "version": self.version,
            "players": [p.to_public_dict() for p in self.players.values()],
            "gameState": self.game_state.to_dict(),
            "settings": self.settings.to_dict(),
            "winner": self.winner_id,
            "endReason": self.end_reason.value if self.end_reason else None,
        }
