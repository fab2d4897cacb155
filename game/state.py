"""Shared board + target state of one game."""
import random
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from game.board import BOARD_SIZE, Board


@dataclass
class GameState:
    """The board and the next number players race to find."""

    board: Board = field(default_factory=Board.initialize)
    current_target: int = 1

    @classmethod
    def new(cls, rng: Optional[random.Random] = None) -> 'GameState':
        return cls(board=Board.initialize(rng))

    @property
    def targets_exhausted(self) -> bool:
        return self.current_target > BOARD_SIZE

    def advance_target(self) -> int:
        """Move on to the next target. Never goes past BOARD_SIZE + 1."""
        if self.targets_exhausted:
            raise ValueError("All targets have already been found")
        self.current_target += 1
        return self.current_target

    def to_dict(self) -> Dict[str, Any]:
        return {
            "board": self.board.to_list(),
            "currentTarget": self.current_target,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'GameState':
        return cls(
            board=Board.from_list(data["board"]),
            current_target=data.get("currentTarget", 1),
        )
