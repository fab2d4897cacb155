"""Pure game rules: confirming a cell, streak power, and end-of-game checks.

These functions mutate only the Player/GameState objects they are given, so
the relay server and tests can use them without any network or display.
"""
import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from game.board import CellMarker
from game.player import Player
from game.state import GameState


POWER_THRESHOLD = 3
WIN_SCORE = 50


class ConfirmOutcome(Enum):
    """What a confirm press did."""
    TARGET_FOUND = "target_found"
    SAVED = "saved"
    STOLEN_RECOVERED = "stolen_recovered"
    MISS = "miss"


class GameOverReason(Enum):
    """Why a game finished."""
    SCORE_THRESHOLD = "score_threshold"
    TARGETS_EXHAUSTED = "targets_exhausted"


@dataclass
class ConfirmResult:
    outcome: ConfirmOutcome
    position: int
    label: int

    @property
    def target_found(self) -> bool:
        return self.outcome == ConfirmOutcome.TARGET_FOUND


def confirm(player: Player, state: GameState) -> ConfirmResult:
    """Apply a confirm press by ``player`` at their current position."""
    position = player.position
    cell = state.board.cell_at(position)

    if cell.label == state.current_target:
        state.board.mark_found(position, player.index)
        state.advance_target()
        player.score += 1
        return ConfirmResult(ConfirmOutcome.TARGET_FOUND, position, cell.label)

    if cell.marker == CellMarker.STOLEN and cell.owner != player.index:
        # An opponent stole this cell from us; take it back
        state.board.mark_found(position, player.index)
        player.saved_count += 1
        player.power_counter = 0
        return ConfirmResult(ConfirmOutcome.SAVED, position, cell.label)

    if cell.is_stolen_by(player.index):
        state.board.mark_found(position, player.index)
        player.stolen_count += 1
        player.power_counter = 0
        return ConfirmResult(ConfirmOutcome.STOLEN_RECOVERED, position, cell.label)

    return ConfirmResult(ConfirmOutcome.MISS, position, cell.label)


def increment_power(
    actor: Player,
    opponent: Player,
    state: GameState,
    rng: Optional[random.Random] = None,
    threshold: int = POWER_THRESHOLD,
) -> Optional[int]:
    """Advance ``actor``'s streak and steal one of ``opponent``'s cells on a full streak.

    Returns the stolen position, or None if nothing was stolen.
    """
    rng = rng or random
    opponent.power_counter = 0
    actor.power_counter += 1

    if actor.power_counter < threshold:
        return None

    actor.power += 1
    actor.power_counter = 0

    candidates = state.board.found_by(opponent.index)
    if not candidates:
        return None

    position = rng.choice(candidates)
    state.board.mark_stolen(position, actor.index)
    return position


def pick_opponent(actor: Player, players: Iterable[Player], state: GameState) -> Optional[Player]:
    """The other player holding the most found cells (join order breaks ties)."""
    best = None
    best_count = -1
    for player in players:
        if player is actor:
            continue
        count = len(state.board.found_by(player.index))
        if count > best_count:
            best, best_count = player, count
    return best


def check_game_over(
    state: GameState,
    players: List[Player],
    win_score: int = WIN_SCORE,
) -> Optional[Tuple[GameOverReason, Optional[Player]]]:
    """Return (reason, winner) if the game is over, else None.

    The score threshold is checked before target exhaustion, so a confirm
    that both finds the last target and crosses the threshold reports
    SCORE_THRESHOLD.
    """
    for player in players:
        if player.score > win_score:
            return GameOverReason.SCORE_THRESHOLD, player

    if state.targets_exhausted:
        return GameOverReason.TARGETS_EXHAUSTED, leader(players)

    return None


def leader(players: List[Player]) -> Optional[Player]:
    """Highest-scoring player; earlier join order wins ties."""
    best = None
    for player in players:
        if best is None or player.score > best.score:
            best = player
    return best
