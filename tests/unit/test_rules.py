"""Unit tests for game/rules.py - confirm, power and game-over rules."""
import random

import pytest

from game.board import BOARD_SIZE, CellMarker
from game.player import Player
from game.rules import (
    ConfirmOutcome, GameOverReason,
    check_game_over, confirm, increment_power, leader, pick_opponent,
)
from game.state import GameState


def make_player(index: int, position: int = 1, **kwargs) -> Player:
    return Player(player_id=f"p{index}", name=f"P{index}", index=index, position=position, **kwargs)


class TestConfirm:
    """Tests for confirm presses."""

    def test_target_found(self, identity_state):
        """Test target 1 under the player advances the target and scores."""
        player = make_player(1, position=1)

        result = confirm(player, identity_state)

        assert result.outcome == ConfirmOutcome.TARGET_FOUND
        assert result.target_found
        assert result.label == 1
        assert identity_state.current_target == 2
        assert player.score == 1
        assert identity_state.board.cell_at(1).is_found_by(1)

    def test_miss_changes_nothing(self, identity_state):
        player = make_player(1, position=5)

        result = confirm(player, identity_state)

        assert result.outcome == ConfirmOutcome.MISS
        assert identity_state.current_target == 1
        assert player.score == 0
        assert identity_state.board.cell_at(5).marker == CellMarker.FREE

    def test_target_advances_by_exactly_one(self, identity_state):
        player = make_player(1)
        for expected in range(1, 6):
            player.position = expected
            confirm(player, identity_state)
            assert identity_state.current_target == expected + 1

    def test_save_from_thief(self, identity_state):
        """Test confirming a cell an opponent stole takes it back as a save."""
        victim = make_player(1, position=8, power_counter=2)
        identity_state.board.mark_stolen(8, 2)

        result = confirm(victim, identity_state)

        assert result.outcome == ConfirmOutcome.SAVED
        assert victim.saved_count == 1
        assert victim.power_counter == 0
        assert victim.score == 0
        assert identity_state.board.cell_at(8).is_found_by(1)

    def test_thief_recovers_own_stolen_cell(self, identity_state):
        thief = make_player(2, position=8)
        identity_state.board.mark_stolen(8, 2)

        result = confirm(thief, identity_state)

        assert result.outcome == ConfirmOutcome.STOLEN_RECOVERED
        assert thief.stolen_count == 1
        assert thief.saved_count == 0
        assert identity_state.board.cell_at(8).is_found_by(2)


class TestIncrementPower:
    """Tests for streak power."""

    def test_below_threshold(self, identity_state):
        actor, opponent = make_player(1), make_player(2, power_counter=2)

        stolen = increment_power(actor, opponent, identity_state, threshold=3)

        assert stolen is None
        assert actor.power_counter == 1
        assert opponent.power_counter == 0
        assert actor.power == 0

    def test_threshold_steals_an_opponent_cell(self, identity_state):
        actor, opponent = make_player(1, power_counter=2), make_player(2)
        identity_state.board.mark_found(10, 2)
        identity_state.board.mark_found(20, 2)

        stolen = increment_power(actor, opponent, identity_state, random.Random(1), threshold=3)

        assert stolen in (10, 20)
        assert actor.power == 1
        assert actor.power_counter == 0
        assert identity_state.board.cell_at(stolen).is_stolen_by(1)
        assert len(identity_state.board.found_by(2)) == 1

    def test_threshold_with_no_opponent_cells_steals_nothing(self, identity_state):
        actor, opponent = make_player(1, power_counter=2), make_player(2)

        stolen = increment_power(actor, opponent, identity_state, threshold=3)

        assert stolen is None
        assert actor.power == 1
        assert identity_state.board.stolen_by(1) == []

    def test_pick_opponent_most_found(self, identity_state):
        actor, a, b = make_player(1), make_player(2), make_player(3)
        identity_state.board.mark_found(30, 3)

        assert pick_opponent(actor, [actor, a, b], identity_state) is b

    def test_pick_opponent_tie_uses_join_order(self, identity_state):
        actor, a, b = make_player(1), make_player(2), make_player(3)
        assert pick_opponent(actor, [actor, a, b], identity_state) is a

    def test_pick_opponent_alone(self, identity_state):
        actor = make_player(1)
        assert pick_opponent(actor, [actor], identity_state) is None


class TestGameOver:
    """Tests for end-of-game detection."""

    def test_not_over(self, identity_state):
        assert check_game_over(identity_state, [make_player(1), make_player(2)]) is None

    def test_score_threshold(self, identity_state):
        winner = make_player(2, score=51)
        result = check_game_over(identity_state, [make_player(1, score=50), winner], win_score=50)

        assert result == (GameOverReason.SCORE_THRESHOLD, winner)

    def test_score_exactly_threshold_not_over(self, identity_state):
        assert check_game_over(identity_state, [make_player(1, score=50)], win_score=50) is None

    def test_targets_exhausted(self):
        state = GameState(current_target=BOARD_SIZE + 1)
        a, b = make_player(1, score=30), make_player(2, score=40)

        assert check_game_over(state, [a, b]) == (GameOverReason.TARGETS_EXHAUSTED, b)

    def test_score_checked_before_exhaustion(self):
        state = GameState(current_target=BOARD_SIZE + 1)
        a, b = make_player(1, score=51), make_player(2, score=49)

        reason, winner = check_game_over(state, [a, b], win_score=50)

        assert reason == GameOverReason.SCORE_THRESHOLD
        assert winner is a

    def test_advance_past_last_target_raises(self):
        state = GameState(current_target=BOARD_SIZE + 1)
        with pytest.raises(ValueError):
            state.advance_target()

    def test_leader_tie_goes_to_earlier_join(self):
        a, b = make_player(1, score=3), make_player(2, score=3)
        assert leader([a, b]) is a
