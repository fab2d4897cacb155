"""Unit tests for game/movement.py - the wrap-around grid step."""
import pytest

from game.board import BOARD_SIZE
from game.errors import InvalidMove, OutOfRange
from game.movement import Direction, parse_direction, step, to_row_col


class TestStep:
    """Tests for single-cell movement."""

    def test_basic_steps(self):
        assert step(45, Direction.RIGHT) == 46
        assert step(45, Direction.LEFT) == 44
        assert step(45, Direction.UP) == 35
        assert step(45, Direction.DOWN) == 55

    def test_right_wraps_to_next_row(self):
        """Test stepping right off column 10 lands on column 1 of the next row."""
        assert step(10, Direction.RIGHT) == 11
        assert step(100, Direction.RIGHT) == 1

    def test_left_wraps_to_previous_row(self):
        """Test stepping left off column 1 lands on column 10 of the previous row."""
        assert step(11, Direction.LEFT) == 10
        assert step(1, Direction.LEFT) == 100

    def test_up_wraps_same_column(self):
        assert step(3, Direction.UP) == 93

    def test_down_wraps_same_column(self):
        assert step(97, Direction.DOWN) == 7

    @pytest.mark.parametrize("position", range(1, BOARD_SIZE + 1))
    def test_right_then_left_returns(self, position):
        """Test every position survives a right/left round trip."""
        assert step(step(position, Direction.RIGHT), Direction.LEFT) == position

    @pytest.mark.parametrize("position", range(1, BOARD_SIZE + 1))
    def test_up_then_down_returns(self, position):
        assert step(step(position, Direction.UP), Direction.DOWN) == position

    def test_step_rejects_bad_position(self):
        with pytest.raises(OutOfRange):
            step(0, Direction.RIGHT)

    def test_row_col(self):
        assert to_row_col(1) == (0, 0)
        assert to_row_col(100) == (9, 9)
        assert to_row_col(23) == (2, 2)


class TestParseDirection:
    """Tests for wire direction parsing."""

    def test_accepts_offsets(self):
        assert parse_direction(1) == Direction.RIGHT
        assert parse_direction(-1) == Direction.LEFT
        assert parse_direction(10) == Direction.DOWN
        assert parse_direction(-10) == Direction.UP

    def test_accepts_names(self):
        assert parse_direction("up") == Direction.UP
        assert parse_direction("RIGHT") == Direction.RIGHT

    @pytest.mark.parametrize("value", [2, 0, "north", None, True, 1.0])
    def test_rejects_unknown(self, value):
        with pytest.raises(InvalidMove):
            parse_direction(value)
