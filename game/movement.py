"""Grid movement rule shared by the relay server and the client prediction.

The board is a 10x10 torus numbered 1..100 row-major. Stepping off an edge
re-enters on the opposite edge:

- RIGHT off column 10 lands on column 1 of the next row (100 -> 1).
- LEFT off column 1 lands on column 10 of the previous row (1 -> 100).
- UP off row 1 lands on row 10, same column.
- DOWN off row 10 lands on row 1, same column.
"""
from enum import IntEnum

from game.board import BOARD_SIZE, ROW_LENGTH, check_position
from game.errors import InvalidMove


ROW_COUNT = BOARD_SIZE // ROW_LENGTH


class Direction(IntEnum):
    """Position offsets for the four grid steps."""
    UP = -ROW_LENGTH
    LEFT = -1
    RIGHT = 1
    DOWN = ROW_LENGTH


def parse_direction(value) -> Direction:
    """Convert a wire value (offset or name) into a Direction."""
    if isinstance(value, Direction):
        return value
    if isinstance(value, str):
        try:
            return Direction[value.upper()]
        except KeyError:
            raise InvalidMove(f"Unknown direction: {value!r}")
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidMove(f"Unknown direction: {value!r}")
    try:
        return Direction(value)
    except ValueError:
        raise InvalidMove(f"Unknown direction: {value!r}")


def to_row_col(position: int):
    """Zero-based (row, column) of a position."""
    return divmod(check_position(position) - 1, ROW_LENGTH)


def from_row_col(row: int, col: int) -> int:
    return row * ROW_LENGTH + col + 1


def step(position: int, direction) -> int:
    """Return the position reached by moving one cell in ``direction``."""
    direction = parse_direction(direction)
    row, col = to_row_col(position)

    if direction == Direction.RIGHT:
        col += 1
        if col == ROW_LENGTH:
            col = 0
            row = (row + 1) % ROW_COUNT
    elif direction == Direction.LEFT:
        col -= 1
        if col < 0:
            col = ROW_LENGTH - 1
            row = (row - 1) % ROW_COUNT
    elif direction == Direction.UP:
        row = (row - 1) % ROW_COUNT
    else:
        row = (row + 1) % ROW_COUNT

    new_position = from_row_col(row, col)
    return min(max(new_position, 1), BOARD_SIZE)
