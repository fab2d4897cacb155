"""Unit tests for game/player.py."""
import pytest

from game.errors import OutOfRange
from game.movement import Direction
from game.player import CONFIRM, PLAYER_COLORS, Controls, Player


class TestControls:
    """Tests for key bindings."""

    def test_defaults(self):
        controls = Controls()
        assert controls.action_for("ArrowUp") == Direction.UP
        assert controls.action_for("Enter") == CONFIRM
        assert controls.action_for("x") is None

    def test_from_partial_dict(self):
        """Test missing bindings keep their defaults."""
        controls = Controls.from_dict({"up": "w", "confirm": "e"})

        assert controls.up == "w"
        assert controls.confirm == "e"
        assert controls.left == "ArrowLeft"

    def test_unknown_and_empty_keys_ignored(self):
        controls = Controls.from_dict({"jump": "j", "down": ""})
        assert controls.down == "ArrowDown"
        assert not hasattr(controls, "jump")

    def test_terminal_bindings(self):
        controls = Controls.from_dict({"up": "w", "left": "a", "down": "s", "right": "d", "confirm": "e"})

        assert controls.action_for("w") == Direction.UP
        assert controls.action_for("a") == Direction.LEFT
        assert controls.action_for("s") == Direction.DOWN
        assert controls.action_for("d") == Direction.RIGHT
        assert controls.action_for("e") == CONFIRM


class TestPlayer:
    """Tests for Player."""

    def test_defaults_from_index(self):
        """Test empty name and color fall back to index-based defaults."""
        player = Player(player_id="p3", name="", index=3)

        assert player.name == "Player 3"
        assert player.color == PLAYER_COLORS[2]
        assert player.position == 1
        assert player.score == 0

    def test_rejects_bad_position(self):
        with pytest.raises(OutOfRange):
            Player(player_id="p1", name="A", index=1, position=0)

    def test_move_counts_steps(self):
        player = Player(player_id="p1", name="A", index=1, position=100)

        assert player.move(Direction.RIGHT) == 1
        assert player.move_count == 1

    def test_equality_by_id(self):
        a = Player(player_id="same", name="A", index=1)
        b = Player(player_id="same", name="B", index=2)

        assert a == b
        assert len({a, b}) == 1

    def test_update_controls(self):
        player = Player(player_id="p1", name="A", index=1)
        player.update_controls({"left": "h"})
        assert player.controls.left == "h"
        assert player.controls.right == "ArrowRight"

    def test_public_dict_round_trip(self):
        player = Player(player_id="p1", name="Alice", index=2, position=37, score=4, last_seq=9)
        player.is_ready = True

        data = player.to_public_dict()
        restored = Player.from_dict(data)

        assert data["id"] == "p1"
        assert data["lastSeq"] == 9
        assert data["isReady"] is True
        assert restored.position == 37
        assert restored.score == 4
        assert restored.controls == player.controls
