"""Shared test fixtures for Shaka tests."""
import random
from typing import List, Optional, Tuple

import pytest

from game.board import BOARD_SIZE, Board
from game.config_loader import GameSettings
from game.state import GameState
from server.protocol import Message
from server.registry import SessionRegistry


@pytest.fixture(autouse=True)
def deterministic_random():
    """Seed random for reproducible tests."""
    random.seed(42)
    yield
    random.seed()


@pytest.fixture
def settings():
    """Game settings with short timers and manual start."""
    return GameSettings(
        countdown_steps=[1],
        countdown_interval=0.01,
        room_grace_seconds=0.05,
        finished_room_ttl=0.05,
    )


@pytest.fixture
def registry(settings):
    """Registry without timers: empty rooms are removed immediately."""
    return SessionRegistry(settings, rng=random.Random(7))


def build_board(first: Optional[List[int]] = None) -> Board:
    """Board whose first cells hold ``first`` in order, the rest ascending.

    ``build_board()`` is the identity board: label N at position N.
    """
    first = list(first or [])
    rest = [label for label in range(1, BOARD_SIZE + 1) if label not in first]
    return Board.from_labels(first + rest)


@pytest.fixture
def board_builder():
    return build_board


@pytest.fixture
def identity_state():
    """Game state where label N sits at position N."""
    return GameState(board=build_board())


class RecordingEmitter:
    """Collects relay output instead of writing to sockets."""

    def __init__(self):
        # (recipient client ids, message) in delivery order
        self.log: List[Tuple[List[str], Message]] = []

    def send_to_client(self, client_id: str, message: Message):
        self.log.append(([client_id], message))

    def broadcast(self, client_ids: List[str], message: Message):
        self.log.append((list(client_ids), message))

    def messages_for(self, client_id: str) -> List[Message]:
        """Every message a client received, in order."""
        return [message for targets, message in self.log if client_id in targets]

    def types_for(self, client_id: str) -> List[str]:
        return [m.type for m in self.messages_for(client_id)]

    def last_for(self, client_id: str) -> Message:
        return self.messages_for(client_id)[-1]

    def clear(self):
        self.log.clear()


@pytest.fixture
def emitter():
    return RecordingEmitter()
