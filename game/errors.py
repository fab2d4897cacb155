"""Error types shared by the game core, the relay server and the client."""


class GameError(Exception):
    """Base class for every error the game reports to a player.

    ``code`` is the stable identifier sent over the wire in ``error`` messages.
    """

    code = "GAME_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class OutOfRange(GameError):
    """A board position outside 1..100."""

    code = "OUT_OF_RANGE"

    def __init__(self, position):
        super().__init__(f"Position {position} is outside the board")
        self.position = position


class InvalidMove(GameError):
    """A movement direction that is not one of the four grid steps."""

    code = "INVALID_MOVE"
