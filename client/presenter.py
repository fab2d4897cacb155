"""Presentation hooks the reconciler calls after updating client state.

Every hook is a no-op here. Front ends override the ones they render.
"""

from typing import Any, Dict, List, Optional

from game.player import Player
from client.state import ClientState, ConnectionStatus


class Presenter:
    """Receives client-side notifications. Hooks must not block."""

    def on_state_changed(self, state: ClientState) -> None:
        pass

    def on_predicted_move(self, player: Player, position: int) -> None:
        pass

    def on_found(self, label: int, player: Optional[Player]) -> None:
        pass

    def on_countdown(self, steps: List[Any], interval: float) -> None:
        pass

    def on_game_over(self, state: ClientState) -> None:
        pass

    def on_room_left(self, room_code: Optional[str]) -> None:
        pass

    def on_error(self, error: Dict[str, Any]) -> None:
        pass

    def on_status(self, status: ConnectionStatus) -> None:
        pass
