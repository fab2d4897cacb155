"""Player record and key bindings."""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional, Union

from game.board import check_position
from game.movement import Direction, step


# Color palette for players, picked by join index
PLAYER_COLORS = [
    "#008000", "#1e90ff", "#ff8c00", "#c71585", "#b22222",
    "#20b2aa", "#daa520", "#6a5acd", "#2f4f4f", "#ff1493",
]

CONFIRM = "confirm"


@dataclass
class Controls:
    """Key bindings for one player. Keys are physical key names."""

    up: str = "ArrowUp"
    right: str = "ArrowRight"
    down: str = "ArrowDown"
    left: str = "ArrowLeft"
    confirm: str = "Enter"

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Controls':
        """Build controls from a partial mapping; missing keys use defaults."""
        return cls().merged(data)

    def merged(self, overrides: Optional[Dict[str, Any]]) -> 'Controls':
        """Return a copy with the given bindings replaced."""
        values = asdict(self)
        for name, key in (overrides or {}).items():
            if name in values and key:
                values[name] = str(key)
        return Controls(**values)

    def action_for(self, key: str) -> Optional[Union[Direction, str]]:
        """Map a pressed key to a Direction or CONFIRM, or None if unbound."""
        bindings = {
            self.up: Direction.UP,
            self.right: Direction.RIGHT,
            self.down: Direction.DOWN,
            self.left: Direction.LEFT,
            self.confirm: CONFIRM,
        }
        return bindings.get(key)

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


@dataclass(eq=False)
class Player:
    """A participant in one room."""

    player_id: str
    name: str
    index: int
    color: str = ""
    controls: Controls = field(default_factory=Controls)

    position: int = 1
    score: int = 0
    power_counter: int = 0
    power: int = 0
    stolen_count: int = 0
    saved_count: int = 0
    move_count: int = 0

    is_ready: bool = False
    is_host: bool = False

    # Highest intent sequence number applied by the server
    last_seq: int = 0

    def __post_init__(self):
        if not self.name:
            self.name = f"Player {self.index}"
        if not self.color:
            self.color = PLAYER_COLORS[(self.index - 1) % len(PLAYER_COLORS)]
        check_position(self.position)

    def __hash__(self):
        return hash(self.player_id)

    def __eq__(self, other):
        if isinstance(other, Player):
            return self.player_id == other.player_id
        return False

    def __str__(self):
        return f"{self.name} ({self.score} pts)"

    def move(self, direction) -> int:
        """Step one cell in ``direction`` and return the new position."""
        self.position = step(self.position, direction)
        self.move_count += 1
        return self.position

    def set_ready(self, is_ready: bool) -> None:
        self.is_ready = bool(is_ready)

    def update_controls(self, controls: Optional[Dict[str, Any]]) -> None:
        self.controls = self.controls.merged(controls)

    def to_public_dict(self) -> Dict[str, Any]:
        """Public player info (visible to everyone in the room)."""
        return {
            "id": self.player_id,
            "name": self.name,
            "index": self.index,
            "color": self.color,
            "controls": self.controls.to_dict(),
            "position": self.position,
            "score": self.score,
            "powerCounter": self.power_counter,
            "power": self.power,
            "stolenCount": self.stolen_count,
            "savedCount": self.saved_count,
            "moveCount": self.move_count,
            "isReady": self.is_ready,
            "isHost": self.is_host,
            "lastSeq": self.last_seq,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Player':
        """Deserialize a player from ``to_public_dict`` output."""
        return cls(
            player_id=data["id"],
            name=data.get("name", ""),
            index=data.get("index", 1),
            color=data.get("color", ""),
            controls=Controls.from_dict(data.get("controls")),
            position=data.get("position", 1),
            score=data.get("score", 0),
            power_counter=data.get("powerCounter", 0),
            power=data.get("power", 0),
            stolen_count=data.get("stolenCount", 0),
            saved_count=data.get("savedCount", 0),
            move_count=data.get("moveCount", 0),
            is_ready=data.get("isReady", False),
            is_host=data.get("isHost", False),
            last_seq=data.get("lastSeq", 0),
        )
