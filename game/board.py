"""Board state: 100 shuffled number cells and who has claimed them."""
import random
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from game.errors import OutOfRange


BOARD_SIZE = 100
ROW_LENGTH = 10


class CellMarker(Enum):
    """Claim state of a single cell."""
    FREE = "free"
    FOUND = "found"
    STOLEN = "stolen"


@dataclass
class Cell:
    """One board cell. ``owner`` is the player index for FOUND/STOLEN cells."""

    label: int
    marker: CellMarker = CellMarker.FREE
    owner: Optional[int] = None

    def is_found_by(self, player_index: int) -> bool:
        return self.marker == CellMarker.FOUND and self.owner == player_index

    def is_stolen_by(self, player_index: int) -> bool:
        return self.marker == CellMarker.STOLEN and self.owner == player_index

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "marker": self.marker.value,
            "owner": self.owner,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Cell':
        return cls(
            label=int(data["label"]),
            marker=CellMarker(data.get("marker", CellMarker.FREE.value)),
            owner=data.get("owner"),
        )


def check_position(position: int) -> int:
    """Return ``position`` unchanged, or raise OutOfRange."""
    if isinstance(position, bool) or not isinstance(position, int):
        raise OutOfRange(position)
    if not 1 <= position <= BOARD_SIZE:
        raise OutOfRange(position)
    return position


class Board:
    """Flat 10x10 grid of numbered cells, addressed by position 1..100."""

    def __init__(self, cells: List[Cell]):
        if len(cells) != BOARD_SIZE:
            raise ValueError(f"Board needs {BOARD_SIZE} cells, got {len(cells)}")
        labels = sorted(cell.label for cell in cells)
        if labels != list(range(1, BOARD_SIZE + 1)):
            raise ValueError("Board labels must be a permutation of 1..100")
        self._cells = cells

    @classmethod
    def initialize(cls, rng: Optional[random.Random] = None) -> 'Board':
        """Create a board holding a random permutation of the labels 1..100."""
        rng = rng or random
        labels = list(range(1, BOARD_SIZE + 1))
        rng.shuffle(labels)
        return cls([Cell(label=label) for label in labels])

    @classmethod
    def from_labels(cls, labels: List[int]) -> 'Board':
        """Create a board with a fixed label order (all cells free)."""
        return cls([Cell(label=label) for label in labels])

    def __len__(self) -> int:
        return len(self._cells)

    def __iter__(self):
        return iter(self._cells)

    @property
    def labels(self) -> List[int]:
        return [cell.label for cell in self._cells]

    def cell_at(self, position: int) -> Cell:
        """Get the cell at ``position`` (1-based)."""
        return self._cells[check_position(position) - 1]

    def position_of(self, label: int) -> int:
        """Get the position holding ``label``."""
        for position, cell in enumerate(self._cells, start=1):
            if cell.label == label:
                return position
        raise ValueError(f"No cell labelled {label}")

    def mark_found(self, position: int, player_index: int) -> None:
        cell = self.cell_at(position)
        cell.marker = CellMarker.FOUND
        cell.owner = player_index

    def mark_stolen(self, position: int, player_index: int) -> None:
        cell = self.cell_at(position)
        cell.marker = CellMarker.STOLEN
        cell.owner = player_index

    def clear_marker(self, position: int) -> None:
        cell = self.cell_at(position)
        cell.marker = CellMarker.FREE
        cell.owner = None

    def found_by(self, player_index: int) -> List[int]:
        """Positions currently found by a player, in board order."""
        return [
            position for position, cell in enumerate(self._cells, start=1)
            if cell.is_found_by(player_index)
        ]

    def stolen_by(self, player_index: int) -> List[int]:
        """Positions currently stolen by a player, in board order."""
        return [
            position for position, cell in enumerate(self._cells, start=1)
            if cell.is_stolen_by(player_index)
        ]

    def to_list(self) -> List[Dict[str, Any]]:
        """Serialize for network transmission."""
        return [cell.to_dict() for cell in self._cells]

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> 'Board':
        """Deserialize from ``to_list`` output."""
        return cls([Cell.from_dict(item) for item in data])
