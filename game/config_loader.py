"""Configuration loader for server and client settings."""
import json
import logging
import os
from dataclasses import dataclass, field, fields
from typing import Any, Dict, List, Optional, Union


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "config", "game_settings.json"
)


@dataclass
class GameSettings:
    """Room and rule settings used by the relay server."""

    min_players: int = 2
    max_players: int = 10
    win_score: int = 50
    power_enabled: bool = True
    power_threshold: int = 3
    auto_start: bool = True
    countdown_steps: List[Union[int, str]] = field(default_factory=lambda: [3, 2, 1, "Go!"])
    countdown_interval: float = 1.0
    room_grace_seconds: float = 30.0
    finished_room_ttl: float = 60.0
    max_rooms: Optional[int] = None
    room_code_length: int = 6
    start_position: int = 1

    @property
    def countdown_seconds(self) -> float:
        """Total time between countdown start and game start."""
        return len(self.countdown_steps) * self.countdown_interval

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minPlayers": self.min_players,
            "maxPlayers": self.max_players,
            "winScore": self.win_score,
            "powerEnabled": self.power_enabled,
            "countdown": list(self.countdown_steps),
            "countdownInterval": self.countdown_interval,
        }


def _default_terminal_controls() -> Dict[str, str]:
    return {"up": "w", "left": "a", "down": "s", "right": "d", "confirm": "e"}


@dataclass
class ClientSettings:
    """Connection and input settings used by the client."""

    server_url: str = "ws://localhost:8765"
    connect_timeout: float = 15.0
    reconnect_delay: float = 2.0
    intent_retry_seconds: float = 1.0
    intent_max_retries: int = 3
    controls: Dict[str, str] = field(default_factory=_default_terminal_controls)


class ConfigLoader:
    """Loads settings from a JSON file with ``game`` and ``client`` sections."""

    def __init__(self, path: Optional[str] = None):
        self.path = path or DEFAULT_CONFIG_PATH
        self.raw = self._load_json(self.path)

    def _load_json(self, filepath: str) -> Dict[str, Any]:
        """Load a JSON configuration file."""
        try:
            with open(filepath, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            logger.warning("Config file %s not found. Using defaults.", filepath)
            return {}
        except json.JSONDecodeError as e:
            logger.warning("Error parsing %s: %s. Using defaults.", filepath, e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Config file %s is not a JSON object. Using defaults.", filepath)
            return {}
        return data

    def get(self, *keys, default=None):
        """Get a nested configuration value."""
        value = self.raw
        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def game_settings(self) -> GameSettings:
        return _build(GameSettings, self.get("game", default={}), "game")

    def client_settings(self) -> ClientSettings:
        return _build(ClientSettings, self.get("client", default={}), "client")


def _build(cls, section: Any, name: str):
    """Instantiate a settings dataclass from a config section, ignoring unknown keys."""
    if not isinstance(section, dict):
        logger.warning("Config section %r is not an object. Using defaults.", name)
        return cls()

    known = {f.name for f in fields(cls)}
    values = {}
    for key, value in section.items():
        if key in known:
            values[key] = value
        else:
            logger.warning("Unknown setting %s.%s ignored", name, key)
    return cls(**values)
