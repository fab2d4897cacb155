# server/relay.py
"""Relay protocol handler: the authoritative owner of every room's state.

This dispatcher:
- Receives client intents and timer events as GameEvents
- Validates them against the connection's room binding, never the payload
- Mutates the one true Room state
- Broadcasts whole-room snapshots to every member

Handlers never await between mutating a room and broadcasting it, so on a
single event loop no client can observe a half-applied change.
"""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Tuple

from game.config_loader import GameSettings
from game.errors import GameError
from game.player import Player
from server.errors import InvalidPhase, NotHost, NotInRoom, PlayerNotFound
from server.events import GameEvent, GameEventType
from server.protocol import (
    Message, RoomPhase,
    error_message, room_created_message, room_joined_message, room_left_message,
    player_joined_message, player_left_message, player_update_message,
    host_changed_message, countdown_start_message, game_start_message,
    game_update_message, game_over_message,
    parse_create_room_message, parse_join_room_message, parse_room_action_message,
    parse_ready_message, parse_move_message, parse_confirm_message,
)
from server.registry import SessionRegistry
from server.room import Room
from server.timers import TimerManager


logger = logging.getLogger(__name__)

# Type aliases
ClientMessageSender = Callable[[str, Message], None]
ClientBroadcaster = Callable[[List[str], Message], None]


@dataclass
class Binding:
    """The only thing a connection holds: which room and which player it is."""
    room_code: str
    player_id: str


class RelayHandler:
    """Event-driven relay dispatcher."""

    def __init__(
        self,
        send_to_client: ClientMessageSender,
        broadcast: ClientBroadcaster,
        settings: Optional[GameSettings] = None,
        rng: Optional[random.Random] = None,
    ):
        self.send_to_client = send_to_client
        self.broadcast = broadcast
        self.settings = settings or GameSettings()

        self.timers = TimerManager(self.handle_event)
        self.registry = SessionRegistry(self.settings, self.timers, rng)

        # client_id -> binding
        self._bindings: Dict[str, Binding] = {}
        # room_code -> player_id -> client_id
        self._members: Dict[str, Dict[str, str]] = {}

        self._handlers: Dict[GameEventType, Callable] = {
            GameEventType.CREATE_ROOM: self._handle_create_room,
            GameEventType.JOIN_ROOM: self._handle_join_room,
            GameEventType.LEAVE_ROOM: self._handle_leave_room,
            GameEventType.PLAYER_READY: self._handle_player_ready,
            GameEventType.START_GAME: self._handle_start_game,
            GameEventType.PLAYER_MOVE: self._handle_player_move,
            GameEventType.PLAYER_CONFIRM: self._handle_player_confirm,
            GameEventType.DISCONNECT: self._handle_disconnect,
            GameEventType.COUNTDOWN_COMPLETE: self._handle_countdown_complete,
            GameEventType.ROOM_EXPIRED: self._handle_room_expired,
        }

    @staticmethod
    def countdown_timer_id(room_code: str) -> str:
        return f"countdown:{room_code}"

    def binding_for(self, client_id: str) -> Optional[Binding]:
        return self._bindings.get(client_id)

    async def handle_event(self, event: GameEvent) -> None:
        """Handle one event to completion. Errors go back to the origin only."""
        handler = self._handlers.get(event.type)
        if handler is None:
            return
        try:
            await handler(event)
        except GameError as e:
            logger.warning("Rejected %s from %s: %s", event.type.name, event.client_id, e.message)
            self._send_error(event.client_id, e.code, e.message)
        except Exception:
            logger.exception("Unexpected error handling %s", event.type.name)
            self._send_error(event.client_id, "INTERNAL_ERROR", "Internal server error")

    def close(self) -> None:
        """Cancel every pending timer."""
        self.timers.cancel_all()

    # --- Delivery ---

    def _send(self, client_id: Optional[str], message: Message) -> None:
        if client_id is not None:
            self.send_to_client(client_id, message)

    def _send_error(self, client_id: Optional[str], code: str, text: str) -> None:
        self._send(client_id, error_message(code, text))

    def _broadcast(self, room: Room, message: Message, exclude: Optional[str] = None) -> None:
        """Send one message to every connection in the room."""
        clients = [
            client_id for client_id in self._members.get(room.code, {}).values()
            if client_id != exclude
        ]
        if clients:
            self.broadcast(clients, message)

    # --- Bindings ---

    def _bind(self, client_id: str, room: Room, player: Player) -> None:
        self._bindings[client_id] = Binding(room.code, player.player_id)
        self._members.setdefault(room.code, {})[player.player_id] = client_id

    def _unbind(self, client_id: str) -> Optional[Binding]:
        binding = self._bindings.pop(client_id, None)
        if binding is not None:
            members = self._members.get(binding.room_code, {})
            members.pop(binding.player_id, None)
            if not members:
                self._members.pop(binding.room_code, None)
        return binding

    def _require_unbound(self, client_id: Optional[str]) -> None:
        binding = self._bindings.get(client_id)
        if binding is not None:
            raise InvalidPhase(f"Already in room {binding.room_code}; leave it first")

    def _resolve(self, event: GameEvent, parsed: Dict) -> Tuple[Room, Player]:
        """Find the room and player this connection is bound to."""
        binding = self._bindings.get(event.client_id)
        if binding is None:
            raise NotInRoom("Create or join a room first")
        if parsed["room_code"] != binding.room_code:
            raise NotInRoom(f"You are not in room {parsed['room_code']}")
        if parsed["player_id"] is not None and parsed["player_id"] != binding.player_id:
            raise PlayerNotFound("playerId does not belong to this connection")

        room = self.registry.get_room(binding.room_code)
        return room, room.get_player(binding.player_id)

    # --- Room membership ---

    async def _handle_create_room(self, event: GameEvent) -> None:
        self._require_unbound(event.client_id)
        parsed = parse_create_room_message(event.data)

        room, player = self.registry.create_room(parsed["name"], parsed["controls"], parsed["color"])
        self._bind(event.client_id, room, player)
        self._send(event.client_id, room_created_message(room.code, player.player_id, room.to_snapshot()))

    async def _handle_join_room(self, event: GameEvent) -> None:
        self._require_unbound(event.client_id)
        parsed = parse_join_room_message(event.data)

        room, player = self.registry.join_room(
            parsed["room_code"], parsed["name"], parsed["controls"], parsed["color"]
        )
        self._bind(event.client_id, room, player)

        snapshot = room.to_snapshot()
        self._send(event.client_id, room_joined_message(room.code, player.player_id, snapshot))
        self._broadcast(room, player_joined_message(snapshot, player.player_id), exclude=event.client_id)

    async def _handle_leave_room(self, event: GameEvent) -> None:
        parsed = parse_room_action_message(event.data)
        room, _ = self._resolve(event, parsed)
        self._remove_member(event.client_id)
        self._send(event.client_id, room_left_message(room.code))

    async def _handle_disconnect(self, event: GameEvent) -> None:
        if event.client_id in self._bindings:
            self._remove_member(event.client_id)

    def _remove_member(self, client_id: str) -> None:
        binding = self._unbind(client_id)
        result = self.registry.leave_room(binding.room_code, binding.player_id)
        room = result.room

        if result.countdown_cancelled:
            self.timers.cancel_timer(self.countdown_timer_id(room.code))
            logger.info("Room %s countdown cancelled: not enough players", room.code)
        if result.room_emptied:
            return

        snapshot = room.to_snapshot()
        self._broadcast(room, player_left_message(snapshot, result.player.player_id))
        if result.new_host is not None:
            self._broadcast(room, host_changed_message(snapshot, result.new_host))

        if self.settings.auto_start and room.can_start():
            self._begin_countdown(room)

    # --- Lobby ---

    async def _handle_player_ready(self, event: GameEvent) -> None:
        parsed = parse_ready_message(event.data)
        room, player = self._resolve(event, parsed)

        room.set_ready(player.player_id, parsed["is_ready"])
        self._broadcast(room, player_update_message(room.to_snapshot()))

        if self.settings.auto_start and room.can_start():
            self._begin_countdown(room)

    async def _handle_start_game(self, event: GameEvent) -> None:
        parsed = parse_room_action_message(event.data)
        room, player = self._resolve(event, parsed)
        if player.player_id != room.host_id:
            raise NotHost("Only the host can start the game")
        self._begin_countdown(room)

    def _begin_countdown(self, room: Room) -> None:
        room.begin_countdown()
        self.timers.start_timer(
            self.countdown_timer_id(room.code),
            self.settings.countdown_seconds,
            GameEventType.COUNTDOWN_COMPLETE,
            {"roomCode": room.code},
        )
        logger.info("Room %s countdown started", room.code)
        self._broadcast(room, countdown_start_message(
            room.to_snapshot(),
            list(self.settings.countdown_steps),
            self.settings.countdown_interval,
        ))

    async def _handle_countdown_complete(self, event: GameEvent) -> None:
        room = self.registry.find_room(event.data.get("roomCode", ""))
        if room is None or room.phase != RoomPhase.COUNTDOWN:
            return
        room.start_playing()
        logger.info("Room %s game started with %d players", room.code, len(room.players))
        self._broadcast(room, game_start_message(room.to_snapshot()))

    # --- Play ---

    async def _handle_player_move(self, event: GameEvent) -> None:
        parsed = parse_move_message(event.data)
        room, player = self._resolve(event, parsed)

        delta = room.apply_move(player.player_id, parsed["direction"], parsed["seq"])
        if delta is None:
            self._ack_duplicate(event.client_id, room, player, parsed["seq"])
            return

        predicted = parsed["position"]
        if predicted is not None and predicted != delta["position"]:
            logger.debug(
                "Room %s: %s predicted %d, server placed %d",
                room.code, player.name, predicted, delta["position"]
            )
        self._broadcast(room, game_update_message(room.to_snapshot(), delta))

    async def _handle_player_confirm(self, event: GameEvent) -> None:
        parsed = parse_confirm_message(event.data)
        room, player = self._resolve(event, parsed)

        delta = room.apply_confirm(player.player_id, parsed["seq"])
        if delta is None:
            self._ack_duplicate(event.client_id, room, player, parsed["seq"])
            return

        logger.debug("Room %s: %s confirmed %d -> %s", room.code, player.name, delta["label"], delta["outcome"])
        snapshot = room.to_snapshot()
        self._broadcast(room, game_update_message(snapshot, delta))

        if room.phase == RoomPhase.FINISHED:
            logger.info(
                "Room %s finished (%s), winner %s",
                room.code, room.end_reason.value, room.winner_id
            )
            self._broadcast(room, game_over_message(snapshot, room.winner_id, room.end_reason.value))
            self.registry.schedule_removal(room.code, self.settings.finished_room_ttl)

    def _ack_duplicate(self, client_id: str, room: Room, player: Player, seq: int) -> None:
        """Re-send current state to the origin only, acknowledging an already-applied intent."""
        logger.debug("Room %s: duplicate intent %s from %s", room.code, seq, player.name)
        self._send(client_id, game_update_message(room.to_snapshot(), None))

    # --- Cleanup ---

    async def _handle_room_expired(self, event: GameEvent) -> None:
        room_code = event.data.get("roomCode", "")
        members = dict(self._members.get(room_code, {}))
        if not self.registry.expire_room(room_code):
            return

        self.timers.cancel_timer(self.countdown_timer_id(room_code))
        for client_id in members.values():
            self._unbind(client_id)
            self._send(client_id, room_left_message(room_code))
