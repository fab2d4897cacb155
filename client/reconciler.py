# client/reconciler.py
"""Optimistic local prediction reconciled against authoritative server snapshots.

The reconciler:
- Maps key presses to move/confirm intents, predicting moves locally
- Tags every intent with an increasing ``seq`` and keeps it pending until
  the server's ``lastSeq`` for the local player covers it
- Applies room snapshots in version order, dropping stale ones
- Replays still-pending moves on top of the server position
- Fires the found effect once per label
"""

import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

from game.config_loader import ClientSettings
from game.movement import step
from game.player import CONFIRM, Player
from game.state import GameState
from client.connection import TransportError
from client.presenter import Presenter
from client.state import (
    ClientPhase, ClientState, ConnectionStatus, PendingIntent, ROOM_PHASES
)
from server.protocol import ClientMessageType, Message, MoveType, ServerMessageType


logger = logging.getLogger(__name__)

MessageSender = Callable[[Message], Awaitable[None]]


class Reconciler:
    """Handles incoming server messages and local input for one player."""

    def __init__(
        self,
        state: ClientState,
        send: MessageSender,
        presenter: Optional[Presenter] = None,
        settings: Optional[ClientSettings] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.state = state
        self.send = send
        self.presenter = presenter or Presenter()
        self.settings = settings or ClientSettings()
        self._clock = clock

    # --- Local input ---

    async def press_key(self, key: str) -> Optional[PendingIntent]:
        """Turn a key press into an intent. Returns None if the key does nothing now."""
        player = self.state.local_player
        if player is None or self.state.phase != ClientPhase.PLAYING:
            return None

        action = player.controls.action_for(key)
        if action is None:
            return None
        if action == CONFIRM:
            return await self.confirm()
        return await self.move(action)

    async def move(self, direction) -> Optional[PendingIntent]:
        """Predict a step locally and send the move intent."""
        player = self.state.local_player
        if player is None or self.state.phase != ClientPhase.PLAYING:
            return None

        player.position = step(player.position, direction)
        self.presenter.on_predicted_move(player, player.position)

        seq = self.state.take_seq()
        message = Message(
            type=ClientMessageType.PLAYER_MOVE.value,
            data={
                "roomCode": self.state.room_code,
                "playerId": player.player_id,
                "direction": int(direction),
                "position": player.position,
                "seq": seq,
            }
        )
        intent = PendingIntent(
            seq=seq, kind=MoveType.MOVE, message=message,
            sent_at=self._clock(), direction=int(direction),
        )
        return await self._emit(intent)

    async def confirm(self) -> Optional[PendingIntent]:
        """Send a confirm intent for the cell under the local player."""
        player = self.state.local_player
        if player is None or self.state.phase != ClientPhase.PLAYING:
            return None

        seq = self.state.take_seq()
        message = Message(
            type=ClientMessageType.PLAYER_CONFIRM.value,
            data={
                "roomCode": self.state.room_code,
                "playerId": player.player_id,
                "position": player.position,
                "seq": seq,
            }
        )
        intent = PendingIntent(seq=seq, kind=MoveType.CONFIRM, message=message, sent_at=self._clock())
        return await self._emit(intent)

    async def _emit(self, intent: PendingIntent) -> PendingIntent:
        self.state.pending.append(intent)
        try:
            await self.send(intent.message)
        except TransportError as e:
            # Stays pending; resend_stale picks it up
            logger.debug("Intent %d not sent: %s", intent.seq, e)
        return intent

    async def resend_stale(self, now: Optional[float] = None) -> int:
        """Re-send pending intents older than the retry interval.

        Each intent is retried at most ``intent_max_retries`` times, then
        dropped. Returns how many were re-sent.
        """
        now = self._clock() if now is None else now
        resent = 0
        for intent in list(self.state.pending):
            if now - intent.sent_at < self.settings.intent_retry_seconds:
                continue
            if intent.attempts > self.settings.intent_max_retries:
                logger.warning("Giving up on intent %d after %d attempts", intent.seq, intent.attempts)
                self.state.pending.remove(intent)
                continue

            intent.attempts += 1
            intent.sent_at = now
            try:
                await self.send(intent.message)
            except TransportError as e:
                logger.debug("Retry of intent %d not sent: %s", intent.seq, e)
                continue
            resent += 1
        return resent

    # --- Connection ---

    def handle_status(self, status: ConnectionStatus):
        """Track transport status. A new connection has no room binding."""
        previous = self.state.status
        self.state.status = status
        if (
            status == ConnectionStatus.CONNECTED
            and previous == ConnectionStatus.RECONNECTING
            and self.state.in_room
        ):
            room_code = self.state.room_code
            self.state.reset_room()
            self.presenter.on_room_left(room_code)
        self.presenter.on_status(status)

    # --- Server messages ---

    async def handle(self, msg: Message):
        """Handle an incoming message."""
        msg_type = msg.type
        data = msg.data

        if msg_type in (ServerMessageType.ROOM_CREATED.value, ServerMessageType.ROOM_JOINED.value):
            await self._handle_room_entered(data)

        elif msg_type in (
            ServerMessageType.PLAYER_JOINED.value,
            ServerMessageType.PLAYER_LEFT.value,
            ServerMessageType.PLAYER_UPDATE.value,
            ServerMessageType.HOST_CHANGED.value,
            ServerMessageType.GAME_START.value,
        ):
            self._apply_and_notify(data.get("room"))

        elif msg_type == ServerMessageType.GAME_COUNTDOWN_START.value:
            await self._handle_countdown_start(data)

        elif msg_type == ServerMessageType.GAME_UPDATE.value:
            await self._handle_game_update(data)

        elif msg_type == ServerMessageType.GAME_OVER.value:
            await self._handle_game_over(data)

        elif msg_type == ServerMessageType.ROOM_LEFT.value:
            await self._handle_room_left(data)

        elif msg_type == ServerMessageType.ERROR.value:
            await self._handle_error(data)

        else:
            logger.debug("Ignoring message type %s", msg_type)

    async def _handle_room_entered(self, data: dict):
        """Handle ROOM_CREATED / ROOM_JOINED."""
        self.state.reset_room()
        self.state.room_code = data.get("roomCode")
        self.state.player_id = data.get("playerId")
        self._apply_and_notify(data.get("room"))

    async def _handle_countdown_start(self, data: dict):
        self.state.countdown = list(data.get("countdown", []))
        self.state.countdown_interval = data.get("interval", 1.0)
        self._apply_and_notify(data.get("room"))
        self.presenter.on_countdown(self.state.countdown, self.state.countdown_interval)

    async def _handle_game_update(self, data: dict):
        self._apply_and_notify(data.get("room"))
        last_move = data.get("lastMove")
        if last_move:
            self._maybe_fire_found(last_move)

    async def _handle_game_over(self, data: dict):
        self._apply_and_notify(data.get("room"))
        self.state.phase = ClientPhase.GAME_OVER
        self.state.winner = data.get("winner")
        self.state.end_reason = data.get("reason")
        self.presenter.on_game_over(self.state)

    async def _handle_room_left(self, data: dict):
        room_code = data.get("roomCode", self.state.room_code)
        self.state.reset_room()
        self.presenter.on_room_left(room_code)

    async def _handle_error(self, data: dict):
        self.state.last_error = data
        logger.info("Server error %s: %s", data.get("code"), data.get("message"))
        self.presenter.on_error(data)

    def _maybe_fire_found(self, last_move: Dict[str, Any]):
        """Fire the found effect for a confirmed target the first time its label is seen."""
        if last_move.get("type") != MoveType.CONFIRM.value or not last_move.get("targetFound"):
            return
        label = last_move.get("label")
        if label is None or label in self.state.found_labels:
            return
        self.state.found_labels.add(label)
        self.presenter.on_found(label, self.state.get_player(last_move.get("playerId")))

    # --- Snapshots ---

    def _apply_and_notify(self, room: Optional[Dict[str, Any]]):
        if self.apply_snapshot(room):
            self.presenter.on_state_changed(self.state)

    def apply_snapshot(self, room: Optional[Dict[str, Any]]) -> bool:
        """Replace the local view with a newer server snapshot.

        Returns False for missing, foreign, or stale snapshots.
        """
        if not room:
            return False
        if self.state.room_code is not None and room.get("code") != self.state.room_code:
            logger.debug("Ignoring snapshot for room %s", room.get("code"))
            return False

        version = room.get("version", 0)
        if version <= self.state.version:
            logger.debug("Ignoring stale snapshot v%d (have v%d)", version, self.state.version)
            return False

        self.state.version = version
        self.state.host_id = room.get("host")
        self.state.phase = ROOM_PHASES.get(room.get("phase"), self.state.phase)
        self.state.players = {p["id"]: Player.from_dict(p) for p in room.get("players", [])}
        if room.get("gameState"):
            self.state.game_state = GameState.from_dict(room["gameState"])
        self.state.settings = room.get("settings") or {}
        self.state.winner = room.get("winner")
        self.state.end_reason = room.get("endReason")

        local = self.state.local_player
        if local is not None:
            self._replay_pending(local)
        return True

    def _replay_pending(self, local: Player):
        """Drop acknowledged intents and re-apply unacknowledged moves on the server position."""
        self.state.pending = [i for i in self.state.pending if i.seq > local.last_seq]
        for intent in self.state.pending:
            if intent.direction is not None:
                local.position = step(local.position, intent.direction)
