"""WebSocket connection manager for the Shaka client."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, WebSocketException

from game.config_loader import ClientSettings
from client.state import ConnectionStatus
from server.errors import InvalidMessage
from server.protocol import ClientMessageType, Message


logger = logging.getLogger(__name__)


class TransportError(ConnectionError):
    """The connection to the server could not be opened or was lost."""


class ConnectionManager:
    """Manages the WebSocket connection to the relay server.

    A lost connection gets exactly one reconnection attempt after
    ``reconnect_delay``. If that fails the status stays DISCONNECTED.
    """

    def __init__(self, settings: Optional[ClientSettings] = None):
        self.settings = settings or ClientSettings()
        self.websocket: Optional[ClientConnection] = None
        self.status = ConnectionStatus.DISCONNECTED
        self._message_handler: Optional[Callable[[Message], Awaitable[None]]] = None
        self._on_status: Optional[Callable[[ConnectionStatus], None]] = None
        self._receive_task: Optional[asyncio.Task] = None
        self._last_uri: Optional[str] = None
        self._closing = False

    @property
    def connected(self) -> bool:
        return self.status == ConnectionStatus.CONNECTED

    def set_message_handler(self, handler: Callable[[Message], Awaitable[None]]):
        """Set handler for incoming messages."""
        self._message_handler = handler

    def set_on_status(self, callback: Optional[Callable[[ConnectionStatus], None]]):
        """Set callback to be called whenever the connection status changes."""
        self._on_status = callback

    def _set_status(self, status: ConnectionStatus):
        if status == self.status:
            return
        self.status = status
        logger.debug("Connection status: %s", status.value)
        if self._on_status:
            self._on_status(status)

    async def _open(self, uri: str):
        try:
            self.websocket = await websockets.connect(uri, open_timeout=self.settings.connect_timeout)
        except (OSError, asyncio.TimeoutError, WebSocketException) as e:
            self.websocket = None
            raise TransportError(f"Failed to connect to {uri}: {e}") from e

    async def connect(self, uri: Optional[str] = None) -> bool:
        """Connect to the server and start receiving messages.

        A failed first attempt gets the same single retry as a lost
        connection. Raises TransportError if both attempts fail.
        """
        uri = uri or self.settings.server_url
        self._last_uri = uri
        self._closing = False
        self._set_status(ConnectionStatus.CONNECTING)
        try:
            await self._open(uri)
        except TransportError as e:
            logger.warning("Connection failed: %s", e)
            if not await self.reconnect():
                raise
            return True

        self._set_status(ConnectionStatus.CONNECTED)
        await self.start_receiving()
        return True

    async def disconnect(self):
        """Disconnect from server."""
        self._closing = True
        task = self._receive_task
        self._receive_task = None
        if task and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if self.websocket:
            await self.websocket.close()
            self.websocket = None
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def start_receiving(self):
        """Start receiving messages in background."""
        self._receive_task = asyncio.create_task(self._receive_loop())

    async def _receive_loop(self):
        """Receive messages from server."""
        websocket = self.websocket
        if not websocket:
            return

        try:
            async for raw_message in websocket:
                try:
                    msg = Message.from_json(raw_message)
                except InvalidMessage as e:
                    logger.warning("Dropping malformed server message: %s", e.message)
                    continue
                if self._message_handler:
                    try:
                        await self._message_handler(msg)
                    except Exception:
                        logger.exception("Error handling %s message", msg.type)
        except ConnectionClosed:
            logger.info("Connection to %s closed", self._last_uri)

        if not self._closing:
            await self._connection_lost()

    async def _connection_lost(self):
        self.websocket = None
        if not await self.reconnect():
            logger.warning("Disconnected from %s", self._last_uri)

    async def reconnect(self) -> bool:
        """Make one reconnection attempt after ``reconnect_delay``.

        Returns True if reconnection succeeded, False otherwise.
        """
        if not self._last_uri:
            return False

        self._set_status(ConnectionStatus.RECONNECTING)
        await asyncio.sleep(self.settings.reconnect_delay)
        try:
            await self._open(self._last_uri)
        except TransportError as e:
            logger.warning("Reconnection failed: %s", e)
            self._set_status(ConnectionStatus.DISCONNECTED)
            return False

        self._set_status(ConnectionStatus.CONNECTED)
        await self.start_receiving()
        return True

    async def send(self, message: Message):
        """Send message to server."""
        if not self.websocket or not self.connected:
            raise TransportError("Not connected")
        try:
            await self.websocket.send(message.to_json())
        except ConnectionClosed as e:
            raise TransportError("Connection closed while sending") from e

    async def send_create_room(
        self,
        host_name: str,
        controls: Optional[Dict[str, Any]] = None,
        color: Optional[str] = None,
    ):
        """Send CREATE_ROOM message."""
        await self.send(Message(
            type=ClientMessageType.CREATE_ROOM.value,
            data={"hostName": host_name, "controls": controls, "color": color}
        ))

    async def send_join_room(
        self,
        room_code: str,
        name: str,
        controls: Optional[Dict[str, Any]] = None,
        color: Optional[str] = None,
    ):
        """Send JOIN_ROOM message."""
        await self.send(Message(
            type=ClientMessageType.JOIN_ROOM.value,
            data={"roomCode": room_code, "name": name, "controls": controls, "color": color}
        ))

    async def send_ready(self, room_code: str, player_id: str, is_ready: bool = True):
        """Send PLAYER_READY message."""
        await self.send(Message(
            type=ClientMessageType.PLAYER_READY.value,
            data={"roomCode": room_code, "playerId": player_id, "isReady": is_ready}
        ))

    async def send_start_game(self, room_code: str, player_id: str):
        """Send START_GAME message."""
        await self.send(Message(
            type=ClientMessageType.START_GAME.value,
            data={"roomCode": room_code, "playerId": player_id}
        ))

    async def send_leave_room(self, room_code: str, player_id: str):
        """Send LEAVE_ROOM message."""
        await self.send(Message(
            type=ClientMessageType.LEAVE_ROOM.value,
            data={"roomCode": room_code, "playerId": player_id}
        ))
