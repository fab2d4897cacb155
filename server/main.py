"""
WebSocket server entry point for Shaka multiplayer.

This module provides:
- WebSocket server using websockets library
- Per-connection client ids
- Message decoding and routing to the relay handler
- Atomic fan-out of relay messages to room members
"""

import argparse
import asyncio
import logging
import socket
import uuid
from typing import Dict, List, Optional

from rich.logging import RichHandler
from websockets.asyncio.server import ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosed

from game.config_loader import ConfigLoader, GameSettings
from game.errors import GameError
from server.errors import InvalidMessage
from server.events import GameEvent, GameEventType
from server.protocol import ClientMessageType, Message, error_message
from server.relay import RelayHandler


logger = logging.getLogger(__name__)

DEFAULT_PORT = 8765

CLIENT_EVENTS: Dict[str, GameEventType] = {
    ClientMessageType.CREATE_ROOM.value: GameEventType.CREATE_ROOM,
    ClientMessageType.JOIN_ROOM.value: GameEventType.JOIN_ROOM,
    ClientMessageType.LEAVE_ROOM.value: GameEventType.LEAVE_ROOM,
    ClientMessageType.PLAYER_READY.value: GameEventType.PLAYER_READY,
    ClientMessageType.START_GAME.value: GameEventType.START_GAME,
    ClientMessageType.PLAYER_MOVE.value: GameEventType.PLAYER_MOVE,
    ClientMessageType.PLAYER_CONFIRM.value: GameEventType.PLAYER_CONFIRM,
}


class GameServer:
    """
    WebSocket relay server hosting many independent rooms.

    Handles:
    - Client connections and disconnections
    - Decoding messages into relay events
    - Delivering relay output to connections
    """

    def __init__(
        self,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        settings: Optional[GameSettings] = None,
    ):
        self.host = host
        self.port = port

        # Connection tracking
        self.clients: Dict[str, ServerConnection] = {}  # client_id -> connection

        self.relay = RelayHandler(
            send_to_client=self.send_to_client,
            broadcast=self.broadcast,
            settings=settings,
        )

    def serve(self):
        """Create the websockets server (use as an async context manager)."""
        # Use reuse_address=True to allow binding to ports in TIME_WAIT state
        return serve(self.handle_connection, self.host, self.port, reuse_address=True)

    async def start(self):
        """Start the WebSocket server and run forever."""
        logger.info("Starting Shaka relay on ws://%s:%d", self.host, self.port)
        try:
            async with self.serve():
                await asyncio.Future()  # Run forever
        finally:
            self.relay.close()

    async def handle_connection(self, websocket: ServerConnection):
        """Handle a new WebSocket connection."""
        client_id = str(uuid.uuid4())
        self.clients[client_id] = websocket
        logger.debug("New connection: %s", client_id)

        try:
            async for message in websocket:
                await self.handle_message(client_id, message)
        except ConnectionClosed:
            logger.debug("Connection closed: %s", client_id)
        finally:
            self.clients.pop(client_id, None)
            await self.relay.handle_event(GameEvent(type=GameEventType.DISCONNECT, client_id=client_id))

    async def handle_message(self, client_id: str, raw_message):
        """Decode an incoming message and pass it to the relay."""
        try:
            if not isinstance(raw_message, str):
                raise InvalidMessage("Binary messages are not supported")
            msg = Message.from_json(raw_message)
            event_type = CLIENT_EVENTS.get(msg.type)
            if event_type is None:
                raise InvalidMessage(f"Unknown message type: {msg.type}")
        except GameError as e:
            logger.warning("Bad message from %s: %s", client_id, e.message)
            self.send_to_client(client_id, error_message(e.code, e.message))
            return

        await self.relay.handle_event(GameEvent(type=event_type, data=msg.data, client_id=client_id))

    def send_to_client(self, client_id: str, message: Message):
        """Send a message to one connection."""
        websocket = self.clients.get(client_id)
        if websocket is not None:
            broadcast([websocket], message.to_json())

    def broadcast(self, client_ids: List[str], message: Message):
        """Write one serialized message to several connections without yielding."""
        connections = [self.clients[c] for c in client_ids if c in self.clients]
        if connections:
            broadcast(connections, message.to_json())


def check_port_available(host: str, port: int) -> bool:
    """Check if a port is available for binding.

    Returns True if available, False if in use by another process.
    Uses SO_REUSEADDR to allow binding to ports in TIME_WAIT state.
    """
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host if host != "0.0.0.0" else "127.0.0.1", port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def configure_logging(level: str = "INFO"):
    """Route all log output through rich."""
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )
    # Suppress websockets library errors from TCP probes (health checks that don't
    # complete the WebSocket handshake).
    logging.getLogger("websockets").setLevel(logging.CRITICAL)


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Shaka multiplayer relay server")
    parser.add_argument("--host", default="0.0.0.0", help="Host to bind to")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to bind to")
    parser.add_argument("--config", default=None, help="Path to game_settings.json")
    parser.add_argument("--log-level", default="INFO", help="Logging level")
    args = parser.parse_args(argv)

    configure_logging(args.log_level)
    settings = ConfigLoader(args.config).game_settings()

    if not check_port_available(args.host, args.port):
        logger.error("Port %d is already in use. Try --port %d", args.port, args.port + 1)
        return 1

    server = GameServer(host=args.host, port=args.port, settings=settings)
    try:
        asyncio.run(server.start())
    except KeyboardInterrupt:
        logger.info("Server stopped")

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
