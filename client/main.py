# client/main.py
"""Main entry point for the Shaka terminal client.

Everything runs on one asyncio loop: the connection's receive task feeds
the reconciler, menus use questionary's async prompts, and key input during
play is read from stdin in an executor so the loop keeps draining messages.
"""

import argparse
import asyncio
import logging
from typing import Callable, Optional

from rich.logging import RichHandler

from game.config_loader import ClientSettings, ConfigLoader
from client import ui
from client.connection import ConnectionManager, TransportError
from client.reconciler import Reconciler
from client.state import ClientPhase, ClientState

# Polling configuration
POLL_INTERVAL = 0.05  # seconds
RETRY_INTERVAL = 0.25  # seconds
LEAVE_KEY = "q"


class GameClient:
    """Main game client application."""

    def __init__(self, settings: Optional[ClientSettings] = None, url: Optional[str] = None):
        self.settings = settings or ClientSettings()
        self.url = url or self.settings.server_url
        self.state = ClientState()
        self.connection = ConnectionManager(self.settings)
        self.presenter = ui.ConsolePresenter(self.settings.controls)
        self.reconciler = Reconciler(self.state, self.connection.send, self.presenter, self.settings)

        self.connection.set_message_handler(self.reconciler.handle)
        self.connection.set_on_status(self.reconciler.handle_status)
        self._running = False

    async def run(self) -> int:
        """Run the main client loop."""
        await self._connect()

        self._running = True
        retry_task = asyncio.create_task(self._retry_loop())
        try:
            while self._running:
                choice = await ui.main_menu(self.connection.connected)

                if choice == "create":
                    await self._create_room()
                elif choice == "join":
                    await self._join_room()
                elif choice == "reconnect":
                    await self._connect()
                else:
                    self._running = False
        finally:
            retry_task.cancel()
            await self.connection.disconnect()
        return 0

    async def _connect(self) -> bool:
        try:
            await self.connection.connect(self.url)
        except TransportError as e:
            ui.print_error(str(e))
            return False
        return True

    async def _retry_loop(self):
        while True:
            await asyncio.sleep(RETRY_INTERVAL)
            await self.reconciler.resend_stale()

    async def _wait_for(self, predicate: Callable[[], bool], timeout: Optional[float] = None) -> bool:
        """Poll until ``predicate`` holds, an error arrives, or ``timeout`` passes."""
        timeout = self.settings.connect_timeout if timeout is None else timeout
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while loop.time() < deadline:
            if predicate():
                return True
            if self.state.last_error is not None or not self.connection.connected:
                return False
            await asyncio.sleep(POLL_INTERVAL)
        return predicate()

    async def _send(self, coro) -> bool:
        try:
            await coro
        except TransportError as e:
            ui.print_error(str(e))
            return False
        return True

    async def _create_room(self):
        name = await ui.ask_name()
        self.state.last_error = None
        if not await self._send(self.connection.send_create_room(name, self.settings.controls)):
            return
        if await self._wait_for(lambda: self.state.in_room):
            await self._room_loop()
        else:
            await self._pause()

    async def _join_room(self):
        code = await ui.ask_room_code()
        if not code:
            return
        name = await ui.ask_name()
        self.state.last_error = None
        if not await self._send(self.connection.send_join_room(code, name, self.settings.controls)):
            return
        if await self._wait_for(lambda: self.state.in_room):
            await self._room_loop()
        else:
            await self._pause()

    async def _room_loop(self):
        """Drive the lobby, countdown, play and game-over screens of one room."""
        while self.state.in_room:
            if not self.connection.connected:
                ui.print_error("Connection lost.")
                self.state.reset_room()
                await self._pause()
                return

            if self.state.phase == ClientPhase.LOBBY:
                await self._lobby_step()
            elif self.state.phase == ClientPhase.COUNTDOWN:
                await asyncio.sleep(POLL_INTERVAL)
            elif self.state.phase == ClientPhase.PLAYING:
                await self._play_step()
            elif self.state.phase == ClientPhase.GAME_OVER:
                await self._pause()
                await self._leave()

    async def _lobby_step(self):
        ui.print_lobby(self.state)
        action = await ui.lobby_action(self.state)
        room_code, player_id = self.state.room_code, self.state.player_id
        if not self.state.in_room:
            return

        if action == "ready":
            await self._send(self.connection.send_ready(room_code, player_id, True))
        elif action == "unready":
            await self._send(self.connection.send_ready(room_code, player_id, False))
        elif action == "start":
            await self._send(self.connection.send_start_game(room_code, player_id))
        elif action == "leave":
            await self._leave()
        # "refresh" just redraws
        await asyncio.sleep(0.1)

    async def _play_step(self):
        self.presenter.on_state_changed(self.state)
        line = await self._read_line("> ")
        for key in line.strip():
            if key == LEAVE_KEY:
                await self._leave()
                return
            await self.reconciler.press_key(key)

    async def _leave(self):
        if not self.state.in_room:
            return
        room_code = self.state.room_code
        sent = await self._send(self.connection.send_leave_room(room_code, self.state.player_id))
        if not sent or not await self._wait_for(lambda: not self.state.in_room, timeout=2.0):
            self.state.reset_room()

    async def _read_line(self, prompt: str = "") -> str:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, input, prompt)

    async def _pause(self):
        ui.print_info("Press Enter to continue...")
        await self._read_line()


def main(argv=None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Shaka terminal client")
    parser.add_argument("--url", default=None, help="Relay server URL, e.g. ws://localhost:8765")
    parser.add_argument("--config", default=None, help="Path to game_settings.json")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=ui.console, show_path=False)],
    )
    settings = ConfigLoader(args.config).client_settings()

    client = GameClient(settings, args.url)
    try:
        return asyncio.run(client.run())
    except KeyboardInterrupt:
        ui.console.print("\nGoodbye!")
        return 0


if __name__ == "__main__":
    raise SystemExit(main())
