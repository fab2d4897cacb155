"""Integration tests for client-server communication.

A real in-process relay server on an ephemeral port, driven by the client
ConnectionManager and Reconciler.
"""

import asyncio
import json

import pytest
import pytest_asyncio
import websockets

from game.config_loader import ClientSettings, GameSettings
from game.state import GameState
from client.connection import ConnectionManager
from client.presenter import Presenter
from client.reconciler import Reconciler
from client.state import ClientPhase, ClientState, ConnectionStatus
from server.main import GameServer

# Mark all tests in this module as slow and set a timeout
pytestmark = [pytest.mark.slow, pytest.mark.timeout(30)]

# Test timeouts
WAIT_TIMEOUT = 5.0
TERMINAL_KEYS = {"up": "w", "left": "a", "down": "s", "right": "d", "confirm": "e"}


class RecordingPresenter(Presenter):
    def __init__(self):
        self.found = []
        self.errors = []

    def on_found(self, label, player):
        self.found.append(label)

    def on_error(self, error):
        self.errors.append(error)


class Client:
    """One connected player: connection + state + reconciler."""

    def __init__(self, settings: ClientSettings):
        self.state = ClientState()
        self.presenter = RecordingPresenter()
        self.connection = ConnectionManager(settings)
        self.reconciler = Reconciler(self.state, self.connection.send, self.presenter, settings)
        self.connection.set_message_handler(self.reconciler.handle)
        self.connection.set_on_status(self.reconciler.handle_status)


async def wait_until(condition, timeout: float = WAIT_TIMEOUT):
    """Poll until condition is true or fail after timeout."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not condition():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def server_settings():
    return GameSettings(countdown_steps=[1], countdown_interval=0.01, room_grace_seconds=0.1)


@pytest_asyncio.fixture
async def server(server_settings):
    game_server = GameServer(host="127.0.0.1", port=0, settings=server_settings)
    async with game_server.serve() as ws_server:
        game_server.port = ws_server.sockets[0].getsockname()[1]
        yield game_server
    game_server.relay.close()


@pytest.fixture
def client_settings(server):
    return ClientSettings(
        server_url=f"ws://127.0.0.1:{server.port}",
        connect_timeout=2.0,
        reconnect_delay=0.05,
        controls=TERMINAL_KEYS,
    )


@pytest_asyncio.fixture
async def clients(client_settings):
    created = []

    async def make():
        client = Client(client_settings)
        await client.connection.connect()
        created.append(client)
        return client

    yield make
    for client in created:
        await client.connection.disconnect()


async def setup_game(server, clients):
    """Two clients in a started room on an identity board."""
    host, guest = await clients(), await clients()

    await host.connection.send_create_room("Host", TERMINAL_KEYS)
    await wait_until(lambda: host.state.in_room)
    await guest.connection.send_join_room(host.state.room_code, "Guest", TERMINAL_KEYS)
    await wait_until(lambda: guest.state.in_room)

    room = server.relay.registry.get_room(host.state.room_code)
    room.game_state = GameState.from_dict({
        "board": [{"label": n} for n in range(1, 101)],
        "currentTarget": 1,
    })

    await host.connection.send_ready(host.state.room_code, host.state.player_id)
    await guest.connection.send_ready(guest.state.room_code, guest.state.player_id)
    await wait_until(lambda: host.state.phase == ClientPhase.PLAYING and guest.state.phase == ClientPhase.PLAYING)
    return host, guest


class TestClientServer:
    """End-to-end flows over real websockets."""

    @pytest.mark.asyncio
    async def test_connect(self, clients):
        client = await clients()
        assert client.connection.status == ConnectionStatus.CONNECTED
        assert client.state.status == ConnectionStatus.CONNECTED

    @pytest.mark.asyncio
    async def test_create_and_join(self, server, clients):
        host, guest = await clients(), await clients()

        await host.connection.send_create_room("Host")
        await wait_until(lambda: host.state.in_room)
        await guest.connection.send_join_room(host.state.room_code.lower(), "Guest")
        await wait_until(lambda: len(host.state.players) == 2)

        assert guest.state.room_code == host.state.room_code
        assert host.state.is_host and not guest.state.is_host
        assert [p.name for p in guest.state.get_standings()] == ["Host", "Guest"]

    @pytest.mark.asyncio
    async def test_join_unknown_room_reports_error(self, clients):
        client = await clients()

        await client.connection.send_join_room("NOPE00", "Lost")
        await wait_until(lambda: client.state.last_error is not None)

        assert client.state.last_error["code"] == "ROOM_NOT_FOUND"
        assert not client.state.in_room

    @pytest.mark.asyncio
    async def test_moves_reconcile_on_both_clients(self, server, clients):
        host, guest = await setup_game(server, clients)

        await host.reconciler.press_key("d")
        await host.reconciler.press_key("s")

        await wait_until(lambda: guest.state.get_player(host.state.player_id).position == 12)
        await wait_until(lambda: not host.state.pending)
        assert host.state.local_player.position == 12

    @pytest.mark.asyncio
    async def test_confirm_found_effect_everywhere(self, server, clients):
        host, guest = await setup_game(server, clients)

        await host.reconciler.press_key("e")

        await wait_until(lambda: host.presenter.found == [1] and guest.presenter.found == [1])
        assert guest.state.current_target == 2
        assert guest.state.get_player(host.state.player_id).score == 1

    @pytest.mark.asyncio
    async def test_malformed_json_gets_error(self, server):
        async with websockets.connect(f"ws://127.0.0.1:{server.port}") as ws:
            await ws.send("not json")
            reply = json.loads(await asyncio.wait_for(ws.recv(), WAIT_TIMEOUT))

        assert reply["type"] == "error"
        assert reply["data"]["code"] == "INVALID_MESSAGE"

    @pytest.mark.asyncio
    async def test_unknown_type_gets_error(self, server):
        async with websockets.connect(f"ws://127.0.0.1:{server.port}") as ws:
            await ws.send(json.dumps({"type": "teleport", "data": {}}))
            reply = json.loads(await asyncio.wait_for(ws.recv(), WAIT_TIMEOUT))

        assert reply["data"]["code"] == "INVALID_MESSAGE"

    @pytest.mark.asyncio
    async def test_disconnect_hands_off_host(self, server, clients):
        host, guest = await clients(), await clients()
        await host.connection.send_create_room("Host")
        await wait_until(lambda: host.state.in_room)
        await guest.connection.send_join_room(host.state.room_code, "Guest")
        await wait_until(lambda: len(host.state.players) == 2)

        await host.connection.disconnect()

        await wait_until(lambda: guest.state.is_host)
        assert list(guest.state.players) == [guest.state.player_id]
