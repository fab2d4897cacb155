# client/ui.py
"""Terminal UI components for the Shaka client using rich."""

from typing import Any, Dict, List, Optional

import questionary
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from game.board import CellMarker, ROW_LENGTH
from game.player import Player
from client.presenter import Presenter
from client.state import ClientPhase, ClientState, ConnectionStatus


console = Console()

STATUS_STYLES = {
    ConnectionStatus.CONNECTED: "green",
    ConnectionStatus.CONNECTING: "yellow",
    ConnectionStatus.RECONNECTING: "yellow",
    ConnectionStatus.DISCONNECTED: "bold red",
}


def clear_screen():
    """Clear the terminal screen."""
    console.clear()


def print_header(title: str, subtitle: str = ""):
    """Print a styled header."""
    header_text = Text(title, style="bold cyan")
    if subtitle:
        header_text.append(f"\n{subtitle}", style="dim")
    console.print(Panel(header_text, box=box.DOUBLE))


def print_error(message: str):
    console.print(f"[bold red]{message}[/bold red]")


def print_info(message: str):
    console.print(f"[dim]{message}[/dim]")


def print_status(status: ConnectionStatus):
    style = STATUS_STYLES.get(status, "white")
    console.print(f"[{style}]● {status.value}[/{style}]")


async def main_menu(connected: bool) -> str:
    """Show the main menu and return the chosen action."""
    clear_screen()
    print_header("SHAKA", "Find the numbers in order")
    console.print()

    if connected:
        choices = [
            {"name": "Create Room", "value": "create"},
            {"name": "Join Room", "value": "join"},
            {"name": "Quit", "value": "quit"},
        ]
    else:
        print_status(ConnectionStatus.DISCONNECTED)
        choices = [
            {"name": "Reconnect", "value": "reconnect"},
            {"name": "Quit", "value": "quit"},
        ]

    result = await questionary.select(
        "Choose an option:",
        choices=[c["name"] for c in choices],
        use_indicator=True,
        use_shortcuts=False,
    ).ask_async()

    # Map selection back to value
    for c in choices:
        if c["name"] == result:
            return c["value"]
    return "quit"


async def ask_name() -> str:
    name = await questionary.text("Your name:").ask_async()
    return (name or "").strip()


async def ask_room_code() -> str:
    code = await questionary.text("Room code:").ask_async()
    return (code or "").strip().upper()


async def lobby_action(state: ClientState) -> str:
    """Get a lobby action using a questionary menu."""
    player = state.local_player
    is_ready = player.is_ready if player else False

    choices = [
        {"name": "Not Ready" if is_ready else "Ready", "value": "unready" if is_ready else "ready"},
    ]
    if state.is_host:
        choices.append({"name": "Start Game", "value": "start"})
    choices.append({"name": "Refresh", "value": "refresh"})
    choices.append({"name": "Leave Room", "value": "leave"})

    result = await questionary.select(
        "Lobby:",
        choices=[c["name"] for c in choices],
        use_indicator=True,
    ).ask_async()

    for c in choices:
        if c["name"] == result:
            return c["value"]
    return "refresh"


def print_lobby(state: ClientState):
    """Print lobby screen."""
    clear_screen()
    print_header(f"Room {state.room_code}", "Share the code. Everyone must be ready to start.")

    # Player table
    table = Table(title="Players", box=box.ROUNDED)
    table.add_column("Player", style="cyan")
    table.add_column("Status", justify="center")

    for player in state.players.values():
        status = "[green]Ready[/green]" if player.is_ready else "[yellow]Not Ready[/yellow]"
        name = Text(player.name, style=player.color)
        if player.is_host:
            name.append(" ★", style="yellow")
        if player.player_id == state.player_id:
            name.append(" (you)", style="dim")
        table.add_row(name, status)

    console.print(table)
    console.print()


def _cell_text(state: ClientState, position: int) -> Text:
    cell = state.game_state.board.cell_at(position)
    owners = {p.index: p for p in state.players.values()}

    style = ""
    if cell.marker == CellMarker.FOUND and cell.owner in owners:
        style = f"bold white on {owners[cell.owner].color}"
    elif cell.marker == CellMarker.STOLEN:
        style = "strike red"

    label = f"{cell.label:>3}"
    here = [p for p in state.players.values() if p.position == position]
    if here:
        marker_style = f"bold reverse {here[0].color}"
        return Text(f"[{label}]", style=marker_style)
    return Text(f" {label} ", style=style)


def render_board(state: ClientState):
    """Print the 10x10 board with markers and player positions."""
    if state.game_state is None:
        return
    table = Table(box=box.SIMPLE, show_header=False, padding=0)
    for _ in range(ROW_LENGTH):
        table.add_column(justify="center")

    for row in range(ROW_LENGTH):
        table.add_row(*[_cell_text(state, row * ROW_LENGTH + col + 1) for col in range(ROW_LENGTH)])
    console.print(table)


def render_scores(state: ClientState):
    """Print current standings."""
    table = Table(title=f"Find: {state.current_target}", box=box.ROUNDED)
    table.add_column("Player", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Power", justify="right")
    table.add_column("Saved", justify="right")
    table.add_column("Recovered", justify="right")

    for player in state.get_standings():
        name = Text(player.name, style=player.color)
        if player.player_id == state.player_id:
            name.append(" (you)", style="dim")
        table.add_row(
            name, str(player.score), str(player.power),
            str(player.saved_count), str(player.stolen_count),
        )
    console.print(table)


def print_controls(controls: Dict[str, str]):
    print_info(
        f"Move {controls.get('up')}/{controls.get('left')}/{controls.get('down')}/{controls.get('right')}, "
        f"confirm {controls.get('confirm')}, q to leave. Type keys then Enter."
    )


def print_game_over(state: ClientState):
    """Print the final standings."""
    winner = state.get_player(state.winner) if state.winner else None
    title = f"{winner.name} wins!" if winner else "Game over"
    reason = (state.end_reason or "").replace("_", " ")
    print_header(title, reason)
    render_scores(state)


class ConsolePresenter(Presenter):
    """Renders client notifications with rich."""

    def __init__(self, controls: Optional[Dict[str, str]] = None):
        self.controls = controls or {}
        self._state: Optional[ClientState] = None

    def _render_game(self, state: ClientState):
        clear_screen()
        print_header(f"Room {state.room_code}")
        render_board(state)
        render_scores(state)
        print_controls(self.controls)

    def on_state_changed(self, state: ClientState) -> None:
        # Lobby screens are drawn by the menu loop so prompts are not torn
        if state.phase == ClientPhase.PLAYING:
            self._state = state
            self._render_game(state)

    def on_predicted_move(self, player: Player, position: int) -> None:
        if self._state is not None:
            self._render_game(self._state)

    def on_found(self, label: int, player: Optional[Player]) -> None:
        who = player.name if player else "Someone"
        console.print(f"[bold green]✔ {who} found {label}![/bold green]")

    def on_countdown(self, steps: List[Any], interval: float) -> None:
        console.print(f"[bold yellow]Starting: {' '.join(str(s) for s in steps)}[/bold yellow]")

    def on_game_over(self, state: ClientState) -> None:
        clear_screen()
        print_game_over(state)

    def on_room_left(self, room_code: Optional[str]) -> None:
        print_info(f"Left room {room_code}")

    def on_error(self, error: Dict[str, Any]) -> None:
        print_error(f"{error.get('code')}: {error.get('message')}")

    def on_status(self, status: ConnectionStatus) -> None:
        print_status(status)
