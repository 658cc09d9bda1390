"""
Woven City - Panel Rendering
Status displays for the CLI, built from frozen city snapshots
"""
from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..state.schema import CityMood
from ..state.snapshots import CitySnapshot

MOOD_COLORS = {
    CityMood.AWAKENING: "cyan",
    CityMood.WAITING: "yellow",
    CityMood.ANXIOUS: "red",
    CityMood.CONTENT: "green",
    CityMood.FORGOTTEN: "dim",
    CityMood.TRANSCENDENT: "magenta",
}

PANEL_STYLE = dict(style="on #001100", border_style="blue", padding=(0, 1))


def render_status_panel(snapshot: CitySnapshot) -> Panel:
    """
    One-line status bar:
    - City name
    - Mood
    - Progress and attention
    - Thread count
    """
    color = MOOD_COLORS.get(snapshot.mood, "white")
    parts = [
        f"[bold cyan]{snapshot.name}[/bold cyan]",
        f"[dim]{snapshot.id}[/dim]",
        f"Mood: [{color}]{snapshot.mood.value.upper()}[/{color}]",
        f"Progress: {snapshot.progress:.0%}",
        f"Attention: {snapshot.attention_level:.0%}",
        f"Threads: {len(snapshot.threads)}",
    ]
    if snapshot.is_running:
        parts.append("[bold green]RUNNING[/bold green]")

    return Panel(Text.from_markup(" │ ".join(parts)), **PANEL_STYLE)


def render_resource_panel(snapshot: CitySnapshot) -> Panel:
    """Resource bars, one row per resource."""
    table = Table.grid(padding=(0, 2))
    table.add_column(justify="left", width=12)
    table.add_column(justify="left", width=12)
    table.add_column(justify="right")

    for name, value in snapshot.resources:
        table.add_row(f"[cyan]{name.capitalize()}[/cyan]", create_resource_bar(value), f"{value:.0%}")

    return Panel(table, title="[bold]CONSCIOUSNESS[/bold]", title_align="left", **PANEL_STYLE)


def render_threads_panel(snapshot: CitySnapshot, limit: int = 9) -> Panel:
    """Woven threads with their integration into the fabric."""
    if not snapshot.threads:
        return Panel(
            Text.from_markup("[dim]No threads woven yet[/dim]"),
            title="[bold]THREADS[/bold]",
            title_align="left",
            **PANEL_STYLE,
        )

    table = Table.grid(padding=(0, 2))
    table.add_column(justify="left", width=14)
    table.add_column(justify="left", width=12)
    table.add_column(justify="left")

    for thread in snapshot.threads[:limit]:
        synergy_color = "green" if thread.average_synergy >= 0.5 else "white" if thread.average_synergy >= 0 else "red"
        table.add_row(
            f"[cyan]{thread.display_name}[/cyan]",
            create_resource_bar(thread.integration_level),
            f"[{synergy_color}]synergy {thread.average_synergy:+.2f}[/{synergy_color}]",
        )

    hidden = len(snapshot.threads) - limit
    title = "[bold]THREADS[/bold]" if hidden <= 0 else f"[bold]THREADS[/bold] [dim](+{hidden} more)[/dim]"
    return Panel(table, title=title, title_align="left", **PANEL_STYLE)


def render_log_panel(snapshot: CitySnapshot) -> Panel:
    """Most recent log lines, plus emergent perceptions when there are any."""
    body = Text()
    for line in snapshot.recent_log:
        body.append(line + "\n")
    if not snapshot.recent_log:
        body.append("The log is empty.", style="dim")

    if snapshot.emergent_properties:
        body.append("\nEmerged: ", style="bold magenta")
        body.append(", ".join(snapshot.emergent_properties))
    if snapshot.pending_thoughts:
        body.append("\nThoughts waiting: ", style="bold yellow")
        body.append(", ".join(snapshot.pending_thoughts))

    return Panel(body, title="[bold]LOG[/bold]", title_align="left", **PANEL_STYLE)


def render_dashboard(snapshot: CitySnapshot) -> Group:
    return Group(
        render_status_panel(snapshot),
        render_resource_panel(snapshot),
        render_threads_panel(snapshot),
        render_log_panel(snapshot),
    )


# --- Helper Functions ---

def create_resource_bar(value: float, width: int = 10) -> str:
    """
    Visual bar for a value in [0, 1]
    """
    filled_count = max(0, min(width, int(round(value * width))))
    filled = "▰" * filled_count
    empty = "▱" * (width - filled_count)

    if value >= 0.7:
        color = "green"
    elif value >= 0.3:
        color = "white"
    else:
        color = "red"

    return f"[{color}]{filled}{empty}[/{color}]"
