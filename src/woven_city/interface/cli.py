"""
Command-line entry point.

    woven-city run [CITY] [--name NAME] [--weave transit housing ...]
    woven-city status CITY
    woven-city list
    woven-city validate [CONTENT_DIR]
"""

import argparse
import asyncio
import logging
import random
import signal
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..config import load_config, validate_config
from ..content.loader import ContentError, load_builtin_content, load_content_dir
from ..state.manager import CityManager
from ..state.schema import ThreadType
from ..state.snapshots import snapshot_city
from .panels import render_dashboard

logger = logging.getLogger(__name__)
console = Console()


def _load_content(path: str | None):
    if path:
        return load_content_dir(Path(path))
    return load_builtin_content()


def _build_manager(args) -> CityManager:
    config = load_config(args.config)
    if args.ticks is not None:
        config.simulation.max_ticks = args.ticks
    if args.delay is not None:
        config.simulation.tick_delay = args.delay

    return CityManager(
        store=Path(args.dir),
        content=_load_content(args.content),
        config=config,
        rng=random.Random(args.seed),
    )


async def _run(manager: CityManager) -> None:
    cancel = asyncio.Event()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, cancel.set)
    except (NotImplementedError, RuntimeError):
        # Windows event loops: Ctrl+C falls through as KeyboardInterrupt
        pass

    result = await manager.run_simulation(cancel)
    if not result.started:
        console.print("[yellow]City is already running.[/yellow]")
        return

    state = "cancelled" if result.cancelled else "finished"
    console.print(f"[dim]Run {state} after {result.ticks} ticks.[/dim]")


def cmd_run(args) -> int:
    manager = _build_manager(args)

    if args.city:
        city = manager.load_city(args.city)
        if city is None:
            console.print(f"[red]No city matching {args.city!r}[/red]")
            return 1
    else:
        city = manager.create_city(args.name)
        console.print(f"Created [bold cyan]{city.name}[/bold cyan] ({city.id})")

    for category in args.weave or []:
        thread, line = manager.weave_thread(ThreadType(category))
        console.print(f"Wove [cyan]{thread.display_name}[/cyan]" + (f": {line}" if line else ""))

    asyncio.run(_run(manager))
    console.print(render_dashboard(snapshot_city(city)))
    return 0


def cmd_status(args) -> int:
    manager = CityManager(store=Path(args.dir))
    city = manager.load_city(args.city)
    if city is None:
        console.print(f"[red]No city matching {args.city!r}[/red]")
        return 1
    console.print(render_dashboard(snapshot_city(city, log_tail=args.lines)))
    return 0


def cmd_list(args) -> int:
    manager = CityManager(store=Path(args.dir))
    cities = manager.list_cities()
    if not cities:
        console.print("[dim]No cities yet. Use 'woven-city run --name NAME' to create one.[/dim]")
        return 0

    table = Table(title="Cities")
    table.add_column("#", justify="right")
    table.add_column("ID")
    table.add_column("Name", style="cyan")
    table.add_column("Mood")
    table.add_column("Progress", justify="right")
    table.add_column("Threads", justify="right")
    table.add_column("Created")

    for i, city in enumerate(cities, 1):
        table.add_row(
            str(i),
            city["id"],
            city["name"],
            city["mood"],
            f"{city['progress']:.0%}",
            str(city["threads"]),
            city["display_time"],
        )
    console.print(table)
    return 0


def cmd_validate(args) -> int:
    try:
        library = _load_content(args.content_dir)
    except ContentError as e:
        console.print(f"[red]Invalid content:[/red] {e}")
        return 1

    issues = library.validate()
    if args.config:
        issues += validate_config(load_config(args.config))

    console.print(
        f"{len(library.emergence_rules)} emergence rules, {len(library.story_beats)} story beats, "
        f"{len(library.moments)} moments, {len(library.dialogue.speakers)} dialogue speakers"
    )
    for issue in issues:
        console.print(f"[yellow]- {issue}[/yellow]")
    return 1 if issues else 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="woven-city", description="Woven City - idle city consciousness")
    parser.add_argument("--dir", "-d", default="cities", help="Directory holding city saves")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a simulation (new city unless CITY is given)")
    run.add_argument("city", nargs="?", help="City id, id prefix, or list index")
    run.add_argument("--name", default="New City", help="Name for a new city")
    run.add_argument("--weave", nargs="*", choices=[t.value for t in ThreadType], help="Threads to weave first")
    run.add_argument("--content", help="Content directory (defaults to built-in content)")
    run.add_argument("--config", help="Balance config file (JSON or YAML)")
    run.add_argument("--ticks", type=int, help="Override the tick limit")
    run.add_argument("--delay", type=float, help="Override seconds between ticks")
    run.add_argument("--seed", type=int, help="Random seed")
    run.set_defaults(func=cmd_run)

    status = sub.add_parser("status", help="Show a city's dashboard")
    status.add_argument("city")
    status.add_argument("--lines", type=int, default=10, help="Log lines to show")
    status.set_defaults(func=cmd_status)

    lst = sub.add_parser("list", help="List cities")
    lst.set_defaults(func=cmd_list)

    validate = sub.add_parser("validate", help="Validate a content directory")
    validate.add_argument("content_dir", nargs="?", help="Defaults to built-in content")
    validate.add_argument("--config", help="Also check a balance config file")
    validate.set_defaults(func=cmd_validate)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    )

    try:
        return args.func(args)
    except ContentError as e:
        logger.error(f"Content error: {e}")
        return 1
    except KeyboardInterrupt:
        console.print("[dim]Interrupted.[/dim]")
        return 130
