#!/usr/bin/env python3
"""
Readiness engine CLI.

Scores one day from an exported JSON snapshot of provider data.

Usage:
    readiness score export.json                 # score today
    readiness score export.json --date 2024-03-12
    readiness score export.json --json          # machine-readable output
    readiness brief export.json                 # brief-generation payload

Export format (all keys optional):
    {
      "activities": {"intervals": [...], "strava": [...]},
      "workouts": [...],
      "samples": {"hrv": [{"timestamp": "...", "value": 52.0}], ...},
      "sleep": {"2024-03-12": {"asleepSeconds": 27000, ...}},
      "records": [DailyRecord, ...]
    }
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .config import get_settings
from .context import AppContext
from .db.daily_records import InMemoryDailyRecordStore
from .exceptions import ReadinessError
from .integrations.memory import InMemoryHealthStore, StaticActivityProvider
from .models.activity import Activity, Provider
from .models.records import DailyRecord
from .services.daily_scores import DailyScores, build_brief_request
from .utils.log_sanitizer import install_log_sanitizer

console = Console()


def get_band_color(band: Optional[str]) -> str:
    """Get rich color for a score band."""
    colors = {
        "optimal": "green",
        "good": "green",
        "fair": "yellow",
        "low": "red",
    }
    return colors.get(band or "", "white")


def get_stress_color(level: str) -> str:
    colors = {
        "low": "green",
        "moderate": "yellow",
        "elevated": "yellow",
        "high": "red",
    }
    return colors.get(level, "white")


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    install_log_sanitizer()


def load_export(path: Path) -> Dict[str, Any]:
    with path.open(encoding="utf-8") as f:
        return json.load(f)


def build_context(data: Dict[str, Any], today: date) -> AppContext:
    """Wire an AppContext over the in-memory sources described by ``data``."""
    activities = data.get("activities", {})

    def provider(p: Provider) -> StaticActivityProvider:
        return StaticActivityProvider(
            p,
            [Activity.model_validate({"provider": p.value, **a}) for a in activities.get(p.value, [])],
        )

    store = InMemoryDailyRecordStore()
    for record in data.get("records", []):
        store.upsert(DailyRecord.model_validate(record))

    return AppContext.build(
        settings=get_settings(),
        intervals=provider(Provider.INTERVALS),
        strava=provider(Provider.STRAVA),
        health_store=InMemoryHealthStore.from_export(data),
        store=store,
        today=lambda: today,
    )


def render_scores(scores: DailyScores) -> None:
    console.print()
    console.print(Panel(f"[bold]Readiness - {scores.date.isoformat()}[/bold]"))
    console.print()

    table = Table(title="Scores", box=box.ROUNDED)
    table.add_column("Score", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Band")
    table.add_column("Components", style="dim")

    for name, score in (("Recovery", scores.recovery), ("Sleep", scores.sleep)):
        if score is None:
            table.add_row(name, "-", "no data", "")
            continue
        color = get_band_color(score.band.value)
        parts = ", ".join(f"{k} {v}" for k, v in score.sub_scores.items())
        table.add_row(name, f"[{color}]{score.value}[/{color}]", score.band.value, parts)

    if scores.stress is not None:
        stress = scores.stress
        color = get_stress_color(stress.level.value)
        parts = ", ".join(f"{k} {v:.1f}" for k, v in stress.contributions.items())
        table.add_row(
            "Stress",
            f"[{color}]{stress.acute}[/{color}]",
            f"{stress.level.value} (7d {stress.chronic})",
            parts,
        )
    else:
        table.add_row("Stress", "-", "no data", "")
    console.print(table)

    load = scores.training_load
    load_table = Table(title="Training Load", box=box.ROUNDED)
    load_table.add_column("CTL", justify="right")
    load_table.add_column("ATL", justify="right")
    load_table.add_column("TSB", justify="right")
    load_table.add_column("Source")
    source = load.source + (" (low confidence)" if load.low_confidence else "")
    load_table.add_row(f"{load.ctl:.1f}", f"{load.atl:.1f}", f"{load.tsb:+.1f}", source)
    console.print(load_table)

    if scores.alert is not None and scores.alert.triggered:
        console.print(
            f"[red]Stress alert:[/red] acute {scores.alert.acute} is above your "
            f"threshold of {scores.alert.threshold}"
        )
    if scores.illness is not None:
        console.print(
            f"[yellow]Body stress indicator ({scores.illness.severity.value}, "
            f"{scores.illness.confidence:.0%}):[/yellow] {scores.illness.recommendation}"
        )
    if scores.unavailable_sources:
        console.print(f"[dim]Unavailable sources: {', '.join(scores.unavailable_sources)}[/dim]")
    console.print()


async def run_score(data: Dict[str, Any], day: date) -> Optional[DailyScores]:
    async with build_context(data, day) as context:
        return await context.daily_scores.calculate(day, force=True)


def cmd_score(args) -> int:
    """Score a day and print the result."""
    scores = asyncio.run(run_score(load_export(args.export), args.date))
    if scores is None:
        console.print("[yellow]No scores produced.[/yellow]")
        return 1

    if args.json:
        print(json.dumps(scores.to_dict(), indent=2, default=str))
    else:
        render_scores(scores)
    return 0


def cmd_brief(args) -> int:
    """Print the payload for the brief-generation service."""
    scores = asyncio.run(run_score(load_export(args.export), args.date))
    if scores is None:
        console.print("[yellow]No scores produced.[/yellow]")
        return 1
    print(build_brief_request(scores).model_dump_json(indent=2, by_alias=True))
    return 0


def main(argv=None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="readiness",
        description="Readiness engine - recovery, sleep and stress scoring",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  readiness score export.json
  readiness score export.json --date 2024-03-12 --json
  readiness brief export.json
        """,
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    for name, help_text in (("score", "Score one day"), ("brief", "Print the brief request payload")):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("export", type=Path, help="Exported JSON snapshot")
        sub.add_argument(
            "--date",
            type=date.fromisoformat,
            default=date.today(),
            help="Day to score (YYYY-MM-DD, default today)",
        )
        if name == "score":
            sub.add_argument("--json", action="store_true", help="Print JSON instead of tables")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return 1

    setup_logging("DEBUG" if args.verbose else get_settings().log_level)

    commands = {
        "score": cmd_score,
        "brief": cmd_brief,
    }
    try:
        return commands[args.command](args)
    except FileNotFoundError as e:
        console.print(f"[red]Export not found: {e.filename}[/red]")
        return 1
    except json.JSONDecodeError as e:
        console.print(f"[red]Export is not valid JSON: {e}[/red]")
        return 1
    except ReadinessError as e:
        console.print(f"[red]{e.message}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
