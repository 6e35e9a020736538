"""
studyengine CLI - inspect queues and apply reviews to item files.

Usage:
    studyengine queue items.json                 # Standard session of 20
    studyengine queue items.json -m exam -n 30   # Exam cram session
    studyengine review items.json q-12 --correct --eval 2 --time 34
    studyengine settings                         # Effective settings
"""

from __future__ import annotations

import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Annotated

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import Settings, get_settings
from studyengine.core.exceptions import StudyEngineError
from studyengine.core.models import Flashcard, Question, StudyItem
from studyengine.core.serialization import dump_items, load_items
from studyengine.study.content_gate import DefaultContentGate, DisciplineFlags
from studyengine.study.queue_builder import QueueBuilderParams, QueueFilters, build_study_queue
from studyengine.study.review_service import ReviewService
from studyengine.study.timing_classifier import TimingScopeRegistry

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="studyengine",
    help="Adaptive review scheduling for questions and flashcards",
    add_completion=False,
    rich_markup_mode="rich",
)

console = Console()


@app.callback()
def main_callback(
    log_level: Annotated[
        str | None, typer.Option("--log-level", help="loguru level (default from settings)")
    ] = None,
) -> None:
    """Configure logging for every command."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=(log_level or get_settings().log_level).upper(),
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


def _label(item: StudyItem, width: int = 45) -> str:
    if isinstance(item, Question):
        text = item.question_text
    elif isinstance(item, Flashcard):
        text = item.front
    else:
        text = item.id
    text = " ".join(text.split())
    return text[:width] + "..." if len(text) > width else text


def _load(path: Path) -> list[StudyItem]:
    if not path.exists():
        console.print(f"[red]File not found: {path}[/]")
        raise typer.Exit(1)
    try:
        return load_items(path)
    except (json.JSONDecodeError, ValueError) as e:
        console.print(f"[red]Could not load items from {path}: {e}[/]")
        raise typer.Exit(1) from e


def _load_timing_state(path: Path | None, settings: Settings) -> TimingScopeRegistry:
    if path is None or not path.exists():
        return TimingScopeRegistry(settings)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Could not read timing state from {path}: {e}[/]")
        raise typer.Exit(1) from e
    return TimingScopeRegistry.from_snapshot(data, settings)


# =============================================================================
# Commands
# =============================================================================


@app.command("queue")
def show_queue(
    items_file: Annotated[Path, typer.Argument(help="JSON file with questions/flashcards")],
    mode: Annotated[str, typer.Option("--mode", "-m", help="standard, exam or critical")] = "standard",
    size: Annotated[int | None, typer.Option("--size", "-n", help="Session size")] = None,
    subject: Annotated[
        list[str] | None, typer.Option("--subject", "-s", help="Only these subjects (repeatable)")
    ] = None,
    frozen: Annotated[
        list[str] | None, typer.Option("--frozen", help="Frozen subjects to exclude (repeatable)")
    ] = None,
    allow_early: Annotated[
        bool, typer.Option("--allow-early", help="Ignore the early-review lock")
    ] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Show R and priorities")] = False,
) -> None:
    """
    Build a study queue and print it without changing anything.

    Examples:
        studyengine queue items.json
        studyengine queue items.json -m critical -n 10 -v
    """
    items = _load(items_file)
    gate = DefaultContentGate(DisciplineFlags.from_names(frozen or []))

    try:
        result = build_study_queue(
            QueueBuilderParams(
                mode=mode,
                items=items,
                filters=QueueFilters(subjects=subject or []),
                session_size=size,
                allow_early_items=allow_early,
                content_gate=gate,
            )
        )
    except StudyEngineError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1) from e

    table = Table(title=f"{result.kpis.mode.value.title()} queue ({len(result.queue)} items)")
    table.add_column("#", style="dim", width=3)
    table.add_column("Id", style="cyan")
    table.add_column("Subject", style="yellow")
    table.add_column("Reason", width=6)
    table.add_column("D", justify="right", width=5)
    table.add_column("Item", style="white")
    if verbose:
        table.add_column("R", justify="right", width=5)
        table.add_column("P spaced", justify="right", width=8)
        table.add_column("P exam", justify="right", width=8)

    for i, m in enumerate(result.queue):
        row = [
            str(i + 1),
            m.item.id,
            m.item.subject_key,
            m.due_reason.value if m.due_reason else "-",
            f"{m.d:.0f}",
            _label(m.item),
        ]
        if verbose:
            row.extend([f"{m.r_now:.2f}", f"{m.priority_spaced:.2f}", f"{m.priority_exam:.2f}"])
        table.add_row(*row)

    console.print(table)

    mix = result.kpis.mix
    preview = result.kpis.kpi_preview
    console.print(
        Panel(
            f"Due: {mix.due}  (near due: {mix.near_due})\n"
            f"New: {mix.new}  ({preview.pct_new:.0f}%)\n"
            f"Critical: {mix.critical}\n"
            f"Domain mean/median: {preview.mean_d:.1f} / {preview.median_d:.1f}\n"
            f"Mean priority: {preview.mean_priority:.2f}",
            title="Session KPIs",
            border_style="cyan",
        )
    )


@app.command("review")
def apply_review(
    items_file: Annotated[Path, typer.Argument(help="JSON file with questions/flashcards")],
    item_id: Annotated[str, typer.Argument(help="Id of the reviewed item")],
    correct: Annotated[bool, typer.Option("--correct/--wrong", help="Outcome of the attempt")] = True,
    eval_level: Annotated[
        int, typer.Option("--eval", "-e", min=0, max=3, help="0 again, 1 hard, 2 good, 3 easy")
    ] = 2,
    elapsed: Annotated[
        float | None, typer.Option("--time", "-t", help="Response time in seconds (default: target)")
    ] = None,
    target: Annotated[
        float | None, typer.Option("--target", help="Expected response time in seconds")
    ] = None,
    timing_state: Annotated[
        Path | None, typer.Option("--timing-state", help="JSON file holding response-time statistics")
    ] = None,
    out: Annotated[
        Path | None, typer.Option("--out", "-o", help="Write the updated collection here")
    ] = None,
) -> None:
    """
    Apply one review to one item and print the new SRS state.

    Pass --timing-state to keep response-time statistics between runs;
    without it every review is classified against the target alone.

    Examples:
        studyengine review items.json q-1 --wrong -e 0 -t 12
        studyengine review items.json q-1 --correct -t 40 --timing-state timing.json -o items.json
    """
    settings = get_settings()
    items = _load(items_file)
    index = next((i for i, item in enumerate(items) if item.id == item_id), None)
    if index is None:
        console.print(f"[red]No item with id {item_id}[/]")
        raise typer.Exit(1)

    registry = _load_timing_state(timing_state, settings)
    target_sec = target or settings.target_sec_default
    elapsed_sec = elapsed if elapsed is not None else target_sec

    try:
        outcome = ReviewService(settings, registry).record_review(
            items[index], correct, eval_level, elapsed_sec, target_sec=target_sec
        )
    except StudyEngineError as e:
        console.print(f"[red]{e}[/]")
        raise typer.Exit(1) from e

    if timing_state is not None:
        timing_state.write_text(json.dumps(registry.snapshot(), indent=2), encoding="utf-8")

    patch = outcome.patch
    band = "in band" if outcome.verdict.within_band else "off band"
    table = Table(title=f"Review of {item_id}")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("Timing", f"{outcome.timing_class.value} ({band}, x{outcome.verdict.ratio:.2f})")
    table.add_row("Stability (days)", f"{patch.stability:.2f}")
    table.add_row("Mastery", f"{patch.mastery_score:.1f}")
    table.add_row("Interval (days)", f"{patch.interval_days:.2f}")
    table.add_row("Next review", _fmt(patch.next_review_date))
    table.add_row("Streak / lapses", f"{patch.correct_streak} / {patch.lapses}")
    if outcome.micro_schedule:
        table.add_row("Micro-spacing", ", ".join(_fmt(ts) for ts in outcome.micro_schedule))
    console.print(table)

    if out is not None:
        items[index] = outcome.item
        dump_items(items, out)
        console.print(f"[green]Saved {len(items)} items to {out}[/]")


@app.command("settings")
def show_settings() -> None:
    """Print the effective engine settings as JSON."""
    console.print_json(get_settings().model_dump_json())


def _fmt(ts: datetime) -> str:
    return ts.strftime("%Y-%m-%d %H:%M")


def run() -> None:
    """Entry point for console_scripts."""
    app()


if __name__ == "__main__":
    run()
