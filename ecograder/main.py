"""
EcoGrader CLI Application.

Grades a student answer against an assignment with the oracle pipeline,
and previews level progression and the badge catalog.
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from ecograder.attachments import ExtractionError, extract_text
from ecograder.config import get_settings
from ecograder.grading import GradingEngine, InsufficientContentError, LLMError
from ecograder.logging_setup import setup_logging
from ecograder.models import Assignment, GradingOutcome, ProgressionState
from ecograder.progression import BADGE_CATALOG, apply_xp_gain, xp_threshold

app = typer.Typer(
    name="ecograder",
    help="AI grading and XP progression for the eco learning platform",
    add_completion=False,
)

console = Console()

RARITY_STYLES = {"common": "white", "rare": "cyan", "epic": "magenta", "legendary": "yellow"}


@app.callback()
def main(
    verbose: Annotated[
        bool, typer.Option("--verbose", "-v", help="Log debug output to stderr")
    ] = False,
) -> None:
    setup_logging("DEBUG" if verbose else "WARNING")


def _load_assignment(path: Path) -> Assignment:
    try:
        return Assignment.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except json.JSONDecodeError as e:
        console.print(f"[red]Error:[/red] {path} is not valid JSON: {e}")
        raise typer.Exit(1)
    except ValidationError as e:
        console.print(f"[red]Invalid assignment:[/red]\n{escape(str(e))}")
        raise typer.Exit(1)


@app.command()
def grade(
    assignment_file: Annotated[
        Path, typer.Argument(help="JSON file with the assignment (title, key_points, ...)")
    ],
    answer_file: Annotated[
        Path, typer.Argument(help="Student answer (.txt, .md, .pdf or .docx)")
    ],
    as_json: Annotated[
        bool, typer.Option("--json", help="Print the full outcome as JSON")
    ] = False,
) -> None:
    """
    Grade a student answer against an assignment.

    Runs the four oracle checks, applies the scoring rules and prints the
    grade, sub-scores, flags and student feedback.
    """
    if not assignment_file.exists():
        console.print(f"[red]Error:[/red] Assignment file not found: {assignment_file}")
        raise typer.Exit(1)

    assignment = _load_assignment(assignment_file)

    try:
        answer = extract_text(answer_file)
        engine = GradingEngine(get_settings())

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
            transient=True,
        ) as progress:
            progress.add_task("Grading... (four oracle checks)", total=None)
            outcome = engine.grade(answer.content, assignment)

    except ExtractionError as e:
        console.print(f"[red]Extraction Error:[/red] {e}")
        raise typer.Exit(1)
    except InsufficientContentError as e:
        console.print(f"[yellow]Not graded:[/yellow] {e}")
        raise typer.Exit(1)
    except LLMError as e:
        console.print(f"[red]LLM Error:[/red] {e}")
        raise typer.Exit(1)

    if as_json:
        console.print_json(outcome.model_dump_json())
    else:
        _display_outcome(outcome)

    if not outcome.success:
        raise typer.Exit(1)


@app.command()
def progress(
    gain: Annotated[int, typer.Argument(help="XP to add", min=0)],
    level: Annotated[int, typer.Option("--level", "-l", help="Starting level", min=1)] = 1,
    xp: Annotated[int, typer.Option("--xp", help="Starting XP within the level", min=0)] = 0,
) -> None:
    """Preview the level, XP and badges after an XP gain."""
    state = ProgressionState(current_xp=xp, level=level, next_level_xp=xp_threshold(level))
    result = apply_xp_gain(state, gain)
    after = result.state

    console.print(
        Panel(
            f"Level [bold]{level}[/bold] → [bold green]{after.level}[/bold green]\n"
            f"XP: {after.current_xp} / {after.next_level_xp}",
            title="Level Up!" if result.leveled_up else "Progress",
        )
    )
    for badge in result.newly_earned_badges:
        console.print(f"  {badge.icon} [bold]{badge.name}[/bold] (level {badge.level})")


@app.command()
def badges() -> None:
    """List the level badges."""
    table = Table(title="Level Badges")
    table.add_column("Level", justify="right")
    table.add_column("Badge")
    table.add_column("Rarity")
    table.add_column("Description")

    for level, badge in sorted(BADGE_CATALOG.items()):
        style = RARITY_STYLES.get(badge.rarity.value, "white")
        table.add_row(
            str(level),
            f"{badge.icon} {badge.name}",
            f"[{style}]{badge.rarity.value}[/{style}]",
            badge.description,
        )

    console.print(table)


@app.command()
def health() -> None:
    """
    Check if the grading system is operational.

    Verifies configuration and oracle connectivity.
    """
    try:
        settings = get_settings()
    except ValidationError as e:
        console.print(f"[red]Configuration error:[/red]\n{escape(str(e))}")
        raise typer.Exit(1)

    console.print("[bold]EcoGrader Health Check[/bold]\n")
    console.print(f"  API Base URL: {settings.gemini_base_url}")
    console.print(f"  Model: {settings.gemini_model}")
    console.print(f"  Rate limit: {settings.oracle_requests_per_second:g} req/s")
    console.print(f"  Job store: {'redis' if settings.redis_url else 'in-memory'}")

    console.print("\n[dim]Checking API connectivity...[/dim]")
    if GradingEngine(settings).health_check():
        console.print("[green]✓ API is reachable[/green]")
    else:
        console.print("[red]✗ API is not reachable[/red]")
        raise typer.Exit(1)


def _display_outcome(outcome: GradingOutcome) -> None:
    """Display a grading outcome."""
    if not outcome.success:
        console.print(
            Panel(
                f"[red]{escape(outcome.error or '')}[/red]",
                title="Grading failed - needs teacher review",
            )
        )
        return

    overall = outcome.ai_grading.scores.overall if outcome.ai_grading.scores else 0
    color = "green" if overall >= 70 else "yellow" if overall >= 50 else "red"
    console.print(
        Panel(
            f"[{color}][bold]{outcome.grade}[/bold]  {outcome.score} / {outcome.max_points}[/{color}]"
            f"  (confidence {outcome.ai_grading.confidence}%)",
            title="Result",
        )
    )

    scores = outcome.ai_grading.scores
    if scores:
        table = Table(title="Sub-scores")
        table.add_column("Check", style="cyan")
        table.add_column("Score", justify="right")
        table.add_row("Accuracy", f"{scores.content_accuracy:g}")
        table.add_row("Relevance", f"{scores.relevance:g}")
        table.add_row("Quality", f"{scores.quality:g}")
        table.add_row("Originality", f"{scores.uniqueness:g}")
        table.add_row("[bold]Overall[/bold]", f"[bold]{scores.overall}[/bold]")
        console.print(table)

    for flag in outcome.ai_grading.flags:
        console.print(f"[yellow]⚠ {flag.type.value} ({flag.severity.value}):[/yellow] {flag.message}")

    console.print(Panel(escape(outcome.feedback), title="Feedback"))


if __name__ == "__main__":
    app()
