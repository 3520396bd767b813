"""
learncore: command line front end for the adaptive learning core.

Commands:
- learncore chunk       - Index a document and show span statistics
- learncore retrieve    - Print grounding context for a query
- learncore extract     - Recover JSON from raw generated text
- learncore add         - Register new flashcards
- learncore review      - Record a flashcard review (SM-2)
- learncore due         - Show due flashcards and deck summary
- learncore loop ...    - Drive a mastery loop (start/advance/status/exit/history)
- learncore weak ...    - Record quiz answers and list weak topics (record/list/clear)

State is kept as JSON files under the configured state directory.
"""
from __future__ import annotations

import json
import sys
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Iterator, Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from learncore.adaptive import (
    LoopPhase,
    MasteryLoopEngine,
    MasteryLoopSession,
    QuizResult,
    Trend,
    WeakPointTracker,
)
from learncore.config import get_settings
from learncore.core.exceptions import LearnCoreError, MalformedGeneratedOutput
from learncore.delivery import (
    CardStatus,
    JsonFileStore,
    RetentionState,
    SM2Scheduler,
    StateStore,
    due_cards,
    summarize_deck,
)
from learncore.generation import extract_structured
from learncore.processing import Document, build_index, retrieve as retrieve_context


# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="learncore",
    help="Adaptive learning core: retrieval, spaced repetition and mastery loops",
    no_args_is_help=True,
)
loop_app = typer.Typer(help="Mastery loop remediation sessions", no_args_is_help=True)
app.add_typer(loop_app, name="loop")
weak_app = typer.Typer(help="Per-topic quiz performance and weak points", no_args_is_help=True)
app.add_typer(weak_app, name="weak")

console = Console()


# =============================================================================
# Styling
# =============================================================================

STYLES = {
    "status": {
        CardStatus.NEW: "blue",
        CardStatus.LEARNING: "yellow",
        CardStatus.REVIEW: "cyan",
        CardStatus.MASTERED: "green",
    },
    "phase": {
        LoopPhase.ASSESS_INITIAL: "magenta",
        LoopPhase.CONTENT_PRIMARY: "cyan",
        LoopPhase.CONTENT_SECONDARY: "cyan",
        LoopPhase.ASSESS_FINAL: "magenta",
        LoopPhase.MASTERY: "green",
    },
    "trend": {
        Trend.IMPROVING: "green",
        Trend.STABLE: "white",
        Trend.DECLINING: "red",
    },
}


def style_status(status: CardStatus) -> str:
    color = STYLES["status"].get(status, "white")
    return f"[{color}]{status.value}[/{color}]"


def style_phase(phase: LoopPhase) -> str:
    color = STYLES["phase"].get(phase, "white")
    return f"[{color}]{phase.display_name}[/{color}]"


# =============================================================================
# Helpers
# =============================================================================


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )


@contextmanager
def _core_errors() -> Iterator[None]:
    """Turn core errors into a red message and exit code 1."""
    try:
        yield
    except MalformedGeneratedOutput as e:
        console.print(f"[bold red]MalformedGeneratedOutput:[/bold red] {e.reason}")
        console.print(f"[dim]Raw output ({len(e.raw_text)} chars) kept for regeneration[/dim]")
        raise typer.Exit(1)
    except LearnCoreError as e:
        console.print(f"[bold red]{type(e).__name__}:[/bold red] {e}")
        raise typer.Exit(1)


def _store(ctx: typer.Context) -> StateStore:
    return StateStore(JsonFileStore(ctx.obj["state_dir"]))


def _load_document(file: Path) -> Document:
    return Document(doc_id=file.name, content=file.read_text(encoding="utf-8"))


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Expected an ISO date (YYYY-MM-DD), got {value!r}")


def _display_session(session: MasteryLoopSession) -> None:
    lines = [
        f"Topic: [bold]{session.topic}[/bold]",
        f"Phase: {style_phase(session.phase)}",
        f"Attempt: {session.attempt}",
        f"Initial score: {session.initial_score}%",
        f"Current score: {session.current_score}%",
    ]
    if session.weak_points:
        lines.append(f"Weak points: {', '.join(session.weak_points)}")
    console.print(Panel(
        "\n".join(lines),
        title=f"Mastery Loop {session.session_id}",
        title_align="left",
        border_style=STYLES["phase"].get(session.phase, "white"),
    ))


@app.callback()
def configure(
    ctx: typer.Context,
    state_dir: Optional[Path] = typer.Option(
        None,
        "--state-dir", "-s",
        help="Directory for persisted flashcard and loop state",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log debug output to stderr"),
) -> None:
    """Adaptive learning core CLI."""
    settings = get_settings()
    _configure_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = {"state_dir": state_dir or settings.state_dir}


# =============================================================================
# Retrieval Commands
# =============================================================================


@app.command()
def chunk(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Text document"),
) -> None:
    """Index a document and show parent/child span statistics."""
    settings = get_settings()
    with _core_errors():
        index = build_index(_load_document(file), **settings.chunking_kwargs())

    stats = index.stats()
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")
    table.add_row("Document", stats["doc_id"])
    table.add_row("Characters", str(stats["characters"]))
    table.add_row("Parent spans", str(stats["parent_spans"]))
    table.add_row("Child spans", str(stats["child_spans"]))
    table.add_row("Children per parent", f"{stats['avg_children_per_parent']:.1f}")
    console.print(table)


@app.command()
def retrieve(
    file: Path = typer.Argument(..., exists=True, dir_okay=False, readable=True, help="Text document"),
    query: str = typer.Argument(..., help="Question or topic to ground"),
    top_children: Optional[int] = typer.Option(None, "--top-children", help="Ranked child spans to consider"),
    top_parents: Optional[int] = typer.Option(None, "--top-parents", help="Maximum parent spans returned"),
) -> None:
    """Print grounding context for a query."""
    settings = get_settings()
    kwargs = settings.retrieval_kwargs()
    if top_children is not None:
        kwargs["top_child_count"] = top_children
    if top_parents is not None:
        kwargs["top_parent_count"] = top_parents

    with _core_errors():
        index = build_index(_load_document(file), **settings.chunking_kwargs())
        context = retrieve_context(index, query, **kwargs)

    typer.echo(context)


@app.command()
def extract(
    file: Optional[Path] = typer.Argument(
        None, exists=True, dir_okay=False, readable=True,
        help="File with raw generated text (stdin if omitted)",
    ),
) -> None:
    """Recover the JSON payload from raw generated text."""
    raw = file.read_text(encoding="utf-8") if file else sys.stdin.read()
    with _core_errors():
        value = extract_structured(raw)
    typer.echo(json.dumps(value, indent=2, ensure_ascii=False))


# =============================================================================
# Flashcard Commands
# =============================================================================


@app.command()
def add(
    ctx: typer.Context,
    card_ids: list[str] = typer.Argument(..., help="Identifiers of newly generated cards"),
) -> None:
    """Register new flashcards (existing cards are left alone)."""
    store = _store(ctx)
    created = 0
    for card_id in card_ids:
        if store.get_card(card_id) is None:
            store.save_card(RetentionState.new(card_id))
            created += 1
    console.print(f"[green]Added {created} new card(s)[/green] ({len(card_ids) - created} already tracked)")


@app.command()
def review(
    ctx: typer.Context,
    card_id: str = typer.Argument(..., help="Flashcard identifier"),
    quality: int = typer.Argument(..., help="Recall quality 0-5 (below 3 = failed recall)"),
    on: Optional[str] = typer.Option(None, "--date", help="Review date (YYYY-MM-DD), default today"),
) -> None:
    """Record a review and schedule the card's next appearance."""
    store = _store(ctx)
    reviewed_at = _parse_date(on)

    with _core_errors():
        card = store.get_or_create_card(card_id)
        updated = SM2Scheduler().schedule(card, quality, reviewed_at=reviewed_at)
    store.save_card(updated)

    icon = "[green]✓[/green]" if quality >= 3 else "[red]✗[/red]"
    console.print(
        f"{icon} {card_id}: next review in {updated.interval_days} day(s) "
        f"on {updated.next_review_date.isoformat()} "
        f"(EF {updated.ease_factor:.2f}, {style_status(updated.status)})"
    )


@app.command()
def due(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-l", help="Maximum cards listed"),
    on: Optional[str] = typer.Option(None, "--date", help="Evaluate as of this date (YYYY-MM-DD)"),
) -> None:
    """Show flashcards due for review and a deck summary."""
    today = _parse_date(on) or date.today()
    cards = _store(ctx).all_cards()
    queue = due_cards(cards, today)
    summary = summarize_deck(cards, today)

    if not queue:
        console.print("[green]Nothing due for review![/green]")
    else:
        table = Table(title=f"Due cards ({len(queue)})")
        table.add_column("Card")
        table.add_column("Status")
        table.add_column("Due")
        table.add_column("Overdue", justify="right")
        for card in queue[:limit]:
            due_on = card.next_review_date.isoformat() if card.next_review_date else "-"
            table.add_row(card.card_id, style_status(card.status), due_on, str(card.days_overdue(today)))
        console.print(table)

    console.print(
        f"\nTotal {summary.total}  |  due {summary.due}  |  new {summary.new}  |  "
        f"learning {summary.learning}  |  review {summary.review}  |  "
        f"mastered {summary.mastered} ({summary.mastered_percent:.0f}%)"
    )


# =============================================================================
# Mastery Loop Commands
# =============================================================================


@loop_app.command("start")
def loop_start(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
    topic: str = typer.Argument(..., help="Topic to remediate"),
) -> None:
    """Start a remediation loop with a diagnostic assessment."""
    store = _store(ctx)
    engine = MasteryLoopEngine()

    existing = store.get_session(learner, topic)
    if existing is not None:
        console.print(f"[yellow]Replacing unfinished loop {existing.session_id}[/yellow]")
        engine.exit(existing)

    with _core_errors():
        session = engine.start(topic)
    store.save_session(learner, session)
    _display_session(session)


@loop_app.command("advance")
def loop_advance(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
    topic: str = typer.Argument(..., help="Topic being remediated"),
    phase: str = typer.Argument(..., help="Phase being completed (e.g. assess_initial)"),
    score: Optional[int] = typer.Option(None, "--score", help="Assessment score 0-100"),
    weak_points: Optional[list[str]] = typer.Option(
        None, "--weak-point", "-w", help="Weak sub-topic found by the assessment (repeatable)",
    ),
    tracked: bool = typer.Option(
        False, "--tracked", help="Also use the learner's critical topics from the weak point tracker",
    ),
) -> None:
    """Complete the current phase and move the loop forward."""
    store = _store(ctx)
    session = store.get_session(learner, topic)
    if session is None:
        console.print(f"[red]No active loop for {learner} on {topic!r}[/red]")
        raise typer.Exit(1)

    data: dict = {}
    if score is not None:
        data["score"] = score
    points = list(weak_points or [])
    if tracked:
        points += WeakPointTracker(store.get_weak_points(learner)).weak_topic_names()
    if points:
        data["weak_points"] = points

    engine = MasteryLoopEngine()
    with _core_errors():
        updated = engine.advance(session, phase.strip().lower().replace("-", "_"), data)
        if updated.phase.is_terminal:
            # Mastery closes the loop straight away
            updated = engine.advance(updated, LoopPhase.MASTERY)

    if updated.closed:
        for record in engine.drain_mastery_history():
            store.append_mastery_record(learner, record)
        store.delete_session(learner, topic)
        console.print(Panel(
            f"[bold green]Mastered {updated.topic}![/bold green]\n\n"
            f"Attempts: {updated.attempt}\n"
            f"Score: {updated.initial_score}% -> {updated.current_score}%",
            border_style="green",
        ))
        return

    store.save_session(learner, updated)
    _display_session(updated)


@loop_app.command("status")
def loop_status(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
    topic: str = typer.Argument(..., help="Topic being remediated"),
) -> None:
    """Show the current phase of a loop."""
    session = _store(ctx).get_session(learner, topic)
    if session is None:
        console.print(f"[dim]No active loop for {learner} on {topic!r}[/dim]")
        raise typer.Exit(1)
    _display_session(session)


@loop_app.command("exit")
def loop_exit(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
    topic: str = typer.Argument(..., help="Topic being remediated"),
) -> None:
    """Abandon a loop without recording anything."""
    store = _store(ctx)
    session = store.get_session(learner, topic)
    if session is None:
        console.print(f"[dim]No active loop for {learner} on {topic!r}[/dim]")
        return
    MasteryLoopEngine().exit(session)
    store.delete_session(learner, topic)
    console.print(f"[yellow]Exited loop on {session.topic}[/yellow]")


@loop_app.command("history")
def loop_history(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
) -> None:
    """List topics the learner has mastered."""
    records = _store(ctx).get_mastery_history(learner)
    if not records:
        console.print("[dim]No mastered topics yet[/dim]")
        return

    table = Table(title=f"Mastered topics for {learner}")
    table.add_column("Topic")
    table.add_column("Attempts", justify="right")
    table.add_column("Date")
    for record in records:
        table.add_row(record.topic, str(record.attempts), record.achieved_at.strftime("%Y-%m-%d %H:%M"))
    console.print(table)


# =============================================================================
# Weak Point Commands
# =============================================================================


@weak_app.command("record")
def weak_record(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
    subject: str = typer.Argument(..., help="Subject, e.g. Physics"),
    topic: str = typer.Argument(..., help="Topic the question tested"),
    correct: bool = typer.Option(True, "--correct/--incorrect", help="Whether the answer was correct"),
    chapter: Optional[str] = typer.Option(None, "--chapter", help="Chapter the topic belongs to"),
) -> None:
    """Record one graded quiz answer."""
    store = _store(ctx)
    tracker = WeakPointTracker(store.get_weak_points(learner))

    with _core_errors():
        tracker.add_quiz_results([QuizResult(topic=topic, subject=subject, is_correct=correct, chapter=chapter)])
    store.save_weak_points(learner, tracker.weak_points)

    console.print(f"{topic}: [bold]{tracker.topic_mastery(topic)}%[/bold]")


@weak_app.command("list")
def weak_list(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
    subject: Optional[str] = typer.Option(None, "--subject", help="Only topics of this subject"),
) -> None:
    """List weak topics, weakest first."""
    tracker = WeakPointTracker(_store(ctx).get_weak_points(learner))
    weak = tracker.weak_topics(subject)
    if not weak:
        console.print("[green]No weak topics![/green]")
        return

    table = Table(title=f"Weak topics for {learner}")
    table.add_column("Subject")
    table.add_column("Topic")
    table.add_column("Score", justify="right")
    table.add_column("Attempts", justify="right")
    table.add_column("Trend")
    for point in weak:
        color = STYLES["trend"].get(point.recent_trend, "white")
        table.add_row(
            point.subject,
            point.topic,
            f"{point.score}%",
            str(point.total_attempts),
            f"[{color}]{point.recent_trend.value}[/{color}]",
        )
    console.print(table)


@weak_app.command("clear")
def weak_clear(
    ctx: typer.Context,
    learner: str = typer.Argument(..., help="Learner identifier"),
) -> None:
    """Forget all tracked quiz performance for a learner."""
    _store(ctx).clear_weak_points(learner)
    console.print(f"[yellow]Cleared weak points for {learner}[/yellow]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
