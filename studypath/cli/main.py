"""
studypath CLI: learning paths from the terminal.

Commands:
- studypath new "Photosynthesis"              -> generate a learning path
- studypath list                              -> stored sessions
- studypath show SESSION                      -> module tree with statuses
- studypath open SESSION SUB                  -> lessons and exercises of a sub-module
- studypath answer SESSION SUB -a q1=Paris    -> grade answers, unlock what was earned
- studypath ask SESSION SUB "question"        -> ask the assistant about a sub-module
- studypath delete SESSION                    -> remove a stored session
"""
from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import List, Optional, TypeVar

import typer
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from config import get_settings
from studypath.core.errors import GenerationFailed, StudyPathError
from studypath.core.logging import configure_logging
from studypath.path.generator import create_generator
from studypath.path.grading import score
from studypath.path.models import ChatRole, ChoiceExercise, Session, Status, SubModule
from studypath.path.orchestrator import SessionOrchestrator
from studypath.path.repository import SessionRepository, create_store

T = TypeVar("T")

app = typer.Typer(
    help="studypath: learning paths that unlock as you pass their exercises",
    no_args_is_help=True,
)

console = Console()

STATUS_STYLE = {
    Status.LOCKED: "[dim]🔒 locked[/dim]",
    Status.UNLOCKED: "[cyan]▶ unlocked[/cyan]",
    Status.COMPLETED: "[green]✓ completed[/green]",
}


def build_orchestrator() -> SessionOrchestrator:
    """Wire an orchestrator from settings."""
    settings = get_settings()
    return SessionOrchestrator(
        SessionRepository(create_store(settings)),
        create_generator(settings),
    )


def _run(operation: Callable[[SessionOrchestrator], Awaitable[T]]) -> T:
    """Run one orchestrator call; print engine errors and exit 1."""
    try:
        return asyncio.run(operation(build_orchestrator()))
    except GenerationFailed as e:
        console.print(f"[red]✗ {e}[/red]")
        if e.session is not None:
            console.print("[dim]Progress made before the failure was saved.[/dim]")
            _print_tree(e.session)
        raise typer.Exit(1)
    except StudyPathError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(1)


def _parse_answers(pairs: List[str]) -> dict[str, str]:
    answers = {}
    for pair in pairs:
        exercise_id, sep, value = pair.partition("=")
        if not sep or not exercise_id.strip():
            raise typer.BadParameter(f"Expected EXERCISE_ID=ANSWER, got {pair!r}")
        answers[exercise_id.strip()] = value
    return answers


def _print_tree(session: Session) -> None:
    table = Table(title=f"{session.topic}  [dim]({session.id})[/dim]", box=box.ROUNDED)
    table.add_column("ID", style="dim")
    table.add_column("Module / Sub-module")
    table.add_column("Status")

    for module in session.modules:
        table.add_row(module.id, f"[bold]{module.title}[/bold]", STATUS_STYLE[module.status])
        for sub in module.sub_modules:
            table.add_row(sub.id, f"  {sub.title}", STATUS_STYLE[sub.status])

    console.print(table)


def _print_sub_module(sub: SubModule, scratchpad: dict[str, str]) -> None:
    console.print(Panel(sub.content or "[dim]No overview[/dim]", title=sub.title, box=box.ROUNDED))

    for lesson in sub.lessons:
        console.print(Panel(lesson.content, title=lesson.title, border_style="blue"))

    for number, exercise in enumerate(sub.exercises, start=1):
        console.print(f"\n[bold]{number}. {exercise.question}[/bold] [dim]({exercise.id})[/dim]")
        if isinstance(exercise, ChoiceExercise):
            for option in exercise.options:
                console.print(f"   • {option}")
        draft = scratchpad.get(exercise.id)
        if exercise.graded:
            mark = "[green]✓[/green]" if exercise.is_correct else "[red]✗[/red]"
            console.print(f"   {mark} last answer: {exercise.user_answer!r}")
        elif draft:
            console.print(f"   [dim]draft: {draft!r}[/dim]")


@app.callback()
def main() -> None:
    configure_logging(get_settings())


@app.command("new")
def new_session(topic: str = typer.Argument(..., help="Topic to learn")):
    """Generate a learning path for TOPIC and store it as a new session."""
    session = _run(lambda o: o.create_session(topic))
    console.print(f"[green]✓[/green] Created session [bold]{session.id}[/bold]")
    _print_tree(session)


@app.command("list")
def list_sessions():
    """List stored sessions, most recently used first."""
    summaries = _run(lambda o: _as_awaitable(o.list_sessions()))
    if not summaries:
        console.print("[yellow]No sessions yet.[/yellow] Start one with: [cyan]studypath new TOPIC[/cyan]")
        return

    table = Table(box=box.SIMPLE)
    table.add_column("ID")
    table.add_column("Topic")
    table.add_column("Modules done", justify="right")
    table.add_column("Last accessed")
    for summary in summaries:
        table.add_row(
            summary.id,
            summary.topic,
            f"{summary.completed_modules}/{summary.total_modules}",
            summary.last_accessed.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command("show")
def show_session(session_id: str = typer.Argument(..., help="Session ID")):
    """Show the module tree of a session."""
    _print_tree(_run(lambda o: o.load_session(session_id)))


@app.command("open")
def open_sub_module(
    session_id: str = typer.Argument(..., help="Session ID"),
    sub_module_id: str = typer.Argument(..., help="Sub-module ID"),
):
    """Show the lessons and exercises of an unlocked sub-module."""

    async def operation(orchestrator: SessionOrchestrator):
        sub = await orchestrator.select_sub_module(session_id, sub_module_id)
        session = orchestrator.repository.load(session_id)
        return sub, session.answer_scratchpad

    sub, scratchpad = _run(operation)
    _print_sub_module(sub, scratchpad)


@app.command("answer")
def answer(
    session_id: str = typer.Argument(..., help="Session ID"),
    sub_module_id: str = typer.Argument(..., help="Sub-module ID"),
    answers: Optional[List[str]] = typer.Option(
        None,
        "--answer", "-a",
        help="EXERCISE_ID=ANSWER, repeatable",
    ),
):
    """Submit answers for a sub-module's exercises."""
    parsed = _parse_answers(answers or [])
    session = _run(lambda o: o.submit_answers(session_id, sub_module_id, parsed))

    found = session.find_sub_module(sub_module_id)
    if found is not None:
        _, sub = found
        correct, total = score(sub.exercises)
        console.print(f"Score: [bold]{correct}/{total}[/bold]  {STATUS_STYLE[sub.status]}")
    _print_tree(session)


@app.command("ask")
def ask(
    session_id: str = typer.Argument(..., help="Session ID"),
    sub_module_id: str = typer.Argument(..., help="Sub-module ID"),
    question: str = typer.Argument(..., help="Question about the sub-module"),
):
    """Ask the assistant a question about a sub-module."""
    session = _run(lambda o: o.ask_assistant(session_id, sub_module_id, question))
    reply = next(
        (message for message in reversed(session.chat_history) if message.role == ChatRole.ASSISTANT),
        None,
    )
    if reply is not None:
        console.print(Panel(reply.text, title="Assistant", border_style="magenta"))


@app.command("delete")
def delete_session(
    session_id: str = typer.Argument(..., help="Session ID"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a stored session."""
    if not yes and not typer.confirm(f"Delete session {session_id}?"):
        raise typer.Abort()
    _run(lambda o: _as_awaitable(o.delete_session(session_id)))
    console.print(f"[dim]Session {session_id} deleted[/dim]")


async def _as_awaitable(value: T) -> T:
    return value


def run() -> None:
    app()


if __name__ == "__main__":
    run()
