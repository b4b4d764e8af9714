"""CLI commands for shapetrack.

Commands:
- init-db: create the database schema
- serve: run the Web API with uvicorn
- students: list students with aggregated progress
- report: show one student's progress by shape and recent sessions
- assessment-status: show whether a student was assessed today
"""

from dataclasses import replace
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from shapetrack.config.app_config import AppConfig, load_app_config
from shapetrack.core.assessment import AssessmentManager
from shapetrack.core.progress import SORT_ORDERS, get_student_detail, list_students
from shapetrack.db.database import Database
from shapetrack.errors import ShapetrackError

app = typer.Typer(
    name="shapetrack",
    help="Student progress tracking for the tactile-shape learning program.",
    no_args_is_help=True,
)

console = Console()

STATUS_STYLES = {
    "excellent": "green",
    "active": "blue",
    "needs_attention": "yellow",
}


def _load_config(db_path: str | None) -> AppConfig:
    config = load_app_config()
    if db_path:
        config = replace(config, database=replace(config.database, path=db_path))
    return config


def _open_database_or_exit(config: AppConfig) -> Database:
    """Open the configured database, or exit with a readable error."""
    db = Database.from_config(config.database)
    try:
        db.open()
    except ShapetrackError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    return db


def _truncate(text: str, max_len: int = 60) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


@app.command(name="init-db")
def init_db(
    db_path: str | None = typer.Option(None, "--db", help="Database file (overrides config)"),
) -> None:
    """Create the database schema. Safe to run repeatedly."""
    config = _load_config(db_path)
    db = _open_database_or_exit(config)
    try:
        tables = db.table_status()
    finally:
        db.close()

    console.print(f"[green]✓ Database ready:[/green] {Path(config.database.path).absolute()}")
    for table, exists in tables.items():
        mark = "[green]✓[/green]" if exists else "[red]✗[/red]"
        console.print(f"  {mark} {table}")


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port"),
    db_path: str | None = typer.Option(None, "--db", help="Database file (overrides config)"),
) -> None:
    """Run the Web API."""
    import uvicorn

    from shapetrack.web.api import create_app

    config = _load_config(db_path)
    effective_host = host or config.server.host
    effective_port = port or config.server.port

    console.print(f"[blue]Serving shapetrack on http://{effective_host}:{effective_port}[/blue]")
    uvicorn.run(create_app(config), host=effective_host, port=effective_port)


@app.command()
def students(
    sort: str = typer.Option("recent", "--sort", "-s", help=f"One of: {', '.join(SORT_ORDERS)}"),
    db_path: str | None = typer.Option(None, "--db", help="Database file (overrides config)"),
) -> None:
    """List students with their aggregated progress."""
    config = _load_config(db_path)
    db = _open_database_or_exit(config)
    try:
        overviews = list_students(db, sort=sort, config=config.dashboard)
    except ShapetrackError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    if not overviews:
        console.print("[dim]No students registered.[/dim]")
        return

    table = Table(title=f"Students ({len(overviews)})")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Sessions", justify="right")
    table.add_column("Avg score", justify="right")
    table.add_column("Last session")
    table.add_column("Status")

    for o in overviews:
        style = STATUS_STYLES.get(o.status, "white")
        table.add_row(
            o.student.student_id,
            o.student.full_name,
            str(o.total_sessions),
            f"{o.average_score}%",
            o.last_session_date or "-",
            f"[{style}]{o.status}[/{style}]",
        )

    console.print(table)


@app.command()
def report(
    student_id: str = typer.Argument(..., help="Student ID (e.g., 'STU001')"),
    db_path: str | None = typer.Option(None, "--db", help="Database file (overrides config)"),
) -> None:
    """Show a student's progress by shape and recent sessions."""
    config = _load_config(db_path)
    db = _open_database_or_exit(config)
    try:
        detail = get_student_detail(db, student_id, config=config.dashboard)
    except ShapetrackError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    style = STATUS_STYLES.get(detail.status, "white")
    console.print(f"[bold]{detail.student.full_name}[/bold] [dim]({detail.student.student_id})[/dim]")
    console.print(f"  [dim]sessions:[/dim]  {detail.total_sessions}")
    console.print(f"  [dim]avg score:[/dim] {detail.average_score}%")
    console.print(f"  [dim]status:[/dim]    [{style}]{detail.status}[/{style}]")

    shapes = Table(title="Progress by shape")
    shapes.add_column("Shape")
    shapes.add_column("Sessions", justify="right")
    shapes.add_column("Progress", justify="right")
    shapes.add_column("Accuracy", justify="right")
    for shape, progress in detail.shapes_progress.items():
        shapes.add_row(shape, str(progress.sessions), f"{progress.progress}%", f"{progress.accuracy}%")
    console.print(shapes)

    if detail.recent_sessions:
        recent = Table(title="Recent sessions")
        recent.add_column("When")
        recent.add_column("Shape")
        recent.add_column("Asked", justify="right")
        recent.add_column("Correct", justify="right")
        recent.add_column("Accuracy", justify="right")
        recent.add_column("Explanation")
        for s in detail.recent_sessions:
            recent.add_row(
                s.timestamp,
                s.shape,
                str(s.questions_asked),
                str(s.correct_answers),
                f"{s.accuracy}%",
                _truncate(s.explanation),
            )
        console.print(recent)


@app.command(name="assessment-status")
def assessment_status(
    student_id: str = typer.Argument(..., help="Student ID (e.g., 'STU001')"),
    db_path: str | None = typer.Option(None, "--db", help="Database file (overrides config)"),
) -> None:
    """Show whether a student was assessed today and what is in progress."""
    config = _load_config(db_path)
    db = _open_database_or_exit(config)
    try:
        result = AssessmentManager(db).get_status(student_id)
    except ShapetrackError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    finally:
        db.close()

    done = "[green]yes[/green]" if result.assessed_today else "[yellow]no[/yellow]"
    console.print(f"[bold]{student_id}[/bold] on {result.date}")
    console.print(f"  [dim]assessed today:[/dim] {done}")
    if result.current_session:
        console.print(
            f"  [dim]in progress:[/dim]    session {result.current_session.session_id} "
            f"since {result.current_session.started_at}"
        )
    console.print(f"  [dim]last assessment:[/dim] {result.last_assessment or '-'}")
    console.print(f"  [dim]last learning:[/dim]   {result.last_learning or '-'}")


if __name__ == "__main__":
    app()
