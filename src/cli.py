"""
Allocation Engine Command Line Interface

Provides CLI commands for operating the allocation engine: database setup,
configuration management, analyst ranking, job prioritization and
candidate routing.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

app = typer.Typer(
    name="allocation-engine",
    help="Recruiting analyst allocation engine CLI",
    add_completion=False,
)
console = Console()

BAND_STYLES = {
    "excellent": "green",
    "good": "cyan",
    "regular": "yellow",
    "critical": "red",
}


def _engine(profiles: Optional[Path] = None):
    """Build an engine over the configured store, seeding default configs."""
    from src.core.allocation import AllocationEngine
    from src.core.allocation.providers import StaticProfileProvider

    provider = StaticProfileProvider.from_json(profiles) if profiles else None
    engine = AllocationEngine(profiles=provider)
    engine.bootstrap()
    return engine


def _fail(error: Exception) -> None:
    """Print an engine error, with every violation when there are several."""
    from src.core.errors import ValidationError

    console.print(f"[red]Error: {error}[/red]")
    if isinstance(error, ValidationError):
        for violation in error.violations:
            console.print(f"  [dim]{violation.field}:[/dim] {violation.message}")
    raise typer.Exit(1)


def _find_job(jobs_file: Path, job_id: int):
    from src.core.allocation.providers import load_jobs

    for job in load_jobs(jobs_file):
        if job.job_id == job_id:
            return job
    console.print(f"[red]Error: Job {job_id} not found in {jobs_file}[/red]")
    raise typer.Exit(1)


def _parse_value(raw: str):
    """Parse a --set value as int, float or string."""
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


@app.command()
def version():
    """Show application version."""
    from src import __version__, __app_name__

    console.print(f"[bold blue]{__app_name__}[/bold blue] version [green]{__version__}[/green]")


@app.command()
def info():
    """Show system information and configuration."""
    from src.utils.config import get_settings

    settings = get_settings()

    table = Table(title="Allocation Engine Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    table.add_row("Environment", settings.environment)
    table.add_row("Debug Mode", str(settings.debug))
    table.add_row("Store Backend", settings.allocation.store_backend)
    table.add_row("Database Host", settings.database.host)
    table.add_row("Database Name", settings.database.name)
    table.add_row("Provider Timeout", f"{settings.allocation.provider_timeout_seconds}s")
    table.add_row("Neutral Approval", str(settings.allocation.neutral_approval_fraction))
    table.add_row("Log Level", settings.logging.level)

    console.print(table)


@app.command()
def init_db():
    """Initialize the database indexes and seed default configurations."""
    from src.data.database import get_database_manager

    console.print("[yellow]Initializing database...[/yellow]")

    db_manager = get_database_manager()
    console.print("  Checking database connection...")
    if not db_manager.check_connection():
        console.print("[red]Error: Could not connect to MongoDB.[/red]")
        console.print("[dim]Make sure MongoDB is running and connection settings are correct.[/dim]")
        raise typer.Exit(1)
    console.print("  [green]✓[/green] Connected to MongoDB")

    console.print("  Creating indexes...")
    db_manager.ensure_indexes()
    console.print("  [green]✓[/green] Indexes created")

    from src.core.allocation import AllocationEngine
    from src.core.allocation.engine import create_store

    engine = AllocationEngine(store=create_store("mongo"))
    seeded = engine.configs.ensure_defaults()
    console.print(f"  [green]✓[/green] Seeded {len(seeded)} default configuration(s)")

    console.print("\n[green]Database initialized successfully![/green]")


@app.command()
def config_show(
    kind: str = typer.Argument("distribution", help="distribution or prioritization"),
):
    """Show the active configuration of a kind."""
    from src.core.errors import AllocationError
    from src.utils.constants import ConfigKind

    engine = _engine()
    try:
        config = engine.configs.get_active(ConfigKind(kind))
    except (AllocationError, ValueError) as e:
        _fail(e)

    table = Table(title=f"Active {kind} configuration (version {config.version})")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="green")
    for name, value in config.editable_values().items():
        table.add_row(name, str(value))
    console.print(table)


@app.command()
def config_history(
    kind: str = typer.Argument("distribution", help="distribution or prioritization"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries"),
):
    """Show recent configuration changes, newest first."""
    from src.utils.constants import ConfigKind

    try:
        config_kind = ConfigKind(kind)
    except ValueError as e:
        _fail(e)

    engine = _engine()
    changes = engine.configs.history(config_kind, limit=limit)
    if not changes:
        console.print("[yellow]No changes recorded.[/yellow]")
        return

    table = Table(title=f"{kind} configuration history")
    table.add_column("Version", justify="right")
    table.add_column("Field", style="cyan")
    table.add_column("Old")
    table.add_column("New", style="green")
    table.add_column("By")
    table.add_column("At", style="dim")
    for change in changes:
        table.add_row(
            str(change.config_version),
            change.field_name,
            str(change.old_value),
            str(change.new_value),
            str(change.changed_by or "-"),
            change.changed_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


@app.command()
def config_propose(
    kind: str = typer.Argument(..., help="distribution or prioritization"),
    set_values: list[str] = typer.Option(..., "--set", "-s", help="field=value, repeatable"),
    actor: Optional[int] = typer.Option(None, "--actor", help="User making the change"),
):
    """Validate and activate a new configuration version."""
    from src.core.errors import AllocationError
    from src.utils.constants import ConfigKind

    fields = {}
    for item in set_values:
        if "=" not in item:
            console.print(f"[red]Error: Expected field=value, got '{item}'[/red]")
            raise typer.Exit(1)
        name, raw = item.split("=", 1)
        fields[name.strip()] = _parse_value(raw.strip())

    engine = _engine()
    try:
        config = engine.configs.propose(ConfigKind(kind), fields, actor_id=actor)
    except (AllocationError, ValueError) as e:
        _fail(e)

    console.print(f"[green]✓ Activated {kind} configuration version {config.version}[/green]")


@app.command()
def rank(
    job_id: int = typer.Argument(..., help="Job ID"),
    jobs_file: Path = typer.Option(..., "--jobs", "-j", help="JSON file of job requisitions"),
    profiles_file: Path = typer.Option(..., "--profiles", "-p", help="JSON file of analyst profiles"),
    top: int = typer.Option(10, "--top", "-n", help="Number of analysts to show"),
):
    """Rank analysts for a job."""
    from src.core.errors import AllocationError

    job = _find_job(jobs_file, job_id)
    engine = _engine(profiles_file)
    try:
        scores = engine.ranking.rank(job, top_n=top)
    except AllocationError as e:
        _fail(e)
    finally:
        engine.close()

    if not scores:
        console.print("[yellow]No analysts available for this job.[/yellow]")
        return

    table = Table(title=f"Analyst ranking for job {job.job_id}: {job.title}")
    table.add_column("#", justify="right")
    table.add_column("Analyst", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Stack", justify="right")
    table.add_column("Client", justify="right")
    table.add_column("Load", justify="right")
    table.add_column("Approval", justify="right")
    table.add_column("Speed", justify="right")
    table.add_column("Why")

    for position, score in enumerate(scores, 1):
        style = BAND_STYLES.get(score.band, "white")
        table.add_row(
            str(position),
            f"{score.analyst_name or score.analyst_id} ({score.current_load}/{score.capacity})",
            f"[{style}]{score.total:.1f}[/{style}]",
            f"{score.specialization:.1f}",
            f"{score.client_fit:.1f}",
            f"{score.load:.1f}",
            f"{score.approval_rate:.1f}",
            f"{score.speed:.1f}",
            score.ai_justification or score.justification,
        )
    console.print(table)


@app.command()
def priorities(
    jobs_file: Path = typer.Argument(..., help="JSON file of job requisitions"),
):
    """Rank open jobs by urgency."""
    from src.core.allocation.providers import load_jobs

    engine = _engine()
    ranked = engine.prioritizer.rank(load_jobs(jobs_file))

    table = Table(title="Job priorities")
    table.add_column("#", justify="right")
    table.add_column("Job", style="cyan")
    table.add_column("Score", justify="right")
    table.add_column("Level")
    table.add_column("SLA", justify="right")
    table.add_column("Why")
    level_styles = {"high": "red", "medium": "yellow", "low": "green"}

    for position, priority in enumerate(ranked, 1):
        style = level_styles.get(priority.level, "white")
        table.add_row(
            str(position),
            f"{priority.job_id} {priority.title}",
            f"{priority.score:.1f}",
            f"[{style}]{priority.level.value}[/{style}]",
            f"{priority.sla_days}d",
            priority.justification,
        )
    console.print(table)


@app.command()
def attach(
    job_id: int = typer.Argument(..., help="Job ID"),
    analyst_id: int = typer.Argument(..., help="Analyst ID"),
    capacity: Optional[int] = typer.Option(None, "--capacity", "-c", help="Candidate ceiling"),
    profiles_file: Optional[Path] = typer.Option(
        None, "--profiles", "-p", help="JSON file of analyst profiles; the analyst must be listed"
    ),
    actor: Optional[int] = typer.Option(None, "--actor", help="User making the change"),
):
    """Attach an analyst to a job."""
    from src.core.errors import AllocationError

    engine = _engine(profiles_file)
    label = str(analyst_id)
    if profiles_file:
        profile = engine.profiles.get_profile(analyst_id)
        if profile is None:
            console.print(f"[red]Error: Analyst {analyst_id} not found in {profiles_file}[/red]")
            raise typer.Exit(1)
        if capacity is None:
            capacity = profile.capacity
        label = f"{profile.name or analyst_id} ({analyst_id})"

    try:
        assignment = engine.distribution.add_analyst(job_id, analyst_id, capacity=capacity, actor_id=actor)
    except AllocationError as e:
        _fail(e)
    console.print(
        f"[green]✓ Analyst {label} attached to job {job_id} "
        f"(order {assignment.alternation_order}, ceiling {assignment.max_candidates or '∞'})[/green]"
    )


@app.command()
def detach(
    job_id: int = typer.Argument(..., help="Job ID"),
    analyst_id: int = typer.Argument(..., help="Analyst ID"),
    orphan: bool = typer.Option(False, "--orphan", help="Queue the backlog instead of redistributing"),
    reason: Optional[str] = typer.Option(None, "--reason", "-r", help="Reason for the removal"),
    actor: Optional[int] = typer.Option(None, "--actor", help="User making the change"),
):
    """Remove an analyst from a job, redistributing their candidates."""
    from src.core.errors import AllocationError

    engine = _engine()
    try:
        result = engine.distribution.remove_analyst(
            job_id, analyst_id, redistribute=not orphan, actor_id=actor, reason=reason
        )
    except AllocationError as e:
        _fail(e)
    console.print(
        f"[green]✓ Analyst {analyst_id} removed from job {job_id}[/green]: "
        f"{len(result.moved)} moved, {len(result.orphaned)} queued"
    )


@app.command()
def route(
    job_id: int = typer.Argument(..., help="Job ID"),
    candidate_ids: list[int] = typer.Argument(..., help="Candidate application IDs"),
):
    """Route candidate applications to the job's analysts."""
    engine = _engine()
    for candidate_id in candidate_ids:
        result = engine.distribution.route_candidate(job_id, candidate_id)
        if result.routed:
            console.print(f"  [green]✓[/green] Candidate {candidate_id} → analyst {result.analyst_id}")
        else:
            console.print(f"  [yellow]⏸[/yellow] Candidate {candidate_id} queued: {result.condition.message}")


@app.command()
def simulate(
    analysts: list[int] = typer.Option(..., "--analyst", "-a", help="Analyst ID, repeatable"),
    candidates: int = typer.Option(10, "--candidates", "-n", help="Number of applications"),
    capacity: Optional[int] = typer.Option(None, "--capacity", "-c", help="Ceiling per analyst"),
):
    """Simulate round-robin routing on an in-memory store."""
    from src.core.allocation import AllocationEngine
    from src.data.memory_store import InMemoryAllocationStore

    engine = AllocationEngine(store=InMemoryAllocationStore())
    job_id = 1
    for analyst_id in analysts:
        engine.distribution.add_analyst(job_id, analyst_id, capacity=capacity)

    queued = 0
    for candidate_id in range(1, candidates + 1):
        if not engine.distribution.route_candidate(job_id, candidate_id).routed:
            queued += 1

    table = Table(title=f"Distribution of {candidates} application(s)")
    table.add_column("Analyst", style="cyan")
    table.add_column("Order", justify="right")
    table.add_column("Assigned", justify="right")
    table.add_column("Ceiling", justify="right")
    for a in engine.distribution.list_assignments(job_id):
        table.add_row(
            str(a.analyst_id),
            str(a.alternation_order),
            str(a.assigned_count),
            str(a.max_candidates or "∞"),
        )
    console.print(table)
    if queued:
        console.print(f"[yellow]{queued} application(s) queued for lack of capacity[/yellow]")


@app.command()
def decisions(
    job_id: Optional[int] = typer.Option(None, "--job", help="Filter by job"),
    limit: int = typer.Option(20, "--limit", "-n", help="Number of entries"),
):
    """Show recent allocation decisions, newest first."""
    engine = _engine()
    feed = engine.ranking.decisions(job_id=job_id, limit=limit)
    if not feed:
        console.print("[yellow]No decisions recorded.[/yellow]")
        return

    table = Table(title="Allocation decisions")
    table.add_column("Job", justify="right")
    table.add_column("Suggested")
    table.add_column("Chosen", style="cyan")
    table.add_column("Type")
    table.add_column("Reason")
    table.add_column("At", style="dim")
    for d in feed:
        table.add_row(
            str(d.job_id),
            ", ".join(map(str, d.suggested_analyst_ids)),
            ", ".join(map(str, d.chosen_analyst_ids)),
            d.decision_type,
            d.override_reason or "-",
            d.decided_at.strftime("%Y-%m-%d %H:%M"),
        )
    console.print(table)


if __name__ == "__main__":
    app()
