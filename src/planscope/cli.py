"""Command-line interface for planscope."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Annotated, Any, NoReturn

import typer

from . import context
from .config import PlanscopeConfig
from .exceptions import PlanscopeError
from .graph import GraphGenerator, GraphView
from .loader import load_workspace, write_workspace
from .logger import setup_logger
from .resources import (
    AvailabilityFinder,
    CapacityService,
    TeamWorkloadAggregator,
    UtilizationCalculator,
)
from .scheduler import SchedulingService, build_calendar
from .store import InMemoryStore

app = typer.Typer(
    name="planscope",
    help="Critical path scheduling and resource capacity for project workspaces",
    add_completion=False,
)

WorkspaceArg = Annotated[Path, typer.Argument(help="Path to the workspace YAML file")]


@app.callback()
def main_callback(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            help="Verbosity level: 0=silent (default), 1=show changes, 2=show all checks, 3=debug",
            min=0,
            max=3,
        ),
    ] = 0,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: planscope_config.yaml)",
        ),
    ] = None,
) -> None:
    """Global options for planscope commands."""
    setup_logger(verbose)
    context.set_config_path(config)


@app.command("critical-path")
def critical_path(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    project: Annotated[str, typer.Option("--project", "-p", help="Project id")],
    write: Annotated[
        bool, typer.Option("--write", help="Write the computed schedule back to the workspace")
    ] = False,
) -> None:
    """Compute a project's critical path and print the schedule as JSON."""
    try:
        store, config = _load(file)
        service = SchedulingService(store, config)
        result = service.calculate_critical_path(project)
        if write:
            write_workspace(file, store)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)
    _emit(result.to_dict())


@app.command()
def blocked(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    project: Annotated[str, typer.Option("--project", "-p", help="Project id")],
) -> None:
    """List tasks waiting on at least one unfinished predecessor."""
    try:
        store, config = _load(file)
        tasks = SchedulingService(store, config).blocked_tasks(project)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)
    _emit([task.to_dict() for task in tasks])


@app.command()
def capacity(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    user: Annotated[str, typer.Option("--user", "-u", help="User id")],
    week: Annotated[str, typer.Option("--week", "-w", help="Week start (Monday, YYYY-MM-DD)")],
) -> None:
    """Show a user's total, allocated and available hours for one week."""
    week_start = _parse_date(week)
    try:
        store, config = _load(file)
        result = _capacity_service(store, config).get_resource_capacity(user, week_start)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)
    _emit(result.to_dict())


@app.command()
def conflicts(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    user: Annotated[str, typer.Option("--user", "-u", help="User id")],
    week: Annotated[str, typer.Option("--week", "-w", help="Week start (Monday, YYYY-MM-DD)")],
    additional_hours: Annotated[
        float, typer.Option("--additional-hours", help="Hours of a proposed new allocation")
    ] = 0.0,
) -> None:
    """Report whether a user's week is (or would become) over-allocated."""
    week_start = _parse_date(week)
    try:
        store, config = _load(file)
        conflict = _capacity_service(store, config).check_allocation_conflicts(
            user, week_start, additional_hours
        )
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)

    if conflict is None:
        _emit({"userId": user, "weekStart": week_start.isoformat(), "overAllocated": False})
        return
    _emit(
        {
            "userId": conflict.user_id,
            "weekStart": conflict.week_start.isoformat(),
            "overAllocated": True,
            "totalHours": conflict.total_hours,
            "allocatedHours": conflict.allocated_hours,
            "overAllocatedHours": conflict.over_allocated_hours,
            "projects": sorted({a.project_id for a in conflict.allocations}),
        }
    )


@app.command()
def utilization(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    user: Annotated[str, typer.Option("--user", "-u", help="User id")],
    start: Annotated[str, typer.Option("--start", help="Range start (YYYY-MM-DD, inclusive)")],
    end: Annotated[str, typer.Option("--end", help="Range end (YYYY-MM-DD, exclusive)")],
) -> None:
    """Compare a user's logged hours with capacity over [start, end)."""
    start_date = _parse_date(start)
    end_date = _parse_date(end)
    try:
        store, config = _load(file)
        calculator = UtilizationCalculator(store, _capacity_service(store, config))
        result = calculator.get_resource_utilization(user, start_date, end_date)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)
    _emit(result.to_dict())


@app.command()
def workload(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    org: Annotated[str, typer.Option("--org", help="Organization id")],
    week: Annotated[str, typer.Option("--week", "-w", help="Week start (Monday, YYYY-MM-DD)")],
) -> None:
    """Classify every assignable user of an organization for one week."""
    week_start = _parse_date(week)
    try:
        store, config = _load(file)
        capacity_service = _capacity_service(store, config)
        aggregator = TeamWorkloadAggregator(
            store,
            capacity_service,
            UtilizationCalculator(store, capacity_service),
            config.workload,
            config.concurrency,
        )
        result = aggregator.get_team_workload(org, week_start)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)
    _emit(result.to_dict())


@app.command()
def available(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    org: Annotated[str, typer.Option("--org", help="Organization id")],
    start: Annotated[str, typer.Option("--start", help="Range start (YYYY-MM-DD, inclusive)")],
    end: Annotated[str, typer.Option("--end", help="Range end (YYYY-MM-DD, exclusive)")],
    min_hours: Annotated[
        float | None,
        typer.Option("--min-hours", help="Minimum free hours (default from config)"),
    ] = None,
) -> None:
    """Find users with at least --min-hours free in [start, end)."""
    start_date = _parse_date(start)
    end_date = _parse_date(end)
    try:
        store, config = _load(file)
        finder = AvailabilityFinder(
            store, _capacity_service(store, config), config.availability, config.concurrency
        )
        results = finder.get_available_resources(org, start_date, end_date, min_hours)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)
    _emit([r.to_dict() for r in results])


@app.command()
def graph(
    file: WorkspaceArg = Path("workspace.yaml"),
    *,
    project: Annotated[str, typer.Option("--project", "-p", help="Project id")],
    view: Annotated[
        GraphView, typer.Option("--view", help="Type of graph to generate")
    ] = GraphView.ALL,
    output: Annotated[Path | None, typer.Option("--output", "-o", help="Output file path")] = None,
) -> None:
    """Generate the project schedule graph in DOT format."""
    try:
        store, config = _load(file)
        result = SchedulingService(store, config).calculate_critical_path(project)
    except (PlanscopeError, FileNotFoundError) as e:
        _fail(e)

    dot_output = GraphGenerator(result).generate(view)
    if output:
        output.write_text(dot_output, encoding="utf-8")
        typer.echo(f"Graph written to {output}")
    else:
        typer.echo(dot_output)


def _load(file: Path) -> tuple[InMemoryStore, PlanscopeConfig]:
    config = context.config_for(file)
    return load_workspace(file), config


def _capacity_service(store: InMemoryStore, config: PlanscopeConfig) -> CapacityService:
    return CapacityService(store, config.capacity, build_calendar(config).holidays)


def _parse_date(date_str: str) -> date:
    """Parse a YYYY-MM-DD option value or exit with an error."""
    try:
        return date.fromisoformat(date_str)
    except ValueError:
        typer.echo(
            f"Error: Invalid date format '{date_str}'. Use YYYY-MM-DD format.",
            err=True,
        )
        raise typer.Exit(1) from None


def _fail(error: Exception) -> NoReturn:
    typer.echo(f"Error: {error}", err=True)
    raise typer.Exit(1) from None


def _emit(data: Any) -> None:
    typer.echo(json.dumps(data, indent=2))


def main() -> int:
    """Main entry point."""
    # Typer handles sys.exit() internally
    app()
    return 0


if __name__ == "__main__":
    main()
