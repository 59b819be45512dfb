"""
Haulmatch CLI

Command-line interface for the Haulmatch dispatch core.
"""

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import settings
from ..logging_setup import configure_logging
from ..models import Job, Location, MarketSnapshot, MatchedPair
from ..loaders import load_jobs, load_providers
from ..matching import MatchingEngine
from ..orchestrator import LoggingObserver, OrchestratorMetrics, build_orchestrator
from ..pricing import PricingEngine
from ..state import DispatchState

app = typer.Typer(
    name="haulmatch",
    help="Haulmatch: dispatch core for pricing and matching transport jobs",
    add_completion=False,
)
console = Console()


def _load_state(jobs_path: Optional[Path], providers_path: Optional[Path]) -> DispatchState:
    state = DispatchState()
    if jobs_path:
        state.jobs = load_jobs(jobs_path)
    if providers_path:
        state.providers = load_providers(providers_path)
    return state


def _print_pairs(pairs: list[MatchedPair], state: DispatchState, title: str) -> None:
    if not pairs:
        console.print("[yellow]No matches found.[/yellow]")
        return

    table = Table(title=title)
    table.add_column("Score", style="cyan", width=6)
    table.add_column("Route", width=28)
    table.add_column("Provider", width=22)
    table.add_column("Price", style="green", justify="right")
    table.add_column("Accept", justify="right")
    table.add_column("Return", style="dim")

    for pair in pairs:
        job = state.get_job(pair.job_id)
        provider = state.get_provider(pair.provider_id)
        score_color = "green" if pair.score >= 0.85 else "yellow"
        table.add_row(
            f"[{score_color}]{pair.score:.2f}[/{score_color}]",
            job.route[:28] if job else pair.job_id,
            (provider.name or provider.id)[:22] if provider else pair.provider_id,
            f"{job.price:.0f}" if job and job.price is not None else "?",
            f"{pair.acceptance_probability:.0%}",
            "yes" if pair.return_opportunity else "",
        )

    console.print(table)


def _print_metrics(metrics: OrchestratorMetrics) -> None:
    table = Table(title=f"Scheduler ({metrics.total_cycles} cycles)")
    table.add_column("Unit", style="cyan")
    table.add_column("Priority", justify="right")
    table.add_column("Runs", justify="right")
    table.add_column("Failures", justify="right")
    table.add_column("Success", style="green", justify="right")
    table.add_column("Avg ms", justify="right")
    table.add_column("Last result")

    for name, priority in metrics.priorities.items():
        unit = metrics.units.get(name)
        if unit is None:
            table.add_row(name, str(priority), "0", "0", "-", "-", "")
            continue
        table.add_row(
            name,
            str(priority),
            str(unit.runs),
            str(unit.failures),
            f"{unit.success_rate:.0%}",
            f"{unit.average_duration_ms:.1f}",
            unit.last_error or unit.last_summary or "",
        )

    console.print(table)
    console.print(
        f"[dim]Jobs {metrics.state.get('jobs', 0)} (open {metrics.state.get('open_jobs', 0)})"
        f" | providers {metrics.state.get('providers', 0)}"
        f" | matches {metrics.matches_created} | errors {len(metrics.errors)}[/dim]"
    )


# =============================================================================
# Scheduler Commands
# =============================================================================

@app.command()
def run(
    jobs: Optional[Path] = typer.Option(None, "--jobs", "-j", exists=True, help="Jobs CSV"),
    providers: Optional[Path] = typer.Option(None, "--providers", "-p", exists=True, help="Providers CSV"),
    cycles: int = typer.Option(1, "--cycles", "-n", min=1, help="Number of cycles to run"),
    interval_ms: int = typer.Option(0, "--interval-ms", min=0, help="Pause between cycles"),
    log_level: str = typer.Option(settings.LOG_LEVEL, "--log-level", help="Log level"),
):
    """
    Run the scheduler over CSV-seeded state.

    Prices every open job, matches them to providers, and prints unit
    metrics and the resulting matches.

    Examples:
        haulmatch run --jobs jobs.csv --providers providers.csv
        haulmatch run -j jobs.csv -p providers.csv --cycles 5 --interval-ms 1000
    """
    configure_logging(log_level)

    state = _load_state(jobs, providers)
    orchestrator = build_orchestrator(
        state=state,
        observers=[LoggingObserver()],
        cycle_interval_ms=interval_ms,
    )

    console.print(Panel.fit(
        "[bold green]Haulmatch Scheduler[/bold green]\n"
        f"{len(state.jobs)} jobs | {len(state.providers)} providers | {cycles} cycle(s)",
        title="Run",
    ))

    try:
        orchestrator.run(max_cycles=cycles)
    except KeyboardInterrupt:
        orchestrator.stop()
        console.print("\n[yellow]Stopped by user[/yellow]")

    console.print()
    _print_metrics(orchestrator.get_metrics())
    _print_pairs(state.matched_pairs, state, title=f"Matches ({len(state.matched_pairs)})")

    for insight in state.insights:
        console.print(f"[magenta]{insight.severity.upper()}[/magenta] {insight.title}: {insight.message}")


@app.command()
def match(
    jobs: Path = typer.Option(..., "--jobs", "-j", exists=True, help="Jobs CSV"),
    providers: Path = typer.Option(..., "--providers", "-p", exists=True, help="Providers CSV"),
    min_score: Optional[float] = typer.Option(None, "--min-score", min=0, max=1, help="Minimum match score"),
):
    """
    Run one matching pass over CSV data without the scheduler.

    Jobs are priced against a neutral market first so that acceptance
    estimates have earnings to work with.
    """
    configure_logging("WARNING")

    state = _load_state(jobs, providers)
    pricing = PricingEngine()
    for job in state.unpriced_jobs():
        job.apply_quote(pricing.price(job))

    engine = MatchingEngine()
    if min_score is not None:
        engine.config.min_score = min_score

    pairs = engine.match(state.jobs, state.providers)
    _print_pairs(pairs, state, title=f"Matches ({len(pairs)} of {len(state.open_jobs())} open jobs)")


# =============================================================================
# Pricing Commands
# =============================================================================

@app.command()
def quote(
    pickup: str = typer.Option(..., "--from", help="Pickup city"),
    delivery: str = typer.Option(..., "--to", help="Delivery city"),
    distance: Optional[float] = typer.Option(None, "--distance", "-d", min=0.1, help="Road distance in km"),
    resource_class: Optional[str] = typer.Option(None, "--class", "-c", help="Resource class (VL, PL, SPL...)"),
    urgent: bool = typer.Option(False, "--urgent", help="Urgent job"),
    demand: float = typer.Option(0.5, "--demand", min=0, max=1, help="Demand index"),
    supply: float = typer.Option(0.5, "--supply", min=0, max=1, help="Supply index"),
    fuel_price: float = typer.Option(settings.FUEL_REFERENCE_PRICE, "--fuel-price", min=0.01, help="Fuel price per litre"),
    traffic: float = typer.Option(0.0, "--traffic", min=0, max=1, help="Traffic index"),
    weather_alerts: int = typer.Option(0, "--weather-alerts", min=0, help="Active weather alerts"),
):
    """
    Price a single job.

    Examples:
        haulmatch quote --from Paris --to Lyon --distance 465 --class PL
        haulmatch quote --from Paris --to Lille -d 225 --urgent --demand 0.9
    """
    job = Job(
        pickup=Location(city=pickup),
        delivery=Location(city=delivery),
        distance_km=distance,
        resource_class=resource_class,
        urgent=urgent,
    )
    market = MarketSnapshot(
        demand_index=demand,
        supply_index=supply,
        fuel_price=fuel_price,
        traffic_index=traffic,
        weather_alert_count=weather_alerts,
    )

    result = PricingEngine().price(job, market)
    b = result.breakdown
    adj = b.adjustments

    notes = []
    if b.distance_estimated:
        notes.append("distance estimated")
    if b.resource_class_defaulted:
        notes.append(f"class defaulted to {b.resource_class}")

    console.print(Panel(
        f"Route: [white]{job.route}[/white] ({b.distance_km:.0f} km, {b.resource_class})\n\n"
        f"Base cost: {b.base_cost:.2f} "
        f"[dim](distance {b.distance_cost:.2f} + driver {b.driver_cost:.2f} + daily {b.daily_cost:.2f})[/dim]\n"
        f"Adjustments: x{adj.total:.3f} "
        f"[dim](fuel {adj.fuel:.3f}, demand {adj.demand:.3f}, traffic {adj.traffic:.3f}, "
        f"weather {adj.weather:.3f}, urgency {adj.urgency:.2f})[/dim]\n"
        f"Margin: {b.margin:.0%}\n\n"
        f"[bold green]Price: {result.amount:.0f}[/bold green] "
        f"[dim](range {result.competitive_min:.0f} - {result.competitive_max:.0f})[/dim]\n"
        f"Provider share: {b.provider_share:.2f} | Platform share: {b.platform_share:.2f}\n"
        f"Provider earnings: {result.earnings_per_km:.2f} per km\n"
        f"Confidence: {result.confidence:.0%}"
        + (f"\n[yellow]Note: {', '.join(notes)}[/yellow]" if notes else ""),
        title="Quote",
    ))


# =============================================================================
# System Commands
# =============================================================================

@app.command()
def config():
    """Show the effective settings (environment and .env applied)."""
    table = Table(title="Settings")
    table.add_column("Name", style="cyan")
    table.add_column("Value", style="green")

    for name, value in settings.model_dump().items():
        table.add_row(name, str(value))

    console.print(table)


@app.command()
def serve(
    host: str = typer.Option(settings.SERVER_HOST, "--host", "-h", help="Host to bind to"),
    port: int = typer.Option(settings.SERVER_PORT, "--port", "-p", help="Port to bind to"),
):
    """
    Start the HTTP API with the scheduler running in the background.

    Swagger UI available at: http://HOST:PORT/docs
    """
    import uvicorn

    from ..server import create_app

    configure_logging(settings.LOG_LEVEL)

    console.print(Panel.fit(
        "[bold green]Haulmatch API Server[/bold green]\n\n"
        f"Starting server on http://{host}:{port}\n"
        f"Cycle interval: {settings.cycle_interval_seconds:g}s\n\n"
        "[dim]Press Ctrl+C to stop[/dim]",
        title="Server Mode",
    ))

    uvicorn.run(create_app(), host=host, port=port, log_level=settings.LOG_LEVEL.lower())


@app.command()
def version():
    """Show version information."""
    console.print(f"[bold]{settings.APP_NAME}[/bold] v{settings.APP_VERSION}")


# =============================================================================
# Entry Point
# =============================================================================

def main():
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
