"""helmwatch CLI — collision risk and anchor watch.

Commands:
  serve          — run the control surface API
  scan           — one-shot collision scan of a YAML telemetry snapshot
  anchor-status  — show the persisted anchor record
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from helmwatch.config import settings
from helmwatch.models.base import RiskTierEnum

app = typer.Typer(
    name="helmwatch",
    help="Collision risk and anchor watch for a vessel assistant.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_RISK_STYLE = {
    RiskTierEnum.DANGER: "bold red",
    RiskTierEnum.CAUTION: "yellow",
    RiskTierEnum.WATCH: "cyan",
    RiskTierEnum.SAFE: "green",
}

# Exit code when any target is in the danger tier
DANGER_EXIT_CODE = 2


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the API server."""
    import uvicorn

    console.print(f"helmwatch API at [cyan]http://{host}:{port}[/cyan] — press Ctrl+C to stop")
    uvicorn.run("helmwatch.main:app", host=host, port=port)


@app.command("scan")
def scan(
    snapshot: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML snapshot of own vessel and targets"),
    max_range: Optional[float] = typer.Option(None, "--max-range", help="Override target range filter (NM)"),
):
    """Run one collision scan over a telemetry snapshot."""
    from dataclasses import replace

    from helmwatch.modules.collision_risk import CollisionRiskEngine, CollisionThresholds
    from helmwatch.modules.telemetry import load_snapshot

    own, targets = load_snapshot(snapshot)
    if own is None or own.position is None:
        console.print("[red]Snapshot has no own vessel position.[/red]")
        raise typer.Exit(1)

    thresholds = CollisionThresholds.from_settings(settings)
    if max_range is not None:
        thresholds = replace(thresholds, max_range_nm=max_range)
    result = CollisionRiskEngine(thresholds).check_risks(own, targets)

    if not result.assessments:
        console.print(f"No targets within {thresholds.max_range_nm:g} NM.")
        return

    table = Table(title=f"Collision risk — {result.total_in_range} target(s) in range")
    table.add_column("Target")
    table.add_column("Range NM", justify="right")
    table.add_column("Bearing", justify="right")
    table.add_column("CPA NM", justify="right")
    table.add_column("TCPA min", justify="right")
    table.add_column("Situation")
    table.add_column("Risk")
    for a in result.assessments:
        style = _RISK_STYLE[a.risk]
        table.add_row(
            a.name,
            f"{a.range_nm:.2f}",
            f"{a.bearing_deg:.0f}°",
            f"{a.cpa_nm:.2f}",
            f"{a.tcpa_min:.1f}",
            a.situation.value,
            f"[{style}]{a.risk.value}[/{style}]",
        )
    console.print(table)

    for alert in result.alerts:
        console.print(f"[{_RISK_STYLE[alert.risk]}]{alert.message}[/]")

    if result.danger_count:
        raise typer.Exit(DANGER_EXIT_CODE)


@app.command("anchor-status")
def anchor_status(
    state_file: Optional[Path] = typer.Option(None, "--state-file", help="Anchor state file (default from settings)"),
):
    """Show the persisted anchor record."""
    from helmwatch.modules.anchor_state import AnchorStateStore

    path = state_file or settings.anchor_state_path
    record = AnchorStateStore(path).load()
    if record is None:
        console.print(f"No anchor state at {path} — anchor is [green]raised[/green].")
        return

    table = Table(show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("State", record.state.value)
    if record.position is not None:
        table.add_row("Position", f"{record.position.latitude:.5f}, {record.position.longitude:.5f}")
    table.add_row("Alarm radius", f"{record.max_radius:g} m")
    if record.rode_length is not None:
        table.add_row("Rode", f"{record.rode_length:g} m (depth {record.anchor_depth:g} m)")
    if record.dropped_at is not None:
        table.add_row("Dropped at", record.dropped_at.isoformat())
    if record.raised_at is not None:
        table.add_row("Raised at", record.raised_at.isoformat())
    console.print(table)


if __name__ == "__main__":
    app()
