"""PortWatch CLI: port congestion, pre-arrival forecasts and arrival alerts.

Commands:
  init         first-time setup (tables, port seed, default alert rules)
  congestion   congestion snapshot for one port
  top          most congested ports
  pre-arrival  inbound vessels expected at a port
  evaluate     run the alert rules for a port now
  alerts       alert history for a port
  ack          acknowledge an alert
  watch        subscribe to a port's alerts (included in sweeps)
  sweep        periodic alert sweep over watched ports
  serve        run the REST API
"""
from __future__ import annotations

import typer
from typing import Optional
from rich.console import Console
from rich.table import Table


app = typer.Typer(
    name="portwatch",
    help="Port congestion snapshots, pre-arrival forecasts and arrival alerts.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
console = Console()

_LEVEL_COLORS = {"low": "green", "moderate": "yellow", "high": "red", "critical": "bold red"}
_SEVERITY_COLORS = {"INFO": "dim", "WARNING": "yellow", "CRITICAL": "bold red"}


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@app.command("init")
def init(
    demo: bool = typer.Option(False, "--demo", help="Load sample traffic around Singapore"),
):
    """Set up PortWatch for the first time."""
    from app.config import settings
    from app.database import init_db, SessionLocal
    from app.modules.alert_engine import write_default_rules

    with console.status("[bold]Creating database..."):
        init_db()

    db = SessionLocal()
    try:
        with console.status("[bold]Seeding ports..."):
            from scripts.seed_ports import seed_ports
            result = seed_ports(db)
        console.print(f"  Ports: [green]{result['inserted']} inserted[/green], {result['skipped']} already present")

        if write_default_rules(settings.ALERT_RULES_CONFIG):
            console.print(f"  Alert rules: [green]written to {settings.ALERT_RULES_CONFIG}[/green]")
        else:
            console.print(f"  Alert rules: {settings.ALERT_RULES_CONFIG} already exists")

        if demo:
            with console.status("[bold]Loading sample traffic..."):
                from scripts.generate_sample_data import generate_sample_traffic
                sample = generate_sample_traffic(db, "SGSIN")
            console.print(f"  Sample data: {sample['vessels']} vessels, {sample['positions']} positions")
    finally:
        db.close()

    console.print("[green]Setup complete![/green]")
    console.print("Next: [cyan]portwatch congestion SGSIN[/cyan] or [cyan]portwatch serve[/cyan]")


@app.command("congestion")
def congestion(
    port_code: str = typer.Argument(..., help="UN/LOCODE, e.g. SGSIN"),
    show_vessels: bool = typer.Option(False, "--vessels", help="List the classified vessels"),
):
    """Show the current congestion snapshot for a port."""
    from app.database import SessionLocal
    from app.modules.collaborators import PortUnavailable

    runtime = _runtime()
    db = SessionLocal()
    try:
        with console.status(f"[bold]Scanning vessels near {port_code.upper()}..."):
            snapshot = runtime.congestion_service(db).get_snapshot(port_code)
        if isinstance(snapshot, PortUnavailable):
            console.print(f"[red]{snapshot.message}[/red]")
            raise typer.Exit(1)

        color = _LEVEL_COLORS[snapshot.level.value]
        console.print(f"\n[bold]{snapshot.port.name}[/bold] ({snapshot.port.code}), {snapshot.port.country}")
        console.print(f"  Level: [{color}]{snapshot.level.value.upper()}[/{color}]  (score {snapshot.score})")
        console.print(
            f"  Anchored: {snapshot.counts.anchorage}  Approaching: {snapshot.counts.approach}  "
            f"In transit: {snapshot.counts.transit}"
        )
        console.print(f"  Estimated wait: {snapshot.estimated_wait_hours:g}h")
        console.print(f"  Detention cost estimate: ${snapshot.detention_cost_estimate:,.2f}")
        console.print(f"  [dim]Data window: last {snapshot.data_window_hours:g}h[/dim]")

        if show_vessels and snapshot.vessels:
            table = Table(title="Vessels")
            table.add_column("Vessel")
            table.add_column("IMO")
            table.add_column("Zone")
            table.add_column("Distance", justify="right")
            table.add_column("SOG", justify="right")
            for v in snapshot.vessels:
                table.add_row(v.vessel_name, v.vessel_id, v.zone.value, f"{v.distance_nm:.1f}nm", f"{v.speed_knots:.1f}kn")
            console.print(table)
    finally:
        db.close()
        runtime.close()


@app.command("top")
def top(
    limit: int = typer.Option(10, "--limit", "-n", help="Number of ports to show"),
):
    """Show the most congested ports."""
    from app.database import SessionLocal

    runtime = _runtime()
    db = SessionLocal()
    try:
        with console.status("[bold]Computing congestion for all ports..."):
            snapshots = runtime.congestion_service(db).top_congested_ports(limit=limit)
        if not snapshots:
            console.print("[green]No congested ports[/green]")
            return

        table = Table(title="Most congested ports")
        table.add_column("Port")
        table.add_column("Name")
        table.add_column("Level")
        table.add_column("Score", justify="right")
        table.add_column("Waiting", justify="right")
        table.add_column("Est. wait", justify="right")
        for s in snapshots:
            color = _LEVEL_COLORS[s.level.value]
            table.add_row(
                s.port.code, s.port.name, f"[{color}]{s.level.value}[/{color}]",
                str(s.score), str(s.counts.waiting), f"{s.estimated_wait_hours:g}h",
            )
        console.print(table)
    finally:
        db.close()
        runtime.close()


@app.command("pre-arrival")
def pre_arrival(
    port_code: str = typer.Argument(..., help="UN/LOCODE, e.g. SGSIN"),
    window_hours: Optional[float] = typer.Option(None, "--window", "-w", help="Forecast window in hours"),
):
    """List inbound vessels expected at a port, soonest first."""
    from app.database import SessionLocal
    from app.modules.collaborators import PortUnavailable

    if window_hours is not None and window_hours <= 0:
        console.print("[red]--window must be positive[/red]")
        raise typer.Exit(1)

    runtime = _runtime()
    db = SessionLocal()
    try:
        report = runtime.pre_arrival_service(db).get_report(port_code, window_hours)
        if isinstance(report, PortUnavailable):
            console.print(f"[red]{report.message}[/red]")
            raise typer.Exit(1)

        console.print(
            f"\n[bold]{report.port.name}[/bold] ({report.port.code}): "
            f"{report.inbound_count} inbound within {report.window_hours:g}h"
        )
        if not report.vessels:
            return
        table = Table()
        table.add_column("Vessel")
        table.add_column("IMO")
        table.add_column("ETA", justify="right")
        table.add_column("Distance", justify="right")
        table.add_column("SOG", justify="right")
        table.add_column("Confidence")
        for v in report.vessels:
            table.add_row(
                v.vessel_name, v.vessel_id, f"{v.eta_hours:.1f}h",
                f"{v.distance_nm:.0f}nm", f"{v.speed_knots:.1f}kn", v.confidence.value,
            )
        console.print(table)
    finally:
        db.close()
        runtime.close()


@app.command("evaluate")
def evaluate(
    port_code: str = typer.Argument(..., help="UN/LOCODE, e.g. SGSIN"),
):
    """Run the alert rules for a port and deliver new alerts."""
    from app.database import SessionLocal
    from app.modules.collaborators import PortUnavailable

    runtime = _runtime()
    db = SessionLocal()
    try:
        with console.status(f"[bold]Evaluating {port_code.upper()}..."):
            result = runtime.alert_engine(db).evaluate_port(port_code)
        if not result.available:
            console.print(f"[red]{PortUnavailable(result.port_code, result.status).message}[/red]")
            raise typer.Exit(1)

        console.print(
            f"{result.port_code}: [bold]{len(result.fired)}[/bold] alert(s) fired, "
            f"{result.suppressed} suppressed as duplicates"
        )
        for alert in result.fired:
            color = _SEVERITY_COLORS[alert.severity.value]
            console.print(f"  [{color}]{alert.severity.value}[/{color}] {alert.alert_type.value}: {alert.message}")
    finally:
        db.close()
        # Waits for in-flight notifications
        runtime.close()


@app.command("alerts")
def alerts(
    port_code: str = typer.Argument(..., help="UN/LOCODE, e.g. SGSIN"),
    show_all: bool = typer.Option(False, "--all", help="Include acknowledged alerts"),
):
    """Show alert history for a port, newest first."""
    from app.database import SessionLocal

    runtime = _runtime()
    db = SessionLocal()
    try:
        history = runtime.alert_engine(db).list_alerts(port_code, include_acknowledged=show_all)
        if not history:
            console.print("[dim]No alerts[/dim]")
            return
        table = Table(title=f"Alerts for {port_code.upper()}")
        table.add_column("ID")
        table.add_column("Created (UTC)")
        table.add_column("Severity")
        table.add_column("Type")
        table.add_column("Vessel")
        table.add_column("Ack")
        for a in history:
            color = _SEVERITY_COLORS[a.severity.value]
            table.add_row(
                a.alert_id, a.created_at.strftime("%Y-%m-%d %H:%M"),
                f"[{color}]{a.severity.value}[/{color}]", a.alert_type.value,
                a.vessel_name, "yes" if a.acknowledged else "",
            )
        console.print(table)
    finally:
        db.close()
        runtime.close()


@app.command("ack")
def ack(
    port_code: str = typer.Argument(..., help="UN/LOCODE, e.g. SGSIN"),
    alert_id: str = typer.Argument(..., help="Alert ID from `portwatch alerts`"),
):
    """Acknowledge an alert."""
    from app.database import SessionLocal

    runtime = _runtime()
    db = SessionLocal()
    try:
        if not runtime.alert_engine(db).acknowledge(port_code, alert_id):
            console.print(f"[red]Alert {alert_id} not found for {port_code.upper()}[/red]")
            raise typer.Exit(1)
        console.print(f"[green]Alert {alert_id} acknowledged[/green]")
    finally:
        db.close()
        runtime.close()


@app.command("watch")
def watch(
    port_code: str = typer.Argument(..., help="UN/LOCODE, e.g. SGSIN"),
    subscriber: str = typer.Option("cli", "--subscriber", "-s", help="Subscriber label"),
    remove: bool = typer.Option(False, "--remove", help="Deactivate the watch"),
):
    """Subscribe to a port's alerts. Watched ports are evaluated by `portwatch sweep`."""
    from app.database import SessionLocal
    from app.models.port import Port
    from app.models.port_watch import PortWatch
    from app.modules.collaborators import normalize_port_code

    code = normalize_port_code(port_code)
    db = SessionLocal()
    try:
        if db.query(Port).filter(Port.unlocode == code).first() is None:
            console.print(f"[red]Port {code} not found[/red]")
            raise typer.Exit(1)

        entry = db.query(PortWatch).filter(
            PortWatch.port_code == code, PortWatch.subscriber == subscriber
        ).first()
        if remove:
            if entry is None or not entry.is_active:
                console.print(f"[yellow]{subscriber} is not watching {code}[/yellow]")
                return
            entry.is_active = False
            db.commit()
            console.print(f"[green]Stopped watching {code}[/green]")
            return

        if entry is None:
            db.add(PortWatch(port_code=code, subscriber=subscriber, is_active=True))
        else:
            entry.is_active = True
        db.commit()
        console.print(f"[green]{subscriber} is watching {code}[/green]")
    finally:
        db.close()


@app.command("sweep")
def sweep(
    once: bool = typer.Option(False, "--once", help="Run a single sweep and exit"),
    interval_minutes: Optional[float] = typer.Option(None, "--interval", help="Override SWEEP_INTERVAL_MINUTES"),
):
    """Periodically evaluate every watched port."""
    import threading
    from app.modules.scheduler import build_sweeper

    runtime = _runtime()
    sweeper = build_sweeper(runtime)
    if interval_minutes is not None:
        sweeper.interval_seconds = interval_minutes * 60
    try:
        if once:
            report = sweeper.run_once()
            console.print(
                f"Swept {len(report.results) + len(report.errors)} port(s): "
                f"{report.alerts_fired} alert(s) fired, {len(report.errors)} error(s)"
            )
            for code, error in report.errors.items():
                console.print(f"  [red]{code}: {error}[/red]")
            if report.errors:
                raise typer.Exit(1)
            return

        console.print(f"Sweeping watched ports every {sweeper.interval_seconds / 60:g} min. Press Ctrl+C to stop")
        stop = threading.Event()
        try:
            sweeper.run_forever(stop)
        except KeyboardInterrupt:
            stop.set()
            console.print("[dim]Stopped[/dim]")
    finally:
        runtime.close()


@app.command("serve")
def serve(
    host: str = typer.Option("127.0.0.1", "--host"),
    port: int = typer.Option(8000, "--port"),
):
    """Run the REST API."""
    import uvicorn

    console.print(f"API running at [cyan]http://{host}:{port}/docs[/cyan]. Press Ctrl+C to stop")
    uvicorn.run("app.main:app", host=host, port=port)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _runtime():
    """Process runtime built from settings (mockable for testing)."""
    from app.modules.runtime import build_runtime
    return build_runtime()


if __name__ == "__main__":
    app()
