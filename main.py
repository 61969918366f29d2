#!/usr/bin/env python3
"""NetAlert - CLI Entry Point."""
import sys
import time
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))

import click
from rich.console import Console
from rich.table import Table

from __version__ import __version__

console = Console()

SEVERITY_STYLES = {"critical": "bold red", "warning": "yellow", "info": "blue"}
STATUS_STYLES = {"open": "bold", "acknowledged": "cyan", "resolved": "dim"}


def _init_components(config_path=None, verbose=False):
    """Lazy initialization of all components."""
    from utils.logger import setup_logging
    from config import load_config
    from models.database import Database
    from alerts.engine import AlertEngine

    config = load_config(config_path)
    log_cfg = config.get("logging", {})
    setup_logging("DEBUG" if verbose else log_cfg.get("level", "INFO"), log_cfg.get("file"))

    db = None
    if config["database"].get("enabled", True):
        db = Database(config["database"]["path"])
        db.connect()

    engine = AlertEngine.from_config(config, db=db)
    return {"config": config, "db": db, "engine": engine, "rules": engine.rules_source}


@click.group()
@click.option("--config", "config_path", default=None, help="Path to config YAML")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.version_option(__version__, prog_name="netalert")
@click.pass_context
def cli(ctx, config_path, verbose):
    """NetAlert - Network alert rule evaluation and lifecycle engine."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


def _get_components(ctx):
    if "_components" not in ctx.obj:
        ctx.obj["_components"] = _init_components(ctx.obj.get("config_path"), ctx.obj.get("verbose"))
    return ctx.obj["_components"]


def _alerts_table(alerts, title):
    table = Table(title=title, show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Severity")
    table.add_column("Status")
    table.add_column("Title")
    table.add_column("Affected")
    table.add_column("Value")
    table.add_column("Created", style="dim")
    for a in alerts:
        sev = a.severity.value
        status = a.status.value
        table.add_row(
            a.id,
            f"[{SEVERITY_STYLES.get(sev, '')}]{sev.upper()}[/]",
            f"[{STATUS_STYLES.get(status, '')}]{status}[/]",
            a.title,
            a.affected,
            str(a.value),
            a.created_at.strftime("%Y-%m-%d %H:%M:%S") if a.created_at else "",
        )
    return table


# ──────────────────────────────────────────────────────
# CYCLE
# ──────────────────────────────────────────────────────
@cli.command()
@click.pass_context
def cycle(ctx):
    """Run one evaluation cycle now and show the alerts it created."""
    from alerts.errors import TelemetryError

    c = _get_components(ctx)
    engine = c["engine"]
    try:
        created = engine.run_cycle()
    except TelemetryError as e:
        raise click.ClickException(str(e))
    finally:
        engine.shutdown(wait=True)

    if not created:
        console.print("[green]All clear - no new alerts[/green]")
        return
    console.print(_alerts_table(created, f"{len(created)} new alert(s)"))


@cli.command()
@click.option("--interval", default=None, type=int, help="Seconds between cycles (overrides config)")
@click.pass_context
def run(ctx, interval):
    """Run evaluation cycles periodically until interrupted."""
    from telemetry.scheduler import CycleScheduler

    c = _get_components(ctx)
    interval = interval or c["config"]["engine"]["interval_seconds"]
    scheduler = CycleScheduler(c["engine"], interval_seconds=interval)

    def report(created):
        if created:
            console.print(_alerts_table(created, f"{len(created)} new alert(s)"))

    scheduler.on_cycle(report)

    console.print(f"[bold]NetAlert[/bold] evaluating every {interval}s. Press Ctrl+C to stop.")
    scheduler.start()
    try:
        while scheduler.running:
            time.sleep(1)
    except KeyboardInterrupt:
        pass
    finally:
        scheduler.stop()
        c["engine"].shutdown(wait=False)


# ──────────────────────────────────────────────────────
# ALERTS
# ──────────────────────────────────────────────────────
@cli.group()
def alerts():
    """Alert lifecycle management."""
    pass


@alerts.command("list")
@click.option("--status", type=click.Choice(["open", "acknowledged", "resolved"]), default=None)
@click.option("--severity", type=click.Choice(["info", "warning", "critical"]), default=None)
@click.option("--device", default=None, help="Device id")
@click.option("--provider", default=None, help="Provider id")
@click.pass_context
def alerts_list(ctx, status, severity, device, provider):
    """List alerts, optionally filtered."""
    c = _get_components(ctx)
    found = c["engine"].list_alerts(status=status, severity=severity,
                                     device_id=device, provider_id=provider)
    if not found:
        console.print("[dim]No alerts[/dim]")
        return
    console.print(_alerts_table(found, f"Alerts ({len(found)})"))


@alerts.command("show")
@click.argument("alert_id")
@click.pass_context
def alerts_show(ctx, alert_id):
    """Show one alert in full."""
    from alerts.errors import NotFoundError

    c = _get_components(ctx)
    try:
        alert = c["engine"].get_alert(alert_id)
    except NotFoundError as e:
        raise click.ClickException(str(e))

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")
    for key, value in alert.to_dict().items():
        if value in (None, [], ""):
            continue
        table.add_row(key, str(value))
    console.print(table)


def _transition(ctx, action, alert_id, actor):
    from alerts.errors import NotFoundError, InvalidTransitionError, StorageError

    c = _get_components(ctx)
    try:
        alert = getattr(c["engine"], action)(alert_id, actor)
    except (NotFoundError, InvalidTransitionError, StorageError) as e:
        raise click.ClickException(str(e))
    console.print(f"[green]✓[/green] {alert.id} is now [bold]{alert.status.value}[/bold]")


@alerts.command("ack")
@click.argument("alert_id")
@click.option("--actor", required=True, help="Who is acknowledging")
@click.pass_context
def alerts_ack(ctx, alert_id, actor):
    """Acknowledge an open alert."""
    _transition(ctx, "acknowledge", alert_id, actor)


@alerts.command("resolve")
@click.argument("alert_id")
@click.option("--actor", required=True, help="Who is resolving")
@click.pass_context
def alerts_resolve(ctx, alert_id, actor):
    """Resolve an open or acknowledged alert."""
    _transition(ctx, "resolve", alert_id, actor)


@alerts.command("counts")
@click.pass_context
def alerts_counts(ctx):
    """Show alert totals per status."""
    c = _get_components(ctx)
    counts = c["engine"].alert_counters()
    console.print("  ".join(f"{k}: [bold]{v}[/bold]" for k, v in counts.items()))


# ──────────────────────────────────────────────────────
# RULES
# ──────────────────────────────────────────────────────
@cli.group()
def rules():
    """Alert rule catalog."""
    pass


@rules.command("list")
@click.pass_context
def rules_list(ctx):
    """List all configured alert rules."""
    c = _get_components(ctx)
    table = Table(title="Alert Rules", show_header=True)
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Condition")
    table.add_column("Severity")
    table.add_column("Window")
    table.add_column("Aggregation")
    table.add_column("Targets")
    table.add_column("Enabled")
    for r in c["rules"].get_all_rules():
        table.add_row(r.id, r.name, r.condition_text(), r.severity.value,
                      f"{r.deduplication_window_seconds}s", r.aggregation.value,
                      ", ".join(r.targets),
                      "[green]✓[/green]" if r.enabled else "[red]✗[/red]")
    console.print(table)


@rules.command("validate")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
def rules_validate(path):
    """Check a rule file without loading it into the engine."""
    from alerts.rules_manager import RulesManager

    rm = RulesManager(path)
    for err in rm.errors:
        console.print(f"[red]✗[/red] {err}")
    console.print(f"{len(rm.rules)} valid rule(s), {len(rm.errors)} rejected")
    if rm.errors:
        sys.exit(1)


# ──────────────────────────────────────────────────────
# WEB
# ──────────────────────────────────────────────────────
@cli.command()
@click.option("--port", default=None, type=int, help="Port to bind to")
@click.option("--host", default=None, type=str, help="Host to bind to")
@click.option("--no-scheduler", is_flag=True, help="Only run cycles via POST /api/trigger")
@click.pass_context
def web(ctx, port, host, no_scheduler):
    """Serve the HTTP API (and run periodic cycles in the background)."""
    from web.app import create_app
    from telemetry.scheduler import CycleScheduler

    c = _get_components(ctx)
    web_cfg = c["config"].get("web", {})
    host = host or web_cfg.get("host", "127.0.0.1")
    port = port or web_cfg.get("port", 8080)

    scheduler = None
    if not no_scheduler:
        scheduler = CycleScheduler(c["engine"], c["config"]["engine"]["interval_seconds"])
        scheduler.start()

    app = create_app(c["config"], c["engine"])
    console.print(f"\n[bold]NetAlert API[/bold] on http://{host}:{port}\n")
    try:
        app.run(host=host, port=port, debug=False)
    finally:
        if scheduler:
            scheduler.stop()
        c["engine"].shutdown(wait=False)


if __name__ == "__main__":
    cli()
