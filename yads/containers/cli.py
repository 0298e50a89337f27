"""Docker stack CLI commands: containers, databases and the compose stack."""

import logging
from pathlib import Path
from typing import List, Optional

import typer
from rich.text import Text

from ..context import get_app_context, handle_errors
from .databases import DatabaseManager
from .orchestrator import ContainerOrchestrator, Health
from .stack import StackManager

logger = logging.getLogger(__name__)

container_app = typer.Typer(help="Container orchestration: health, scaling, limits, backups")
db_app = typer.Typer(help="MySQL and PostgreSQL database management")
stack_app = typer.Typer(help="Docker Compose environment")

HEALTH_STYLES = {
    Health.HEALTHY: "green",
    Health.UNHEALTHY: "red",
    Health.STARTING: "yellow",
    Health.STOPPED: "dim",
    Health.UNKNOWN: "yellow",
}


# Containers

@container_app.command("monitor")
def container_monitor(ctx: typer.Context):
    """Show the health of every YADS container."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        report = app_ctx.build(ContainerOrchestrator).monitor()
    rows = [[name, Text(health.value, style=HEALTH_STYLES[health])] for name, health in report.items()]
    app_ctx.output.table("Container health", ["Container", "Health"], rows)


@container_app.command("scale")
def container_scale(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Compose service"),
    replicas: int = typer.Argument(..., help="Number of replicas"),
):
    """Scale SERVICE to a fixed number of replicas."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).scale(service, replicas)


@container_app.command("auto-scale")
def container_auto_scale(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Compose service"),
    max_replicas: int = typer.Argument(5, help="Upper replica bound"),
    min_replicas: int = typer.Argument(1, help="Lower replica bound"),
):
    """Add or remove one replica based on CPU usage."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        decision = app_ctx.build(ContainerOrchestrator).auto_scale(service, max_replicas, min_replicas)
    app_ctx.output.info(
        f"{decision.service}: CPU {decision.cpu_percent}%, "
        f"replicas {decision.current_replicas} -> {decision.target_replicas} ({decision.action})"
    )


@container_app.command("start-with-deps")
def container_start_with_deps(ctx: typer.Context, service: str = typer.Argument(..., help="Compose service")):
    """Start SERVICE after the services it depends on."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).start_with_deps(service)


@container_app.command("stop-with-deps")
def container_stop_with_deps(ctx: typer.Context, service: str = typer.Argument(..., help="Compose service")):
    """Stop the services depending on SERVICE, then SERVICE."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).stop_with_deps(service)


@container_app.command("set-limits")
def container_set_limits(
    ctx: typer.Context,
    service: str = typer.Argument(..., help="Compose service"),
    cpu: str = typer.Argument(..., help="CPU limit, e.g. 0.5"),
    memory: str = typer.Argument(..., help="Memory limit, e.g. 512M"),
):
    """Write CPU and memory limits into the compose file and recreate SERVICE."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        backup = app_ctx.build(ContainerOrchestrator).set_limits(service, cpu, memory)
    if backup:
        app_ctx.output.info(f"Previous compose file saved as {backup}")


@container_app.command("resources")
def container_resources(ctx: typer.Context, service: Optional[str] = typer.Argument(None, help="Container; all when omitted")):
    """Show CPU, memory, network and block IO usage."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        usage = app_ctx.build(ContainerOrchestrator).resource_usage(service)
    if usage:
        app_ctx.output.raw(usage.rstrip())
    else:
        app_ctx.output.warning("No running containers")


@container_app.command("logs")
def container_logs(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name"),
    lines: int = typer.Argument(100, help="Number of lines"),
):
    """Show the last LINES log lines of CONTAINER."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        logs = app_ctx.build(ContainerOrchestrator).logs(container, lines)
    app_ctx.output.raw(logs.rstrip())


@container_app.command("follow-logs")
def container_follow_logs(ctx: typer.Context, container: str = typer.Argument(..., help="Container name")):
    """Stream the logs of CONTAINER."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).follow_logs(container)


@container_app.command("network-create")
def container_network_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Network name"),
    driver: str = typer.Option("bridge", "--driver", help="Network driver"),
):
    """Create a Docker network unless it exists."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).create_network(name, driver)


@container_app.command("network-connect")
def container_network_connect(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name"),
    network: str = typer.Argument(..., help="Network name"),
):
    """Connect CONTAINER to NETWORK."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).connect_network(container, network)


@container_app.command("backup")
def container_backup(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name"),
    backup_dir: Path = typer.Argument(..., help="Directory receiving the archives"),
):
    """Archive every mounted directory of CONTAINER."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).backup(container, backup_dir)


@container_app.command("restore")
def container_restore(
    ctx: typer.Context,
    container: str = typer.Argument(..., help="Container name"),
    backup_dir: Path = typer.Argument(..., help="Directory holding the archives"),
):
    """Restore the mounted directories of CONTAINER from archives."""
    with handle_errors():
        get_app_context(ctx).build(ContainerOrchestrator).restore(container, backup_dir)


# Databases

@db_app.command("create")
def db_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    db_type: str = typer.Argument("mysql", help="mysql or postgres"),
):
    """Create a database with its own user."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        credentials = app_ctx.build(DatabaseManager).create(name, db_type)
    app_ctx.output.key_values(
        {
            "Database": credentials.name,
            "User": credentials.user,
            "Password": credentials.password,
            "Host": f"{credentials.host}:{credentials.port}",
        },
        title="Connection details",
    )


@db_app.command("drop")
def db_drop(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    db_type: str = typer.Argument("mysql", help="mysql or postgres"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Drop a database and its user."""
    if not yes:
        typer.confirm(f"Drop {db_type} database '{name}'? This cannot be undone.", abort=True)
    with handle_errors():
        get_app_context(ctx).build(DatabaseManager).drop(name, db_type)


@db_app.command("list")
def db_list(ctx: typer.Context, db_type: str = typer.Argument("all", help="mysql, postgres or all")):
    """List user databases."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        listing = app_ctx.build(DatabaseManager).list(db_type)
    for kind, databases in listing.items():
        app_ctx.output.header(f"{kind} databases")
        if not databases:
            app_ctx.output.raw("  (none)")
        for database in databases:
            app_ctx.output.raw(f"  {database}")


@db_app.command("info")
def db_info(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    db_type: str = typer.Argument("mysql", help="mysql or postgres"),
):
    """Show size and tables of a database."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        info = app_ctx.build(DatabaseManager).info(name, db_type)
    app_ctx.output.key_values(
        {"Size": info.size, "Tables": ", ".join(info.tables) or "(none)"},
        title=f"{info.type} database: {info.name}",
    )


@db_app.command("backup")
def db_backup(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    backup_file: Path = typer.Argument(..., help="Dump file to write"),
    db_type: str = typer.Argument("mysql", help="mysql or postgres"),
):
    """Dump a database to a file."""
    with handle_errors():
        get_app_context(ctx).build(DatabaseManager).backup(name, backup_file, db_type)


@db_app.command("restore")
def db_restore(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Database name"),
    backup_file: Path = typer.Argument(..., help="Dump file to load"),
    db_type: str = typer.Argument("mysql", help="mysql or postgres"),
):
    """Load a dump file into a database."""
    with handle_errors():
        get_app_context(ctx).build(DatabaseManager).restore(name, backup_file, db_type)


# Stack

@stack_app.command("setup")
def stack_setup(ctx: typer.Context):
    """Prepare .env, data directories and Traefik configuration."""
    with handle_errors():
        get_app_context(ctx).build(StackManager).setup()


@stack_app.command("start")
def stack_start(ctx: typer.Context, services: Optional[List[str]] = typer.Argument(None, help="Services; all when omitted")):
    """Start the stack or the given services."""
    with handle_errors():
        get_app_context(ctx).build(StackManager).start(tuple(services or ()))


@stack_app.command("stop")
def stack_stop(ctx: typer.Context, services: Optional[List[str]] = typer.Argument(None, help="Services; whole stack when omitted")):
    """Stop the given services or take the stack down."""
    with handle_errors():
        get_app_context(ctx).build(StackManager).stop(tuple(services or ()))


@stack_app.command("restart")
def stack_restart(ctx: typer.Context, services: Optional[List[str]] = typer.Argument(None, help="Services; all when omitted")):
    """Restart the stack or the given services."""
    with handle_errors():
        get_app_context(ctx).build(StackManager).restart(tuple(services or ()))


@stack_app.command("status")
def stack_status(ctx: typer.Context):
    """Show docker-compose service status."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        status = app_ctx.build(StackManager).status()
    app_ctx.output.raw(status.rstrip())
