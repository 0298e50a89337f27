"""
YADS CLI - Yet Another Development Server.
"""

import logging

import typer
from rich.text import Text

from .containers.cli import container_app, db_app, stack_app
from .context import AppContext, console, get_app_context, handle_errors
from .errors import ConfigurationError
from .host.cli import (
    database_app,
    domains_app,
    install,
    php_app,
    services_app,
    tunnel_app,
    uninstall,
    vscode_app,
    webserver_app,
)
from .projects import PROJECT_TYPES, ProjectManager
from .settings import get_settings

# Setup
app = typer.Typer(
    name="yads",
    help="Remote PHP development server: web servers, projects, tunnel and containers",
    add_completion=False,
)
config_app = typer.Typer(help="Read and change ~/.yads/config")
project_app = typer.Typer(help="Create and manage projects")

SECRET_MARKERS = ("TOKEN", "PASSWORD", "SECRET")


def configure_logging():
    """Configure logging based on settings."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.WARNING),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


# Configure logging on module import
configure_logging()


@app.callback()
def main(
    ctx: typer.Context,
    dry_run: bool = typer.Option(False, "--dry-run", help="Print mutating commands instead of running them"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every executed command"),
):
    """YADS - Yet Another Development Server."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    ctx.obj = AppContext.create(dry_run=dry_run)


@app.command()
def version():
    """Show YADS version."""
    from . import __version__

    console.print(f"YADS version: [bold]{__version__}[/bold]")


app.command("install")(install)
app.command("uninstall")(uninstall)


# Config

def _mask(key: str, value: str) -> str:
    if value and any(marker in key for marker in SECRET_MARKERS):
        return "********"
    return value


@config_app.command("show")
def config_show(ctx: typer.Context):
    """Show every configuration value, secrets masked."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        config = app_ctx.config
    values = {**config.DEFAULTS, **config.as_dict()}
    app_ctx.output.key_values(
        {key: _mask(key, value) for key, value in values.items()},
        title=f"Configuration ({config.path})",
    )


@config_app.command("get")
def config_get(ctx: typer.Context, key: str = typer.Argument(..., help="Configuration key")):
    """Print one configuration value."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        value = app_ctx.config.get(key)
        if value is None:
            raise ConfigurationError(f"{key} is not set")
    app_ctx.output.raw(value)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Configuration key"),
    value: str = typer.Argument(..., help="New value"),
):
    """Set a configuration value."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        app_ctx.config.set(key, value)
        app_ctx.config.save()
    app_ctx.output.success(f"{key} updated")


@config_app.command("unset")
def config_unset(ctx: typer.Context, key: str = typer.Argument(..., help="Configuration key")):
    """Remove a configuration value."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        if not app_ctx.config.unset(key):
            raise ConfigurationError(f"{key} is not set")
        app_ctx.config.save()
    app_ctx.output.success(f"{key} removed")


# Projects

@project_app.command("create")
def project_create(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name, also its subdomain"),
    project_type: str = typer.Argument("php", help=f"One of: {', '.join(PROJECT_TYPES)}"),
    git: bool = typer.Option(False, "--git", help="Initialise a git repository"),
):
    """Create a project."""
    with handle_errors():
        get_app_context(ctx).build(ProjectManager).create(name, project_type, git=git)


@project_app.command("deploy")
def project_deploy(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Start the web stack and install project dependencies."""
    with handle_errors():
        get_app_context(ctx).build(ProjectManager).deploy(name)


@project_app.command("disable")
def project_disable(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Take a project offline by renaming it to <name>.disabled."""
    with handle_errors():
        get_app_context(ctx).build(ProjectManager).disable(name)


project_app.command("stop", help="Alias of 'disable'.")(project_disable)


@project_app.command("enable")
def project_enable(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Bring a disabled project back online."""
    with handle_errors():
        get_app_context(ctx).build(ProjectManager).enable(name)


@project_app.command("remove")
def project_remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Delete a project directory."""
    if not yes:
        typer.confirm(f"Delete project '{name}' and all its files?", abort=True)
    with handle_errors():
        get_app_context(ctx).build(ProjectManager).remove(name)


@project_app.command("list")
def project_list(ctx: typer.Context):
    """List active and disabled projects."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        projects = app_ctx.build(ProjectManager).list()
    if not projects:
        app_ctx.output.warning("No projects yet. Create one with 'yads project create <name>'")
        return
    output = app_ctx.output
    output.table(
        "Projects",
        ["Name", "Type", "State", "URL"],
        [
            [project.name, project.type, output.state(project.enabled, up="enabled", down="disabled"), project.url]
            for project in projects
        ],
    )


@project_app.command("status")
def project_status(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Show the container state and recent logs of a project."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        status = app_ctx.build(ProjectManager).status(name)
    project = status["project"]
    output = app_ctx.output
    output.header(f"Project: {project.name}")
    line = Text("  Container: ")
    line.append(status["container"] + " ")
    line.append_text(output.state(status["running"]))
    output.console.print(line)
    output.raw(f"  Type: {project.type}")
    output.raw(f"  Path: {project.path}")
    output.raw(f"  URL:  {project.url}")
    if status["logs"]:
        output.header("Recent logs")
        output.raw(status["logs"])


app.add_typer(php_app, name="php")
app.add_typer(webserver_app, name="webserver")
app.add_typer(services_app, name="services")
app.add_typer(tunnel_app, name="tunnel")
app.add_typer(domains_app, name="domains")
app.add_typer(vscode_app, name="vscode")
app.add_typer(database_app, name="database")
app.add_typer(project_app, name="project")
app.add_typer(config_app, name="config")
app.add_typer(container_app, name="container")
app.add_typer(db_app, name="db")
app.add_typer(stack_app, name="stack")


if __name__ == "__main__":
    app()
