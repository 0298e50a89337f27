"""
Bare-host CLI commands.

This module provides the command groups that act on the host itself:
- install / uninstall
- PHP versions and Composer
- web server switching
- systemd services
- host databases
- Cloudflare tunnel, domains and TLS
- VS Code Server
"""

import logging
from typing import List, Optional

import typer

from ..context import get_app_context, handle_errors
from .databases import ENGINES, HostDatabaseManager
from .domains import DomainManager
from .installer import STEPS, Installer
from .php import PhpManager
from .services import ServiceManager
from .tunnel import DEFAULT_TUNNEL_NAME, TunnelManager
from .vscode import VSCodeManager
from .webserver import WEB_SERVERS, WebServerManager

logger = logging.getLogger(__name__)

php_app = typer.Typer(help="Manage PHP versions and Composer")
webserver_app = typer.Typer(help="Switch between nginx, apache and frankenphp")
services_app = typer.Typer(help="Start, stop and inspect YADS services")
tunnel_app = typer.Typer(help="Cloudflare tunnel management")
domains_app = typer.Typer(help="Domain, TLS certificate and virtual host management")
vscode_app = typer.Typer(help="VS Code Server management")
database_app = typer.Typer(help="MySQL, PostgreSQL and Redis on the host")


def install(
    ctx: typer.Context,
    components: Optional[List[str]] = typer.Option(
        None, "--component", "-c", help=f"Install only these components ({', '.join(STEPS)})"
    ),
):
    """Install the YADS development server on this host."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        ran = app_ctx.build(Installer).install(components or None)
    app_ctx.output.info(f"Installed: {', '.join(ran)}")


def uninstall(
    ctx: typer.Context,
    purge: bool = typer.Option(False, "--purge", help="Also remove ~/.yads configuration"),
    no_backup: bool = typer.Option(False, "--no-backup", help="Do not back up the projects directory"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Do not ask for confirmation"),
):
    """Remove YADS services and files from this host."""
    if not yes:
        typer.confirm("This will remove YADS from this host. Continue?", abort=True)
    app_ctx = get_app_context(ctx)
    with handle_errors():
        app_ctx.build(Installer).uninstall(purge=purge, backup=not no_backup)


# PHP

@php_app.command("current")
def php_current(ctx: typer.Context):
    """Show the active PHP version."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        version = app_ctx.build(PhpManager).current_version()
    if version is None:
        app_ctx.output.warning("PHP is not installed")
    else:
        app_ctx.output.info(f"Current PHP version: {version}")


@php_app.command("install")
def php_install(ctx: typer.Context, version: str = typer.Argument(..., help="PHP version, e.g. 8.3")):
    """Install a PHP version and make it the default."""
    with handle_errors():
        get_app_context(ctx).build(PhpManager).install_version(version)


@php_app.command("list")
def php_list(ctx: typer.Context):
    """List PHP versions available from the package index."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        versions = app_ctx.build(PhpManager).list_versions()
    app_ctx.output.header("Available PHP versions")
    for version in versions:
        app_ctx.output.raw(f"  {version}")


@php_app.command("composer")
def php_composer(ctx: typer.Context):
    """Install Composer and the Laravel installer."""
    with handle_errors():
        get_app_context(ctx).build(PhpManager).install_composer()


# Web server

@webserver_app.command("switch")
def webserver_switch(
    ctx: typer.Context,
    server: str = typer.Argument(..., help=f"One of: {', '.join(WEB_SERVERS)}"),
):
    """Make SERVER the active web server."""
    with handle_errors():
        get_app_context(ctx).build(WebServerManager).switch(server)


@webserver_app.command("status")
def webserver_status(ctx: typer.Context):
    """Show which web servers are running."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        status = app_ctx.build(WebServerManager).status()
    rows = [[server, app_ctx.output.state(running)] for server, running in status.items()]
    app_ctx.output.table("Web servers", ["Server", "State"], rows)
    app_ctx.output.info(f"Configured: {app_ctx.config.web_server}")


# Services

@services_app.command("start")
def services_start(ctx: typer.Context, service: Optional[str] = typer.Argument(None, help="Service name; all when omitted")):
    """Start one service or all installed services."""
    with handle_errors():
        get_app_context(ctx).build(ServiceManager).start(service)


@services_app.command("stop")
def services_stop(ctx: typer.Context, service: Optional[str] = typer.Argument(None, help="Service name; all when omitted")):
    """Stop one service or all installed services."""
    with handle_errors():
        get_app_context(ctx).build(ServiceManager).stop(service)


@services_app.command("restart")
def services_restart(ctx: typer.Context, service: Optional[str] = typer.Argument(None, help="Service name; all when omitted")):
    """Restart one service or all installed services."""
    with handle_errors():
        get_app_context(ctx).build(ServiceManager).restart(service)


@services_app.command("status")
def services_status(ctx: typer.Context):
    """Show installed and running state of every service."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        report = app_ctx.build(ServiceManager).status()
    output = app_ctx.output
    for group, rows in report.items():
        output.table(
            group.capitalize(),
            ["Service", "Unit", "State"],
            [
                [
                    row.name,
                    row.unit or "-",
                    output.state(row.running) if row.installed else output.state(False, down="not installed"),
                ]
                for row in rows
            ],
        )


# Tunnel

@tunnel_app.command("setup")
def tunnel_setup(
    ctx: typer.Context,
    name: str = typer.Argument(DEFAULT_TUNNEL_NAME, help="Tunnel name"),
    domain: Optional[str] = typer.Option(None, "--domain", "-d", help="Base domain (defaults to DOMAIN)"),
):
    """Create the tunnel, route DNS and install the service."""
    with handle_errors():
        get_app_context(ctx).build(TunnelManager).setup(name=name, domain=domain)


@tunnel_app.command("start")
def tunnel_start(ctx: typer.Context):
    """Start the tunnel service."""
    with handle_errors():
        get_app_context(ctx).build(TunnelManager).start()


@tunnel_app.command("stop")
def tunnel_stop(ctx: typer.Context):
    """Stop the tunnel service."""
    with handle_errors():
        get_app_context(ctx).build(TunnelManager).stop()


@tunnel_app.command("restart")
def tunnel_restart(ctx: typer.Context):
    """Restart the tunnel service."""
    with handle_errors():
        get_app_context(ctx).build(TunnelManager).restart()


@tunnel_app.command("status")
def tunnel_status(ctx: typer.Context):
    """Show tunnel state and id."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        status = app_ctx.build(TunnelManager).status()
    app_ctx.output.key_values(
        {key: ("-" if value is None else value) for key, value in status.items()},
        title="Cloudflare tunnel",
    )


@tunnel_app.command("update")
def tunnel_update(ctx: typer.Context, domain: str = typer.Argument(..., help="New base domain")):
    """Point the tunnel at a new domain."""
    with handle_errors():
        get_app_context(ctx).build(TunnelManager).update(domain)


# Domains

@domains_app.command("configure")
def domains_configure(
    ctx: typer.Context,
    domain: Optional[str] = typer.Option(None, "--domain", "-d", help="Base domain, e.g. mydev.com"),
    token: Optional[str] = typer.Option(None, "--token", "-t", help="Cloudflare API token"),
    email: Optional[str] = typer.Option(None, "--email", "-e", help="Let's Encrypt email"),
):
    """Configure the domain, tunnel and wildcard certificate."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        domain = domain or app_ctx.config.domain or typer.prompt("Domain")
        email = email or app_ctx.config.get("EMAIL") or typer.prompt("Email for Let's Encrypt notifications")
        app_ctx.build(DomainManager).configure(domain, token=token, email=email)


@domains_app.command("url")
def domains_url(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Print the URL of a project."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        url = app_ctx.build(DomainManager).project_url(name)
    app_ctx.output.raw(url)


@domains_app.command("vhost")
def domains_vhost(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Create the virtual host of a project."""
    with handle_errors():
        get_app_context(ctx).build(DomainManager).create_project_vhost(name)


@domains_app.command("remove-vhost")
def domains_remove_vhost(ctx: typer.Context, name: str = typer.Argument(..., help="Project name")):
    """Remove the virtual host of a project."""
    with handle_errors():
        get_app_context(ctx).build(DomainManager).remove_project_vhost(name)


# VS Code

@vscode_app.command("setup")
def vscode_setup(ctx: typer.Context):
    """Configure code-server and install default extensions."""
    with handle_errors():
        get_app_context(ctx).build(VSCodeManager).setup()


@vscode_app.command("start")
def vscode_start(ctx: typer.Context):
    """Start VS Code Server."""
    with handle_errors():
        get_app_context(ctx).build(VSCodeManager).start()


@vscode_app.command("stop")
def vscode_stop(ctx: typer.Context):
    """Stop VS Code Server."""
    with handle_errors():
        get_app_context(ctx).build(VSCodeManager).stop()


@vscode_app.command("restart")
def vscode_restart(ctx: typer.Context):
    """Restart VS Code Server."""
    with handle_errors():
        get_app_context(ctx).build(VSCodeManager).restart()


@vscode_app.command("status")
def vscode_status(ctx: typer.Context):
    """Show VS Code Server state and password."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        status = app_ctx.build(VSCodeManager).status()
    app_ctx.output.key_values(
        {key: ("-" if value is None else value) for key, value in status.items()},
        title="VS Code Server",
    )


@vscode_app.command("password")
def vscode_password(ctx: typer.Context):
    """Generate a new VS Code Server password."""
    with handle_errors():
        get_app_context(ctx).build(VSCodeManager).change_password()


@vscode_app.command("install")
def vscode_install(ctx: typer.Context, extension: str = typer.Argument(..., help="Extension id, e.g. ms-python.python")):
    """Install a VS Code extension."""
    with handle_errors():
        get_app_context(ctx).build(VSCodeManager).install_extension(extension)


@vscode_app.command("extensions")
def vscode_extensions(ctx: typer.Context):
    """List installed extensions."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        extensions = app_ctx.build(VSCodeManager).list_extensions()
    app_ctx.output.header("Installed VS Code extensions")
    for extension in extensions:
        app_ctx.output.raw(f"  {extension}")


# Host databases

@database_app.command("status")
def database_status(ctx: typer.Context):
    """Show whether MySQL, PostgreSQL and Redis are running."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        status = app_ctx.build(HostDatabaseManager).status()
    rows = [[engine, app_ctx.output.state(running)] for engine, running in status.items()]
    app_ctx.output.table("Databases", ["Engine", "State"], rows)


@database_app.command("install")
def database_install(ctx: typer.Context, engine: str = typer.Argument(..., help=f"One of: {', '.join(ENGINES)}")):
    """Install and start one database engine."""
    with handle_errors():
        get_app_context(ctx).build(HostDatabaseManager).install(engine)


@database_app.command("create")
def database_create(
    ctx: typer.Context,
    project: str = typer.Argument(..., help="Project name"),
    db_type: str = typer.Argument("mysql", help="mysql or postgresql"),
):
    """Create <project>_dev and its user on the host database server."""
    app_ctx = get_app_context(ctx)
    with handle_errors():
        credentials = app_ctx.build(HostDatabaseManager).create(project, db_type)
    app_ctx.output.key_values(
        {
            "Database": credentials.name,
            "User": credentials.user,
            "Password": credentials.password,
            "Host": f"{credentials.host}:{credentials.port}",
        },
        title="Connection details",
    )
