"""Tests for systemd service management."""

import pytest

from yads.errors import ServiceNotFoundError
from yads.host.services import SERVICES, ServiceManager
from yads.system import OSInfo


def installed(runner, *units):
    """Make systemd report the given units as installed."""
    for unit in units:
        runner.respond(
            f"systemctl list-unit-files {unit}.service",
            stdout=f"UNIT FILE  STATE\n{unit}.service enabled\n",
        )


@pytest.fixture
def services(components, runner):
    runner.respond("systemctl is-active --quiet", returncode=3)
    return ServiceManager(*components, os_info=OSInfo(id="ubuntu"))


def test_resolve_alternate_unit(services, runner):
    """Test that apache2 maps to httpd on hosts that use that name."""
    installed(runner, "httpd")

    assert services.resolve("apache2") == "httpd"
    assert services.resolve("nginx") is None


def test_unknown_service(services):
    with pytest.raises(ServiceNotFoundError, match="Service not found: nginx"):
        services.start("nginx")


def test_start_skips_running_units(services, runner):
    installed(runner, "nginx", "mysqld", "redis-server")
    runner.respond("systemctl is-active --quiet redis-server", returncode=0)

    started = services.start()

    assert started == ["nginx", "mysqld"]
    assert [c for c in runner.commands if c.startswith("systemctl start")] == [
        "systemctl start nginx",
        "systemctl start mysqld",
    ]


def test_stop_single_service(services, runner):
    installed(runner, "nginx")
    runner.respond("systemctl is-active --quiet nginx", returncode=0)

    assert services.stop("nginx") == ["nginx"]
    assert runner.commands[-1] == "systemctl stop nginx"


def test_stop_already_stopped(services, runner):
    installed(runner, "nginx")

    assert services.stop("nginx") == []


def test_restart_all_installed(services, runner):
    installed(runner, "cloudflared", "postgresql")

    assert services.restart() == ["cloudflared", "postgresql"]


def test_status_groups(services, runner):
    installed(runner, "vscode-server", "nginx")
    runner.respond("systemctl is-active --quiet nginx", returncode=0)

    report = services.status()

    assert list(report) == ["core", "web", "databases"]
    assert sum(len(rows) for rows in report.values()) == len(SERVICES)
    web = {row.name: row for row in report["web"]}
    assert web["nginx"].running and web["nginx"].installed
    assert not web["apache2"].installed
    core = {row.name: row for row in report["core"]}
    assert core["vscode-server"].installed and not core["vscode-server"].running
