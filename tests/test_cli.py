"""Tests for the yads command line."""

from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from yads import __version__
from yads.cli import app
from yads.config import read_env_file
from yads.context import AppContext
from yads.formatters import OutputFormatter
from yads.system import OSInfo

cli_runner = CliRunner()


@pytest.fixture
def app_ctx(runner, config, settings):
    ctx = AppContext(settings=settings, runner=runner, output=OutputFormatter(Console(width=200)))
    ctx._config = config
    return ctx


@pytest.fixture
def invoke(app_ctx):
    """Invoke the CLI with the test context instead of the real system."""

    def _invoke(*args, input=None):
        with patch("yads.cli.AppContext.create", return_value=app_ctx):
            return cli_runner.invoke(app, list(args), input=input)

    return _invoke


def test_version(invoke):
    result = invoke("version")

    assert result.exit_code == 0
    assert f"YADS version: {__version__}" in result.output


def test_dry_run_flag_reaches_context(app_ctx):
    with patch("yads.cli.AppContext.create", return_value=app_ctx) as create:
        result = cli_runner.invoke(app, ["--dry-run", "version"])

    assert result.exit_code == 0
    create.assert_called_once_with(dry_run=True)


def test_missing_argument_is_a_usage_error(invoke):
    result = invoke("project", "create")

    assert result.exit_code == 2


class TestConfigCommands:
    """Tests for yads config."""

    def test_set_and_get(self, invoke, settings):
        assert invoke("config", "set", "EMAIL", "dev@mydev.com").exit_code == 0

        assert read_env_file(settings.config_file)["EMAIL"] == "dev@mydev.com"
        result = invoke("config", "get", "EMAIL")
        assert result.output.strip() == "dev@mydev.com"

    def test_get_missing_key(self, invoke):
        result = invoke("config", "get", "NOPE")

        assert result.exit_code == 1
        assert "✗ Error:" in result.output
        assert "NOPE is not set" in result.output

    def test_set_invalid_key(self, invoke):
        result = invoke("config", "set", "bad-key", "x")

        assert result.exit_code == 1
        assert "Invalid config key" in result.output

    def test_show_masks_secrets(self, invoke, config):
        config.set("CLOUDFLARE_TOKEN", "super-secret-token")

        result = invoke("config", "show")

        assert result.exit_code == 0
        assert "super-secret-token" not in result.output
        assert "********" in result.output
        assert "mydev.com" in result.output
        assert "nginx" in result.output

    def test_undecodable_config_file(self, runner, settings):
        """Test that a config file that is not UTF-8 is reported, not a traceback."""
        settings.config_file.parent.mkdir(parents=True)
        settings.config_file.write_bytes(b'DOMAIN="caf\xe9.com"\n')
        app_ctx = AppContext(settings=settings, runner=runner, output=OutputFormatter(Console(width=200)))

        with patch("yads.cli.AppContext.create", return_value=app_ctx):
            result = cli_runner.invoke(app, ["config", "show"])

        assert result.exit_code == 1
        assert "✗ Error:" in result.output
        assert "Cannot read" in result.output
        assert result.exception is None or isinstance(result.exception, SystemExit)

    def test_unset(self, invoke, settings):
        assert invoke("config", "unset", "DOMAIN").exit_code == 0
        assert "DOMAIN" not in read_env_file(settings.config_file)
        assert invoke("config", "unset", "DOMAIN").exit_code == 1


class TestProjectCommands:
    """Tests for yads project."""

    def test_create_and_list(self, invoke, settings):
        result = invoke("project", "create", "blog", "php")

        assert result.exit_code == 0
        assert (settings.projects_dir / "blog" / "index.php").exists()

        result = invoke("project", "list")
        assert "blog" in result.output
        assert "https://blog.mydev.com" in result.output
        assert "enabled" in result.output

    def test_list_empty(self, invoke):
        result = invoke("project", "list")

        assert result.exit_code == 0
        assert "No projects yet" in result.output

    def test_stop_is_an_alias_of_disable(self, invoke, settings):
        invoke("project", "create", "blog")

        result = invoke("project", "stop", "blog")

        assert result.exit_code == 0
        assert (settings.projects_dir / "blog.disabled").is_dir()
        assert invoke("project", "enable", "blog").exit_code == 0
        assert (settings.projects_dir / "blog").is_dir()

    def test_invalid_name(self, invoke):
        result = invoke("project", "create", "bad_name")

        assert result.exit_code == 1
        assert "Invalid project name 'bad_name'" in result.output

    def test_create_existing(self, invoke):
        invoke("project", "create", "blog")

        result = invoke("project", "create", "blog")

        assert result.exit_code == 1
        assert "already exists" in result.output

    def test_remove_asks_for_confirmation(self, invoke, settings):
        invoke("project", "create", "blog")

        result = invoke("project", "remove", "blog", input="n\n")

        assert result.exit_code == 1
        assert (settings.projects_dir / "blog").is_dir()

        assert invoke("project", "remove", "blog", "--yes").exit_code == 0
        assert not (settings.projects_dir / "blog").exists()

    def test_status_unknown_project(self, invoke):
        result = invoke("project", "status", "ghost")

        assert result.exit_code == 1
        assert "Project 'ghost' not found" in result.output


class TestHostCommands:
    """Tests for the bare-host command groups."""

    def test_install_unknown_component(self, invoke, runner):
        result = invoke("install", "--component", "kubernetes")

        assert result.exit_code == 1
        assert "Unknown component(s): kubernetes" in result.output
        assert runner.calls == []

    def test_webserver_switch_unknown(self, invoke):
        result = invoke("webserver", "switch", "lighttpd")

        assert result.exit_code == 1
        assert "Unknown web server" in result.output

    def test_php_current_without_php(self, invoke):
        result = invoke("php", "current")

        assert result.exit_code == 0
        assert "PHP is not installed" in result.output

    def test_domains_url(self, invoke):
        result = invoke("domains", "url", "blog")

        assert result.output.strip() == "https://blog.mydev.com"

    def test_uninstall_aborts_without_confirmation(self, invoke, runner):
        result = invoke("uninstall", input="n\n")

        assert result.exit_code == 1
        assert runner.calls == []


class TestContainerCommands:
    """Tests for the Docker stack command groups."""

    def test_container_monitor(self, invoke, runner):
        runner.respond("docker ps", stdout="yads-nginx\n")
        runner.respond("docker inspect", stdout="healthy\n")

        result = invoke("container", "monitor")

        assert result.exit_code == 0
        assert "yads-nginx" in result.output
        assert "healthy" in result.output
        assert "stopped" in result.output

    def test_container_scale_negative(self, invoke):
        result = invoke("container", "scale", "php-fpm", "--", "-1")

        assert result.exit_code == 1
        assert "non-negative" in result.output

    def test_db_create(self, invoke, runner):
        result = invoke("db", "create", "blog", "postgres")

        assert result.exit_code == 0
        assert "blog_user" in result.output
        assert "postgres:5432" in result.output

    def test_db_drop_requires_confirmation(self, invoke, runner):
        result = invoke("db", "drop", "blog", input="n\n")

        assert result.exit_code == 1
        assert runner.calls == []

        assert invoke("db", "drop", "blog", "--yes").exit_code == 0
        assert runner.ran("docker exec -e MYSQL_PWD=yads123 yads-mysql mysql -u root -N -B -e DROP DATABASE")

    def test_db_list(self, invoke, runner):
        runner.respond("docker exec -e MYSQL_PWD=yads123 yads-mysql", stdout="blog\nmysql\n")

        result = invoke("db", "list", "mysql")

        assert result.exit_code == 0
        assert "blog" in result.output

    def test_stack_stop_all(self, invoke, runner, settings):
        result = invoke("stack", "stop")

        assert result.exit_code == 0
        assert runner.commands == [f"docker-compose -f {settings.compose_file} down"]

    def test_stack_start_services(self, invoke, runner, settings):
        invoke("stack", "start", "nginx", "mysql")

        assert runner.commands == [f"docker-compose -f {settings.compose_file} up -d nginx mysql"]


class TestHostDatabaseCommands:
    """Tests for yads database."""

    def test_status(self, invoke, runner):
        runner.respond("systemctl is-active --quiet", returncode=3)
        runner.respond("systemctl is-active --quiet postgresql", returncode=0)

        with patch("yads.host.base.detect_os", return_value=OSInfo(id="ubuntu")):
            result = invoke("database", "status")

        assert result.exit_code == 0
        assert "PostgreSQL" in result.output
        assert "running" in result.output
        assert "stopped" in result.output

    def test_create(self, invoke, runner):
        runner.binaries.add("mysql")

        result = invoke("database", "create", "blog")

        assert result.exit_code == 0
        assert "blog_dev" in result.output
        assert "blog_pass" in result.output
        assert "localhost:3306" in result.output
        assert runner.ran("mysql -u root -N -B -e CREATE DATABASE IF NOT EXISTS `blog_dev`;")

    def test_create_unknown_type(self, invoke, runner):
        result = invoke("database", "create", "blog", "oracle")

        assert result.exit_code == 1
        assert "Unknown database type 'oracle'" in result.output
        assert runner.calls == []
