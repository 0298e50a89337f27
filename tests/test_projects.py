"""Tests for the project lifecycle."""

import io
import tarfile
from unittest.mock import patch

import pytest

from yads.config import read_env_file
from yads.errors import (
    CommandError,
    DependencyMissingError,
    DownloadError,
    ProjectError,
    ProjectExistsError,
    ProjectNotFoundError,
    ValidationError,
)
from yads.projects import ProjectManager, detect_type


@pytest.fixture
def manager(components):
    return ProjectManager(*components)


def test_create_php_project(manager, settings):
    """Test that a php project gets the scaffold, .env and metadata."""
    project = manager.create("blog")

    path = settings.projects_dir / "blog"
    assert project.path == path
    assert project.url == "https://blog.mydev.com"
    assert project.enabled
    assert (path / "index.php").exists()
    assert (path / "composer.json").exists()

    env = read_env_file(path / ".env")
    assert env["APP_URL"] == "https://blog.mydev.com"
    assert env["DB_DATABASE"] == "blog_dev"
    assert env["DB_PASSWORD"] == "yads123"
    assert env["APP_KEY"].startswith("base64:")

    metadata = read_env_file(path / ".yads" / "config")
    assert metadata["PROJECT_TYPE"] == "php"
    assert metadata["PROJECT_DOMAIN"] == "blog.mydev.com"


def test_create_uses_stack_passwords(manager, settings):
    """Test that database passwords come from the compose .env."""
    settings.stack_env_file.write_text('MYSQL_PASSWORD="s3cret"\nREDIS_PASSWORD=r3dis\n')

    manager.create("shop")

    env = read_env_file(settings.projects_dir / "shop" / ".env")
    assert env["DB_PASSWORD"] == "s3cret"
    assert env["REDIS_PASSWORD"] == "r3dis"
    assert env["POSTGRES_PASSWORD"] == "yads123"


def test_create_unknown_type_falls_back_to_generic(manager, settings, output):
    """Test that an unknown type warns and scaffolds a generic project."""
    project = manager.create("notes", "elixir")

    assert project.type == "generic"
    assert (settings.projects_dir / "notes" / "README.md").exists()
    assert "Unknown project type 'elixir'" in output.console.file.getvalue()


def test_create_copies_user_template(manager, settings):
    """Test that a template directory for the type wins over the scaffold."""
    template = settings.project_templates_dir / "node"
    template.mkdir(parents=True)
    (template / "server.js").write_text("// custom\n")

    manager.create("api", "node")

    path = settings.projects_dir / "api"
    assert (path / "server.js").read_text() == "// custom\n"
    assert not (path / "package.json").exists()


def test_create_laravel_uses_composer(manager, runner, settings):
    """Test that framework types are created with composer create-project."""
    runner.binaries.add("composer")

    manager.create("crm", "laravel")

    path = settings.projects_dir / "crm"
    assert f"composer create-project --no-interaction laravel/laravel {path}" in runner.commands


def test_failed_create_leaves_no_directory(manager, runner, settings):
    """Test that a failed create can be retried once the cause is fixed."""
    with pytest.raises(DependencyMissingError, match="composer"):
        manager.create("shop", "laravel")

    assert not (settings.projects_dir / "shop").exists()

    runner.binaries.add("composer")
    project = manager.create("shop", "laravel")

    assert project.path.is_dir()
    assert (project.path / ".env").exists()


def test_failed_download_removes_project(manager, settings):
    with patch("yads.projects.download", side_effect=DownloadError("Download failed")):
        with pytest.raises(DownloadError):
            manager.create("press", "wordpress")

    assert not (settings.projects_dir / "press").exists()


def test_failed_git_init_removes_project(manager, runner, settings):
    runner.respond("git commit", returncode=1, stderr="Author identity unknown")

    with pytest.raises(CommandError):
        manager.create("blog", git=True)

    assert not (settings.projects_dir / "blog").exists()


def test_create_wordpress_unpacks_release(manager, settings, temp_dir):
    """Test that WordPress is downloaded and unpacked into the project."""

    def fake_download(url, destination, settings, executable=False):
        with tarfile.open(destination, "w:gz") as tar:
            data = b"<?php // wp"
            info = tarfile.TarInfo("wordpress/wp-config-sample.php")
            info.size = len(data)
            tar.addfile(info, io.BytesIO(data))
        return destination

    with patch("yads.projects.download", side_effect=fake_download) as mock_download:
        project = manager.create("press", "wordpress")

    assert mock_download.call_args.args[0] == "https://wordpress.org/latest.tar.gz"
    assert (project.path / "wp-config-sample.php").exists()
    assert detect_type(project.path) == "wordpress"


def test_create_with_git(manager, runner, settings):
    """Test that --git writes .gitignore and makes a first commit."""
    manager.create("repo", git=True)

    path = settings.projects_dir / "repo"
    assert (path / ".gitignore").exists()
    assert runner.commands[-3:] == ["git init", "git add .", "git commit -m Initial commit"]


def test_create_rejects_existing_project(manager, settings):
    """Test that active and disabled projects block re-creation."""
    (settings.projects_dir / "taken").mkdir(parents=True)
    (settings.projects_dir / "old.disabled").mkdir()

    with pytest.raises(ProjectExistsError):
        manager.create("taken")
    with pytest.raises(ProjectExistsError):
        manager.create("old")


def test_create_rejects_invalid_name(manager, settings):
    """Test that invalid names fail before anything is written."""
    with pytest.raises(ValidationError):
        manager.create("-bad")

    assert not settings.projects_dir.exists()


def test_create_dry_run_writes_nothing(components, settings):
    """Test that dry-run reports the project without creating it."""
    runner = components[0]
    runner.dry_run = True

    project = ProjectManager(*components).create("ghost")

    assert project.name == "ghost"
    assert not project.path.exists()


def test_disable_enable_round_trip(manager, settings):
    """Test that disable then enable restores the original directory."""
    manager.create("blog")
    active = settings.projects_dir / "blog"
    disabled = settings.projects_dir / "blog.disabled"

    assert manager.disable("blog") == disabled
    assert disabled.is_dir() and not active.exists()

    assert manager.enable("blog") == active
    assert active.is_dir() and not disabled.exists()
    assert (active / "index.php").exists()


def test_disable_and_enable_are_idempotent(manager, settings):
    """Test that repeating disable or enable changes nothing."""
    manager.create("blog")

    manager.disable("blog")
    manager.disable("blog")
    assert (settings.projects_dir / "blog.disabled").is_dir()

    manager.enable("blog")
    manager.enable("blog")
    assert (settings.projects_dir / "blog").is_dir()


def test_missing_project_raises(manager):
    """Test that operations on unknown projects raise ProjectNotFoundError."""
    for operation in (manager.disable, manager.enable, manager.remove, manager.get):
        with pytest.raises(ProjectNotFoundError):
            operation("nothing")


def test_conflicting_forms_raise(manager, settings):
    """Test that having both blog and blog.disabled is reported."""
    (settings.projects_dir / "blog").mkdir(parents=True)
    (settings.projects_dir / "blog.disabled").mkdir()

    with pytest.raises(ProjectError, match="Both"):
        manager.enable("blog")


def test_remove_disabled_project(manager, settings):
    """Test that remove deletes whichever form exists."""
    manager.create("blog")
    manager.disable("blog")

    manager.remove("blog")

    assert not (settings.projects_dir / "blog.disabled").exists()


def test_list_projects(manager, settings):
    """Test listing order and types: active first, then disabled."""
    manager.create("zeta", "node")
    manager.create("alpha")
    manager.create("mid", "python")
    manager.disable("mid")
    (settings.projects_dir / ".hidden").mkdir()

    projects = manager.list()

    assert [(p.name, p.type, p.enabled) for p in projects] == [
        ("alpha", "php", True),
        ("zeta", "node", True),
        ("mid", "python", False),
    ]


def test_list_without_projects_dir(manager):
    """Test that a missing projects root lists nothing."""
    assert manager.list() == []


def test_detect_type_markers(temp_dir):
    """Test type detection from marker files."""
    (temp_dir / "artisan").touch()
    (temp_dir / "composer.json").touch()

    assert detect_type(temp_dir) == "laravel"


def test_deploy_starts_stack_and_installs_dependencies(manager, runner, settings):
    """Test that deploy starts nginx/php-fpm when down and runs composer and npm."""
    manager.create("blog")
    (settings.projects_dir / "blog" / "package.json").write_text("{}")
    runner.respond("docker ps", stdout="yads-mysql\n")

    manager.deploy("blog")

    assert f"docker-compose -f {settings.compose_file} up -d nginx php-fpm" in runner.commands
    assert (
        "docker exec yads-php-fpm composer install --working-dir=/var/www/html/blog "
        "--no-dev --optimize-autoloader"
    ) in runner.commands
    assert "docker exec yads-php-fpm npm install --prefix=/var/www/html/blog" in runner.commands


def test_deploy_skips_stack_start_when_running(manager, runner, settings):
    """Test that a running web server is left alone."""
    manager.create("notes", "generic")
    runner.respond("docker ps", stdout="yads-nginx\nyads-php-fpm\n")

    manager.deploy("notes")

    assert not any("up -d" in command for command in runner.commands)
    assert not any("docker exec" in command for command in runner.commands)


def test_deploy_disabled_project_fails(manager):
    """Test that disabled projects cannot be deployed."""
    manager.create("blog")
    manager.disable("blog")

    with pytest.raises(ProjectError, match="disabled"):
        manager.deploy("blog")


def test_status(manager, runner):
    """Test container state and logs for a project."""
    manager.create("blog")
    runner.respond("docker ps", stdout="yads-blog\n")
    runner.respond("docker logs yads-blog", stdout="GET / 200\n")

    status = manager.status("blog")

    assert status["container"] == "yads-blog"
    assert status["running"] is True
    assert status["logs"] == "GET / 200"
