"""
Project lifecycle: create, disable, enable, remove, deploy.

A project is a directory under the projects root. Disabling renames it to
``<name>.disabled`` so the web server stops serving it while the files stay
untouched; enabling renames it back.
"""

import base64
import logging
import os
import secrets
import shutil
import tarfile
import tempfile
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from .base import Component
from .config import YadsConfig, read_env_file
from .containers.compose import compose_command, is_running
from .errors import ProjectError, ProjectExistsError, ProjectNotFoundError
from .host.releases import download
from .templates import render, render_scaffold
from .validation import validate_project_name

logger = logging.getLogger(__name__)

PROJECT_TYPES = ("php", "node", "python", "laravel", "symfony", "codeigniter", "wordpress", "generic")

COMPOSER_PROJECTS = {
    "laravel": "laravel/laravel",
    "symfony": "symfony/skeleton",
    "codeigniter": "codeigniter4/appstarter",
}

WORDPRESS_URL = "https://wordpress.org/latest.tar.gz"

DISABLED_SUFFIX = ".disabled"
DEFAULT_PASSWORD = "yads123"

# Marker file -> project type, checked in order
TYPE_MARKERS = [
    ("artisan", "laravel"),
    ("bin/console", "symfony"),
    ("wp-config.php", "wordpress"),
    ("wp-config-sample.php", "wordpress"),
    ("composer.json", "php"),
    ("index.php", "php"),
    ("package.json", "node"),
    ("requirements.txt", "python"),
]

# Path of the projects root inside the php-fpm container
CONTAINER_PROJECTS_ROOT = "/var/www/html"


class Project(BaseModel):
    """A project directory and what YADS knows about it."""

    name: str = Field(..., description="Project name, also its subdomain", examples=["blog"])
    type: str = Field(default="generic", description="Project type", examples=["laravel", "node"])
    path: Path = Field(..., description="Project directory")
    enabled: bool = Field(default=True, description="False when renamed to <name>.disabled")
    url: str = Field(..., description="Public URL", examples=["https://blog.mydev.com"])


def detect_type(path: Path) -> str:
    """Guess the project type from marker files, then from .yads/config."""
    for marker, project_type in TYPE_MARKERS:
        if (path / marker).exists():
            return project_type
    return read_env_file(path / ".yads" / "config").get("PROJECT_TYPE") or "generic"


class ProjectManager(Component):
    """Creates and manages projects under the projects root."""

    @property
    def root(self) -> Path:
        return Path(self.settings.projects_dir)

    def active_path(self, name: str) -> Path:
        return self.root / name

    def disabled_path(self, name: str) -> Path:
        return self.root / f"{name}{DISABLED_SUFFIX}"

    def project_url(self, name: str) -> str:
        return f"https://{name}.{self.config.domain or 'localhost'}"

    def _stack_passwords(self) -> dict[str, str]:
        env = read_env_file(Path(self.settings.stack_env_file))
        return {
            "mysql_password": env.get("MYSQL_PASSWORD") or DEFAULT_PASSWORD,
            "postgres_password": env.get("POSTGRES_PASSWORD") or DEFAULT_PASSWORD,
            "redis_password": env.get("REDIS_PASSWORD") or DEFAULT_PASSWORD,
        }

    def _record(self, name: str, path: Path, enabled: bool) -> Project:
        return Project(
            name=name,
            type=detect_type(path),
            path=path,
            enabled=enabled,
            url=self.project_url(name),
        )

    def create(self, name: str, project_type: str = "php", git: bool = False) -> Project:
        """Create a project from a template or a scaffold.

        Args:
            name: Project name, used as subdomain
            project_type: One of PROJECT_TYPES; anything else becomes generic
            git: Initialise a git repository with a first commit

        Returns:
            The created Project

        Raises:
            ValidationError: If the name is invalid
            ProjectExistsError: If the project exists, active or disabled
        """
        validate_project_name(name)
        if project_type not in PROJECT_TYPES:
            self.output.warning(f"Unknown project type '{project_type}', using generic")
            project_type = "generic"

        path = self.active_path(name)
        if path.exists() or self.disabled_path(name).exists():
            raise ProjectExistsError(f"Project '{name}' already exists")

        url = self.project_url(name)
        self.output.info(f"Creating {project_type} project {name}...")
        if self.runner.dry_run:
            self.output.info(f"would create {path}")
            return Project(name=name, type=project_type, path=path, enabled=True, url=url)

        path.mkdir(parents=True)
        try:
            self._populate(path, name, project_type, url)
            self.write_env(path, name)
            self.write_metadata(path, name, project_type)
            if git:
                self.init_git(path)
            for directory in [path, *(p for p in path.rglob("*") if p.is_dir())]:
                os.chmod(directory, 0o755)
        except Exception:
            logger.debug(f"Creating {name} failed, removing {path}")
            shutil.rmtree(path, ignore_errors=True)
            raise

        self.output.success(f"Project {name} created at {path}")
        self.output.info(f"Access at: {url}")
        return Project(name=name, type=project_type, path=path, enabled=True, url=url)

    def _populate(self, path: Path, name: str, project_type: str, url: str) -> None:
        template = Path(self.settings.project_templates_dir) / project_type
        if template.is_dir():
            shutil.copytree(template, path, dirs_exist_ok=True)
            logger.debug(f"Copied template {template}")
        elif project_type in COMPOSER_PROJECTS:
            self.runner.require("composer", "Install it with 'yads php composer'.")
            self.runner.run(
                ["composer", "create-project", "--no-interaction", COMPOSER_PROJECTS[project_type], str(path)]
            )
        elif project_type == "wordpress":
            self._unpack_wordpress(path)
        else:
            render_scaffold(
                project_type,
                path,
                project_name=name,
                project_url=url,
                domain=self.config.domain or "localhost",
            )

    def _unpack_wordpress(self, path: Path) -> None:
        with tempfile.TemporaryDirectory() as scratch:
            archive = download(WORDPRESS_URL, Path(scratch) / "latest.tar.gz", self.settings)
            with tarfile.open(archive, "r:gz") as tar:
                tar.extractall(scratch, filter="data")
            shutil.copytree(Path(scratch) / "wordpress", path, dirs_exist_ok=True)

    def write_env(self, path: Path, name: str) -> Path:
        """Write the project's .env with database, Redis and app settings."""
        env_file = path / ".env"
        env_file.write_text(
            render(
                "project.env.j2",
                project_name=name,
                project_url=self.project_url(name),
                app_key=base64.b64encode(secrets.token_bytes(32)).decode(),
                **self._stack_passwords(),
            ),
            encoding="utf-8",
        )
        return env_file

    def write_metadata(self, path: Path, name: str, project_type: str) -> Path:
        metadata = YadsConfig(
            path / ".yads" / "config",
            {
                "PROJECT_NAME": name,
                "PROJECT_TYPE": project_type,
                "PROJECT_DOMAIN": f"{name}.{self.config.domain or 'localhost'}",
                "PROJECT_PATH": str(path),
                "CREATED_DATE": datetime.now().isoformat(timespec="seconds"),
            },
        )
        return metadata.save()

    def init_git(self, path: Path) -> None:
        gitignore = path / ".gitignore"
        if not gitignore.exists():
            gitignore.write_text(render("gitignore.j2"), encoding="utf-8")
        self.runner.run(["git", "init"], cwd=path)
        self.runner.run(["git", "add", "."], cwd=path)
        self.runner.run(["git", "commit", "-m", "Initial commit"], cwd=path)

    def _locate(self, name: str) -> tuple[bool, bool]:
        """Existence of the (active, disabled) forms of a project."""
        validate_project_name(name)
        active = self.active_path(name).is_dir()
        disabled = self.disabled_path(name).is_dir()
        if not active and not disabled:
            raise ProjectNotFoundError(f"Project '{name}' not found")
        if active and disabled:
            raise ProjectError(
                f"Both '{name}' and '{name}{DISABLED_SUFFIX}' exist; remove one of them first"
            )
        return active, disabled

    def disable(self, name: str) -> Path:
        """Rename the project to ``<name>.disabled``. Disabling twice is a no-op.

        Returns:
            The disabled project path
        """
        active, _ = self._locate(name)
        target = self.disabled_path(name)
        if not active:
            self.output.info(f"Project '{name}' is already disabled")
            return target
        if not self.runner.dry_run:
            self.active_path(name).rename(target)
        self.output.success(f"Project '{name}' disabled")
        return target

    def enable(self, name: str) -> Path:
        """Rename ``<name>.disabled`` back. Enabling an active project is a no-op.

        Returns:
            The active project path
        """
        _, disabled = self._locate(name)
        target = self.active_path(name)
        if not disabled:
            self.output.info(f"Project '{name}' is already enabled")
            return target
        if not self.runner.dry_run:
            self.disabled_path(name).rename(target)
        self.output.success(f"Project '{name}' enabled")
        self.output.info(f"Access at: {self.project_url(name)}")
        return target

    def remove(self, name: str) -> Path:
        """Delete the project directory, active or disabled."""
        active, _ = self._locate(name)
        path = self.active_path(name) if active else self.disabled_path(name)
        if self.runner.dry_run:
            self.output.info(f"would remove {path}")
        else:
            shutil.rmtree(path)
        self.output.success(f"Project '{name}' removed")
        return path

    def list(self) -> list[Project]:
        """Active projects, then disabled ones, each sorted by name."""
        if not self.root.is_dir():
            return []
        active, disabled = [], []
        for entry in sorted(self.root.iterdir()):
            if not entry.is_dir() or entry.name.startswith("."):
                continue
            if entry.name.endswith(DISABLED_SUFFIX):
                disabled.append(self._record(entry.name.removesuffix(DISABLED_SUFFIX), entry, enabled=False))
            else:
                active.append(self._record(entry.name, entry, enabled=True))
        return active + disabled

    def get(self, name: str) -> Project:
        active, _ = self._locate(name)
        path = self.active_path(name) if active else self.disabled_path(name)
        return self._record(name, path, enabled=active)

    def deploy(self, name: str) -> Project:
        """Make sure the shared web stack runs and install dependencies.

        Raises:
            ProjectNotFoundError: If the project does not exist
            ProjectError: If the project is disabled
        """
        active, _ = self._locate(name)
        if not active:
            raise ProjectError(f"Project '{name}' is disabled. Enable it first with 'yads project enable {name}'")

        path = self.active_path(name)
        self.output.info(f"Deploying project: {name}")

        if not is_running(self.runner, "yads-nginx"):
            self.output.warning("Web server not running. Starting YADS services...")
            self.runner.run(compose_command(self.runner, self.settings.compose_file) + ["up", "-d", "nginx", "php-fpm"])

        workdir = f"{CONTAINER_PROJECTS_ROOT}/{name}"
        if (path / "composer.json").exists():
            self.output.info("Installing PHP dependencies...")
            self.runner.run(
                ["docker", "exec", "yads-php-fpm", "composer", "install",
                 f"--working-dir={workdir}", "--no-dev", "--optimize-autoloader"]
            )
        if (path / "package.json").exists():
            self.output.info("Installing Node.js dependencies...")
            self.runner.run(["docker", "exec", "yads-php-fpm", "npm", "install", f"--prefix={workdir}"])

        self.output.success(f"Project '{name}' deployed")
        self.output.info(f"Access at: {self.project_url(name)}")
        return self._record(name, path, enabled=True)

    def status(self, name: str) -> dict[str, object]:
        """Running flag of the ``yads-<name>`` container and its last log lines."""
        project = self.get(name)
        container = f"yads-{name}"
        running = is_running(self.runner, container)
        logs = self.runner.query(["docker", "logs", container, "--tail", "10"])
        return {
            "project": project,
            "container": container,
            "running": running,
            "logs": (logs.stdout + logs.stderr).strip() if logs.ok else "",
        }
