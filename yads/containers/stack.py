"""Docker Compose environment setup and lifecycle."""

import logging
import os
import shutil
from pathlib import Path

from ..base import Component
from ..errors import DependencyMissingError
from ..system import generate_password
from ..templates import render, render_scaffold
from .compose import compose_command

logger = logging.getLogger(__name__)

STACK_DIRECTORIES = [
    "data/traefik",
    "data/mysql",
    "data/postgres",
    "data/redis",
    "data/vscode",
    "data/pgadmin",
    "data/portainer",
    "config/traefik",
    "config/nginx",
    "config/php",
    "config/mysql",
    "config/postgres",
    "logs",
]


class StackManager(Component):
    """Prepares the compose directory and drives ``docker-compose``.

    The stack root is the directory holding the compose file.
    """

    @property
    def root(self) -> Path:
        return Path(self.settings.compose_file).parent

    @property
    def env_file(self) -> Path:
        return Path(self.settings.stack_env_file)

    def _compose(self, *args: str) -> list[str]:
        return compose_command(self.runner, self.settings.compose_file) + list(args)

    def check_requirements(self) -> None:
        """Docker, a compose implementation and a running daemon are required."""
        self.runner.require("docker", "Install Docker first: https://docs.docker.com/get-docker/")
        if not self.runner.has("docker-compose") and not self.runner.succeeds(["docker", "compose", "version"]):
            raise DependencyMissingError("Docker Compose is not installed")
        if not self.runner.succeeds(["docker", "info"]):
            raise DependencyMissingError("Docker daemon is not running. Please start Docker first.")

    def setup(self) -> None:
        """Create .env, data/config directories, Traefik files and a sample project."""
        self.check_requirements()
        self.output.header("Setting up YADS Docker environment")

        if self.runner.dry_run:
            self.output.info(f"would prepare {self.root.resolve()}")
            return

        self.write_env()
        self.create_directories()
        self.write_traefik_config()
        self.create_sample_project()
        self.output.success("YADS Docker environment is ready. Start it with 'yads stack start'")

    def write_env(self) -> Path:
        example = self.root / "env.example"
        if example.exists():
            if self.env_file.exists():
                backup = self.env_file.with_name(self.env_file.name + ".backup")
                shutil.copy2(self.env_file, backup)
                self.output.info(f"Existing {self.env_file} backed up to {backup}")
            shutil.copy2(example, self.env_file)
            self.output.success(f"{self.env_file} created from {example}")
            self.output.warning(f"Edit {self.env_file} to set your domain and passwords")
        elif self.env_file.exists():
            self.output.info(f"Keeping existing {self.env_file}")
        else:
            self.env_file.write_text(
                render(
                    "stack.env.j2",
                    domain=self.config.domain or "localhost",
                    mysql_root_password=generate_password(),
                    mysql_password=generate_password(),
                    postgres_password=generate_password(),
                    redis_password=generate_password(),
                    pgadmin_password=generate_password(),
                    vscode_password=generate_password(),
                ),
                encoding="utf-8",
            )
            os.chmod(self.env_file, 0o600)
            self.output.success(f"{self.env_file} created with random passwords")
        return self.env_file

    def create_directories(self) -> None:
        for directory in STACK_DIRECTORIES:
            (self.root / directory).mkdir(parents=True, exist_ok=True)
        Path(self.settings.projects_dir).mkdir(parents=True, exist_ok=True)
        self.output.success("Directories created")

    def write_traefik_config(self) -> None:
        acme = self.root / "data" / "traefik" / "acme.json"
        acme.touch(exist_ok=True)
        os.chmod(acme, 0o600)

        dynamic = self.root / "config" / "traefik" / "dynamic.yml"
        if not dynamic.exists():
            dynamic.write_text(render("traefik-dynamic.yml.j2"), encoding="utf-8")
        self.output.success("Traefik configuration created")

    def create_sample_project(self) -> Path:
        sample = Path(self.settings.projects_dir) / "sample"
        if sample.exists():
            return sample
        sample.mkdir(parents=True)
        render_scaffold(
            "php",
            sample,
            project_name="sample",
            project_url=f"https://sample.{self.config.domain or 'localhost'}",
            domain=self.config.domain or "localhost",
        )
        self.output.success(f"Sample project created at {sample}")
        return sample

    def start(self, services: tuple[str, ...] = ()) -> None:
        self.runner.run(self._compose("up", "-d", *services))
        self.output.success("Stack started" if not services else f"Started: {', '.join(services)}")

    def stop(self, services: tuple[str, ...] = ()) -> None:
        """Stop the named services, or take the whole stack down."""
        if services:
            self.runner.run(self._compose("stop", *services))
            self.output.success(f"Stopped: {', '.join(services)}")
        else:
            self.runner.run(self._compose("down"))
            self.output.success("Stack stopped")

    def restart(self, services: tuple[str, ...] = ()) -> None:
        self.runner.run(self._compose("restart", *services))
        self.output.success("Stack restarted" if not services else f"Restarted: {', '.join(services)}")

    def status(self) -> str:
        return self.runner.query(self._compose("ps"), check=True).stdout
