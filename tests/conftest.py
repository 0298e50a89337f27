"""
Pytest configuration and fixtures for YADS tests.

No test touches the real system: FakeRunner records every command instead of
spawning it and answers with canned output.
"""

import io
import tempfile
from pathlib import Path

import pytest
from rich.console import Console

from yads.config import YadsConfig
from yads.formatters import OutputFormatter
from yads.settings import YadsSettings
from yads.shell import CommandResult, CommandRunner


class FakeRunner(CommandRunner):
    """CommandRunner that records commands instead of running them.

    Responses are matched by the longest command prefix, so registering
    ``"docker ps"`` answers ``docker ps --format {{.Names}}``. Unmatched
    commands succeed with empty output.
    """

    def __init__(self, binaries=(), dry_run=False):
        super().__init__(dry_run=dry_run, console=Console(file=io.StringIO()))
        self.binaries = set(binaries)
        self.responses: dict[str, CommandResult] = {}
        self.calls: list[list[str]] = []
        self.inputs: dict[str, str | None] = {}
        self.envs: dict[str, dict[str, str] | None] = {}

    def is_root(self) -> bool:
        return True

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.binaries else None

    def respond(self, prefix: str, stdout: str = "", returncode: int = 0, stderr: str = "") -> None:
        self.responses[prefix] = CommandResult(
            args=prefix.split(), returncode=returncode, stdout=stdout, stderr=stderr
        )

    def _execute(self, args, *, capture, input_text, stdin_path, stdout_path, cwd, env):
        self.calls.append(list(args))
        command = " ".join(args)
        self.inputs[command] = input_text
        self.envs[command] = env
        matches = [prefix for prefix in self.responses if command.startswith(prefix)]
        if not matches:
            return CommandResult(args=args)
        canned = self.responses[max(matches, key=len)]
        if stdout_path:
            Path(stdout_path).write_text(canned.stdout, encoding="utf-8")
            return CommandResult(args=args, returncode=canned.returncode, stderr=canned.stderr)
        return CommandResult(
            args=args, returncode=canned.returncode, stdout=canned.stdout, stderr=canned.stderr
        )

    @property
    def commands(self) -> list[str]:
        return [" ".join(call) for call in self.calls]

    def ran(self, prefix: str) -> bool:
        return any(command.startswith(prefix) for command in self.commands)

    @property
    def printed(self) -> str:
        return self.console.file.getvalue()


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def runner():
    """Recording runner with docker-compose and the usual tools on PATH."""
    return FakeRunner(binaries={"docker", "docker-compose", "git", "sudo"})


@pytest.fixture
def settings(temp_dir):
    """Settings rooted in the temporary directory."""
    return YadsSettings(
        home=temp_dir / ".yads",
        config_file=temp_dir / ".yads" / "config",
        projects_dir=temp_dir / "projects",
        project_templates_dir=temp_dir / "templates",
        compose_file=temp_dir / "docker-compose.yml",
        stack_env_file=temp_dir / ".env",
        web_root=temp_dir / "www",
        github_api="https://api.github.test",
    )


@pytest.fixture
def config(settings):
    return YadsConfig(settings.config_file, {"DOMAIN": "mydev.com"})


@pytest.fixture
def output():
    """Formatter writing to a buffer; read it with ``output.console.file.getvalue()``."""
    return OutputFormatter(Console(file=io.StringIO(), width=200))


@pytest.fixture
def components(runner, config, settings, output):
    """Positional arguments shared by every manager constructor."""
    return runner, config, settings, output
