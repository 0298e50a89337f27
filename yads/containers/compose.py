"""Docker and Docker Compose invocation helpers."""

from pathlib import Path

from ..shell import CommandRunner


def compose_command(runner: CommandRunner, compose_file: Path | None = None) -> list[str]:
    """Base compose command: ``docker-compose`` when installed, else ``docker compose``.

    Args:
        runner: Used to probe PATH
        compose_file: Passed as ``-f`` when given
    """
    base = ["docker-compose"] if runner.has("docker-compose") else ["docker", "compose"]
    if compose_file is not None:
        base += ["-f", str(compose_file)]
    return base


def running_containers(runner: CommandRunner) -> set[str]:
    """Names of the running containers."""
    result = runner.query(["docker", "ps", "--format", "{{.Names}}"])
    return set(result.lines) if result.ok else set()


def is_running(runner: CommandRunner, name: str) -> bool:
    """Exact-name check; ``yads-mysql`` does not match ``yads-mysql-2``."""
    return name in running_containers(runner)
