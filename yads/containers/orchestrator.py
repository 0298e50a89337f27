"""
Container orchestration for the Docker Compose stack.

Health checks, manual and CPU-driven scaling, dependency-aware start/stop,
resource limits, networks, logs and volume backups. State is never cached:
every call asks docker or docker-compose.
"""

import logging
import math
import re
import shutil
import tarfile
from datetime import datetime
from enum import Enum
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from ..base import Component
from ..errors import ConfigurationError, ServiceNotFoundError, ValidationError
from .compose import compose_command, running_containers

logger = logging.getLogger(__name__)

MANAGED_CONTAINERS = [
    "yads-traefik",
    "yads-cloudflared",
    "yads-vscode-server",
    "yads-mysql",
    "yads-postgres",
    "yads-redis",
    "yads-nginx",
    "yads-php-fpm",
    "yads-phpmyadmin",
    "yads-pgadmin",
    "yads-portainer",
]

# service -> services it needs running first
DEPENDENCIES = {
    "php-fpm": ["mysql", "postgres", "redis"],
    "nginx": ["php-fpm"],
    "phpmyadmin": ["mysql"],
    "pgadmin": ["postgres"],
}

# service -> services that need it
DEPENDENTS = {
    "mysql": ["php-fpm", "phpmyadmin"],
    "postgres": ["php-fpm", "pgadmin"],
    "php-fpm": ["nginx"],
}

SCALE_UP_CPU = 70.0
SCALE_DOWN_CPU = 30.0

RESERVED_CPUS = "0.1"
RESERVED_MEMORY = "128M"

STATS_FORMAT = "table {{.Container}}\t{{.CPUPerc}}\t{{.MemUsage}}\t{{.NetIO}}\t{{.BlockIO}}"

_MEMORY_PATTERN = re.compile(r"^[0-9]+(\.[0-9]+)?[bkmgBKMG]?$")


class Health(str, Enum):
    """Container health as reported by Docker."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    STARTING = "starting"
    STOPPED = "stopped"
    UNKNOWN = "unknown"


class ScaleDecision(BaseModel):
    """Outcome of one auto-scale evaluation."""

    service: str = Field(..., description="Compose service name", examples=["php-fpm"])
    cpu_percent: float = Field(..., description="Measured CPU usage", examples=[82.5])
    current_replicas: int = Field(..., description="Replicas before scaling")
    target_replicas: int = Field(..., description="Replicas after scaling")

    @property
    def action(self) -> str:
        if self.target_replicas > self.current_replicas:
            return "scale-up"
        if self.target_replicas < self.current_replicas:
            return "scale-down"
        return "none"


class ContainerOrchestrator(Component):
    """Lifecycle helpers for the containers of the YADS compose project."""

    def _compose(self, *args: str) -> list[str]:
        return compose_command(self.runner, self.settings.compose_file) + list(args)

    def check_health(self, container: str) -> Health:
        """Health of one container; ``stopped`` when it is not running."""
        if container not in running_containers(self.runner):
            return Health.STOPPED
        result = self.runner.query(["docker", "inspect", "--format", "{{.State.Health.Status}}", container])
        if not result.ok:
            return Health.UNKNOWN
        try:
            return Health(result.stdout.strip())
        except ValueError:
            return Health.UNKNOWN

    def monitor(self) -> dict[str, Health]:
        """Health of every managed container."""
        running = running_containers(self.runner)
        report = {}
        for container in MANAGED_CONTAINERS:
            if container not in running:
                report[container] = Health.STOPPED
                continue
            report[container] = self.check_health(container)
        return report

    def scale(self, service: str, replicas: int) -> None:
        if replicas < 0:
            raise ValidationError(f"Replica count must be a non-negative integer, got {replicas}")
        self.output.info(f"Scaling {service} to {replicas} replicas...")
        self.runner.run(self._compose("up", "-d", "--scale", f"{service}={replicas}"))
        self.output.success(f"Service {service} scaled to {replicas} replicas")

    def cpu_usage(self, service: str) -> float:
        """CPU percentage reported by ``docker stats``; 0 when unavailable."""
        result = self.runner.query(["docker", "stats", "--no-stream", "--format", "{{.CPUPerc}}", service])
        if not result.ok or not result.lines:
            return 0.0
        try:
            return float(result.lines[-1].strip().rstrip("%"))
        except ValueError:
            logger.warning(f"Unparseable CPU usage for {service}: {result.lines[-1]!r}")
            return 0.0

    def replica_count(self, service: str) -> int:
        """Running replicas of a service, never less than 1."""
        result = self.runner.query(self._compose("ps", "-q", service))
        return max(1, len(result.lines)) if result.ok else 1

    def auto_scale(self, service: str, max_replicas: int = 5, min_replicas: int = 1) -> ScaleDecision:
        """Add a replica above 70% CPU, remove one below 30%.

        Raises:
            ValidationError: If min_replicas exceeds max_replicas
        """
        if min_replicas > max_replicas:
            raise ValidationError(
                f"Minimum replicas ({min_replicas}) cannot exceed maximum replicas ({max_replicas})"
            )

        cpu = self.cpu_usage(service)
        current = self.replica_count(service)
        target = current
        if cpu > SCALE_UP_CPU and current < max_replicas:
            target = current + 1
        elif cpu < SCALE_DOWN_CPU and current > min_replicas:
            target = current - 1

        decision = ScaleDecision(
            service=service, cpu_percent=cpu, current_replicas=current, target_replicas=target
        )
        logger.info(f"Auto-scale {service}: cpu={cpu}% replicas {current} -> {target}")
        if decision.action == "none":
            self.output.info(f"No scaling needed for {service} (CPU: {cpu}%, replicas: {current})")
        else:
            self.scale(service, target)
        return decision

    def running_services(self) -> set[str]:
        result = self.runner.query(self._compose("ps", "--services", "--filter", "status=running"))
        return set(result.lines) if result.ok else set()

    def start_with_deps(self, service: str) -> list[str]:
        """Start missing dependencies, then the service.

        Returns:
            Services started, in order
        """
        running = self.running_services()
        started = []
        for dependency in DEPENDENCIES.get(service, []):
            if dependency not in running:
                self.output.info(f"Starting dependency: {dependency}")
                self.runner.run(self._compose("up", "-d", dependency))
                started.append(dependency)
        self.runner.run(self._compose("up", "-d", service))
        started.append(service)
        self.output.success(f"Service {service} started with dependencies")
        return started

    def stop_with_deps(self, service: str) -> list[str]:
        """Stop running dependents, then the service.

        Returns:
            Services stopped, in order
        """
        running = self.running_services()
        stopped = []
        for dependent in DEPENDENTS.get(service, []):
            if dependent in running:
                self.output.info(f"Stopping dependent: {dependent}")
                self.runner.run(self._compose("stop", dependent))
                stopped.append(dependent)
        self.runner.run(self._compose("stop", service))
        stopped.append(service)
        self.output.success(f"Service {service} stopped with dependents")
        return stopped

    def set_limits(self, service: str, cpu: str, memory: str) -> Path | None:
        """Set CPU and memory limits of a service in the compose file.

        Args:
            service: Compose service name
            cpu: CPU limit, e.g. ``0.5``
            memory: Memory limit, e.g. ``512M``

        Returns:
            Path of the compose file backup (None in dry-run)

        Raises:
            ConfigurationError: If the compose file is missing or unreadable
            ServiceNotFoundError: If the service is not defined
            ValidationError: If the limits are malformed
        """
        try:
            cpus = float(cpu)
        except ValueError:
            raise ValidationError(f"Invalid CPU limit '{cpu}'") from None
        if not math.isfinite(cpus) or cpus <= 0:
            raise ValidationError(f"Invalid CPU limit '{cpu}'")
        if not _MEMORY_PATTERN.match(memory):
            raise ValidationError(f"Invalid memory limit '{memory}'. Use a size like 512M or 1G")

        compose_file = Path(self.settings.compose_file)
        if not compose_file.exists():
            raise ConfigurationError(f"Compose file not found: {compose_file}")
        try:
            data = yaml.safe_load(compose_file.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Cannot parse {compose_file}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"{compose_file} is not a Compose mapping")
        services = data.get("services") or {}
        if not isinstance(services, dict):
            raise ConfigurationError(f"'services' in {compose_file} is not a mapping")
        if service not in services:
            raise ServiceNotFoundError(f"Service '{service}' is not defined in {compose_file}")

        definition = services[service] or {}
        if not isinstance(definition, dict):
            raise ConfigurationError(f"Service '{service}' in {compose_file} is not a mapping")
        resources = definition.setdefault("deploy", {}).setdefault("resources", {})
        resources["limits"] = {"cpus": str(cpu), "memory": memory}
        resources["reservations"] = {"cpus": RESERVED_CPUS, "memory": RESERVED_MEMORY}
        services[service] = definition

        backup = None
        if self.runner.dry_run:
            self.output.info(f"would update {compose_file}")
        else:
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup = compose_file.with_name(f"{compose_file.name}.backup.{stamp}")
            shutil.copy2(compose_file, backup)
            compose_file.write_text(
                yaml.safe_dump(data, sort_keys=False, default_flow_style=False), encoding="utf-8"
            )

        self.runner.run(self._compose("up", "-d", service))
        self.output.success(f"Resource limits set for {service}: CPU={cpu}, Memory={memory}")
        return backup

    def resource_usage(self, service: str | None = None) -> str:
        """``docker stats`` snapshot for one container or the whole compose project."""
        if service:
            targets = [service]
        else:
            targets = self.runner.query(self._compose("ps", "-q")).lines
            if not targets:
                return ""
        result = self.runner.query(["docker", "stats", "--no-stream", "--format", STATS_FORMAT, *targets], check=True)
        return result.stdout

    def create_network(self, name: str, driver: str = "bridge") -> bool:
        """Create a network unless one with this name exists.

        Returns:
            True when the network was created
        """
        existing = self.runner.query(["docker", "network", "ls", "--format", "{{.Name}}"]).lines
        if name in existing:
            self.output.info(f"Network {name} already exists")
            return False
        self.runner.run(["docker", "network", "create", "--driver", driver, name])
        self.output.success(f"Network {name} created")
        return True

    def connect_network(self, container: str, network: str) -> None:
        self.runner.run(["docker", "network", "connect", network, container])
        self.output.success(f"Container {container} connected to network {network}")

    def logs(self, container: str, lines: int = 100) -> str:
        result = self.runner.query(["docker", "logs", "--tail", str(lines), container], check=True)
        return result.stdout + result.stderr

    def follow_logs(self, container: str) -> None:
        self.runner.run(["docker", "logs", "-f", container], capture=False)

    def mount_sources(self, container: str) -> list[Path]:
        result = self.runner.query(
            ["docker", "inspect", "--format", "{{range .Mounts}}{{.Source}} {{end}}", container],
            check=True,
        )
        return [Path(source) for source in result.stdout.split()]

    def backup(self, container: str, backup_dir: Path) -> list[Path]:
        """Archive every mounted directory of a container.

        Returns:
            Written archives, one ``<basename>.tar.gz`` per mount
        """
        backup_dir = Path(backup_dir)
        archives = []
        for source in self.mount_sources(container):
            if not source.is_dir():
                logger.debug(f"Skipping non-directory mount {source}")
                continue
            archive = backup_dir / f"{source.name}.tar.gz"
            if self.runner.dry_run:
                self.output.info(f"would archive {source} to {archive}")
            else:
                backup_dir.mkdir(parents=True, exist_ok=True)
                with tarfile.open(archive, "w:gz") as tar:
                    tar.add(source, arcname=source.name)
                self.output.info(f"Backed up {source}")
            archives.append(archive)
        self.output.success(f"Container data backed up to: {backup_dir}")
        return archives

    def restore(self, container: str, backup_dir: Path) -> list[Path]:
        """Extract matching archives back into each mount's parent directory.

        Raises:
            ConfigurationError: If the backup directory does not exist
        """
        backup_dir = Path(backup_dir)
        if not backup_dir.is_dir():
            raise ConfigurationError(f"Backup directory not found: {backup_dir}")

        restored = []
        for source in self.mount_sources(container):
            archive = backup_dir / f"{source.name}.tar.gz"
            if not archive.exists():
                logger.debug(f"No archive for mount {source}")
                continue
            if self.runner.dry_run:
                self.output.info(f"would restore {archive} into {source.parent}")
            else:
                with tarfile.open(archive, "r:gz") as tar:
                    tar.extractall(source.parent, filter="data")
                self.output.info(f"Restored {source}")
            restored.append(archive)
        self.output.success(f"Container data restored from: {backup_dir}")
        return restored
