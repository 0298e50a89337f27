"""systemd lifecycle of the YADS host services."""

import logging

from pydantic import BaseModel, Field

from ..errors import ServiceNotFoundError
from .base import HostComponent

logger = logging.getLogger(__name__)

SERVICE_GROUPS = {
    "core": ["vscode-server", "cloudflared"],
    "web": ["apache2", "nginx", "frankenphp"],
    "databases": ["mysql", "postgresql", "redis-server"],
}

SERVICES = [service for group in SERVICE_GROUPS.values() for service in group]

# Unit names used by other distributions
ALTERNATE_UNITS = {
    "apache2": "httpd",
    "mysql": "mysqld",
}


class ServiceStatus(BaseModel):
    """Installed/running state of one service."""

    name: str = Field(..., description="YADS service name", examples=["apache2"])
    unit: str | None = Field(default=None, description="systemd unit found on this host", examples=["httpd"])
    running: bool = Field(default=False, description="Whether the unit is active")

    @property
    def installed(self) -> bool:
        return self.unit is not None


class ServiceManager(HostComponent):
    """Start, stop and inspect the services YADS installs."""

    def resolve(self, name: str) -> str | None:
        """systemd unit backing a service name, trying alternates."""
        for unit in (name, ALTERNATE_UNITS.get(name)):
            if unit and self.unit_exists(unit):
                return unit
        return None

    def _targets(self, name: str | None) -> list[str]:
        if name is None:
            return [unit for unit in (self.resolve(service) for service in SERVICES) if unit]
        unit = self.resolve(name)
        if unit is None:
            raise ServiceNotFoundError(f"Service not found: {name}")
        return [unit]

    def start(self, name: str | None = None) -> list[str]:
        """Start one service or every installed one.

        Returns:
            Units that were actually started
        """
        started = []
        for unit in self._targets(name):
            if self.is_active(unit):
                self.output.info(f"{unit} is already running")
                continue
            self.systemctl("start", unit)
            self.output.success(f"{unit} started")
            started.append(unit)
        return started

    def stop(self, name: str | None = None) -> list[str]:
        """Stop one service or every installed one.

        Returns:
            Units that were actually stopped
        """
        stopped = []
        for unit in self._targets(name):
            if not self.is_active(unit):
                self.output.info(f"{unit} is not running")
                continue
            self.systemctl("stop", unit)
            self.output.success(f"{unit} stopped")
            stopped.append(unit)
        return stopped

    def restart(self, name: str | None = None) -> list[str]:
        restarted = []
        for unit in self._targets(name):
            self.systemctl("restart", unit)
            self.output.success(f"{unit} restarted")
            restarted.append(unit)
        return restarted

    def status(self) -> dict[str, list[ServiceStatus]]:
        """Service states grouped as core, web and databases."""
        report = {}
        for group, services in SERVICE_GROUPS.items():
            rows = []
            for service in services:
                unit = self.resolve(service)
                rows.append(
                    ServiceStatus(name=service, unit=unit, running=bool(unit) and self.is_active(unit))
                )
            report[group] = rows
        return report
