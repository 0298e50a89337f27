"""Cloudflare tunnel setup and lifecycle."""

import logging
from pathlib import Path

import yaml

from ..errors import ConfigurationError, ValidationError
from ..templates import render
from ..validation import validate_domain
from .base import HostComponent

logger = logging.getLogger(__name__)

DEFAULT_TUNNEL_NAME = "yads-dev-server"
UNIT = "cloudflared"


class TunnelManager(HostComponent):
    """Routes ``code.<domain>`` and ``*.<domain>`` to this host through cloudflared."""

    config_dir = Path("/etc/cloudflared")
    credentials_dir = Path("/root/.cloudflared")

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.yml"

    def find_tunnel_id(self, name: str) -> str | None:
        """Look up a tunnel id by name in ``cloudflared tunnel list``."""
        result = self.runner.query(["cloudflared", "tunnel", "list"])
        for line in result.lines:
            fields = line.split()
            if len(fields) >= 2 and fields[1] == name:
                return fields[0]
        return None

    def read_tunnel_id(self) -> str | None:
        """Tunnel id recorded in the installed config.yml."""
        if not self.config_file.exists():
            return None
        data = yaml.safe_load(self.config_file.read_text(encoding="utf-8")) or {}
        tunnel = data.get("tunnel")
        return str(tunnel) if tunnel else None

    def write_config(self, tunnel_id: str, domain: str) -> Path:
        content = render(
            "cloudflared-config.yml.j2",
            tunnel_id=tunnel_id,
            domain=domain,
            credentials_dir=self.credentials_dir,
        )
        self.runner.write_file(self.config_file, content, sudo=True)
        return self.config_file

    def setup(self, name: str = DEFAULT_TUNNEL_NAME, domain: str | None = None) -> str:
        """Create a tunnel, route DNS and install the cloudflared service.

        ``cloudflared tunnel login`` opens a browser prompt and is run attached
        to the terminal.

        Args:
            name: Tunnel name
            domain: Base domain; defaults to DOMAIN from the config

        Returns:
            The tunnel id

        Raises:
            DependencyMissingError: If cloudflared is not installed
            ValidationError: If no valid domain is available
            ConfigurationError: If the created tunnel cannot be found
        """
        self.runner.require("cloudflared", "Run 'yads install --component cloudflared' first.")
        domain = domain or self.config.domain
        if not domain:
            raise ValidationError("A domain is required to set up the tunnel")
        validate_domain(domain)

        self.output.info(f"Setting up Cloudflare tunnel '{name}' for {domain}...")
        self.runner.run(["mkdir", "-p", str(self.config_dir)], sudo=True)
        self.runner.run(["cloudflared", "tunnel", "login"], capture=False)
        self.runner.run(["cloudflared", "tunnel", "create", name])

        tunnel_id = self.find_tunnel_id(name)
        if tunnel_id is None:
            if not self.runner.dry_run:
                raise ConfigurationError(f"Failed to get tunnel ID for '{name}'")
            tunnel_id = "<tunnel-id>"
        logger.info(f"Tunnel {name} has id {tunnel_id}")

        self.write_config(tunnel_id, domain)

        for hostname in (f"code.{domain}", f"*.{domain}"):
            self.runner.run(["cloudflared", "tunnel", "route", "dns", name, hostname])

        binary = self.runner.which("cloudflared") or str(self.bin_dir / "cloudflared")
        self.write_unit(UNIT, render("cloudflared.service.j2", binary=binary, config_file=self.config_file))
        self.systemctl("enable", UNIT)
        self.systemctl("start", UNIT)

        self.save_config(TUNNEL_ID=tunnel_id, TUNNEL_NAME=name)
        self.output.success("Cloudflare tunnel configured")
        self.output.info(f"VS Code: https://code.{domain}")
        self.output.info(f"Projects: https://<project>.{domain}")
        return tunnel_id

    def start(self) -> bool:
        if self.is_active(UNIT):
            self.output.info("Tunnel is already running")
            return False
        self.systemctl("start", UNIT)
        self.systemctl("enable", UNIT)
        self.output.success("Tunnel started")
        return True

    def stop(self) -> bool:
        if not self.is_active(UNIT):
            self.output.info("Tunnel is not running")
            return False
        self.systemctl("stop", UNIT)
        self.systemctl("disable", UNIT)
        self.output.success("Tunnel stopped")
        return True

    def restart(self) -> None:
        self.systemctl("restart", UNIT)
        self.output.success("Tunnel restarted")

    def status(self) -> dict[str, str | bool | None]:
        return {
            "running": self.is_active(UNIT),
            "tunnel_id": self.read_tunnel_id(),
            "tunnel_name": self.config.get("TUNNEL_NAME"),
            "config_file": str(self.config_file),
        }

    def update(self, domain: str) -> str:
        """Point the existing tunnel at a new domain and restart it.

        Returns:
            The tunnel id that was kept

        Raises:
            ConfigurationError: If no tunnel config is installed
        """
        validate_domain(domain)
        if not self.config_file.exists():
            raise ConfigurationError(
                f"Tunnel configuration not found at {self.config_file}. Run 'yads tunnel setup' first."
            )
        tunnel_id = self.read_tunnel_id()
        if not tunnel_id:
            raise ConfigurationError(f"No tunnel id in {self.config_file}")

        backup = self.config_file.with_name(self.config_file.name + ".backup")
        self.runner.run(["cp", str(self.config_file), str(backup)], sudo=True)
        self.write_config(tunnel_id, domain)
        self.restart()
        self.output.success(f"Tunnel now serves {domain}")
        return tunnel_id
