"""Switching between nginx, Apache and FrankenPHP."""

import logging
import platform
from pathlib import Path

from ..errors import UnsupportedSystemError, ValidationError
from ..templates import render
from .base import HostComponent
from .releases import latest_release_tag

logger = logging.getLogger(__name__)

WEB_SERVERS = ("nginx", "apache", "frankenphp")

APACHE_MODULES = ["rewrite", "ssl", "headers", "proxy", "proxy_fcgi", "setenvif"]

FRANKENPHP_ASSETS = {
    "x86_64": "frankenphp-linux-x86_64",
    "aarch64": "frankenphp-linux-aarch64",
}


class WebServerManager(HostComponent):
    """Keeps exactly one web server active, configured for YADS projects."""

    nginx_dir = Path("/etc/nginx")
    apache_dir = Path("/etc/apache2")
    frankenphp_dir = Path("/etc/frankenphp")

    def unit_for(self, server: str) -> str:
        """systemd unit of a web server on this host."""
        if server == "apache":
            return "httpd" if self.family == "rhel" else "apache2"
        return server

    def _context(self) -> dict:
        return {"web_root": self.settings.web_root, "php_version": self.config.php_version}

    def switch(self, server: str) -> None:
        """Make ``server`` the active web server and remember the choice.

        Raises:
            ValidationError: If the server is not nginx, apache or frankenphp
            CommandError: If the configuration test or a service command fails
        """
        if server not in WEB_SERVERS:
            raise ValidationError(
                f"Unknown web server '{server}'. Choose from: {', '.join(WEB_SERVERS)}"
            )

        self.output.info(f"Switching web server to {server}...")
        self.stop_others(server)
        getattr(self, f"configure_{server}")()
        self.save_config(WEB_SERVER=server)
        self.output.success(f"Web server switched to {server}")

    def stop_others(self, server: str) -> None:
        for other in WEB_SERVERS:
            if other == server:
                continue
            unit = self.unit_for(other)
            if self.is_active(unit):
                logger.info(f"Stopping {unit}")
                self.systemctl("stop", unit)
                self.systemctl("disable", unit)

    def configure_nginx(self) -> None:
        available = self.nginx_dir / "sites-available" / "yads"
        self.runner.write_file(available, render("nginx-yads.conf.j2", **self._context()), sudo=True)
        self.runner.run(["ln", "-sf", str(available), str(self.nginx_dir / "sites-enabled" / "yads")], sudo=True)
        self.runner.run(["rm", "-f", str(self.nginx_dir / "sites-enabled" / "default")], sudo=True)
        self.runner.run(["nginx", "-t"], sudo=True)
        self.systemctl("restart", "nginx")
        self.systemctl("enable", "nginx")

    def configure_apache(self) -> None:
        for module in APACHE_MODULES:
            self.runner.run(["a2enmod", module], sudo=True)
        site = self.apache_dir / "sites-available" / "yads.conf"
        self.runner.write_file(site, render("apache-yads.conf.j2", **self._context()), sudo=True)
        self.runner.run(["a2ensite", "yads"], sudo=True)
        # 000-default may already be gone
        self.runner.run(["a2dissite", "000-default"], sudo=True, check=False)
        unit = self.unit_for("apache")
        self.systemctl("restart", unit)
        self.systemctl("enable", unit)

    def install_frankenphp(self) -> Path:
        binary = self.bin_dir / "frankenphp"
        if self.runner.has("frankenphp") or binary.exists():
            return binary

        machine = platform.machine()
        asset = FRANKENPHP_ASSETS.get(machine)
        if asset is None:
            raise UnsupportedSystemError(f"FrankenPHP has no build for {machine}")
        tag = latest_release_tag("dunglas/frankenphp", self.settings)
        download = self.fetch(f"https://github.com/dunglas/frankenphp/releases/download/{tag}/{asset}", asset)
        self.runner.run(["install", "-m", "0755", str(download), str(binary)], sudo=True)
        return binary

    def configure_frankenphp(self) -> None:
        binary = self.install_frankenphp()
        caddyfile = self.frankenphp_dir / "Caddyfile"
        self.runner.write_file(caddyfile, render("Caddyfile.j2", **self._context()), sudo=True)
        self.write_unit(
            "frankenphp",
            render("frankenphp.service.j2", binary=binary, caddyfile=caddyfile, web_root=self.settings.web_root),
        )
        self.systemctl("enable", "frankenphp")
        self.systemctl("restart", "frankenphp")

    def status(self) -> dict[str, bool]:
        """Running flag per web server."""
        return {server: self.is_active(self.unit_for(server)) for server in WEB_SERVERS}
