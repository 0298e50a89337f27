"""
Domain, wildcard certificate and per-project virtual host management.

A configured domain gives every project ``https://<name>.<domain>``. The
certificate is a Let's Encrypt wildcard obtained through a manual DNS
challenge, so certbot runs attached to the terminal.
"""

import logging
import re
from pathlib import Path

from ..errors import ConfigurationError, ValidationError
from ..templates import render
from ..validation import validate_domain, validate_project_name
from .base import HostComponent
from .tunnel import DEFAULT_TUNNEL_NAME, TunnelManager

logger = logging.getLogger(__name__)

CERTBOT_PACKAGES = {
    "debian": ["certbot", "python3-certbot-nginx"],
    "rhel": ["certbot", "python3-certbot-nginx"],
    "arch": ["certbot", "certbot-nginx"],
}

RENEWAL_SCRIPT = Path("/usr/local/bin/yads-ssl-renewal.sh")
RENEWAL_SCHEDULE = "0 2 * * *"


class DomainManager(HostComponent):
    """Configures the base domain and the virtual hosts beneath it."""

    nginx_dir = Path("/etc/nginx")
    frankenphp_dir = Path("/etc/frankenphp")
    renewal_script = RENEWAL_SCRIPT

    @property
    def domain(self) -> str:
        domain = self.config.domain
        if not domain:
            raise ConfigurationError("No domain configured. Run 'yads domains configure' first.")
        return domain

    @property
    def caddyfile(self) -> Path:
        return self.frankenphp_dir / "Caddyfile"

    def _tls_context(self, domain: str) -> dict:
        return {
            "domain": domain,
            "web_root": self.settings.web_root,
            "php_version": self.config.php_version,
        }

    def configure(self, domain: str, token: str | None = None, email: str | None = None) -> bool:
        """Set up the domain end to end.

        Args:
            domain: Base domain, e.g. ``mydev.com``
            token: Cloudflare API token; falls back to CLOUDFLARE_TOKEN
            email: Let's Encrypt account email; falls back to EMAIL

        Returns:
            True when the wildcard certificate was obtained

        Raises:
            ValidationError: If the domain is invalid or no email is known
        """
        validate_domain(domain)
        email = email or self.config.get("EMAIL")
        if not email:
            raise ValidationError("Email is required for SSL certificate")
        token = token or self.config.get("CLOUDFLARE_TOKEN")

        self.output.header(f"Configuring {domain}")

        if token:
            tunnel = TunnelManager(self.runner, self.config, self.settings, self.output, os_info=self._os_info)
            tunnel.setup(name=self.config.get("TUNNEL_NAME") or DEFAULT_TUNNEL_NAME, domain=domain)
        else:
            self.output.warning("No Cloudflare token, skipping tunnel configuration. You can configure it later.")

        issued = self.issue_certificate(domain, email)
        if issued:
            self.update_tls(domain)

        self.save_config(DOMAIN=domain, CLOUDFLARE_TOKEN=token, EMAIL=email)
        self.output.success("Domain configuration completed")
        self.output.info(f"Your development server is now accessible at: https://*.{domain}")
        return issued

    def install_certbot(self) -> None:
        if self.runner.has("certbot"):
            self.output.info("Certbot is already installed")
            return
        self.install_packages(*CERTBOT_PACKAGES[self.family])

    def issue_certificate(self, domain: str, email: str) -> bool:
        """Request the wildcard certificate; a failure is reported, not raised."""
        self.install_certbot()
        self.output.info(f"Add the TXT record _acme-challenge.{domain} when certbot asks for it")

        result = self.runner.run(
            [
                "certbot", "certonly",
                "--manual",
                "--preferred-challenges", "dns",
                "--server", "https://acme-v02.api.letsencrypt.org/directory",
                "--agree-tos",
                "--email", email,
                "-d", domain,
                "-d", f"*.{domain}",
            ],
            sudo=True,
            check=False,
            capture=False,
        )
        if not result.ok:
            self.output.warning("Failed to obtain SSL certificate. You can try again later with 'yads domains configure'")
            return False

        self.output.success("Wildcard SSL certificate obtained")
        self.install_renewal()
        return True

    def install_renewal(self) -> None:
        """Install the renewal script and a daily 02:00 cron entry (added once)."""
        web_service = "apache2" if self.config.web_server == "apache" else self.config.web_server
        self.runner.write_file(
            self.renewal_script,
            render("ssl-renewal.sh.j2", web_service=web_service),
            sudo=True,
            mode=0o755,
        )

        entry = f"{RENEWAL_SCHEDULE} {self.renewal_script}"
        current = self.runner.query(["crontab", "-l"], sudo=True).stdout
        if entry in current.splitlines():
            logger.debug("Renewal cron entry already present")
            return
        crontab = current if not current or current.endswith("\n") else current + "\n"
        self.runner.run(["crontab", "-"], sudo=True, input_text=crontab + entry + "\n")
        self.output.success("SSL certificate auto-renewal configured")

    def update_tls(self, domain: str) -> None:
        """Switch the active web server to the wildcard certificate."""
        server = self.config.web_server
        if server == "nginx":
            available = self.nginx_dir / "sites-available" / "ssl-default"
            self.runner.write_file(available, render("nginx-ssl-default.conf.j2", **self._tls_context(domain)), sudo=True)
            self.runner.run(["ln", "-sf", str(available), str(self.nginx_dir / "sites-enabled" / "ssl-default")], sudo=True)
            self.runner.run(["rm", "-f", str(self.nginx_dir / "sites-enabled" / "default")], sudo=True)
            self.runner.run(["nginx", "-t"], sudo=True)
            self.systemctl("reload", "nginx")
            self.output.success("NGINX SSL configuration updated")
        elif server == "frankenphp":
            self.runner.write_file(self.caddyfile, render("Caddyfile-ssl.j2", **self._tls_context(domain)), sudo=True)
            self.systemctl("restart", "frankenphp")
            self.output.success("FrankenPHP SSL configuration updated")
        else:
            self.output.warning(f"Automatic TLS configuration is not available for {server}")

    def project_url(self, name: str) -> str:
        return f"https://{name}.{self.config.domain or 'localhost'}"

    def create_project_vhost(self, name: str) -> Path:
        """Serve ``<name>.<domain>`` from ``<web_root>/<name>/public``.

        Returns:
            The written site file (nginx) or the Caddyfile (frankenphp)
        """
        validate_project_name(name)
        domain = self.domain
        context = {
            **self._tls_context(domain),
            "project_name": name,
            "project_domain": f"{name}.{domain}",
            "project_path": Path(self.settings.web_root) / name,
        }

        server = self.config.web_server
        if server == "nginx":
            available = self.nginx_dir / "sites-available" / name
            self.runner.write_file(available, render("nginx-project.conf.j2", **context), sudo=True)
            self.runner.run(["ln", "-sf", str(available), str(self.nginx_dir / "sites-enabled" / name)], sudo=True)
            self.runner.run(["nginx", "-t"], sudo=True)
            self.systemctl("reload", "nginx")
            self.output.success(f"NGINX configuration created for {name}")
            return available

        if server == "frankenphp":
            current = self.caddyfile.read_text(encoding="utf-8") if self.caddyfile.exists() else ""
            if f"# Project: {name}\n" in current:
                self.output.info(f"{name} is already in {self.caddyfile}")
                return self.caddyfile
            self.runner.write_file(self.caddyfile, current + render("caddy-project.j2", **context), sudo=True)
            self.systemctl("restart", "frankenphp")
            self.output.success(f"FrankenPHP configuration updated for {name}")
            return self.caddyfile

        raise ConfigurationError(f"Project virtual hosts are not supported for {server}")

    def remove_project_vhost(self, name: str) -> None:
        validate_project_name(name)
        server = self.config.web_server
        if server == "nginx":
            for directory in ("sites-enabled", "sites-available"):
                self.runner.run(["rm", "-f", str(self.nginx_dir / directory / name)], sudo=True)
            self.runner.run(["nginx", "-t"], sudo=True)
            self.systemctl("reload", "nginx")
        elif server == "frankenphp":
            if not self.caddyfile.exists():
                return
            current = self.caddyfile.read_text(encoding="utf-8")
            pattern = re.compile(
                rf"\n# Project: {re.escape(name)}\n.*?# End project: {re.escape(name)}\n", re.DOTALL
            )
            updated = pattern.sub("", current)
            if updated != current:
                self.runner.write_file(self.caddyfile, updated, sudo=True)
                self.systemctl("restart", "frankenphp")
        else:
            raise ConfigurationError(f"Project virtual hosts are not supported for {server}")
        self.output.success(f"Virtual host for {name} removed")
