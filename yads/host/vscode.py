"""code-server (VS Code in the browser) configuration and extensions."""

import logging
from pathlib import Path

import yaml

from ..errors import ConfigurationError, ValidationError
from ..system import generate_password
from ..templates import render
from .base import HostComponent

logger = logging.getLogger(__name__)

DEFAULT_EXTENSIONS = [
    "ms-vscode.vscode-json",
    "bradlc.vscode-tailwindcss",
    "ms-vscode.vscode-typescript-next",
    "xdebug.php-debug",
]


class VSCodeManager(HostComponent):
    """Manages the ``code-server@vscode`` service of the vscode user."""

    user = "vscode"
    home = Path("/home/vscode")

    @property
    def unit(self) -> str:
        return f"code-server@{self.user}"

    @property
    def config_file(self) -> Path:
        return self.home / ".config" / "code-server" / "config.yaml"

    def _as_user(self, *args: str) -> list[str]:
        return ["sudo", "-u", self.user, *args]

    def _require(self) -> None:
        self.runner.require("code-server", "VS Code Server is not installed. Run 'yads install' first.")

    def _write_config(self, password: str) -> None:
        self.runner.write_file(
            self.config_file,
            render("code-server-config.yaml.j2", password=password),
            sudo=True,
            mode=0o600,
        )
        self.runner.run(
            ["chown", "-R", f"{self.user}:{self.user}", str(self.config_file.parent)], sudo=True
        )

    def read_password(self) -> str | None:
        if not self.config_file.exists():
            return None
        data = yaml.safe_load(self.config_file.read_text(encoding="utf-8")) or {}
        password = data.get("password")
        return str(password) if password is not None else None

    def setup(self, extensions: list[str] | None = None) -> str:
        """Write the code-server config, install extensions and restart.

        Returns:
            The new password
        """
        self._require()
        self.output.info("Configuring VS Code Server...")

        password = generate_password()
        self._write_config(password)

        for extension in DEFAULT_EXTENSIONS if extensions is None else extensions:
            result = self.runner.run(
                self._as_user("code-server", "--install-extension", extension), check=False
            )
            if not result.ok:
                self.output.warning(f"Could not install extension {extension}")

        self.systemctl("enable", self.unit)
        self.systemctl("restart", self.unit)
        self.output.success("VS Code Server configured")
        self.output.info(f"Password: {password}")
        self.output.info("Access: http://localhost:8080")
        return password

    def start(self) -> bool:
        self._require()
        if self.is_active(self.unit):
            self.output.info("VS Code Server is already running")
            return False
        self.systemctl("start", self.unit)
        self.systemctl("enable", self.unit)
        self.output.success("VS Code Server started")
        return True

    def stop(self) -> bool:
        if not self.is_active(self.unit):
            self.output.info("VS Code Server is already stopped")
            return False
        self.systemctl("stop", self.unit)
        self.systemctl("disable", self.unit)
        self.output.success("VS Code Server stopped")
        return True

    def restart(self) -> None:
        self._require()
        self.systemctl("restart", self.unit)
        self.output.success("VS Code Server restarted")

    def status(self) -> dict[str, str | bool | None]:
        domain = self.config.domain
        return {
            "running": self.is_active(self.unit),
            "password": self.read_password(),
            "url": "http://localhost:8080",
            "remote_url": f"https://code.{domain}" if domain else None,
        }

    def change_password(self) -> str:
        """Generate a new password and restart the service.

        Raises:
            ConfigurationError: If code-server has not been set up yet
        """
        self._require()
        if not self.config_file.exists():
            raise ConfigurationError(
                f"{self.config_file} not found. Run 'yads vscode setup' first."
            )
        password = generate_password()
        self._write_config(password)
        self.systemctl("restart", self.unit)
        self.output.success("Password changed")
        self.output.info(f"New password: {password}")
        return password

    def install_extension(self, extension: str) -> None:
        if not extension:
            raise ValidationError("Extension name required")
        self._require()
        self.runner.run(self._as_user("code-server", "--install-extension", extension))
        self.output.success(f"Extension installed: {extension}")

    def list_extensions(self) -> list[str]:
        self._require()
        return self.runner.query(self._as_user("code-server", "--list-extensions"), check=True).lines
