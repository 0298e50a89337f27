"""Shared plumbing for the bare-host managers."""

import logging
import tempfile
from pathlib import Path

from ..base import Component
from ..system import OSInfo, PackageManager, detect_os, install_command, select_package_manager
from .releases import download

logger = logging.getLogger(__name__)


class HostComponent(Component):
    """Component that installs packages and files on the host itself.

    Filesystem locations are class attributes so tests can point them at a
    temporary directory.
    """

    bin_dir = Path("/usr/local/bin")
    systemd_dir = Path("/etc/systemd/system")
    download_dir = Path(tempfile.gettempdir())

    def __init__(self, *args, os_info: OSInfo | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._os_info = os_info

    @property
    def os_info(self) -> OSInfo:
        if self._os_info is None:
            self._os_info = detect_os()
        return self._os_info

    @property
    def family(self) -> str:
        return self.os_info.family

    @property
    def package_manager(self) -> PackageManager:
        return select_package_manager(self.os_info, self.runner)

    def install_packages(self, *packages: str) -> None:
        self.runner.run(install_command(self.package_manager, list(packages)), sudo=True)

    def fetch(self, url: str, filename: str, executable: bool = False) -> Path:
        """Download into the scratch directory; only announced in dry-run mode."""
        destination = self.download_dir / filename
        if self.runner.dry_run:
            self.output.info(f"would download {url}")
            return destination
        return download(url, destination, self.settings, executable=executable)

    def write_unit(self, name: str, content: str) -> Path:
        """Install a systemd unit file and reload the daemon."""
        path = self.systemd_dir / f"{name}.service"
        self.runner.write_file(path, content, sudo=True, mode=0o644)
        self.systemctl("daemon-reload")
        return path
