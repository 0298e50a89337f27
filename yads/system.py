"""Host detection: operating system, package manager and CPU architecture."""

import logging
import platform
import re
import secrets
import string
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from .config import read_env_file
from .errors import UnsupportedSystemError
from .shell import CommandRunner

logger = logging.getLogger(__name__)

OS_RELEASE = Path("/etc/os-release")
REDHAT_RELEASE = Path("/etc/redhat-release")

OS_FAMILIES = {
    "ubuntu": "debian",
    "debian": "debian",
    "centos": "rhel",
    "rhel": "rhel",
    "fedora": "rhel",
    "arch": "arch",
}

ARCHITECTURES = {
    "x86_64": "amd64",
    "aarch64": "arm64",
    "armv7l": "arm",
}


class PackageManager(str, Enum):
    """Package managers YADS knows how to drive."""
    APT = "apt-get"
    DNF = "dnf"
    YUM = "yum"
    PACMAN = "pacman"


class OSInfo(BaseModel):
    """Identity of the host operating system."""

    id: str = Field(..., description="Lower-case distribution id", examples=["ubuntu", "fedora"])
    version_id: str = Field(default="", description="Distribution version", examples=["22.04"])

    @property
    def family(self) -> str:
        """debian, rhel or arch; unsupported ids raise UnsupportedSystemError."""
        try:
            return OS_FAMILIES[self.id]
        except KeyError:
            raise UnsupportedSystemError(f"Unsupported OS: {self.id}") from None


def detect_os(
    os_release: Path = OS_RELEASE,
    redhat_release: Path = REDHAT_RELEASE,
) -> OSInfo:
    """Identify the distribution from /etc/os-release or /etc/redhat-release.

    Raises:
        UnsupportedSystemError: If neither file is readable
    """
    if os_release.exists():
        values = read_env_file(os_release)
        info = OSInfo(id=values.get("ID", "").lower(), version_id=values.get("VERSION_ID", ""))
    elif redhat_release.exists():
        text = redhat_release.read_text(encoding="utf-8", errors="replace")
        match = re.search(r"[0-9]+", text)
        info = OSInfo(id="rhel", version_id=match.group(0) if match else "")
    else:
        raise UnsupportedSystemError("Cannot detect OS: /etc/os-release not found")

    logger.debug(f"Detected OS {info.id} {info.version_id}")
    return info


def select_package_manager(os_info: OSInfo, runner: CommandRunner) -> PackageManager:
    family = os_info.family
    if family == "debian":
        return PackageManager.APT
    if family == "rhel":
        return PackageManager.DNF if runner.has("dnf") else PackageManager.YUM
    return PackageManager.PACMAN


def install_command(manager: PackageManager, packages: list[str]) -> list[str]:
    """Build the non-interactive install command for a package list."""
    if manager == PackageManager.PACMAN:
        return ["pacman", "-S", "--noconfirm", "--needed", *packages]
    return [manager.value, "install", "-y", *packages]


def update_commands(manager: PackageManager) -> list[list[str]]:
    """Commands that refresh the package index and upgrade the system."""
    if manager == PackageManager.APT:
        return [["apt-get", "update"], ["apt-get", "upgrade", "-y"]]
    if manager == PackageManager.PACMAN:
        return [["pacman", "-Syu", "--noconfirm"]]
    return [[manager.value, "update", "-y"]]


def map_architecture(machine: str | None = None) -> str:
    """Map ``uname -m`` output to the naming used by release assets.

    Example:
        >>> map_architecture("aarch64")
        'arm64'
    """
    machine = machine or platform.machine()
    try:
        return ARCHITECTURES[machine]
    except KeyError:
        raise UnsupportedSystemError(f"Unsupported architecture: {machine}") from None


def generate_password(length: int = 25) -> str:
    """Random alphanumeric password."""
    alphabet = string.ascii_letters + string.digits
    return "".join(secrets.choice(alphabet) for _ in range(length))
