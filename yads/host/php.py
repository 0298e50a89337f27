"""PHP version management and Composer."""

import logging
import re

from ..validation import validate_php_version
from .base import HostComponent

logger = logging.getLogger(__name__)

PHP_EXTENSIONS = [
    "cli", "fpm", "mysql", "pgsql", "curl", "gd", "mbstring",
    "xml", "zip", "bcmath", "intl", "redis", "sqlite3",
]
ARCH_PHP_PACKAGES = ["php", "php-fpm", "php-gd", "php-intl", "php-redis", "php-sqlite"]

COMPOSER_INSTALLER_URL = "https://getcomposer.org/installer"

_VERSION_IN_NAME = re.compile(r"php([0-9]+\.[0-9]+)")
_PHP_V_OUTPUT = re.compile(r"^PHP ([0-9]+\.[0-9]+)", re.MULTILINE)


def _version_key(version: str) -> tuple[int, ...]:
    return tuple(int(part) for part in version.split("."))


class PhpManager(HostComponent):
    """Installs side-by-side PHP versions and Composer."""

    def packages_for(self, version: str) -> list[str]:
        """Package names for a PHP version on this host's family."""
        if self.family == "arch":
            return list(ARCH_PHP_PACKAGES)
        extensions = [ext.replace("mysql", "mysqlnd") if self.family == "rhel" else ext for ext in PHP_EXTENSIONS]
        return [f"php{version}"] + [f"php{version}-{ext}" for ext in extensions]

    def install_version(self, version: str) -> None:
        """Install a PHP version and make it the default.

        Args:
            version: MAJOR.MINOR, e.g. ``8.3``

        Raises:
            ValidationError: If the version is malformed or out of range
        """
        validate_php_version(version)
        self.output.info(f"Installing PHP {version}...")

        if self.family == "debian":
            self.runner.run(["add-apt-repository", "-y", "ppa:ondrej/php"], sudo=True)
            self.runner.run(["apt-get", "update"], sudo=True)
            self.install_packages(*self.packages_for(version))
            self.runner.run(
                ["update-alternatives", "--install", "/usr/bin/php", "php", f"/usr/bin/php{version}", "100"],
                sudo=True,
            )
            self.runner.run(["update-alternatives", "--set", "php", f"/usr/bin/php{version}"], sudo=True)
        else:
            self.install_packages(*self.packages_for(version))

        self.save_config(PHP_VERSION=version)
        self.output.success(f"PHP {version} installed")

    def list_versions(self) -> list[str]:
        """Versions offered by the package index, sorted and de-duplicated."""
        if self.family == "debian":
            result = self.runner.query(["apt-cache", "search", "--names-only", "^php[0-9]"])
        elif self.family == "arch":
            result = self.runner.query(["pacman", "-Ss", "php"])
        else:
            result = self.runner.query([self.package_manager.value, "search", "php"])

        versions = set(_VERSION_IN_NAME.findall(result.stdout))
        return sorted(versions, key=_version_key)

    def current_version(self) -> str | None:
        """MAJOR.MINOR of the php binary on PATH, or None when PHP is absent."""
        if not self.runner.has("php"):
            return None
        match = _PHP_V_OUTPUT.search(self.runner.query(["php", "-v"]).stdout)
        return match.group(1) if match else None

    def install_composer(self) -> bool:
        """Install Composer globally plus the Laravel installer.

        Returns:
            False when Composer was already present
        """
        if self.runner.has("composer"):
            self.output.info("Composer is already installed")
            return False

        self.output.info("Installing Composer...")
        setup = self.fetch(COMPOSER_INSTALLER_URL, "composer-setup.php")
        self.runner.run(
            ["php", str(setup), "--install-dir", str(self.download_dir), "--filename", "composer"]
        )
        self.runner.run(
            ["install", "-m", "0755", str(self.download_dir / "composer"), str(self.bin_dir / "composer")],
            sudo=True,
        )
        self.runner.run(["composer", "global", "require", "laravel/installer"])
        self.output.success("Composer installed")
        return True
