"""
Host installation sequencing and uninstall.

Installs the development server packages in a fixed order: system update,
Docker, Node.js, VS Code Server, Cloudflared, PHP, web servers, databases and
the GitHub CLI. Each step is skipped when its binary is already present.
"""

import logging
import os
import shutil
import tarfile
from datetime import datetime
from pathlib import Path

from ..errors import PermissionDeniedError, ValidationError
from ..system import generate_password, map_architecture, update_commands
from ..templates import render
from .base import HostComponent
from .databases import ENGINE_PACKAGES, ENGINES
from .php import PhpManager
from .releases import latest_release_tag

logger = logging.getLogger(__name__)

# Component name -> Installer method, in installation order
STEPS = {
    "system": "update_system",
    "docker": "install_docker",
    "nodejs": "install_nodejs",
    "vscode": "install_vscode_server",
    "cloudflared": "install_cloudflared",
    "php": "install_php",
    "webservers": "install_webservers",
    "databases": "install_databases",
    "gh": "install_gh_cli",
}

BASE_PACKAGES = {
    "debian": [
        "curl", "wget", "git", "unzip", "software-properties-common",
        "apt-transport-https", "ca-certificates", "gnupg", "lsb-release",
    ],
    "rhel": ["curl", "wget", "git", "unzip"],
    "arch": ["curl", "wget", "git", "unzip"],
}

WEBSERVER_PACKAGES = {
    "debian": ["nginx", "apache2"],
    "rhel": ["nginx", "httpd"],
    "arch": ["nginx", "apache"],
}

DATABASE_PACKAGES = {
    family: [package for engine in ENGINES for package in ENGINE_PACKAGES[engine][family]]
    for family in ("debian", "rhel", "arch")
}

DOCKER_PACKAGES = ["docker-ce", "docker-ce-cli", "containerd.io", "docker-compose-plugin"]

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_KEYRING = "/usr/share/keyrings/docker-archive-keyring.gpg"
NODESOURCE_SETUP_URL = "https://deb.nodesource.com/setup_lts.x"
GH_KEYRING_URL = "https://cli.github.com/packages/githubcli-archive-keyring.gpg"
GH_KEYRING = "/usr/share/keyrings/githubcli-archive-keyring.gpg"
GH_RPM_URL = "https://github.com/cli/cli/releases/download/v2.40.1/gh_2.40.1_linux_amd64.rpm"


class Installer(HostComponent):
    """Installs and removes the bare-host YADS stack."""

    vscode_user = "vscode"
    vscode_dir = Path("/opt/vscode-server")
    install_dir = Path("/opt/yads")
    symlink = Path("/usr/local/bin/yads")

    def check_privileges(self) -> None:
        """Installation needs root, directly or through sudo."""
        if not self.runner.is_root() and not self.runner.has("sudo"):
            raise PermissionDeniedError("YADS installation requires root privileges or sudo")

    def install(self, components: list[str] | None = None) -> list[str]:
        """Run every installation step, or only the named ones.

        Args:
            components: Step names from STEPS; None installs everything

        Returns:
            Names of the steps that ran, in order

        Raises:
            ValidationError: If a component name is unknown
            PermissionDeniedError: If neither root nor sudo is available
        """
        selected = list(components) if components else list(STEPS)
        unknown = [name for name in selected if name not in STEPS]
        if unknown:
            raise ValidationError(
                f"Unknown component(s): {', '.join(unknown)}. Choose from: {', '.join(STEPS)}"
            )

        self.check_privileges()
        logger.info(f"Installing components on {self.os_info.id} {self.os_info.version_id}")

        ran = []
        for name, method in STEPS.items():
            if name in selected:
                getattr(self, method)()
                ran.append(name)

        self.output.success("YADS installation completed")
        return ran

    def update_system(self) -> None:
        self.output.info("Updating system packages...")
        for command in update_commands(self.package_manager):
            self.runner.run(command, sudo=True)
        self.install_packages(*BASE_PACKAGES[self.family])
        self.output.success("System packages updated")

    def install_docker(self) -> None:
        if self.runner.has("docker"):
            self.output.info("Docker already installed")
            return

        self.output.info("Installing Docker...")
        if self.family == "debian":
            key = self.fetch(DOCKER_GPG_URL, "docker.gpg")
            self.runner.run(["gpg", "--batch", "--yes", "--dearmor", "-o", DOCKER_KEYRING, str(key)], sudo=True)
            arch = self.runner.query(["dpkg", "--print-architecture"]).stdout.strip()
            codename = self.runner.query(["lsb_release", "-cs"]).stdout.strip()
            self.runner.write_file(
                Path("/etc/apt/sources.list.d/docker.list"),
                f"deb [arch={arch} signed-by={DOCKER_KEYRING}] "
                f"https://download.docker.com/linux/{self.os_info.id} {codename} stable\n",
                sudo=True,
            )
            self.runner.run(["apt-get", "update"], sudo=True)
            self.install_packages(*DOCKER_PACKAGES)
        elif self.family == "rhel":
            manager = self.package_manager.value
            if manager == "dnf":
                self.install_packages("dnf-plugins-core")
                self.runner.run(
                    ["dnf", "config-manager", "--add-repo", "https://download.docker.com/linux/fedora/docker-ce.repo"],
                    sudo=True,
                )
            else:
                self.install_packages("yum-utils")
                self.runner.run(
                    ["yum-config-manager", "--add-repo", "https://download.docker.com/linux/centos/docker-ce.repo"],
                    sudo=True,
                )
            self.install_packages(*DOCKER_PACKAGES)
        else:
            self.install_packages("docker", "docker-compose")

        self.systemctl("start", "docker")
        self.systemctl("enable", "docker")

        sudo_user = os.environ.get("SUDO_USER")
        if sudo_user:
            self.runner.run(["usermod", "-aG", "docker", sudo_user], sudo=True)
        self.output.success("Docker installed and started")

    def install_nodejs(self) -> None:
        if self.runner.has("node"):
            self.output.info("Node.js already installed")
            return

        self.output.info("Installing Node.js and npm...")
        if self.family == "debian":
            setup = self.fetch(NODESOURCE_SETUP_URL, "nodesource_setup.sh")
            self.runner.run(["bash", str(setup)], sudo=True)
            self.install_packages("nodejs")
        else:
            self.install_packages("nodejs", "npm")
        self.output.success("Node.js installed")

    def install_vscode_server(self) -> str:
        """Install code-server as the ``vscode-server`` unit.

        Returns:
            The generated login password
        """
        self.output.info("Installing VS Code Server...")
        if not self.runner.succeeds(["id", self.vscode_user]):
            self.runner.run(
                ["useradd", "-r", "-s", "/bin/bash", "-d", str(self.vscode_dir), "-m", self.vscode_user],
                sudo=True,
            )
        self.runner.run(["mkdir", "-p", str(self.vscode_dir)], sudo=True)
        self.runner.run(["chown", "-R", f"{self.vscode_user}:{self.vscode_user}", str(self.vscode_dir)], sudo=True)

        binary = self.bin_dir / "code-server"
        if not self.runner.has("code-server"):
            tag = latest_release_tag("coder/code-server", self.settings)
            version = tag.removeprefix("v")
            arch = map_architecture()
            name = f"code-server-{version}-linux-{arch}"
            archive = self.fetch(
                f"https://github.com/coder/code-server/releases/download/{tag}/{name}.tar.gz",
                f"{name}.tar.gz",
            )
            if not self.runner.dry_run:
                with tarfile.open(archive, "r:gz") as tar:
                    tar.extractall(self.download_dir, filter="data")
            self.runner.run(
                ["install", "-m", "0755", str(self.download_dir / name / "bin" / "code-server"), str(binary)],
                sudo=True,
            )

        password = generate_password()
        self.write_unit(
            "vscode-server",
            render(
                "vscode-server.service.j2",
                user=self.vscode_user,
                install_dir=self.vscode_dir,
                binary=binary,
                password=password,
            ),
        )
        password_file = self.vscode_dir / ".password"
        self.runner.write_file(password_file, password + "\n", sudo=True, mode=0o600)
        self.runner.run(["chown", f"{self.vscode_user}:{self.vscode_user}", str(password_file)], sudo=True)

        self.systemctl("enable", "vscode-server")
        self.systemctl("start", "vscode-server")

        self.output.success("VS Code Server installed")
        self.output.info(f"VS Code Server password: {password}")
        self.output.info("VS Code Server will be accessible at: http://localhost:8080")
        return password

    def install_cloudflared(self) -> None:
        if self.runner.has("cloudflared"):
            self.output.info("Cloudflared already installed")
            return

        self.output.info("Installing Cloudflared...")
        arch = map_architecture()
        tag = latest_release_tag("cloudflare/cloudflared", self.settings)
        asset = f"cloudflared-linux-{arch}"
        binary = self.fetch(
            f"https://github.com/cloudflare/cloudflared/releases/download/{tag}/{asset}", asset
        )
        self.runner.run(
            ["install", "-m", "0755", str(binary), str(self.bin_dir / "cloudflared")], sudo=True
        )
        self.output.success("Cloudflared installed")

    def install_php(self) -> None:
        php = PhpManager(
            self.runner, self.config, self.settings, self.output, os_info=self.os_info
        )
        php.download_dir = self.download_dir
        php.bin_dir = self.bin_dir
        php.install_version(self.config.php_version)
        php.install_composer()

    def install_webservers(self) -> None:
        self.output.info("Installing web servers...")
        self.install_packages(*WEBSERVER_PACKAGES[self.family])
        self.output.success("Web servers installed")

    def install_databases(self) -> None:
        self.output.info("Installing databases...")
        self.install_packages(*DATABASE_PACKAGES[self.family])
        self.output.success("Databases installed")

    def install_gh_cli(self) -> None:
        if self.runner.has("gh"):
            self.output.info("GitHub CLI already installed")
            return

        self.output.info("Installing GitHub CLI...")
        if self.family == "debian":
            keyring = self.fetch(GH_KEYRING_URL, "githubcli-archive-keyring.gpg")
            self.runner.run(["install", "-m", "0644", str(keyring), GH_KEYRING], sudo=True)
            arch = self.runner.query(["dpkg", "--print-architecture"]).stdout.strip()
            self.runner.write_file(
                Path("/etc/apt/sources.list.d/github-cli.list"),
                f"deb [arch={arch} signed-by={GH_KEYRING}] https://cli.github.com/packages stable main\n",
                sudo=True,
            )
            self.runner.run(["apt-get", "update"], sudo=True)
            self.install_packages("gh")
        elif self.family == "rhel":
            self.install_packages(GH_RPM_URL)
        else:
            self.install_packages("github-cli")
        self.output.success("GitHub CLI installed")

    def uninstall(self, purge: bool = False, backup: bool = True) -> Path | None:
        """Remove YADS services and files.

        Args:
            purge: Also remove ~/.yads (config and state)
            backup: Copy the projects directory to a timestamped folder first

        Returns:
            The backup directory, if one was written
        """
        self.output.info("Stopping YADS services...")
        for unit in ("vscode-server", "cloudflared"):
            self.systemctl("stop", unit, check=False)
            self.systemctl("disable", unit, check=False)
            self.runner.run(["rm", "-f", str(self.systemd_dir / f"{unit}.service")], sudo=True)
        self.systemctl("daemon-reload")

        backup_path = None
        projects = Path(self.settings.projects_dir)
        if backup and projects.is_dir():
            stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            backup_path = self.download_dir / f"yads-projects-backup-{stamp}"
            if self.runner.dry_run:
                self.output.info(f"would back up {projects} to {backup_path}")
            else:
                shutil.copytree(projects, backup_path, symlinks=True)
                self.output.success(f"Projects backed up to {backup_path}")

        self.runner.run(["rm", "-rf", str(self.install_dir)], sudo=True)
        self.runner.run(["rm", "-f", str(self.symlink)], sudo=True)

        if purge:
            self.runner.run(["rm", "-rf", str(self.settings.home)])
            self.output.info(f"Removed {self.settings.home}")

        self.output.success("YADS uninstalled")
        return backup_path
