"""Tests for host detection helpers."""

import pytest

from yads.errors import UnsupportedSystemError
from yads.system import (
    OSInfo,
    PackageManager,
    detect_os,
    generate_password,
    install_command,
    map_architecture,
    select_package_manager,
    update_commands,
)

from .conftest import FakeRunner


def test_detect_os_from_os_release(temp_dir):
    """Test parsing ID and VERSION_ID from /etc/os-release."""
    os_release = temp_dir / "os-release"
    os_release.write_text('NAME="Ubuntu"\nID=ubuntu\nVERSION_ID="22.04"\n')

    info = detect_os(os_release=os_release, redhat_release=temp_dir / "missing")

    assert info == OSInfo(id="ubuntu", version_id="22.04")
    assert info.family == "debian"


def test_detect_os_from_redhat_release(temp_dir):
    """Test the /etc/redhat-release fallback."""
    redhat = temp_dir / "redhat-release"
    redhat.write_text("CentOS Linux release 7.9.2009 (Core)\n")

    info = detect_os(os_release=temp_dir / "missing", redhat_release=redhat)

    assert info.id == "rhel"
    assert info.version_id == "7"
    assert info.family == "rhel"


def test_detect_os_without_release_files(temp_dir):
    """Test that an unidentifiable host is reported as unsupported."""
    with pytest.raises(UnsupportedSystemError, match="Cannot detect OS"):
        detect_os(os_release=temp_dir / "a", redhat_release=temp_dir / "b")


@pytest.mark.parametrize(
    "os_id,family",
    [("ubuntu", "debian"), ("debian", "debian"), ("centos", "rhel"), ("fedora", "rhel"), ("arch", "arch")],
)
def test_os_families(os_id, family):
    """Test distribution to family mapping."""
    assert OSInfo(id=os_id).family == family


def test_unsupported_os_family():
    """Test that unknown distributions are rejected."""
    with pytest.raises(UnsupportedSystemError, match="Unsupported OS: gentoo"):
        OSInfo(id="gentoo").family


def test_select_package_manager_prefers_dnf():
    """Test that rhel hosts use dnf when present and yum otherwise."""
    fedora = OSInfo(id="fedora")

    assert select_package_manager(fedora, FakeRunner(binaries={"dnf"})) == PackageManager.DNF
    assert select_package_manager(fedora, FakeRunner()) == PackageManager.YUM
    assert select_package_manager(OSInfo(id="ubuntu"), FakeRunner()) == PackageManager.APT
    assert select_package_manager(OSInfo(id="arch"), FakeRunner()) == PackageManager.PACMAN


def test_install_command():
    """Test non-interactive install commands per package manager."""
    assert install_command(PackageManager.APT, ["curl", "git"]) == ["apt-get", "install", "-y", "curl", "git"]
    assert install_command(PackageManager.DNF, ["curl"]) == ["dnf", "install", "-y", "curl"]
    assert install_command(PackageManager.PACMAN, ["curl"]) == ["pacman", "-S", "--noconfirm", "--needed", "curl"]


def test_update_commands():
    """Test index refresh and upgrade commands."""
    assert update_commands(PackageManager.APT) == [["apt-get", "update"], ["apt-get", "upgrade", "-y"]]
    assert update_commands(PackageManager.YUM) == [["yum", "update", "-y"]]
    assert update_commands(PackageManager.PACMAN) == [["pacman", "-Syu", "--noconfirm"]]


def test_map_architecture():
    """Test uname -m to release asset naming."""
    assert map_architecture("x86_64") == "amd64"
    assert map_architecture("aarch64") == "arm64"
    assert map_architecture("armv7l") == "arm"
    with pytest.raises(UnsupportedSystemError, match="Unsupported architecture"):
        map_architecture("mips")


def test_generate_password():
    """Test password length and alphabet."""
    password = generate_password()

    assert len(password) == 25
    assert password.isalnum()
    assert generate_password(12) != generate_password(12)
