"""Tests for name, domain and version validation."""

import pytest

from yads.errors import ValidationError
from yads.validation import (
    is_valid_domain,
    is_valid_project_name,
    validate_database_name,
    validate_domain,
    validate_php_version,
    validate_project_name,
)


@pytest.mark.parametrize("name", ["blog", "my-app", "App2", "a1", "shop-2024"])
def test_valid_project_names(name):
    """Test that letters, digits and inner hyphens are accepted."""
    assert is_valid_project_name(name)
    assert validate_project_name(name) == name


@pytest.mark.parametrize("name", ["", "a", "-app", "app-", "my_app", "my app", "app.com", "../etc"])
def test_invalid_project_names(name):
    """Test that leading/trailing hyphens, punctuation and single characters are rejected."""
    assert not is_valid_project_name(name)
    with pytest.raises(ValidationError, match="Invalid project name"):
        validate_project_name(name)


@pytest.mark.parametrize("domain", ["mydev.com", "example.org", "my-dev.io", "dev123.co"])
def test_valid_domains(domain):
    """Test that a label plus TLD is accepted."""
    assert is_valid_domain(domain)
    assert validate_domain(domain) == domain


@pytest.mark.parametrize("domain", ["", "localhost", "-bad.com", "bad-.com", "mydev.c", "my_dev.com", "mydev.123"])
def test_invalid_domains(domain):
    """Test that malformed domains are rejected."""
    assert not is_valid_domain(domain)
    with pytest.raises(ValidationError, match="Invalid domain"):
        validate_domain(domain)


@pytest.mark.parametrize("version", ["5.6", "7.4", "8.2", "8.4"])
def test_supported_php_versions(version):
    """Test that MAJOR.MINOR versions from 5 to 8 pass."""
    assert validate_php_version(version) == version


@pytest.mark.parametrize("version", ["8", "8.2.1", "latest", "v8.2", ""])
def test_malformed_php_versions(version):
    """Test that anything but MAJOR.MINOR is rejected."""
    with pytest.raises(ValidationError, match="Invalid PHP version format"):
        validate_php_version(version)


@pytest.mark.parametrize("version", ["4.4", "9.0"])
def test_unsupported_php_majors(version):
    """Test that majors outside 5..8 are rejected."""
    with pytest.raises(ValidationError, match="not supported"):
        validate_php_version(version)


def test_database_names():
    """Test that identifiers which could break SQL quoting are rejected."""
    assert validate_database_name("blog_db") == "blog_db"
    assert validate_database_name("shop-2") == "shop-2"
    for name in ["", "drop`table", "x'; DROP", "a b", 'q"uote']:
        with pytest.raises(ValidationError):
            validate_database_name(name)
