"""Input validation for names, domains and versions."""

import re

from .errors import ValidationError

PROJECT_NAME_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9]$")
DOMAIN_PATTERN = re.compile(r"^[a-zA-Z0-9][a-zA-Z0-9-]{1,61}[a-zA-Z0-9]\.[a-zA-Z]{2,}$")
PHP_VERSION_PATTERN = re.compile(r"^[0-9]+\.[0-9]+$")
DATABASE_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_][A-Za-z0-9_-]{0,63}$")

SUPPORTED_PHP_MAJORS = range(5, 9)


def is_valid_project_name(name: str) -> bool:
    return bool(PROJECT_NAME_PATTERN.match(name or ""))


def is_valid_domain(domain: str) -> bool:
    return bool(DOMAIN_PATTERN.match(domain or ""))


def validate_project_name(name: str) -> str:
    """Return the project name or raise ValidationError.

    Example:
        >>> validate_project_name("my-app")
        'my-app'
    """
    if not is_valid_project_name(name):
        raise ValidationError(
            f"Invalid project name '{name}'. Use only letters, numbers, and hyphens "
            "(must start and end with a letter or number)."
        )
    return name


def validate_domain(domain: str) -> str:
    """Return the domain or raise ValidationError."""
    if not is_valid_domain(domain):
        raise ValidationError(
            f"Invalid domain format '{domain}'. Please enter a valid domain name (e.g. mydev.com)."
        )
    return domain


def validate_php_version(version: str) -> str:
    """Check a MAJOR.MINOR PHP version against the supported range (5.x-8.x)."""
    if not PHP_VERSION_PATTERN.match(version or ""):
        raise ValidationError(
            f"Invalid PHP version format '{version}'. Use format like 8.2, 7.4, etc."
        )
    major = int(version.split(".")[0])
    if major not in SUPPORTED_PHP_MAJORS:
        raise ValidationError(
            f"PHP version {version} is not supported. Supported versions: 5.6-8.5"
        )
    return version


def validate_database_name(name: str) -> str:
    if not DATABASE_NAME_PATTERN.match(name or ""):
        raise ValidationError(
            f"Invalid database name '{name}'. Use letters, numbers, underscores and hyphens."
        )
    return name
