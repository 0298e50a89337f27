"""Flat KEY="value" config file used by YADS.

The same line format is shared by ~/.yads/config, per-project .yads/config,
Compose .env files and /etc/os-release, so the reader lives here and is reused
by the modules reading those files. Parsing is python-dotenv's; only the
writer is ours.
"""

import io
import logging
import os
import re
from collections.abc import Iterator
from pathlib import Path

from dotenv.parser import parse_stream

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

KEY_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def parse_key_values(text: str, source: str = "<string>") -> dict[str, str]:
    """Parse KEY=value lines into an ordered dict.

    Blank lines and comments are ignored, a leading ``export`` is accepted and
    malformed lines (no ``=``, or a key that is not a shell variable name) are
    skipped with a warning. Variable references are not expanded.

    Args:
        text: File contents
        source: Name used in warnings

    Returns:
        Dict of key to unquoted value, in file order
    """
    values: dict[str, str] = {}
    for binding in parse_stream(io.StringIO(text)):
        if binding.key is None and not binding.error:
            continue
        if binding.error or binding.value is None or not KEY_PATTERN.match(binding.key):
            original = binding.original
            logger.warning(
                f"Skipping malformed line {original.line} in {source}: {original.string.rstrip()!r}"
            )
            continue
        values[binding.key] = binding.value
    return values


def read_env_file(path: Path) -> dict[str, str]:
    """Read a KEY=value file, returning an empty dict when it does not exist.

    Raises:
        ConfigurationError: If the file cannot be read or is not UTF-8
    """
    path = Path(path)
    if not path.exists():
        return {}
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e
    return parse_key_values(text, source=str(path))


def format_key_values(values: dict[str, str]) -> str:
    """Render values as KEY="value" lines, one per key."""
    return "".join(f"{key}={_quote(value)}\n" for key, value in values.items())


class YadsConfig:
    """The user's stack choices, persisted in ~/.yads/config.

    Unknown keys are preserved across load/save, so other tools (or older
    YADS versions) can keep their own entries in the same file.

    Attributes:
        path: Location of the config file
    """

    DEFAULTS = {
        "WEB_SERVER": "nginx",
        "PHP_VERSION": "8.4",
    }

    def __init__(self, path: Path, values: dict[str, str] | None = None):
        self.path = Path(path)
        self._values: dict[str, str] = dict(values or {})

    @classmethod
    def load(cls, path: Path) -> "YadsConfig":
        """Load the config file; a missing file yields an empty config."""
        path = Path(path)
        values = read_env_file(path)
        logger.debug(f"Loaded {len(values)} config keys from {path}")
        return cls(path, values)

    def save(self) -> Path:
        """Write every key as KEY="value" and restrict the file to its owner.

        Returns:
            Path of the written file
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(format_key_values(self._values), encoding="utf-8")
        os.chmod(self.path, 0o600)
        logger.debug(f"Saved {len(self._values)} config keys to {self.path}")
        return self.path

    def get(self, key: str, default: str | None = None) -> str | None:
        if key in self._values:
            return self._values[key]
        if default is not None:
            return default
        return self.DEFAULTS.get(key)

    def set(self, key: str, value: str) -> None:
        if not KEY_PATTERN.match(key):
            raise ConfigurationError(f"Invalid config key: {key!r}")
        value = str(value)
        if "\n" in value or "\r" in value:
            raise ConfigurationError(f"Config value for {key} must be a single line")
        self._values[key] = value

    def update(self, **values: str | None) -> None:
        """Set several keys at once, ignoring None values."""
        for key, value in values.items():
            if value is not None:
                self.set(key, value)

    def unset(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        return self._values.pop(key, None) is not None

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)

    @property
    def web_server(self) -> str:
        return self.get("WEB_SERVER")

    @property
    def php_version(self) -> str:
        return self.get("PHP_VERSION")

    @property
    def domain(self) -> str | None:
        return self.get("DOMAIN") or None

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, YadsConfig):
            return NotImplemented
        return self._values == other._values

    def __repr__(self) -> str:
        return f"YadsConfig(path={str(self.path)!r}, keys={list(self._values)})"
