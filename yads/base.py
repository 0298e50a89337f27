"""Base class shared by the YADS managers."""

import logging

from .config import YadsConfig
from .formatters import OutputFormatter
from .settings import YadsSettings, get_settings
from .shell import CommandResult, CommandRunner

logger = logging.getLogger(__name__)


class Component:
    """A manager bound to a command runner, the settings and the user config.

    Subclasses wrap one area of the system (PHP, tunnel, projects...) and
    report progress through ``self.output``. Anything not passed in is
    created from the defaults, so ``PhpManager()`` works on a real host while
    tests inject a recording runner and temporary paths.
    """

    def __init__(
        self,
        runner: CommandRunner | None = None,
        config: YadsConfig | None = None,
        settings: YadsSettings | None = None,
        output: OutputFormatter | None = None,
    ):
        self.settings = settings or get_settings()
        self.runner = runner or CommandRunner(
            dry_run=self.settings.dry_run,
            timeout=self.settings.command_timeout,
        )
        self.config = config if config is not None else YadsConfig.load(self.settings.config_file)
        self.output = output or OutputFormatter()

    def systemctl(self, *args: str, check: bool = True) -> CommandResult:
        return self.runner.run(["systemctl", *args], sudo=True, check=check)

    def is_active(self, unit: str) -> bool:
        """True when the systemd unit is running."""
        return self.runner.succeeds(["systemctl", "is-active", "--quiet", unit])

    def unit_exists(self, unit: str) -> bool:
        """True when systemd knows about the unit, running or not."""
        result = self.runner.query(["systemctl", "list-unit-files", f"{unit}.service"])
        return result.ok and f"{unit}.service" in result.stdout

    def save_config(self, **values: str | None) -> None:
        """Update and persist config keys."""
        self.config.update(**values)
        if self.runner.dry_run:
            logger.info(f"Dry run, not saving config keys {list(values)}")
            return
        self.config.save()
