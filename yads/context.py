"""Per-invocation state shared by the CLI commands."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TypeVar

import typer
from rich.console import Console
from rich.markup import escape

from .base import Component
from .config import YadsConfig
from .errors import YadsError
from .formatters import OutputFormatter
from .settings import YadsSettings, get_settings
from .shell import CommandRunner

logger = logging.getLogger(__name__)

console = Console()

C = TypeVar("C", bound=Component)


@dataclass
class AppContext:
    """Runner, settings and output built once from the global options."""

    settings: YadsSettings
    runner: CommandRunner
    output: OutputFormatter
    _config: YadsConfig | None = field(default=None, repr=False)

    @classmethod
    def create(cls, settings: YadsSettings | None = None, dry_run: bool = False) -> "AppContext":
        settings = settings or get_settings()
        return cls(
            settings=settings,
            runner=CommandRunner(dry_run=dry_run or settings.dry_run, timeout=settings.command_timeout),
            output=OutputFormatter(console),
        )

    @property
    def config(self) -> YadsConfig:
        if self._config is None:
            self._config = YadsConfig.load(self.settings.config_file)
        return self._config

    def build(self, component: type[C], **kwargs) -> C:
        """Instantiate a manager wired to this context."""
        return component(self.runner, self.config, self.settings, self.output, **kwargs)


def get_app_context(ctx: typer.Context) -> AppContext:
    """AppContext stored by the root callback, created on demand otherwise."""
    root = ctx.find_root()
    if not isinstance(root.obj, AppContext):
        root.obj = AppContext.create()
    return root.obj


@contextmanager
def handle_errors() -> Iterator[None]:
    """Turn YadsError into a red ✗ line and exit code 1."""
    try:
        yield
    except YadsError as e:
        logger.debug("Command failed", exc_info=True)
        console.print(f"[bold red]✗ Error:[/bold red] {escape(str(e))}")
        raise typer.Exit(code=1)
