"""
Running external commands.

Every YADS operation is a sequence of calls to apt-get, systemctl, docker,
certbot and friends. CommandRunner is the single place those calls go
through, so sudo handling, dry-run, timeouts and error reporting behave the
same everywhere.
"""

import logging
import os
import shlex
import shutil
import subprocess
from pathlib import Path

from pydantic import BaseModel, Field
from rich.console import Console

from .errors import CommandError, DependencyMissingError, PermissionDeniedError

logger = logging.getLogger(__name__)


class CommandResult(BaseModel):
    """Outcome of one external command."""

    args: list[str] = Field(..., description="Command line as executed")
    returncode: int = Field(default=0, description="Process exit status")
    stdout: str = Field(default="", description="Captured standard output")
    stderr: str = Field(default="", description="Captured standard error")

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.splitlines() if line.strip()]


class CommandRunner:
    """Runs external commands with optional sudo, dry-run and timeout.

    Two entry points exist:

    - ``run()`` for commands that change the system. In dry-run mode they are
      printed and reported as successful without executing.
    - ``query()`` for read-only probes (``docker ps``, ``systemctl is-active``).
      These always execute, so dry-run output reflects the real state.

    Attributes:
        dry_run: Print mutating commands instead of running them
        timeout: Optional timeout in seconds applied to every command
    """

    def __init__(
        self,
        dry_run: bool = False,
        timeout: float | None = None,
        console: Console | None = None,
    ):
        self.dry_run = dry_run
        self.timeout = timeout
        self.console = console or Console(stderr=True)

    def is_root(self) -> bool:
        return os.geteuid() == 0

    def which(self, name: str) -> str | None:
        return shutil.which(name)

    def has(self, name: str) -> bool:
        """Check whether a binary is on PATH."""
        return self.which(name) is not None

    def require(self, name: str, hint: str = "") -> None:
        """Raise DependencyMissingError unless the binary is installed."""
        if not self.has(name):
            message = f"{name} is not installed"
            if hint:
                message = f"{message}. {hint}"
            raise DependencyMissingError(message)

    def _prefix(self, args: list[str], sudo: bool) -> list[str]:
        args = [str(arg) for arg in args]
        if not sudo or self.is_root():
            return args
        if not self.has("sudo"):
            raise PermissionDeniedError(
                f"Root privileges are required to run '{args[0]}' and sudo is not available"
            )
        return ["sudo", *args]

    def run(
        self,
        args: list[str],
        *,
        sudo: bool = False,
        check: bool = True,
        capture: bool = True,
        input_text: str | None = None,
        stdin_path: Path | None = None,
        stdout_path: Path | None = None,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        """Run a command that changes the system.

        Args:
            args: Command and arguments
            sudo: Prefix with sudo when not running as root
            check: Raise CommandError on a non-zero exit status
            capture: Capture output; False attaches the terminal (interactive
                commands such as ``certbot --manual`` or ``docker logs -f``)
            input_text: Text fed to stdin
            stdin_path: File fed to stdin
            stdout_path: File receiving stdout; removed again when the command fails
            cwd: Working directory
            env: Extra environment variables

        Returns:
            CommandResult of the process

        Raises:
            CommandError: If check is set and the command fails
            DependencyMissingError: If the binary does not exist
            PermissionDeniedError: If sudo is needed but unavailable
        """
        args = self._prefix(args, sudo)
        command = shlex.join(args)

        if self.dry_run:
            logger.info(f"Dry run, skipping: {command}")
            self.console.print(f"[dim]would run:[/dim] {command}")
            return CommandResult(args=args)

        return self._run(
            args,
            check=check,
            capture=capture,
            input_text=input_text,
            stdin_path=stdin_path,
            stdout_path=stdout_path,
            cwd=cwd,
            env=env,
        )

    def query(
        self,
        args: list[str],
        *,
        sudo: bool = False,
        check: bool = False,
        cwd: Path | None = None,
    ) -> CommandResult:
        """Run a read-only command and capture its output, even in dry-run."""
        args = self._prefix(args, sudo)
        return self._run(args, check=check, capture=True, cwd=cwd)

    def succeeds(self, args: list[str], *, sudo: bool = False) -> bool:
        """Return True when a read-only command exits with status 0."""
        try:
            return self.query(args, sudo=sudo).ok
        except DependencyMissingError:
            return False

    def write_file(
        self,
        path: Path,
        content: str,
        *,
        sudo: bool = False,
        mode: int | None = None,
    ) -> None:
        """Write a file, going through ``sudo tee`` when root is required."""
        path = Path(path)
        if self.dry_run:
            logger.info(f"Dry run, skipping write of {path}")
            self.console.print(f"[dim]would write:[/dim] {path}")
            return

        if sudo and not self.is_root():
            self.run(["mkdir", "-p", str(path.parent)], sudo=True)
            self.run(["tee", str(path)], sudo=True, input_text=content)
            if mode is not None:
                self.run(["chmod", format(mode, "o"), str(path)], sudo=True)
            return

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        if mode is not None:
            os.chmod(path, mode)
        logger.debug(f"Wrote {path}")

    def _run(
        self,
        args: list[str],
        *,
        check: bool,
        capture: bool,
        input_text: str | None = None,
        stdin_path: Path | None = None,
        stdout_path: Path | None = None,
        cwd: Path | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        logger.debug(f"Running: {shlex.join(args)}")
        try:
            result = self._execute(
                args,
                capture=capture,
                input_text=input_text,
                stdin_path=stdin_path,
                stdout_path=stdout_path,
                cwd=cwd,
                env=env,
            )
        except (CommandError, DependencyMissingError):
            _discard(stdout_path)
            raise
        if result.returncode != 0:
            logger.debug(f"Command exited with {result.returncode}: {result.stderr.strip()}")
            # Partial output of a failed command must not pass for a real file
            _discard(stdout_path)
            if check:
                raise CommandError(args, result.returncode, result.stderr)
        return result

    def _execute(
        self,
        args: list[str],
        *,
        capture: bool,
        input_text: str | None,
        stdin_path: Path | None,
        stdout_path: Path | None,
        cwd: Path | None,
        env: dict[str, str] | None,
    ) -> CommandResult:
        """Spawn the process. Tests replace this method with a recorder."""
        full_env = {**os.environ, **env} if env else None
        stdin_handle = stdout_handle = None
        try:
            if stdin_path:
                stdin_handle = open(stdin_path, "rb")
            if stdout_path:
                Path(stdout_path).parent.mkdir(parents=True, exist_ok=True)
                stdout_handle = open(stdout_path, "wb")
            try:
                process = subprocess.run(
                    args,
                    input=input_text.encode() if input_text is not None else None,
                    stdin=stdin_handle,
                    stdout=stdout_handle if stdout_handle else (subprocess.PIPE if capture else None),
                    stderr=subprocess.PIPE if capture else None,
                    cwd=cwd,
                    env=full_env,
                    timeout=self.timeout,
                )
            except FileNotFoundError as e:
                raise DependencyMissingError(f"{args[0]} is not installed") from e
            except subprocess.TimeoutExpired as e:
                raise CommandError(args, -1, f"timed out after {self.timeout}s") from e
        finally:
            if stdin_handle:
                stdin_handle.close()
            if stdout_handle:
                stdout_handle.close()

        stdout = process.stdout if capture and not stdout_handle else b""
        stderr = process.stderr if capture else b""
        return CommandResult(
            args=args,
            returncode=process.returncode,
            stdout=(stdout or b"").decode(errors="replace"),
            stderr=(stderr or b"").decode(errors="replace"),
        )


def _discard(path: Path | None) -> None:
    if path is not None:
        Path(path).unlink(missing_ok=True)
