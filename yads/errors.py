"""
YADS errors - every failure a command can report to the user.
"""

class YadsError(Exception):
    """Base exception for all YADS errors."""
    pass

class ConfigurationError(YadsError):
    """Errors in the config file or in files YADS expects to find."""
    pass

class ValidationError(YadsError):
    """A name, version or option was rejected before anything ran."""
    pass

class CommandError(YadsError):
    """An external command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str = ""):
        self.args_list = list(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = f": {stderr.strip()}" if stderr and stderr.strip() else ""
        super().__init__(
            f"Command failed with code {returncode}: {' '.join(self.args_list)}{detail}"
        )

class DependencyMissingError(YadsError):
    """A required binary (docker, cloudflared, code-server...) is not installed."""
    pass

class PermissionDeniedError(YadsError):
    """The operation needs root and sudo is not available."""
    pass

class UnsupportedSystemError(YadsError):
    """The operating system or CPU architecture is not supported."""
    pass

class ProjectError(YadsError):
    """Errors in the project lifecycle."""
    pass

class ProjectNotFoundError(ProjectError):
    """The project directory does not exist in the requested state."""
    pass

class ProjectExistsError(ProjectError):
    """A project with this name already exists."""
    pass

class ServiceNotFoundError(YadsError):
    """Unknown systemd unit or compose service."""
    pass

class DownloadError(YadsError):
    """A release lookup or file download failed."""
    pass
