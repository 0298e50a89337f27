"""
YADS - Yet Another Development Server.

Turns a fresh Linux host (or a Docker Compose stack) into a remote PHP
development server:
- web servers: nginx, Apache or FrankenPHP with the PHP version of your choice
- projects: scaffolded per type, served at https://<project>.<domain>
- remote access: Cloudflare tunnel, wildcard TLS and VS Code Server
- containers: health, scaling, limits, database and volume backups
"""

from .config import YadsConfig
from .errors import YadsError
from .settings import YadsSettings, get_settings, reload_settings

__version__ = "0.1.0"
__all__ = [
    "YadsConfig",
    "YadsError",
    "YadsSettings",
    "get_settings",
    "reload_settings",
]
