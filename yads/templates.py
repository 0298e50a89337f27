"""
Rendering of every file YADS generates.

Web server sites, systemd units, tunnel configs, project scaffolds and .env
files are Jinja2 templates shipped in the ``templates`` directory next to
this module.
"""

import logging
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent / "templates"
SCAFFOLD_DIR = TEMPLATES_DIR / "scaffold"

_environment: Environment | None = None


def get_environment() -> Environment:
    """Shared Jinja2 environment; missing variables raise instead of rendering empty."""
    global _environment
    if _environment is None:
        _environment = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            autoescape=False,
        )
    return _environment


def render(name: str, **variables: Any) -> str:
    """Render a template by its file name.

    Args:
        name: Template path relative to the templates directory
        **variables: Template context

    Returns:
        Rendered text
    """
    logger.debug(f"Rendering template {name}")
    return get_environment().get_template(name).render(**variables)


def scaffold_files(project_type: str) -> list[str]:
    """Built-in scaffold files for a project type, as output file names.

    Types without a scaffold directory fall back to ``generic``.
    """
    directory = SCAFFOLD_DIR / project_type
    if not directory.is_dir():
        directory = SCAFFOLD_DIR / "generic"
    return sorted(path.name.removesuffix(".j2") for path in directory.glob("*.j2"))


def render_scaffold(project_type: str, target: Path, **variables: Any) -> list[Path]:
    """Write the built-in scaffold for ``project_type`` into ``target``.

    Returns:
        Paths of the written files
    """
    kind = project_type if (SCAFFOLD_DIR / project_type).is_dir() else "generic"
    written = []
    for filename in scaffold_files(kind):
        content = render(f"scaffold/{kind}/{filename}.j2", **variables)
        path = target / filename
        path.write_text(content, encoding="utf-8")
        written.append(path)
    logger.debug(f"Scaffolded {len(written)} {kind} files into {target}")
    return written
