"""GitHub release lookups and downloads."""

import logging
import os
from pathlib import Path

import httpx

from ..errors import DownloadError
from ..settings import YadsSettings

logger = logging.getLogger(__name__)


def latest_release_tag(repo: str, settings: YadsSettings) -> str:
    """Return the tag of the latest release of ``owner/name``.

    Raises:
        DownloadError: If the API call fails or the answer has no tag
    """
    url = f"{settings.github_api.rstrip('/')}/repos/{repo}/releases/latest"
    logger.debug(f"Looking up latest release: {url}")
    try:
        response = httpx.get(
            url,
            timeout=settings.http_timeout,
            headers={"Accept": "application/vnd.github+json"},
            follow_redirects=True,
        )
        response.raise_for_status()
        tag = response.json().get("tag_name")
    except (httpx.HTTPError, ValueError) as e:
        raise DownloadError(f"Could not look up the latest {repo} release: {e}") from e

    if not tag:
        raise DownloadError(f"No release tag found for {repo}")
    return tag


def download(url: str, destination: Path, settings: YadsSettings, executable: bool = False) -> Path:
    """Stream ``url`` to ``destination``.

    Args:
        url: File URL
        destination: Target path; parent directories are created
        settings: Provides the HTTP timeout
        executable: Mark the file 0755

    Returns:
        The destination path
    """
    destination.parent.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Downloading {url} -> {destination}")
    try:
        with httpx.stream("GET", url, timeout=settings.http_timeout, follow_redirects=True) as response:
            response.raise_for_status()
            with open(destination, "wb") as f:
                for chunk in response.iter_bytes():
                    f.write(chunk)
    except httpx.HTTPError as e:
        raise DownloadError(f"Download failed for {url}: {e}") from e

    if executable:
        os.chmod(destination, 0o755)
    return destination
