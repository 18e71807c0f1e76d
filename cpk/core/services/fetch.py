"""
Fetcher — download repository files (CPKINDEX, .cpk archives).

Downloads land in a temp file next to the destination and are renamed
into place only when complete, so an interrupted fetch never replaces
a good file. No retries: a failed download is retried by the operator.
"""

from __future__ import annotations

import http.client
import logging
import shutil
import tempfile
import urllib.error
import urllib.parse
import urllib.request
from pathlib import Path

from cpk import __version__
from cpk.core.errors import DownloadFailed

logger = logging.getLogger(__name__)

_USER_AGENT = f"cpk/{__version__}"


def url_encode(value: str) -> str:
    """Percent-encode everything but ASCII alphanumerics and ``-_.~``."""
    return urllib.parse.quote(value, safe="")


def repo_file_url(repo_url: str, filename: str) -> str:
    """URL of ``filename`` at the repository root."""
    return f"{repo_url.rstrip('/')}/{url_encode(filename)}"


def download_file(url: str, dest: Path, timeout: float | None = None) -> Path:
    """Fetch ``url`` into ``dest``.

    Args:
        url: Source URL (http, https, ftp or file). Redirects are followed.
        dest: Target path; replaced atomically on success.
        timeout: Socket timeout in seconds; None blocks indefinitely.

    Raises:
        DownloadFailed: on any network or write error. ``dest`` is untouched.
    """
    if dest.exists():
        logger.info("Updating %s", dest)
    else:
        logger.info("Fetching %s", dest)

    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=dest.parent, prefix=f".{dest.name}.", suffix=".part")
    except OSError as e:
        raise DownloadFailed(f"Failed to open {dest} for writing: {e}") from e

    tmp = Path(tmp_path)
    try:
        with open(fd, "wb") as f:
            request = urllib.request.Request(url, headers={"User-Agent": _USER_AGENT})
            with urllib.request.urlopen(request, timeout=timeout) as resp:
                shutil.copyfileobj(resp, f)
        tmp.chmod(0o644)
        tmp.replace(dest)
    except (urllib.error.URLError, http.client.HTTPException, OSError, ValueError) as e:
        tmp.unlink(missing_ok=True)
        raise DownloadFailed(f"Download error: {url}: {e}") from e

    logger.debug("Downloaded %s → %s", url, dest)
    return dest
