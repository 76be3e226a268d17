from __future__ import annotations

import csv
import shutil
import subprocess  # noqa: S404
import tempfile
import time
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from repod.exceptions import CloneError
from repod.logging import logger

CLONE_TIMEOUT_SECONDS = 300


def is_remote(value: str) -> bool:
    return value.startswith(("https://", "git@"))


def repo_name_from_url(url: str) -> str:
    """Derive a repository name from its clone URL.

    Args:
        url (str): an ``https://`` or ``git@`` URL

    Returns:
        str: the last path segment without a ``.git`` suffix, or "repo"
    """
    tail = url.rstrip("/").replace(":", "/").split("/")[-1]
    name = tail.removesuffix(".git")
    return name or "repo"


def authenticated_url(url: str, token: str | None) -> str:
    """Embed `token` in an HTTPS clone URL; other URLs are returned unchanged."""
    if not token or not url.startswith("https://"):
        return url
    parts = urlsplit(url)
    host = parts.netloc.rsplit("@", 1)[-1]
    return urlunsplit(parts._replace(netloc=f"x-access-token:{token}@{host}"))


def _mask(text: str, token: str | None) -> str:
    return text.replace(token, "***") if token else text


def clone_repository(url: str, dest: Path | None = None, token: str | None = None) -> Path:
    """Shallow-clone `url` and return the local checkout.

    A non-empty `dest` is removed first. Without `dest`, a temporary
    directory is created and left for the caller to remove; it is removed
    here when the clone fails.

    Args:
        url (str): an ``https://`` or ``git@`` URL
        dest (Path | None): where to clone; a temporary directory when None
        token (str | None): GitHub token used for HTTPS URLs

    Raises:
        CloneError: if the URL scheme is unsupported, git is missing, or the clone fails

    Returns:
        Path: the root of the cloned working tree
    """
    if not is_remote(url):
        raise CloneError(url=url, reason="URL must start with 'https://' or 'git@'")

    created = dest is None
    if dest is None:
        dest = Path(tempfile.mkdtemp(prefix="repod_"))
    elif dest.exists() and any(dest.iterdir()):
        logger.info("clone.clearing_destination", path=str(dest))
        shutil.rmtree(dest)

    logger.info("clone.start", url=url, dest=str(dest))
    started = time.perf_counter()
    try:
        _git_clone(url, dest, token)
    except CloneError:
        if created:
            shutil.rmtree(dest, ignore_errors=True)
        raise
    logger.info("clone.done", url=url, dest=str(dest), seconds=round(time.perf_counter() - started, 3))
    return dest


def _git_clone(url: str, dest: Path, token: str | None) -> None:
    try:
        subprocess.run(
            ["git", "clone", "--depth", "1", authenticated_url(url, token), str(dest)],  # noqa: S607
            text=True,
            capture_output=True,
            check=True,
            timeout=CLONE_TIMEOUT_SECONDS,
        )
    except FileNotFoundError as e:
        raise CloneError(url=url, reason="git executable not found") from e
    except subprocess.TimeoutExpired as e:
        raise CloneError(url=url, reason=f"timed out after {CLONE_TIMEOUT_SECONDS}s") from e
    except subprocess.CalledProcessError as e:
        reason = _mask((e.stderr or "").strip() or f"git exited with {e.returncode}", token)
        if "Authentication failed" in reason or "could not read Username" in reason:
            reason += " (set GITHUB_TOKEN for private HTTPS repositories)"
        raise CloneError(url=url, reason=reason) from None


def read_urls_from_csv(path: Path) -> list[str]:
    """Read repository URLs from the first column of a CSV file.

    Rows whose first cell is not a remote URL (e.g. a header) are skipped.

    Args:
        path (Path): the CSV file

    Returns:
        list[str]: the URLs, in file order
    """
    with path.open(newline="", encoding="utf-8") as fh:
        return [row[0].strip() for row in csv.reader(fh) if row and is_remote(row[0].strip())]
