from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

import pyperclip

from repod.exceptions import SinkError
from repod.logging import logger

if TYPE_CHECKING:
    from pathlib import Path

    from repod.config import ExtractionReport


def default_output_path(output_dir: Path, repo_name: str, now: datetime | None = None) -> Path:
    """Build ``<output_dir>/<repo_name>_<YYYYmmdd_HHMMSS>.txt``.

    Args:
        output_dir (Path): directory receiving the report
        repo_name (str): name of the flattened repository
        now (datetime | None): timestamp to use; the current local time when None

    Returns:
        Path: the report path
    """
    stamp = (now or datetime.now().astimezone()).strftime("%Y%m%d_%H%M%S")
    return output_dir / f"{repo_name}_{stamp}.txt"


def write_report(report: ExtractionReport, path: Path) -> Path:
    """Write the report text to `path`, creating parent directories.

    Raises:
        SinkError: if the file cannot be written.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(report.text, encoding="utf-8")
    except OSError as e:
        raise SinkError(target=str(path), reason=str(e)) from e
    logger.info("sink.file_written", path=str(path), chars=len(report.text))
    return path


def copy_report(report: ExtractionReport) -> None:
    """Copy the report text to the system clipboard.

    Raises:
        SinkError: if no clipboard mechanism is available.
    """
    try:
        pyperclip.copy(report.text)
    except pyperclip.PyperclipException as e:
        raise SinkError(target="clipboard", reason=str(e)) from e
    logger.info("sink.clipboard_copied", chars=len(report.text))
