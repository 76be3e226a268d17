"""
repod: flatten a repository into a single text file for an LLM.

Overview
--------
The output starts with a tree diagram of the admitted files, followed by one
``--- <path> ---`` section per file. Binary files are listed but not decoded.

Files are admitted after four rule sources: dotfiles and dot-directories,
built-in defaults (``node_modules``, ``build``, lock files, ...), the
``.gitignore`` / ``.ignore`` files of every directory, and ``--exclude``
patterns. ``--include``, ``--include-dir`` and ``--type`` then restrict the
export to matching files.

The input may be a local directory (default: the current one), a git URL
(``https://`` or ``git@``, shallow-cloned first), or a ``.csv`` file whose
first column lists URLs. Options can also come from a ``.repod.yaml`` file at
the root of the flattened directory, or from ``--config``.

Usage
-----
Run `python -m repod.cli --help` for full options. Common examples:
    - Current directory, report in ./output:
        uv run repod

    - A private repository, Python files only, copied to the clipboard:
        GITHUB_TOKEN=... uv run repod https://github.com/org/repo --type py --copy

    - Skip logs and the docs folder, log to a file:
        uv run repod ./project --exclude "*.log" --exclude "docs/" --log-file repod.log
"""

from __future__ import annotations

import argparse
import shutil
import sys
import time
from pathlib import Path
from typing import TYPE_CHECKING

from repod import __version__
from repod.clone import clone_repository, is_remote, read_urls_from_csv, repo_name_from_url
from repod.exceptions import InvalidRootError, RepodError
from repod.logging import logger, setup_logging
from repod.output_construction import batch_summary_line, summary_line
from repod.pipeline import flatten, resolve_root
from repod.settings import Settings, find_config_file, github_token, load_config_file
from repod.sinks import copy_report, default_output_path, write_report

if TYPE_CHECKING:
    from collections.abc import Sequence

    from repod.config import ExtractionReport


def _positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as e:
        msg = f"invalid integer: {value!r}"
        raise argparse.ArgumentTypeError(msg) from e
    if number < 1:
        msg = f"must be at least 1, got {number}"
        raise argparse.ArgumentTypeError(msg)
    return number


def parse_args(argv: Sequence[str] | None = None) -> Settings:
    """Parse the command line into settings.

    Options that are not given stay unset on the returned model, so values
    from a configuration file can fill them in later.
    """
    p = argparse.ArgumentParser(
        prog="repod",
        description="Flatten a repository into one text file for LLM consumption.",
        argument_default=argparse.SUPPRESS,
    )
    p.add_argument(
        "input",
        nargs="?",
        default="",
        help="Git URL, CSV file of URLs, or local directory (default: current directory).",
    )
    p.add_argument("-o", "--output-dir", type=Path, help="Output directory (default: output).")
    p.add_argument(
        "--copy",
        dest="clipboard",
        action="store_true",
        help="Copy the report to the clipboard instead of writing a file.",
    )
    p.add_argument("--at", type=Path, help="Clone destination for remote repositories.")
    p.add_argument(
        "-t",
        "--type",
        dest="types",
        action="append",
        help="Repository type preset: rs, py, js/ts, go, java (repeatable, comma separated).",
    )
    p.add_argument("-e", "--exclude", action="append", help="Exclude glob (repeatable).")
    p.add_argument("-i", "--include", action="append", help="Include-only glob (repeatable).")
    p.add_argument(
        "--include-dir",
        action="append",
        help="Only export files under this directory (repeatable).",
    )
    p.add_argument("--include-hidden", action="store_true", help="Do not exclude dotfiles.")
    p.add_argument("--no-ignore", action="store_true", help="Do not read .gitignore/.ignore files.")
    p.add_argument("-j", "--workers", type=_positive_int, help="Extraction threads (default: CPU count).")
    p.add_argument("--chunk-size", type=_positive_int, help="Files per extraction chunk.")
    p.add_argument("-c", "--config", dest="config_file", type=Path, help="YAML configuration file.")
    p.add_argument("--log-file", type=str, help="Log file path.")
    p.add_argument("-v", "--verbose", action="store_true", help="Log debug events.")
    p.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    args = p.parse_args(argv)
    return Settings(**vars(args))


def iter_targets(settings: Settings) -> list[str]:
    """Expand the input into the list of directories or URLs to flatten."""
    value = settings.input.strip()
    if value.lower().endswith(".csv") and not is_remote(value):
        path = Path(value)
        if not path.is_file():
            raise InvalidRootError(root=path, message="CSV file not found.")
        return read_urls_from_csv(path)
    return [value]


def prepare_root(target: str, settings: Settings, *, several: bool) -> tuple[Path, str, bool]:
    """Resolve or clone `target`.

    Returns:
        tuple[Path, str, bool]: the root, the repository name, and whether the
            root is a temporary clone to remove afterwards
    """
    if not is_remote(target):
        root = resolve_root(target or Path.cwd())
        return root, root.name, False

    name = repo_name_from_url(target)
    dest = None
    if settings.at is not None:
        dest = settings.at / name if several else settings.at
    root = clone_repository(target, dest, token=github_token())
    return root, name, dest is None


def deliver(report: ExtractionReport, settings: Settings, name: str) -> str:
    if settings.clipboard:
        copy_report(report)
        return f"Copied to clipboard {summary_line(report)}"
    path = write_report(report, default_output_path(settings.output_dir, name))
    return f"Wrote {path} {summary_line(report)}"


def run_target(target: str, settings: Settings, *, several: bool = False) -> tuple[str, ExtractionReport]:
    """Flatten one target and deliver its report.

    Returns:
        tuple[str, ExtractionReport]: the result line to print and the report
    """
    root, name, temporary = prepare_root(target, settings, several=several)
    try:
        effective = settings
        config_path = find_config_file(settings, root, discover=not is_remote(target))
        if config_path is not None:
            effective = settings.with_file_values(load_config_file(config_path), config_path)
        report = flatten(
            root,
            effective.filter_config(),
            concurrency=effective.workers,
            chunk_size=effective.chunk_size,
        )
        return deliver(report, effective, name), report
    finally:
        if temporary:
            shutil.rmtree(root, ignore_errors=True)


def main(argv: Sequence[str] | None = None) -> int:
    settings = parse_args(argv)
    if settings.log_file or settings.verbose:
        setup_logging(settings.log_file or None, verbose=settings.verbose, force=True)

    started = time.perf_counter()
    try:
        targets = iter_targets(settings)
        reports: list[ExtractionReport] = []
        for target in targets:
            line, report = run_target(target, settings, several=len(targets) > 1)
            reports.append(report)
            print(line)
    except RepodError as e:
        logger.error("repod.failed", error=str(e))
        print(f"repod: error: {e}", file=sys.stderr)
        return 1

    if len(targets) > 1:
        seconds = time.perf_counter() - started
        logger.info("repod.batch_done", repos=len(reports), seconds=round(seconds, 3))
        print(batch_summary_line(reports, seconds))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
