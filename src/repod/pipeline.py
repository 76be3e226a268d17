from __future__ import annotations

import time
from pathlib import Path

from repod.config import DEFAULT_CHUNK_SIZE, ExtractionReport, FilterConfig
from repod.exceptions import InvalidRootError
from repod.exclusion import ExclusionEngine
from repod.logging import logger
from repod.output_construction import assemble
from repod.scheduler import extract_all
from repod.tree import build_tree, render_tree


def resolve_root(root: str | Path) -> Path:
    """Resolve `root` to an absolute directory path.

    Raises:
        InvalidRootError: if `root` does not exist or is not a directory.
    """
    path = Path(root).expanduser().resolve()
    if not path.is_dir():
        raise InvalidRootError(root=path)
    return path


def flatten(
    root: str | Path,
    config: FilterConfig | None = None,
    *,
    concurrency: int | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
) -> ExtractionReport:
    """Turn the directory tree under `root` into one text report.

    The root and the filter configuration are validated before anything is
    read; after that, per-file problems only show up in the report counters.

    Args:
        root (str | Path): the directory to flatten
        config (FilterConfig | None): the filters to apply; defaults apply when None
        concurrency (int | None): number of extraction threads
        chunk_size (int): number of files submitted to the pool at once

    Raises:
        InvalidRootError: if `root` is not a directory
        InvalidPatternError: if a configured pattern is malformed

    Returns:
        ExtractionReport: the diagram, the ordered content blocks and the counters
    """
    started = time.perf_counter()
    path = resolve_root(root)
    engine = ExclusionEngine.from_config(config or FilterConfig())

    node, records = build_tree(path, engine)
    logger.info("flatten.traversed", root=str(path), files=len(records))

    blocks = extract_all(records, concurrency=concurrency, chunk_size=chunk_size)
    report = assemble(render_tree(node), blocks)
    logger.info(
        "flatten.done",
        root=str(path),
        included=report.files_included,
        binary=report.files_binary,
        failed=report.files_failed,
        bytes=report.total_bytes,
        seconds=round(time.perf_counter() - started, 3),
    )
    return report
