from __future__ import annotations

import os
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import TYPE_CHECKING

from repod.config import DEFAULT_CHUNK_SIZE
from repod.file_manipulation import extract
from repod.logging import logger

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from concurrent.futures import Future

    from repod.config import ContentBlock, FileRecord

    Extractor = Callable[[FileRecord], ContentBlock]


def default_concurrency() -> int:
    """Number of worker threads used when none is requested."""
    return os.cpu_count() or 1


def extract_all(
    records: Sequence[FileRecord],
    *,
    concurrency: int | None = None,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    extractor: Extractor = extract,
) -> list[ContentBlock]:
    """Extract every record on a thread pool, preserving the input order.

    Records are submitted in chunks of `chunk_size`; a chunk is fully
    collected before the next one is submitted. Each result is stored in the
    slot matching its record's index, so neither the chunk size nor the
    completion order affects the returned sequence.

    Args:
        records (Sequence[FileRecord]): the files to extract, in report order
        concurrency (int | None): number of worker threads; defaults to the CPU count
        chunk_size (int): number of records submitted per chunk
        extractor (Extractor): the per-file extraction function

    Raises:
        ValueError: if `concurrency` or `chunk_size` is lower than 1

    Returns:
        list[ContentBlock]: one block per record, in the same order as `records`
    """
    workers = default_concurrency() if concurrency is None else concurrency
    if workers < 1:
        msg = f"concurrency must be at least 1, got {workers}"
        raise ValueError(msg)
    if chunk_size < 1:
        msg = f"chunk_size must be at least 1, got {chunk_size}"
        raise ValueError(msg)

    slots: list[ContentBlock | None] = [None] * len(records)
    if not records:
        return []

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="repod-extract") as pool:
        for start in range(0, len(records), chunk_size):
            chunk = records[start : start + chunk_size]
            futures: dict[Future[ContentBlock], int] = {
                pool.submit(extractor, rec): start + offset for offset, rec in enumerate(chunk)
            }
            for fut in as_completed(futures):
                slots[futures[fut]] = fut.result()
            logger.debug("scheduler.chunk_done", start=start, size=len(chunk), total=len(records))

    return [block for block in slots if block is not None]
