from __future__ import annotations

import threading
import time
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from repod import scheduler
from repod.config import BlockStatus, ContentBlock, FileRecord
from repod.scheduler import default_concurrency, extract_all

if TYPE_CHECKING:
    from pytest_mock import MockerFixture


def _records(count: int) -> list[FileRecord]:
    return [FileRecord(path=Path(f"/virtual/f{i:03d}.txt"), rel=f"f{i:03d}.txt", size=i) for i in range(count)]


def _slow_reversed_extractor(rec: FileRecord) -> ContentBlock:
    # Earlier records finish last, so completion order is the reverse of input order.
    time.sleep((100 - rec.size) / 20000)
    return ContentBlock(rel=rec.rel, status=BlockStatus.TEXT, text=rec.rel, size=rec.size)


@pytest.mark.unit
@pytest.mark.parametrize(("concurrency", "chunk_size"), [(1, 1), (4, 1), (4, 3), (8, 100), (3, 7)])
def test_extract_all_preserves_input_order(concurrency: int, chunk_size: int) -> None:
    records = _records(25)

    blocks = extract_all(
        records,
        concurrency=concurrency,
        chunk_size=chunk_size,
        extractor=_slow_reversed_extractor,
    )

    assert [b.rel for b in blocks] == [r.rel for r in records]


@pytest.mark.unit
def test_extract_all_drains_each_chunk_before_the_next() -> None:
    lock = threading.Lock()
    in_flight = 0
    peak = 0

    def extractor(rec: FileRecord) -> ContentBlock:
        nonlocal in_flight, peak
        with lock:
            in_flight += 1
            peak = max(peak, in_flight)
        time.sleep(0.005)
        with lock:
            in_flight -= 1
        return ContentBlock(rel=rec.rel, status=BlockStatus.TEXT, text="")

    extract_all(_records(12), concurrency=8, chunk_size=3, extractor=extractor)

    assert peak <= 3


@pytest.mark.unit
def test_extract_all_empty_input() -> None:
    assert extract_all([], concurrency=2, chunk_size=5) == []


@pytest.mark.unit
@pytest.mark.parametrize(("concurrency", "chunk_size"), [(0, 10), (2, 0), (-1, 1)])
def test_extract_all_rejects_non_positive_settings(concurrency: int, chunk_size: int) -> None:
    with pytest.raises(ValueError, match="at least 1"):
        extract_all(_records(1), concurrency=concurrency, chunk_size=chunk_size)


@pytest.mark.unit
def test_default_concurrency_falls_back_to_one(mocker: MockerFixture) -> None:
    mocker.patch.object(scheduler.os, "cpu_count", return_value=None)

    assert default_concurrency() == 1
