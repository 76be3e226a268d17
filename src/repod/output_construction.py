from __future__ import annotations

import io
from typing import TYPE_CHECKING

from repod.config import BlockStatus, ContentBlock, ExtractionReport

if TYPE_CHECKING:
    from collections.abc import Sequence


def section_header(rel: str) -> str:
    return f"--- {rel} ---"


def format_block(block: ContentBlock) -> str:
    """Render one content block as a labeled section.

    Args:
        block (ContentBlock): the block to render

    Returns:
        str: the header line followed by the decoded text, or by a one-line
            note for binary and failed files
    """
    match block.status:
        case BlockStatus.TEXT:
            body = (block.text or "").rstrip("\n")
        case BlockStatus.BINARY:
            body = f"(skipped: binary file, {block.size} bytes)"
        case BlockStatus.ERROR:
            body = f"(error: {block.error})"
    return f"{section_header(block.rel)}\n{body}"


def assemble(tree: str, blocks: Sequence[ContentBlock]) -> ExtractionReport:
    """Assemble the tree diagram and the ordered blocks into the final report.

    Args:
        tree (str): the rendered directory diagram
        blocks (Sequence[ContentBlock]): the extracted files, in report order

    Returns:
        ExtractionReport: the artifact text and its summary counters
    """
    out = io.StringIO()
    out.write("<directory_structure>\n")
    out.write(tree.rstrip("\n"))
    out.write("\n</directory_structure>\n\n")

    included = binary = failed = total_bytes = 0
    for block in blocks:
        out.write(format_block(block))
        out.write("\n\n")
        match block.status:
            case BlockStatus.TEXT:
                included += 1
                total_bytes += block.size
            case BlockStatus.BINARY:
                binary += 1
            case BlockStatus.ERROR:
                failed += 1

    return ExtractionReport(
        tree=tree,
        blocks=tuple(blocks),
        text=out.getvalue().rstrip("\n") + "\n",
        files_included=included,
        files_binary=binary,
        files_failed=failed,
        total_bytes=total_bytes,
    )


def summary_line(report: ExtractionReport) -> str:
    return (
        f"files={report.files_included} binary={report.files_binary} "
        f"failed={report.files_failed} bytes={report.total_bytes}"
    )


def batch_summary_line(reports: Sequence[ExtractionReport], seconds: float) -> str:
    """Aggregate the counters of several reports into one line.

    Args:
        reports (Sequence[ExtractionReport]): one report per flattened repository
        seconds (float): wall-clock time spent on the whole batch, cloning included

    Returns:
        str: the repository count, the summed counters, the elapsed time and
            the extraction rate in files per second
    """
    files = sum(r.files_total for r in reports)
    rate = files / seconds if seconds > 0 else 0.0
    return (
        f"Total repos={len(reports)} "
        f"files={sum(r.files_included for r in reports)} "
        f"binary={sum(r.files_binary for r in reports)} "
        f"failed={sum(r.files_failed for r in reports)} "
        f"bytes={sum(r.total_bytes for r in reports)} "
        f"seconds={seconds:.2f} files_per_second={rate:.1f}"
    )
