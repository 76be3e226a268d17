from __future__ import annotations

import codecs
import mmap
import os
from typing import TYPE_CHECKING

from repod.config import MMAP_THRESHOLD, NON_TEXT_RATIO, SNIFF_BYTES, BlockStatus, ContentBlock
from repod.logging import logger

if TYPE_CHECKING:
    from typing import BinaryIO

    from repod.config import FileRecord

# Longest BOMs first: the UTF-32-LE BOM starts with the UTF-16-LE one.
_BOMS: tuple[tuple[bytes, str], ...] = (
    (codecs.BOM_UTF32_LE, "utf-32"),
    (codecs.BOM_UTF32_BE, "utf-32"),
    (codecs.BOM_UTF8, "utf-8-sig"),
    (codecs.BOM_UTF16_LE, "utf-16"),
    (codecs.BOM_UTF16_BE, "utf-16"),
)

_TEXT_CONTROL_BYTES = frozenset(b"\t\n\r")


def detect_encoding(head: bytes) -> str:
    """Pick a codec from the byte-order mark of `head`, defaulting to UTF-8.

    Args:
        head (bytes): the first bytes of the file

    Returns:
        str: a codec name accepted by `bytes.decode`
    """
    for bom, encoding in _BOMS:
        if head.startswith(bom):
            return encoding
    return "utf-8"


def non_text_ratio(head: bytes) -> float:
    """Share of bytes in `head` that are neither printable ASCII nor common whitespace.

    Args:
        head (bytes): the bytes to inspect

    Returns:
        float: a value between 0 and 1 (0 for an empty input)
    """
    if not head:
        return 0.0
    non_text = sum(1 for b in head if (b < 32 and b not in _TEXT_CONTROL_BYTES) or b > 126)  # noqa: PLR2004
    return non_text / len(head)


def is_binary_prefix(head: bytes, encoding: str = "utf-8") -> bool:
    """Classify a file as binary from its first bytes.

    A null byte marks the file binary unless a UTF-16/32 byte-order mark
    announces a wide encoding. A prefix that is not valid UTF-8 is binary
    when too many of its bytes are control or non-ASCII bytes; otherwise it
    is treated as text in a legacy encoding and decoded lossily later.

    Args:
        head (bytes): the first bytes of the file
        encoding (str): the codec picked by `detect_encoding`

    Returns:
        bool: True if the file should be skipped as binary
    """
    if encoding.startswith(("utf-16", "utf-32")):
        return False
    if b"\x00" in head:
        return True
    decoder = codecs.getincrementaldecoder(encoding)()
    try:
        # final=False tolerates a multi-byte sequence cut at the end of the prefix
        decoder.decode(head, final=False)
    except UnicodeDecodeError:
        return non_text_ratio(head) > NON_TEXT_RATIO
    return False


def decode_bytes(data: bytes | memoryview, encoding: str) -> tuple[str, bool]:
    """Decode `data`, falling back to a lossy decode instead of failing.

    Args:
        data (bytes | memoryview): the raw file contents
        encoding (str): the codec to use

    Returns:
        tuple[str, bool]: the text with line endings normalized to ``\\n``,
            and whether undecodable sequences were replaced
    """
    lossy = False
    try:
        text = str(data, encoding)
    except UnicodeDecodeError:
        text = str(data, encoding, "replace")
        lossy = True
    return text.replace("\r\n", "\n").replace("\r", "\n"), lossy


def read_and_decode(fh: BinaryIO, size: int, encoding: str, mmap_threshold: int) -> tuple[str, bool]:
    """Read an open file from the start and decode it.

    Files above `mmap_threshold` bytes are decoded straight from a read-only
    memory map, released before returning.

    Args:
        fh (BinaryIO): the file, opened in binary mode
        size (int): current size of the file in bytes
        encoding (str): the codec to use
        mmap_threshold (int): size in bytes above which the file is memory-mapped

    Returns:
        tuple[str, bool]: the decoded text and the lossy flag
    """
    if size == 0:
        return "", False
    if size > mmap_threshold:
        with mmap.mmap(fh.fileno(), 0, access=mmap.ACCESS_READ) as mm, memoryview(mm) as view:
            return decode_bytes(view, encoding)
    fh.seek(0)
    return decode_bytes(fh.read(), encoding)


def extract(
    rec: FileRecord,
    *,
    sniff_bytes: int = SNIFF_BYTES,
    mmap_threshold: int = MMAP_THRESHOLD,
) -> ContentBlock:
    """Extract one file into a content block.

    I/O problems never propagate: they are recorded on an ERROR block so the
    rest of the run can proceed.

    Args:
        rec (FileRecord): the file to extract
        sniff_bytes (int): number of leading bytes inspected for binary detection
        mmap_threshold (int): size in bytes above which the file is memory-mapped

    Returns:
        ContentBlock: a TEXT, BINARY or ERROR block for `rec`
    """
    try:
        with rec.path.open("rb") as fh:
            size = os.fstat(fh.fileno()).st_size
            head = fh.read(sniff_bytes)
            encoding = detect_encoding(head)
            if is_binary_prefix(head, encoding):
                return ContentBlock(rel=rec.rel, status=BlockStatus.BINARY, size=size)
            text, lossy = read_and_decode(fh, size, encoding, mmap_threshold)
    except (OSError, ValueError) as e:
        message = f"{type(e).__name__}: {getattr(e, 'strerror', None) or e}"
        logger.warning("extract.failed", path=rec.rel, error=message)
        return ContentBlock(rel=rec.rel, status=BlockStatus.ERROR, size=rec.size, error=message)

    if lossy:
        logger.debug("extract.lossy_decode", path=rec.rel, encoding=encoding)
    return ContentBlock(
        rel=rec.rel,
        status=BlockStatus.TEXT,
        text=text,
        size=size,
        encoding=encoding,
        lossy=lossy,
    )
