from __future__ import annotations

import os
from pathlib import Path
from typing import TYPE_CHECKING

from repod.config import EntryKind, FileRecord, TreeNode
from repod.exclusion import IgnoreContext
from repod.logging import logger

if TYPE_CHECKING:
    from repod.exclusion import ExclusionEngine


def classify_entry(entry: os.DirEntry[str]) -> EntryKind:
    """Classify a directory entry without following symlinks.

    Args:
        entry (os.DirEntry[str]): the entry returned by `os.scandir`

    Returns:
        EntryKind: the kind of the entry; OTHER for sockets, fifos, devices
            and entries that vanished while being inspected
    """
    try:
        if entry.is_symlink():
            return EntryKind.SYMLINK
        if entry.is_dir(follow_symlinks=False):
            return EntryKind.DIRECTORY
        if entry.is_file(follow_symlinks=False):
            return EntryKind.FILE
    except OSError:
        return EntryKind.OTHER
    return EntryKind.OTHER


def _sort_key(item: tuple[os.DirEntry[str], EntryKind]) -> tuple[int, str]:
    entry, kind = item
    return (0 if kind is EntryKind.DIRECTORY else 1, entry.name)


def _join(parent_rel: str, name: str) -> str:
    return f"{parent_rel}/{name}" if parent_rel else name


def _walk_dir(
    directory: Path,
    rel: str,
    engine: ExclusionEngine,
    ctx: IgnoreContext,
    records: list[FileRecord],
) -> TreeNode | None:
    name = directory.name or str(directory)
    ctx = ctx.push(engine.load_ignore_frame(directory, rel))

    try:
        with os.scandir(directory) as it:
            entries = [(e, classify_entry(e)) for e in it]
    except OSError as e:
        logger.warning("tree.unreadable_dir", path=str(directory), error=str(e))
        return TreeNode(name=name, rel=rel, kind=EntryKind.DIRECTORY, admitted=False)

    children: list[TreeNode] = []
    for entry, kind in sorted(entries, key=_sort_key):
        child_rel = _join(rel, entry.name)
        reason = engine.exclusion_reason(child_rel, kind, ctx)
        if reason is not None:
            logger.debug("tree.excluded", path=child_rel, reason=reason)
            continue
        match kind:
            case EntryKind.DIRECTORY:
                child = _walk_dir(Path(entry.path), child_rel, engine, ctx, records)
                if child is not None:
                    children.append(child)
            case EntryKind.FILE:
                try:
                    size = entry.stat(follow_symlinks=False).st_size
                except OSError as e:
                    logger.warning("tree.stat_failed", path=child_rel, error=str(e))
                    continue
                records.append(FileRecord(path=Path(entry.path).absolute(), rel=child_rel, size=size))
                children.append(TreeNode(name=entry.name, rel=child_rel, kind=EntryKind.FILE))
            case EntryKind.SYMLINK | EntryKind.OTHER:
                # Never admitted by the engine; listed for exhaustiveness.
                continue

    if rel and engine.include_active and not children:
        return None
    return TreeNode(name=name, rel=rel, kind=EntryKind.DIRECTORY, children=tuple(children))


def build_tree(root: Path, engine: ExclusionEngine) -> tuple[TreeNode, list[FileRecord]]:
    """Walk `root` depth-first, honoring the exclusion engine.

    Children are visited directories first, then files, each group sorted by
    name, so the flat record list follows the rendered diagram line by line.
    When include-only patterns are active, directories left without any
    admitted file are pruned.

    Args:
        root (Path): the directory to walk (must exist)
        engine (ExclusionEngine): the compiled filter configuration

    Returns:
        tuple[TreeNode, list[FileRecord]]: the root node and the admitted files in pre-order
    """
    records: list[FileRecord] = []
    node = _walk_dir(root, "", engine, IgnoreContext(), records)
    if node is None:  # pragma: no cover - the root is never pruned
        node = TreeNode(name=root.name, rel="", kind=EntryKind.DIRECTORY)
    return node, records


def render_tree(node: TreeNode) -> str:
    """Render a tree as an indented diagram.

    Args:
        node (TreeNode): the root of the tree

    Returns:
        str: the diagram, one entry per line, without a trailing newline
    """
    lines: list[str] = [node.name]

    def label(child: TreeNode) -> str:
        match child.kind:
            case EntryKind.DIRECTORY:
                text = child.name + "/"
                return text if child.admitted else text + " [unreadable]"
            case EntryKind.FILE | EntryKind.SYMLINK | EntryKind.OTHER:
                return child.name

    def walk(current: TreeNode, prefix: str) -> None:
        for idx, child in enumerate(current.children):
            last = idx == len(current.children) - 1
            branch = "└── " if last else "├── "
            lines.append(prefix + branch + label(child))
            if child.children:
                ext = "    " if last else "│   "
                walk(child, prefix + ext)

    walk(node, "")
    return "\n".join(lines)
