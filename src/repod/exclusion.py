"""Admission decisions for paths met during traversal.

Four rule sources are merged, first match wins:

1. dot-prefixed path segments (when ``exclude_hidden`` is set),
2. built-in default names and globs,
3. ignore files found from the root down to the entry's parent,
4. user exclude patterns,

and finally, for files only, the include-only patterns when any are set.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import pathspec

from repod.config import EntryKind
from repod.exceptions import InvalidPatternError
from repod.logging import logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from repod.config import FilterConfig


# Pattern style shared by every compiled spec ("gitwildmatch" before pathspec 1.0).
PATTERN_STYLE = "gitignore"


@dataclass(frozen=True)
class IgnoreFrame:
    """Ignore rules declared by one directory.

    Files and directories are judged by two compilations of the same rules.
    ``spec`` ranks a rule naming the file itself above a rule that only
    matches one of its parent directories, so ``!*/`` cannot re-include a
    file that ``*`` excludes. ``dir_spec`` applies plain last-match-wins,
    which is how git decides whether to descend into a directory: ``*``
    followed by ``!*/`` keeps every directory.

    Attributes:
        base: POSIX path of the declaring directory relative to the root ("" for the root).
        spec: Compiled gitignore rules for files, matched against paths relative to ``base``.
        dir_spec: The same rules for directories, last matching rule wins.
        sources: Ignore files the rules were read from.
    """

    base: str
    spec: pathspec.GitIgnoreSpec
    dir_spec: pathspec.PathSpec
    sources: tuple[str, ...] = ()

    @classmethod
    def from_lines(cls, base: str, lines: Sequence[str], sources: Sequence[str] = ()) -> IgnoreFrame:
        """Compile the lines of one directory's ignore files.

        Raises:
            ValueError: if pathspec rejects a line
        """
        return cls(
            base=base,
            spec=pathspec.GitIgnoreSpec.from_lines(lines),
            dir_spec=pathspec.PathSpec.from_lines(PATTERN_STYLE, lines),
            sources=tuple(sources),
        )

    def relative(self, rel: str) -> str | None:
        """Return `rel` relative to this frame's directory, or None when outside of it."""
        if not self.base:
            return rel
        prefix = self.base + "/"
        if rel.startswith(prefix):
            return rel[len(prefix) :]
        return None

    def verdict(self, rel: str, *, is_dir: bool) -> bool | None:
        """Tell whether this frame ignores `rel`.

        Returns:
            True if ignored, False if re-included by a negation, None if no rule matches.
        """
        local = self.relative(rel)
        if local is None:
            return None
        if is_dir:
            return self.dir_spec.check_file(local + "/").include
        return self.spec.check_file(local).include


@dataclass(frozen=True)
class IgnoreContext:
    """Stack of ignore frames from the root down to the current directory.

    The context is immutable: `push` returns a new context, so each recursive
    call of the traversal owns the rules of its own ancestry only.
    """

    frames: tuple[IgnoreFrame, ...] = ()

    def push(self, frame: IgnoreFrame | None) -> IgnoreContext:
        if frame is None:
            return self
        return IgnoreContext(frames=(*self.frames, frame))

    def is_ignored(self, rel: str, *, is_dir: bool) -> bool:
        """Evaluate the stacked rules; the deepest frame with an opinion wins."""
        ignored = False
        for frame in self.frames:
            verdict = frame.verdict(rel, is_dir=is_dir)
            if verdict is not None:
                ignored = verdict
        return ignored


def _check_pattern(pattern: str, *, allow_negation: bool) -> None:
    if pattern.startswith("!") and not allow_negation:
        raise InvalidPatternError(pattern=pattern, reason="negation is only supported in ignore files")
    if pattern.startswith("#"):
        raise InvalidPatternError(pattern=pattern, reason="pattern starts with a comment marker")
    depth = 0
    i = 0
    while i < len(pattern):
        ch = pattern[i]
        if ch == "\\":
            i += 2
            continue
        if ch == "[":
            depth += 1
        elif ch == "]" and depth:
            depth -= 1
        i += 1
    if depth:
        raise InvalidPatternError(pattern=pattern, reason="unbalanced '['")


def compile_patterns(patterns: Sequence[str], *, allow_negation: bool = False) -> pathspec.PathSpec | None:
    """Compile gitignore-style patterns into one PathSpec.

    A pattern without ``/`` matches a single name at any depth, a pattern
    with ``/`` is anchored to the root, ``*`` stays within a segment and
    ``**`` spans segments.

    Args:
        patterns (Sequence[str]): the patterns to compile
        allow_negation (bool): accept ``!`` patterns

    Raises:
        InvalidPatternError: if a pattern is malformed

    Returns:
        pathspec.PathSpec | None: the compiled spec, or None when there are no patterns
    """
    if not patterns:
        return None
    for pat in patterns:
        _check_pattern(pat, allow_negation=allow_negation)
        try:
            pathspec.PathSpec.from_lines(PATTERN_STYLE, [pat])
        except ValueError as e:
            raise InvalidPatternError(pattern=pat, reason=str(e)) from e
    return pathspec.PathSpec.from_lines(PATTERN_STYLE, patterns)


class ExclusionEngine:
    """Compiled form of a FilterConfig, answering admission questions."""

    def __init__(self, config: FilterConfig) -> None:
        self.config = config
        self._builtin = compile_patterns(config.exclude_globs)
        self._excludes = compile_patterns(config.user_excludes)
        self._includes = compile_patterns(config.include_patterns)

    @classmethod
    def from_config(cls, config: FilterConfig) -> ExclusionEngine:
        """Compile `config`, raising InvalidPatternError before any traversal happens."""
        return cls(config)

    @property
    def include_active(self) -> bool:
        return self._includes is not None

    def exclusion_reason(self, rel: str, kind: EntryKind, ctx: IgnoreContext) -> str | None:
        """Explain why `rel` is excluded.

        Args:
            rel (str): POSIX path relative to the traversal root
            kind (EntryKind): kind of the entry
            ctx (IgnoreContext): ignore rules of the entry's ancestry

        Returns:
            str | None: a short reason, or None when the entry is admitted
        """
        match kind:
            case EntryKind.DIRECTORY:
                is_dir = True
            case EntryKind.FILE:
                is_dir = False
            case EntryKind.SYMLINK:
                return "symlink"
            case EntryKind.OTHER:
                return "special file"

        parts = rel.split("/")
        name = parts[-1]
        match_path = rel + "/" if is_dir else rel

        if self.config.exclude_hidden and any(p.startswith(".") for p in parts):
            return "hidden"
        if is_dir and name in self.config.exclude_dir_names:
            return "default"
        if not is_dir and name in self.config.exclude_file_names:
            return "default"
        if self._builtin is not None and self._builtin.match_file(match_path):
            return "default"
        if ctx.is_ignored(rel, is_dir=is_dir):
            return "ignore-file"
        if self._excludes is not None and self._excludes.match_file(match_path):
            return "user-exclude"
        if not is_dir and self._includes is not None and not self._includes.match_file(rel):
            return "not-included"
        return None

    def is_admitted(self, rel: str, kind: EntryKind, ctx: IgnoreContext) -> bool:
        return self.exclusion_reason(rel, kind, ctx) is None

    def load_ignore_frame(self, directory: Path, rel: str) -> IgnoreFrame | None:
        """Read the ignore files of `directory` into one frame.

        At the root, ``.git/info/exclude`` is read first when enabled, so that
        the root's own ignore files can override it.

        Args:
            directory (Path): the directory on disk
            rel (str): its POSIX path relative to the root ("" for the root)

        Returns:
            IgnoreFrame | None: the frame, or None when the directory declares no rules
        """
        candidates = []
        if not rel and self.config.use_git_info_exclude:
            candidates.append(directory / ".git" / "info" / "exclude")
        candidates.extend(directory / name for name in self.config.ignore_filenames)

        lines: list[str] = []
        sources: list[str] = []
        for path in candidates:
            if not path.is_file():
                continue
            try:
                content = path.read_text(encoding="utf-8", errors="replace")
            except OSError as e:
                logger.warning("exclusion.ignore_file_unreadable", path=str(path), error=str(e))
                continue
            lines.extend(content.splitlines())
            sources.append(path.name)

        if not lines:
            return None
        try:
            return IgnoreFrame.from_lines(rel, lines, sources)
        except ValueError as e:
            # A broken rule in a repository's ignore file is not the user's configuration.
            logger.warning("exclusion.ignore_file_invalid", directory=str(directory), error=str(e))
            return None
