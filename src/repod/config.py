from __future__ import annotations

from enum import StrEnum, auto
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator


class EntryKind(StrEnum):
    """Kind of a filesystem entry met during traversal.

    Symlinks are never followed, so a link to a directory is a SYMLINK,
    not a DIRECTORY.
    """

    FILE = auto()
    DIRECTORY = auto()
    SYMLINK = auto()
    OTHER = auto()


class BlockStatus(StrEnum):
    """Outcome of extracting one file."""

    TEXT = auto()
    BINARY = auto()
    ERROR = auto()


# Directory names that never contain source worth exporting.
DEFAULT_EXCLUDED_DIRS = frozenset(
    {
        ".git",
        ".hg",
        ".svn",
        ".idea",
        ".vs",
        ".vscode",
        ".gradle",
        ".venv",
        ".pytest_cache",
        ".mypy_cache",
        ".ruff_cache",
        "__pycache__",
        "node_modules",
        "target",
        "build",
        "dist",
        "bin",
        "out",
        "venv",
        "env",
        "coverage",
        "tmp",
    },
)

# Lock files and OS droppings, matched on the exact file name.
DEFAULT_EXCLUDED_FILES = frozenset(
    {
        "package-lock.json",
        "yarn.lock",
        "pnpm-lock.yaml",
        "Cargo.lock",
        "poetry.lock",
        "uv.lock",
        ".DS_Store",
    },
)

DEFAULT_EXCLUDED_GLOBS: tuple[str, ...] = (
    "*.tiktoken",
    "*.pack",
    "*.idx",
    "*.pyc",
    "*.pyo",
)

DEFAULT_IGNORE_FILENAMES: tuple[str, ...] = (".gitignore", ".ignore")

LANGUAGE_PRESETS: dict[str, tuple[str, ...]] = {
    "rust": ("*.rs", "*.toml"),
    "python": ("*.py", "*.pyi", "*.pyx", "*.pxd", "requirements.txt", "setup.py", "pyproject.toml"),
    "javascript": ("*.js", "*.jsx", "*.ts", "*.tsx", "*.json"),
    "go": ("*.go", "go.mod", "go.sum"),
    "java": ("*.java", "*.gradle", "pom.xml"),
}

PRESET_ALIASES: dict[str, str] = {
    "rs": "rust",
    "rust": "rust",
    "py": "python",
    "python": "python",
    "js": "javascript",
    "javascript": "javascript",
    "ts": "javascript",
    "typescript": "javascript",
    "go": "go",
    "golang": "go",
    "java": "java",
}

SNIFF_BYTES = 8192
MMAP_THRESHOLD = 1024 * 1024
DEFAULT_CHUNK_SIZE = 100
# Above this share of control / non-ASCII bytes an undecodable prefix is binary.
NON_TEXT_RATIO = 0.3


def _clean_patterns(values: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
    out: list[str] = []
    for v in values or ():
        v2 = (v or "").strip()
        if not v2:
            continue
        out.append(v2.replace("\\", "/"))
    return tuple(out)


class FilterConfig(BaseModel):
    """Resolved, read-only filter configuration for one traversal.

    Attributes:
        exclude_dir_names: Built-in directory names pruned wherever they appear.
        exclude_file_names: Built-in file names dropped wherever they appear.
        exclude_globs: Built-in glob patterns dropped wherever they match.
        user_excludes: User exclude patterns (gitignore syntax, no negation).
        include_only: When non-empty, files must match one of these patterns.
        include_dirs: Directory prefixes, each widened to ``<dir>/**`` include patterns.
        exclude_hidden: Exclude every entry with a dot-prefixed path segment.
        ignore_filenames: Per-directory ignore files to honor.
        use_git_info_exclude: Also read ``.git/info/exclude`` at the root.
    """

    model_config = ConfigDict(frozen=True)

    exclude_dir_names: frozenset[str] = Field(default=DEFAULT_EXCLUDED_DIRS)
    exclude_file_names: frozenset[str] = Field(default=DEFAULT_EXCLUDED_FILES)
    exclude_globs: tuple[str, ...] = Field(default=DEFAULT_EXCLUDED_GLOBS)
    user_excludes: tuple[str, ...] = Field(default=())
    include_only: tuple[str, ...] = Field(default=())
    include_dirs: tuple[str, ...] = Field(default=())
    exclude_hidden: bool = Field(default=True)
    ignore_filenames: tuple[str, ...] = Field(default=DEFAULT_IGNORE_FILENAMES)
    use_git_info_exclude: bool = Field(default=True)

    @field_validator("exclude_globs", "user_excludes", "include_only", mode="before")
    @classmethod
    def _normalize_patterns(cls, value: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
        return _clean_patterns(value)

    @field_validator("include_dirs", mode="before")
    @classmethod
    def _normalize_dirs(cls, value: list[str] | tuple[str, ...] | None) -> tuple[str, ...]:
        return tuple(d.strip("/") for d in _clean_patterns(value) if d.strip("/"))

    @computed_field
    @property
    def include_patterns(self) -> tuple[str, ...]:
        """All include-only patterns, directory prefixes expanded."""
        return self.include_only + tuple(f"{d}/**" for d in self.include_dirs)


class FileRecord(BaseModel):
    """One admitted file awaiting extraction.

    Attributes:
        path: Absolute path to the file on disk.
        rel: POSIX path relative to the traversal root, used as the label.
        size: File size in bytes at listing time.
    """

    model_config = ConfigDict(frozen=True)

    path: Path = Field(..., description="Absolute file path")
    rel: str = Field(..., description="File path relative to the root")
    size: int = Field(..., ge=0, description="File size in bytes")


class TreeNode(BaseModel):
    """One entry of the admitted tree.

    ``admitted`` is False only for a directory that could not be listed and
    is kept as an empty, skipped branch.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    rel: str
    kind: EntryKind
    children: tuple[TreeNode, ...] = ()
    admitted: bool = True


class ContentBlock(BaseModel):
    """Result of extracting one file.

    Attributes:
        rel: Relative path used for the section label.
        status: Text, binary (skipped) or error.
        text: Decoded text, present only for TEXT blocks.
        size: Size in bytes of the file on disk.
        encoding: Codec used to decode a TEXT block.
        lossy: Undecodable sequences were replaced during decoding.
        error: Short error message, present only for ERROR blocks.
    """

    model_config = ConfigDict(frozen=True)

    rel: str
    status: BlockStatus
    text: str | None = None
    size: int = Field(default=0, ge=0)
    encoding: str | None = None
    lossy: bool = False
    error: str | None = None


class ExtractionReport(BaseModel):
    """The assembled artifact and its summary counters."""

    model_config = ConfigDict(frozen=True)

    tree: str
    blocks: tuple[ContentBlock, ...]
    text: str
    files_included: int = 0
    files_binary: int = 0
    files_failed: int = 0
    total_bytes: int = 0

    @computed_field
    @property
    def files_total(self) -> int:
        """Number of files that reached extraction."""
        return self.files_included + self.files_binary + self.files_failed
