from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepodError(Exception):
    """Base exception for errors in the repod package."""

    def __str__(self) -> str:
        return getattr(self, "message", self.__class__.__name__)


@dataclass(frozen=True)
class InvalidRootError(RepodError):
    """Raised when the directory to flatten does not exist or is not a directory."""

    root: Path
    message: str = "The root path does not exist or is not a directory."

    def __str__(self) -> str:
        return f"{self.message} ({self.root})"


@dataclass(frozen=True)
class InvalidPatternError(RepodError):
    """Raised when a user-supplied glob pattern cannot be compiled."""

    pattern: str
    reason: str

    def __str__(self) -> str:
        return f"Invalid pattern {self.pattern!r}: {self.reason}"


@dataclass(frozen=True)
class ConfigFileError(RepodError):
    """Raised when a configuration file or option value is unusable."""

    path: Path | None
    reason: str

    def __str__(self) -> str:
        where = f" ({self.path})" if self.path else ""
        return f"Configuration error{where}: {self.reason}"


@dataclass(frozen=True)
class CloneError(RepodError):
    """Raised when a remote repository cannot be cloned."""

    url: str
    reason: str

    def __str__(self) -> str:
        return f"Failed to clone {self.url}: {self.reason}"


@dataclass(frozen=True)
class SinkError(RepodError):
    """Raised when the assembled report cannot be delivered."""

    target: str
    reason: str

    def __str__(self) -> str:
        return f"Failed to deliver report to {self.target}: {self.reason}"
