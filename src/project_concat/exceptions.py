from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class ProjectConcatError(Exception):
    """Base exception for errors in the project_concat package."""

    def __str__(self) -> str:
        return getattr(self, "message", "") or self.__class__.__name__


@dataclass(frozen=True)
class InvalidProjectPathError(ProjectConcatError):
    """Raised when the project path is missing or is not a directory."""

    folder: Path
    message: str = "Project path does not exist or is not a directory"


@dataclass(frozen=True)
class InvalidGlobPatternError(ProjectConcatError):
    """Raised when an exclude pattern cannot be compiled."""

    pattern: str
    reason: str
    message: str = "Invalid exclude pattern"


@dataclass(frozen=True)
class HashComputationError(ProjectConcatError):
    """Raised when a candidate file cannot be hashed."""

    file: Path
    reason: str
    message: str = "Could not compute the content hash of a candidate file"


@dataclass(frozen=True)
class OutputLockedError(ProjectConcatError):
    """Raised when another run holds the lock on the output directory."""

    folder: Path
    message: str = "Another run is already writing to the output directory"
