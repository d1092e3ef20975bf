from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ReplicationError(RuntimeError):
    """Unrecoverable I/O failure that aborts the whole run."""


class PolicyKind(Enum):
    IMAGE = "image"
    PDF = "pdf"
    PLACEHOLDER_MEDIA = "placeholder_media"
    GENERIC = "generic"


@dataclass(slots=True)
class MinifyStats:
    total_files: int = 0
    skipped: int = 0
    converted: int = 0
    directories_created: int = 0
    copied: int = 0
    symlinks: int = 0
    failed: int = 0
    excluded: int = 0


@dataclass(slots=True)
class CleanupStats:
    scanned: int = 0
    deleted: int = 0


@dataclass(slots=True, frozen=True)
class CommandResult:
    args: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0
