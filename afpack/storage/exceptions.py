"""Custom exceptions for disk image operations.

The diskutil adapter converts every launch, exit-status and precondition
failure into one of these, so callers only ever handle ``DiskImageError``.

Exception Hierarchy:
    DiskImageError (base)
        ├── CommandFailedError
        ├── InvalidPathError
        ├── InvalidSizeError
        └── DiskutilNotFoundError

Usage:
    from afpack.storage.exceptions import DiskImageError

    try:
        diskimage.attach(image_path, options)
    except DiskImageError as error:
        print(f"Error attaching ASIF: {error}", file=sys.stderr)
"""

from __future__ import annotations

from typing import Optional, Sequence


class DiskImageError(Exception):
    """Base exception for all disk image operations."""


class CommandFailedError(DiskImageError):
    """diskutil ran but exited with a non-zero status."""

    def __init__(self, stderr: str, command: Optional[Sequence[str]] = None):
        self.stderr = stderr
        self.command = list(command) if command is not None else None
        super().__init__(f"Command failed: {stderr}")


class InvalidPathError(DiskImageError):
    """A path the operation requires does not exist."""

    def __init__(self, path):
        self.path = str(path)
        super().__init__(f"Invalid path: {self.path}")


class InvalidSizeError(DiskImageError):
    """A size string is not something diskutil could accept."""

    def __init__(self, size: str):
        self.size = size
        super().__init__(f"Invalid size: {size}")


class DiskutilNotFoundError(DiskImageError):
    """The diskutil executable could not be launched."""

    def __init__(self, executable: str = "diskutil"):
        self.executable = executable
        super().__init__(f"{executable} command not found")
