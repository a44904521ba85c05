"""Domain models for disk image operations.

This package contains the option records consumed by the diskutil adapter
and the run-wide flags threaded through the pack lifecycle.
"""

from __future__ import annotations

from .models import (
    AttachOptions,
    CreateBlankOptions,
    CreateFromOptions,
    FileSystem,
    Format,
    ResizeOptions,
    RunOptions,
)


__all__ = [
    "AttachOptions",
    "CreateBlankOptions",
    "CreateFromOptions",
    "FileSystem",
    "Format",
    "ResizeOptions",
    "RunOptions",
]
