"""Option records for diskutil image operations.

Every record is an immutable value object. The ``with_*`` methods return an
updated copy so options can be built fluently::

    options = AttachOptions().with_mount_point("node_modules").with_dry_run(True)

Nothing is validated at construction time. Size strings and paths are checked
by the operation that consumes the options.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional


# ==============================================================================
# Image Formats
# ==============================================================================


class Format(Enum):
    """Disk image container format understood by ``diskutil image``."""

    RAW = "RAW"
    ASIF = "ASIF"  # Apple Sparse Image Format
    UDSB = "UDSB"  # Sparse bundle

    def __str__(self) -> str:
        return self.value


class FileSystem(Enum):
    """Filesystem created inside a blank image."""

    APFS = "APFS"
    EXFAT = "ExFAT"
    MSDOS = "MS-DOS"
    NONE = "None"

    def __str__(self) -> str:
        return self.value

    @property
    def cli_name(self) -> str:
        """Value passed to ``diskutil image create blank --fs``."""
        return self.value.lower()


DEFAULT_FORMAT = Format.ASIF
DEFAULT_FILESYSTEM = FileSystem.APFS


# ==============================================================================
# Operation Options
# ==============================================================================


@dataclass(frozen=True)
class AttachOptions:
    """Options for ``diskutil image attach``."""

    mount_point: Optional[str] = None
    readonly: bool = False
    nobrowse: bool = False
    verbose: bool = False
    dry_run: bool = False

    def with_mount_point(self, mount_point) -> AttachOptions:
        return replace(self, mount_point=str(mount_point))

    def with_readonly(self, readonly: bool = True) -> AttachOptions:
        return replace(self, readonly=readonly)

    def with_nobrowse(self, nobrowse: bool = True) -> AttachOptions:
        return replace(self, nobrowse=nobrowse)

    def with_verbose(self, verbose: bool) -> AttachOptions:
        return replace(self, verbose=verbose)

    def with_dry_run(self, dry_run: bool) -> AttachOptions:
        return replace(self, dry_run=dry_run)


@dataclass(frozen=True)
class CreateBlankOptions:
    """Options for ``diskutil image create blank``.

    Note the default filesystem here is ``FileSystem.NONE``; callers that want
    a mountable volume pass ``FileSystem.APFS`` explicitly.
    """

    size: str = "1GB"
    fs: FileSystem = FileSystem.NONE
    format: Format = DEFAULT_FORMAT
    dry_run: bool = False
    verbose: bool = False

    def with_dry_run(self, dry_run: bool) -> CreateBlankOptions:
        return replace(self, dry_run=dry_run)

    def with_verbose(self, verbose: bool) -> CreateBlankOptions:
        return replace(self, verbose=verbose)


@dataclass(frozen=True)
class CreateFromOptions:
    """Options for ``diskutil image create from``."""

    format: Format = DEFAULT_FORMAT
    dry_run: bool = False
    verbose: bool = False

    def with_dry_run(self, dry_run: bool) -> CreateFromOptions:
        return replace(self, dry_run=dry_run)

    def with_verbose(self, verbose: bool) -> CreateFromOptions:
        return replace(self, verbose=verbose)


@dataclass(frozen=True)
class ResizeOptions:
    """Options for ``diskutil image resize``."""

    size: str
    dry_run: bool = False
    verbose: bool = False

    def with_dry_run(self, dry_run: bool) -> ResizeOptions:
        return replace(self, dry_run=dry_run)

    def with_verbose(self, verbose: bool) -> ResizeOptions:
        return replace(self, verbose=verbose)


# ==============================================================================
# Run-wide Flags
# ==============================================================================


@dataclass(frozen=True)
class RunOptions:
    """Flags set once by the CLI and passed to every lifecycle step."""

    dry_run: bool = False
    verbose: bool = False

    def attach_options(self, mount_point: Optional[str] = None) -> AttachOptions:
        options = AttachOptions(dry_run=self.dry_run, verbose=self.verbose)
        if mount_point is not None:
            options = options.with_mount_point(mount_point)
        return options

    def create_blank_options(
        self,
        size: str,
        fs: FileSystem = DEFAULT_FILESYSTEM,
        format: Format = DEFAULT_FORMAT,
    ) -> CreateBlankOptions:
        return CreateBlankOptions(
            size=size,
            fs=fs,
            format=format,
            dry_run=self.dry_run,
            verbose=self.verbose,
        )

    def create_from_options(self, format: Format = DEFAULT_FORMAT) -> CreateFromOptions:
        return CreateFromOptions(
            format=format, dry_run=self.dry_run, verbose=self.verbose
        )

    def resize_options(self, size: str) -> ResizeOptions:
        return ResizeOptions(size=size, dry_run=self.dry_run, verbose=self.verbose)
