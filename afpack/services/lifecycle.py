"""Pack an artifact directory into an ASIF image mounted in its place.

Lifecycle for ``afdir`` and its image ``<afdir>.asif``:

    1. Image missing, directory missing  -> create a blank APFS image of maxsize
       Image missing, directory present  -> create the image from the directory,
                                            compress the directory (optional),
                                            wait for diskutil to settle,
                                            resize the image to maxsize
       Then move the original directory to the Trash.
    2. Attach the image with the directory's path as mount point.
    3. Compress the image file itself with the default algorithm.

Each step lets the first DiskImageError propagate. Nothing is rolled back: if
attaching fails after step 1, the original directory is already in the Trash
and the data only lives in the image.
"""

from __future__ import annotations

import os
import time
from pathlib import Path
from typing import Optional

from afpack.config import settings
from afpack.domain.models import FileSystem, Format, RunOptions
from afpack.logging import LoggerFactory, operation_context
from afpack.storage import compression, diskimage
from afpack.storage.compression import FileCompressor

from . import system


log = LoggerFactory.for_lifecycle()


def _report(run: RunOptions, message: str) -> None:
    """Log step progress, shown on the console only with --verbose."""
    log.log("INFO" if run.verbose else "DEBUG", message)


def image_path_for(afdir) -> str:
    """Return the image path that backs ``afdir`` (e.g. "deps" -> "deps.asif")."""
    name = str(afdir).rstrip(os.sep) or str(afdir)
    return f"{name}{settings.IMAGE_EXTENSION}"


def remove_source_dir(afdir, run: RunOptions) -> Optional[Path]:
    """Move the now-archived directory to the Trash (report only on dry run)."""
    if run.dry_run:
        log.info(f"[DRY RUN] removing {afdir}")
        return None
    trashed = system.move_to_trash(afdir)
    if trashed is not None:
        _report(run, f"Moved {afdir} to {trashed}")
    return trashed


def prepare_image(
    afdir,
    image_path,
    maxsize: str,
    compress: str,
    run: RunOptions,
    compressor: Optional[FileCompressor] = None,
) -> bool:
    """Create the backing image if it does not exist yet.

    Returns True when an image was created (and the source directory removed).

    Raises:
        DiskImageError: If create, resize or their preconditions fail
        OSError: If the source directory cannot be moved to the Trash
    """
    if Path(image_path).exists():
        log.debug(f"Image {image_path} already exists, reusing it")
        return False

    with operation_context("create", afdir=str(afdir), image=str(image_path)):
        if not Path(afdir).exists():
            _report(run, f"Creating blank {maxsize} image {image_path}")
            diskimage.create_blank(
                image_path,
                run.create_blank_options(maxsize, fs=FileSystem.APFS, format=Format.ASIF),
            )
        else:
            _report(run, f"Creating image {image_path} from {afdir}")
            diskimage.create_from(afdir, image_path, run.create_from_options(Format.ASIF))

            kind = compression.resolve_kind(compress)
            if kind is not None:
                if run.dry_run:
                    log.info(f"[DRY RUN] compressing {afdir} with {kind.value}")
                else:
                    _report(run, f"Compressing {afdir} with {kind.value}")
                    compression.apply_compression(kind, afdir, compressor=compressor)

            time.sleep(settings.RESIZE_SETTLE_SECONDS)

            _report(run, f"Resizing {image_path} to {maxsize}")
            diskimage.resize(image_path, run.resize_options(maxsize))

    remove_source_dir(afdir, run)
    return True


def attach_image(afdir, image_path, run: RunOptions) -> str:
    """Attach ``image_path`` with ``afdir`` as its mount point."""
    output = diskimage.attach(image_path, run.attach_options(mount_point=str(afdir)))
    _report(run, f"Attached {image_path} -> {afdir}")
    return output


def compress_image(
    image_path, run: RunOptions, compressor: Optional[FileCompressor] = None
) -> None:
    """Final compression pass over the image file, independent of --compress."""
    kind = compression.DEFAULT_KIND
    if run.dry_run:
        log.info(f"[DRY RUN] compressing {image_path} with {kind.value}")
        return
    compression.compress_path(image_path, kind, compressor=compressor)


def pack(
    afdir,
    maxsize: str = settings.DEFAULT_MAXSIZE,
    compress: str = settings.DEFAULT_COMPRESS,
    run: Optional[RunOptions] = None,
    compressor: Optional[FileCompressor] = None,
) -> str:
    """Run the full lifecycle for ``afdir`` and return the image path."""
    run = run or RunOptions()
    image_path = image_path_for(afdir)
    log.debug(
        f"Options: afdir={afdir} compress={compress} maxsize={maxsize} "
        f"dry_run={run.dry_run}"
    )

    prepare_image(afdir, image_path, maxsize, compress, run, compressor=compressor)
    attach_image(afdir, image_path, run)
    compress_image(image_path, run, compressor=compressor)
    return image_path


def unpack(afdir, run: Optional[RunOptions] = None) -> str:
    """Detach the image mounted at ``afdir``."""
    run = run or RunOptions()
    output = diskimage.detach(afdir, dry_run=run.dry_run, verbose=run.verbose)
    _report(run, f"Detached {afdir}")
    return output
