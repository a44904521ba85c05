"""diskutil image operations with dry-run and verbose echoing.

Each function maps one diskutil verb to an argument list, then either echoes
the command (dry run) or runs it synchronously and returns its stdout
verbatim. Failures are normalized into the exceptions module:

    - diskutil cannot be launched   -> DiskutilNotFoundError
    - diskutil exits non-zero       -> CommandFailedError (carries stderr)
    - bad size string               -> InvalidSizeError (checked before dry run)
    - missing source/image path     -> InvalidPathError (checked after dry run)

Operations:
    - attach(): diskutil image attach [--mountPoint DIR] IMAGE
    - create_blank(): diskutil image create blank --fs FS --format FMT --size SIZE IMAGE
    - create_from(): diskutil image create from --format FMT SOURCE IMAGE
    - resize(): diskutil image resize --size SIZE IMAGE
    - detach(): diskutil unmount MOUNTPOINT

Example:
    >>> from afpack.domain.models import AttachOptions
    >>> attach("deps.asif", AttachOptions().with_mount_point("deps").with_dry_run(True))
    '[DRY RUN] Command: diskutil image attach --mountPoint deps deps.asif'
"""

import shlex
import subprocess
from pathlib import Path
from typing import List, Optional

from afpack.config import settings
from afpack.domain.models import (
    AttachOptions,
    CreateBlankOptions,
    CreateFromOptions,
    ResizeOptions,
)
from afpack.logging import LoggerFactory

from .exceptions import CommandFailedError, DiskutilNotFoundError, InvalidPathError
from .validation import validate_size


log = LoggerFactory.for_diskimage()

DRY_RUN_PREFIX = "[DRY RUN]"


def _diskutil(*verbs: str) -> List[str]:
    return [settings.DISKUTIL_BIN, *verbs]


def format_command(command) -> str:
    """Render an argument list as a copy-pasteable shell command."""
    return shlex.join(str(part) for part in command)


def _dry_run_result(command) -> str:
    cmd_str = format_command(command)
    log.info(f"{DRY_RUN_PREFIX} Would execute: {cmd_str}")
    return f"{DRY_RUN_PREFIX} Command: {cmd_str}"


def run_diskutil(command, verbose: bool = False) -> str:
    """Run a diskutil command and return its stdout.

    Args:
        command: Full argument list, executable first
        verbose: Echo the command at INFO level before running it

    Raises:
        DiskutilNotFoundError: If the executable cannot be launched
        CommandFailedError: If the command exits non-zero
    """
    cmd_str = format_command(command)
    if verbose:
        log.info(f"[VERBOSE] Executing: {cmd_str}")
    else:
        log.debug(f"Running command: {cmd_str}")

    try:
        result = subprocess.run(command, capture_output=True, text=True)
    except OSError as error:
        log.debug(f"Failed to launch {command[0]}: {error}")
        raise DiskutilNotFoundError(command[0]) from error

    if result.returncode != 0:
        stderr = result.stderr or ""
        log.debug(
            f"Command failed with code {result.returncode}: {stderr.strip() or 'no error output'}"
        )
        raise CommandFailedError(stderr, command)

    if result.stdout:
        log.debug(f"stdout: {result.stdout.strip()}")
    return result.stdout


def attach(image_path, options: Optional[AttachOptions] = None) -> str:
    """Attach a disk image, optionally at a specific mount point.

    A mount point that does not exist yet is created first, except during a
    dry run where nothing on disk is touched.
    """
    options = options or AttachOptions()
    command = _diskutil("image", "attach")

    if options.readonly:
        command.append("--readOnly")
    if options.nobrowse:
        command.append("--nobrowse")

    if options.mount_point:
        mount_point = Path(options.mount_point)
        if not mount_point.exists() and not options.dry_run:
            log.debug(f"Creating mount point {mount_point}")
            try:
                mount_point.mkdir(parents=True, exist_ok=True)
            except OSError as error:
                raise CommandFailedError(str(error)) from error
        command += ["--mountPoint", options.mount_point]

    if options.verbose:
        command.append("--verbose")

    command.append(str(image_path))

    if options.dry_run:
        return _dry_run_result(command)
    return run_diskutil(command, verbose=options.verbose)


def create_blank(image_path, options: Optional[CreateBlankOptions] = None) -> str:
    """Create an empty image of ``options.size``."""
    options = options or CreateBlankOptions()
    validate_size(options.size)

    command = _diskutil("image", "create", "blank")
    command += ["--fs", options.fs.cli_name]
    command += ["--format", str(options.format)]
    command += ["--size", options.size]
    command.append(str(image_path))

    if options.dry_run:
        return _dry_run_result(command)
    return run_diskutil(command, verbose=options.verbose)


def create_from(
    source_path, dest_path, options: Optional[CreateFromOptions] = None
) -> str:
    """Create an image holding the contents of ``source_path``.

    The source is only checked for existence on a real run.
    """
    options = options or CreateFromOptions()
    command = _diskutil("image", "create", "from")
    command += ["--format", str(options.format)]
    command += [str(source_path), str(dest_path)]

    if options.dry_run:
        return _dry_run_result(command)

    if not Path(source_path).exists():
        raise InvalidPathError(source_path)

    return run_diskutil(command, verbose=options.verbose)


def resize(image_path, options: ResizeOptions) -> str:
    """Resize an existing image to ``options.size``."""
    validate_size(options.size)

    command = _diskutil("image", "resize")
    command += ["--size", options.size]
    command.append(str(image_path))

    if options.dry_run:
        return _dry_run_result(command)

    if not Path(image_path).exists():
        raise InvalidPathError(image_path)

    return run_diskutil(command, verbose=options.verbose)


def detach(mount_point, *, dry_run: bool = False, verbose: bool = False) -> str:
    """Unmount the volume mounted at ``mount_point``."""
    command = _diskutil("unmount", str(mount_point))

    if dry_run:
        return _dry_run_result(command)
    return run_diskutil(command, verbose=verbose)
