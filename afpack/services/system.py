"""Platform checks and filesystem housekeeping."""

from __future__ import annotations

import os
import shutil
import subprocess
import time
from pathlib import Path
from typing import Optional

from afpack.config import settings
from afpack.logging import LoggerFactory


log = LoggerFactory.for_system()


def get_macos_version() -> Optional[str]:
    """Return the macOS product version (e.g. "26.0.1"), or None off macOS."""
    try:
        result = subprocess.run(
            [settings.SW_VERS_BIN, "-productVersion"],
            capture_output=True,
            text=True,
        )
    except OSError as error:
        log.debug(f"sw_vers unavailable: {error}")
        return None
    if result.returncode != 0:
        log.debug(f"sw_vers failed with code {result.returncode}")
        return None
    version = result.stdout.strip()
    return version or None


def parse_major_version(version: str) -> Optional[int]:
    head = version.strip().split(".", 1)[0]
    return int(head) if head.isdigit() else None


def is_supported_macos(minimum_major: int = settings.MINIMUM_MACOS_MAJOR) -> bool:
    """Return True when running on a macOS release that can create ASIF images."""
    version = get_macos_version()
    if version is None:
        return False
    major = parse_major_version(version)
    log.debug(f"Detected macOS {version}")
    return major is not None and major >= minimum_major


def _device_of(path: Path) -> Optional[int]:
    """Return st_dev of ``path`` or of its nearest existing ancestor."""
    for candidate in (path, *path.parents):
        try:
            return candidate.lstat().st_dev
        except OSError:
            continue
    return None


def _mount_root(path: Path) -> Path:
    for candidate in (path, *path.parents):
        if os.path.ismount(candidate):
            return candidate
    return Path(path.anchor)


def trash_dir_for(path) -> Path:
    """Return the Trash folder Finder would use for ``path``.

    Items on the home volume go to ``~/.Trash``. Items on any other volume go
    to ``<volume>/.Trashes/<uid>`` so the move stays a rename instead of a
    full copy across volumes.
    """
    path = Path(path).absolute()
    home_trash = settings.TRASH_DIR
    if _device_of(path) == _device_of(home_trash):
        return home_trash
    return _mount_root(path) / ".Trashes" / str(os.getuid())


def move_to_trash(path, trash_dir: Optional[Path] = None) -> Optional[Path]:
    """Move ``path`` into the user's Trash, keeping it recoverable.

    Without ``trash_dir`` the Trash of the volume holding ``path`` is used
    (see trash_dir_for). Name clashes get a Finder-style time suffix. Returns
    the new location, or None when ``path`` does not exist.

    Raises:
        OSError: If the move fails
    """
    path = Path(path)
    if not path.exists() and not path.is_symlink():
        log.debug(f"Nothing to remove at {path}")
        return None

    if trash_dir is None:
        trash_dir = trash_dir_for(path)
        if trash_dir != settings.TRASH_DIR:
            try:
                trash_dir.mkdir(parents=True, exist_ok=True)
            except OSError as error:
                log.debug(f"Cannot use {trash_dir} ({error}), using {settings.TRASH_DIR}")
                trash_dir = settings.TRASH_DIR
    trash_dir = Path(trash_dir)
    trash_dir.mkdir(parents=True, exist_ok=True)

    target = trash_dir / path.name
    if target.exists():
        stamp = time.strftime("%H.%M.%S")
        target = trash_dir / f"{path.name} {stamp}"
        counter = 1
        while target.exists():
            counter += 1
            target = trash_dir / f"{path.name} {stamp} {counter}"

    shutil.move(str(path), str(target))
    log.debug(f"Moved {path} to {target}")
    return target
