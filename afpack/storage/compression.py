"""Transparent APFS file compression driven through afsctool.

The compression codecs live in the operating system; this module only picks
which files to hand over and how. Files are compressed in place and stay
readable by every application.

Algorithms:
    lzfse:  Default, good ratio at low CPU cost
    lzvn:   Faster, lower ratio
    zlib:   Compatible with older macOS releases

Per-file failures are reported to a progress sink and never raised; a
compression pass always runs to completion from the caller's point of view.
"""

from __future__ import annotations

import os
import stat
import subprocess
from enum import Enum
from itertools import islice
from pathlib import Path
from typing import Iterable, Iterator, Optional, Union

from afpack.config import settings
from afpack.logging import LoggerFactory


log = LoggerFactory.for_compression()

NO_COMPRESSION = "none"


class CompressionKind(Enum):
    """Compression algorithm applied to file contents."""

    LZFSE = "lzfse"
    LZVN = "lzvn"
    ZLIB = "zlib"

    @property
    def afsctool_name(self) -> str:
        return self.value.upper()


DEFAULT_KIND = CompressionKind.LZFSE


def resolve_kind(selector: Optional[str]) -> Optional[CompressionKind]:
    """Map a CLI selector to a CompressionKind.

    Returns None for "none". Unknown names fall back to DEFAULT_KIND with a
    warning instead of failing.
    """
    name = (selector or NO_COMPRESSION).strip().lower()
    if name == NO_COMPRESSION:
        return None
    try:
        return CompressionKind(name)
    except ValueError:
        log.warning(
            f"Unknown compression type '{selector}', using {DEFAULT_KIND.value}"
        )
        return DEFAULT_KIND


class _NoTask:
    def increment(self, amount: int) -> None:
        pass

    def error(self, message: str) -> None:
        pass


class NoProgress:
    """Progress sink that drops progress and logs per-file errors."""

    def file_task(self, path: Path, size: int) -> _NoTask:
        return _NoTask()

    def error(self, path: Path, message: str) -> None:
        log.warning(f"Error at {path}: {message}")


def iter_eligible_files(
    root: Path, skip_compressed: bool = True
) -> Iterator[tuple[Path, int]]:
    """Yield (path, size) for every regular, non-empty file under ``root``.

    A file root is itself a candidate. Symlinks are never followed.
    """
    if root.is_symlink():
        return
    if root.is_file():
        candidates: Iterable[Path] = [root]
    elif root.is_dir():
        candidates = (
            Path(dirpath) / name
            for dirpath, _dirnames, filenames in os.walk(root)
            for name in filenames
        )
    else:
        return

    for path in candidates:
        try:
            st = path.lstat()
        except OSError as error:
            log.debug(f"Skipping {path}: {error}")
            continue
        if not stat.S_ISREG(st.st_mode) or st.st_size == 0:
            continue
        # st_flags only exists on BSD-derived systems
        if skip_compressed and getattr(st, "st_flags", 0) & stat.UF_COMPRESSED:
            continue
        yield path, st.st_size


def _batched(items, size: int):
    iterator = iter(items)
    while True:
        batch = list(islice(iterator, size))
        if not batch:
            return
        yield batch


class FileCompressor:
    """Compress files in place by invoking afsctool in batches."""

    def __init__(
        self,
        executable: Optional[str] = None,
        batch_size: int = settings.COMPRESSION_BATCH_SIZE,
    ):
        self.executable = executable or settings.AFSCTOOL_BIN
        self.batch_size = batch_size

    def build_command(
        self,
        files: Iterable[Path],
        kind: CompressionKind,
        minimum_compression_ratio: float,
        max_jobs: int,
    ) -> list[str]:
        command = [
            self.executable,
            "-c",
            "-T",
            kind.afsctool_name,
            # afsctool only accepts the job count attached to the flag
            f"-j{max(1, max_jobs)}",
        ]
        # afsctool takes the minimum savings as a percentage
        savings = round((1.0 - minimum_compression_ratio) * 100)
        if savings > 0:
            command += ["-s", str(savings)]
        command += [str(path) for path in files]
        return command

    def recursive_compress(
        self,
        paths: Iterable,
        kind: CompressionKind,
        minimum_compression_ratio: float,
        max_jobs: int,
        progress,
        skip_compressed: bool,
    ) -> None:
        """Compress every eligible file under each root in ``paths``.

        Args:
            paths: Files or directories to compress
            kind: Compression algorithm
            minimum_compression_ratio: Keep a file compressed only if its
                compressed size is at most this fraction of the original
            max_jobs: Parallel jobs hint passed to afsctool
            progress: Sink with file_task(path, size) and error(path, message)
            skip_compressed: Leave files that are already compressed alone
        """
        for root in paths:
            root = Path(root)
            if not root.exists() and not root.is_symlink():
                progress.error(root, "No such file or directory")
                continue

            files = list(iter_eligible_files(root, skip_compressed=skip_compressed))
            if not files:
                log.debug(f"No files to compress under {root}")
                continue

            log.debug(f"Compressing {len(files)} files under {root} with {kind.value}")
            for batch in _batched(files, self.batch_size):
                launched = self._compress_batch(
                    root, batch, kind, minimum_compression_ratio, max_jobs, progress
                )
                if not launched:
                    return

    def _compress_batch(
        self, root, batch, kind, minimum_compression_ratio, max_jobs, progress
    ) -> bool:
        tasks = {path: progress.file_task(path, size) for path, size in batch}
        command = self.build_command(
            (path for path, _size in batch), kind, minimum_compression_ratio, max_jobs
        )
        try:
            result = subprocess.run(command, capture_output=True, text=True)
        except OSError as error:
            progress.error(root, f"cannot launch {self.executable}: {error}")
            return False

        stderr = result.stderr or ""
        for line in stderr.splitlines():
            line = line.strip()
            if not line:
                continue
            culprit = next((path for path, _size in batch if str(path) in line), root)
            progress.error(culprit, line)

        if result.returncode != 0 and not stderr.strip():
            progress.error(root, f"{self.executable} exited with code {result.returncode}")

        for path, size in batch:
            tasks[path].increment(size)
        return True


def compress_path(
    path,
    kind: CompressionKind = DEFAULT_KIND,
    compressor: Optional[FileCompressor] = None,
    progress=None,
) -> None:
    """Run one blocking compression pass over ``path``."""
    compressor = compressor or FileCompressor()
    progress = progress or NoProgress()
    log.debug(f"Compressing {path} with {kind.value}")
    compressor.recursive_compress(
        [Path(path)],
        kind,
        settings.COMPRESSION_MIN_RATIO,
        settings.COMPRESSION_MAX_JOBS,
        progress,
        True,
    )


def apply_compression(
    selector: Union[str, CompressionKind, None],
    path,
    compressor: Optional[FileCompressor] = None,
    progress=None,
) -> Optional[CompressionKind]:
    """Compress ``path`` with the algorithm named by ``selector``.

    ``selector`` may already be a resolved CompressionKind. Returns the
    algorithm used, or None when ``selector`` is "none".
    """
    if isinstance(selector, CompressionKind):
        kind = selector
    else:
        kind = resolve_kind(selector)
    if kind is None:
        log.debug(f"Compression disabled for {path}")
        return None
    compress_path(path, kind, compressor=compressor, progress=progress)
    return kind
