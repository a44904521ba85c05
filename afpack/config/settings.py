"""Runtime defaults for afpack.

afpack keeps no configuration file. Executable names and the log directory
can be overridden through environment variables; everything else is a
constant. Use these constants instead of hardcoding values elsewhere.
"""

from __future__ import annotations

import os
from pathlib import Path


DISKUTIL_BIN = os.environ.get("AFPACK_DISKUTIL", "diskutil")
AFSCTOOL_BIN = os.environ.get("AFPACK_AFSCTOOL", "afsctool")
SW_VERS_BIN = "sw_vers"

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "AFPACK_LOG_DIR",
        Path.home() / ".local" / "state" / "afpack" / "logs",
    )
)

TRASH_DIR = Path.home() / ".Trash"

# CLI defaults
DEFAULT_MAXSIZE = "10G"
DEFAULT_COMPRESS = "none"
COMPRESSION_CHOICES = ("none", "lzfse", "lzvn", "zlib")

IMAGE_EXTENSION = ".asif"

# Lets diskutil release the freshly created image before it is resized
RESIZE_SETTLE_SECONDS = 3

# Compression engine tuning
COMPRESSION_MIN_RATIO = 1.0
COMPRESSION_MAX_JOBS = 2
COMPRESSION_BATCH_SIZE = 256

# ASIF first shipped with macOS 26 Tahoe
MINIMUM_MACOS_MAJOR = 26
