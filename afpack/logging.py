from __future__ import annotations

import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

from afpack.config.settings import DEFAULT_LOG_DIR


def setup_logging(
    *,
    verbose: bool = False,
    debug: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Setup console and file logging.

    Logging Tiers:
    - ERROR: Failed lifecycle steps
    - INFO: Dry-run echoes, plus step progress and command echoes with --verbose
    - DEBUG: Step progress without --verbose, every command line and its output

    Log Files:
    - operations.log: INFO+ events (7 day retention)
    - debug.log: DEBUG+ events when --debug is enabled (3 day retention)

    Args:
        verbose: Prefix console lines with their level name
        debug: Enable DEBUG level logging
        log_dir: Custom log directory (defaults to ~/.local/state/afpack/logs)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "afpack"})

    console_level = "DEBUG" if debug else "INFO"

    # SINK 1: Console (stderr) - User-facing
    logger.add(
        sys.stderr,
        level=console_level,
        backtrace=False,
        diagnose=False,
        colorize=None,
        format="<level>{level: <8}</level> | {message}" if (debug or verbose) else "{message}",
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        logger.warning(f"File logging disabled, cannot create {log_dir}: {error}")
        return logger

    # SINK 2: Operations Log - Important events only (INFO+)
    logger.add(
        log_dir / "operations.log",
        level="INFO",
        rotation="5 MB",
        retention="7 days",
        compression="zip",
        enqueue=True,
        backtrace=False,
        diagnose=False,
        format=(
            "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
            "{level: <8} | "
            "{extra[source]: <12} | "
            "{extra[job_id]: <18} | "
            "{message}"
        ),
    )

    # SINK 3: Debug Log - Detailed diagnostics (DEBUG+ when debug=True)
    if debug:
        logger.add(
            log_dir / "debug.log",
            level="DEBUG",
            rotation="10 MB",
            retention="3 days",
            compression="zip",
            enqueue=True,
            backtrace=True,
            diagnose=True,
            format=(
                "{time:YYYY-MM-DD HH:mm:ss.SSS} | "
                "{level: <8} | "
                "{extra[source]: <12} | "
                "{extra[job_id]: <18} | "
                "{extra[tags]} | "
                "{message}"
            ),
        )

    return logger


def get_logger(
    *,
    job_id: str | None = None,
    tags: Iterable[str] | None = None,
    source: str | None = None,
) -> Logger:
    """
    Get a logger with bound context.

    Args:
        job_id: Job identifier for tracking a pack run
        tags: Tags for filtering (e.g., ["diskutil"])
        source: Source component (e.g., "diskimage", "lifecycle")

    Returns:
        Logger with bound context
    """
    extras: dict[str, object] = {}
    if job_id is not None:
        extras["job_id"] = job_id
    if tags is not None:
        extras["tags"] = list(tags)
    if source is not None:
        extras["source"] = source
    return logger.bind(**extras)


@contextmanager
def operation_context(operation: str, **details):
    """
    Context manager for tracking a lifecycle step with automatic timing.

    Logs step start, completion and failure with the elapsed time. Exceptions
    are re-raised unchanged.

    Example:
        with operation_context("pack", afdir="node_modules") as log:
            log.debug("Creating image")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.debug(f"{operation.capitalize()} started", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.debug(
                f"{operation.capitalize()} completed", duration_seconds=round(duration, 2)
            )
        except Exception as e:
            duration = time.time() - start_time
            log.error(
                f"{operation.capitalize()} failed",
                error=str(e),
                error_type=type(e).__name__,
                duration_seconds=round(duration, 2),
            )
            raise


class LoggerFactory:
    """
    Factory for creating domain-specific loggers with automatic context.
    """

    @staticmethod
    def for_diskimage() -> Logger:
        """Logger for diskutil invocations."""
        return get_logger(source="diskimage", tags=["diskutil"])

    @staticmethod
    def for_compression() -> Logger:
        """Logger for the file compression pass."""
        return get_logger(source="compression", tags=["afsctool"])

    @staticmethod
    def for_lifecycle(job_id: str | None = None) -> Logger:
        """Logger for pack/unpack runs."""
        if job_id is None:
            job_id = f"pack-{uuid.uuid4().hex[:8]}"
        return get_logger(job_id=job_id, source="lifecycle", tags=["lifecycle"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for platform checks and filesystem housekeeping."""
        return get_logger(source="system", tags=["system"])

