from __future__ import annotations

import os
import sys
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from loguru import Logger

from loguru import logger

DEFAULT_LOG_DIR = Path(
    os.environ.get(
        "KEYBUILDER_LOG_DIR",
        Path.home() / ".local" / "state" / "keybuilder" / "logs",
    )
)

CONSOLE_FORMAT = "<level>{level: <8}</level> | <cyan>{extra[source]: <11}</cyan> | {message}"
FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | "
    "{extra[source]: <11} | {extra[job_id]: <17} | {message}"
)
DEBUG_FORMAT = FILE_FORMAT.replace("{message}", "{extra[tags]} | {message}")


def _should_log_command_output(record) -> bool:
    """Hide raw external tool output unless running at TRACE level."""
    tags = record["extra"].get("tags", [])
    if "command-output" in tags:
        return record["level"].no <= logger.level("TRACE").no
    return True


def _add_file_sink(path: Path, level: str, **options) -> int:
    # Keeps the last ten rotated files per sink
    options.setdefault("rotation", "2 MB")
    options.setdefault("retention", 10)
    options.setdefault("format", FILE_FORMAT)
    return logger.add(path, level=level, compression="zip", **options)


def setup_logging(
    *,
    debug: bool = False,
    trace: bool = False,
    log_dir: Path | None = None,
) -> Logger:
    """
    Configure the console and the log files of one wizard run.

    Log Files:
    - operations.log: INFO+ events
    - debug.log: DEBUG+ (or TRACE+) events, only with --debug or --trace
    - structured.jsonl: INFO+ events serialized as JSON

    The console sink writes to stderr so it never mixes with dialog output.
    A log directory that cannot be created leaves only the console sink.

    Args:
        debug: Enable DEBUG level logging
        trace: Enable TRACE level logging, including raw tool output
        log_dir: Custom log directory (defaults to ~/.local/state/keybuilder/logs)
    """
    logger.remove()
    logger.configure(extra={"job_id": "-", "tags": [], "source": "APP"})

    console_level = "TRACE" if trace else "DEBUG" if debug else "INFO"
    logger.add(
        sys.stderr,
        level=console_level,
        format=CONSOLE_FORMAT,
        filter=_should_log_command_output,
        colorize=True,
        backtrace=False,
        diagnose=False,
    )

    log_dir = log_dir or DEFAULT_LOG_DIR
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as error:
        logger.warning(f"Log directory {log_dir} unavailable, file logging disabled: {error}")
        return logger

    _add_file_sink(log_dir / "operations.log", "INFO", backtrace=False, diagnose=False)
    if debug or trace:
        _add_file_sink(
            log_dir / "debug.log",
            "TRACE" if trace else "DEBUG",
            format=DEBUG_FORMAT,
            backtrace=True,
            diagnose=True,
        )
    _add_file_sink(log_dir / "structured.jsonl", "INFO", format="{message}", serialize=True)

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
        job_id: Job identifier for tracking operations
        tags: Tags for filtering (e.g., ["sizing", "planning"])
        source: Source component (e.g., "sizing", "wizard")

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
    Context manager for tracking long-running operations with automatic timing.

    Logs operation start, completion and failure with duration tracking.

    Example:
        with operation_context("install", device="/dev/sdb") as log:
            log.debug("Writing partition table")
    """
    job_id = f"{operation}-{uuid.uuid4().hex[:8]}"

    with logger.contextualize(job_id=job_id, operation=operation, **details):
        start_time = time.time()
        log = logger.bind(source=operation, job_id=job_id, tags=[operation])

        log.info(f"{operation.capitalize()} started", **details)

        try:
            yield log
            duration = time.time() - start_time
            log.success(
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
    Factory for creating component loggers with explicit context.

    Every component logs under its own source tag instead of relying on the
    caller's function name.
    """

    @staticmethod
    def for_sizing() -> Logger:
        """Logger for the sizing engine and size validator."""
        return get_logger(source="sizing", tags=["planning", "sizing"])

    @staticmethod
    def for_detection() -> Logger:
        """Logger for existing layout detection."""
        return get_logger(source="detection", tags=["planning", "detection"])

    @staticmethod
    def for_wizard(step: int | None = None) -> Logger:
        """Logger for the step controller and step handlers."""
        if step is None:
            return get_logger(source="wizard", tags=["wizard"])
        return get_logger(source="wizard", tags=["wizard"]).bind(step=step)

    @staticmethod
    def for_storage() -> Logger:
        """Logger for device queries, partitioning and formatting."""
        return get_logger(source="storage", tags=["storage", "hardware"])

    @staticmethod
    def for_bootloader() -> Logger:
        """Logger for GRUB installation."""
        return get_logger(source="bootloader", tags=["bootloader"])

    @staticmethod
    def for_ui() -> Logger:
        """Logger for dialog invocations."""
        return get_logger(source="ui", tags=["ui", "dialog"])

    @staticmethod
    def for_system() -> Logger:
        """Logger for system operations (startup, privileges, cleanup, config)."""
        return get_logger(source="system", tags=["system"])
