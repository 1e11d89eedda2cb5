"""
Logging setup — stderr for the user, an optional file for bug reports.

The CLI calls ``setup_logging`` once, before any backend exists. Every
module logs through ``logging.getLogger(__name__)``.

Console level precedence (``level_from_flags``):
    --debug  >  --verbose  >  --quiet  >  $ZAP_LOG_LEVEL  >  WARNING

``$ZAP_LOG_FILE`` adds a file handler; ``$ZAP_LOG_FILE_LEVEL`` lets it
record more than the console shows (e.g. DEBUG to file, WARNING on screen).
"""

from __future__ import annotations

import logging
import os
import sys

LEVEL_ENV_VAR = "ZAP_LOG_LEVEL"
FILE_ENV_VAR = "ZAP_LOG_FILE"
FILE_LEVEL_ENV_VAR = "ZAP_LOG_FILE_LEVEL"

# (format, datefmt) by the most verbose level they apply to
_CONSOLE_FORMATS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s", "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)
_CONSOLE_DEFAULT = ("%(levelname)s: %(message)s", None)

_FILE_FORMAT = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d  %(message)s"
_FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Request-per-line at INFO; only useful when debugging registry traffic
_NOISY_LOGGERS = ("httpx", "httpcore", "asyncio")


def level_from_flags(debug: bool = False, verbose: bool = False, quiet: bool = False) -> str:
    """Console level name for the global CLI flags."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    return os.environ.get(LEVEL_ENV_VAR, "WARNING")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
    quiet_third_party: bool = True,
) -> None:
    """Install the console (and optional file) handler on the root logger.

    Safe to call more than once; earlier handlers are replaced.

    Args:
        level: Console level name.
        log_file: Path of an extra log file, or None.
        log_file_level: Level for the file; defaults to ``level``.
        quiet_third_party: Hold httpx/httpcore/asyncio at WARNING unless
            the console is at DEBUG.
    """
    console_level = _parse_level(level)
    fmt, datefmt = _console_format(console_level)

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter(fmt, datefmt=datefmt))

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(console)

    root_level = console_level
    if log_file:
        file_level = _parse_level(log_file_level) if log_file_level else console_level
        root.addHandler(_file_handler(log_file, file_level))
        root_level = min(root_level, file_level)
    root.setLevel(root_level)

    if quiet_third_party and console_level > logging.DEBUG:
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    # A closed stderr (piped to head, etc.) must not turn into tracebacks
    logging.raiseExceptions = False


def _console_format(level: int) -> tuple[str, str | None]:
    for threshold, fmt, datefmt in _CONSOLE_FORMATS:
        if level <= threshold:
            return fmt, datefmt
    return _CONSOLE_DEFAULT


def _file_handler(path: str, level: int) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FILE_FORMAT, datefmt=_FILE_DATEFMT))
    return handler


def _parse_level(level: str | None) -> int:
    """Level name → numeric level; unknown or empty names mean WARNING."""
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING
