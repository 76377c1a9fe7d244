"""Logging for the extract CLI and for services that embed the pipeline.

Every record is stamped with the fields of the current logging context
(``app``, ``map_id``), rendered either for a terminal or as one JSON object
per line:

    2025-10-28T13:45:12.345Z | INFO     | app=extract map_id=17 | Saved map 17
    {"t": "2025-10-28T13:45:12.345+00:00", "lvl": "INFO", "name": "papermap.storage",
     "pid": 4242, "msg": "Saved map 17", "app": "extract", "map_id": 17}

The context lives in a ContextVar. Extractions running side by side in worker
threads therefore tag their records with their own map id, and a
``logging_context`` block restores the previous fields when it exits.

setup_logging() can be called again (tests, long-running services): the
handlers it installed last time are detached and closed first, handlers added
by anybody else are left alone.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterator, List, Optional

_fields: contextvars.ContextVar = contextvars.ContextVar("papermap_log_fields", default={})

# Handlers attached to the root logger by the last setup_logging() call
_installed: List[logging.Handler] = []

_LEVEL_COLOURS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class ContextFormatter(logging.Formatter):
    """Formatter that appends the active context fields to each record.

    Parameters
    ----------
    fmt_mode : str
        "human" (pipe separated) or "json" (one object per line)
    use_color : bool
        Colour the level name; ignored unless stderr is a terminal
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown log format '{fmt_mode}', expected 'human' or 'json'")
        super().__init__()
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        stamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        fields = current_context()
        message = record.getMessage()

        if self.fmt_mode == "json":
            doc = {
                "t": stamp.isoformat(timespec="milliseconds"),
                "lvl": record.levelname,
                "name": record.name,
                "pid": os.getpid(),
                "msg": message,
            }
            doc.update(fields)
            if record.exc_info:
                doc["exc"] = self.formatException(record.exc_info)
            return json.dumps(doc, default=str)

        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_LEVEL_COLOURS.get(record.levelname, '')}{level}{_RESET}"
        columns = [stamp.strftime("%Y-%m-%dT%H:%M:%S.") + f"{stamp.microsecond // 1000:03d}Z", level]
        if fields:
            columns.append(" ".join(f"{key}={value}" for key, value in fields.items()))
        columns.append(message)

        text = " | ".join(columns)
        if record.exc_info:
            text = f"{text}\n{self.formatException(record.exc_info)}"
        return text


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    rotate_bytes: Optional[int] = None,
    backup_count: int = 3,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Attach console and file handlers to the root logger.

    Parameters
    ----------
    log_level : str
        Root level name ("DEBUG" ... "CRITICAL")
    log_file : str, optional
        Also write records to this file; parent directories are created
    json : bool
        JSON lines in the log file instead of the human format
    color : bool
        ANSI colours on the console
    to_stderr : bool
        Attach a console handler on stderr
    rotate_bytes : int, optional
        Roll the log file over once it reaches this size
    backup_count : int
        Rolled-over files kept next to the log file
    capture_warnings : bool
        Route ``warnings.warn`` through logging
    quiet_libs : list[str], optional
        Loggers raised to WARNING (chatty third-party libraries)
    context : dict, optional
        Fields pushed onto the logging context, e.g. {"app": "extract"}

    Returns
    -------
    dict
        {"handlers": [...]} for callers that need to flush or inspect them

    Raises
    ------
    ValueError
        If log_level is not a known level name
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    for handler in _installed:
        root.removeHandler(handler)
        handler.close()
    _installed.clear()

    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", use_color=color))
        _installed.append(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        if rotate_bytes:
            handler = logging.handlers.RotatingFileHandler(
                log_file, maxBytes=rotate_bytes, backupCount=backup_count, encoding="utf-8"
            )
        else:
            handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(ContextFormatter("json" if json else "human", use_color=False))
        _installed.append(handler)

    root.setLevel(level)
    for handler in _installed:
        root.addHandler(handler)

    for name in quiet_libs or []:
        logging.getLogger(name).setLevel(logging.WARNING)
    if capture_warnings:
        logging.captureWarnings(True)
    if context:
        push_context(**context)

    return {"handlers": list(_installed)}


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def current_context() -> Dict[str, Any]:
    """Copy of the fields attached to records logged right now."""
    return dict(_fields.get())


def push_context(**fields) -> None:
    """Attach fields to every record logged afterwards in this context.

    Examples
    --------
    >>> push_context(app="extract")
    >>> logger.info("Started")  # ... | app=extract | Started
    """
    _fields.set({**_fields.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the given fields, or all of them when ``keys`` is None."""
    if keys is None:
        _fields.set({})
        return
    _fields.set({k: v for k, v in _fields.get().items() if k not in keys})


@contextmanager
def logging_context(**fields) -> Iterator[None]:
    """Attach fields inside a ``with`` block only.

    Examples
    --------
    >>> with logging_context(map_id=17):
    ...     logger.info("Saved")  # ... | map_id=17 | Saved
    """
    token = _fields.set({**_fields.get(), **fields})
    try:
        yield
    finally:
        _fields.reset(token)


def install_excepthook() -> None:
    """Log uncaught exceptions at CRITICAL before the interpreter exits."""
    def _log_uncaught(exc_type, exc_value, exc_tb):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_tb)
            return
        logging.getLogger(__name__).critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))

    sys.excepthook = _log_uncaught
