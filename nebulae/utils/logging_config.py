"""Logging setup shared by the render CLI, the wizard and library callers.

One call to setup_logging() configures the root logger:
    - stderr handler, human-readable, colored on a TTY
    - optional file handler, human or JSON lines, optionally size-rotated
    - contextual fields (app, render_pass, ...) appended to every record
    - Python warnings routed into logging
    - chatty libraries (numba's compiler, PIL's plugin loader) held at WARNING

Records look like:
    human: 2026-10-18T13:45:12.345Z | INFO     | app=nebulae render_pass=3 | Pass 3/100 done
    json:  {"t": "2026-10-18T13:45:12.345000+00:00", "lvl": "INFO", ..., "render_pass": 3}

Context lives in a ContextVar: fields pushed by the orchestrator thread are
not seen by worker threads, which start from an empty context.

Calling setup_logging() again swaps out the handlers it installed earlier and
leaves every other handler on the root logger untouched.
"""

import contextvars
import json
import logging
import logging.handlers
import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_context_var = contextvars.ContextVar('logging_context', default={})

# Handlers owned by setup_logging()
_installed_handlers: List[logging.Handler] = []

DEFAULT_QUIET_LIBS = ['numba', 'PIL']

_LEVEL_COLORS = {
    'DEBUG': '\033[36m',
    'INFO': '\033[32m',
    'WARNING': '\033[33m',
    'ERROR': '\033[31m',
    'CRITICAL': '\033[35m',
}
_RESET = '\033[0m'


class ContextFormatter(logging.Formatter):
    """Render records as `time | level | context | message` or as JSON lines.

    Timestamps are always UTC.
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"Unknown format mode: {fmt_mode}. Use 'human' or 'json'.")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        created = datetime.fromtimestamp(record.created, tz=timezone.utc)
        context = _context_var.get({})
        if self.fmt_mode == "json":
            return self._as_json(record, created, context)
        return self._as_text(record, created, context)

    def _as_json(self, record: logging.LogRecord, created: datetime, context: dict) -> str:
        payload = {
            't': created.isoformat(),
            'lvl': record.levelname,
            'name': record.name,
            'thread': record.threadName,
            'pid': os.getpid(),
            'msg': record.getMessage(),
            **context,
        }
        if record.exc_info:
            payload['exc'] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)

    def _as_text(self, record: logging.LogRecord, created: datetime, context: dict) -> str:
        level = f"{record.levelname:8s}"
        if self.use_color:
            level = f"{_LEVEL_COLORS.get(record.levelname, '')}{level}{_RESET}"

        fields = [created.strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z', level]
        if context:
            fields.append(' '.join(f"{k}={v}" for k, v in context.items()))
        fields.append(record.getMessage())

        text = ' | '.join(fields)
        if record.exc_info:
            text += '\n' + self.formatException(record.exc_info)
        return text


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    max_bytes: Optional[int] = None,
    backup_count: int = 3,
    capture_warnings: bool = True,
    quiet_libs: Optional[List[str]] = None,
    context: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Configure the root logger (safe to call repeatedly).

    Parameters
    ----------
    log_level : str
        "DEBUG", "INFO", "WARNING", "ERROR" or "CRITICAL"
    log_file : str, optional
        Also log to this file (parent directories are created)
    json : bool
        Write JSON lines to the log file instead of human-readable text
    color : bool
        Color the level name on the console when stderr is a TTY
    to_stderr : bool
        Log to the console
    max_bytes : int, optional
        Rotate the log file once it reaches this size; None never rotates
    backup_count : int
        Rotated files kept next to the log file
    capture_warnings : bool
        Route Python warnings into logging
    quiet_libs : list[str], optional
        Library loggers held at WARNING; defaults to numba and PIL
    context : dict, optional
        Contextual fields pushed for every later record, e.g. {"app": "nebulae"}

    Returns
    -------
    dict
        {"handlers": [...]} with the handlers installed by this call

    Raises
    ------
    ValueError
        If log_level is not a logging level name, or max_bytes is not positive
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise ValueError(f"Unknown log level: {log_level}")

    root = logging.getLogger()
    while _installed_handlers:
        handler = _installed_handlers.pop()
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    handlers: List[logging.Handler] = []
    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", color))
        handlers.append(console)
    if log_file:
        handlers.append(_file_handler(log_file, json, max_bytes, backup_count))

    for handler in handlers:
        root.addHandler(handler)
    _installed_handlers.extend(handlers)

    if context:
        push_context(**context)
    for lib in (DEFAULT_QUIET_LIBS if quiet_libs is None else quiet_libs):
        logging.getLogger(lib).setLevel(logging.WARNING)
    if capture_warnings:
        route_warnings()

    return {'handlers': handlers}


def _file_handler(
    log_file: str,
    json_lines: bool,
    max_bytes: Optional[int],
    backup_count: int
) -> logging.Handler:
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    if max_bytes is None:
        handler: logging.Handler = logging.FileHandler(log_file)
    elif max_bytes <= 0:
        raise ValueError(f"max_bytes must be positive, got {max_bytes}")
    else:
        handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=max_bytes, backupCount=backup_count
        )
    handler.setFormatter(ContextFormatter("json" if json_lines else "human", use_color=False))
    return handler


def push_context(**kwargs) -> None:
    """Attach fields to every later record logged from this context.

    >>> push_context(render_pass=3)
    """
    _context_var.set({**_context_var.get({}), **kwargs})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the given fields, or all of them when keys is None."""
    if keys is None:
        _context_var.set({})
        return
    _context_var.set({k: v for k, v in _context_var.get({}).items() if k not in keys})


def get_context() -> Dict[str, Any]:
    """Copy of the fields currently attached."""
    return dict(_context_var.get({}))


def install_excepthook() -> None:
    """Send uncaught exceptions (with traceback) to the log before exiting.

    Ctrl-C keeps the default behaviour.
    """
    def log_exception(exc_type, exc_value, exc_traceback):
        if issubclass(exc_type, KeyboardInterrupt):
            sys.__excepthook__(exc_type, exc_value, exc_traceback)
            return
        logging.getLogger(__name__).critical(
            "Uncaught exception", exc_info=(exc_type, exc_value, exc_traceback)
        )

    sys.excepthook = log_exception


def route_warnings() -> None:
    """Log Python warnings (e.g. numpy overflow) through `py.warnings`."""
    logging.captureWarnings(True)
    logging.getLogger('py.warnings').setLevel(logging.WARNING)
