"""JSON-lines run logs for doc-batch commands.

Each command logs to ``<workspace>/logs/<command>.log`` through a rotating
handler. ``extra={...}`` fields are kept as structured data, and every
record names the thread that emitted it, since conversions log from pool
workers. ``--verbose`` mirrors records to stderr in a plain format.
"""

from __future__ import annotations

import json
import logging
import sys
import tempfile
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any

__all__ = [
    "JsonLogFormatter",
    "configure_logger",
]

_FILE_MARKER = "_doc_batch_file"
_CONSOLE_MARKER = "_doc_batch_console"
_CONSOLE_FORMAT = "%(levelname)s [%(threadName)s] %(message)s"

# Attribute names every LogRecord has; anything else came from ``extra``.
_STANDARD_ATTRS = frozenset(
    vars(logging.LogRecord("", logging.INFO, "", 0, "", None, None))
) | {"message", "asctime", "taskName"}


class JsonLogFormatter(logging.Formatter):
    """Render a record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(
                record.created, tz=timezone.utc
            ).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "thread": record.threadName,
            "message": record.getMessage(),
        }
        extra = {
            key: _jsonable(value)
            for key, value in vars(record).items()
            if key not in _STANDARD_ATTRS
        }
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        if record.stack_info:
            payload["stack"] = record.stack_info
        return json.dumps(payload, ensure_ascii=True)


def configure_logger(
    name: str,
    *,
    log_dir: Path,
    level: str = "INFO",
    verbose: bool = False,
    max_bytes: int = 5 * 1024 * 1024,
    backup_count: int = 3,
    filename: str | None = None,
) -> tuple[logging.Logger, Path]:
    """Attach the JSON file handler (once) to logger ``name``.

    Returns the logger and the file it writes to. Calling again reuses the
    existing file handler and only adjusts levels and the console mirror.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    file_handler = _find_handler(logger, _FILE_MARKER)
    if file_handler is None:
        log_name = filename or name.rsplit(".", 1)[-1] + ".log"
        file_handler = _open_file_handler(
            log_dir, log_name, max_bytes=max_bytes, backup_count=backup_count
        )
        logger.addHandler(file_handler)
    file_handler.setLevel(logging.DEBUG if verbose else _coerce_level(level))

    console = _find_handler(logger, _CONSOLE_MARKER)
    if verbose:
        if console is None:
            console = logging.StreamHandler(stream=sys.stderr)
            console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))
            setattr(console, _CONSOLE_MARKER, True)
            logger.addHandler(console)
        console.setLevel(logging.DEBUG)
    elif console is not None:
        logger.removeHandler(console)
        console.close()

    return logger, Path(file_handler.baseFilename)  # type: ignore[attr-defined]


def _find_handler(
    logger: logging.Logger, marker: str
) -> logging.Handler | None:
    for handler in logger.handlers:
        if getattr(handler, marker, False):
            return handler
    return None


def _open_file_handler(
    log_dir: Path, log_name: str, *, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    """Open the rotating log file, moving to the temp dir if access is denied."""

    target = _writable_dir(log_dir) / log_name
    try:
        handler = RotatingFileHandler(
            target, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    except PermissionError:
        target = _writable_dir(_fallback_log_dir()) / log_name
        handler = RotatingFileHandler(
            target, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
    try:
        target.chmod(0o600)
    except PermissionError:  # pragma: no cover - depends on filesystem
        pass
    handler.setFormatter(JsonLogFormatter())
    setattr(handler, _FILE_MARKER, True)
    return handler


def _writable_dir(log_dir: Path) -> Path:
    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        log_dir = _fallback_log_dir()
        log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _fallback_log_dir() -> Path:
    return Path(tempfile.gettempdir()) / "doc-batch-logs"


def _coerce_level(level: str) -> int:
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, dict):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(item) for item in value]
    return repr(value)
