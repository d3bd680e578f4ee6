"""Logging utilities for genemodule-finder.

Run loggers (console plus an optional per-run file) and structured
records: YAML documents for run diagnostics, JSON lines for the run
ledger.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Tuple, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert the current time into a log file name.

    modules.log -> modules_20251209_080530.log, so repeated runs into
    the same directory keep their own logs.
    """
    base = Path(log_path)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return base.with_name(f"{base.stem}_{stamp}{base.suffix or '.log'}")


def get_logger(
    name: str,
    log_path: Optional[PathLike] = None,
    level: int = logging.INFO,
    timestamped: bool = True,
    console: bool = True,
) -> Tuple[logging.Logger, Optional[Path]]:
    """Configure a named run logger.

    Existing handlers on the logger are closed and replaced, so calling
    this twice for one name does not duplicate output.

    Parameters
    ----------
    name : str
        Logger name.
    log_path : PathLike, optional
        Log file. No file handler is attached if None.
    level : int
        Logging level (default: INFO).
    timestamped : bool
        Write to a timestamped sibling of log_path instead of
        truncating log_path itself.
    console : bool
        Also log to stderr.

    Returns
    -------
    Tuple[logging.Logger, Optional[Path]]
        The logger and the file it writes to (None without a file).
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    while logger.handlers:
        handler = logger.handlers[0]
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)
    handlers = []
    if console:
        handlers.append(logging.StreamHandler())

    file_path = None
    if log_path is not None:
        file_path = get_timestamped_log_path(log_path) if timestamped else Path(log_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(file_path, mode="a" if timestamped else "w", encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger, file_path


def _append(path: PathLike, text: str) -> None:
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("a", encoding="utf-8") as handle:
        handle.write(text)


def log_json(log_path: PathLike, record: dict[str, Any]) -> None:
    """Append record to log_path as one JSON line."""
    _append(log_path, json.dumps(record, default=str) + "\n")


def log_yaml(
    log_path: PathLike,
    record: dict[str, Any],
    *,
    logger: logging.Logger | None = None,
) -> None:
    """Append record to log_path as a YAML document ending in '---'.

    Parameters
    ----------
    log_path : PathLike
        Destination file.
    record : dict
        Plain-Python mapping (no numpy scalars).
    logger : logging.Logger, optional
        Emit the document through this logger instead of the file.
    """
    document = yaml.safe_dump(record, sort_keys=False).rstrip("\n") + "\n---"
    if logger is not None:
        logger.info("%s", document)
    else:
        _append(log_path, document + "\n")
