"""Logging utilities for cellgraph.

Provides timestamped file logging and YAML run records.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

PathLike = Union[str, Path]

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def get_timestamped_log_path(log_path: PathLike) -> Path:
    """Insert a timestamp before the suffix of ``log_path``.

    Example: snn.log -> snn_20251209_080530.log
    """
    log_path = Path(log_path)
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return log_path.parent / f"{log_path.stem}_{timestamp}{log_path.suffix or '.log'}"


def get_logger(
    name: str,
    log_path: Optional[PathLike] = None,
    level: int = logging.INFO,
    timestamped: bool = True,
    console: bool = False,
) -> Tuple[logging.Logger, Optional[Path]]:
    """Return a logger writing to a file and/or the console.

    Parameters
    ----------
    name : str
        Logger name
    log_path : PathLike, optional
        Base path for the log file. No file handler if None.
    level : int
        Logging level (default: INFO)
    timestamped : bool
        Add a timestamp to the file name instead of overwriting
    console : bool
        Also log to stderr

    Returns
    -------
    Tuple[logging.Logger, Optional[Path]]
        The logger and the actual log file path (None without a file)
    """
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    actual_log_path = None
    if log_path is not None:
        log_path = Path(log_path)
        if timestamped:
            actual_log_path = get_timestamped_log_path(log_path)
        else:
            actual_log_path = log_path
            actual_log_path.unlink(missing_ok=True)
        actual_log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(actual_log_path, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    if console or log_path is None:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    return logger, actual_log_path


def _prepare_destination(path: PathLike) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path


def log_yaml(
    log_path: Optional[PathLike],
    record: Dict[str, Any],
    *,
    logger: Optional[logging.Logger] = None,
) -> None:
    """Append ``record`` as a YAML document, or emit it through ``logger``."""
    message = yaml.safe_dump(record, sort_keys=False).rstrip("\n") + "\n---"
    if logger is not None:
        logger.info("%s", message)
        return

    path = _prepare_destination(log_path)
    with path.open("a", encoding="utf-8") as handle:
        handle.write(message)
        handle.write("\n")


def build_run_record(
    command: str,
    config: Dict[str, Any],
    stats: Dict[str, Any],
    **extra: Any,
) -> Dict[str, Any]:
    """Assemble the YAML run record written next to graph outputs.

    Parameters
    ----------
    command : str
        CLI command that produced the output
    config : Dict[str, Any]
        Effective configuration (``GraphConfig.to_dict()``)
    stats : Dict[str, Any]
        Graph statistics (``NeighborGraph.summary()``)
    **extra
        Additional fields (input path, timings, ...)

    Returns
    -------
    Dict[str, Any]
        Record with plain Python types only
    """
    record: Dict[str, Any] = {
        "command": command,
        "timestamp": datetime.now().isoformat(timespec="seconds"),
    }
    record.update({k: (str(v) if isinstance(v, Path) else v) for k, v in extra.items()})
    record["config"] = config
    record["graph"] = stats
    return record
