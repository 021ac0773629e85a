"""I/O utilities for cellgraph.

Provides logging, run records and CSV I/O.
"""

from .logging import (
    build_run_record,
    get_logger,
    get_timestamped_log_path,
    log_yaml,
)
from .csv import ensure_output_dir, load_expression_csv, write_dataframe

__all__ = [
    # Logging
    "build_run_record",
    "get_logger",
    "get_timestamped_log_path",
    "log_yaml",
    # CSV I/O
    "ensure_output_dir",
    "load_expression_csv",
    "write_dataframe",
]
