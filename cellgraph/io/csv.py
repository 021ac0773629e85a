"""CSV I/O utilities for cellgraph.

Provides loading of expression tables and writing of edge/label tables.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import pandas as pd

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it."""
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def load_expression_csv(path: PathLike, index_col: int = 0) -> pd.DataFrame:
    """Load an expression table with row labels in the first column.

    Parameters
    ----------
    path : PathLike
        CSV file. Rows are features (genes) and columns cells, unless the
        caller treats it as transposed.
    index_col : int
        Column holding row labels

    Returns
    -------
    pd.DataFrame
        Numeric table

    Raises
    ------
    FileNotFoundError
        If the file does not exist
    ValueError
        If the table is empty or has non-numeric columns
    """
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"Expression table not found: {csv_path}")

    df = pd.read_csv(csv_path, index_col=index_col)
    if df.empty:
        raise ValueError(f"Expression table {csv_path} is empty")

    non_numeric = [c for c in df.columns if not pd.api.types.is_numeric_dtype(df[c])]
    if non_numeric:
        raise ValueError(
            f"Expression table {csv_path} has non-numeric columns: {non_numeric[:5]}"
        )
    logger.info("Loaded %s: %d rows x %d columns", csv_path.name, *df.shape)
    return df


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write DataFrame to path ensuring the parent directory exists.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to write.
    path : PathLike
        Output path.
    index : bool
        Whether to write row index (default: False).

    Returns
    -------
    Path
        The output path.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path
