"""Input adapter for matrix-like objects.

Normalises dense arrays, DataFrames and scipy sparse matrices into an
observations x features matrix, applying an optional feature subset.
Everything downstream only sees ``np.ndarray`` or ``sparse.csr_matrix``.
"""

from __future__ import annotations

from typing import Any, Optional, Sequence, Union

import numpy as np
import pandas as pd
from scipy import sparse

from .exceptions import InvalidDimensionError

MatrixLike = Union[np.ndarray, sparse.spmatrix, pd.DataFrame]
SubsetLike = Union[Sequence[int], Sequence[bool], Sequence[str], np.ndarray]


def _resolve_subset(
    subset: SubsetLike,
    n_features: int,
    labels: Optional[pd.Index] = None,
) -> np.ndarray:
    """Convert a feature subset specification into integer positions."""
    subset = np.asarray(subset)

    if subset.dtype == bool:
        if subset.shape[0] != n_features:
            raise InvalidDimensionError(
                f"Boolean subset has length {subset.shape[0]} but matrix has "
                f"{n_features} features"
            )
        positions = np.flatnonzero(subset)

    elif subset.dtype.kind in ("U", "S", "O"):
        if labels is None:
            raise InvalidDimensionError(
                "Feature names can only be used to subset labelled (DataFrame) input"
            )
        lookup = pd.Index(labels)
        positions = lookup.get_indexer(subset.astype(str))
        missing = subset[positions < 0]
        if missing.size:
            raise InvalidDimensionError(
                f"Features not found: {missing[:5].tolist()}"
                + (" ..." if missing.size > 5 else "")
            )

    elif subset.dtype.kind in ("i", "u"):
        positions = subset.astype(np.int64)
        out_of_range = (positions < 0) | (positions >= n_features)
        if out_of_range.any():
            raise InvalidDimensionError(
                f"Feature positions out of range [0, {n_features}): "
                f"{positions[out_of_range][:5].tolist()}"
            )

    else:
        raise InvalidDimensionError(
            f"Unsupported subset specification dtype: {subset.dtype}"
        )

    if positions.size == 0:
        raise InvalidDimensionError("Feature subset selects no features")
    return positions


def as_observation_matrix(
    x: Any,
    transposed: bool = False,
    subset_row: Optional[SubsetLike] = None,
) -> Union[np.ndarray, sparse.csr_matrix]:
    """Return an observations x features float64 view of ``x``.

    Parameters
    ----------
    x : MatrixLike
        Input matrix. Rows are features and columns are observations unless
        ``transposed`` is True.
    transposed : bool
        Whether rows of ``x`` are already observations
    subset_row : SubsetLike, optional
        Features to keep: boolean mask, integer positions or feature labels
        (labels only for DataFrame input). Always applied to the feature axis.

    Returns
    -------
    np.ndarray or sparse.csr_matrix
        Observations x features matrix

    Raises
    ------
    InvalidDimensionError
        If the matrix is not 2-D, is empty, or the subset is inconsistent
        with the number of features
    """
    labels = None
    if isinstance(x, pd.DataFrame):
        labels = x.columns if transposed else x.index
        x = x.to_numpy()

    if sparse.issparse(x):
        mat = sparse.csr_matrix(x, dtype=np.float64)
    else:
        mat = np.asarray(x, dtype=np.float64)
        if mat.ndim != 2:
            raise InvalidDimensionError(
                f"Expected a 2-D matrix, got an array with {mat.ndim} dimensions"
            )

    if not transposed:
        mat = mat.T.tocsr() if sparse.issparse(mat) else mat.T

    n_obs, n_features = mat.shape
    if n_obs == 0 or n_features == 0:
        raise InvalidDimensionError(
            f"Matrix has no observations or no features (shape={mat.shape})"
        )

    if subset_row is not None:
        positions = _resolve_subset(subset_row, n_features, labels)
        mat = mat[:, positions]

    if sparse.issparse(mat):
        return sparse.csr_matrix(mat)
    return np.ascontiguousarray(mat)
