"""Centered truncated SVD and principal component scores.

Columns (features) are centred but not scaled. Exact mode runs a full
LAPACK SVD on the dense centred matrix; approximate mode runs a Lanczos
solver over an operator that centres implicitly, so sparse input is never
densified.
"""

from __future__ import annotations

from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Dict, Optional, Union
import logging

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import (
    ArpackError,
    ArpackNoConvergence,
    LinearOperator,
    svds,
)
from sklearn.utils.extmath import svd_flip

from .exceptions import InvalidDimensionError, NumericalError

logger = logging.getLogger(__name__)

Matrix = Union[np.ndarray, sparse.csr_matrix]


@dataclass
class SVDResult:
    """Leading singular triplets of a centred matrix.

    Attributes
    ----------
    d : np.ndarray
        Singular values, decreasing
    u : np.ndarray
        Left singular vectors (n_obs x rank)
    v : np.ndarray, optional
        Right singular vectors (n_features x rank), if requested
    """

    d: np.ndarray
    u: np.ndarray
    v: Optional[np.ndarray] = None

    @property
    def rank(self) -> int:
        return int(self.d.shape[0])


def column_means(x: Matrix) -> np.ndarray:
    """Feature-wise means of an observations x features matrix."""
    return np.asarray(x.mean(axis=0)).ravel()


def center(x: Matrix) -> np.ndarray:
    """Return a dense copy of ``x`` with every column centred on zero."""
    dense = x.toarray() if sparse.issparse(x) else np.array(x, dtype=np.float64)
    return dense - column_means(dense)


def _centered_operator(x: Matrix, means: np.ndarray) -> LinearOperator:
    n_obs, n_features = x.shape

    def matvec(v):
        v = np.ravel(v)
        return np.asarray(x @ v).ravel() - means.dot(v)

    def rmatvec(u):
        u = np.ravel(u)
        return np.asarray(x.T @ u).ravel() - means * u.sum()

    def matmat(v):
        return np.asarray(x @ v) - np.outer(np.ones(n_obs), means @ v)

    def rmatmat(u):
        return np.asarray(x.T @ u) - np.outer(means, u.sum(axis=0))

    return LinearOperator(
        shape=(n_obs, n_features),
        matvec=matvec,
        rmatvec=rmatvec,
        matmat=matmat,
        rmatmat=rmatmat,
        dtype=np.float64,
    )


def _exact_svd(x: Matrix, max_rank: int) -> tuple:
    try:
        u, d, vt = np.linalg.svd(center(x), full_matrices=False)
    except np.linalg.LinAlgError as e:
        raise NumericalError(f"Exact SVD did not converge: {e}") from e
    rank = min(max_rank, d.shape[0])
    return u[:, :rank], d[:rank], vt[:rank]


def _approximate_svd(
    x: Matrix,
    max_rank: int,
    extra_args: Dict[str, Any],
) -> tuple:
    args = dict(extra_args)
    args.pop("k", None)
    args.pop("return_singular_vectors", None)

    operator = _centered_operator(x, column_means(x))
    try:
        u, d, vt = svds(operator, k=max_rank, **args)
    except (ArpackNoConvergence, ArpackError) as e:
        raise NumericalError(
            f"Approximate SVD did not converge for rank {max_rank}: {e}. "
            "Try pc_approx=False or increase maxiter/tol."
        ) from e

    # svds does not guarantee decreasing order
    order = np.argsort(d)[::-1]
    return u[:, order], d[order], vt[order]


def centered_svd(
    x: Matrix,
    max_rank: int,
    approximate: bool = False,
    extra_args: Optional[Dict[str, Any]] = None,
    keep_right: bool = False,
) -> SVDResult:
    """Compute the leading singular triplets of the column-centred matrix.

    Parameters
    ----------
    x : np.ndarray or sparse.csr_matrix
        Observations x features matrix
    max_rank : int
        Number of singular components to keep
    approximate : bool
        Use ``scipy.sparse.linalg.svds`` instead of a full SVD
    extra_args : Dict[str, Any], optional
        Keyword arguments forwarded to ``svds`` (tol, maxiter, solver,
        random_state, ...)
    keep_right : bool
        Also return the right singular vectors (loadings)

    Returns
    -------
    SVDResult
        Singular values and vectors with deterministic signs

    Raises
    ------
    NumericalError
        If the solver fails to converge
    """
    extra_args = extra_args or {}
    n_obs, n_features = x.shape

    if approximate and max_rank >= min(n_obs, n_features):
        logger.warning(
            "Requested rank %d >= min(shape)=%d; approximate SVD unavailable, "
            "falling back to exact SVD",
            max_rank,
            min(n_obs, n_features),
        )
        approximate = False

    if approximate:
        logger.debug("Running approximate SVD (rank=%d, args=%s)", max_rank, extra_args)
        u, d, vt = _approximate_svd(x, max_rank, extra_args)
    else:
        logger.debug("Running exact SVD (rank=%d)", max_rank)
        u, d, vt = _exact_svd(x, max_rank)

    u, vt = svd_flip(u, vt)

    if not np.all(np.isfinite(d)):
        raise NumericalError("SVD produced non-finite singular values")

    return SVDResult(d=d, u=u, v=vt.T if keep_right else None)


def svd_to_pca(svd: SVDResult, ncomp: int) -> np.ndarray:
    """Convert an SVD into the first ``ncomp`` principal component scores."""
    ncomp = min(ncomp, svd.rank)
    return svd.u[:, :ncomp] * svd.d[:ncomp]


def _is_unset(d: Any) -> bool:
    if d is None:
        return True
    return isinstance(d, Real) and not isinstance(d, Integral) and np.isnan(d)


def reduce_dimensions(
    x: Matrix,
    d: Optional[Union[int, float]],
    approximate: bool = False,
    extra_args: Optional[Dict[str, Any]] = None,
) -> np.ndarray:
    """Project observations onto their first ``d`` principal components.

    Parameters
    ----------
    x : np.ndarray or sparse.csr_matrix
        Observations x features matrix
    d : int, optional
        Target dimensionality. None or NaN returns ``x`` untouched; values
        at or above the number of features return the centred matrix.
    approximate : bool
        Use the approximate solver
    extra_args : Dict[str, Any], optional
        Extra arguments for the approximate solver

    Returns
    -------
    np.ndarray
        Dense observations x dimensions coordinates

    Raises
    ------
    InvalidDimensionError
        If ``d`` is negative, zero or not an integer
    """
    if _is_unset(d):
        logger.debug("Dimensionality reduction disabled; using all %d features", x.shape[1])
        return x.toarray() if sparse.issparse(x) else np.asarray(x, dtype=np.float64)

    if (
        isinstance(d, bool)
        or not isinstance(d, Real)
        or not np.isfinite(d)
        or float(d) != int(d)
    ):
        raise InvalidDimensionError(f"d must be an integer or None, got {d!r}")
    d = int(d)
    if d < 1:
        raise InvalidDimensionError(f"d must be a positive integer, got {d}")

    n_features = x.shape[1]
    if d >= n_features:
        logger.info(
            "Requested d=%d >= %d features; skipping SVD and using centred matrix",
            d,
            n_features,
        )
        return center(x)

    logger.info(
        "Reducing %d features to %d PCs (%s SVD)",
        n_features,
        d,
        "approximate" if approximate else "exact",
    )
    svd = centered_svd(x, max_rank=d, approximate=approximate, extra_args=extra_args)
    return svd_to_pca(svd, d)
