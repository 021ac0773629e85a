"""Nearest-neighbour search backends.

Two interchangeable backends implement ``find(points, k, parallel)``:

- ``ExactSearch``: scikit-learn ``NearestNeighbors``. The fitted index is
  queried in disjoint blocks of points across a joblib pool.
- ``ApproximateSearch``: pynndescent ``NNDescent``, for large point counts.

Both query ``k + 1`` neighbours, remove each point's own index and return
exactly ``k`` neighbours per point, nearest first. Rows are re-sorted by
(distance, index) after the query so tied distances resolve identically no
matter how the points were partitioned.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import partial
from numbers import Integral
from typing import Any, Dict, Optional, Tuple, Union
import logging

import numpy as np
from joblib import effective_n_jobs
from sklearn.neighbors import NearestNeighbors

from .exceptions import InsufficientDataError, InvalidParameterError, NumericalError
from .parallel import ParallelConfig, run_chunked

logger = logging.getLogger(__name__)


class KnnBackend(str, Enum):
    """Neighbour search strategy."""

    EXACT = "exact"
    APPROXIMATE = "approximate"


@dataclass
class NeighborTable:
    """Per-observation neighbour lists.

    Attributes
    ----------
    index : np.ndarray
        (n_obs, k) neighbour indices, nearest first, never the row itself
    distance : np.ndarray, optional
        (n_obs, k) Euclidean distances aligned with ``index``
    """

    index: np.ndarray
    distance: Optional[np.ndarray] = None

    @property
    def n_obs(self) -> int:
        return int(self.index.shape[0])

    @property
    def k(self) -> int:
        return int(self.index.shape[1])


def check_k(k: Any, n_obs: int) -> int:
    """Validate ``k`` against the number of observations.

    Raises
    ------
    InvalidParameterError
        If ``k`` is not a positive integer
    InsufficientDataError
        If ``k >= n_obs - 1``
    """
    if isinstance(k, bool) or not isinstance(k, Integral) or k < 1:
        raise InvalidParameterError(f"k must be a positive integer, got {k!r}")
    k = int(k)
    if k >= n_obs - 1:
        raise InsufficientDataError(
            f"k={k} requires at least {k + 2} observations, got {n_obs}; "
            "reduce k or provide more cells"
        )
    return k


def _sort_rows(
    index: np.ndarray,
    distance: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    order = np.lexsort((index, distance), axis=-1)
    return (
        np.take_along_axis(index, order, axis=1),
        np.take_along_axis(distance, order, axis=1),
    )


def drop_self(
    index: np.ndarray,
    distance: np.ndarray,
    rows: np.ndarray,
    k: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Remove each row's own index from ``k + 1`` candidates.

    Rows whose own index is missing (many duplicates of the point) lose
    their furthest candidate instead.
    """
    is_self = index == rows[:, None]
    missing = ~is_self.any(axis=1)
    is_self[missing, -1] = True

    keep = ~is_self
    n = index.shape[0]
    return index[keep].reshape(n, k), distance[keep].reshape(n, k)


def _exact_distances(points: np.ndarray, rows: np.ndarray, index: np.ndarray) -> np.ndarray:
    origin = points[rows]
    distance = np.empty(index.shape, dtype=np.float64)
    for j in range(index.shape[1]):
        diff = points[index[:, j]] - origin
        distance[:, j] = np.sqrt(np.einsum("ij,ij->i", diff, diff))
    return distance


def _query_block(
    nn: NearestNeighbors,
    points: np.ndarray,
    k: int,
    start: int,
    stop: int,
) -> Tuple[np.ndarray, np.ndarray]:
    rows = np.arange(start, stop)
    index = nn.kneighbors(points[start:stop], n_neighbors=k + 1, return_distance=False)
    index = index.astype(np.int64, copy=False)
    distance = _exact_distances(points, rows, index)
    index, distance = _sort_rows(index, distance)
    return drop_self(index, distance, rows, k)


def numba_thread_count(n_jobs: int) -> int:
    """Resolve ``n_jobs`` for numba-parallel code, capped at numba's pool size."""
    from numba import config as numba_config

    requested = effective_n_jobs(n_jobs)
    n_threads = max(1, min(requested, numba_config.NUMBA_NUM_THREADS))
    if n_threads < requested:
        logger.debug(
            "Capping %d requested workers at %d numba threads", requested, n_threads
        )
    return n_threads


class ExactSearch:
    """Exact Euclidean neighbour search with scikit-learn.

    Parameters
    ----------
    algorithm : str
        ``NearestNeighbors`` algorithm ("auto", "brute", "kd_tree", "ball_tree")
    leaf_size : int
        Leaf size for tree-based algorithms
    """

    name = KnnBackend.EXACT

    def __init__(self, algorithm: str = "auto", leaf_size: int = 30):
        self.algorithm = algorithm
        self.leaf_size = leaf_size

    def __repr__(self) -> str:
        return f"ExactSearch(algorithm={self.algorithm!r}, leaf_size={self.leaf_size})"

    def find(
        self,
        points: np.ndarray,
        k: int,
        parallel: Optional[ParallelConfig] = None,
    ) -> NeighborTable:
        points = np.ascontiguousarray(points, dtype=np.float64)
        k = check_k(k, points.shape[0])

        nn = NearestNeighbors(
            n_neighbors=k + 1,
            algorithm=self.algorithm,
            leaf_size=self.leaf_size,
            metric="euclidean",
        )
        nn.fit(points)

        blocks = run_chunked(
            partial(_query_block, nn, points, k),
            points.shape[0],
            parallel,
        )
        index = np.vstack([b[0] for b in blocks])
        distance = np.vstack([b[1] for b in blocks])
        return NeighborTable(index=index, distance=distance)


class ApproximateSearch:
    """Approximate Euclidean neighbour search with pynndescent.

    Parameters
    ----------
    n_trees : int, optional
        Number of random projection trees (pynndescent default if None)
    n_iters : int, optional
        Number of NN-descent iterations (pynndescent default if None)
    random_state : int
        Seed for the random projections
    exact_below : int
        Point counts below this use exact search
    **kwargs
        Further ``NNDescent`` keyword arguments
    """

    name = KnnBackend.APPROXIMATE

    def __init__(
        self,
        n_trees: Optional[int] = None,
        n_iters: Optional[int] = None,
        random_state: int = 0,
        exact_below: int = 100,
        **kwargs: Any,
    ):
        self.n_trees = n_trees
        self.n_iters = n_iters
        self.random_state = random_state
        self.exact_below = exact_below
        self.kwargs = kwargs

    def __repr__(self) -> str:
        return (
            f"ApproximateSearch(n_trees={self.n_trees}, n_iters={self.n_iters}, "
            f"random_state={self.random_state})"
        )

    def find(
        self,
        points: np.ndarray,
        k: int,
        parallel: Optional[ParallelConfig] = None,
    ) -> NeighborTable:
        from pynndescent import NNDescent

        points = np.ascontiguousarray(points, dtype=np.float64)
        n_obs = points.shape[0]
        k = check_k(k, n_obs)
        parallel = parallel or ParallelConfig.serial()

        if n_obs < self.exact_below:
            logger.debug(
                "Only %d points (< %d); using exact search", n_obs, self.exact_below
            )
            return ExactSearch().find(points, k, parallel)

        index = NNDescent(
            points,
            n_neighbors=k + 1,
            metric="euclidean",
            n_trees=self.n_trees,
            n_iters=self.n_iters,
            random_state=self.random_state,
            n_jobs=numba_thread_count(parallel.n_jobs),
            **self.kwargs,
        )
        candidates, distance = index.neighbor_graph
        candidates = candidates.astype(np.int64, copy=False)
        distance = np.where(candidates < 0, np.inf, distance).astype(np.float64)

        rows = np.arange(n_obs)
        candidates, distance = _sort_rows(candidates, distance)
        candidates, distance = drop_self(candidates, distance, rows, k)

        if (candidates < 0).any():
            n_bad = int((candidates < 0).any(axis=1).sum())
            raise NumericalError(
                f"Approximate search returned fewer than k={k} neighbours for "
                f"{n_bad} points; increase n_iters/n_trees or use exact search"
            )
        return NeighborTable(index=candidates, distance=distance)


SearchBackend = Union[ExactSearch, ApproximateSearch]


def make_backend(
    backend: Union[str, KnnBackend, SearchBackend] = KnnBackend.EXACT,
    **kwargs: Any,
) -> SearchBackend:
    """Build a search backend from a selector and its configuration bag.

    Parameters
    ----------
    backend : str, KnnBackend or backend instance
        "exact", "approximate", or an already constructed backend
    **kwargs
        Backend constructor arguments

    Returns
    -------
    ExactSearch or ApproximateSearch
    """
    if isinstance(backend, (ExactSearch, ApproximateSearch)):
        return backend
    try:
        backend = KnnBackend(backend)
    except ValueError:
        raise InvalidParameterError(
            f"Unknown neighbour backend {backend!r}; "
            f"choose from {[b.value for b in KnnBackend]}"
        ) from None

    if backend is KnnBackend.EXACT:
        return ExactSearch(**kwargs)
    return ApproximateSearch(**kwargs)


def find_knn(
    points: np.ndarray,
    k: int,
    backend: Union[str, KnnBackend, SearchBackend] = KnnBackend.EXACT,
    parallel: Optional[ParallelConfig] = None,
    get_distance: bool = True,
    backend_args: Optional[Dict[str, Any]] = None,
) -> NeighborTable:
    """Find the ``k`` nearest neighbours of every point, excluding itself.

    Parameters
    ----------
    points : np.ndarray
        (n_points, n_dims) coordinates
    k : int
        Number of neighbours
    backend : str, KnnBackend or backend instance
        Search strategy
    parallel : ParallelConfig, optional
        Worker pool configuration (serial if None)
    get_distance : bool
        Keep distances in the returned table
    backend_args : Dict[str, Any], optional
        Constructor arguments when ``backend`` is a selector

    Returns
    -------
    NeighborTable
        Neighbour indices (and distances) per point

    Raises
    ------
    InvalidParameterError
        If ``k`` is not a positive integer or the backend is unknown
    InsufficientDataError
        If there are not enough points for ``k`` neighbours
    NumericalError
        If approximate search cannot find ``k`` neighbours for every point
    """
    searcher = make_backend(backend, **(backend_args or {}))
    logger.info(
        "Finding %d nearest neighbours for %d points with %r",
        k,
        np.shape(points)[0],
        searcher,
    )
    table = searcher.find(points, k, parallel)
    if not get_distance:
        table.distance = None
    return table
