"""Shared-nearest-neighbour and k-nearest-neighbour graph construction.

Each observation's neighbour list is first augmented with the observation
itself at rank 0, so an observation always counts as one of its own
neighbours. Two observations ``i`` and ``j`` are joined whenever their
augmented lists intersect:

    S = ({i} + N(i)) & ({j} + N(j))

Rank weighting uses ``k - 0.5 * min over m in S of (r_i(m) + r_j(m))``,
floored at zero, where ``r_i(m)`` is the position of ``m`` in ``i``'s list
(0 = closest, and ``r_i(i) = 0``). Number weighting uses ``|S|``.

Candidate pairs are found through the inverted table ("who lists ``m``")
rather than by testing all pairs.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import partial
from typing import List, Optional, Tuple, Union
import logging

import numpy as np
from scipy import sparse

from .exceptions import InvalidParameterError
from .graph import NeighborGraph, simplify_edges
from .neighbors import NeighborTable
from .parallel import ParallelConfig, run_chunked

logger = logging.getLogger(__name__)

SNN_TYPES = ("rank", "number")

IndexLike = Union[NeighborTable, np.ndarray]


@dataclass
class HostTable:
    """Inverted neighbour table in CSR layout.

    For observation ``m``, ``hosts[indptr[m]:indptr[m + 1]]`` are the
    observations whose augmented list contains ``m``, and ``ranks`` holds
    the rank at which each of them lists ``m``.
    """

    indptr: np.ndarray
    hosts: np.ndarray
    ranks: np.ndarray

    def lookup(self, m: int) -> Tuple[np.ndarray, np.ndarray]:
        start, stop = self.indptr[m], self.indptr[m + 1]
        return self.hosts[start:stop], self.ranks[start:stop]


def _as_index(neighbors: IndexLike) -> np.ndarray:
    index = neighbors.index if isinstance(neighbors, NeighborTable) else neighbors
    index = np.asarray(index, dtype=np.int64)
    if index.ndim != 2:
        raise InvalidParameterError(
            f"Neighbour index must be 2-D (n_obs, k), got shape {index.shape}"
        )
    return index


def augment_neighbors(index: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Prepend each observation to its own neighbour list at rank 0.

    Parameters
    ----------
    index : np.ndarray
        (n_obs, k) neighbour indices, nearest first

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (n_obs, k + 1) augmented table and the rank of each column,
        ``[0, 0, 1, ..., k - 1]``
    """
    n_obs, k = index.shape
    augmented = np.empty((n_obs, k + 1), dtype=np.int64)
    augmented[:, 0] = np.arange(n_obs)
    augmented[:, 1:] = index
    ranks = np.concatenate([[0], np.arange(k)]).astype(np.int64)
    return augmented, ranks


def invert_neighbors(augmented: np.ndarray, ranks: np.ndarray) -> HostTable:
    """Build the "who lists me" lookup from an augmented table."""
    n_obs, width = augmented.shape
    targets = augmented.ravel()
    hosts = np.repeat(np.arange(n_obs, dtype=np.int64), width)
    host_ranks = np.tile(ranks, n_obs)

    order = np.argsort(targets, kind="stable")
    counts = np.bincount(targets, minlength=n_obs)
    indptr = np.concatenate([[0], np.cumsum(counts)]).astype(np.int64)
    return HostTable(indptr=indptr, hosts=hosts[order], ranks=host_ranks[order])


def _rank_edges_block(
    augmented: np.ndarray,
    ranks: np.ndarray,
    table: HostTable,
    k: int,
    start: int,
    stop: int,
) -> Tuple[np.ndarray, np.ndarray]:
    """Rank-weighted edges ``(i, j)`` with ``i < j`` for ``j`` in a block."""
    n_obs = augmented.shape[0]
    best = np.full(n_obs, np.iinfo(np.int64).max, dtype=np.int64)
    sources: List[np.ndarray] = []
    targets: List[np.ndarray] = []
    sums: List[np.ndarray] = []

    for j in range(start, stop):
        others = []
        rank_sums = []
        for m, r in zip(augmented[j], ranks):
            hosts, host_ranks = table.lookup(m)
            others.append(hosts)
            rank_sums.append(host_ranks + r)

        others = np.concatenate(others)
        rank_sums = np.concatenate(rank_sums)
        lower = others < j
        others, rank_sums = others[lower], rank_sums[lower]
        if others.size == 0:
            continue

        np.minimum.at(best, others, rank_sums)
        touched = np.unique(others)
        sources.append(touched)
        targets.append(np.full(touched.size, j, dtype=np.int64))
        sums.append(best[touched].copy())
        best[touched] = np.iinfo(np.int64).max

    if not sources:
        empty = np.empty(0, dtype=np.int64)
        return np.empty((0, 2), dtype=np.int64), empty.astype(np.float64)

    edges = np.column_stack([np.concatenate(sources), np.concatenate(targets)])
    weights = k - 0.5 * np.concatenate(sums).astype(np.float64)
    return edges, np.maximum(weights, 0.0)


def _sort_edges(
    edges: np.ndarray,
    weights: np.ndarray,
) -> Tuple[np.ndarray, np.ndarray]:
    order = np.lexsort((edges[:, 1], edges[:, 0]))
    return edges[order], weights[order]


def snn_edges_rank(
    neighbors: IndexLike,
    parallel: Optional[ParallelConfig] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """Rank-weighted SNN edges.

    Parameters
    ----------
    neighbors : NeighborTable or np.ndarray
        (n_obs, k) neighbour indices, nearest first
    parallel : ParallelConfig, optional
        Worker pool for splitting observations into blocks

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (n_edges, 2) pairs with ``i < j`` sorted by (i, j), and weights
        in ``[0, k]``
    """
    index = _as_index(neighbors)
    n_obs, k = index.shape
    augmented, ranks = augment_neighbors(index)
    table = invert_neighbors(augmented, ranks)

    blocks = run_chunked(
        partial(_rank_edges_block, augmented, ranks, table, k),
        n_obs,
        parallel,
    )
    if not blocks:
        return np.empty((0, 2), dtype=np.int64), np.empty(0, dtype=np.float64)

    edges = np.vstack([b[0] for b in blocks])
    weights = np.concatenate([b[1] for b in blocks])
    return _sort_edges(edges, weights)


def snn_edges_number(neighbors: IndexLike) -> Tuple[np.ndarray, np.ndarray]:
    """Count-weighted SNN edges.

    The shared-neighbour counts come from ``M @ M.T`` where ``M`` is the
    sparse indicator of the augmented neighbour lists.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray]
        (n_edges, 2) pairs with ``i < j`` sorted by (i, j), and ``|S|``
    """
    index = _as_index(neighbors)
    n_obs = index.shape[0]
    augmented, _ = augment_neighbors(index)

    rows = np.repeat(np.arange(n_obs, dtype=np.int64), augmented.shape[1])
    membership = sparse.csr_matrix(
        (np.ones(rows.size, dtype=np.float64), (rows, augmented.ravel())),
        shape=(n_obs, n_obs),
    )
    shared = sparse.triu(membership @ membership.T, k=1).tocoo()

    edges = np.column_stack([shared.row, shared.col]).astype(np.int64)
    weights = np.asarray(shared.data, dtype=np.float64)
    return _sort_edges(edges, weights)


def build_snn_graph_from_neighbors(
    neighbors: IndexLike,
    type: str = "rank",
    prune_zero: bool = False,
    parallel: Optional[ParallelConfig] = None,
) -> NeighborGraph:
    """Build an undirected SNN graph from a neighbour table.

    Parameters
    ----------
    neighbors : NeighborTable or np.ndarray
        (n_obs, k) neighbour indices, nearest first
    type : str
        "rank" or "number" edge weighting
    prune_zero : bool
        Drop edges whose weight is zero (rank mode only)
    parallel : ParallelConfig, optional
        Worker pool for rank weighting

    Returns
    -------
    NeighborGraph
        Undirected weighted graph, one edge per unordered pair

    Raises
    ------
    InvalidParameterError
        If ``type`` is unknown
    """
    if type not in SNN_TYPES:
        raise InvalidParameterError(
            f"Unknown SNN weighting type {type!r}; choose from {list(SNN_TYPES)}"
        )
    index = _as_index(neighbors)

    if type == "rank":
        edges, weights = snn_edges_rank(index, parallel=parallel)
    else:
        edges, weights = snn_edges_number(index)

    if prune_zero:
        nonzero = weights > 0
        n_pruned = int((~nonzero).sum())
        if n_pruned:
            logger.info("Pruning %d zero-weight SNN edges", n_pruned)
        edges, weights = edges[nonzero], weights[nonzero]

    graph = NeighborGraph(
        n_vertices=index.shape[0],
        edges=edges,
        weights=weights,
        directed=False,
    )
    logger.info(
        "Built %s-weighted SNN graph: %d vertices, %d edges",
        type,
        graph.n_vertices,
        graph.n_edges,
    )
    return graph


def build_knn_graph_from_neighbors(
    neighbors: IndexLike,
    directed: bool = False,
) -> NeighborGraph:
    """Build an unweighted KNN graph from a neighbour table.

    Parameters
    ----------
    neighbors : NeighborTable or np.ndarray
        (n_obs, k) neighbour indices, nearest first
    directed : bool
        Keep every ``(i, neighbour)`` edge. Otherwise mutual listings
        collapse into one undirected edge (first-seen orientation).

    Returns
    -------
    NeighborGraph
        Unweighted graph
    """
    index = _as_index(neighbors)
    n_obs, k = index.shape

    edges = np.column_stack([
        np.repeat(np.arange(n_obs, dtype=np.int64), k),
        index.ravel(),
    ])
    if not directed:
        edges, _ = simplify_edges(edges)

    graph = NeighborGraph(n_vertices=n_obs, edges=edges, directed=directed)
    logger.info(
        "Built %s KNN graph: %d vertices, %d edges",
        "directed" if directed else "undirected",
        graph.n_vertices,
        graph.n_edges,
    )
    return graph
