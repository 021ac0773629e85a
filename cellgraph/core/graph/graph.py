"""Graph container returned by the builders.

A ``NeighborGraph`` is an edge list over ``n_vertices`` vertices (vertex id
= observation index) with optional aligned weights. Export helpers convert
it to scipy sparse adjacency, python-igraph and pandas edge tables.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd
from scipy import sparse


def simplify_edges(
    edges: np.ndarray,
    weights: Optional[np.ndarray] = None,
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Collapse undirected duplicates and drop self loops.

    The first occurrence of each unordered pair is kept, with its original
    orientation and weight; later duplicates are discarded, not summed.

    Parameters
    ----------
    edges : np.ndarray
        (n_edges, 2) vertex pairs
    weights : np.ndarray, optional
        Weights aligned with ``edges``

    Returns
    -------
    Tuple[np.ndarray, Optional[np.ndarray]]
        Simplified edges and weights
    """
    edges = np.asarray(edges, dtype=np.int64).reshape(-1, 2)
    keep = edges[:, 0] != edges[:, 1]
    edges = edges[keep]
    if weights is not None:
        weights = np.asarray(weights, dtype=np.float64)[keep]

    if edges.shape[0] == 0:
        return edges, weights

    canonical = np.sort(edges, axis=1)
    _, first = np.unique(canonical, axis=0, return_index=True)
    first = np.sort(first)

    edges = edges[first]
    if weights is not None:
        weights = weights[first]
    return edges, weights


@dataclass
class NeighborGraph:
    """Weighted or unweighted neighbour graph.

    Attributes
    ----------
    n_vertices : int
        Number of vertices (observations)
    edges : np.ndarray
        (n_edges, 2) int64 vertex pairs
    weights : np.ndarray, optional
        (n_edges,) edge weights, None for unweighted graphs
    directed : bool
        Whether edges are ordered pairs
    """

    n_vertices: int
    edges: np.ndarray
    weights: Optional[np.ndarray] = None
    directed: bool = False

    def __post_init__(self):
        self.edges = np.asarray(self.edges, dtype=np.int64).reshape(-1, 2)
        if self.weights is not None:
            self.weights = np.asarray(self.weights, dtype=np.float64)
            if self.weights.shape[0] != self.edges.shape[0]:
                raise ValueError(
                    f"Got {self.weights.shape[0]} weights for {self.edges.shape[0]} edges"
                )

    @property
    def n_edges(self) -> int:
        return int(self.edges.shape[0])

    @property
    def weighted(self) -> bool:
        return self.weights is not None

    def degree(self) -> np.ndarray:
        """Vertex degrees (out-degree for directed graphs)."""
        if self.directed:
            return np.bincount(self.edges[:, 0], minlength=self.n_vertices)
        return np.bincount(self.edges.ravel(), minlength=self.n_vertices)

    def to_adjacency(self) -> sparse.csr_matrix:
        """Sparse adjacency matrix, symmetric for undirected graphs."""
        values = self.weights if self.weighted else np.ones(self.n_edges)
        rows, cols = self.edges[:, 0], self.edges[:, 1]
        if not self.directed:
            rows, cols = np.concatenate([rows, cols]), np.concatenate([cols, rows])
            values = np.concatenate([values, values])
        return sparse.csr_matrix(
            (values, (rows, cols)),
            shape=(self.n_vertices, self.n_vertices),
        )

    def to_igraph(self) -> Any:
        """Convert to a python-igraph ``Graph`` with a ``weight`` attribute."""
        import igraph as ig

        g = ig.Graph(
            n=self.n_vertices,
            edges=self.edges.tolist(),
            directed=self.directed,
        )
        if self.weighted:
            g.es["weight"] = self.weights.tolist()
        return g

    def to_dataframe(self) -> pd.DataFrame:
        """Edge table with ``source``, ``target`` and optional ``weight``."""
        df = pd.DataFrame({"source": self.edges[:, 0], "target": self.edges[:, 1]})
        if self.weighted:
            df["weight"] = self.weights
        return df

    def summary(self) -> Dict[str, Any]:
        """Basic statistics about the graph."""
        degrees = self.degree()
        stats: Dict[str, Any] = {
            "n_vertices": self.n_vertices,
            "n_edges": self.n_edges,
            "directed": self.directed,
            "mean_degree": float(np.mean(degrees)) if self.n_vertices > 0 else 0.0,
            "min_degree": int(np.min(degrees)) if self.n_vertices > 0 else 0,
            "max_degree": int(np.max(degrees)) if self.n_vertices > 0 else 0,
        }
        if self.weighted and self.n_edges > 0:
            stats["min_weight"] = float(self.weights.min())
            stats["max_weight"] = float(self.weights.max())
        return stats
