"""cellgraph: neighbour graphs for single-cell RNA-seq clustering.

This package provides tools for:
- Centered truncated SVD (exact or approximate) of expression matrices
- Exact and approximate k-nearest-neighbour search
- Shared-nearest-neighbour graphs with rank- or count-based weights
- Plain k-nearest-neighbour graphs (directed or undirected)
- Community detection on the resulting graphs

Parameters can be loaded from YAML configuration files.

Example usage:
    >>> from cellgraph import build_snn_graph
    >>> from cellgraph.core.graph import cluster_graph
    >>>
    >>> # counts: genes x cells
    >>> graph = build_snn_graph(counts, k=10, d=50)
    >>> clusters = cluster_graph(graph).labels
"""

__version__ = "0.1.0"

from .core.graph import (
    GraphConfig,
    GraphEngine,
    NeighborGraph,
    ParallelConfig,
    build_knn_graph,
    build_snn_graph,
)

__all__ = [
    "__version__",
    "GraphConfig",
    "GraphEngine",
    "NeighborGraph",
    "ParallelConfig",
    "build_knn_graph",
    "build_snn_graph",
]
