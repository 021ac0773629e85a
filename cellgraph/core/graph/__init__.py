"""Neighbour graph construction for single-cell clustering.

Builds shared-nearest-neighbour (SNN) and k-nearest-neighbour (KNN)
graphs from expression matrices or embeddings, and clusters them.

Pipeline
--------
matrix -> feature subset -> centered truncated SVD -> k-NN search -> graph

Example Usage
-------------
>>> from cellgraph.core.graph import build_snn_graph, cluster_graph
>>> graph = build_snn_graph(counts, k=10, d=50, type="rank")
>>> result = cluster_graph(graph, method="walktrap")

Config-driven, on AnnData:

>>> from cellgraph.core.graph import GraphEngine, GraphConfig
>>> engine = GraphEngine(GraphConfig.from_yaml("graph.yaml"))
>>> result = engine.run(adata, cluster_key="snn_cluster")
"""

__version__ = "1.0.0"

# Errors
from .exceptions import (
    GraphBuildError,
    InvalidDimensionError,
    InsufficientDataError,
    InvalidParameterError,
    NumericalError,
)

# Configuration
from .config import (
    ReductionConfig,
    NeighborConfig,
    SNNConfig,
    KNNConfig,
    ClusterConfig,
    GraphConfig,
)
from .parallel import ParallelConfig, partition_indices, run_chunked

# Components
from .matrix import as_observation_matrix
from .reduction import SVDResult, centered_svd, svd_to_pca, reduce_dimensions
from .neighbors import (
    KnnBackend,
    NeighborTable,
    ExactSearch,
    ApproximateSearch,
    make_backend,
    find_knn,
)
from .graph import NeighborGraph, simplify_edges
from .builder import (
    augment_neighbors,
    invert_neighbors,
    snn_edges_rank,
    snn_edges_number,
    build_snn_graph_from_neighbors,
    build_knn_graph_from_neighbors,
)
from .clustering import ClusteringResult, cluster_graph

# Engine
from .engine import (
    GraphEngine,
    setup_knn_data,
    build_snn_graph,
    build_knn_graph,
)

__all__ = [
    # Version
    "__version__",
    # Errors
    "GraphBuildError",
    "InvalidDimensionError",
    "InsufficientDataError",
    "InvalidParameterError",
    "NumericalError",
    # Config
    "ReductionConfig",
    "NeighborConfig",
    "SNNConfig",
    "KNNConfig",
    "ClusterConfig",
    "GraphConfig",
    "ParallelConfig",
    "partition_indices",
    "run_chunked",
    # Components
    "as_observation_matrix",
    "SVDResult",
    "centered_svd",
    "svd_to_pca",
    "reduce_dimensions",
    "KnnBackend",
    "NeighborTable",
    "ExactSearch",
    "ApproximateSearch",
    "make_backend",
    "find_knn",
    "NeighborGraph",
    "simplify_edges",
    "augment_neighbors",
    "invert_neighbors",
    "snn_edges_rank",
    "snn_edges_number",
    "build_snn_graph_from_neighbors",
    "build_knn_graph_from_neighbors",
    "ClusteringResult",
    "cluster_graph",
    # Engine
    "GraphEngine",
    "setup_knn_data",
    "build_snn_graph",
    "build_knn_graph",
]
