"""Graph construction pipeline for single-cell expression data.

Provides the matrix-level entry points ``build_snn_graph`` and
``build_knn_graph`` and a config-driven ``GraphEngine`` that also works on
AnnData objects and clusters the resulting graph.

Pipeline: subset features -> orient -> centered SVD -> k-NN -> graph
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union
import logging
import time

import numpy as np
import pandas as pd

from .builder import build_knn_graph_from_neighbors, build_snn_graph_from_neighbors
from .clustering import ClusteringResult, cluster_graph
from .config import GraphConfig
from .exceptions import InvalidDimensionError, InvalidParameterError
from .graph import NeighborGraph
from .matrix import SubsetLike, as_observation_matrix
from .neighbors import KnnBackend, NeighborTable, find_knn
from .parallel import ParallelConfig
from .reduction import reduce_dimensions

logger = logging.getLogger(__name__)

GRAPH_KINDS = ("snn", "knn")

_UNSET: Any = object()


def setup_knn_data(
    x: Any,
    k: int = 10,
    d: Optional[int] = 50,
    transposed: bool = False,
    pc_approx: bool = False,
    svd_args: Optional[Dict[str, Any]] = None,
    subset_row: Optional[SubsetLike] = None,
    backend: Union[str, KnnBackend] = KnnBackend.EXACT,
    backend_args: Optional[Dict[str, Any]] = None,
    parallel: Optional[ParallelConfig] = None,
) -> NeighborTable:
    """Subset, orient and reduce ``x``, then find nearest neighbours.

    Parameters
    ----------
    x : MatrixLike
        Expression matrix, features x observations unless ``transposed``
    k : int
        Number of nearest neighbours
    d : int, optional
        Number of principal components. None (or NaN) searches the full
        feature space.
    transposed : bool
        Whether rows of ``x`` are observations
    pc_approx : bool
        Use the approximate SVD solver
    svd_args : Dict[str, Any], optional
        Extra arguments for the approximate SVD solver
    subset_row : SubsetLike, optional
        Features to use
    backend : str or KnnBackend
        Neighbour search backend
    backend_args : Dict[str, Any], optional
        Backend constructor arguments
    parallel : ParallelConfig, optional
        Worker pool configuration (serial if None)

    Returns
    -------
    NeighborTable
        Neighbour indices per observation (distances dropped)
    """
    mat = as_observation_matrix(x, transposed=transposed, subset_row=subset_row)
    logger.info("Input matrix: %d observations x %d features", *mat.shape)

    coords = reduce_dimensions(mat, d, approximate=pc_approx, extra_args=svd_args)
    return find_knn(
        coords,
        k,
        backend=backend,
        parallel=parallel,
        get_distance=False,
        backend_args=backend_args,
    )


def build_snn_graph(
    x: Any,
    k: int = 10,
    d: Optional[int] = 50,
    type: str = "rank",
    transposed: bool = False,
    pc_approx: bool = False,
    svd_args: Optional[Dict[str, Any]] = None,
    subset_row: Optional[SubsetLike] = None,
    backend: Union[str, KnnBackend] = KnnBackend.EXACT,
    backend_args: Optional[Dict[str, Any]] = None,
    parallel: Optional[ParallelConfig] = None,
    prune_zero: bool = False,
) -> NeighborGraph:
    """Build a shared-nearest-neighbour graph.

    Cells are joined when they share at least one neighbour (each cell
    counting as its own closest neighbour), with weights from the ranks
    (``type="rank"``) or the number (``type="number"``) of shared
    neighbours. See ``setup_knn_data`` for the remaining parameters.

    Returns
    -------
    NeighborGraph
        Undirected weighted graph with one vertex per cell
    """
    if type not in ("rank", "number"):
        raise InvalidParameterError(
            f"Unknown SNN weighting type {type!r}; choose from ['rank', 'number']"
        )
    table = setup_knn_data(
        x,
        k=k,
        d=d,
        transposed=transposed,
        pc_approx=pc_approx,
        svd_args=svd_args,
        subset_row=subset_row,
        backend=backend,
        backend_args=backend_args,
        parallel=parallel,
    )
    return build_snn_graph_from_neighbors(
        table, type=type, prune_zero=prune_zero, parallel=parallel
    )


def build_knn_graph(
    x: Any,
    k: int = 10,
    d: Optional[int] = 50,
    directed: bool = False,
    transposed: bool = False,
    pc_approx: bool = False,
    svd_args: Optional[Dict[str, Any]] = None,
    subset_row: Optional[SubsetLike] = None,
    backend: Union[str, KnnBackend] = KnnBackend.EXACT,
    backend_args: Optional[Dict[str, Any]] = None,
    parallel: Optional[ParallelConfig] = None,
) -> NeighborGraph:
    """Build a k-nearest-neighbour graph.

    Each cell is joined to its ``k`` nearest neighbours. Undirected unless
    ``directed`` is True. See ``setup_knn_data`` for the remaining
    parameters.

    Returns
    -------
    NeighborGraph
        Unweighted graph with one vertex per cell
    """
    table = setup_knn_data(
        x,
        k=k,
        d=d,
        transposed=transposed,
        pc_approx=pc_approx,
        svd_args=svd_args,
        subset_row=subset_row,
        backend=backend,
        backend_args=backend_args,
        parallel=parallel,
    )
    return build_knn_graph_from_neighbors(table, directed=directed)


class GraphEngine:
    """Config-driven graph construction and clustering.

    Parameters
    ----------
    config : GraphConfig, optional
        Graph configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, creates default logger.

    Example
    -------
    >>> from cellgraph.core.graph import GraphEngine, GraphConfig
    >>> engine = GraphEngine(GraphConfig())
    >>> graph = engine.build_snn_graph(counts)
    >>> result = engine.cluster(graph)
    """

    def __init__(
        self,
        config: Optional[GraphConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or GraphConfig()
        self.logger = logger or logging.getLogger(__name__)

    def _search_kwargs(
        self,
        k: Optional[int],
        d: Any,
        pc_approx: Optional[bool],
        backend: Optional[str],
    ) -> Dict[str, Any]:
        red = self.config.reduction
        nbr = self.config.neighbors
        return {
            "k": k if k is not None else nbr.k,
            "d": red.d if d is _UNSET else d,
            "pc_approx": pc_approx if pc_approx is not None else red.approximate,
            "svd_args": red.svd_args,
            "backend": backend if backend is not None else nbr.backend,
            "backend_args": nbr.backend_args,
            "parallel": self.config.parallel,
        }

    def build_snn_graph(
        self,
        x: Any,
        transposed: bool = False,
        subset_row: Optional[SubsetLike] = None,
        k: Optional[int] = None,
        d: Any = _UNSET,
        type: Optional[str] = None,
        pc_approx: Optional[bool] = None,
        backend: Optional[str] = None,
    ) -> NeighborGraph:
        """Build an SNN graph, using config defaults where not specified.

        Parameters
        ----------
        x : MatrixLike
            Expression matrix, features x observations unless ``transposed``
        transposed : bool
            Whether rows of ``x`` are observations
        subset_row : SubsetLike, optional
            Features to use
        k : int, optional
            Number of neighbours. Uses config default if None.
        d : int, optional
            Number of PCs; pass None to disable reduction. Uses config
            default if omitted.
        type : str, optional
            "rank" or "number". Uses config default if None.
        pc_approx : bool, optional
            Approximate SVD. Uses config default if None.
        backend : str, optional
            Neighbour backend. Uses config default if None.

        Returns
        -------
        NeighborGraph
        """
        kwargs = self._search_kwargs(k, d, pc_approx, backend)
        snn_type = type if type is not None else self.config.snn.type
        self.logger.info(
            "Building SNN graph: k=%d, d=%s, type=%s, backend=%s",
            kwargs["k"],
            kwargs["d"],
            snn_type,
            kwargs["backend"],
        )
        return build_snn_graph(
            x,
            type=snn_type,
            transposed=transposed,
            subset_row=subset_row,
            prune_zero=self.config.snn.prune_zero,
            **kwargs,
        )

    def build_knn_graph(
        self,
        x: Any,
        transposed: bool = False,
        subset_row: Optional[SubsetLike] = None,
        k: Optional[int] = None,
        d: Any = _UNSET,
        directed: Optional[bool] = None,
        pc_approx: Optional[bool] = None,
        backend: Optional[str] = None,
    ) -> NeighborGraph:
        """Build a KNN graph, using config defaults where not specified."""
        kwargs = self._search_kwargs(k, d, pc_approx, backend)
        directed = directed if directed is not None else self.config.knn.directed
        self.logger.info(
            "Building KNN graph: k=%d, d=%s, directed=%s, backend=%s",
            kwargs["k"],
            kwargs["d"],
            directed,
            kwargs["backend"],
        )
        return build_knn_graph(
            x,
            directed=directed,
            transposed=transposed,
            subset_row=subset_row,
            **kwargs,
        )

    def _resolve_var_subset(
        self,
        adata: Any,  # AnnData
        subset_var: Optional[Union[str, SubsetLike]],
    ) -> Optional[np.ndarray]:
        if subset_var is None:
            return None

        if isinstance(subset_var, str):
            if subset_var not in adata.var:
                raise InvalidDimensionError(
                    f"Column '{subset_var}' not found in adata.var"
                )
            self.logger.info("Subsetting features by adata.var['%s']", subset_var)
            return adata.var[subset_var].to_numpy(dtype=bool)

        subset = np.asarray(subset_var)
        if subset.dtype.kind in ("U", "S", "O"):
            positions = adata.var_names.get_indexer(subset.astype(str))
            if (positions < 0).any():
                missing = subset[positions < 0][:5].tolist()
                raise InvalidDimensionError(f"Features not found in var_names: {missing}")
            return positions
        return subset

    def build_from_adata(
        self,
        adata: Any,  # AnnData
        kind: str = "snn",
        use_rep: Optional[str] = None,
        layer: Optional[str] = None,
        subset_var: Optional[Union[str, SubsetLike]] = None,
        key_added: Optional[str] = None,
        **kwargs: Any,
    ) -> NeighborGraph:
        """Build a graph from an AnnData object and store its adjacency.

        Parameters
        ----------
        adata : AnnData
            Input AnnData object (modified in place)
        kind : str
            "snn" or "knn"
        use_rep : str, optional
            Key in adata.obsm with a precomputed embedding. Skips the SVD.
        layer : str, optional
            Expression layer. Falls back to X if not found.
        subset_var : str or SubsetLike, optional
            Features to use: a boolean column of adata.var, feature names,
            a mask or positions
        key_added : str, optional
            Prefix for adata.obsp / adata.uns keys. Defaults to ``kind``.
        **kwargs
            Overrides forwarded to ``build_snn_graph`` / ``build_knn_graph``

        Returns
        -------
        NeighborGraph
        """
        if kind not in GRAPH_KINDS:
            raise InvalidParameterError(
                f"Unknown graph kind {kind!r}; choose from {list(GRAPH_KINDS)}"
            )
        key_added = key_added or kind

        if use_rep is not None:
            if use_rep not in adata.obsm:
                raise KeyError(f"Representation '{use_rep}' not found in adata.obsm")
            self.logger.info("Using adata.obsm['%s'] without further reduction", use_rep)
            matrix = adata.obsm[use_rep]
            if isinstance(matrix, pd.DataFrame):
                matrix = matrix.to_numpy()
            subset_row = None
            kwargs["d"] = None
        else:
            if layer and layer in adata.layers:
                matrix = adata.layers[layer]
                self.logger.info("Using layer '%s'", layer)
            else:
                if layer:
                    self.logger.warning(
                        "Requested layer '%s' not found; falling back to AnnData.X", layer
                    )
                matrix = adata.X
                layer = None
            subset_row = self._resolve_var_subset(adata, subset_var)

        start = time.time()
        builder = self.build_snn_graph if kind == "snn" else self.build_knn_graph
        graph = builder(matrix, transposed=True, subset_row=subset_row, **kwargs)

        conn_key = f"{key_added}_connectivities"
        adata.obsp[conn_key] = graph.to_adjacency()
        params = {"kind": kind, "use_rep": use_rep, "layer": layer, **kwargs}
        adata.uns[key_added] = {
            "connectivities_key": conn_key,
            "params": {k: v for k, v in params.items() if v is not None},
            "stats": graph.summary(),
        }
        self.logger.info(
            "Stored %d-edge %s graph in adata.obsp['%s'] (%.1fs)",
            graph.n_edges,
            kind.upper(),
            conn_key,
            time.time() - start,
        )
        return graph

    def cluster(
        self,
        graph: NeighborGraph,
        method: Optional[str] = None,
        resolution: Optional[float] = None,
        random_seed: Optional[int] = None,
    ) -> ClusteringResult:
        """Cluster a graph, using config defaults where not specified."""
        cfg = self.config.clustering
        method = method if method is not None else cfg.method
        resolution = resolution if resolution is not None else cfg.resolution
        random_seed = random_seed if random_seed is not None else cfg.random_seed

        self.logger.info(
            "Clustering graph (%d vertices) with %s, resolution=%.3f",
            graph.n_vertices,
            method,
            resolution,
        )
        return cluster_graph(
            graph,
            method=method,
            resolution=resolution,
            random_seed=random_seed,
            walktrap_steps=cfg.walktrap_steps,
        )

    def run(
        self,
        adata: Any,  # AnnData
        cluster_key: str = "snn_cluster",
        kind: str = "snn",
        use_rep: Optional[str] = None,
        layer: Optional[str] = None,
        subset_var: Optional[Union[str, SubsetLike]] = None,
    ) -> ClusteringResult:
        """Build a graph from AnnData and store cluster labels in obs.

        Returns
        -------
        ClusteringResult
            Clustering result with cluster statistics
        """
        graph = self.build_from_adata(
            adata,
            kind=kind,
            use_rep=use_rep,
            layer=layer,
            subset_var=subset_var,
        )
        result = self.cluster(graph)
        result.cluster_key = cluster_key

        adata.obs[cluster_key] = pd.Categorical(
            result.labels.astype(str),
            categories=[str(i) for i in range(result.n_clusters)],
        )
        return result
