"""Configuration classes for graph construction.

All parameters are configurable so the same pipeline can run on raw
expression matrices or on precomputed embeddings.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .parallel import ParallelConfig


@dataclass
class ReductionConfig:
    """Configuration for the centered truncated SVD.

    Attributes
    ----------
    d : int, optional
        Number of principal components. None disables reduction.
    approximate : bool
        Use the iterative (Lanczos) solver instead of a full SVD
    svd_args : Dict[str, Any]
        Extra keyword arguments for the approximate solver
    """

    d: Optional[int] = 50
    approximate: bool = False
    svd_args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ReductionConfig":
        """Create ReductionConfig from dictionary."""
        return cls(
            d=data.get("d", 50),
            approximate=data.get("approximate", False),
            svd_args=dict(data.get("svd_args") or {}),
        )


@dataclass
class NeighborConfig:
    """Configuration for the nearest-neighbour search.

    Attributes
    ----------
    k : int
        Number of nearest neighbours per cell
    backend : str
        "exact" (scikit-learn) or "approximate" (pynndescent)
    backend_args : Dict[str, Any]
        Extra keyword arguments for the backend
    """

    k: int = 10
    backend: str = "exact"
    backend_args: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NeighborConfig":
        """Create NeighborConfig from dictionary."""
        return cls(
            k=data.get("k", 10),
            backend=data.get("backend", "exact"),
            backend_args=dict(data.get("backend_args") or {}),
        )


@dataclass
class SNNConfig:
    """Configuration for SNN edge weighting.

    Attributes
    ----------
    type : str
        "rank" or "number"
    prune_zero : bool
        Drop rank-mode edges whose weight is zero
    """

    type: str = "rank"
    prune_zero: bool = False


@dataclass
class KNNConfig:
    """Configuration for the plain KNN graph."""

    directed: bool = False


@dataclass
class ClusterConfig:
    """Configuration for community detection on the graph.

    Attributes
    ----------
    method : str
        "walktrap", "leiden" or "louvain"
    resolution : float
        Resolution for leiden/louvain
    random_seed : int
        Random seed for reproducibility
    walktrap_steps : int
        Random walk length for walktrap
    """

    method: str = "walktrap"
    resolution: float = 1.0
    random_seed: int = 1337
    walktrap_steps: int = 4


@dataclass
class GraphConfig:
    """Master configuration for graph construction and clustering.

    Attributes
    ----------
    reduction : ReductionConfig
        Dimensionality reduction configuration
    neighbors : NeighborConfig
        Neighbour search configuration
    snn : SNNConfig
        SNN weighting configuration
    knn : KNNConfig
        KNN graph configuration
    clustering : ClusterConfig
        Community detection configuration
    parallel : ParallelConfig
        Worker pool configuration
    """

    reduction: ReductionConfig = field(default_factory=ReductionConfig)
    neighbors: NeighborConfig = field(default_factory=NeighborConfig)
    snn: SNNConfig = field(default_factory=SNNConfig)
    knn: KNNConfig = field(default_factory=KNNConfig)
    clustering: ClusterConfig = field(default_factory=ClusterConfig)
    parallel: ParallelConfig = field(default_factory=ParallelConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphConfig":
        """Create GraphConfig from a (possibly partial) dictionary."""
        # Handle nested graph section
        if "graph" in data:
            data = data["graph"] or {}

        return cls(
            reduction=ReductionConfig.from_dict(data.get("reduction", {}) or {}),
            neighbors=NeighborConfig.from_dict(data.get("neighbors", {}) or {}),
            snn=SNNConfig(**(data.get("snn", {}) or {})),
            knn=KNNConfig(**(data.get("knn", {}) or {})),
            clustering=ClusterConfig(**(data.get("clustering", {}) or {})),
            parallel=ParallelConfig.from_dict(data.get("parallel", {}) or {}),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> "GraphConfig":
        """Load configuration from YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "GraphConfig":
        """Create default configuration."""
        return cls()

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "reduction": {
                "d": self.reduction.d,
                "approximate": self.reduction.approximate,
                "svd_args": dict(self.reduction.svd_args),
            },
            "neighbors": {
                "k": self.neighbors.k,
                "backend": self.neighbors.backend,
                "backend_args": dict(self.neighbors.backend_args),
            },
            "snn": {
                "type": self.snn.type,
                "prune_zero": self.snn.prune_zero,
            },
            "knn": {
                "directed": self.knn.directed,
            },
            "clustering": {
                "method": self.clustering.method,
                "resolution": self.clustering.resolution,
                "random_seed": self.clustering.random_seed,
                "walktrap_steps": self.clustering.walktrap_steps,
            },
            "parallel": self.parallel.to_dict(),
        }
