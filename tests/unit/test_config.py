"""Unit tests for graph configuration classes."""

import pytest

from cellgraph.core.graph import (
    ClusterConfig,
    GraphConfig,
    NeighborConfig,
    ParallelConfig,
    ReductionConfig,
    SNNConfig,
)


class TestReductionConfig:
    """Tests for ReductionConfig dataclass."""

    def test_default_values(self):
        """Test default reduction values."""
        config = ReductionConfig()
        assert config.d == 50
        assert config.approximate is False
        assert config.svd_args == {}

    def test_from_dict_allows_disabling(self):
        """An explicit null d disables the SVD."""
        config = ReductionConfig.from_dict({"d": None, "svd_args": {"tol": 1e-4}})
        assert config.d is None
        assert config.svd_args == {"tol": 1e-4}


class TestNeighborConfig:
    """Tests for NeighborConfig dataclass."""

    def test_default_values(self):
        config = NeighborConfig()
        assert config.k == 10
        assert config.backend == "exact"

    def test_from_dict(self):
        config = NeighborConfig.from_dict({"k": 15, "backend": "approximate"})
        assert config.k == 15
        assert config.backend == "approximate"
        assert config.backend_args == {}


class TestGraphConfig:
    """Tests for GraphConfig master config."""

    def test_default_values(self):
        """Test master config with default values."""
        config = GraphConfig()
        assert config.reduction.d == 50
        assert config.neighbors.k == 10
        assert config.snn == SNNConfig()
        assert config.knn.directed is False
        assert config.clustering == ClusterConfig()
        assert config.parallel.is_serial

    def test_default_classmethod(self):
        assert GraphConfig.default() == GraphConfig()

    def test_from_yaml(self, sample_graph_config):
        """Test loading config from YAML with a top-level graph section."""
        config = GraphConfig.from_yaml(sample_graph_config)
        assert config.reduction.d == 5
        assert config.neighbors.k == 7
        assert config.snn.type == "number"
        assert config.knn.directed is True
        assert config.clustering.method == "leiden"
        assert config.clustering.resolution == 0.8
        assert config.clustering.random_seed == 7
        assert config.parallel.n_jobs == 2
        assert config.parallel.backend == "threading"

    def test_from_yaml_partial(self, tmp_path):
        """Missing sections keep their defaults."""
        path = tmp_path / "partial.yaml"
        path.write_text("neighbors:\n  k: 20\n")
        config = GraphConfig.from_yaml(path)
        assert config.neighbors.k == 20
        assert config.reduction.d == 50
        assert config.snn.type == "rank"

    def test_from_yaml_empty(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert GraphConfig.from_yaml(path) == GraphConfig()

    def test_unknown_key_rejected(self):
        with pytest.raises(TypeError):
            GraphConfig.from_dict({"snn": {"weighting": "rank"}})

    def test_to_dict_round_trip(self, sample_graph_config):
        config = GraphConfig.from_yaml(sample_graph_config)
        assert GraphConfig.from_dict(config.to_dict()) == config


class TestParallelConfig:
    """Tests for ParallelConfig dataclass."""

    def test_serial(self):
        config = ParallelConfig.serial()
        assert config.is_serial
        assert config.chunk_size is None

    def test_from_dict(self):
        config = ParallelConfig.from_dict({"n_jobs": -1, "chunk_size": 100})
        assert config.n_jobs == -1
        assert config.chunk_size == 100
        assert config.backend == "loky"
        assert not config.is_serial
