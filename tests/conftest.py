"""Pytest configuration and shared fixtures for cellgraph tests."""

import sys
from pathlib import Path

import pytest
import numpy as np
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import mock data generators
from tests.fixtures import (
    create_blob_matrix,
    create_expression_table,
    create_mock_adata,
)


# ============================================================================
# Matrix Fixtures
# ============================================================================


@pytest.fixture
def six_points() -> np.ndarray:
    """Two tight triangles on a line: one feature x six cells."""
    return np.array([[0.0, 1.0, 2.0, 10.0, 11.0, 12.0]])


@pytest.fixture
def six_point_neighbors() -> np.ndarray:
    """k=2 neighbour lists of ``six_points``, nearest first."""
    return np.array([
        [1, 2],
        [0, 2],
        [1, 0],
        [4, 5],
        [3, 5],
        [4, 3],
    ])


@pytest.fixture
def blobs():
    """Three separated groups: (genes x cells matrix, group per cell)."""
    return create_blob_matrix(n_cells=90, n_genes=15, n_groups=3)


@pytest.fixture
def random_points() -> np.ndarray:
    """Unstructured cells x dimensions coordinates."""
    rng = np.random.default_rng(0)
    return rng.normal(size=(80, 4))


@pytest.fixture
def expression_table() -> pd.DataFrame:
    """Labelled genes x cells DataFrame."""
    return create_expression_table(n_cells=60, n_genes=12)


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# ============================================================================
# AnnData Fixtures
# ============================================================================


@pytest.fixture
def mock_adata():
    """Create mock AnnData with 120 cells and 30 genes in 3 groups."""
    return create_mock_adata(n_cells=120, n_genes=30, n_groups=3)


@pytest.fixture
def small_adata():
    """Create small AnnData for quick tests."""
    return create_mock_adata(n_cells=45, n_genes=12, n_groups=3)


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def sample_graph_config(tmp_path) -> Path:
    """Create sample graph configuration file."""
    import yaml

    config = {
        "graph": {
            "reduction": {"d": 5, "approximate": False},
            "neighbors": {"k": 7, "backend": "exact"},
            "snn": {"type": "number"},
            "knn": {"directed": True},
            "clustering": {"method": "leiden", "resolution": 0.8, "random_seed": 7},
            "parallel": {"n_jobs": 2, "backend": "threading"},
        },
    }

    path = tmp_path / "graph.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
