"""Unit tests for centered SVD and dimensionality reduction."""

import logging

import numpy as np
import pytest
from scipy import sparse
from scipy.spatial.distance import pdist

from cellgraph.core.graph import (
    InvalidDimensionError,
    NumericalError,
    centered_svd,
    reduce_dimensions,
    svd_to_pca,
)
from cellgraph.core.graph.reduction import center


@pytest.fixture
def obs_matrix():
    rng = np.random.default_rng(1)
    return rng.normal(size=(50, 8)) + rng.uniform(0, 5, size=8)


class TestCenteredSVD:
    """Tests for centered_svd."""

    def test_values_decreasing(self, obs_matrix):
        svd = centered_svd(obs_matrix, max_rank=5)
        assert svd.rank == 5
        assert np.all(np.diff(svd.d) <= 0)
        assert svd.v is None

    def test_matches_numpy_on_centred_data(self, obs_matrix):
        svd = centered_svd(obs_matrix, max_rank=8)
        expected = np.linalg.svd(obs_matrix - obs_matrix.mean(axis=0), compute_uv=False)
        np.testing.assert_allclose(svd.d, expected, rtol=1e-10)

    def test_keep_right(self, obs_matrix):
        svd = centered_svd(obs_matrix, max_rank=3, keep_right=True)
        assert svd.v.shape == (8, 3)
        np.testing.assert_allclose(svd.v.T @ svd.v, np.eye(3), atol=1e-10)

    def test_approximate_matches_exact(self, obs_matrix):
        exact = centered_svd(obs_matrix, max_rank=3)
        approx = centered_svd(obs_matrix, max_rank=3, approximate=True)
        np.testing.assert_allclose(approx.d, exact.d, rtol=1e-6)
        np.testing.assert_allclose(np.abs(approx.u), np.abs(exact.u), atol=1e-6)

    def test_approximate_sparse_matches_dense(self):
        x = sparse.random(60, 20, density=0.2, format="csr", random_state=3)
        approx = centered_svd(x, max_rank=4, approximate=True)
        exact = centered_svd(x.toarray(), max_rank=4)
        np.testing.assert_allclose(approx.d, exact.d, rtol=1e-6)

    def test_approximate_full_rank_falls_back(self, obs_matrix, caplog):
        with caplog.at_level(logging.WARNING):
            svd = centered_svd(obs_matrix, max_rank=8, approximate=True)
        assert svd.rank == 8
        assert "falling back to exact SVD" in caplog.text

    def test_full_rank_scores_preserve_distances(self, obs_matrix):
        scores = svd_to_pca(centered_svd(obs_matrix, max_rank=8), 8)
        np.testing.assert_allclose(pdist(scores), pdist(obs_matrix), rtol=1e-8)


class TestReduceDimensions:
    """Tests for reduce_dimensions."""

    def test_none_bypasses(self, obs_matrix):
        out = reduce_dimensions(obs_matrix, None)
        np.testing.assert_array_equal(out, obs_matrix)

    def test_nan_bypasses(self, obs_matrix):
        out = reduce_dimensions(obs_matrix, float("nan"))
        np.testing.assert_array_equal(out, obs_matrix)

    def test_none_densifies_sparse(self):
        x = sparse.random(10, 4, density=0.5, format="csr", random_state=0)
        out = reduce_dimensions(x, None)
        assert isinstance(out, np.ndarray)
        np.testing.assert_array_equal(out, x.toarray())

    def test_d_at_feature_count_returns_centred(self, obs_matrix):
        out = reduce_dimensions(obs_matrix, 8)
        np.testing.assert_allclose(out, center(obs_matrix))
        np.testing.assert_allclose(out.mean(axis=0), 0.0, atol=1e-12)

    def test_d_above_feature_count_returns_centred(self, obs_matrix):
        out = reduce_dimensions(obs_matrix, 50)
        assert out.shape == obs_matrix.shape

    def test_output_shape(self, obs_matrix):
        out = reduce_dimensions(obs_matrix, 3)
        assert out.shape == (50, 3)
        variances = out.var(axis=0)
        assert np.all(np.diff(variances) <= 1e-12)

    def test_integral_float_accepted(self, obs_matrix):
        assert reduce_dimensions(obs_matrix, 3.0).shape == (50, 3)

    @pytest.mark.parametrize("d", [0, -1, 2.5, "3", True, float("inf")])
    def test_invalid_d(self, obs_matrix, d):
        with pytest.raises(InvalidDimensionError):
            reduce_dimensions(obs_matrix, d)

    def test_invalid_d_is_value_error(self, obs_matrix):
        with pytest.raises(ValueError):
            reduce_dimensions(obs_matrix, -5)

    def test_approximate_non_convergence(self):
        rng = np.random.default_rng(5)
        x = rng.normal(size=(120, 60))
        with pytest.raises(NumericalError, match="did not converge"):
            reduce_dimensions(x, 20, approximate=True, extra_args={"maxiter": 1})

    def test_non_convergence_is_runtime_error(self):
        rng = np.random.default_rng(5)
        x = rng.normal(size=(120, 60))
        with pytest.raises(RuntimeError):
            centered_svd(x, max_rank=20, approximate=True, extra_args={"maxiter": 1})
