"""Unit tests for SNN and KNN graph construction from neighbour tables."""

import numpy as np
import pytest

from cellgraph.core.graph import (
    ExactSearch,
    InvalidParameterError,
    NeighborTable,
    ParallelConfig,
    augment_neighbors,
    build_knn_graph_from_neighbors,
    build_snn_graph_from_neighbors,
    invert_neighbors,
    snn_edges_number,
    snn_edges_rank,
)

TRIANGLE_EDGES = [[0, 1], [0, 2], [1, 2], [3, 4], [3, 5], [4, 5]]


def reference_snn(index, mode):
    """Pairwise SNN weights computed directly from the definition."""
    n, k = index.shape
    rank = [{i: 0, **{int(m): r for r, m in enumerate(index[i])}} for i in range(n)]
    edges, weights = [], []
    for i in range(n):
        for j in range(i + 1, n):
            shared = set(rank[i]) & set(rank[j])
            if not shared:
                continue
            edges.append([i, j])
            if mode == "rank":
                best = min(rank[i][m] + rank[j][m] for m in shared)
                weights.append(max(k - 0.5 * best, 0.0))
            else:
                weights.append(float(len(shared)))
    return np.array(edges).reshape(-1, 2), np.array(weights)


@pytest.fixture
def random_neighbors(random_points):
    return ExactSearch().find(random_points, 5).index


class TestAugmentation:
    """Tests for augmented tables and the inverted lookup."""

    def test_augment(self, six_point_neighbors):
        augmented, ranks = augment_neighbors(six_point_neighbors)
        assert augmented.shape == (6, 3)
        np.testing.assert_array_equal(augmented[:, 0], np.arange(6))
        np.testing.assert_array_equal(augmented[2], [2, 1, 0])
        np.testing.assert_array_equal(ranks, [0, 0, 1])

    def test_invert(self, six_point_neighbors):
        table = invert_neighbors(*augment_neighbors(six_point_neighbors))
        hosts, ranks = table.lookup(0)
        listed = dict(zip(hosts.tolist(), ranks.tolist()))
        assert listed == {0: 0, 1: 0, 2: 1}

    def test_invert_covers_all_entries(self, random_neighbors):
        augmented, ranks = augment_neighbors(random_neighbors)
        table = invert_neighbors(augmented, ranks)
        assert table.indptr[-1] == augmented.size
        for m in (0, 17, 79):
            hosts, _ = table.lookup(m)
            expected = np.flatnonzero((augmented == m).any(axis=1))
            np.testing.assert_array_equal(np.sort(hosts), expected)


class TestSNNRank:
    """Tests for rank-weighted SNN edges."""

    def test_two_triangles(self, six_point_neighbors):
        graph = build_snn_graph_from_neighbors(six_point_neighbors, type="rank")
        np.testing.assert_array_equal(graph.edges, TRIANGLE_EDGES)
        np.testing.assert_array_equal(graph.weights, 2.0)
        assert not graph.directed
        assert graph.n_vertices == 6

    def test_matches_reference(self, random_neighbors):
        edges, weights = snn_edges_rank(random_neighbors)
        ref_edges, ref_weights = reference_snn(random_neighbors, "rank")
        np.testing.assert_array_equal(edges, ref_edges)
        np.testing.assert_allclose(weights, ref_weights)

    def test_weights_in_range(self, random_neighbors):
        _, weights = snn_edges_rank(random_neighbors)
        k = random_neighbors.shape[1]
        assert np.all(weights >= 0)
        assert np.all(weights <= k)

    def test_mutual_nearest_neighbours_get_max_weight(self, random_neighbors):
        edges, weights = snn_edges_rank(random_neighbors)
        lookup = {tuple(e): w for e, w in zip(edges.tolist(), weights)}
        k = random_neighbors.shape[1]
        nearest = random_neighbors[:, 0]
        mutual = [(i, int(j)) for i, j in enumerate(nearest) if nearest[j] == i and i < j]
        assert mutual
        for pair in mutual:
            assert lookup[pair] == k

    def test_pairs_ordered_and_unique(self, random_neighbors):
        edges, _ = snn_edges_rank(random_neighbors)
        assert np.all(edges[:, 0] < edges[:, 1])
        assert np.unique(edges, axis=0).shape[0] == edges.shape[0]

    def test_every_listed_neighbour_is_connected(self, random_neighbors):
        edges, _ = snn_edges_rank(random_neighbors)
        pairs = set(map(tuple, edges.tolist()))
        for i, row in enumerate(random_neighbors):
            for j in row:
                assert (min(i, j), max(i, j)) in pairs

    @pytest.mark.parametrize(
        "parallel",
        [
            ParallelConfig(n_jobs=1, chunk_size=9),
            ParallelConfig(n_jobs=4, backend="threading"),
        ],
    )
    def test_partitioning_does_not_change_result(self, random_neighbors, parallel):
        serial = snn_edges_rank(random_neighbors)
        chunked = snn_edges_rank(random_neighbors, parallel=parallel)
        np.testing.assert_array_equal(chunked[0], serial[0])
        np.testing.assert_array_equal(chunked[1], serial[1])

    def test_accepts_neighbor_table(self, six_point_neighbors):
        graph = build_snn_graph_from_neighbors(NeighborTable(index=six_point_neighbors))
        assert graph.n_edges == 6

    def test_prune_zero_keeps_positive_edges(self, random_neighbors):
        kept = build_snn_graph_from_neighbors(random_neighbors, prune_zero=True)
        full = build_snn_graph_from_neighbors(random_neighbors)
        assert np.all(kept.weights > 0)
        assert kept.n_edges == int((full.weights > 0).sum())


class TestSNNNumber:
    """Tests for count-weighted SNN edges."""

    def test_two_triangles(self, six_point_neighbors):
        graph = build_snn_graph_from_neighbors(six_point_neighbors, type="number")
        np.testing.assert_array_equal(graph.edges, TRIANGLE_EDGES)
        np.testing.assert_array_equal(graph.weights, 3.0)

    def test_matches_reference(self, random_neighbors):
        edges, weights = snn_edges_number(random_neighbors)
        ref_edges, ref_weights = reference_snn(random_neighbors, "number")
        np.testing.assert_array_equal(edges, ref_edges)
        np.testing.assert_allclose(weights, ref_weights)

    def test_same_pairs_as_rank(self, random_neighbors):
        rank_edges, _ = snn_edges_rank(random_neighbors)
        number_edges, _ = snn_edges_number(random_neighbors)
        np.testing.assert_array_equal(rank_edges, number_edges)

    def test_unknown_type(self, six_point_neighbors):
        with pytest.raises(InvalidParameterError):
            build_snn_graph_from_neighbors(six_point_neighbors, type="jaccard")

    def test_rejects_1d_index(self):
        with pytest.raises(InvalidParameterError):
            build_snn_graph_from_neighbors(np.arange(5))


class TestKNNGraph:
    """Tests for KNN graph construction."""

    def test_undirected_two_triangles(self, six_point_neighbors):
        graph = build_knn_graph_from_neighbors(six_point_neighbors)
        np.testing.assert_array_equal(graph.edges, TRIANGLE_EDGES)
        assert not graph.weighted
        assert not graph.directed

    def test_directed_out_degree(self, six_point_neighbors):
        graph = build_knn_graph_from_neighbors(six_point_neighbors, directed=True)
        assert graph.directed
        assert graph.n_edges == 12
        np.testing.assert_array_equal(graph.degree(), 2)
        np.testing.assert_array_equal(graph.edges[:2], [[0, 1], [0, 2]])

    def test_undirected_collapses_mutual_pairs(self, random_neighbors):
        directed = build_knn_graph_from_neighbors(random_neighbors, directed=True)
        undirected = build_knn_graph_from_neighbors(random_neighbors)
        pairs = {tuple(sorted(e)) for e in directed.edges.tolist()}
        assert undirected.n_edges == len(pairs)
        assert {tuple(sorted(e)) for e in undirected.edges.tolist()} == pairs
