"""Unit tests for block partitioning and chunked execution."""

import pytest

from cellgraph.core.graph import ParallelConfig, partition_indices, run_chunked


def _block(start, stop):
    return list(range(start, stop))


class TestPartitionIndices:
    """Tests for partition_indices."""

    @pytest.mark.parametrize("n_items,n_chunks", [(10, 3), (7, 7), (5, 12), (1, 4)])
    def test_covers_every_index_once(self, n_items, n_chunks):
        bounds = partition_indices(n_items, n_chunks)
        covered = [i for start, stop in bounds for i in range(start, stop)]
        assert covered == list(range(n_items))
        assert len(bounds) == min(n_items, n_chunks)

    def test_balanced_sizes(self):
        sizes = [stop - start for start, stop in partition_indices(10, 3)]
        assert sizes == [4, 3, 3]

    def test_empty(self):
        assert partition_indices(0, 4) == []


class TestRunChunked:
    """Tests for run_chunked."""

    def test_serial_default(self):
        blocks = run_chunked(_block, 5)
        assert blocks == [[0, 1, 2, 3, 4]]

    def test_chunk_size_serial(self):
        blocks = run_chunked(_block, 7, ParallelConfig(n_jobs=1, chunk_size=3))
        assert [b for block in blocks for b in block] == list(range(7))
        assert len(blocks) == 3

    def test_threaded_results_in_block_order(self):
        config = ParallelConfig(n_jobs=3, backend="threading", chunk_size=4)
        blocks = run_chunked(_block, 23, config)
        assert [b for block in blocks for b in block] == list(range(23))

    def test_no_items(self):
        assert run_chunked(_block, 0, ParallelConfig(n_jobs=2)) == []
