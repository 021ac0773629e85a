"""Parallel execution helpers for neighbour search.

Work is split into contiguous, disjoint blocks of observation indices and
fanned out over a joblib pool. Each worker returns its own block, and the
blocks are reassembled in index order, so the output never depends on
``n_jobs`` or on how the points were partitioned.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple, TypeVar, Union
import logging

from joblib import Parallel, delayed, effective_n_jobs

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class ParallelConfig:
    """Worker pool configuration passed explicitly into each call.

    Attributes
    ----------
    n_jobs : int
        Number of parallel jobs. 1 runs serially, -1 uses all cores.
    backend : str
        joblib backend ("loky", "threading", "multiprocessing")
    batch_size : int or str
        Batch size for joblib (default: "auto")
    chunk_size : int, optional
        Points per work block. If None, one block per job.
    """

    n_jobs: int = 1
    backend: str = "loky"
    batch_size: Union[int, str] = "auto"
    chunk_size: Optional[int] = None

    @classmethod
    def serial(cls) -> "ParallelConfig":
        """Configuration that never spawns workers."""
        return cls(n_jobs=1)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ParallelConfig":
        """Create ParallelConfig from dictionary."""
        return cls(
            n_jobs=data.get("n_jobs", 1),
            backend=data.get("backend", "loky"),
            batch_size=data.get("batch_size", "auto"),
            chunk_size=data.get("chunk_size"),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "n_jobs": self.n_jobs,
            "backend": self.backend,
            "batch_size": self.batch_size,
            "chunk_size": self.chunk_size,
        }

    @property
    def is_serial(self) -> bool:
        return self.n_jobs == 1


def partition_indices(n_items: int, n_chunks: int) -> List[Tuple[int, int]]:
    """Split ``range(n_items)`` into at most ``n_chunks`` contiguous blocks.

    Parameters
    ----------
    n_items : int
        Total number of items
    n_chunks : int
        Requested number of blocks

    Returns
    -------
    List[Tuple[int, int]]
        (start, stop) pairs covering every index exactly once, in order
    """
    if n_items <= 0:
        return []
    n_chunks = max(1, min(n_chunks, n_items))
    base, extra = divmod(n_items, n_chunks)

    bounds = []
    start = 0
    for i in range(n_chunks):
        stop = start + base + (1 if i < extra else 0)
        bounds.append((start, stop))
        start = stop
    return bounds


def _resolve_n_chunks(n_items: int, config: ParallelConfig) -> int:
    if config.chunk_size:
        return -(-n_items // max(1, int(config.chunk_size)))
    if config.is_serial:
        return 1
    return effective_n_jobs(config.n_jobs)


def run_chunked(
    func: Callable[[int, int], T],
    n_items: int,
    config: Optional[ParallelConfig] = None,
) -> List[T]:
    """Apply ``func(start, stop)`` to disjoint blocks of ``range(n_items)``.

    Parameters
    ----------
    func : Callable[[int, int], T]
        Worker function for one block
    n_items : int
        Number of items to partition
    config : ParallelConfig, optional
        Pool configuration. Serial if None.

    Returns
    -------
    List[T]
        One result per block, ordered by block start
    """
    config = config or ParallelConfig.serial()
    bounds = partition_indices(n_items, _resolve_n_chunks(n_items, config))

    if config.is_serial or len(bounds) <= 1:
        return [func(start, stop) for start, stop in bounds]

    logger.debug(
        "Dispatching %d blocks over %s workers (%s backend)",
        len(bounds),
        config.n_jobs,
        config.backend,
    )
    return Parallel(
        n_jobs=config.n_jobs,
        backend=config.backend,
        batch_size=config.batch_size,
        verbose=0,
    )(delayed(func)(start, stop) for start, stop in bounds)
