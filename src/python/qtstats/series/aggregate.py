"""
===============================================================================
QTSTATS - Pointwise Aggregation of QTS Samples
===============================================================================
Lifts the per-grid-point manifold estimators to whole time series: given N
quaternion time series on the same grid of G points, returns one QTS whose
value at grid point i is the geometric mean (or median) of the N rotations
observed at point i.

The output is a deep copy of the first input (same time column, index and
attrs) with its quaternion columns overwritten, tagged as a QTS. Inputs are
never modified.

Grid points are independent, so ``n_jobs > 1`` splits the grid into
disjoint contiguous blocks handled by a multiprocessing Pool; only the
driver writes into the output frame.
===============================================================================
"""

import logging
from multiprocessing import Pool
from typing import Callable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from qtstats.core.constants import (
    MEAN_MAX_ITERATIONS, MEAN_TOLERANCE, MEDIAN_MAX_ITERATIONS,
    MEDIAN_TOLERANCE
)
from qtstats.core.quaternion import Quaternion
from qtstats.manifold.aggregation import geometric_mean, geometric_median
from qtstats.series.qts import (
    as_qts, grid_size, quaternion_matrix, with_quaternions
)

logger = logging.getLogger(__name__)

Aggregator = Callable[..., Quaternion]


def _validate_inputs(inputs: Sequence[pd.DataFrame]) -> List[pd.DataFrame]:
    """
    Coerce the inputs to QTS and check they share one grid size.

    Raises
    ------
    ValueError
        If no series is given or the grid sizes differ.
    """
    series = [as_qts(s) for s in inputs]
    if not series:
        raise ValueError("Cannot aggregate an empty list of QTS.")

    expected = grid_size(series[0])
    for k, s in enumerate(series[1:], start=1):
        if grid_size(s) != expected:
            raise ValueError(
                f"QTS {k} has {grid_size(s)} grid points but QTS 0 has "
                f"{expected}; series must be aligned on a common grid "
                "before aggregation."
            )
    return series


def _aggregate_block(args: Tuple[Aggregator, np.ndarray, float, int]
                     ) -> np.ndarray:
    """
    Aggregate a (G_block, N, 4) stack into a (G_block, 4) array.

    Module-level so that multiprocessing.Pool can pickle it.
    """
    aggregator, stacked, tolerance, max_iterations = args
    out = np.empty((stacked.shape[0], 4))
    for i in range(stacked.shape[0]):
        out[i] = aggregator(stacked[i], tolerance=tolerance,
                            max_iterations=max_iterations).components
    return out


def _aggregate_series(inputs: Sequence[pd.DataFrame], aggregator: Aggregator,
                      label: str, tolerance: float, max_iterations: int,
                      n_jobs: int) -> pd.DataFrame:
    if n_jobs < 1:
        raise ValueError(f"n_jobs must be at least 1, got {n_jobs}")

    series = _validate_inputs(inputs)
    n_series = len(series)
    n_grid = grid_size(series[0])
    logger.info("Computing pointwise geometric %s of %d QTS on %d grid points",
                label, n_series, n_grid)

    # stacked[i, j] is the rotation of series j at grid point i
    stacked = np.stack([quaternion_matrix(s) for s in series], axis=1)

    n_workers = min(n_jobs, n_grid)
    if n_workers > 1:
        blocks = np.array_split(stacked, n_workers, axis=0)
        tasks = [(aggregator, block, tolerance, max_iterations)
                 for block in blocks]
        with Pool(processes=n_workers) as pool:
            results = pool.map(_aggregate_block, tasks)
        values = np.concatenate(results, axis=0)
    else:
        values = _aggregate_block((aggregator, stacked, tolerance,
                                   max_iterations))

    return with_quaternions(series[0], values)


def mean_series(inputs: Sequence[pd.DataFrame],
                tolerance: float = MEAN_TOLERANCE,
                max_iterations: int = MEAN_MAX_ITERATIONS,
                n_jobs: int = 1) -> pd.DataFrame:
    """
    Pointwise geometric mean of a sample of aligned QTS.

    Parameters
    ----------
    inputs : sequence of pd.DataFrame
        N >= 1 quaternion time series sharing the same number of grid
        points. Frames that are not yet tagged are coerced with ``as_qts``.
    tolerance, max_iterations : float, int
        Termination settings forwarded to ``geometric_mean``.
    n_jobs : int
        Number of worker processes. 1 (default) runs in-process.

    Returns
    -------
    pd.DataFrame
        QTS shaped like the first input holding the pointwise means. An
        untagged first input keeps its extra columns, placed after the QTS
        columns.

    Raises
    ------
    ValueError
        If ``inputs`` is empty or the grid sizes differ.
    """
    return _aggregate_series(inputs, geometric_mean, 'mean', tolerance,
                             max_iterations, n_jobs)


def median_series(inputs: Sequence[pd.DataFrame],
                  tolerance: float = MEDIAN_TOLERANCE,
                  max_iterations: int = MEDIAN_MAX_ITERATIONS,
                  n_jobs: int = 1) -> pd.DataFrame:
    """
    Pointwise geometric median of a sample of aligned QTS.

    Same contract as ``mean_series`` with ``geometric_median`` at each grid
    point.
    """
    return _aggregate_series(inputs, geometric_median, 'median', tolerance,
                             max_iterations, n_jobs)
