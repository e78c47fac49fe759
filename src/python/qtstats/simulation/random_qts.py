"""
===============================================================================
QTSTATS - Random QTS Sample Generation
===============================================================================
Draws a sample of quaternion time series scattered around a given mean QTS.

The mean QTS is moved to the tangent space with the pointwise logarithm,
each of the three vector components is perturbed by a zero-mean Gaussian
process with exponential covariance

    C(s, t) = alpha * exp(-beta * |s - t|)

over the time grid, and the perturbed log-series are mapped back with the
pointwise exponential. Small ``beta`` gives slowly varying, strongly
correlated noise along the series; ``alpha`` is the variance of each log
component.

The three components use independent draws from the same covariance.
===============================================================================
"""

import logging
from typing import Optional

import numpy as np
import pandas as pd
from scipy.linalg import cholesky

from qtstats.core.constants import (
    DEFAULT_NOISE_DECAY, DEFAULT_NOISE_VARIANCE, TIME_COLUMN
)
from qtstats.series.qts import (
    as_qts, exp_qts, log_qts, quaternion_matrix, with_quaternions
)
from qtstats.series.sample import QTSSample

logger = logging.getLogger(__name__)


def exponential_covariance(time_grid: np.ndarray, alpha: float,
                           beta: float) -> np.ndarray:
    """Covariance matrix alpha * exp(-beta * |t_i - t_j|) on a time grid."""
    t = np.asarray(time_grid, dtype=np.float64)
    return alpha * np.exp(-beta * np.abs(np.subtract.outer(t, t)))


def rnorm_qts(n: int, mean_qts: pd.DataFrame,
              alpha: float = DEFAULT_NOISE_VARIANCE,
              beta: float = DEFAULT_NOISE_DECAY,
              seed: Optional[int] = None) -> QTSSample:
    """
    Generate ``n`` random QTS around ``mean_qts``.

    Parameters
    ----------
    n : int
        Number of series to draw.
    mean_qts : pd.DataFrame
        The QTS the sample is centred on. Its time points must be distinct.
    alpha : float
        Variance of each component of the log-QTS noise.
    beta : float
        Decay rate of the exponential covariance along time.
    seed : int, optional
        Seed for a private ``np.random.RandomState``; draws are reproducible
        for a fixed seed.

    Returns
    -------
    QTSSample
        ``n`` series on the time grid of ``mean_qts``.

    Raises
    ------
    ValueError
        If ``n`` < 1, ``alpha`` <= 0 or ``beta`` < 0.
    """
    if n < 1:
        raise ValueError(f"n must be at least 1, got {n}")
    if alpha <= 0.0:
        raise ValueError(f"alpha must be positive, got {alpha}")
    if beta < 0.0:
        raise ValueError(f"beta must be non-negative, got {beta}")

    mean_qts = as_qts(mean_qts)
    log_mean = log_qts(mean_qts)
    centerline = quaternion_matrix(log_mean)
    time_grid = mean_qts[TIME_COLUMN].to_numpy(dtype=np.float64)
    n_grid = time_grid.shape[0]

    # Lower-triangular factor: noise = L @ standard normal draws
    chol = cholesky(exponential_covariance(time_grid, alpha, beta),
                    lower=True)
    rng = np.random.RandomState(seed)

    logger.info("Drawing %d random QTS on %d grid points "
                "(alpha=%g, beta=%g)", n, n_grid, alpha, beta)

    sample = []
    for _ in range(n):
        noisy = np.zeros((n_grid, 4))
        noisy[:, 1:] = centerline[:, 1:] + chol @ rng.standard_normal((n_grid, 3))
        sample.append(exp_qts(with_quaternions(mean_qts, noisy)))
    return QTSSample(sample)
