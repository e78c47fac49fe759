"""
===============================================================================
QTSTATS - Manifold Aggregation of Rotations
===============================================================================
Central tendency of a finite set of rotations, computed on SO(3) rather than
in the flat 4D space of quaternion components.

Two estimators are provided:

    geometric_mean    Frechet / Karcher mean. Minimizes the sum of SQUARED
                      geodesic distances to the samples.
    geometric_median  Geometric median. Minimizes the sum of geodesic
                      distances, which makes it robust to outlying samples.

Neither has a closed form for more than two rotations, so both are solved
by fixed-point iteration in the tangent space (the Lie algebra so(3)) at the
current estimate:

    1. v_i   = log(q_hat^{-1} * q_i)            (rotation vectors)
    2. v_bar = sum_i w_i v_i / sum_i w_i        (w_i = 1 for the mean,
                                                 w_i = 1/|v_i| for the median)
    3. q_hat = q_hat * exp(v_bar)

and stop once |v_bar| drops below a tolerance or the iteration cap is
reached. Reaching the cap is not an error: the current estimate is
returned.

Sign handling
-------------
q and -q are the same rotation, so a naive average can cancel two copies of
the same attitude. Every sample is first replaced by its canonical
representative, then at each iteration the relative quaternion
q_hat^{-1} * q_i is folded to w >= 0 (equivalent to flipping q_i whenever
q_hat . q_i < 0). The result therefore depends only on the rotations, not on
the signs the caller happened to store. The returned quaternion is put in
the hemisphere of the first sample, which keeps aggregated time series on
the same sign branch as their inputs.

References
----------
    [1] Karcher, "Riemannian center of mass and mollifier smoothing",
        Comm. Pure Appl. Math., 1977.
    [2] Markley, Cheng, Crassidis & Oshman, "Averaging Quaternions",
        JGCD, 2007.
    [3] Fletcher, Venkatasubramanian & Joshi, "The geometric median on
        Riemannian manifolds with application to robust atlas estimation",
        NeuroImage, 2009.
    [4] Vardi & Zhang, "The multivariate L1-median and associated data
        depth", PNAS, 2000.
===============================================================================
"""

import logging
from typing import List, Optional, Sequence, Union

import numpy as np

from qtstats.core.constants import (
    COINCIDENCE_TOLERANCE, IDENTICAL_TOLERANCE, MEAN_MAX_ITERATIONS,
    MEAN_TOLERANCE, MEDIAN_MAX_ITERATIONS, MEDIAN_TOLERANCE, NORM_TOLERANCE
)
from qtstats.core.quaternion import Quaternion

logger = logging.getLogger(__name__)

QuaternionLike = Union[Quaternion, Sequence[float], np.ndarray]


# =============================================================================
# INPUT VALIDATION
# =============================================================================

def as_sample_array(samples: Union[Sequence[QuaternionLike], np.ndarray]
                    ) -> np.ndarray:
    """
    Validate a quaternion sample set and return it as a normalized array.

    Parameters
    ----------
    samples : sequence of Quaternion or 4-sequences, or array of shape (N, 4)
        The rotations to aggregate, scalar-first.

    Returns
    -------
    np.ndarray
        Array of shape (N, 4) with unit-norm rows. Row signs are preserved.

    Raises
    ------
    ValueError
        If the set is empty, not of shape (N, 4), holds non-finite values,
        or holds a quaternion of near-zero norm.
    """
    if isinstance(samples, np.ndarray):
        q = np.array(samples, dtype=np.float64)
    else:
        rows = [s.components if isinstance(s, Quaternion) else s
                for s in samples]
        if not rows:
            raise ValueError("Cannot aggregate an empty set of rotations.")
        q = np.array(rows, dtype=np.float64)

    if q.ndim != 2 or q.shape[1] != 4:
        raise ValueError(
            f"Quaternion samples must have shape (N, 4), got {q.shape}"
        )
    if q.shape[0] == 0:
        raise ValueError("Cannot aggregate an empty set of rotations.")
    if not np.all(np.isfinite(q)):
        raise ValueError("Quaternion samples contain non-finite values.")

    norms = np.linalg.norm(q, axis=1)
    degenerate = np.flatnonzero(norms < NORM_TOLERANCE)
    if degenerate.size:
        raise ValueError(
            f"Quaternion sample {int(degenerate[0])} has near-zero norm "
            f"({norms[degenerate[0]]:.2e}) and does not define a rotation."
        )

    return q / norms[:, np.newaxis]


def _check_termination(tolerance: float, max_iterations: int) -> None:
    if tolerance <= 0.0:
        raise ValueError(f"tolerance must be positive, got {tolerance}")
    if max_iterations < 1:
        raise ValueError(
            f"max_iterations must be at least 1, got {max_iterations}"
        )


# =============================================================================
# TANGENT-SPACE HELPERS
# =============================================================================

def geodesic_distance(q1: QuaternionLike, q2: QuaternionLike) -> float:
    """
    Geodesic (angular) distance between two rotations, in [0, pi].

    Invariant to the sign of either quaternion.
    """
    return _as_quaternion(q1).angle_to(_as_quaternion(q2))


def log_map(base: Quaternion, q: Quaternion) -> np.ndarray:
    """
    Rotation vector of q in the tangent space at ``base``.

    The relative rotation base^{-1} * q is taken on the short arc, so the
    norm of the result is the geodesic distance between the two rotations.
    """
    return base.conjugate().multiply(_reconcile_sign(q, base)).to_rotation_vector()


def exp_map(base: Quaternion, v: np.ndarray) -> Quaternion:
    """Map a tangent vector at ``base`` back onto the rotation manifold."""
    return base.multiply(Quaternion.from_rotation_vector(v))


def _as_quaternion(q: QuaternionLike) -> Quaternion:
    if isinstance(q, Quaternion):
        return q
    return Quaternion.from_array(q)


def _reconcile_sign(q: Quaternion, reference: Quaternion) -> Quaternion:
    # Flip onto the reference hemisphere; a zero inner product keeps q.
    if q.dot(reference) < 0.0:
        return -q
    return q


def _canonical_samples(q: np.ndarray) -> List[Quaternion]:
    return [Quaternion(row[0], row[1], row[2], row[3],
                       normalize=False).canonical() for row in q]


def _chordal_mean(quats: List[Quaternion]) -> Quaternion:
    """
    Chordal L2 mean: dominant eigenvector of sum_i q_i q_i^T.

    The scatter matrix is unchanged by flipping the sign of any sample and
    by reordering samples, so this is a sign- and order-invariant starting
    point for the iterative refinement.
    """
    scatter = np.zeros((4, 4))
    for q in quats:
        c = q.components
        scatter += np.outer(c, c)
    _, eigvecs = np.linalg.eigh(scatter)
    return Quaternion.from_array(eigvecs[:, -1]).canonical()


def _all_identical(quats: List[Quaternion]) -> bool:
    first = quats[0]
    return all(first.angle_to(q) < IDENTICAL_TOLERANCE for q in quats[1:])


def _to_hemisphere(estimate: Quaternion, reference: np.ndarray) -> Quaternion:
    if np.dot(estimate.components, reference) < 0.0:
        return -estimate
    return estimate


def _unchanged(row: np.ndarray) -> Quaternion:
    return Quaternion(row[0], row[1], row[2], row[3], normalize=False)


# =============================================================================
# ITERATIVE SOLVERS
# =============================================================================

def _karcher_mean(quats: List[Quaternion], tolerance: float,
                  max_iterations: int) -> Quaternion:
    estimate = _chordal_mean(quats)
    step_norm = np.inf

    for iteration in range(max_iterations):
        vectors = np.array([log_map(estimate, q) for q in quats])
        step = vectors.mean(axis=0)
        step_norm = np.linalg.norm(step)
        estimate = exp_map(estimate, step)
        if step_norm < tolerance:
            logger.debug("Karcher mean converged in %d iterations",
                         iteration + 1)
            return estimate

    logger.debug("Karcher mean stopped at the iteration cap (%d), "
                 "last step %.3e rad", max_iterations, step_norm)
    return estimate


def _weiszfeld_median(quats: List[Quaternion], start: Quaternion,
                      tolerance: float, max_iterations: int) -> Quaternion:
    estimate = start
    step_norm = np.inf

    for iteration in range(max_iterations):
        vectors = np.array([log_map(estimate, q) for q in quats])
        distances = np.linalg.norm(vectors, axis=1)
        active = distances >= COINCIDENCE_TOLERANCE
        n_coincident = int(np.count_nonzero(~active))

        if n_coincident == len(quats):
            return estimate

        weights = 1.0 / distances[active]
        pull = weights @ vectors[active]
        step = pull / weights.sum()

        if n_coincident:
            # Vardi-Zhang: samples sitting on the estimate are dropped from
            # the reweighting and instead damp the step. When the others pull
            # with a force below their count, the estimate is the median.
            pull_norm = np.linalg.norm(pull)
            if pull_norm <= n_coincident:
                return estimate
            step = (1.0 - n_coincident / pull_norm) * step

        step_norm = np.linalg.norm(step)
        estimate = exp_map(estimate, step)
        if step_norm < tolerance:
            logger.debug("Weiszfeld median converged in %d iterations",
                         iteration + 1)
            return estimate

    logger.debug("Weiszfeld median stopped at the iteration cap (%d), "
                 "last step %.3e rad", max_iterations, step_norm)
    return estimate


# =============================================================================
# PUBLIC ESTIMATORS
# =============================================================================

def geometric_mean(samples: Union[Sequence[QuaternionLike], np.ndarray],
                   tolerance: float = MEAN_TOLERANCE,
                   max_iterations: int = MEAN_MAX_ITERATIONS) -> Quaternion:
    """
    Frechet (Karcher) mean of a set of rotations.

    Starts from the chordal L2 mean and refines it by averaging the samples
    in the tangent space at the current estimate.

    Parameters
    ----------
    samples : sequence of Quaternion or 4-sequences, or array of shape (N, 4)
        Rotations to average, scalar-first. Non-unit quaternions are
        normalized; near-zero ones are rejected.
    tolerance : float
        Convergence threshold on the norm of the tangent step (rad).
    max_iterations : int
        Hard cap on the number of refinement steps.

    Returns
    -------
    Quaternion
        The mean rotation, in the hemisphere of the first sample. A single
        sample, or samples that all describe the same rotation, are
        returned as the (normalized) first sample.

    Raises
    ------
    ValueError
        On an empty or malformed sample set, or invalid termination settings.
    """
    _check_termination(tolerance, max_iterations)
    q = as_sample_array(samples)
    if q.shape[0] == 1:
        return _unchanged(q[0])

    quats = _canonical_samples(q)
    if _all_identical(quats):
        return _unchanged(q[0])

    estimate = _karcher_mean(quats, tolerance, max_iterations)
    return _to_hemisphere(estimate, q[0])


def geometric_median(samples: Union[Sequence[QuaternionLike], np.ndarray],
                     tolerance: float = MEDIAN_TOLERANCE,
                     max_iterations: int = MEDIAN_MAX_ITERATIONS
                     ) -> Quaternion:
    """
    Geometric median of a set of rotations (Weiszfeld algorithm on SO(3)).

    Initialized at the geometric mean, then iterates tangent-space averages
    weighted by the inverse geodesic distance of each sample to the current
    estimate. Samples that coincide with the estimate are excluded from the
    weights (Vardi-Zhang modification) so the update never divides by zero.

    Parameters
    ----------
    samples : sequence of Quaternion or 4-sequences, or array of shape (N, 4)
        Rotations to aggregate, scalar-first.
    tolerance : float
        Convergence threshold on the norm of the tangent step (rad).
    max_iterations : int
        Hard cap on the number of Weiszfeld steps.

    Returns
    -------
    Quaternion
        The median rotation, in the hemisphere of the first sample.

    Raises
    ------
    ValueError
        On an empty or malformed sample set, or invalid termination settings.
    """
    _check_termination(tolerance, max_iterations)
    q = as_sample_array(samples)
    if q.shape[0] == 1:
        return _unchanged(q[0])

    quats = _canonical_samples(q)
    if _all_identical(quats):
        return _unchanged(q[0])

    start = _karcher_mean(quats, tolerance, MEAN_MAX_ITERATIONS)
    estimate = _weiszfeld_median(quats, start, tolerance, max_iterations)
    return _to_hemisphere(estimate, q[0])


def frechet_variance(samples: Union[Sequence[QuaternionLike], np.ndarray],
                     center: Optional[QuaternionLike] = None) -> float:
    """
    Mean squared geodesic distance of the samples to ``center``.

    ``center`` defaults to the geometric mean of the samples.
    """
    q = as_sample_array(samples)
    if center is None:
        center = geometric_mean(q)
    center = _as_quaternion(center)
    distances = np.array([center.angle_to(_unchanged(row)) for row in q])
    return float(np.mean(distances ** 2))


def frechet_sd(samples: Union[Sequence[QuaternionLike], np.ndarray],
               center: Optional[QuaternionLike] = None) -> float:
    """Square root of ``frechet_variance``."""
    return float(np.sqrt(frechet_variance(samples, center)))
