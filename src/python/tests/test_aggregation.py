"""
===============================================================================
QTSTATS - Manifold Aggregation Test Suite
===============================================================================
Tests for the geometric mean (Karcher) and geometric median (Weiszfeld) of
unit quaternions: degenerate sample sizes, sign and order invariance,
robustness of the median, optimality against nearby rotations, the three
half-turn scenario, termination on ill-posed input, and input validation.

Geodesic distances in the assertions are cross-checked with
scipy.spatial.transform.Rotation where an independent reference helps.
===============================================================================
"""

import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

import itertools

import numpy as np
import pytest
from numpy.testing import assert_allclose
from scipy.spatial.transform import Rotation

from qtstats.core.quaternion import Quaternion
from qtstats.manifold.aggregation import (
    as_sample_array, exp_map, frechet_sd, frechet_variance, geodesic_distance,
    geometric_mean, geometric_median, log_map
)


ESTIMATORS = [geometric_mean, geometric_median]


def scipy_distance(q1, q2):
    """Geodesic distance computed by scipy (scalar-last convention)."""
    r1 = Rotation.from_quat(np.roll(np.asarray(q1, dtype=float), -1))
    r2 = Rotation.from_quat(np.roll(np.asarray(q2, dtype=float), -1))
    return float((r1.inv() * r2).magnitude())


def rotation_distance(q1, q2):
    """Distance between two results, as rotations."""
    return geodesic_distance(q1, q2)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def cluster():
    """Eight rotations scattered within ~0.4 rad of a 60-degree tilt."""
    rng = np.random.RandomState(1234)
    center = Quaternion.from_axis_angle(np.array([1.0, 2.0, 0.5]), np.pi / 3)
    samples = []
    for _ in range(8):
        delta = Quaternion.from_rotation_vector(rng.normal(scale=0.2, size=3))
        samples.append(center.multiply(delta).components)
    return np.array(samples)


@pytest.fixture
def half_turns():
    """Identity and two half-turns about orthogonal axes."""
    return np.array([
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 1.0, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
    ])


# =============================================================================
# Test: Tangent-space helpers
# =============================================================================

class TestGeodesicDistance:
    """Tests for the geodesic distance and the log/exp maps."""

    def test_distance_matches_scipy(self):
        rng = np.random.RandomState(3)
        for _ in range(10):
            q1 = Quaternion.random(rng).components
            q2 = Quaternion.random(rng).components
            assert_allclose(geodesic_distance(q1, q2), scipy_distance(q1, q2),
                            atol=1e-10)

    def test_distance_range_and_sign(self):
        q = np.array([0.0, 1.0, 0.0, 0.0])
        assert_allclose(geodesic_distance([1.0, 0.0, 0.0, 0.0], q), np.pi,
                        atol=1e-14)
        assert_allclose(geodesic_distance(q, -q), 0.0, atol=1e-14)

    def test_log_norm_is_distance(self, cluster):
        base = Quaternion.from_array(cluster[0])
        q = Quaternion.from_array(cluster[3])
        assert_allclose(np.linalg.norm(log_map(base, q)),
                        geodesic_distance(base, q), atol=1e-13)

    def test_exp_inverts_log(self, cluster):
        base = Quaternion.from_array(cluster[0])
        for row in cluster[1:]:
            q = Quaternion.from_array(row)
            assert rotation_distance(exp_map(base, log_map(base, q)), q) < 1e-12

    def test_log_map_sign_invariant(self, cluster):
        base = Quaternion.from_array(cluster[0])
        q = Quaternion.from_array(cluster[5])
        assert_allclose(log_map(base, -q), log_map(base, q), atol=1e-14)


# =============================================================================
# Test: Degenerate sample sizes
# =============================================================================

class TestDegenerateSamples:
    """Single samples and repeated rotations."""

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_single_sample_unchanged(self, estimator):
        """N = 1 returns the sample as given, including its sign."""
        q = np.array([-0.5, 0.5, 0.5, 0.5])
        assert_allclose(estimator([q]).components, q, atol=1e-15)

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_single_sample_normalized(self, estimator):
        result = estimator([[2.0, 0.0, 0.0, 0.0]])
        assert_allclose(result.components, [1.0, 0.0, 0.0, 0.0], atol=1e-15)

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_identical_up_to_sign(self, estimator, cluster):
        """Copies of one rotation with mixed signs return that rotation."""
        q = cluster[2]
        samples = np.array([q, -q, q, -q, -q])
        assert_allclose(estimator(samples).components, q, atol=1e-15)

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_identity_property(self, estimator):
        """Aggregating N copies of q returns q."""
        q = Quaternion.from_axis_angle(np.array([0.0, 1.0, 1.0]), 2.0)
        result = estimator([q, q, q, q])
        assert rotation_distance(result, q) < 1e-12

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_accepts_quaternion_objects(self, estimator, cluster):
        quats = [Quaternion.from_array(row) for row in cluster]
        assert rotation_distance(estimator(quats), estimator(cluster)) < 1e-12


# =============================================================================
# Test: Invariances
# =============================================================================

class TestInvariance:
    """The result depends only on the multiset of rotations."""

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_sign_invariance(self, estimator, cluster):
        flipped = cluster.copy()
        flipped[[1, 4, 6]] *= -1.0
        assert rotation_distance(estimator(flipped), estimator(cluster)) < 1e-9

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_order_invariance(self, estimator, cluster):
        permuted = cluster[np.random.RandomState(5).permutation(len(cluster))]
        assert rotation_distance(estimator(permuted), estimator(cluster)) < 1e-9

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_result_in_first_sample_hemisphere(self, estimator, cluster):
        flipped = cluster.copy()
        flipped[0] *= -1.0
        result = estimator(flipped)
        assert np.dot(result.components, flipped[0]) >= 0.0
        assert result.is_unit()

    def test_mean_of_two_is_midpoint(self):
        """The mean of two rotations about one axis is the half-way rotation."""
        axis = np.array([0.0, 0.0, 1.0])
        q1 = Quaternion.from_axis_angle(axis, 0.2)
        q2 = Quaternion.from_axis_angle(axis, 1.0)
        expected = Quaternion.from_axis_angle(axis, 0.6)
        assert rotation_distance(geometric_mean([q1, q2]), expected) < 1e-10


# =============================================================================
# Test: Robustness of the median
# =============================================================================

class TestMedianRobustness:
    """One far outlier drags the mean but barely moves the median."""

    def test_median_closer_than_mean(self):
        rng = np.random.RandomState(11)
        cluster_center = Quaternion.identity()
        samples = [Quaternion.from_rotation_vector(rng.normal(scale=0.03, size=3))
                   for _ in range(4)]
        outlier = Quaternion.from_axis_angle(np.array([1.0, 0.0, 0.0]), 2.5)
        samples.append(outlier)

        mean = geometric_mean(samples)
        median = geometric_median(samples)

        d_mean = scipy_distance(mean.components, cluster_center.components)
        d_median = scipy_distance(median.components, cluster_center.components)
        assert d_median < d_mean
        assert d_median < 0.1

    def test_median_at_repeated_sample(self):
        """Two of three samples agree: the median is that rotation."""
        a = Quaternion.identity()
        b = Quaternion.from_axis_angle(np.array([0.0, 1.0, 0.0]), 1.0)
        median = geometric_median([a, b, a])
        assert rotation_distance(median, a) < 1e-8


# =============================================================================
# Test: Three half-turns
# =============================================================================

class TestHalfTurnScenario:
    """Identity and half-turns about X and Y are mutually pi apart."""

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_equidistant(self, estimator, half_turns):
        result = estimator(half_turns)
        assert result.is_unit()
        distances = [scipy_distance(result.components, q) for q in half_turns]
        assert_allclose(distances, distances[0], atol=1e-6)
        assert_allclose(distances[0], 2.0 * np.arccos(1.0 / np.sqrt(3.0)),
                        atol=1e-6)

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_order_independent(self, estimator, half_turns):
        reference = estimator(half_turns)
        for perm in itertools.permutations(range(3)):
            result = estimator(half_turns[list(perm)])
            assert rotation_distance(result, reference) < 1e-6

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_sign_independent(self, estimator, half_turns):
        reference = estimator(half_turns)
        flipped = half_turns * np.array([[-1.0], [1.0], [-1.0]])
        assert rotation_distance(estimator(flipped), reference) < 1e-6


# =============================================================================
# Test: Optimality against perturbation
# =============================================================================

def sum_of_distances(estimate, samples, power):
    return sum(geodesic_distance(estimate, q) ** power for q in samples)


class TestOptimality:
    """The estimates minimize their cost over nearby rotations."""

    @pytest.mark.parametrize("estimator, power", [
        (geometric_mean, 2),
        (geometric_median, 1),
    ])
    @pytest.mark.parametrize("seed", range(10))
    def test_no_nearby_rotation_does_better(self, estimator, power, seed):
        rng = np.random.RandomState(seed)
        center = Quaternion.random(rng)
        samples = np.array([
            center.multiply(Quaternion.from_rotation_vector(
                rng.normal(scale=0.6, size=3))).components
            for _ in range(7)
        ])

        estimate = estimator(samples)
        best = sum_of_distances(estimate, samples, power)
        for _ in range(50):
            step = rng.normal(size=3)
            step *= 1e-3 / np.linalg.norm(step)
            moved = exp_map(estimate, step)
            assert sum_of_distances(moved, samples, power) >= best - 1e-12


# =============================================================================
# Test: Termination on ill-posed input
# =============================================================================

class TestTermination:
    """Degenerate configurations stop at the cap, deterministically."""

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_opposite_rotations_terminate(self, estimator):
        samples = np.array([[1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]])
        first = estimator(samples, max_iterations=5)
        second = estimator(samples, max_iterations=5)
        assert first.is_unit()
        assert_allclose(first.components, second.components, atol=0.0)

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_cap_of_one_returns_estimate(self, estimator, cluster):
        result = estimator(cluster, max_iterations=1)
        assert result.is_unit()
        assert rotation_distance(result, estimator(cluster)) < 0.1


# =============================================================================
# Test: Validation
# =============================================================================

class TestValidation:
    """Malformed input fails fast with ValueError."""

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_empty_raises(self, estimator):
        with pytest.raises(ValueError, match="empty"):
            estimator([])

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_empty_array_raises(self, estimator):
        with pytest.raises(ValueError, match="empty"):
            estimator(np.zeros((0, 4)))

    @pytest.mark.parametrize("bad", [
        np.zeros((3, 3)),
        np.array([[1.0, 0.0, 0.0, np.nan]]),
        np.array([[1.0, 0.0, 0.0, 0.0], [0.0, 0.0, 0.0, 0.0]]),
    ])
    def test_malformed_samples_raise(self, bad):
        with pytest.raises(ValueError):
            as_sample_array(bad)

    @pytest.mark.parametrize("estimator", ESTIMATORS)
    def test_bad_termination_settings_raise(self, estimator, cluster):
        with pytest.raises(ValueError, match="tolerance"):
            estimator(cluster, tolerance=0.0)
        with pytest.raises(ValueError, match="max_iterations"):
            estimator(cluster, max_iterations=0)

    def test_rows_are_normalized_signs_kept(self):
        q = as_sample_array([[-2.0, 0.0, 0.0, 0.0], [0.0, 3.0, 0.0, 0.0]])
        assert_allclose(q, [[-1.0, 0.0, 0.0, 0.0], [0.0, 1.0, 0.0, 0.0]])


# =============================================================================
# Test: Frechet dispersion
# =============================================================================

class TestFrechetDispersion:

    def test_variance_of_identical_is_zero(self, cluster):
        assert_allclose(frechet_variance([cluster[0]] * 3), 0.0, atol=1e-24)

    def test_sd_of_two_rotations(self):
        axis = np.array([1.0, 0.0, 0.0])
        samples = [Quaternion.from_axis_angle(axis, 0.0),
                   Quaternion.from_axis_angle(axis, 0.8)]
        assert_allclose(frechet_sd(samples), 0.4, atol=1e-10)

    def test_sd_about_given_center(self):
        axis = np.array([0.0, 0.0, 1.0])
        samples = [Quaternion.from_axis_angle(axis, 0.3),
                   Quaternion.from_axis_angle(axis, -0.3)]
        assert_allclose(frechet_sd(samples, center=Quaternion.identity()), 0.3,
                        atol=1e-12)
