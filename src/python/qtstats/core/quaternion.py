"""
===============================================================================
QTSTATS - Quaternion Algebra
===============================================================================

Unit quaternions as used by the manifold aggregation and the series
transforms: construction with validation, canonical sign selection, the
Hamilton product, conjugation, and the exponential / logarithmic maps
between unit quaternions and rotation vectors.

Convention
----------
Scalar first:

    q = [q_w, q_x, q_y, q_z] = q_w + q_x*i + q_y*j + q_z*k

q = [cos(theta/2), sin(theta/2) * n] is the rotation by theta about the unit
axis n. q and -q give the same rotation, so anything that compares or
averages rotations has to agree on a sign first.

Geodesic distance
-----------------
The SO(3) distance between two rotations is the angle of the relative
rotation q1^{-1} * q2, in [0, pi]. ``Quaternion.angle_to`` returns it.

References
----------
    [1] Markley & Crassidis, "Fundamentals of Spacecraft Attitude
        Determination and Control", Springer, 2014.
    [2] Hartley, Trumpf, Dai & Li, "Rotation Averaging", IJCV, 2013.

===============================================================================
"""

import numpy as np
from typing import Optional, Sequence, Union

from qtstats.core.constants import NORM_TOLERANCE, SMALL_ANGLE


class Quaternion:
    """
    Rotation quaternion, scalar first.

    Examples
    --------
    >>> q = Quaternion.identity()
    >>> r = Quaternion.from_axis_angle(np.array([0.0, 0.0, 1.0]), np.pi / 2)
    >>> q.angle_to(r)
    1.5707963267948966
    """

    def __init__(self, w: float, x: float, y: float, z: float,
                 normalize: bool = True) -> None:
        """
        Parameters
        ----------
        w, x, y, z : float
            Scalar part, then the i, j, k components.
        normalize : bool, optional
            Scale to unit norm and fold onto w >= 0 (default). With False the
            components are stored as given, sign included.

        Raises
        ------
        ValueError
            On non-finite components, or a near-zero norm when normalizing.
        """
        self._q = np.array([w, x, y, z], dtype=np.float64)

        if not np.all(np.isfinite(self._q)):
            raise ValueError(
                f"Quaternion components must be finite, got {self._q.tolist()}."
            )

        if normalize:
            self._normalize_in_place()

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def w(self) -> float:
        return float(self._q[0])

    @property
    def x(self) -> float:
        return float(self._q[1])

    @property
    def y(self) -> float:
        return float(self._q[2])

    @property
    def z(self) -> float:
        return float(self._q[3])

    @property
    def vector(self) -> np.ndarray:
        return self._q[1:4].copy()

    @property
    def components(self) -> np.ndarray:
        """[w, x, y, z] as a fresh array."""
        return self._q.copy()

    @property
    def norm(self) -> float:
        return float(np.linalg.norm(self._q))

    @property
    def rotation_angle(self) -> float:
        """
        Angle of the rotation in radians, in [0, pi].

        Uses 2 * atan2(|v|, |w|). The arccos form loses half its digits near
        zero, and an iterative mean spends its last steps there.
        """
        return 2.0 * float(np.arctan2(np.linalg.norm(self._q[1:4]),
                                      abs(self._q[0])))

    def _normalize_in_place(self) -> None:
        n = np.linalg.norm(self._q)

        if n < NORM_TOLERANCE:
            raise ValueError(
                f"Cannot normalize near-zero quaternion (norm = {n:.2e}). "
                "A rotation quaternion must have non-zero norm."
            )

        self._q /= n
        if self._q[0] < 0.0:
            self._q = -self._q

    # =========================================================================
    # FACTORIES
    # =========================================================================

    @staticmethod
    def identity() -> 'Quaternion':
        return Quaternion(1.0, 0.0, 0.0, 0.0, normalize=False)

    @staticmethod
    def from_array(q: Union[Sequence[float], np.ndarray],
                   normalize: bool = True) -> 'Quaternion':
        """Build from a length-4 [w, x, y, z] sequence."""
        q = np.asarray(q, dtype=np.float64)
        if q.shape != (4,):
            raise ValueError(
                f"Quaternion array must have shape (4,), got {q.shape}"
            )
        return Quaternion(q[0], q[1], q[2], q[3], normalize=normalize)

    @staticmethod
    def from_axis_angle(axis: np.ndarray, angle: float) -> 'Quaternion':
        """
        Rotation by ``angle`` radians about ``axis`` (normalized here).

        Raises
        ------
        ValueError
            If the axis has near-zero length.
        """
        axis = np.asarray(axis, dtype=np.float64)
        axis_norm = np.linalg.norm(axis)
        if axis_norm < NORM_TOLERANCE:
            raise ValueError(
                f"Rotation axis has near-zero length ({axis_norm:.2e})."
            )

        sin_half = np.sin(angle / 2.0)
        n = axis / axis_norm
        return Quaternion(np.cos(angle / 2.0), sin_half * n[0],
                          sin_half * n[1], sin_half * n[2])

    @staticmethod
    def from_rotation_vector(rot_vec: np.ndarray) -> 'Quaternion':
        """
        Exponential map so(3) -> S^3 of the rotation vector theta * n.

        The result is not folded onto w >= 0: exp(v) with |v| in (pi, 2*pi)
        keeps the branch of v. Use ``canonical()`` for a sign-free form.
        """
        rot_vec = np.asarray(rot_vec, dtype=np.float64)
        if rot_vec.shape != (3,):
            raise ValueError(
                f"Rotation vector must have shape (3,), got {rot_vec.shape}"
            )
        angle = np.linalg.norm(rot_vec)

        if angle < SMALL_ANGLE:
            # q ~ [1, v/2]
            q = np.concatenate(([1.0], 0.5 * rot_vec))
            q /= np.linalg.norm(q)
            return Quaternion(q[0], q[1], q[2], q[3], normalize=False)

        sin_half = np.sin(angle / 2.0)
        axis = rot_vec / angle
        return Quaternion(np.cos(angle / 2.0), sin_half * axis[0],
                          sin_half * axis[1], sin_half * axis[2],
                          normalize=False)

    @staticmethod
    def random(rng: Optional[np.random.RandomState] = None) -> 'Quaternion':
        """
        Uniformly distributed rotation (Shoemake's subgroup algorithm).

        Normalizing a Gaussian 4-vector would also work; normalizing a
        uniform box sample would not.

        References
        ----------
        Shoemake, "Uniform Random Rotations", Graphics Gems III, 1992.
        """
        source = rng if rng is not None else np.random
        u1, u2, u3 = source.random(3)

        a = np.sqrt(1.0 - u1)
        b = np.sqrt(u1)
        return Quaternion(a * np.sin(2.0 * np.pi * u2),
                          a * np.cos(2.0 * np.pi * u2),
                          b * np.sin(2.0 * np.pi * u3),
                          b * np.cos(2.0 * np.pi * u3))

    # =========================================================================
    # ALGEBRA
    # =========================================================================

    def conjugate(self) -> 'Quaternion':
        """[w, -x, -y, -z]; the reverse rotation for a unit quaternion."""
        return Quaternion(self.w, -self.x, -self.y, -self.z, normalize=False)

    def normalize(self) -> 'Quaternion':
        return Quaternion(self.w, self.x, self.y, self.z, normalize=True)

    def canonical(self) -> 'Quaternion':
        """
        Canonical representative of the rotation.

        Unit norm with w > 0; for a half-turn (w exactly zero) the first
        non-zero vector component is made positive. Two quaternions give the
        same rotation exactly when their canonical forms are equal.
        """
        q = self.normalize()._q
        if q[0] == 0.0:
            nonzero = np.flatnonzero(q[1:4])
            if nonzero.size and q[1 + nonzero[0]] < 0.0:
                q = -q
        return Quaternion(q[0], q[1], q[2], q[3], normalize=False)

    def multiply(self, other: 'Quaternion') -> 'Quaternion':
        """
        Hamilton product self * other (apply ``other``, then ``self``).

        The product is renormalized and folded onto w >= 0.
        """
        a1, b1, c1, d1 = self._q
        a2, b2, c2, d2 = other._q

        return Quaternion(
            a1 * a2 - b1 * b2 - c1 * c2 - d1 * d2,
            a1 * b2 + b1 * a2 + c1 * d2 - d1 * c2,
            a1 * c2 - b1 * d2 + c1 * a2 + d1 * b2,
            a1 * d2 + b1 * c2 - c1 * b2 + d1 * a2,
        )

    def dot(self, other: 'Quaternion') -> float:
        return float(np.dot(self._q, other._q))

    def to_rotation_vector(self) -> np.ndarray:
        """
        Logarithmic map S^3 -> so(3), on the short arc.

        The norm of the returned vector is the distance to the identity,
        in [0, pi], whichever sign the quaternion carries.
        """
        vec = self._q[1:4]
        if self._q[0] < 0.0:
            vec = -vec
        vec_norm = np.linalg.norm(vec)

        if vec_norm < SMALL_ANGLE:
            return 2.0 * vec

        return self.rotation_angle * vec / vec_norm

    def angle_to(self, other: 'Quaternion') -> float:
        """Geodesic distance on SO(3), in [0, pi], ignoring either sign."""
        return self.conjugate().multiply(other).rotation_angle

    def is_unit(self, tolerance: float = 1e-8) -> bool:
        return abs(self.norm - 1.0) < tolerance

    def __neg__(self) -> 'Quaternion':
        # Same rotation, opposite sign; kept as-is so callers pick the branch
        return Quaternion(-self.w, -self.x, -self.y, -self.z, normalize=False)

    def __repr__(self) -> str:
        return (f"Quaternion(w={self.w:+.8f}, x={self.x:+.8f}, "
                f"y={self.y:+.8f}, z={self.z:+.8f})")
