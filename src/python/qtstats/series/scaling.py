"""
===============================================================================
QTSTATS - Centring and Standardization of QTS Samples
===============================================================================
Removes the pointwise geometric mean from a QTS sample and, optionally,
rescales the residual rotations to unit Frechet standard deviation.

For a set of rotations {q_k} with geometric mean m and Frechet SD s:

    centred      c_k = m^{-1} * q_k
    standardized c_k = exp(log(m^{-1} * q_k) / s)

so the centred set has the identity as its geometric mean, and the
standardized set has unit Frechet SD about the identity provided every
|log(m^{-1} * q_k)| / s stays within pi. A residual beyond pi wraps through
the antipode and comes back shorter; this happens with a lone outlier in a
large set (the largest residual can reach sqrt(K) * s) and is logged as a
warning.

By default the sets are taken across the sample at each grid point
(``by_row=False``). With ``by_row=True`` each series is centred on its own
mean over time instead.
===============================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

from qtstats.core.quaternion import Quaternion
from qtstats.manifold.aggregation import frechet_sd, geometric_mean
from qtstats.series.qts import quaternion_matrix, with_quaternions
from qtstats.series.sample import QTSSample, as_qts_sample

logger = logging.getLogger(__name__)


@dataclass
class ScaledSample:
    """Rescaled sample together with the statistics used to rescale it.

    Attributes
    ----------
    rescaled_sample : QTSSample
        The centred (and possibly standardized) sample.
    mean_values : list of Quaternion or None
        Geometric means removed, one per grid point (or per series when
        centring by row). None when no centring was done.
    sd_values : np.ndarray or None
        Frechet standard deviations, aligned with ``mean_values``. None when
        no centring was done.
    """
    rescaled_sample: QTSSample
    mean_values: Optional[List[Quaternion]] = None
    sd_values: Optional[np.ndarray] = field(default=None)


def _centre(rotations: np.ndarray, standardize: bool
            ) -> Tuple[np.ndarray, Quaternion, float]:
    """Centre (and standardize) one (K, 4) set of rotations."""
    mean = geometric_mean(rotations)
    mean_inv = mean.conjugate()
    vectors = np.array([
        mean_inv.multiply(Quaternion.from_array(row)).to_rotation_vector()
        for row in rotations
    ])
    sd = frechet_sd(rotations, center=mean)

    if standardize:
        if sd > 0.0:
            vectors = vectors / sd
            longest = float(np.max(np.linalg.norm(vectors, axis=1)))
            if longest > np.pi:
                # exp wraps these residuals past the antipode
                logger.warning(
                    "Standardized residual of %.3f rad exceeds pi; the "
                    "rescaled rotations will not have unit Frechet SD",
                    longest)
        else:
            logger.warning("Zero Frechet SD; rotations left centred only")

    centred = np.array([Quaternion.from_rotation_vector(v).components
                        for v in vectors])
    return centred, mean, sd


def scale_sample(sample, center: bool = True, scale: bool = True,
                 by_row: bool = False, keep_summary_stats: bool = False):
    """
    Centre and optionally standardize a QTS sample.

    Parameters
    ----------
    sample : QTSSample or list of QTS
        Sample of aligned QTS (all on the same grid when ``by_row`` is
        False).
    center : bool
        If False the sample is returned as-is and no scaling happens,
        whatever ``scale`` says.
    scale : bool
        Standardize the centred rotations to unit Frechet SD. Exact only
        while no standardized residual is longer than pi (a warning is
        logged otherwise).
    by_row : bool
        Centre each series on its own mean over time instead of each grid
        point on its mean across the sample.
    keep_summary_stats : bool
        Return a ``ScaledSample`` holding the means and SDs as well.

    Returns
    -------
    QTSSample or ScaledSample
    """
    sample = as_qts_sample(sample)

    if not center:
        if keep_summary_stats:
            return ScaledSample(rescaled_sample=sample)
        return sample

    matrices = [quaternion_matrix(s) for s in sample]
    means: List[Quaternion] = []
    sds: List[float] = []

    if by_row:
        rescaled = []
        for s, values in zip(sample, matrices):
            centred, mean, sd = _centre(values, scale)
            rescaled.append(with_quaternions(s, centred))
            means.append(mean)
            sds.append(sd)
    else:
        # stacked[i, k] is the rotation of series k at grid point i
        stacked = np.stack(matrices, axis=1)
        out = np.empty_like(stacked)
        for i in range(stacked.shape[0]):
            out[i], mean, sd = _centre(stacked[i], scale)
            means.append(mean)
            sds.append(sd)
        rescaled = [with_quaternions(s, out[:, k])
                    for k, s in enumerate(sample)]

    logger.info("Centred %d QTS (%s, standardized=%s)", len(sample),
                'by series' if by_row else 'by grid point', scale)

    rescaled = QTSSample(rescaled)
    if not keep_summary_stats:
        return rescaled
    return ScaledSample(rescaled_sample=rescaled, mean_values=means,
                        sd_values=np.array(sds))
