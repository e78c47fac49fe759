"""
===============================================================================
QTSTATS - Pointwise Statistics of Quaternion Time Series
===============================================================================
Geometric mean and geometric median of samples of quaternion time series,
computed on the rotation manifold SO(3).

Subpackages:
    core           -- Constants and the Quaternion class
    manifold       -- Per-grid-point mean/median of unit quaternions
    series         -- QTS container, QTS samples, pointwise aggregation,
                      centring and scaling
    simulation     -- Random QTS samples around a mean QTS
    visualization  -- Component plots of QTS samples
===============================================================================
"""

__version__ = "0.3.0"
