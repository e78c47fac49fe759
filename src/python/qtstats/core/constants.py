"""
===============================================================================
QTSTATS - Numerical Constants and Table Layout
===============================================================================
Central repository for the tolerances, iteration caps and column names used
throughout the package. Angles are in radians.

The aggregation defaults are chosen so that a grid point of a few dozen
rotations converges well below the iteration cap; hitting the cap is not an
error, the estimate at the cap is returned.
===============================================================================
"""

# =============================================================================
# QUATERNION TOLERANCES
# =============================================================================
NORM_TOLERANCE = 1e-10                 # Below this norm a quaternion is degenerate
SMALL_ANGLE = 1e-12                    # rad, first-order exp/log below this

# =============================================================================
# MANIFOLD AGGREGATION
# =============================================================================
# Geometric (Frechet / Karcher) mean
MEAN_TOLERANCE = 1e-10                 # rad, tangent step norm at convergence
MEAN_MAX_ITERATIONS = 100

# Geometric median (Weiszfeld)
MEDIAN_TOLERANCE = 1e-10               # rad, tangent step norm at convergence
MEDIAN_MAX_ITERATIONS = 200

# Samples closer than this to the current Weiszfeld estimate are left out of
# the reweighting step (1/d would blow up).
COINCIDENCE_TOLERANCE = 1e-12          # rad

# Samples all within this geodesic distance of the first one are treated as
# the same rotation and returned without iterating.
IDENTICAL_TOLERANCE = 1e-14            # rad

# =============================================================================
# QUATERNION TIME SERIES LAYOUT
# =============================================================================
TIME_COLUMN = 'time'
QUATERNION_COLUMNS = ('w', 'x', 'y', 'z')
QTS_COLUMNS = (TIME_COLUMN,) + QUATERNION_COLUMNS

# Type tags stored in DataFrame.attrs['class']: the QTS tag first, then the
# secondary tabular tags.
QTS_CLASS_TAGS = ('qts', 'tbl_df', 'tbl', 'data.frame')
QTS_CLASS_ATTR = 'class'

# =============================================================================
# RANDOM SAMPLE GENERATION
# =============================================================================
DEFAULT_NOISE_VARIANCE = 0.01          # alpha, variance of each log component
DEFAULT_NOISE_DECAY = 0.001            # beta, exponential covariance decay
