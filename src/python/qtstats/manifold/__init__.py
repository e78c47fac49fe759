"""
===============================================================================
QTSTATS - Manifold Aggregation
===============================================================================
Central tendency of a finite set of rotations under the SO(3) geodesic
distance.

Submodules:
    aggregation -- geometric_mean (Karcher), geometric_median (Weiszfeld),
                   geodesic distance, tangent maps, Frechet variance
===============================================================================
"""
