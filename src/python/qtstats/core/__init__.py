"""
===============================================================================
QTSTATS - Core Module
===============================================================================
Shared numerical foundations.

Submodules:
    constants   -- Tolerances, iteration caps and QTS column layout
    quaternion  -- Unit quaternion algebra, log/exp maps, geodesic distance
===============================================================================
"""
