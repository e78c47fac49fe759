"""
===============================================================================
QTSTATS - Simulation
===============================================================================
Random QTS samples for testing and benchmarking the estimators.

Submodules:
    random_qts -- Gaussian-process noise in the tangent space of a mean QTS
===============================================================================
"""
