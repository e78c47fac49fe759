"""
===============================================================================
QTSTATS - Quaternion Time Series
===============================================================================
Containers and transforms for quaternion time series (QTS) stored as
pandas DataFrames with columns time, w, x, y, z.

Submodules:
    qts        -- QTS tagging, coercion, pointwise log/exp
    sample     -- QTSSample collection, subsetting and concatenation
    aggregate  -- Pointwise geometric mean/median of a QTS sample
    scaling    -- Pointwise centring and standardization of a QTS sample
===============================================================================
"""
