"""
===============================================================================
QTSTATS - Quaternion Time Series Container
===============================================================================
A quaternion time series (QTS) is a pandas DataFrame with one row per grid
point and the columns

    time | w | x | y | z

where (w, x, y, z) is a scalar-first unit quaternion. A frame is marked as a
QTS by a type tag in ``DataFrame.attrs['class']``: the 'qts' tag followed by
the secondary tabular tags, so downstream code can tell an aggregated or
transformed series from an arbitrary table.

Everything else in the package only touches a QTS through the helpers in
this module: column access by name, row count, deep copy and tagging.
===============================================================================
"""

from typing import Sequence, Union

import numpy as np
import pandas as pd

from qtstats.core.constants import (
    QTS_CLASS_ATTR, QTS_CLASS_TAGS, QTS_COLUMNS, QUATERNION_COLUMNS,
    TIME_COLUMN
)
from qtstats.core.quaternion import Quaternion


def tag_qts(frame: pd.DataFrame) -> pd.DataFrame:
    """Mark ``frame`` as a QTS in place and return it."""
    frame.attrs[QTS_CLASS_ATTR] = list(QTS_CLASS_TAGS)
    return frame


def is_qts(obj: object) -> bool:
    """True if ``obj`` is a DataFrame tagged as a QTS with the QTS columns."""
    if not isinstance(obj, pd.DataFrame):
        return False
    tags = obj.attrs.get(QTS_CLASS_ATTR, ())
    return QTS_CLASS_TAGS[0] in tags and all(c in obj.columns
                                             for c in QTS_COLUMNS)


def as_qts(frame: pd.DataFrame) -> pd.DataFrame:
    """
    Coerce a table into a QTS.

    Parameters
    ----------
    frame : pd.DataFrame
        Table holding at least the columns time, w, x, y and z.

    Returns
    -------
    pd.DataFrame
        ``frame`` itself if it already is a QTS, otherwise a new frame with
        the QTS columns first, in order, followed by any other columns of
        ``frame``, with float quaternion columns and the QTS tag.

    Raises
    ------
    TypeError
        If ``frame`` is not a DataFrame.
    ValueError
        If any of the QTS columns is missing.
    """
    if is_qts(frame):
        return frame
    if not isinstance(frame, pd.DataFrame):
        raise TypeError(
            f"A QTS must be a pandas DataFrame, got {type(frame).__name__}"
        )

    missing = [c for c in QTS_COLUMNS if c not in frame.columns]
    if missing:
        raise ValueError(
            f"A QTS needs the columns {list(QTS_COLUMNS)}; missing {missing}"
        )

    extra = [c for c in frame.columns if c not in QTS_COLUMNS]
    out = frame.loc[:, list(QTS_COLUMNS) + extra].copy()
    out = out.astype({c: np.float64 for c in QUATERNION_COLUMNS})
    return tag_qts(out)


def qts_from_arrays(time: Sequence[float],
                    quaternions: Union[np.ndarray, Sequence[Quaternion]]
                    ) -> pd.DataFrame:
    """
    Build a QTS from a time grid and a (G, 4) array of quaternions.

    Raises
    ------
    ValueError
        If the two inputs do not have matching lengths.
    """
    if len(quaternions) and isinstance(quaternions[0], Quaternion):
        quaternions = [q.components for q in quaternions]
    q = np.asarray(quaternions, dtype=np.float64).reshape(-1, 4)
    time = np.asarray(time)
    if time.shape[0] != q.shape[0]:
        raise ValueError(
            f"Time grid has {time.shape[0]} points but {q.shape[0]} "
            "quaternions were given"
        )

    frame = pd.DataFrame({TIME_COLUMN: time})
    for j, col in enumerate(QUATERNION_COLUMNS):
        frame[col] = q[:, j]
    return tag_qts(frame)


def grid_size(qts: pd.DataFrame) -> int:
    """Number of grid points (rows) of a QTS."""
    return len(qts.index)


def quaternion_matrix(qts: pd.DataFrame) -> np.ndarray:
    """The (G, 4) float array of [w, x, y, z] rows of a QTS."""
    return qts.loc[:, list(QUATERNION_COLUMNS)].to_numpy(dtype=np.float64)


def with_quaternions(qts: pd.DataFrame, values: np.ndarray) -> pd.DataFrame:
    """
    Deep copy of ``qts`` with its quaternion columns replaced by ``values``.

    The time column, index and attrs of ``qts`` are carried over unchanged.
    """
    values = np.asarray(values, dtype=np.float64)
    if values.shape != (grid_size(qts), 4):
        raise ValueError(
            f"Expected quaternion values of shape {(grid_size(qts), 4)}, "
            f"got {values.shape}"
        )
    out = qts.copy(deep=True)
    for j, col in enumerate(QUATERNION_COLUMNS):
        out[col] = values[:, j]
    return tag_qts(out)


def log_qts(qts: pd.DataFrame) -> pd.DataFrame:
    """
    Pointwise quaternion logarithm of a QTS.

    Each unit quaternion [cos(theta/2), sin(theta/2) n] is mapped to the
    pure quaternion [0, (theta/2) n], i.e. half its short-arc rotation
    vector.
    """
    qts = as_qts(qts)
    values = np.zeros((grid_size(qts), 4))
    for i, row in enumerate(quaternion_matrix(qts)):
        values[i, 1:] = 0.5 * Quaternion.from_array(row).to_rotation_vector()
    return with_quaternions(qts, values)


def exp_qts(qts: pd.DataFrame) -> pd.DataFrame:
    """
    Pointwise quaternion exponential of a pure-quaternion QTS.

    Inverse of ``log_qts``. The w column is ignored: only the vector part
    (x, y, z) is exponentiated.
    """
    qts = as_qts(qts)
    values = np.empty((grid_size(qts), 4))
    for i, row in enumerate(quaternion_matrix(qts)):
        values[i] = Quaternion.from_rotation_vector(2.0 * row[1:]).components
    return with_quaternions(qts, values)
