"""
===============================================================================
QTSTATS - QTS Sample Collection
===============================================================================
A QTS sample is an ordered collection of quaternion time series, typically
repeated recordings of the same motion. ``QTSSample`` is a list of QTS
frames that coerces its items on construction and keeps its type through
slicing, subsetting and concatenation.
===============================================================================
"""

from typing import Iterable, Sequence, Union

import numpy as np
import pandas as pd

from qtstats.core.constants import (
    MEAN_MAX_ITERATIONS, MEAN_TOLERANCE, MEDIAN_MAX_ITERATIONS,
    MEDIAN_TOLERANCE
)
from qtstats.series.aggregate import mean_series, median_series
from qtstats.series.qts import as_qts, is_qts


class QTSSample(list):
    """
    List of quaternion time series.

    Items are coerced with ``as_qts`` when the sample is built or extended,
    so every element is a tagged QTS frame.

    Examples
    --------
    >>> sample = QTSSample([qts_a, qts_b])
    >>> sample[0:1]             # still a QTSSample
    >>> sample.subset([0], simplify=True)   # the QTS itself
    >>> sample.mean()           # pointwise geometric mean, a QTS
    """

    def __init__(self, items: Iterable[pd.DataFrame] = ()) -> None:
        super().__init__(as_qts(item) for item in items)

    def __getitem__(self, index):
        result = super().__getitem__(index)
        if isinstance(index, slice):
            return QTSSample(result)
        return result

    def __add__(self, other: Iterable[pd.DataFrame]) -> 'QTSSample':
        return QTSSample(list(self) + [as_qts(item) for item in other])

    def __repr__(self) -> str:
        sizes = [len(item.index) for item in self]
        return f"QTSSample(n={len(self)}, grid_sizes={sizes})"

    def append(self, item: pd.DataFrame) -> None:
        super().append(as_qts(item))

    def extend(self, items: Iterable[pd.DataFrame]) -> None:
        super().extend(as_qts(item) for item in items)

    def subset(self, indices: Union[int, slice, Sequence[int], Sequence[bool],
                                    np.ndarray],
               simplify: bool = False) -> Union['QTSSample', pd.DataFrame]:
        """
        Select series by position, slice, index list or boolean mask.

        Parameters
        ----------
        indices : int, slice, sequence of int or sequence of bool
            Which series to keep. A boolean mask must have one entry per
            series.
        simplify : bool
            If True and exactly one series is selected, return that QTS
            instead of a one-element sample.

        Raises
        ------
        ValueError
            If a boolean mask does not match the sample length.
        """
        if isinstance(indices, (int, np.integer)):
            selected = [super().__getitem__(indices)]
        elif isinstance(indices, slice):
            selected = super().__getitem__(indices)
        else:
            idx = np.asarray(indices)
            if idx.dtype == bool:
                if idx.shape[0] != len(self):
                    raise ValueError(
                        f"Boolean mask has {idx.shape[0]} entries for a "
                        f"sample of {len(self)} QTS"
                    )
                idx = np.flatnonzero(idx)
            selected = [super(QTSSample, self).__getitem__(int(i))
                        for i in idx]

        if simplify and len(selected) == 1:
            return selected[0]
        return QTSSample(selected)

    def mean(self, tolerance: float = MEAN_TOLERANCE,
             max_iterations: int = MEAN_MAX_ITERATIONS,
             n_jobs: int = 1) -> pd.DataFrame:
        """Pointwise geometric mean of the sample (see ``mean_series``)."""
        return mean_series(self, tolerance=tolerance,
                           max_iterations=max_iterations, n_jobs=n_jobs)

    def median(self, tolerance: float = MEDIAN_TOLERANCE,
               max_iterations: int = MEDIAN_MAX_ITERATIONS,
               n_jobs: int = 1) -> pd.DataFrame:
        """Pointwise geometric median of the sample (see ``median_series``)."""
        return median_series(self, tolerance=tolerance,
                             max_iterations=max_iterations, n_jobs=n_jobs)


def is_qts_sample(obj: object) -> bool:
    return isinstance(obj, QTSSample)


def as_qts_sample(obj: Union[QTSSample, pd.DataFrame, Sequence[pd.DataFrame]]
                  ) -> QTSSample:
    """
    Coerce a QTS, or a list or tuple of QTS, into a ``QTSSample``.

    Raises
    ------
    TypeError
        If ``obj`` is neither a DataFrame nor a list or tuple.
    """
    if is_qts_sample(obj):
        return obj
    if isinstance(obj, pd.DataFrame):
        return QTSSample([obj])
    if not isinstance(obj, (list, tuple)):
        raise TypeError(
            f"Expected a QTS or a list of QTS, got {type(obj).__name__}"
        )
    return QTSSample(obj)


def append(sample: QTSSample,
           other: Union[QTSSample, pd.DataFrame]) -> QTSSample:
    """
    New sample holding the series of ``sample`` followed by ``other``.

    ``other`` may be a single QTS or another sample.

    Raises
    ------
    TypeError
        If ``other`` is neither a QTS nor a ``QTSSample``.
    """
    if is_qts(other):
        other = QTSSample([other])
    if not is_qts_sample(other):
        raise TypeError(
            "Only a QTS or a QTSSample can be appended to a QTSSample, got "
            f"{type(other).__name__}"
        )
    return as_qts_sample(sample) + other
