"""
Integer statistics over the scores of an assessment record.

Everything stays in integers: the mean is a floor division and the
dispersion is the integer square root of the floored sample variance.
Records never hold more than a few dozen scores, so each call simply
recomputes over the whole sequence.
"""

import math
from typing import Sequence

import numpy as np


def mean(scores: Sequence[int]) -> int:
    """Floor-division average; 0 for an empty sequence."""
    if len(scores) == 0:
        return 0
    values = np.asarray(scores, dtype=np.int64)
    return int(values.sum()) // len(values)


def dispersion(scores: Sequence[int], mean_score: int) -> int:
    """
    Spread of the scores around mean_score.

    Squared deviations are summed and divided by (count - 1), then the
    integer square root is taken. Fewer than two scores have no spread.
    """
    count = len(scores)
    if count <= 1:
        return 0
    deviations = np.asarray(scores, dtype=np.int64) - mean_score
    variance = int(np.square(deviations).sum()) // (count - 1)
    return integer_sqrt(variance)


def integer_sqrt(value: int) -> int:
    """Largest r with r * r <= value."""
    if value < 0:
        raise ValueError(f"Cannot take the square root of {value}")
    return math.isqrt(value)
