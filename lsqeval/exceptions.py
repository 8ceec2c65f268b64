"""
Exceptions raised by the least squares problem and its evaluations.

Each failure mode has its own class so that callers, typically an enclosing
optimizer, can tell a bad problem definition from an ill-conditioned one.
"""

__all__ = [
    "DimensionMismatchError",
    "SingularMatrixError",
    "TooManyEvaluationsError",
    "ConvergenceError",
]

import numpy as np


class DimensionMismatchError(ValueError):
    """
    Declared and actual sizes disagree.

    *actual* and *expected* are the offending size and the size required
    (an int for vector lengths, a tuple for matrix shapes).
    """

    def __init__(self, actual, expected, what="value"):
        self.actual = actual
        self.expected = expected
        ValueError.__init__(self, "%s has size %s but %s is required" % (what, actual, expected))


class SingularMatrixError(np.linalg.LinAlgError):
    """
    Matrix has a pivot at or below the singularity threshold.
    """

    def __init__(self, threshold, pivot=None):
        self.threshold = threshold
        self.pivot = pivot
        if pivot is None:
            msg = "matrix is singular (threshold %g)" % threshold
        else:
            msg = "matrix is singular: pivot %g <= threshold %g" % (pivot, threshold)
        np.linalg.LinAlgError.__init__(self, msg)


class TooManyEvaluationsError(RuntimeError):
    """
    The model function was called more often than allowed.
    """

    def __init__(self, max_count):
        self.max_count = max_count
        RuntimeError.__init__(self, "maximal count (%d) of model evaluations exceeded" % max_count)


class ConvergenceError(ArithmeticError):
    """
    A special function (e.g., the t distribution tail) could not be evaluated.
    """
