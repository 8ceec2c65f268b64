r"""
Exported names.

Usage::

    import lsqeval.names as lsq
    ...
    problem = lsq.least_squares(model, y, p0, weight=1/dy**2)

In scripts, rather than importing symbols one by one, you can simply
perform::

    from lsqeval.names import *

This is bad style for library and applications but convenient for
scripts.

The following symbols are defined:

- *np* for the `numpy <https://numpy.org/doc/stable/reference>`_ array package

Problem definition:

- :func:`least_squares <lsqeval.problem.least_squares>` and
  :class:`LeastSquaresBuilder <lsqeval.problem.LeastSquaresBuilder>`
  for defining the problem
- :func:`model_function <lsqeval.problem.model_function>` for combining
  value and Jacobian functions
- :func:`weight_matrix <lsqeval.problem.weight_matrix>` and
  :func:`weight_diagonal <lsqeval.problem.weight_diagonal>` for reweighting

Errors:

- :class:`DimensionMismatchError <lsqeval.exceptions.DimensionMismatchError>`,
  :class:`SingularMatrixError <lsqeval.exceptions.SingularMatrixError>`,
  :class:`TooManyEvaluationsError <lsqeval.exceptions.TooManyEvaluationsError>`,
  :class:`ConvergenceError <lsqeval.exceptions.ConvergenceError>`

Statistics:

- the t-tests from :mod:`lsqeval.ttest`
"""

__all__ = [
    "np",
    "least_squares",
    "LeastSquaresBuilder",
    "LeastSquaresProblem",
    "Evaluation",
    "model_function",
    "weight_matrix",
    "weight_diagonal",
    "DimensionMismatchError",
    "SingularMatrixError",
    "TooManyEvaluationsError",
    "ConvergenceError",
    "SummaryStatistics",
    "t_statistic",
    "t_test",
    "t_test_reject",
    "paired_t_statistic",
    "paired_t_test",
    "paired_t_test_reject",
    "two_sample_t_statistic",
    "two_sample_t_test",
    "two_sample_t_test_reject",
]

import numpy as np

from .evaluation import Evaluation
from .exceptions import ConvergenceError, DimensionMismatchError, SingularMatrixError, TooManyEvaluationsError
from .problem import (
    LeastSquaresBuilder,
    LeastSquaresProblem,
    least_squares,
    model_function,
    weight_diagonal,
    weight_matrix,
)
from .ttest import (
    SummaryStatistics,
    paired_t_statistic,
    paired_t_test,
    paired_t_test_reject,
    t_statistic,
    t_test,
    t_test_reject,
    two_sample_t_statistic,
    two_sample_t_test,
    two_sample_t_test_reject,
)
