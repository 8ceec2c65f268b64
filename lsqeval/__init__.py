# This program is in the public domain
"""
lsqeval: non-linear least squares problems and their evaluation

This package defines a least squares problem from a model function, the
observed values, a weight matrix and a starting point.  Evaluating the
problem at a point gives the weighted residuals and Jacobian, the cost,
and the covariance and standard deviation of the parameters, which are the
quantities a least squares optimizer needs at each step.

Student's t-tests are provided in :mod:`lsqeval.ttest`.

Use :mod:`lsqeval.names` for a flat namespace of the public symbols.
"""

try:
    from ._version import __version__  # noqa: F401
except ImportError:
    __version__ = "unknown"
