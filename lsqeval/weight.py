# This program is in the public domain
r"""
Weighting of residuals.

The weight matrix $W$ defines the inner product $r^T W r$ used to measure
the size of the residual vector $r$.  Rather than using $W$ directly, the
evaluation applies a square root factor $L$ with $W = L L^T$ to the
residuals, the model value and the Jacobian.  Squaring the weighted
residuals $L^T r$ then gives the weighted sum of squares without applying
the weight twice.

Two forms are provided, chosen once when the problem is built:

    ================ ==============================================
    DiagonalWeight   independent measurements; $L = \sqrt{W}$
                     elementwise, applied by scaling rows
    DenseWeight      correlated measurements; $L$ is the symmetric
                     square root of $W$, applied by matrix product
    ================ ==============================================

Use :func:`weight_from_matrix` to build the factor from $W$ or
:func:`weight_from_sqrt` if $L$ is already known.  For measurements with
uncertainty $\sigma_i$ the weights are $1/\sigma_i^2$:

    >>> import numpy as np
    >>> w = weight_from_matrix(1/np.array([0.5, 2.0])**2)
    >>> w
    DiagonalWeight(size=2)
    >>> w.apply(np.array([1.0, 1.0]))
    array([2. , 0.5])
"""

__all__ = [
    "Weight",
    "DiagonalWeight",
    "DenseWeight",
    "weight_from_matrix",
    "weight_from_sqrt",
    "identity_weight",
]

import numpy as np

from .exceptions import DimensionMismatchError
from .linalg import as_matrix, as_vector, is_diagonal, readonly, symmetric_sqrt


class Weight(object):
    r"""
    Square root factor $L$ of a weight matrix $W = L L^T$.
    """

    #: number of observations weighted
    size = 0

    def apply(self, x):
        r"""
        Return $L^T x$ for a vector or a matrix with one row per observation.
        """
        raise NotImplementedError()

    def sqrt_matrix(self):
        """Return $L$ as a dense matrix."""
        raise NotImplementedError()

    def matrix(self):
        """Return $W = L L^T$ as a dense matrix."""
        L = self.sqrt_matrix()
        return np.dot(L, L.T)

    def _check(self, x):
        x = np.asarray(x, dtype="d")
        if x.ndim == 0 or x.shape[0] != self.size:
            raise DimensionMismatchError(x.shape[0] if x.ndim else 0, self.size, what="weighted rows")
        return x

    def __repr__(self):
        return "%s(size=%d)" % (self.__class__.__name__, self.size)


class DiagonalWeight(Weight):
    r"""
    Weight factor for a diagonal weight matrix, stored as the vector
    $\sqrt{w_i}$.
    """

    def __init__(self, sqrt_diagonal):
        self.sqrt_diagonal = readonly(as_vector(sqrt_diagonal, what="weight square root"))
        self.size = self.sqrt_diagonal.shape[0]

    def apply(self, x):
        x = self._check(x)
        if x.ndim == 1:
            return self.sqrt_diagonal * x
        return self.sqrt_diagonal[:, None] * x

    def sqrt_matrix(self):
        return np.diag(self.sqrt_diagonal)

    def matrix(self):
        return np.diag(self.sqrt_diagonal**2)


class DenseWeight(Weight):
    """
    Weight factor for a full weight matrix, stored as the dense matrix $L$.
    """

    def __init__(self, sqrt):
        L = as_matrix(sqrt, what="weight square root")
        if L.shape[0] != L.shape[1]:
            raise DimensionMismatchError(L.shape, (L.shape[0], L.shape[0]), what="weight square root")
        self.sqrt = readonly(L)
        self.size = L.shape[0]

    def apply(self, x):
        return np.dot(self.sqrt.T, self._check(x))

    def sqrt_matrix(self):
        return self.sqrt.copy()


def identity_weight(n):
    """Unit weight on each of *n* observations."""
    return DiagonalWeight(np.ones(n))


def weight_from_matrix(W):
    r"""
    Build the weight factor for weight matrix *W*.

    *W* may be an $n \times n$ symmetric positive semi-definite matrix, or
    a vector of length $n$ giving the diagonal.  Diagonal matrices use
    the :class:`DiagonalWeight` fast path.
    """
    W = np.asarray(W, dtype="d")
    if W.ndim == 1:
        diagonal = W
    elif W.ndim == 2 and W.shape[0] == W.shape[1] and is_diagonal(W):
        diagonal = np.diagonal(W)
    else:
        return DenseWeight(symmetric_sqrt(W))
    if np.any(diagonal < 0):
        raise ValueError("weights must be non-negative")
    return DiagonalWeight(np.sqrt(diagonal))


def weight_from_sqrt(L):
    """
    Build the weight factor from its square root *L*, with $W = L L^T$.

    *L* may be a matrix or a vector giving the diagonal of $L$.
    """
    L = np.asarray(L, dtype="d")
    if L.ndim == 1:
        return DiagonalWeight(L)
    if L.ndim == 2 and L.shape[0] == L.shape[1] and is_diagonal(L):
        return DiagonalWeight(np.diagonal(L))
    return DenseWeight(L)


def test_diagonal():
    w = weight_from_matrix(np.diag([16.0, 4.0]))
    assert isinstance(w, DiagonalWeight)
    assert (w.apply([3.0, 4.0]) == [12.0, 8.0]).all()
    J = np.array([[5.0, 6.0], [7.0, 8.0]])
    assert (w.apply(J) == [[20.0, 24.0], [14.0, 16.0]]).all()
    assert (w.matrix() == np.diag([16.0, 4.0])).all()
    try:
        w.apply([1.0, 2.0, 3.0])
    except DimensionMismatchError:
        pass
    else:
        raise AssertionError("wrong length accepted")
    try:
        weight_from_matrix([1.0, -1.0])
    except ValueError:
        pass
    else:
        raise AssertionError("negative weight accepted")


def test_dense():
    from numpy.testing import assert_allclose

    W = np.array([[2.0, 0.5], [0.5, 1.0]])
    w = weight_from_matrix(W)
    assert isinstance(w, DenseWeight)
    assert_allclose(w.matrix(), W, rtol=1e-13)
    r = np.array([0.3, -1.2])
    # the weighted residual norm is r' W r
    assert_allclose(np.sum(w.apply(r) ** 2), np.dot(r, np.dot(W, r)), rtol=1e-13)

    # a supplied lower triangular square root is applied as L'
    L = np.linalg.cholesky(W)
    w = weight_from_sqrt(L)
    assert isinstance(w, DenseWeight)
    assert_allclose(w.apply(r), np.dot(L.T, r), rtol=1e-15)
    assert_allclose(w.matrix(), W, rtol=1e-13)
    assert isinstance(weight_from_sqrt([1.0, 2.0]), DiagonalWeight)
