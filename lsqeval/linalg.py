# This program is in the public domain
r"""
Dense linear algebra used by the least squares evaluation.

Vectors and matrices are plain numpy float arrays.  The helpers here coerce
user input to arrays of the expected size, raising
:class:`lsqeval.exceptions.DimensionMismatchError` rather than broadcasting,
and invert matrices with a caller supplied singularity threshold.

:func:`qr_inverse` uses the Householder QR decomposition $A = QR$ and
computes $A^{-1} = R^{-1} Q^T$ by back substitution.  The matrix is treated
as singular if any $|R_{ii}|$ is at or below *threshold*:

    >>> import numpy as np
    >>> C = qr_inverse(np.diag([4.0, 0.5]), threshold=1e-10)
    >>> np.allclose(C, [[0.25, 0.0], [0.0, 2.0]])
    True
    >>> qr_inverse(np.diag([4.0, 0.5]), threshold=0.5)
    Traceback (most recent call last):
        ...
    lsqeval.exceptions.SingularMatrixError: matrix is singular: pivot 0.5 <= threshold 0.5
"""

__all__ = [
    "as_vector",
    "as_matrix",
    "readonly",
    "is_diagonal",
    "qr_inverse",
    "symmetric_sqrt",
]

import numpy as np
from scipy.linalg import solve_triangular

from .exceptions import DimensionMismatchError, SingularMatrixError


def readonly(a):
    """Mark array *a* as immutable and return it."""
    a.flags.writeable = False
    return a


def as_vector(v, size=None, what="vector"):
    """
    Return *v* as a 1-D float array, checking its length against *size*.

    A fresh copy is made so later changes to *v* by the caller are not seen.
    """
    v = np.array(v, dtype="d")
    if v.ndim != 1:
        raise DimensionMismatchError(v.shape, "1-D", what=what)
    if size is not None and v.shape[0] != size:
        raise DimensionMismatchError(v.shape[0], size, what=what)
    return v


def as_matrix(A, shape=None, what="matrix"):
    """
    Return *A* as a 2-D float array, checking it against *shape*.
    """
    A = np.array(A, dtype="d")
    if A.ndim != 2:
        raise DimensionMismatchError(A.shape, "2-D", what=what)
    if shape is not None and A.shape != tuple(shape):
        raise DimensionMismatchError(A.shape, tuple(shape), what=what)
    return A


def is_diagonal(A):
    """True if the square matrix *A* has no non-zero off-diagonal entries."""
    return not np.any(A - np.diag(np.diagonal(A)))


def qr_inverse(A, threshold):
    """
    Invert square matrix *A* using its QR decomposition.

    Raises :class:`SingularMatrixError` if any diagonal element of $R$ has
    magnitude less than or equal to *threshold*.
    """
    A = as_matrix(A)
    n, m = A.shape
    if n != m:
        raise DimensionMismatchError(A.shape, (n, n), what="matrix to invert")
    if n == 0:
        return np.empty((0, 0), "d")
    Q, R = np.linalg.qr(A)
    pivots = np.abs(np.diagonal(R))
    k = np.argmin(pivots)
    if not pivots[k] > threshold:
        raise SingularMatrixError(threshold, pivot=pivots[k])
    return solve_triangular(R, Q.T, lower=False)


def symmetric_sqrt(W, rtol=1e-12):
    r"""
    Return the symmetric square root $S$ of positive semi-definite $W$.

    $S = V \sqrt{\Lambda} V^T$ from the eigen decomposition of $W$, so
    $S = S^T$ and $S S^T = W$.  Eigenvalues that are negative by less than
    *rtol* times the largest eigenvalue are treated as round-off and set
    to zero; anything more negative raises ValueError.
    """
    W = as_matrix(W)
    if W.shape[0] != W.shape[1]:
        raise DimensionMismatchError(W.shape, (W.shape[0], W.shape[0]), what="weight")
    if not np.allclose(W, W.T, rtol=rtol, atol=0.0):
        raise ValueError("weight matrix must be symmetric")
    w, V = np.linalg.eigh(W)
    scale = np.max(np.abs(w)) if w.size else 0.0
    if np.any(w < -rtol * scale):
        raise ValueError("weight matrix must be positive semi-definite")
    w = np.clip(w, 0.0, None)
    return np.dot(V * np.sqrt(w), V.T)


def test_as_vector():
    v = as_vector([1, 2, 3], size=3)
    assert v.dtype == np.dtype("d") and v.shape == (3,)
    for bad, size in (([1, 2], 3), ([[1, 2]], None)):
        try:
            as_vector(bad, size=size)
        except DimensionMismatchError:
            pass
        else:
            raise AssertionError("accepted %r for size %s" % (bad, size))


def test_as_matrix():
    A = as_matrix([[1, 2], [3, 4]], shape=(2, 2))
    assert A.shape == (2, 2)
    try:
        as_matrix(A, shape=(2, 3))
    except DimensionMismatchError as exc:
        assert exc.actual == (2, 2) and exc.expected == (2, 3)
    else:
        raise AssertionError("wrong shape accepted")


def test_qr_inverse():
    from numpy.testing import assert_allclose

    A = np.array([[4.0, 1.0, 0.5], [1.0, 3.0, 0.2], [0.5, 0.2, 2.0]])
    assert_allclose(np.dot(qr_inverse(A, 1e-14), A), np.eye(3), atol=1e-14)

    # threshold is compared against |R_ii| from the decomposition
    J = np.diag([1.0, 1e-2])
    JTJ = np.dot(J.T, J)
    C = qr_inverse(JTJ, np.nextafter(1e-4, 0.0))
    assert_allclose(C, np.diag([1.0, 1e4]), rtol=1e-14)
    try:
        qr_inverse(JTJ, np.nextafter(1e-4, 1.0))
    except SingularMatrixError:
        pass
    else:
        raise AssertionError("threshold above pivot did not raise")

    try:
        qr_inverse(np.ones((2, 3)), 1e-14)
    except DimensionMismatchError:
        pass
    else:
        raise AssertionError("non-square matrix accepted")


def test_symmetric_sqrt():
    from numpy.testing import assert_allclose

    W = np.array([[4.0, 1.0], [1.0, 3.0]])
    S = symmetric_sqrt(W)
    assert_allclose(S, S.T, atol=1e-15)
    assert_allclose(np.dot(S, S.T), W, rtol=1e-13)
    assert_allclose(symmetric_sqrt(np.diag([16.0, 4.0])), np.diag([4.0, 2.0]), rtol=1e-15)
    for bad in ([[1.0, 2.0], [0.0, 1.0]], [[1.0, 0.0], [0.0, -1.0]]):
        try:
            symmetric_sqrt(bad)
        except ValueError:
            pass
        else:
            raise AssertionError("accepted invalid weight %s" % bad)
