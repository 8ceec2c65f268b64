r"""
Least squares error analysis helpers.

:func:`jacobian` estimates the Jacobian matrix $J$ of a vector valued
function by numerical differentiation.  It is used when a model is defined
with a value function only.  Derivatives use the forward difference formula
with one extra evaluation per parameter, or the center point formula with
two evaluations per parameter if *central=True*.  If analytic derivatives
are available they should be used instead.

:func:`stderr` computes the uncertainty $\sigma_i$ from covariance matrix
$C$, assuming that $C_\text{diag}$ contains $\sigma_i^2$, which should be
the case for functions which are approximately linear near the minimum.

:func:`corr` uses the off-diagonal elements of $C$ to compute correlation
coefficients $R_{ij}$ between the parameters.

The user should be shown the uncertainty $\sigma_i$ for each parameter,
and if there are strong parameter correlations (e.g., $|R_{ij}| > 0.2$),
the correlation matrix as well.
"""

__all__ = ["jacobian", "stderr", "corr"]

import numpy as np


def jacobian(f, p, bounds=None, step=None, central=False):
    """
    Returns the derivative of *f* wrt the parameters at point *p*.

    Numeric derivatives are calculated based on *step*, where *step* is
    the portion of point value $p_j$, or the absolute step if $p_j$ is zero.
    The default step is 1e-4.

    If *bounds* (lo, hi) is given, forward steps which would go past the upper
    bound are taken backward instead.

    Note that *f* should not reuse memory for the returned value otherwise
    the derivative calculation (f(x+dx) - f(x))/dx will always be zero.
    """
    p = np.asarray(p, dtype="d")

    def fvec(p):
        # Return f as a vector even if f(x) returns a matrix otherwise
        # we cannot build a stacked Jacobian.
        return np.reshape(np.array(f(p), dtype="d"), -1)

    if central:
        return _jacobian_central(fvec, p, eps=step)
    return _jacobian_forward(fvec, p, bounds, eps=step)


def _steps(p, eps):
    step = 1e-4 if eps is None else eps
    h = abs(p) * step
    h[h == 0] = step
    return h


def _jacobian_forward(f, p, bounds, eps=None):
    n = len(p)
    h = _steps(p, eps)
    if bounds is not None:
        h[h + p > bounds[1]] *= -1.0  # step backward if forward step is out of bounds
    ee = np.diag(h)

    fx = f(p)
    J = [(f(p + ee[i, :]) - fx) / h[i] for i in range(n)]
    return np.vstack(J).T if J else np.empty((len(fx), 0))


def _jacobian_central(f, p, eps=None):
    n = len(p)
    h = _steps(p, eps)
    ee = np.diag(h)

    J = []
    for i in range(n):
        fx_minus = f(p - ee[i, :])
        fx_plus = f(p + ee[i, :])
        J.append((fx_plus - fx_minus) / (2.0 * h[i]))
    return np.vstack(J).T if J else np.empty((len(f(p)), 0))


def corr(C):
    """
    Convert covariance matrix $C$ to correlation matrix $R$.

    Uses $R = D^{-1} C D^{-1}$ where $D$ is the square root of the diagonal
    of the covariance matrix, or the standard error of each variable.
    """
    Dinv = 1.0 / stderr(C)
    return C * Dinv[:, None] * Dinv[None, :]


def stderr(C):
    r"""
    Return parameter uncertainty from the covariance matrix C.

    This is just the square root of the diagonal, without any correction
    for covariance.

    If measurement uncertainty is unknown, scale the returned uncertainties
    by $\sqrt{\chi^2_N}$, where $\chi^2_N$ is the sum squared residuals
    divided by the degrees of freedom.  This will match the uncertainty on
    the parameters to the observed scatter assuming the model is correct and
    the fit is optimal.
    """
    return np.sqrt(np.diag(C))


def test_jacobian():
    from numpy.testing import assert_allclose

    x = np.array([1.0, 2.0, 3.0])
    f = lambda p: p[0] * x + p[1] * x**2
    p = np.array([2.0, 3.0])
    target = np.vstack((x, x**2)).T
    assert_allclose(jacobian(f, p), target, rtol=1e-8)
    assert_allclose(jacobian(f, p, central=True), target, rtol=1e-8)
    # backward step at the upper bound gives the same slope for a linear f
    bounds = (np.array([0.0, 0.0]), np.array([2.0, 3.0]))
    assert_allclose(jacobian(f, p, bounds=bounds), target, rtol=1e-8)

    g = lambda p: np.exp(p[0] * x)
    assert_allclose(jacobian(g, [0.5], central=True), (x * np.exp(0.5 * x))[:, None], rtol=1e-6)


def test_corr():
    from numpy.testing import assert_allclose

    C = np.array([[4.0, 1.0], [1.0, 1.0]])
    assert_allclose(stderr(C), [2.0, 1.0])
    R = corr(C)
    assert_allclose(R, [[1.0, 0.5], [0.5, 1.0]])
