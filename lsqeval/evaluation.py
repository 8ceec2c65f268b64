# This program is in the public domain
r"""
Quantities derived from one evaluation of a least squares model.

An :class:`Evaluation` holds the point, the raw model value $f$ and raw
Jacobian $J$ returned by a single call to the model, together with the
problem target $y$ and the weight factor $L$ where $W = L L^T$.  All
derived quantities apply $L^T$ the same way:

    ======================== =================================================
    compute_value()          weighted value $L^T f$
    compute_residuals()      weighted residuals $L^T (y - f)$
    compute_jacobian()       weighted Jacobian $L^T J$
    compute_cost()           $\|L^T (y - f)\|_2 = \sqrt{(y-f)^T W (y-f)}$
    compute_rms()            cost / $\sqrt{N}$
    compute_chisq()          cost$^2$
    compute_reduced_chisq()  cost$^2 / (N - P)$
    compute_covariances(t)   $(J_w^T J_w)^{-1}$ with singularity threshold $t$
    compute_sigma(t)         $\sqrt{\text{diag}(C)}$
    compute_correlation(t)   correlation coefficients from $C$
    ======================== =================================================

The covariance is computed from the QR decomposition of $J_w^T J_w$.  If
any diagonal entry of $R$ is at or below the threshold then
:class:`lsqeval.exceptions.SingularMatrixError` is raised rather than
returning a matrix full of infinities.  The threshold is an absolute value,
so the same matrix may be accepted or refused depending on the threshold.

The covariance is not scaled by the reduced chi-square.  If the measurement
uncertainty is only known up to a constant, scale the sigma by
$\sqrt{\chi^2_N}$ (see :func:`lsqeval.lsqerror.stderr`).
"""

__all__ = ["Evaluation"]

import numpy as np

from . import options
from .exceptions import SingularMatrixError
from .linalg import as_matrix, as_vector, qr_inverse, readonly
from .logger import logger
from .lsqerror import corr, stderr


class Evaluation(object):
    """
    Least squares model evaluated at *point*.

    *value* and *jacobian* are the unweighted model output at *point*,
    *target* the observed values and *weight* the
    :class:`lsqeval.weight.Weight` factor from the problem.  Raises
    :class:`lsqeval.exceptions.DimensionMismatchError` if the model
    output does not match the target and point sizes.

    Evaluations are normally created by
    :meth:`lsqeval.problem.LeastSquaresProblem.evaluate`.
    """

    def __init__(self, point, value, jacobian, target, weight):
        self._point = readonly(as_vector(point, what="point"))
        self._target = target
        self._weight = weight
        n, p = target.shape[0], self._point.shape[0]
        self._value = readonly(as_vector(value, n, what="model value"))
        self._jacobian = readonly(as_matrix(jacobian, (n, p), what="model Jacobian"))
        self._cached_residuals = None
        self._cached_jacobian = None

    @property
    def point(self):
        """Parameter values at which the model was evaluated."""
        return self._point

    @property
    def observation_size(self):
        return self._value.shape[0]

    @property
    def parameter_size(self):
        return self._point.shape[0]

    def compute_value(self):
        """Weighted model value $L^T f$."""
        return readonly(self._weight.apply(self._value))

    def compute_residuals(self):
        """
        Weighted residuals $L^T (y - f)$, one per observation.
        """
        if self._cached_residuals is None:
            self._cached_residuals = readonly(self._weight.apply(self._target - self._value))
        return self._cached_residuals

    def compute_jacobian(self):
        """Weighted Jacobian $L^T J$."""
        if self._cached_jacobian is None:
            self._cached_jacobian = readonly(self._weight.apply(self._jacobian))
        return self._cached_jacobian

    def compute_cost(self):
        """Euclidean norm of the weighted residuals."""
        r = self.compute_residuals()
        return float(np.sqrt(np.dot(r, r)))

    def compute_rms(self):
        r"""
        Normalized cost, $\sqrt{\sum r_i^2 / N}$.

        Raises ValueError if there are no observations.
        """
        n = self.observation_size
        if n == 0:
            raise ValueError("RMS is undefined without observations")
        return self.compute_cost() / np.sqrt(n)

    def compute_chisq(self):
        """Weighted sum of squared residuals $(y-f)^T W (y-f)$."""
        r = self.compute_residuals()
        return float(np.dot(r, r))

    def compute_reduced_chisq(self):
        r"""
        Chi-square per degree of freedom, $\chi^2 / (N - P)$.

        Raises ValueError if there are no more observations than parameters.
        """
        dof = self.observation_size - self.parameter_size
        if dof <= 0:
            raise ValueError("%d observations cannot fit %d parameters" % (self.observation_size, self.parameter_size))
        return self.compute_chisq() / dof

    def compute_covariances(self, threshold=None):
        """
        Covariance matrix $(J_w^T J_w)^{-1}$ of the parameters.

        *threshold* is the singularity threshold on the pivots of the QR
        decomposition, defaulting to options.SINGULARITY_THRESHOLD.
        Raises :class:`lsqeval.exceptions.SingularMatrixError` if the
        matrix cannot be inverted.
        """
        if threshold is None:
            threshold = options.SINGULARITY_THRESHOLD
        J = self.compute_jacobian()
        try:
            return qr_inverse(np.dot(J.T, J), threshold)
        except SingularMatrixError as exc:
            logger.debug("no covariance at %s: %s", self._point, exc)
            raise

    def compute_sigma(self, threshold=None):
        r"""
        Parameter standard deviation estimate, $\sqrt{C_{ii}}$.

        See :meth:`compute_covariances` for *threshold*.
        """
        return stderr(self.compute_covariances(threshold))

    def compute_correlation(self, threshold=None):
        r"""
        Parameter correlation matrix $C_{ij} / \sigma_i \sigma_j$.

        See :meth:`compute_covariances` for *threshold*.
        """
        return corr(self.compute_covariances(threshold))

    def __repr__(self):
        return "Evaluation(point=%s, cost=%g)" % (np.array2string(self._point), self.compute_cost())


# NIST StRD nonlinear regression dataset Misra1a, y = b1*(1 - exp(-b2*x))
MISRA1A_X = np.array(
    [77.6, 114.9, 141.1, 190.8, 239.9, 289.0, 332.8, 378.4, 434.8, 477.3, 536.8, 593.1, 689.1, 760.0]
)
MISRA1A_Y = np.array(
    [10.07, 14.73, 17.94, 23.93, 29.61, 35.18, 40.02, 44.82, 50.76, 55.05, 61.01, 66.40, 75.47, 81.78]
)
MISRA1A_CERTIFIED = np.array([2.3894212918e02, 5.5015643181e-04])
MISRA1A_RSS = 1.2455138894e-01
MISRA1A_STDDEV = np.array([2.7070075241e00, 7.2668688436e-06])


def _misra1a(point):
    b1, b2 = point
    decay = np.exp(-b2 * MISRA1A_X)
    value = b1 * (1.0 - decay)
    jacobian = np.vstack((1.0 - decay, b1 * MISRA1A_X * decay)).T
    return value, jacobian


def _evaluate(model, target, weight, point):
    from .problem import least_squares

    return least_squares(model, target, np.zeros(len(point)), weight=weight).evaluate(point)


def test_residuals():
    evaluation = _evaluate(lambda p: (np.array([1.0, 2.0]), np.eye(2)), [3.0, -1.0], np.eye(2), np.zeros(2))
    assert (evaluation.compute_residuals() == [2.0, -3.0]).all()


def test_covariance_threshold():
    from numpy.testing import assert_allclose

    model = lambda p: (np.zeros(2), np.diag([1.0, 1e-2]))
    evaluation = _evaluate(model, np.zeros(2), np.diag([1.0, 1.0]), np.zeros(2))
    C = evaluation.compute_covariances(np.nextafter(1e-4, 0.0))
    assert_allclose(C, [[1.0, 0.0], [0.0, 1e4]], rtol=1e-14, atol=1e-14)
    try:
        evaluation.compute_covariances(np.nextafter(1e-4, 1.0))
    except SingularMatrixError:
        pass
    else:
        raise AssertionError("covariance returned for pivot below threshold")
    try:
        evaluation.compute_sigma(np.nextafter(1e-4, 1.0))
    except SingularMatrixError:
        pass
    else:
        raise AssertionError("sigma returned for pivot below threshold")
    assert_allclose(evaluation.compute_sigma(1e-10), [1.0, 1e2], rtol=1e-14)


def test_value_and_jacobian():
    point = np.array([1.0, 2.0])

    def model(actual):
        # the model sees the evaluation point unchanged
        assert (actual == point).all()
        return np.array([3.0, 4.0]), np.array([[5.0, 6.0], [7.0, 8.0]])

    evaluation = _evaluate(model, np.zeros(2), np.diag([16.0, 4.0]), point)
    assert (evaluation.point == point).all()
    assert (evaluation.compute_value() == [12.0, 8.0]).all()
    assert (evaluation.compute_jacobian() == [[20.0, 24.0], [14.0, 16.0]]).all()


def test_cost_identities():
    from numpy.testing import assert_allclose

    rng = np.random.default_rng(7)
    n, p = 9, 3
    A = rng.normal(size=(n, p))
    y = rng.normal(size=n)
    model = lambda x: (np.dot(A, x), A)
    root = rng.normal(size=(n, n))
    weights = (np.diag(rng.uniform(0.5, 2.0, size=n)), np.dot(root, root.T) + n * np.eye(n))
    for W in weights:
        evaluation = _evaluate(model, y, W, rng.normal(size=p))
        r = evaluation.compute_residuals()
        cost = evaluation.compute_cost()
        assert_allclose(cost**2, np.sum(r**2), rtol=1e-14)
        assert_allclose(evaluation.compute_chisq(), cost**2, rtol=1e-14)
        assert_allclose(evaluation.compute_rms(), cost / np.sqrt(n), rtol=1e-15)
        assert_allclose(evaluation.compute_reduced_chisq(), cost**2 / (n - p), rtol=1e-14)

        # cost is the W-norm of the raw residuals
        raw = y - np.dot(A, evaluation.point)
        assert_allclose(cost**2, np.dot(raw, np.dot(W, raw)), rtol=1e-12)

        # weighted target minus weighted value gives the weighted residuals
        from .weight import weight_from_matrix

        target_weighted = weight_from_matrix(W).apply(y)
        assert_allclose(target_weighted - evaluation.compute_value(), r, rtol=1e-12, atol=1e-12)

        # covariance inverts the weighted normal matrix
        J = evaluation.compute_jacobian()
        C = evaluation.compute_covariances(1e-14)
        assert_allclose(np.dot(C, np.dot(J.T, J)), np.eye(p), atol=1e-10)
        assert_allclose(np.dot(J.T, J), np.dot(A.T, np.dot(W, A)), rtol=1e-12, atol=1e-12)
        R = evaluation.compute_correlation(1e-14)
        assert_allclose(np.diag(R), np.ones(p), rtol=1e-12)


def test_identity_weight():
    x = np.array([0.5, 1.5, 2.5])
    model = lambda p: (p[0] * np.exp(-x), np.exp(-x)[:, None])
    y = np.array([2.0, 1.0, 0.25])
    evaluation = _evaluate(model, y, np.eye(3), np.array([1.5]))
    assert (evaluation.compute_residuals() == y - 1.5 * np.exp(-x)).all()


def test_no_observations():
    evaluation = _evaluate(lambda p: (np.zeros(0), np.zeros((0, 2))), np.zeros(0), np.zeros(0), np.zeros(2))
    assert evaluation.compute_cost() == 0.0
    for method in (evaluation.compute_rms, evaluation.compute_reduced_chisq):
        try:
            method()
        except ValueError:
            pass
        else:
            raise AssertionError("%s defined without observations" % method.__name__)


def test_derived_arrays_readonly():
    evaluation = _evaluate(lambda p: (np.array([1.0, 2.0]), np.eye(2)), [3.0, -1.0], np.eye(2), np.zeros(2))
    for array in (evaluation.point, evaluation.compute_residuals(), evaluation.compute_jacobian()):
        try:
            array[0] = 0.0
        except ValueError:
            pass
        else:
            raise AssertionError("derived array is writable")
    assert (evaluation.compute_residuals() == [2.0, -3.0]).all()


def test_misra1a():
    from numpy.testing import assert_allclose
    from .problem import least_squares

    problem = least_squares(_misra1a, MISRA1A_Y, [500.0, 1e-4], weight=np.ones(len(MISRA1A_Y)))
    evaluation = problem.evaluate(MISRA1A_CERTIFIED)
    cost = evaluation.compute_cost()
    assert_allclose(cost**2, MISRA1A_RSS, rtol=1e-8)
    assert_allclose(evaluation.compute_rms(), np.sqrt(MISRA1A_RSS / len(MISRA1A_Y)), rtol=1e-8)
    # certified point is a minimum so the weighted gradient J'r vanishes
    J, r = evaluation.compute_jacobian(), evaluation.compute_residuals()
    gradient = np.dot(J.T, r) / np.sqrt(np.sum(J**2, axis=0))
    assert np.all(np.abs(gradient) < 1e-6 * cost)

    # certified standard deviations are sigma scaled by the residual scatter
    dof = problem.observation_size - problem.parameter_size
    scale = np.sqrt(cost**2 / dof)
    assert_allclose(scale * evaluation.compute_sigma(1e-14), MISRA1A_STDDEV, rtol=1e-6)
    assert_allclose(evaluation.compute_reduced_chisq(), scale**2, rtol=1e-12)
