# This program is in the public domain
r"""
Definition of a non-linear least squares problem.

A problem bundles the observed *target* values, the *weight* matrix used
to measure the residuals, an initial guess *start* for the parameters and
a *model* function.  The model maps a parameter vector of length $P$ to
the model value (length $N$) and its Jacobian ($N \times P$)::

    def model(point):
        value = ...     # vector of length N
        jacobian = ...  # matrix N x P, d value_i / d point_j
        return value, jacobian

Calling :meth:`LeastSquaresProblem.evaluate` invokes the model once and
returns an :class:`lsqeval.evaluation.Evaluation` from which the weighted
residuals, cost, covariance and parameter uncertainty are computed.

Problems are immutable.  They can be built directly with
:func:`least_squares` or step by step with :class:`LeastSquaresBuilder`:

    >>> import numpy as np
    >>> x = np.array([0.0, 1.0, 2.0])
    >>> line = model_function(lambda p: p[0] + p[1]*x,
    ...                       lambda p: np.vstack((np.ones_like(x), x)).T)
    >>> problem = (LeastSquaresBuilder()
    ...     .model(line)
    ...     .target([1.0, 3.0, 5.0])
    ...     .start([1.0, 2.0])
    ...     .build())
    >>> problem.observation_size, problem.parameter_size
    (3, 2)
    >>> float(problem.evaluate(problem.start).compute_cost())
    0.0

The only mutable state in a problem is the count of model evaluations,
which is protected by a lock so that a problem can be evaluated from
several threads at once.
"""

__all__ = [
    "ModelFunction",
    "model_function",
    "EvaluationCounter",
    "LeastSquaresProblem",
    "LeastSquaresBuilder",
    "least_squares",
    "weight_matrix",
    "weight_diagonal",
]

from dataclasses import dataclass, field, replace
import threading
from typing import Callable, Optional, Protocol, Tuple, runtime_checkable

import numpy as np

from . import options
from .evaluation import Evaluation
from .exceptions import DimensionMismatchError, TooManyEvaluationsError
from .linalg import as_vector, readonly
from .logger import logger
from .lsqerror import jacobian as numerical_jacobian
from .weight import Weight, identity_weight, weight_from_matrix, weight_from_sqrt


@runtime_checkable
class ModelFunction(Protocol):
    """
    Model evaluator returning the value and Jacobian at a point.

    The function must be pure: the same point always gives the same result
    and no state is changed by the call.
    """

    def __call__(self, point: np.ndarray) -> Tuple[np.ndarray, np.ndarray]: ...


def model_function(value, jacobian=None, step=None, central=False, bounds=None):
    """
    Combine a *value* function and a *jacobian* function into a model.

    Both take the parameter vector.  If *jacobian* is None then the
    Jacobian is estimated by finite differences of *value* with relative
    *step*, using central differences if *central* is True and stepping
    backward at the upper limit of *bounds* (lo, hi) otherwise (see
    :func:`lsqeval.lsqerror.jacobian`).
    """
    if jacobian is None:

        def jacobian(point):
            return numerical_jacobian(value, point, bounds=bounds, step=step, central=central)

    def model(point):
        return value(point), jacobian(point)

    return model


class EvaluationCounter(object):
    """
    Thread-safe count of model evaluations with an optional maximum.

    :meth:`increment` raises :class:`TooManyEvaluationsError` rather than
    counting past *max_count*.
    """

    def __init__(self, max_count=None):
        self.max_count = max_count
        self._count = 0
        self._lock = threading.Lock()

    @property
    def count(self):
        return self._count

    def increment(self):
        with self._lock:
            if self.max_count is not None and self._count >= self.max_count:
                logger.warning("model evaluation limit of %d reached", self.max_count)
                raise TooManyEvaluationsError(self.max_count)
            self._count += 1
            return self._count


@dataclass(frozen=True, eq=False)
class LeastSquaresProblem:
    """
    Immutable least squares problem.

    *start* is the initial guess (or None), *target* the observed values,
    *weight* a :class:`lsqeval.weight.Weight` factor and *model* the
    :class:`ModelFunction`.  *max_evaluations* caps the number of calls to
    :meth:`evaluate` (None for no cap).  *parameter_validator*, if given,
    maps each point to the point actually evaluated, for example by
    clipping it to the parameter bounds.

    Without *start* the number of parameters is fixed by the first point
    given to :meth:`evaluate`.
    """

    start: Optional[np.ndarray]
    target: np.ndarray
    weight: Weight
    model: Callable
    max_evaluations: Optional[int] = None
    parameter_validator: Optional[Callable] = None
    counter: EvaluationCounter = field(init=False, repr=False)

    def __post_init__(self):
        start = None if self.start is None else readonly(as_vector(self.start, what="start"))
        target = readonly(as_vector(self.target, what="target"))
        if not isinstance(self.weight, Weight):
            raise TypeError("weight should be a Weight; use weight_from_matrix(W)")
        if self.weight.size != target.shape[0]:
            raise DimensionMismatchError(self.weight.size, target.shape[0], what="weight")
        if not isinstance(self.model, ModelFunction):
            raise TypeError("model should be callable as model(point) -> (value, jacobian)")
        if self.max_evaluations is not None and self.max_evaluations < 0:
            raise ValueError("max_evaluations must be non-negative")
        # frozen dataclass: initialize the derived fields behind its back
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "target", target)
        object.__setattr__(self, "counter", EvaluationCounter(self.max_evaluations))
        object.__setattr__(self, "_point_size", None if start is None else start.shape[0])
        object.__setattr__(self, "_point_size_lock", threading.Lock())

    @property
    def observation_size(self):
        """Number of observations $N$ (rows in the Jacobian)."""
        return self.target.shape[0]

    @property
    def parameter_size(self):
        """
        Number of parameters $P$ (columns in the Jacobian).

        None if there is no *start* and nothing has been evaluated yet.
        """
        return self._point_size

    @property
    def evaluation_count(self):
        """Number of model evaluations so far."""
        return self.counter.count

    def evaluate(self, point):
        """
        Evaluate the model at *point*, returning an :class:`Evaluation`.

        Raises :class:`DimensionMismatchError` if *point* or the model output
        have the wrong size, and :class:`TooManyEvaluationsError` if the
        evaluation limit has been reached.
        """
        point = self._check_point(point)
        if self.parameter_validator is not None:
            point = readonly(as_vector(self.parameter_validator(point), point.shape[0], what="validated point"))
        count = self.counter.increment()
        logger.debug("model evaluation %d at %s", count, point)
        value, jacobian = self.model(point)
        return Evaluation(point, value, jacobian, self.target, self.weight)

    def _check_point(self, point):
        with self._point_size_lock:
            point = as_vector(point, self._point_size, what="point")
            if self._point_size is None:
                object.__setattr__(self, "_point_size", point.shape[0])
        return readonly(point)

    def with_weight(self, weight):
        """
        Return a copy of the problem using weight matrix *weight*.

        *weight* is a matrix, a vector giving the diagonal, or a
        :class:`lsqeval.weight.Weight` factor.  The copy keeps its own
        evaluation count.
        """
        if not isinstance(weight, Weight):
            weight = weight_from_matrix(weight)
        return replace(self, weight=weight)


def least_squares(
    model,
    target,
    start=None,
    weight=None,
    weight_sqrt=None,
    max_evaluations=None,
    parameter_validator=None,
):
    """
    Create a :class:`LeastSquaresProblem`.

    *weight* is the weight matrix $W$ or a vector giving its diagonal.
    Alternatively, *weight_sqrt* gives a factor $L$ with $W = L L^T$.
    If neither is given, every observation has unit weight.  *start* may
    be omitted if the problem is only evaluated at given points.
    """
    target = as_vector(target, what="target")
    if weight is not None and weight_sqrt is not None:
        raise TypeError("use weight or weight_sqrt but not both")
    if weight_sqrt is not None:
        factor = weight_from_sqrt(weight_sqrt)
    elif weight is not None:
        factor = weight if isinstance(weight, Weight) else weight_from_matrix(weight)
    else:
        factor = identity_weight(target.shape[0])
    problem = LeastSquaresProblem(
        start=start,
        target=target,
        weight=factor,
        model=model,
        max_evaluations=max_evaluations,
        parameter_validator=parameter_validator,
    )
    logger.debug(
        "least squares problem with %d observations and %s parameters",
        problem.observation_size,
        problem.parameter_size,
    )
    return problem


def weight_matrix(problem, weights):
    """Return *problem* with the weight matrix replaced by *weights*."""
    return problem.with_weight(weight_from_matrix(weights))


def weight_diagonal(problem, weights):
    """Return *problem* with diagonal weights *weights*."""
    return problem.with_weight(weight_from_matrix(as_vector(weights, what="weights")))


class LeastSquaresBuilder(object):
    """
    Collect the pieces of a least squares problem.

    Each setter replaces any previous value and returns the builder so
    calls can be chained.  :meth:`build` checks that the pieces fit
    together and returns the immutable :class:`LeastSquaresProblem`.
    """

    def __init__(self):
        self._model = None
        self._target = None
        self._start = None
        self._weight = None
        self._weight_sqrt = None
        self._max_evaluations = options.MAX_EVALUATIONS
        self._parameter_validator = None

    def model(self, function, jacobian=None):
        """
        Set the model.

        With *jacobian* None, *function(point)* returns (value, jacobian).
        Otherwise *function* returns the value and *jacobian* the Jacobian.
        """
        self._model = function if jacobian is None else model_function(function, jacobian)
        return self

    def target(self, target):
        self._target = as_vector(target, what="target")
        return self

    def start(self, start):
        self._start = as_vector(start, what="start")
        return self

    def weight(self, weight):
        """Set the weight matrix (or the vector of its diagonal)."""
        self._weight, self._weight_sqrt = weight, None
        return self

    def weight_sqrt(self, sqrt):
        """Set the weight by its square root factor $L$, with $W = L L^T$."""
        self._weight, self._weight_sqrt = None, sqrt
        return self

    def max_evaluations(self, max_evaluations):
        self._max_evaluations = max_evaluations
        return self

    def parameter_validator(self, validator):
        self._parameter_validator = validator
        return self

    def build(self):
        """
        Return the :class:`LeastSquaresProblem`.

        The model and target are required.  The start point is optional.
        """
        missing = [name for name, value in (("model", self._model), ("target", self._target)) if value is None]
        if missing:
            raise ValueError("least squares problem needs %s" % " and ".join(missing))
        return least_squares(
            self._model,
            self._target,
            self._start,
            weight=self._weight,
            weight_sqrt=self._weight_sqrt,
            max_evaluations=self._max_evaluations,
            parameter_validator=self._parameter_validator,
        )


def _linear_problem(**kw):
    x = np.array([0.0, 1.0, 2.0, 3.0])
    y = np.array([1.1, 2.9, 5.2, 6.8])
    model = model_function(lambda p: p[0] + p[1] * x, lambda p: np.vstack((np.ones_like(x), x)).T)
    return least_squares(model, y, [1.0, 2.0], **kw)


def test_sizes():
    problem = _linear_problem()
    assert problem.observation_size == 4
    assert problem.parameter_size == 2
    assert (problem.start == [1.0, 2.0]).all()
    assert isinstance(problem.model, ModelFunction)
    try:
        problem.start[0] = 5.0
    except ValueError:
        pass
    else:
        raise AssertionError("start vector is writable")


def test_evaluate_point_size():
    problem = _linear_problem()
    for point in ([1.0], [1.0, 2.0, 3.0]):
        try:
            problem.evaluate(point)
        except DimensionMismatchError as exc:
            assert exc.expected == 2
        else:
            raise AssertionError("point %s accepted" % point)
    # rejected points are not counted
    assert problem.evaluation_count == 0


def test_model_called_once():
    calls = []

    def model(point):
        calls.append(point.copy())
        return np.array([1.0, 2.0]), np.eye(2)

    problem = least_squares(model, [3.0, -1.0], [0.0, 0.0])
    evaluation = problem.evaluate([0.5, 0.25])
    evaluation.compute_residuals()
    evaluation.compute_cost()
    evaluation.compute_sigma(1e-14)
    assert len(calls) == 1
    assert (calls[0] == [0.5, 0.25]).all()
    assert problem.evaluation_count == 1


def test_model_output_size():
    def short_value(point):
        return np.zeros(1), np.zeros((2, 2))

    def wide_jacobian(point):
        return np.zeros(2), np.zeros((2, 3))

    for model in (short_value, wide_jacobian):
        problem = least_squares(model, [0.0, 0.0], [0.0, 0.0])
        try:
            problem.evaluate(problem.start)
        except DimensionMismatchError:
            pass
        else:
            raise AssertionError("%s output accepted" % model.__name__)


def test_max_evaluations():
    problem = _linear_problem(max_evaluations=2)
    problem.evaluate(problem.start)
    problem.evaluate(problem.start)
    try:
        problem.evaluate(problem.start)
    except TooManyEvaluationsError as exc:
        assert exc.max_count == 2
    else:
        raise AssertionError("evaluation limit not enforced")
    assert problem.evaluation_count == 2

    # each problem has its own count
    other = problem.with_weight(np.ones(4))
    assert other.evaluation_count == 0
    other.evaluate(other.start)


def test_counter_threads():
    counter = EvaluationCounter(max_count=1000)
    failures = []

    def work():
        for _ in range(100):
            try:
                counter.increment()
            except TooManyEvaluationsError:
                failures.append(1)

    threads = [threading.Thread(target=work) for _ in range(12)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter.count == 1000
    assert len(failures) == 200


def test_parameter_validator():
    seen = []

    def model(point):
        seen.append(point.copy())
        return np.zeros(1), np.zeros((1, 2))

    problem = least_squares(model, [0.0], [0.0, 0.0], parameter_validator=lambda p: np.clip(p, 0.0, 1.0))
    evaluation = problem.evaluate([-2.0, 0.5])
    assert (seen[0] == [0.0, 0.5]).all()
    assert (evaluation.point == [0.0, 0.5]).all()


def test_builder():
    x = np.array([1.0, 2.0])
    value = lambda p: p[0] * x
    problem = (
        LeastSquaresBuilder()
        .model(value, lambda p: x[:, None])
        .target([2.0, 4.0])
        .weight(np.diag([16.0, 4.0]))
        .start([1.0])
        .start([2.0])
        .max_evaluations(5)
        .build()
    )
    assert problem.max_evaluations == 5
    assert (problem.start == [2.0]).all()
    assert (problem.weight.matrix() == np.diag([16.0, 4.0])).all()
    assert problem.evaluate(problem.start).compute_cost() == 0.0

    # numerical Jacobian when only the value is given
    numeric = LeastSquaresBuilder().model(model_function(value)).target([2.0, 4.0]).start([1.0]).build()
    J = numeric.evaluate([1.5]).compute_jacobian()
    assert np.allclose(J, x[:, None])

    sqrt_weighted = LeastSquaresBuilder().model(value, lambda p: x[:, None]).target([0.0, 0.0])
    sqrt_weighted = sqrt_weighted.start([1.0]).weight_sqrt([4.0, 2.0]).build()
    assert (sqrt_weighted.evaluate([1.0]).compute_value() == [4.0, 4.0]).all()

    for builder, needs in (
        (LeastSquaresBuilder().target([1.0]).start([1.0]), "needs model"),
        (LeastSquaresBuilder().model(value, lambda p: x[:, None]), "needs target"),
        (LeastSquaresBuilder(), "needs model and target"),
    ):
        try:
            builder.build()
        except ValueError as exc:
            assert needs in str(exc)
        else:
            raise AssertionError("incomplete builder accepted")


def test_build_weight_size():
    try:
        _linear_problem(weight=np.eye(3))
    except DimensionMismatchError:
        pass
    else:
        raise AssertionError("3x3 weight accepted for 4 observations")


def test_reweight():
    problem = _linear_problem()
    heavy = weight_diagonal(problem, [4.0, 4.0, 4.0, 4.0])
    dense = weight_matrix(problem, 4.0 * np.eye(4))
    base = problem.evaluate(problem.start).compute_cost()
    assert np.isclose(heavy.evaluate(problem.start).compute_cost(), 2.0 * base)
    assert np.isclose(dense.evaluate(problem.start).compute_cost(), 2.0 * base)
    # original problem is unchanged
    assert (problem.weight.matrix() == np.eye(4)).all()


def test_builder_without_start():
    problem = (
        LeastSquaresBuilder()
        .target([3.0, -1.0])
        .model(lambda p: (np.array([1.0, 2.0]), np.eye(2)))
        .weight(np.eye(2))
        .build()
    )
    assert problem.start is None
    assert problem.parameter_size is None
    evaluation = problem.evaluate(np.zeros(2))
    assert (evaluation.compute_residuals() == [2.0, -3.0]).all()

    # the first point fixes the number of parameters
    assert problem.parameter_size == 2
    try:
        problem.evaluate(np.zeros(3))
    except DimensionMismatchError as exc:
        assert exc.expected == 2
    else:
        raise AssertionError("point of a different size accepted")

    # the Jacobian must have one column per parameter of the point
    wide = least_squares(lambda p: (np.zeros(2), np.zeros((2, 3))), [0.0, 0.0])
    try:
        wide.evaluate(np.zeros(2))
    except DimensionMismatchError:
        pass
    else:
        raise AssertionError("Jacobian wider than the point accepted")


def test_numerical_model():
    from numpy.testing import assert_allclose

    x = np.array([0.5, 1.0, 2.0])
    value = lambda p: p[0] * np.exp(-p[1] * x)
    point = np.array([2.0, 0.5])
    decay = np.exp(-point[1] * x)
    target = np.vstack((decay, -point[0] * x * decay)).T
    for model in (
        model_function(value, central=True),
        model_function(value, step=1e-6),
        model_function(value, bounds=([0.0, 0.0], point)),
    ):
        J = least_squares(model, np.zeros(3), point).evaluate(point).compute_jacobian()
        assert_allclose(J, target, rtol=1e-4)

    try:
        least_squares("not a model", np.zeros(3), point)
    except TypeError:
        pass
    else:
        raise AssertionError("non-callable model accepted")
