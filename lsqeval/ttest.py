r"""
Student's t-tests.

Each test is available in three forms: the t statistic, the two-tailed
p-value, and a reject/accept decision at significance level $\alpha$.

    ============== ========================== ========================
    one sample     mean = $\mu$               t_statistic, t_test,
                                              t_test_reject
    paired         mean(a - b) = 0            paired_t_statistic, ...
    two sample     mean(a) = mean(b)          two_sample_t_statistic, ...
    ============== ========================== ========================

Samples are given as arrays of at least two values, or, except for the
paired test, as :class:`SummaryStatistics` holding the mean, variance and
count of a sample.

For two samples, *equal_var=True* uses the pooled variance with
$n_1 + n_2 - 2$ degrees of freedom,

.. math::

    t = \frac{m_1 - m_2}{\sqrt{s^2 (1/n_1 + 1/n_2)}}, \quad
    s^2 = \frac{(n_1 - 1) v_1 + (n_2 - 1) v_2}{n_1 + n_2 - 2}

otherwise the Welch statistic $t = (m_1 - m_2)/\sqrt{v_1/n_1 + v_2/n_2}$ is
used with the Welch-Satterthwaite approximation for the degrees of freedom.

The p-value is the smallest significance level at which the null hypothesis
can be rejected in favour of the two-sided alternative.  For a one-sided
test, halve the p-value, or use *alpha/2* with the reject form.

    >>> a = [1.0, 2.0, 3.0, 4.0]
    >>> float(t_statistic(2.5, a))
    0.0
    >>> t_test_reject(2.5, a, alpha=0.05)
    False
"""

__all__ = [
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

from dataclasses import dataclass

import numpy as np
from scipy.stats import t as student_t

from .exceptions import ConvergenceError


@dataclass(frozen=True)
class SummaryStatistics:
    """
    Mean, unbiased variance and size of a sample.
    """

    mean: float
    variance: float
    n: int

    @classmethod
    def from_sample(cls, sample):
        x = np.asarray(sample, dtype="d")
        if x.ndim != 1:
            raise ValueError("sample must be one dimensional")
        _check_size(x.shape[0])
        return cls(mean=float(np.mean(x)), variance=float(np.var(x, ddof=1)), n=x.shape[0])


def _check_size(n):
    if n < 2:
        raise ValueError("t-test needs at least 2 observations, not %d" % n)


def _check_alpha(alpha):
    if not 0.0 < alpha < 0.5:
        raise ValueError("significance level %g is not in (0, 0.5)" % alpha)


def _summary(sample):
    if isinstance(sample, SummaryStatistics):
        _check_size(sample.n)
        if not sample.variance >= 0.0:
            raise ValueError("sample variance %g must be non-negative" % sample.variance)
        return sample
    return SummaryStatistics.from_sample(sample)


def _differences(sample1, sample2):
    a = np.asarray(sample1, dtype="d")
    b = np.asarray(sample2, dtype="d")
    if a.shape != b.shape:
        raise ValueError("paired samples have different lengths %s and %s" % (a.shape, b.shape))
    return SummaryStatistics.from_sample(a - b)


def _two_tailed(t, dof):
    with np.errstate(all="ignore"):
        p = 2.0 * student_t.sf(np.abs(t), dof)
    if not np.isfinite(p):
        raise ConvergenceError("t distribution could not be evaluated for t=%g, dof=%g" % (t, dof))
    return float(p)


def _one_sample(mu, s):
    with np.errstate(divide="ignore", invalid="ignore"):
        t = (s.mean - mu) / np.sqrt(s.variance / s.n)
    return t, s.n - 1


def _two_sample(s1, s2, equal_var):
    diff = s1.mean - s2.mean
    with np.errstate(divide="ignore", invalid="ignore"):
        if equal_var:
            dof = s1.n + s2.n - 2
            pooled = ((s1.n - 1) * s1.variance + (s2.n - 1) * s2.variance) / dof
            t = diff / np.sqrt(pooled * (1.0 / s1.n + 1.0 / s2.n))
        else:
            u1, u2 = np.float64(s1.variance) / s1.n, np.float64(s2.variance) / s2.n
            t = diff / np.sqrt(u1 + u2)
            dof = (u1 + u2) ** 2 / (u1**2 / (s1.n - 1) + u2**2 / (s2.n - 1))
    return t, dof


def t_statistic(mu, observed):
    """
    One sample t statistic comparing the mean of *observed* to *mu*.
    """
    return _one_sample(mu, _summary(observed))[0]


def t_test(mu, observed):
    """
    Two-tailed p-value for the hypothesis that the mean of *observed* is *mu*.
    """
    return _two_tailed(*_one_sample(mu, _summary(observed)))


def t_test_reject(mu, observed, alpha):
    """
    True if the mean of *observed* differs from *mu* at significance *alpha*.
    """
    _check_alpha(alpha)
    return t_test(mu, observed) < alpha


def paired_t_statistic(sample1, sample2):
    r"""
    Paired t statistic, the one sample statistic of *sample1 - sample2*
    with $\mu = 0$.
    """
    return _one_sample(0.0, _differences(sample1, sample2))[0]


def paired_t_test(sample1, sample2):
    """
    Two-tailed p-value for the hypothesis that the mean paired difference
    is zero.
    """
    return _two_tailed(*_one_sample(0.0, _differences(sample1, sample2)))


def paired_t_test_reject(sample1, sample2, alpha):
    _check_alpha(alpha)
    return paired_t_test(sample1, sample2) < alpha


def two_sample_t_statistic(sample1, sample2, equal_var=False):
    """
    Two sample t statistic for the difference in means.

    Samples may be arrays or :class:`SummaryStatistics`.
    """
    return _two_sample(_summary(sample1), _summary(sample2), equal_var)[0]


def two_sample_t_test(sample1, sample2, equal_var=False):
    """
    Two-tailed p-value for the hypothesis that the two samples have the
    same mean.
    """
    return _two_tailed(*_two_sample(_summary(sample1), _summary(sample2), equal_var))


def two_sample_t_test_reject(sample1, sample2, alpha, equal_var=False):
    _check_alpha(alpha)
    return two_sample_t_test(sample1, sample2, equal_var) < alpha


SAMPLE1 = np.array([93.0, 103.0, 95.0, 101.0, 91.0, 105.0, 96.0, 94.0, 101.0, 88.0, 98.0, 94.0, 101.0, 92.0, 95.0])
SAMPLE2 = np.array([96.0, 101.0, 94.0, 98.0, 93.0, 106.0, 99.0, 97.0, 102.0, 90.0])


def test_one_sample():
    from numpy.testing import assert_allclose
    from scipy.stats import ttest_1samp

    target = ttest_1samp(SAMPLE1, 100.0)
    assert_allclose(t_statistic(100.0, SAMPLE1), target.statistic, rtol=1e-12)
    assert_allclose(t_test(100.0, SAMPLE1), target.pvalue, rtol=1e-10)
    assert_allclose(t_test(100.0, SummaryStatistics.from_sample(SAMPLE1)), target.pvalue, rtol=1e-10)
    assert t_test_reject(100.0, SAMPLE1, 0.05) == (target.pvalue < 0.05)
    assert not t_test_reject(100.0, SAMPLE1, 0.001)


def test_paired():
    from numpy.testing import assert_allclose
    from scipy.stats import ttest_rel

    target = ttest_rel(SAMPLE1[:10], SAMPLE2)
    assert_allclose(paired_t_statistic(SAMPLE1[:10], SAMPLE2), target.statistic, rtol=1e-12)
    assert_allclose(paired_t_test(SAMPLE1[:10], SAMPLE2), target.pvalue, rtol=1e-10)
    assert paired_t_test_reject(SAMPLE1[:10], SAMPLE2, 0.25) == (target.pvalue < 0.25)
    try:
        paired_t_test(SAMPLE1, SAMPLE2)
    except ValueError:
        pass
    else:
        raise AssertionError("paired test of unequal lengths accepted")


def test_two_sample():
    from numpy.testing import assert_allclose
    from scipy.stats import ttest_ind

    for equal_var in (True, False):
        target = ttest_ind(SAMPLE1, SAMPLE2, equal_var=equal_var)
        assert_allclose(two_sample_t_statistic(SAMPLE1, SAMPLE2, equal_var), target.statistic, rtol=1e-12)
        assert_allclose(two_sample_t_test(SAMPLE1, SAMPLE2, equal_var), target.pvalue, rtol=1e-10)
        summary = (SummaryStatistics.from_sample(SAMPLE1), SummaryStatistics.from_sample(SAMPLE2))
        assert_allclose(two_sample_t_test(*summary, equal_var=equal_var), target.pvalue, rtol=1e-10)
        reject = two_sample_t_test_reject(SAMPLE1, SAMPLE2, 0.1, equal_var=equal_var)
        assert reject == (target.pvalue < 0.1)


def test_degenerate():
    # identical constant samples give 0/0, which has no p-value
    try:
        two_sample_t_test([1.0, 1.0], [1.0, 1.0])
    except ConvergenceError:
        pass
    else:
        raise AssertionError("p-value returned for 0/0 statistic")
    # constant but different samples are infinitely significant
    assert two_sample_t_test([1.0, 1.0], [2.0, 2.0], equal_var=True) == 0.0


def test_preconditions():
    short = [1.0]
    statistics = [
        lambda: t_statistic(0.0, short),
        lambda: t_test(0.0, short),
        lambda: t_test_reject(0.0, short, 0.05),
        lambda: t_test(0.0, SummaryStatistics(mean=1.0, variance=1.0, n=1)),
        lambda: t_test(0.0, SummaryStatistics(mean=1.0, variance=-1.0, n=3)),
        lambda: two_sample_t_statistic(SummaryStatistics(mean=1.0, variance=-1e-3, n=5), SAMPLE1),
        lambda: paired_t_statistic(short, short),
        lambda: paired_t_test(short, short),
        lambda: paired_t_test_reject(short, short, 0.05),
        lambda: two_sample_t_statistic(short, SAMPLE1),
        lambda: two_sample_t_test(SAMPLE1, short, equal_var=True),
        lambda: two_sample_t_test_reject(short, SAMPLE1, 0.05),
    ]
    for alpha in (0.0, -0.1, 0.5, 0.7):
        statistics += [
            lambda alpha=alpha: t_test_reject(100.0, SAMPLE1, alpha),
            lambda alpha=alpha: paired_t_test_reject(SAMPLE1[:10], SAMPLE2, alpha),
            lambda alpha=alpha: two_sample_t_test_reject(SAMPLE1, SAMPLE2, alpha),
            lambda alpha=alpha: two_sample_t_test_reject(SAMPLE1, SAMPLE2, alpha, equal_var=True),
        ]
    for k, fn in enumerate(statistics):
        try:
            fn()
        except ValueError:
            pass
        else:
            raise AssertionError("precondition %d not enforced" % k)
