"""
Package defaults.

Defaults are read from the environment when the package is imported::

    LSQEVAL_MAX_EVALUATIONS       cap on model evaluations per problem
                                  (unset or 0 for no cap)
    LSQEVAL_SINGULARITY_THRESHOLD pivot threshold for covariance inversion
    LSQEVAL_LOG_LEVEL             console log level (debug, info, warning, ...)

Values can also be assigned directly on this module before building problems.
"""

__all__ = ["MAX_EVALUATIONS", "SINGULARITY_THRESHOLD", "LOG_LEVEL"]

import os


def _env_int(name, default):
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError("%s=%r is not an integer" % (name, value))


def _env_float(name, default):
    value = os.environ.get(name, "")
    if not value:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError("%s=%r is not a number" % (name, value))


#: default cap on model evaluations for new builders; None means unlimited
MAX_EVALUATIONS = _env_int("LSQEVAL_MAX_EVALUATIONS", 0) or None

#: default singularity threshold for covariance, sigma and correlation
SINGULARITY_THRESHOLD = _env_float("LSQEVAL_SINGULARITY_THRESHOLD", 1e-14)

#: default console log level for :func:`lsqeval.logger.setup_console_logging`
LOG_LEVEL = os.environ.get("LSQEVAL_LOG_LEVEL", "warning").lower()


def test_env_parsing():
    os.environ["LSQEVAL_TEST_INT"] = "25"
    os.environ["LSQEVAL_TEST_FLOAT"] = "1e-8"
    os.environ["LSQEVAL_TEST_BAD"] = "many"
    try:
        assert _env_int("LSQEVAL_TEST_INT", 0) == 25
        assert _env_int("LSQEVAL_TEST_MISSING", 7) == 7
        assert _env_float("LSQEVAL_TEST_FLOAT", 0.0) == 1e-8
        try:
            _env_int("LSQEVAL_TEST_BAD", 0)
        except ValueError:
            pass
        else:
            raise AssertionError("non-integer environment value accepted")
    finally:
        for name in ("LSQEVAL_TEST_INT", "LSQEVAL_TEST_FLOAT", "LSQEVAL_TEST_BAD"):
            del os.environ[name]
