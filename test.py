#!/usr/bin/env python

"""
Run tests for lsqeval.

Usage:

./test.py
    - run all tests

./test.py --cov=lsqeval
    - run all tests with coverage report (requires pytest-cov)
"""

import os
import sys

import pytest

sys.dont_write_bytecode = True

# Check that we are running from the root.
root = os.path.abspath(os.path.dirname(__file__))
assert os.path.exists(os.path.join(root, 'lsqeval', 'evaluation.py')), "Not in lsqeval root"
sys.path.insert(0, root)

# Every module in the package may hold test_* functions and doctests,
# so collect them all.  See pytest.ini for the options.
pytest_args = ['-v'] + sys.argv[1:] + [os.path.join(root, 'lsqeval')]

print("pytest " + " ".join(pytest_args))
sys.exit(pytest.main(pytest_args))
