#!/usr/bin/env python
import sys
import os

if len(sys.argv) == 1:
    sys.argv.append('install')

# Use our own pytest-based test harness
if sys.argv[1] == 'test':
    from subprocess import call
    sys.exit(call([sys.executable, 'test.py'] + sys.argv[2:]))

from setuptools import setup, find_packages

sys.path.insert(0, os.path.dirname(__file__))
from lsqeval._version import __version__

packages = find_packages(include=['lsqeval', 'lsqeval.*'])

dist = setup(
    name='lsqeval',
    version=__version__,
    description='Non-linear least squares problem evaluation with parameter uncertainty',
    long_description=open('README.rst').read(),
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: Science/Research',
        'License :: Public Domain',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Scientific/Engineering',
        'Topic :: Scientific/Engineering :: Mathematics',
    ],
    packages=packages,
    python_requires='>=3.8',
    install_requires=['numpy', 'scipy'],
    extras_require={'test': ['pytest']},
)

# End of file
