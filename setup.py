#!/usr/bin/env python3
"""Setup script for the srukf-id Python package.

The version is read from ``srukf_id/version.py`` without importing the
package, so installation does not require numpy to be present first.
"""

import os
import re

from setuptools import find_packages, setup


def _here():
    return os.path.dirname(os.path.abspath(__file__))


def _version():
    path = os.path.join(_here(), "srukf_id", "version.py")
    with open(path, encoding="utf-8") as fh:
        match = re.search(r'__version__\s*=\s*["\']([^"\']+)["\']', fh.read())
    if not match:
        raise RuntimeError(f"Cannot find __version__ in {path}")
    return match.group(1)


setup(
    name="srukf-id",
    version=_version(),
    description=(
        "Square-Root Unscented Kalman Filter for online parameter "
        "identification of nonlinear models"
    ),
    packages=find_packages(exclude=("tests", "tests.*", "examples")),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.22",
        "scipy>=1.8",
    ],
    extras_require={
        "test": ["pytest>=7"],
        "plot": ["matplotlib>=3.5"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering",
    ],
)
