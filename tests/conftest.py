"""
conftest.py - Shared fixtures for the ppstats test suite

All random data are generated from fixed seeds, so every test sees the same
patterns on every run.
"""

import numpy
import pytest
from shapely import geometry

from ppstats import CovariateField, PointPattern, Window

# ===========================================================================
# Constants
# ===========================================================================

SIDE = 10.0        # side length of the standard square window
N_CSR = 500        # points in the CSR pattern (intensity 5)
N_PARENTS = 10     # cluster centers in the clustered pattern
N_CHILDREN = 20    # points per cluster
CLUSTER_SD = 0.2   # standard deviation of the clusters


# ===========================================================================
# Windows
# ===========================================================================


@pytest.fixture
def unit_square():
    return Window.rectangle(0.0, 0.0, 1.0, 1.0)


@pytest.fixture
def square():
    """The square [0, 10] x [0, 10]"""
    return Window.rectangle(0.0, 0.0, SIDE, SIDE)


@pytest.fixture
def lshape():
    """L-shaped window: the square [0, 10]^2 minus its upper right quarter"""
    return Window(geometry.Polygon([(0.0, 0.0), (10.0, 0.0), (10.0, 5.0),
                                    (5.0, 5.0), (5.0, 10.0), (0.0, 10.0)]))


# ===========================================================================
# Point patterns
# ===========================================================================


@pytest.fixture
def csr_pattern(square):
    """500 independent uniform points in the square"""
    return PointPattern.simulate(N_CSR, square, rng=20151014)


@pytest.fixture
def clustered_pattern(square):
    """
    Thomas-like cluster pattern: 10 Gaussian clusters of 20 points each, with
    centers kept away from the boundary
    """
    rng = numpy.random.default_rng(1729)
    parents = rng.uniform(2.0, 8.0, size=(N_PARENTS, 2))
    children = (numpy.repeat(parents, N_CHILDREN, axis=0) +
                rng.normal(scale=CLUSTER_SD,
                           size=(N_PARENTS * N_CHILDREN, 2)))
    children = children[square.contains(children)]
    return PointPattern(children, square)


@pytest.fixture
def tight_cluster(square):
    """50 points in a disc of radius 0.3 in the middle of the square"""
    rng = numpy.random.default_rng(31)
    radius = 0.3 * numpy.sqrt(rng.uniform(size=50))
    angle = rng.uniform(0.0, 2.0 * numpy.pi, size=50)
    points = numpy.column_stack((5.0 + radius * numpy.cos(angle),
                                 5.0 + radius * numpy.sin(angle)))
    return PointPattern(points, square)


# ===========================================================================
# Covariates
# ===========================================================================


@pytest.fixture
def xcovariate():
    """The x coordinate as a covariate"""
    return CovariateField.from_function(lambda x, y: x, name='x')


@pytest.fixture
def left_half_covariate():
    """Covariate equal to 1 where x < 5 and undefined elsewhere"""
    return CovariateField.from_function(
        lambda x, y: numpy.where(x < 5.0, 1.0, numpy.nan), name='left')
