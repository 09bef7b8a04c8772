"""
test_covariates.py - Tests for covariate fields
"""

import numpy
import pytest

from ppstats import CovariateField, ConfigurationError, DomainError


@pytest.fixture
def plane():
    """Raster of z = x + y on [0, 2] x [0, 3]"""
    x = numpy.linspace(0.0, 2.0, 5)
    y = numpy.linspace(0.0, 3.0, 7)
    return CovariateField.from_raster(x, y, x[:, None] + y[None, :],
                                      name='plane')


class TestFromFunction:

    def test_values(self):
        cov = CovariateField.from_function(lambda x, y: x * y)
        assert numpy.allclose(cov.value_at([[1.0, 2.0], [3.0, 4.0]]),
                              [2.0, 12.0])

    def test_constant_function_broadcast(self):
        cov = CovariateField.from_function(lambda x, y: 3.0)
        values = cov.value_at(numpy.zeros((4, 2)))
        assert values.shape == (4,)
        assert numpy.all(values == 3.0)

    def test_single_point(self):
        cov = CovariateField.from_function(lambda x, y: x - y)
        assert cov.value_at([5.0, 1.0]).shape == (1,)


class TestFromRaster:

    def test_linear_interpolation_exact_for_plane(self, plane):
        assert numpy.allclose(plane.value_at([[0.5, 1.5], [1.9, 2.2]]),
                              [2.0, 4.1])

    def test_undefined_outside_raster(self, plane):
        assert numpy.isnan(plane.value_at([3.0, 1.0])[0])

    def test_shape_mismatch(self):
        with pytest.raises(ConfigurationError):
            CovariateField.from_raster([0.0, 1.0], [0.0, 1.0, 2.0],
                                       numpy.zeros((3, 2)))


class TestValuesAtDefined:

    def test_defined(self, plane):
        assert numpy.allclose(plane.values_at_defined([[1.0, 1.0]]), [2.0])

    def test_undefined_raises_with_index(self, plane):
        with pytest.raises(DomainError, match="location 1"):
            plane.values_at_defined([[1.0, 1.0], [5.0, 5.0]])


class TestClassify:

    def test_bins(self):
        cov = CovariateField.from_function(lambda x, y: x)
        points = numpy.column_stack(
            ([0.0, 0.5, 1.0, 2.0, 2.5, -1.0, numpy.nan], numpy.zeros(7)))
        labels = cov.classify(points, [0.0, 1.0, 2.0])
        assert list(labels) == [0, 0, 1, 1, -1, -1, -1]

    def test_breaks_must_increase(self):
        cov = CovariateField.from_function(lambda x, y: x)
        with pytest.raises(ConfigurationError):
            cov.classify([[0.0, 0.0]], [1.0, 1.0])
