"""
test_models.py - Tests for log-linear Poisson intensity models
"""

import numpy
import pytest

from ppstats import (ConfigurationError, CovariateField, DomainError,
                     PointPattern, effect, fit, fit_null,
                     likelihood_ratio_test, quadrature_scheme)
from ppstats.models import INTERCEPT

BETA = 2.0


@pytest.fixture
def zcovariate():
    """x / 10, ranging over [0, 1] in the square"""
    return CovariateField.from_function(lambda x, y: 0.1 * x, name='z')


@pytest.fixture
def wcovariate():
    return CovariateField.from_function(lambda x, y: 0.1 * y, name='w')


@pytest.fixture
def trend_pattern(square):
    """1000 points with density proportional to exp(2 z)"""
    density = CovariateField.from_function(
        lambda x, y: numpy.exp(0.1 * BETA * x))
    return PointPattern.simulate(1000, square, covariate=density, rng=99)


@pytest.fixture
def trend_model(trend_pattern, zcovariate):
    return fit(trend_pattern, zcovariate, resolution=64)


class TestQuadratureScheme:

    def test_weights_sum_to_area(self, csr_pattern):
        quad = quadrature_scheme(csr_pattern, resolution=32)
        assert quad.ndata == 500
        assert len(quad) == 500 + 32 * 32
        assert quad.weights.sum() == pytest.approx(100.0)
        assert numpy.all(quad.weights > 0.0)

    def test_data_points_first(self, csr_pattern):
        quad = quadrature_scheme(csr_pattern, resolution=16)
        assert numpy.array_equal(quad.points[:500], csr_pattern.points)
        assert numpy.all(quad.is_data[:500])
        assert not numpy.any(quad.is_data[500:])

    def test_counting_weights(self, unit_square):
        pattern = PointPattern([[0.1, 0.1], [0.2, 0.2]], unit_square)
        quad = quadrature_scheme(pattern, resolution=2)
        # Both data points share the lower left pixel with one dummy point
        assert numpy.allclose(quad.weights[:2], 0.25 / 3.0)
        assert quad.weights.sum() == pytest.approx(1.0)


class TestFit:

    def test_recovers_coefficient(self, trend_model):
        assert trend_model.names == ['z']
        assert list(trend_model.coef.index) == [INTERCEPT, 'z']
        assert trend_model.coef['z'] == pytest.approx(BETA, abs=0.5)
        assert 0.05 < trend_model.se['z'] < 0.25

    def test_expected_count_matches_n(self, trend_model, trend_pattern):
        quad = quadrature_scheme(trend_pattern, resolution=64)
        expected = numpy.sum(quad.weights *
                             trend_model.intensity_at(quad.points))
        assert expected == pytest.approx(1000.0, rel=1e-4)

    def test_intensity_for(self, trend_model):
        alpha, beta = trend_model.coef[INTERCEPT], trend_model.coef['z']
        assert numpy.allclose(trend_model.intensity_for(z=[0.0, 0.5]),
                              numpy.exp([alpha, alpha + 0.5 * beta]))

    def test_intensity_for_requires_all_covariates(self, trend_model):
        with pytest.raises(ConfigurationError):
            trend_model.intensity_for(w=1.0)

    def test_aic(self, trend_model):
        assert trend_model.aic == pytest.approx(4.0 - 2.0 * trend_model.loglik)

    def test_dict_of_covariates(self, trend_pattern, zcovariate, wcovariate):
        model = fit(trend_pattern, {'east': zcovariate, 'north': wcovariate},
                    resolution=32)
        assert model.names == ['east', 'north']
        assert model.n_params == 3
        # No trend in y
        assert abs(model.coef['north']) < 0.6

    def test_no_covariates_is_null_model(self, trend_pattern):
        model = fit(trend_pattern, [], resolution=32)
        null = fit_null(trend_pattern, resolution=32)
        assert model.coef[INTERCEPT] == pytest.approx(null.coef[INTERCEPT])
        assert model.n_params == 1

    def test_duplicate_names(self, trend_pattern, zcovariate):
        with pytest.raises(ConfigurationError):
            fit(trend_pattern, [zcovariate, zcovariate])

    def test_reserved_name(self, trend_pattern, zcovariate):
        with pytest.raises(ConfigurationError):
            fit(trend_pattern, {INTERCEPT: zcovariate})

    def test_covariate_undefined_at_quadrature_point(
            self, trend_pattern, left_half_covariate):
        with pytest.raises(DomainError):
            fit(trend_pattern, left_half_covariate, resolution=16)

    def test_unnamed_covariates(self, trend_pattern):
        cov = CovariateField.from_function(lambda x, y: 0.1 * x)
        model = fit(trend_pattern, [cov], resolution=16)
        assert model.names == ['z0']


class TestFitNull:

    def test_closed_form(self, csr_pattern):
        model = fit_null(csr_pattern, resolution=32)
        assert model.coef[INTERCEPT] == pytest.approx(numpy.log(5.0))
        assert model.loglik == pytest.approx(500.0 * numpy.log(5.0) - 500.0)
        assert model.se[INTERCEPT] == pytest.approx(numpy.sqrt(1.0 / 500.0))
        assert numpy.allclose(model.intensity_at([[1.0, 1.0], [9.0, 2.0]]),
                              5.0)

    def test_empty_pattern(self, square):
        with pytest.raises(ConfigurationError):
            fit_null(PointPattern(numpy.empty((0, 2)), square))


class TestLikelihoodRatioTest:

    def test_detects_trend(self, trend_pattern, trend_model):
        null = fit_null(trend_pattern, resolution=64)
        result = likelihood_ratio_test(null, trend_model)
        assert result['df'] == 1
        assert result['statistic'] > 20.0
        assert result['pvalue'] < 1e-5

    def test_identical_models(self, trend_pattern, zcovariate):
        first = fit(trend_pattern, zcovariate, resolution=32)
        second = fit(trend_pattern, zcovariate, resolution=32)
        result = likelihood_ratio_test(first, second)
        assert result['statistic'] == pytest.approx(0.0, abs=1e-6)
        assert result['statistic'] >= 0.0
        assert result['df'] == 0
        assert result['pvalue'] == 1.0

    def test_not_nested(self, trend_pattern, zcovariate, wcovariate):
        with_z = fit(trend_pattern, zcovariate, resolution=32)
        with_w = fit(trend_pattern, wcovariate, resolution=32)
        with pytest.raises(ConfigurationError, match="not nested"):
            likelihood_ratio_test(with_z, with_w)

    def test_different_patterns(self, trend_pattern, csr_pattern,
                                zcovariate):
        null = fit_null(csr_pattern, resolution=32)
        alt = fit(trend_pattern, zcovariate, resolution=32)
        with pytest.raises(ConfigurationError):
            likelihood_ratio_test(null, alt)

    def test_different_resolutions(self, trend_pattern, zcovariate):
        null = fit_null(trend_pattern, resolution=16)
        alt = fit(trend_pattern, zcovariate, resolution=32)
        with pytest.raises(ConfigurationError):
            likelihood_ratio_test(null, alt)


class TestEffect:

    def test_curve(self, trend_model):
        values = numpy.linspace(0.0, 1.0, 11)
        curve = effect(trend_model, 'z', values=values)
        assert curve.name == 'lambda'
        assert numpy.allclose(curve.values,
                              trend_model.intensity_for(z=values))
        assert numpy.all(curve.lower <= curve.values)
        assert numpy.all(curve.values <= curve.upper)

    def test_default_values_span_window(self, trend_model):
        curve = effect(trend_model, 'z', n_values=20)
        assert len(curve) == 20
        assert curve.r[0] == pytest.approx(0.0, abs=0.01)
        assert curve.r[-1] == pytest.approx(1.0, abs=0.01)

    def test_other_covariates_held_at_reference(self, trend_pattern,
                                                zcovariate, wcovariate):
        model = fit(trend_pattern, [zcovariate, wcovariate], resolution=32)
        curve = effect(model, 'z', values=[0.5], reference={'w': 0.2})
        assert curve.values[0] == pytest.approx(
            model.intensity_for(z=0.5, w=0.2)[0])
        # Default reference: the window mean of w, which is 0.5
        curve = effect(model, 'z', values=[0.5])
        assert curve.values[0] == pytest.approx(
            model.intensity_for(z=0.5, w=0.5)[0], rel=1e-6)

    def test_reference_for_varied_covariate_ignored(self, trend_pattern,
                                                    zcovariate, wcovariate):
        vcovariate = CovariateField.from_function(lambda x, y: 0.01 * x * y,
                                                  name='v')
        model = fit(trend_pattern, [zcovariate, wcovariate, vcovariate],
                    resolution=32)
        # 'v' still needs its window mean, which is 0.25
        curve = effect(model, 'z', values=[0.5],
                       reference={'z': 0.1, 'w': 0.2})
        assert curve.values[0] == pytest.approx(
            model.intensity_for(z=0.5, w=0.2, v=0.25)[0], rel=1e-6)

    def test_unknown_covariate(self, trend_model):
        with pytest.raises(ConfigurationError):
            effect(trend_model, 'w')
