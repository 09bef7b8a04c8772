#!/usr/bin/env python

"""File: models.py
Module for fitting log-linear Poisson point process models of intensity
against spatial covariates

The likelihood of an inhomogeneous Poisson process with intensity `lambda(u)`
observed in a window `W` is

    log L = sum_i log lambda(x_i) - integral_W lambda(u) du.

The integral is approximated by a Berman-Turner quadrature scheme: a set of
quadrature points consisting of the data points and a grid of dummy points,
each with a weight representing the area it accounts for. With this
approximation, the likelihood is formally that of a weighted Poisson
regression, which is solved by iteratively reweighted least squares.

"""
# Copyright 2015 Daniel Wennberg
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

import logging
import numpy
import pandas
import statsmodels.api as sm
from scipy import stats

from .covariates import CovariateField
from .errors import ConfigurationError, NumericalError
from .pointpatterns import Curve
from .utils import AlmostImmutable

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 128
INTERCEPT = '(Intercept)'


class QuadratureScheme(AlmostImmutable):
    """
    Represent a Berman-Turner quadrature scheme for a point pattern

    Parameters
    ----------
    points : ndarray, shape (m, 2)
        Quadrature points: the data points first, followed by the dummy
        points.
    weights : ndarray, shape (m,)
        Quadrature weights. They sum to (approximately) the window area.
    is_data : ndarray, shape (m,)
        Boolean array marking the data points.

    """

    def __init__(self, points, weights, is_data):
        self.points = points
        self.weights = weights
        self.is_data = is_data

    def __len__(self):
        return len(self.weights)

    @property
    def ndata(self):
        return int(numpy.sum(self.is_data))


def quadrature_scheme(pattern, resolution=DEFAULT_RESOLUTION):
    """
    Construct a Berman-Turner quadrature scheme for a point pattern

    The dummy points are the centers of the pixels in a regular grid that
    lie inside the window. The weights are counting weights: the area of each
    pixel is shared equally between all quadrature points (data and dummy)
    that fall in it.

    Parameters
    ----------
    pattern : PointPattern
        The point pattern.
    resolution : integer or pair of integers, optional
        Number of pixels along the x and y axes of the bounding box of the
        window.

    Returns
    -------
    QuadratureScheme
        The quadrature scheme.

    """
    window = pattern.window
    x, y, __, pixel_area = window.pixel_grid(resolution)
    dummy, __ = window.pixel_centers(resolution)
    data = pattern.points
    points = numpy.vstack((data, dummy))
    is_data = numpy.zeros(len(points), dtype=bool)
    is_data[:len(data)] = True

    xmin, ymin, __, __ = window.bounds
    dx, dy = x[1] - x[0], y[1] - y[0]
    ix = numpy.clip(numpy.floor((points[:, 0] - xmin) / dx).astype(int),
                    0, x.size - 1)
    iy = numpy.clip(numpy.floor((points[:, 1] - ymin) / dy).astype(int),
                    0, y.size - 1)
    pixel = ix * y.size + iy
    __, inverse, counts = numpy.unique(pixel, return_inverse=True,
                                       return_counts=True)
    weights = pixel_area / counts[inverse.reshape(-1)]

    logger.debug("quadrature scheme: %d data points, %d dummy points, total "
                 "weight %g (window area %g)", len(data), len(dummy),
                 weights.sum(), window.area)
    return QuadratureScheme(points, weights, is_data)


def _named_covariates(covariates):
    if covariates is None:
        return {}
    if isinstance(covariates, CovariateField):
        covariates = [covariates]
    if isinstance(covariates, dict):
        named = dict(covariates)
    else:
        named = {}
        for (i, cov) in enumerate(covariates):
            name = cov.name if cov.name is not None else 'z{}'.format(i)
            if name in named:
                raise ConfigurationError("duplicate covariate name {!r}"
                                         .format(name))
            named[name] = cov
    if INTERCEPT in named:
        raise ConfigurationError("{!r} cannot be used as a covariate name"
                                 .format(INTERCEPT))
    return named


class IntensityModel(AlmostImmutable):
    """
    Represent a fitted log-linear Poisson point process model

    The model intensity is `lambda(u) = exp(alpha + sum_k beta_k * z_k(u))`,
    where `z_k` are the covariates. A model without covariates is the
    homogeneous (CSR) model.

    Instances are created by `fit` and `fit_null`.

    Attributes
    ----------
    pattern : PointPattern
        The point pattern the model was fitted to.
    covariates : dict
        Mapping from covariate names to CovariateField instances.
    coef : Series
        Fitted coefficients, indexed by '(Intercept)' followed by the
        covariate names.
    cov : DataFrame
        Estimated covariance matrix of the coefficients.
    loglik : scalar
        Maximized log likelihood (with the quadrature approximation).
    resolution : integer or pair of integers
        Resolution of the quadrature scheme.
    converged : bool
        Whether the fitting procedure converged.

    """

    def __init__(self, pattern, covariates, coef, cov, loglik, resolution,
                 converged=True):
        self.pattern = pattern
        self.covariates = covariates
        self.coef = coef
        self.cov = cov
        self.loglik = loglik
        self.resolution = resolution
        self.converged = converged

    @property
    def names(self):
        return list(self.covariates)

    @property
    def n_params(self):
        return len(self.coef)

    @property
    def se(self):
        return numpy.sqrt(pandas.Series(numpy.diag(self.cov),
                                        index=self.coef.index))

    @property
    def aic(self):
        return 2.0 * self.n_params - 2.0 * self.loglik

    def _design(self, values):
        """
        Build the design matrix from a mapping of covariate names to arrays of
        values

        """
        missing = [name for name in self.names if name not in values]
        if missing:
            raise ConfigurationError("no values given for covariates {}"
                                     .format(missing))
        columns = [numpy.asarray(values[name], dtype=numpy.float64)
                   for name in self.names]
        m = max([numpy.size(c) for c in columns] + [1])
        design = numpy.ones((m, self.n_params))
        for (k, column) in enumerate(columns):
            design[:, k + 1] = numpy.broadcast_to(column.ravel(), (m,))
        return design

    def intensity_for(self, **values):
        """
        Evaluate the model intensity for given covariate values

        :values: covariate values (scalars or arrays) keyed by covariate name
        :returns: array of intensities

        """
        return numpy.exp(self._design(values).dot(self.coef.values))

    def intensity_at(self, points):
        """
        Evaluate the model intensity at a number of locations

        :points: array-like of shape (m, 2)
        :returns: array of shape (m,) with the intensities

        """
        points = numpy.asarray(points, dtype=numpy.float64).reshape(-1, 2)
        values = {name: cov.values_at_defined(points)
                  for (name, cov) in self.covariates.items()}
        if not values:
            return numpy.full(len(points), numpy.exp(self.coef[INTERCEPT]))
        return self.intensity_for(**values)

    def __repr__(self):
        terms = ", ".join("{}={:.4g}".format(name, val)
                          for (name, val) in self.coef.items())
        return "{}({}; loglik={:.4f})".format(type(self).__name__, terms,
                                              self.loglik)


def fit(pattern, covariates, resolution=DEFAULT_RESOLUTION, maxiter=100,
        tol=1e-10):
    """
    Fit a log-linear Poisson point process model by maximum likelihood

    The model is `log lambda(u) = alpha + sum_k beta_k * z_k(u)`. The
    likelihood is approximated with a Berman-Turner quadrature scheme (see
    `quadrature_scheme`) and maximized as a weighted Poisson regression with
    responses `y_j = I(u_j is a data point) / w_j` and prior weights `w_j`.

    Parameters
    ----------
    pattern : PointPattern
        The point pattern.
    covariates : CovariateField or sequence or dict
        The covariates: a single field, a sequence of fields (named by their
        `name` attributes) or a dict mapping names to fields. Every covariate
        must be defined at every quadrature point.
    resolution : integer or pair of integers, optional
        Resolution of the quadrature scheme.
    maxiter : integer, optional
        Maximum number of IRLS iterations.
    tol : scalar, optional
        Convergence tolerance for IRLS.

    Returns
    -------
    IntensityModel
        The fitted model.

    """
    named = _named_covariates(covariates)
    if not named:
        return fit_null(pattern, resolution=resolution)
    if len(pattern) == 0:
        raise ConfigurationError("cannot fit an intensity model to an empty "
                                 "point pattern")

    quad = quadrature_scheme(pattern, resolution=resolution)
    design = pandas.DataFrame(
        {name: cov.values_at_defined(quad.points, what='quadrature point')
         for (name, cov) in named.items()})
    design.insert(0, INTERCEPT, 1.0)
    response = quad.is_data / quad.weights

    model = sm.GLM(response, design, family=sm.families.Poisson(),
                   var_weights=quad.weights)
    try:
        res = model.fit(maxiter=maxiter, tol=tol)
    except (numpy.linalg.LinAlgError, ValueError) as exc:
        raise NumericalError("likelihood maximization failed: {}"
                             .format(exc)) from exc

    coef = res.params
    if not res.converged:
        raise NumericalError("likelihood maximization did not converge in {} "
                             "iterations (coefficients {})"
                             .format(maxiter, dict(coef)))
    if not numpy.all(numpy.isfinite(coef.values)):
        raise NumericalError("likelihood maximization gave non-finite "
                             "coefficients {}".format(dict(coef)))

    eta = design.values.dot(coef.values)
    loglik = (numpy.sum(eta[quad.is_data]) -
              numpy.sum(quad.weights * numpy.exp(eta)))
    fitted = IntensityModel(pattern, named, coef, res.cov_params(), loglik,
                            resolution, converged=True)
    logger.info("fitted %r with %d quadrature points", fitted, len(quad))
    return fitted


def fit_null(pattern, resolution=DEFAULT_RESOLUTION):
    """
    Fit the homogeneous Poisson model (constant intensity, no covariates)

    The maximum likelihood intercept is `log(n / W)`, where `W` is the total
    quadrature weight, which approximates the window area.

    Parameters
    ----------
    pattern : PointPattern
        The point pattern.
    resolution : integer or pair of integers, optional
        Resolution of the quadrature scheme. Must equal the resolution of any
        model this model will be compared with.

    Returns
    -------
    IntensityModel
        The fitted model.

    """
    n = len(pattern)
    if n == 0:
        raise ConfigurationError("cannot fit an intensity model to an empty "
                                 "point pattern")
    quad = quadrature_scheme(pattern, resolution=resolution)
    alpha = numpy.log(n / quad.weights.sum())
    coef = pandas.Series([alpha], index=[INTERCEPT])
    cov = pandas.DataFrame([[1.0 / n]], index=[INTERCEPT], columns=[INTERCEPT])
    loglik = n * alpha - n
    return IntensityModel(pattern, {}, coef, cov, loglik, resolution)


def _same_pattern(p1, p2):
    return p1 is p2 or (p1.window == p2.window and
                        numpy.array_equal(p1.points, p2.points))


def likelihood_ratio_test(null, alt):
    """
    Compare two nested intensity models by a likelihood ratio test

    The statistic `2 * (loglik_alt - loglik_null)` is compared to a
    chi-squared distribution with as many degrees of freedom as the
    difference in the number of parameters.

    Parameters
    ----------
    null : IntensityModel
        The simpler model.
    alt : IntensityModel
        The more complex model. Its covariates must include every covariate
        in `null`, and both models must be fitted to the same pattern with the
        same quadrature resolution.

    Returns
    -------
    dict
        Dict with keys 'statistic', 'df' and 'pvalue'.

    """
    extra = [name for name in null.names if name not in alt.covariates]
    if extra:
        raise ConfigurationError("models are not nested: covariates {} of "
                                 "the null model are missing from the "
                                 "alternative model".format(extra))
    for name in null.names:
        if null.covariates[name] is not alt.covariates[name]:
            raise ConfigurationError("models are not nested: covariate {!r} "
                                     "refers to different fields"
                                     .format(name))
    if not _same_pattern(null.pattern, alt.pattern):
        raise ConfigurationError("models are not nested: they are fitted to "
                                 "different point patterns")
    if null.resolution != alt.resolution:
        raise ConfigurationError("models use different quadrature "
                                 "resolutions: {} and {}"
                                 .format(null.resolution, alt.resolution))

    df = alt.n_params - null.n_params
    statistic = 2.0 * (alt.loglik - null.loglik)
    # Round-off can make the statistic slightly negative
    statistic = max(statistic, 0.0)
    pvalue = stats.chi2.sf(statistic, df) if df > 0 else 1.0
    logger.info("likelihood ratio test: statistic %.4g, df %d, p-value %.4g",
                statistic, df, pvalue)
    return dict(statistic=statistic, df=df, pvalue=pvalue)


def effect(model, name, values=None, reference=None, confidence=0.95,
           n_values=100):
    """
    Compute the fitted intensity as a function of one covariate, holding the
    other covariates fixed

    The confidence band is computed on the linear predictor from the
    coefficient covariance matrix, and exponentiated.

    Parameters
    ----------
    model : IntensityModel
        The fitted model.
    name : str
        Name of the covariate to vary.
    values : array-like, optional
        Covariate values at which to evaluate the intensity. If None,
        `n_values` evenly spaced values over the range of the covariate in
        the window.
    reference : dict, optional
        Values for the other covariates. Covariates not given here are held
        at their mean over the window.
    confidence : scalar, optional
        Confidence level of the band.
    n_values : integer, optional
        Number of covariate values if `values` is None.

    Returns
    -------
    Curve
        Curve named 'lambda' of intensity against covariate value, with the
        confidence band as `lower` and `upper`.

    """
    if name not in model.covariates:
        raise ConfigurationError("unknown covariate {!r}; the model has {}"
                                 .format(name, model.names))
    if not 0.0 < confidence < 1.0:
        raise ConfigurationError("'confidence' must be between 0 and 1, got "
                                 "{}".format(confidence))
    reference = dict(reference or {})

    pixels = None
    unset = [cname for cname in model.names
             if cname != name and cname not in reference]
    if values is None or unset:
        centers, __ = model.pattern.window.pixel_centers(model.resolution)
        pixels = {cname: cov.value_at(centers)
                  for (cname, cov) in model.covariates.items()}

    if values is None:
        zpix = pixels[name]
        values = numpy.linspace(numpy.nanmin(zpix), numpy.nanmax(zpix),
                                n_values)
    values = numpy.asarray(values, dtype=numpy.float64)

    settings = {}
    for cname in model.names:
        if cname == name:
            settings[cname] = values
        elif cname in reference:
            settings[cname] = reference[cname]
        else:
            settings[cname] = numpy.nanmean(pixels[cname])

    design = model._design(settings)
    eta = design.dot(model.coef.values)
    var = numpy.einsum('ij,jk,ik->i', design, model.cov.values, design)
    q = stats.norm.ppf(0.5 * (1.0 + confidence))
    se = numpy.sqrt(numpy.clip(var, 0.0, None))
    return Curve(values, numpy.exp(eta), 'lambda',
                 lower=numpy.exp(eta - q * se), upper=numpy.exp(eta + q * se))
