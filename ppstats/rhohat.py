#!/usr/bin/env python

"""File: rhohat.py
Module for estimating the intensity of a point pattern as a function of a
spatial covariate, by the ratio method

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
from scipy import stats

from .errors import ConfigurationError, DomainError
from .kde import get_kernel
from .pointpatterns import Curve
from .utils import as_generator, sensibly_divide

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 128
INTERVALS = ('asymptotic', 'bootstrap')


def _default_bandwidth(values):
    """Silverman's rule of thumb for one-dimensional data"""
    n = len(values)
    std = numpy.std(values, ddof=1)
    iqr = numpy.subtract(*numpy.percentile(values, [75, 25]))
    spread = min(std, iqr / 1.34) if iqr > 0.0 else std
    return 0.9 * spread * n ** (-0.2)


def rhohat(pattern, covariate, bandwidth=None, n_z=128,
           resolution=DEFAULT_RESOLUTION, kernel='gaussian',
           interval='asymptotic', confidence=0.95, nboot=199, rng=None):
    """
    Estimate the intensity of a point pattern as a function of a covariate

    The ratio estimator is

        rho(z) = sum_i k_h(z - Z(x_i)) / integral_W k_h(z - Z(u)) du,

    where `Z` is the covariate, `x_i` are the points of the pattern and `k_h`
    is a one-dimensional smoothing kernel. The numerator is a smoothed
    density of points at covariate level `z`, and the denominator a smoothed
    density of window area at covariate level `z`, computed on a pixel grid.

    Parameters
    ----------
    pattern : PointPattern
        The point pattern.
    covariate : CovariateField
        The covariate. It must be defined at every point of the pattern;
        pixels where it is undefined are left out of the denominator.
    bandwidth : scalar, optional
        Bandwidth (standard deviation) of the smoothing kernel in covariate
        units. If None, Silverman's rule of thumb is applied to the covariate
        values at the points.
    n_z : integer, optional
        Number of covariate values at which to evaluate the estimate, evenly
        spaced over the range of the covariate in the window.
    resolution : integer or pair of integers, optional
        Resolution of the pixel grid used for the denominator.
    kernel : str, optional
        Name of the smoothing kernel. See `kde.get_kernel`.
    interval : str {'asymptotic', 'bootstrap'}, optional
        Method used to compute the pointwise confidence band:

        ``asymptotic``
            Normal approximation with the asymptotic variance
            `sum_i k_h(z - Z(x_i))**2 / D(z)**2`, where `D(z)` is the
            denominator.
        ``bootstrap``
            Percentile interval from `nboot` resamples, with replacement, of
            the covariate values at the points.
    confidence : scalar, optional
        Confidence level of the band.
    nboot : integer, optional
        Number of bootstrap resamples, if `interval == 'bootstrap'`.
    rng : None or int or Generator, optional
        Random source for the bootstrap.

    Returns
    -------
    Curve
        Curve named 'rho' with the covariate values as `r`, the estimate as
        `values`, the band as `lower` and `upper`, and the CSR intensity
        `n / A` as `theoretical`.

    """
    if interval not in INTERVALS:
        raise ConfigurationError("unknown confidence interval method: {}"
                                 .format(interval))
    if not 0.0 < confidence < 1.0:
        raise ConfigurationError("'confidence' must be between 0 and 1, got "
                                 "{}".format(confidence))
    if len(pattern) < 2:
        raise ConfigurationError("rho needs at least two points, got n={}"
                                 .format(len(pattern)))
    kern = get_kernel(kernel)

    zpoints = covariate.values_at_defined(pattern.points, what='point')

    centers, pixel_area = pattern.window.pixel_centers(resolution)
    zpixels = covariate.value_at(centers)
    defined = numpy.isfinite(zpixels)
    if not numpy.any(defined):
        raise DomainError("covariate {!r} is undefined everywhere in the "
                          "window".format(covariate.name))
    if not numpy.all(defined):
        logger.warning("covariate %r is undefined at %d of %d pixels in the "
                       "window; these are left out", covariate.name,
                       numpy.sum(~defined), defined.size)
    zpixels = zpixels[defined]

    if bandwidth is None:
        bandwidth = _default_bandwidth(zpoints)
    if not bandwidth > 0.0:
        raise ConfigurationError("'bandwidth' must be positive, got {}"
                                 .format(bandwidth))

    zvals = numpy.linspace(zpixels.min(), zpixels.max(), n_z)
    kpoints = kern(zvals[:, numpy.newaxis] - zpoints[numpy.newaxis, :],
                   bandwidth)
    denom = pixel_area * numpy.sum(
        kern(zvals[:, numpy.newaxis] - zpixels[numpy.newaxis, :], bandwidth),
        axis=1)
    rho = sensibly_divide(kpoints.sum(axis=1), denom)

    alpha = 1.0 - confidence
    if interval == 'asymptotic':
        se = numpy.sqrt(sensibly_divide(numpy.sum(kpoints * kpoints, axis=1),
                                        denom * denom))
        q = stats.norm.ppf(1.0 - 0.5 * alpha)
        lower = numpy.clip(rho - q * se, 0.0, None)
        upper = rho + q * se
    else:
        rng = as_generator(rng)
        n = len(zpoints)
        boot = numpy.empty((nboot, n_z))
        for b in range(nboot):
            resample = rng.integers(0, n, size=n)
            boot[b] = kpoints[:, resample].sum(axis=1)
        boot = sensibly_divide(boot, denom)
        lower, upper = numpy.percentile(
            boot, [50.0 * alpha, 100.0 * (1.0 - 0.5 * alpha)], axis=0)

    logger.debug("rho: bandwidth %g, covariate range [%g, %g]", bandwidth,
                 zvals[0], zvals[-1])
    return Curve(zvals, rho, 'rho', theoretical=pattern.intensity(),
                 lower=lower, upper=upper)
