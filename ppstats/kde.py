#!/usr/bin/env python

"""File: kde.py
Module defining smoothing kernels and kernel estimators of the intensity of a
point pattern

"""
# Copyright 2016 Daniel Wennberg
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
from scipy.special import gamma
from scipy.signal import fftconvolve
from scipy.interpolate import RegularGridInterpolator
from scipy.spatial.distance import cdist
from sklearn.model_selection import GridSearchCV
from sklearn.neighbors import KernelDensity

from .errors import ConfigurationError
from .utils import AlmostImmutable

logger = logging.getLogger(__name__)

_PI = numpy.pi
_2PI = 2.0 * _PI

DEFAULT_RESOLUTION = 128
EDGE_CORRECTIONS = ('none', 'uniform')

# Number of sample points handled per distance matrix in `kernel_density`
_CHUNK = 4096


def _vn(dim):
    dim_2 = 0.5 * dim
    return (_PI ** (dim_2)) / gamma(dim_2 + 1)


def _tophat_form(u):
    uabs = numpy.abs(u)
    return (uabs < 1.0).astype(numpy.float64)


def _tophat_volume(dim):
    return _vn(dim)


def _linear_form(u):
    uabs = numpy.abs(u)
    return numpy.clip(1.0 - uabs, 0.0, None)


def _linear_volume(dim):
    return _vn(dim) / (dim + 1)


def _uniweight_form(u):
    uabs = numpy.abs(u)
    return numpy.clip(1.0 - uabs * uabs, 0.0, None)


def _uniweight_volume(dim):
    return _vn(dim) * 2.0 / (dim + 2)


def _biweight_form(u):
    uweight = _uniweight_form(u)
    return uweight * uweight


def _biweight_volume(dim):
    return 8 * _vn(dim) / ((dim + 2) * (dim + 4))


def _triweight_form(u):
    uweight = _uniweight_form(u)
    return uweight * uweight * uweight


def _triweight_volume(dim):
    return 48 * _vn(dim) / ((dim + 2) * (dim + 4) * (dim + 6))


def _gaussian_form(u):
    uabs = numpy.abs(u)
    return numpy.exp(-0.5 * (uabs * uabs))


def _gaussian_volume(dim):
    return _2PI ** (0.5 * dim)


kernel_pieces = {
    'tophat': (_tophat_form, _tophat_volume),
    'linear': (_linear_form, _linear_volume),
    'uniweight': (_uniweight_form, _uniweight_volume),
    'biweight': (_biweight_form, _biweight_volume),
    'triweight': (_triweight_form, _triweight_volume),
    'gaussian': (_gaussian_form, _gaussian_volume),
}

# Names used in the point process literature
kernel_aliases = {
    'box': 'tophat',
    'triangular': 'linear',
    'epanechnikov': 'uniweight',
    'quartic': 'biweight',
}


def _normalized_kernel(form, volume):
    # Scale factor that makes `bandwidth` the standard deviation of the
    # one-dimensional kernel
    sigma = numpy.sqrt(volume(3) / (_2PI * volume(1)))

    def normalized_kernel(u, bandwidth, dim=1):
        k = sigma / bandwidth
        return (1.0 / volume(dim)) * (k ** dim) * form(k * u)
    normalized_kernel.support = (numpy.inf if form is _gaussian_form
                                 else 1.0 / sigma)
    return normalized_kernel


kernels = {
    name: _normalized_kernel(*pieces)
    for name, pieces in kernel_pieces.items()
}


def get_kernel(name):
    """
    Look up a normalized kernel by name

    Every kernel `k` is called as `k(u, bandwidth, dim=1)`, where `u` is the
    distance from the kernel center, and is normalized to integrate to one
    over `dim`-dimensional space. The bandwidth is the standard deviation of
    the one-dimensional kernel. Kernels with compact support expose the
    radius of their support, in units of the bandwidth, as the attribute
    `support`.

    Parameters
    ----------
    name : str
        Kernel name: one of the keys in `kernels`, or one of the aliases
        'box', 'triangular', 'epanechnikov' and 'quartic'.

    Returns
    -------
    callable
        The normalized kernel.

    """
    try:
        return kernels[kernel_aliases.get(name, name)]
    except KeyError:
        raise ConfigurationError("unknown kernel: {}".format(name))


class IntensityRaster(AlmostImmutable):
    """
    Represent a kernel estimate of intensity evaluated on a regular grid

    Parameters
    ----------
    x, y : array-like
        Coordinates of the grid cell centers along each axis.
    values : array-like, shape (len(x), len(y))
        Estimated intensity at each cell center: `values[i, j]` is the
        estimate at `(x[i], y[j])`. Cells with centers outside the window are
        nan.
    bandwidth : scalar
        Kernel bandwidth used.
    kernel : str
        Kernel name used.
    edge_correction : str
        Edge correction used.

    """

    def __init__(self, x, y, values, bandwidth, kernel, edge_correction):
        self.x = numpy.asarray(x, dtype=numpy.float64)
        self.y = numpy.asarray(y, dtype=numpy.float64)
        self.values = numpy.asarray(values, dtype=numpy.float64)
        self.bandwidth = bandwidth
        self.kernel = kernel
        self.edge_correction = edge_correction

    @property
    def cell_area(self):
        return (self.x[1] - self.x[0]) * (self.y[1] - self.y[0])

    def value_at(self, points):
        """
        Interpolate the intensity estimate at arbitrary locations

        :points: array-like of shape (m, 2)
        :returns: array of shape (m,), nan outside the grid or the window

        """
        interpolator = RegularGridInterpolator(
            (self.x, self.y), self.values, method='linear',
            bounds_error=False, fill_value=numpy.nan)
        return interpolator(numpy.atleast_2d(points))

    def integral(self):
        """
        Compute the integral of the intensity over the window, that is, the
        expected number of points according to the estimate

        """
        return numpy.nansum(self.values) * self.cell_area

    def __repr__(self):
        return ("{}(shape={}, bandwidth={:g}, kernel={!r}, "
                "edge_correction={!r})".format(
                    type(self).__name__, self.values.shape, self.bandwidth,
                    self.kernel, self.edge_correction))


def _kernel_mass(mask, kernel, bandwidth, dx, dy):
    """
    Compute, for each grid cell, the fraction of the mass of a kernel centered
    at the cell that falls inside the window

    The window is represented by the boolean mask of cells with centers
    inside it, and the computation is a discrete convolution of the mask with
    the kernel, done by FFT.

    """
    nx, ny = mask.shape
    ox = numpy.arange(-(nx - 1), nx) * dx
    oy = numpy.arange(-(ny - 1), ny) * dy
    oxx, oyy = numpy.meshgrid(ox, oy, indexing='ij')
    kvals = kernel(numpy.hypot(oxx, oyy), bandwidth, dim=2) * (dx * dy)
    mass = fftconvolve(mask.astype(numpy.float64), kvals, mode='same')
    return numpy.clip(mass, 0.0, 1.0)


def kernel_density(pattern, bandwidth, resolution=DEFAULT_RESOLUTION,
                   kernel='gaussian', edge_correction='none'):
    """
    Compute a kernel estimate of the intensity of a point pattern

    The estimate at a location `c` is the sum over points `p` in the pattern
    of `K(|c - p|, bandwidth, dim=2)`, i.e., the usual
    `sum_p k((c - p) / h) / h ** 2` with a normalized kernel.  Without edge
    correction, the estimate is biased downward near the window boundary,
    since kernel mass from points near the boundary leaks out of the window.

    Parameters
    ----------
    pattern : PointPattern
        Point pattern to estimate the intensity of.
    bandwidth : scalar
        Kernel bandwidth (standard deviation of the one-dimensional kernel).
    resolution : integer or pair of integers, optional
        Number of grid cells along the x and y axes of the bounding box of the
        window. Independent of the bandwidth.
    kernel : str, optional
        Kernel name. See `get_kernel`. The usual choices are 'gaussian' and
        'quartic'.
    edge_correction : str {'none', 'uniform'}, optional
        ``none``
            No edge correction.
        ``uniform``
            The estimate at each cell is divided by the fraction of the mass
            of the kernel centered there that falls inside the window.

    Returns
    -------
    IntensityRaster
        The intensity estimate.

    """
    if not bandwidth > 0.0:
        raise ConfigurationError("'bandwidth' must be positive, got {}"
                                 .format(bandwidth))
    if edge_correction not in EDGE_CORRECTIONS:
        raise ConfigurationError("unknown edge correction: {}"
                                 .format(edge_correction))
    kern = get_kernel(kernel)

    window = pattern.window
    x, y, mask, __ = window.pixel_grid(resolution)
    xx, yy = numpy.meshgrid(x, y, indexing='ij')
    centers = numpy.column_stack((xx.ravel(), yy.ravel()))
    data = pattern.points

    density = numpy.zeros(centers.shape[0])
    if len(data) > 0:
        # Loop over chunks of cell centers to save memory
        for start in range(0, centers.shape[0], _CHUNK):
            distances = cdist(centers[start:start + _CHUNK], data)
            density[start:start + _CHUNK] = numpy.sum(
                kern(distances, bandwidth, dim=2), axis=-1)
    density = density.reshape(mask.shape)

    if edge_correction == 'uniform':
        dx, dy = x[1] - x[0], y[1] - y[0]
        mass = _kernel_mass(mask, kern, bandwidth, dx, dy)
        valid = mass > 0.0
        density[valid] /= mass[valid]
        logger.debug("edge correction: minimal kernel mass inside window "
                     "%.3g", mass[mask].min() if mask.any() else 1.0)

    density[~mask] = numpy.nan
    return IntensityRaster(x, y, density, bandwidth, kernel, edge_correction)


def select_bandwidth(pattern, n_folds=5, n_bw=30):
    """
    Estimate the optimal bandwidth of a Gaussian kernel intensity estimate
    using cross validation

    The candidate bandwidths range from one tenth of, to 1.1 times, the
    bandwidth given by Scott's rule for two-dimensional data.

    Parameters
    ----------
    pattern : PointPattern
        Point pattern to estimate the bandwidth for.
    n_folds : integer, optional
        Number of folds to use for cross validation.
    n_bw : integer, optional
        Number of bandwidths to try out. Increasing this number increases the
        accuracy of the best bandwidth estimate, but also increases the
        computational demands of the function.

    Returns
    -------
    scalar
        Estimated optimal bandwidth, suitable for
        `kernel_density(..., kernel='gaussian')`.

    """
    data = pattern.points
    nd = len(data)
    if nd < max(n_folds, 2):
        raise ConfigurationError("need at least {} points to select a "
                                 "bandwidth by {}-fold cross validation, got "
                                 "{}".format(max(n_folds, 2), n_folds, nd))
    std = numpy.sqrt(0.5 * numpy.sum(numpy.var(data, axis=0)))
    max_bw = 1.1 * std * nd ** (-1.0 / 6.0)
    grid = GridSearchCV(
        KernelDensity(kernel='gaussian'),
        dict(bandwidth=numpy.linspace(0.1 * max_bw, max_bw, n_bw)),
        cv=n_folds)
    grid.fit(data)
    bw = grid.best_params_['bandwidth']
    logger.debug("cross validated bandwidth %g (max candidate %g)",
                 bw, max_bw)
    return bw
