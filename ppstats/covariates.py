#!/usr/bin/env python

"""File: covariates.py
Module defining spatial covariates: scalar fields over the plane that can be
evaluated at arbitrary locations

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

import numpy
from scipy.interpolate import RegularGridInterpolator

from .errors import ConfigurationError, DomainError
from .utils import AlmostImmutable


def _as_points(points):
    points = numpy.asarray(points, dtype=numpy.float64)
    if points.ndim == 1:
        points = points[numpy.newaxis, :]
    if points.ndim != 2 or points.shape[1] != 2:
        raise ConfigurationError("points must be given as an array of shape "
                                 "(n, 2), got shape {}".format(points.shape))
    return points


class CovariateField(AlmostImmutable):
    """
    Represent a scalar covariate defined over (part of) the plane

    Instances are usually created using one of the constructors
    `CovariateField.from_raster` and `CovariateField.from_function`.

    Parameters
    ----------
    func : callable
        Function taking arrays `x` and `y` of equal shape and returning an
        array of the same shape with the covariate values. Locations where the
        covariate is undefined must map to nan.
    name : str, optional
        Name of the covariate, used to label model coefficients.

    """

    def __init__(self, func, name=None):
        self._func = func
        self.name = name

    @classmethod
    def from_raster(cls, x, y, values, method='linear', name=None):
        """
        Create a covariate from a raster of values

        Parameters
        ----------
        x, y : array-like
            Strictly increasing coordinates of the raster cell centers along
            each axis.
        values : array-like, shape (len(x), len(y))
            Covariate values, such that `values[i, j]` is the value at
            `(x[i], y[j])`. Nan values mark cells where the covariate is
            undefined.
        method : str {'linear', 'nearest'}, optional
            Interpolation method used between cell centers.
        name : str, optional
            Name of the covariate.

        Returns
        -------
        CovariateField
            The covariate. It is undefined (nan) outside the rectangle spanned
            by the cell centers.

        """
        x = numpy.asarray(x, dtype=numpy.float64)
        y = numpy.asarray(y, dtype=numpy.float64)
        values = numpy.asarray(values, dtype=numpy.float64)
        if values.shape != (x.size, y.size):
            raise ConfigurationError("'values' has shape {}, expected {}"
                                     .format(values.shape, (x.size, y.size)))
        interpolator = RegularGridInterpolator(
            (x, y), values, method=method, bounds_error=False,
            fill_value=numpy.nan)

        def func(xv, yv):
            xi = numpy.stack((xv, yv), axis=-1)
            return interpolator(xi)

        return cls(func, name=name)

    @classmethod
    def from_function(cls, func, name=None):
        """
        Create a covariate from an analytic surface

        :func: callable taking arrays x and y and returning the covariate
               value at each (x, y) location (nan where undefined)
        :name: name of the covariate
        :returns: CovariateField instance

        """
        def vectorized(xv, yv):
            return numpy.broadcast_to(
                numpy.asarray(func(xv, yv), dtype=numpy.float64),
                numpy.shape(xv))

        return cls(vectorized, name=name)

    def value_at(self, points):
        """
        Evaluate the covariate at a number of locations

        :points: array-like of shape (m, 2) or (2,)
        :returns: array of shape (m,) with the covariate values, nan where the
                  covariate is undefined

        """
        points = _as_points(points)
        values = self._func(points[:, 0], points[:, 1])
        return numpy.array(values, dtype=numpy.float64).reshape(-1)

    def values_at_defined(self, points, what='location'):
        """
        Evaluate the covariate at a number of locations, requiring it to be
        defined everywhere

        :points: array-like of shape (m, 2) or (2,)
        :what: noun describing the locations, used in the error message
        :returns: array of shape (m,) with the covariate values

        """
        values = self.value_at(points)
        undefined = numpy.flatnonzero(~numpy.isfinite(values))
        if undefined.size > 0:
            i = undefined[0]
            location = tuple(_as_points(points)[i].tolist())
            raise DomainError("covariate {!r} is undefined at {} {} {} "
                              "({} undefined in total)"
                              .format(self.name, what, i,
                                      location, undefined.size))
        return values

    def classify(self, points, breaks):
        """
        Classify the covariate values at a number of locations into bins

        Parameters
        ----------
        points : array-like of shape (m, 2)
            Locations to classify.
        breaks : array-like
            Strictly increasing bin edges. Bin `i` is the half-open interval
            `[breaks[i], breaks[i + 1])`, except that the last bin also
            includes its upper edge.

        Returns
        -------
        ndarray
            Integer array of shape (m,) with the bin index of each location, or
            -1 where the covariate is undefined or outside the bins.

        """
        breaks = numpy.asarray(breaks, dtype=numpy.float64)
        if breaks.ndim != 1 or breaks.size < 2 or numpy.any(
                numpy.diff(breaks) <= 0.0):
            raise ConfigurationError("'breaks' must be a strictly increasing "
                                     "sequence of at least two values")
        values = self.value_at(points)
        labels = numpy.searchsorted(breaks, values, side='right') - 1
        labels[values == breaks[-1]] = breaks.size - 2
        outside = (~numpy.isfinite(values) | (labels < 0) |
                   (labels > breaks.size - 2))
        labels[outside] = -1
        return labels

    def __repr__(self):
        return "{}(name={!r})".format(type(self).__name__, self.name)
