#!/usr/bin/env python

"""File: pointpatterns.py
Module to facilitate point pattern analysis in arbitrarily shaped 2D windows.

The second-order summary functions (K, L and the pair correlation function)
computed here all assume that the point pattern is stationary, i.e., that its
intensity has no trend across the window. This is a modelling assumption that
is not checked.

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

from collections.abc import Sequence
import logging
import numpy
import pandas
import shapely
from scipy import interpolate
from scipy.spatial import cKDTree
from scipy.spatial.distance import cdist
from scipy.special import gammaln
from shapely import affinity, geometry

from .errors import ConfigurationError, DomainError
from .kde import get_kernel
from .utils import AlmostImmutable, as_generator, memoize_method, \
    sensibly_divide

logger = logging.getLogger(__name__)

_PI = numpy.pi
_2PI = 2.0 * _PI

RSAMPLES = 49
SAMPLE_RESOLUTION = 256
EDGE_CORRECTIONS = ('none', 'isotropic', 'translation')
DEFAULT_EDGE_CORRECTION = 'isotropic'

# Largest weight a single pair can get from the isotropic edge correction
MAX_ISOTROPIC_WEIGHT = 100.0

# Number of segments per quarter circle when approximating circles
_QUAD_SEGS = 32


def _as_points(points):
    points = numpy.asarray(points, dtype=numpy.float64)
    if points.size == 0:
        return numpy.empty((0, 2))
    if points.ndim == 1:
        points = points[numpy.newaxis, :]
    if points.ndim != 2 or points.shape[1] != 2:
        raise ConfigurationError("points must be given as an array of shape "
                                 "(n, 2), got shape {}".format(points.shape))
    return points


class Window(AlmostImmutable):
    """
    Represent a polygon-shaped window in the Euclidean plane, and provide
    methods for computing quantities related to it.

    Parameters
    ----------
    polygon : Polygon or MultiPolygon or Window or sequence
        A shapely polygon (possibly with holes), multipolygon, or any valid
        Polygon constructor argument, such as a sequence of coordinate tuples.

    """

    def __init__(self, polygon):
        if isinstance(polygon, Window):
            polygon = polygon.polygon
        elif not isinstance(polygon, (geometry.Polygon,
                                      geometry.MultiPolygon)):
            polygon = geometry.Polygon(polygon)
        if not polygon.is_valid:
            raise ConfigurationError("window polygon is not valid: {}"
                                     .format(shapely.is_valid_reason(polygon)))
        if not polygon.area > 0.0:
            raise ConfigurationError("window must have positive area")
        shapely.prepare(polygon)
        self.polygon = polygon

    @classmethod
    def rectangle(cls, xmin, ymin, xmax, ymax):
        """
        Create a rectangular window

        :xmin, ymin, xmax, ymax: the bounds of the rectangle
        :returns: Window instance

        """
        return cls(geometry.box(xmin, ymin, xmax, ymax))

    @property
    def area(self):
        return self.polygon.area

    @property
    def bounds(self):
        return self.polygon.bounds

    @property
    def boundary(self):
        return self.polygon.boundary

    def __eq__(self, other):
        return (isinstance(other, Window) and
                self.polygon.equals(other.polygon))

    def __hash__(self):
        return hash(self.polygon.wkb)

    def __repr__(self):
        return "{}({})".format(type(self).__name__, self.polygon.wkt)

    def contains(self, points):
        """
        Test whether locations lie within the window or on its boundary

        :points: array-like of shape (m, 2) or (2,)
        :returns: boolean array of shape (m,)

        """
        points = _as_points(points)
        return shapely.intersects_xy(self.polygon, points[:, 0],
                                     points[:, 1])

    def boundary_distance(self, points):
        """
        Compute the distance from each of a number of locations to the window
        boundary

        :points: array-like of shape (m, 2) or (2,)
        :returns: array of shape (m,)

        """
        points = _as_points(points)
        return shapely.distance(self.polygon.boundary, shapely.points(points))

    @memoize_method
    def longest_diagonal(self):
        """
        Compute the length of the longest diagonal across the polygon

        Returns
        -------
        scalar
            Length of the longest diagonal.

        """
        hull = numpy.asarray(self.polygon.convex_hull.exterior.coords)[:-1]
        return cdist(hull, hull).max()

    @property
    def diameter(self):
        return self.longest_diagonal()

    @memoize_method
    def pixel_grid(self, resolution):
        """
        Compute a regular grid of pixels over the bounding box of the window

        Parameters
        ----------
        resolution : integer or pair of integers
            Number of pixels along the x and y axes.

        Returns
        -------
        x, y : ndarray
            Coordinates of the pixel centers along each axis.
        mask : ndarray, shape (len(x), len(y))
            Boolean array such that `mask[i, j]` is True if the pixel center
            `(x[i], y[j])` is in the window.
        pixel_area : scalar
            Area of a single pixel.

        """
        nx, ny = numpy.broadcast_to(numpy.asarray(resolution, dtype=int), 2)
        if nx < 2 or ny < 2:
            raise ConfigurationError("need a resolution of at least 2 pixels "
                                     "along each axis, got {}"
                                     .format(resolution))
        xmin, ymin, xmax, ymax = self.bounds
        dx = (xmax - xmin) / nx
        dy = (ymax - ymin) / ny
        x = xmin + dx * (numpy.arange(nx) + 0.5)
        y = ymin + dy * (numpy.arange(ny) + 0.5)
        xx, yy = numpy.meshgrid(x, y, indexing='ij')
        mask = shapely.intersects_xy(self.polygon, xx, yy)
        return x, y, mask, dx * dy

    def pixel_centers(self, resolution):
        """
        Return the centers of the pixels in `pixel_grid` that lie inside the
        window

        :resolution: see `Window.pixel_grid`
        :returns: array of shape (m, 2) with the pixel centers, and the area of
                  a single pixel

        """
        x, y, mask, pixel_area = self.pixel_grid(resolution)
        xx, yy = numpy.meshgrid(x, y, indexing='ij')
        return numpy.column_stack((xx[mask], yy[mask])), pixel_area

    def sample_uniform(self, n, rng=None):
        """
        Draw points independently and uniformly from the window

        The points are drawn by rejection sampling against the bounding box.

        Parameters
        ----------
        n : integer
            Number of points to draw.
        rng : None or int or Generator, optional
            Random source. See `utils.as_generator`.

        Returns
        -------
        ndarray
            Array of shape (n, 2) with the sampled points.

        """
        rng = as_generator(rng)
        xmin, ymin, xmax, ymax = self.bounds
        area_factor = (xmax - xmin) * (ymax - ymin) / self.area

        points = []
        left = n
        while left > 0:
            ndraw = int(numpy.ceil(area_factor * left)) + 1
            draw = numpy.column_stack(
                (rng.uniform(low=xmin, high=xmax, size=ndraw),
                 rng.uniform(low=ymin, high=ymax, size=ndraw)))
            new_points = draw[self.contains(draw)][:left]
            points.append(new_points)
            left -= len(new_points)
        if not points:
            return numpy.empty((0, 2))
        return numpy.vstack(points)

    def sample_weighted(self, n, covariate, rng=None, missing='raise',
                        resolution=SAMPLE_RESOLUTION):
        """
        Draw points independently from the window, with probability density
        proportional to a non-negative covariate

        The points are drawn by rejection sampling: uniform candidates are
        accepted with probability `z / zmax`, where `z` is the covariate value
        at the candidate and `zmax` is the largest covariate value found on a
        pixel grid covering the window.

        Candidates where the covariate exceeds `zmax` are always accepted,
        which undersamples them; a warning is logged when this happens.

        Parameters
        ----------
        n : integer
            Number of points to draw.
        covariate : CovariateField
            Covariate giving the (unnormalized) sampling density.
        rng : None or int or Generator, optional
            Random source. See `utils.as_generator`.
        missing : str {'raise', 'zero'}, optional
            What to do where the covariate is undefined inside the window:

            ``raise``
                Raise a `DomainError`.
            ``zero``
                Give such locations zero sampling weight.
        resolution : integer or pair of integers, optional
            Resolution of the pixel grid used to find `zmax`.

        Returns
        -------
        ndarray
            Array of shape (n, 2) with the sampled points.

        """
        if missing not in ('raise', 'zero'):
            raise ConfigurationError("unknown missing value treatment: {}"
                                     .format(missing))
        rng = as_generator(rng)

        def weights(points, what):
            if missing == 'raise':
                z = covariate.values_at_defined(points, what=what)
            else:
                z = covariate.value_at(points)
                z[~numpy.isfinite(z)] = 0.0
            negative = numpy.flatnonzero(z < 0.0)
            if negative.size > 0:
                i = negative[0]
                raise DomainError("covariate {!r} is negative ({:g}) at {} "
                                  "{}; sampling weights must be "
                                  "non-negative".format(covariate.name, z[i],
                                                        what, i))
            return z

        centers, __ = self.pixel_centers(resolution)
        zmax = weights(centers, 'pixel center').max()
        if not zmax > 0.0:
            raise DomainError("covariate {!r} gives zero sampling weight "
                              "everywhere in the window"
                              .format(covariate.name))

        points = []
        left = n
        clipped = False
        while left > 0:
            candidates = self.sample_uniform(max(2 * left, 16), rng=rng)
            z = weights(candidates, 'sampled location')
            clipped = clipped or bool(numpy.any(z > zmax))
            accept = rng.uniform(size=len(z)) * zmax < z
            new_points = candidates[accept][:left]
            points.append(new_points)
            left -= len(new_points)
        if clipped:
            logger.warning("covariate %r exceeded its gridded maximum %g at "
                           "sampled locations, which are undersampled; "
                           "increase the resolution to avoid this",
                           covariate.name, zmax)
        if not points:
            return numpy.empty((0, 2))
        return numpy.vstack(points)

    def ring_fraction(self, centers, radii):
        """
        Compute the fraction of the circumference of circles that lies inside
        the window

        Parameters
        ----------
        centers : array-like, shape (m, 2)
            Circle centers.
        radii : array-like, shape (m,)
            Circle radii. Circles with zero radius get fraction 1.

        Returns
        -------
        ndarray
            Array of shape (m,) containing the fractions.

        """
        centers = _as_points(centers)
        radii = numpy.broadcast_to(numpy.asarray(radii, dtype=numpy.float64),
                                   (len(centers),))
        fraction = numpy.ones(len(centers))
        positive = radii > 0.0
        if numpy.any(positive):
            discs = shapely.buffer(shapely.points(centers[positive]),
                                   radii[positive], quad_segs=_QUAD_SEGS)
            rings = shapely.get_exterior_ring(discs)
            inside = shapely.length(shapely.intersection(rings, self.polygon))
            fraction[positive] = inside / shapely.length(rings)
        return fraction

    def translated_intersection(self, xoff, yoff):
        """
        Compute the intersection of the window with a translated copy of itself

        :xoff: distance to translate in the x direction
        :yoff: distance to translate in the y direction
        :returns: shapely geometry corresponding to the intersection

        """
        return self.polygon.intersection(
            affinity.translate(self.polygon, xoff=xoff, yoff=yoff))

    @memoize_method
    def _set_covariance_interpolator(self):
        """
        Compute a set covariance interpolator for the window

        Returns
        -------
        RectBivariateSpline
            Interpolator that computes the the set covariance of the window.

        """
        ld = self.longest_diagonal()
        rssqrt = int(numpy.sqrt(RSAMPLES))
        xoffs = numpy.linspace(-ld, ld, 4 * (rssqrt + 1) - 1)
        yoffs = numpy.linspace(-ld, ld, 4 * (rssqrt + 1) - 1)
        scarray = numpy.zeros((xoffs.size, yoffs.size))
        for (i, xoff) in enumerate(xoffs):
            for (j, yoff) in enumerate(yoffs):
                scarray[i, j] = self.translated_intersection(xoff, yoff).area
        return interpolate.RectBivariateSpline(xoffs, yoffs, scarray,
                                               kx=3, ky=3)

    def set_covariance(self, x, y):
        """
        Compute the set covariance of the window at given displacements

        The set covariance at displacement `(x, y)` is the area of the
        intersection of the window and a copy of itself translated by
        `(x, y)`. This is a wrapper around self._set_covariance_interpolator,
        providing a user friendly call signature.

        Parameters
        ----------
        x, y : array-like
            Arrays of the same shape giving x and y values of the displacements
            at which to evaluate the set covariance.

        Returns
        -------
        ndarray
            Array of the same shape as `x` and `y` containing the set
            covariance at each displacement.

        """
        return self._set_covariance_interpolator()(x, y, grid=False)


class Curve(AlmostImmutable):
    """
    Represent a summary function of a point pattern evaluated at a sequence of
    distances (or neighbor orders, or covariate values)

    Parameters
    ----------
    r : array-like
        Arguments at which the function is evaluated, in increasing order.
    values : array-like
        Function values, one for each element in `r`.
    name : str
        Name of the function, e.g. 'K', 'L', 'g' or 'ANN'.
    theoretical : array-like, optional
        Expected values under complete spatial randomness, if known.
    lower, upper : array-like, optional
        Lower and upper limits of a confidence band or simulation envelope.
    edge_correction : str, optional
        Edge correction used in the estimate, if any.

    """

    def __init__(self, r, values, name, theoretical=None, lower=None,
                 upper=None, edge_correction=None):
        self.r = numpy.atleast_1d(numpy.asarray(r, dtype=numpy.float64))
        self.values = numpy.atleast_1d(
            numpy.asarray(values, dtype=numpy.float64))
        if self.values.shape != self.r.shape:
            raise ConfigurationError("'r' and 'values' have different shapes: "
                                     "{} and {}".format(self.r.shape,
                                                        self.values.shape))
        self.name = name
        self.theoretical = self._optional(theoretical)
        self.lower = self._optional(lower)
        self.upper = self._optional(upper)
        self.edge_correction = edge_correction
        for arr in (self.r, self.values, self.theoretical, self.lower,
                    self.upper):
            if arr is not None:
                arr.setflags(write=False)

    def _optional(self, arr):
        if arr is None:
            return None
        return numpy.broadcast_to(numpy.asarray(arr, dtype=numpy.float64),
                                  self.r.shape).copy()

    def __len__(self):
        return len(self.r)

    @property
    def deviation(self):
        """Difference between the values and the CSR expectation"""
        if self.theoretical is None:
            raise ValueError("{} curve has no theoretical values"
                             .format(self.name))
        return self.values - self.theoretical

    def to_frame(self):
        """
        Convert the curve to a DataFrame

        :returns: DataFrame indexed by `r`, with a column named after the curve
                  and columns 'theoretical', 'lower' and 'upper' where
                  available

        """
        columns = {self.name: self.values}
        for label in ('theoretical', 'lower', 'upper'):
            arr = getattr(self, label)
            if arr is not None:
                columns[label] = arr
        return pandas.DataFrame(columns, index=pandas.Index(self.r, name='r'))

    def __repr__(self):
        return "{}({!r}, n={}, r=[{:g}, {:g}])".format(
            type(self).__name__, self.name, len(self), self.r.min(),
            self.r.max())


class PointPattern(AlmostImmutable, Sequence):
    """
    Represent a planar point pattern and its associated window, and provide
    methods for analyzing its statistical properties

    Parameters
    ----------
    points : array-like
        An array of shape (n, 2), or a sequence of coordinate tuples,
        representing the points in the point pattern. Repeated points are
        allowed.
    window : Window or Polygon or sequence
        A Window or any valid Window constructor argument, defining the set
        within which the point pattern takes values.
    require_inside : bool, optional
        If True (default), a DomainError is raised if the window does not
        contain all points (points on the boundary are accepted). Set to False
        to explicitly allow points outside the window.
    edge_correction : str {'isotropic', 'translation', 'none'}, optional
        String to select the default edge handling to apply in computations of
        second-order summary functions:

        ``isotropic``
            Ripley's isotropic correction: each pair `(i, j)` is weighted by
            the inverse of the fraction of the circle centered at point `i`
            and passing through point `j` that lies inside the window.
        ``translation``
            Translation correction: each pair is weighted by the area of the
            window divided by the area of the intersection of the window and
            its translation by the vector between the points.
        ``none``
            No edge correction. Estimates are biased downward at large
            distances.

    """

    def __init__(self, points, window, require_inside=True,
                 edge_correction=DEFAULT_EDGE_CORRECTION):
        if not isinstance(window, Window):
            window = Window(window)
        self.window = window

        points = _as_points(points).copy()
        if require_inside and len(points) > 0:
            outside = numpy.flatnonzero(~window.contains(points))
            if outside.size > 0:
                i = outside[0]
                raise DomainError("point {} {} is not contained in the "
                                  "window ({} points outside in total)"
                                  .format(i, tuple(points[i].tolist()),
                                          outside.size))
        points.setflags(write=False)
        self._points = points

        if edge_correction not in EDGE_CORRECTIONS:
            raise ConfigurationError("unknown edge correction: {}"
                                     .format(edge_correction))
        self.edge_correction = edge_correction

    @classmethod
    def simulate(cls, n, window, covariate=None, rng=None, missing='raise',
                 **kwargs):
        """
        Simulate a binomial point pattern: a fixed number of independent
        points in a window, uniformly or with density proportional to a
        covariate

        Parameters
        ----------
        n : integer
            Number of points.
        window : Window
            Window to simulate the pattern within.
        covariate : CovariateField, optional
            If given, points are drawn with density proportional to this
            covariate. See `Window.sample_weighted`.
        rng : None or int or Generator, optional
            Random source. See `utils.as_generator`.
        missing : str {'raise', 'zero'}, optional
            Treatment of locations where `covariate` is undefined. See
            `Window.sample_weighted`.
        **kwargs : dict, optional
            Additional keyword arguments passed to the constructor.

        Returns
        -------
        PointPattern
            The simulated pattern.

        """
        if not isinstance(window, Window):
            window = Window(window)
        if covariate is None:
            points = window.sample_uniform(n, rng=rng)
        else:
            points = window.sample_weighted(n, covariate, rng=rng,
                                            missing=missing)
        return cls(points, window, **kwargs)

    # Implement abstract methods
    def __getitem__(self, index):
        return self._points[index]

    def __len__(self):
        return len(self._points)

    def __iter__(self):
        return iter(self._points)

    def __repr__(self):
        return "{}(n={}, area={:g})".format(type(self).__name__, len(self),
                                            self.window.area)

    @property
    def points(self):
        return self._points

    @property
    def n(self):
        return len(self._points)

    def intensity(self):
        """
        Compute the standard intensity estimate, assuming a stationary point
        pattern: the number of points divided by the area of the window

        """
        return len(self) / self.window.area

    @memoize_method
    def _tree(self):
        return cKDTree(self._points)

    def _check_order(self, k, name='k'):
        n = len(self)
        if int(k) != k or k < 1:
            raise ConfigurationError("neighbor order '{}' must be a positive "
                                     "integer, got {}".format(name, k))
        if k >= n:
            raise ConfigurationError("neighbor order '{}' must be smaller "
                                     "than the number of points: got {}={} "
                                     "with n={}".format(name, name, k, n))
        return int(k)

    def nearest_neighbor_distances(self, k=1):
        """
        Compute the distance from each point to its k-th nearest neighbor

        Parameters
        ----------
        k : integer, optional
            Neighbor order. The point itself is never counted as a neighbor,
            so `k` must satisfy `1 <= k < n`.

        Returns
        -------
        ndarray
            Array of shape (n,) with the distances.

        """
        k = self._check_order(k)
        distances, __ = self._tree().query(self._points, k=k + 1)
        return distances[:, k]

    def ann(self, k=1):
        """
        Compute the average k-th nearest neighbor distance

        :k: neighbor order, with `1 <= k < n`
        :returns: mean of `nearest_neighbor_distances(k)`

        """
        return numpy.mean(self.nearest_neighbor_distances(k=k))

    def ann_curve(self, max_order=None):
        """
        Compute the average nearest neighbor distance as a function of
        neighbor order

        The theoretical values are the expected k-th nearest neighbor
        distances in an infinite Poisson process with the same intensity,
        `gamma(k + 1/2) / (gamma(k) * sqrt(pi * lambda))`, ignoring edge
        effects.

        Parameters
        ----------
        max_order : integer, optional
            Largest neighbor order to include. Must be smaller than the number
            of points, which is one more than the default.

        Returns
        -------
        Curve
            Curve of average neighbor distance against order
            `1, ..., max_order`.

        """
        if max_order is None:
            max_order = len(self) - 1
        max_order = self._check_order(max_order, name='max_order')
        distances, __ = self._tree().query(self._points, k=max_order + 1)
        orders = numpy.arange(1, max_order + 1)
        theoretical = numpy.exp(gammaln(orders + 0.5) - gammaln(orders)) / (
            numpy.sqrt(_PI * self.intensity()))
        return Curve(orders, numpy.mean(distances[:, 1:], axis=0), 'ANN',
                     theoretical=theoretical)

    def rmax(self):
        """
        Return the default largest interpoint distance for second-order
        summary functions: a quarter of the longest diagonal of the window

        """
        return 0.25 * self.window.longest_diagonal()

    def rvals(self, nr=RSAMPLES):
        """
        Construct an array of evenly spaced, positive r values up to `rmax`

        :nr: number of values
        :returns: array of r values

        """
        return numpy.linspace(0.0, self.rmax(), nr + 1)[1:]

    def _edge_correction(self, edge_correction):
        if edge_correction is None:
            edge_correction = self.edge_correction
        if edge_correction not in EDGE_CORRECTIONS:
            raise ConfigurationError("unknown edge correction: {}"
                                     .format(edge_correction))
        return edge_correction

    def _check_r(self, r):
        if r is None:
            return self.rvals()
        r = numpy.atleast_1d(numpy.asarray(r, dtype=numpy.float64))
        if r.ndim != 1 or numpy.any(~numpy.isfinite(r)) or numpy.any(r < 0.0):
            raise ConfigurationError("r values must be a one-dimensional "
                                     "array of finite non-negative numbers")
        return r

    def _check_pairs(self, name):
        if len(self) < 2:
            raise ConfigurationError("the {} requires at least two points, "
                                     "got n={}".format(name, len(self)))

    def pair_weights(self, i, j, d, edge_correction):
        """
        Compute the weights that ordered pairs of points contribute in the
        estimation of second-order summary functions

        Parameters
        ----------
        i, j : array-like
            Integer arrays of the same shape with the indices of the first
            and second point in each pair.
        d : array-like
            Distances between the points in each pair.
        edge_correction : str {'isotropic', 'translation', 'none'}
            Edge correction. See the documentation for `PointPattern`.

        Returns
        -------
        ndarray
            Array containing the weight of each pair.

        """
        w = numpy.ones(len(d))
        if edge_correction == 'none':
            return w

        p1 = self._points[i]
        if edge_correction == 'isotropic':
            # Circles fully inside the window need no correction
            bdist = self.window.boundary_distance(self._points)[i]
            crossing = d > bdist
            fraction = self.window.ring_fraction(p1[crossing], d[crossing])
            w[crossing] = numpy.minimum(1.0 / fraction, MAX_ISOTROPIC_WEIGHT)
            logger.debug("isotropic correction: %d of %d pairs cross the "
                         "window boundary", crossing.sum(), len(d))
            return w

        if edge_correction == 'translation':
            diff = self._points[j] - p1
            overlap = self.window.set_covariance(diff[:, 0], diff[:, 1])
            area = self.window.area
            return area / numpy.clip(overlap, area / MAX_ISOTROPIC_WEIGHT,
                                     None)

        raise ConfigurationError("unknown edge correction: {}"
                                 .format(edge_correction))

    @memoize_method
    def _estimator_base(self, rlimit, edge_correction):
        """
        Compute the distances between ordered pairs of distinct points in the
        pattern that are no farther apart than `rlimit`, and the weights they
        contribute in the estimation of second-order characteristics

        Returns
        -------
        r : array
            Array of the pairwise distances, sorted from small to large.
        weights : array
            Array containing the weights associated with pairs in the point
            pattern, sorted such that weights[i] gives the weight of the pair
            with distance r[i].

        """
        pairs = self._tree().query_pairs(rlimit, output_type='ndarray')
        i = numpy.concatenate((pairs[:, 0], pairs[:, 1]))
        j = numpy.concatenate((pairs[:, 1], pairs[:, 0]))
        diff = self._points[j] - self._points[i]
        r = numpy.hypot(diff[:, 0], diff[:, 1])

        weights = self.pair_weights(i, j, r, edge_correction)

        sort_ind = numpy.argsort(r, kind='stable')
        return r[sort_ind], weights[sort_ind]

    def _pair_normalization(self):
        """Return `n**2 / A`, so that second-order estimates are the sum of
        pair weights divided by this"""
        n = len(self)
        return n * n / self.window.area

    def kfunction(self, r=None, edge_correction=None):
        """
        Evaluate the empirical K-function of the point pattern

        The estimator is `K(r) = (A / n**2) * sum_i sum_{j != i} w_ij *
        I(d_ij <= r)`, where `A` is the window area and `w_ij` the edge
        correction weight of the pair.

        Parameters
        ----------
        r : array-like, optional
            Array of values at which to evaluate the emprical K-function. If
            None, `self.rvals()` is used.
        edge_correction : str {'isotropic', 'translation', 'none'}, optional
            String to select the edge handling to apply in computations. See
            the documentation for `PointPattern` for details.  If None, the
            edge correction falls back to the default value (set at instance
            initialization).

        Returns
        -------
        Curve
            Values of the empirical K-function evaluated at `r`, with
            theoretical values `pi * r**2`.

        """
        self._check_pairs('K-function')
        edge_correction = self._edge_correction(edge_correction)
        r = self._check_r(r)

        rpairs, weights = self._estimator_base(float(r.max()),
                                               edge_correction)
        cweights = numpy.hstack((0.0, numpy.cumsum(weights)))
        indices = numpy.searchsorted(rpairs, r, side='right')

        kvals = sensibly_divide(cweights[indices], self._pair_normalization())
        return Curve(r, kvals, 'K', theoretical=_PI * r * r,
                     edge_correction=edge_correction)

    def lfunction(self, r=None, edge_correction=None):
        """
        Evaluate the empirical L-function of the point pattern,
        `L(r) = sqrt(K(r) / pi) - r`

        Under complete spatial randomness, the expected value of the
        L-function is zero for all `r`.

        Parameters
        ----------
        r : array-like, optional
            Array of values at which to evaluate the emprical L-function.
        edge_correction : str {'isotropic', 'translation', 'none'}, optional
            See `PointPattern.kfunction`.

        Returns
        -------
        Curve
            Values of the empirical L-function evaluated at `r`.

        """
        kfunc = self.kfunction(r=r, edge_correction=edge_correction)
        lvals = numpy.sqrt(kfunc.values / _PI) - kfunc.r
        return Curve(kfunc.r, lvals, 'L', theoretical=0.0,
                     edge_correction=kfunc.edge_correction)

    def default_pair_corr_bandwidth(self, stoyan=0.15):
        """
        Compute the default bandwidth for the pair correlation function

        The default follows Stoyan's rule: the half-width of the Epanechnikov
        kernel is `stoyan / sqrt(lambda)`. Since bandwidths in this package
        are kernel standard deviations, the returned value is this half-width
        divided by `sqrt(5)`.

        """
        return stoyan / numpy.sqrt(5.0 * self.intensity())

    def pair_corr_function(self, r=None, bandwidth=None,
                           kernel='epanechnikov', edge_correction=None):
        """
        Evaluate the empirical pair correlation function of the point pattern

        The estimator is `g(r) = (A / n**2) * sum_i sum_{j != i} w_ij *
        k_h(r - d_ij) / (2 * pi * r)`, where `k_h` is a one-dimensional
        smoothing kernel with bandwidth `h`. The estimate is non-negative, and
        equal to one on average under complete spatial randomness.

        Parameters
        ----------
        r : array-like, optional
            Array of positive values at which to evaluate the emprical pair
            correlation function. If None, `self.rvals()` is used.
        bandwidth : scalar, optional
            The bandwidth (standard deviation) of the kernel used to estimate
            the density of point pairs at a given distance. If None,
            `self.default_pair_corr_bandwidth()` is used.
        kernel : str, optional
            Name of the smoothing kernel. See `kde.get_kernel`.
        edge_correction : str {'isotropic', 'translation', 'none'}, optional
            See `PointPattern.kfunction`.

        Returns
        -------
        Curve
            Values of the empirical pair correlation function evaluated at
            `r`, with theoretical value 1.

        """
        self._check_pairs('pair correlation function')
        edge_correction = self._edge_correction(edge_correction)
        r = self._check_r(r)
        if numpy.any(r <= 0.0):
            raise ConfigurationError("the pair correlation function can only "
                                     "be evaluated at positive distances")
        if bandwidth is None:
            bandwidth = self.default_pair_corr_bandwidth()
        if not bandwidth > 0.0:
            raise ConfigurationError("'bandwidth' must be positive, got {}"
                                     .format(bandwidth))
        kern = get_kernel(kernel)
        support = kern.support if numpy.isfinite(kern.support) else 5.0
        rlimit = float(r.max() + support * bandwidth)

        rpairs, weights = self._estimator_base(rlimit, edge_correction)

        # Find the contribution from each pair to each element in `r`
        d = r[numpy.newaxis, :] - rpairs[:, numpy.newaxis]
        w = numpy.sum(kern(d, bandwidth) * weights[:, numpy.newaxis], axis=0)
        w /= _2PI * r

        gvals = sensibly_divide(w, self._pair_normalization())
        return Curve(r, gvals, 'g', theoretical=1.0,
                     edge_correction=edge_correction)
