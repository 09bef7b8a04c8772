#!/usr/bin/env python

"""File: quadrats.py
Module for quadrat counting: partitions of a window into tiles, point counts
and intensities per tile, and the quadrat test for complete spatial
randomness.

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
import shapely
from scipy import stats
from shapely import geometry, ops

from .errors import ConfigurationError, DegenerateTileError
from .pointpatterns import Window
from .utils import AlmostImmutable

logger = logging.getLogger(__name__)

DEFAULT_RESOLUTION = 128

# Relative overlap area above which two tiles are considered to overlap
_OVERLAP_TOLERANCE = 1e-9


def _format_number(x):
    return "{:g}".format(x)


class Partition(AlmostImmutable):
    """
    Represent a partition of a window into disjoint tiles (quadrats)

    Parameters
    ----------
    tiles : sequence
        Sequence of shapely polygons (or Window instances) making up the
        partition. The interiors of the tiles must be pairwise disjoint; tiles
        may share boundaries.
    labels : sequence, optional
        Labels for the tiles. Defaults to the tile indices.

    """

    def __init__(self, tiles, labels=None):
        tiles = [t.polygon if isinstance(t, Window) else t for t in tiles]
        if not tiles:
            raise ConfigurationError("a partition must have at least one tile")
        if labels is None:
            labels = list(range(len(tiles)))
        labels = list(labels)
        if len(labels) != len(tiles):
            raise ConfigurationError("got {} labels for {} tiles"
                                     .format(len(labels), len(tiles)))
        if len(set(labels)) != len(labels):
            raise ConfigurationError("tile labels must be unique")

        self.tiles = numpy.array(tiles, dtype=object)
        self.labels = labels
        self.areas = shapely.area(self.tiles)
        self._check_disjoint()
        shapely.prepare(self.tiles)

    def _check_disjoint(self):
        tree = shapely.STRtree(self.tiles)
        left, right = tree.query(self.tiles, predicate='intersects')
        candidates = left < right
        left, right = left[candidates], right[candidates]
        if left.size == 0:
            return
        overlap = shapely.area(shapely.intersection(self.tiles[left],
                                                    self.tiles[right]))
        scale = numpy.maximum(self.areas[left], self.areas[right])
        bad = numpy.flatnonzero(overlap > _OVERLAP_TOLERANCE * scale)
        if bad.size > 0:
            i, j = left[bad[0]], right[bad[0]]
            raise ConfigurationError("tiles {!r} and {!r} overlap (shared "
                                     "area {:g})".format(self.labels[i],
                                                    self.labels[j],
                                                    overlap[bad[0]]))

    @classmethod
    def grid(cls, window, nx, ny=None):
        """
        Partition a window into tiles by a uniform rectangular grid

        The grid covers the bounding box of the window, and each grid cell is
        clipped to the window. Cells that do not overlap the window are left
        out.

        Parameters
        ----------
        window : Window
            The window to partition.
        nx, ny : integer
            Number of grid cells along the x and y axes. If `ny` is None, it
            is set equal to `nx`.

        Returns
        -------
        Partition
            Partition with labels `(ix, iy)` giving the column and row index
            of each tile.

        """
        if ny is None:
            ny = nx
        if int(nx) != nx or int(ny) != ny or nx < 1 or ny < 1:
            raise ConfigurationError("grid dimensions must be positive "
                                     "integers, got {} x {}".format(nx, ny))
        if not isinstance(window, Window):
            window = Window(window)
        xmin, ymin, xmax, ymax = window.bounds
        xedges = numpy.linspace(xmin, xmax, int(nx) + 1)
        yedges = numpy.linspace(ymin, ymax, int(ny) + 1)

        tiles, labels = [], []
        for ix in range(int(nx)):
            for iy in range(int(ny)):
                cell = geometry.box(xedges[ix], yedges[iy],
                                    xedges[ix + 1], yedges[iy + 1])
                tile = cell.intersection(window.polygon)
                if tile.area > 0.0:
                    tiles.append(tile)
                    labels.append((ix, iy))
        return cls(tiles, labels=labels)

    @classmethod
    def from_covariate(cls, window, covariate, breaks,
                       resolution=DEFAULT_RESOLUTION):
        """
        Partition a window into tiles by classifying the values of a
        covariate

        The bounding box of the window is divided into pixels, each pixel is
        classified by the covariate value at its center, and each tile is the
        union of the pixels in one class, clipped to the window. Pixels where
        the covariate is undefined or outside the range of `breaks` belong to
        no tile, and neither do points falling in them.

        Parameters
        ----------
        window : Window
            The window to partition.
        covariate : CovariateField
            Covariate to classify.
        breaks : array-like
            Strictly increasing bin edges. See `CovariateField.classify`.
        resolution : integer or pair of integers, optional
            Number of pixels along the x and y axes.

        Returns
        -------
        Partition
            Partition with labels of the form '[a, b)' (and '[a, b]' for the
            last bin). Classes that contain no pixels inside the window are
            left out.

        """
        if not isinstance(window, Window):
            window = Window(window)
        breaks = numpy.asarray(breaks, dtype=numpy.float64)
        x, y, __, __ = window.pixel_grid(resolution)
        dx, dy = x[1] - x[0], y[1] - y[0]
        xx, yy = numpy.meshgrid(x, y, indexing='ij')
        centers = numpy.column_stack((xx.ravel(), yy.ravel()))
        classes = covariate.classify(centers, breaks)

        tiles, labels = [], []
        nbins = breaks.size - 1
        for b in range(nbins):
            members = centers[classes == b]
            closing = ']' if b == nbins - 1 else ')'
            label = "[{}, {}{}".format(_format_number(breaks[b]),
                                       _format_number(breaks[b + 1]), closing)
            if len(members) == 0:
                logger.warning("covariate class %s is empty", label)
                continue
            pixels = shapely.box(members[:, 0] - 0.5 * dx,
                                 members[:, 1] - 0.5 * dy,
                                 members[:, 0] + 0.5 * dx,
                                 members[:, 1] + 0.5 * dy)
            tile = ops.unary_union(pixels).intersection(window.polygon)
            if tile.area > 0.0:
                tiles.append(tile)
                labels.append(label)
            else:
                logger.warning("covariate class %s does not overlap the "
                               "window", label)
        return cls(tiles, labels=labels)

    def __len__(self):
        return len(self.tiles)

    def __repr__(self):
        return "{}(ntiles={}, area={:g})".format(
            type(self).__name__, len(self), self.areas.sum())

    def locate(self, points):
        """
        Find the tile containing each of a number of points

        Points on a boundary shared by several tiles are assigned to the tile
        with the lowest index.

        Parameters
        ----------
        points : array-like of shape (m, 2)
            The points to locate.

        Returns
        -------
        ndarray
            Integer array of shape (m,) with the tile index of each point.

        """
        points = numpy.asarray(points, dtype=numpy.float64).reshape(-1, 2)
        index = numpy.full(len(points), -1, dtype=int)
        for (t, tile) in enumerate(self.tiles):
            left = numpy.flatnonzero(index < 0)
            if left.size == 0:
                break
            inside = shapely.intersects_xy(tile, points[left, 0],
                                           points[left, 1])
            index[left[inside]] = t

        lost = numpy.flatnonzero(index < 0)
        if lost.size > 0:
            i = lost[0]
            raise ConfigurationError("point {} {} lies in no tile of the "
                                     "partition ({} points in total)"
                                     .format(i, tuple(points[i].tolist()),
                                             lost.size))
        return index


def quadrat_count(pattern, partition):
    """
    Count the points of a pattern in each tile of a partition

    Parameters
    ----------
    pattern : PointPattern
        The point pattern.
    partition : Partition
        Partition covering the pattern.

    Returns
    -------
    Series
        Point counts indexed by tile label.

    """
    index = partition.locate(pattern.points)
    counts = numpy.bincount(index, minlength=len(partition))
    return pandas.Series(counts, index=_label_index(partition), name='count')


def quadrat_intensity(counts, partition):
    """
    Compute the intensity (points per unit area) in each tile of a partition

    Parameters
    ----------
    counts : Series
        Point counts indexed by tile label, as returned by `quadrat_count`.
    partition : Partition
        The partition the counts were made in.

    Returns
    -------
    Series
        Intensities indexed by tile label.

    """
    areas = pandas.Series(partition.areas, index=_label_index(partition))
    if len(counts) != len(areas) or not counts.index.equals(areas.index):
        raise ConfigurationError("'counts' does not match the tiles of "
                                 "'partition'")
    degenerate = numpy.flatnonzero(areas.values <= 0.0)
    if degenerate.size > 0:
        raise DegenerateTileError("tile {!r} has zero area"
                                  .format(partition.labels[degenerate[0]]))
    return (counts / areas).rename('intensity')


def quadrat_test(pattern, partition):
    """
    Perform the quadrat (Pearson chi-squared) test for complete spatial
    randomness

    Under CSR, the expected count in tile `i` is `n * a_i / A`, where `a_i` is
    the tile area and `A` the total area of the partition.

    Parameters
    ----------
    pattern : PointPattern
        The point pattern to test.
    partition : Partition
        Partition covering the pattern.

    Returns
    -------
    dict
        Dict with keys 'statistic' (the chi-squared statistic), 'df' (the
        degrees of freedom, one less than the number of tiles) and 'pvalue'.

    """
    if len(partition) < 2:
        raise ConfigurationError("the quadrat test needs at least two tiles")
    counts = quadrat_count(pattern, partition)
    areas = partition.areas
    if numpy.any(areas <= 0.0):
        raise DegenerateTileError("tile {!r} has zero area".format(
            partition.labels[numpy.flatnonzero(areas <= 0.0)[0]]))
    expected = len(pattern) * areas / areas.sum()
    if numpy.any(expected < 5.0):
        logger.warning("quadrat test: %d of %d tiles have expected counts "
                       "below 5; the chi-squared approximation may be poor",
                       numpy.sum(expected < 5.0), len(expected))
    statistic = numpy.sum((counts.values - expected) ** 2 / expected)
    df = len(partition) - 1
    return dict(statistic=statistic, df=df,
                pvalue=stats.chi2.sf(statistic, df))


def _label_index(partition):
    if all(isinstance(label, tuple) for label in partition.labels):
        return pandas.MultiIndex.from_tuples(partition.labels,
                                             names=('ix', 'iy'))
    return pandas.Index(partition.labels, name='tile')
