"""
test_quadrats.py - Tests for partitions, quadrat counts and the quadrat test
"""

import logging

import numpy
import pandas
import pytest
from shapely import geometry

from ppstats import (ConfigurationError, DegenerateTileError, NumericalError,
                     Partition, PointPattern, quadrat_count,
                     quadrat_intensity, quadrat_test)


class TestGridPartition:

    def test_square_grid(self, square):
        partition = Partition.grid(square, 4)
        assert len(partition) == 16
        assert numpy.allclose(partition.areas, 6.25)
        assert partition.labels[0] == (0, 0)
        assert partition.labels[-1] == (3, 3)

    def test_rectangular_grid(self, square):
        partition = Partition.grid(square, 2, 5)
        assert len(partition) == 10
        assert numpy.allclose(partition.areas, 10.0)

    def test_tiles_clipped_to_window(self, lshape):
        partition = Partition.grid(lshape, 2)
        assert len(partition) == 3
        assert (1, 1) not in partition.labels
        assert partition.areas.sum() == pytest.approx(lshape.area)

    def test_invalid_dimensions(self, square):
        with pytest.raises(ConfigurationError):
            Partition.grid(square, 0)


class TestPartitionValidation:

    def test_overlapping_tiles(self):
        tiles = [geometry.box(0.0, 0.0, 2.0, 1.0),
                 geometry.box(1.0, 0.0, 3.0, 1.0)]
        with pytest.raises(ConfigurationError, match="overlap"):
            Partition(tiles)

    def test_shared_boundaries_allowed(self):
        tiles = [geometry.box(0.0, 0.0, 1.0, 1.0),
                 geometry.box(1.0, 0.0, 2.0, 1.0)]
        assert len(Partition(tiles)) == 2

    def test_label_count_mismatch(self):
        with pytest.raises(ConfigurationError):
            Partition([geometry.box(0.0, 0.0, 1.0, 1.0)], labels=['a', 'b'])

    def test_duplicate_labels(self):
        tiles = [geometry.box(0.0, 0.0, 1.0, 1.0),
                 geometry.box(1.0, 0.0, 2.0, 1.0)]
        with pytest.raises(ConfigurationError):
            Partition(tiles, labels=['a', 'a'])

    def test_empty_partition(self):
        with pytest.raises(ConfigurationError):
            Partition([])


class TestCovariatePartition:

    def test_two_classes(self, square, xcovariate):
        partition = Partition.from_covariate(square, xcovariate,
                                             [0.0, 5.0, 10.0], resolution=64)
        assert partition.labels == ['[0, 5)', '[5, 10]']
        assert numpy.allclose(partition.areas, 50.0)

    def test_empty_class_warns(self, square, xcovariate, caplog):
        caplog.set_level(logging.WARNING, logger='ppstats')
        partition = Partition.from_covariate(
            square, xcovariate, [0.0, 5.0, 10.0, 20.0], resolution=64)
        assert len(partition) == 2
        assert "[10, 20]" in caplog.text

    def test_counts(self, csr_pattern, xcovariate):
        partition = Partition.from_covariate(
            csr_pattern.window, xcovariate, [0.0, 5.0, 10.0], resolution=64)
        counts = quadrat_count(csr_pattern, partition)
        assert counts.sum() == len(csr_pattern)
        assert numpy.sum(csr_pattern.points[:, 0] < 5.0) == \
            counts['[0, 5)']


class TestLocate:

    def test_shared_boundary_goes_to_lowest_index(self, square):
        partition = Partition.grid(square, 2)
        index = partition.locate([[5.0, 2.0], [5.0, 5.0], [7.0, 7.0]])
        assert list(index) == [0, 0, 3]

    def test_point_outside_all_tiles(self, square):
        partition = Partition([geometry.box(0.0, 0.0, 5.0, 10.0)])
        with pytest.raises(ConfigurationError, match="point 1"):
            partition.locate([[1.0, 1.0], [8.0, 1.0]])


class TestQuadratCount:

    def test_counts_sum_to_n(self, csr_pattern):
        counts = quadrat_count(csr_pattern, Partition.grid(
            csr_pattern.window, 4))
        assert counts.name == 'count'
        assert isinstance(counts.index, pandas.MultiIndex)
        assert list(counts.index.names) == ['ix', 'iy']
        assert counts.sum() == 500

    def test_known_counts(self, unit_square):
        pattern = PointPattern([[0.1, 0.1], [0.2, 0.3], [0.9, 0.1],
                                [0.6, 0.8]], unit_square)
        counts = quadrat_count(pattern, Partition.grid(unit_square, 2))
        assert counts[(0, 0)] == 2
        assert counts[(1, 0)] == 1
        assert counts[(0, 1)] == 0
        assert counts[(1, 1)] == 1

    def test_intensity_near_csr_intensity(self, csr_pattern):
        partition = Partition.grid(csr_pattern.window, 2)
        intensity = quadrat_intensity(quadrat_count(csr_pattern, partition),
                                      partition)
        assert intensity.name == 'intensity'
        # Area weighted mean is exactly n / A
        assert numpy.sum(intensity.values * partition.areas) / \
            partition.areas.sum() == pytest.approx(5.0)
        assert numpy.all(numpy.abs(intensity.values - 5.0) < 1.5)

    def test_degenerate_tile(self, square, csr_pattern):
        partition = Partition([geometry.box(0.0, 0.0, 5.0, 10.0),
                               geometry.box(5.0, 0.0, 10.0, 10.0),
                               geometry.Polygon()])
        counts = quadrat_count(csr_pattern, partition)
        assert counts[2] == 0
        with pytest.raises(DegenerateTileError) as excinfo:
            quadrat_intensity(counts, partition)
        assert isinstance(excinfo.value, ConfigurationError)
        assert isinstance(excinfo.value, NumericalError)

    def test_mismatched_counts(self, csr_pattern):
        counts = quadrat_count(csr_pattern,
                               Partition.grid(csr_pattern.window, 2))
        with pytest.raises(ConfigurationError):
            quadrat_intensity(counts, Partition.grid(csr_pattern.window, 3))


class TestQuadratTest:

    def test_csr_not_rejected(self, csr_pattern):
        result = quadrat_test(csr_pattern, Partition.grid(
            csr_pattern.window, 4))
        assert result['df'] == 15
        assert result['statistic'] >= 0.0
        assert result['pvalue'] > 0.001

    def test_clustered_rejected(self, clustered_pattern):
        result = quadrat_test(clustered_pattern, Partition.grid(
            clustered_pattern.window, 4))
        assert result['pvalue'] < 1e-6

    def test_small_expected_counts_warn(self, unit_square, caplog):
        caplog.set_level(logging.WARNING, logger='ppstats')
        pattern = PointPattern.simulate(10, unit_square, rng=5)
        quadrat_test(pattern, Partition.grid(unit_square, 3))
        assert "expected counts below 5" in caplog.text

    def test_single_tile(self, csr_pattern):
        with pytest.raises(ConfigurationError):
            quadrat_test(csr_pattern, Partition.grid(csr_pattern.window, 1))
