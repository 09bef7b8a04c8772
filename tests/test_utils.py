"""
test_utils.py - Tests for the helper classes and functions in ppstats.utils
"""

import numpy
import pytest

from ppstats.utils import (AlmostImmutable, as_generator, memoize_method,
                           sensibly_divide, spawn_generators)


class Counter(AlmostImmutable):
    def __init__(self):
        self.calls = []

    @memoize_method
    def square(self, x):
        self.calls.append(x)
        return x * x

    @memoize_method
    def reject(self, x):
        self.calls.append(x)
        raise TypeError("cannot handle {!r}".format(x))


class TestAlmostImmutable:

    def test_new_attributes_allowed(self):
        obj = Counter()
        obj.extra = 1
        assert obj.extra == 1

    def test_reassignment_forbidden(self):
        obj = Counter()
        with pytest.raises(TypeError):
            obj.calls = []

    def test_deletion_forbidden(self):
        obj = Counter()
        with pytest.raises(TypeError):
            del obj.calls


class TestMemoizeMethod:

    def test_result_cached_per_argument(self):
        obj = Counter()
        assert obj.square(3) == 9
        assert obj.square(3) == 9
        assert obj.square(4) == 16
        assert obj.calls == [3, 4]

    def test_cache_is_per_instance(self):
        a, b = Counter(), Counter()
        a.square(2)
        b.square(2)
        assert a.calls == [2]
        assert b.calls == [2]

    def test_unhashable_arguments_computed_but_not_cached(self):
        obj = Counter()
        result = obj.square(numpy.array([1.0, 2.0]))
        obj.square(numpy.array([1.0, 2.0]))
        assert numpy.array_equal(result, [1.0, 4.0])
        assert len(obj.calls) == 2

    def test_type_error_from_method_not_retried(self):
        obj = Counter()
        with pytest.raises(TypeError, match="cannot handle"):
            obj.reject(3)
        assert obj.calls == [3]


class TestSensiblyDivide:

    def test_ordinary_division(self):
        assert numpy.allclose(sensibly_divide([4.0, 9.0], [2.0, 3.0]),
                              [2.0, 3.0])

    def test_zero_by_zero_is_nan(self):
        assert numpy.isnan(sensibly_divide(0.0, 0.0))

    def test_nan_by_zero_is_nan(self):
        assert numpy.isnan(sensibly_divide(numpy.nan, 0.0))

    def test_nonzero_by_zero_is_infinite(self):
        assert numpy.isposinf(sensibly_divide(1.0, 0.0))

    def test_broadcasting(self):
        out = sensibly_divide(numpy.array([0.0, 1.0, 2.0]), 0.0)
        assert numpy.isnan(out[0])
        assert numpy.all(numpy.isposinf(out[1:]))


class TestGenerators:

    def test_generator_passed_through(self):
        rng = numpy.random.default_rng(0)
        assert as_generator(rng) is rng

    def test_integer_seed_reproducible(self):
        assert as_generator(5).uniform() == as_generator(5).uniform()

    def test_spawned_generators_reproducible(self):
        first = [g.uniform() for g in spawn_generators(11, 4)]
        second = [g.uniform() for g in spawn_generators(11, 4)]
        assert first == second

    def test_spawned_generators_independent(self):
        draws = [g.uniform() for g in spawn_generators(11, 4)]
        assert len(set(draws)) == 4

    def test_prefix_stable(self):
        # Generator i depends only on the seed and i
        short = [g.uniform() for g in spawn_generators(3, 2)]
        long = [g.uniform() for g in spawn_generators(3, 5)]
        assert short == long[:2]
