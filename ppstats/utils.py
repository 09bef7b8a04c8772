#!/usr/bin/env python

"""File: utils.py
Module defining classes and functions that may come in handy throughout the
package

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

from functools import partial, update_wrapper
import numpy


class AlmostImmutable(object):
    """
    A base class for "almost immutable" objects: instance attributes that have
    already been assigned cannot (easily) be reassigned or deleted, but
    creating new attributes is allowed.

    """

    def __setattr__(self, name, value):
        """
        Override the __setattr__() method to avoid member reassigment

        """
        if hasattr(self, name):
            raise TypeError("{} instances do not support attribute "
                            "reassignment".format(self.__class__.__name__))
        object.__setattr__(self, name, value)

    def __delattr__(self, name):
        """
        Override the __detattr__() method to avoid member deletion

        """
        raise TypeError("{} instances do not support attribute deletion"
                        .format(self.__class__.__name__))


class memoize_method(object):
    """Cache the return value of a method on the instance it is called on

    All arguments passed to a decorated method must be hashable for the
    result to be cached. If they are not, the result is computed and returned
    as usual, but not cached.

    The cache is a dict stored as the attribute `cache_name` on the instance,
    created on first use, so the decorator works on `AlmostImmutable`
    subclasses.

    Examples
    --------
    >>> class AddToThree(object):
    >>>     @memoize_method
    >>>     def add(self, addend):
    >>>         return 3 + addend
    >>>
    >>> adder = AddToThree()
    >>> adder.add(4)  # result will be cached
    7

    """

    cache_name = '_memoize_method_cache'

    def __init__(self, f):
        self.f = f
        update_wrapper(self, f)

    def __get__(self, obj, otype=None):
        if obj is None:
            return self.f
        return update_wrapper(partial(self, obj), self.f)

    def __call__(self, obj, *args, **kwargs):
        try:
            cache = obj.__dict__[self.cache_name]
        except KeyError:
            cache = {}
            object.__setattr__(obj, self.cache_name, cache)

        key = (self.f.__name__, args, frozenset(kwargs.items()))
        try:
            hash(key)
        except TypeError:
            # Unhashable arguments
            return self.f(obj, *args, **kwargs)
        try:
            res = cache[key]
        except KeyError:
            res = cache[key] = self.f(obj, *args, **kwargs)
        return res


def sensibly_divide(num, denom):
    """
    Sensibly divide two numbers or arrays of numbers (or any combination
    thereof)

    Sensibly in this case means that division by zero only gives an infinite
    result if the numerator is non-zero and non-nan. If both
    the numerator and denominator are zero, or if the numerator is nan, the
    result of the division is nan.

    The use of nans means that the output is always a float array, regardless
    of the input types.

    :num: numerator
    :denom: denominator
    :returns: num / denom, sensibly

    """
    # Get broadcasted float copies, for exact comparison to 0.0 and nan
    num_bc, denom_bc = numpy.broadcast_arrays(num, denom)
    num_bc = numpy.array(num_bc, dtype=numpy.float64)
    denom_bc = numpy.array(denom_bc, dtype=numpy.float64)

    denom_zero = (denom_bc == 0.0)
    if numpy.any(denom_zero):
        num_zero_or_nan = numpy.logical_or(num_bc == 0.0,
                                           numpy.isnan(num_bc))
        problems = numpy.logical_and(denom_zero, num_zero_or_nan)
        if numpy.any(problems):
            denom_bc[problems] = numpy.nan

    with numpy.errstate(invalid='ignore'):
        return num_bc / denom_bc


def as_generator(rng=None):
    """
    Return a numpy Generator from a seed, a Generator or None

    :rng: None, an integer seed, a SeedSequence or a Generator. Generators are
          passed through untouched.
    :returns: numpy.random.Generator instance

    """
    if isinstance(rng, numpy.random.Generator):
        return rng
    return numpy.random.default_rng(rng)


def spawn_generators(seed, n):
    """
    Create independent random generators for a number of parallel tasks

    The generator for task `i` depends only on `seed` and `i`, so results are
    reproducible regardless of the order in which the tasks are executed.

    Parameters
    ----------
    seed : None or int or SeedSequence
        Base seed. If None, fresh entropy is drawn from the operating system.
    n : integer
        Number of generators to create.

    Returns
    -------
    list
        List of `n` numpy.random.Generator instances.

    """
    if not isinstance(seed, numpy.random.SeedSequence):
        seed = numpy.random.SeedSequence(seed)
    return [numpy.random.default_rng(child) for child in seed.spawn(n)]
