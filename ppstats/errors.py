#!/usr/bin/env python

"""File: errors.py
Module defining the exceptions raised by the package

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


class PointPatternError(Exception):
    """
    Base class for all errors raised by ppstats

    """


class ConfigurationError(PointPatternError, ValueError):
    """
    Raised when a computation is requested with parameters that cannot work:
    an invalid partition, a neighbor order not smaller than the number of
    points, models that are not nested, unknown option strings and so on.

    """


class DomainError(PointPatternError, ValueError):
    """
    Raised when a location falls outside the domain where it is needed: a
    point outside its window, or a covariate that is undefined at an observed
    or sampled location.

    """


class NumericalError(PointPatternError, ArithmeticError):
    """
    Raised when a numerical procedure fails, e.g. when likelihood
    maximization does not converge or a statistic evaluates to a non-finite
    value.

    """


class DegenerateTileError(ConfigurationError, NumericalError):
    """
    Raised when a quadrat tile has zero area, so that no intensity can be
    computed for it.

    """
