#!/usr/bin/env python

"""File: montecarlo.py
Module for Monte Carlo tests of complete spatial randomness (CSR) and
simulation envelopes of summary functions

A test compares a scalar statistic of an observed point pattern to its
distribution over patterns simulated under the null hypothesis: the same
number of points drawn independently in the same window, either uniformly or
with density proportional to a covariate. The simulations are independent and
can run in parallel. Each one uses its own random generator, derived from the
base seed and the simulation index, so results do not depend on the order of
execution or the number of workers.

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
from joblib import Parallel, delayed

from .errors import ConfigurationError, NumericalError
from .pointpatterns import Curve, PointPattern
from .utils import AlmostImmutable, spawn_generators

logger = logging.getLogger(__name__)

# With 599 simulations the p-value has resolution 1/600, and a one-sided test
# at the 5 % level rejects when the observed value ranks among the 30 most
# extreme of 600.
DEFAULT_NSIMS = 599

ALTERNATIVES = ('rank', 'less', 'greater')
ENVELOPE_FUNCTIONS = ('kfunction', 'lfunction', 'pair_corr_function')


def _resolve_statistic(statistic, statistic_kwargs):
    if isinstance(statistic, str):
        if not callable(getattr(PointPattern, statistic, None)):
            raise ConfigurationError("unknown point pattern statistic: {}"
                                     .format(statistic))
        name = statistic

        def func(pattern):
            return getattr(pattern, name)(**statistic_kwargs)
        return func, name
    if not callable(statistic):
        raise ConfigurationError("'statistic' must be callable or the name of "
                                 "a PointPattern method")
    if statistic_kwargs:
        raise ConfigurationError("'statistic_kwargs' can only be used with "
                                 "statistics given by name")
    return statistic, getattr(statistic, '__name__', repr(statistic))


def _scalar(value, what):
    try:
        value = float(value)
    except (TypeError, ValueError) as exc:
        raise NumericalError("the statistic of the {} is not a scalar: {!r}"
                             .format(what, value)) from exc
    if not numpy.isfinite(value):
        raise NumericalError("the statistic of the {} is not finite: {}"
                             .format(what, value))
    return value


def _simulate(func, pattern, covariate, missing, rng):
    """
    Run one simulation: draw a pattern under the null hypothesis and evaluate
    a function on it

    """
    sim = PointPattern.simulate(len(pattern), pattern.window,
                                covariate=covariate, rng=rng, missing=missing,
                                edge_correction=pattern.edge_correction)
    return func(sim)


def _run_simulations(func, pattern, nsims, covariate, missing, seed, n_jobs):
    generators = spawn_generators(seed, nsims)
    # Parallel returns only when every simulation is done, and re-raises the
    # first exception raised by any of them
    return Parallel(n_jobs=n_jobs)(
        delayed(_simulate)(func, pattern, covariate, missing, rng)
        for rng in generators)


class CSRTestResult(AlmostImmutable):
    """
    Represent the outcome of a Monte Carlo test

    Attributes
    ----------
    observed : scalar
        The statistic of the observed pattern.
    simulated : ndarray
        The statistic of each simulated pattern, in simulation order (the
        null distribution).
    count_greater : integer
        Number of simulated values strictly greater than the observed value.
    pvalue : scalar
        The Monte Carlo p-value.
    nsims : integer
        The number of simulations, which sets the resolution of the p-value:
        it is never smaller than `1 / (nsims + 1)`.
    statistic_name : str
        Name of the statistic.
    alternative : str
        The alternative hypothesis. See `CSRTest`.

    """

    def __init__(self, observed, simulated, count_greater, pvalue,
                 statistic_name, alternative):
        self.observed = observed
        simulated = numpy.array(simulated, dtype=numpy.float64)
        simulated.setflags(write=False)
        self.simulated = simulated
        self.count_greater = count_greater
        self.pvalue = pvalue
        self.nsims = len(simulated)
        self.statistic_name = statistic_name
        self.alternative = alternative

    @property
    def null_distribution(self):
        return pandas.Series(self.simulated, name=self.statistic_name)

    def summary(self):
        return {
            'statistic': self.statistic_name,
            'observed': self.observed,
            'null_mean': self.simulated.mean(),
            'null_std': self.simulated.std(),
            'count_greater': self.count_greater,
            'nsims': self.nsims,
            'alternative': self.alternative,
            'pvalue': self.pvalue,
        }

    def __repr__(self):
        return ("{}({}: observed={:.4g}, nsims={}, pvalue={:.4g})"
                .format(type(self).__name__, self.statistic_name,
                        self.observed, self.nsims, self.pvalue))


class CSRTest(object):
    """
    Monte Carlo test of a point pattern against complete spatial randomness

    A test run goes through the states 'configure' (after construction),
    'simulate', 'aggregate' and finally 'result', or 'failed' if any step
    raises. A test can only be run once.

    Parameters
    ----------
    pattern : PointPattern
        The observed pattern. It must contain at least one point.
    statistic : callable or str
        Function taking a PointPattern and returning a scalar, or the name of
        a scalar-valued PointPattern method, such as 'ann'.
    nsims : integer, optional
        Number of simulations. The default, 599, gives p-values in steps of
        1/600.
    covariate : CovariateField, optional
        If given, the null hypothesis is an independent random process with
        density proportional to this covariate instead of uniform CSR.
    missing : str {'raise', 'zero'}, optional
        Treatment of locations where `covariate` is undefined. See
        `Window.sample_weighted`.
    alternative : str {'rank', 'less', 'greater'}, optional
        How to compute the p-value from the number `c` of simulated values
        strictly greater than the observed one:

        ``rank``
            `min(c + 1, nsims + 1 - c) / (nsims + 1)`: small when the observed
            value is extreme in either direction.
        ``less``
            `(#{simulated <= observed} + 1) / (nsims + 1)`: small when the
            observed value is unusually low (e.g. clustering for nearest
            neighbor distances).
        ``greater``
            `(#{simulated >= observed} + 1) / (nsims + 1)`: small when the
            observed value is unusually high.
    seed : None or int or SeedSequence, optional
        Base seed for the simulations.
    n_jobs : integer, optional
        Number of parallel workers, passed to `joblib.Parallel`.
    statistic_kwargs : dict, optional
        Keyword arguments for the statistic, if given by name.

    """

    CONFIGURE = 'configure'
    SIMULATE = 'simulate'
    AGGREGATE = 'aggregate'
    RESULT = 'result'
    FAILED = 'failed'

    def __init__(self, pattern, statistic, nsims=DEFAULT_NSIMS,
                 covariate=None, missing='raise', alternative='rank',
                 seed=None, n_jobs=1, statistic_kwargs=None):
        if len(pattern) == 0:
            raise ConfigurationError("cannot test an empty point pattern")
        if int(nsims) != nsims or nsims < 1:
            raise ConfigurationError("'nsims' must be a positive integer, got "
                                     "{}".format(nsims))
        if alternative not in ALTERNATIVES:
            raise ConfigurationError("unknown alternative: {}"
                                     .format(alternative))
        if missing not in ('raise', 'zero'):
            raise ConfigurationError("unknown missing value treatment: {}"
                                     .format(missing))
        self.pattern = pattern
        self.statistic, self.statistic_name = _resolve_statistic(
            statistic, statistic_kwargs or {})
        self.nsims = int(nsims)
        self.covariate = covariate
        self.missing = missing
        self.alternative = alternative
        self.seed = seed
        self.n_jobs = n_jobs
        self.state = self.CONFIGURE
        self.result = None

    def run(self):
        """
        Run the simulations and compute the p-value

        Returns
        -------
        CSRTestResult
            The test result.

        """
        if self.state != self.CONFIGURE:
            raise ConfigurationError("a {} instance can only be run once "
                                     "(state is {!r})"
                                     .format(type(self).__name__, self.state))
        try:
            self.state = self.SIMULATE
            observed = _scalar(self.statistic(self.pattern),
                               'observed pattern')
            logger.debug("running %d simulations of %s with n_jobs=%s",
                         self.nsims, self.statistic_name, self.n_jobs)
            values = _run_simulations(self.statistic, self.pattern,
                                      self.nsims, self.covariate,
                                      self.missing, self.seed, self.n_jobs)
            simulated = numpy.array(
                [_scalar(v, 'simulated pattern {}'.format(i))
                 for (i, v) in enumerate(values)])

            self.state = self.AGGREGATE
            self.result = self._aggregate(observed, simulated)
        except Exception:
            self.state = self.FAILED
            raise
        self.state = self.RESULT
        logger.info("%r", self.result)
        return self.result

    def _aggregate(self, observed, simulated):
        nsims = len(simulated)
        count_greater = int(numpy.sum(simulated > observed))
        if self.alternative == 'rank':
            count = min(count_greater + 1, nsims + 1 - count_greater)
        elif self.alternative == 'less':
            count = int(numpy.sum(simulated <= observed)) + 1
        else:
            count = int(numpy.sum(simulated >= observed)) + 1
        pvalue = count / (nsims + 1)
        return CSRTestResult(observed, simulated, count_greater, pvalue,
                             self.statistic_name, self.alternative)


def csr_test(pattern, statistic, nsims=DEFAULT_NSIMS, **kwargs):
    """
    Run a Monte Carlo test of complete spatial randomness

    This is a shorthand for `CSRTest(pattern, statistic, nsims,
    **kwargs).run()`. See `CSRTest` for the parameters.

    Returns
    -------
    CSRTestResult
        The test result.

    """
    return CSRTest(pattern, statistic, nsims=nsims, **kwargs).run()


def envelope(pattern, function='lfunction', nsims=99, r=None, nrank=1,
             covariate=None, missing='raise', seed=None, n_jobs=1, **kwargs):
    """
    Compute pointwise simulation envelopes of a summary function

    The summary function is evaluated for the observed pattern and for
    `nsims` patterns simulated under the null hypothesis, at the same
    distances. At each distance, the envelope runs from the `nrank`-th
    smallest to the `nrank`-th largest simulated value.

    Parameters
    ----------
    pattern : PointPattern
        The observed pattern.
    function : str {'kfunction', 'lfunction', 'pair_corr_function'}, optional
        Name of the summary function.
    nsims : integer, optional
        Number of simulations.
    r : array-like, optional
        Distances at which to evaluate the function. If None, the default of
        the function for the observed pattern.
    nrank : integer, optional
        Rank of the envelope limits.
    covariate, missing, seed, n_jobs
        See `CSRTest`.
    **kwargs : dict, optional
        Additional keyword arguments passed to the summary function. For the
        pair correlation function, the bandwidth defaults to the default for
        the observed pattern, and is used for all simulations.

    Returns
    -------
    Curve
        The observed summary function, with the envelope as `lower` and
        `upper`.

    """
    if function not in ENVELOPE_FUNCTIONS:
        raise ConfigurationError("unknown summary function: {}"
                                 .format(function))
    if int(nrank) != nrank or not 1 <= nrank <= nsims // 2:
        raise ConfigurationError("'nrank' must be an integer between 1 and "
                                 "nsims / 2, got {}".format(nrank))
    if function == 'pair_corr_function' and kwargs.get('bandwidth') is None:
        kwargs['bandwidth'] = pattern.default_pair_corr_bandwidth()

    observed = getattr(pattern, function)(r=r, **kwargs)
    rvals = observed.r

    def func(sim):
        return getattr(sim, function)(r=rvals, **kwargs).values

    curves = numpy.array(_run_simulations(func, pattern, nsims, covariate,
                                          missing, seed, n_jobs))
    curves.sort(axis=0)
    return Curve(rvals, observed.values, observed.name,
                 theoretical=observed.theoretical,
                 lower=curves[nrank - 1], upper=curves[-nrank],
                 edge_correction=observed.edge_correction)
