#!/usr/bin/env python

"""File: __init__.py
Statistics for planar point patterns: intensity estimation, distance based
summary functions, covariate intensity models and Monte Carlo tests of
complete spatial randomness

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

from .errors import (PointPatternError, ConfigurationError, DomainError,
                     NumericalError, DegenerateTileError)
from .covariates import CovariateField
from .pointpatterns import Window, PointPattern, Curve
from .kde import IntensityRaster, kernel_density, select_bandwidth
from .quadrats import (Partition, quadrat_count, quadrat_intensity,
                       quadrat_test)
from .rhohat import rhohat
from .models import (IntensityModel, QuadratureScheme, quadrature_scheme,
                     fit, fit_null, likelihood_ratio_test, effect)
from .montecarlo import CSRTest, CSRTestResult, csr_test, envelope

logging.getLogger(__name__).addHandler(logging.NullHandler())

__version__ = '0.1'
