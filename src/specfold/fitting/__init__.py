"""Fit pipeline: transformer, cache, config and astropy-driven fitting.

Example:
    >>> from specfold.fitting import FittingConfig, finalize, fit
    >>> config = FittingConfig(model, dataset)
    >>> finalize(config, config.parameters).statistic
    >>> result = fit(config)
"""

from __future__ import annotations

from . import cache
from . import config
from . import methods

from .cache import (
    PLAIN, TRACKED, numeric_mode,
    BufferSlots, ParameterCache, ObjectiveTransformer, SpectralCache,
)
from .config import (
    FittingConfig, FittingResult, finalize, chi_squared, register_statistic, STATISTICS,
)
from .methods import FitOptions, jacobian, fit

__all__ = [
    'cache',
    'config',
    'methods',
    'PLAIN',
    'TRACKED',
    'numeric_mode',
    'BufferSlots',
    'ParameterCache',
    'ObjectiveTransformer',
    'SpectralCache',
    'FittingConfig',
    'FittingResult',
    'finalize',
    'chi_squared',
    'register_statistic',
    'STATISTICS',
    'FitOptions',
    'jacobian',
    'fit',
]
