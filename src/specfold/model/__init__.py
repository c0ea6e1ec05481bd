"""Spectral model components.

Models are callables ``model(energy_edges, params, out=None)`` returning the
flux integrated over each energy bin (``len(energy_edges) - 1`` values).

Example:
    >>> from specfold.model import PowerLaw
    >>> pl = PowerLaw(K=10.0, a=1.7)
    >>> flux = pl(np.geomspace(0.3, 10.0, 200))
"""

from __future__ import annotations

from . import modelbase
from .modelbase import (
    ModelImplementation,
    ModelBase,
    AdditiveModel,
    PowerLaw,
    GaussianLine,
    Constant,
    CallableModel,
)

__all__ = [
    'modelbase',
    'ModelImplementation',
    'ModelBase',
    'AdditiveModel',
    'PowerLaw',
    'GaussianLine',
    'Constant',
    'CallableModel',
]
