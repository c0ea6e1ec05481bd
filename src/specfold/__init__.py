"""
specfold: forward-folding spectral analysis for X-ray and gamma-ray detectors
=============================================================================

specfold maps a physical emission model evaluated on a fine energy grid through
an instrument response (RMF redistribution + ARF effective area) onto the
detector channel grid, and compares the folded prediction against observed
count rates in a least-squares fit.

Key Features:
    - Already-parsed OGIP containers (spectrum, background, RMF, ARF)
    - Flux-conserving downsampling between energy partitions
    - Channel-to-energy mapping between spectrum and response numbering
    - Masking, channel dropping, regrouping, normalization, background subtraction
    - Preallocated fit cache with separate plain / derivative-tracking buffers
    - Levenberg-Marquardt and trust-region fits through astropy.modeling

Main Subpackages:
    - core: data containers, spectral dataset state, errors and warnings
    - ftools: rebinning, channel mapping, grouping (pure-Python ftools style)
    - response: ancillary folding and response folding
    - model: spectral model components
    - fitting: transformer pipeline, fit cache, fitting config and driver
    - missions: mission-specific dataset wrappers (XMM-Newton)

Quick Start:
    >>> import specfold as sf
    >>> ds = sf.SpectralDataset(spectrum, response, background=bkg, ancillary=arf)
    >>> ds.normalize().subtract_background().mask_energies(0.5, 10.0)
    >>> config = sf.FittingConfig(sf.model.PowerLaw(), ds)
    >>> result = sf.fit(config)
    >>> print(result.summary())
"""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as _pkg_version
from pathlib import Path
import tomllib


def _read_version_from_pyproject() -> str:
    """Read version from pyproject.toml in editable installs."""
    root = Path(__file__).resolve().parents[2]
    project_file = root / 'pyproject.toml'
    if not project_file.exists():
        return '0.0.0+unknown'
    try:
        with project_file.open('rb') as fh:
            data = tomllib.load(fh)
        return data.get('project', {}).get('version', '0.0.0+unknown')
    except (OSError, tomllib.TOMLDecodeError):
        return '0.0.0+unknown'


# Version resolution priority:
# 1) Installed distribution metadata (pip install)
# 2) pyproject.toml (editable/source installation)
try:
    __version__ = _pkg_version('specfold')
except PackageNotFoundError:
    __version__ = _read_version_from_pyproject()

__license__ = "BSD-3-Clause"

# Re-export subpackages for ergonomic imports
from . import (
    core,
    ftools,
    response,
    model,
    fitting,
    missions,
)

from .core import (
    Spectrum, ResponseMatrix, AncillaryResponse,
    SpectralDataset, DatasetWrapper,
    RebinningError, ChannelMappingError, MissingBackgroundError,
)
from .missions import XmmData, XmmEPIC
from .fitting import FittingConfig, FittingResult, finalize, fit, FitOptions

__all__ = [
    # Subpackages
    'core',
    'ftools',
    'response',
    'model',
    'fitting',
    'missions',
    # Containers
    'Spectrum',
    'ResponseMatrix',
    'AncillaryResponse',
    'SpectralDataset',
    'DatasetWrapper',
    'XmmData',
    'XmmEPIC',
    # Errors
    'RebinningError',
    'ChannelMappingError',
    'MissingBackgroundError',
    # Fitting
    'FittingConfig',
    'FittingResult',
    'FitOptions',
    'finalize',
    'fit',
    # Package metadata
    '__version__',
    '__license__',
]
