"""
specfold.core
=============

Data containers and dataset state.

This package layer exposes:
- Submodules `errors`, `file`, `datasets`.
- Already-parsed OGIP containers in `core.file` (spectrum, RMF, ARF).
- `SpectralDataset`, the masked/regrouped view a fit is built from.

Typical usage
-------------
	from specfold.core import Spectrum, ResponseMatrix, SpectralDataset
	ds = SpectralDataset(Spectrum(channels, counts, exposure_time=1e4), rmf)
"""
from __future__ import annotations

from . import errors as errors
from . import file as file
from . import datasets as datasets

from .errors import (
	SpecfoldError, RebinningError, ChannelMappingError, MissingBackgroundError,
	SpecfoldWarning, NonContiguousChannelWarning, UnitMismatchWarning, BoundsIgnoredWarning,
)
from .file import (
	GOOD_QUALITY, COUNTS, COUNT_RATE, COUNT_RATE_DENSITY,
	Spectrum, ResponseMatrix, AncillaryResponse,
)
from .datasets import SpectralDataset, DatasetWrapper, check_units_warning

__all__ = [
	'errors', 'file', 'datasets',
	'SpecfoldError', 'RebinningError', 'ChannelMappingError', 'MissingBackgroundError',
	'SpecfoldWarning', 'NonContiguousChannelWarning', 'UnitMismatchWarning', 'BoundsIgnoredWarning',
	'GOOD_QUALITY', 'COUNTS', 'COUNT_RATE', 'COUNT_RATE_DENSITY',
	'Spectrum', 'ResponseMatrix', 'AncillaryResponse',
	'SpectralDataset', 'DatasetWrapper', 'check_units_warning',
]
