"""Lightweight Pure-Python ftools-style helpers.

This package provides the array-level building blocks of the folding pipeline,
in the spirit of HEASOFT ftools but operating on already-parsed numpy arrays.

Modules:
    - rebin: flux-conserving energy-grid downsampling and ARF re-averaging
    - rmf_mapping: spectrum channel to response EBOUNDS energy mapping
    - grppha: OGIP grouping columns (iteration, reduction, min-counts grouping)

Example:
    >>> from specfold.ftools import rebin, grppha
    >>> dest = rebin.rebin_flux(flux, fine_edges, coarse_edges)
    >>> grouping = grppha.compute_grouping_by_min_counts(counts, min_counts=20)
"""

from __future__ import annotations

from . import grppha
from . import rebin
from . import rmf_mapping

from .rebin import downsample_rebin, rebin_flux, rebin_if_different_domains, rebin_arf
from .rmf_mapping import augmented_energy_channels, ebounds_midpoints, match_channels
from .grppha import (
    iter_groups, count_groups, group_bounds, regroup_array,
    compute_grouping_by_min_counts, grouping_from_ranges,
)

__all__ = [
    'grppha',
    'rebin',
    'rmf_mapping',
    'downsample_rebin',
    'rebin_flux',
    'rebin_if_different_domains',
    'rebin_arf',
    'augmented_energy_channels',
    'ebounds_midpoints',
    'match_channels',
    'iter_groups',
    'count_groups',
    'group_bounds',
    'regroup_array',
    'compute_grouping_by_min_counts',
    'grouping_from_ranges',
]
