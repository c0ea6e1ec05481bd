"""Response matrix and effective area utilities.

This module provides:
- fold_ancillary: multiply the ARF effective area into the RMF once
- fold_response: R . flux / dE for the active channels (allocating or in place)
- ancillary_on_response_grid: ARF effective area on the RMF energy grid

Example:
    >>> from specfold.response import fold_ancillary, fold_response
    >>> R = fold_ancillary(rmf, arf)
    >>> rate_density = fold_response(model_flux, R, bin_widths)
"""

from __future__ import annotations

from .fold import (
    ancillary_on_response_grid,
    fold_ancillary,
    fold_response,
    select_rows,
)

__all__ = [
    'ancillary_on_response_grid',
    'fold_ancillary',
    'fold_response',
    'select_rows',
]
