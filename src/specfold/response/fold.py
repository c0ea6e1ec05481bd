"""Response folding: ARF x RMF, then channel rates per unit energy.

The ancillary correction is parameter independent, so it is multiplied into
the redistribution matrix once; the fit loop only performs the matrix-vector
product and the bin-width division.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
from scipy import sparse

from ..core.file import AncillaryResponse, ResponseMatrix
from ..ftools.rebin import rebin_arf

__all__ = [
    'ancillary_on_response_grid',
    'fold_ancillary',
    'select_rows',
    'fold_response',
]


def ancillary_on_response_grid(response: ResponseMatrix, ancillary: AncillaryResponse) -> np.ndarray:
    """Effective area per response energy bin.

    The ARF is used directly when it shares the response's ENERG_LO/ENERG_HI
    grid, otherwise it is re-averaged onto that grid.
    """
    if (
        ancillary.n_energies == response.n_energies
        and np.allclose(ancillary.bins_low, response.bins_low)
        and np.allclose(ancillary.bins_high, response.bins_high)
    ):
        return ancillary.effective_area
    return rebin_arf(
        ancillary.bins_low, ancillary.bins_high, ancillary.effective_area,
        response.bins_low, response.bins_high,
    )


def fold_ancillary(response: ResponseMatrix, ancillary: Optional[AncillaryResponse] = None):
    """Return the (channels x energies) matrix with the effective area folded in."""
    if ancillary is None:
        return response.matrix.copy()
    area = ancillary_on_response_grid(response, ancillary)
    if sparse.issparse(response.matrix):
        return sparse.csr_matrix(response.matrix @ sparse.diags(area))
    return response.matrix * area[np.newaxis, :]


def select_rows(matrix, rows: np.ndarray):
    """Row subset that works for dense arrays and scipy.sparse matrices alike."""
    rows = np.asarray(rows, dtype=int)
    if sparse.issparse(matrix):
        return sparse.csr_matrix(matrix)[rows, :]
    return np.ascontiguousarray(matrix[rows, :])


def fold_response(
    flux: np.ndarray,
    matrix,
    bin_widths: np.ndarray,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """计算 R · flux / ΔE。

    参数
    - flux: 长度 N_E 的模型通量（每个响应能 bin 的积分值）
    - matrix: 已按有效道筛选、已乘 ARF 的响应矩阵 (N_active, N_E)
    - bin_widths: 有效道的能宽 (N_active,)
    - out: 可选输出缓冲区 (N_active,)，原地写入

    返回
    - 每个有效道的计数率密度
    """
    if out is None:
        folded = matrix @ flux
        folded = np.asarray(folded)
        folded /= bin_widths
        return folded
    if sparse.issparse(matrix):
        out[:] = matrix @ flux
    else:
        np.matmul(matrix, flux, out=out)
    out /= bin_widths
    return out
