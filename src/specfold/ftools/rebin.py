"""能量网格重分箱（通量守恒，纯 Python 实现）。

此模块提供：
- `downsample_rebin(flux, src_edges, dest_highs, out=None) -> dest_flux`
    把分段常数通量从细网格降采样到粗网格。整 bin 直接求和，跨越目标边界的源 bin
    按重叠能宽比例拆分，剩余部分结转到下一个目标 bin。
- `rebin_flux(flux, src_edges, dest_edges, out=None)`
    同上，但接受完整的目标边界数组（丢弃第一个边界）。
- `rebin_if_different_domains(output, data_domain, model_domain, flux)`
    两个能量网格 bin 数相同时直接拷贝，否则降采样。
- `rebin_arf(elo, ehi, area, new_elo, new_ehi) -> new_area`
    把 ARF（每个能量区间恒定的有效面积）按重叠能宽加权平均到新的能量区间。

升采样不在此处处理：若目标 bin 数不少于源 bin 数，抛出 RebinningError，
调用方应改用插值方法。
"""
from __future__ import annotations

from typing import Optional

import numpy as np

from ..core.errors import RebinningError

__all__ = [
    'downsample_rebin', 'rebin_flux', 'rebin_if_different_domains', 'rebin_arf',
]


def downsample_rebin(
    flux: np.ndarray,
    src_edges: np.ndarray,
    dest_highs: np.ndarray,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """把通量从源网格降采样到目标网格（按目标 bin 上边界描述）。

    参数:
    - `flux`: 长度 M 的源通量（每个源 bin 的积分通量）
    - `src_edges`: 长度 M+1 的源 bin 边界（严格递增）
    - `dest_highs`: 长度 N 的目标 bin 上边界（严格递增，N < M）
    - `out`: 可选的长度 N 输出缓冲区，会被清零后原地填充

    返回:
    - 长度 N 的目标通量。第一个超过 `src_edges[0]` 的目标边界之前的 bin 保持为零；
      超出最后一个目标边界、且没有下一个目标 bin 可结转的通量被丢弃。

    说明: 结果的数据类型为 ``np.result_type(flux, float)``，复数通量保持复数。
    """
    flux = np.asarray(flux)
    src_edges = np.asarray(src_edges, dtype=float)
    dest_highs = np.asarray(dest_highs, dtype=float)

    # ensure we are down-sampling, and not up-sampling
    if src_edges.size <= dest_highs.size + 1:
        raise RebinningError(
            "Rebinning must down-sample to fewer destination bins than source bins. "
            "Use interpolation methods for up-sampling."
        )
    if flux.size != src_edges.size - 1:
        raise ValueError(f'flux length ({flux.size}) must be one less than src_edges ({src_edges.size})')

    n = dest_highs.size
    if out is None:
        out = np.zeros(n, dtype=np.result_type(flux, float))
    else:
        if out.shape != (n,):
            raise ValueError(f'out must have shape ({n},), got {out.shape}')
        out[:] = 0

    # first destination edge beyond the first source edge
    reachable = np.flatnonzero(dest_highs > src_edges[0])
    if reachable.size == 0:
        return out
    first = int(reachable[0])

    n_edges = src_edges.size
    start = 0
    for fi in range(first, n):
        e_high = dest_highs[fi]
        # first source edge at or beyond e_high
        stop = start + int(np.searchsorted(src_edges[start:], e_high, side='left'))
        if stop >= n_edges:
            # no source edge reaches e_high: remaining whole bins end here
            out[fi] += flux[start:].sum()
            break

        lo = src_edges[stop - 1]
        ratio = (e_high - lo) / (src_edges[stop] - lo)
        edge_flux = flux[stop - 1]
        rest = (1 - ratio) * edge_flux
        if stop == start and fi > first:
            # destination bin lies inside the source bin that fed the previous one;
            # it already received the carried remainder, keep only its own share
            out[fi] -= rest
        else:
            out[fi] += flux[start:stop - 1].sum()
            out[fi] += ratio * edge_flux
        if fi < n - 1:
            out[fi + 1] += rest
        start = stop
    return out


def rebin_flux(
    flux: np.ndarray,
    src_edges: np.ndarray,
    dest_edges: np.ndarray,
    out: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Rebin onto a full destination edge array (length N+1)."""
    dest_edges = np.asarray(dest_edges, dtype=float)
    return downsample_rebin(flux, src_edges, dest_edges[1:], out=out)


def rebin_if_different_domains(
    output: np.ndarray,
    data_domain: np.ndarray,
    model_domain: np.ndarray,
    flux: np.ndarray,
) -> np.ndarray:
    """Copy `flux` into `output` when the domains have equal length, otherwise rebin."""
    if len(data_domain) == len(model_domain):
        output[:] = flux
    else:
        rebin_flux(flux, model_domain, data_domain, out=output)
    return output


def _interval_overlap(a0, a1, b0, b1):
    """返回区间 [a0,a1) 与 [b0,b1) 的重叠宽度（>=0）。"""
    lo = max(a0, b0)
    hi = min(a1, b1)
    return max(0.0, hi - lo)


def rebin_arf(elo: np.ndarray, ehi: np.ndarray, area: np.ndarray, new_elo: np.ndarray, new_ehi: np.ndarray) -> np.ndarray:
    """把 ARF 从原始能量网格重分箱到新网格。

    参数:
    - `elo`, `ehi`: 原 ARF 的能量区间边界数组（同长度 N，表示 N 个区间 [elo[i], ehi[i])）
    - `area`: 每个原区间的有效面积（长度 N）
    - `new_elo`, `new_ehi`: 目标网格的区间边界数组（长度 M）

    返回:
    - `new_area`: 长度 M 的数组，表示目标每个区间的面积（按区间平均值）

    说明: 有效面积是强度量而非积分量，因此做能宽加权平均而不是求和：
        new_area[j] = (1 / width_new_j) * sum_i area[i] * overlap_width(i,j)
    """
    elo = np.asarray(elo, dtype=float)
    ehi = np.asarray(ehi, dtype=float)
    area = np.asarray(area, dtype=float)
    new_elo = np.asarray(new_elo, dtype=float)
    new_ehi = np.asarray(new_ehi, dtype=float)

    if not (elo.size == ehi.size == area.size):
        raise ValueError('elo/ehi/area must have same length')
    if not (new_elo.size == new_ehi.size):
        raise ValueError('new_elo/new_ehi must have same length')

    M = new_elo.size
    new_area = np.zeros(M, dtype=float)
    # only source bins overlapping [new_elo[j], new_ehi[j]) contribute
    first = np.searchsorted(ehi, new_elo, side='right')
    last = np.searchsorted(elo, new_ehi, side='left')
    for j in range(M):
        wNew = float(new_ehi[j] - new_elo[j])
        if wNew <= 0:
            continue
        acc = 0.0
        for i in range(first[j], last[j]):
            ol = _interval_overlap(elo[i], ehi[i], new_elo[j], new_ehi[j])
            if ol <= 0.0:
                continue
            acc += float(area[i]) * ol
        # average over new bin width
        new_area[j] = acc / wNew
    return new_area
