"""RMF 道 -> 能量 映射工具模块

提供函数把观测能谱的道号映射到响应矩阵 EBOUNDS 的能量边界：
- `augmented_energy_channels`：按能谱道号在响应道号中逐一查找，拼接出连续的能量边界数组
- `ebounds_midpoints`：EBOUNDS 中点

能谱与响应的道号编号方式可能存在整体偏移（例如从 0 或从 1 开始），
但两者假定单调对应；查找从当前位置开始向后进行。
"""

from __future__ import annotations

import warnings
from typing import Sequence

import numpy as np

from ..core.errors import ChannelMappingError, NonContiguousChannelWarning

__all__ = [
    'ebounds_midpoints',
    'augmented_energy_channels',
    'match_channels',
]


def ebounds_midpoints(e_min: Sequence[float], e_max: Sequence[float]) -> np.ndarray:
    """Compute midpoints from EBOUNDS arrays.

    Parameters
    - e_min/e_max: sequences of same length

    Returns
    - midpoints: ndarray of shape (N,)
    """
    e_min = np.asarray(e_min, dtype=float)
    e_max = np.asarray(e_max, dtype=float)
    if e_min.shape != e_max.shape:
        raise ValueError('e_min and e_max must have same shape')
    return 0.5 * (e_min + e_max)


def match_channels(channels: Sequence[int], other_channels: Sequence[int]) -> np.ndarray:
    """Locate each of `channels` in `other_channels`.

    The search for channel ``i`` starts at position ``i`` of `other_channels`.
    Raises ChannelMappingError when a channel has no match.
    """
    channels = np.asarray(channels)
    other_channels = np.asarray(other_channels)
    index = np.empty(channels.size, dtype=int)
    for i, c in enumerate(channels):
        hits = np.flatnonzero(other_channels[i:] == c)
        if hits.size == 0:
            raise ChannelMappingError(
                f"Failed to calculate channel to energy mapping: channel {int(c)} "
                f"not found in response channels."
            )
        index[i] = i + int(hits[0])
    return index


def augmented_energy_channels(
    channels: Sequence[int],
    other_channels: Sequence[int],
    bins_low: Sequence[float],
    bins_high: Sequence[float],
) -> np.ndarray:
    """为能谱道号构造连续能量边界（长度 = 道数 + 1）。

    参数
    - channels: 能谱道号
    - other_channels: 响应矩阵 EBOUNDS 道号
    - bins_low/bins_high: 响应每道的能量下/上边界

    返回
    - energies: 第 i 个元素为第 i 道的下边界，最后一个元素为最后一道的上边界

    若相邻道的边界在浮点容差内不连续，发出 NonContiguousChannelWarning（不中断）。
    若某道在响应道号中找不到，抛出 ChannelMappingError。
    """
    bins_low = np.asarray(bins_low)
    bins_high = np.asarray(bins_high)
    index = match_channels(channels, other_channels)
    n = index.size
    energies = np.zeros(n + 1, dtype=np.result_type(bins_low, bins_high, float))
    for i, j in enumerate(index):
        if i > 0 and not np.isclose(energies[i], bins_low[j]):
            warnings.warn(
                f"Channel {j}: misaligned {energies[i]} != {bins_low[j]}! "
                "Data may not be contiguous.",
                NonContiguousChannelWarning,
                stacklevel=2,
            )
        energies[i] = bins_low[j]
        energies[i + 1] = bins_high[j]
    return energies
