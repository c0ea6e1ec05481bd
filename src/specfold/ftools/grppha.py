"""Pure-Python grppha-like grouping helpers.

Grouping follows the OGIP GROUPING column convention:
- ``1``  : channel starts a new group
- ``-1`` : channel continues the current group
- ``0``  : no grouping information (treated as a group start)

Features implemented:
- iterate over group spans of a grouping column
- reduce per-channel arrays onto groups (sum, quadrature, max, first, last)
- grouping by minimum counts per group (greedy left-to-right)
- grouping from explicit inclusive channel ranges
"""

from __future__ import annotations

from typing import Iterator, List, Literal, Sequence, Tuple

import numpy as np

__all__ = [
    'iter_groups', 'count_groups', 'group_bounds', 'regroup_array',
    'compute_grouping_by_min_counts', 'grouping_from_ranges',
]


def iter_groups(grouping: Sequence[int] | np.ndarray) -> Iterator[Tuple[int, int, int]]:
    """Yield ``(group_index, start, stop)`` with inclusive channel indices.

    The first channel always opens a group, whatever its flag.
    """
    g = np.asarray(grouping, dtype=int)
    if g.size == 0:
        return
    idx = 0
    start = 0
    for i in range(1, g.size):
        if g[i] != -1:
            yield idx, start, i - 1
            idx += 1
            start = i
    yield idx, start, g.size - 1


def count_groups(grouping: Sequence[int] | np.ndarray) -> int:
    g = np.asarray(grouping, dtype=int)
    if g.size == 0:
        return 0
    return int(np.count_nonzero(g[1:] != -1)) + 1


def group_bounds(grouping: Sequence[int] | np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """Return ``(starts, stops)`` index arrays (inclusive) of every group."""
    g = np.asarray(grouping, dtype=int)
    if g.size == 0:
        empty = np.zeros(0, dtype=int)
        return empty, empty
    starts = np.flatnonzero(g != -1)
    if starts.size == 0 or starts[0] != 0:
        starts = np.concatenate(([0], starts))
    stops = np.concatenate((starts[1:] - 1, [g.size - 1]))
    return starts, stops


def regroup_array(
    values: np.ndarray,
    grouping: Sequence[int] | np.ndarray,
    how: Literal['sum', 'quadrature', 'max', 'first', 'last'] = 'sum',
) -> np.ndarray:
    """把逐道数组按分组归并到新的道。

    参数
    - values: 逐道数组（长度与 grouping 一致）
    - grouping: OGIP GROUPING 列
    - how: 'sum' 求和；'quadrature' 平方和开方（误差）；'max' 最大值（质量标记）；
           'first'/'last' 取组内首/末元素

    English
    Reduce a per-channel array onto groups.
    """
    values = np.asarray(values)
    g = np.asarray(grouping, dtype=int)
    if values.shape[0] != g.size:
        raise ValueError(f'values length ({values.shape[0]}) != grouping length ({g.size})')
    starts, stops = group_bounds(g)
    if starts.size == 0:
        return values[:0].copy()
    if how == 'sum':
        return np.add.reduceat(values, starts, axis=0)
    if how == 'quadrature':
        return np.sqrt(np.add.reduceat(np.abs(values) ** 2, starts, axis=0))
    if how == 'max':
        return np.maximum.reduceat(values, starts, axis=0)
    if how == 'first':
        return values[starts].copy()
    if how == 'last':
        return values[stops].copy()
    raise ValueError(f'unknown reduction: {how!r}')


def compute_grouping_by_min_counts(counts: np.ndarray, min_counts: float) -> np.ndarray:
    """Compute an OGIP grouping column given per-channel `counts` and `min_counts`.

    Algorithm: greedy left-to-right accumulate counts until >= min_counts,
    then start a new group. The last group may have < min_counts.
    """
    counts = np.asarray(counts, dtype=float)
    n = counts.size
    grouping = np.full(n, -1, dtype=int)
    if n == 0:
        return grouping
    grouping[0] = 1
    acc = 0.0
    for i in range(n):
        acc += float(counts[i])
        if acc >= float(min_counts) and i < n - 1:
            grouping[i + 1] = 1
            acc = 0.0
    return grouping


def grouping_from_ranges(channels: np.ndarray, ranges: List[Tuple[int, int]]) -> np.ndarray:
    """Create a grouping column from explicit inclusive channel ranges.

    Channels outside every range stay ungrouped (each is its own group).
    """
    ch = np.asarray(channels, dtype=int)
    g = np.ones(ch.size, dtype=int)
    for a, b in ranges:
        if b < a:
            a, b = b, a
        idx = np.flatnonzero((ch >= int(a)) & (ch <= int(b)))
        if idx.size > 1:
            g[idx[1:]] = -1
    return g
