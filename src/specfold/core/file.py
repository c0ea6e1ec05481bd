"""
OGIP 光谱产品的内存数据容器（已解析数组，不含 FITS 读写）

本模块定义能谱拟合所需的三类数据：PHA 能谱（含背景）、RMF 响应矩阵、ARF 有效面积。
文件解析由外部读取器完成，这里只接收解析后的 numpy 数组，并提供道删除、分组合并、
计数率转换与背景扣除等原地操作。

约定
----
- 响应矩阵形状为 (N_channel, N_energy)：第 i 行为道 i，第 j 列为入射能 bin j。
- 能谱单位使用 astropy.units：counts、counts / s、counts / (s keV)。
- 质量标记 0 表示好道（GOOD_QUALITY）。

English summary
---------------
In-memory containers for already-parsed OGIP products (spectrum/background,
RMF, ARF). Response matrices are stored channels x model-energy-bins, dense
ndarray or scipy.sparse. Units are astropy units.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Optional, Sequence, Tuple, Union

import astropy.units as u
import numpy as np
from scipy import sparse

from ..ftools.grppha import regroup_array

__all__ = [
    "GOOD_QUALITY",
    "COUNTS", "COUNT_RATE", "COUNT_RATE_DENSITY",
    "Spectrum", "ResponseMatrix", "AncillaryResponse",
]

GOOD_QUALITY = 0

COUNTS = u.ct
COUNT_RATE = u.ct / u.s
COUNT_RATE_DENSITY = u.ct / (u.s * u.keV)

MatrixLike = Union[np.ndarray, sparse.spmatrix, sparse.sparray]


@dataclass(slots=True)
class Spectrum:
    """PHA 能谱（源或背景）

    字段
    - channels: 道号
    - data: 计数或计数率（取决于 units）
    - errors: 统计误差；缺省时对计数谱取 sqrt(counts)
    - quality: 质量标记（0 为好道）；缺省全 0
    - grouping: OGIP 分组列；缺省全 1（不分组）
    - exposure_time: 曝光时间（s）
    - units: astropy 单位
    - background_scale/area_scale: BACKSCAL / AREASCAL

    English
    - OGIP PHA spectrum with optional quality/grouping vectors, in counts,
      counts/s, or counts/(s keV).
    """
    channels: np.ndarray
    data: np.ndarray
    errors: Optional[np.ndarray] = None
    quality: Optional[np.ndarray] = None
    grouping: Optional[np.ndarray] = None
    exposure_time: float = 1.0
    units: u.UnitBase = COUNTS
    background_scale: float = 1.0
    area_scale: float = 1.0
    telescope_name: str = ""
    instrument: str = ""

    def __post_init__(self):
        self.units = u.Unit(self.units)
        self.channels = np.asarray(self.channels, dtype=int)
        self.data = np.asarray(self.data, dtype=float).copy()
        n = self.channels.size
        if self.data.shape != (n,):
            raise ValueError(f"data length ({self.data.size}) != channel count ({n})")
        if self.errors is None:
            if self.units != COUNTS:
                raise ValueError("errors are required for spectra not in counts")
            self.errors = np.sqrt(np.maximum(self.data, 0.0))
        else:
            self.errors = np.asarray(self.errors, dtype=float).copy()
        if self.quality is None:
            self.quality = np.full(n, GOOD_QUALITY, dtype=int)
        else:
            self.quality = np.asarray(self.quality, dtype=int).copy()
        if self.grouping is None:
            self.grouping = np.ones(n, dtype=int)
        else:
            self.grouping = np.asarray(self.grouping, dtype=int).copy()
        for name in ("errors", "quality", "grouping"):
            arr = getattr(self, name)
            if arr.shape != (n,):
                raise ValueError(f"{name} length ({arr.size}) != channel count ({n})")

    @property
    def n_channels(self) -> int:
        return int(self.channels.size)

    @property
    def is_rate(self) -> bool:
        return self.units in (COUNT_RATE, COUNT_RATE_DENSITY)

    @property
    def is_normalized(self) -> bool:
        return self.units == COUNT_RATE_DENSITY

    def to_rate(self) -> 'Spectrum':
        """计数谱转换为计数率（除以曝光时间）；已是计数率时不做任何事。"""
        if self.units != COUNTS:
            return self
        if not self.exposure_time or self.exposure_time <= 0:
            raise ValueError(f"Non-positive exposure time: {self.exposure_time}")
        self.data = self.data / float(self.exposure_time)
        self.errors = self.errors / float(self.exposure_time)
        self.units = COUNT_RATE
        return self

    def drop_channels(self, indices: Sequence[int] | np.ndarray) -> int:
        """Physically delete channels at positional `indices`; returns the count removed."""
        idx = np.unique(np.asarray(indices, dtype=int))
        self.channels = np.delete(self.channels, idx)
        self.data = np.delete(self.data, idx)
        self.errors = np.delete(self.errors, idx)
        self.quality = np.delete(self.quality, idx)
        self.grouping = np.delete(self.grouping, idx)
        return int(idx.size)

    def regroup(self, grouping: Optional[np.ndarray] = None) -> 'Spectrum':
        """按分组合并道：数据求和、误差平方和开方、质量取最差、道号取组首。"""
        grp = self.grouping if grouping is None else np.asarray(grouping, dtype=int)
        if grp.size != self.n_channels:
            raise ValueError(f"grouping length ({grp.size}) != channel count ({self.n_channels})")
        self.channels = regroup_array(self.channels, grp, 'first')
        self.data = regroup_array(self.data, grp, 'sum')
        self.errors = regroup_array(self.errors, grp, 'quadrature')
        self.quality = regroup_array(self.quality, grp, 'max')
        self.grouping = np.ones(self.channels.size, dtype=int)
        return self

    def subtract_background(self, background: 'Spectrum') -> 'Spectrum':
        """扣除背景：net = src - ratio * bkg，误差按平方和传播。

        ratio = (BACKSCAL_src / BACKSCAL_bkg) * (AREASCAL_src / AREASCAL_bkg)
        两者须同单位、同道数。
        """
        if background.units != self.units:
            raise ValueError(
                f"Background units ({background.units}) differ from spectrum units ({self.units})"
            )
        if background.n_channels != self.n_channels:
            raise ValueError(
                f"Background channel count ({background.n_channels}) != spectrum ({self.n_channels})"
            )
        ratio = (self.background_scale / background.background_scale) * (
            self.area_scale / background.area_scale
        )
        self.data = self.data - ratio * background.data
        self.errors = np.sqrt(self.errors ** 2 + (ratio * background.errors) ** 2)
        return self

    def copy(self) -> 'Spectrum':
        return copy.deepcopy(self)

    def plot(self, ax=None, *, show_errorbar: bool = True, **kwargs):
        """按道号绘制数据（kwargs 透传给 errorbar）"""
        import matplotlib.pyplot as _plt  # lazy import
        ax = ax or _plt.gca()
        kwargs.setdefault('fmt', '.')
        ax.errorbar(self.channels, self.data, yerr=self.errors if show_errorbar else None, **kwargs)
        ax.set_xlabel("Channel")
        ax.set_ylabel(f"{self.units}")
        label = " ".join(s for s in (self.telescope_name, self.instrument) if s)
        if label:
            ax.set_title(label)
        return ax


@dataclass(slots=True)
class ResponseMatrix:
    """RMF 响应矩阵（含 EBOUNDS）

    字段
    - matrix: (N_C, N_E) 稠密数组或 scipy.sparse 矩阵
    - channels/channel_bins_low/channel_bins_high: EBOUNDS（道到能量）
    - bins_low/bins_high: 入射能 bin 边界（ENERG_LO/ENERG_HI）

    English
    - Redistribution matrix stored channels x model-energy-bins.
    """
    matrix: MatrixLike
    channels: np.ndarray
    channel_bins_low: np.ndarray
    channel_bins_high: np.ndarray
    bins_low: np.ndarray
    bins_high: np.ndarray

    def __post_init__(self):
        if not sparse.issparse(self.matrix):
            self.matrix = np.asarray(self.matrix, dtype=float)
        if self.matrix.ndim != 2:
            raise ValueError("response matrix must be 2D")
        self.channels = np.asarray(self.channels, dtype=int)
        self.channel_bins_low = np.asarray(self.channel_bins_low, dtype=float)
        self.channel_bins_high = np.asarray(self.channel_bins_high, dtype=float)
        self.bins_low = np.asarray(self.bins_low, dtype=float)
        self.bins_high = np.asarray(self.bins_high, dtype=float)
        n_c, n_e = self.matrix.shape
        if not (self.channels.size == self.channel_bins_low.size == self.channel_bins_high.size == n_c):
            raise ValueError(f"EBOUNDS arrays must have {n_c} entries (matrix rows)")
        if not (self.bins_low.size == self.bins_high.size == n_e):
            raise ValueError(f"ENERG_LO/ENERG_HI must have {n_e} entries (matrix columns)")

    @property
    def n_channels(self) -> int:
        return int(self.matrix.shape[0])

    @property
    def n_energies(self) -> int:
        return int(self.matrix.shape[1])

    def energy_edges(self) -> np.ndarray:
        """Contiguous model-energy grid: ``[ENERG_LO[0], *ENERG_HI]``."""
        edges = np.empty(self.n_energies + 1, dtype=float)
        edges[0] = self.bins_low[0]
        edges[1:] = self.bins_high
        return edges

    def merge_rows(self, row_groups: Sequence[Sequence[int]]) -> 'ResponseMatrix':
        """按行号分组合并矩阵行（概率相加），未列出的行保持不变。

        参数
        - row_groups: [[row, ...], ...] 每组的行号（升序，组间不重叠）

        English
        Sum exactly the listed rows of each group; rows outside every group stay.
        """
        n = self.n_channels
        assigned = np.full(n, -1, dtype=int)
        for g, members in enumerate(row_groups):
            assigned[np.asarray(members, dtype=int)] = g

        groups: list[list[int]] = []
        seen: dict[int, int] = {}
        for i in range(n):
            g = int(assigned[i])
            if g < 0:
                groups.append([i])
            elif g in seen:
                groups[seen[g]].append(i)
            else:
                seen[g] = len(groups)
                groups.append([i])

        rows = np.concatenate([np.full(len(grp), k) for k, grp in enumerate(groups)])
        cols = np.concatenate([np.asarray(grp) for grp in groups])
        agg = sparse.csr_matrix(
            (np.ones(cols.size), (rows, cols)), shape=(len(groups), n)
        )
        firsts = np.array([grp[0] for grp in groups], dtype=int)
        lasts = np.array([grp[-1] for grp in groups], dtype=int)

        self.matrix = agg @ self.matrix
        self.channels = self.channels[firsts]
        self.channel_bins_low = self.channel_bins_low[firsts]
        self.channel_bins_high = self.channel_bins_high[lasts]
        return self

    def regroup(self, ranges: Sequence[Tuple[int, int]]) -> 'ResponseMatrix':
        """合并道号落在同一闭区间内的矩阵行，区间外的行保持不变。

        参数
        - ranges: [(ch_lo, ch_hi), ...] 道号闭区间，按道号递增
        """
        ch = self.channels
        row_groups = [
            np.flatnonzero((ch >= int(lo)) & (ch <= int(hi))) for lo, hi in ranges
        ]
        return self.merge_rows([g for g in row_groups if g.size])

    def copy(self) -> 'ResponseMatrix':
        return copy.deepcopy(self)


@dataclass(slots=True)
class AncillaryResponse:
    """ARF 有效面积

    字段
    - bins_low/bins_high: 能 bin 边界（keV）
    - effective_area: 每个能 bin 的有效面积（cm^2）
    """
    bins_low: np.ndarray
    bins_high: np.ndarray
    effective_area: np.ndarray

    def __post_init__(self):
        self.bins_low = np.asarray(self.bins_low, dtype=float)
        self.bins_high = np.asarray(self.bins_high, dtype=float)
        self.effective_area = np.asarray(self.effective_area, dtype=float)
        if not (self.bins_low.size == self.bins_high.size == self.effective_area.size):
            raise ValueError('bins_low/bins_high/effective_area must have same length')

    @property
    def n_energies(self) -> int:
        return int(self.effective_area.size)

    def energy_edges(self) -> np.ndarray:
        return np.concatenate((self.bins_low[:1], self.bins_high))
