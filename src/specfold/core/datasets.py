"""High-level spectral dataset containers.

`SpectralDataset` bundles one source spectrum with its response, optional
background and optional ancillary response, and keeps the per-channel state
the fit needs: channel energy edges, the model domain, and the channel
inclusion mask.

All mutating operations (masking, dropping, regrouping, normalization,
background subtraction) act in place and must happen before a fitting config
is built from the dataset: the fit cache captures matrix shapes and buffer
sizes at construction time.

`DatasetWrapper` is the composition base for mission-specific datasets that
carry extra metadata but expose the same operation set.
"""

from __future__ import annotations

import copy
import warnings
from typing import Callable, Optional, Sequence, Union

import numpy as np

from .errors import MissingBackgroundError, UnitMismatchWarning
from .file import (
    COUNT_RATE_DENSITY, GOOD_QUALITY,
    AncillaryResponse, ResponseMatrix, Spectrum,
)
from ..ftools.grppha import group_bounds
from ..ftools.rmf_mapping import augmented_energy_channels, match_channels
from ..response.fold import fold_ancillary, select_rows

__all__ = [
    "SpectralDataset",
    "DatasetWrapper",
    "check_units_warning",
]


EnergyCondition = Callable[[np.ndarray], np.ndarray]


def check_units_warning(units) -> None:
    if units != COUNT_RATE_DENSITY:
        warnings.warn(
            f"Data is currently still in {units}. Most models fit in rate "
            f"({COUNT_RATE_DENSITY}). Use `normalize()` to ensure the dataset is in a standard format.",
            UnitMismatchWarning,
            stacklevel=3,
        )


def _energy_condition(low: Union[float, EnergyCondition], high: Optional[float]) -> EnergyCondition:
    if callable(low):
        return low
    if high is None:
        raise TypeError("Provide both `low` and `high`, or a single predicate.")
    lo, hi = float(low), float(high)
    return lambda e: (lo < e) & (e < hi)


def _normalize_spectrum(spec: Spectrum, widths: np.ndarray) -> None:
    spec.to_rate()
    if not spec.is_normalized:
        spec.data = spec.data / widths
        spec.errors = spec.errors / widths
        spec.units = COUNT_RATE_DENSITY


class SpectralDataset:
    """能谱数据集（源谱 + 响应 + 可选背景/ARF）

    参数
    ----
    spectrum : Spectrum
        源能谱；若为计数谱，构造时原地转换为计数率
    response : ResponseMatrix
        RMF 响应矩阵
    background : Spectrum, optional
        背景谱（同道数）；若为计数谱同样转换为计数率
    ancillary : AncillaryResponse, optional
        ARF 有效面积
    label : str, optional
        标签

    属性
    ----
    energy_low/energy_high : 每道的能量下/上边界（由道号映射到 EBOUNDS）
    domain : 模型计算所用的能量网格（响应 ENERG_LO/HI 拼接，长度 N_E + 1）
    data_mask : 每道是否参与拟合

    English
    -------
    One detector spectrum with everything needed to fold a model onto it.
    Invariant: ``len(data_mask) == len(energy_low) == len(energy_high) ==
    spectrum.n_channels`` after every operation.
    """

    def __init__(
        self,
        spectrum: Spectrum,
        response: ResponseMatrix,
        *,
        background: Optional[Spectrum] = None,
        ancillary: Optional[AncillaryResponse] = None,
        label: Optional[str] = None,
    ):
        if background is not None and background.n_channels != spectrum.n_channels:
            raise ValueError(
                f"background channel count ({background.n_channels}) != spectrum ({spectrum.n_channels})"
            )
        # 统一转换为计数率
        spectrum.to_rate()
        if background is not None:
            background.to_rate()

        self.spectrum = spectrum
        self.response = response
        self.background = background
        self.ancillary = ancillary
        self.label = label

        self.domain = response.energy_edges()
        edges = augmented_energy_channels(
            spectrum.channels,
            response.channels,
            response.channel_bins_low,
            response.channel_bins_high,
        )
        self.energy_low = edges[:-1].copy()
        self.energy_high = edges[1:].copy()
        self.data_mask = np.ones(spectrum.n_channels, dtype=bool)

    # ---- queries -----------------------------------------------------------

    @property
    def n_channels(self) -> int:
        return int(self.data_mask.size)

    @property
    def n_active(self) -> int:
        return int(np.count_nonzero(self.data_mask))

    @property
    def has_background(self) -> bool:
        return self.background is not None

    @property
    def has_ancillary(self) -> bool:
        return self.ancillary is not None

    @property
    def objective_units(self):
        return self.spectrum.units

    def bin_widths(self) -> np.ndarray:
        """Energy width of every active channel."""
        return (self.energy_high - self.energy_low)[self.data_mask]

    def spectrum_energy(self) -> np.ndarray:
        """Energy midpoint of every active channel."""
        return (0.5 * (self.energy_low + self.energy_high))[self.data_mask]

    def make_model_domain(self) -> np.ndarray:
        return self.domain

    def make_objective(self) -> np.ndarray:
        """Observed rate density of the active channels."""
        check_units_warning(self.spectrum.units)
        return self.spectrum.data[self.data_mask].copy()

    def make_objective_variance(self) -> np.ndarray:
        check_units_warning(self.spectrum.units)
        return self.spectrum.errors[self.data_mask] ** 2

    def folded_response(self):
        """ARF-corrected response restricted to the active channels (rows follow channel order)."""
        matrix = fold_ancillary(self.response, self.ancillary)
        rows = match_channels(self.spectrum.channels, self.response.channels)
        return select_rows(matrix, rows[self.data_mask])

    def objective_transformer(self):
        """Build the folding pipeline bound to this dataset."""
        from ..fitting.cache import ObjectiveTransformer
        return ObjectiveTransformer(self)

    # ---- masking -----------------------------------------------------------

    def mask_energies(self, low: Union[float, EnergyCondition], high: Optional[float] = None) -> 'SpectralDataset':
        """屏蔽能段外的道。

        可传入 ``(low, high)``（条件为 ``low < E < high``）或单个谓词函数。
        只有当道的下边界与上边界 *都不* 满足条件时，该道才被屏蔽；
        只要任一端点落在窗口内，该道即被保留。

        English
        Exclude a channel only when neither of its edges satisfies the condition.
        """
        condition = _energy_condition(low, high)
        exclude = ~np.asarray(condition(self.energy_low), dtype=bool) & ~np.asarray(
            condition(self.energy_high), dtype=bool
        )
        self.data_mask[exclude] = False
        return self

    def restrict_domain(self, low: Union[float, EnergyCondition], high: Optional[float] = None) -> 'SpectralDataset':
        """Same channel selection as :meth:`mask_energies`."""
        return self.mask_energies(low, high)

    # ---- channel removal ---------------------------------------------------

    def drop_channels(self, indices: Sequence[int] | np.ndarray) -> int:
        """Delete channels (by position) from spectrum, background, mask and energy arrays."""
        idx = np.unique(np.asarray(indices, dtype=int))
        self.spectrum.drop_channels(idx)
        if self.background is not None:
            self.background.drop_channels(idx)
        self.data_mask = np.delete(self.data_mask, idx)
        self.energy_low = np.delete(self.energy_low, idx)
        self.energy_high = np.delete(self.energy_high, idx)
        return int(idx.size)

    def drop_bad_channels(self) -> int:
        indices = np.flatnonzero(self.spectrum.quality != GOOD_QUALITY)
        return self.drop_channels(indices)

    def drop_negative_channels(self) -> int:
        indices = np.flatnonzero(self.spectrum.data < 0)
        return self.drop_channels(indices)

    # ---- regrouping / normalization / background ------------------------------

    def regroup(self, grouping: Optional[Sequence[int] | np.ndarray] = None) -> 'SpectralDataset':
        """按 OGIP 分组列合并相邻道（缺省使用能谱自带的 GROUPING）。

        组的能量范围取组首道的下边界与组末道的上边界；能谱、背景与响应矩阵同步合并，
        道掩码重置为全部参与。应在任何屏蔽操作之前调用。
        响应矩阵只合并组内现存道对应的行；已删除道的行保持独立。
        """
        grp = np.array(self.spectrum.grouping if grouping is None else grouping, dtype=int)
        if grp.size != self.n_channels:
            raise ValueError(f"grouping length ({grp.size}) != channel count ({self.n_channels})")
        starts, stops = group_bounds(grp)
        rows = match_channels(self.spectrum.channels, self.response.channels)
        row_groups = [rows[s:e + 1] for s, e in zip(starts, stops)]

        self.energy_low = self.energy_low[starts]
        self.energy_high = self.energy_high[stops]
        if self.background is not None:
            self.background.regroup(grp)
        self.response.merge_rows(row_groups)
        self.spectrum.regroup(grp)
        self.data_mask = np.ones(starts.size, dtype=bool)
        return self

    def normalize(self) -> 'SpectralDataset':
        """Convert spectrum (and background) to counts / (s keV) using the full channel widths."""
        widths = self.energy_high - self.energy_low
        _normalize_spectrum(self.spectrum, widths)
        if self.background is not None:
            _normalize_spectrum(self.background, widths)
        return self

    def subtract_background(self) -> 'SpectralDataset':
        if self.background is None:
            raise MissingBackgroundError(
                "No background to subtract. Did you already subtract the background?"
            )
        self.spectrum.subtract_background(self.background)
        self.background = None
        return self

    def set_domain(self, domain: Sequence[float] | np.ndarray) -> 'SpectralDataset':
        self.domain = np.asarray(domain, dtype=float)
        return self

    # ---- misc ----------------------------------------------------------------

    def copy(self) -> 'SpectralDataset':
        return copy.deepcopy(self)

    def __repr__(self) -> str:
        return f"SpectralDataset[{self.spectrum.telescope_name or self.label or '?'}]"

    def describe(self) -> str:
        """文本摘要（有效道数、能量范围、模型网格）"""
        active_low = self.energy_low[self.data_mask]
        active_high = self.energy_high[self.data_mask]
        ce = (
            f"({active_low.min():.4g}, {active_high.max():.4g})" if active_low.size else "(-, -)"
        )
        lines = [
            f"SpectralDataset with {self.n_active} active channels:",
            f"  . Chn. E (min/max)    : {ce}",
            f"  . Masked channels     : {self.n_channels - self.n_active} / {self.n_channels}",
            f"  . Model domain size   : {self.domain.size}",
            f"  . Domain (min/max)    : ({self.domain.min():.4g}, {self.domain.max():.4g})",
            f"  . Units               : {self.spectrum.units}",
            f"  . Background          : {'present' if self.has_background else 'missing'}",
            f"  . Ancillary           : {'present' if self.has_ancillary else 'missing'}",
        ]
        return "\n".join(lines)

    def plot(self, ax=None, *, show_errorbar: bool = True, title: Optional[str] = None, **kwargs):
        """绘制有效道的观测谱（能量 vs 数据）。kwargs 透传给 errorbar。"""
        import matplotlib.pyplot as _plt  # lazy import
        ax = ax or _plt.gca()
        x = self.spectrum_energy()
        xerr = 0.5 * self.bin_widths()
        y = self.spectrum.data[self.data_mask]
        yerr = self.spectrum.errors[self.data_mask] if show_errorbar else None
        kwargs.setdefault('fmt', '.')
        ax.errorbar(x, y, xerr=xerr, yerr=yerr, **kwargs)
        ax.set_xlabel("Energy (keV)")
        ax.set_ylabel(f"{self.spectrum.units}")
        ax.set_xscale('log')
        ax.set_title(title if title is not None else repr(self))
        ax.grid(alpha=0.3, ls='--')
        return ax


class DatasetWrapper:
    """Composition base: holds a SpectralDataset and exposes its operation set.

    Mutators return the wrapper so that chained calls keep the metadata.
    """

    def __init__(self, data: SpectralDataset):
        self.data = data

    # state
    @property
    def spectrum(self) -> Spectrum:
        return self.data.spectrum

    @property
    def response(self) -> ResponseMatrix:
        return self.data.response

    @property
    def background(self) -> Optional[Spectrum]:
        return self.data.background

    @property
    def ancillary(self) -> Optional[AncillaryResponse]:
        return self.data.ancillary

    @property
    def label(self) -> Optional[str]:
        return self.data.label

    @property
    def domain(self) -> np.ndarray:
        return self.data.domain

    @property
    def data_mask(self) -> np.ndarray:
        return self.data.data_mask

    @property
    def energy_low(self) -> np.ndarray:
        return self.data.energy_low

    @property
    def energy_high(self) -> np.ndarray:
        return self.data.energy_high

    # queries
    @property
    def n_channels(self) -> int:
        return self.data.n_channels

    @property
    def n_active(self) -> int:
        return self.data.n_active

    @property
    def has_background(self) -> bool:
        return self.data.has_background

    @property
    def has_ancillary(self) -> bool:
        return self.data.has_ancillary

    @property
    def objective_units(self):
        return self.data.objective_units

    def bin_widths(self) -> np.ndarray:
        return self.data.bin_widths()

    def spectrum_energy(self) -> np.ndarray:
        return self.data.spectrum_energy()

    def make_model_domain(self) -> np.ndarray:
        return self.data.make_model_domain()

    def make_objective(self) -> np.ndarray:
        return self.data.make_objective()

    def make_objective_variance(self) -> np.ndarray:
        return self.data.make_objective_variance()

    def folded_response(self):
        return self.data.folded_response()

    def objective_transformer(self):
        return self.data.objective_transformer()

    # mutators
    def mask_energies(self, low, high=None):
        self.data.mask_energies(low, high)
        return self

    def restrict_domain(self, low, high=None):
        self.data.restrict_domain(low, high)
        return self

    def drop_channels(self, indices) -> int:
        return self.data.drop_channels(indices)

    def drop_bad_channels(self) -> int:
        return self.data.drop_bad_channels()

    def drop_negative_channels(self) -> int:
        return self.data.drop_negative_channels()

    def regroup(self, grouping=None):
        self.data.regroup(grouping)
        return self

    def normalize(self):
        self.data.normalize()
        return self

    def subtract_background(self):
        self.data.subtract_background()
        return self

    def set_domain(self, domain):
        self.data.set_domain(domain)
        return self

    def describe(self) -> str:
        return self.data.describe()

    def plot(self, ax=None, **kwargs):
        return self.data.plot(ax=ax, **kwargs)

    def copy(self):
        return copy.deepcopy(self)
