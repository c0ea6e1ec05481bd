"""拟合缓存与目标变换流水线

- `ObjectiveTransformer`：绑定单个数据集，把模型能量网格上的通量重分箱到响应能量网格
  （网格 bin 数一致时直接拷贝），再经 ARF x RMF 折叠并除以道能宽。
- `BufferSlots`：两个具名缓冲区 ``plain``（float64）与 ``tracked``（complex128），
  按参数是否为复数选择，互不共享内存。
- `ParameterCache`：把自由参数向量展开为包含冻结参数的完整参数向量。
- `SpectralCache`：一次调用完成 参数展开 -> 模型求值 -> 折叠，返回复用的缓冲区。

English
-------
Preallocated evaluation path used by the fit loop. Returned arrays are reused
storage: they stay valid only until the next call in the same numeric mode.
"""

from __future__ import annotations

from typing import Optional

import numpy as np

from ..ftools.rebin import rebin_if_different_domains
from ..response.fold import fold_response

__all__ = [
    "PLAIN",
    "TRACKED",
    "numeric_mode",
    "BufferSlots",
    "ParameterCache",
    "ObjectiveTransformer",
    "SpectralCache",
]


PLAIN = "plain"
TRACKED = "tracked"

_SLOT_DTYPES = {
    PLAIN: np.float64,
    TRACKED: np.complex128,
}


def numeric_mode(values) -> str:
    """``tracked`` for complex input (complex-step derivatives), ``plain`` otherwise."""
    return TRACKED if np.iscomplexobj(values) else PLAIN


class BufferSlots:
    """Two independent arrays of the same length, one per numeric mode."""

    __slots__ = ("plain", "tracked")

    def __init__(self, size: int):
        self.plain = np.zeros(size, dtype=_SLOT_DTYPES[PLAIN])
        self.tracked = np.zeros(size, dtype=_SLOT_DTYPES[TRACKED])

    def __len__(self) -> int:
        return self.plain.size

    def select(self, mode: str) -> np.ndarray:
        if mode == PLAIN:
            return self.plain
        if mode == TRACKED:
            return self.tracked
        raise KeyError(f"Unknown numeric mode '{mode}'")

    def for_values(self, values) -> np.ndarray:
        return self.select(numeric_mode(values))


class ParameterCache:
    """Expand free parameters into the full parameter vector.

    Frozen values are captured when the cache is built.
    """

    def __init__(self, model):
        self.values = model.parameter_vector()
        self.free_mask = model.free_mask
        self.free_index = np.flatnonzero(self.free_mask)
        self.slots = BufferSlots(self.values.size)

    @property
    def n_free(self) -> int:
        return int(self.free_index.size)

    def expand(self, params) -> np.ndarray:
        """Full parameter vector in the buffer of the call's mode.

        Accepts either the free-parameter vector or an already full vector.
        """
        params = np.asarray(params)
        buf = self.slots.for_values(params)
        if params.size == self.values.size:
            buf[:] = params
        elif params.size == self.n_free:
            buf[:] = self.values
            buf[self.free_index] = params
        else:
            raise ValueError(
                f"expected {self.n_free} free or {self.values.size} full parameters, got {params.size}"
            )
        return buf


class ObjectiveTransformer:
    """Fold a model flux onto the active channels of one dataset.

    Captures the ARF-corrected response restricted to active channels, the
    active bin widths, the response energy grid and a scratch buffer.
    """

    def __init__(self, dataset):
        self.matrix = dataset.folded_response()
        self.bin_widths = dataset.bin_widths()
        self.energy_grid = dataset.response.energy_edges()
        self.scratch = BufferSlots(self.energy_grid.size - 1)

    @property
    def n_outputs(self) -> int:
        return int(self.bin_widths.size)

    def __call__(self, energy: np.ndarray, flux: np.ndarray, out: Optional[np.ndarray] = None) -> np.ndarray:
        scratch = self.scratch.for_values(flux)
        rebin_if_different_domains(scratch, self.energy_grid, energy, flux)
        return fold_response(scratch, self.matrix, self.bin_widths, out=out)


class SpectralCache:
    """模型求值与折叠的预分配缓存（每种数值模式一套缓冲区）"""

    def __init__(self, model, domain: np.ndarray, objective: np.ndarray, transformer: ObjectiveTransformer):
        self.model = model
        self.domain = np.asarray(domain, dtype=float)
        self.transformer = transformer
        self.parameters = ParameterCache(model)
        self.model_output = BufferSlots(self.domain.size - 1)
        self.folded = BufferSlots(np.asarray(objective).size)

    def invoke_and_transform(self, domain: np.ndarray, params) -> np.ndarray:
        mode = numeric_mode(params)
        full = self.parameters.expand(params)
        flux = self.model(domain, full, out=self.model_output.select(mode))
        return self.transformer(domain, flux, out=self.folded.select(mode))
