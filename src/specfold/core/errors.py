"""异常与警告类型（Errors and warning categories）

致命错误均继承 ValueError，便于与既有的输入校验代码统一捕获；
非致命的数据质量提示通过 ``warnings.warn`` 发出，调用方可用
``warnings.filterwarnings`` 按类别过滤。

English
-------
Fatal conditions subclass ValueError. Non-fatal data-quality diagnostics are
emitted through ``warnings.warn`` with the categories defined here.
"""

from __future__ import annotations

__all__ = [
    "SpecfoldError",
    "RebinningError",
    "ChannelMappingError",
    "MissingBackgroundError",
    "SpecfoldWarning",
    "NonContiguousChannelWarning",
    "UnitMismatchWarning",
    "BoundsIgnoredWarning",
]


class SpecfoldError(ValueError):
    """Base class for specfold errors."""


class RebinningError(SpecfoldError):
    """Rebinning was asked to up-sample; use an interpolation scheme instead."""


class ChannelMappingError(SpecfoldError):
    """A spectrum channel has no counterpart in the response EBOUNDS."""


class MissingBackgroundError(SpecfoldError):
    """Background subtraction requested on a dataset without background."""


class SpecfoldWarning(UserWarning):
    """Base category for specfold diagnostics."""


class NonContiguousChannelWarning(SpecfoldWarning):
    """相邻道的能量边界不连续（数据可能不是连续分箱）。"""


class UnitMismatchWarning(SpecfoldWarning):
    """数据尚未归一化到 counts / (s keV)。"""


class BoundsIgnoredWarning(SpecfoldWarning):
    """The selected optimizer cannot enforce finite parameter bounds."""
