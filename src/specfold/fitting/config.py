"""拟合配置与结果容器

`FittingConfig` 对一个 (模型, 数据集) 组合只构建一次：能量网格、观测目标、方差、
协方差（缺省为方差倒数）与拟合缓存。`finalize` 在给定参数处求值一次并计算统计量。

English
-------
Per (model, dataset) fit state, the statistic registry and the result record.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

import numpy as np

from ..model.modelbase import ModelImplementation
from .cache import SpectralCache

__all__ = [
    "FittingConfig",
    "FittingResult",
    "finalize",
    "chi_squared",
    "register_statistic",
    "STATISTICS",
]


def chi_squared(objective: np.ndarray, prediction: np.ndarray, variance: np.ndarray) -> float:
    """sum((objective - prediction)^2 / variance)"""
    return float(np.sum((objective - prediction) ** 2 / variance))


STATISTICS: Dict[str, Callable[[np.ndarray, np.ndarray, np.ndarray], float]] = {
    "chi2": chi_squared,
}


def register_statistic(name: str, func: Callable[[np.ndarray, np.ndarray, np.ndarray], float]) -> None:
    STATISTICS[name] = func


_AUTODIFF_SUPPORT = {
    ModelImplementation.NATIVE: True,
    ModelImplementation.EXTERNAL: False,
}


class FittingConfig:
    """拟合配置

    参数
    ----
    model : ModelBase
        模型（其冻结状态与参数值在构造时被捕获）
    dataset : SpectralDataset | DatasetWrapper
        已完成屏蔽/分组/归一化的数据集；构造后不应再修改
    covariance : array, optional
        逐道权重；缺省为 1 / variance
    """

    def __init__(self, model, dataset, *, covariance: Optional[np.ndarray] = None):
        self.model = model
        self.dataset = dataset
        self.domain = np.array(dataset.make_model_domain(), dtype=float)
        self.objective = dataset.make_objective()
        self.variance = dataset.make_objective_variance()
        bad = np.flatnonzero(self.variance <= 0)
        if bad.size:
            raise ValueError(
                f"Non-positive variance in active channels {bad.tolist()}; "
                "drop or mask zero-error channels before fitting."
            )
        if covariance is None:
            self.covariance = 1.0 / self.variance
        else:
            self.covariance = np.asarray(covariance, dtype=float)
            if self.covariance.shape != self.objective.shape:
                raise ValueError(
                    f"covariance shape {self.covariance.shape} != objective shape {self.objective.shape}"
                )
        self.implementation = model.implementation
        self.parameters = model.free_values()
        self.param_names = model.free_names
        self.cache = SpectralCache(model, self.domain, self.objective, dataset.objective_transformer())

    @property
    def supports_autodiff(self) -> bool:
        return _AUTODIFF_SUPPORT[self.implementation]

    @property
    def n_free(self) -> int:
        return int(self.parameters.size)

    @property
    def dof(self) -> int:
        return int(self.objective.size - self.n_free)

    def objective_function(self) -> Callable[[np.ndarray, np.ndarray], np.ndarray]:
        """``f(domain, params) -> folded prediction`` bound to the cache."""
        cache = self.cache

        def f(domain, params):
            return cache.invoke_and_transform(domain, params)

        return f

    def __repr__(self) -> str:
        return (
            f"FittingConfig(model={self.model.name}, n_channels={self.objective.size}, "
            f"n_free={self.n_free}, implementation={self.implementation.value})"
        )


@dataclass(slots=True)
class FittingResult:
    """拟合结果容器

    字段
    ----
    statistic : float
        统计量（缺省为卡方）
    params : np.ndarray
        自由参数值
    config : FittingConfig
        产生该结果的配置
    param_names : tuple[str, ...]
        自由参数名
    prediction : np.ndarray
        在 params 处的折叠预测
    dof : int
        自由度
    statistic_name : str
        统计量名称
    errors / covariance : 由拟合驱动填写（若可用）
    success / message : 拟合状态

    English
    -------
    Outcome of evaluating (or fitting) a config at a parameter vector.
    """
    statistic: float
    params: np.ndarray
    config: FittingConfig
    param_names: tuple[str, ...] = ()
    prediction: Optional[np.ndarray] = None
    dof: int = 0
    statistic_name: str = "chi2"
    errors: Optional[np.ndarray] = None
    covariance: Optional[np.ndarray] = None
    success: bool = True
    message: str = ""

    @property
    def reduced_statistic(self) -> float:
        return self.statistic / self.dof if self.dof > 0 else np.inf

    @property
    def residuals(self) -> np.ndarray:
        return self.config.objective - self.prediction

    def summary(self) -> str:
        """返回拟合结果的文本摘要"""
        lines = [
            f"=== Fit Result: {self.config.model.name} ===",
            f"Success: {self.success}",
            f"Message: {self.message}",
            f"Statistic ({self.statistic_name}): {self.statistic:.4f}",
            f"DOF: {self.dof}",
            f"Reduced statistic: {self.reduced_statistic:.4f}",
            "",
            "Parameters:",
        ]
        for i, name in enumerate(self.param_names):
            err_str = f" ± {self.errors[i]:.4g}" if self.errors is not None else ""
            lines.append(f"  {name}: {self.params[i]:.4g}{err_str}")
        return "\n".join(lines)


def finalize(config: FittingConfig, params, statistic: str = "chi2") -> FittingResult:
    """在 params 处求值一次，返回统计量、参数与配置。"""
    try:
        stat_func = STATISTICS[statistic]
    except KeyError:
        raise KeyError(f"Unknown statistic '{statistic}'; available: {sorted(STATISTICS)}") from None
    params = np.asarray(params, dtype=float).copy()
    prediction = np.array(config.objective_function()(config.domain, params))
    value = stat_func(config.objective, prediction, config.variance)
    return FittingResult(
        statistic=value,
        params=params,
        config=config,
        param_names=tuple(config.param_names),
        prediction=prediction,
        dof=config.dof,
        statistic_name=statistic,
    )
