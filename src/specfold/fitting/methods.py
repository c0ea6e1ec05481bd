"""拟合驱动（astropy.modeling 最小二乘）

- `FitOptions`：拟合选项（方法、迭代次数、收敛精度、求导方式、差分步长）
- `jacobian`：折叠预测对自由参数的导数。原生模型走复步长求导（``tracked`` 缓冲区），
  外部模型走前向差分（``plain`` 缓冲区）
- `fit`：把 `FittingConfig` 包装成 astropy `Fittable1DModel`，用 `LMLSQFitter`
  （缺省）或 `TRFLSQFitter` 拟合，并把最优值与误差写回模型

English
-------
Drives astropy's nonlinear least-squares fitters over a FittingConfig.
The x-axis handed to astropy is the active channel index; the fitted
quantity is the folded prediction weighted by sqrt(covariance).
"""

from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Literal, Optional

import numpy as np
from astropy.modeling import Fittable1DModel, Parameter
from astropy.modeling.fitting import LMLSQFitter, TRFLSQFitter

from ..core.errors import BoundsIgnoredWarning
from .config import FittingConfig, FittingResult, finalize

__all__ = [
    "FitOptions",
    "jacobian",
    "fit",
]

_COMPLEX_STEP = 1e-20


@dataclass(slots=True)
class FitOptions:
    """拟合选项

    字段
    ----
    method : 'lm' | 'trf'
        'lm' - Levenberg-Marquardt (LMLSQFitter，默认，不支持边界)
        'trf' - Trust Region Reflective (TRFLSQFitter，支持边界)
    max_iter : int
        最大迭代次数
    acc : float
        收敛相对精度
    autodiff : 'auto' | 'complex-step' | 'finite'
        雅可比计算方式；'auto' 对原生模型用复步长，否则用有限差分
    step : float
        有限差分相对步长
    """
    method: Literal["lm", "trf"] = "lm"
    max_iter: int = 1000
    acc: float = 1e-7
    autodiff: Literal["auto", "complex-step", "finite"] = "auto"
    step: float = 1e-8

    def __post_init__(self):
        if self.method not in ("lm", "trf"):
            raise ValueError(f"Unknown fit method '{self.method}' (expected 'lm' or 'trf')")
        if self.autodiff not in ("auto", "complex-step", "finite"):
            raise ValueError(f"Unknown autodiff mode '{self.autodiff}'")


def _resolve_method(config: FittingConfig, method: str) -> str:
    if method == "auto":
        return "complex-step" if config.supports_autodiff else "finite"
    if method == "complex-step" and not config.supports_autodiff:
        raise ValueError(
            f"Model '{config.model.name}' is {config.implementation.value}; "
            "complex-step derivatives need a native model. Use method='finite'."
        )
    if method not in ("complex-step", "finite"):
        raise ValueError(f"Unknown derivative method '{method}'")
    return method


def jacobian(config: FittingConfig, params, method: str = "auto", step: float = 1e-8) -> np.ndarray:
    """折叠预测对自由参数的雅可比矩阵，形状 (N_active, N_free)。"""
    method = _resolve_method(config, method)
    f = config.objective_function()
    params = np.asarray(params, dtype=float)
    n = params.size
    jac = np.empty((config.objective.size, n), dtype=float)

    if method == "complex-step":
        for j in range(n):
            p = params.astype(complex)
            p[j] += 1j * _COMPLEX_STEP
            jac[:, j] = f(config.domain, p).imag / _COMPLEX_STEP
        return jac

    base = np.array(f(config.domain, params))
    for j in range(n):
        h = step * max(1.0, abs(params[j]))
        p = params.copy()
        p[j] += h
        jac[:, j] = (f(config.domain, p) - base) / h
    return jac


def _scalar(value) -> float:
    return float(np.ravel(value)[0])


def _astropy_model(config: FittingConfig, derivative: str, with_bounds: bool) -> Fittable1DModel:
    """Wrap the config as a Fittable1DModel whose parameters are the free parameters."""
    f = config.objective_function()
    domain = config.domain
    lower, upper = config.model.free_bounds()

    def evaluate(x, *params):
        vec = np.array([_scalar(p) for p in params], dtype=float)
        return np.array(f(domain, vec))

    members = {}
    for i, name in enumerate(config.param_names):
        bounds = (None, None)
        if with_bounds:
            bounds = (
                None if np.isneginf(lower[i]) else float(lower[i]),
                None if np.isposinf(upper[i]) else float(upper[i]),
            )
        members[name] = Parameter(name=name, default=float(config.parameters[i]), bounds=bounds)
    members["evaluate"] = staticmethod(evaluate)

    if derivative == "complex-step":
        def fit_deriv(x, *params):
            vec = np.array([_scalar(p) for p in params], dtype=float)
            return list(jacobian(config, vec, method="complex-step").T)
        members["fit_deriv"] = staticmethod(fit_deriv)

    cls = type(f"{config.model.name}Folded", (Fittable1DModel,), members)
    return cls()


def fit(config: FittingConfig, options: Optional[FitOptions] = None, **kwargs) -> FittingResult:
    """拟合 config 中的自由参数。

    参数
    ----
    config : FittingConfig
    options : FitOptions, optional
    **kwargs :
        透传给 astropy 拟合器的 ``__call__``

    返回
    ----
    FittingResult（含误差与协方差）；最优值与误差同时写回 ``config.model``。
    模型或数据错误不被捕获，直接向上抛出。
    """
    options = options or FitOptions()
    derivative = _resolve_method(config, options.autodiff)

    lower, upper = config.model.free_bounds()
    has_bounds = bool(np.any(np.isfinite(lower)) or np.any(np.isfinite(upper)))
    if options.method == "trf":
        fitter = TRFLSQFitter(calc_uncertainties=True)
    else:
        fitter = LMLSQFitter(calc_uncertainties=True)
        if has_bounds:
            warnings.warn(
                "Levenberg-Marquardt cannot enforce parameter bounds; they are ignored. "
                "Use method='trf' to honour them.",
                BoundsIgnoredWarning,
                stacklevel=2,
            )

    model_instance = _astropy_model(config, derivative, with_bounds=options.method == "trf")
    x = np.arange(config.objective.size, dtype=float)
    weights = np.sqrt(config.covariance)

    fitted_model = fitter(
        model_instance, x, config.objective,
        weights=weights,
        maxiter=options.max_iter,
        acc=options.acc,
        epsilon=options.step,
        estimate_jacobian=derivative == "finite",
        **kwargs,
    )

    popt = np.array([getattr(fitted_model, name).value for name in config.param_names], dtype=float)
    info = fitter.fit_info or {}
    pcov = info.get("param_cov")
    if pcov is not None:
        pcov = np.asarray(pcov, dtype=float)
        errors = np.sqrt(np.abs(np.diag(pcov)))
    else:
        errors = np.zeros(popt.size)

    config.model.set_free_values(popt, errors=errors)
    config.parameters = popt.copy()

    result = finalize(config, popt)
    result.errors = errors
    result.covariance = pcov
    result.success = bool(info.get("success", True))
    result.message = str(info.get("message", f"astropy {options.method} finished"))
    return result
