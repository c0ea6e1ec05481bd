"""
Model base classes inspired by XSPEC:
 AdditiveModel: produces a flux per energy bin to be folded
 Built-ins: PowerLaw, GaussianLine, Constant (pure numpy, complex-safe)
 CallableModel: wraps an opaque external callable
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Dict, Iterable, Optional, Sequence

import numpy as np
from scipy import special

__all__ = [
    'ModelImplementation',
    'ModelBase',
    'AdditiveModel',
    'PowerLaw',
    'GaussianLine',
    'Constant',
    'CallableModel',
]


class ModelImplementation(Enum):
    """How a model is evaluated.

    NATIVE models are written with numpy operations that also accept complex
    input, so derivatives can be taken by complex-step differentiation.
    EXTERNAL models are opaque; only finite differences are valid.
    """
    NATIVE = "native"
    EXTERNAL = "external"


class ModelBase(ABC):
    """Common base class for all spectral model components.

    Parameters are kept in declaration order. Frozen parameters keep their
    value during a fit; the remaining ones form the free-parameter vector.
    """

    implementation: ModelImplementation = ModelImplementation.NATIVE

    def __init__(
        self,
        name: Optional[str] = None,
        params: Optional[Dict[str, float]] = None,
        *,
        frozen: Iterable[str] = (),
        bounds: Optional[Dict[str, tuple]] = None,
    ):
        self.name = name or self.__class__.__name__
        self.params: Dict[str, float] = {k: float(v) for k, v in (params or {}).items()}
        self.errors: Dict[str, float] = {k: 0.0 for k in self.params}
        self.frozen: set[str] = set()
        self.bounds: Dict[str, tuple] = {k: (None, None) for k in self.params}
        self.freeze(*frozen)
        for k, b in (bounds or {}).items():
            self.set_bounds(k, *b)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(self.params.keys())

    @property
    def n_params(self) -> int:
        return len(self.params)

    @property
    def free_names(self) -> tuple[str, ...]:
        return tuple(k for k in self.params if k not in self.frozen)

    @property
    def free_mask(self) -> np.ndarray:
        return np.array([k not in self.frozen for k in self.params], dtype=bool)

    def _check(self, name: str) -> None:
        if name not in self.params:
            raise KeyError(f"Unknown parameter '{name}' for model '{self.name}'")

    def set_params(self, **kwargs) -> None:
        for k, v in kwargs.items():
            self._check(k)
            self.params[k] = float(v)

    def set_bounds(self, name: str, lower: Optional[float] = None, upper: Optional[float] = None) -> None:
        self._check(name)
        self.bounds[name] = (lower, upper)

    def freeze(self, *names: str) -> None:
        for k in names:
            self._check(k)
            self.frozen.add(k)

    def thaw(self, *names: str) -> None:
        for k in names:
            self._check(k)
            self.frozen.discard(k)

    def parameter_vector(self) -> np.ndarray:
        """All parameter values in declaration order."""
        return np.array(list(self.params.values()), dtype=float)

    def free_values(self) -> np.ndarray:
        return np.array([self.params[k] for k in self.free_names], dtype=float)

    def set_free_values(self, values: Sequence[float], errors: Optional[Sequence[float]] = None) -> None:
        names = self.free_names
        if len(values) != len(names):
            raise ValueError(f"expected {len(names)} free values, got {len(values)}")
        for i, k in enumerate(names):
            self.params[k] = float(values[i])
            if errors is not None:
                self.errors[k] = float(errors[i])

    def free_bounds(self) -> tuple[np.ndarray, np.ndarray]:
        """(lower, upper) arrays for the free parameters; missing bounds map to -inf/+inf."""
        lo = [self.bounds[k][0] for k in self.free_names]
        hi = [self.bounds[k][1] for k in self.free_names]
        lower = np.array([-np.inf if v is None else v for v in lo], dtype=float)
        upper = np.array([np.inf if v is None else v for v in hi], dtype=float)
        return lower, upper

    def __call__(self, energy, params=None, out: Optional[np.ndarray] = None) -> np.ndarray:
        if params is None:
            params = self.parameter_vector()
        return self.evaluate(np.asarray(energy, dtype=float), params, out=out)

    def __repr__(self) -> str:
        body = ", ".join(
            f"{k}={v:.4g}{' (frozen)' if k in self.frozen else ''}" for k, v in self.params.items()
        )
        return f"{self.name}({body})"

    @abstractmethod
    def evaluate(self, energy: np.ndarray, params, out: Optional[np.ndarray] = None) -> np.ndarray:
        """Return model output. Subclasses define the semantics."""
        raise NotImplementedError


class AdditiveModel(ModelBase):
    """Additive component: flux integrated over each energy bin."""

    @abstractmethod
    def integrate(self, e_low: np.ndarray, e_high: np.ndarray, params) -> np.ndarray:
        """
        Parameters
        ----------
        e_low, e_high : np.ndarray
            Lower/upper edges of each energy bin.
        params : sequence
            Full parameter vector (float or complex).
        Returns
        -------
        np.ndarray
            Flux integrated over each bin.
        """
        raise NotImplementedError

    def evaluate(self, energy: np.ndarray, params, out: Optional[np.ndarray] = None) -> np.ndarray:
        flux = self.integrate(energy[:-1], energy[1:], params)
        if out is None:
            return np.asarray(flux)
        out[:] = flux
        return out


class PowerLaw(AdditiveModel):
    """K * E^-a photon spectrum."""

    def __init__(self, K: float = 1.0, a: float = 2.0, **kwargs):
        super().__init__(params={'K': K, 'a': a}, **kwargs)

    def integrate(self, e_low, e_high, params):
        K, a = params[0], params[1]
        if a == 1:
            return K * np.log(e_high / e_low)
        s = 1 - a
        return K * (np.power(e_high, s) - np.power(e_low, s)) / s


class GaussianLine(AdditiveModel):
    """Gaussian line with total flux K, centre mu and width sigma (keV)."""

    def __init__(self, K: float = 1.0, mu: float = 6.4, sigma: float = 0.1, **kwargs):
        super().__init__(params={'K': K, 'mu': mu, 'sigma': sigma}, **kwargs)

    def integrate(self, e_low, e_high, params):
        K, mu, sigma = params[0], params[1], params[2]
        scale = np.sqrt(2.0) * sigma
        return 0.5 * K * (special.erf((e_high - mu) / scale) - special.erf((e_low - mu) / scale))


class Constant(AdditiveModel):
    """Flat flux density K per keV."""

    def __init__(self, K: float = 1.0, **kwargs):
        super().__init__(params={'K': K}, **kwargs)

    def integrate(self, e_low, e_high, params):
        return params[0] * (e_high - e_low)


class CallableModel(ModelBase):
    """Wrap an opaque callable ``func(energy_edges, params) -> flux``.

    The callable is treated as external: it is never fed complex parameters.
    """

    implementation = ModelImplementation.EXTERNAL

    def __init__(self, func: Callable, params: Dict[str, float], name: Optional[str] = None, **kwargs):
        super().__init__(name=name or getattr(func, '__name__', None), params=params, **kwargs)
        self.func = func

    def evaluate(self, energy, params, out=None):
        flux = np.asarray(self.func(energy, params))
        if flux.shape != (energy.size - 1,):
            raise ValueError(
                f"model '{self.name}' returned shape {flux.shape}, expected ({energy.size - 1},)"
            )
        if out is None:
            return flux
        out[:] = flux
        return out
