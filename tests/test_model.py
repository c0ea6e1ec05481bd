"""Tests for the spectral model components."""

import numpy as np
import pytest

from specfold.model import (
    CallableModel, Constant, GaussianLine, ModelImplementation, PowerLaw,
)


class TestPowerLaw:
    def test_bin_integral(self):
        flux = PowerLaw(K=2.0, a=2.0)(np.array([1.0, 2.0, 4.0]))
        np.testing.assert_allclose(flux, [1.0, 0.5])

    def test_index_one_is_logarithmic(self):
        flux = PowerLaw(K=1.0, a=1.0)(np.array([1.0, np.e]))
        np.testing.assert_allclose(flux, [1.0])

    def test_out_buffer(self):
        out = np.zeros(2)
        res = PowerLaw()(np.array([1.0, 2.0, 4.0]), [2.0, 2.0], out=out)
        assert res is out

    def test_complex_step_derivative(self):
        edges = np.array([1.0, 2.0, 4.0])
        model = PowerLaw()
        h = 1e-20
        deriv = model(edges, np.array([3.0, 1.7 + 1j * h])).imag / h
        fd = (model(edges, [3.0, 1.7 + 1e-7]) - model(edges, [3.0, 1.7])) / 1e-7
        np.testing.assert_allclose(deriv, fd, rtol=1e-5)


def test_gaussian_total_flux():
    flux = GaussianLine(K=5.0, mu=6.4, sigma=0.1)(np.linspace(5.0, 8.0, 301))
    assert flux.sum() == pytest.approx(5.0)


def test_constant():
    np.testing.assert_allclose(Constant(K=3.0)(np.array([0.0, 1.0, 3.0])), [3.0, 6.0])


class TestParameters:
    def test_set_params_unknown(self):
        with pytest.raises(KeyError):
            PowerLaw().set_params(gamma=1.0)

    def test_freeze_and_thaw(self):
        model = GaussianLine()
        model.freeze("mu")
        assert model.free_names == ("K", "sigma")
        np.testing.assert_array_equal(model.free_mask, [True, False, True])
        model.thaw("mu")
        assert model.free_names == ("K", "mu", "sigma")
        with pytest.raises(KeyError):
            model.freeze("E0")

    def test_free_values_round_trip(self):
        model = PowerLaw(K=1.0, a=2.0, frozen=["K"])
        np.testing.assert_allclose(model.free_values(), [2.0])
        model.set_free_values([1.4], errors=[0.05])
        assert model.params["a"] == 1.4
        assert model.errors["a"] == 0.05
        with pytest.raises(ValueError):
            model.set_free_values([1.0, 2.0])

    def test_free_bounds(self):
        model = PowerLaw(bounds={"K": (0.0, None)})
        lower, upper = model.free_bounds()
        np.testing.assert_allclose(lower, [0.0, -np.inf])
        np.testing.assert_allclose(upper, [np.inf, np.inf])


class TestCallableModel:
    def test_external_kind(self):
        model = CallableModel(lambda e, p: p[0] * np.diff(e), {"K": 2.0})
        assert model.implementation is ModelImplementation.EXTERNAL
        assert PowerLaw.implementation is ModelImplementation.NATIVE
        np.testing.assert_allclose(model(np.array([0.0, 1.0, 3.0])), [2.0, 4.0])

    def test_shape_checked(self):
        model = CallableModel(lambda e, p: np.ones(e.size), {"K": 1.0})
        with pytest.raises(ValueError):
            model(np.array([0.0, 1.0, 2.0]))
