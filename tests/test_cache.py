"""Tests for the transformer pipeline and the fit cache."""

import numpy as np
import pytest

from specfold.fitting.cache import (
    PLAIN, TRACKED, BufferSlots, ParameterCache, SpectralCache, numeric_mode,
)
from specfold.model import GaussianLine, PowerLaw
from specfold.response import fold_response
from conftest import make_dataset


def test_numeric_mode():
    assert numeric_mode(np.ones(2)) == PLAIN
    assert numeric_mode(np.ones(2, dtype=complex)) == TRACKED


def test_buffer_slots_are_independent():
    slots = BufferSlots(3)
    assert slots.plain.dtype == np.float64
    assert slots.tracked.dtype == np.complex128
    assert not np.shares_memory(slots.plain, slots.tracked)
    with pytest.raises(KeyError):
        slots.select("dual")


class TestParameterCache:
    def test_expand_keeps_frozen_values(self):
        model = GaussianLine(K=1.0, mu=6.4, sigma=0.1, frozen=["mu"])
        cache = ParameterCache(model)
        np.testing.assert_allclose(cache.expand([2.0, 0.2]), [2.0, 6.4, 0.2])

    def test_modes_use_separate_buffers(self):
        cache = ParameterCache(PowerLaw(frozen=["a"]))
        plain = cache.expand([3.0])
        tracked = cache.expand(np.array([4.0 + 1e-20j]))
        assert tracked.dtype == np.complex128
        np.testing.assert_allclose(plain, [3.0, 2.0])

    def test_full_vector_accepted(self):
        cache = ParameterCache(PowerLaw(frozen=["a"]))
        np.testing.assert_allclose(cache.expand([5.0, 1.5]), [5.0, 1.5])
        with pytest.raises(ValueError):
            cache.expand([1.0, 2.0, 3.0])


class TestObjectiveTransformer:
    def test_domain_match_is_bit_identical(self, flat_arf):
        ds = make_dataset(ancillary=flat_arf).normalize().restrict_domain(1.5, 3.5)
        transformer = ds.objective_transformer()
        flux = np.array([0.3, 1.7, 2.9, 0.4, 5.5])
        direct = fold_response(flux, ds.folded_response(), ds.bin_widths())
        np.testing.assert_array_equal(transformer(ds.domain, flux), direct)
        out = np.empty(transformer.n_outputs)
        np.testing.assert_array_equal(transformer(ds.domain, flux, out=out), direct)

    def test_finer_model_domain_is_rebinned(self):
        ds = make_dataset().normalize()
        ds.set_domain(np.linspace(0.0, 5.0, 11))
        transformer = ds.objective_transformer()
        np.testing.assert_allclose(transformer(ds.domain, np.ones(10)), np.full(5, 2.0))


class TestSpectralCache:
    def _cache(self):
        ds = make_dataset().normalize()
        ds.set_domain(np.linspace(0.5, 5.0, 10))
        model = PowerLaw()
        cache = SpectralCache(model, ds.domain, ds.make_objective(), ds.objective_transformer())
        return ds, model, cache

    def test_plain_and_tracked_do_not_alias(self):
        ds, model, cache = self._cache()
        first = cache.invoke_and_transform(ds.domain, np.array([2.0, 1.5]))
        snapshot = first.copy()
        second = cache.invoke_and_transform(ds.domain, np.array([7.0 + 1e-20j, 2.5]))
        np.testing.assert_array_equal(first, snapshot)
        assert not np.shares_memory(first, second)
        independent = ds.objective_transformer()(ds.domain, model(ds.domain, [7.0, 2.5]))
        np.testing.assert_allclose(second.real, independent)

    def test_same_mode_reuses_storage(self):
        ds, _, cache = self._cache()
        a = cache.invoke_and_transform(ds.domain, np.array([2.0, 1.5]))
        b = cache.invoke_and_transform(ds.domain, np.array([3.0, 1.5]))
        assert a is b

    def test_model_errors_propagate(self):
        ds = make_dataset().normalize()

        class Broken(PowerLaw):
            def integrate(self, e_low, e_high, params):
                raise FloatingPointError("negative norm")

        model = Broken()
        cache = SpectralCache(model, ds.domain, ds.make_objective(), ds.objective_transformer())
        with pytest.raises(FloatingPointError):
            cache.invoke_and_transform(ds.domain, np.array([1.0, 2.0]))
