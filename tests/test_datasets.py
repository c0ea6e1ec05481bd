"""Tests for SpectralDataset state and its wrappers."""

import numpy as np
import pytest

from specfold.core import (
    COUNT_RATE, COUNT_RATE_DENSITY, MissingBackgroundError, Spectrum, SpectralDataset,
    UnitMismatchWarning,
)
from specfold.missions import XmmData, XmmEPIC
from conftest import diagonal_response, make_dataset


def assert_consistent(ds):
    n = ds.spectrum.n_channels
    assert ds.data_mask.size == ds.energy_low.size == ds.energy_high.size == n
    if ds.background is not None:
        assert ds.background.n_channels == n


class TestConstruction:
    def test_counts_converted_to_rate(self, dataset):
        assert dataset.spectrum.units == COUNT_RATE
        np.testing.assert_allclose(dataset.spectrum.data, np.full(5, 10.0))

    def test_energy_edges_and_domain(self, dataset):
        np.testing.assert_allclose(dataset.energy_low, [0, 1, 2, 3, 4])
        np.testing.assert_allclose(dataset.energy_high, [1, 2, 3, 4, 5])
        np.testing.assert_allclose(dataset.domain, [0, 1, 2, 3, 4, 5])
        assert dataset.data_mask.all()

    def test_background_length_checked(self):
        spec = Spectrum(channels=np.arange(3), data=np.ones(3))
        bkg = Spectrum(channels=np.arange(2), data=np.ones(2))
        with pytest.raises(ValueError):
            SpectralDataset(spec, diagonal_response([0, 1, 2, 3]), background=bkg)


class TestMasking:
    def test_restrict_domain_keeps_straddling_channels(self, dataset):
        dataset.restrict_domain(1.5, 3.5)
        np.testing.assert_array_equal(dataset.data_mask, [False, True, True, True, False])

    def test_mask_is_idempotent(self, dataset):
        dataset.mask_energies(1.5, 3.5)
        first = dataset.data_mask.copy()
        dataset.mask_energies(1.5, 3.5)
        np.testing.assert_array_equal(dataset.data_mask, first)

    def test_wide_channel_spanning_window_is_excluded(self):
        # neither edge of [1, 4) lies strictly inside (2, 3)
        ds = make_dataset(edges=[0, 1, 4, 5])
        ds.mask_energies(2, 3)
        np.testing.assert_array_equal(ds.data_mask, [False, False, False])

    def test_predicate(self, dataset):
        dataset.mask_energies(lambda e: e <= 2)
        np.testing.assert_array_equal(dataset.data_mask, [True, True, True, False, False])

    def test_masks_accumulate(self, dataset):
        dataset.mask_energies(0.5, 4.5).mask_energies(1.5, 5.5)
        np.testing.assert_array_equal(dataset.data_mask, [False, True, True, True, True])

    def test_queries_follow_mask(self, dataset):
        dataset.restrict_domain(1.5, 3.5)
        np.testing.assert_allclose(dataset.bin_widths(), [1, 1, 1])
        np.testing.assert_allclose(dataset.spectrum_energy(), [1.5, 2.5, 3.5])
        assert dataset.n_active == 3


class TestDropping:
    def test_drop_bad_channels(self):
        ds = make_dataset(quality=[0, 1, 0, 0, 5])
        assert ds.drop_bad_channels() == 2
        np.testing.assert_allclose(ds.energy_low, [0, 2, 3])
        assert_consistent(ds)

    def test_drop_negative_channels(self):
        ds = make_dataset(counts=[10, -2, 10, -1, 10])
        assert ds.drop_negative_channels() == 2
        np.testing.assert_allclose(ds.energy_high, [1, 3, 5])
        assert_consistent(ds)

    def test_drop_channels_with_background(self):
        bkg = Spectrum(channels=np.arange(5), data=np.ones(5), exposure_time=10.0)
        ds = make_dataset(background=bkg)
        ds.restrict_domain(1.5, 3.5)
        assert ds.drop_channels([0, 4]) == 2
        assert ds.data_mask.all()
        assert_consistent(ds)

    def test_folded_response_after_drop(self):
        ds = make_dataset(quality=[0, 1, 0, 0, 0])
        ds.drop_bad_channels()
        matrix = ds.folded_response()
        expected = np.eye(5)[[0, 2, 3, 4]]
        np.testing.assert_allclose(matrix, expected)


class TestRegroup:
    def test_regroup_resizes_everything(self, dataset):
        dataset.restrict_domain(1.5, 3.5)
        dataset.regroup([1, -1, 1, -1, -1])
        assert_consistent(dataset)
        assert dataset.data_mask.all()
        np.testing.assert_allclose(dataset.energy_low, [0, 2])
        np.testing.assert_allclose(dataset.energy_high, [2, 5])
        np.testing.assert_allclose(dataset.spectrum.data, [20.0, 30.0])
        assert dataset.response.n_channels == 2

    def test_regroup_uses_spectrum_grouping(self):
        ds = make_dataset()
        ds.spectrum.grouping = np.array([1, -1, -1, 1, -1])
        ds.regroup()
        np.testing.assert_allclose(ds.energy_high, [3, 5])
        np.testing.assert_allclose(ds.folded_response(), [[1, 1, 1, 0, 0], [0, 0, 0, 1, 1]])

    def test_regroup_after_drop_skips_deleted_rows(self):
        ds = make_dataset(quality=[0, 0, 1, 0, 0])
        ds.drop_bad_channels()
        ds.regroup([1, -1, -1, 1])
        assert_consistent(ds)
        folded = ds.folded_response()
        np.testing.assert_allclose(folded, [[1, 1, 0, 1, 0], [0, 0, 0, 0, 1]])
        np.testing.assert_allclose(ds.spectrum.data, [30.0, 10.0])
        np.testing.assert_allclose(ds.energy_high, [4, 5])

    def test_grouping_length_checked(self, dataset):
        with pytest.raises(ValueError):
            dataset.regroup([1, -1])


class TestNormalizeAndBackground:
    def test_normalize_divides_by_width(self):
        ds = make_dataset(edges=[0, 1, 3, 7])
        ds.normalize()
        assert ds.spectrum.units == COUNT_RATE_DENSITY
        np.testing.assert_allclose(ds.spectrum.data, [10.0, 5.0, 2.5])
        ds.normalize()
        np.testing.assert_allclose(ds.spectrum.data, [10.0, 5.0, 2.5])

    def test_subtract_background(self):
        bkg = Spectrum(channels=np.arange(5), data=np.full(5, 20.0), exposure_time=10.0)
        ds = make_dataset(background=bkg)
        ds.normalize().subtract_background()
        np.testing.assert_allclose(ds.spectrum.data, np.full(5, 8.0))
        assert not ds.has_background

    def test_missing_background(self, dataset):
        with pytest.raises(MissingBackgroundError):
            dataset.subtract_background()

    def test_objective_warns_before_normalize(self, dataset):
        with pytest.warns(UnitMismatchWarning):
            dataset.make_objective()

    def test_objective_and_variance(self, dataset):
        dataset.normalize().restrict_domain(1.5, 3.5)
        np.testing.assert_allclose(dataset.make_objective(), [10.0, 10.0, 10.0])
        np.testing.assert_allclose(dataset.make_objective_variance(), [1.0, 1.0, 1.0])


def test_set_domain(dataset):
    dataset.set_domain(np.linspace(0, 5, 11))
    assert dataset.make_model_domain().size == 11


def test_has_ancillary(dataset, flat_arf):
    assert not dataset.has_ancillary
    ds = make_dataset(ancillary=flat_arf)
    assert ds.has_ancillary
    np.testing.assert_allclose(ds.folded_response(), 2.0 * np.eye(5))


def test_describe(dataset):
    text = dataset.describe()
    assert "5 active channels" in text


class TestXmmData:
    def test_from_header(self, dataset):
        xmm = XmmData.from_header(XmmEPIC(), dataset, {"OBS_ID": "0123456789", "OBJECT": "Mrk 421"})
        assert xmm.observation_id == "0123456789"
        assert xmm.exposure_id == "[no exposure id]"
        assert xmm.make_label() == "0123456789"
        assert "Mrk 421" in xmm.describe()

    def test_delegation_returns_wrapper(self, dataset):
        xmm = XmmData(XmmEPIC(), dataset)
        assert xmm.normalize().restrict_domain(1.5, 3.5) is xmm
        np.testing.assert_array_equal(xmm.data_mask, [False, True, True, True, False])
        np.testing.assert_allclose(xmm.bin_widths(), dataset.bin_widths())
        assert xmm.n_active == 3
        assert not xmm.has_background

    def test_wrapper_exposes_dataset_state(self, flat_arf):
        bkg = Spectrum(channels=np.arange(5), data=np.ones(5), exposure_time=10.0)
        inner = make_dataset(background=bkg, ancillary=flat_arf, label="pn")
        xmm = XmmData(XmmEPIC(), inner)
        assert xmm.background is inner.background
        assert xmm.ancillary is inner.ancillary
        assert xmm.label == "pn"
        clone = xmm.copy()
        assert isinstance(clone, XmmData)
        clone.restrict_domain(1.5, 3.5)
        assert inner.data_mask.all()
