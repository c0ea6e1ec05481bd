"""Tests for channel to energy mapping."""

import numpy as np
import pytest

from specfold.core.errors import ChannelMappingError, NonContiguousChannelWarning
from specfold.ftools.rmf_mapping import augmented_energy_channels, ebounds_midpoints, match_channels


def test_offset_channel_numbering():
    edges = augmented_energy_channels([1, 2, 3], [0, 1, 2, 3], [0, 1, 2, 3], [1, 2, 3, 4])
    np.testing.assert_allclose(edges, [1, 2, 3, 4])


def test_identical_numbering():
    edges = augmented_energy_channels([0, 1], [0, 1], [0.3, 0.5], [0.5, 0.9])
    np.testing.assert_allclose(edges, [0.3, 0.5, 0.9])


def test_missing_channel_raises():
    with pytest.raises(ChannelMappingError):
        augmented_energy_channels([0, 7], [0, 1, 2], [0, 1, 2], [1, 2, 3])


def test_gap_warns_but_continues():
    with pytest.warns(NonContiguousChannelWarning):
        edges = augmented_energy_channels([0, 1, 2], [0, 1, 2], [0, 1, 2.5], [1, 2, 3])
    np.testing.assert_allclose(edges, [0, 1, 2.5, 3])


def test_match_channels_index():
    np.testing.assert_array_equal(match_channels([5, 6, 8], [4, 5, 6, 7, 8]), [1, 2, 4])


def test_midpoints():
    np.testing.assert_allclose(ebounds_midpoints([0, 2], [2, 4]), [1, 3])
    with pytest.raises(ValueError):
        ebounds_midpoints([0, 1], [1])


def test_integer_high_edges_keep_float_low_edges():
    edges = augmented_energy_channels([0, 1], [0, 1], [0.5, 1.0], [1, 2])
    assert edges.dtype.kind == 'f'
    np.testing.assert_allclose(edges, [0.5, 1.0, 2.0])
