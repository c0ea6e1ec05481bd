"""Shared builders for small synthetic spectra and responses."""

import numpy as np
import pytest

from specfold.core import AncillaryResponse, ResponseMatrix, Spectrum, SpectralDataset


def diagonal_response(edges, channels=None):
    """Response whose channel i sees exactly energy bin i."""
    edges = np.asarray(edges, dtype=float)
    n = edges.size - 1
    channels = np.arange(n) if channels is None else np.asarray(channels)
    return ResponseMatrix(
        matrix=np.eye(n),
        channels=channels,
        channel_bins_low=edges[:-1],
        channel_bins_high=edges[1:],
        bins_low=edges[:-1],
        bins_high=edges[1:],
    )


def make_dataset(edges=(0, 1, 2, 3, 4, 5), counts=None, **kwargs):
    edges = np.asarray(edges, dtype=float)
    n = edges.size - 1
    counts = np.full(n, 100.0) if counts is None else np.asarray(counts, dtype=float)
    spectrum = Spectrum(
        channels=np.arange(n),
        data=counts,
        quality=kwargs.pop('quality', None),
        exposure_time=kwargs.pop('exposure_time', 10.0),
    )
    return SpectralDataset(spectrum, diagonal_response(edges), **kwargs)


@pytest.fixture
def dataset():
    return make_dataset()


@pytest.fixture
def flat_arf():
    return AncillaryResponse(
        bins_low=np.arange(5.0), bins_high=np.arange(1.0, 6.0), effective_area=np.full(5, 2.0)
    )
