"""Tests for correlation histograms, sampling and the correlDist file format."""

import numpy as np
import pytest

from coexlinks.stats.histogram import (
    Histogram1D,
    HistogramSampler,
    empirical_pvalue,
    read_histogram,
    write_histogram,
)


@pytest.fixture
def hist():
    return Histogram1D(20, -1.0, 1.0, name="GSE1")


class TestHistogram1D:
    """Binning and mass queries."""

    def test_invalid_construction(self):
        with pytest.raises(ValueError):
            Histogram1D(0, -1, 1)
        with pytest.raises(ValueError):
            Histogram1D(10, 1, 1)

    def test_geometry(self, hist):
        assert hist.bin_width == pytest.approx(0.1)
        assert len(hist.bin_edges) == 21
        assert hist.coord_to_index(-1.0) == 0
        assert hist.coord_to_index(-0.95) == 0
        assert hist.coord_to_index(0.05) == 10
        assert hist.coord_to_index(1.0) == 19
        assert hist.coord_to_index(-1.5) == -1

    def test_fill(self, hist):
        hist.fill(np.array([0.05, 0.06, -0.95, 1.0, np.nan, 2.0, -3.0]))
        heights = hist.bin_heights
        assert heights[10] == 2
        assert heights[0] == 1
        assert heights[19] == 1
        assert hist.entries == 4
        assert hist.underflow == 1
        assert hist.overflow == 1

    def test_cumulative_mass(self, hist):
        hist.fill([-0.5, 0.0, 0.5])
        assert hist.cumulative_mass(-0.9) == 0
        assert hist.cumulative_mass(0.0) == 2
        assert hist.cumulative_mass(1.0) == 3
        assert hist.cumulative_mass(-2.0) == 0

    def test_set_heights(self, hist):
        with pytest.raises(ValueError):
            hist.set_heights(np.ones(5))
        with pytest.raises(ValueError):
            hist.set_heights(-np.ones(20))
        hist.set_heights(np.arange(20))
        assert hist.entries == sum(range(20))


class TestEmpiricalPvalue:

    def test_mass_below(self, hist):
        hist.fill(np.full(100, 0.5))
        assert empirical_pvalue(hist, 0.9, 100) == pytest.approx(1.0)
        assert empirical_pvalue(hist, 0.5, 200) == pytest.approx(0.5)

    def test_no_mass_gives_zero(self, hist):
        hist.fill(np.full(10, 0.5))
        assert empirical_pvalue(hist, -0.5, 10) == 0.0


class TestHistogramSampler:
    """Sampling follows the bin masses."""

    def test_samples_stay_in_filled_bins(self, hist, rng):
        hist.fill(np.full(50, 0.55))
        sampler = HistogramSampler(hist, rng)
        draws = sampler.samples(500)
        assert draws.shape == (500,)
        assert ((draws >= 0.5) & (draws < 0.6)).all()
        assert 0.5 <= sampler.next_sample() < 0.6
        assert sampler.name == "GSE1"

    def test_follows_mass(self, hist, rng):
        hist.fill(np.concatenate([np.full(90, -0.55), np.full(10, 0.55)]))
        draws = HistogramSampler(hist, rng).samples(5000)
        assert np.mean(draws < 0) == pytest.approx(0.9, abs=0.03)

    def test_empty_histogram_rejected(self, hist):
        with pytest.raises(ValueError, match="empty"):
            HistogramSampler(hist)


class TestHistogramFiles:
    """The correlDist text format."""

    def test_write_then_read(self, hist, tmp_path):
        hist.fill([0.1, 0.1, -0.3])
        path = tmp_path / "GSE1.correlDist.txt"
        write_histogram(hist, path)

        lines = path.read_text().splitlines()
        assert lines[0] == "# -1.0\t1.0\t20"
        assert lines[1] == "BinLow\tCount"

        loaded = read_histogram(path, name="GSE1")
        assert loaded.n_bins == 20
        assert loaded.low == -1.0
        assert loaded.name == "GSE1"
        np.testing.assert_allclose(loaded.bin_heights, hist.bin_heights)

    def test_read_without_header(self, tmp_path):
        path = tmp_path / "plain.txt"
        path.write_text("BinLow\tCount\n0.0\t1\n0.5\t3\n")
        loaded = read_histogram(path)
        assert loaded.low == 0.0
        assert loaded.high == pytest.approx(1.0)
        assert loaded.entries == 4
        assert loaded.name == "plain.txt"

    def test_bin_count_mismatch(self, tmp_path):
        path = tmp_path / "bad.txt"
        path.write_text("# -1\t1\t4\nBinLow\tCount\n-1\t1\n")
        with pytest.raises(ValueError):
            read_histogram(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_histogram(tmp_path / "absent.txt")
