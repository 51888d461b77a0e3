"""Tests for missing-value aware correlation primitives."""

import numpy as np
import pytest
from scipy import stats

from coexlinks.stats.correlation import (
    CorrelationCache,
    CorrelationMethod,
    correlate,
    count_concurrent,
    pearson_correlation,
    spearman_correlation,
)


class TestCorrelationMethod:

    def test_from_name(self):
        assert CorrelationMethod.from_name(None) is CorrelationMethod.PEARSON
        assert CorrelationMethod.from_name("Spearman") is CorrelationMethod.SPEARMAN

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown correlation method"):
            CorrelationMethod.from_name("kendall")


class TestPearson:
    """Pearson correlation over concurrent values."""

    def test_matches_scipy(self, rng):
        x = rng.normal(size=30)
        y = x + rng.normal(scale=0.5, size=30)
        expected = stats.pearsonr(x, y)[0]
        assert pearson_correlation(x, y) == pytest.approx(expected)

    def test_missing_values_dropped_pairwise(self, rng):
        x = rng.normal(size=20)
        y = 0.5 * x + rng.normal(scale=0.3, size=20)
        x[3] = np.nan
        y[7] = np.nan
        keep = np.ones(20, dtype=bool)
        keep[[3, 7]] = False
        expected = stats.pearsonr(x[keep], y[keep])[0]
        assert pearson_correlation(x, y) == pytest.approx(expected)
        assert count_concurrent(x, y) == 18

    def test_degenerate(self):
        assert np.isnan(pearson_correlation(np.array([1.0]), np.array([2.0])))
        assert np.isnan(pearson_correlation(np.ones(5), np.arange(5.0)))
        assert np.isnan(pearson_correlation(np.array([1.0, np.nan]), np.array([np.nan, 1.0])))

    def test_cache_reused_for_complete_vectors(self, rng):
        cache = CorrelationCache()
        x, y, z = rng.normal(size=(3, 15))
        r1 = pearson_correlation(x, y, cache=cache, keys=("x", "y"))
        r2 = pearson_correlation(x, z, cache=cache, keys=("x", "z"))
        assert cache.misses == 3
        assert cache.hits == 1
        assert len(cache) == 3
        assert r1 == pytest.approx(stats.pearsonr(x, y)[0])
        assert r2 == pytest.approx(stats.pearsonr(x, z)[0])

        cache.clear()
        assert len(cache) == 0
        assert cache.hits == cache.misses == 0

    def test_cache_bypassed_with_missing_values(self, rng):
        cache = CorrelationCache()
        x, y = rng.normal(size=(2, 10))
        x[0] = np.nan
        pearson_correlation(x, y, cache=cache, keys=("x", "y"))
        assert len(cache) == 0


class TestSpearman:

    def test_matches_scipy(self, rng):
        x = rng.normal(size=25)
        y = np.exp(x) + rng.normal(scale=0.1, size=25)
        assert spearman_correlation(x, y) == pytest.approx(stats.spearmanr(x, y)[0])

    def test_constant_vector(self):
        assert np.isnan(spearman_correlation(np.ones(6), np.arange(6.0)))

    def test_dispatch(self, rng):
        x, y = rng.normal(size=(2, 12))
        assert correlate(x, y, CorrelationMethod.SPEARMAN) == pytest.approx(spearman_correlation(x, y))
        assert correlate(x, y) == pytest.approx(pearson_correlation(x, y))
