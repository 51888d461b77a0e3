"""
Correlation primitives for probe-level expression vectors.

Expression vectors carry NaN for missing measurements. Correlations are
computed over the samples where both vectors are present; the number of such
samples is the sample size that goes into downstream meta-analysis.

Pearson correlation of complete vectors reuses per-probe mean and
root-sum-of-squares from a CorrelationCache owned by the caller, so a probe
that is correlated against hundreds of partners is summarized once. The
cache belongs to one analysis run and must be cleared between runs.
"""

from __future__ import annotations

from enum import Enum
from typing import Dict, Hashable, Optional, Tuple

import numpy as np
from scipy import stats

__all__ = [
    'CorrelationMethod',
    'CorrelationCache',
    'count_concurrent',
    'pearson_correlation',
    'spearman_correlation',
    'correlate',
]


class CorrelationMethod(Enum):
    PEARSON = "pearson"
    SPEARMAN = "spearman"

    @classmethod
    def from_name(cls, name: Optional[str]) -> 'CorrelationMethod':
        """Parse a method name; None means Pearson."""
        if name is None:
            return cls.PEARSON
        try:
            return cls(name.lower())
        except ValueError:
            raise ValueError(
                f"Unknown correlation method '{name}'. Use 'pearson' or 'spearman'"
            ) from None


class CorrelationCache:
    """Per-vector (mean, root sum of squared deviations), keyed by probe id."""

    def __init__(self):
        self._stats: Dict[Hashable, Tuple[float, float]] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable, values: np.ndarray) -> Tuple[float, float]:
        cached = self._stats.get(key)
        if cached is not None:
            self.hits += 1
            return cached
        self.misses += 1
        mean = float(values.mean())
        deviation = values - mean
        result = (mean, float(np.sqrt(np.dot(deviation, deviation))))
        self._stats[key] = result
        return result

    def clear(self) -> None:
        self._stats.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._stats)


def count_concurrent(x: np.ndarray, y: np.ndarray) -> int:
    """Number of positions where both vectors are non-missing."""
    n = min(len(x), len(y))
    return int(np.count_nonzero(~np.isnan(x[:n]) & ~np.isnan(y[:n])))


def _concurrent(x: np.ndarray, y: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    n = min(len(x), len(y))
    x, y = x[:n], y[:n]
    mask = ~np.isnan(x) & ~np.isnan(y)
    return x[mask], y[mask]


def pearson_correlation(
    x: np.ndarray,
    y: np.ndarray,
    cache: Optional[CorrelationCache] = None,
    keys: Optional[Tuple[Hashable, Hashable]] = None,
) -> float:
    """
    Pearson correlation over concurrent non-missing values.

    Args:
        x, y: Expression vectors (NaN = missing)
        cache: Optional summary cache; used only when both vectors are complete
        keys: Cache keys for x and y (required with `cache`)

    Returns:
        Correlation in [-1, 1], or NaN with fewer than 2 concurrent values
        or zero variance
    """
    x = np.asarray(x, dtype=np.float64)
    y = np.asarray(y, dtype=np.float64)

    complete = len(x) == len(y) and not (np.isnan(x).any() or np.isnan(y).any())
    if complete and cache is not None and keys is not None:
        if len(x) < 2:
            return np.nan
        mean_x, ss_x = cache.get(keys[0], x)
        mean_y, ss_y = cache.get(keys[1], y)
        denom = ss_x * ss_y
        if denom == 0:
            return np.nan
        r = float(np.dot(x - mean_x, y - mean_y) / denom)
        return float(np.clip(r, -1.0, 1.0))

    xs, ys = _concurrent(x, y)
    if len(xs) < 2:
        return np.nan
    dx = xs - xs.mean()
    dy = ys - ys.mean()
    denom = np.sqrt(np.dot(dx, dx) * np.dot(dy, dy))
    if denom == 0:
        return np.nan
    return float(np.clip(np.dot(dx, dy) / denom, -1.0, 1.0))


def spearman_correlation(x: np.ndarray, y: np.ndarray) -> float:
    """Spearman rank correlation over concurrent non-missing values."""
    xs, ys = _concurrent(np.asarray(x, dtype=np.float64), np.asarray(y, dtype=np.float64))
    if len(xs) < 2 or np.all(xs == xs[0]) or np.all(ys == ys[0]):
        return np.nan
    rho, _ = stats.spearmanr(xs, ys)
    return float(rho)


def correlate(
    x: np.ndarray,
    y: np.ndarray,
    method: CorrelationMethod = CorrelationMethod.PEARSON,
    cache: Optional[CorrelationCache] = None,
    keys: Optional[Tuple[Hashable, Hashable]] = None,
) -> float:
    """Dispatch to the requested correlation method."""
    if method is CorrelationMethod.SPEARMAN:
        return spearman_correlation(x, y)
    return pearson_correlation(x, y, cache=cache, keys=keys)
