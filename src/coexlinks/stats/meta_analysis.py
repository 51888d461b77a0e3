"""
Meta-analysis of correlation coefficients across experiments.

Combines per-experiment gene-pair correlations (r_i, n_i) into one effect
size. With Fisher transformation (default), each study contributes
z_i = arctanh(r_i) with sampling variance 1/(n_i - 3); without it, r_i is
used directly with variance (1 - r_i^2)^2 / (n_i - 1).

The random-effects model adds the DerSimonian-Laird between-study variance
tau^2 to every study's sampling variance before weighting; the fixed-effects
model uses inverse sampling variance weights only.

References:
    Hedges, L.V. & Olkin, I. (1985). Statistical Methods for Meta-Analysis.
    DerSimonian, R. & Laird, N. (1986). Meta-analysis in clinical trials.
    Controlled Clinical Trials, 7(3), 177-188.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

import numpy as np
from scipy import stats

__all__ = [
    'MetaAnalysisResult',
    'CorrelationEffectMetaAnalysis',
    'fisher_z_transform',
    'inverse_fisher_z',
]

# n <= 3 has no defined Fisher z variance
MIN_STUDY_SAMPLE_SIZE = 4


def fisher_z_transform(r):
    """Fisher's Z-transformation: arctanh(r), clipped away from |r| = 1."""
    r = np.clip(r, -0.9999, 0.9999)
    return 0.5 * np.log((1 + r) / (1 - r))


def inverse_fisher_z(z):
    return np.tanh(z)


@dataclass
class MetaAnalysisResult:
    """Combined estimate for one gene pair."""
    effect: float  # on the correlation scale
    variance: float  # of the combined estimate, on the analysis scale
    z: float
    p_value: float
    q: float  # Cochran's Q
    tau2: float
    n_studies: int


class CorrelationEffectMetaAnalysis:
    """
    Fixed- or random-effects combination of correlations.

    Studies with a NaN correlation or a sample size below 4 are skipped; a
    gene pair with no usable study gets NaN.

    Example:
        >>> meta = CorrelationEffectMetaAnalysis()
        >>> result = meta.run([0.5, 0.6, 0.55], [20, 30, 25])
        >>> round(result.effect, 2)
        0.56
    """

    def __init__(self, fixed: bool = False, transform: bool = True):
        self.fixed = fixed
        self.transform = transform

    def run(self, correlations: Sequence[float], sample_sizes: Sequence[float]) -> MetaAnalysisResult:
        """Combine the studies for a single gene pair."""
        r = np.asarray(correlations, dtype=np.float64)
        n = np.asarray(sample_sizes, dtype=np.float64)
        if r.shape != n.shape:
            raise ValueError(
                f"correlations ({r.shape}) and sample_sizes ({n.shape}) must have the same shape"
            )
        effect, variance, q, tau2, k = self._combine(r.reshape(-1, 1), n.reshape(-1, 1))
        z_stat, p_value = self._z_test(effect[0], variance[0])
        return MetaAnalysisResult(
            effect=float(effect[0]),
            variance=float(variance[0]),
            z=z_stat,
            p_value=p_value,
            q=float(q[0]),
            tau2=float(tau2[0]),
            n_studies=int(k[0]),
        )

    def combine_matrix(self, correlations: np.ndarray, sample_sizes: np.ndarray) -> np.ndarray:
        """
        Combine along the first axis of a study x ... array.

        Args:
            correlations: Array of shape (n_studies, ...) with NaN for missing
            sample_sizes: Array of the same shape

        Returns:
            Effect sizes, shape correlations.shape[1:]
        """
        correlations = np.asarray(correlations, dtype=np.float64)
        sample_sizes = np.asarray(sample_sizes, dtype=np.float64)
        if correlations.shape != sample_sizes.shape:
            raise ValueError("correlation and sample size arrays must have the same shape")
        out_shape = correlations.shape[1:]
        k_studies = correlations.shape[0]
        n_cells = int(np.prod(out_shape))
        if k_studies == 0:
            return np.full(out_shape, np.nan)
        effect, _, _, _, _ = self._combine(
            correlations.reshape(k_studies, n_cells), sample_sizes.reshape(k_studies, n_cells)
        )
        return effect.reshape(out_shape)

    def _combine(self, r: np.ndarray, n: np.ndarray):
        valid = ~np.isnan(r) & ~np.isnan(n) & (n >= MIN_STUDY_SAMPLE_SIZE)
        k = valid.sum(axis=0)

        with np.errstate(divide='ignore', invalid='ignore'):
            if self.transform:
                y = np.where(valid, fisher_z_transform(np.where(valid, r, 0.0)), 0.0)
                v = np.where(valid, 1.0 / (n - 3.0), np.inf)
            else:
                y = np.where(valid, r, 0.0)
                v = np.where(valid, (1.0 - r ** 2) ** 2 / (n - 1.0), np.inf)
            # |r| = 1 without transform gives zero variance
            v = np.where(valid, np.maximum(v, 1e-12), np.inf)

            w = np.where(valid, 1.0 / v, 0.0)
            sum_w = w.sum(axis=0)
            fixed_mean = (w * y).sum(axis=0) / sum_w
            q = (w * (y - fixed_mean) ** 2).sum(axis=0)
            c = sum_w - (w ** 2).sum(axis=0) / sum_w
            tau2 = np.where(c > 0, (q - (k - 1)) / c, 0.0)
            tau2 = np.clip(np.nan_to_num(tau2, nan=0.0), 0.0, None)

            if self.fixed:
                mean, variance = fixed_mean, 1.0 / sum_w
            else:
                w_star = np.where(valid, 1.0 / (v + tau2), 0.0)
                sum_w_star = w_star.sum(axis=0)
                mean = (w_star * y).sum(axis=0) / sum_w_star
                variance = 1.0 / sum_w_star

        effect = inverse_fisher_z(mean) if self.transform else mean
        none = k == 0
        effect = np.where(none, np.nan, effect)
        variance = np.where(none, np.nan, variance)
        q = np.where(none, np.nan, q)
        return effect, variance, q, np.where(none, np.nan, tau2), k

    def _z_test(self, effect: float, variance: float):
        if np.isnan(effect) or not variance > 0:
            return np.nan, np.nan
        mean = fisher_z_transform(effect) if self.transform else effect
        z_stat = float(mean / np.sqrt(variance))
        return z_stat, float(2 * stats.norm.sf(abs(z_stat)))
