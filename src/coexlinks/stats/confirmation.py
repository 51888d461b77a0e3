"""
Link confirmation statistics: how many links reach each level of support.

A LinkConfirmationStatistics instance is filled once by
LinkStatistics.get_link_confirmation_stats() and is read-only afterwards.
Comparing the distribution from the real data with the distributions from
shuffled runs gives the empirical false discovery rate at each support
threshold: if shuffled data produce 50 links confirmed by >= 3 experiments
and the real data produce 1,000, about 5% of the real links at that
stringency are expected by chance.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, Optional, Sequence, TextIO

import numpy as np
import pandas as pd

__all__ = [
    'LinkConfirmationStatistics',
    'summarize_background',
    'write_background_report',
]


class LinkConfirmationStatistics:
    """
    Frequency of links by support, kept separately for positive and negative links.

    Support values are positive integers (1..number of experiments). The
    tables are append-only: there is no removal operation.
    """

    def __init__(self):
        self._pos: Counter = Counter()
        self._neg: Counter = Counter()

    def add_pos(self, support: int) -> None:
        """Record one positively correlated link confirmed by `support` experiments."""
        if support <= 0:
            raise ValueError(f"support must be positive, got {support}")
        self._pos[int(support)] += 1

    def add_neg(self, support: int) -> None:
        """Record one negatively correlated link confirmed by `support` experiments."""
        if support <= 0:
            raise ValueError(f"support must be positive, got {support}")
        self._neg[int(support)] += 1

    def add_pos_counts(self, supports: np.ndarray) -> None:
        """Record a batch of positive link supports (all entries must be > 0)."""
        self._add_many(self._pos, supports)

    def add_neg_counts(self, supports: np.ndarray) -> None:
        """Record a batch of negative link supports (all entries must be > 0)."""
        self._add_many(self._neg, supports)

    @staticmethod
    def _add_many(table: Counter, supports: np.ndarray) -> None:
        supports = np.asarray(supports, dtype=np.int64)
        if supports.size == 0:
            return
        if supports.min() <= 0:
            raise ValueError("support values must be positive")
        tally = np.bincount(supports)
        for support in np.flatnonzero(tally):
            table[int(support)] += int(tally[support])

    @property
    def pos_counts(self) -> Dict[int, int]:
        return dict(self._pos)

    @property
    def neg_counts(self) -> Dict[int, int]:
        return dict(self._neg)

    def pos_count(self, support: int) -> int:
        return self._pos.get(support, 0)

    def neg_count(self, support: int) -> int:
        return self._neg.get(support, 0)

    @property
    def total_pos(self) -> int:
        return sum(self._pos.values())

    @property
    def total_neg(self) -> int:
        return sum(self._neg.values())

    @property
    def total(self) -> int:
        """Total number of observations (positive + negative links)."""
        return self.total_pos + self.total_neg

    @property
    def max_support(self) -> int:
        keys = list(self._pos) + list(self._neg)
        return max(keys) if keys else 0

    def cumulative_pos(self, support: int) -> int:
        """Number of positive links with support >= `support`."""
        return sum(n for s, n in self._pos.items() if s >= support)

    def cumulative_neg(self, support: int) -> int:
        """Number of negative links with support >= `support`."""
        return sum(n for s, n in self._neg.items() if s >= support)

    def to_frame(self, max_support: Optional[int] = None) -> pd.DataFrame:
        """
        Distribution by support level.

        Returns:
            DataFrame indexed by support (1..max_support) with columns
            pos, neg (exact counts) and cum_pos, cum_neg (support >= k).
        """
        if max_support is None:
            max_support = self.max_support
        support = np.arange(1, max_support + 1)
        pos = np.array([self.pos_count(k) for k in support], dtype=np.int64)
        neg = np.array([self.neg_count(k) for k in support], dtype=np.int64)
        # reverse cumulative sum gives counts at or above each level
        cum_pos = pos[::-1].cumsum()[::-1]
        cum_neg = neg[::-1].cumsum()[::-1]
        return pd.DataFrame(
            {'pos': pos, 'neg': neg, 'cum_pos': cum_pos, 'cum_neg': cum_neg},
            index=pd.Index(support, name='support'),
        )

    def write(self, out: TextIO) -> None:
        """Print the distribution as a tab-delimited table."""
        out.write(f"# Total links: {self.total} ({self.total_pos} positive, {self.total_neg} negative)\n")
        self.to_frame().to_csv(out, sep='\t')

    def __repr__(self) -> str:
        return (
            f"LinkConfirmationStatistics(pos={self.total_pos}, neg={self.total_neg}, "
            f"max_support={self.max_support})"
        )


def summarize_background(
    real: Optional[LinkConfirmationStatistics],
    shuffled_runs: Sequence[LinkConfirmationStatistics],
) -> pd.DataFrame:
    """
    Compare cumulative link counts of the real data with shuffled runs.

    For each support level k, counts links with support >= k. Shuffled runs
    are pooled as mean and standard deviation across iterations; the ratio
    of the shuffled mean to the real count estimates the false discovery
    rate at stringency k.

    Args:
        real: Statistics from the unshuffled data, or None if no real
            analysis was run (real columns are then NaN)
        shuffled_runs: Statistics from each shuffled iteration

    Returns:
        DataFrame indexed by support with columns real_pos, real_neg,
        shuffled_pos_mean, shuffled_pos_sd, shuffled_neg_mean,
        shuffled_neg_sd, fdr_pos, fdr_neg.
    """
    max_support = max(
        [real.max_support if real is not None else 0]
        + [run.max_support for run in shuffled_runs]
        + [0]
    )
    index = pd.Index(np.arange(1, max_support + 1), name='support')
    result = pd.DataFrame(index=index)

    if real is not None:
        frame = real.to_frame(max_support)
        result['real_pos'] = frame['cum_pos'].astype(float)
        result['real_neg'] = frame['cum_neg'].astype(float)
    else:
        result['real_pos'] = np.nan
        result['real_neg'] = np.nan

    if shuffled_runs:
        frames = [run.to_frame(max_support) for run in shuffled_runs]
        pos = np.vstack([f['cum_pos'].to_numpy() for f in frames]).astype(float)
        neg = np.vstack([f['cum_neg'].to_numpy() for f in frames]).astype(float)
        ddof = 1 if len(frames) > 1 else 0
        result['shuffled_pos_mean'] = pos.mean(axis=0)
        result['shuffled_pos_sd'] = pos.std(axis=0, ddof=ddof)
        result['shuffled_neg_mean'] = neg.mean(axis=0)
        result['shuffled_neg_sd'] = neg.std(axis=0, ddof=ddof)
    else:
        for col in ('shuffled_pos_mean', 'shuffled_pos_sd', 'shuffled_neg_mean', 'shuffled_neg_sd'):
            result[col] = np.nan

    with np.errstate(divide='ignore', invalid='ignore'):
        result['fdr_pos'] = np.where(
            result['real_pos'] > 0, result['shuffled_pos_mean'] / result['real_pos'], np.nan
        )
        result['fdr_neg'] = np.where(
            result['real_neg'] > 0, result['shuffled_neg_mean'] / result['real_neg'], np.nan
        )
    return result


def write_background_report(
    out: TextIO,
    real: Optional[LinkConfirmationStatistics],
    shuffled_runs: Sequence[LinkConfirmationStatistics],
) -> pd.DataFrame:
    """
    Print the real vs. shuffled comparison to a text stream.

    Returns:
        The summary table that was printed (see summarize_background)
    """
    summary = summarize_background(real, shuffled_runs)
    out.write(f"# Shuffled iterations: {len(shuffled_runs)}\n")
    if real is not None:
        out.write(f"# Real links: {real.total_pos} positive, {real.total_neg} negative\n")
    else:
        out.write("# Real links: not computed\n")
    summary.to_csv(out, sep='\t', float_format='%.4g', na_rep='')
    out.flush()
    return summary
