"""
Fixed-bin histograms of correlation values and sampling from them.

Each experiment's background correlation distribution is stored as a
histogram file (`<short_name>.correlDist.txt`). Drawing one value from every
experiment's histogram and taking the n-th largest simulates the n-max
correlation a gene pair would reach by chance; repeating that thousands of
times gives the empirical null used for max-correlation p-values.

File format (tab-delimited):
    # <low>\t<high>\t<n_bins>
    BinLow\tCount
    -1.0\t0
    -0.999\t3
    ...
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

__all__ = [
    'Histogram1D',
    'HistogramSampler',
    'read_histogram',
    'write_histogram',
    'empirical_pvalue',
]


class Histogram1D:
    """
    Equal-width histogram over [low, high].

    Values below `low` are counted as underflow, values above `high` as
    overflow; a value exactly equal to `high` lands in the last bin. NaN
    values are ignored.
    """

    def __init__(self, n_bins: int, low: float, high: float, name: str = ""):
        if n_bins <= 0:
            raise ValueError(f"n_bins must be positive, got {n_bins}")
        if not high > low:
            raise ValueError(f"high ({high}) must be greater than low ({low})")
        self.name = name
        self.n_bins = int(n_bins)
        self.low = float(low)
        self.high = float(high)
        self._heights = np.zeros(self.n_bins, dtype=np.float64)
        self.underflow = 0.0
        self.overflow = 0.0

    @property
    def bin_width(self) -> float:
        return (self.high - self.low) / self.n_bins

    @property
    def bin_edges(self) -> np.ndarray:
        return np.linspace(self.low, self.high, self.n_bins + 1)

    @property
    def bin_heights(self) -> np.ndarray:
        return self._heights.copy()

    @property
    def entries(self) -> float:
        """Mass inside the histogram range."""
        return float(self._heights.sum())

    def coord_to_index(self, x: float) -> int:
        """
        Bin index for a coordinate.

        Returns:
            -1 below the range; n_bins - 1 at or above the upper edge.
        """
        if x < self.low:
            return -1
        index = int((x - self.low) / self.bin_width)
        return min(index, self.n_bins - 1)

    def fill(self, values, weight: float = 1.0) -> None:
        """Add one or more values."""
        values = np.atleast_1d(np.asarray(values, dtype=np.float64))
        values = values[~np.isnan(values)]
        if values.size == 0:
            return
        under = values < self.low
        over = values > self.high
        self.underflow += weight * int(under.sum())
        self.overflow += weight * int(over.sum())
        inside = values[~under & ~over]
        index = np.minimum(((inside - self.low) / self.bin_width).astype(np.int64), self.n_bins - 1)
        np.add.at(self._heights, index, weight)

    def set_heights(self, heights: np.ndarray) -> None:
        heights = np.asarray(heights, dtype=np.float64)
        if heights.shape != (self.n_bins,):
            raise ValueError(f"expected {self.n_bins} bin heights, got {heights.shape}")
        if (heights < 0).any():
            raise ValueError("bin heights must be non-negative")
        self._heights = heights.copy()

    def cumulative_mass(self, x: float) -> float:
        """Mass in all bins up to and including the bin of `x`."""
        index = self.coord_to_index(x)
        if index < 0:
            return 0.0
        return float(self._heights[: index + 1].sum())

    def __repr__(self) -> str:
        return f"Histogram1D({self.name!r}, {self.n_bins} bins on [{self.low}, {self.high}], entries={self.entries:g})"


class HistogramSampler:
    """Draws values distributed like a histogram (bin by mass, then uniform within the bin)."""

    def __init__(self, histogram: Histogram1D, rng: Optional[np.random.Generator] = None):
        total = histogram.entries
        if not total > 0:
            raise ValueError(f"Histogram {histogram.name!r} is empty; cannot sample from it")
        self.histogram = histogram
        self._probabilities = histogram.bin_heights / total
        self._rng = rng if rng is not None else np.random.default_rng()

    @property
    def name(self) -> str:
        return self.histogram.name

    def next_sample(self) -> float:
        return float(self.samples(1)[0])

    def samples(self, size: int) -> np.ndarray:
        hist = self.histogram
        bins = self._rng.choice(hist.n_bins, size=size, p=self._probabilities)
        return hist.low + (bins + self._rng.random(size)) * hist.bin_width


def empirical_pvalue(histogram: Histogram1D, x: float, n_samples: int) -> float:
    """
    One-sided empirical p-value: mass at or below `x` divided by `n_samples`.

    Returns 0 when no mass lies at or below `x`.
    """
    mass = histogram.cumulative_mass(x)
    if mass == 0:
        return 0.0
    return mass / n_samples


def write_histogram(histogram: Histogram1D, path: Union[str, Path]) -> None:
    """Write a histogram in the correlDist text format."""
    frame = pd.DataFrame({'BinLow': histogram.bin_edges[:-1], 'Count': histogram.bin_heights})
    with open(path, 'w') as out:
        out.write(f"# {histogram.low}\t{histogram.high}\t{histogram.n_bins}\n")
        frame.to_csv(out, sep='\t', index=False, float_format='%.6g')


def read_histogram(path: Union[str, Path], name: Optional[str] = None) -> Histogram1D:
    """
    Read a correlDist histogram file.

    Without the '# low high n_bins' header line, the range is inferred from
    the bin lower edges, assuming equal widths.

    Raises:
        FileNotFoundError: If the file is missing
        ValueError: If the file is malformed
    """
    path = Path(path)
    header = None
    with open(path) as handle:
        first = handle.readline()
        if first.startswith('#'):
            fields = first.lstrip('#').split()
            if len(fields) == 3:
                header = (float(fields[0]), float(fields[1]), int(fields[2]))

    frame = pd.read_csv(path, sep='\t', comment='#')
    if frame.shape[1] < 2 or frame.empty:
        raise ValueError(f"Malformed histogram file: {path}")
    lows = frame.iloc[:, 0].to_numpy(dtype=np.float64)
    counts = frame.iloc[:, 1].to_numpy(dtype=np.float64)

    if header is not None:
        low, high, n_bins = header
    else:
        if len(lows) < 2:
            raise ValueError(f"Cannot infer bin width from a single bin without a header: {path}")
        width = float(np.median(np.diff(lows)))
        low, high, n_bins = float(lows[0]), float(lows[-1] + width), len(lows)

    if len(counts) != n_bins:
        raise ValueError(f"{path}: header declares {n_bins} bins but {len(counts)} rows were read")

    histogram = Histogram1D(n_bins, low, high, name=name if name is not None else path.name)
    histogram.set_heights(counts)
    logger.debug(f"Read {histogram}")
    return histogram
