"""
Probe-level expression data for one experiment.

ExpressionDataMatrix is the filtered, processed data of a single expression
experiment: rows are probes (composite sequences), columns are samples
(bioassays), values are expression levels with NaN for missing measurements.
It is built by the experiment service and consumed by the coexpression
engine, which looks up individual probe rows.

Shape Invariants:
    - data.shape == (len(probe_ids), len(sample_ids))
    - probe_ids and sample_ids are unique
"""

from __future__ import annotations

from typing import Hashable, Optional

import numpy as np
import pandas as pd

__all__ = ['ExpressionDataMatrix']


class ExpressionDataMatrix:
    """
    Immutable probe x sample matrix with named axes.

    Attributes:
        data: float64 matrix (probes x samples), NaN = missing
        probe_ids: Row identifiers (probe / composite sequence names)
        sample_ids: Column identifiers
        experiment: Short name of the owning experiment, for logging
    """

    def __init__(
        self,
        data: np.ndarray,
        probe_ids: pd.Index,
        sample_ids: pd.Index,
        experiment: Optional[str] = None,
    ):
        """
        Raises:
            TypeError: If data is not an ndarray or ids are not pd.Index
            ValueError: If shapes disagree or ids are not unique
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(probe_ids, pd.Index):
            raise TypeError(f"probe_ids must be pd.Index, got {type(probe_ids)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")
        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")

        n_probes, n_samples = data.shape
        if len(probe_ids) != n_probes:
            raise ValueError(
                f"probe_ids length ({len(probe_ids)}) must match data rows ({n_probes})"
            )
        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )
        if not probe_ids.is_unique:
            raise ValueError("probe_ids must be unique")

        self._data = data.astype(np.float64, copy=False)
        self._probe_ids = probe_ids
        self._sample_ids = sample_ids
        self._row_lookup = {p: i for i, p in enumerate(probe_ids)}
        self.experiment = experiment

    @classmethod
    def from_frame(cls, frame: pd.DataFrame, experiment: Optional[str] = None) -> 'ExpressionDataMatrix':
        """Build from a DataFrame indexed by probe with one column per sample."""
        return cls(
            data=frame.to_numpy(dtype=np.float64),
            probe_ids=pd.Index(frame.index.astype(str)),
            sample_ids=pd.Index(frame.columns.astype(str)),
            experiment=experiment,
        )

    @property
    def data(self) -> np.ndarray:
        return self._data

    @property
    def probe_ids(self) -> pd.Index:
        return self._probe_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_probes(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    def contains(self, probe: Hashable) -> bool:
        return probe in self._row_lookup

    def row(self, probe: Hashable) -> Optional[np.ndarray]:
        """Expression vector of one probe, or None if the probe was filtered out."""
        index = self._row_lookup.get(probe)
        if index is None:
            return None
        return self._data[index]

    def select_probes(self, mask: np.ndarray | pd.Series) -> 'ExpressionDataMatrix':
        """Subset rows with a boolean mask."""
        if isinstance(mask, pd.Series):
            mask = mask.values
        if len(mask) != self.n_probes:
            raise ValueError(
                f"mask length ({len(mask)}) must match n_probes ({self.n_probes})"
            )
        return ExpressionDataMatrix(
            data=self._data[mask, :],
            probe_ids=self._probe_ids[mask],
            sample_ids=self._sample_ids,
            experiment=self.experiment,
        )

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self._data, index=self._probe_ids, columns=self._sample_ids)

    def __repr__(self) -> str:
        name = f" {self.experiment}" if self.experiment else ""
        return f"ExpressionDataMatrix{name}({self.n_probes} probes × {self.n_samples} samples)"
