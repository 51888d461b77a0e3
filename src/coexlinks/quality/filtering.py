"""
Probe filtering for expression matrices prior to correlation.

Removes probes that would only add noise to coexpression estimates: rows with
too many missing values, rows with low expression, and rows with very low
variance. Experiments with too few samples are rejected outright.

Engineering Design:
    - FilterConfig holds the thresholds (one instance per run)
    - ExpressionExperimentFilter.apply returns a new ExpressionDataMatrix and
      records what was removed in `last_result`
"""

from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict

import numpy as np

from coexlinks.core.expression import ExpressionDataMatrix
from coexlinks.exceptions import InsufficientSamplesError

logger = logging.getLogger(__name__)

__all__ = ['FilterConfig', 'FilterResult', 'ExpressionExperimentFilter']


@dataclass
class FilterConfig:
    """Thresholds for probe filtering."""
    min_present_fraction: float = 0.3
    low_expression_cut: float = 0.3  # quantile of probe means removed
    low_variance_cut: float = 0.05  # quantile of probe variances removed
    min_samples: int = 7

    def __post_init__(self):
        for name in ('min_present_fraction', 'low_expression_cut', 'low_variance_cut'):
            value = getattr(self, name)
            if not 0 <= value < 1:
                raise ValueError(f"{name} must be in [0, 1), got {value}")
        if self.min_samples < 2:
            raise ValueError(f"min_samples must be >= 2, got {self.min_samples}")


@dataclass
class FilterResult:
    """Probe counts removed by each filtering step."""
    n_input: int
    n_passed: int
    removed: Dict[str, int] = field(default_factory=dict)

    @property
    def pass_rate(self) -> float:
        return self.n_passed / self.n_input if self.n_input > 0 else 0.0


class ExpressionExperimentFilter:
    """Applies a FilterConfig to one experiment's expression matrix."""

    def __init__(self, config: FilterConfig | None = None):
        self.config = config if config is not None else FilterConfig()
        self.last_result: FilterResult | None = None

    def apply(self, matrix: ExpressionDataMatrix) -> ExpressionDataMatrix:
        """
        Filter probes.

        Raises:
            InsufficientSamplesError: If the experiment has fewer than
                config.min_samples samples
        """
        cfg = self.config
        if matrix.n_samples < cfg.min_samples:
            raise InsufficientSamplesError(
                f"{matrix.experiment}: {matrix.n_samples} samples, need at least {cfg.min_samples}"
            )

        data = matrix.data
        keep = np.ones(matrix.n_probes, dtype=bool)
        removed: Dict[str, int] = {}

        present = (~np.isnan(data)).sum(axis=1) / matrix.n_samples
        missing_mask = present < cfg.min_present_fraction
        removed['missing_values'] = int((missing_mask & keep).sum())
        keep &= ~missing_mask

        if cfg.low_expression_cut > 0 and keep.any():
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', RuntimeWarning)
                means = np.nanmean(np.where(keep[:, None], data, np.nan), axis=1)
            threshold = np.nanquantile(means[keep], cfg.low_expression_cut)
            low_mask = keep & (means < threshold)
            removed['low_expression'] = int(low_mask.sum())
            keep &= ~low_mask

        if cfg.low_variance_cut > 0 and keep.any():
            with warnings.catch_warnings():
                warnings.simplefilter('ignore', RuntimeWarning)
                variances = np.nanvar(np.where(keep[:, None], data, np.nan), axis=1)
            threshold = np.nanquantile(variances[keep], cfg.low_variance_cut)
            low_var_mask = keep & (variances < threshold)
            removed['low_variance'] = int(low_var_mask.sum())
            keep &= ~low_var_mask

        self.last_result = FilterResult(
            n_input=matrix.n_probes, n_passed=int(keep.sum()), removed=removed
        )
        logger.debug(
            f"{matrix.experiment}: {self.last_result.n_passed}/{matrix.n_probes} probes passed filtering {removed}"
        )
        return matrix.select_probes(keep)
