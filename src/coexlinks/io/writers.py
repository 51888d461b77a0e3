"""
Tab-delimited report writers.

All numeric reports use four decimals with NaN written as an empty field,
and carry "GenePair" in the top-left cell:

    <prefix>.corr.txt         gene pairs ('QUERY:TARGET') x experiments
    <prefix>.effect_size.txt  query genes x target genes
    <prefix>.max_corr.txt     query genes x target genes (k-max correlation)
    <prefix>.max_corr_pval.txt

Files are written atomically; any I/O failure surfaces as ReportWriteError.

Examples:
    >>> write_pair_matrix(matrices, Path("out.corr.txt"))
    >>> write_gene_matrix(effect_sizes, Path("out.effect_size.txt"))
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

import numpy as np
import pandas as pd

from coexlinks.core.coexpression_matrices import CoexpressionMatrices
from coexlinks.core.entities import ExpressionExperiment, Gene
from coexlinks.exceptions import ReportWriteError
from coexlinks.utils.fileio import atomic_write, atomic_write_frame

__all__ = [
    'TOP_LEFT',
    'write_pair_matrix',
    'write_gene_matrix',
    'write_samples',
    'write_probe_stats',
]

logger = logging.getLogger(__name__)

TOP_LEFT = 'GenePair'
FLOAT_FORMAT = '%.4f'


def _guarded(path: Union[str, Path], write: Callable[[], None]) -> Path:
    path = Path(path)
    try:
        write()
    except OSError as e:
        raise ReportWriteError(f"Failed to write {path}: {e}") from e
    logger.info(f"Wrote {path}")
    return path


def _label(entry) -> str:
    return entry.display_name if isinstance(entry, Gene) else str(entry)


def write_pair_matrix(
    matrices: CoexpressionMatrices,
    path: Union[str, Path],
    cube: Optional[np.ndarray] = None,
) -> Path:
    """
    Dump a correlation (or sample size) cube as gene pairs x experiments.

    Args:
        matrices: Supplies the axes
        path: Output file
        cube: Values to write; defaults to matrices.correlation
    """
    frame = matrices.pair_frame(cube)
    return _guarded(path, lambda: atomic_write_frame(
        path, frame, float_format=FLOAT_FORMAT, na_rep='', index_label=TOP_LEFT,
    ))


def write_gene_matrix(frame: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write a query x target frame (indexed by Gene or by name)."""
    labelled = frame.copy()
    labelled.index = [_label(g) for g in frame.index]
    labelled.columns = [_label(g) for g in frame.columns]
    return _guarded(path, lambda: atomic_write_frame(
        path, labelled, float_format=FLOAT_FORMAT, na_rep='', index_label=TOP_LEFT,
    ))


def write_samples(
    samples: Iterable[float],
    experiments: Iterable[ExpressionExperiment],
    path: Union[str, Path],
) -> Path:
    """Sampled values, one per line, after a '# <short names>' header."""
    header = '# ' + ' '.join(ee.short_name for ee in experiments)

    def write(fh):
        fh.write(header + '\n')
        for value in samples:
            fh.write(f"{value}\n")

    return _guarded(path, lambda: atomic_write(path, write))


def write_probe_stats(stats: pd.DataFrame, path: Union[str, Path]) -> Path:
    return _guarded(path, lambda: atomic_write_frame(path, stats, index=False))
