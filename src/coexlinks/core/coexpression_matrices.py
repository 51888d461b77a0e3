"""
Experiment x query gene x target gene correlation cubes.

CoexpressionMatrices stores, for every experiment (slice), query gene (row)
and target gene (column), the representative correlation of the gene pair in
that experiment and the number of samples it was computed from. Cells start
as NaN, meaning "no data"; only gene pairs with enough usable samples are
ever written.
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

import numpy as np
import pandas as pd

from coexlinks.core.entities import ExpressionExperiment, Gene, GenePair
from coexlinks.exceptions import GeneNotFoundError

__all__ = ['CoexpressionMatrices']


class CoexpressionMatrices:
    """
    Correlation and sample-size cubes with named axes.

    Attributes:
        experiments: Slice axis
        query_genes: Row axis
        target_genes: Column axis
        correlation: float array (slices, rows, columns), NaN = no data
        sample_size: float array of the same shape, NaN = no data
    """

    def __init__(
        self,
        experiments: Iterable[ExpressionExperiment],
        query_genes: Iterable[Gene],
        target_genes: Iterable[Gene],
    ):
        self.experiments: List[ExpressionExperiment] = list(experiments)
        self.query_genes: List[Gene] = list(query_genes)
        self.target_genes: List[Gene] = list(target_genes)

        for label, axis in (('experiments', self.experiments),
                            ('query genes', self.query_genes),
                            ('target genes', self.target_genes)):
            if len(set(axis)) != len(axis):
                raise ValueError(f"{label} must be unique")

        shape = (len(self.experiments), len(self.query_genes), len(self.target_genes))
        self.correlation = np.full(shape, np.nan)
        self.sample_size = np.full(shape, np.nan)

        self._slice_lookup = {ee: k for k, ee in enumerate(self.experiments)}
        self._row_lookup = {g: i for i, g in enumerate(self.query_genes)}
        self._col_lookup = {g: j for j, g in enumerate(self.target_genes)}

    @property
    def shape(self) -> tuple[int, int, int]:
        return self.correlation.shape

    @property
    def ee_name_map(self) -> Dict[ExpressionExperiment, str]:
        return {ee: ee.short_name for ee in self.experiments}

    @property
    def gene_name_map(self) -> Dict[Gene, str]:
        names = {g: g.display_name for g in self.query_genes}
        names.update({g: g.display_name for g in self.target_genes})
        return names

    def slice_index(self, experiment: ExpressionExperiment) -> int:
        try:
            return self._slice_lookup[experiment]
        except KeyError:
            raise KeyError(f"Experiment {experiment.short_name} is not a slice of this matrix") from None

    def row_index(self, gene: Gene) -> int:
        try:
            return self._row_lookup[gene]
        except KeyError:
            raise GeneNotFoundError(gene.id, axis="query") from None

    def col_index(self, gene: Gene) -> int:
        try:
            return self._col_lookup[gene]
        except KeyError:
            raise GeneNotFoundError(gene.id, axis="target") from None

    def set(self, slice_: int, row: int, col: int, correlation: float, sample_size: float) -> None:
        self.correlation[slice_, row, col] = correlation
        self.sample_size[slice_, row, col] = sample_size

    def gene_pairs(self) -> List[GenePair]:
        """All (query, target) pairs in row-major order."""
        return [GenePair(q, t) for q in self.query_genes for t in self.target_genes]

    def drop_empty_experiments(self) -> 'CoexpressionMatrices':
        """
        Remove experiments whose correlation slice holds no data at all.

        Returns:
            New CoexpressionMatrices with the surviving slices (copies)
        """
        has_data = ~np.isnan(self.correlation).all(axis=(1, 2))
        kept = [ee for ee, keep in zip(self.experiments, has_data) if keep]
        filtered = CoexpressionMatrices(kept, self.query_genes, self.target_genes)
        filtered.correlation = self.correlation[has_data].copy()
        filtered.sample_size = self.sample_size[has_data].copy()
        return filtered

    def pair_frame(self, cube: np.ndarray | None = None) -> pd.DataFrame:
        """
        Flatten a cube to gene pairs x experiments.

        Args:
            cube: Array shaped like `correlation`; defaults to the correlation cube

        Returns:
            DataFrame indexed by 'QUERY:TARGET' with one column per experiment short name
        """
        if cube is None:
            cube = self.correlation
        n_slices = cube.shape[0]
        values = cube.reshape(n_slices, len(self.query_genes) * len(self.target_genes)).T
        return pd.DataFrame(
            values,
            index=pd.Index([str(p) for p in self.gene_pairs()], name='GenePair'),
            columns=[ee.short_name for ee in self.experiments],
        )

    def __repr__(self) -> str:
        n_data = int((~np.isnan(self.correlation)).sum())
        return (
            f"CoexpressionMatrices({len(self.experiments)} experiments × "
            f"{len(self.query_genes)} query × {len(self.target_genes)} target genes, "
            f"{n_data} cells with data)"
        )
