"""Tests for experiment x query x target correlation cubes."""

import numpy as np
import pytest

from coexlinks.core.coexpression_matrices import CoexpressionMatrices
from coexlinks.core.entities import Gene
from coexlinks.exceptions import GeneNotFoundError


@pytest.fixture
def matrices(experiments, genes):
    return CoexpressionMatrices(experiments, genes[:2], genes[2:])


class TestCoexpressionMatrices:

    def test_starts_empty(self, matrices):
        assert matrices.shape == (3, 2, 2)
        assert np.isnan(matrices.correlation).all()
        assert np.isnan(matrices.sample_size).all()

    def test_duplicates_rejected(self, experiments, genes):
        with pytest.raises(ValueError):
            CoexpressionMatrices(experiments, [genes[0], genes[0]], genes)

    def test_lookups(self, matrices, experiments, genes):
        assert matrices.slice_index(experiments[2]) == 2
        assert matrices.row_index(genes[1]) == 1
        assert matrices.col_index(genes[3]) == 1
        with pytest.raises(GeneNotFoundError):
            matrices.row_index(genes[3])
        with pytest.raises(GeneNotFoundError):
            matrices.col_index(Gene(99))

    def test_name_maps(self, matrices, experiments):
        assert matrices.ee_name_map[experiments[0]] == "GSE1"
        assert sorted(matrices.gene_name_map.values()) == ["A", "B", "C", "D"]

    def test_gene_pairs_row_major(self, matrices):
        assert [str(p) for p in matrices.gene_pairs()] == ["A:C", "A:D", "B:C", "B:D"]

    def test_drop_empty_experiments(self, matrices):
        matrices.set(1, 0, 1, 0.6, 12)
        kept = matrices.drop_empty_experiments()
        assert [ee.short_name for ee in kept.experiments] == ["GSE2"]
        assert kept.correlation[0, 0, 1] == 0.6
        assert kept.sample_size[0, 0, 1] == 12

        kept.correlation[0, 0, 1] = 0.0
        assert matrices.correlation[1, 0, 1] == 0.6

    def test_pair_frame(self, matrices):
        matrices.set(0, 1, 0, -0.4, 10)
        frame = matrices.pair_frame()
        assert frame.index.name == "GenePair"
        assert frame.columns.tolist() == ["GSE1", "GSE2", "GSE3"]
        assert frame.loc["B:C", "GSE1"] == -0.4
        assert np.isnan(frame.loc["A:C", "GSE1"])

        sizes = matrices.pair_frame(matrices.sample_size)
        assert sizes.loc["B:C", "GSE1"] == 10

    def test_pair_frame_without_experiments(self, matrices):
        frame = matrices.drop_empty_experiments().pair_frame()
        assert frame.shape == (4, 0)
        assert frame.index.tolist() == ["A:C", "A:D", "B:C", "B:D"]
