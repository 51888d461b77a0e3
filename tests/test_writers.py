"""Tests for report writers and atomic file output."""

import json

import numpy as np
import pandas as pd
import pytest

from coexlinks.analysis.probe_stats import MAXIMUM_COUNT, probe_mapping_stats, summarize_array_design
from coexlinks.core.coexpression_matrices import CoexpressionMatrices
from coexlinks.exceptions import ReportWriteError
from coexlinks.io.writers import (
    write_gene_matrix,
    write_pair_matrix,
    write_probe_stats,
    write_samples,
)
from coexlinks.utils.fileio import atomic_write, atomic_write_json, atomic_write_text


class TestAtomicWrites:

    def test_text_and_json(self, tmp_path):
        atomic_write_text(tmp_path / "a.txt", "hello\n")
        assert (tmp_path / "a.txt").read_text() == "hello\n"
        atomic_write_json(tmp_path / "b.json", {"path": tmp_path, "n": 1})
        assert json.loads((tmp_path / "b.json").read_text()) == {"path": str(tmp_path), "n": 1}

    def test_failed_write_leaves_nothing(self, tmp_path):
        target = tmp_path / "c.txt"

        def explode(fh):
            fh.write("partial")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            atomic_write(target, explode)
        assert list(tmp_path.iterdir()) == []


class TestMatrixWriters:

    @pytest.fixture
    def matrices(self, experiments, genes):
        m = CoexpressionMatrices(experiments[:2], genes[:1], genes[1:3])
        m.set(0, 0, 0, 0.123456, 12)
        m.set(1, 0, 1, -0.5, 8)
        return m

    def test_pair_matrix(self, matrices, tmp_path):
        path = write_pair_matrix(matrices, tmp_path / "out.corr.txt")
        lines = path.read_text().splitlines()
        assert lines == ["GenePair\tGSE1\tGSE2", "A:B\t0.1235\t", "A:C\t\t-0.5000"]

    def test_sample_size_cube(self, matrices, tmp_path):
        path = write_pair_matrix(matrices, tmp_path / "n.txt", matrices.sample_size)
        assert path.read_text().splitlines()[1] == "A:B\t12.0000\t"

    def test_gene_matrix(self, genes, tmp_path):
        frame = pd.DataFrame([[0.25, np.nan]], index=genes[:1], columns=genes[1:3])
        path = write_gene_matrix(frame, tmp_path / "out.effect_size.txt")
        assert path.read_text().splitlines() == ["GenePair\tB\tC", "A\t0.2500\t"]

    def test_unwritable(self, matrices, tmp_path):
        with pytest.raises(ReportWriteError):
            write_pair_matrix(matrices, tmp_path / "missing" / "out.txt")


class TestOtherWriters:

    def test_samples(self, experiments, tmp_path):
        path = write_samples([0.5, 0.25], experiments, tmp_path / "samples.txt")
        assert path.read_text() == "# GSE1 GSE2 GSE3\n0.5\n0.25\n"

    def test_probe_stats(self, store, tmp_path):
        path = write_probe_stats(probe_mapping_stats(store), tmp_path / "ad.txt")
        table = pd.read_csv(path, sep="\t")
        assert table.loc[0, "array_design"] == "GPL1"


class TestProbeStats:
    """Probe <-> gene mapping counts for the fixture platform."""

    def test_summary(self, store):
        row = summarize_array_design("GPL1", store)
        assert row["probes"] == 7
        assert row["genes"] == 5
        assert row["probes_with_genes"] == 6
        assert (row["P2G_0"], row["P2G_1"], row["P2G_2"]) == (1, 5, 1)
        assert (row["G2P_1"], row["G2P_2"]) == (3, 2)

    def test_restricted_to_genes(self, store):
        row = summarize_array_design("GPL1", store, gene_ids={1, 2})
        # pX now maps to both, pC..pE to nothing
        assert row["genes"] == 2
        assert row["P2G_0"] == 4
        assert row["P2G_2"] == 1

    def test_columns(self, store):
        table = probe_mapping_stats(store)
        assert len(table) == 1
        assert f"P2G_{MAXIMUM_COUNT}" in table.columns
        assert "G2P_0" not in table.columns
