"""
Pytest configuration and shared fixtures.

Provides a small expression database (taxon, genes, experiments, probes,
doubly stored probe links, expression matrices) both as an in-memory
TabularDataStore and as a data directory of tab-delimited files.
"""

import numpy as np
import pandas as pd
import pytest

from coexlinks.core.entities import ExpressionExperiment, Gene, GeneType
from coexlinks.services.tabular import TabularDataStore


@pytest.fixture
def rng():
    return np.random.default_rng(42)


@pytest.fixture
def experiments():
    """Three experiments, bit order GSE1, GSE2, GSE3."""
    return [
        ExpressionExperiment(id=101, short_name="GSE1", taxon="mouse"),
        ExpressionExperiment(id=102, short_name="GSE2", taxon="mouse"),
        ExpressionExperiment(id=103, short_name="GSE3", taxon="mouse"),
    ]


@pytest.fixture
def genes():
    """Genes A, B, C, D with ids 1..4."""
    return [Gene(id=i, name=name, taxon="mouse") for i, name in enumerate("ABCD", start=1)]


def correlated_expression(rng, n_samples: int, probes=("pA", "pB", "pC", "pD")) -> pd.DataFrame:
    """
    Probe x sample frame: pB follows pA closely, pC is anti-correlated with
    pA, pD is independent noise.
    """
    base = rng.normal(8.0, 1.0, n_samples)
    values = {
        "pA": base + rng.normal(0, 0.1, n_samples),
        "pB": 2 * base + rng.normal(0, 0.2, n_samples),
        "pC": -base + rng.normal(0, 0.3, n_samples) + 16,
        "pD": rng.normal(8.0, 1.0, n_samples),
    }
    frame = pd.DataFrame({p: values[p] for p in probes}).T
    frame.columns = [f"S{i}" for i in range(n_samples)]
    return frame


def build_tables(rng) -> dict:
    """Keyword arguments for TabularDataStore."""
    taxa = pd.DataFrame({"id": [1], "common_name": ["mouse"], "scientific_name": ["Mus musculus"]})
    genes = pd.DataFrame({
        "id": [1, 2, 3, 4, 5],
        "symbol": ["A", "B", "C", "D", "E"],
        "taxon": ["mouse"] * 5,
        "gene_type": ["known", "known", "known", "known", GeneType.PREDICTED.value],
    })
    experiments = pd.DataFrame({
        "id": [101, 102, 103],
        "short_name": ["GSE1", "GSE2", "GSE3"],
        "name": ["brain 1", "brain 2", "brain 3"],
        "taxon": ["mouse"] * 3,
        "array_design": ["GPL1", "GPL1", "GPL1"],
    })
    # pX is non-specific (A and B), pN is unmapped
    probes = pd.DataFrame({
        "probe": ["pA", "pB", "pC", "pD", "pE", "pX", "pX", "pN"],
        "array_design": ["GPL1"] * 8,
        "gene_id": [1, 2, 3, 4, 5, 1, 2, np.nan],
    })
    links = pd.DataFrame(
        [
            ("GSE1", "pA", "pB", 0.8), ("GSE1", "pB", "pA", 0.8),
            ("GSE1", "pB", "pC", -0.5), ("GSE1", "pC", "pB", -0.5),
            ("GSE1", "pA", "pX", 0.7), ("GSE1", "pX", "pA", 0.7),
            ("GSE1", "pA", "pN", 0.6),
            ("GSE1", "pA", "pA", 0.9),
            ("GSE1", "pA", "pE", 0.5),
            ("GSE2", "pA", "pB", 0.7), ("GSE2", "pB", "pA", 0.7),
            ("GSE3", "pA", "pB", 0.9), ("GSE3", "pB", "pA", 0.9),
            ("GSE3", "pC", "pD", 0.4),
        ],
        columns=["experiment", "first_probe", "second_probe", "score"],
    )
    go = pd.DataFrame({"go_id": ["GO:0007268", "GO:0007268"], "gene_id": [3, 4]})
    expression = {
        "GSE1": correlated_expression(rng, 12),
        # too few samples for the default filter
        "GSE2": correlated_expression(rng, 5),
    }
    return dict(taxa=taxa, genes=genes, experiments=experiments, probes=probes,
                links=links, go=go, expression=expression)


@pytest.fixture
def store(rng):
    """In-memory expression database."""
    return TabularDataStore(**build_tables(rng))


@pytest.fixture
def data_dir(tmp_path, rng):
    """The same database written as a data directory."""
    tables = build_tables(rng)
    directory = tmp_path / "data"
    (directory / "expression").mkdir(parents=True)
    for name in ("taxa", "genes", "experiments", "probes", "links", "go"):
        tables[name].to_csv(directory / f"{name}.tsv", sep="\t", index=False)
    for short_name, frame in tables["expression"].items():
        frame.to_csv(directory / "expression" / f"{short_name}.tsv", sep="\t", index_label="probe")
    return directory
