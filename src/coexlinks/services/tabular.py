"""
File- and DataFrame-backed implementation of every database collaborator.

A data directory holds one tab-delimited table per entity:

    taxa.tsv           id, common_name, scientific_name
    genes.tsv          id, symbol, taxon, gene_type   (gene_type optional, default 'known')
    experiments.tsv    id, short_name, name, taxon, array_design
                       (array_design may list several designs separated by ',')
    probes.tsv         probe, array_design, gene_id  (one row per mapping, empty gene_id = unmapped)
    links.tsv          experiment, first_probe, second_probe, score
    go.tsv             go_id, gene_id
    expression/<short_name>.tsv   probe x sample matrix, first column = probe

Missing files are treated as empty tables. The same store can be built
directly from DataFrames, which is how the tests use it.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

import numpy as np
import pandas as pd

from coexlinks.core.entities import ExpressionExperiment, Gene, GeneType, ProbeLink, Taxon
from coexlinks.core.expression import ExpressionDataMatrix
from coexlinks.exceptions import ConfigurationError
from coexlinks.services.base import (
    WORKING_TABLE_COLUMNS,
    CoexpressionLinkStore,
    ExpressionExperimentService,
    GeneOntologyService,
    GeneService,
    ProbeMappingService,
    TaxonService,
    WorkingTable,
)

__all__ = ['TabularDataStore', 'TsvWorkingTable']

logger = logging.getLogger(__name__)

_COLUMNS = {
    'taxa': ['id', 'common_name', 'scientific_name'],
    'genes': ['id', 'symbol', 'taxon', 'gene_type'],
    'experiments': ['id', 'short_name', 'name', 'taxon', 'array_design'],
    'probes': ['probe', 'array_design', 'gene_id'],
    'links': ['experiment', 'first_probe', 'second_probe', 'score'],
    'go': ['go_id', 'gene_id'],
}

_REQUIRED = {
    'taxa': ['common_name'],
    'genes': ['id', 'taxon'],
    'experiments': ['id', 'short_name'],
    'probes': ['probe', 'gene_id'],
    'links': ['experiment', 'first_probe', 'second_probe', 'score'],
    'go': ['go_id', 'gene_id'],
}


def _normalize(name: str, frame: Optional[pd.DataFrame]) -> pd.DataFrame:
    if frame is None:
        return pd.DataFrame(columns=_COLUMNS[name])
    missing = [c for c in _REQUIRED[name] if c not in frame.columns]
    if missing:
        raise ConfigurationError(f"Table '{name}' is missing required columns: {missing}")
    frame = frame.copy()
    for col in _COLUMNS[name]:
        if col not in frame.columns:
            frame[col] = None
    return frame


class TabularDataStore(
    TaxonService,
    GeneService,
    ExpressionExperimentService,
    ProbeMappingService,
    CoexpressionLinkStore,
    GeneOntologyService,
):
    """
    In-memory expression database.

    Args:
        taxa, genes, experiments, probes, links, go: Entity tables (see module docstring)
        expression: Mapping experiment short name -> probe x sample DataFrame
    """

    def __init__(
        self,
        taxa: Optional[pd.DataFrame] = None,
        genes: Optional[pd.DataFrame] = None,
        experiments: Optional[pd.DataFrame] = None,
        probes: Optional[pd.DataFrame] = None,
        links: Optional[pd.DataFrame] = None,
        go: Optional[pd.DataFrame] = None,
        expression: Optional[Mapping[str, pd.DataFrame]] = None,
    ):
        self.taxa = _normalize('taxa', taxa)
        self.genes = _normalize('genes', genes)
        self.experiments = _normalize('experiments', experiments)
        self.probes = _normalize('probes', probes)
        self.links = _normalize('links', links)
        self.go = _normalize('go', go)
        self.expression: Dict[str, pd.DataFrame] = dict(expression or {})

        self._genes_by_id: Dict[int, Gene] = {}
        for row in self.genes.itertuples(index=False):
            gene_type = GeneType(row.gene_type) if isinstance(row.gene_type, str) else GeneType.KNOWN
            symbol = row.symbol if isinstance(row.symbol, str) else None
            taxon = row.taxon if isinstance(row.taxon, str) else None
            gene = Gene(id=int(row.id), name=symbol, taxon=taxon, gene_type=gene_type)
            self._genes_by_id[gene.id] = gene

        self._experiments: Dict[str, ExpressionExperiment] = {}
        self._array_designs: Dict[str, List[str]] = {}
        for row in self.experiments.itertuples(index=False):
            ee = ExpressionExperiment(
                id=int(row.id),
                short_name=str(row.short_name),
                name=row.name if isinstance(row.name, str) else "",
                taxon=row.taxon if isinstance(row.taxon, str) else None,
            )
            self._experiments[ee.short_name] = ee
            designs = row.array_design if isinstance(row.array_design, str) else ""
            self._array_designs[ee.short_name] = [d.strip() for d in designs.split(',') if d.strip()]

        self._probe_genes: Dict[str, Set[int]] = {}
        for probe, gene_id in zip(self.probes['probe'].astype(str), self.probes['gene_id']):
            genes = self._probe_genes.setdefault(probe, set())
            if pd.notna(gene_id):
                genes.add(int(gene_id))

        logger.debug(
            f"Tabular store: {len(self._genes_by_id)} genes, {len(self._experiments)} experiments, "
            f"{len(self._probe_genes)} probes, {len(self.links)} raw links"
        )

    @classmethod
    def from_directory(cls, directory: Union[str, Path]) -> 'TabularDataStore':
        """
        Load every table found in a data directory.

        Raises:
            ConfigurationError: If the directory does not exist
        """
        directory = Path(directory)
        if not directory.is_dir():
            raise ConfigurationError(f"Data directory not found: {directory}")

        tables = {}
        for name in _COLUMNS:
            path = directory / f"{name}.tsv"
            if path.exists():
                tables[name] = pd.read_csv(path, sep='\t', dtype={'probe': str, 'first_probe': str,
                                                                  'second_probe': str})
                logger.info(f"Loaded {name}: {len(tables[name])} rows from {path}")

        expression = {}
        expression_dir = directory / 'expression'
        if expression_dir.is_dir():
            for path in sorted(expression_dir.glob('*.tsv')):
                expression[path.stem] = pd.read_csv(path, sep='\t', index_col=0)

        return cls(expression=expression, **tables)

    # Taxa

    def find_by_common_name(self, common_name: str) -> Optional[Taxon]:
        match = self.taxa[self.taxa['common_name'].astype(str).str.lower() == common_name.lower()]
        if match.empty:
            return None
        row = match.iloc[0]
        return Taxon(
            common_name=str(row['common_name']),
            scientific_name=row['scientific_name'] if isinstance(row['scientific_name'], str) else None,
            id=int(row['id']) if pd.notna(row['id']) else None,
        )

    # Genes

    def get_genes_by_taxon(self, taxon: Taxon) -> List[Gene]:
        return [g for g in self._genes_by_id.values() if g.taxon == taxon.common_name]

    def find_by_symbol(self, symbol: str, taxon: Taxon) -> Optional[Gene]:
        for gene in self._genes_by_id.values():
            if gene.name == symbol and gene.taxon == taxon.common_name:
                return gene
        return None

    def load(self, gene_ids: Iterable[int]) -> List[Gene]:
        return [self._genes_by_id[i] for i in gene_ids if i in self._genes_by_id]

    # Experiments

    def load_experiments(self, taxon: Optional[Taxon] = None) -> List[ExpressionExperiment]:
        if taxon is None:
            return list(self._experiments.values())
        return [ee for ee in self._experiments.values() if ee.taxon == taxon.common_name]

    def find_by_short_name(self, short_name: str) -> Optional[ExpressionExperiment]:
        return self._experiments.get(short_name)

    def get_expression_data(self, experiment: ExpressionExperiment) -> Optional[ExpressionDataMatrix]:
        frame = self.expression.get(experiment.short_name)
        if frame is None:
            return None
        return ExpressionDataMatrix.from_frame(frame, experiment=experiment.short_name)

    def get_array_designs(self, experiment: ExpressionExperiment) -> List[str]:
        return list(self._array_designs.get(experiment.short_name, []))

    # Probe mapping

    def get_genes(self, probes: Iterable[str]) -> Dict[str, Set[int]]:
        return {p: set(self._probe_genes.get(p, ())) for p in probes}

    def get_array_design_names(self) -> List[str]:
        return sorted(self.probes['array_design'].dropna().astype(str).unique())

    def get_probes(self, array_design: str) -> List[str]:
        rows = self.probes[self.probes['array_design'].astype(str) == array_design]
        return list(dict.fromkeys(rows['probe'].astype(str)))

    # Raw links

    def get_probe_links(self, experiment: ExpressionExperiment) -> List[ProbeLink]:
        rows = self.links[self.links['experiment'].astype(str) == experiment.short_name]
        return [
            ProbeLink(str(p), str(q), float(s))
            for p, q, s in zip(rows['first_probe'], rows['second_probe'], rows['score'])
        ]

    # Gene Ontology

    def is_ready(self) -> bool:
        return True

    def get_annotated_genes(self, go_term: str, taxon: Taxon) -> Set[int]:
        ids = self.go.loc[self.go['go_id'].astype(str) == go_term, 'gene_id']
        taxon_ids = {g.id for g in self.get_genes_by_taxon(taxon)}
        return {int(i) for i in ids.dropna() if int(i) in taxon_ids}


class TsvWorkingTable(WorkingTable):
    """Working table persisted as one tab-delimited file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def write(self, table: pd.DataFrame) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        table.to_csv(self.path, sep='\t', index=False, columns=WORKING_TABLE_COLUMNS)
        logger.info(f"Wrote working table: {len(table)} links to {self.path}")

    def read(self) -> pd.DataFrame:
        table = pd.read_csv(
            self.path, sep='\t',
            dtype={'experiment': str, 'first_probe': str, 'second_probe': str, 'score': np.float64},
        )
        missing = [c for c in WORKING_TABLE_COLUMNS if c not in table.columns]
        if missing:
            raise ConfigurationError(f"Working table {self.path} is missing columns: {missing}")
        return table
