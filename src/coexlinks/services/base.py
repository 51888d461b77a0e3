"""
Abstract interfaces for the expression database collaborators.

The statistics engine never talks to storage directly. Everything it needs
from the backing store (genes, taxa, experiments and their processed data,
probe-to-gene mappings, raw probe-level links, Gene Ontology annotations and
the denormalized working table) comes through these narrow interfaces, so
any store can be plugged in:

- TabularDataStore: tab-delimited files or in-memory DataFrames
  (coexlinks.services.tabular)

Usage:
    store = TabularDataStore.from_directory("data/")
    taxon = store.find_by_common_name("mouse")
    genes = store.get_genes_by_taxon(taxon)
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional, Set

import pandas as pd

from coexlinks.core.entities import ExpressionExperiment, Gene, ProbeLink, Taxon
from coexlinks.core.expression import ExpressionDataMatrix

__all__ = [
    'TaxonService',
    'GeneService',
    'ExpressionExperimentService',
    'ProbeMappingService',
    'CoexpressionLinkStore',
    'GeneOntologyService',
    'WorkingTable',
    'WORKING_TABLE_COLUMNS',
]

WORKING_TABLE_COLUMNS = ['experiment', 'first_probe', 'second_probe', 'score']


class TaxonService(ABC):

    @abstractmethod
    def find_by_common_name(self, common_name: str) -> Optional[Taxon]:
        """Resolve a taxon by common name ('human', 'mouse'); None if unknown."""
        pass


class GeneService(ABC):

    @abstractmethod
    def get_genes_by_taxon(self, taxon: Taxon) -> List[Gene]:
        """All genes of a taxon, of every gene type."""
        pass

    @abstractmethod
    def find_by_symbol(self, symbol: str, taxon: Taxon) -> Optional[Gene]:
        """Look up a gene by official symbol within a taxon."""
        pass

    @abstractmethod
    def load(self, gene_ids: Iterable[int]) -> List[Gene]:
        """Genes for the given ids; unknown ids are left out."""
        pass

    def get_known_genes(self, taxon: Taxon) -> List[Gene]:
        """Known genes only (no predicted genes, no probe-aligned regions)."""
        return [g for g in self.get_genes_by_taxon(taxon) if g.is_known]


class ExpressionExperimentService(ABC):

    @abstractmethod
    def load_experiments(self, taxon: Optional[Taxon] = None) -> List[ExpressionExperiment]:
        """All experiments, optionally restricted to one taxon."""
        pass

    @abstractmethod
    def find_by_short_name(self, short_name: str) -> Optional[ExpressionExperiment]:
        pass

    @abstractmethod
    def get_expression_data(self, experiment: ExpressionExperiment) -> Optional[ExpressionDataMatrix]:
        """
        Processed probe x sample data of one experiment.

        Returns:
            ExpressionDataMatrix, or None if the experiment has no processed data
        """
        pass

    @abstractmethod
    def get_array_designs(self, experiment: ExpressionExperiment) -> List[str]:
        """Names of the array designs (platforms) an experiment was run on."""
        pass


class ProbeMappingService(ABC):

    @abstractmethod
    def get_genes(self, probes: Iterable[str]) -> Dict[str, Set[int]]:
        """
        Map probes (composite sequences) to the ids of the genes they measure.

        Returns:
            Dict probe -> set of gene ids; unmapped probes map to an empty set
        """
        pass

    @abstractmethod
    def get_array_design_names(self) -> List[str]:
        pass

    @abstractmethod
    def get_probes(self, array_design: str) -> List[str]:
        """All probes of one array design."""
        pass


class CoexpressionLinkStore(ABC):

    @abstractmethod
    def get_probe_links(self, experiment: ExpressionExperiment) -> List[ProbeLink]:
        """
        Raw probe-level links of one experiment.

        Links are stored in both directions, so (p, q) and (q, p) usually
        both appear.
        """
        pass


class GeneOntologyService(ABC):

    @abstractmethod
    def is_ready(self) -> bool:
        """True once the ontology has finished loading."""
        pass

    @abstractmethod
    def get_annotated_genes(self, go_term: str, taxon: Taxon) -> Set[int]:
        """Ids of the genes annotated with a GO term (e.g. 'GO:0007268')."""
        pass


class WorkingTable(ABC):
    """
    Denormalized, de-duplicated probe links for the experiments under analysis.

    Columns are WORKING_TABLE_COLUMNS: experiment short name, the two probes
    and the link score.
    """

    @abstractmethod
    def exists(self) -> bool:
        pass

    @abstractmethod
    def write(self, table: pd.DataFrame) -> None:
        pass

    @abstractmethod
    def read(self) -> pd.DataFrame:
        pass
