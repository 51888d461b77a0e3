"""
Domain entities consumed from the expression database.

Only the identity and display fields the link statistics need are modelled
here; everything else about genes, experiments and probes stays with the
backing services (see coexlinks.services).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

__all__ = [
    'GeneType',
    'Gene',
    'Taxon',
    'ExpressionExperiment',
    'GeneLink',
    'GenePair',
    'ProbeLink',
]


class GeneType(Enum):
    """Gene classes distinguished by the gene service."""
    KNOWN = "known"
    PREDICTED = "predicted"
    PROBE_ALIGNED_REGION = "probe_aligned_region"


@dataclass(frozen=True)
class Taxon:
    """A species, resolved by common name (e.g. 'mouse')."""
    common_name: str
    scientific_name: Optional[str] = None
    id: Optional[int] = None


@dataclass(frozen=True)
class Gene:
    """A gene: stable id plus official symbol."""
    id: int
    name: Optional[str] = None
    taxon: Optional[str] = None
    gene_type: GeneType = field(default=GeneType.KNOWN, compare=False)

    @property
    def is_known(self) -> bool:
        """True for NCBI genes, False for predicted genes and probe-aligned regions."""
        return self.gene_type is GeneType.KNOWN

    @property
    def display_name(self) -> str:
        return self.name if self.name else str(self.id)


@dataclass(frozen=True)
class ExpressionExperiment:
    """An expression experiment (data set), identified by a stable id."""
    id: int
    short_name: str
    name: str = ""
    taxon: Optional[str] = None


@dataclass(frozen=True)
class GeneLink:
    """
    One observed gene-gene association in one experiment.

    The orientation (first, second) is whatever the source data presented;
    links are never symmetrized. A score of exactly 0 counts as negative.
    """
    first_gene: int
    second_gene: int
    score: float

    @property
    def is_positive(self) -> bool:
        return self.score > 0

    @property
    def is_self_link(self) -> bool:
        return self.first_gene == self.second_gene


@dataclass(frozen=True)
class GenePair:
    """Ordered pair of genes, rendered as 'SYMBOL1:SYMBOL2' in reports."""
    first: Gene
    second: Gene

    def __str__(self) -> str:
        return f"{self.first.display_name}:{self.second.display_name}"


@dataclass(frozen=True)
class ProbeLink:
    """A probe-level (composite sequence) coexpression link as stored in the database."""
    first_probe: str
    second_probe: str
    score: float
