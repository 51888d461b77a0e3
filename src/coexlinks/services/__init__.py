"""
External collaborators (expression database services) and a tabular implementation.
"""

from coexlinks.services.base import (
    CoexpressionLinkStore,
    ExpressionExperimentService,
    GeneOntologyService,
    GeneService,
    ProbeMappingService,
    TaxonService,
    WorkingTable,
)
from coexlinks.services.tabular import TabularDataStore, TsvWorkingTable

__all__ = [
    'CoexpressionLinkStore',
    'ExpressionExperimentService',
    'GeneOntologyService',
    'GeneService',
    'ProbeMappingService',
    'TaxonService',
    'WorkingTable',
    'TabularDataStore',
    'TsvWorkingTable',
]
