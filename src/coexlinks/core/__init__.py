"""
Core data structures: domain entities, the experiment-bit support matrix,
per-experiment expression data and the experiment x gene x gene
correlation cubes.
"""

from coexlinks.core.bitmatrix import BitSupportMatrix
from coexlinks.core.coexpression_matrices import CoexpressionMatrices
from coexlinks.core.entities import (
    ExpressionExperiment,
    Gene,
    GeneLink,
    GenePair,
    GeneType,
    ProbeLink,
    Taxon,
)
from coexlinks.core.expression import ExpressionDataMatrix

__all__ = [
    'BitSupportMatrix',
    'CoexpressionMatrices',
    'ExpressionDataMatrix',
    'ExpressionExperiment',
    'Gene',
    'GeneLink',
    'GenePair',
    'GeneType',
    'ProbeLink',
    'Taxon',
]
