"""
coexlinks - Gene coexpression link statistics across expression experiments.

Counts, for every gene pair, how many experiments support a positive or
negative coexpression link, estimates false discovery by shuffling probe to
gene assignments, and summarizes gene-pair correlations across experiments
by meta-analysis.
"""

__version__ = "0.1.0"

from coexlinks.core.bitmatrix import BitSupportMatrix
from coexlinks.stats.confirmation import LinkConfirmationStatistics
from coexlinks.stats.link_statistics import LinkStatistics

__all__ = [
    "BitSupportMatrix",
    "LinkStatistics",
    "LinkConfirmationStatistics",
]
