"""
Analysis drivers built on the statistics layer.
"""

from coexlinks.analysis.coexpression import CoexpressionAnalysisService
from coexlinks.analysis.link_analysis import LinkStatisticsService, ProbeGeneShuffler
from coexlinks.analysis.shuffle import ShuffleOrchestrator, ShuffleRunResult

__all__ = [
    'CoexpressionAnalysisService',
    'LinkStatisticsService',
    'ProbeGeneShuffler',
    'ShuffleOrchestrator',
    'ShuffleRunResult',
]
