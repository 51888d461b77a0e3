"""
Statistics for coexpression links.

Exports:
- LinkStatistics / LinkConfirmationStatistics: link support and its distribution
- Correlation primitives with an explicit per-run cache
- Random-effects meta-analysis of correlations
- Correlation histograms, sampling and empirical p-values
"""

from .confirmation import LinkConfirmationStatistics, summarize_background, write_background_report
from .correlation import CorrelationCache, CorrelationMethod, correlate, pearson_correlation, spearman_correlation
from .histogram import Histogram1D, HistogramSampler, empirical_pvalue, read_histogram, write_histogram
from .link_statistics import LinkStatistics
from .meta_analysis import CorrelationEffectMetaAnalysis, MetaAnalysisResult

__all__ = [
    'LinkStatistics',
    'LinkConfirmationStatistics',
    'summarize_background',
    'write_background_report',
    'CorrelationCache',
    'CorrelationMethod',
    'correlate',
    'pearson_correlation',
    'spearman_correlation',
    'Histogram1D',
    'HistogramSampler',
    'empirical_pvalue',
    'read_histogram',
    'write_histogram',
    'CorrelationEffectMetaAnalysis',
    'MetaAnalysisResult',
]
