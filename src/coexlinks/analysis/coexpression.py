"""
Gene-level coexpression across many experiments.

CoexpressionAnalysisService turns probe-level expression data into
gene-pair statistics:

1. calculate_coexpression_matrices: for every experiment and every
   (query, target) gene pair, correlate all specific probes of the two genes
   and keep the median correlation with its sample size.
2. calculate_effect_size_matrix: random-effects meta-analysis of each gene
   pair across experiments.
3. get_max_correlation_matrix: the n-th largest correlation of each gene pair.
4. calculate_max_correlation_pvalue_matrix: empirical p-values for the
   n-max correlations, from per-experiment correlation histograms.

The median is used rather than the mean so a single noisy probe cannot drag
the gene-level value.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
from tqdm import tqdm

from coexlinks.core.coexpression_matrices import CoexpressionMatrices
from coexlinks.core.entities import ExpressionExperiment, Gene
from coexlinks.core.expression import ExpressionDataMatrix
from coexlinks.exceptions import ConfigurationError, InsufficientSamplesError, ReportWriteError
from coexlinks.quality.filtering import ExpressionExperimentFilter, FilterConfig
from coexlinks.services.base import ExpressionExperimentService, ProbeMappingService
from coexlinks.stats.correlation import CorrelationCache, CorrelationMethod, correlate, count_concurrent
from coexlinks.stats.histogram import (
    Histogram1D,
    HistogramSampler,
    empirical_pvalue,
    read_histogram,
    write_histogram,
)
from coexlinks.stats.meta_analysis import CorrelationEffectMetaAnalysis

__all__ = [
    'CoexpressionAnalysisService',
    'MIN_NUM_USED',
    'NUM_HISTOGRAM_SAMPLES',
    'NUM_HISTOGRAM_BINS',
    'HISTOGRAM_SUFFIX',
]

logger = logging.getLogger(__name__)

# a probe pair needs more than this many concurrent values
MIN_NUM_USED = 5
NUM_HISTOGRAM_SAMPLES = 10_000
NUM_HISTOGRAM_BINS = 2000
HISTOGRAM_SUFFIX = '.correlDist.txt'


class CoexpressionAnalysisService:
    """
    Correlation cubes and their reductions for query x target gene sets.

    Args:
        experiment_service: Source of expression data and array designs
        probe_mapping: Probe -> gene mapping
        analysis_storage: Directory holding `<short_name>.correlDist.txt` histograms
        meta_analysis: Effect-size combiner (random effects on Fisher z by default)
        rng: Random generator for histogram sampling
        show_progress: Show a tqdm bar over experiments
    """

    def __init__(
        self,
        experiment_service: ExpressionExperimentService,
        probe_mapping: ProbeMappingService,
        analysis_storage: Optional[Union[str, Path]] = None,
        meta_analysis: Optional[CorrelationEffectMetaAnalysis] = None,
        rng: Optional[np.random.Generator] = None,
        show_progress: bool = True,
    ):
        self.experiment_service = experiment_service
        self.probe_mapping = probe_mapping
        self.analysis_storage = Path(analysis_storage) if analysis_storage is not None else None
        self.meta_analysis = meta_analysis if meta_analysis is not None else CorrelationEffectMetaAnalysis()
        self.rng = rng if rng is not None else np.random.default_rng()
        self.show_progress = show_progress
        self.cache = CorrelationCache()

    def get_expression_data_matrix(
        self,
        experiment: ExpressionExperiment,
        filter_config: Optional[FilterConfig] = None,
    ) -> Optional[ExpressionDataMatrix]:
        """Filtered expression data of one experiment, or None if it cannot be used."""
        matrix = self.experiment_service.get_expression_data(experiment)
        if matrix is None:
            logger.error(f"No processed expression data for {experiment.short_name}")
            return None
        try:
            return ExpressionExperimentFilter(filter_config).apply(matrix)
        except InsufficientSamplesError as e:
            logger.error(f"Cannot process {experiment.short_name}: {e}")
            return None

    def get_gene2probe_map(self, probes: Iterable[str]) -> Dict[int, List[str]]:
        """
        Group specific probes by gene.

        Probes mapping to more than one gene are non-specific and dropped;
        unmapped probes are dropped.
        """
        gene2probes: Dict[int, List[str]] = {}
        n_non_specific = 0
        for probe, gene_ids in self.probe_mapping.get_genes(probes).items():
            if len(gene_ids) > 1:
                n_non_specific += 1
                continue
            for gene_id in gene_ids:
                gene2probes.setdefault(gene_id, []).append(probe)
        if n_non_specific:
            logger.debug(f"Excluded {n_non_specific} non-specific probes")
        return gene2probes

    def _experiment_probes(self, experiment: ExpressionExperiment, matrix: ExpressionDataMatrix) -> List[str]:
        probes: Dict[str, None] = {}
        for array_design in self.experiment_service.get_array_designs(experiment):
            probes.update(dict.fromkeys(self.probe_mapping.get_probes(array_design)))
        if not probes:
            return [str(p) for p in matrix.probe_ids]
        return list(probes)

    def calculate_coexpression_matrices(
        self,
        experiments: Sequence[ExpressionExperiment],
        query_genes: Sequence[Gene],
        target_genes: Sequence[Gene],
        filter_config: Optional[FilterConfig] = None,
        method: Optional[CorrelationMethod] = None,
    ) -> CoexpressionMatrices:
        """
        Median probe-pair correlation of every gene pair in every experiment.

        Experiments without usable data keep an all-NaN slice.

        Raises:
            ConfigurationError: If the query or target gene set is empty
        """
        if not query_genes:
            raise ConfigurationError("No query genes")
        if not target_genes:
            raise ConfigurationError("No target genes")
        if method is None:
            method = CorrelationMethod.PEARSON

        self.cache.clear()
        matrices = CoexpressionMatrices(experiments, query_genes, target_genes)
        logger.info(
            f"Calculating correlation and sample size matrices: {len(matrices.experiments)} experiments, "
            f"{len(matrices.query_genes)} query x {len(matrices.target_genes)} target genes"
        )
        start = time.perf_counter()

        ee_iter = matrices.experiments
        if self.show_progress:
            ee_iter = tqdm(ee_iter, desc="Correlating experiments", unit="ee")

        for count, ee in enumerate(ee_iter, start=1):
            logger.debug(f"Processing {ee.short_name} ({count} of {len(matrices.experiments)})")
            data = self.get_expression_data_matrix(ee, filter_config)
            if data is None:
                continue
            slice_ = matrices.slice_index(ee)
            gene2probes = self.get_gene2probe_map(self._experiment_probes(ee, data))

            for row, query in enumerate(matrices.query_genes):
                query_probes = gene2probes.get(query.id)
                if not query_probes:
                    continue
                for col, target in enumerate(matrices.target_genes):
                    target_probes = gene2probes.get(target.id)
                    if not target_probes:
                        continue
                    result = self.calculate_correlation(
                        query_probes, target_probes, data, method, cache_prefix=ee.short_name
                    )
                    if result is not None:
                        matrices.set(slice_, row, col, result[0], result[1])

        elapsed = time.perf_counter() - start
        logger.info(f"Calculated correlations of all {len(matrices.experiments)} experiments in {elapsed:.1f}s")
        return matrices

    def calculate_correlation(
        self,
        query_probes: Iterable[str],
        target_probes: Iterable[str],
        data: ExpressionDataMatrix,
        method: CorrelationMethod = CorrelationMethod.PEARSON,
        cache_prefix: str = "",
    ) -> Optional[Tuple[float, int]]:
        """
        Median correlation over all query x target probe pairs.

        Probe pairs with at most MIN_NUM_USED concurrent values are ignored.
        Equal correlations are counted once (the last pair seen supplies the
        sample size), and the value at index len // 2 of the sorted distinct
        correlations is returned.

        Returns:
            (correlation, sample_size), or None if no probe pair was usable
        """
        target_probes = list(target_probes)
        sample_size_by_correlation: Dict[float, int] = {}
        for query_probe in query_probes:
            query_values = data.row(query_probe)
            if query_values is None:
                continue
            for target_probe in target_probes:
                target_values = data.row(target_probe)
                if target_values is None:
                    continue
                num_used = count_concurrent(query_values, target_values)
                if num_used <= MIN_NUM_USED:
                    continue
                correlation = correlate(
                    query_values, target_values, method,
                    cache=self.cache, keys=((cache_prefix, query_probe), (cache_prefix, target_probe)),
                )
                if np.isnan(correlation):
                    continue
                sample_size_by_correlation[correlation] = num_used

        if not sample_size_by_correlation:
            return None
        correlations = sorted(sample_size_by_correlation)
        median = correlations[len(correlations) // 2]
        return median, sample_size_by_correlation[median]

    def _gene_frame(self, values: np.ndarray, matrices: CoexpressionMatrices) -> pd.DataFrame:
        return pd.DataFrame(
            values,
            index=pd.Index(matrices.query_genes, name='query'),
            columns=pd.Index(matrices.target_genes, name='target'),
        )

    def calculate_effect_size_matrix(self, matrices: CoexpressionMatrices) -> pd.DataFrame:
        """Meta-analytic effect size of every gene pair (query x target, NaN = no data)."""
        logger.info("Calculating effect size matrix")
        effect = self.meta_analysis.combine_matrix(matrices.correlation, matrices.sample_size)
        return self._gene_frame(effect, matrices)

    def get_max_correlation_matrix(self, matrices: CoexpressionMatrices, n: int) -> pd.DataFrame:
        """
        The n-th largest correlation of each gene pair (0 = maximum).

        Pairs with n or fewer non-missing correlations get NaN.
        """
        if n < 0:
            raise ValueError(f"n must be >= 0, got {n}")
        logger.info(f"Calculating {n}-max matrix")
        start = time.perf_counter()
        cube = matrices.correlation
        if cube.shape[0] == 0:
            logger.warning("No experiment has correlation data; every pair gets NaN")
            return self._gene_frame(np.full(cube.shape[1:], np.nan), matrices)
        n_present = (~np.isnan(cube)).sum(axis=0)
        ordered = np.sort(cube, axis=0)  # NaN sorts last
        index = n_present - 1 - n
        valid = index >= 0
        picked = np.take_along_axis(ordered, np.where(valid, index, 0)[None, ...], axis=0)[0]
        result = np.where(valid, picked, np.nan)
        logger.info(f"Finished calculating {n}-max matrix in {time.perf_counter() - start:.2f}s")
        return self._gene_frame(result, matrices)

    def get_histogram_samplers(self, experiments: Iterable[ExpressionExperiment]) -> List[HistogramSampler]:
        """
        Samplers over each experiment's stored correlation distribution.

        Experiments without a readable, non-empty histogram are logged and left out.
        """
        if self.analysis_storage is None:
            raise ConfigurationError("No analysis storage directory configured for correlation histograms")
        samplers = []
        for ee in experiments:
            path = self.analysis_storage / f"{ee.short_name}{HISTOGRAM_SUFFIX}"
            try:
                histogram = read_histogram(path, name=ee.short_name)
                samplers.append(HistogramSampler(histogram, rng=self.rng))
            except FileNotFoundError:
                logger.error(f"Unable to read correlation distribution file for {ee.short_name}: {path}")
            except ValueError as e:
                logger.error(f"{ee.short_name} has an invalid correlation distribution: {e}")
        return samplers

    def sample_max_correlations(
        self,
        samplers: Sequence[HistogramSampler],
        n: int,
        n_samples: int = NUM_HISTOGRAM_SAMPLES,
    ) -> np.ndarray:
        """
        Draw one value per sampler, `n_samples` times, and keep the n-th largest of each draw.

        Raises:
            ValueError: If there are not more than `n` samplers
        """
        if len(samplers) <= n:
            raise ValueError(
                f"Only {len(samplers)} correlation distributions available; cannot sample {n}-max correlations"
            )
        draws = np.column_stack([s.samples(n_samples) for s in samplers])
        draws.sort(axis=1)
        return draws[:, draws.shape[1] - 1 - n]

    def sample_max_correlation_histogram(
        self,
        samplers: Sequence[HistogramSampler],
        n: int,
        n_samples: int = NUM_HISTOGRAM_SAMPLES,
    ) -> Histogram1D:
        """Histogram of sampled n-max correlations; empty if there are too few samplers."""
        histogram = Histogram1D(NUM_HISTOGRAM_BINS, -1.0, 1.0, name="Max correlation empirical distribution")
        try:
            histogram.fill(self.sample_max_correlations(samplers, n, n_samples))
        except ValueError as e:
            logger.warning(str(e))
        return histogram

    def calculate_max_correlation_pvalue_matrix(
        self,
        max_correlation: pd.DataFrame,
        n: int,
        experiments: Iterable[ExpressionExperiment],
        histogram_path: Optional[Union[str, Path]] = None,
    ) -> pd.DataFrame:
        """
        Empirical p-values of n-max correlations.

        Args:
            max_correlation: Output of get_max_correlation_matrix
            n: Which maximum the matrix holds (0 = largest)
            experiments: Experiments whose correlation histograms form the null
            histogram_path: Where to save the sampled null histogram (e.g. hist.txt)

        Returns:
            Same-shaped p-value frame; NaN where the correlation is NaN or exactly 0
        """
        logger.info(f"Calculating {n}-max p-value matrix")
        start = time.perf_counter()
        histogram = self.sample_max_correlation_histogram(self.get_histogram_samplers(experiments), n)

        if histogram_path is not None:
            try:
                write_histogram(histogram, histogram_path)
            except OSError as e:
                raise ReportWriteError(f"Failed to write histogram {histogram_path}: {e}") from e

        values = max_correlation.to_numpy(dtype=np.float64)
        pvalues = np.full(values.shape, np.nan)
        for (i, j), corr in np.ndenumerate(values):
            if np.isnan(corr) or corr == 0:
                continue
            pvalues[i, j] = empirical_pvalue(histogram, corr, NUM_HISTOGRAM_SAMPLES)

        logger.info(f"Finished calculating {n}-max p-value matrix in {time.perf_counter() - start:.2f}s")
        return pd.DataFrame(pvalues, index=max_correlation.index, columns=max_correlation.columns)
