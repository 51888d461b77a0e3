"""
Link statistics from stored probe-level coexpression links.

Two phases:

1. prepare_working_table: one-shot denormalization of the raw links of the
   selected experiments into a working table. The store keeps every link
   twice, (p, q) and (q, p); only the first orientation seen is kept. Self
   links and links touching unmapped probes are dropped, and so are links
   touching non-specific probes (mapped to more than one gene) when
   requested.
2. analyze: read the working table, convert probe links to gene links
   (optionally after shuffling the probe -> gene assignment) and fill a fresh
   LinkStatistics.
"""

from __future__ import annotations

import logging
import time
from typing import Dict, Iterable, List, Optional, Sequence, Set, TextIO

import numpy as np
import pandas as pd

from coexlinks.core.entities import ExpressionExperiment, Gene, GeneLink, Taxon
from coexlinks.exceptions import ConfigurationError
from coexlinks.services.base import (
    WORKING_TABLE_COLUMNS,
    CoexpressionLinkStore,
    GeneService,
    ProbeMappingService,
    WorkingTable,
)
from coexlinks.stats.confirmation import LinkConfirmationStatistics, write_background_report
from coexlinks.stats.link_statistics import LinkStatistics

__all__ = ['LinkStatisticsService', 'ProbeGeneShuffler']

logger = logging.getLogger(__name__)


class ProbeGeneShuffler:
    """
    Randomizes which genes an experiment's probes measure.

    The gene sets of the probes are permuted among the probes, so every
    probe keeps a gene assignment that exists in the experiment and the
    number of probes per gene is preserved. Links keep their probes and
    scores; only the genes they are credited to change.
    """

    def __init__(self, rng: Optional[np.random.Generator] = None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def shuffle(self, probe_genes: Dict[str, Set[int]]) -> Dict[str, Set[int]]:
        probes = list(probe_genes)
        order = self.rng.permutation(len(probes))
        return {probe: probe_genes[probes[k]] for probe, k in zip(probes, order)}


class LinkStatisticsService:
    """
    Builds LinkStatistics for real or shuffled probe -> gene assignments.

    Args:
        link_store: Raw probe-level links (read only by the prepare phase)
        probe_mapping: Probe -> gene mapping
        working_table: Where the prepared links live
        shuffler: Probe/gene shuffler used for shuffled runs
    """

    def __init__(
        self,
        link_store: CoexpressionLinkStore,
        probe_mapping: ProbeMappingService,
        working_table: WorkingTable,
        shuffler: Optional[ProbeGeneShuffler] = None,
    ):
        self.link_store = link_store
        self.probe_mapping = probe_mapping
        self.working_table = working_table
        self.shuffler = shuffler if shuffler is not None else ProbeGeneShuffler()

    def get_known_genes(self, gene_service: GeneService, taxon: Taxon) -> List[Gene]:
        """Known genes of a taxon: no predicted genes, no probe-aligned regions."""
        logger.info("Loading genes ...")
        genes = gene_service.get_known_genes(taxon)
        logger.info(f"Using {len(genes)} 'known genes' for analysis")
        return genes

    def _probe_genes(self, probes: Iterable[str], filter_non_specific: bool) -> Dict[str, Set[int]]:
        mapping = self.probe_mapping.get_genes(probes)
        usable = {}
        for probe, genes in mapping.items():
            if not genes:
                continue
            if filter_non_specific and len(genes) > 1:
                continue
            usable[probe] = genes
        return usable

    def prepare_working_table(
        self,
        experiments: Sequence[ExpressionExperiment],
        filter_non_specific: bool = True,
    ) -> pd.DataFrame:
        """
        Denormalize and de-duplicate the raw links of `experiments`.

        Returns:
            The working table that was written (WORKING_TABLE_COLUMNS)
        """
        logger.info(f"Preparing working table for {len(experiments)} experiments "
                    f"(filter non-specific probes: {filter_non_specific})")
        start = time.perf_counter()
        rows = []
        for ee in experiments:
            links = self.link_store.get_probe_links(ee)
            probe_genes = self._probe_genes(
                {p for link in links for p in (link.first_probe, link.second_probe)},
                filter_non_specific,
            )
            kept: Set[tuple] = set()
            dropped = {'reverse': 0, 'self': 0, 'unusable_probe': 0}
            for link in links:
                pair = (link.first_probe, link.second_probe)
                if link.first_probe == link.second_probe:
                    dropped['self'] += 1
                    continue
                if (link.second_probe, link.first_probe) in kept:
                    dropped['reverse'] += 1
                    continue
                if link.first_probe not in probe_genes or link.second_probe not in probe_genes:
                    dropped['unusable_probe'] += 1
                    continue
                kept.add(pair)
                rows.append((ee.short_name, link.first_probe, link.second_probe, link.score))
            logger.info(f"{ee.short_name}: kept {len(links) - sum(dropped.values())} of {len(links)} links, "
                        f"dropped {dropped}")

        table = pd.DataFrame(rows, columns=WORKING_TABLE_COLUMNS)
        self.working_table.write(table)
        logger.info(f"Working table ready: {len(table)} links in {time.perf_counter() - start:.1f}s")
        return table

    def _read_working_table(self) -> pd.DataFrame:
        if not self.working_table.exists():
            raise ConfigurationError("Working table has not been prepared; run with --prepare first")
        return self.working_table.read()

    def analyze(
        self,
        experiments: Sequence[ExpressionExperiment],
        genes: Sequence[Gene],
        shuffle: bool = False,
        filter_non_specific: bool = True,
    ) -> LinkStatistics:
        """
        Fill a new LinkStatistics from the working table.

        Args:
            experiments: Experiments to include (bit order)
            genes: Gene axis of the link matrices
            shuffle: Permute each experiment's probe -> gene assignment first
            filter_non_specific: Ignore probes mapped to more than one gene

        Raises:
            ConfigurationError: If the working table has not been prepared
        """
        table = self._read_working_table()
        stats = LinkStatistics(experiments, genes)
        by_experiment = {name: frame for name, frame in table.groupby('experiment', sort=False)}

        total_applied = 0
        for ee in experiments:
            frame = by_experiment.get(ee.short_name)
            if frame is None:
                logger.debug(f"{ee.short_name}: no links in working table")
                continue
            first = frame['first_probe'].astype(str).to_numpy()
            second = frame['second_probe'].astype(str).to_numpy()
            scores = frame['score'].to_numpy(dtype=np.float64)

            probe_genes = self._probe_genes(set(first) | set(second), filter_non_specific)
            if shuffle:
                probe_genes = self.shuffler.shuffle(probe_genes)

            gene_links = self._to_gene_links(first, second, scores, probe_genes)
            applied = stats.add_links(gene_links, ee)
            total_applied += applied
            logger.info(f"{ee.short_name}: {applied} of {len(gene_links)} gene links applied")

        logger.info(f"{'Shuffled' if shuffle else 'Real'} analysis: {total_applied} links applied, "
                    f"{len(stats.gene_coverage)} genes covered")
        return stats

    @staticmethod
    def _to_gene_links(first, second, scores, probe_genes: Dict[str, Set[int]]) -> List[GeneLink]:
        links = []
        for p, q, score in zip(first, second, scores):
            p_genes = probe_genes.get(p)
            q_genes = probe_genes.get(q)
            if not p_genes or not q_genes:
                continue
            for g1 in p_genes:
                for g2 in q_genes:
                    links.append(GeneLink(g1, g2, float(score)))
        return links

    def write_stats(
        self,
        out: TextIO,
        real: Optional[LinkConfirmationStatistics],
        shuffled_runs: Sequence[LinkConfirmationStatistics],
    ) -> pd.DataFrame:
        """Print the real-vs-background comparison; returns the summary table."""
        return write_background_report(out, real, shuffled_runs)
