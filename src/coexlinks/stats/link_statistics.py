"""
Link statistics: per-experiment support for every gene pair.

LinkStatistics owns two BitSupportMatrix instances over the same gene axis,
one for positively and one for negatively correlated links, with one bit per
experiment. Links are added experiment by experiment; afterwards the matrices
are summarized once into LinkConfirmationStatistics, and the raw link table
can be written as a tab-delimited report.

The matrices are not symmetric: a link is recorded in whichever orientation
(first gene = row, second gene = column) the source presented it, so the
same gene pair reported as A-B by one experiment and B-A by another occupies
two different cells.
"""

from __future__ import annotations

import logging
import time
from os import PathLike
from pathlib import Path
from typing import Dict, Iterable, List, Set, TextIO, Union

import numpy as np

from coexlinks.core.bitmatrix import BitSupportMatrix
from coexlinks.core.entities import ExpressionExperiment, Gene, GeneLink
from coexlinks.exceptions import ReportWriteError, UnknownExperimentError
from coexlinks.stats.confirmation import LinkConfirmationStatistics

logger = logging.getLogger(__name__)

__all__ = ['LinkStatistics']

SUMMARY_LOG_INTERVAL = 10_000
WRITE_ROW_LOG_INTERVAL = 1_000
WRITE_LINK_LOG_INTERVAL = 100_000


class LinkStatistics:
    """
    Holds link support for one analysis run (real data or one shuffle).

    Bound at construction to a fixed universe of experiments and genes. The
    experiment -> bit index map follows the iteration order of `experiments`
    and never changes afterwards.

    Attributes:
        genes: Genes used as both axes of the link matrices
        experiments: Experiments, in bit order
        gene_coverage: Ids of genes that took part in at least one applied link
        rows_written: Data rows written by the latest write_links call

    Example:
        >>> stats = LinkStatistics(experiments, genes)
        >>> for ee in experiments:
        ...     stats.add_links(links_for(ee), ee)
        >>> conf = stats.get_link_confirmation_stats()
        >>> stats.write_links("link-data.txt", 0)
    """

    def __init__(self, experiments: Iterable[ExpressionExperiment], genes: Iterable[Gene]):
        self.experiments: List[ExpressionExperiment] = list(experiments)
        self.genes: List[Gene] = list(genes)
        self._ee_index: Dict[int, int] = {}
        for index, ee in enumerate(self.experiments):
            self._ee_index[ee.id] = index

        self.pos_link_counts = self._init_matrix()
        self.neg_link_counts = self._init_matrix()
        self.gene_coverage: Set[int] = set()
        self.rows_written = 0

    def _init_matrix(self) -> BitSupportMatrix:
        gene_ids = [g.id for g in self.genes]
        return BitSupportMatrix(gene_ids, gene_ids, n_bits=len(self.experiments))

    def experiment_index(self, experiment: ExpressionExperiment) -> int:
        """Bit position of an experiment; raises UnknownExperimentError if unbound."""
        try:
            return self._ee_index[experiment.id]
        except KeyError:
            raise UnknownExperimentError(experiment.id) from None

    def add_links(self, gene_links: Iterable[GeneLink], experiment: ExpressionExperiment) -> int:
        """
        Record the links one experiment reported.

        Self links are skipped silently. Links touching a gene absent from the
        axis are skipped with a warning (expected when links were gathered for
        all genes but the axis holds only known genes).

        Args:
            gene_links: Links observed in `experiment`
            experiment: Must be one of the experiments given at construction

        Returns:
            Number of links actually recorded

        Raises:
            UnknownExperimentError: If `experiment` was not bound at construction
        """
        ee_index = self.experiment_index(experiment)
        gene_links = list(gene_links)
        logger.debug(
            f"{experiment.short_name}: {len(gene_links)} links to add to the matrix (bit# {ee_index})"
        )
        count = 0
        for link in gene_links:
            if self._add_link(ee_index, link):
                count += 1
        return count

    def _add_link(self, ee_index: int, link: GeneLink) -> bool:
        first, second = link.first_gene, link.second_gene

        if first == second:
            logger.debug(f"Skipping self link for gene={first}")
            return False

        matrix = self.pos_link_counts if link.is_positive else self.neg_link_counts
        if not matrix.set_bit(first, second, ee_index):
            logger.warning(f"Link matrix does not contain rows for one or both of {first},{second}")
            return False

        self.gene_coverage.add(first)
        self.gene_coverage.add(second)
        return True

    def get_link_confirmation_stats(self) -> LinkConfirmationStatistics:
        """
        Summarize support across every cell of both matrices.

        A single pass over all rows; for each non-empty cell the histogram of
        its sign is bumped at the cell's support. Progress is logged every
        10,000 rows since gene universes can exceed 40,000 genes.
        """
        rows = self.pos_link_counts.rows
        results = LinkConfirmationStatistics()

        logger.info("Summarizing ... ")
        start = time.perf_counter()
        total_counted = 0
        for i in range(rows):
            positive = self.pos_link_counts.row_bit_count(i)
            negative = self.neg_link_counts.row_bit_count(i)

            pos_support = positive[positive > 0]
            neg_support = negative[negative > 0]
            results.add_pos_counts(pos_support)
            results.add_neg_counts(neg_support)
            total_counted += len(pos_support) + len(neg_support)

            if i > 0 and i % SUMMARY_LOG_INTERVAL == 0:
                logger.info(f"Summarized results for {i} genes, {total_counted} links.")

        elapsed = time.perf_counter() - start
        logger.info(f"Summarized results for {rows} genes, {total_counted} links in {elapsed:.1f}s.")
        return results

    def write_links(self, out: Union[str, PathLike, TextIO], link_stringency: int = 0) -> int:
        """
        Write the link table.

        With stringency 0 every non-empty cell is one row
        (Gene1, Gene2, PosLinks, NegLinks). With stringency K > 0 only
        cells whose support in a sign is >= K are written, one row per
        satisfied sign (Gene1, Gene2, Support, CorrSign with '+' or '-').

        The sink is closed on completion and on failure. A path is opened
        for writing; a stream is flushed and closed.

        Args:
            out: Output path or writable text stream
            link_stringency: Minimum support for the filtered mode; 0 writes everything

        Returns:
            Number of data rows written

        Raises:
            ValueError: If link_stringency is negative
            ReportWriteError: If writing fails
        """
        logger.info(f"Writing links with support >={link_stringency}")
        names = {g.id: g.display_name for g in self.genes}

        try:
            stream = open(out, 'w') if isinstance(out, (str, PathLike)) else out
        except OSError as e:
            raise ReportWriteError(f"Cannot open link output {out}: {e}") from e

        self.rows_written = 0
        try:
            if link_stringency < 0:
                raise ValueError(f"link_stringency must be >= 0, got {link_stringency}")
            self._write_link_rows(stream, names, link_stringency)
        except OSError as e:
            raise ReportWriteError(f"Failed writing links after {self.rows_written} rows: {e}") from e
        finally:
            try:
                stream.flush()
            finally:
                stream.close()
        return self.rows_written

    def _write_link_rows(self, out: TextIO, names: Dict[int, str], link_stringency: int) -> None:
        pos_matrix, neg_matrix = self.pos_link_counts, self.neg_link_counts
        col_names = [names.get(gid, str(gid)) for gid in pos_matrix.col_names]

        if link_stringency == 0:
            out.write("Gene1\tGene2\tPosLinks\tNegLinks\n")
        else:
            out.write("Gene1\tGene2\tSupport\tCorrSign\n")

        next_report = WRITE_LINK_LOG_INTERVAL
        for i in range(pos_matrix.rows):
            positive = pos_matrix.row_bit_count(i)
            negative = neg_matrix.row_bit_count(i)
            gene1 = names.get(pos_matrix.row_name(i), str(pos_matrix.row_name(i)))

            if link_stringency > 0:
                cols = np.flatnonzero((positive >= link_stringency) | (negative >= link_stringency))
                for j in cols:
                    if positive[j] >= link_stringency:
                        out.write(f"{gene1}\t{col_names[j]}\t{positive[j]}\t+\n")
                        self.rows_written += 1
                    if negative[j] >= link_stringency:
                        out.write(f"{gene1}\t{col_names[j]}\t{negative[j]}\t-\n")
                        self.rows_written += 1
            else:
                cols = np.flatnonzero((positive > 0) | (negative > 0))
                for j in cols:
                    out.write(f"{gene1}\t{col_names[j]}\t{positive[j]}\t{negative[j]}\n")
                    self.rows_written += 1

            if self.rows_written >= next_report:
                logger.info(f"{self.rows_written} links written")
                next_report = (self.rows_written // WRITE_LINK_LOG_INTERVAL + 1) * WRITE_LINK_LOG_INTERVAL
            if i > 0 and i % WRITE_ROW_LOG_INTERVAL == 0:
                logger.info(f"Links for {i} genes written")

        logger.info(f"{self.rows_written} links written")

    def get_total_link_count(self) -> int:
        """Set bits in both matrices (each experiment's confirmation counted once)."""
        return self.pos_link_counts.total_bit_count() + self.neg_link_counts.total_bit_count()

    def get_gene_ids(self) -> Set[int]:
        """Ids of the genes on the matrix axes."""
        return {g.id for g in self.genes}

    def __repr__(self) -> str:
        return (
            f"LinkStatistics({len(self.genes)} genes x {len(self.experiments)} experiments, "
            f"{self.get_total_link_count()} links)"
        )
