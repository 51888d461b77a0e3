"""
Real vs. shuffled link statistics: the empirical false-discovery estimate.

ShuffleOrchestrator runs the real (unshuffled) analysis at most once and the
shuffled analysis N times. Every pass builds a fresh LinkStatistics; only the
reduced LinkConfirmationStatistics of each pass are kept, so memory stays at
one pass worth of link matrices. At the end the real support distribution is
compared with the pooled shuffled ones.

Output files (in `output_dir`):
    link-data.txt               real links, all non-empty cells (stringency 0)
    shuffled-link-data-<i>.txt  links of shuffle i with support >= 2 (optional)

The first failure to write a link file aborts the whole run.
"""

from __future__ import annotations

import logging
import sys
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, TextIO, Union

import pandas as pd

from coexlinks.analysis.link_analysis import LinkStatisticsService
from coexlinks.core.entities import ExpressionExperiment, Gene
from coexlinks.stats.confirmation import LinkConfirmationStatistics

__all__ = [
    'ShuffleOrchestrator',
    'ShuffleRunResult',
    'REAL_LINKS_FILE',
    'REAL_LINK_STRINGENCY',
    'SHUFFLED_LINK_STRINGENCY',
    'shuffled_links_file',
]

logger = logging.getLogger(__name__)

REAL_LINKS_FILE = 'link-data.txt'
REAL_LINK_STRINGENCY = 0
SHUFFLED_LINK_STRINGENCY = 2


def shuffled_links_file(iteration: int) -> str:
    return f"shuffled-link-data-{iteration}.txt"


@dataclass
class ShuffleRunResult:
    """
    Outcome of one orchestrated run.

    Attributes:
        real: Confirmation statistics of the real data (None if not run)
        shuffled_runs: One entry per shuffled iteration, in order
        summary: Real vs. background table (see summarize_background)
        real_link_count: Total links of the real pass (None if not run)
        shuffled_link_counts: Total links per shuffled iteration
        output_files: Link files written
    """
    real: Optional[LinkConfirmationStatistics]
    shuffled_runs: List[LinkConfirmationStatistics]
    summary: pd.DataFrame
    real_link_count: Optional[int] = None
    shuffled_link_counts: List[int] = field(default_factory=list)
    output_files: List[Path] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'n_shuffled_iterations': len(self.shuffled_runs),
            'real_link_count': self.real_link_count,
            'shuffled_link_counts': self.shuffled_link_counts,
            'output_files': [str(p) for p in self.output_files],
        }


class ShuffleOrchestrator:
    """
    Drives the real and shuffled analysis passes.

    Args:
        service: Builds LinkStatistics from the working table
        output_dir: Directory for link files
        report_out: Stream for the background report (stdout by default)

    Example:
        >>> orchestrator = ShuffleOrchestrator(service, Path("results"))
        >>> result = orchestrator.run(ees, genes, iterations=10, real_analysis=True)
    """

    def __init__(
        self,
        service: LinkStatisticsService,
        output_dir: Union[str, Path] = '.',
        report_out: Optional[TextIO] = None,
    ):
        self.service = service
        self.output_dir = Path(output_dir)
        self.report_out = report_out

    def run(
        self,
        experiments: Sequence[ExpressionExperiment],
        genes: Sequence[Gene],
        iterations: int = 0,
        real_analysis: bool = False,
        shuffled_output: bool = False,
        filter_non_specific: bool = True,
    ) -> ShuffleRunResult:
        """
        Run the analysis passes and print the background report.

        Args:
            experiments: Experiments under analysis
            genes: Gene universe (usually the taxon's known genes)
            iterations: Number of shuffled passes
            real_analysis: Also run the unshuffled pass and write link-data.txt
            shuffled_output: Write each shuffled pass's links (support >= 2)
            filter_non_specific: Ignore probes mapped to more than one gene

        Raises:
            ConfigurationError: If the working table is missing
            ReportWriteError: On the first link file that cannot be written
        """
        if iterations < 0:
            raise ValueError(f"iterations must be >= 0, got {iterations}")
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_files: List[Path] = []

        real = None
        real_link_count = None
        if real_analysis:
            logger.info("Running real (unshuffled) analysis")
            stats = self.service.analyze(experiments, genes, shuffle=False,
                                         filter_non_specific=filter_non_specific)
            real_link_count = stats.get_total_link_count()
            logger.info(f"{real_link_count} gene links in total")
            real = stats.get_link_confirmation_stats()
            path = self.output_dir / REAL_LINKS_FILE
            stats.write_links(path, REAL_LINK_STRINGENCY)
            output_files.append(path)

        shuffled_runs: List[LinkConfirmationStatistics] = []
        shuffled_link_counts: List[int] = []
        logger.info(f"Running {iterations} shuffled runs")
        for i in range(iterations):
            logger.info(f"*** Iteration {i} ***")
            start = time.perf_counter()
            stats = self.service.analyze(experiments, genes, shuffle=True,
                                         filter_non_specific=filter_non_specific)
            link_count = stats.get_total_link_count()
            logger.info(f"{link_count} gene links in total")
            shuffled_runs.append(stats.get_link_confirmation_stats())
            shuffled_link_counts.append(link_count)

            if shuffled_output:
                path = self.output_dir / shuffled_links_file(i)
                stats.write_links(path, SHUFFLED_LINK_STRINGENCY)
                output_files.append(path)
            logger.info(f"Iteration {i} done in {time.perf_counter() - start:.1f}s")

        out = self.report_out if self.report_out is not None else sys.stdout
        summary = self.service.write_stats(out, real, shuffled_runs)

        return ShuffleRunResult(
            real=real,
            shuffled_runs=shuffled_runs,
            summary=summary,
            real_link_count=real_link_count,
            shuffled_link_counts=shuffled_link_counts,
            output_files=output_files,
        )
