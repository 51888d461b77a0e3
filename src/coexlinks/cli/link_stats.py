"""
coexlinks link-stats - Link support statistics against a shuffled background.

Two phases, run separately:

    # 1. prepare the de-duplicated working table (one-shot)
    coexlinks link-stats -d data/ -t mouse -f brain_datasets.txt --prepare

    # 2. real analysis plus 100 shuffled runs
    coexlinks link-stats -d data/ -t mouse -f brain_datasets.txt --real -i 100
"""

import argparse
import logging
import sys
from pathlib import Path

import numpy as np

from coexlinks.cli._common import (
    add_common_arguments,
    apply_config,
    banner,
    open_store,
    resolve_experiments,
    resolve_taxon,
    setup_logging,
)
from coexlinks.cli._validators import _non_negative_int
from coexlinks.exceptions import CoexlinksError, ReportWriteError

logger = logging.getLogger(__name__)

WORKING_TABLE_NAME = 'working-table.txt'


def _open_report(path: Path):
    try:
        return open(path, 'w')
    except OSError as e:
        raise ReportWriteError(f"Cannot open background report {path}: {e}") from e


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the link-stats subcommand."""
    parser = subparsers.add_parser(
        "link-stats",
        help="Link support statistics with a shuffled background (false discovery estimate)",
        description=(
            "Count, for every gene pair, how many experiments support a positive or "
            "negative coexpression link, and compare the support distribution with "
            "runs where each experiment's probe-to-gene assignment is shuffled."
        )
    )
    add_common_arguments(parser, taxon_required=True)

    parser.add_argument("--output", "-o", type=Path, default=Path("results/link-stats"),
                        help="Output directory (default: results/link-stats)")
    parser.add_argument("--working-table", type=Path, default=None,
                        help=f"Working table file (default: <output>/{WORKING_TABLE_NAME})")
    parser.add_argument("--prepare", "-s", action="store_true",
                        help="Only prepare the working table, then exit")
    parser.add_argument("--iterations", "-i", type=_non_negative_int, default=0,
                        help="Number of shuffled runs (default: 0)")
    parser.add_argument("--real", "-r", action="store_true",
                        help="Also run the real (unshuffled) analysis and write link-data.txt")
    parser.add_argument("--shuffled-output", action="store_true",
                        help="Write link details (support >= 2) of every shuffled run")
    parser.add_argument("--no-filter-non-specific", dest="filter_non_specific", action="store_false",
                        help="Keep probes that map to more than one gene")
    parser.add_argument("--report", type=Path, default=None,
                        help="Write the background report to this file instead of stdout")
    parser.add_argument("--seed", type=_non_negative_int, default=None,
                        help="Random seed for shuffling")

    parser.set_defaults(func=run_link_stats)


def run_link_stats(args: argparse.Namespace) -> int:
    """Execute the link-stats command."""
    from coexlinks.analysis.link_analysis import LinkStatisticsService, ProbeGeneShuffler
    from coexlinks.analysis.shuffle import ShuffleOrchestrator
    from coexlinks.cli.config import LinkStatsConfig, run_config_from_args, run_config_to_dict
    from coexlinks.services.tabular import TsvWorkingTable
    from coexlinks.utils.fileio import atomic_write_json

    setup_logging(args.verbose)

    try:
        args = apply_config(args, {"i": "iterations", "s": "prepare", "r": "real"})

        banner("Link Statistics" + (" - Prepare Working Table" if args.prepare else ""))

        store = open_store(args)
        taxon = resolve_taxon(store, args.taxon)
        experiments = resolve_experiments(store, args.experiments, taxon)

        args.output.mkdir(parents=True, exist_ok=True)
        working_table = TsvWorkingTable(args.working_table or args.output / WORKING_TABLE_NAME)
        service = LinkStatisticsService(
            link_store=store,
            probe_mapping=store,
            working_table=working_table,
            shuffler=ProbeGeneShuffler(np.random.default_rng(args.seed)),
        )

        run_config = run_config_to_dict(run_config_from_args(LinkStatsConfig, args))
        run_config['n_experiments'] = len(experiments)

        if args.prepare:
            table = service.prepare_working_table(experiments, filter_non_specific=args.filter_non_specific)
            run_config['working_table_links'] = len(table)
            atomic_write_json(args.output / "run_config.json", run_config)
            logger.info(f"Working table written to {working_table.path}")
            return 0

        genes = service.get_known_genes(store, taxon)

        report_handle = _open_report(args.report) if args.report else None
        try:
            orchestrator = ShuffleOrchestrator(
                service, args.output, report_out=report_handle or sys.stdout,
            )
            result = orchestrator.run(
                experiments,
                genes,
                iterations=args.iterations,
                real_analysis=args.real,
                shuffled_output=args.shuffled_output,
                filter_non_specific=args.filter_non_specific,
            )
        finally:
            if report_handle is not None:
                report_handle.close()

        run_config['n_genes'] = len(genes)
        run_config.update(result.to_dict())
        atomic_write_json(args.output / "run_config.json", run_config)

    except (CoexlinksError, OSError) as e:
        logger.error(f"link-stats failed: {e}")
        return 1

    logger.info(f"Results saved to: {args.output}")
    return 0
