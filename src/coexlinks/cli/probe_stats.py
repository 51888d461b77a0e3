"""
coexlinks probe-stats - Probe/gene mapping summary per array design.

Usage:
    coexlinks probe-stats -d data/ -t mouse -o arraydesignsummary.txt
"""

import argparse
import logging
from pathlib import Path

from coexlinks.cli._common import add_common_arguments, apply_config, open_store, setup_logging
from coexlinks.exceptions import CoexlinksError, ConfigurationError

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the probe-stats subcommand."""
    parser = subparsers.add_parser(
        "probe-stats",
        help="Count probes by number of mapped genes and genes by number of probes",
    )
    add_common_arguments(parser)

    parser.add_argument("--array-designs", nargs="+", default=None,
                        help="Array design names (default: all)")
    parser.add_argument("--output", "-o", type=Path, default=Path("arraydesignsummary.txt"),
                        help="Output file (default: arraydesignsummary.txt)")

    parser.set_defaults(func=run_probe_stats)


def run_probe_stats(args: argparse.Namespace) -> int:
    """Execute the probe-stats command."""
    from coexlinks.analysis.probe_stats import probe_mapping_stats
    from coexlinks.io.writers import write_probe_stats

    setup_logging(args.verbose)

    try:
        args = apply_config(args)
        store = open_store(args)

        gene_ids = None
        if args.taxon:
            taxon = store.find_by_common_name(args.taxon)
            if taxon is None:
                raise ConfigurationError(f"No taxon found for '{args.taxon}'")
            gene_ids = {g.id for g in store.get_genes_by_taxon(taxon)}

        stats = probe_mapping_stats(store, args.array_designs, gene_ids)
        write_probe_stats(stats, args.output)

    except (CoexlinksError, OSError) as e:
        logger.error(f"probe-stats failed: {e}")
        return 1

    return 0
