"""
coexlinks CLI - Gene coexpression link statistics over many expression experiments.

Commands:
    coexlinks link-stats         - Link support statistics against a shuffled background
    coexlinks effect-size        - Gene-pair correlations and meta-analytic effect sizes
    coexlinks sample-histograms  - Sample k-max correlations from correlation histograms
    coexlinks probe-stats        - Probe/gene mapping summary per array design
"""

import argparse
import sys
from typing import List, Optional


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI dispatcher for coexlinks."""
    parser = argparse.ArgumentParser(
        prog="coexlinks",
        description="Coexpression link statistics for expression experiment collections",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  link-stats         Link support statistics against a shuffled background
  effect-size        Gene-pair correlations and meta-analytic effect sizes
  sample-histograms  Sample k-max correlations from correlation histograms
  probe-stats        Probe/gene mapping summary per array design

Examples:
  coexlinks link-stats -d data/ -t mouse -f datasets.txt --prepare
  coexlinks link-stats -d data/ -t mouse -f datasets.txt --real -i 100
  coexlinks effect-size -d data/ -t mouse -q query.txt --target target.txt -o results/run1
  coexlinks probe-stats -d data/ -t mouse
        """
    )

    parser.add_argument(
        "--version", "-V",
        action="version",
        version="%(prog)s 0.1.0"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    from coexlinks.cli import effect_size, link_stats, probe_stats, sample_histograms
    link_stats.register_parser(subparsers)
    effect_size.register_parser(subparsers)
    sample_histograms.register_parser(subparsers)
    probe_stats.register_parser(subparsers)

    argv = list(args) if args is not None else sys.argv[1:]
    parsed_args = parser.parse_args(argv)

    if parsed_args.command is None:
        parser.print_help()
        return 0

    # raw arguments after the command name, for config precedence
    parsed_args.argv = argv[argv.index(parsed_args.command) + 1:]

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
