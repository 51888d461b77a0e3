"""
coexlinks sample-histograms - Sample k-max correlations from stored distributions.

Draws one value from every experiment's correlation distribution histogram,
keeps the k-th largest, and repeats; the samples show how large a k-max
correlation gets by chance across the selected experiments.

Usage:
    coexlinks sample-histograms -d data/ -t mouse --analysis-storage hist/ -n 1000 -k 5 -o samples.txt
"""

import argparse
import logging
import time
from pathlib import Path

import numpy as np

from coexlinks.cli._common import (
    add_common_arguments,
    apply_config,
    open_store,
    resolve_experiments,
    setup_logging,
)
from coexlinks.cli._validators import _non_negative_int, _positive_int
from coexlinks.exceptions import CoexlinksError, ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NUM_SAMPLES = 1000
DEFAULT_K_MAX = 5


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the sample-histograms subcommand."""
    parser = subparsers.add_parser(
        "sample-histograms",
        help="Sample k-max correlations from per-experiment correlation histograms",
    )
    add_common_arguments(parser)

    parser.add_argument("--analysis-storage", type=Path, default=None,
                        help="Directory with <short_name>.correlDist.txt histograms (required)")
    parser.add_argument("--n-samples", "-n", type=_positive_int, default=DEFAULT_NUM_SAMPLES,
                        help=f"Number of samples (default: {DEFAULT_NUM_SAMPLES})")
    parser.add_argument("--k-max", "-k", type=_non_negative_int, default=DEFAULT_K_MAX,
                        help=f"Take the k-th largest value of each draw, 0 = max (default: {DEFAULT_K_MAX})")
    parser.add_argument("--output", "-o", type=Path, default=None,
                        help="Output file (required)")
    parser.add_argument("--seed", type=_non_negative_int, default=None,
                        help="Random seed")

    parser.set_defaults(func=run_sample_histograms)


def run_sample_histograms(args: argparse.Namespace) -> int:
    """Execute the sample-histograms command."""
    from coexlinks.analysis.coexpression import CoexpressionAnalysisService
    from coexlinks.cli.config import HistogramSamplingConfig, run_config_from_args, run_config_to_dict
    from coexlinks.io.writers import write_samples
    from coexlinks.utils.fileio import atomic_write_json

    setup_logging(args.verbose)

    try:
        args = apply_config(args, {"n": "n_samples", "k": "k_max"})
        if args.output is None:
            raise ConfigurationError("--output is required (via CLI or config file)")
        if args.analysis_storage is None:
            raise ConfigurationError("--analysis-storage is required (via CLI or config file)")

        store = open_store(args)
        taxon = store.find_by_common_name(args.taxon) if args.taxon else None
        if args.taxon and taxon is None:
            raise ConfigurationError(f"No taxon found for '{args.taxon}'")
        experiments = resolve_experiments(store, args.experiments, taxon)

        service = CoexpressionAnalysisService(
            experiment_service=store,
            probe_mapping=store,
            analysis_storage=args.analysis_storage,
            rng=np.random.default_rng(args.seed),
        )
        samplers = service.get_histogram_samplers(experiments)
        logger.info(f"Sampling {len(samplers)} expression experiments")
        logger.info(f"Taking the n-{args.k_max} largest value {args.n_samples} times")

        start = time.perf_counter()
        try:
            samples = service.sample_max_correlations(samplers, args.k_max, args.n_samples)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        logger.info(f"Finished sampling in {time.perf_counter() - start:.2f}s")

        write_samples(samples, experiments, args.output)

        run_config = run_config_to_dict(run_config_from_args(HistogramSamplingConfig, args))
        run_config['distributions'] = [s.name for s in samplers]
        atomic_write_json(args.output.parent / "run_config.json", run_config)

    except (CoexlinksError, OSError) as e:
        logger.error(f"sample-histograms failed: {e}")
        return 1

    return 0
