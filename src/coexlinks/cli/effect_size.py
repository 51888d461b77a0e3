"""
coexlinks effect-size - Gene-pair correlations and meta-analytic effect sizes.

For every query x target gene pair, computes the median probe-level
correlation in each experiment and combines the experiments with a
random-effects meta-analysis. Optionally adds the genes of a GO term to the
targets and reports k-max correlations with empirical p-values.

Usage:
    coexlinks effect-size -d data/ -t mouse -q query.txt --target target.txt -o results/synapse
    coexlinks effect-size -d data/ -t mouse -q query.txt -g GO:0007268 -k 3 --analysis-storage hist/
"""

import argparse
import logging
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
from coexlinks.cli._validators import _fraction, _non_negative_float, _non_negative_int, _positive_int
from coexlinks.exceptions import CoexlinksError, ConfigurationError
from coexlinks.quality.filtering import FilterConfig

logger = logging.getLogger(__name__)

_DEFAULT_FILTER = FilterConfig()


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the effect-size subcommand."""
    parser = subparsers.add_parser(
        "effect-size",
        help="Gene-pair correlation matrices and meta-analytic effect sizes",
        description=(
            "Correlate query genes with target genes in every experiment (median over "
            "specific probe pairs) and combine experiments with a random-effects meta-analysis."
        )
    )
    add_common_arguments(parser, taxon_required=True)

    parser.add_argument("--query", "-q", type=Path, default=None,
                        help="File of query gene symbols, one per line (required)")
    parser.add_argument("--target", type=Path, default=None,
                        help="File of target gene symbols (default: none, see --go-term)")
    parser.add_argument("--go-term", "-g", default=None,
                        help="Add the genes annotated with this GO term to the targets")
    parser.add_argument("--go-timeout", type=_non_negative_float, default=300.0,
                        help="Seconds to wait for the GO service to be ready (default: 300)")
    parser.add_argument("--output-prefix", "-o", type=Path, default=Path("results/effect-size"),
                        help="Prefix of the output files (default: results/effect-size)")
    parser.add_argument("--method", choices=["pearson", "spearman"], default="pearson",
                        help="Correlation method (default: pearson)")
    parser.add_argument("--k-max", "-k", type=_non_negative_int, default=None,
                        help="Also write the k-th largest correlation per pair and its p-value")
    parser.add_argument("--analysis-storage", type=Path, default=None,
                        help="Directory with <short_name>.correlDist.txt histograms (needed for --k-max)")
    parser.add_argument("--keep-empty-experiments", dest="drop_empty_experiments", action="store_false",
                        help="Keep experiments without any usable correlation in the outputs")
    parser.add_argument("--seed", type=_non_negative_int, default=None,
                        help="Random seed for histogram sampling")
    parser.add_argument("--no-progress", action="store_true",
                        help="Disable progress bars")

    filters = parser.add_argument_group("expression filtering")
    filters.add_argument("--min-present-fraction", type=_fraction, default=_DEFAULT_FILTER.min_present_fraction,
                         help="Minimum fraction of non-missing values per probe (default: %(default)s)")
    filters.add_argument("--low-expression-cut", type=_fraction, default=_DEFAULT_FILTER.low_expression_cut,
                         help="Quantile of lowest-expressed probes removed (default: %(default)s)")
    filters.add_argument("--low-variance-cut", type=_fraction, default=_DEFAULT_FILTER.low_variance_cut,
                         help="Quantile of lowest-variance probes removed (default: %(default)s)")
    filters.add_argument("--min-samples", type=_positive_int, default=_DEFAULT_FILTER.min_samples,
                         help="Skip experiments with fewer samples (default: %(default)s)")

    parser.set_defaults(func=run_effect_size)


def run_effect_size(args: argparse.Namespace) -> int:
    """Execute the effect-size command."""
    from coexlinks.analysis.coexpression import CoexpressionAnalysisService
    from coexlinks.cli.config import (
        EffectSizeConfig,
        filter_config_from_args,
        run_config_from_args,
        run_config_to_dict,
    )
    from coexlinks.io.loaders import load_genes, read_list_file
    from coexlinks.io.writers import write_gene_matrix, write_pair_matrix
    from coexlinks.stats.correlation import CorrelationMethod
    from coexlinks.utils.fileio import atomic_write_json
    from coexlinks.utils.readiness import wait_until_ready

    setup_logging(args.verbose)

    try:
        args = apply_config(args, {"q": "query", "g": "go_term", "o": "output_prefix", "k": "k_max"})

        banner("Effect Size Calculation")

        store = open_store(args)
        taxon = resolve_taxon(store, args.taxon)
        experiments = resolve_experiments(store, args.experiments, taxon)

        if args.query is None:
            raise ConfigurationError("--query is required (via CLI or config file)")
        query_genes = load_genes(read_list_file(args.query), store, taxon)
        target_genes = load_genes(read_list_file(args.target), store, taxon) if args.target else []

        if args.go_term:
            wait_until_ready(store.is_ready, timeout=args.go_timeout, name="Gene Ontology service")
            go_gene_ids = store.get_annotated_genes(args.go_term, taxon)
            known = {g.id for g in target_genes}
            added = [g for g in store.load(sorted(go_gene_ids)) if g.id not in known]
            target_genes.extend(added)
            logger.info(f"Added {len(added)} genes annotated with {args.go_term} to the targets")

        if not query_genes or not target_genes:
            raise ConfigurationError("No genes in query/target")
        logger.info(f"{len(query_genes)} query genes, {len(target_genes)} target genes")

        if args.k_max is not None and args.analysis_storage is None:
            raise ConfigurationError("--k-max needs --analysis-storage with correlation histograms")

        service = CoexpressionAnalysisService(
            experiment_service=store,
            probe_mapping=store,
            analysis_storage=args.analysis_storage,
            rng=np.random.default_rng(args.seed),
            show_progress=not args.no_progress,
        )
        matrices = service.calculate_coexpression_matrices(
            experiments, query_genes, target_genes,
            filter_config=filter_config_from_args(args),
            method=CorrelationMethod.from_name(args.method),
        )
        if args.drop_empty_experiments:
            n_before = len(matrices.experiments)
            matrices = matrices.drop_empty_experiments()
            logger.info(f"{len(matrices.experiments)} of {n_before} experiments have correlation data")

        prefix = args.output_prefix
        prefix.parent.mkdir(parents=True, exist_ok=True)
        outputs = [
            write_pair_matrix(matrices, f"{prefix}.corr.txt"),
            write_gene_matrix(service.calculate_effect_size_matrix(matrices), f"{prefix}.effect_size.txt"),
        ]

        if args.k_max is not None:
            max_corr = service.get_max_correlation_matrix(matrices, args.k_max)
            pvalues = service.calculate_max_correlation_pvalue_matrix(
                max_corr, args.k_max, matrices.experiments, histogram_path=prefix.parent / "hist.txt",
            )
            outputs.append(write_gene_matrix(max_corr, f"{prefix}.max_corr.txt"))
            outputs.append(write_gene_matrix(pvalues, f"{prefix}.max_corr_pval.txt"))

        run_config = run_config_to_dict(run_config_from_args(EffectSizeConfig, args))
        run_config.update({
            'n_query_genes': len(query_genes),
            'n_target_genes': len(target_genes),
            'experiments_with_data': [ee.short_name for ee in matrices.experiments],
            'output_files': [str(p) for p in outputs],
        })
        atomic_write_json(prefix.parent / "run_config.json", run_config)

    except (CoexlinksError, OSError) as e:
        logger.error(f"effect-size failed: {e}")
        return 1

    logger.info(f"Results saved with prefix: {args.output_prefix}")
    return 0
