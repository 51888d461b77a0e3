"""
Helpers shared by the coexlinks sub-commands: common options, logging setup,
config merging and resolution of taxon and experiments from the data store.
"""

import argparse
import logging
from pathlib import Path
from typing import Dict, List, Optional

from coexlinks.core.entities import ExpressionExperiment, Taxon
from coexlinks.exceptions import ConfigurationError
from coexlinks.io.loaders import load_experiments, read_list_file
from coexlinks.services.tabular import TabularDataStore

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

SHORT_TO_LONG = {
    'c': 'config',
    'd': 'data_dir',
    't': 'taxon',
    'f': 'experiments',
    'o': 'output',
    'v': 'verbose',
}


def add_common_arguments(parser: argparse.ArgumentParser, taxon_required: bool = False) -> None:
    """Options every command understands: data store, taxon, experiment list, config, verbosity."""
    parser.add_argument("--data-dir", "-d", type=Path, default=None,
                        help="Directory with the tab-delimited expression database tables")
    parser.add_argument("--taxon", "-t", default=None,
                        help="Taxon common name, e.g. 'mouse'" + (" (required)" if taxon_required else ""))
    parser.add_argument("--experiments", "-f", type=Path, default=None,
                        help="File listing experiment short names, one per line (default: all of the taxon)")
    parser.add_argument("--config", "-c", type=Path, default=None,
                        help="Path to YAML/JSON config file (optional, CLI args override config values)")
    parser.add_argument("--verbose", "-v", action="store_true",
                        help="Verbose (DEBUG) logging")


def setup_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
    )


def apply_config(args: argparse.Namespace, short_to_long: Optional[Dict[str, str]] = None) -> argparse.Namespace:
    """
    Merge the --config file (if any) under the explicitly given CLI options.

    Raises:
        ConfigurationError: If the config file is missing or invalid
    """
    if not args.config:
        return args
    from coexlinks.cli.config import load_config, merge_config_with_args, validate_config

    mapping = dict(SHORT_TO_LONG)
    mapping.update(short_to_long or {})
    try:
        config = load_config(args.config)
        validate_config(config)
    except (FileNotFoundError, ValueError) as e:
        raise ConfigurationError(f"Config file error: {e}") from e
    logger.info(f"Loaded configuration from {args.config}")
    merged = merge_config_with_args(config, args, getattr(args, "argv", None), mapping)
    if merged.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    return merged


def open_store(args: argparse.Namespace) -> TabularDataStore:
    if args.data_dir is None:
        raise ConfigurationError("--data-dir is required (via CLI or config file)")
    return TabularDataStore.from_directory(args.data_dir)


def resolve_taxon(store: TabularDataStore, name: Optional[str]) -> Taxon:
    """
    Raises:
        ConfigurationError: If no taxon was given or it is unknown
    """
    if not name:
        raise ConfigurationError("--taxon is required (via CLI or config file)")
    taxon = store.find_by_common_name(name)
    if taxon is None:
        raise ConfigurationError(f"No taxon found for '{name}'")
    return taxon


def resolve_experiments(
    store: TabularDataStore,
    experiments_file: Optional[Path],
    taxon: Optional[Taxon],
) -> List[ExpressionExperiment]:
    """
    Experiments listed in `experiments_file`, or all experiments of the taxon.

    Raises:
        ConfigurationError: If no experiment could be resolved
    """
    if experiments_file is not None:
        experiments = load_experiments(read_list_file(experiments_file), store)
    else:
        experiments = store.load_experiments(taxon)
    if not experiments:
        raise ConfigurationError("No expression experiments selected")
    logger.info(f"Using {len(experiments)} expression experiments")
    return experiments


def banner(title: str) -> None:
    print(f"\n{'='*70}")
    print(f"  {title}")
    print(f"{'='*70}\n")
