"""
Configuration file support for the coexlinks CLI.

Supports YAML and JSON config files with CLI argument override. Keys may be
written with dashes or underscores and mirror the long option names; the
expression filter settings live in a nested `filter` section:

    taxon: mouse
    data_dir: data/
    iterations: 10
    filter:
      min_present_fraction: 0.3
      low_variance_cut: 0.05
"""

import json
import logging
from argparse import Namespace
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from coexlinks.exceptions import ConfigurationError
from coexlinks.quality.filtering import FilterConfig

logger = logging.getLogger(__name__)

PATH_KEYS = {
    'data_dir', 'experiments', 'output', 'output_prefix', 'working_table', 'report',
    'query', 'target', 'analysis_storage',
}

FILTER_KEYS = {f.name for f in fields(FilterConfig)}


@dataclass
class LinkStatsConfig:
    """Configuration of the link-stats command."""
    data_dir: Optional[Path] = None
    taxon: Optional[str] = None
    experiments: Optional[Path] = None
    output: Path = Path("results/link-stats")
    working_table: Optional[Path] = None
    prepare: bool = False
    iterations: int = 0
    real: bool = False
    shuffled_output: bool = False
    filter_non_specific: bool = True
    seed: Optional[int] = None


@dataclass
class EffectSizeConfig:
    """Configuration of the effect-size command."""
    data_dir: Optional[Path] = None
    taxon: Optional[str] = None
    experiments: Optional[Path] = None
    query: Optional[Path] = None
    target: Optional[Path] = None
    go_term: Optional[str] = None
    go_timeout: float = 300.0
    output_prefix: Path = Path("results/effect-size")
    method: str = "pearson"
    k_max: Optional[int] = None
    analysis_storage: Optional[Path] = None
    drop_empty_experiments: bool = True
    seed: Optional[int] = None
    filter: FilterConfig = field(default_factory=FilterConfig)


@dataclass
class HistogramSamplingConfig:
    """Configuration of the sample-histograms command."""
    data_dir: Optional[Path] = None
    taxon: Optional[str] = None
    experiments: Optional[Path] = None
    analysis_storage: Optional[Path] = None
    n_samples: int = 1000
    k_max: int = 5
    output: Optional[Path] = None
    seed: Optional[int] = None


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values, keys normalized to underscores

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid

    Examples:
        >>> config = load_config(Path("link-stats.yaml"))
        >>> print(config['iterations'])
        10
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return _normalize_keys(config)


def _normalize_keys(config: Dict[str, Any]) -> Dict[str, Any]:
    normalized = {}
    for key, value in config.items():
        key = str(key).replace('-', '_')
        if isinstance(value, dict):
            value = _normalize_keys(value)
        normalized[key] = value
    return normalized


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - If CLI arg not set, use config value
    - If neither set, keep CLI default
    """
    if was_explicitly_set:
        return cli_value
    if config_value is not None:
        return config_value
    return cli_value


def explicit_arg_names(cli_args: Optional[List[str]], short_to_long: Optional[Dict[str, str]] = None) -> set:
    """
    Destination names of the options given on the command line.

    `--no-x` flags count as setting `x`; short options are mapped with
    `short_to_long`.
    """
    short_to_long = short_to_long or {}
    explicit = set()
    for arg in cli_args or []:
        if arg.startswith('--'):
            name = arg[2:].split('=', 1)[0].replace('-', '_')
            explicit.add(name)
            if name.startswith('no_'):
                explicit.add(name[3:])
        elif arg.startswith('-') and len(arg) >= 2 and arg[1] in short_to_long:
            explicit.add(short_to_long[arg[1]])
    return explicit


def merge_config_with_args(
    config: Dict[str, Any],
    args: Namespace,
    cli_args: Optional[List[str]] = None,
    short_to_long: Optional[Dict[str, str]] = None,
) -> Namespace:
    """
    Merge config file values with CLI arguments.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments
    2. Config file values
    3. CLI argument defaults

    Keys that match no option of the command are logged and ignored.

    Parameters:
        config: Configuration dictionary from load_config()
        args: Parsed CLI arguments (argparse.Namespace)
        cli_args: Raw CLI arguments list (for detecting explicit values)
        short_to_long: Short option letter -> destination name

    Returns:
        Updated Namespace with merged values
    """
    explicit_args = explicit_arg_names(cli_args, short_to_long)
    merged = Namespace(**vars(args))

    flat = {k: v for k, v in config.items() if k != 'filter'}
    flat.update(config.get('filter') or {})

    for key, config_value in flat.items():
        if not hasattr(merged, key):
            logger.warning(f"Ignoring unknown config key '{key}'")
            continue
        if config_value is not None and key in PATH_KEYS:
            config_value = Path(config_value)
        setattr(merged, key, _merge_value(getattr(merged, key), config_value, key in explicit_args))

    return merged


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration values.

    Raises:
        ValueError: If configuration is invalid
    """
    if 'method' in config and config['method'] not in ('pearson', 'spearman'):
        raise ValueError(
            f"Invalid correlation method '{config['method']}'. Choose from: pearson, spearman"
        )

    for key in ('iterations', 'k_max', 'seed'):
        if config.get(key) is not None:
            value = config[key]
            if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                raise ValueError(f"{key} must be a non-negative integer, got: {value}")

    if config.get('n_samples') is not None:
        value = config['n_samples']
        if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
            raise ValueError(f"n_samples must be a positive integer, got: {value}")

    filter_section = config.get('filter') or {}
    if not isinstance(filter_section, dict):
        raise ValueError("filter section must be a mapping")
    unknown = set(filter_section) - FILTER_KEYS
    if unknown:
        raise ValueError(f"Unknown filter settings: {sorted(unknown)}")
    try:
        FilterConfig(**filter_section)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid filter settings: {e}")


def filter_config_from_args(args: Namespace) -> FilterConfig:
    """
    Raises:
        ConfigurationError: If the merged filter settings are invalid
    """
    try:
        return FilterConfig(**{name: getattr(args, name) for name in FILTER_KEYS})
    except ValueError as e:
        raise ConfigurationError(f"Invalid filter settings: {e}") from e


def run_config_from_args(config_cls, args: Namespace):
    """Build a run configuration dataclass from the merged arguments."""
    values = {}
    for f in fields(config_cls):
        if f.name == 'filter':
            values['filter'] = filter_config_from_args(args)
        elif hasattr(args, f.name):
            values[f.name] = getattr(args, f.name)
    return config_cls(**values)


def run_config_to_dict(run_config) -> Dict[str, Any]:
    return asdict(run_config)
