"""
Readers for gene and experiment lists.

List files hold one entry per line (gene symbol or experiment short name);
only the first tab-delimited field is used, blank lines and lines starting
with '#' are ignored. Entries that cannot be resolved are logged and
skipped.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Iterable, List, Union

from coexlinks.core.entities import ExpressionExperiment, Gene, Taxon
from coexlinks.exceptions import ConfigurationError
from coexlinks.services.base import ExpressionExperimentService, GeneService

__all__ = ['read_list_file', 'load_genes', 'load_experiments']

logger = logging.getLogger(__name__)


def read_list_file(path: Union[str, Path]) -> List[str]:
    """
    Read a one-entry-per-line list file.

    Raises:
        ConfigurationError: If the file does not exist
    """
    path = Path(path)
    if not path.exists():
        raise ConfigurationError(f"List file not found: {path}")
    entries: Dict[str, None] = {}
    with open(path) as handle:
        for line in handle:
            line = line.strip()
            if not line or line.startswith('#'):
                continue
            entry = line.split('\t')[0].strip()
            if entry:
                entries[entry] = None
    logger.debug(f"Read {len(entries)} entries from {path}")
    return list(entries)


def load_genes(symbols: Iterable[str], gene_service: GeneService, taxon: Taxon) -> List[Gene]:
    """Resolve gene symbols within a taxon, preserving order."""
    genes = []
    for symbol in symbols:
        gene = gene_service.find_by_symbol(symbol, taxon)
        if gene is None:
            logger.warning(f"Gene {symbol} not found for {taxon.common_name}; skipping")
            continue
        genes.append(gene)
    return genes


def load_experiments(
    short_names: Iterable[str],
    experiment_service: ExpressionExperimentService,
) -> List[ExpressionExperiment]:
    """Resolve experiment short names, preserving order."""
    experiments = []
    for name in short_names:
        ee = experiment_service.find_by_short_name(name)
        if ee is None:
            logger.warning(f"Expression experiment {name} not found; skipping")
            continue
        experiments.append(ee)
    return experiments
