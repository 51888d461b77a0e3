"""
Probe <-> gene mapping statistics per array design.

For each array design, counts probes by how many genes they map to
(P2G_0 = unmapped, P2G_1 .. P2G_10) and genes by how many probes map to them
(G2P_1 .. G2P_10). Counts above MAXIMUM_COUNT are folded into the last column.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set

import numpy as np
import pandas as pd

from coexlinks.services.base import ProbeMappingService

__all__ = ['MAXIMUM_COUNT', 'probe_mapping_stats', 'summarize_array_design']

logger = logging.getLogger(__name__)

MAXIMUM_COUNT = 10


def _capped_histogram(sizes: Iterable[int], first: int) -> np.ndarray:
    sizes = np.minimum(np.fromiter(sizes, dtype=np.int64), MAXIMUM_COUNT)
    counts = np.bincount(sizes, minlength=MAXIMUM_COUNT + 1)
    return counts[first:]


def summarize_array_design(
    array_design: str,
    probe_mapping: ProbeMappingService,
    gene_ids: Optional[Set[int]] = None,
) -> Dict[str, object]:
    """
    Mapping statistics for one array design.

    Args:
        array_design: Array design name
        probe_mapping: Mapping service
        gene_ids: Restrict counting to these genes (e.g. one taxon's genes)
    """
    probes = probe_mapping.get_probes(array_design)
    probe_genes = probe_mapping.get_genes(probes)
    if gene_ids is not None:
        probe_genes = {p: genes & gene_ids for p, genes in probe_genes.items()}

    gene_probes: Dict[int, Set[str]] = {}
    for probe, genes in probe_genes.items():
        for gene_id in genes:
            gene_probes.setdefault(gene_id, set()).add(probe)

    p2g = _capped_histogram((len(g) for g in probe_genes.values()), first=0)
    g2p = _capped_histogram((len(p) for p in gene_probes.values()), first=1)

    row: Dict[str, object] = {
        'array_design': array_design,
        'genes': len(gene_probes),
        'probes': len(probes),
        'probes_with_genes': int(len(probes) - p2g[0]),
    }
    row.update({f"P2G_{i}": int(c) for i, c in enumerate(p2g)})
    row.update({f"G2P_{i}": int(c) for i, c in enumerate(g2p, start=1)})
    return row


def probe_mapping_stats(
    probe_mapping: ProbeMappingService,
    array_designs: Optional[Iterable[str]] = None,
    gene_ids: Optional[Set[int]] = None,
) -> pd.DataFrame:
    """One row of summarize_array_design per array design (all designs by default)."""
    if array_designs is None:
        array_designs = probe_mapping.get_array_design_names()
    rows: List[Dict[str, object]] = []
    for array_design in array_designs:
        row = summarize_array_design(array_design, probe_mapping, gene_ids)
        logger.info(f"{array_design}: {row['probes']} probes, {row['genes']} genes")
        rows.append(row)
    columns = (['array_design', 'genes', 'probes', 'probes_with_genes']
               + [f"P2G_{i}" for i in range(MAXIMUM_COUNT + 1)]
               + [f"G2P_{i}" for i in range(1, MAXIMUM_COUNT + 1)])
    return pd.DataFrame(rows, columns=columns)
