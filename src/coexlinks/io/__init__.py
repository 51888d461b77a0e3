"""
Report writers and list-file readers.
"""

from coexlinks.io.loaders import load_experiments, load_genes, read_list_file
from coexlinks.io.writers import write_gene_matrix, write_pair_matrix, write_probe_stats, write_samples

__all__ = [
    'load_experiments',
    'load_genes',
    'read_list_file',
    'write_gene_matrix',
    'write_pair_matrix',
    'write_probe_stats',
    'write_samples',
]
