"""
I/O for expression tables, ortholog tables and pipeline outputs.

Key Functions:
    - load_expression_table: Long expression table -> ExpressionMatrix per species/tissue
    - load_ortholog_table: HOG table -> OrthologTable
    - write_*: Clique, conservation, summary, polarity and manifest outputs
"""

from coexpressolog.io.loaders import load_expression_table, load_ortholog_table, read_table
from coexpressolog.io.writers import (
    tissue_dir,
    write_cliques,
    write_conservation,
    write_group_cliques,
    write_manifest,
    write_polarity,
    write_summary,
)

__all__ = [
    # Loaders
    'load_expression_table',
    'load_ortholog_table',
    'read_table',
    # Writers
    'tissue_dir',
    'write_cliques',
    'write_conservation',
    'write_group_cliques',
    'write_manifest',
    'write_polarity',
    'write_summary',
]
