"""Per-species mutual-rank and CLR co-expression networks."""

from coexpressolog.network.builder import (
    NORM_METHODS,
    CorrelationNetwork,
    InsufficientDataError,
    NetworkBuilder,
    clr_matrix,
    mutual_rank_matrix,
    select_density_edges,
)

__all__ = [
    'NORM_METHODS',
    'CorrelationNetwork',
    'InsufficientDataError',
    'NetworkBuilder',
    'clr_matrix',
    'mutual_rank_matrix',
    'select_density_edges',
]
