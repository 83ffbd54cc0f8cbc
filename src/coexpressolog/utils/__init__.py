"""Utility modules for correlation computation and output files."""

from coexpressolog.utils.correlation_matrix import (
    CORRELATION_METHODS,
    correlation_matrix,
    compute_correlation_matrix_chunked,
    rank_transform,
)
from coexpressolog.utils.fileio import (
    atomic_open,
    atomic_write_json,
    atomic_write_text,
    atomic_write_lines,
    atomic_write_table,
)

__all__ = [
    # Correlation matrix utilities
    'CORRELATION_METHODS',
    'correlation_matrix',
    'compute_correlation_matrix_chunked',
    'rank_transform',
    # Atomic file-write utilities
    'atomic_open',
    'atomic_write_json',
    'atomic_write_text',
    'atomic_write_lines',
    'atomic_write_table',
]
