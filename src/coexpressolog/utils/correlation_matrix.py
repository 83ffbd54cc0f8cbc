"""
Gene-gene correlation matrices for co-expression network construction.

PROBLEM:
    A species network needs the full genes × genes correlation matrix.
    With tens of thousands of genes, computing it with np.corrcoef over the
    stacked matrix allocates far more memory than the result itself.

SOLUTION:
    Standardize the rows once, then fill the output in row chunks with a
    single matrix product per chunk. Spearman correlation is Pearson
    correlation of per-gene ranks, so it reuses the same engine.

KEY FEATURES:
    1. Chunked computation: chunk_size genes at a time (default 500)
    2. Rank-based (Spearman) correlation via average ranks
    3. Constant genes get correlation 0 instead of NaN
    4. Missing values fall back to pandas pairwise-complete correlation

USAGE:
    >>> from coexpressolog.utils.correlation_matrix import correlation_matrix
    >>> corr = correlation_matrix(data, method="spearman")
"""

from __future__ import annotations

import logging
import warnings
from typing import Optional

import numpy as np
import pandas as pd
from scipy.stats import rankdata
from tqdm import tqdm

logger = logging.getLogger(__name__)

__all__ = [
    'CORRELATION_METHODS',
    'correlation_matrix',
    'compute_correlation_matrix_chunked',
    'rank_transform',
]

CORRELATION_METHODS = ('spearman', 'pearson', 'kendall')


def rank_transform(data: np.ndarray) -> np.ndarray:
    """
    Replace each gene's values by their average ranks across samples.

    Args:
        data: Expression matrix (genes × samples), no NaN

    Returns:
        Rank matrix of the same shape (float64, ranks start at 1)
    """
    return rankdata(data, method='average', axis=1).astype(np.float64)


def compute_correlation_matrix_chunked(
    data: np.ndarray,
    chunk_size: int = 500,
    verbose: bool = False,
    output: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Compute the Pearson correlation matrix in row chunks.

    Algorithm:
        1. Standardize each gene once: Z = (X - mean) / std
        2. For each chunk of genes: corr[chunk, :] = Z[chunk] @ Z.T / n_samples
        3. Set the diagonal to 1.0

    Memory:
        O(n_genes × n_samples) for the standardized data plus
        O(chunk_size × n_genes) per chunk, on top of the n_genes² output.

    Args:
        data: Expression matrix (genes × samples), no NaN
        chunk_size: Number of genes processed per chunk
        verbose: Show a progress bar
        output: Optional pre-allocated (n_genes × n_genes) array to fill

    Returns:
        Symmetric correlation matrix (float64)

    Notes:
        Constant genes have std 0; their correlations are set to 0.
    """
    n_genes, n_samples = data.shape

    if output is None:
        correlation = np.zeros((n_genes, n_genes), dtype=np.float64)
    else:
        correlation = output

    data_mean = data.mean(axis=1, keepdims=True)
    data_std = data.std(axis=1, keepdims=True)
    constant = (data_std == 0).ravel()
    if constant.any():
        warnings.warn(
            f"{int(constant.sum())} constant genes have undefined correlation; using 0",
            UserWarning,
        )
    data_std[data_std == 0] = 1.0
    standardized = (data - data_mean) / data_std
    standardized[constant, :] = 0.0

    n_chunks = (n_genes + chunk_size - 1) // chunk_size
    chunk_iter = range(n_chunks)
    if verbose:
        chunk_iter = tqdm(chunk_iter, desc="Computing correlations", unit="chunk")

    for chunk_idx in chunk_iter:
        start = chunk_idx * chunk_size
        end = min(start + chunk_size, n_genes)
        chunk_corr = (standardized[start:end, :] @ standardized.T) / n_samples
        correlation[start:end, :] = np.nan_to_num(chunk_corr, nan=0.0, posinf=0.0, neginf=0.0)

    # Rounding can push |r| marginally above 1
    np.clip(correlation, -1.0, 1.0, out=correlation)
    np.fill_diagonal(correlation, 1.0)
    return correlation


def _pairwise_complete(data: np.ndarray, method: str) -> np.ndarray:
    """Correlation with pairwise deletion of missing values (pandas)."""
    frame = pd.DataFrame(data.T)
    corr = frame.corr(method=method, min_periods=2).to_numpy(dtype=np.float64)
    corr = np.nan_to_num(corr, nan=0.0)
    np.fill_diagonal(corr, 1.0)
    return corr


def correlation_matrix(
    data: np.ndarray,
    method: str = 'spearman',
    chunk_size: int = 500,
    verbose: bool = False,
) -> np.ndarray:
    """
    Gene × gene correlation matrix.

    Args:
        data: Expression matrix (genes × samples)
        method: 'spearman' (default), 'pearson' or 'kendall'
        chunk_size: Genes per chunk for the dense engine
        verbose: Show progress

    Returns:
        Symmetric (n_genes × n_genes) correlation matrix with unit diagonal

    Raises:
        ValueError: If method is unknown
    """
    if method not in CORRELATION_METHODS:
        raise ValueError(
            f"Unknown correlation method '{method}'. Choose from: {', '.join(CORRELATION_METHODS)}"
        )

    data = np.asarray(data, dtype=np.float64)

    if method == 'kendall' or np.isnan(data).any():
        logger.debug(f"Using pandas pairwise-complete {method} correlation for {data.shape[0]} genes")
        return _pairwise_complete(data, method)

    if method == 'spearman':
        data = rank_transform(data)

    return compute_correlation_matrix_chunked(data, chunk_size=chunk_size, verbose=verbose)
