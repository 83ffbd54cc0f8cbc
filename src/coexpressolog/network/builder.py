"""
Mutual-rank and CLR co-expression networks.

Each species' genes × genes correlation matrix is normalized (mutual rank by
default, or CLR) and thresholded to a fixed density, so that networks of
species with very different sample sizes or expression dynamics are
comparable.

Algorithm (MR):
    1. Correlation matrix (Spearman by default) of all genes
    2. Directional rank: rank(i→j) is the rank of gene j among all of gene
       i's correlations, strongest first (rank 1). Ties get average ranks.
    3. Mutual rank: MR(i, j) = sqrt(rank(i→j) × rank(j→i)); lower is stronger
    4. Keep the floor(density × N) gene pairs with the lowest MR, where
       N = n(n-1)/2 is the number of possible pairs

Algorithm (CLR):
    1. Same correlation matrix
    2. z-score every column of the matrix (sample sd), negatives set to 0
    3. CLR = sqrt(z·zᵀ + zᵀ·z); higher is stronger
    4. Keep the floor(density × N) gene pairs with the highest CLR score

Tie-break:
    Upper-triangle pairs are enumerated in row-major order and sorted stably
    on the score, so pairs with equal score at the boundary are kept in
    pair-index order. The edge count is always exactly floor(density × N)
    and results are bit-reproducible.

Unsigned variant:
    The same procedure applied to |r|. Signed and unsigned networks of one
    species reuse a single correlation matrix.

Examples:
    >>> from coexpressolog.network.builder import NetworkBuilder
    >>> from coexpressolog.core.modes import ScoringMode
    >>>
    >>> builder = NetworkBuilder(method="spearman", density=0.03)
    >>> networks = builder.build_all(matrix, modes=[ScoringMode.SIGNED, ScoringMode.UNSIGNED])
    >>> signed = networks[ScoringMode.SIGNED]
    >>> signed.neighbors("Bradi1g00200")
    frozenset({...})
"""

from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple
import logging
import math
import time

import numpy as np
import pandas as pd
from scipy.stats import rankdata

from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.modes import ScoringMode
from coexpressolog.utils.correlation_matrix import CORRELATION_METHODS, correlation_matrix

logger = logging.getLogger(__name__)

__all__ = [
    'InsufficientDataError',
    'CorrelationNetwork',
    'NetworkBuilder',
    'NORM_METHODS',
    'clr_matrix',
    'mutual_rank_matrix',
    'select_density_edges',
]

NORM_METHODS = ('MR', 'CLR')

# Absorbs float error in density * n_pairs (e.g. 0.29 * 100 = 28.999999999999996)
_DENSITY_EPS = 1e-9


class InsufficientDataError(Exception):
    """Raised when a species/tissue has too few genes or samples for a network."""

    def __init__(self, species: str, tissue: str, reason: str):
        self.species = species
        self.tissue = tissue
        self.reason = reason
        super().__init__(f"{species}/{tissue}: {reason}")


def mutual_rank_matrix(strength: np.ndarray) -> np.ndarray:
    """
    Mutual-rank matrix of a symmetric strength matrix.

    Args:
        strength: (n × n) matrix, larger = stronger co-expression

    Returns:
        (n × n) MR matrix; MR[i, j] == MR[j, i] exactly, diagonal = inf
    """
    s = np.array(strength, dtype=np.float64, copy=True)
    np.fill_diagonal(s, -np.inf)
    # Self ranks last, so other genes get ranks 1..n-1
    ranks = rankdata(-s, method='average', axis=1)
    mr = np.sqrt(ranks * ranks.T)
    np.fill_diagonal(mr, np.inf)
    return mr


def clr_matrix(strength: np.ndarray) -> np.ndarray:
    """
    CLR (context likelihood of relatedness) matrix of a strength matrix.

    Every column is z-scored with the sample standard deviation, negative
    z-scores are set to 0 and the score is sqrt(z·zᵀ + zᵀ·z). Constant
    columns get z = 0.

    Args:
        strength: (n × n) matrix, larger = stronger co-expression

    Returns:
        (n × n) CLR matrix; CLR[i, j] == CLR[j, i] exactly, diagonal = -inf
    """
    s = np.asarray(strength, dtype=np.float64)
    sd = s.std(axis=0, ddof=1)
    with np.errstate(divide='ignore', invalid='ignore'):
        z = np.where(sd > 0, (s - s.mean(axis=0)) / sd, 0.0)
    z[z < 0] = 0.0
    clr = np.sqrt(z @ z.T + z.T @ z)
    clr = (clr + clr.T) / 2
    np.fill_diagonal(clr, -np.inf)
    return clr


def select_density_edges(
    scores: np.ndarray,
    density: float,
    descending: bool = False,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Upper-triangle gene pairs with the strongest scores.

    Args:
        scores: Symmetric score matrix (n × n), e.g. mutual ranks
        density: Fraction of the n(n-1)/2 pairs to keep
        descending: Higher scores are stronger (CLR); default lower (MR)

    Returns:
        (rows, cols) index arrays with rows < cols, ordered by (score, pair index)
    """
    n = scores.shape[0]
    iu, ju = np.triu_indices(n, k=1)
    n_pairs = iu.size
    n_keep = int(math.floor(density * n_pairs + _DENSITY_EPS))
    if n_keep <= 0:
        empty = np.array([], dtype=np.int64)
        return empty, empty
    values = scores[iu, ju]
    if descending:
        values = -values
    order = np.argsort(values, kind='stable')[:n_keep]
    return iu[order].astype(np.int64), ju[order].astype(np.int64)


class CorrelationNetwork:
    """
    Sparse, thresholded co-expression network of one species in one tissue.

    Edges are stored once (row < col) with their MR or CLR score and the raw
    (signed) correlation of the gene pair. Neighborhoods are derived from the
    edge list and are read-only.

    Attributes:
        species: Species name
        tissue: Tissue name
        mode: Scoring mode the network was built in
        gene_ids: Genes (nodes), in matrix order
        density: Density fraction used
        norm_method: 'MR' (lower score = stronger) or 'CLR' (higher = stronger)
        threshold: Weakest score among retained edges (NaN if no edges)
    """

    def __init__(
        self,
        species: str,
        tissue: str,
        mode: ScoringMode,
        gene_ids: Sequence[str],
        rows: np.ndarray,
        cols: np.ndarray,
        weights: np.ndarray,
        correlations: np.ndarray,
        density: float,
        norm_method: str = 'MR',
    ):
        if norm_method not in NORM_METHODS:
            raise ValueError(
                f"Unknown norm method '{norm_method}'. Choose from: {', '.join(NORM_METHODS)}"
            )
        rows = np.asarray(rows, dtype=np.int64)
        cols = np.asarray(cols, dtype=np.int64)
        if not (rows.shape == cols.shape == np.shape(weights) == np.shape(correlations)):
            raise ValueError("Edge arrays must have the same length")
        if np.any(rows == cols):
            raise ValueError("Self-edges are not allowed")

        self._species = species
        self._tissue = tissue
        self._mode = ScoringMode.parse(mode)
        self._gene_ids: Tuple[str, ...] = tuple(str(g) for g in gene_ids)
        self._index = {g: i for i, g in enumerate(self._gene_ids)}
        self._density = float(density)
        self._norm_method = norm_method

        lo =np.minimum(rows, cols)
        hi = np.maximum(rows, cols)
        self._rows = lo
        self._cols = hi
        self._weights = np.asarray(weights, dtype=np.float64).copy()
        self._correlations = np.asarray(correlations, dtype=np.float64).copy()
        for arr in (self._rows, self._cols, self._weights, self._correlations):
            arr.setflags(write=False)

        adjacency: List[set] = [set() for _ in self._gene_ids]
        for i, j in zip(lo.tolist(), hi.tolist()):
            adjacency[i].add(self._gene_ids[j])
            adjacency[j].add(self._gene_ids[i])
        self._neighbors: Dict[str, FrozenSet[str]] = {
            g: frozenset(adjacency[i]) for i, g in enumerate(self._gene_ids)
        }

    @property
    def species(self) -> str:
        return self._species

    @property
    def tissue(self) -> str:
        return self._tissue

    @property
    def mode(self) -> ScoringMode:
        return self._mode

    @property
    def gene_ids(self) -> Tuple[str, ...]:
        return self._gene_ids

    @property
    def density(self) -> float:
        return self._density

    @property
    def norm_method(self) -> str:
        return self._norm_method

    @property
    def n_genes(self) -> int:
        return len(self._gene_ids)

    @property
    def n_edges(self) -> int:
        return int(self._rows.size)

    @property
    def n_possible_pairs(self) -> int:
        n = self.n_genes
        return n * (n - 1) // 2

    @property
    def threshold(self) -> float:
        if not self._weights.size:
            return float('nan')
        if self._norm_method == 'CLR':
            return float(self._weights.min())
        return float(self._weights.max())

    @property
    def edges(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray, np.ndarray]:
        """(rows, cols, score, correlation) read-only arrays."""
        return self._rows, self._cols, self._weights, self._correlations

    def __contains__(self, gene: str) -> bool:
        return gene in self._index

    def neighbors(self, gene: str) -> FrozenSet[str]:
        """Neighborhood of a gene (empty for genes without edges).

        Raises:
            KeyError: If the gene is not a node of this network
        """
        return self._neighbors[gene]

    def has_edge(self, gene1: str, gene2: str) -> bool:
        nbrs = self._neighbors.get(gene1)
        return nbrs is not None and gene2 in nbrs

    def edge_frame(self, genes: Optional[Iterable[str]] = None) -> pd.DataFrame:
        """
        Edges as a DataFrame (gene1, gene2, score, correlation).

        Args:
            genes: Optional gene subset; only edges with both ends in it are kept
        """
        ids = np.asarray(self._gene_ids, dtype=object)
        frame = pd.DataFrame({
            'gene1': ids[self._rows] if self._rows.size else np.array([], dtype=object),
            'gene2': ids[self._cols] if self._cols.size else np.array([], dtype=object),
            'score': self._weights,
            'correlation': self._correlations,
        })
        if genes is not None:
            keep = set(genes)
            frame = frame[frame['gene1'].isin(keep) & frame['gene2'].isin(keep)]
        return frame.reset_index(drop=True)

    def __repr__(self) -> str:
        return (
            f"CorrelationNetwork({self._species}/{self._tissue}, {self._mode.value}: "
            f"{self.n_genes} genes, {self.n_edges} edges, {self._norm_method} density={self._density})"
        )


class NetworkBuilder:
    """
    Builds signed and unsigned co-expression networks from expression matrices.

    Args:
        method: Correlation method ('spearman', 'pearson' or 'kendall')
        density: Fraction of gene pairs kept as edges (0 < density < 1)
        norm_method: Correlation normalization, 'MR' or 'CLR'
        min_genes: Minimum genes required (at least 2)
        min_samples: Minimum samples required (at least 2)
        chunk_size: Genes per chunk for correlation computation
        verbose: Show correlation progress bars
    """

    def __init__(
        self,
        method: str = 'spearman',
        density: float = 0.03,
        norm_method: str = 'MR',
        min_genes: int = 2,
        min_samples: int = 2,
        chunk_size: int = 500,
        verbose: bool = False,
    ):
        if method not in CORRELATION_METHODS:
            raise ValueError(
                f"Unknown correlation method '{method}'. Choose from: {', '.join(CORRELATION_METHODS)}"
            )
        if not 0 < density < 1:
            raise ValueError(f"density must be in (0, 1), got {density}")
        if norm_method not in NORM_METHODS:
            raise ValueError(
                f"Unknown norm method '{norm_method}'. Choose from: {', '.join(NORM_METHODS)}"
            )
        self.method = method
        self.density = density
        self.norm_method = norm_method
        self.min_genes = max(2, min_genes)
        self.min_samples = max(2, min_samples)
        self.chunk_size = chunk_size
        self.verbose = verbose

    def _check(self, matrix: ExpressionMatrix) -> None:
        if matrix.n_genes < self.min_genes:
            raise InsufficientDataError(
                matrix.species, matrix.tissue,
                f"{matrix.n_genes} expressed genes (need >= {self.min_genes})",
            )
        if matrix.n_samples < self.min_samples:
            raise InsufficientDataError(
                matrix.species, matrix.tissue,
                f"{matrix.n_samples} samples (need >= {self.min_samples})",
            )

    def correlations(self, matrix: ExpressionMatrix) -> np.ndarray:
        """
        Correlation matrix of an expression matrix.

        Raises:
            InsufficientDataError: Fewer than min_genes genes or min_samples samples
        """
        self._check(matrix)
        return correlation_matrix(
            matrix.data, method=self.method, chunk_size=self.chunk_size, verbose=self.verbose
        )

    def from_correlation(
        self,
        corr: np.ndarray,
        gene_ids: Sequence[str],
        species: str,
        tissue: str,
        mode: ScoringMode | str = ScoringMode.SIGNED,
    ) -> CorrelationNetwork:
        """
        Threshold a precomputed correlation matrix into a network.

        Args:
            corr: Symmetric correlation matrix (n × n)
            gene_ids: Gene IDs in matrix order
            species: Species name
            tissue: Tissue name
            mode: Scoring mode

        Returns:
            CorrelationNetwork with floor(density × n(n-1)/2) edges
        """
        mode = ScoringMode.parse(mode)
        if corr.shape != (len(gene_ids), len(gene_ids)):
            raise ValueError(
                f"Correlation matrix shape {corr.shape} does not match {len(gene_ids)} genes"
            )

        strength = mode.transform(corr)
        if self.norm_method == 'CLR':
            scores = clr_matrix(strength)
            rows, cols = select_density_edges(scores, self.density, descending=True)
        else:
            scores = mutual_rank_matrix(strength)
            rows, cols = select_density_edges(scores, self.density)
        network = CorrelationNetwork(
            species=species,
            tissue=tissue,
            mode=mode,
            gene_ids=gene_ids,
            rows=rows,
            cols=cols,
            weights=scores[rows, cols],
            correlations=corr[rows, cols],
            density=self.density,
            norm_method=self.norm_method,
        )
        logger.debug(
            f"{species}/{tissue} {mode.value}: {network.n_edges} edges of "
            f"{network.n_possible_pairs} pairs, {self.norm_method} threshold {network.threshold:.3g}"
        )
        return network

    def build(
        self,
        matrix: ExpressionMatrix,
        mode: ScoringMode | str = ScoringMode.SIGNED,
    ) -> CorrelationNetwork:
        """Build one network (see build_all to share the correlation matrix)."""
        return self.build_all(matrix, modes=[mode])[ScoringMode.parse(mode)]

    def build_all(
        self,
        matrix: ExpressionMatrix,
        modes: Iterable[ScoringMode | str] = (ScoringMode.SIGNED, ScoringMode.UNSIGNED),
    ) -> Dict[ScoringMode, CorrelationNetwork]:
        """
        Build networks for several scoring modes from one correlation matrix.

        Raises:
            InsufficientDataError: Fewer than two genes or two samples
        """
        start = time.time()
        corr = self.correlations(matrix)
        gene_ids = [str(g) for g in matrix.gene_ids]
        networks = {}
        for mode in modes:
            mode = ScoringMode.parse(mode)
            networks[mode] = self.from_correlation(
                corr, gene_ids, matrix.species, matrix.tissue, mode
            )
        logger.info(
            f"Built {len(networks)} network(s) for {matrix.species}/{matrix.tissue} "
            f"({matrix.n_genes} genes, {matrix.n_samples} samples) in {time.time() - start:.1f}s"
        )
        return networks
