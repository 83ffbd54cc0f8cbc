"""
Tests for mutual-rank and CLR network construction.

Validates:
- Mutual rank symmetry and the self-exclusion rule
- CLR z-scoring, symmetry and highest-score selection
- Exact floor(density × N) edge count and the stable tie-break
- Signed vs unsigned ranking from one correlation matrix
- Insufficient-data errors
"""

import math

import numpy as np
import pandas as pd
import pytest

from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.modes import ScoringMode
from coexpressolog.network.builder import (
    CorrelationNetwork,
    InsufficientDataError,
    NetworkBuilder,
    clr_matrix,
    mutual_rank_matrix,
    select_density_edges,
)

from conftest import POLARITY_CORRELATION, make_expression_matrix


GENES4 = ['g0', 'g1', 'g2', 'g3']


class TestMutualRank:

    def test_symmetric_with_infinite_diagonal(self):
        rng = np.random.RandomState(0)
        x = rng.randn(15, 15)
        s = (x + x.T) / 2
        mr = mutual_rank_matrix(s)
        assert np.array_equal(mr, mr.T)
        assert np.all(np.isinf(np.diag(mr)))

    def test_ranks_exclude_self(self):
        """Each gene's strongest partner has directional rank 1, so MR >= 1."""
        mr = mutual_rank_matrix(POLARITY_CORRELATION)
        off = mr[~np.eye(4, dtype=bool)]
        assert off.min() == pytest.approx(1.0)
        assert off.max() <= 3.0

    def test_known_values(self):
        mr = mutual_rank_matrix(np.abs(POLARITY_CORRELATION))
        assert mr[0, 1] == pytest.approx(1.0)
        assert mr[1, 2] == pytest.approx(math.sqrt(2))
        assert mr[0, 2] == pytest.approx(3.0)

    def test_ties_get_average_ranks(self):
        s = np.ones((3, 3))
        mr = mutual_rank_matrix(s)
        # Two partners tied for ranks 1 and 2 -> both 1.5
        assert mr[0, 1] == pytest.approx(1.5)


class TestClrMatrix:

    def test_symmetric_with_nonnegative_scores(self):
        rng = np.random.RandomState(0)
        x = rng.randn(15, 15)
        clr = clr_matrix((x + x.T) / 2)
        assert np.array_equal(clr, clr.T)
        assert np.all(np.isneginf(np.diag(clr)))
        assert clr[~np.eye(15, dtype=bool)].min() >= 0

    def test_column_zscores_use_sample_sd(self):
        s = np.abs(POLARITY_CORRELATION)
        frame = pd.DataFrame(s)
        z = ((frame - frame.mean()) / frame.std()).clip(lower=0).values
        expected = np.sqrt(z @ z.T + z.T @ z)
        clr = clr_matrix(s)
        off = ~np.eye(4, dtype=bool)
        np.testing.assert_allclose(clr[off], expected[off])

    def test_constant_columns_score_zero(self):
        clr = clr_matrix(np.ones((3, 3)))
        assert np.all(clr[~np.eye(3, dtype=bool)] == 0)


class TestDensityEdges:

    def test_exact_floor_count(self):
        mr = mutual_rank_matrix(np.random.RandomState(1).rand(20, 20))
        rows, cols = select_density_edges(mr, 0.1)
        assert len(rows) == 19  # floor(0.1 * 190)
        assert np.all(rows < cols)

    def test_zero_edges_when_density_too_low(self):
        mr = mutual_rank_matrix(np.random.RandomState(1).rand(4, 4))
        rows, cols = select_density_edges(mr, 0.1)  # floor(0.6) = 0
        assert len(rows) == 0 and len(cols) == 0

    def test_ties_broken_by_pair_index(self):
        """All MR equal: the first pairs in row-major order are kept."""
        mr = np.full((5, 5), 2.0)
        np.fill_diagonal(mr, np.inf)
        rows, cols = select_density_edges(mr, 0.3)
        assert list(zip(rows.tolist(), cols.tolist())) == [(0, 1), (0, 2), (0, 3)]

    def test_lowest_mutual_rank_kept(self):
        mr = mutual_rank_matrix(POLARITY_CORRELATION)
        rows, cols = select_density_edges(mr, 0.5)
        kept = set(zip(rows.tolist(), cols.tolist()))
        iu, ju = np.triu_indices(4, k=1)
        dropped = [mr[i, j] for i, j in zip(iu.tolist(), ju.tolist()) if (i, j) not in kept]
        assert mr[rows, cols].max() <= min(dropped)

    def test_descending_keeps_highest(self):
        scores = np.array([
            [-np.inf, 0.1, 0.9, 0.5],
            [0.1, -np.inf, 0.7, 0.3],
            [0.9, 0.7, -np.inf, 0.2],
            [0.5, 0.3, 0.2, -np.inf],
        ])
        rows, cols = select_density_edges(scores, 0.5, descending=True)
        assert list(zip(rows.tolist(), cols.tolist())) == [(0, 2), (1, 2), (0, 3)]

    def test_descending_ties_broken_by_pair_index(self):
        scores = np.full((5, 5), 2.0)
        np.fill_diagonal(scores, -np.inf)
        rows, cols = select_density_edges(scores, 0.3, descending=True)
        assert list(zip(rows.tolist(), cols.tolist())) == [(0, 1), (0, 2), (0, 3)]


class TestNetworkBuilder:

    def test_signed_and_unsigned_from_one_matrix(self):
        builder = NetworkBuilder(density=0.2)
        signed = builder.from_correlation(POLARITY_CORRELATION, GENES4, 'A', 'leaf', 'signed')
        unsigned = builder.from_correlation(POLARITY_CORRELATION, GENES4, 'A', 'leaf', 'unsigned')

        assert signed.n_edges == unsigned.n_edges == 1
        assert unsigned.has_edge('g0', 'g1')
        assert signed.has_edge('g1', 'g2')
        assert not signed.has_edge('g0', 'g1')

        # Edges keep the raw signed correlation
        _, _, _, corr = unsigned.edges
        assert corr[0] == pytest.approx(-0.95)

    def test_neighbors_symmetric(self):
        builder = NetworkBuilder(density=0.5)
        net = builder.from_correlation(POLARITY_CORRELATION, GENES4, 'A', 'leaf')
        for gene in GENES4:
            for other in net.neighbors(gene):
                assert gene in net.neighbors(other)
        assert net.neighbors('g2') == frozenset({'g1', 'g3'})

    def test_unknown_gene_raises(self):
        net = NetworkBuilder(density=0.5).from_correlation(POLARITY_CORRELATION, GENES4, 'A', 'leaf')
        assert 'g9' not in net
        with pytest.raises(KeyError):
            net.neighbors('g9')
        assert not net.has_edge('g9', 'g0')

    def test_build_all_shares_correlations(self):
        genes = [f"A_g{i}" for i in range(30)]
        matrix = make_expression_matrix('A', genes)
        networks = NetworkBuilder(density=0.1).build_all(matrix)
        assert set(networks) == {ScoringMode.SIGNED, ScoringMode.UNSIGNED}
        signed = networks[ScoringMode.SIGNED]
        assert signed.n_edges == int(math.floor(0.1 * 435))
        assert signed.n_possible_pairs == 435
        assert signed.gene_ids == tuple(genes)
        assert signed.tissue == 'leaf'

    def test_build_is_reproducible(self):
        matrix = make_expression_matrix('A', [f"g{i}" for i in range(25)])
        builder = NetworkBuilder(density=0.05)
        first = builder.build(matrix).edge_frame()
        second = builder.build(matrix).edge_frame()
        pd.testing.assert_frame_equal(first, second)

    def test_threshold_is_largest_kept_rank(self):
        net = NetworkBuilder(density=0.5).from_correlation(POLARITY_CORRELATION, GENES4, 'A', 'leaf')
        _, _, weights, _ = net.edges
        assert net.threshold == weights.max()

    def test_clr_network_density_and_threshold(self):
        genes = [f"A_g{i}" for i in range(30)]
        matrix = make_expression_matrix('A', genes)
        builder = NetworkBuilder(density=0.1, norm_method='CLR')
        net = builder.build(matrix)
        assert net.norm_method == 'CLR'
        assert net.n_edges == int(math.floor(0.1 * 435))

        _, _, scores, _ = net.edges
        assert net.threshold == scores.min()
        clr = clr_matrix(builder.correlations(matrix))
        kept = set(net.edge_frame()[['gene1', 'gene2']].itertuples(index=False, name=None))
        iu, ju = np.triu_indices(30, k=1)
        dropped = [clr[i, j] for i, j in zip(iu.tolist(), ju.tolist())
                   if (genes[i], genes[j]) not in kept]
        assert net.threshold >= max(dropped)

    def test_clr_neighbors_symmetric(self):
        net = NetworkBuilder(density=0.5, norm_method='CLR').from_correlation(
            POLARITY_CORRELATION, GENES4, 'A', 'leaf', 'unsigned'
        )
        assert net.n_edges == 3
        for gene in GENES4:
            for other in net.neighbors(gene):
                assert gene in net.neighbors(other)

    def test_edge_frame_subset(self):
        net = NetworkBuilder(density=0.5).from_correlation(POLARITY_CORRELATION, GENES4, 'A', 'leaf')
        frame = net.edge_frame(['g1', 'g2'])
        assert list(frame.columns) == ['gene1', 'gene2', 'score', 'correlation']
        assert frame[['gene1', 'gene2']].values.tolist() == [['g1', 'g2']]

    def test_too_few_samples(self):
        matrix = make_expression_matrix('D', ['d1', 'd2', 'd3'], n_samples=1)
        with pytest.raises(InsufficientDataError) as exc_info:
            NetworkBuilder().build(matrix)
        assert exc_info.value.species == 'D'
        assert 'samples' in exc_info.value.reason

    def test_too_few_genes(self):
        matrix = ExpressionMatrix(np.ones((1, 5)), pd.Index(['g1']),
                                  pd.Index([f"s{i}" for i in range(5)]), 'A', 'leaf')
        with pytest.raises(InsufficientDataError, match="genes"):
            NetworkBuilder().build(matrix)

    def test_invalid_parameters(self):
        with pytest.raises(ValueError, match="density"):
            NetworkBuilder(density=1.0)
        with pytest.raises(ValueError, match="correlation method"):
            NetworkBuilder(method='cosine')
        with pytest.raises(ValueError, match="norm method"):
            NetworkBuilder(norm_method='RANK')

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="does not match"):
            NetworkBuilder().from_correlation(POLARITY_CORRELATION, ['g0'], 'A', 'leaf')


class TestCorrelationNetwork:

    def test_self_edges_rejected(self):
        with pytest.raises(ValueError, match="Self-edges"):
            CorrelationNetwork('A', 'leaf', 'signed', ['g0', 'g1'], [0], [0], [1.0], [0.5], 0.1)

    def test_edge_arrays_normalized(self):
        net = CorrelationNetwork('A', 'leaf', 'signed', ['g0', 'g1'], [1], [0], [1.0], [0.5], 0.1)
        rows, cols, _, _ = net.edges
        assert rows[0] == 0 and cols[0] == 1
        assert net.has_edge('g1', 'g0')

    def test_empty_network(self):
        net = CorrelationNetwork('A', 'leaf', 'signed', ['g0', 'g1'], [], [], [], [], 0.1)
        assert net.n_edges == 0
        assert np.isnan(net.threshold)
        assert net.neighbors('g0') == frozenset()
        assert net.edge_frame().empty
