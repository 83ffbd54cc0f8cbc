"""
Tests for chunked gene-gene correlation matrices.
"""

import numpy as np
import pandas as pd
import pytest
from scipy.stats import spearmanr

from coexpressolog.utils.correlation_matrix import (
    compute_correlation_matrix_chunked,
    correlation_matrix,
    rank_transform,
)


@pytest.fixture
def data():
    return np.random.RandomState(42).randn(12, 9)


class TestCorrelationMatrix:

    def test_pearson_matches_numpy(self, data):
        corr = correlation_matrix(data, method='pearson')
        np.testing.assert_allclose(corr, np.corrcoef(data), atol=1e-12)

    def test_spearman_matches_scipy(self, data):
        corr = correlation_matrix(data, method='spearman')
        expected, _ = spearmanr(data.T)
        np.testing.assert_allclose(corr, expected, atol=1e-12)

    def test_chunk_size_does_not_change_result(self, data):
        small = compute_correlation_matrix_chunked(data, chunk_size=5)
        large = compute_correlation_matrix_chunked(data, chunk_size=1000)
        np.testing.assert_allclose(small, large, atol=1e-14)

    def test_symmetric_unit_diagonal(self, data):
        corr = correlation_matrix(data)
        np.testing.assert_allclose(corr, corr.T, atol=1e-14)
        np.testing.assert_array_equal(np.diag(corr), np.ones(12))
        assert np.all(np.abs(corr) <= 1.0)

    def test_constant_gene_gets_zero(self, data):
        data = data.copy()
        data[3] = 5.0
        with pytest.warns(UserWarning, match="constant genes"):
            corr = correlation_matrix(data, method='pearson')
        assert np.all(corr[3, np.arange(12) != 3] == 0.0)
        assert corr[3, 3] == 1.0

    def test_missing_values_use_pairwise_complete(self, data):
        data = data.copy()
        data[0, 2] = np.nan
        corr = correlation_matrix(data, method='pearson')
        expected = pd.DataFrame(data.T).corr(method='pearson', min_periods=2).to_numpy()
        np.testing.assert_allclose(corr, expected, atol=1e-12)

    def test_kendall(self, data):
        corr = correlation_matrix(data, method='kendall')
        expected = pd.DataFrame(data.T).corr(method='kendall').to_numpy()
        np.testing.assert_allclose(corr, expected, atol=1e-12)

    def test_unknown_method(self, data):
        with pytest.raises(ValueError, match="Unknown correlation method"):
            correlation_matrix(data, method='cosine')

    def test_rank_transform(self):
        ranks = rank_transform(np.array([[3.0, 1.0, 2.0], [1.0, 1.0, 2.0]]))
        np.testing.assert_array_equal(ranks, [[3.0, 1.0, 2.0], [1.5, 1.5, 3.0]])
