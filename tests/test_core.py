"""
Tests for the core data types: ExpressionMatrix, OrthologTable and ScoringMode.
"""

import numpy as np
import pandas as pd
import pytest

from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.modes import ScoringMode
from coexpressolog.core.orthologs import OrthologPair, OrthologTable, normalize_habit


def _matrix(data, genes=None, samples=None):
    n_genes, n_samples = np.shape(data)
    return ExpressionMatrix(
        data=np.asarray(data, dtype=float),
        gene_ids=pd.Index(genes or [f"g{i}" for i in range(n_genes)]),
        sample_ids=pd.Index(samples or [f"s{j}" for j in range(n_samples)]),
        species="Brachypodium_distachyon",
        tissue="leaf",
    )


class TestExpressionMatrix:
    """Validation and subsetting of per-species expression matrices."""

    def test_shape_and_properties(self):
        m = _matrix(np.ones((3, 4)))
        assert m.shape == (3, 4)
        assert m.n_genes == 3
        assert m.n_samples == 4
        assert m.species == "Brachypodium_distachyon"
        assert not m.has_missing

    def test_data_is_read_only(self):
        m = _matrix(np.ones((2, 2)))
        with pytest.raises(ValueError):
            m.data[0, 0] = 5.0

    def test_duplicate_genes_rejected(self):
        with pytest.raises(ValueError, match="Duplicate gene IDs"):
            _matrix(np.ones((2, 2)), genes=["g1", "g1"])

    def test_infinite_values_rejected(self):
        with pytest.raises(ValueError, match="Inf"):
            _matrix([[1.0, np.inf], [0.0, 1.0]])

    def test_nan_allowed(self):
        m = _matrix([[1.0, np.nan], [0.0, 1.0]])
        assert m.has_missing

    def test_shape_mismatch(self):
        with pytest.raises(ValueError, match="gene_ids length"):
            ExpressionMatrix(np.ones((2, 2)), pd.Index(["a"]), pd.Index(["s1", "s2"]), "A", "leaf")

    def test_wrong_types(self):
        with pytest.raises(TypeError):
            ExpressionMatrix([[1.0]], pd.Index(["a"]), pd.Index(["s"]), "A", "leaf")
        with pytest.raises(TypeError):
            ExpressionMatrix(np.ones((1, 1)), ["a"], pd.Index(["s"]), "A", "leaf")

    def test_select_genes_keeps_matrix_order(self):
        m = _matrix(np.arange(12, dtype=float).reshape(4, 3))
        sub = m.select_genes(["g3", "g1", "missing"])
        assert list(sub.gene_ids) == ["g1", "g3"]
        np.testing.assert_array_equal(sub.data, m.data[[1, 3]])
        assert sub.species == m.species and sub.tissue == m.tissue

    def test_to_frame(self):
        m = _matrix(np.ones((2, 3)))
        frame = m.to_frame()
        assert list(frame.index) == ["g0", "g1"]
        assert list(frame.columns) == ["s0", "s1", "s2"]


class TestOrthologTable:
    """HOG membership, life habits and ortholog pair generation."""

    @pytest.fixture
    def table(self):
        return OrthologTable(pd.DataFrame({
            'hog': ['H1', 'H1', 'H1', 'H2', 'H2', 'H3'],
            'species': ['A', 'B', 'B', 'A', 'B', 'A'],
            'gene_id': ['a1', 'b1', 'b2', 'a2', 'b3', 'a4'],
            'life_habit': ['annual', 'perennial', 'perennial', 'annual', 'perennial', 'annual'],
            'is_core': [True, True, False, True, True, True],
        }))

    def test_paralogs_form_cartesian_product(self, table):
        pairs = table.pairs_for('A', 'B')
        assert pairs == [
            OrthologPair('H1', 'H1', 'a1', 'b1'),
            OrthologPair('H1', 'H1', 'a1', 'b2'),
            OrthologPair('H2', 'H2', 'a2', 'b3'),
        ]

    def test_hog_missing_in_one_species_gives_no_pairs(self, table):
        assert all(p.hog != 'H3' for p in table.pairs_for('A', 'B'))

    def test_unpaired_genes_kept(self, table):
        pairs = table.pairs_for('A', 'B')
        assert pairs.unpaired1 == ('a4',)
        assert pairs.unpaired2 == ()
        assert table.pairs_for('B', 'A').unpaired2 == ('a4',)

    def test_gene_count_filters(self, table):
        assert [p.hog for p in table.pairs_for('A', 'B', max_genes=1)] == ['H2']
        assert [p.hog for p in table.pairs_for('A', 'B', min_genes=2)] == []

    def test_core_only(self, table):
        pairs = table.pairs_for('A', 'B', core_only=True)
        assert ('a1', 'b2') not in {(p.gene1, p.gene2) for p in pairs}

    def test_lookups(self, table):
        assert table.species == ['A', 'B']
        assert table.hogs == ['H1', 'H2', 'H3']
        assert table.species_of('b2') == 'B'
        assert table.hog_of('a2') == 'H2'
        assert table.genes_of('A') == {'a1', 'a2', 'a4'}
        assert table.habit_of('A') == 'annual'
        assert table.habit_of('B') == 'perennial'
        assert table.habit_of('Z') is None

    def test_orthogroup_defaults_to_hog(self, table):
        assert (table.frame['orthogroup'] == table.frame['hog']).all()

    def test_habit_override(self):
        frame = pd.DataFrame({'hog': ['H1', 'H1'], 'species': ['A', 'B'], 'gene_id': ['a1', 'b1'],
                              'life_habit': ['annual', 'annual']})
        table = OrthologTable(frame, habits={'B': 'Perennial'})
        assert table.habit_of('B') == 'perennial'
        assert table.habit_of('A') == 'annual'

    def test_species_spaces_normalized(self):
        frame = pd.DataFrame({'hog': ['H1'], 'species': ['Oryza sativa'], 'gene_id': ['o1']})
        table = OrthologTable(frame)
        assert table.species == ['Oryza_sativa']

    def test_gene_in_two_hogs_rejected(self):
        frame = pd.DataFrame({'hog': ['H1', 'H2'], 'species': ['A', 'A'], 'gene_id': ['a1', 'a1']})
        with pytest.raises(ValueError, match="more than one HOG"):
            OrthologTable(frame)

    def test_missing_columns(self):
        with pytest.raises(ValueError, match="missing required columns"):
            OrthologTable(pd.DataFrame({'hog': ['H1'], 'gene_id': ['a1']}))

    def test_normalize_habit(self):
        assert normalize_habit(' Annual ') == 'annual'
        assert normalize_habit('PERENNIAL') == 'perennial'
        assert normalize_habit('biennial') is None
        assert normalize_habit(float('nan')) is None
        assert normalize_habit(None) is None


class TestScoringMode:

    def test_parse(self):
        assert ScoringMode.parse("Signed") is ScoringMode.SIGNED
        assert ScoringMode.parse(ScoringMode.UNSIGNED) is ScoringMode.UNSIGNED
        with pytest.raises(ValueError, match="Unknown scoring mode"):
            ScoringMode.parse("absolute")

    def test_transform(self):
        r = np.array([[1.0, -0.5], [-0.5, 1.0]])
        np.testing.assert_array_equal(ScoringMode.SIGNED.transform(r), r)
        np.testing.assert_array_equal(ScoringMode.UNSIGNED.transform(r), np.abs(r))

    def test_file_suffix(self):
        assert ScoringMode.SIGNED.file_suffix == ""
        assert ScoringMode.UNSIGNED.file_suffix == "_unsigned"
