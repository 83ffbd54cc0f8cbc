"""
Tests for the table loaders and output writers.
"""

import json

import numpy as np
import pandas as pd
import pytest

from coexpressolog.cliques.annotation import CliqueAnnotator
from coexpressolog.core.manifest import RunManifest, UnitStatus
from coexpressolog.core.modes import ScoringMode
from coexpressolog.io.loaders import load_expression_table, load_ortholog_table, read_table
from coexpressolog.io.writers import (
    write_cliques,
    write_group_cliques,
    write_manifest,
    write_polarity,
    write_summary,
)
from coexpressolog.polarity.divergence import POLARITY_COLUMNS


def _long_frame():
    rows = []
    for species, habit in (('Hordeum vulgare', 'annual'), ('Brachypodium_sylvaticum', 'perennial')):
        for tissue in ('leaf', 'root'):
            for g in range(3):
                for s in range(4):
                    rows.append({
                        'species': species, 'tissue': tissue, 'gene_id': f"{species[:2]}_{g}",
                        'sample_id': f"{tissue}_{s}", 'value': float(g * 10 + s), 'life_habit': habit,
                    })
    return pd.DataFrame(rows)


class TestReadTable:

    def test_tsv_and_csv(self, tmp_path):
        frame = pd.DataFrame({'hog': ['H1'], 'species': ['A'], 'gene_id': ['0001']})
        frame.to_csv(tmp_path / "t.tsv", sep="\t", index=False)
        frame.to_csv(tmp_path / "t.csv", index=False)
        for name in ("t.tsv", "t.csv"):
            loaded = read_table(tmp_path / name, required=('hog',))
            # gene IDs keep leading zeros
            assert loaded.loc[0, 'gene_id'] == '0001'

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_table(tmp_path / "nope.tsv")

    def test_missing_columns(self, tmp_path):
        pd.DataFrame({'hog': ['H1']}).to_csv(tmp_path / "t.tsv", sep="\t", index=False)
        with pytest.raises(ValueError, match="missing required columns"):
            read_table(tmp_path / "t.tsv", required=('hog', 'gene_id'))

    def test_empty_file(self, tmp_path):
        (tmp_path / "empty.tsv").write_text("")
        with pytest.raises(ValueError, match="empty"):
            read_table(tmp_path / "empty.tsv")


class TestLoadExpressionTable:

    def test_one_matrix_per_species_and_tissue(self, tmp_path):
        path = tmp_path / "expression.tsv"
        _long_frame().to_csv(path, sep="\t", index=False)
        matrices, habits = load_expression_table(path)
        assert sorted(matrices) == [
            ('Brachypodium_sylvaticum', 'leaf'), ('Brachypodium_sylvaticum', 'root'),
            ('Hordeum_vulgare', 'leaf'), ('Hordeum_vulgare', 'root'),
        ]
        m = matrices[('Hordeum_vulgare', 'leaf')]
        assert m.shape == (3, 4)
        assert list(m.gene_ids) == ['Ho_0', 'Ho_1', 'Ho_2']
        np.testing.assert_array_equal(m.data[1], [10.0, 11.0, 12.0, 13.0])
        assert habits == {'Hordeum_vulgare': 'annual', 'Brachypodium_sylvaticum': 'perennial'}

    def test_filters(self, tmp_path):
        path = tmp_path / "expression.tsv"
        _long_frame().to_csv(path, sep="\t", index=False)
        matrices, _ = load_expression_table(path, tissues=['root'], species=['Hordeum vulgare'])
        assert list(matrices) == [('Hordeum_vulgare', 'root')]

    def test_missing_values_become_nan(self, tmp_path):
        frame = _long_frame()
        frame = frame.drop(index=0)
        path = tmp_path / "expression.tsv"
        frame.to_csv(path, sep="\t", index=False)
        matrices, _ = load_expression_table(path)
        assert matrices[('Hordeum_vulgare', 'leaf')].has_missing

    def test_duplicate_measurement(self, tmp_path):
        frame = _long_frame()
        frame = pd.concat([frame, frame.iloc[[0]]])
        path = tmp_path / "expression.tsv"
        frame.to_csv(path, sep="\t", index=False)
        with pytest.raises(ValueError, match="measured twice"):
            load_expression_table(path)

    def test_non_numeric_values(self, tmp_path):
        frame = _long_frame()
        frame['value'] = frame['value'].astype(object)
        frame.loc[0, 'value'] = 'high'
        path = tmp_path / "expression.tsv"
        frame.to_csv(path, sep="\t", index=False)
        with pytest.raises(ValueError, match="Non-numeric"):
            load_expression_table(path)


class TestLoadOrthologTable:

    def test_habit_override(self, tmp_path):
        path = tmp_path / "hogs.csv"
        pd.DataFrame({
            'hog': ['H1', 'H1'], 'species': ['A', 'B'], 'gene_id': ['a1', 'b1'],
            'life_habit': ['annual', 'annual'],
        }).to_csv(path, index=False)
        table = load_ortholog_table(path, habits={'B': 'perennial'})
        assert table.habit_of('A') == 'annual'
        assert table.habit_of('B') == 'perennial'
        assert len(table.pairs_for('A', 'B')) == 1


class TestWriters:

    def test_write_cliques(self, tmp_path):
        strata = CliqueAnnotator().stratify([])
        paths = write_cliques(tmp_path, 'leaf', ScoringMode.UNSIGNED, strata)
        assert len(paths) == 8
        assert (tmp_path / 'leaf' / 'coexpressolog_cliques_unsigned_leaf_annual.tsv').exists()
        assert (tmp_path / 'leaf' / 'genes_unsigned_leaf_mixed.txt').read_text() == ""
        header = (tmp_path / 'leaf' / 'coexpressolog_cliques_unsigned_leaf_all.tsv').read_text()
        assert header.startswith("clique_id\thog\tclique_size")

    def test_write_summary_and_group(self, tmp_path):
        frame = pd.DataFrame({'pair_id': ['A__B'], 'n_pairs_tested': [3]})
        path = write_summary(tmp_path, 'leaf', ScoringMode.SIGNED, frame)
        assert path.name == 'summary_leaf.tsv'
        pd.testing.assert_frame_equal(pd.read_csv(path, sep="\t"), frame)
        group = write_group_cliques(tmp_path, 'leaf', ScoringMode.SIGNED, 'annual', frame)
        assert group.name == 'group_cliques_annual_leaf.tsv'

    def test_write_polarity(self, tmp_path):
        path = write_polarity(tmp_path, 'root', pd.DataFrame(columns=POLARITY_COLUMNS))
        assert path == tmp_path / 'root' / 'polarity_divergence_root.tsv'
        assert path.read_text().strip().split("\t") == POLARITY_COLUMNS

    def test_write_manifest(self, tmp_path):
        manifest = RunManifest()
        manifest.record('species_network', 'D', UnitStatus.FAILED, tissue='leaf', reason='1 samples')
        path = write_manifest(tmp_path, manifest)
        data = json.loads(path.read_text())
        assert data['counts'] == {'completed': 0, 'partial': 0, 'failed': 1}
        assert data['units'][0]['reason'] == '1 samples'
        assert not list(tmp_path.glob("*.tmp"))
