"""
Tests for the coexpressolog command line.
"""

import json

import pytest
import yaml

from coexpressolog.cli import main


@pytest.fixture
def config_path(tmp_path, input_files):
    expression_path, ortholog_path = input_files
    path = tmp_path / "pipeline.yaml"
    path.write_text(yaml.safe_dump({
        'data': {
            'expression_file': expression_path.name,
            'ortholog_file': ortholog_path.name,
            'output_dir': 'results',
        },
        'species': {'annual': ['A', 'B', 'D'], 'perennial': ['C']},
        'tissues': ['leaf'],
        'network': {'cor_method': 'pearson', 'density': 60 / 435},
        'cliques': {'groups': ['annual', 'perennial']},
    }))
    return path


class TestMain:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "coexpressolog" in capsys.readouterr().out

    def test_version(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            main(['--version'])
        assert excinfo.value.code == 0


class TestValidate:

    def test_valid_config(self, config_path):
        assert main(['validate', '--config', str(config_path)]) == 0

    def test_invalid_density(self, config_path):
        raw = yaml.safe_load(config_path.read_text())
        raw['network']['density'] = 2
        config_path.write_text(yaml.safe_dump(raw))
        assert main(['validate', '--config', str(config_path)]) == 1

    def test_unknown_tissue(self, config_path):
        raw = yaml.safe_load(config_path.read_text())
        raw['tissues'] = ['flower']
        config_path.write_text(yaml.safe_dump(raw))
        assert main(['validate', '--config', str(config_path)]) == 1

    def test_missing_input_file(self, config_path, tmp_path):
        (tmp_path / "hogs.tsv").unlink()
        assert main(['validate', '--config', str(config_path)]) == 1


class TestRun:

    def test_run_writes_outputs(self, config_path, tmp_path):
        assert main(['run', '--config', str(config_path), '--workers', '1']) == 0
        results = tmp_path / "results"
        manifest = json.loads((results / "manifest.json").read_text())
        failed = {(u['unit_type'], u['unit_id']) for u in manifest['units'] if u['status'] == 'failed'}
        assert ('species_network', 'D') in failed
        assert (results / "leaf" / "coexpressolog_cliques_leaf_all.tsv").exists()
        assert (results / "leaf" / "polarity_divergence_leaf.tsv").exists()
        # One perennial species: the perennial group is skipped
        assert (results / "leaf" / "group_cliques_annual_leaf.tsv").exists()
        assert not (results / "leaf" / "group_cliques_perennial_leaf.tsv").exists()

    def test_output_and_no_unsigned_overrides(self, config_path, tmp_path):
        out = tmp_path / "signed_only"
        code = main(['run', '--config', str(config_path), '--workers', '1',
                     '--no-unsigned', '--output', str(out)])
        assert code == 0
        assert (out / "leaf" / "summary_leaf.tsv").exists()
        assert not (out / "leaf" / "summary_unsigned_leaf.tsv").exists()
        assert not (out / "leaf" / "polarity_divergence_leaf.tsv").exists()

    def test_invalid_workers(self, config_path):
        assert main(['run', '--config', str(config_path), '--workers', '0']) == 2

    def test_no_completed_unit(self, config_path, tmp_path):
        raw = yaml.safe_load(config_path.read_text())
        raw['tissues'] = ['flower']
        config_path.write_text(yaml.safe_dump(raw))
        assert main(['run', '--config', str(config_path), '--workers', '1']) == 1
