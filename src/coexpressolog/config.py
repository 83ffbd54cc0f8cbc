"""
Configuration file support for the coexpressolog pipeline.

Supports YAML and JSON config files with CLI argument override.

Example (pipeline.yaml):

    data:
      expression_file: expression.tsv
      ortholog_file: hogs.tsv
      output_dir: results
    species:
      annual: [Brachypodium_distachyon, Hordeum_vulgare]
      perennial: [Brachypodium_sylvaticum]
    tissues: [leaf, root]
    network:
      cor_method: spearman
      density: 0.03
      norm_method: MR
      unsigned: true
    conservation:
      fdr_threshold: 0.05
    cliques:
      min_clique_size: 3
      groups: [annual]
    polarity:
      percentile: 75

Relative paths are resolved against the directory of the config file.
"""

from __future__ import annotations

import json
import warnings
from argparse import Namespace
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from coexpressolog.core.modes import ScoringMode
from coexpressolog.core.orthologs import ANNUAL, PERENNIAL
from coexpressolog.network.builder import NORM_METHODS
from coexpressolog.utils.correlation_matrix import CORRELATION_METHODS

__all__ = [
    'DataConfig',
    'SpeciesConfig',
    'NetworkConfig',
    'ConservationConfig',
    'CliqueConfig',
    'PolarityConfig',
    'PipelineConfig',
    'load_config',
    'validate_config',
    'build_pipeline_config',
    'merge_config_with_args',
]

SECTIONS = ('data', 'species', 'tissues', 'network', 'conservation', 'cliques', 'polarity')
GROUPS = (ANNUAL, PERENNIAL)


@dataclass
class DataConfig:
    """Input and output locations."""
    expression_file: Optional[Path] = None
    ortholog_file: Optional[Path] = None
    output_dir: Path = Path("results")


@dataclass
class SpeciesConfig:
    """Species to analyze, by life habit. Empty = every species in the data."""
    annual: List[str] = field(default_factory=list)
    perennial: List[str] = field(default_factory=list)

    @property
    def all(self) -> List[str]:
        return sorted(set(self.annual) | set(self.perennial))

    def habits(self) -> Dict[str, str]:
        out = {s: ANNUAL for s in self.annual}
        out.update({s: PERENNIAL for s in self.perennial})
        return out


@dataclass
class NetworkConfig:
    """Co-expression network construction."""
    cor_method: str = "spearman"
    density: float = 0.03
    norm_method: str = "MR"
    unsigned: bool = True

    @property
    def modes(self) -> Tuple[ScoringMode, ...]:
        if self.unsigned:
            return (ScoringMode.SIGNED, ScoringMode.UNSIGNED)
        return (ScoringMode.SIGNED,)


@dataclass
class ConservationConfig:
    """Conservation testing and FDR correction."""
    fdr_threshold: float = 0.05
    min_genes: int = 1
    max_genes: Optional[int] = None
    core_only: bool = False
    n_workers: int = 4


@dataclass
class CliqueConfig:
    """Clique enumeration."""
    min_clique_size: int = 3
    max_nodes: Optional[int] = 500
    max_cliques: Optional[int] = 100_000
    timeout_seconds: Optional[float] = None
    n_workers: int = 4
    groups: List[str] = field(default_factory=list)


@dataclass
class PolarityConfig:
    percentile: float = 75.0


@dataclass
class PipelineConfig:
    """
    Complete pipeline configuration.

    Mirrors the config file layout section by section.
    """
    data: DataConfig = field(default_factory=DataConfig)
    species: SpeciesConfig = field(default_factory=SpeciesConfig)
    tissues: List[str] = field(default_factory=list)
    network: NetworkConfig = field(default_factory=NetworkConfig)
    conservation: ConservationConfig = field(default_factory=ConservationConfig)
    cliques: CliqueConfig = field(default_factory=CliqueConfig)
    polarity: PolarityConfig = field(default_factory=PolarityConfig)


def load_config(config_path: Path) -> Dict[str, Any]:
    """
    Load configuration from YAML or JSON file.

    Parameters:
        config_path: Path to config file (.yaml, .yml, or .json)

    Returns:
        Dictionary with configuration values

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If file format is unsupported or invalid
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    suffix = config_path.suffix.lower()

    try:
        with open(config_path, 'r') as f:
            if suffix in ('.yaml', '.yml'):
                config = yaml.safe_load(f)
            elif suffix == '.json':
                config = json.load(f)
            else:
                raise ValueError(
                    f"Unsupported config format: {suffix}. "
                    f"Use .yaml, .yml, or .json"
                )
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}")
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}")

    if config is None:
        return {}

    if not isinstance(config, dict):
        raise ValueError("Config file must contain a dictionary/mapping at top level")

    return config


def _section(config: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = config.get(name) or {}
    if not isinstance(value, dict):
        raise ValueError(f"Config section '{name}' must be a mapping, got {type(value).__name__}")
    return value


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _check_optional_positive_int(section: Dict[str, Any], key: str, path: str) -> None:
    value = section.get(key)
    if value is not None and (not _is_int(value) or value < 1):
        raise ValueError(f"{path}.{key} must be a positive integer or null, got: {value}")


def validate_config(config: Dict[str, Any]) -> None:
    """
    Validate configuration structure and values.

    Parameters:
        config: Configuration dictionary

    Raises:
        ValueError: If configuration is invalid (message names the key)

    Warns:
        UserWarning: If a species is listed as both annual and perennial
    """
    unknown = sorted(set(config) - set(SECTIONS))
    if unknown:
        raise ValueError(f"Unknown config sections: {unknown}. Valid sections: {', '.join(SECTIONS)}")

    data = _section(config, 'data')
    for key in ('expression_file', 'ortholog_file'):
        if not data.get(key):
            raise ValueError(f"data.{key} is required")

    species = _section(config, 'species')
    for habit in GROUPS:
        names = species.get(habit, [])
        if not isinstance(names, list) or not all(isinstance(s, str) for s in names):
            raise ValueError(f"species.{habit} must be a list of species names")
    both = set(species.get(ANNUAL, [])) & set(species.get(PERENNIAL, []))
    if both:
        warnings.warn(
            f"Species listed as both annual and perennial: {sorted(both)}; treating as perennial",
            UserWarning,
        )

    tissues = config.get('tissues', [])
    if tissues is None:
        tissues = []
    if not isinstance(tissues, list) or not all(isinstance(t, str) for t in tissues):
        raise ValueError("tissues must be a list of tissue names")

    network = _section(config, 'network')
    method = network.get('cor_method', 'spearman')
    if method not in CORRELATION_METHODS:
        raise ValueError(
            f"Invalid network.cor_method '{method}'. Choose from: {', '.join(CORRELATION_METHODS)}"
        )
    density = network.get('density', 0.03)
    if not _is_number(density) or not 0 < density < 1:
        raise ValueError(f"network.density must be in (0, 1), got: {density}")
    norm_method = network.get('norm_method', 'MR')
    if norm_method not in NORM_METHODS:
        raise ValueError(
            f"Invalid network.norm_method '{norm_method}'. Choose from: {', '.join(NORM_METHODS)}"
        )
    if not isinstance(network.get('unsigned', True), bool):
        raise ValueError(f"network.unsigned must be true or false, got: {network.get('unsigned')}")

    conservation = _section(config, 'conservation')
    fdr = conservation.get('fdr_threshold', 0.05)
    if not _is_number(fdr) or not 0 < fdr <= 1:
        raise ValueError(f"conservation.fdr_threshold must be in (0, 1], got: {fdr}")
    min_genes = conservation.get('min_genes', 1)
    if not _is_int(min_genes) or min_genes < 1:
        raise ValueError(f"conservation.min_genes must be a positive integer, got: {min_genes}")
    _check_optional_positive_int(conservation, 'max_genes', 'conservation')
    max_genes = conservation.get('max_genes')
    if max_genes is not None and max_genes < min_genes:
        raise ValueError(
            f"conservation.max_genes ({max_genes}) must be >= conservation.min_genes ({min_genes})"
        )
    _check_optional_positive_int(conservation, 'n_workers', 'conservation')

    cliques = _section(config, 'cliques')
    min_size = cliques.get('min_clique_size', 3)
    if not _is_int(min_size) or min_size < 2:
        raise ValueError(f"cliques.min_clique_size must be an integer >= 2, got: {min_size}")
    for key in ('max_nodes', 'max_cliques', 'n_workers'):
        _check_optional_positive_int(cliques, key, 'cliques')
    timeout = cliques.get('timeout_seconds')
    if timeout is not None and (not _is_number(timeout) or timeout <= 0):
        raise ValueError(f"cliques.timeout_seconds must be positive or null, got: {timeout}")
    groups = cliques.get('groups') or []
    invalid = [g for g in groups if g not in GROUPS]
    if invalid:
        raise ValueError(f"Invalid cliques.groups {invalid}. Choose from: {', '.join(GROUPS)}")

    polarity = _section(config, 'polarity')
    percentile = polarity.get('percentile', 75)
    if not _is_number(percentile) or not 0 <= percentile <= 100:
        raise ValueError(f"polarity.percentile must be in [0, 100], got: {percentile}")


def _resolve(path: Optional[str], base_dir: Optional[Path]) -> Optional[Path]:
    if path is None:
        return None
    p = Path(path).expanduser()
    if not p.is_absolute() and base_dir is not None:
        p = base_dir / p
    return p


def build_pipeline_config(config: Dict[str, Any], base_dir: Optional[Path] = None) -> PipelineConfig:
    """
    Validate a config dictionary and convert it to a PipelineConfig.

    Parameters:
        config: Dictionary from load_config()
        base_dir: Directory relative paths are resolved against
            (usually the config file's directory)

    Raises:
        ValueError: If configuration is invalid
    """
    validate_config(config)

    data = _section(config, 'data')
    species = _section(config, 'species')
    network = _section(config, 'network')
    conservation = _section(config, 'conservation')
    cliques = _section(config, 'cliques')
    polarity = _section(config, 'polarity')

    annual = [s.replace(' ', '_') for s in species.get(ANNUAL, [])]
    perennial = [s.replace(' ', '_') for s in species.get(PERENNIAL, [])]
    annual = [s for s in annual if s not in set(perennial)]

    defaults = PipelineConfig()
    return PipelineConfig(
        data=DataConfig(
            expression_file=_resolve(data['expression_file'], base_dir),
            ortholog_file=_resolve(data['ortholog_file'], base_dir),
            output_dir=_resolve(data.get('output_dir') or str(defaults.data.output_dir), base_dir),
        ),
        species=SpeciesConfig(annual=annual, perennial=perennial),
        tissues=list(config.get('tissues') or []),
        network=NetworkConfig(
            cor_method=network.get('cor_method', defaults.network.cor_method),
            density=float(network.get('density', defaults.network.density)),
            norm_method=network.get('norm_method', defaults.network.norm_method),
            unsigned=network.get('unsigned', defaults.network.unsigned),
        ),
        conservation=ConservationConfig(
            fdr_threshold=float(conservation.get('fdr_threshold', defaults.conservation.fdr_threshold)),
            min_genes=conservation.get('min_genes', defaults.conservation.min_genes),
            max_genes=conservation.get('max_genes', defaults.conservation.max_genes),
            core_only=bool(conservation.get('core_only', defaults.conservation.core_only)),
            n_workers=conservation.get('n_workers') or defaults.conservation.n_workers,
        ),
        cliques=CliqueConfig(
            min_clique_size=cliques.get('min_clique_size', defaults.cliques.min_clique_size),
            max_nodes=cliques.get('max_nodes', defaults.cliques.max_nodes),
            max_cliques=cliques.get('max_cliques', defaults.cliques.max_cliques),
            timeout_seconds=cliques.get('timeout_seconds', defaults.cliques.timeout_seconds),
            n_workers=cliques.get('n_workers') or defaults.cliques.n_workers,
            groups=list(cliques.get('groups') or []),
        ),
        polarity=PolarityConfig(
            percentile=float(polarity.get('percentile', defaults.polarity.percentile)),
        ),
    )


def _merge_value(cli_value: Any, config_value: Any, was_explicitly_set: bool) -> Any:
    """
    Merge a single config value with a CLI argument.

    Rules:
    - CLI args ALWAYS override config if explicitly set
    - Otherwise keep the config value
    """
    if was_explicitly_set:
        return cli_value
    return config_value


def merge_config_with_args(config: PipelineConfig, args: Namespace) -> PipelineConfig:
    """
    Apply CLI overrides to a PipelineConfig.

    Priority (highest to lowest):
    1. Explicitly provided CLI arguments (options left at None are not set)
    2. Config file values
    3. Schema defaults

    Recognized arguments: tissue, output, workers, no_unsigned.
    """
    tissue = getattr(args, 'tissue', None)
    config.tissues = _merge_value(list(tissue or []), config.tissues, bool(tissue))

    output = getattr(args, 'output', None)
    config.data.output_dir = _merge_value(
        Path(output) if output else None, config.data.output_dir, output is not None
    )

    workers = getattr(args, 'workers', None)
    config.conservation.n_workers = _merge_value(workers, config.conservation.n_workers, workers is not None)
    config.cliques.n_workers = _merge_value(workers, config.cliques.n_workers, workers is not None)

    no_unsigned = bool(getattr(args, 'no_unsigned', False))
    config.network.unsigned = _merge_value(False, config.network.unsigned, no_unsigned)

    return config
