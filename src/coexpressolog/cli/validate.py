"""
Validate command: check a config file against the input tables.

Checks, in order:
    1. Config file parses and passes validate_config()
    2. Expression and ortholog tables exist and have the required columns
    3. Every configured tissue occurs in the expression table
    4. Every configured species occurs in the ortholog table
    5. Warns for configured species without data in a configured tissue
"""

import argparse
import logging
import warnings
from pathlib import Path
from typing import Dict, List

from coexpressolog.config import PipelineConfig

logger = logging.getLogger(__name__)


def register_parser(subparsers: argparse._SubParsersAction) -> None:
    """Register the validate subcommand."""
    parser = subparsers.add_parser(
        "validate",
        help="Check configuration and input tables without running",
        description="Validate the pipeline config and the tissues/species it names against the input data."
    )
    parser.add_argument("--config", "-c", type=Path, required=True,
                        help="Pipeline config (.yaml, .yml or .json)")
    parser.set_defaults(func=run_validate)


def validate_inputs(config: PipelineConfig) -> Dict[str, List[str]]:
    """
    Check configured tissues and species against the data.

    Returns:
        Mapping tissue -> configured species missing from that tissue

    Raises:
        FileNotFoundError: If an input table is missing
        ValueError: If a configured tissue or species is absent from the data
    """
    from coexpressolog.io.loaders import read_table

    expression = read_table(
        config.data.expression_file,
        required=('species', 'tissue', 'gene_id', 'sample_id', 'value'),
    )
    orthologs = read_table(config.data.ortholog_file, required=('hog', 'species', 'gene_id'))

    expression_species = set(expression['species'].astype(str).str.replace(' ', '_', regex=False))
    valid_tissues = sorted(set(expression['tissue'].astype(str)))
    valid_species = sorted(set(orthologs['species'].astype(str).str.replace(' ', '_', regex=False)))

    invalid_tissues = sorted(set(config.tissues) - set(valid_tissues))
    if invalid_tissues:
        raise ValueError(
            f"Invalid tissues in config: {', '.join(invalid_tissues)}. "
            f"Available in data: {', '.join(valid_tissues)}"
        )

    requested = config.species.all
    invalid_species = sorted(set(requested) - set(valid_species))
    if invalid_species:
        raise ValueError(
            f"Invalid species in config: {', '.join(invalid_species)}. "
            f"Available in ortholog table: {', '.join(valid_species)}"
        )

    expected = requested or sorted(expression_species & set(valid_species))
    missing: Dict[str, List[str]] = {}
    for tissue in config.tissues or valid_tissues:
        rows = expression[expression['tissue'].astype(str) == tissue]
        present = set(rows['species'].astype(str).str.replace(' ', '_', regex=False))
        absent = sorted(set(expected) - present)
        if absent:
            missing[tissue] = absent
            warnings.warn(
                f"Tissue '{tissue}' missing {len(absent)} species: {', '.join(absent[:3])}",
                UserWarning,
            )
    return missing


def run_validate(args: argparse.Namespace) -> int:
    """Execute the validate command."""
    from coexpressolog.config import build_pipeline_config, load_config

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    logging.captureWarnings(True)

    config_path = args.config.resolve()
    try:
        config = build_pipeline_config(load_config(config_path), base_dir=config_path.parent)
        missing = validate_inputs(config)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Validation failed: {e}")
        return 1

    n_tissues = len(config.tissues) if config.tissues else "all"
    logger.info(
        f"Validation passed: {n_tissues} tissues, {len(config.species.annual)} annual and "
        f"{len(config.species.perennial)} perennial species configured"
    )
    if missing:
        logger.warning(f"{len(missing)} tissues lack some configured species")
    return 0
