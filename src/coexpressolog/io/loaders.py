"""
Tabular loaders for expression and ortholog data.

Both inputs are long-format delimited tables. Loaders only parse, validate
and reshape; they never filter genes or normalize values.

Expression table (one row per gene per sample):
    species, tissue, gene_id, sample_id, value[, life_habit]

Ortholog table (one row per gene):
    hog, species, gene_id[, orthogroup, life_habit, is_core]

Species names have spaces replaced by underscores in both tables, so the
same species matches across files.

Examples:
    >>> from pathlib import Path
    >>> from coexpressolog.io.loaders import load_expression_table, load_ortholog_table
    >>> matrices, habits = load_expression_table(Path("expression.tsv"), tissues=["leaf"])
    >>> matrices[("Brachypodium_distachyon", "leaf")]
    ExpressionMatrix(Brachypodium_distachyon/leaf: 25431 genes × 24 samples)
    >>> table = load_ortholog_table(Path("hogs.tsv"), habits=habits)
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple
import logging

import numpy as np
import pandas as pd

from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.orthologs import OrthologTable, normalize_habit

logger = logging.getLogger(__name__)

__all__ = ['read_table', 'load_expression_table', 'load_ortholog_table']

EXPRESSION_COLUMNS = ('species', 'tissue', 'gene_id', 'sample_id', 'value')


def _separator(path: Path) -> str:
    suffixes = [s.lower() for s in path.suffixes if s.lower() not in ('.gz', '.bz2', '.xz', '.zip')]
    if suffixes and suffixes[-1] == '.csv':
        return ','
    return '\t'


def read_table(path: Path, required: Iterable[str] = ()) -> pd.DataFrame:
    """
    Read a CSV/TSV table (compressed files allowed).

    Args:
        path: .csv for comma-separated, anything else tab-separated
        required: Columns that must be present

    Raises:
        FileNotFoundError: If path does not exist
        ValueError: If the file is empty, unreadable or lacks required columns
    """
    if not isinstance(path, Path):
        path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Table not found: {path}")
    if not path.is_file():
        raise ValueError(f"Path is not a file: {path}")

    try:
        df = pd.read_csv(path, sep=_separator(path), dtype={'gene_id': str, 'sample_id': str})
    except pd.errors.EmptyDataError as e:
        raise ValueError(f"Table is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise ValueError(f"Failed to parse {path}: {e}") from e

    df.columns = [str(c).strip() for c in df.columns]
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"{path} is missing required columns: {missing}")
    return df


def load_expression_table(
    path: Path,
    tissues: Optional[Iterable[str]] = None,
    species: Optional[Iterable[str]] = None,
) -> Tuple[Dict[Tuple[str, str], ExpressionMatrix], Dict[str, str]]:
    """
    Load a long expression table into one ExpressionMatrix per species and tissue.

    Args:
        path: Expression table
        tissues: Tissues to keep (None = all)
        species: Species to keep (None = all)

    Returns:
        (matrices keyed by (species, tissue), species -> life habit from the
        optional life_habit column)

    Raises:
        ValueError: On missing columns, non-numeric values or a gene measured
            twice in the same sample
    """
    df = read_table(path, required=EXPRESSION_COLUMNS)
    df['species'] = df['species'].astype(str).str.replace(' ', '_', regex=False)
    df['tissue'] = df['tissue'].astype(str)

    if tissues is not None:
        df = df[df['tissue'].isin(set(tissues))]
    if species is not None:
        df = df[df['species'].isin({s.replace(' ', '_') for s in species})]
    df = df.copy()

    try:
        df['value'] = pd.to_numeric(df['value'])
    except (ValueError, TypeError) as e:
        raise ValueError(f"Non-numeric expression values in {path}: {e}") from e

    habits: Dict[str, str] = {}
    if 'life_habit' in df.columns:
        for sp, tags in df.groupby('species')['life_habit']:
            values = {normalize_habit(t) for t in tags.unique()} - {None}
            if len(values) == 1:
                habits[sp] = values.pop()

    matrices: Dict[Tuple[str, str], ExpressionMatrix] = {}
    for (sp, tissue), rows in df.groupby(['species', 'tissue'], sort=True):
        if rows.duplicated(['gene_id', 'sample_id']).any():
            raise ValueError(f"{path}: gene measured twice in the same sample for {sp}/{tissue}")
        wide = rows.pivot(index='gene_id', columns='sample_id', values='value')
        wide = wide.sort_index(axis=0).sort_index(axis=1)
        matrices[(sp, tissue)] = ExpressionMatrix(
            data=wide.to_numpy(dtype=np.float64),
            gene_ids=pd.Index(wide.index.astype(str), name='gene_id'),
            sample_ids=pd.Index(wide.columns.astype(str), name='sample_id'),
            species=sp,
            tissue=tissue,
        )
        logger.debug(f"Loaded {matrices[(sp, tissue)]}")

    logger.info(
        f"Loaded {len(matrices)} expression matrices for "
        f"{df['species'].nunique()} species and {df['tissue'].nunique()} tissues from {path}"
    )
    return matrices, habits


def load_ortholog_table(path: Path, habits: Optional[Mapping[str, str]] = None) -> OrthologTable:
    """
    Load the HOG table.

    Args:
        path: Ortholog table
        habits: species -> life habit overriding the file's life_habit column

    Raises:
        ValueError: On missing columns or genes assigned to several HOGs
    """
    df = read_table(path, required=('hog', 'species', 'gene_id'))
    table = OrthologTable(df, habits=habits)
    logger.info(
        f"Loaded {len(table)} ortholog rows: {len(table.hogs)} HOGs, "
        f"{len(table.species)} species from {path}"
    )
    return table
