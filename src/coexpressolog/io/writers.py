"""
Output writers.

Layout under the output directory:

    {outdir}/manifest.json
    {outdir}/{tissue}/coexpressolog_cliques{suffix}_{tissue}_{stratum}.tsv
    {outdir}/{tissue}/genes{suffix}_{tissue}_{stratum}.txt
    {outdir}/{tissue}/conservation{suffix}_{tissue}.tsv
    {outdir}/{tissue}/summary{suffix}_{tissue}.tsv
    {outdir}/{tissue}/group_cliques{suffix}_{group}_{tissue}.tsv
    {outdir}/{tissue}/polarity_divergence_{tissue}.tsv

``suffix`` is empty for the signed pass and ``_unsigned`` for the unsigned
pass. Every file is written atomically (temp file + rename).
"""

from __future__ import annotations

from pathlib import Path
from typing import List
import logging

import pandas as pd

from coexpressolog.cliques.annotation import STRATA, StratifiedCliques
from coexpressolog.core.manifest import RunManifest
from coexpressolog.core.modes import ScoringMode
from coexpressolog.utils.fileio import atomic_write_json, atomic_write_lines, atomic_write_table

logger = logging.getLogger(__name__)

__all__ = [
    'tissue_dir',
    'write_cliques',
    'write_conservation',
    'write_summary',
    'write_group_cliques',
    'write_polarity',
    'write_manifest',
]


def tissue_dir(outdir: Path, tissue: str) -> Path:
    return Path(outdir) / tissue


def write_cliques(outdir: Path, tissue: str, mode: ScoringMode, cliques: StratifiedCliques) -> List[Path]:
    """
    Write one clique table and one gene list per life-habit stratum.

    Returns:
        Paths written
    """
    directory = tissue_dir(outdir, tissue)
    suffix = ScoringMode.parse(mode).file_suffix
    written = []
    for stratum in STRATA:
        table_path = directory / f"coexpressolog_cliques{suffix}_{tissue}_{stratum}.tsv"
        genes_path = directory / f"genes{suffix}_{tissue}_{stratum}.txt"
        atomic_write_table(table_path, getattr(cliques, stratum))
        atomic_write_lines(genes_path, cliques.genes(stratum))
        written.extend([table_path, genes_path])
    logger.info(f"Wrote {len(cliques.all)} {ScoringMode.parse(mode).value} cliques for {tissue} to {directory}")
    return written


def write_conservation(outdir: Path, tissue: str, mode: ScoringMode, table: pd.DataFrame) -> Path:
    path = tissue_dir(outdir, tissue) / f"conservation{ScoringMode.parse(mode).file_suffix}_{tissue}.tsv"
    atomic_write_table(path, table)
    return path


def write_summary(outdir: Path, tissue: str, mode: ScoringMode, summary: pd.DataFrame) -> Path:
    path = tissue_dir(outdir, tissue) / f"summary{ScoringMode.parse(mode).file_suffix}_{tissue}.tsv"
    atomic_write_table(path, summary)
    return path


def write_group_cliques(outdir: Path, tissue: str, mode: ScoringMode, group: str, cliques: pd.DataFrame) -> Path:
    suffix = ScoringMode.parse(mode).file_suffix
    path = tissue_dir(outdir, tissue) / f"group_cliques{suffix}_{group}_{tissue}.tsv"
    atomic_write_table(path, cliques)
    return path


def write_polarity(outdir: Path, tissue: str, polarity: pd.DataFrame) -> Path:
    path = tissue_dir(outdir, tissue) / f"polarity_divergence_{tissue}.tsv"
    atomic_write_table(path, polarity)
    return path


def write_manifest(outdir: Path, manifest: RunManifest) -> Path:
    path = Path(outdir) / "manifest.json"
    atomic_write_json(path, manifest.to_dict())
    logger.info(f"Run manifest: {manifest.counts()} -> {path}")
    return path
