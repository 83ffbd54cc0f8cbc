"""
Per-species-pair conservation summaries.

Counts how many ortholog pairs, genes and HOGs are conserved between two
species, in each direction and reciprocally. Directional p-values are
BH-adjusted within the species pair for these counts; the pooled adjusted p
used for clique edges is reported alongside but not recomputed.

Definitions:
    - conserved in direction 1: adjusted p1 < threshold (species-1 neighborhood
      maps onto the species-2 neighborhood)
    - conserved in direction 2: adjusted p2 < threshold
    - reciprocally conserved: adjusted max(p1, p2) < threshold
    - a gene or HOG counts as conserved if its best pair does

Examples:
    >>> from coexpressolog.conservation.summary import summarize_conservation
    >>> per_pair = summarize_conservation(adjusted, threshold=0.05)
    >>> per_pair[['pair_id', 'n_reciprocal_pairs']]
"""

from __future__ import annotations

from typing import Optional, Sequence
import logging

import numpy as np
import pandas as pd

from coexpressolog.conservation.tester import TestingSummary
from coexpressolog.stats.correction import (
    AdjustedConservationRecord,
    adjusted_records_to_frame,
    apply_fdr_correction,
)

logger = logging.getLogger(__name__)

__all__ = [
    'conservation_table',
    'summarize_conservation',
    'SUMMARY_COLUMNS',
    'TESTING_COLUMNS',
]

SUMMARY_COLUMNS = [
    'pair_id', 'species1', 'species2',
    'n_pairs_tested', 'n_genes1', 'n_genes2', 'n_hogs',
    'n_conserved_pairs_1', 'n_conserved_pairs_2', 'n_reciprocal_pairs',
    'n_conserved_genes1', 'n_conserved_genes2',
    'n_reciprocal_genes1', 'n_reciprocal_genes2',
    'n_conserved_hogs', 'n_empty_neighborhood',
]

TESTING_COLUMNS = ['n_ortholog_pairs', 'n_missing_mapping']


def _adjust_within(values: pd.Series) -> np.ndarray:
    _, adjusted = apply_fdr_correction(values.to_numpy(dtype=np.float64))
    return adjusted


def conservation_table(
    adjusted: Sequence[AdjustedConservationRecord],
    threshold: float = 0.05,
) -> pd.DataFrame:
    """
    Per-record table with within-pair adjusted directional p-values.

    Adds ``adjusted_p1``, ``adjusted_p2``, ``adjusted_reciprocal_p`` and
    ``reciprocal`` (adjusted_reciprocal_p < threshold), sorted by
    reciprocal_p then pair id.
    """
    frame = adjusted_records_to_frame(adjusted)
    if frame.empty:
        for col in ('adjusted_p1', 'adjusted_p2', 'adjusted_reciprocal_p', 'reciprocal'):
            frame[col] = pd.Series(dtype=bool if col == 'reciprocal' else float)
        return frame

    parts = []
    for _, group in frame.groupby('pair_id', sort=True):
        group = group.copy()
        group['adjusted_p1'] = _adjust_within(group['p1'])
        group['adjusted_p2'] = _adjust_within(group['p2'])
        group['adjusted_reciprocal_p'] = _adjust_within(group['reciprocal_p'])
        parts.append(group)
    out = pd.concat(parts, ignore_index=True)
    out['reciprocal'] = out['adjusted_reciprocal_p'] < threshold
    return out.sort_values(
        ['reciprocal_p', 'pair_id', 'gene1', 'gene2'], kind='mergesort'
    ).reset_index(drop=True)


def _with_testing_counts(frame: pd.DataFrame, testing: Sequence[TestingSummary]) -> pd.DataFrame:
    counts = pd.DataFrame(
        [(t.pair_id, t.species1, t.species2, t.n_pairs, t.n_missing_mapping) for t in testing],
        columns=['pair_id', 'species1', 'species2', 'n_ortholog_pairs', 'n_missing_mapping'],
    )
    merged = counts.merge(frame, on=['pair_id', 'species1', 'species2'], how='outer')
    count_columns = [c for c in SUMMARY_COLUMNS + TESTING_COLUMNS if c.startswith('n_')]
    merged[count_columns] = merged[count_columns].fillna(0).astype(int)
    return merged[SUMMARY_COLUMNS + TESTING_COLUMNS].sort_values('pair_id').reset_index(drop=True)


def summarize_conservation(
    adjusted: Sequence[AdjustedConservationRecord],
    threshold: float = 0.05,
    testing: Optional[Sequence[TestingSummary]] = None,
) -> pd.DataFrame:
    """
    One summary row per species pair.

    Args:
        adjusted: Adjusted records of one tissue and mode (any number of pairs)
        threshold: Significance cut-off on adjusted p-values
        testing: Optional tester summaries; adds the ortholog-pair and
            missing-mapping counts, and rows for pairs without records

    Returns:
        DataFrame with SUMMARY_COLUMNS (+ TESTING_COLUMNS), sorted by pair_id
    """
    table = conservation_table(adjusted, threshold)
    if table.empty:
        frame = pd.DataFrame(columns=SUMMARY_COLUMNS)
        return _with_testing_counts(frame, testing) if testing is not None else frame

    rows = []
    for pair_id, group in table.groupby('pair_id', sort=True):
        sig1 = group['adjusted_p1'] < threshold
        sig2 = group['adjusted_p2'] < threshold
        recip = group['reciprocal']

        best1 = group.groupby('gene1')['adjusted_p1'].min()
        best2 = group.groupby('gene2')['adjusted_p2'].min()
        recip1 = group.groupby('gene1')['adjusted_reciprocal_p'].min()
        recip2 = group.groupby('gene2')['adjusted_reciprocal_p'].min()
        hog_best = group.groupby('hog')['adjusted_reciprocal_p'].min()

        rows.append({
            'pair_id': pair_id,
            'species1': group['species1'].iloc[0],
            'species2': group['species2'].iloc[0],
            'n_pairs_tested': len(group),
            'n_genes1': group['gene1'].nunique(),
            'n_genes2': group['gene2'].nunique(),
            'n_hogs': group['hog'].nunique(),
            'n_conserved_pairs_1': int(sig1.sum()),
            'n_conserved_pairs_2': int(sig2.sum()),
            'n_reciprocal_pairs': int(recip.sum()),
            'n_conserved_genes1': int((best1 < threshold).sum()),
            'n_conserved_genes2': int((best2 < threshold).sum()),
            'n_reciprocal_genes1': int((recip1 < threshold).sum()),
            'n_reciprocal_genes2': int((recip2 < threshold).sum()),
            'n_conserved_hogs': int((hog_best < threshold).sum()),
            'n_empty_neighborhood': int(group['empty_neighborhood'].sum()),
        })
        logger.debug(
            f"{pair_id}: {rows[-1]['n_reciprocal_pairs']}/{len(group)} pairs reciprocally conserved"
        )

    frame = pd.DataFrame(rows, columns=SUMMARY_COLUMNS)
    if testing is not None:
        return _with_testing_counts(frame, testing)
    return frame
