"""
Benjamini-Hochberg correction of conservation p-values.

All conservation records of one tissue and one scoring mode, across every
species pair, form one family of hypotheses. Correcting per species pair
would make the significance of an edge depend on how many other species were
analyzed, so the batch is always pooled before correction.

Statistical Notes:
    Benjamini-Hochberg (FDR):
        - Controls the expected fraction of false discoveries
        - Adjusted p-values are monotone in the raw p-values and never below them
        - Records with p = 1 (e.g. empty neighborhoods) still count in the
          denominator

Examples:
    >>> from coexpressolog.stats.correction import MultipleTestingCorrector
    >>> corrector = MultipleTestingCorrector(threshold=0.05)
    >>> adjusted = corrector.correct(records)
    >>> significant = corrector.significant(adjusted)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple
import logging

import numpy as np
import pandas as pd
from statsmodels.stats.multitest import multipletests

from coexpressolog.conservation.tester import ConservationRecord

logger = logging.getLogger(__name__)

__all__ = [
    'AdjustedConservationRecord',
    'MultipleTestingCorrector',
    'apply_fdr_correction',
    'adjusted_records_to_frame',
]


def apply_fdr_correction(
    pvalues: Sequence[float],
    method: str = 'fdr_bh',
    alpha: float = 0.05,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Apply multiple testing correction to p-values.

    Args:
        pvalues: Raw p-values
        method: statsmodels correction method ('fdr_bh' by default)
        alpha: FDR threshold used for the reject flags

    Returns:
        Tuple of (reject, adjusted) arrays in input order

    Raises:
        ValueError: If p-values contain NaN/Inf or fall outside [0, 1]
    """
    if len(pvalues) == 0:
        return np.array([], dtype=bool), np.array([], dtype=np.float64)

    pvalues = np.asarray(pvalues, dtype=np.float64)

    if np.any(~np.isfinite(pvalues)):
        raise ValueError("p-values contain NaN or Inf")
    if np.any(pvalues < 0) or np.any(pvalues > 1):
        raise ValueError("p-values must be in [0, 1]")

    reject, adjusted, _, _ = multipletests(
        pvalues,
        alpha=alpha,
        method=method,
        returnsorted=False,
    )
    # Guard against rounding putting an adjusted value below its raw p
    adjusted = np.maximum(adjusted, pvalues)
    return reject, adjusted


@dataclass(frozen=True)
class AdjustedConservationRecord:
    """A conservation record with its pooled BH-adjusted p-value."""
    record: ConservationRecord
    adjusted_p: float

    @property
    def pair_id(self) -> str:
        return self.record.pair_id

    @property
    def hog(self) -> str:
        return self.record.hog

    @property
    def gene1(self) -> str:
        return self.record.gene1

    @property
    def gene2(self) -> str:
        return self.record.gene2

    @property
    def species1(self) -> str:
        return self.record.species1

    @property
    def species2(self) -> str:
        return self.record.species2

    @property
    def combined_p(self) -> float:
        return self.record.combined_p

    @property
    def effect_size_1(self) -> float:
        return self.record.effect_size_1

    @property
    def effect_size_2(self) -> float:
        return self.record.effect_size_2

    def to_dict(self) -> Dict:
        d = self.record.to_dict()
        d['adjusted_p'] = self.adjusted_p
        return d


class MultipleTestingCorrector:
    """
    Pooled Benjamini-Hochberg correction.

    Args:
        threshold: Adjusted p-value cut-off; significant means adjusted_p < threshold
        method: statsmodels method name
    """

    def __init__(self, threshold: float = 0.05, method: str = 'fdr_bh'):
        if not 0 < threshold <= 1:
            raise ValueError(f"threshold must be in (0, 1], got {threshold}")
        self.threshold = threshold
        self.method = method

    def correct(self, records: Sequence[ConservationRecord]) -> List[AdjustedConservationRecord]:
        """
        Adjust the combined p-values of a pooled batch.

        Returns:
            Adjusted records in input order (empty for an empty batch)
        """
        if not records:
            logger.debug("Empty correction batch")
            return []
        _, adjusted = apply_fdr_correction(
            [r.combined_p for r in records], method=self.method, alpha=self.threshold
        )
        out = [
            AdjustedConservationRecord(record=r, adjusted_p=float(q))
            for r, q in zip(records, adjusted)
        ]
        n_sig = sum(1 for r in out if r.adjusted_p < self.threshold)
        logger.info(
            f"FDR ({self.method}) over {len(out)} tests: {n_sig} significant at q < {self.threshold}"
        )
        return out

    def significant(self, adjusted: Sequence[AdjustedConservationRecord]) -> List[AdjustedConservationRecord]:
        return [r for r in adjusted if r.adjusted_p < self.threshold]


_COLUMNS = list(ConservationRecord.__dataclass_fields__) + ['adjusted_p']


def adjusted_records_to_frame(adjusted: Sequence[AdjustedConservationRecord]) -> pd.DataFrame:
    """One row per adjusted record, fixed column order."""
    if not adjusted:
        return pd.DataFrame(columns=_COLUMNS)
    return pd.DataFrame([r.to_dict() for r in adjusted], columns=_COLUMNS)
