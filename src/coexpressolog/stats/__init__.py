"""Multiple testing correction."""

from coexpressolog.stats.correction import (
    AdjustedConservationRecord,
    MultipleTestingCorrector,
    adjusted_records_to_frame,
    apply_fdr_correction,
)

__all__ = [
    'AdjustedConservationRecord',
    'MultipleTestingCorrector',
    'adjusted_records_to_frame',
    'apply_fdr_correction',
]
