"""Signed vs unsigned co-expression polarity divergence."""

from coexpressolog.polarity.divergence import (
    POLARITY_COLUMNS,
    PolarityDivergenceAnalyzer,
    flag_polarity_divergence,
)

__all__ = [
    'POLARITY_COLUMNS',
    'PolarityDivergenceAnalyzer',
    'flag_polarity_divergence',
]
