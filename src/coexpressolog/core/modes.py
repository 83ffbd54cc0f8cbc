"""
Scoring modes for the two passes of the conservation pipeline.

The pipeline runs once on signed correlations and once on absolute
correlations. Both passes share every stage; only the transform applied to
the correlation matrix before ranking differs, so the mode is carried as a tag
instead of duplicating code paths.

Examples:
    >>> from coexpressolog.core.modes import ScoringMode
    >>> ScoringMode.parse("unsigned").file_suffix
    '_unsigned'
"""

from __future__ import annotations

from enum import Enum

import numpy as np

__all__ = ['ScoringMode']


class ScoringMode(str, Enum):
    """
    Correlation scoring mode.

    Attributes:
        SIGNED: Rank raw correlations (strong negative correlation is weak)
        UNSIGNED: Rank absolute correlations (direction ignored)
    """

    SIGNED = "signed"
    UNSIGNED = "unsigned"

    @classmethod
    def parse(cls, value: str | ScoringMode) -> ScoringMode:
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValueError(
                f"Unknown scoring mode '{value}'. Choose from: "
                f"{', '.join(m.value for m in cls)}"
            ) from None

    def transform(self, correlations: np.ndarray) -> np.ndarray:
        """Correlation strength that gets ranked in this mode."""
        if self is ScoringMode.UNSIGNED:
            return np.abs(correlations)
        return correlations

    @property
    def file_suffix(self) -> str:
        """Suffix used in output file names ('' for signed)."""
        return "" if self is ScoringMode.SIGNED else "_unsigned"
