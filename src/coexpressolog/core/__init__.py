"""
Core data structures shared by every pipeline stage.

1. ExpressionMatrix: genes × samples values for one species and tissue
2. OrthologTable: HOG membership and species life habits
3. ScoringMode: signed / unsigned pass tag
4. RunManifest: per-unit completion report

All objects are immutable once built (RunManifest is append-only).
"""

from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.orthologs import (
    ANNUAL,
    PERENNIAL,
    OrthologPair,
    OrthologPairs,
    OrthologTable,
    normalize_habit,
)
from coexpressolog.core.modes import ScoringMode
from coexpressolog.core.manifest import RunManifest, UnitReport, UnitStatus

__all__ = [
    'ExpressionMatrix',
    'ANNUAL',
    'PERENNIAL',
    'OrthologPair',
    'OrthologTable',
    'normalize_habit',
    'ScoringMode',
    'RunManifest',
    'UnitReport',
    'UnitStatus',
]
