"""
Per-unit run manifest.

Work is split into independent units (a species network, a species pair, a
HOG). A failing unit never aborts its siblings; its outcome is recorded here
instead, so the final output always states which units completed, which
completed partially, and which failed and why.

Examples:
    >>> from coexpressolog.core.manifest import RunManifest, UnitStatus
    >>> manifest = RunManifest()
    >>> manifest.record("species_pair", "A__B", UnitStatus.COMPLETED, tissue="leaf")
    >>> manifest.counts()
    {'completed': 1, 'partial': 0, 'failed': 0}
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Optional
import logging

import pandas as pd

logger = logging.getLogger(__name__)

__all__ = [
    'UnitStatus',
    'UnitReport',
    'RunManifest',
]


class UnitStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass(frozen=True)
class UnitReport:
    """
    Outcome of one unit of work.

    Attributes:
        unit_type: 'species_network', 'species_pair', 'hog', 'tissue', ...
        unit_id: Identifier within its type (species name, pair id, HOG id)
        status: Completed, partial or failed
        tissue: Tissue the unit belongs to
        mode: Scoring mode ('signed' / 'unsigned'), None if mode independent
        reason: Why the unit failed or is partial
    """
    unit_type: str
    unit_id: str
    status: UnitStatus
    tissue: Optional[str] = None
    mode: Optional[str] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d['status'] = self.status.value
        return d


@dataclass
class RunManifest:
    """
    Thread-safe collection of unit reports.

    Worker threads append through record(); everything else reads.
    """
    reports: List[UnitReport] = field(default_factory=list)
    started_at: str = field(default_factory=lambda: datetime.now().isoformat())

    def __post_init__(self):
        self._lock = Lock()

    def record(
        self,
        unit_type: str,
        unit_id: str,
        status: UnitStatus,
        tissue: Optional[str] = None,
        mode: Optional[str] = None,
        reason: Optional[str] = None,
    ) -> UnitReport:
        report = UnitReport(unit_type, unit_id, UnitStatus(status), tissue, mode, reason)
        with self._lock:
            self.reports.append(report)
        if report.status is UnitStatus.FAILED:
            logger.warning(f"{unit_type} {unit_id} ({tissue}, {mode}) failed: {reason}")
        elif report.status is UnitStatus.PARTIAL:
            logger.warning(f"{unit_type} {unit_id} ({tissue}, {mode}) partial: {reason}")
        return report

    def extend(self, other: RunManifest) -> None:
        with self._lock:
            self.reports.extend(other.reports)

    def failed(self) -> List[UnitReport]:
        return [r for r in self.reports if r.status is UnitStatus.FAILED]

    def partial(self) -> List[UnitReport]:
        return [r for r in self.reports if r.status is UnitStatus.PARTIAL]

    def completed(self) -> List[UnitReport]:
        return [r for r in self.reports if r.status is UnitStatus.COMPLETED]

    def counts(self) -> Dict[str, int]:
        return {s.value: sum(1 for r in self.reports if r.status is s) for s in UnitStatus}

    @property
    def succeeded(self) -> bool:
        """True if at least one unit completed (fully or partially)."""
        return any(r.status is not UnitStatus.FAILED for r in self.reports)

    def to_frame(self) -> pd.DataFrame:
        columns = ['unit_type', 'unit_id', 'status', 'tissue', 'mode', 'reason']
        return pd.DataFrame([r.to_dict() for r in self.reports], columns=columns)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'started_at': self.started_at,
            'finished_at': datetime.now().isoformat(),
            'counts': self.counts(),
            'units': [r.to_dict() for r in self.reports],
        }
