"""
Neighborhood conservation testing between species.

Per-pair summaries live in ``coexpressolog.conservation.summary``; it depends
on ``coexpressolog.stats`` and is not imported here.
"""

from coexpressolog.conservation.tester import (
    ConservationRecord,
    ConservationTester,
    TestingSummary,
    hypergeometric_enrichment,
    make_pair_id,
    records_to_frame,
)

__all__ = [
    'ConservationRecord',
    'ConservationTester',
    'TestingSummary',
    'hypergeometric_enrichment',
    'make_pair_id',
    'records_to_frame',
]
