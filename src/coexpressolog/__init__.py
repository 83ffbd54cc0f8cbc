"""
Coexpressolog: conserved co-expression cliques across species.

Finds sets of orthologous genes whose pairwise co-expression is conserved
between every pair of species they come from, and reports them by life habit
(annual, perennial, mixed).

Pipeline:
    network.builder        mutual-rank or CLR co-expression networks per species
    conservation.tester    bidirectional hypergeometric neighborhood tests
    stats.correction       pooled Benjamini-Hochberg correction
    cliques.graph          per-HOG conserved-edge graphs
    cliques.enumeration    maximal cliques per HOG
    cliques.annotation     life-habit annotation and strata
    polarity.divergence    signed vs unsigned polarity report

Examples:
    >>> from coexpressolog import NetworkBuilder, ConservationTester, MultipleTestingCorrector
    >>> from coexpressolog.pipeline import run_pipeline
"""

__version__ = "0.1.0"

from coexpressolog.core import (
    ExpressionMatrix,
    OrthologPair,
    OrthologTable,
    RunManifest,
    ScoringMode,
    UnitStatus,
)
from coexpressolog.network import CorrelationNetwork, InsufficientDataError, NetworkBuilder
from coexpressolog.conservation import ConservationRecord, ConservationTester, TestingSummary
from coexpressolog.stats import AdjustedConservationRecord, MultipleTestingCorrector
from coexpressolog.cliques import (
    AnnotatedClique,
    Clique,
    CliqueAnnotator,
    CliqueBudget,
    CliqueEnumerator,
    CliqueSearchResult,
    ConservedGraphAssembler,
    HOGGraph,
    StratifiedCliques,
)
from coexpressolog.polarity import PolarityDivergenceAnalyzer, flag_polarity_divergence

__all__ = [
    '__version__',
    # Core data
    'ExpressionMatrix',
    'OrthologPair',
    'OrthologTable',
    'RunManifest',
    'ScoringMode',
    'UnitStatus',
    # Networks
    'CorrelationNetwork',
    'InsufficientDataError',
    'NetworkBuilder',
    # Conservation
    'ConservationRecord',
    'ConservationTester',
    'TestingSummary',
    'AdjustedConservationRecord',
    'MultipleTestingCorrector',
    # Cliques
    'AnnotatedClique',
    'Clique',
    'CliqueAnnotator',
    'CliqueBudget',
    'CliqueEnumerator',
    'CliqueSearchResult',
    'ConservedGraphAssembler',
    'HOGGraph',
    'StratifiedCliques',
    # Polarity
    'PolarityDivergenceAnalyzer',
    'flag_polarity_divergence',
]
