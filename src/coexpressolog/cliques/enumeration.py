"""
Maximal clique enumeration on per-HOG conserved-edge graphs.

A coexpressolog clique is a set of genes of one HOG, from at least two
species, in which every cross-species pair is significantly conserved. Each
maximal clique of the HOG graph is reported once.

Algorithm:
    1. K-core reduction to the (m-1)-core, m = max(2, min_clique_size)
    2. Optional node budget: graphs still larger than max_nodes are searched
       on the max_nodes vertices of highest core number
    3. nx.find_cliques (Bron-Kerbosch with Tomita pivoting)
    4. Keep cliques of size >= m

Guarantees (without truncation):
    - Soundness: every reported set is a clique of the HOG graph
    - Maximality: no reported clique extends to a larger clique
    - Completeness: every maximal clique of size >= m is reported

Budgets:
    Exceeding max_nodes, max_cliques or timeout_seconds never raises. The
    cliques found so far are returned with truncated=True and the reason,
    and a warning is logged.

Examples:
    >>> from coexpressolog.cliques.enumeration import CliqueEnumerator, CliqueBudget
    >>> enumerator = CliqueEnumerator(min_clique_size=3, budget=CliqueBudget(timeout_seconds=60))
    >>> result = enumerator.enumerate(hog_graph)
    >>> [c.genes for c in result.cliques]
    [('Bd1g001', 'Hv2g004', 'Os3g010')]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple
import logging
import time

import networkx as nx

from coexpressolog.cliques.algorithms import describe_search_space, kcore_reduction, top_core_nodes
from coexpressolog.cliques.graph import HOGGraph

logger = logging.getLogger(__name__)

__all__ = [
    'Clique',
    'CliqueBudget',
    'CliqueSearchResult',
    'CliqueEnumerator',
    'enumerate_maximal_cliques',
]


@dataclass(frozen=True)
class Clique:
    """
    One maximal clique of a HOG graph.

    Attributes:
        hog: HOG the clique belongs to
        genes: Member genes, sorted
        size: Number of genes
        truncated: The search that produced it hit a budget
    """
    hog: str
    genes: Tuple[str, ...]
    size: int
    truncated: bool = False


@dataclass(frozen=True)
class CliqueBudget:
    """
    Resource limits for one HOG search (None = unlimited).

    The timeout is checked only when networkx yields a maximal clique. A long
    stretch of the search that yields no new clique can run past
    ``timeout_seconds``; ``max_nodes`` is the hard bound on search size.

    Attributes:
        max_nodes: Vertices searched after k-core reduction
        max_cliques: Cliques reported
        timeout_seconds: Wall-clock time for the search, checked between
            yielded cliques
    """
    max_nodes: Optional[int] = 500
    max_cliques: Optional[int] = 100_000
    timeout_seconds: Optional[float] = None

    def __post_init__(self):
        for name in ('max_nodes', 'max_cliques'):
            value = getattr(self, name)
            if value is not None and value < 1:
                raise ValueError(f"{name} must be >= 1 or None, got {value}")
        if self.timeout_seconds is not None and self.timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0 or None, got {self.timeout_seconds}")


@dataclass(frozen=True)
class CliqueSearchResult:
    """Cliques of one HOG and whether the search was cut short."""
    hog: str
    cliques: Tuple[Clique, ...] = field(default_factory=tuple)
    truncated: bool = False
    reason: Optional[str] = None

    @property
    def n_cliques(self) -> int:
        return len(self.cliques)


def enumerate_maximal_cliques(
    hog_graph: HOGGraph,
    min_clique_size: int = 3,
    budget: Optional[CliqueBudget] = None,
) -> CliqueSearchResult:
    """
    Enumerate the maximal cliques of one HOG graph.

    Args:
        hog_graph: Frozen per-HOG graph (not modified)
        min_clique_size: Smallest clique reported; values below 2 mean 2
        budget: Resource limits (default CliqueBudget())

    Returns:
        CliqueSearchResult with cliques ordered by size (descending), then genes
    """
    budget = budget if budget is not None else CliqueBudget()
    min_size = max(2, min_clique_size)
    hog = hog_graph.hog
    start_time = time.time()

    G = kcore_reduction(hog_graph.graph, min_size)
    if G.number_of_nodes() == 0:
        return CliqueSearchResult(hog=hog)

    reasons: List[str] = []
    if budget.max_nodes is not None and G.number_of_nodes() > budget.max_nodes:
        reasons.append(
            f"node budget exceeded ({G.number_of_nodes()} > {budget.max_nodes}); "
            f"searched the {budget.max_nodes} highest-core vertices"
        )
        G = kcore_reduction(G.subgraph(top_core_nodes(G, budget.max_nodes)), min_size)

    if logger.isEnabledFor(logging.DEBUG):
        stats = describe_search_space(G)
        logger.debug(
            f"{hog}: searching {stats['n']} vertices, {stats['m']} edges, "
            f"at most {stats['clique_bound']} maximal cliques ({stats['difficulty']})"
        )

    found: List[Tuple[str, ...]] = []
    for clique_nodes in nx.find_cliques(G):
        if budget.timeout_seconds is not None and (time.time() - start_time) > budget.timeout_seconds:
            reasons.append(f"timeout after {budget.timeout_seconds:.1f}s")
            break
        if len(clique_nodes) < min_size:
            continue
        found.append(tuple(sorted(clique_nodes)))
        if budget.max_cliques is not None and len(found) >= budget.max_cliques:
            reasons.append(f"clique budget reached ({budget.max_cliques})")
            break

    truncated = bool(reasons)
    reason = "; ".join(reasons) if truncated else None
    if truncated:
        logger.warning(f"Clique search for {hog} truncated: {reason}. Found {len(found)} cliques")

    found.sort(key=lambda genes: (-len(genes), genes))
    cliques = tuple(
        Clique(hog=hog, genes=genes, size=len(genes), truncated=truncated)
        for genes in found
    )
    return CliqueSearchResult(hog=hog, cliques=cliques, truncated=truncated, reason=reason)


class CliqueEnumerator:
    """
    Configured maximal clique search.

    Args:
        min_clique_size: Smallest clique reported (default 3, minimum 2)
        budget: Resource limits per HOG
    """

    def __init__(self, min_clique_size: int = 3, budget: Optional[CliqueBudget] = None):
        if min_clique_size < 2:
            raise ValueError(f"min_clique_size must be >= 2, got {min_clique_size}")
        self.min_clique_size = min_clique_size
        self.budget = budget if budget is not None else CliqueBudget()

    def enumerate(self, hog_graph: HOGGraph) -> CliqueSearchResult:
        result = enumerate_maximal_cliques(hog_graph, self.min_clique_size, self.budget)
        logger.debug(
            f"{hog_graph.hog}: {hog_graph.n_nodes} genes, {hog_graph.n_edges} edges, "
            f"{result.n_cliques} cliques"
        )
        return result
