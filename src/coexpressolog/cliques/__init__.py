"""Conserved-edge graphs, maximal clique enumeration and annotation."""

from coexpressolog.cliques.algorithms import (
    compute_degeneracy_ordering,
    describe_search_space,
    kcore_reduction,
    top_core_nodes,
)
from coexpressolog.cliques.graph import ConservedGraphAssembler, HOGGraph
from coexpressolog.cliques.enumeration import (
    Clique,
    CliqueBudget,
    CliqueEnumerator,
    CliqueSearchResult,
    enumerate_maximal_cliques,
)
from coexpressolog.cliques.annotation import (
    CLIQUE_COLUMNS,
    GROUP_CLIQUE_COLUMNS,
    STRATA,
    AnnotatedClique,
    CliqueAnnotator,
    StratifiedCliques,
    classify_life_habit,
    cliques_to_frame,
    find_group_specific_cliques,
)

__all__ = [
    # Graph reduction
    'compute_degeneracy_ordering',
    'describe_search_space',
    'kcore_reduction',
    'top_core_nodes',
    # Graph assembly
    'ConservedGraphAssembler',
    'HOGGraph',
    # Enumeration
    'Clique',
    'CliqueBudget',
    'CliqueEnumerator',
    'CliqueSearchResult',
    'enumerate_maximal_cliques',
    # Annotation
    'CLIQUE_COLUMNS',
    'GROUP_CLIQUE_COLUMNS',
    'STRATA',
    'AnnotatedClique',
    'CliqueAnnotator',
    'StratifiedCliques',
    'classify_life_habit',
    'cliques_to_frame',
    'find_group_specific_cliques',
]
