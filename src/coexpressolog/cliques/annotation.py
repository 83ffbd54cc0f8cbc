"""
Clique annotation and life-habit stratification.

Each maximal clique is annotated with the species it spans, its life-habit
class and summary statistics of its conserved edges, then split into strata
by life habit.

Life-habit classes:
    Annual:    every member species is annual
    Perennial: every member species is perennial
    Mixed:     anything else, including species without a known habit

Edge statistics:
    mean_p, median_p:  adjusted p-values of the clique's C(k, 2) edges
    mean_effect_size:  mean over both directional effect sizes of every edge

Group-specific cliques:
    ``find_group_specific_cliques`` repeats the search on the conserved edges
    whose two genes both come from one group of species (e.g. all annuals)
    and reports how many of the group's species each clique covers.

Examples:
    >>> from coexpressolog.cliques.annotation import CliqueAnnotator
    >>> annotator = CliqueAnnotator()
    >>> annotated = annotator.annotate(hog_graph, search_result)
    >>> strata = annotator.stratify(annotated)
    >>> strata.annual[['clique_id', 'clique_size', 'species']]
"""

from __future__ import annotations

from dataclasses import dataclass, asdict
from itertools import combinations
from typing import Dict, Iterable, List, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from coexpressolog.cliques.enumeration import CliqueBudget, CliqueSearchResult, enumerate_maximal_cliques
from coexpressolog.cliques.graph import ConservedGraphAssembler, HOGGraph
from coexpressolog.core.orthologs import ANNUAL, PERENNIAL, OrthologTable
from coexpressolog.stats.correction import AdjustedConservationRecord

logger = logging.getLogger(__name__)

__all__ = [
    'AnnotatedClique',
    'StratifiedCliques',
    'CliqueAnnotator',
    'CLIQUE_COLUMNS',
    'GROUP_CLIQUE_COLUMNS',
    'STRATA',
    'classify_life_habit',
    'cliques_to_frame',
    'find_group_specific_cliques',
]

HABIT_ANNUAL = "Annual"
HABIT_PERENNIAL = "Perennial"
HABIT_MIXED = "Mixed"

STRATA = ('all', 'annual', 'perennial', 'mixed')

CLIQUE_COLUMNS = [
    'clique_id', 'hog', 'clique_size', 'genes', 'species', 'life_habit',
    'n_annual_species', 'n_perennial_species', 'n_species',
    'mean_p', 'median_p', 'mean_effect_size', 'n_edges', 'truncated',
]

GROUP_CLIQUE_COLUMNS = [
    'clique_id', 'hog', 'clique_size', 'genes', 'species',
    'n_species_in_clique', 'n_total_group_species', 'coverage_fraction',
    'mean_p', 'median_p', 'mean_effect_size', 'n_edges', 'truncated',
]


def classify_life_habit(habits: Iterable[Optional[str]]) -> str:
    """'Annual', 'Perennial' or 'Mixed' for the habits of a clique's species."""
    habits = list(habits)
    if habits and all(h == ANNUAL for h in habits):
        return HABIT_ANNUAL
    if habits and all(h == PERENNIAL for h in habits):
        return HABIT_PERENNIAL
    return HABIT_MIXED


@dataclass(frozen=True)
class AnnotatedClique:
    """A clique with species, life habit and edge statistics."""
    clique_id: str
    hog: str
    clique_size: int
    genes: tuple
    species: tuple
    life_habit: str
    n_annual_species: int
    n_perennial_species: int
    n_species: int
    mean_p: float
    median_p: float
    mean_effect_size: float
    n_edges: int
    truncated: bool

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['genes'] = ",".join(self.genes)
        d['species'] = "; ".join(self.species)
        return d


def _edge_statistics(G, genes: Sequence[str]) -> Dict:
    pvals = []
    effects = []
    for u, v in combinations(genes, 2):
        data = G.get_edge_data(u, v)
        if data is None:
            continue
        pvals.append(data['adjusted_p'])
        effects.extend((data['effect_size_1'], data['effect_size_2']))
    if not pvals:
        return {'mean_p': np.nan, 'median_p': np.nan, 'mean_effect_size': np.nan, 'n_edges': 0}
    return {
        'mean_p': float(np.mean(pvals)),
        'median_p': float(np.median(pvals)),
        'mean_effect_size': float(np.mean(effects)),
        'n_edges': len(pvals),
    }


def cliques_to_frame(annotated: Sequence[AnnotatedClique]) -> pd.DataFrame:
    """Clique table sorted by size (descending), then mean p."""
    if not annotated:
        return pd.DataFrame(columns=CLIQUE_COLUMNS)
    frame = pd.DataFrame([c.to_dict() for c in annotated], columns=CLIQUE_COLUMNS)
    return frame.sort_values(
        ['clique_size', 'mean_p', 'clique_id'],
        ascending=[False, True, True],
        kind='mergesort',
    ).reset_index(drop=True)


@dataclass(frozen=True)
class StratifiedCliques:
    """Annotated cliques of one tissue and mode, split by life habit."""
    all: pd.DataFrame
    annual: pd.DataFrame
    perennial: pd.DataFrame
    mixed: pd.DataFrame

    def strata(self) -> Dict[str, pd.DataFrame]:
        return {name: getattr(self, name) for name in STRATA}

    def genes(self, stratum: str = 'all') -> List[str]:
        """Sorted unique genes of every clique in a stratum."""
        frame = getattr(self, stratum)
        genes = set()
        for joined in frame['genes']:
            genes.update(g for g in joined.split(",") if g)
        return sorted(genes)


class CliqueAnnotator:
    """Annotates enumerated cliques and splits them by life habit."""

    def annotate(self, hog_graph: HOGGraph, result: CliqueSearchResult) -> List[AnnotatedClique]:
        """
        Annotate the cliques of one HOG.

        Clique ids are ``{hog}_C{n}``, numbered from 1 in enumeration order.
        """
        G = hog_graph.graph
        annotated = []
        for n, clique in enumerate(result.cliques, start=1):
            species_habits = {}
            for gene in clique.genes:
                attrs = G.nodes[gene]
                species_habits[attrs['species']] = attrs.get('life_habit')
            habits = list(species_habits.values())
            stats = _edge_statistics(G, clique.genes)
            annotated.append(AnnotatedClique(
                clique_id=f"{hog_graph.hog}_C{n}",
                hog=hog_graph.hog,
                clique_size=clique.size,
                genes=clique.genes,
                species=tuple(sorted(species_habits)),
                life_habit=classify_life_habit(habits),
                n_annual_species=sum(1 for h in habits if h == ANNUAL),
                n_perennial_species=sum(1 for h in habits if h == PERENNIAL),
                n_species=len(species_habits),
                truncated=clique.truncated,
                **stats,
            ))
        return annotated

    def stratify(self, annotated: Sequence[AnnotatedClique]) -> StratifiedCliques:
        frame = cliques_to_frame(annotated)
        strata = {'all': frame}
        for name, habit in (('annual', HABIT_ANNUAL), ('perennial', HABIT_PERENNIAL), ('mixed', HABIT_MIXED)):
            strata[name] = frame[frame['life_habit'] == habit].reset_index(drop=True)
        logger.info(
            f"{len(frame)} cliques: {len(strata['annual'])} annual, "
            f"{len(strata['perennial'])} perennial, {len(strata['mixed'])} mixed"
        )
        return StratifiedCliques(**strata)


def find_group_specific_cliques(
    adjusted: Sequence[AdjustedConservationRecord],
    table: OrthologTable,
    group_species: Iterable[str],
    threshold: float = 0.05,
    min_clique_size: int = 2,
    budget: Optional[CliqueBudget] = None,
) -> pd.DataFrame:
    """
    Cliques built only from conserved edges within one group of species.

    Args:
        adjusted: Adjusted records of one tissue and mode
        table: Ortholog table
        group_species: Species of the group (e.g. every annual species)
        threshold: Significance cut-off on adjusted p
        min_clique_size: Smallest clique reported (default 2)
        budget: Per-HOG search limits

    Returns:
        DataFrame with GROUP_CLIQUE_COLUMNS sorted by species coverage
        (descending), clique size (descending) and mean p
    """
    group = sorted(set(group_species))
    if not group:
        raise ValueError("group_species is empty")
    members = set(group)

    in_group = [
        r for r in adjusted
        if table.species_of(r.gene1) in members and table.species_of(r.gene2) in members
    ]
    logger.info(
        f"Group of {len(group)} species: {len(in_group)}/{len(adjusted)} records within the group"
    )

    graphs = ConservedGraphAssembler(table, species=group, threshold=threshold).assemble(in_group)
    rows = []
    for hog_graph in graphs:
        result = enumerate_maximal_cliques(hog_graph, min_clique_size=min_clique_size, budget=budget)
        G = hog_graph.graph
        for n, clique in enumerate(result.cliques, start=1):
            species = sorted({G.nodes[g]['species'] for g in clique.genes})
            rows.append({
                'clique_id': f"{hog_graph.hog}_C{n}",
                'hog': hog_graph.hog,
                'clique_size': clique.size,
                'genes': ",".join(clique.genes),
                'species': "; ".join(species),
                'n_species_in_clique': len(species),
                'n_total_group_species': len(group),
                'coverage_fraction': len(species) / len(group),
                'truncated': clique.truncated,
                **_edge_statistics(G, clique.genes),
            })

    if not rows:
        logger.warning("No group-specific cliques found")
        return pd.DataFrame(columns=GROUP_CLIQUE_COLUMNS)

    frame = pd.DataFrame(rows, columns=GROUP_CLIQUE_COLUMNS)
    return frame.sort_values(
        ['n_species_in_clique', 'clique_size', 'mean_p', 'clique_id'],
        ascending=[False, False, True, True],
        kind='mergesort',
    ).reset_index(drop=True)
