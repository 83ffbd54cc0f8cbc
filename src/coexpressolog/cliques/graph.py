"""
Per-HOG graphs of conserved co-expression edges.

After FDR correction, every significant ortholog pair is an edge between two
genes of the same HOG in two different species. Edges of different HOGs never
touch, so the conserved-edge graph falls apart into one small graph per HOG
and cliques are searched HOG by HOG.

Engineering Design:
    - One networkx.Graph per HOG, frozen with nx.freeze once built
    - Nodes are every gene of the HOG in the analyzed species, including
      genes without significant edges, with 'species' and 'life_habit'
      attributes
    - Edges carry 'pair_id', 'p_value', 'adjusted_p', 'effect_size_1' and
      'effect_size_2'
    - A gene pair seen twice keeps the record with the lowest adjusted p

Examples:
    >>> from coexpressolog.cliques.graph import ConservedGraphAssembler
    >>> assembler = ConservedGraphAssembler(table, species=analyzed, threshold=0.05)
    >>> graphs = assembler.assemble(adjusted_records)
    >>> graphs[0].hog, graphs[0].graph.number_of_edges()
    ('N0.HOG0000123', 7)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple
import logging

import networkx as nx

from coexpressolog.core.orthologs import OrthologTable
from coexpressolog.stats.correction import AdjustedConservationRecord

logger = logging.getLogger(__name__)

__all__ = [
    'HOGGraph',
    'ConservedGraphAssembler',
]


@dataclass(frozen=True)
class HOGGraph:
    """Frozen conserved-edge graph of one HOG."""
    hog: str
    graph: nx.Graph

    @property
    def n_nodes(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def n_edges(self) -> int:
        return self.graph.number_of_edges()

    def species(self) -> List[str]:
        return sorted({d['species'] for _, d in self.graph.nodes(data=True)})


class ConservedGraphAssembler:
    """
    Groups significant adjusted records into per-HOG graphs.

    Args:
        table: Ortholog table (HOG membership and life habits)
        species: Species analyzed in this run; nodes are restricted to them
            (None = every species of the table)
        threshold: Significance cut-off (adjusted_p < threshold)
    """

    def __init__(
        self,
        table: OrthologTable,
        species: Optional[Iterable[str]] = None,
        threshold: float = 0.05,
    ):
        self.table = table
        self.species = sorted(species) if species is not None else table.species
        self.threshold = threshold

    def _check(self, record: AdjustedConservationRecord) -> None:
        species1 = self.table.species_of(record.gene1) or record.species1
        species2 = self.table.species_of(record.gene2) or record.species2
        if species1 == species2:
            raise ValueError(
                f"Conserved pair {record.gene1}-{record.gene2} joins two genes of {species1}"
            )
        hog1 = self.table.hog_of(record.gene1)
        hog2 = self.table.hog_of(record.gene2)
        if hog1 != record.hog or hog2 != record.hog:
            raise ValueError(
                f"Conserved pair {record.gene1}-{record.gene2} spans HOGs "
                f"{hog1} and {hog2} (record HOG {record.hog})"
            )

    def significant_edges(
        self, adjusted: Sequence[AdjustedConservationRecord]
    ) -> Dict[str, Dict[Tuple[str, str], AdjustedConservationRecord]]:
        """
        Significant records grouped by HOG and keyed by sorted gene pair.

        Raises:
            ValueError: For a same-species or cross-HOG record
        """
        by_hog: Dict[str, Dict[Tuple[str, str], AdjustedConservationRecord]] = {}
        for record in adjusted:
            if not record.adjusted_p < self.threshold:
                continue
            self._check(record)
            key = tuple(sorted((record.gene1, record.gene2)))
            edges = by_hog.setdefault(record.hog, {})
            current = edges.get(key)
            if current is None or record.adjusted_p < current.adjusted_p:
                edges[key] = record
        return by_hog

    def assemble(self, adjusted: Sequence[AdjustedConservationRecord]) -> List[HOGGraph]:
        """
        Build one frozen graph per HOG with at least one significant edge.

        Returns:
            HOGGraphs sorted by HOG id
        """
        by_hog = self.significant_edges(adjusted)
        if not by_hog:
            logger.info("No significant conserved edges; no HOG graphs built")
            return []

        frame = self.table.frame
        frame = frame[frame['hog'].isin(set(by_hog)) & frame['species'].isin(set(self.species))]
        members = {hog: rows for hog, rows in frame.groupby('hog', sort=True)}

        graphs = []
        for hog in sorted(by_hog):
            G = nx.Graph(hog=hog)
            rows = members.get(hog)
            if rows is not None:
                for gene, species in zip(rows['gene_id'], rows['species']):
                    G.add_node(gene, species=species, life_habit=self.table.habit_of(species))
            for (gene_a, gene_b), record in sorted(by_hog[hog].items()):
                for gene in (gene_a, gene_b):
                    if gene not in G:
                        species = self.table.species_of(gene)
                        G.add_node(gene, species=species, life_habit=self.table.habit_of(species))
                G.add_edge(
                    gene_a, gene_b,
                    pair_id=record.pair_id,
                    p_value=record.combined_p,
                    adjusted_p=record.adjusted_p,
                    effect_size_1=record.effect_size_1,
                    effect_size_2=record.effect_size_2,
                )
            graphs.append(HOGGraph(hog=hog, graph=nx.freeze(G)))

        logger.info(
            f"Assembled {len(graphs)} HOG graphs with "
            f"{sum(g.n_edges for g in graphs)} conserved edges"
        )
        return graphs
