"""
Bidirectional hypergeometric test of co-expression neighborhood conservation.

For an ortholog pair (gene A of species 1, gene B of species 2) the question
is: do A's co-expression partners map, through orthology, onto B's
co-expression partners more often than chance?

Biological Context:
    Orthologs whose network neighborhoods overlap kept their regulatory
    context since the species diverged ("coexpressologs"). Orthologs whose
    neighborhoods are unrelated have diverged in expression even if their
    sequence is conserved.

Statistical Method:
    Direction 1 is tested in species-2 space:
        - Universe U2: species-2 network genes with an ortholog in network 1
        - Draw: the ortholog image of N(A), restricted to U2   (size N)
        - Successes: N(B) ∩ U2                                  (size n)
        - Overlap x = |draw ∩ successes|
        - p1 = P(X >= x), X ~ Hypergeom(M=|U2|, n, N)
    Direction 2 swaps the roles (species-1 space) and gives p2.

    The record's p-value is min(p1, p2); max(p1, p2) is kept as
    ``reciprocal_p`` for summaries that require both directions.

    Effect size per direction is the fold enrichment x / E[X] with
    E[X] = N·n/M (0 when E[X] = 0); the record effect size is the minimum
    of the two directions.

Edge Cases:
    - A gene with no neighbors inside its universe yields p1 = p2 = 1 and
      effect size 0; the record is kept (flagged ``empty_neighborhood``) so
      it still counts in the FDR denominator.
    - Ortholog pairs with a gene missing from its network are not tested and
      are counted in ``TestingSummary.n_missing_mapping``, together with the
      network genes whose HOG has no gene of the partner species
      (``OrthologPairs.unpaired1`` / ``unpaired2``).

Examples:
    >>> from coexpressolog.conservation.tester import ConservationTester
    >>> tester = ConservationTester(n_workers=4)
    >>> records, summary = tester.test(net1, net2, table.pairs_for("A", "B"))
    >>> summary.n_tested, summary.n_missing_mapping
    (1520, 37)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, asdict
from typing import Dict, FrozenSet, List, Optional, Sequence, Set, Tuple
import logging

import pandas as pd
from scipy.stats import hypergeom
from tqdm import tqdm

from coexpressolog.core.orthologs import OrthologPair
from coexpressolog.network.builder import CorrelationNetwork

logger = logging.getLogger(__name__)

__all__ = [
    'ConservationRecord',
    'TestingSummary',
    'ConservationTester',
    'make_pair_id',
    'hypergeometric_enrichment',
    'records_to_frame',
]


def make_pair_id(species1: str, species2: str) -> str:
    """Identifier of a species pair, e.g. 'Brachypodium_distachyon__Hordeum_vulgare'."""
    return f"{species1}__{species2}"


@dataclass(frozen=True)
class ConservationRecord:
    """
    Conservation test result for one ortholog pair.

    Direction 1 counts (``*_1``) live in species-2 space, direction 2 counts
    (``*_2``) in species-1 space.

    Attributes:
        pair_id: Species pair identifier
        species1, species2: Species of gene1 and gene2
        hog, orthogroup: Ortholog group of the pair
        gene1, gene2: The ortholog pair
        n_neighbors1, n_neighbors2: Network degree of gene1 and gene2
        universe_1, image_1, targets_1, overlap_1: M, N, n, x of direction 1
        universe_2, image_2, targets_2, overlap_2: M, N, n, x of direction 2
        p1, p2: Directional p-values
        combined_p: min(p1, p2)
        reciprocal_p: max(p1, p2)
        effect_size_1, effect_size_2: Directional fold enrichment
        effect_size: min(effect_size_1, effect_size_2)
        empty_neighborhood: Either gene has no neighbors inside its universe
    """
    pair_id: str
    species1: str
    species2: str
    hog: str
    orthogroup: str
    gene1: str
    gene2: str
    n_neighbors1: int
    n_neighbors2: int
    universe_1: int
    image_1: int
    targets_1: int
    overlap_1: int
    universe_2: int
    image_2: int
    targets_2: int
    overlap_2: int
    p1: float
    p2: float
    combined_p: float
    reciprocal_p: float
    effect_size_1: float
    effect_size_2: float
    effect_size: float
    empty_neighborhood: bool

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class TestingSummary:
    """
    Counts for one species pair.

    ``universe_1`` and ``universe_2`` are the sizes of U1 (species-1 genes)
    and U2 (species-2 genes), i.e. the M of direction 2 and direction 1.
    ``n_missing_mapping`` counts untestable pairs plus network genes without
    any partner-species ortholog.
    """
    pair_id: str
    species1: str
    species2: str
    n_pairs: int
    n_tested: int
    n_missing_mapping: int
    n_empty_neighborhood: int
    universe_1: int
    universe_2: int


def hypergeometric_enrichment(overlap: int, universe: int, targets: int, drawn: int) -> Tuple[float, float]:
    """
    One-sided hypergeometric test with fold enrichment.

    Args:
        overlap: Observed successes among drawn items (x)
        universe: Population size (M)
        targets: Successes in the population (n)
        drawn: Items drawn (N)

    Returns:
        (P(X >= overlap), overlap / expected) with expected = drawn·targets/universe;
        the effect size is 0 when the expectation is 0
    """
    if universe <= 0 or drawn <= 0 or targets <= 0:
        return 1.0, 0.0
    pvalue = float(hypergeom.sf(overlap - 1, universe, targets, drawn))
    pvalue = min(max(pvalue, 0.0), 1.0)
    expected = drawn * targets / universe
    effect = overlap / expected if expected > 0 else 0.0
    return pvalue, float(effect)


class _OrthologIndex:
    """Ortholog maps and universes between two networks."""

    def __init__(self, network1: CorrelationNetwork, network2: CorrelationNetwork,
                 pairs: Sequence[OrthologPair]):
        self.forward: Dict[str, Set[str]] = {}
        self.backward: Dict[str, Set[str]] = {}
        self.valid: List[bool] = []
        for pair in pairs:
            ok = pair.gene1 in network1 and pair.gene2 in network2
            self.valid.append(ok)
            if ok:
                self.forward.setdefault(pair.gene1, set()).add(pair.gene2)
                self.backward.setdefault(pair.gene2, set()).add(pair.gene1)
        self.universe1: FrozenSet[str] = frozenset(self.forward)
        self.universe2: FrozenSet[str] = frozenset(self.backward)

    def image(self, genes: FrozenSet[str], mapping: Dict[str, Set[str]]) -> Set[str]:
        out: Set[str] = set()
        for g in genes:
            partners = mapping.get(g)
            if partners:
                out.update(partners)
        return out


class ConservationTester:
    """
    Tests neighborhood conservation of ortholog pairs between two networks.

    Args:
        n_workers: Threads used to process chunks of ortholog pairs
        chunk_size: Ortholog pairs per chunk
        verbose: Show a progress bar over chunks
    """

    def __init__(self, n_workers: int = 1, chunk_size: int = 2000, verbose: bool = False):
        if n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {n_workers}")
        if chunk_size < 1:
            raise ValueError(f"chunk_size must be >= 1, got {chunk_size}")
        self.n_workers = n_workers
        self.chunk_size = chunk_size
        self.verbose = verbose

    def test(
        self,
        network1: CorrelationNetwork,
        network2: CorrelationNetwork,
        pairs: Sequence[OrthologPair],
    ) -> Tuple[List[ConservationRecord], TestingSummary]:
        """
        Test every ortholog pair of a species pair.

        Args:
            network1: Network of species 1
            network2: Network of species 2 (same tissue and mode)
            pairs: Ortholog pairs, gene1 from species 1 and gene2 from species 2;
                unpaired genes are counted when given as OrthologPairs

        Returns:
            (records in the order of ``pairs`` minus untestable pairs, summary)

        Raises:
            ValueError: If the networks differ in tissue or mode, or are of
                the same species
        """
        if network1.tissue != network2.tissue:
            raise ValueError(
                f"Networks are from different tissues: {network1.tissue} vs {network2.tissue}"
            )
        if network1.mode is not network2.mode:
            raise ValueError(
                f"Networks have different modes: {network1.mode.value} vs {network2.mode.value}"
            )
        if network1.species == network2.species:
            raise ValueError(f"Both networks are from {network1.species}")

        pair_id = make_pair_id(network1.species, network2.species)
        index = _OrthologIndex(network1, network2, pairs)
        testable = [p for p, ok in zip(pairs, index.valid) if ok]
        # Network genes whose HOG has no gene of the partner species
        n_unpaired = (
            sum(1 for g in getattr(pairs, 'unpaired1', ()) if g in network1)
            + sum(1 for g in getattr(pairs, 'unpaired2', ()) if g in network2)
        )
        n_missing = len(pairs) - len(testable) + n_unpaired

        chunks = [testable[i:i + self.chunk_size] for i in range(0, len(testable), self.chunk_size)]
        results: List[Optional[List[ConservationRecord]]] = [None] * len(chunks)

        if self.n_workers > 1 and len(chunks) > 1:
            with ThreadPoolExecutor(max_workers=min(self.n_workers, len(chunks))) as executor:
                future_to_chunk = {
                    executor.submit(self._test_chunk, chunk, network1, network2, index, pair_id): i
                    for i, chunk in enumerate(chunks)
                }
                futures = as_completed(future_to_chunk)
                if self.verbose:
                    futures = tqdm(futures, total=len(chunks), desc=f"Testing {pair_id}", unit="chunk")
                for future in futures:
                    results[future_to_chunk[future]] = future.result()
        else:
            chunk_iter = enumerate(chunks)
            if self.verbose:
                chunk_iter = tqdm(chunk_iter, total=len(chunks), desc=f"Testing {pair_id}", unit="chunk")
            for i, chunk in chunk_iter:
                results[i] = self._test_chunk(chunk, network1, network2, index, pair_id)

        records = [r for chunk_records in results for r in chunk_records]
        summary = TestingSummary(
            pair_id=pair_id,
            species1=network1.species,
            species2=network2.species,
            n_pairs=len(pairs),
            n_tested=len(records),
            n_missing_mapping=n_missing,
            n_empty_neighborhood=sum(r.empty_neighborhood for r in records),
            universe_1=len(index.universe1),
            universe_2=len(index.universe2),
        )
        logger.info(
            f"{pair_id} ({network1.tissue}, {network1.mode.value}): tested {summary.n_tested} "
            f"ortholog pairs, {summary.n_missing_mapping} without mapping, "
            f"{summary.n_empty_neighborhood} with empty neighborhoods"
        )
        return records, summary

    def _test_chunk(
        self,
        chunk: Sequence[OrthologPair],
        network1: CorrelationNetwork,
        network2: CorrelationNetwork,
        index: _OrthologIndex,
        pair_id: str,
    ) -> List[ConservationRecord]:
        u1, u2 = index.universe1, index.universe2
        m1, m2 = len(u2), len(u1)
        # Per-chunk caches; a gene recurs once per paralog partner
        images1: Dict[str, Set[str]] = {}
        images2: Dict[str, Set[str]] = {}
        out = []
        for pair in chunk:
            nbrs_a = network1.neighbors(pair.gene1)
            nbrs_b = network2.neighbors(pair.gene2)

            if pair.gene1 not in images1:
                images1[pair.gene1] = index.image(nbrs_a, index.forward)
            if pair.gene2 not in images2:
                images2[pair.gene2] = index.image(nbrs_b, index.backward)
            image_1 = images1[pair.gene1]
            image_2 = images2[pair.gene2]
            targets_1 = nbrs_b & u2
            targets_2 = nbrs_a & u1

            empty = not targets_1 or not targets_2
            x1 = len(image_1 & targets_1)
            x2 = len(image_2 & targets_2)
            if empty:
                p1 = p2 = 1.0
                e1 = e2 = 0.0
            else:
                p1, e1 = hypergeometric_enrichment(x1, m1, len(targets_1), len(image_1))
                p2, e2 = hypergeometric_enrichment(x2, m2, len(targets_2), len(image_2))

            out.append(ConservationRecord(
                pair_id=pair_id,
                species1=network1.species,
                species2=network2.species,
                hog=pair.hog,
                orthogroup=pair.orthogroup,
                gene1=pair.gene1,
                gene2=pair.gene2,
                n_neighbors1=len(nbrs_a),
                n_neighbors2=len(nbrs_b),
                universe_1=m1,
                image_1=len(image_1),
                targets_1=len(targets_1),
                overlap_1=x1,
                universe_2=m2,
                image_2=len(image_2),
                targets_2=len(targets_2),
                overlap_2=x2,
                p1=p1,
                p2=p2,
                combined_p=min(p1, p2),
                reciprocal_p=max(p1, p2),
                effect_size_1=e1,
                effect_size_2=e2,
                effect_size=min(e1, e2),
                empty_neighborhood=empty,
            ))
        return out


_RECORD_COLUMNS = list(ConservationRecord.__dataclass_fields__)


def records_to_frame(records: Sequence) -> pd.DataFrame:
    """DataFrame of (adjusted) conservation records, one row per record."""
    if not records:
        return pd.DataFrame(columns=_RECORD_COLUMNS)
    return pd.DataFrame([r.to_dict() for r in records])
