"""
Signed vs unsigned polarity divergence report.

The unsigned network keeps gene pairs with strong correlation of either
sign; the signed network only ranks positive correlation as strong. A gene
pair that is a strong edge of the unsigned network but whose correlation is
negative is co-expressed with opposite polarity: its conservation signal in
the unsigned pass does not carry over to the signed pass.

Scores per gene pair (edges of a species' unsigned network whose two genes
both belong to the species pair's ortholog set):
    signed_score:      correlation r of the pair
    unsigned_score:    |r|, the strength the unsigned network ranked
    in_signed_network: the pair is also an edge of the signed network

Flag:
    sign(signed_score) · sign(unsigned_score) < 0 and unsigned_score above
    the given percentile (default 75th) of the tissue's pooled unsigned
    scores.

Examples:
    >>> from coexpressolog.polarity.divergence import flag_polarity_divergence
    >>> flag_polarity_divergence([-0.9, 0.9, 0.1], [0.9, 0.9, 0.1], percentile=30)
    array([ True, False, False])
"""

from __future__ import annotations

from typing import Dict, Mapping, Sequence, Tuple
import logging

import numpy as np
import pandas as pd

from coexpressolog.conservation.tester import make_pair_id
from coexpressolog.core.orthologs import OrthologPair
from coexpressolog.network.builder import CorrelationNetwork

logger = logging.getLogger(__name__)

__all__ = [
    'POLARITY_COLUMNS',
    'PolarityDivergenceAnalyzer',
    'flag_polarity_divergence',
]

POLARITY_COLUMNS = [
    'tissue', 'pair_id', 'species', 'gene1', 'gene2',
    'signed_score', 'unsigned_score', 'in_signed_network', 'polarity_divergent',
]


def flag_polarity_divergence(signed, unsigned, percentile: float = 75.0) -> np.ndarray:
    """
    Flag opposite-sign pairs whose unsigned score is above a percentile.

    Args:
        signed: Signed scores
        unsigned: Unsigned scores (same length); the percentile is taken
            over all of them, ignoring NaN
        percentile: Percentile in [0, 100]

    Returns:
        Boolean array
    """
    if not 0 <= percentile <= 100:
        raise ValueError(f"percentile must be in [0, 100], got {percentile}")
    signed = np.asarray(signed, dtype=np.float64)
    unsigned = np.asarray(unsigned, dtype=np.float64)
    if signed.shape != unsigned.shape:
        raise ValueError(f"Score arrays differ in shape: {signed.shape} vs {unsigned.shape}")
    if unsigned.size == 0 or np.all(np.isnan(unsigned)):
        return np.zeros(unsigned.shape, dtype=bool)

    threshold = np.nanpercentile(unsigned, percentile)
    opposite = np.sign(signed) * np.sign(unsigned) < 0
    with np.errstate(invalid='ignore'):
        strong = unsigned > threshold
    return opposite & strong


class PolarityDivergenceAnalyzer:
    """
    Builds the polarity divergence table of one tissue.

    Args:
        percentile: Unsigned-score percentile a flagged pair must exceed
    """

    def __init__(self, percentile: float = 75.0):
        if not 0 <= percentile <= 100:
            raise ValueError(f"percentile must be in [0, 100], got {percentile}")
        self.percentile = percentile

    def pair_scores(
        self,
        pair_id: str,
        species: str,
        genes,
        signed: CorrelationNetwork,
        unsigned: CorrelationNetwork,
    ) -> pd.DataFrame:
        """Scores of one species' unsigned edges among the given genes."""
        edges = unsigned.edge_frame(genes)
        r = edges['correlation'].to_numpy(dtype=np.float64)
        return pd.DataFrame({
            'pair_id': pair_id,
            'species': species,
            'gene1': edges['gene1'],
            'gene2': edges['gene2'],
            'signed_score': r,
            'unsigned_score': np.abs(r),
            'in_signed_network': [signed.has_edge(a, b) for a, b in zip(edges['gene1'], edges['gene2'])],
        })

    def analyze(
        self,
        tissue: str,
        signed_networks: Mapping[str, CorrelationNetwork],
        unsigned_networks: Mapping[str, CorrelationNetwork],
        pairs: Mapping[Tuple[str, str], Sequence[OrthologPair]],
    ) -> pd.DataFrame:
        """
        Polarity table for every species pair of a tissue.

        Args:
            tissue: Tissue name
            signed_networks: species -> signed network
            unsigned_networks: species -> unsigned network
            pairs: (species1, species2) -> ortholog pairs

        Returns:
            DataFrame with POLARITY_COLUMNS; species without both networks
            are skipped
        """
        parts = []
        for (species1, species2), ortholog_pairs in sorted(pairs.items()):
            pair_id = make_pair_id(species1, species2)
            genes: Dict[str, set] = {
                species1: {p.gene1 for p in ortholog_pairs},
                species2: {p.gene2 for p in ortholog_pairs},
            }
            for species in (species1, species2):
                signed = signed_networks.get(species)
                unsigned = unsigned_networks.get(species)
                if signed is None or unsigned is None:
                    logger.debug(f"Polarity: no networks for {species} in {tissue}, skipping in {pair_id}")
                    continue
                parts.append(self.pair_scores(pair_id, species, genes[species], signed, unsigned))

        parts = [p for p in parts if not p.empty]
        if not parts:
            return pd.DataFrame(columns=POLARITY_COLUMNS)

        frame = pd.concat(parts, ignore_index=True)
        frame.insert(0, 'tissue', tissue)
        frame['polarity_divergent'] = flag_polarity_divergence(
            frame['signed_score'], frame['unsigned_score'], self.percentile
        )
        logger.info(
            f"Polarity ({tissue}): {int(frame['polarity_divergent'].sum())}/{len(frame)} "
            f"gene pairs divergent above the {self.percentile:g}th percentile"
        )
        return frame[POLARITY_COLUMNS]
