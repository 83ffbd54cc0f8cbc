"""
Hierarchical ortholog group (HOG) table.

Maps every gene of every analyzed species to its HOG, and every species to its
life habit (annual / perennial). A HOG may contain several genes of the same
species (paralogs), so ortholog pairs between two species are the cartesian
product of their genes within each HOG.

Examples:
    >>> import pandas as pd
    >>> from coexpressolog.core.orthologs import OrthologTable
    >>> table = OrthologTable(pd.DataFrame({
    ...     'hog': ['H1', 'H1', 'H1'],
    ...     'species': ['A', 'B', 'B'],
    ...     'gene_id': ['a1', 'b1', 'b2'],
    ...     'life_habit': ['annual', 'perennial', 'perennial'],
    ... }))
    >>> [(p.gene1, p.gene2) for p in table.pairs_for('A', 'B')]
    [('a1', 'b1'), ('a1', 'b2')]
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Set
import logging

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

__all__ = [
    'ANNUAL',
    'PERENNIAL',
    'OrthologPair',
    'OrthologPairs',
    'OrthologTable',
    'normalize_habit',
]

ANNUAL = "annual"
PERENNIAL = "perennial"

REQUIRED_COLUMNS = ('hog', 'species', 'gene_id')


def normalize_habit(value) -> Optional[str]:
    """Map a life-habit tag to 'annual', 'perennial' or None."""
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return None
    tag = str(value).strip().lower()
    if tag in (ANNUAL, PERENNIAL):
        return tag
    return None


def _as_flag(value) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return True
    if isinstance(value, str):
        return value.strip().lower() in ("true", "t", "yes", "y", "1")
    return bool(value)


@dataclass(frozen=True)
class OrthologPair:
    """One gene of species 1 and one gene of species 2 sharing a HOG."""
    hog: str
    orthogroup: str
    gene1: str
    gene2: str


class OrthologPairs(list):
    """
    Ortholog pairs of two species, plus the genes left without a partner.

    Behaves as a list of OrthologPair. ``unpaired1`` and ``unpaired2`` hold
    the species-1 and species-2 genes whose HOG has no gene of the other
    species; they have no ortholog to test against.
    """

    def __init__(self, pairs=(), unpaired1=(), unpaired2=()):
        super().__init__(pairs)
        self.unpaired1 = tuple(unpaired1)
        self.unpaired2 = tuple(unpaired2)


class OrthologTable:
    """
    Read-only HOG membership table.

    Columns:
        hog: HOG identifier (required)
        species: Species name, spaces replaced by underscores (required)
        gene_id: Gene identifier (required)
        orthogroup: Ortholog-group ID (optional, defaults to the HOG)
        life_habit: 'annual' / 'perennial' tag (optional)
        is_core: core-membership flag (optional, defaults to True)

    Args:
        frame: Ortholog table
        habits: Optional species -> habit mapping that overrides the
            life_habit column (e.g. from configuration)

    Raises:
        ValueError: If required columns are missing or a gene is assigned
            to more than one HOG
    """

    def __init__(self, frame: pd.DataFrame, habits: Optional[Mapping[str, str]] = None):
        missing = [c for c in REQUIRED_COLUMNS if c not in frame.columns]
        if missing:
            raise ValueError(f"Ortholog table missing required columns: {missing}")

        df = frame.copy()
        df['hog'] = df['hog'].astype(str)
        df['gene_id'] = df['gene_id'].astype(str)
        df['species'] = df['species'].astype(str).str.replace(' ', '_', regex=False)
        if 'orthogroup' not in df.columns:
            df['orthogroup'] = df['hog']
        df['orthogroup'] = df['orthogroup'].fillna(df['hog']).astype(str)
        if 'life_habit' not in df.columns:
            df['life_habit'] = None
        df['life_habit'] = df['life_habit'].map(normalize_habit)
        if 'is_core' not in df.columns:
            df['is_core'] = True
        df['is_core'] = df['is_core'].map(_as_flag)

        df = df.drop_duplicates(subset=['hog', 'species', 'gene_id']).reset_index(drop=True)

        multi = df.groupby('gene_id')['hog'].nunique()
        multi = multi[multi > 1]
        if len(multi) > 0:
            raise ValueError(
                f"{len(multi)} genes assigned to more than one HOG, e.g. {multi.index[:3].tolist()}"
            )

        species_habits: Dict[str, Optional[str]] = {}
        for species, tags in df.groupby('species')['life_habit']:
            values = {t for t in tags if t is not None}
            if len(values) > 1:
                logger.warning(f"Species {species} has conflicting life-habit tags {sorted(values)}")
            species_habits[species] = values.pop() if len(values) == 1 else None

        if habits:
            for species, habit in habits.items():
                species_habits[str(species).replace(' ', '_')] = normalize_habit(habit)
            df['life_habit'] = df['species'].map(species_habits)

        self._frame = df
        self._species_habits = species_habits
        self._gene_hog: Dict[str, str] = dict(zip(df['gene_id'], df['hog']))
        self._gene_species: Dict[str, str] = dict(zip(df['gene_id'], df['species']))

    @property
    def frame(self) -> pd.DataFrame:
        """Copy of the underlying table."""
        return self._frame.copy()

    @property
    def species(self) -> List[str]:
        return sorted(self._frame['species'].unique())

    @property
    def hogs(self) -> List[str]:
        return sorted(self._frame['hog'].unique())

    def __len__(self) -> int:
        return len(self._frame)

    def habit_of(self, species: str) -> Optional[str]:
        """Life habit of a species ('annual', 'perennial' or None)."""
        return self._species_habits.get(species)

    def species_habits(self) -> Dict[str, Optional[str]]:
        return dict(self._species_habits)

    def species_of(self, gene: str) -> Optional[str]:
        return self._gene_species.get(gene)

    def hog_of(self, gene: str) -> Optional[str]:
        return self._gene_hog.get(gene)

    def genes_of(self, species: str) -> Set[str]:
        """All genes of one species that belong to any HOG."""
        return set(self._frame.loc[self._frame['species'] == species, 'gene_id'])

    def pairs_for(
        self,
        species1: str,
        species2: str,
        min_genes: int = 1,
        max_genes: Optional[int] = None,
        core_only: bool = False,
    ) -> OrthologPairs:
        """
        Ortholog pairs between two species.

        Every species-1 gene of a HOG is paired with every species-2 gene of
        the same HOG. HOGs with fewer than ``min_genes`` or more than
        ``max_genes`` genes in either species are dropped. Genes of HOGs
        without the other species are kept as ``unpaired1`` / ``unpaired2``.

        Args:
            species1: First species
            species2: Second species
            min_genes: Minimum genes per species per HOG
            max_genes: Maximum genes per species per HOG (None = unbounded)
            core_only: Keep only rows flagged as core HOG members

        Returns:
            OrthologPairs sorted by (hog, gene1, gene2)
        """
        df = self._frame
        if core_only:
            df = df[df['is_core']]
        sub1 = df[df['species'] == species1]
        sub2 = df[df['species'] == species2]

        genes1 = sub1.groupby('hog')['gene_id'].apply(lambda s: sorted(set(s)))
        genes2 = sub2.groupby('hog')['gene_id'].apply(lambda s: sorted(set(s)))
        orthogroups = df.drop_duplicates('hog').set_index('hog')['orthogroup']

        hogs1, hogs2 = set(genes1.index), set(genes2.index)
        unpaired1 = [g for hog in sorted(hogs1 - hogs2) for g in genes1[hog]]
        unpaired2 = [g for hog in sorted(hogs2 - hogs1) for g in genes2[hog]]

        pairs: List[OrthologPair] = []
        n_filtered = 0
        for hog in sorted(hogs1 & hogs2):
            g1, g2 = genes1[hog], genes2[hog]
            if len(g1) < min_genes or len(g2) < min_genes:
                n_filtered += 1
                continue
            if max_genes is not None and (len(g1) > max_genes or len(g2) > max_genes):
                n_filtered += 1
                continue
            og = orthogroups.get(hog, hog)
            for a in g1:
                for b in g2:
                    pairs.append(OrthologPair(hog=hog, orthogroup=og, gene1=a, gene2=b))

        logger.debug(
            f"{species1} x {species2}: {len(pairs)} ortholog pairs, "
            f"{n_filtered} HOGs removed by gene-count filter, "
            f"{len(unpaired1) + len(unpaired2)} genes without a partner-species ortholog"
        )
        return OrthologPairs(pairs, unpaired1, unpaired2)
