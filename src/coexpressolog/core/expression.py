"""
Per-species, per-tissue expression matrix.

ExpressionMatrix couples a genes × samples array of pre-normalized expression
values with the species and tissue it was measured in. It is the input unit of
network construction: one matrix per species per tissue.

Biological Context:
    Comparative co-expression needs one expression profile per gene in each
    species, measured in the same tissue. Values are consumed already
    normalized (e.g. VST counts); this module never transforms them.

Engineering Design:
    - Immutable: subsetting returns new instances, the array is read-only
    - Validated: duplicate gene IDs and infinite values are rejected
    - Missing values are allowed as NaN (explicitly missing)

Examples:
    >>> import numpy as np
    >>> import pandas as pd
    >>> from coexpressolog.core.expression import ExpressionMatrix
    >>>
    >>> matrix = ExpressionMatrix(
    ...     data=np.random.randn(3, 4),
    ...     gene_ids=pd.Index(["g1", "g2", "g3"]),
    ...     sample_ids=pd.Index(["s1", "s2", "s3", "s4"]),
    ...     species="Brachypodium_distachyon",
    ...     tissue="leaf",
    ... )
    >>> subset = matrix.select_genes(["g1", "g3"])
"""

from __future__ import annotations

from typing import Iterable
import numpy as np
import pandas as pd

__all__ = ['ExpressionMatrix']


class ExpressionMatrix:
    """
    Immutable genes × samples expression matrix for one species and tissue.

    Attributes:
        data: Expression values (genes × samples), read-only float64 array
        gene_ids: Row identifiers (unique gene IDs)
        sample_ids: Column identifiers
        species: Species name
        tissue: Tissue name

    Shape Invariants:
        - data.shape[0] == len(gene_ids)
        - data.shape[1] == len(sample_ids)
        - gene_ids has no duplicates
    """

    def __init__(
        self,
        data: np.ndarray,
        gene_ids: pd.Index,
        sample_ids: pd.Index,
        species: str,
        tissue: str,
    ):
        """
        Initialize ExpressionMatrix with validation.

        Args:
            data: Expression matrix (genes × samples)
            gene_ids: Row identifiers
            sample_ids: Column identifiers
            species: Species the samples come from
            tissue: Tissue the samples come from

        Raises:
            TypeError: If data or indices have the wrong type
            ValueError: If shapes are inconsistent, gene IDs are duplicated
                or values are infinite
        """
        if not isinstance(data, np.ndarray):
            raise TypeError(f"data must be np.ndarray, got {type(data)}")
        if not isinstance(gene_ids, pd.Index):
            raise TypeError(f"gene_ids must be pd.Index, got {type(gene_ids)}")
        if not isinstance(sample_ids, pd.Index):
            raise TypeError(f"sample_ids must be pd.Index, got {type(sample_ids)}")

        if data.ndim != 2:
            raise ValueError(f"data must be 2D, got shape {data.shape}")

        n_genes, n_samples = data.shape
        if len(gene_ids) != n_genes:
            raise ValueError(
                f"gene_ids length ({len(gene_ids)}) must match data rows ({n_genes})"
            )
        if len(sample_ids) != n_samples:
            raise ValueError(
                f"sample_ids length ({len(sample_ids)}) must match data columns ({n_samples})"
            )
        if gene_ids.has_duplicates:
            dupes = gene_ids[gene_ids.duplicated()].unique()[:5].tolist()
            raise ValueError(f"Duplicate gene IDs in {species}/{tissue}: {dupes}")

        values = np.asarray(data, dtype=np.float64)
        if np.isinf(values).any():
            raise ValueError(f"Expression values for {species}/{tissue} contain Inf")

        values = values.copy()
        values.setflags(write=False)

        self._data = values
        self._gene_ids = gene_ids
        self._sample_ids = sample_ids
        self._species = str(species)
        self._tissue = str(tissue)

    @property
    def data(self) -> np.ndarray:
        """Expression values (genes × samples), read-only."""
        return self._data

    @property
    def gene_ids(self) -> pd.Index:
        return self._gene_ids

    @property
    def sample_ids(self) -> pd.Index:
        return self._sample_ids

    @property
    def species(self) -> str:
        return self._species

    @property
    def tissue(self) -> str:
        return self._tissue

    @property
    def shape(self) -> tuple[int, int]:
        return self._data.shape

    @property
    def n_genes(self) -> int:
        return self._data.shape[0]

    @property
    def n_samples(self) -> int:
        return self._data.shape[1]

    @property
    def has_missing(self) -> bool:
        """True if any value is NaN."""
        return bool(np.isnan(self._data).any())

    def select_genes(self, genes: Iterable[str]) -> ExpressionMatrix:
        """
        Subset to the given genes, keeping the matrix's gene order.

        Genes not present in the matrix are ignored.

        Args:
            genes: Gene IDs to keep

        Returns:
            New ExpressionMatrix with the selected rows
        """
        keep = set(genes)
        mask = np.fromiter((g in keep for g in self._gene_ids), dtype=bool,
                           count=len(self._gene_ids))
        return ExpressionMatrix(
            data=self._data[mask, :],
            gene_ids=self._gene_ids[mask],
            sample_ids=self._sample_ids,
            species=self._species,
            tissue=self._tissue,
        )

    def to_frame(self) -> pd.DataFrame:
        """Wide DataFrame view (genes as index, samples as columns)."""
        return pd.DataFrame(self._data, index=self._gene_ids, columns=self._sample_ids)

    def __repr__(self) -> str:
        return (
            f"ExpressionMatrix({self._species}/{self._tissue}: "
            f"{self.n_genes} genes × {self.n_samples} samples)"
        )
