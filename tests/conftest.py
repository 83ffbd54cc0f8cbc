"""
Pytest configuration and shared fixtures for the coexpressolog test suites.

This module provides synthetic data generators and small hand-built
networks, graphs and records shared by the unit and integration tests.
"""

from itertools import combinations

import networkx as nx
import numpy as np
import pandas as pd
import pytest

from coexpressolog.cliques.graph import HOGGraph
from coexpressolog.conservation.tester import ConservationRecord, make_pair_id
from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.modes import ScoringMode
from coexpressolog.core.orthologs import OrthologTable
from coexpressolog.network.builder import CorrelationNetwork
from coexpressolog.stats.correction import AdjustedConservationRecord


# Correlation matrix with one strong negative pair (g0, g1):
#   unsigned, density 1/6: single edge (g0, g1)
#   signed,   density 1/6: single edge (g1, g2)
POLARITY_CORRELATION = np.array([
    [1.0, -0.95, 0.10, 0.20],
    [-0.95, 1.0, 0.30, 0.15],
    [0.10, 0.30, 1.0, 0.25],
    [0.20, 0.15, 0.25, 1.0],
])


def generate_module_expression(
    genes,
    n_samples: int = 20,
    module_size: int = 5,
    n_modules: int = 6,
    noise: float = 0.05,
    seed: int = 42,
) -> np.ndarray:
    """
    Generate a genes × samples matrix with co-expressed gene modules.

    The first ``module_size * n_modules`` genes follow one latent factor per
    module plus Gaussian noise; remaining genes are pure noise. Factors are
    mutually uncorrelated (orthonormal after centering) and drawn from a
    fixed seed, so every species shares the same module profiles.

    With the defaults and 30 genes, every gene's four module partners are its
    four strongest correlations, so a density of 60/435 keeps exactly the
    within-module pairs.

    Args:
        genes: Gene IDs (only the count is used)
        n_samples: Number of samples
        module_size: Genes per module
        n_modules: Number of modules
        noise: Standard deviation of the per-gene noise
        seed: Random seed for the per-gene noise
    """
    raw = np.random.RandomState(0).randn(n_samples, n_modules)
    raw -= raw.mean(axis=0)
    if n_samples > n_modules:
        q, _ = np.linalg.qr(raw)
        factors = q.T * np.sqrt(n_samples)
    else:
        factors = raw.T
    rng = np.random.RandomState(seed)
    data = rng.randn(len(genes), n_samples)
    for i in range(min(len(genes), module_size * n_modules)):
        data[i] = factors[i // module_size] + noise * rng.randn(n_samples)
    return data


def make_expression_matrix(species: str, genes, n_samples: int = 20, tissue: str = "leaf",
                           seed: int = 42) -> ExpressionMatrix:
    """ExpressionMatrix with module structure for the given genes."""
    data = generate_module_expression(genes, n_samples=n_samples, seed=seed)
    return ExpressionMatrix(
        data=data,
        gene_ids=pd.Index(list(genes)),
        sample_ids=pd.Index([f"{species}_S{j:02d}" for j in range(n_samples)]),
        species=species,
        tissue=tissue,
    )


def make_hog_frame(species_habits, n_hogs: int = 30) -> pd.DataFrame:
    """One gene per species per HOG; gene IDs are '{species}_g{i}'."""
    rows = []
    for i in range(n_hogs):
        for species, habit in species_habits.items():
            rows.append({
                'hog': f"H{i:03d}",
                'species': species,
                'gene_id': f"{species}_g{i}",
                'life_habit': habit,
            })
    return pd.DataFrame(rows)


def expression_long_frame(matrices) -> pd.DataFrame:
    """Long-format expression table (species, tissue, gene_id, sample_id, value)."""
    rows = []
    for matrix in matrices:
        for gene, values in zip(matrix.gene_ids, matrix.data):
            for sample, value in zip(matrix.sample_ids, values):
                rows.append((matrix.species, matrix.tissue, gene, sample, value))
    return pd.DataFrame(rows, columns=['species', 'tissue', 'gene_id', 'sample_id', 'value'])


def make_network(species, genes, edges, correlations=None, tissue="leaf",
                 mode=ScoringMode.SIGNED, density=0.1) -> CorrelationNetwork:
    """
    Hand-built CorrelationNetwork.

    Args:
        species: Species name
        genes: Node IDs
        edges: (gene, gene) pairs
        correlations: Correlation per edge (default 0.9)
    """
    index = {g: i for i, g in enumerate(genes)}
    rows = np.array([index[a] for a, _ in edges], dtype=np.int64)
    cols = np.array([index[b] for _, b in edges], dtype=np.int64)
    if correlations is None:
        correlations = [0.9] * len(edges)
    return CorrelationNetwork(
        species=species,
        tissue=tissue,
        mode=mode,
        gene_ids=list(genes),
        rows=rows,
        cols=cols,
        weights=np.arange(1, len(edges) + 1, dtype=np.float64),
        correlations=np.asarray(correlations, dtype=np.float64),
        density=density,
    )


def make_record(gene1, gene2, p1=0.5, p2=None, hog="H1", species1="A", species2="B",
                effect=1.0, empty=False) -> ConservationRecord:
    """ConservationRecord with given directional p-values and neutral counts."""
    p2 = p1 if p2 is None else p2
    return ConservationRecord(
        pair_id=make_pair_id(species1, species2),
        species1=species1,
        species2=species2,
        hog=hog,
        orthogroup=hog,
        gene1=gene1,
        gene2=gene2,
        n_neighbors1=3,
        n_neighbors2=3,
        universe_1=10,
        image_1=3,
        targets_1=3,
        overlap_1=1,
        universe_2=10,
        image_2=3,
        targets_2=3,
        overlap_2=1,
        p1=p1,
        p2=p2,
        combined_p=min(p1, p2),
        reciprocal_p=max(p1, p2),
        effect_size_1=effect,
        effect_size_2=effect,
        effect_size=effect,
        empty_neighborhood=empty,
    )


def make_adjusted(gene1, gene2, adjusted_p, hog="H1", species1="A", species2="B",
                  p=None, effect=2.0) -> AdjustedConservationRecord:
    p = adjusted_p if p is None else p
    record = make_record(gene1, gene2, p1=p, hog=hog, species1=species1,
                         species2=species2, effect=effect)
    return AdjustedConservationRecord(record=record, adjusted_p=adjusted_p)


def hog_graph_from_edges(hog, edges) -> HOGGraph:
    """Frozen HOGGraph from an edge list (no node or edge attributes)."""
    G = nx.Graph()
    G.add_edges_from(edges)
    return HOGGraph(hog=hog, graph=nx.freeze(G))


def complete_edges(nodes):
    return list(combinations(nodes, 2))


@pytest.fixture
def three_species_table():
    """
    Two HOGs across species A (annual), B (annual) and C (perennial).

    H1: a1, a3 (A), b1 (B), c1 (C)
    H2: a2 (A), b2 (B)
    """
    return OrthologTable(pd.DataFrame({
        'hog': ['H1', 'H1', 'H1', 'H1', 'H2', 'H2'],
        'species': ['A', 'A', 'B', 'C', 'A', 'B'],
        'gene_id': ['a1', 'a3', 'b1', 'c1', 'a2', 'b2'],
        'life_habit': ['annual', 'annual', 'annual', 'perennial', 'annual', 'annual'],
    }))


@pytest.fixture
def species_habits():
    return {'A': 'annual', 'B': 'annual', 'C': 'perennial', 'D': 'annual'}


@pytest.fixture
def module_table(species_habits):
    """30 HOGs, one gene per species, for species A-D."""
    return OrthologTable(make_hog_frame(species_habits))


@pytest.fixture
def module_matrices():
    """
    leaf expression for A, B, C (20 samples) and D (a single sample).

    Keyed by (species, tissue) like load_expression_table().
    """
    matrices = {}
    for k, species in enumerate(['A', 'B', 'C']):
        genes = [f"{species}_g{i}" for i in range(30)]
        matrices[(species, 'leaf')] = make_expression_matrix(species, genes, seed=100 + k)
    d_genes = [f"D_g{i}" for i in range(30)]
    matrices[('D', 'leaf')] = make_expression_matrix('D', d_genes, n_samples=1, seed=7)
    return matrices


@pytest.fixture
def input_files(tmp_path, module_matrices, species_habits):
    """Expression and ortholog tables written as TSV under tmp_path."""
    expression_path = tmp_path / "expression.tsv"
    ortholog_path = tmp_path / "hogs.tsv"
    expression_long_frame(module_matrices.values()).to_csv(expression_path, sep="\t", index=False)
    make_hog_frame(species_habits).to_csv(ortholog_path, sep="\t", index=False)
    return expression_path, ortholog_path
