"""
End-to-end coexpressolog clique pipeline.

Runs every stage for each tissue and scoring mode:

    1. NetworkBuilder            one network per species and mode (shared by all pairs)
    2. ConservationTester        one task per species pair
    3. MultipleTestingCorrector  pooled over all pairs of the tissue and mode
    4. ConservedGraphAssembler   one graph per HOG
    5. CliqueEnumerator          one task per HOG
    6. CliqueAnnotator           life-habit strata
    7. PolarityDivergenceAnalyzer  signed vs unsigned networks of the tissue

Failure isolation:
    Species networks, species pairs, HOGs, tissue/mode passes and tissues are
    independent units. An exception in one unit is logged, recorded in the
    RunManifest and never cancels its siblings. A species whose network
    cannot be built fails every pair it belongs to with reason
    "network unavailable".

Examples:
    >>> from coexpressolog.config import build_pipeline_config, load_config
    >>> from coexpressolog.pipeline import run_pipeline
    >>> config = build_pipeline_config(load_config(Path("pipeline.yaml")), base_dir=Path("."))
    >>> result = run_pipeline(config)
    >>> result.manifest.counts()
    {'completed': 42, 'partial': 1, 'failed': 0}
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from itertools import combinations
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence, Tuple
import logging
import time

import pandas as pd
from tqdm import tqdm

from coexpressolog.cliques.annotation import (
    AnnotatedClique,
    CliqueAnnotator,
    StratifiedCliques,
    find_group_specific_cliques,
)
from coexpressolog.cliques.enumeration import CliqueBudget, CliqueEnumerator, CliqueSearchResult
from coexpressolog.cliques.graph import ConservedGraphAssembler, HOGGraph
from coexpressolog.config import PipelineConfig
from coexpressolog.conservation.summary import conservation_table, summarize_conservation
from coexpressolog.conservation.tester import (
    ConservationRecord,
    ConservationTester,
    TestingSummary,
    make_pair_id,
)
from coexpressolog.core.expression import ExpressionMatrix
from coexpressolog.core.manifest import RunManifest, UnitStatus
from coexpressolog.core.modes import ScoringMode
from coexpressolog.core.orthologs import OrthologPair, OrthologTable
from coexpressolog.io import writers
from coexpressolog.io.loaders import load_expression_table, load_ortholog_table
from coexpressolog.network.builder import CorrelationNetwork, InsufficientDataError, NetworkBuilder
from coexpressolog.polarity.divergence import PolarityDivergenceAnalyzer
from coexpressolog.stats.correction import AdjustedConservationRecord, MultipleTestingCorrector

logger = logging.getLogger(__name__)

__all__ = [
    'ModeResult',
    'TissueResult',
    'RunResult',
    'CoexpressologPipeline',
    'run_pipeline',
]

NETWORK_UNAVAILABLE = "network unavailable"


@dataclass
class ModeResult:
    """Outputs of one tissue in one scoring mode."""
    tissue: str
    mode: ScoringMode
    records: List[ConservationRecord]
    testing: List[TestingSummary]
    adjusted: List[AdjustedConservationRecord]
    graphs: List[HOGGraph]
    searches: List[CliqueSearchResult]
    cliques: StratifiedCliques
    conservation: pd.DataFrame
    summary: pd.DataFrame
    group_cliques: Dict[str, pd.DataFrame] = field(default_factory=dict)


@dataclass
class TissueResult:
    """All modes of one tissue, plus the polarity table."""
    tissue: str
    species: List[str]
    modes: Dict[ScoringMode, ModeResult] = field(default_factory=dict)
    polarity: Optional[pd.DataFrame] = None


@dataclass
class RunResult:
    manifest: RunManifest
    tissues: Dict[str, TissueResult] = field(default_factory=dict)


class CoexpressologPipeline:
    """
    Configured pipeline; one instance runs any number of tissues.

    Args:
        config: Pipeline configuration
        verbose: Show progress bars
    """

    def __init__(self, config: PipelineConfig, verbose: bool = False):
        self.config = config
        self.verbose = verbose
        self.modes = config.network.modes
        self.builder = NetworkBuilder(
            method=config.network.cor_method,
            density=config.network.density,
            norm_method=config.network.norm_method,
            verbose=verbose,
        )
        self.tester = ConservationTester(n_workers=config.conservation.n_workers, verbose=verbose)
        self.corrector = MultipleTestingCorrector(threshold=config.conservation.fdr_threshold)
        self.budget = CliqueBudget(
            max_nodes=config.cliques.max_nodes,
            max_cliques=config.cliques.max_cliques,
            timeout_seconds=config.cliques.timeout_seconds,
        )
        self.enumerator = CliqueEnumerator(
            min_clique_size=config.cliques.min_clique_size, budget=self.budget
        )
        self.annotator = CliqueAnnotator()
        self.polarity = PolarityDivergenceAnalyzer(percentile=config.polarity.percentile)

    # ------------------------------------------------------------------
    # Stage 1: networks
    # ------------------------------------------------------------------

    def _build_species(
        self, matrix: ExpressionMatrix, table: OrthologTable
    ) -> Dict[ScoringMode, CorrelationNetwork]:
        # Networks span the species' genes that belong to any HOG
        subset = matrix.select_genes(table.genes_of(matrix.species))
        return self.builder.build_all(subset, modes=self.modes)

    def build_networks(
        self,
        tissue: str,
        matrices: Mapping[str, ExpressionMatrix],
        table: OrthologTable,
        manifest: RunManifest,
    ) -> Dict[ScoringMode, Dict[str, CorrelationNetwork]]:
        """
        Build every species network of a tissue.

        Returns:
            mode -> species -> network, for the species that succeeded
        """
        networks: Dict[ScoringMode, Dict[str, CorrelationNetwork]] = {m: {} for m in self.modes}
        species_list = sorted(matrices)
        n_workers = min(self.config.conservation.n_workers, max(1, len(species_list)))

        def record_failure(species: str, exc: Exception) -> None:
            if isinstance(exc, InsufficientDataError):
                reason = exc.reason
            else:
                logger.exception(f"Network construction failed for {species}/{tissue}")
                reason = repr(exc)
            manifest.record('species_network', species, UnitStatus.FAILED, tissue=tissue, reason=reason)

        def store(species: str, built: Dict[ScoringMode, CorrelationNetwork]) -> None:
            for mode, network in built.items():
                networks[mode][species] = network
            manifest.record('species_network', species, UnitStatus.COMPLETED, tissue=tissue)

        with ThreadPoolExecutor(max_workers=n_workers) as executor:
            future_to_species = {
                executor.submit(self._build_species, matrices[species], table): species
                for species in species_list
            }
            for future in as_completed(future_to_species):
                species = future_to_species[future]
                try:
                    built = future.result()
                except Exception as e:
                    record_failure(species, e)
                else:
                    store(species, built)

        return networks

    # ------------------------------------------------------------------
    # Stage 2: conservation tests
    # ------------------------------------------------------------------

    def test_pairs(
        self,
        tissue: str,
        mode: ScoringMode,
        networks: Mapping[str, CorrelationNetwork],
        pairs: Mapping[Tuple[str, str], Sequence[OrthologPair]],
        manifest: RunManifest,
    ) -> Tuple[List[ConservationRecord], List[TestingSummary]]:
        """
        Test every species pair of a tissue in one mode.

        Returns:
            (records ordered by species pair, per-pair summaries)
        """
        results: Dict[Tuple[str, str], Tuple[List[ConservationRecord], TestingSummary]] = {}
        runnable = []
        for key in sorted(pairs):
            species1, species2 = key
            missing = [s for s in key if s not in networks]
            if missing:
                manifest.record(
                    'species_pair', make_pair_id(species1, species2), UnitStatus.FAILED,
                    tissue=tissue, mode=mode.value,
                    reason=f"{NETWORK_UNAVAILABLE}: {', '.join(missing)}",
                )
            else:
                runnable.append(key)

        if runnable:
            n_workers = min(self.config.conservation.n_workers, len(runnable))
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                future_to_pair = {
                    executor.submit(self.tester.test, networks[s1], networks[s2], pairs[(s1, s2)]): (s1, s2)
                    for s1, s2 in runnable
                }
                futures = as_completed(future_to_pair)
                if self.verbose:
                    futures = tqdm(futures, total=len(future_to_pair), desc=f"{tissue} {mode.value} pairs")
                for future in futures:
                    key = future_to_pair[future]
                    pair_id = make_pair_id(*key)
                    try:
                        results[key] = future.result()
                    except Exception as e:
                        logger.exception(f"Conservation test failed for {pair_id} ({tissue}, {mode.value})")
                        manifest.record('species_pair', pair_id, UnitStatus.FAILED,
                                        tissue=tissue, mode=mode.value, reason=repr(e))
                    else:
                        manifest.record('species_pair', pair_id, UnitStatus.COMPLETED,
                                        tissue=tissue, mode=mode.value)

        records: List[ConservationRecord] = []
        summaries: List[TestingSummary] = []
        for key in sorted(results):
            pair_records, summary = results[key]
            records.extend(pair_records)
            summaries.append(summary)
        return records, summaries

    # ------------------------------------------------------------------
    # Stages 4-6: graphs, cliques, annotation
    # ------------------------------------------------------------------

    def _search_hog(self, hog_graph: HOGGraph) -> Tuple[CliqueSearchResult, List[AnnotatedClique]]:
        result = self.enumerator.enumerate(hog_graph)
        return result, self.annotator.annotate(hog_graph, result)

    def find_cliques(
        self,
        tissue: str,
        mode: ScoringMode,
        adjusted: Sequence[AdjustedConservationRecord],
        table: OrthologTable,
        species: Sequence[str],
        manifest: RunManifest,
    ) -> Tuple[List[HOGGraph], List[CliqueSearchResult], StratifiedCliques]:
        """
        Enumerate and annotate cliques HOG by HOG.

        Only truncated or failed HOGs are recorded individually in the
        manifest; completed ones are counted in the tissue/mode unit.
        """
        assembler = ConservedGraphAssembler(table, species=species, threshold=self.corrector.threshold)
        graphs = assembler.assemble(adjusted)

        outcomes: Dict[str, Tuple[CliqueSearchResult, List[AnnotatedClique]]] = {}
        if graphs:
            n_workers = min(self.config.cliques.n_workers, len(graphs))
            with ThreadPoolExecutor(max_workers=n_workers) as executor:
                future_to_hog = {executor.submit(self._search_hog, g): g.hog for g in graphs}
                futures = as_completed(future_to_hog)
                if self.verbose:
                    futures = tqdm(futures, total=len(future_to_hog), desc=f"{tissue} {mode.value} HOGs")
                for future in futures:
                    hog = future_to_hog[future]
                    try:
                        outcome = future.result()
                    except Exception as e:
                        logger.exception(f"Clique search failed for {hog} ({tissue}, {mode.value})")
                        manifest.record('hog', hog, UnitStatus.FAILED,
                                        tissue=tissue, mode=mode.value, reason=repr(e))
                        continue
                    outcomes[hog] = outcome
                    if outcome[0].truncated:
                        manifest.record('hog', hog, UnitStatus.PARTIAL,
                                        tissue=tissue, mode=mode.value, reason=outcome[0].reason)

        searches = [outcomes[hog][0] for hog in sorted(outcomes)]
        annotated = [c for hog in sorted(outcomes) for c in outcomes[hog][1]]
        return graphs, searches, self.annotator.stratify(annotated)

    def _group_species(self, group: str, species: Sequence[str], table: OrthologTable) -> List[str]:
        return [s for s in species if table.habit_of(s) == group]

    # ------------------------------------------------------------------
    # Per tissue
    # ------------------------------------------------------------------

    def run_mode(
        self,
        tissue: str,
        mode: ScoringMode,
        networks: Mapping[str, CorrelationNetwork],
        pairs: Mapping[Tuple[str, str], Sequence[OrthologPair]],
        table: OrthologTable,
        species: Sequence[str],
        manifest: RunManifest,
    ) -> ModeResult:
        start = time.time()
        threshold = self.corrector.threshold
        records, testing = self.test_pairs(tissue, mode, networks, pairs, manifest)
        adjusted = self.corrector.correct(records)
        graphs, searches, cliques = self.find_cliques(tissue, mode, adjusted, table, species, manifest)

        group_cliques = {}
        for group in self.config.cliques.groups:
            members = self._group_species(group, species, table)
            if len(members) < 2:
                logger.warning(f"Group '{group}' has {len(members)} species in {tissue}; skipping")
                continue
            group_cliques[group] = find_group_specific_cliques(
                adjusted, table, members, threshold=threshold, budget=self.budget
            )

        result = ModeResult(
            tissue=tissue,
            mode=mode,
            records=records,
            testing=testing,
            adjusted=adjusted,
            graphs=graphs,
            searches=searches,
            cliques=cliques,
            conservation=conservation_table(adjusted, threshold),
            summary=summarize_conservation(adjusted, threshold, testing=testing),
            group_cliques=group_cliques,
        )
        logger.info(
            f"{tissue} ({mode.value}): {len(records)} tests, "
            f"{sum(1 for r in adjusted if r.adjusted_p < threshold)} conserved edges, "
            f"{len(graphs)} HOG graphs, {len(cliques.all)} cliques in {time.time() - start:.1f}s"
        )
        return result

    def run_tissue(
        self,
        tissue: str,
        matrices: Mapping[str, ExpressionMatrix],
        table: OrthologTable,
        manifest: RunManifest,
    ) -> TissueResult:
        """
        Run every mode for one tissue.

        Args:
            tissue: Tissue name
            matrices: species -> expression matrix of this tissue
            table: Ortholog table
            manifest: Collects unit outcomes
        """
        species = sorted(s for s in matrices if s in set(table.species))
        for s in sorted(set(matrices) - set(species)):
            manifest.record('species_network', s, UnitStatus.FAILED, tissue=tissue,
                            reason="species not in ortholog table")
        logger.info(f"Tissue {tissue}: {len(species)} species, {len(species) * (len(species) - 1) // 2} pairs")

        cfg = self.config.conservation
        pairs = {
            (s1, s2): table.pairs_for(s1, s2, min_genes=cfg.min_genes, max_genes=cfg.max_genes,
                                      core_only=cfg.core_only)
            for s1, s2 in combinations(species, 2)
        }

        networks = self.build_networks(tissue, {s: matrices[s] for s in species}, table, manifest)
        result = TissueResult(tissue=tissue, species=species)

        for mode in self.modes:
            try:
                result.modes[mode] = self.run_mode(
                    tissue, mode, networks[mode], pairs, table, species, manifest
                )
            except Exception as e:
                logger.exception(f"{tissue} ({mode.value}) failed")
                manifest.record('tissue_mode', tissue, UnitStatus.FAILED,
                                tissue=tissue, mode=mode.value, reason=repr(e))
            else:
                manifest.record('tissue_mode', tissue, UnitStatus.COMPLETED,
                                tissue=tissue, mode=mode.value)

        if ScoringMode.UNSIGNED in self.modes:
            try:
                result.polarity = self.polarity.analyze(
                    tissue, networks[ScoringMode.SIGNED], networks[ScoringMode.UNSIGNED], pairs
                )
            except Exception as e:
                logger.exception(f"Polarity report failed for {tissue}")
                manifest.record('polarity', tissue, UnitStatus.FAILED, tissue=tissue, reason=repr(e))
            else:
                manifest.record('polarity', tissue, UnitStatus.COMPLETED, tissue=tissue)

        return result

    def write_tissue(self, output_dir: Path, result: TissueResult) -> None:
        tissue = result.tissue
        for mode, mode_result in result.modes.items():
            writers.write_cliques(output_dir, tissue, mode, mode_result.cliques)
            writers.write_conservation(output_dir, tissue, mode, mode_result.conservation)
            writers.write_summary(output_dir, tissue, mode, mode_result.summary)
            for group, frame in mode_result.group_cliques.items():
                writers.write_group_cliques(output_dir, tissue, mode, group, frame)
        if result.polarity is not None:
            writers.write_polarity(output_dir, tissue, result.polarity)

    def run(
        self,
        matrices: Mapping[Tuple[str, str], ExpressionMatrix],
        table: OrthologTable,
        tissues: Optional[Sequence[str]] = None,
        output_dir: Optional[Path] = None,
        manifest: Optional[RunManifest] = None,
    ) -> RunResult:
        """
        Run the pipeline on every requested tissue.

        Args:
            matrices: (species, tissue) -> expression matrix
            table: Ortholog table
            tissues: Tissues to run (None = every tissue in matrices)
            output_dir: Write outputs (and manifest.json) here when given
            manifest: Existing manifest to append to

        Returns:
            RunResult with per-tissue results and the manifest
        """
        manifest = manifest if manifest is not None else RunManifest()
        available = sorted({t for _, t in matrices})
        tissues = list(tissues) if tissues else available
        run = RunResult(manifest=manifest)

        for tissue in tissues:
            by_species = {s: m for (s, t), m in matrices.items() if t == tissue}
            if not by_species:
                manifest.record('tissue', tissue, UnitStatus.FAILED, tissue=tissue,
                                reason="no expression data for tissue")
                continue
            try:
                result = self.run_tissue(tissue, by_species, table, manifest)
                if output_dir is not None:
                    self.write_tissue(output_dir, result)
            except Exception as e:
                logger.exception(f"Tissue {tissue} failed")
                manifest.record('tissue', tissue, UnitStatus.FAILED, tissue=tissue, reason=repr(e))
                continue
            run.tissues[tissue] = result
            manifest.record('tissue', tissue, UnitStatus.COMPLETED, tissue=tissue)

        if output_dir is not None:
            writers.write_manifest(output_dir, manifest)
        return run


def run_pipeline(config: PipelineConfig, verbose: bool = False) -> RunResult:
    """
    Load inputs, run every configured tissue and write all outputs.

    Life habits are taken from the config, then the expression table's
    life_habit column, then the ortholog table's.

    Raises:
        FileNotFoundError: If an input file is missing
        ValueError: If an input table is malformed
    """
    start = time.time()
    matrices, expression_habits = load_expression_table(
        config.data.expression_file,
        tissues=config.tissues or None,
        species=config.species.all or None,
    )
    habits = dict(expression_habits)
    habits.update(config.species.habits())
    table = load_ortholog_table(config.data.ortholog_file, habits=habits or None)

    pipeline = CoexpressologPipeline(config, verbose=verbose)
    result = pipeline.run(
        matrices, table, tissues=config.tissues or None, output_dir=config.data.output_dir
    )
    logger.info(f"Pipeline finished in {time.time() - start:.1f}s: {result.manifest.counts()}")
    return result
