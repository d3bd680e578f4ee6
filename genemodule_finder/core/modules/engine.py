"""Gene module discovery engine.

Runs the full single-pass pipeline:
detection filter -> PCA -> collapse duplicates -> t-SNE -> expand ->
dendrogram cut -> background-corrected scoring.

Each stage consumes the complete output of the previous one. Numerical
backends (reducer, embedder, partitioner) can be injected, which also
allows the pipeline invariants to be tested with fakes.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence
import logging
import time

import numpy as np
import pandas as pd

from ...utils.stats import percent
from .config import ModuleDiscoveryConfig
from .dedup import Deduplicator, DedupResult
from .embedding import Embedder, TSNEEmbedder
from .errors import ConfigurationError, EmptyInputError, InsufficientDiversityError
from .filtering import UNASSIGNED_LABEL, DetectionFilter, DetectionResult
from .partition import HierarchicalPartitioner, Partitioner, modules_from_assignment
from .reduction import PCAReducer, Reducer, ReductionResult
from .scoring import ModuleScorer, ScoringResult, summarize_scores_by_group


@dataclass
class ModuleDiscoveryResult:
    """Result from one module discovery run.

    Attributes
    ----------
    kept_genes : List[str]
        Candidate genes surviving the detection filter
    gene_to_module : pd.Series
        Module label per kept gene
    module_scores : pd.DataFrame
        Modules x cells scores
    gene_embedding : pd.DataFrame
        Kept gene x 2-D coordinates (members of a dedup group share a point)
    gene_groups : pd.Series
        Dedup group id per kept gene
    scores_by_sample : pd.DataFrame
        Modules x samples mean scores
    scores_by_cluster : pd.DataFrame
        Modules x clusters mean scores
    detection : DetectionResult
        Detection filter statistics
    diagnostics : Dict[str, Any]
        Variance explained, module sizes, discard percentages and counts
    """

    kept_genes: List[str] = field(default_factory=list)
    gene_to_module: Optional[pd.Series] = None
    module_scores: Optional[pd.DataFrame] = None
    gene_embedding: Optional[pd.DataFrame] = None
    gene_groups: Optional[pd.Series] = None
    scores_by_sample: Optional[pd.DataFrame] = None
    scores_by_cluster: Optional[pd.DataFrame] = None
    detection: Optional[DetectionResult] = None
    diagnostics: Dict[str, Any] = field(default_factory=dict)

    @property
    def modules(self) -> Dict[str, List[str]]:
        """Module label -> member genes."""
        if self.gene_to_module is None:
            return {}
        return modules_from_assignment(self.gene_to_module)

    @property
    def module_sizes(self) -> Dict[str, int]:
        return {name: len(genes) for name, genes in self.modules.items()}


class ModuleDiscoveryEngine:
    """Discover co-expressed gene modules and score cells for them.

    Parameters
    ----------
    config : ModuleDiscoveryConfig, optional
        Run configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.
    reducer : Reducer, optional
        Linear reduction backend. Defaults to PCAReducer.
    embedder : Embedder, optional
        2-D embedding backend. Defaults to TSNEEmbedder.
    partitioner : Partitioner, optional
        Module partitioning backend. Defaults to HierarchicalPartitioner.

    Example
    -------
    >>> from genemodule_finder.core.modules import ModuleDiscoveryEngine
    >>> engine = ModuleDiscoveryEngine()
    >>> result = engine.run(expression, candidate_genes, cell_metadata, counts=counts)
    >>> result.module_scores.loc["module_1"]
    """

    def __init__(
        self,
        config: Optional[ModuleDiscoveryConfig] = None,
        logger: Optional[logging.Logger] = None,
        reducer: Optional[Reducer] = None,
        embedder: Optional[Embedder] = None,
        partitioner: Optional[Partitioner] = None,
    ):
        self.config = config or ModuleDiscoveryConfig()
        self.logger = logger or logging.getLogger(__name__)
        seed = self.config.random_seed
        self.detector = DetectionFilter(self.config.filtering, self.logger)
        self.reducer = reducer or PCAReducer(self.config.reduction, seed, self.logger)
        self.deduplicator = Deduplicator(self.config.dedup, self.logger)
        self.embedder = embedder or TSNEEmbedder(
            self.config.embedding, seed, self.config.dedup.decimals, self.logger
        )
        self.partitioner = partitioner or HierarchicalPartitioner(
            self.config.partition, self.logger
        )
        self.scorer = ModuleScorer(self.config.scoring, seed, self.logger)

    # ------------------------------------------------------------------
    # Input validation
    # ------------------------------------------------------------------

    def validate_expression(self, expression: pd.DataFrame, name: str = "expression") -> None:
        """Check matrix shape, identifiers and values.

        Raises
        ------
        EmptyInputError
            If the matrix has no genes or no cells
        ConfigurationError
            If identifiers repeat or values are not finite
        """
        n_genes, n_cells = expression.shape
        if n_genes == 0 or n_cells == 0:
            raise EmptyInputError(
                f"{name} matrix has {n_genes} genes x {n_cells} cells",
                stage="input",
                n_genes=n_genes,
                n_cells=n_cells,
            )
        if expression.index.has_duplicates:
            dups = expression.index[expression.index.duplicated()].unique().tolist()
            raise ConfigurationError(
                f"{name} matrix has {len(dups)} duplicated gene ids: {dups[:5]}",
                stage="input",
                genes=dups[:20],
            )
        if expression.columns.has_duplicates:
            dups = expression.columns[expression.columns.duplicated()].unique().tolist()
            raise ConfigurationError(
                f"{name} matrix has {len(dups)} duplicated cell ids: {dups[:5]}",
                stage="input",
                cells=dups[:20],
            )
        values = expression.to_numpy()
        if not np.issubdtype(values.dtype, np.number) or not np.isfinite(values).all():
            raise ConfigurationError(
                f"{name} matrix must contain finite numeric values only",
                stage="input",
            )

    def resolve_candidates(
        self,
        candidate_genes: Sequence[str],
        expression: pd.DataFrame,
    ) -> List[str]:
        """Validate the candidate list and intersect it with the matrix.

        Raises
        ------
        ConfigurationError
            If the list has duplicates or ids clash with the dedup separator
        EmptyInputError
            If no candidate is present in the matrix
        """
        candidates = [str(g) for g in candidate_genes]
        seen = set()
        dups = []
        for gene in candidates:
            if gene in seen:
                dups.append(gene)
            seen.add(gene)
        if dups:
            raise ConfigurationError(
                f"Candidate gene list has {len(dups)} duplicates: {dups[:5]}",
                stage="input",
                genes=dups[:20],
            )
        self.deduplicator.check_gene_ids(candidates, stage="input")

        universe = set(map(str, expression.index))
        present = [g for g in candidates if g in universe]
        n_absent = len(candidates) - len(present)
        if n_absent:
            self.logger.warning(
                "%d of %d candidate genes (%.1f%%) are absent from the expression matrix; "
                "continuing with %d",
                n_absent,
                len(candidates),
                percent(n_absent, len(candidates)),
                len(present),
            )
        if not present:
            raise EmptyInputError(
                "None of the candidate genes are present in the expression matrix",
                stage="input",
                n_candidates=len(candidates),
            )
        return present

    def resolve_labels(self, cell_metadata: pd.DataFrame, cells: pd.Index, key: str) -> pd.Series:
        """Return the metadata column key aligned to cells.

        Cells without a label are reported and labelled as unassigned.

        Raises
        ------
        ConfigurationError
            If the metadata lacks the column
        """
        if key not in cell_metadata.columns:
            raise ConfigurationError(
                f"Cell metadata has no column {key!r} (columns: {list(cell_metadata.columns)})",
                stage="input",
                column=key,
            )
        metadata = cell_metadata.copy()
        metadata.index = metadata.index.map(str)
        labels = metadata[key].reindex(cells)
        n_missing = int(labels.isna().sum())
        if n_missing:
            self.logger.warning(
                "%d of %d cells (%.1f%%) have no %s label; treating as %r",
                n_missing,
                len(cells),
                percent(n_missing, len(cells)),
                key,
                UNASSIGNED_LABEL,
            )
        return labels.astype(object).fillna(UNASSIGNED_LABEL).astype(str)

    def _align_counts(self, counts: Optional[pd.DataFrame], expression: pd.DataFrame) -> pd.DataFrame:
        if counts is None:
            return expression
        counts = counts.copy()
        counts.index = counts.index.map(str)
        counts.columns = counts.columns.map(str)
        if set(counts.index) != set(expression.index) or set(counts.columns) != set(expression.columns):
            raise ConfigurationError(
                f"Counts matrix {counts.shape} does not match expression matrix "
                f"{expression.shape} gene/cell ids",
                stage="input",
                counts_shape=counts.shape,
                expression_shape=expression.shape,
            )
        return counts.loc[expression.index, expression.columns]

    # ------------------------------------------------------------------
    # Pipeline
    # ------------------------------------------------------------------

    def run(
        self,
        expression: pd.DataFrame,
        candidate_genes: Sequence[str],
        cell_metadata: pd.DataFrame,
        counts: Optional[pd.DataFrame] = None,
    ) -> ModuleDiscoveryResult:
        """Run module discovery and scoring.

        Parameters
        ----------
        expression : pd.DataFrame
            Genes x cells normalized expression over the full gene universe
        candidate_genes : Sequence[str]
            Genes to partition into modules
        cell_metadata : pd.DataFrame
            Per-cell labels indexed by cell id; must hold the configured
            cluster column (the sample column is optional)
        counts : pd.DataFrame, optional
            Raw counts with the same ids, used for detection only.
            Defaults to expression.

        Returns
        -------
        ModuleDiscoveryResult
            Kept genes, module assignment, per-cell scores and diagnostics
        """
        cfg = self.config
        start_time = time.time()
        cfg.validate()

        expression = expression.copy()
        expression.index = expression.index.map(str)
        expression.columns = expression.columns.map(str)
        self.validate_expression(expression)
        counts = self._align_counts(counts, expression)
        if counts is not expression:
            self.validate_expression(counts, name="counts")

        self.logger.info(
            "Module discovery on %d genes x %d cells (random_seed=%s)",
            expression.shape[0],
            expression.shape[1],
            cfg.random_seed,
        )
        candidates = self.resolve_candidates(candidate_genes, expression)
        clusters = self.resolve_labels(cell_metadata, expression.columns, cfg.filtering.cluster_key)
        samples = None
        if cfg.filtering.sample_key in cell_metadata.columns:
            samples = self.resolve_labels(cell_metadata, expression.columns, cfg.filtering.sample_key)

        # ==============================================================
        self.logger.info("=" * 60)
        self.logger.info("DETECTION FILTER")
        self.logger.info("=" * 60)
        detection = self.detector.filter(counts.loc[candidates], clusters)
        if not detection.kept_genes:
            raise EmptyInputError(
                f"Detection filter removed all {detection.n_input} candidate genes "
                f"(min_cells={cfg.filtering.min_cells}, min_fraction={cfg.filtering.min_fraction})",
                stage="detection_filter",
                n_candidates=detection.n_input,
                min_cells=cfg.filtering.min_cells,
                min_fraction=cfg.filtering.min_fraction,
            )
        kept = detection.kept_genes

        # ==============================================================
        self.logger.info("=" * 60)
        self.logger.info("REDUCTION AND EMBEDDING")
        self.logger.info("=" * 60)
        kept_matrix = expression.loc[kept]
        n_distinct = int((~kept_matrix.duplicated()).sum())
        if len(kept) > 1 and n_distinct < 2:
            raise InsufficientDiversityError(
                f"All {len(kept)} kept genes have identical expression profiles",
                stage="dedup",
                n_genes=len(kept),
                n_groups=n_distinct,
            )
        reduction = self.reducer.reduce(kept_matrix)
        collapsed = self.deduplicator.collapse(reduction.vectors)
        if collapsed.n_groups < 2:
            raise InsufficientDiversityError(
                f"All {collapsed.n_genes} kept genes share one reduced vector; "
                "embedding is undefined",
                stage="dedup",
                n_genes=collapsed.n_genes,
                n_groups=collapsed.n_groups,
            )
        points = self.embedder.embed(collapsed.vectors)
        gene_points = self.deduplicator.expand(points, collapsed)

        # ==============================================================
        self.logger.info("=" * 60)
        self.logger.info("MODULE PARTITION AND SCORING")
        self.logger.info("=" * 60)
        gene_to_module = self.partitioner.partition(gene_points, cfg.partition.module_count)
        modules = modules_from_assignment(gene_to_module)
        scoring = self.scorer.score(expression, modules)

        result = ModuleDiscoveryResult(
            kept_genes=list(kept),
            gene_to_module=gene_to_module,
            module_scores=scoring.scores,
            gene_embedding=gene_points,
            gene_groups=pd.Series(collapsed.gene_to_group, name="dedup_group"),
            scores_by_cluster=summarize_scores_by_group(scoring.scores, clusters),
            scores_by_sample=(
                summarize_scores_by_group(scoring.scores, samples)
                if samples is not None
                else None
            ),
            detection=detection,
        )
        result.diagnostics = self._build_diagnostics(
            detection, reduction, collapsed, scoring, result, time.time() - start_time
        )

        self.logger.info(
            "Module discovery completed in %.1fs: %d modules over %d genes",
            time.time() - start_time,
            len(modules),
            len(kept),
        )
        return result

    def _build_diagnostics(
        self,
        detection: DetectionResult,
        reduction: ReductionResult,
        collapsed: DedupResult,
        scoring: ScoringResult,
        result: ModuleDiscoveryResult,
        elapsed: float,
    ) -> Dict[str, Any]:
        return {
            "config": self.config.to_dict(),
            "detection": detection.to_dict(),
            "reduction": reduction.to_dict(),
            "dedup": collapsed.to_dict(),
            "module_sizes": result.module_sizes,
            "scoring": scoring.to_dict(),
            "elapsed_seconds": round(elapsed, 2),
        }
