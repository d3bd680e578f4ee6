"""Background-corrected module scoring.

A module's score in a cell is the mean expression of the module genes
minus the mean expression of a control pool drawn from genes with
similar average expression. Matching the controls by expression level
keeps the score from simply tracking how much a cell expresses overall.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence
import logging

import numpy as np
import pandas as pd

from ...utils.stats import group_members, percent, quantile_bins
from .config import ScoringConfig
from .errors import EmptyInputError


@dataclass
class ScoringResult:
    """Result from scoring modules in every cell.

    Attributes
    ----------
    scores : pd.DataFrame
        Modules x cells matrix of background-corrected scores
    control_genes : Dict[str, List[str]]
        Module -> control pool used for its background
    gene_bins : pd.Series
        Expression bin per gene of the universe
    missing_genes : Dict[str, List[str]]
        Module -> genes absent from the expression matrix
    random_seed : int, optional
        Seed used for control sampling
    """

    scores: pd.DataFrame
    control_genes: Dict[str, List[str]] = field(default_factory=dict)
    gene_bins: Optional[pd.Series] = None
    missing_genes: Dict[str, List[str]] = field(default_factory=dict)
    random_seed: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "random_seed": self.random_seed,
            "n_bins": int(self.gene_bins.nunique()) if self.gene_bins is not None else 0,
            "control_pool_sizes": {m: len(g) for m, g in self.control_genes.items()},
            "missing_genes": {m: len(g) for m, g in self.missing_genes.items() if g},
        }


def summarize_scores_by_group(
    scores: pd.DataFrame,
    labels: pd.Series,
    order_by_size: bool = True,
) -> pd.DataFrame:
    """Average module scores over the cells of each group.

    Parameters
    ----------
    scores : pd.DataFrame
        Modules x cells scores
    labels : pd.Series
        Group label (sample, cluster, ...) per cell, indexed by cell id
    order_by_size : bool
        Order group columns by descending cell count instead of by label

    Returns
    -------
    pd.DataFrame
        Modules x groups mean scores
    """
    labels = labels.reindex(scores.columns).dropna()
    if labels.empty:
        return pd.DataFrame(index=scores.index)
    summary = scores[labels.index].T.groupby(labels.to_numpy()).mean().T
    if order_by_size:
        order = labels.value_counts(sort=True).index
    else:
        order = sorted(summary.columns, key=str)
    return summary[list(order)]


class ModuleScorer:
    """Score gene modules per cell against expression-matched controls.

    Parameters
    ----------
    config : ScoringConfig, optional
        Binning and control-set size. If None, uses defaults (24 bins, 100).
    random_seed : int, optional
        Seed for control gene sampling. None gives irreproducible scores.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> scorer = ModuleScorer(ScoringConfig(nbin=24, nctrl=100), random_seed=1337)
    >>> result = scorer.score(expression, {"module_1": ["GENE_A", "GENE_B"]})
    >>> result.scores.loc["module_1"]
    """

    def __init__(
        self,
        config: Optional[ScoringConfig] = None,
        random_seed: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ScoringConfig()
        self.random_seed = random_seed
        self.logger = logger or logging.getLogger(__name__)

    def assign_bins(self, expression: pd.DataFrame, nbin: Optional[int] = None) -> pd.Series:
        """Bin every gene of the universe by its average expression.

        Averages are computed once over the whole matrix and shared by
        all modules.
        """
        nbin = nbin if nbin is not None else self.config.nbin
        averages = expression.mean(axis=1)
        return quantile_bins(averages, nbin)

    def sample_controls(
        self,
        module_genes: Sequence[str],
        gene_bins: pd.Series,
        bin_members: Mapping[int, List[str]],
        rng: np.random.Generator,
        nctrl: Optional[int] = None,
    ) -> List[str]:
        """Draw the control pool for one module.

        For each module gene, up to nctrl genes are drawn without
        replacement from its bin, excluding module genes. A bin holding
        only module genes falls back to the whole bin. The pool is the
        union of all draws, in universe order.
        """
        nctrl = nctrl if nctrl is not None else self.config.nctrl
        module_set = set(module_genes)
        pool = set()
        for gene in module_genes:
            members = bin_members[int(gene_bins[gene])]
            candidates = [g for g in members if g not in module_set]
            if not candidates:
                self.logger.debug(
                    "Bin of %s holds only module genes; sampling from the full bin", gene
                )
                candidates = members
            size = min(nctrl, len(candidates))
            picked = rng.choice(len(candidates), size=size, replace=False)
            pool.update(candidates[i] for i in picked)
        return [g for g in gene_bins.index if g in pool]

    def score(
        self,
        expression: pd.DataFrame,
        modules: Mapping[str, Sequence[str]],
    ) -> ScoringResult:
        """Compute per-cell scores for each module.

        Parameters
        ----------
        expression : pd.DataFrame
            Genes x cells normalized expression over the full gene universe
        modules : Mapping[str, Sequence[str]]
            Module label -> member genes

        Returns
        -------
        ScoringResult
            Modules x cells scores and the control pools used

        Raises
        ------
        EmptyInputError
            If the matrix is empty or a module has no genes in the matrix
        """
        if expression.shape[0] == 0 or expression.shape[1] == 0:
            raise EmptyInputError(
                f"Cannot score modules on a {expression.shape[0]} x {expression.shape[1]} matrix",
                stage="scoring",
                shape=expression.shape,
            )

        rng = np.random.default_rng(self.random_seed)
        gene_bins = self.assign_bins(expression)
        bin_members = group_members(gene_bins)
        row_of = {gene: i for i, gene in enumerate(expression.index)}
        values = expression.to_numpy(dtype=float)

        self.logger.info(
            "Scoring %d modules over %d genes x %d cells (nbin=%d, nctrl=%d, seed=%s)",
            len(modules),
            expression.shape[0],
            expression.shape[1],
            int(gene_bins.nunique()),
            self.config.nctrl,
            self.random_seed,
        )

        scores = {}
        controls: Dict[str, List[str]] = {}
        missing: Dict[str, List[str]] = {}
        for name, genes in modules.items():
            genes = list(dict.fromkeys(genes))
            present = [g for g in genes if g in row_of]
            missing[name] = [g for g in genes if g not in row_of]
            if missing[name]:
                self.logger.warning(
                    "%s: %d of %d genes (%.1f%%) not in expression matrix",
                    name,
                    len(missing[name]),
                    len(genes),
                    percent(len(missing[name]), len(genes)),
                )
            if not present:
                raise EmptyInputError(
                    f"No genes of {name} are present in the expression matrix",
                    stage="scoring",
                    module=name,
                )

            pool = self.sample_controls(present, gene_bins, bin_members, rng)
            controls[name] = pool

            module_mean = values[[row_of[g] for g in present]].mean(axis=0)
            control_mean = values[[row_of[g] for g in pool]].mean(axis=0)
            scores[name] = module_mean - control_mean
            self.logger.debug(
                "%s: %d genes, %d control genes", name, len(present), len(pool)
            )

        score_frame = pd.DataFrame(scores, index=expression.columns).T
        score_frame = score_frame.reindex(list(modules))
        return ScoringResult(
            scores=score_frame,
            control_genes=controls,
            gene_bins=gene_bins,
            missing_genes=missing,
            random_seed=self.random_seed,
        )
