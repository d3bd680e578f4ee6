"""Detection-based gene filtering.

A candidate gene is kept when it is detected (expression > 0) in enough
cells overall, or in a large enough fraction of the cells of at least one
cluster. The two criteria are combined as a union so that genes specific
to a small cluster survive alongside broadly expressed ones.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import logging

import numpy as np
import pandas as pd

from ...utils.stats import detection_counts, percent
from .config import FilterConfig

# Label for cells without a cluster assignment
UNASSIGNED_LABEL = "unassigned"


@dataclass
class DetectionResult:
    """Result from detection filtering.

    Attributes
    ----------
    kept_genes : List[str]
        Genes passing either criterion, in input order
    discarded_genes : List[str]
        Genes failing both criteria, in input order
    detection_freq : pd.DataFrame
        Genes x clusters count of cells with expression > 0
    cluster_sizes : pd.Series
        Cell count per cluster
    stats : pd.DataFrame
        Per-gene total detections, best cluster rate and criterion flags
    """

    kept_genes: List[str] = field(default_factory=list)
    discarded_genes: List[str] = field(default_factory=list)
    detection_freq: Optional[pd.DataFrame] = None
    cluster_sizes: Optional[pd.Series] = None
    stats: Optional[pd.DataFrame] = None

    @property
    def n_input(self) -> int:
        return len(self.kept_genes) + len(self.discarded_genes)

    @property
    def percent_discarded(self) -> float:
        return percent(len(self.discarded_genes), self.n_input)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "n_input": self.n_input,
            "n_kept": len(self.kept_genes),
            "n_discarded": len(self.discarded_genes),
            "percent_discarded": round(self.percent_discarded, 2),
        }


class DetectionFilter:
    """Keep genes with reliable detection overall or within a cluster.

    Parameters
    ----------
    config : FilterConfig, optional
        Filter thresholds. If None, uses defaults (500 cells, 20%).
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.

    Example
    -------
    >>> detector = DetectionFilter(FilterConfig(min_cells=100, min_fraction=0.1))
    >>> result = detector.filter(counts.loc[candidates], metadata["cluster"])
    >>> result.kept_genes
    """

    def __init__(
        self,
        config: Optional[FilterConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or FilterConfig()
        self.logger = logger or logging.getLogger(__name__)

    def filter(
        self,
        matrix: pd.DataFrame,
        cluster_labels: pd.Series,
        min_cells: Optional[int] = None,
        min_fraction: Optional[float] = None,
    ) -> DetectionResult:
        """Apply the detection criteria to every gene in matrix.

        Parameters
        ----------
        matrix : pd.DataFrame
            Genes x cells matrix restricted to candidate genes
        cluster_labels : pd.Series
            Cluster label per cell, indexed by cell id
        min_cells : int, optional
            Overall detection threshold. Uses config default if None.
        min_fraction : float, optional
            Per-cluster detection rate threshold. Uses config default if None.

        Returns
        -------
        DetectionResult
            Kept and discarded genes with their detection statistics.
            An empty kept set is a valid result.
        """
        min_cells = min_cells if min_cells is not None else self.config.min_cells
        min_fraction = min_fraction if min_fraction is not None else self.config.min_fraction

        labels = cluster_labels.reindex(matrix.columns).astype(object).fillna(UNASSIGNED_LABEL)
        freq = detection_counts(matrix, labels)
        sizes = labels.value_counts().reindex(freq.columns).astype(int)

        total = freq.sum(axis=1)
        if freq.shape[1]:
            rates = freq.to_numpy() / sizes.to_numpy()[np.newaxis, :]
            best_rate = pd.Series(rates.max(axis=1), index=freq.index)
        else:
            best_rate = pd.Series(0.0, index=freq.index)

        by_count = total >= min_cells
        by_fraction = best_rate >= min_fraction
        keep = by_count | by_fraction

        stats = pd.DataFrame({
            "total_detected": total,
            "best_cluster_rate": best_rate,
            "passes_min_cells": by_count,
            "passes_min_fraction": by_fraction,
            "kept": keep,
        })

        result = DetectionResult(
            kept_genes=matrix.index[keep.to_numpy()].tolist(),
            discarded_genes=matrix.index[~keep.to_numpy()].tolist(),
            detection_freq=freq,
            cluster_sizes=sizes,
            stats=stats,
        )

        self.logger.info(
            "Detection filter (min_cells=%d, min_fraction=%.3f): kept %d of %d genes",
            min_cells,
            min_fraction,
            len(result.kept_genes),
            result.n_input,
        )
        self.logger.info(
            "Discarded %d genes (%.1f%%); %d kept by min_fraction only, %d by min_cells only",
            len(result.discarded_genes),
            result.percent_discarded,
            int((~by_count & by_fraction).sum()),
            int((by_count & ~by_fraction).sum()),
        )
        return result
