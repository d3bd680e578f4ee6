"""Hierarchical partitioning of embedded genes into modules.

Clustering runs on the 2-D embedded coordinates rather than on the PCA
space, so modules match the gene map that is plotted and inspected.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional
import logging

import numpy as np
import pandas as pd

from .config import PartitionConfig
from .errors import ConfigurationError


def module_label(index: int) -> str:
    """Label for the module with zero-based index."""
    return f"module_{index + 1}"


def count_distinct_points(points: pd.DataFrame) -> int:
    """Number of distinct coordinate rows in points."""
    if points.empty:
        return 0
    return int(np.unique(points.to_numpy(dtype=float), axis=0).shape[0])


def modules_from_assignment(gene_to_module: pd.Series) -> Dict[str, List[str]]:
    """Invert gene -> module into module -> genes, modules in label order."""
    modules: Dict[str, List[str]] = {}
    for gene, module in gene_to_module.items():
        modules.setdefault(module, []).append(gene)
    return dict(sorted(modules.items(), key=lambda item: _label_order(item[0])))


def _label_order(label: str):
    prefix, _, suffix = str(label).rpartition("_")
    return (prefix, int(suffix)) if suffix.isdigit() else (str(label), -1)


class Partitioner(ABC):
    """Splits genes into a fixed number of disjoint modules.

    Parameters
    ----------
    config : PartitionConfig, optional
        Partition configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.
    """

    def __init__(
        self,
        config: Optional[PartitionConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or PartitionConfig()
        self.logger = logger or logging.getLogger(__name__)

    def partition(self, points: pd.DataFrame, module_count: Optional[int] = None) -> pd.Series:
        """Assign every gene to one of module_count modules.

        Parameters
        ----------
        points : pd.DataFrame
            Gene x coordinates
        module_count : int, optional
            Number of modules. Uses config default if None.

        Returns
        -------
        pd.Series
            Module label per gene, indexed like points

        Raises
        ------
        ConfigurationError
            If module_count is below 2 or above the number of distinct points
        """
        k = module_count if module_count is not None else self.config.module_count
        n_distinct = count_distinct_points(points)
        if k < 2 or k > n_distinct:
            raise ConfigurationError(
                f"module_count={k} must be between 2 and the number of distinct "
                f"embedded genes ({n_distinct})",
                stage="partition",
                module_count=k,
                n_distinct=n_distinct,
                n_genes=len(points),
            )

        codes = np.asarray(self._cut(points.to_numpy(dtype=float), k)).ravel()
        labels = pd.Series(
            [module_label(int(c)) for c in codes], index=points.index.copy(), name="module"
        )
        n_found = labels.nunique()
        if n_found != k:
            raise RuntimeError(f"Partitioner produced {n_found} modules, expected {k}")

        sizes = labels.value_counts().reindex(
            [module_label(i) for i in range(k)]
        )
        self.logger.info(
            "Partitioned %d genes into %d modules (sizes: %s)",
            len(labels),
            k,
            ", ".join(f"{name}={int(n)}" for name, n in sizes.items()),
        )
        return labels

    @abstractmethod
    def _cut(self, coords: np.ndarray, k: int) -> np.ndarray:
        """Return zero-based module codes 0..k-1, one per row of coords."""


class HierarchicalPartitioner(Partitioner):
    """Agglomerative clustering on Euclidean distances, cut into k groups."""

    def _cut(self, coords: np.ndarray, k: int) -> np.ndarray:
        from scipy.cluster.hierarchy import cut_tree, linkage

        tree = linkage(coords, method=self.config.linkage, metric="euclidean")
        return cut_tree(tree, n_clusters=k).ravel()
