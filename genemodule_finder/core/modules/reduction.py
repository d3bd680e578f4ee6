"""Linear dimensionality reduction of genes.

Genes are the observations here: each gene's expression profile across
cells is projected onto the leading principal components, giving one
fixed-length vector per gene.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
import logging

import numpy as np
import pandas as pd

from ...utils.stats import zero_variance_rows
from .config import ReductionConfig
from .errors import ConfigurationError, InsufficientDiversityError


@dataclass
class ReductionResult:
    """Result from reducing a genes x cells matrix.

    Attributes
    ----------
    vectors : pd.DataFrame
        Genes x components matrix of principal-component scores
    variance_ratio : np.ndarray
        Fraction of total variance explained per component (diagnostic only)
    requested_n_dim : int
        Number of components asked for
    zero_variance_genes : List[str]
        Genes with constant expression across cells
    """

    vectors: pd.DataFrame
    variance_ratio: np.ndarray
    requested_n_dim: int = 0
    zero_variance_genes: List[str] = field(default_factory=list)

    @property
    def n_dim(self) -> int:
        return self.vectors.shape[1]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for reporting."""
        return {
            "n_dim": self.n_dim,
            "requested_n_dim": self.requested_n_dim,
            "variance_ratio": [round(float(v), 6) for v in self.variance_ratio],
            "n_zero_variance_genes": len(self.zero_variance_genes),
        }


class Reducer(ABC):
    """Projects genes into a lower-dimensional linear space.

    Subclasses implement `_project`; the public `reduce` enforces the
    component bound and output shape so that alternative numerical
    backends can be swapped in without touching the pipeline.

    Parameters
    ----------
    config : ReductionConfig, optional
        Reduction configuration. If None, uses defaults.
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.
    """

    def __init__(
        self,
        config: Optional[ReductionConfig] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or ReductionConfig()
        self.logger = logger or logging.getLogger(__name__)

    def resolve_n_dim(self, n_genes: int, n_cells: int, n_dim: Optional[int] = None) -> int:
        """Return the number of components to compute.

        The bound is min(n_genes, n_cells) - 1. Requests above it are
        rejected, unless strict_n_dim is off, in which case they are
        clamped with a warning.

        Raises
        ------
        ConfigurationError
            If the bound is below one, or n_dim exceeds it in strict mode
        """
        requested = n_dim if n_dim is not None else self.config.n_dim
        bound = min(n_genes, n_cells) - 1
        if bound < 1:
            raise ConfigurationError(
                f"Cannot compute principal components for {n_genes} genes x {n_cells} cells",
                stage="reduction",
                n_genes=n_genes,
                n_cells=n_cells,
            )
        if requested > bound:
            if self.config.strict_n_dim:
                raise ConfigurationError(
                    f"n_dim={requested} exceeds min(genes, cells) - 1 = {bound}",
                    stage="reduction",
                    n_dim=requested,
                    bound=bound,
                )
            self.logger.warning(
                "Requested n_dim=%d exceeds min(genes, cells) - 1 = %d; using %d",
                requested,
                bound,
                bound,
            )
            return bound
        return requested

    def reduce(self, matrix: pd.DataFrame, n_dim: Optional[int] = None) -> ReductionResult:
        """Project each gene (row) of matrix onto principal components.

        Parameters
        ----------
        matrix : pd.DataFrame
            Genes x cells expression matrix
        n_dim : int, optional
            Number of components. Uses config default if None.

        Returns
        -------
        ReductionResult
            Per-gene component scores and variance explained

        Raises
        ------
        InsufficientDiversityError
            If fewer than two genes are given
        ConfigurationError
            If n_dim cannot be satisfied
        """
        n_genes, n_cells = matrix.shape
        if n_genes < 2:
            raise InsufficientDiversityError(
                f"Need at least 2 genes for reduction, got {n_genes}",
                stage="reduction",
                n_genes=n_genes,
            )
        requested = n_dim if n_dim is not None else self.config.n_dim
        use_dim = self.resolve_n_dim(n_genes, n_cells, requested)

        constant = zero_variance_rows(matrix)
        if constant:
            self.logger.warning(
                "%d of %d genes (%.1f%%) have zero variance across cells; "
                "they will share one reduced vector",
                len(constant),
                n_genes,
                100.0 * len(constant) / n_genes,
            )

        self.logger.info("Running PCA on %d genes x %d cells (n_dim=%d)", n_genes, n_cells, use_dim)
        scores, ratio = self._project(matrix.to_numpy(dtype=float), use_dim)

        scores = np.asarray(scores, dtype=float)
        if scores.shape != (n_genes, use_dim):
            raise RuntimeError(
                f"Reducer returned shape {scores.shape}, expected {(n_genes, use_dim)}"
            )

        columns = [f"PC_{i + 1}" for i in range(use_dim)]
        vectors = pd.DataFrame(scores, index=matrix.index.copy(), columns=columns)
        ratio = np.asarray(ratio, dtype=float)
        self.logger.info(
            "PCA explains %.1f%% of variance with %d components",
            100.0 * float(ratio.sum()),
            use_dim,
        )
        return ReductionResult(
            vectors=vectors,
            variance_ratio=ratio,
            requested_n_dim=requested,
            zero_variance_genes=constant,
        )

    @abstractmethod
    def _project(self, values: np.ndarray, n_dim: int) -> Tuple[np.ndarray, np.ndarray]:
        """Return (scores, variance_ratio) for the rows of values."""


class PCAReducer(Reducer):
    """PCA over genes using scanpy.

    Parameters
    ----------
    config : ReductionConfig, optional
        Reduction configuration. If None, uses defaults.
    random_seed : int, optional
        Seed for the iterative solver start vector
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.
    """

    def __init__(
        self,
        config: Optional[ReductionConfig] = None,
        random_seed: Optional[int] = None,
        logger: Optional[logging.Logger] = None,
    ):
        super().__init__(config, logger)
        self.random_seed = random_seed
        self._check_dependencies()

    def _check_dependencies(self) -> None:
        """Check for required dependencies."""
        try:
            import scanpy
        except ImportError:
            raise RuntimeError(
                "PCA requires scanpy. Install with: pip install scanpy"
            )

    def _project(self, values: np.ndarray, n_dim: int) -> Tuple[np.ndarray, np.ndarray]:
        import anndata as ad
        import scanpy as sc

        # Genes as observations
        adata = ad.AnnData(X=values)
        sc.tl.pca(
            adata,
            n_comps=n_dim,
            zero_center=True,
            svd_solver=self.config.svd_solver,
            random_state=self.random_seed if self.random_seed is not None else 0,
        )
        # Re-project in float64 so identical genes get bitwise identical scores
        loadings = np.asarray(adata.varm["PCs"], dtype=np.float64)
        scores = (values - values.mean(axis=0)) @ loadings
        return scores, adata.uns["pca"]["variance_ratio"]
