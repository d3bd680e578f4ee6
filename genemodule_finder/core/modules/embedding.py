"""Nonlinear 2-D embedding of reduced gene vectors.

The embedder boundary asserts that its input rows are pairwise distinct
and that there are at least two of them; upstream deduplication should
already guarantee both.
"""

from abc import ABC, abstractmethod
from typing import List, Optional
import logging

import numpy as np
import pandas as pd

from .config import EmbeddingConfig
from .dedup import fingerprint_vector
from .errors import DuplicateInputError, InsufficientDiversityError

EMBEDDING_COLUMNS = ["embed_1", "embed_2"]


def assert_unique_rows(vectors: pd.DataFrame, decimals: int = 10) -> None:
    """Raise if any two rows of vectors share a fingerprint.

    Raises
    ------
    DuplicateInputError
        If duplicate rows are present
    """
    seen = {}
    duplicates: List[str] = []
    for name, vector in zip(vectors.index, vectors.to_numpy(dtype=float)):
        key = fingerprint_vector(vector, decimals)
        if key in seen:
            duplicates.append(f"{seen[key]}={name}")
        else:
            seen[key] = name
    if duplicates:
        raise DuplicateInputError(
            f"{len(duplicates)} duplicate rows passed to the embedder: {duplicates[:5]}",
            stage="embedding",
            duplicates=duplicates[:20],
        )


class Embedder(ABC):
    """Computes a 2-D layout of distinct vectors.

    Subclasses implement `_fit`; `embed` checks the input invariants and
    labels the output.

    Parameters
    ----------
    config : EmbeddingConfig, optional
        Embedding configuration. If None, uses defaults.
    random_seed : int, optional
        Seed for the random initialisation. None gives irreproducible layouts.
    decimals : int
        Rounding used when checking rows for duplicates
    logger : logging.Logger, optional
        Logger instance. If None, uses the module logger.
    """

    def __init__(
        self,
        config: Optional[EmbeddingConfig] = None,
        random_seed: Optional[int] = None,
        decimals: int = 10,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or EmbeddingConfig()
        self.random_seed = random_seed
        self.decimals = decimals
        self.logger = logger or logging.getLogger(__name__)

    def embed(self, vectors: pd.DataFrame) -> pd.DataFrame:
        """Embed each row of vectors in two dimensions.

        Parameters
        ----------
        vectors : pd.DataFrame
            Id x components matrix with distinct rows

        Returns
        -------
        pd.DataFrame
            Id x [embed_1, embed_2] coordinates

        Raises
        ------
        InsufficientDiversityError
            If fewer than two rows are given
        DuplicateInputError
            If any two rows are identical
        """
        n_rows = vectors.shape[0]
        if n_rows < 2:
            raise InsufficientDiversityError(
                f"Embedding needs at least 2 distinct rows, got {n_rows}",
                stage="embedding",
                n_rows=n_rows,
            )
        assert_unique_rows(vectors, self.decimals)

        coords = np.asarray(self._fit(vectors.to_numpy(dtype=float)), dtype=float)
        if coords.shape != (n_rows, 2):
            raise RuntimeError(
                f"Embedder returned shape {coords.shape}, expected {(n_rows, 2)}"
            )
        return pd.DataFrame(coords, index=vectors.index.copy(), columns=EMBEDDING_COLUMNS)

    @abstractmethod
    def _fit(self, values: np.ndarray) -> np.ndarray:
        """Return an (n_rows, 2) array of coordinates."""


class TSNEEmbedder(Embedder):
    """t-SNE embedding using scikit-learn.

    Perplexity is clamped to (n_rows - 1) / 3 so that small gene sets
    still have a valid neighbourhood size.
    """

    def effective_perplexity(self, n_rows: int) -> float:
        """Return the perplexity used for n_rows points."""
        return float(min(self.config.perplexity, (n_rows - 1) / 3.0))

    def _fit(self, values: np.ndarray) -> np.ndarray:
        from sklearn.manifold import TSNE

        n_rows, n_features = values.shape
        perplexity = self.effective_perplexity(n_rows)
        if perplexity < self.config.perplexity:
            self.logger.info(
                "Perplexity %.2f too large for %d rows; using %.2f",
                self.config.perplexity,
                n_rows,
                perplexity,
            )
        # PCA initialisation needs at least two rows and two features
        init = "pca" if min(n_rows, n_features) >= 2 else "random"

        self.logger.info(
            "Running t-SNE on %d rows (perplexity=%.2f, seed=%s, n_jobs=%d)",
            n_rows,
            perplexity,
            self.random_seed,
            self.config.n_jobs,
        )
        tsne = TSNE(
            n_components=2,
            perplexity=perplexity,
            init=init,
            random_state=self.random_seed,
            n_jobs=self.config.n_jobs,
            method="barnes_hut",
        )
        return tsne.fit_transform(values)
