"""Unit tests for the t-SNE gene map."""

import pytest
import numpy as np
import pandas as pd

from genemodule_finder.core.modules import (
    DuplicateInputError,
    Embedder,
    EmbeddingConfig,
    InsufficientDiversityError,
    TSNEEmbedder,
    assert_unique_rows,
)
from genemodule_finder.core.modules.embedding import EMBEDDING_COLUMNS


@pytest.fixture
def distinct_vectors():
    rng = np.random.default_rng(5)
    return pd.DataFrame(
        rng.normal(size=(12, 4)),
        index=[f"G{i}" for i in range(12)],
        columns=[f"PC_{i + 1}" for i in range(4)],
    )


class TestEmbedderInvariants:
    """Tests for the checks at the embedder boundary."""

    def test_duplicate_rows_rejected(self, distinct_vectors):
        """Duplicate rows raise before any embedding work."""
        vectors = distinct_vectors.copy()
        vectors.iloc[3] = vectors.iloc[0]
        with pytest.raises(DuplicateInputError) as exc_info:
            TSNEEmbedder(random_seed=0).embed(vectors)
        assert exc_info.value.stage == "embedding"
        assert "G0=G3" in str(exc_info.value)

    def test_single_row_rejected(self, distinct_vectors):
        """A single row cannot be embedded."""
        with pytest.raises(InsufficientDiversityError):
            TSNEEmbedder(random_seed=0).embed(distinct_vectors.iloc[:1])

    def test_assert_unique_rows_passes(self, distinct_vectors):
        assert_unique_rows(distinct_vectors)

    def test_rejects_wrong_shape(self, distinct_vectors):
        """A backend returning the wrong shape is an error."""

        class BrokenEmbedder(Embedder):
            def _fit(self, values):
                return values[:, :3]

        with pytest.raises(RuntimeError):
            BrokenEmbedder().embed(distinct_vectors)


class TestTSNEEmbedder:
    """Tests for TSNEEmbedder class."""

    def test_effective_perplexity(self):
        """Perplexity is clamped for small inputs."""
        embedder = TSNEEmbedder(EmbeddingConfig(perplexity=30.0))
        assert embedder.effective_perplexity(10) == pytest.approx(3.0)
        assert embedder.effective_perplexity(1000) == 30.0

    def test_embed_shape(self, distinct_vectors):
        """One 2-D point per input row, same index."""
        points = TSNEEmbedder(random_seed=0).embed(distinct_vectors)
        assert points.shape == (12, 2)
        assert list(points.columns) == EMBEDDING_COLUMNS
        assert list(points.index) == list(distinct_vectors.index)
        assert np.isfinite(points.to_numpy()).all()

    def test_seed_reproducible(self, distinct_vectors):
        """The same seed gives the same layout."""
        first = TSNEEmbedder(random_seed=11).embed(distinct_vectors)
        second = TSNEEmbedder(random_seed=11).embed(distinct_vectors)
        np.testing.assert_allclose(first.to_numpy(), second.to_numpy())

    def test_two_rows(self, distinct_vectors):
        """Two distinct rows are the smallest valid input."""
        points = TSNEEmbedder(random_seed=0).embed(distinct_vectors.iloc[:2])
        assert points.shape == (2, 2)
