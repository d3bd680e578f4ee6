"""Fake numerical backends for testing pipeline invariants.

The engine accepts injected reducer, embedder and partitioner objects;
these fakes record what they receive and return cheap, predictable
output.
"""

import numpy as np

from genemodule_finder.core.modules import Embedder


class RecordingEmbedder(Embedder):
    """Embedder placing rows on a line and recording what it was given."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.calls = []

    def embed(self, vectors):
        self.calls.append(vectors.copy())
        return super().embed(vectors)

    def _fit(self, values):
        n = values.shape[0]
        return np.column_stack([np.arange(n, dtype=float), np.zeros(n)])
