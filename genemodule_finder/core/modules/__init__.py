"""Gene module discovery and scoring.

Filters candidate genes by detection, maps them with PCA and t-SNE
(collapsing genes with identical profiles first), cuts a dendrogram over
the map into a fixed number of modules and scores every cell for each
module against expression-matched control genes.

Example Usage
-------------
>>> from genemodule_finder.core.modules import (
...     ModuleDiscoveryConfig, ModuleDiscoveryEngine, export_result,
... )
>>> config = ModuleDiscoveryConfig()
>>> config.partition.module_count = 6
>>> engine = ModuleDiscoveryEngine(config)
>>> result = engine.run(expression, candidate_genes, cell_metadata, counts=counts)
>>> export_result(result, "out/")
"""

__version__ = "0.1.0"

# Configuration classes
from .config import (
    DedupConfig,
    EmbeddingConfig,
    FilterConfig,
    ModuleDiscoveryConfig,
    PartitionConfig,
    ReductionConfig,
    ScoringConfig,
)

# Errors
from .errors import (
    ConfigurationError,
    DuplicateInputError,
    EmptyInputError,
    InsufficientDiversityError,
    ModuleDiscoveryError,
)

# Components
from .filtering import DetectionFilter, DetectionResult
from .reduction import PCAReducer, Reducer, ReductionResult
from .dedup import Deduplicator, DedupResult, fingerprint_vector
from .embedding import Embedder, TSNEEmbedder, assert_unique_rows
from .partition import HierarchicalPartitioner, Partitioner, modules_from_assignment
from .scoring import ModuleScorer, ScoringResult, summarize_scores_by_group

# Engine
from .engine import ModuleDiscoveryEngine, ModuleDiscoveryResult
from .export import export_gene_modules, export_result

__all__ = [
    # Version
    "__version__",
    # Config
    "DedupConfig",
    "EmbeddingConfig",
    "FilterConfig",
    "ModuleDiscoveryConfig",
    "PartitionConfig",
    "ReductionConfig",
    "ScoringConfig",
    # Errors
    "ConfigurationError",
    "DuplicateInputError",
    "EmptyInputError",
    "InsufficientDiversityError",
    "ModuleDiscoveryError",
    # Components
    "DetectionFilter",
    "DetectionResult",
    "PCAReducer",
    "Reducer",
    "ReductionResult",
    "Deduplicator",
    "DedupResult",
    "fingerprint_vector",
    "Embedder",
    "TSNEEmbedder",
    "assert_unique_rows",
    "HierarchicalPartitioner",
    "Partitioner",
    "modules_from_assignment",
    "ModuleScorer",
    "ScoringResult",
    "summarize_scores_by_group",
    # Engine
    "ModuleDiscoveryEngine",
    "ModuleDiscoveryResult",
    "export_gene_modules",
    "export_result",
]
