"""genemodule-finder: Co-expressed gene modules from single-cell RNA data.

This package provides tools for:
- Detection-based filtering of candidate genes per cell cluster
- PCA and t-SNE maps of genes, safe against duplicate gene profiles
- Hierarchical partitioning of genes into a fixed number of modules
- Per-cell module scores corrected against expression-matched controls

Example usage:
    >>> from genemodule_finder.core.modules import ModuleDiscoveryEngine
    >>>
    >>> engine = ModuleDiscoveryEngine()
    >>> result = engine.run(expression, candidate_genes, cell_metadata)
    >>> result.module_scores
"""

__version__ = "0.1.0"
