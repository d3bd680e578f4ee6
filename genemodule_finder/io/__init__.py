"""I/O utilities for genemodule-finder.

Provides logging, CSV/H5AD loading and DataFrame writing.
"""

from .logging import get_logger, get_timestamped_log_path, log_json, log_yaml
from .csv import (
    ensure_output_dir,
    load_cell_metadata,
    load_expression_matrix,
    load_gene_list,
    load_h5ad_matrices,
    load_module_table,
    write_dataframe,
)

__all__ = [
    # Logging
    "get_logger",
    "get_timestamped_log_path",
    "log_json",
    "log_yaml",
    # Tabular I/O
    "ensure_output_dir",
    "load_cell_metadata",
    "load_expression_matrix",
    "load_gene_list",
    "load_h5ad_matrices",
    "load_module_table",
    "write_dataframe",
]
