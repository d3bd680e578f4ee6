"""Tabular I/O utilities for genemodule-finder.

Provides loaders for expression matrices, cell metadata, gene lists and
module tables, plus DataFrame writing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd
from scipy import sparse

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def ensure_output_dir(path: PathLike) -> Path:
    """Create the directory at path if it does not exist and return it.

    Parameters
    ----------
    path : PathLike
        Directory path to create.

    Returns
    -------
    Path
        The created/existing directory path.
    """
    directory = Path(path)
    directory.mkdir(parents=True, exist_ok=True)
    return directory


def _require_file(path: PathLike, what: str) -> Path:
    csv_path = Path(path)
    if not csv_path.exists():
        raise FileNotFoundError(f"{what} not found: {csv_path}")
    return csv_path


def load_expression_matrix(path: PathLike, sep: Optional[str] = None) -> pd.DataFrame:
    """Read a genes x cells matrix; the first column holds gene ids.

    Parameters
    ----------
    path : PathLike
        CSV (or TSV when the suffix is .tsv/.txt) file.
    sep : str, optional
        Field separator. Inferred from the suffix if None.

    Returns
    -------
    pd.DataFrame
        Numeric matrix indexed by gene id with cell ids as columns.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the table is empty or has non-numeric values.
    """
    csv_path = _require_file(path, "Expression matrix")
    if sep is None:
        sep = "\t" if csv_path.suffix.lower() in (".tsv", ".txt") else ","
    df = pd.read_csv(csv_path, sep=sep, index_col=0)
    if df.empty:
        raise ValueError(f"Expression matrix {csv_path} is empty")

    numeric = df.apply(pd.to_numeric, errors="coerce")
    bad = numeric.isna() & df.notna()
    if bad.to_numpy().any():
        n_bad = int(bad.to_numpy().sum())
        raise ValueError(f"Expression matrix {csv_path} has {n_bad} non-numeric entries")

    numeric.index = numeric.index.map(str)
    numeric.columns = numeric.columns.map(str)
    logger.info("Loaded expression matrix %s: %d genes x %d cells", csv_path, *numeric.shape)
    return numeric


def load_h5ad_matrices(
    path: PathLike,
    layer: Optional[str] = None,
    counts_layer: Optional[str] = None,
) -> Tuple[pd.DataFrame, Optional[pd.DataFrame], pd.DataFrame]:
    """Read an AnnData file (cells x genes) as genes x cells matrices.

    Parameters
    ----------
    path : PathLike
        Path to .h5ad file.
    layer : str, optional
        Layer holding normalized expression. Uses AnnData.X if None.
    counts_layer : str, optional
        Layer holding raw counts. None returns no counts matrix.

    Returns
    -------
    Tuple[pd.DataFrame, Optional[pd.DataFrame], pd.DataFrame]
        (expression, counts, obs) with genes as rows and cells as columns.
    """
    import scanpy as sc

    h5ad_path = _require_file(path, "AnnData file")
    adata = sc.read_h5ad(h5ad_path)
    logger.info("Loaded AnnData %s: %d cells, %d genes", h5ad_path, adata.n_obs, adata.n_vars)

    def _frame(name: Optional[str]) -> pd.DataFrame:
        if name is None:
            base = adata.X
        elif name in adata.layers:
            base = adata.layers[name]
        else:
            raise ValueError(f"Layer '{name}' not found in {h5ad_path}")
        matrix = base.toarray() if sparse.issparse(base) else np.asarray(base)
        return pd.DataFrame(
            matrix.T,
            index=adata.var_names.map(str),
            columns=adata.obs_names.map(str),
        )

    expression = _frame(layer)
    counts = _frame(counts_layer) if counts_layer is not None else None
    obs = adata.obs.copy()
    obs.index = obs.index.map(str)
    return expression, counts, obs


def load_cell_metadata(path: PathLike, id_column: Optional[str] = None) -> pd.DataFrame:
    """Read a cell-level metadata table indexed by cell id.

    Parameters
    ----------
    path : PathLike
        Path to cell metadata CSV file.
    id_column : str, optional
        Column holding cell ids. Uses the first column if None.

    Returns
    -------
    pd.DataFrame
        Metadata indexed by cell id (as string).

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the table is empty, lacks the id column or repeats cell ids.
    """
    csv_path = _require_file(path, "Cell metadata table")
    df = pd.read_csv(csv_path)
    if df.empty:
        raise ValueError(f"Cell metadata table {csv_path} is empty")
    id_column = id_column or df.columns[0]
    if id_column not in df.columns:
        raise ValueError(f"Cell metadata {csv_path} has no column `{id_column}`")
    df[id_column] = df[id_column].astype(str)
    if df[id_column].duplicated().any():
        raise ValueError(f"Cell metadata {csv_path} repeats cell ids in `{id_column}`")
    return df.set_index(id_column)


def load_gene_list(path: PathLike) -> List[str]:
    """Read a plain-text gene list (one id per line).

    Blank lines and lines starting with '#' are ignored. Order is kept
    and repeats are preserved so that callers can report them.
    """
    list_path = _require_file(path, "Gene list")
    genes = []
    for line in list_path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            genes.append(line)
    return genes


def load_module_table(
    path: PathLike,
    gene_column: str = "gene",
    module_column: str = "module",
) -> Dict[str, List[str]]:
    """Read a gene -> module table into module -> genes.

    Raises
    ------
    ValueError
        If the table lacks the gene or module column.
    """
    csv_path = _require_file(path, "Module table")
    df = pd.read_csv(csv_path)
    missing = [c for c in (gene_column, module_column) if c not in df.columns]
    if missing:
        raise ValueError(f"Module table {csv_path} missing columns: {missing}")
    modules: Dict[str, List[str]] = {}
    for gene, module in zip(df[gene_column].astype(str), df[module_column].astype(str)):
        modules.setdefault(module, []).append(gene)
    return modules


def write_dataframe(df: pd.DataFrame, path: PathLike, *, index: bool = False) -> Path:
    """Write DataFrame to path ensuring the parent directory exists.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to write.
    path : PathLike
        Output path.
    index : bool
        Whether to write row index (default: False).

    Returns
    -------
    Path
        The output path.
    """
    output_path = Path(path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output_path, index=index)
    return output_path
