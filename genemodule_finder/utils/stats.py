"""Statistical utilities for gene module discovery.

Provides detection counting, equal-population binning and small
reporting helpers shared by the module discovery components.
"""

from __future__ import annotations

from typing import Dict, List

import numpy as np
import pandas as pd


def percent(part: float, whole: float) -> float:
    """Return part as a percentage of whole (0.0 when whole is zero)."""
    if not whole:
        return 0.0
    return 100.0 * float(part) / float(whole)


def detection_counts(matrix: pd.DataFrame, labels: pd.Series) -> pd.DataFrame:
    """Count, per gene and group, the cells with expression above zero.

    Parameters
    ----------
    matrix : pd.DataFrame
        Genes x cells expression (or count) matrix.
    labels : pd.Series
        Group label per cell, indexed by cell id.

    Returns
    -------
    pd.DataFrame
        Genes x groups table of detection counts. Groups appear in
        order of first occurrence among the matrix columns.
    """
    labels = labels.reindex(matrix.columns)
    detected = matrix.to_numpy() > 0
    groups = pd.unique(labels.to_numpy())
    counts = {}
    for group in groups:
        mask = (labels == group).to_numpy()
        counts[group] = detected[:, mask].sum(axis=1)
    return pd.DataFrame(counts, index=matrix.index, columns=list(groups))


def quantile_bins(values: pd.Series, n_bins: int) -> pd.Series:
    """Assign each entry to one of n_bins equal-population bins by value.

    Ties are broken by position so that bins stay balanced even when
    many entries share a value (e.g. genes never detected).

    Parameters
    ----------
    values : pd.Series
        Values to bin (e.g. average expression per gene).
    n_bins : int
        Requested number of bins; reduced to len(values) if larger.

    Returns
    -------
    pd.Series
        Integer bin id (0 = lowest values) per entry, same index as values.
    """
    if values.empty:
        return pd.Series([], index=values.index, dtype=int)
    ranked = values.rank(method="first")
    n_bins = max(1, min(int(n_bins), len(values)))
    if n_bins == 1:
        return pd.Series(0, index=values.index, dtype=int)
    bins = pd.qcut(ranked, q=n_bins, labels=False)
    return bins.astype(int)


def group_members(bins: pd.Series) -> Dict[int, List[str]]:
    """Invert a bin assignment into bin id -> ordered member list."""
    members: Dict[int, List[str]] = {}
    for key, bin_id in bins.items():
        members.setdefault(int(bin_id), []).append(key)
    return members


def zero_variance_rows(matrix: pd.DataFrame) -> List[str]:
    """Return the index labels of rows whose values are all equal."""
    values = matrix.to_numpy()
    if values.size == 0:
        return []
    constant = np.all(values == values[:, :1], axis=1)
    return matrix.index[constant].tolist()
