"""Utility functions for genemodule-finder.

Provides statistical helpers shared across modules.
"""

from .stats import (
    detection_counts,
    group_members,
    percent,
    quantile_bins,
    zero_variance_rows,
)

__all__ = [
    "detection_counts",
    "group_members",
    "percent",
    "quantile_bins",
    "zero_variance_rows",
]
