"""Export functions for module discovery results.

Key Functions:
- export_gene_modules: Gene table with module, dedup group and coordinates
- export_result: Write every artifact of a run to an output directory
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Optional, Union

import pandas as pd

from ...io.csv import ensure_output_dir, write_dataframe
from ...io.logging import log_json, log_yaml
from .engine import ModuleDiscoveryResult

PathLike = Union[str, Path]


def export_gene_modules(result: ModuleDiscoveryResult) -> pd.DataFrame:
    """Build the per-gene table: module, dedup group and 2-D coordinates."""
    table = pd.DataFrame({"module": result.gene_to_module})
    if result.gene_groups is not None:
        table["dedup_group"] = result.gene_groups.reindex(table.index)
    if result.gene_embedding is not None:
        table = table.join(result.gene_embedding)
    table.index.name = "gene"
    return table.reset_index()


def export_result(
    result: ModuleDiscoveryResult,
    output_dir: PathLike,
    logger: Optional[logging.Logger] = None,
) -> Dict[str, Path]:
    """Write all artifacts of a module discovery run.

    Parameters
    ----------
    result : ModuleDiscoveryResult
        Completed run
    output_dir : PathLike
        Directory to write into (created if missing)
    logger : logging.Logger, optional
        Logger instance

    Returns
    -------
    Dict[str, Path]
        Artifact name -> written path
    """
    if logger is None:
        logger = logging.getLogger(__name__)
    out = ensure_output_dir(output_dir)
    written: Dict[str, Path] = {}

    written["kept_genes"] = write_dataframe(
        pd.DataFrame({"gene": result.kept_genes}), out / "kept_genes.csv"
    )
    written["gene_modules"] = write_dataframe(
        export_gene_modules(result), out / "gene_modules.csv"
    )
    scores = result.module_scores.copy()
    scores.index.name = "module"
    written["module_scores"] = write_dataframe(scores, out / "module_scores.csv", index=True)

    for name, table in (
        ("module_scores_by_sample", result.scores_by_sample),
        ("module_scores_by_cluster", result.scores_by_cluster),
    ):
        if table is None:
            continue
        table = table.copy()
        table.index.name = "module"
        written[name] = write_dataframe(table, out / f"{name}.csv", index=True)

    if result.detection is not None and result.detection.stats is not None:
        stats = result.detection.stats.copy()
        stats.index.name = "gene"
        written["detection_stats"] = write_dataframe(
            stats, out / "detection_stats.csv", index=True
        )

    diagnostics_path = out / "diagnostics.yaml"
    diagnostics_path.unlink(missing_ok=True)
    log_yaml(diagnostics_path, result.diagnostics)
    written["diagnostics"] = diagnostics_path

    runs_path = out / "runs.jsonl"
    log_json(
        runs_path,
        {
            "timestamp": datetime.now().isoformat(),
            "n_kept_genes": len(result.kept_genes),
            "module_sizes": result.module_sizes,
            "random_seed": result.diagnostics.get("config", {}).get("random_seed"),
        },
    )
    written["runs"] = runs_path

    for name, path in written.items():
        logger.info("Wrote %s: %s", name, path)
    return written
