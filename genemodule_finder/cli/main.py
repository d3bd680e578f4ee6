"""Command-line interface for genemodule-finder.

Provides CLI commands for discovering gene modules and scoring cells.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import click


def setup_logging(verbose: bool = False, debug: bool = False) -> logging.Logger:
    """Setup logging for CLI commands."""
    level = logging.DEBUG if debug else (logging.INFO if verbose else logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )
    return logging.getLogger("genemodule_finder")


def _load_inputs(
    expression: str,
    counts: Optional[str],
    metadata: Optional[str],
    layer: Optional[str],
    counts_layer: Optional[str],
    logger: logging.Logger,
):
    """Load expression, counts and cell metadata from CSV or h5ad."""
    from genemodule_finder.io import (
        load_cell_metadata,
        load_expression_matrix,
        load_h5ad_matrices,
    )

    obs = None
    if Path(expression).suffix == ".h5ad":
        expr_df, counts_df, obs = load_h5ad_matrices(expression, layer, counts_layer)
    else:
        expr_df = load_expression_matrix(expression)
        counts_df = None
    if counts:
        counts_df = load_expression_matrix(counts)

    if metadata:
        meta_df = load_cell_metadata(metadata)
    elif obs is not None:
        meta_df = obs
    else:
        raise click.UsageError("--metadata is required unless --expression is an .h5ad file")

    logger.info(f"Expression: {expr_df.shape[0]} genes x {expr_df.shape[1]} cells")
    return expr_df, counts_df, meta_df


@click.group()
@click.version_option(version="0.1.0", prog_name="genemodule-finder")
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option("--debug", is_flag=True, help="Enable debug output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, debug: bool) -> None:
    """genemodule-finder: Co-expressed gene modules from single-cell RNA data.

    Filters candidate genes by detection, maps them with PCA and t-SNE,
    cuts the map into gene modules and scores every cell for each module.

    Examples:

        # Discover modules and score cells
        genemodule-finder run -e expr.csv -m cells.csv -g genes.txt -o out/

        # Score existing modules
        genemodule-finder score -e expr.csv --modules out/gene_modules.csv -o scored/
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["debug"] = debug
    ctx.obj["logger"] = setup_logging(verbose, debug)


@cli.command()
@click.option("--expression", "-e", required=True, type=click.Path(exists=True),
              help="Normalized expression: genes x cells CSV, or cells x genes .h5ad")
@click.option("--counts", type=click.Path(exists=True),
              help="Raw counts CSV (genes x cells) used for detection filtering")
@click.option("--layer", default=None, help="h5ad layer with normalized expression")
@click.option("--counts-layer", default=None, help="h5ad layer with raw counts")
@click.option("--metadata", "-m", type=click.Path(exists=True),
              help="Cell metadata CSV (first column cell id)")
@click.option("--genes", "-g", required=True, type=click.Path(exists=True),
              help="Candidate gene list, one id per line")
@click.option("--config", "-c", type=click.Path(exists=True),
              help="Module discovery configuration file (YAML)")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--min-cells", type=int, help="Keep genes detected in at least this many cells")
@click.option("--min-fraction", type=float, help="Keep genes detected in this fraction of a cluster")
@click.option("--n-dim", type=int, help="Number of principal components")
@click.option("--module-count", type=int, help="Number of gene modules")
@click.option("--nbin", type=int, help="Expression bins for control genes")
@click.option("--nctrl", type=int, help="Control genes per module gene")
@click.option("--seed", type=int, help="Random seed for t-SNE and control sampling")
@click.option("--n-jobs", type=int, help="Threads for t-SNE")
@click.option("--log-dir", type=click.Path(), help="Directory for a run log file")
@click.pass_context
def run(
    ctx: click.Context,
    expression: str,
    counts: Optional[str],
    layer: Optional[str],
    counts_layer: Optional[str],
    metadata: Optional[str],
    genes: str,
    config: Optional[str],
    output_path: str,
    min_cells: Optional[int],
    min_fraction: Optional[float],
    n_dim: Optional[int],
    module_count: Optional[int],
    nbin: Optional[int],
    nctrl: Optional[int],
    seed: Optional[int],
    n_jobs: Optional[int],
    log_dir: Optional[str],
) -> None:
    """Discover gene modules and score every cell for them.

    Steps:
      1. Detection filter on candidate genes
      2. PCA over genes
      3. Collapse genes with identical PCA vectors
      4. t-SNE gene map
      5. Dendrogram cut into modules
      6. Background-corrected module scores
    """
    logger = ctx.obj["logger"]
    if log_dir:
        from genemodule_finder.io import get_logger

        level = logging.DEBUG if ctx.obj["debug"] else logging.INFO
        logger, log_file = get_logger("genemodule_finder.run", Path(log_dir) / "modules.log", level)
        logger.info(f"Log file: {log_file}")

    from genemodule_finder.core.modules import (
        ModuleDiscoveryConfig,
        ModuleDiscoveryEngine,
        ModuleDiscoveryError,
        export_result,
    )
    from genemodule_finder.io import load_gene_list

    try:
        cfg = ModuleDiscoveryConfig.from_yaml(Path(config)) if config else ModuleDiscoveryConfig()
    except ModuleDiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    overrides = {
        (cfg.filtering, "min_cells"): min_cells,
        (cfg.filtering, "min_fraction"): min_fraction,
        (cfg.reduction, "n_dim"): n_dim,
        (cfg.partition, "module_count"): module_count,
        (cfg.scoring, "nbin"): nbin,
        (cfg.scoring, "nctrl"): nctrl,
        (cfg.embedding, "n_jobs"): n_jobs,
    }
    for (section, name), value in overrides.items():
        if value is not None:
            setattr(section, name, value)
    if seed is not None:
        cfg.random_seed = seed

    expr_df, counts_df, meta_df = _load_inputs(
        expression, counts, metadata, layer, counts_layer, logger
    )
    candidates = load_gene_list(genes)
    logger.info(f"Candidate genes: {len(candidates)}")

    engine = ModuleDiscoveryEngine(cfg, logger)
    try:
        result = engine.run(expr_df, candidates, meta_df, counts=counts_df)
    except ModuleDiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    written = export_result(result, output_path, logger)

    click.echo(f"Kept {len(result.kept_genes)} genes in {len(result.modules)} modules")
    for name, size in result.module_sizes.items():
        click.echo(f"  {name}: {size} genes")
    click.echo(f"Output saved to: {written['module_scores'].parent}")


@cli.command()
@click.option("--expression", "-e", required=True, type=click.Path(exists=True),
              help="Normalized expression: genes x cells CSV, or cells x genes .h5ad")
@click.option("--layer", default=None, help="h5ad layer with normalized expression")
@click.option("--modules", required=True, type=click.Path(exists=True),
              help="CSV with `gene` and `module` columns")
@click.option("--out", "-o", "output_path", required=True, type=click.Path(),
              help="Output directory")
@click.option("--nbin", type=int, default=None,
              help="Expression bins for control genes (default: ScoringConfig.nbin)")
@click.option("--nctrl", type=int, default=None,
              help="Control genes per module gene (default: ScoringConfig.nctrl)")
@click.option("--seed", type=int, default=None,
              help="Random seed for control sampling (default: ModuleDiscoveryConfig.random_seed)")
@click.pass_context
def score(
    ctx: click.Context,
    expression: str,
    layer: Optional[str],
    modules: str,
    output_path: str,
    nbin: Optional[int],
    nctrl: Optional[int],
    seed: Optional[int],
) -> None:
    """Score cells for pre-defined gene modules.

    Each module score is the mean expression of its genes minus the mean
    of control genes drawn from matching expression bins.
    """
    logger = ctx.obj["logger"]

    from genemodule_finder.core.modules import (
        ModuleDiscoveryConfig,
        ModuleDiscoveryError,
        ModuleScorer,
        ScoringConfig,
    )
    from genemodule_finder.io import (
        ensure_output_dir,
        load_expression_matrix,
        load_h5ad_matrices,
        load_module_table,
        write_dataframe,
    )

    if Path(expression).suffix == ".h5ad":
        expr_df, _, _ = load_h5ad_matrices(expression, layer)
    else:
        expr_df = load_expression_matrix(expression)
    module_genes = load_module_table(modules)
    logger.info(f"Loaded {len(module_genes)} modules from {modules}")

    scoring = ScoringConfig()
    if nbin is not None:
        scoring.nbin = nbin
    if nctrl is not None:
        scoring.nctrl = nctrl
    if seed is None:
        seed = ModuleDiscoveryConfig().random_seed
    scorer = ModuleScorer(scoring, random_seed=seed, logger=logger)
    try:
        result = scorer.score(expr_df, module_genes)
    except ModuleDiscoveryError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    out_dir = ensure_output_dir(output_path)
    scores = result.scores.copy()
    scores.index.name = "module"
    output_file = write_dataframe(scores, out_dir / "module_scores.csv", index=True)

    click.echo(f"Scored {len(scores)} modules in {scores.shape[1]} cells")
    click.echo(f"Output saved to: {output_file}")


def main() -> None:
    """Main entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
