"""Unit tests for loaders, writers, logging helpers and export."""

import json
import logging

import pytest
import numpy as np
import pandas as pd
import yaml

from genemodule_finder.io import (
    ensure_output_dir,
    get_logger,
    get_timestamped_log_path,
    load_cell_metadata,
    load_expression_matrix,
    load_gene_list,
    load_h5ad_matrices,
    load_module_table,
    log_json,
    log_yaml,
    write_dataframe,
)


class TestLoaders:
    """Tests for tabular loaders."""

    def test_expression_matrix(self, tmp_path):
        path = tmp_path / "expr.csv"
        path.write_text("gene,c1,c2\nA,1.0,0\nB,0.5,2\n")
        df = load_expression_matrix(path)
        assert list(df.index) == ["A", "B"]
        assert list(df.columns) == ["c1", "c2"]
        assert df.loc["B", "c2"] == 2.0

    def test_expression_matrix_tsv(self, tmp_path):
        path = tmp_path / "expr.tsv"
        path.write_text("gene\tc1\nA\t3\n")
        assert load_expression_matrix(path).loc["A", "c1"] == 3

    def test_expression_matrix_non_numeric(self, tmp_path):
        path = tmp_path / "expr.csv"
        path.write_text("gene,c1,c2\nA,1.0,abc\n")
        with pytest.raises(ValueError, match="non-numeric"):
            load_expression_matrix(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_expression_matrix(tmp_path / "nope.csv")

    def test_cell_metadata(self, tmp_path):
        path = tmp_path / "cells.csv"
        path.write_text("cell_id,cluster,sample\nc1,k1,S1\nc2,k2,S1\n")
        df = load_cell_metadata(path)
        assert list(df.index) == ["c1", "c2"]
        assert df.loc["c2", "cluster"] == "k2"

    def test_cell_metadata_duplicates(self, tmp_path):
        path = tmp_path / "cells.csv"
        path.write_text("cell_id,cluster\nc1,k1\nc1,k2\n")
        with pytest.raises(ValueError, match="repeats"):
            load_cell_metadata(path)

    def test_gene_list(self, tmp_path):
        path = tmp_path / "genes.txt"
        path.write_text("# candidates\nA\n\n  B \nA\n")
        assert load_gene_list(path) == ["A", "B", "A"]

    def test_module_table(self, tmp_path):
        path = tmp_path / "modules.csv"
        path.write_text("gene,module\nA,module_1\nB,module_2\nC,module_1\n")
        assert load_module_table(path) == {"module_1": ["A", "C"], "module_2": ["B"]}

    def test_module_table_missing_column(self, tmp_path):
        path = tmp_path / "modules.csv"
        path.write_text("gene,group\nA,g1\n")
        with pytest.raises(ValueError, match="missing columns"):
            load_module_table(path)

    def test_h5ad(self, tmp_path, mock_data):
        """AnnData (cells x genes) is read back as genes x cells."""
        import anndata as ad
        from scipy import sparse

        expression, counts, metadata = mock_data
        adata = ad.AnnData(
            X=expression.T.to_numpy(),
            obs=metadata.copy(),
            var=pd.DataFrame(index=expression.index.copy()),
        )
        adata.layers["counts"] = sparse.csr_matrix(counts.T.to_numpy().astype(np.float32))
        path = tmp_path / "data.h5ad"
        adata.write_h5ad(path)

        expr_df, counts_df, obs = load_h5ad_matrices(path, counts_layer="counts")
        assert expr_df.shape == expression.shape
        np.testing.assert_allclose(expr_df.to_numpy(), expression.to_numpy())
        np.testing.assert_allclose(counts_df.to_numpy(), counts.to_numpy())
        assert list(obs.columns) == ["cluster", "sample"]

        with pytest.raises(ValueError, match="Layer"):
            load_h5ad_matrices(path, layer="missing")


class TestWriters:
    """Tests for output helpers."""

    def test_ensure_output_dir(self, tmp_path):
        path = ensure_output_dir(tmp_path / "a" / "b")
        assert path.is_dir()

    def test_write_dataframe(self, tmp_path):
        path = write_dataframe(pd.DataFrame({"x": [1]}), tmp_path / "sub" / "t.csv")
        assert path.read_text().splitlines() == ["x", "1"]

    def test_log_json(self, tmp_path):
        path = tmp_path / "runs.jsonl"
        log_json(path, {"a": 1})
        log_json(path, {"a": 2})
        lines = path.read_text().splitlines()
        assert [json.loads(line)["a"] for line in lines] == [1, 2]

    def test_log_yaml(self, tmp_path):
        path = tmp_path / "diag.yaml"
        log_yaml(path, {"n": 3, "names": ["x"]})
        docs = [d for d in yaml.safe_load_all(path.read_text()) if d]
        assert docs == [{"n": 3, "names": ["x"]}]

    def test_timestamped_log_path(self, tmp_path):
        path = get_timestamped_log_path(tmp_path / "modules.log")
        assert path.name.startswith("modules_")
        assert path.suffix == ".log"

    def test_get_logger_file(self, tmp_path):
        logger, path = get_logger(
            "genemodule_finder.test_io", tmp_path / "run.log", timestamped=False, console=False
        )
        logger.info("hello %s", "world")
        for handler in logger.handlers:
            handler.flush()
        assert path == tmp_path / "run.log"
        assert "INFO | hello world" in path.read_text()

    def test_get_logger_without_file(self):
        logger, path = get_logger("genemodule_finder.test_io_console", level=logging.DEBUG)
        assert path is None
        assert logger.level == logging.DEBUG


class TestExport:
    """Tests for writing a complete run."""

    def test_export_result(self, duplicate_scenario, tmp_output_dir):
        from genemodule_finder.core.modules import (
            ModuleDiscoveryConfig,
            ModuleDiscoveryEngine,
            export_gene_modules,
            export_result,
        )
        from tests.fixtures import RecordingEmbedder

        expression, metadata = duplicate_scenario
        config = ModuleDiscoveryConfig()
        config.filtering.min_cells = 1
        config.reduction.n_dim = 3
        config.partition.module_count = 2
        result = ModuleDiscoveryEngine(config, embedder=RecordingEmbedder()).run(
            expression, list(expression.index), metadata
        )

        table = export_gene_modules(result)
        assert list(table.columns) == ["gene", "module", "dedup_group", "embed_1", "embed_2"]
        assert len(table) == 6

        written = export_result(result, tmp_output_dir)
        for name in (
            "kept_genes",
            "gene_modules",
            "module_scores",
            "module_scores_by_sample",
            "module_scores_by_cluster",
            "detection_stats",
            "diagnostics",
            "runs",
        ):
            assert written[name].exists(), name

        scores = pd.read_csv(written["module_scores"], index_col=0)
        assert list(scores.index) == ["module_1", "module_2"]
        diagnostics = yaml.safe_load_all(written["diagnostics"].read_text())
        assert next(diagnostics)["module_sizes"] == result.module_sizes
