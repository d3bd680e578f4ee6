"""Unit tests for detection filtering and stats helpers."""

import numpy as np
import pandas as pd

from genemodule_finder.core.modules import DetectionFilter, FilterConfig
from genemodule_finder.core.modules.filtering import UNASSIGNED_LABEL
from genemodule_finder.utils.stats import detection_counts, percent, quantile_bins


class TestDetectionFilter:
    """Tests for DetectionFilter class."""

    def test_union_of_criteria(self, detection_matrix, detection_labels):
        """Genes passing either criterion are kept."""
        detector = DetectionFilter(FilterConfig(min_cells=5, min_fraction=0.6))
        result = detector.filter(detection_matrix, detection_labels)

        assert result.kept_genes == ["g_broad", "g_rare"]
        assert result.discarded_genes == ["g_single", "g_zero"]
        stats = result.stats
        assert bool(stats.loc["g_broad", "passes_min_cells"])
        assert not bool(stats.loc["g_broad", "passes_min_fraction"])
        assert not bool(stats.loc["g_rare", "passes_min_cells"])
        assert bool(stats.loc["g_rare", "passes_min_fraction"])

    def test_min_cells_only(self, detection_matrix, detection_labels):
        """A fraction above 1 disables the per-cluster criterion."""
        detector = DetectionFilter()
        result = detector.filter(detection_matrix, detection_labels, min_cells=5, min_fraction=1.01)
        assert result.kept_genes == ["g_broad"]

    def test_min_fraction_only(self, detection_matrix, detection_labels):
        """A huge min_cells leaves only the per-cluster criterion."""
        detector = DetectionFilter()
        result = detector.filter(detection_matrix, detection_labels, min_cells=10_000, min_fraction=0.6)
        assert result.kept_genes == ["g_rare"]

    def test_kept_is_subset_in_input_order(self, mock_data):
        """Kept genes are a subset of the input, in input order."""
        _, counts, metadata = mock_data
        result = DetectionFilter(FilterConfig(min_cells=30, min_fraction=0.5)).filter(
            counts, metadata["cluster"]
        )
        assert set(result.kept_genes) <= set(counts.index)
        positions = [counts.index.get_loc(g) for g in result.kept_genes]
        assert positions == sorted(positions)
        assert result.n_input == len(counts)

    def test_empty_result_is_valid(self, detection_matrix, detection_labels):
        """Thresholds nothing can pass give an empty, reportable result."""
        result = DetectionFilter().filter(
            detection_matrix, detection_labels, min_cells=10_000, min_fraction=1.0
        )
        assert result.kept_genes == []
        assert result.percent_discarded == 100.0
        assert result.to_dict()["n_discarded"] == 4

    def test_detection_frequencies(self, detection_matrix, detection_labels):
        """Detection counts and cluster sizes are recorded."""
        result = DetectionFilter().filter(detection_matrix, detection_labels)
        assert result.detection_freq.loc["g_broad", "c_big"] == 5
        assert result.detection_freq.loc["g_rare", "c_small"] == 2
        assert result.cluster_sizes["c_big"] == 10
        assert result.cluster_sizes["c_small"] == 2

    def test_unlabelled_cells(self, detection_matrix, detection_labels):
        """Cells without a label form their own group."""
        labels = detection_labels.iloc[:10]
        result = DetectionFilter().filter(detection_matrix, labels, min_cells=100, min_fraction=0.6)
        assert UNASSIGNED_LABEL in result.detection_freq.columns
        assert result.cluster_sizes[UNASSIGNED_LABEL] == 2
        assert result.kept_genes == ["g_rare"]

    def test_logs_discard_summary(self, detection_matrix, detection_labels, caplog):
        """Filter reports how many genes were discarded."""
        import logging

        with caplog.at_level(logging.INFO):
            DetectionFilter(FilterConfig(min_cells=5, min_fraction=0.6)).filter(
                detection_matrix, detection_labels
            )
        assert "kept 2 of 4 genes" in caplog.text
        assert "Discarded 2 genes (50.0%)" in caplog.text


class TestStatsHelpers:
    """Tests for utils.stats helpers."""

    def test_percent(self):
        assert percent(1, 4) == 25.0
        assert percent(3, 0) == 0.0

    def test_detection_counts_group_order(self):
        """Groups appear in order of first occurrence."""
        matrix = pd.DataFrame([[1, 0, 2]], index=["g"], columns=["a", "b", "c"])
        labels = pd.Series(["y", "x", "y"], index=["a", "b", "c"])
        freq = detection_counts(matrix, labels)
        assert list(freq.columns) == ["y", "x"]
        assert freq.loc["g", "y"] == 2
        assert freq.loc["g", "x"] == 0

    def test_quantile_bins_balanced_with_ties(self):
        """Ties are broken by position, keeping bins equal-sized."""
        values = pd.Series(np.zeros(12), index=[f"g{i}" for i in range(12)])
        bins = quantile_bins(values, 4)
        assert sorted(bins.value_counts().tolist()) == [3, 3, 3, 3]

    def test_quantile_bins_capped(self):
        """More bins than values gives one value per bin."""
        values = pd.Series([3.0, 1.0, 2.0], index=["a", "b", "c"])
        bins = quantile_bins(values, 24)
        assert bins.to_dict() == {"a": 2, "b": 0, "c": 1}
