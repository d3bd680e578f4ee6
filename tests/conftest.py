"""Pytest configuration and shared fixtures for genemodule-finder tests."""

import sys
from pathlib import Path

import pytest
import numpy as np
import pandas as pd

# Add package to path
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

# Import mock data generators
from tests.fixtures import (
    create_mock_expression,
    create_duplicate_scenario,
)


# ============================================================================
# Mock Data Fixtures
# ============================================================================


@pytest.fixture
def mock_data():
    """Create (expression, counts, metadata) with 60 genes x 120 cells."""
    return create_mock_expression(n_genes=60, n_cells=120, n_clusters=3)


@pytest.fixture
def duplicate_scenario():
    """Create the 6 x 4 matrix where genes A and B are identical."""
    return create_duplicate_scenario()


@pytest.fixture
def detection_matrix() -> pd.DataFrame:
    """Counts for 4 genes over 12 cells (10 in c_big, 2 in c_small).

    - g_broad: detected in 5 c_big cells (passes min_cells=5 only)
    - g_rare: detected in both c_small cells (passes min_fraction=0.6 only)
    - g_single: detected in 1 cell (fails both)
    - g_zero: never detected
    """
    cells = [f"cell_{i:02d}" for i in range(12)]
    data = np.zeros((4, 12))
    data[0, :5] = 3
    data[1, 10:] = 1
    data[2, 0] = 7
    return pd.DataFrame(data, index=["g_broad", "g_rare", "g_single", "g_zero"], columns=cells)


@pytest.fixture
def detection_labels(detection_matrix) -> pd.Series:
    """Cluster labels matching detection_matrix."""
    return pd.Series(
        ["c_big"] * 10 + ["c_small"] * 2, index=detection_matrix.columns, name="cluster"
    )


@pytest.fixture
def tmp_output_dir(tmp_path: Path) -> Path:
    """Create a temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir(parents=True, exist_ok=True)
    return output_dir


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def small_config():
    """Configuration sized for the mock data."""
    from genemodule_finder.core.modules import ModuleDiscoveryConfig

    config = ModuleDiscoveryConfig()
    config.filtering.min_cells = 10
    config.filtering.min_fraction = 0.2
    config.reduction.n_dim = 10
    config.partition.module_count = 3
    config.scoring.nbin = 5
    config.scoring.nctrl = 10
    return config


@pytest.fixture
def sample_modules_config(tmp_path) -> Path:
    """Create sample module discovery configuration file."""
    import yaml

    config = {
        "modules": {
            "filtering": {"min_cells": 10, "min_fraction": 0.25},
            "reduction": {"n_dim": 8},
            "partition": {"module_count": 3, "linkage": "average"},
            "scoring": {"nbin": 5, "nctrl": 10},
            "random_seed": 7,
        },
    }

    path = tmp_path / "modules.yaml"
    with open(path, "w") as f:
        yaml.dump(config, f)

    return path
