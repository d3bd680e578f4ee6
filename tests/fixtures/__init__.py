"""Test fixtures for genemodule-finder.

Provides mock data generators and test utilities.
"""

from .mock_expression import (
    create_mock_expression,
    create_duplicate_scenario,
    create_minimal_cell_metadata,
)
from .fake_backends import RecordingEmbedder

__all__ = [
    "create_mock_expression",
    "create_duplicate_scenario",
    "create_minimal_cell_metadata",
    "RecordingEmbedder",
]
