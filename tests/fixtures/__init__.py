"""Test fixtures for cellgraph.

Provides mock data generators and test utilities.
"""

from .mock_adata import (
    create_blob_matrix,
    create_expression_table,
    create_mock_adata,
)

__all__ = [
    "create_blob_matrix",
    "create_expression_table",
    "create_mock_adata",
]
