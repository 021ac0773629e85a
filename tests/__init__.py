"""Test suite for cellgraph.

Test organization:
- fixtures/: Mock data generators and test utilities
- unit/: Unit tests for individual modules and the CLI

Run tests with:
    pytest tests/
    pytest tests/unit/
    pytest tests/ -v --tb=short
"""
