"""
Tests for the CIR pricing import backend.

Run all tests: pytest
Run unit tests only: pytest tests/unit/
Run one area: pytest tests/unit/test_import_executor.py -v
"""
