"""Shared test fixtures for the autorespawn test suite."""
