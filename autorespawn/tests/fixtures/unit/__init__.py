"""Fake collaborators for unit tests."""
