"""Utility helpers for the autorespawn subsystem."""
