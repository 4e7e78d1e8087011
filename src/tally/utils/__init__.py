"""Utility helpers for tally."""
