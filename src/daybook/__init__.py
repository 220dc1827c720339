"""Daybook: a small personal journal with debounced local persistence."""

__version__ = "0.1.0"
