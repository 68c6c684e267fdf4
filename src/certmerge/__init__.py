"""Merge PEM certificates into a deduplicated bundle file."""

__version__ = "0.1.0"
