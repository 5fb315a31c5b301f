"""Synthetic monitoring of a single product page."""

__version__ = "1.0.0"
