"""Lot sheet extraction, profile generation and batch injection."""

__version__ = "0.1.0"
