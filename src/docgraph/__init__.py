"""Combine per-document knowledge extractions into one graph and lay it out."""

__version__ = "0.2.0"
