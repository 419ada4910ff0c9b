"""Coda Tree Export - export a Coda page and its subpages as one Markdown document."""

__version__ = "0.1.0"
