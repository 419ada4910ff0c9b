"""Command-line interface for Coda Tree Export."""
