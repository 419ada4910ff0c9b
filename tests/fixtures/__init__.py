"""Test fixtures for Coda API responses."""
