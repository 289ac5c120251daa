"""Command-line interface for ff."""
