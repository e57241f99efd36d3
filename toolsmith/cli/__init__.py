"""Command-line interface for Toolsmith."""
